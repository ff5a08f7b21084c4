"""
Analysis Orchestrator
=====================

Runs the vision-analysis capability for pending frames and merges the
verdicts into the FrameStore.

This orchestrator:
    - Dispatches one independent task per frame (fire-and-continue)
    - Retries rate-limit/overload failures with exponential backoff
    - Validates every response against the strict analysis contract
    - Falls back to a degraded verdict on any terminal failure
    - Auto-selects frames graded EXCELLENT

Design Rules:
    - Never raise to the caller; the frame record is the only outcome
    - Always clear is_analyzing
    - Results for frames no longer in the store are dropped
    - Never select a frame on a degraded verdict
"""

import asyncio
import logging
from typing import Optional, Set, Tuple

from frameperfect.capabilities.engine import AnalysisEngine
from frameperfect.errors import CapabilityError
from frameperfect.models.analysis import ANALYSIS_INSTRUCTION, parse_verdict
from frameperfect.models.frame import Analysis, Frame, FrameQuality
from frameperfect.pipeline.retry import RetryableTask, RetryPolicy, SleepFn
from frameperfect.store.frame_store import FrameStore


logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """
    Per-frame analysis with retry and degraded fallback.

    Attributes:
        store: Frame collection to update
        engine: Analysis capability
        policy: Retry schedule for transient failures
        success_count: Verdicts applied from a valid response
        fallback_count: Degraded verdicts applied
        dropped_count: Results discarded because the frame was gone

    Example:
        orchestrator = AnalysisOrchestrator(store, MockAnalysisEngine())
        orchestrator.schedule(frame)
        await orchestrator.drain()
    """

    def __init__(
        self,
        store: FrameStore,
        engine: AnalysisEngine,
        policy: Optional[RetryPolicy] = None,
        instruction: str = ANALYSIS_INSTRUCTION,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.policy = policy or RetryPolicy()
        self.instruction = instruction
        self._sleep = sleep

        self._tasks: Set[asyncio.Task] = set()

        self.success_count: int = 0
        self.fallback_count: int = 0
        self.dropped_count: int = 0

    @property
    def in_flight(self) -> int:
        """Number of analysis tasks not yet finished."""
        return sum(1 for task in self._tasks if not task.done())

    def schedule(self, frame: Frame) -> asyncio.Task:
        """
        Start analyzing a frame without waiting for the result.

        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(
            self.analyze(frame),
            name=f"analyze_{frame.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until every scheduled analysis has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def analyze(self, frame: Frame) -> None:
        """
        Analyze one frame and write the verdict into the store.

        Args:
            frame: Frame to analyze (its id and image are used)
        """
        verdict, succeeded = await self._request_verdict(frame)

        def apply(current: Frame) -> dict:
            patch = {"analysis": verdict, "is_analyzing": False}
            if succeeded and verdict.quality == FrameQuality.EXCELLENT:
                patch["is_selected"] = True
            return patch

        updated = self.store.update_frame(frame.id, apply)
        if updated is None:
            self.dropped_count += 1
            logger.debug(f"Dropped analysis result for discarded frame {frame.id}")
            return

        if succeeded:
            self.success_count += 1
        else:
            self.fallback_count += 1

        logger.info(
            f"Analyzed frame {frame.id} at {frame.timestamp:.2f}s: "
            f"quality={verdict.quality.value}, score={verdict.composition_score}, "
            f"selected={updated.is_selected}"
        )

    async def _request_verdict(self, frame: Frame) -> Tuple[Analysis, bool]:
        task = RetryableTask(self.policy, name=f"analysis[{frame.id}]", sleep=self._sleep)
        try:
            raw = await task.run(
                lambda: self.engine.analyze(frame.image_b64, self.instruction)
            )
            return parse_verdict(raw), True
        except CapabilityError as e:
            logger.warning(
                f"Analysis failed for frame {frame.id} after {task.attempts} "
                f"attempt(s): {e}. Using degraded verdict"
            )
        except Exception as e:
            logger.error(f"Unexpected analysis error for frame {frame.id}: {e}")
        return Analysis.degraded(), False
