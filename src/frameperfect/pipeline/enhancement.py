"""
Enhancement Orchestrator
========================

Applies enhancement styles to single frames or to a batch of keepers.

This orchestrator:
    - Builds the prompt deterministically from advice + styles
    - Retries rate-limit/overload failures with exponential backoff
    - Processes batches strictly sequentially (one call in flight)
    - Promotes enhanced frames (selected, analysis forced to EXCELLENT)
    - Saves an enhanced result as a brand-new frame on request

Design Rules:
    - A failed call only clears is_enhancing; nothing else changes
    - Batch frames without a verdict are skipped, not failed
    - Never raise capability errors to the caller
"""

import logging
from typing import Iterable, List, Optional, Sequence

from frameperfect.capabilities.engine import EnhancementEngine
from frameperfect.capabilities.prompts import build_enhancement_prompt, normalize_styles
from frameperfect.errors import CapabilityError
from frameperfect.models.frame import EnhancementStyle, Frame, FrameQuality, new_frame_id
from frameperfect.pipeline.retry import RetryableTask, RetryPolicy, SleepFn
from frameperfect.store.frame_store import FrameStore


logger = logging.getLogger(__name__)


class EnhancementOrchestrator:
    """
    Single and batch enhancement over the FrameStore.

    Attributes:
        store: Frame collection to update
        engine: Enhancement capability
        policy: Retry schedule for transient failures
        success_count: Enhancements applied
        failure_count: Enhancement calls that produced nothing

    Example:
        orchestrator = EnhancementOrchestrator(store, MockEnhancementEngine())
        await orchestrator.enhance_one(frame.id, "Raise exposure", [EnhancementStyle.BOKEH])
        enhanced = await orchestrator.enhance_many(keeper_ids, EnhancementStyle.CINEMATIC)
    """

    def __init__(
        self,
        store: FrameStore,
        engine: EnhancementEngine,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

        self.success_count: int = 0
        self.failure_count: int = 0

    async def enhance_one(
        self,
        frame_id: str,
        advice: str,
        styles: Iterable[EnhancementStyle],
    ) -> bool:
        """
        Enhance one frame with one or more combined styles.

        Args:
            frame_id: Frame to enhance
            advice: Fix suggestions to embed in the prompt
            styles: Styles to combine in a single request

        Returns:
            True if an enhanced image was stored
        """
        frame = self.store.update_frame(frame_id, {"is_enhancing": True})
        if frame is None:
            logger.warning(f"Cannot enhance unknown frame {frame_id}")
            return False
        return await self._enhance(frame, advice, normalize_styles(styles))

    async def enhance_many(
        self,
        frame_ids: Sequence[str],
        style: EnhancementStyle,
    ) -> int:
        """
        Enhance frames one after another with a single style.

        Every target is flagged is_enhancing up front; each flag clears as
        that frame's own call resolves. Call K+1 is not issued until call K
        has completed.

        Args:
            frame_ids: Targets, in processing order
            style: Style applied to every target

        Returns:
            Number of frames enhanced
        """
        targets: List[str] = list(dict.fromkeys(frame_ids))
        self.store.update_many(targets, {"is_enhancing": True})
        styles = normalize_styles([style])

        logger.info(f"Batch enhancement started: {len(targets)} frames, style={style.value}")

        enhanced = 0
        for frame_id in targets:
            frame = self.store.get(frame_id)
            if frame is None:
                logger.debug(f"Batch target {frame_id} no longer exists, skipping")
                continue
            if frame.analysis is None:
                logger.info(f"Skipping unanalyzed frame {frame_id} in batch")
                self.store.update_frame(frame_id, {"is_enhancing": False})
                continue
            if await self._enhance(frame, frame.analysis.technical_advice, styles):
                enhanced += 1

        logger.info(f"Batch enhancement finished: {enhanced}/{len(targets)} frames enhanced")
        return enhanced

    def save_version(self, frame_id: str) -> Optional[Frame]:
        """
        Store a frame's enhanced image as a new, independent frame.

        The clone goes to the head of the collection, selected, with its
        verdict forced to EXCELLENT and no enhanced image of its own so it
        can be enhanced again. The source frame is kept.

        Returns:
            The new frame, or None if the source has no enhanced image
        """
        source = self.store.get(frame_id)
        if source is None or source.enhanced_image_b64 is None:
            return None

        analysis = source.analysis
        if analysis is not None:
            analysis = analysis.model_copy(update={"quality": FrameQuality.EXCELLENT})

        version = source.model_copy(update={
            "id": new_frame_id(),
            "image_b64": source.enhanced_image_b64,
            "enhanced_image_b64": None,
            "analysis": analysis,
            "is_selected": True,
            "is_analyzing": False,
            "is_enhancing": False,
            "applied_enhancements": list(source.applied_enhancements),
        })
        self.store.insert_first(version)

        logger.info(f"Saved enhanced version of {frame_id} as {version.id}")
        return version

    async def _enhance(
        self,
        frame: Frame,
        advice: str,
        styles: List[EnhancementStyle],
    ) -> bool:
        prompt = build_enhancement_prompt(advice, styles)
        task = RetryableTask(self.policy, name=f"enhance[{frame.id}]", sleep=self._sleep)

        try:
            enhanced_b64 = await task.run(
                lambda: self.engine.enhance(frame.image_b64, prompt, styles)
            )
        except CapabilityError as e:
            self.failure_count += 1
            logger.warning(f"Enhancement failed for frame {frame.id}: {e}")
            self.store.update_frame(frame.id, {"is_enhancing": False})
            return False
        except Exception as e:
            self.failure_count += 1
            logger.error(f"Unexpected enhancement error for frame {frame.id}: {e}")
            self.store.update_frame(frame.id, {"is_enhancing": False})
            return False

        def apply(current: Frame) -> dict:
            analysis = current.analysis
            if analysis is not None:
                analysis = analysis.model_copy(update={"quality": FrameQuality.EXCELLENT})
            return {
                "enhanced_image_b64": enhanced_b64,
                "applied_enhancements": [*current.applied_enhancements, *styles],
                "is_selected": True,
                "is_enhancing": False,
                "analysis": analysis,
            }

        if self.store.update_frame(frame.id, apply) is None:
            logger.debug(f"Dropped enhancement result for discarded frame {frame.id}")
            return False

        self.success_count += 1
        logger.info(
            f"Enhanced frame {frame.id} with {[s.value for s in styles]}"
        )
        return True
