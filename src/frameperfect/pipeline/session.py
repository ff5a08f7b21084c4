"""
Curation Session
================

Single owner of the frame collection and the components acting on it.

The session wires:
    FrameSampler -> FrameStore -> AnalysisOrchestrator
    FrameStore   -> PersistenceScheduler (save after every change)
    FrameStore   -> EnhancementOrchestrator / ExportPackager

Design Rules:
    - Only one scan runs at a time; a new scan starts from an empty collection
    - User-input errors are raised before any side effect
    - Restored frames never carry in-flight flags
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from frameperfect.capabilities.engine import AnalysisEngine, EnhancementEngine
from frameperfect.errors import (
    FrameNotFoundError,
    NoKeepersError,
    PersistenceError,
    ScanInProgressError,
)
from frameperfect.export.packager import ExportPackager
from frameperfect.models.filters import (
    SCAN_RANGE_LABELS,
    FilterSpec,
    LibrarySubView,
    ProcessingStats,
    ScanRange,
    ScanSettings,
    ViewMode,
)
from frameperfect.models.frame import (
    DEFAULT_TECHNICAL_ADVICE,
    EnhancementStyle,
    Frame,
)
from frameperfect.pipeline.analysis import AnalysisOrchestrator
from frameperfect.pipeline.enhancement import EnhancementOrchestrator
from frameperfect.pipeline.filtering import apply_filters, compute_stats, smart_chips
from frameperfect.pipeline.retry import RetryPolicy, SleepFn
from frameperfect.sampling.sampler import FrameSampler, ProgressCallback, resolve_scan_window
from frameperfect.sampling.video import VideoSource
from frameperfect.store.frame_store import FrameStore
from frameperfect.store.persistence import PersistenceGateway, PersistenceScheduler


logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """mm:ss with both fields zero-padded."""
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


class CurationSession:
    """
    Facade over the curation pipeline.

    Attributes:
        store: The frame collection
        sampler: Frame sampler used for scans
        analysis: Analysis orchestrator
        enhancement: Enhancement orchestrator
        packager: Export packager
        persistence: Save scheduler, None when running without a gateway

    Example:
        session = CurationSession(MockAnalysisEngine(), MockEnhancementEngine())
        await session.start_scan(OpenCVVideoSource("clip.mp4"), ScanSettings(interval=5))
        await session.wait_for_analysis()
        path = await session.export("Summer Vacation", "./exports")
    """

    def __init__(
        self,
        analysis_engine: AnalysisEngine,
        enhancement_engine: EnhancementEngine,
        gateway: Optional[PersistenceGateway] = None,
        sampler: Optional[FrameSampler] = None,
        analysis_policy: Optional[RetryPolicy] = None,
        enhancement_policy: Optional[RetryPolicy] = None,
        packager: Optional[ExportPackager] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        self.store = FrameStore()
        self.sampler = sampler or FrameSampler()
        self.analysis = AnalysisOrchestrator(
            self.store, analysis_engine, policy=analysis_policy, sleep=sleep,
        )
        self.enhancement = EnhancementOrchestrator(
            self.store, enhancement_engine, policy=enhancement_policy, sleep=sleep,
        )
        self.packager = packager or ExportPackager()

        self.gateway = gateway
        self.persistence: Optional[PersistenceScheduler] = None
        self._unsubscribe = None
        if gateway is not None:
            self.persistence = PersistenceScheduler(gateway)
            self._unsubscribe = self.store.subscribe(self.persistence)

        self._scanning: bool = False
        self.last_scan: Optional[ScanSettings] = None
        self.video_duration: float = 0.0

    # =========================================================================
    # Scanning
    # =========================================================================

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    @property
    def scan_progress(self) -> float:
        """Progress of the current (or last) scan, [0, 1]."""
        return self.sampler.progress

    async def start_scan(
        self,
        video: VideoSource,
        settings: Optional[ScanSettings] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Scan a video and dispatch analysis for every captured frame.

        Returns once sampling is finished; analyses keep running in the
        background (see wait_for_analysis).

        Args:
            video: Seekable video capability
            settings: Range and interval, defaults to full video every 3s
            on_progress: Forwarded to the sampler

        Returns:
            Number of frames captured

        Raises:
            ScanInProgressError: If another scan is still running
        """
        if self._scanning:
            raise ScanInProgressError()

        settings = settings or ScanSettings()
        self._scanning = True
        self.last_scan = settings
        captured = 0

        try:
            await self._reset_collection()
            metadata = await video.wait_for_metadata()
            self.video_duration = metadata.duration
            logger.info(
                f"Scan started: {self.scan_range_label(metadata.duration, settings.range)} "
                f"every {settings.step:.0f}s"
            )

            async for frame in self.sampler.sample(video, settings, on_progress):
                self.store.add_frame(frame)
                self.analysis.schedule(frame)
                captured += 1
        finally:
            self._scanning = False

        logger.info(f"Scan complete: {captured} frames dispatched for analysis")
        return captured

    async def wait_for_analysis(self) -> None:
        """Wait for every dispatched analysis and the resulting saves."""
        await self.analysis.drain()
        if self.persistence is not None:
            await self.persistence.flush()

    @staticmethod
    def scan_range_label(duration: float, scan_range: ScanRange) -> str:
        """
        Human label of a scan window, e.g. "(Q1: 00:00 - 00:15)".

        Returns an empty string while the duration is unknown.
        """
        if duration <= 0:
            return ""
        start, end = resolve_scan_window(duration, scan_range)
        label = SCAN_RANGE_LABELS[scan_range]
        return f"({label}: {format_duration(start)} - {format_duration(end)})"

    # =========================================================================
    # Project Lifecycle
    # =========================================================================

    async def restore(self) -> int:
        """
        Load the persisted project into the store.

        In-flight flags are cleared since no call survives a restart.

        Returns:
            Number of frames restored
        """
        if self.gateway is None:
            return 0

        try:
            frames = await self.gateway.load()
        except PersistenceError as e:
            logger.error(f"Failed to restore project: {e}")
            return 0

        if not frames:
            logger.info("No saved project to restore")
            return 0

        restored = [
            frame.model_copy(update={"is_analyzing": False, "is_enhancing": False})
            for frame in frames
        ]
        self._pause_saves()
        try:
            self.store.set_all(restored)
        finally:
            self._resume_saves()

        logger.info(f"Restored project with {len(restored)} frames")
        return len(restored)

    async def reset_project(self) -> None:
        """
        Discard every frame and the saved project.

        Raises:
            ScanInProgressError: If a scan is running
        """
        if self._scanning:
            raise ScanInProgressError()
        await self._reset_collection()
        logger.info("Project reset")

    async def close(self) -> None:
        """Wait for outstanding work and detach the save listener."""
        await self.wait_for_analysis()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _reset_collection(self) -> None:
        # A save still in flight would resurrect the old project after clear()
        if self.persistence is not None:
            await self.persistence.flush()
        self._pause_saves()
        try:
            self.store.clear()
            if self.gateway is not None:
                await self.gateway.clear()
        finally:
            self._resume_saves()

    def _pause_saves(self) -> None:
        if self.persistence is not None:
            self.persistence.pause()

    def _resume_saves(self) -> None:
        if self.persistence is not None:
            self.persistence.resume()

    # =========================================================================
    # Selection and Views
    # =========================================================================

    def get_frame(self, frame_id: str) -> Frame:
        frame = self.store.get(frame_id)
        if frame is None:
            raise FrameNotFoundError(frame_id)
        return frame

    def toggle_selection(self, frame_id: str) -> Frame:
        """Flip a frame's keeper flag."""
        updated = self.store.update_frame(
            frame_id, lambda frame: {"is_selected": not frame.is_selected}
        )
        if updated is None:
            raise FrameNotFoundError(frame_id)
        return updated

    def clear_selection(self) -> int:
        """Deselect every keeper. Returns how many were deselected."""
        ids = [frame.id for frame in self.store.selected()]
        return self.store.update_many(ids, {"is_selected": False})

    def visible_frames(
        self,
        spec: Optional[FilterSpec] = None,
        view_mode: ViewMode = ViewMode.ALL,
        sub_view: LibrarySubView = LibrarySubView.ALL,
    ) -> List[Frame]:
        return apply_filters(
            self.store.get_all(),
            spec or FilterSpec(),
            view_mode=view_mode,
            sub_view=sub_view,
            scan_in_progress=self._scanning,
        )

    def smart_chips(self) -> List[str]:
        return smart_chips(self.store.get_all())

    def stats(self) -> ProcessingStats:
        return compute_stats(self.store.get_all())

    # =========================================================================
    # Enhancement
    # =========================================================================

    async def enhance_frame(
        self,
        frame_id: str,
        styles: Iterable[EnhancementStyle],
        advice: Optional[str] = None,
    ) -> bool:
        """
        Enhance one frame.

        Advice defaults to the frame's own technical advice.

        Raises:
            FrameNotFoundError: If the frame does not exist
        """
        frame = self.get_frame(frame_id)
        if advice is None:
            advice = (
                frame.analysis.technical_advice
                if frame.analysis is not None
                else DEFAULT_TECHNICAL_ADVICE
            )
        return await self.enhancement.enhance_one(frame_id, advice, styles)

    async def enhance_keepers(self, style: EnhancementStyle) -> int:
        """
        Enhance every keeper with one style, sequentially.

        Raises:
            NoKeepersError: If nothing is selected
        """
        ids = [frame.id for frame in self.store.selected()]
        if not ids:
            raise NoKeepersError("batch enhancement")
        return await self.enhancement.enhance_many(ids, style)

    def save_version(self, frame_id: str) -> Optional[Frame]:
        """
        Save a frame's enhanced image as a new keeper.

        Raises:
            FrameNotFoundError: If the frame does not exist
        """
        self.get_frame(frame_id)
        return self.enhancement.save_version(frame_id)

    # =========================================================================
    # Export
    # =========================================================================

    async def export(self, project_name: str, output_dir: str) -> Path:
        """
        Export keepers to `<output_dir>/<project>.zip`.

        Raises:
            ProjectNameRequiredError: If the project name is blank
            NoKeepersError: If nothing is selected
            ExportError: If the archive cannot be built or written
        """
        bundle = self.packager.build_bundle(self.store.get_all(), project_name)
        return await asyncio.to_thread(self.packager.write_archive, bundle, output_dir)
