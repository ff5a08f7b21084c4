"""
Frame Sampler
=============

Walks a video time range at a fixed interval and produces pending frames.

Algorithm:
    1. Await video metadata (duration may resolve late)
    2. Resolve [start, end) from the scan range
    3. Scale capture size so width <= max_capture_width
    4. For t = start + i * step while t < end and i < max_frames:
       seek, rasterize, encode JPEG, yield Frame.pending(t, ...)
    5. After each capture, progress = (t + step - start) / (end - start),
       clamped to [0, 1]

Design Rules:
    - Each sample() call is a fresh, finite, non-restartable scan
    - The hard frame cap bounds memory and downstream API volume
    - The sampler does not touch the store or the analysis capability;
      the caller registers and dispatches each yielded frame
"""

import logging
from typing import AsyncIterator, Callable, List, Optional, Tuple

from frameperfect.models.filters import SCAN_RANGE_BOUNDS, ScanRange, ScanSettings
from frameperfect.models.frame import Frame
from frameperfect.sampling.image_codec import ImageEncodeError, encode_jpeg_b64
from frameperfect.sampling.video import VideoSeekError, VideoSource


logger = logging.getLogger(__name__)


DEFAULT_MAX_CAPTURE_WIDTH = 1280
DEFAULT_MAX_FRAMES = 50
DEFAULT_JPEG_QUALITY = 85


ProgressCallback = Callable[[float], None]


def resolve_scan_window(duration: float, scan_range: ScanRange) -> Tuple[float, float]:
    """
    Resolve a scan range against the video duration.

    Args:
        duration: Total video length in seconds
        scan_range: Requested portion

    Returns:
        (start_time, end_time) in seconds, end exclusive
    """
    start_frac, end_frac = SCAN_RANGE_BOUNDS[scan_range]
    return duration * start_frac, duration * end_frac


def capture_size(
    width: int,
    height: int,
    max_width: int = DEFAULT_MAX_CAPTURE_WIDTH,
) -> Tuple[int, int]:
    """
    Capture resolution preserving aspect ratio with width <= max_width.

    Frames narrower than max_width are never upscaled.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid frame size: {width}x{height}")
    scale = min(1.0, max_width / width)
    return max(1, int(width * scale)), max(1, int(height * scale))


def scan_timestamps(
    start: float,
    end: float,
    step: float,
    max_frames: int = DEFAULT_MAX_FRAMES,
) -> List[float]:
    """Timestamps a scan would visit, in order."""
    step = max(1.0, step)
    timestamps: List[float] = []
    index = 0
    while index < max_frames:
        t = start + index * step
        if t >= end:
            break
        timestamps.append(t)
        index += 1
    return timestamps


class FrameSampler:
    """
    Bounded, fixed-interval frame sampler.

    Attributes:
        max_capture_width: Maximum width of captured frames
        max_frames: Hard cap on captures per scan
        jpeg_quality: JPEG quality of captured payloads
        progress: Fraction of the current scan window covered, [0, 1]
        frames_captured: Frames produced by the current scan

    Example:
        sampler = FrameSampler()
        async for frame in sampler.sample(source, ScanSettings(interval=5)):
            store.add_frame(frame)
            analysis.schedule(frame)
    """

    def __init__(
        self,
        max_capture_width: int = DEFAULT_MAX_CAPTURE_WIDTH,
        max_frames: int = DEFAULT_MAX_FRAMES,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        if max_capture_width < 1:
            raise ValueError("max_capture_width must be >= 1")
        if max_frames < 1:
            raise ValueError("max_frames must be >= 1")

        self.max_capture_width = max_capture_width
        self.max_frames = max_frames
        self.jpeg_quality = jpeg_quality

        self.progress: float = 0.0
        self.frames_captured: int = 0
        self.skipped_count: int = 0

    async def sample(
        self,
        video: VideoSource,
        settings: ScanSettings,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AsyncIterator[Frame]:
        """
        Scan the video and yield pending frames.

        Args:
            video: Seekable video capability
            settings: Range and interval of the scan
            on_progress: Called with the new progress after each capture

        Yields:
            Frames with analysis=None and is_analyzing=True
        """
        self.progress = 0.0
        self.frames_captured = 0
        self.skipped_count = 0

        metadata = await video.wait_for_metadata()
        start, end = resolve_scan_window(metadata.duration, settings.range)

        if end <= start:
            logger.info(
                f"Empty scan window [{start:.2f}, {end:.2f}) for range "
                f"{settings.range.value}, nothing to sample"
            )
            self._set_progress(1.0, on_progress)
            return

        width, height = capture_size(metadata.width, metadata.height, self.max_capture_width)
        step = settings.step
        span = end - start

        logger.info(
            f"Scanning [{start:.2f}s, {end:.2f}s) every {step:.2f}s at "
            f"{width}x{height} (cap {self.max_frames} frames)"
        )

        for t in scan_timestamps(start, end, step, self.max_frames):
            try:
                await video.seek(t)
                bgr = video.rasterize(width, height)
                image_b64 = encode_jpeg_b64(bgr, self.jpeg_quality)
            except (VideoSeekError, ImageEncodeError) as e:
                self.skipped_count += 1
                logger.warning(f"Skipping capture at {t:.2f}s: {e}")
            else:
                self.frames_captured += 1
                yield Frame.pending(timestamp=t, image_b64=image_b64)

            self._set_progress((t + step - start) / span, on_progress)

        logger.info(
            f"Scan finished: {self.frames_captured} frames captured, "
            f"{self.skipped_count} skipped"
        )

    def _set_progress(self, value: float, on_progress: Optional[ProgressCallback]) -> None:
        self.progress = min(1.0, max(0.0, value))
        if on_progress is not None:
            on_progress(self.progress)
