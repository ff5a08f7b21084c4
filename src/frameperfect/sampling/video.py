"""
Video Source
============

Seek-and-rasterize capability over a video file.

Components:
    - VideoMetadata: Duration and native frame size
    - VideoSource: Protocol used by the sampler
    - OpenCVVideoSource: cv2.VideoCapture-backed implementation

Design Rules:
    - The sampler never touches cv2.VideoCapture directly
    - Blocking decoder calls run in a worker thread via asyncio.to_thread
    - Metadata resolution may suspend; the sampler always awaits it first
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import cv2
import numpy as np


logger = logging.getLogger(__name__)


class VideoOpenError(Exception):
    """Raised when a video cannot be opened or has no usable metadata."""
    pass


class VideoSeekError(Exception):
    """Raised when the decoder cannot produce a frame at a timestamp."""
    pass


@dataclass(frozen=True)
class VideoMetadata:
    """
    Resolved video properties.

    Attributes:
        duration: Length in seconds
        width: Native frame width in pixels
        height: Native frame height in pixels
    """

    duration: float
    width: int
    height: int


class VideoSource(Protocol):
    """
    Capability: seek to a time and rasterize the visible frame.
    """

    async def wait_for_metadata(self) -> VideoMetadata:
        """Suspend until duration and frame size are known."""
        ...

    async def seek(self, timestamp: float) -> None:
        """Suspend until the visible frame is the one at `timestamp`."""
        ...

    def rasterize(self, width: int, height: int) -> np.ndarray:
        """Current visible frame as a BGR matrix of the given size."""
        ...


class OpenCVVideoSource:
    """
    Video source backed by OpenCV.

    Attributes:
        path: Path of the video file

    Example:
        source = OpenCVVideoSource("holiday.mp4")
        meta = await source.wait_for_metadata()
        await source.seek(3.0)
        bgr = source.rasterize(1280, 720)
        source.close()
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._capture: Optional[cv2.VideoCapture] = None
        self._metadata: Optional[VideoMetadata] = None
        self._current: Optional[np.ndarray] = None

    async def wait_for_metadata(self) -> VideoMetadata:
        if self._metadata is None:
            self._metadata = await asyncio.to_thread(self._open)
            logger.info(
                f"Opened video {self.path}: duration={self._metadata.duration:.2f}s, "
                f"size={self._metadata.width}x{self._metadata.height}"
            )
        return self._metadata

    async def seek(self, timestamp: float) -> None:
        if self._capture is None:
            await self.wait_for_metadata()
        self._current = await asyncio.to_thread(self._read_at, timestamp)

    def rasterize(self, width: int, height: int) -> np.ndarray:
        if self._current is None:
            raise VideoSeekError("No frame decoded yet; call seek() first")
        frame_h, frame_w = self._current.shape[:2]
        if (frame_w, frame_h) == (width, height):
            return self._current.copy()
        return cv2.resize(self._current, (width, height), interpolation=cv2.INTER_AREA)

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None

    def _open(self) -> VideoMetadata:
        capture = cv2.VideoCapture(self.path)
        if not capture.isOpened():
            raise VideoOpenError(f"Cannot open video: {self.path}")

        fps = capture.get(cv2.CAP_PROP_FPS)
        frame_count = capture.get(cv2.CAP_PROP_FRAME_COUNT)
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))

        if fps <= 0 or frame_count <= 0 or width <= 0 or height <= 0:
            capture.release()
            raise VideoOpenError(
                f"Video metadata unavailable for {self.path}: "
                f"fps={fps}, frames={frame_count}, size={width}x{height}"
            )

        self._capture = capture
        return VideoMetadata(
            duration=frame_count / fps,
            width=width,
            height=height,
        )

    def _read_at(self, timestamp: float) -> np.ndarray:
        assert self._capture is not None
        self._capture.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
        ok, bgr = self._capture.read()
        if not ok or bgr is None:
            raise VideoSeekError(f"Failed to read frame at {timestamp:.2f}s from {self.path}")
        return bgr
