"""
Sampling Module
===============

Frame capture from video files.

Example:
    from frameperfect.sampling import FrameSampler, OpenCVVideoSource

    sampler = FrameSampler(max_frames=50)
    async for frame in sampler.sample(OpenCVVideoSource("clip.mp4"), settings):
        ...
"""

from frameperfect.sampling.sampler import FrameSampler
from frameperfect.sampling.video import (
    OpenCVVideoSource,
    VideoMetadata,
    VideoOpenError,
    VideoSeekError,
    VideoSource,
)


__all__ = [
    "FrameSampler",
    "VideoSource",
    "VideoMetadata",
    "OpenCVVideoSource",
    "VideoOpenError",
    "VideoSeekError",
]
