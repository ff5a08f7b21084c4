"""
Filter and Scan Settings
========================

User-facing knobs for sampling and for the visible frame subset.

Example:
    from frameperfect.models.filters import FilterSpec, ScanSettings, ScanRange

    spec = FilterSpec(min_quality=FrameQuality.GOOD, active_tags=["beach"])
    scan = ScanSettings(range=ScanRange.Q2, interval=5)
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from frameperfect.models.frame import FrameQuality, ShotType


class ScanRange(str, Enum):
    """Portion of the video to sample."""

    FULL = "full"
    FIRST_HALF = "first_half"
    SECOND_HALF = "second_half"
    Q1 = "q1"
    Q2 = "q2"
    Q3 = "q3"
    Q4 = "q4"


# Fractions of the total duration as [start, end)
SCAN_RANGE_BOUNDS = {
    ScanRange.FULL: (0.0, 1.0),
    ScanRange.FIRST_HALF: (0.0, 0.5),
    ScanRange.SECOND_HALF: (0.5, 1.0),
    ScanRange.Q1: (0.0, 0.25),
    ScanRange.Q2: (0.25, 0.5),
    ScanRange.Q3: (0.5, 0.75),
    ScanRange.Q4: (0.75, 1.0),
}

SCAN_RANGE_LABELS = {
    ScanRange.FULL: "Full Video",
    ScanRange.FIRST_HALF: "First Half",
    ScanRange.SECOND_HALF: "Second Half",
    ScanRange.Q1: "Q1",
    ScanRange.Q2: "Q2",
    ScanRange.Q3: "Q3",
    ScanRange.Q4: "Q4",
}


class ScanSettings(BaseModel):
    """
    Sampling settings for one scan.

    Attributes:
        range: Portion of the video to walk
        interval: Seconds between samples (values below 1 act as 1)
    """

    range: ScanRange = Field(default=ScanRange.FULL, description="Scan range")
    interval: float = Field(default=3.0, gt=0, description="Seconds between samples")

    @property
    def step(self) -> float:
        """Effective sampling step in seconds."""
        return max(1.0, self.interval)


class ViewMode(str, Enum):
    """Top-level view: every frame, or keepers only."""

    ALL = "all"
    LIBRARY = "library"


class LibrarySubView(str, Enum):
    """Split of the visible frames by enhancement state."""

    ALL = "all"
    ENHANCED = "enhanced"
    ORIGINAL = "original"


class FilterSpec(BaseModel):
    """
    Filter over analyzed frames.

    Attributes:
        min_quality: Quality floor, None for any
        shot_type: Required shot type, None for any
        active_tags: Tags OR-matched by case-insensitive substring
    """

    min_quality: Optional[FrameQuality] = Field(default=None, description="Quality floor")
    shot_type: Optional[ShotType] = Field(default=None, description="Shot type")
    active_tags: List[str] = Field(default_factory=list, description="Active tag filters")

    def toggle_tag(self, tag: str) -> "FilterSpec":
        """Return a copy with the tag added, or removed if already active."""
        if tag in self.active_tags:
            tags = [t for t in self.active_tags if t != tag]
        else:
            tags = [*self.active_tags, tag]
        return self.model_copy(update={"active_tags": tags})


class ProcessingStats(BaseModel):
    """Counters shown next to the pipeline status."""

    total_frames: int = Field(default=0, ge=0)
    analyzed_frames: int = Field(default=0, ge=0)
    keepers: int = Field(default=0, ge=0)
