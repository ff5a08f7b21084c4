"""
Frame Data Model
================

Core records of the curation pipeline.

Concepts:
    - FrameQuality: ordinal grade (PENDING < FAIR < GOOD < EXCELLENT)
    - ShotType: pose classification returned by analysis
    - EnhancementStyle: closed set of enhancement transformations
    - Analysis: one verdict from the vision-analysis capability
    - Frame: one sampled still plus its verdict and curation state

Design Rules:
    - Frame is frozen; every change produces a new record (copy-on-write)
    - Only FrameStore replaces the authoritative copy of a Frame
    - The same enums are used to build requests and to parse responses

Example:
    from frameperfect.models.frame import Frame, FrameQuality

    frame = Frame.pending(timestamp=3.0, image_b64=jpeg_b64)
    assert frame.is_analyzing
    assert FrameQuality.GOOD.rank > FrameQuality.FAIR.rank
"""

import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Enumerations
# =============================================================================

class FrameQuality(str, Enum):
    """
    Quality tier of a frame.

    PENDING is a sentinel for "no verdict yet" and is never returned by
    the analysis capability.
    """

    PENDING = "Pending"
    FAIR = "Fair"
    GOOD = "Good"
    EXCELLENT = "Excellent"

    @property
    def rank(self) -> int:
        """Ordinal used for quality floors."""
        return _QUALITY_RANK[self]

    @classmethod
    def graded(cls) -> List["FrameQuality"]:
        """Tiers the analysis capability may return."""
        return [cls.FAIR, cls.GOOD, cls.EXCELLENT]


_QUALITY_RANK = {
    FrameQuality.PENDING: 0,
    FrameQuality.FAIR: 1,
    FrameQuality.GOOD: 2,
    FrameQuality.EXCELLENT: 3,
}


class ShotType(str, Enum):
    """Subject pose type."""

    POSE = "Pose"
    CANDID = "Candid"
    UNKNOWN = "Unknown"


class EnhancementStyle(str, Enum):
    """
    Enhancement transformations understood by the enhancement capability.

    RESTORE is the base sharpen/light/color pass; every other style adds
    one clause to the prompt.
    """

    RESTORE = "Restore"
    UNBLUR = "Unblur"
    REMOVE_BACKGROUND = "RemoveBackground"
    CINEMATIC = "Cinematic"
    BOKEH = "Bokeh"


# =============================================================================
# Analysis
# =============================================================================

DEFAULT_TECHNICAL_ADVICE = "No advice available"
DEFAULT_COMPOSITION_SCORE = 5.0


class Analysis(BaseModel):
    """
    Verdict of one analysis call.

    Defaults apply only to records restored from persistence; verdicts
    coming from the capability are validated by models.analysis first.

    Attributes:
        quality: Quality tier
        quality_reason: Short justification of the grade
        people: Descriptors of people in the frame
        shot_type: Posed, candid or unknown
        tags: Scene keywords
        composition_score: 1-10, 0 when analysis failed
        technical_advice: Period-delimited list of fix suggestions
        subject_id: Stable descriptor used to group frames of one subject
    """

    model_config = ConfigDict(frozen=True)

    quality: FrameQuality = Field(..., description="Quality tier")
    quality_reason: str = Field(default="", description="Grade justification")
    people: List[str] = Field(default_factory=list, description="People descriptors")
    shot_type: ShotType = Field(default=ShotType.UNKNOWN, description="Pose type")
    tags: List[str] = Field(default_factory=list, description="Scene keywords")
    composition_score: float = Field(
        default=DEFAULT_COMPOSITION_SCORE,
        ge=0,
        le=10,
        description="Composition score (0 = analysis failed)",
    )
    technical_advice: str = Field(
        default=DEFAULT_TECHNICAL_ADVICE,
        description="Sentence-delimited fix suggestions",
    )
    subject_id: Optional[str] = Field(
        default=None,
        description="Grouping identifier for the main subject",
    )

    @model_validator(mode="before")
    @classmethod
    def _default_missing_collections(cls, data):
        # Stored records may carry explicit nulls
        if isinstance(data, dict):
            for key in ("tags", "people"):
                if data.get(key) is None:
                    data = {**data, key: []}
            if not data.get("technical_advice"):
                data = {**data, "technical_advice": DEFAULT_TECHNICAL_ADVICE}
            if data.get("composition_score") is None:
                data = {**data, "composition_score": DEFAULT_COMPOSITION_SCORE}
        return data

    def advice_items(self) -> List[str]:
        """Split technical advice into discrete, trimmed suggestions."""
        return [
            item.strip()
            for item in self.technical_advice.split(".")
            if item.strip()
        ]

    @property
    def humanized_subject(self) -> Optional[str]:
        """Subject id with underscores turned into spaces."""
        if not self.subject_id:
            return None
        return self.subject_id.replace("_", " ")

    @classmethod
    def degraded(cls) -> "Analysis":
        """Placeholder verdict used when analysis fails terminally."""
        return cls(
            quality=FrameQuality.FAIR,
            quality_reason="AI Analysis Failed",
            people=[],
            shot_type=ShotType.UNKNOWN,
            tags=[],
            composition_score=0,
            technical_advice="Retry analysis",
        )


# =============================================================================
# Frame
# =============================================================================

def new_frame_id() -> str:
    """Generate an opaque unique frame id."""
    return uuid.uuid4().hex


class Frame(BaseModel):
    """
    One sampled still and its curation state.

    Attributes:
        id: Unique identifier assigned at sampling time
        timestamp: Offset into the source video in seconds
        image_b64: Base64-encoded JPEG of the sampled frame
        enhanced_image_b64: Base64-encoded enhanced image, if any
        analysis: Verdict, None while pending
        is_selected: Keeper flag
        is_analyzing: True while an analysis call is outstanding
        is_enhancing: True while an enhancement call is outstanding
        applied_enhancements: Styles successfully applied, in order
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_frame_id, description="Frame id")
    timestamp: float = Field(..., ge=0, description="Seconds into source video")
    image_b64: str = Field(..., description="Base64 JPEG payload")
    enhanced_image_b64: Optional[str] = Field(
        default=None,
        description="Base64 enhanced image payload",
    )
    analysis: Optional[Analysis] = Field(default=None, description="Verdict")
    is_selected: bool = Field(default=False, description="Keeper flag")
    is_analyzing: bool = Field(default=False, description="Analysis in flight")
    is_enhancing: bool = Field(default=False, description="Enhancement in flight")
    applied_enhancements: List[EnhancementStyle] = Field(
        default_factory=list,
        description="Applied enhancement styles, append-only",
    )

    @model_validator(mode="before")
    @classmethod
    def _default_enhancements(cls, data):
        if isinstance(data, dict) and not data.get("applied_enhancements"):
            # Records saved without styles still carry a usable enhanced image
            styles = [EnhancementStyle.RESTORE] if data.get("enhanced_image_b64") is not None else []
            data = {**data, "applied_enhancements": styles}
        return data

    @classmethod
    def pending(cls, timestamp: float, image_b64: str) -> "Frame":
        """Create a freshly sampled frame awaiting analysis."""
        return cls(
            timestamp=timestamp,
            image_b64=image_b64,
            analysis=None,
            is_selected=False,
            is_analyzing=True,
        )

    @property
    def quality(self) -> FrameQuality:
        """Quality tier, PENDING when there is no verdict."""
        if self.analysis is None:
            return FrameQuality.PENDING
        return self.analysis.quality

    @property
    def is_enhanced(self) -> bool:
        """Whether an enhanced image is attached."""
        return self.enhanced_image_b64 is not None

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the image payloads."""
        return (
            f"Frame(id={self.id}, timestamp={self.timestamp:.2f}, "
            f"quality={self.quality.value}, selected={self.is_selected})"
        )
