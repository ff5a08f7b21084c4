"""
Data Models
===========

Pydantic models for FramePerfect.

This module re-exports all data models for convenient access.

Models:
    Frame:
        - FrameQuality: Ordinal grade (Pending < Fair < Good < Excellent)
        - ShotType: Pose, Candid or Unknown
        - EnhancementStyle: Restore, Unblur, RemoveBackground, Cinematic, Bokeh
        - Analysis: Structured verdict for one frame
        - Frame: One sampled still with its verdict and flags

    Analysis contract:
        - AnalysisResponse: Strict schema of the vision model's JSON reply

    Filters:
        - ScanRange, ScanSettings: What part of the video to sample
        - FilterSpec, ViewMode, LibrarySubView: Which frames are visible
        - ProcessingStats: Total / analyzed / keeper counters
"""

from frameperfect.models.frame import (
    Analysis,
    EnhancementStyle,
    Frame,
    FrameQuality,
    ShotType,
)
from frameperfect.models.analysis import AnalysisResponse, parse_verdict
from frameperfect.models.filters import (
    FilterSpec,
    LibrarySubView,
    ProcessingStats,
    ScanRange,
    ScanSettings,
    ViewMode,
)

__all__ = [
    # Frame
    "FrameQuality",
    "ShotType",
    "EnhancementStyle",
    "Analysis",
    "Frame",
    # Analysis contract
    "AnalysisResponse",
    "parse_verdict",
    # Filters
    "ScanRange",
    "ScanSettings",
    "FilterSpec",
    "ViewMode",
    "LibrarySubView",
    "ProcessingStats",
]
