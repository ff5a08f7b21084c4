"""
Filter Engine
=============

Pure predicates deciding which frames are visible.

Evaluation order (first failing rule excludes the frame):
    1. Library view shows keepers only
    2. Sub-view: enhanced needs applied enhancements, original needs none
    3. Frames without a verdict are shown only while a scan is running
    4. Quality floor by ordinal rank
    5. Shot type must match
    6. At least one active tag is a case-insensitive substring of at least
       one searchable tag (tags plus the humanized subject id)

Design Rules:
    - No side effects and no hidden state; safe to call on every query
"""

from typing import Iterable, List

from frameperfect.models.filters import (
    FilterSpec,
    LibrarySubView,
    ProcessingStats,
    ViewMode,
)
from frameperfect.models.frame import Frame


DEFAULT_CHIP_LIMIT = 8


def searchable_tags(frame: Frame) -> List[str]:
    """Tags used for tag filtering: scene tags plus the humanized subject."""
    if frame.analysis is None:
        return []
    tags = list(frame.analysis.tags)
    subject = frame.analysis.humanized_subject
    if subject:
        tags.append(subject)
    return tags


def matches_tags(frame: Frame, active_tags: Iterable[str]) -> bool:
    """OR-match of active tags against the frame's searchable tags."""
    active = [tag.lower() for tag in active_tags]
    if not active:
        return True
    candidates = [tag.lower() for tag in searchable_tags(frame)]
    return any(
        wanted in candidate
        for wanted in active
        for candidate in candidates
    )


def matches(
    frame: Frame,
    spec: FilterSpec,
    view_mode: ViewMode = ViewMode.ALL,
    sub_view: LibrarySubView = LibrarySubView.ALL,
    scan_in_progress: bool = False,
) -> bool:
    """
    Decide whether a frame is visible.

    Args:
        frame: Frame to evaluate
        spec: Quality, shot type and tag filters
        view_mode: ALL or LIBRARY (keepers only)
        sub_view: ALL, ENHANCED or ORIGINAL
        scan_in_progress: Whether a scan is currently running

    Returns:
        True if the frame passes every rule
    """
    if view_mode == ViewMode.LIBRARY and not frame.is_selected:
        return False

    if sub_view == LibrarySubView.ENHANCED and not frame.applied_enhancements:
        return False
    if sub_view == LibrarySubView.ORIGINAL and frame.applied_enhancements:
        return False

    analysis = frame.analysis
    if analysis is None:
        return scan_in_progress

    if spec.min_quality is not None and analysis.quality.rank < spec.min_quality.rank:
        return False

    if spec.shot_type is not None and analysis.shot_type != spec.shot_type:
        return False

    return matches_tags(frame, spec.active_tags)


def apply_filters(
    frames: Iterable[Frame],
    spec: FilterSpec,
    view_mode: ViewMode = ViewMode.ALL,
    sub_view: LibrarySubView = LibrarySubView.ALL,
    scan_in_progress: bool = False,
) -> List[Frame]:
    """Visible frames, in their original order."""
    return [
        frame for frame in frames
        if matches(frame, spec, view_mode, sub_view, scan_in_progress)
    ]


def smart_chips(frames: Iterable[Frame], limit: int = DEFAULT_CHIP_LIMIT) -> List[str]:
    """
    Suggested tag filters.

    Distinct scene tags and humanized subject ids, in frame order,
    truncated to `limit`.
    """
    chips: List[str] = []
    for frame in frames:
        for tag in searchable_tags(frame):
            if tag not in chips:
                chips.append(tag)
    return chips[:limit]


def compute_stats(frames: Iterable[Frame]) -> ProcessingStats:
    """Total, analyzed and keeper counts."""
    total = analyzed = keepers = 0
    for frame in frames:
        total += 1
        if frame.analysis is not None:
            analyzed += 1
        if frame.is_selected:
            keepers += 1
    return ProcessingStats(total_frames=total, analyzed_frames=analyzed, keepers=keepers)
