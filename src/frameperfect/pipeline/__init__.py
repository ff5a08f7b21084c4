"""
Pipeline Module
===============

Orchestration over the frame collection.

    - RetryPolicy / RetryableTask: Exponential backoff for transient failures
    - AnalysisOrchestrator: Per-frame analysis with degraded fallback
    - EnhancementOrchestrator: Single and sequential batch enhancement
    - filtering: Pure visibility predicates, smart chips and stats
    - CurationSession: Facade tying sampling, analysis, enhancement,
      persistence and export together
"""

from frameperfect.pipeline.retry import RetryableTask, RetryPolicy
from frameperfect.pipeline.analysis import AnalysisOrchestrator
from frameperfect.pipeline.enhancement import EnhancementOrchestrator
from frameperfect.pipeline.filtering import apply_filters, compute_stats, smart_chips
from frameperfect.pipeline.session import CurationSession


__all__ = [
    "RetryPolicy",
    "RetryableTask",
    "AnalysisOrchestrator",
    "EnhancementOrchestrator",
    "apply_filters",
    "compute_stats",
    "smart_chips",
    "CurationSession",
]
