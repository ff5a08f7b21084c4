"""
Capabilities Module
===================

Vision-analysis and image-enhancement backends.

Components:
    - AnalysisEngine / EnhancementEngine: Protocols used by the pipeline
    - MockAnalysisEngine / MockEnhancementEngine: Deterministic, offline
    - GeminiAnalysisEngine / GeminiEnhancementEngine: google-genai (production)

Design Philosophy:
    Backends are pluggable. The orchestrators only see raw responses and
    the capability error taxonomy, never SDK types.
"""

from frameperfect.capabilities.engine import (
    AnalysisEngine,
    EnhancementEngine,
    MockAnalysisEngine,
    MockEnhancementEngine,
)
from frameperfect.capabilities.gemini_engine import (
    GeminiAnalysisEngine,
    GeminiEnhancementEngine,
)
from frameperfect.capabilities.prompts import build_enhancement_prompt

__all__ = [
    "AnalysisEngine",
    "EnhancementEngine",
    "MockAnalysisEngine",
    "MockEnhancementEngine",
    "GeminiAnalysisEngine",
    "GeminiEnhancementEngine",
    "build_enhancement_prompt",
]
