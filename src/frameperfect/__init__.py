"""
FramePerfect
============

Video frame curation: sample a video, grade every frame with a vision
model, keep the best shots, enhance them and export the keepers.

Components:
    - sampling: Fixed-interval frame capture from a video file
    - capabilities: Analysis and enhancement backends (mock, Gemini)
    - pipeline: Analysis/enhancement orchestration, filtering, session
    - store: Frame collection and project persistence
    - export: Manifest + image bundle packaging

Example:
    from frameperfect.config import settings
    from frameperfect.pipeline import CurationSession

    # The HTTP service is started via the FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"
__author__ = "FramePerfect Project"

__all__ = [
    "__version__",
]
