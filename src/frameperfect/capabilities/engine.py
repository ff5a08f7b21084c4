"""
Capability Engines
==================

Analysis and enhancement backend abstraction.

This module provides the engine protocols plus deterministic mock
implementations that work offline, without API keys.

Design Rules:
    - Engines take base64 payloads and return raw results
    - Analysis engines return the raw JSON response; validation happens
      in models.analysis so every backend is held to the same contract
    - Enhancement engines return a base64 image or raise NoImageProducedError
    - Mocks are deterministic: the same image always gives the same result
    - OpenCV work in the mocks runs in a worker thread via asyncio.to_thread
"""

import asyncio
import logging
from typing import Any, Dict, Protocol, Sequence, Union

import cv2
import numpy as np

from frameperfect.errors import NoImageProducedError
from frameperfect.models.frame import EnhancementStyle, FrameQuality, ShotType
from frameperfect.sampling.image_codec import (
    ImageDecodeError,
    decode_bgr,
    encode_png_b64,
)


logger = logging.getLogger(__name__)


RawVerdict = Union[str, bytes, Dict[str, Any]]


class AnalysisEngine(Protocol):
    """
    Protocol for vision-analysis backends.

    Implemented by:
        - MockAnalysisEngine (offline, deterministic)
        - GeminiAnalysisEngine (production)
    """

    async def analyze(self, image_b64: str, instruction: str) -> RawVerdict:
        """
        Request a structured verdict for one image.

        Raises:
            CapabilityError: On any backend failure
        """
        ...


class EnhancementEngine(Protocol):
    """Protocol for image-enhancement backends."""

    async def enhance(
        self,
        image_b64: str,
        prompt: str,
        styles: Sequence[EnhancementStyle],
    ) -> str:
        """
        Produce an enhanced image.

        Returns:
            Base64-encoded image

        Raises:
            NoImageProducedError: If the backend returned no image
            CapabilityError: On any other backend failure
        """
        ...


class MockAnalysisEngine:
    """
    Deterministic analysis engine based on simple image statistics.

    Sharpness (Laplacian variance) drives the grade and the composition
    score; brightness drives the tags and the advice.

    Attributes:
        excellent_threshold: Laplacian variance for EXCELLENT
        good_threshold: Laplacian variance for GOOD
        call_count: Number of analyze() calls
    """

    def __init__(
        self,
        excellent_threshold: float = 400.0,
        good_threshold: float = 100.0,
    ) -> None:
        self.excellent_threshold = excellent_threshold
        self.good_threshold = good_threshold
        self.call_count: int = 0

        logger.info(
            f"MockAnalysisEngine initialized: excellent>={excellent_threshold}, "
            f"good>={good_threshold}"
        )

    async def analyze(self, image_b64: str, instruction: str) -> RawVerdict:
        self.call_count += 1
        return await asyncio.to_thread(self._grade, image_b64)

    def _grade(self, image_b64: str) -> RawVerdict:
        try:
            bgr = decode_bgr(image_b64)
        except ImageDecodeError as e:
            # Mirrors a backend that cannot read the image: garbage out
            logger.warning(f"Mock analysis could not decode image: {e}")
            return "{}"

        gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
        sharpness = float(cv2.Laplacian(gray, cv2.CV_64F).var())
        brightness = float(gray.mean()) / 255.0

        if sharpness >= self.excellent_threshold:
            quality = FrameQuality.EXCELLENT
            reason = "Crisp detail throughout"
        elif sharpness >= self.good_threshold:
            quality = FrameQuality.GOOD
            reason = "Usable with minor softness"
        else:
            quality = FrameQuality.FAIR
            reason = "Soft or blurry"

        tags = ["Low Light"] if brightness < 0.3 else ["Bright"] if brightness > 0.7 else ["Balanced"]
        advice = ["Hold the camera steady"] if quality != FrameQuality.EXCELLENT else []
        if brightness < 0.3:
            advice.append("Raise exposure")
        elif brightness > 0.7:
            advice.append("Recover highlights")
        advice.append("Check the horizon line")

        score = 1.0 + 9.0 * min(1.0, sharpness / (self.excellent_threshold * 1.25))

        return {
            "quality": quality.value,
            "qualityReason": reason,
            "people": [],
            "shotType": ShotType.CANDID.value,
            "tags": tags,
            "compositionScore": round(score, 1),
            "technicalAdvice": ". ".join(advice) + ".",
        }


class MockEnhancementEngine:
    """
    Enhancement engine applying real OpenCV operations per style.

    Attributes:
        call_count: Number of enhance() calls
    """

    def __init__(self) -> None:
        self.call_count: int = 0

    async def enhance(
        self,
        image_b64: str,
        prompt: str,
        styles: Sequence[EnhancementStyle],
    ) -> str:
        self.call_count += 1
        return await asyncio.to_thread(self._render, image_b64, list(styles))

    def _render(self, image_b64: str, styles: Sequence[EnhancementStyle]) -> str:
        try:
            bgr = decode_bgr(image_b64)
        except ImageDecodeError as e:
            raise NoImageProducedError(f"Mock enhancement could not decode image: {e}") from e

        for style in styles:
            bgr = _STYLE_OPERATIONS[EnhancementStyle(style)](bgr)
        return encode_png_b64(bgr)


# =============================================================================
# OpenCV style operations
# =============================================================================

def _unsharp(bgr: np.ndarray, amount: float) -> np.ndarray:
    blurred = cv2.GaussianBlur(bgr, (0, 0), sigmaX=3)
    return cv2.addWeighted(bgr, 1.0 + amount, blurred, -amount, 0)


def _restore(bgr: np.ndarray) -> np.ndarray:
    return _unsharp(bgr, 0.5)


def _unblur(bgr: np.ndarray) -> np.ndarray:
    denoised = cv2.bilateralFilter(bgr, 5, 50, 50)
    return _unsharp(denoised, 1.5)


def _subject_mask(bgr: np.ndarray) -> np.ndarray:
    # Centered ellipse stands in for a subject segmentation
    h, w = bgr.shape[:2]
    mask = np.zeros((h, w), dtype=np.float32)
    cv2.ellipse(mask, (w // 2, h // 2), (max(1, w // 3), max(1, h * 2 // 5)), 0, 0, 360, 1.0, -1)
    mask = cv2.GaussianBlur(mask, (0, 0), sigmaX=max(1.0, min(h, w) / 40))
    return mask[..., None]


def _remove_background(bgr: np.ndarray) -> np.ndarray:
    mask = _subject_mask(bgr)
    white = np.full_like(bgr, 255)
    return (bgr * mask + white * (1.0 - mask)).astype(np.uint8)


def _cinematic(bgr: np.ndarray) -> np.ndarray:
    contrasted = cv2.convertScaleAbs(bgr, alpha=1.2, beta=-15).astype(np.float32)
    luma = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY).astype(np.float32)[..., None] / 255.0
    # Teal shadows (B, G up), orange highlights (R, G up)
    teal = np.array([25.0, 10.0, -10.0], dtype=np.float32)
    orange = np.array([-15.0, 8.0, 25.0], dtype=np.float32)
    graded = contrasted + (1.0 - luma) * teal + luma * orange
    return np.clip(graded, 0, 255).astype(np.uint8)


def _bokeh(bgr: np.ndarray) -> np.ndarray:
    mask = _subject_mask(bgr)
    blurred = cv2.GaussianBlur(bgr, (0, 0), sigmaX=8)
    return (bgr * mask + blurred * (1.0 - mask)).astype(np.uint8)


_STYLE_OPERATIONS = {
    EnhancementStyle.RESTORE: _restore,
    EnhancementStyle.UNBLUR: _unblur,
    EnhancementStyle.REMOVE_BACKGROUND: _remove_background,
    EnhancementStyle.CINEMATIC: _cinematic,
    EnhancementStyle.BOKEH: _bokeh,
}
