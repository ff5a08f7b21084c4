"""
Test Configuration
==================

Pytest fixtures and test doubles for FramePerfect.

Async code is driven with asyncio.run; backoff waits are observed with
SleepRecorder instead of real sleeps.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

import cv2
import numpy as np
import pytest


# =============================================================================
# Test Doubles
# =============================================================================

class SleepRecorder:
    """Injected sleep that records requested delays without waiting."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


class FakeVideoSource:
    """
    In-memory video: every frame is a flat image whose brightness encodes
    the timestamp, so captures can be told apart.
    """

    def __init__(
        self,
        duration: float = 10.0,
        width: int = 1920,
        height: int = 1080,
        fail_at: Sequence[float] = (),
    ) -> None:
        from frameperfect.sampling.video import VideoMetadata

        self.metadata = VideoMetadata(duration=duration, width=width, height=height)
        self.fail_at = set(fail_at)
        self.seeks: List[float] = []
        self.raster_sizes: List[tuple] = []
        self._current: Optional[float] = None

    async def wait_for_metadata(self):
        await asyncio.sleep(0)
        return self.metadata

    async def seek(self, timestamp: float) -> None:
        from frameperfect.sampling.video import VideoSeekError

        self.seeks.append(timestamp)
        await asyncio.sleep(0)
        if timestamp in self.fail_at:
            raise VideoSeekError(f"cannot decode {timestamp}")
        self._current = timestamp

    def rasterize(self, width: int, height: int) -> np.ndarray:
        self.raster_sizes.append((width, height))
        value = int(self._current or 0) % 256
        return np.full((height, width, 3), value, dtype=np.uint8)


class ScriptedAnalysisEngine:
    """
    Analysis engine replaying a script of outcomes.

    Each entry is either a payload to return or an exception to raise;
    the last entry repeats once the script is exhausted.
    """

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes) or [valid_verdict()]
        self.calls: List[str] = []

    async def analyze(self, image_b64: str, instruction: str):
        self.calls.append(image_b64)
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        await asyncio.sleep(0)
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingEnhancementEngine:
    """Enhancement engine recording calls and the peak concurrency."""

    def __init__(self, fail_for: Sequence[str] = (), result: str = "ZW5oYW5jZWQ=") -> None:
        self.fail_for = set(fail_for)
        self.result = result
        self.calls: List[Dict[str, Any]] = []
        self.active: int = 0
        self.max_active: int = 0

    async def enhance(self, image_b64: str, prompt: str, styles) -> str:
        from frameperfect.errors import NoImageProducedError

        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.calls.append({"image": image_b64, "prompt": prompt, "styles": list(styles)})
        try:
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            if image_b64 in self.fail_for:
                raise NoImageProducedError("no image part")
            return self.result
        finally:
            self.active -= 1


def valid_verdict(**overrides: Any) -> Dict[str, Any]:
    """A well-formed analysis response (camelCase wire format)."""
    verdict = {
        "quality": "Good",
        "qualityReason": "Sharp subject",
        "people": ["Dad"],
        "shotType": "Candid",
        "tags": ["Beach", "Sunset"],
        "compositionScore": 7.5,
        "technicalAdvice": "Raise exposure. Straighten horizon.",
        "subjectId": "Man_In_Red_Hat",
    }
    verdict.update(overrides)
    return verdict


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def sleep_recorder():
    """Provide a recording sleep function."""
    return SleepRecorder()


@pytest.fixture
def fake_video():
    """Provide a 10 second 1920x1080 fake video."""
    return FakeVideoSource()


@pytest.fixture
def verdict():
    """Provide a factory for valid analysis payloads."""
    return valid_verdict


@pytest.fixture
def verdict_json():
    """Provide a valid analysis payload as JSON text."""
    return json.dumps(valid_verdict())


@pytest.fixture
def jpeg_b64():
    """Provide a small JPEG payload (base64)."""
    from frameperfect.sampling.image_codec import encode_jpeg_b64

    rng = np.random.default_rng(7)
    image = rng.integers(0, 255, size=(48, 64, 3), dtype=np.uint8)
    return encode_jpeg_b64(image)


@pytest.fixture
def sharp_b64():
    """Provide a high-contrast checkerboard PNG (high Laplacian variance)."""
    from frameperfect.sampling.image_codec import encode_png_b64

    tile = np.kron([[0, 255] * 8, [255, 0] * 8] * 6, np.ones((4, 4)))
    image = cv2.cvtColor(tile.astype(np.uint8), cv2.COLOR_GRAY2BGR)
    return encode_png_b64(image)


@pytest.fixture
def flat_b64():
    """Provide a uniform mid-gray PNG (zero Laplacian variance)."""
    from frameperfect.sampling.image_codec import encode_png_b64

    return encode_png_b64(np.full((48, 64, 3), 128, dtype=np.uint8))


@pytest.fixture
def make_frame(jpeg_b64):
    """Provide a factory for frames with an optional verdict."""
    from frameperfect.models.frame import Analysis, Frame, FrameQuality, ShotType

    def _make(
        timestamp: float = 0.0,
        quality: Optional[FrameQuality] = FrameQuality.GOOD,
        selected: bool = False,
        tags: Sequence[str] = ("Beach",),
        shot_type: ShotType = ShotType.CANDID,
        subject_id: Optional[str] = None,
        **fields: Any,
    ) -> Frame:
        analysis = None
        if quality is not None:
            analysis = Analysis(
                quality=quality,
                quality_reason="test",
                people=[],
                shot_type=shot_type,
                tags=list(tags),
                composition_score=7.0,
                technical_advice="Raise exposure. Straighten horizon.",
                subject_id=subject_id,
            )
        return Frame(
            timestamp=timestamp,
            image_b64=fields.pop("image_b64", jpeg_b64),
            analysis=analysis,
            is_selected=selected,
            **fields,
        )

    return _make


@pytest.fixture
def scripted_engine():
    """Provide the ScriptedAnalysisEngine class."""
    return ScriptedAnalysisEngine


@pytest.fixture
def recording_enhancer():
    """Provide a RecordingEnhancementEngine."""
    return RecordingEnhancementEngine()


@pytest.fixture
def video_factory():
    """Provide the FakeVideoSource class."""
    return FakeVideoSource


@pytest.fixture
def enhancer_factory():
    """Provide the RecordingEnhancementEngine class."""
    return RecordingEnhancementEngine
