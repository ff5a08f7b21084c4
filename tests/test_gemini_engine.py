"""
Gemini Engine Tests
===================

Error classification and response handling with a stubbed client.
No network access.
"""

import asyncio
import base64
from types import SimpleNamespace

import pytest


class FakeApiError(Exception):
    """Stands in for an SDK error carrying code/status."""

    def __init__(self, message, code=None, status=None):
        super().__init__(message)
        self.code = code
        self.status = status


class FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    async def generate_content(self, model, contents, config=None):
        self.requests.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


def install_fake_client(engine, models):
    engine._client = SimpleNamespace(aio=SimpleNamespace(models=models))
    engine._client_key = "test-key"


class TestClassifyApiError:
    """Tests for classify_api_error()."""

    @pytest.mark.parametrize("error,reason", [
        (FakeApiError("quota", code=429), "rate_limited"),
        (FakeApiError("quota", status="RESOURCE_EXHAUSTED"), "rate_limited"),
        (FakeApiError("busy", code=503), "overloaded"),
        (FakeApiError("The model is overloaded"), "overloaded"),
    ])
    def test_transient(self, error, reason):
        from frameperfect.capabilities.gemini_engine import classify_api_error
        from frameperfect.errors import TransientCapabilityError, TransientReason

        classified = classify_api_error(error)
        assert isinstance(classified, TransientCapabilityError)
        assert classified.reason == TransientReason(reason)

    def test_terminal(self):
        from frameperfect.capabilities.gemini_engine import classify_api_error
        from frameperfect.errors import CapabilityError, TransientCapabilityError

        classified = classify_api_error(FakeApiError("bad request", code=400))
        assert isinstance(classified, CapabilityError)
        assert not isinstance(classified, TransientCapabilityError)
        assert "400" in str(classified)


class TestCredentials:
    """Tests for call-time API key resolution."""

    def test_missing_key(self, monkeypatch, jpeg_b64):
        from frameperfect.capabilities.gemini_engine import GeminiAnalysisEngine
        from frameperfect.errors import MissingCredentialsError

        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        engine = GeminiAnalysisEngine()

        with pytest.raises(MissingCredentialsError):
            asyncio.run(engine.analyze(jpeg_b64, "grade"))
        assert engine.call_count == 0

    def test_key_from_fallback_env(self, monkeypatch):
        from frameperfect.capabilities.gemini_engine import GeminiAnalysisEngine

        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("API_KEY", "fallback")

        assert GeminiAnalysisEngine()._resolve_api_key() == "fallback"


class TestStubbedCalls:
    """Tests for request/response handling."""

    def test_analysis_returns_text(self, jpeg_b64, verdict_json):
        from frameperfect.capabilities.gemini_engine import GeminiAnalysisEngine

        engine = GeminiAnalysisEngine(api_key="test-key")
        models = FakeModels(response=SimpleNamespace(text=verdict_json))
        install_fake_client(engine, models)

        assert asyncio.run(engine.analyze(jpeg_b64, "grade")) == verdict_json
        [request] = models.requests
        assert request["model"] == "gemini-2.5-flash"
        assert request["contents"][1] == "grade"
        assert request["config"].response_mime_type == "application/json"

    def test_analysis_empty_text(self, jpeg_b64):
        from frameperfect.capabilities.gemini_engine import GeminiAnalysisEngine
        from frameperfect.errors import MalformedResponseError

        engine = GeminiAnalysisEngine(api_key="test-key")
        install_fake_client(engine, FakeModels(response=SimpleNamespace(text=None)))

        with pytest.raises(MalformedResponseError):
            asyncio.run(engine.analyze(jpeg_b64, "grade"))
        assert engine.error_count == 1

    def test_enhancement_extracts_first_image(self, jpeg_b64):
        from frameperfect.capabilities.gemini_engine import GeminiEnhancementEngine
        from frameperfect.models.frame import EnhancementStyle

        text_part = SimpleNamespace(inline_data=None, text="Here you go")
        image_part = SimpleNamespace(inline_data=SimpleNamespace(data=b"\x89PNGdata"))
        response = SimpleNamespace(candidates=[
            SimpleNamespace(content=SimpleNamespace(parts=[text_part, image_part])),
        ])
        engine = GeminiEnhancementEngine(api_key="test-key")
        install_fake_client(engine, FakeModels(response=response))

        result = asyncio.run(engine.enhance(jpeg_b64, "enhance", [EnhancementStyle.RESTORE]))
        assert base64.b64decode(result) == b"\x89PNGdata"

    def test_enhancement_without_image(self, jpeg_b64):
        from frameperfect.capabilities.gemini_engine import GeminiEnhancementEngine
        from frameperfect.errors import NoImageProducedError
        from frameperfect.models.frame import EnhancementStyle

        response = SimpleNamespace(candidates=[
            SimpleNamespace(content=SimpleNamespace(parts=[SimpleNamespace(inline_data=None)])),
        ])
        engine = GeminiEnhancementEngine(api_key="test-key")
        install_fake_client(engine, FakeModels(response=response))

        with pytest.raises(NoImageProducedError):
            asyncio.run(engine.enhance(jpeg_b64, "enhance", [EnhancementStyle.BOKEH]))

    def test_unreadable_payload_keeps_cause(self):
        import binascii

        from frameperfect.capabilities.gemini_engine import GeminiAnalysisEngine
        from frameperfect.errors import CapabilityError
        from frameperfect.sampling.image_codec import ImageDecodeError

        engine = GeminiAnalysisEngine(api_key="test-key")
        models = FakeModels(response=SimpleNamespace(text="{}"))
        install_fake_client(engine, models)

        with pytest.raises(CapabilityError) as excinfo:
            asyncio.run(engine.analyze("!!not base64!!", "grade"))

        assert isinstance(excinfo.value.__cause__, ImageDecodeError)
        assert isinstance(excinfo.value.__cause__.__cause__, binascii.Error)
        assert models.requests == []
