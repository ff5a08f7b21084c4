"""
Gemini Engines
==============

Production analysis and enhancement backends using the google-genai SDK.

These engines:
    - Send the frame as inline image data plus an instruction
    - Request structured JSON for analysis (response schema from the enums)
    - Extract the first inline image part for enhancement
    - Classify backend errors into transient vs terminal

Error Classification:
    HTTP 429 / RESOURCE_EXHAUSTED           -> TransientCapabilityError(RATE_LIMITED)
    HTTP 503 / UNAVAILABLE / "overloaded"   -> TransientCapabilityError(OVERLOADED)
    Missing API key                         -> MissingCredentialsError
    Anything else                           -> CapabilityError (terminal)

Design Rules:
    - The API key is resolved at call time, so a key added after startup works
    - Never retry here; retries belong to the orchestrators
    - Log every call
"""

import base64
import logging
import os
from typing import Optional, Sequence, Tuple

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from frameperfect.errors import (
    CapabilityError,
    MalformedResponseError,
    MissingCredentialsError,
    NoImageProducedError,
    TransientCapabilityError,
    TransientReason,
)
from frameperfect.models.analysis import build_response_schema
from frameperfect.models.frame import EnhancementStyle
from frameperfect.sampling.image_codec import ImageDecodeError, image_extension, payload_bytes


logger = logging.getLogger(__name__)


DEFAULT_API_KEY_ENV = ("GEMINI_API_KEY", "API_KEY")


def classify_api_error(error: Exception) -> CapabilityError:
    """
    Map an SDK or transport error onto the capability error taxonomy.

    Args:
        error: Exception raised by the google-genai client

    Returns:
        CapabilityError subclass to raise in its place
    """
    code = getattr(error, "code", None)
    status = str(getattr(error, "status", "") or "").upper()
    message = str(error)

    if code == 429 or status == "RESOURCE_EXHAUSTED":
        return TransientCapabilityError(TransientReason.RATE_LIMITED, message)
    if code == 503 or status == "UNAVAILABLE" or "overloaded" in message.lower():
        return TransientCapabilityError(TransientReason.OVERLOADED, message)
    return CapabilityError(f"Gemini API error ({code or status or type(error).__name__}): {message}")


class _GeminiClientMixin:
    """Lazy client creation keyed on the current API key."""

    def _init_credentials(
        self,
        api_key: Optional[str],
        api_key_env: Sequence[str],
    ) -> None:
        self._explicit_api_key = api_key
        self._api_key_env: Tuple[str, ...] = tuple(api_key_env)
        self._client: Optional[genai.Client] = None
        self._client_key: Optional[str] = None

    def _resolve_api_key(self) -> Optional[str]:
        if self._explicit_api_key:
            return self._explicit_api_key
        for name in self._api_key_env:
            if value := os.environ.get(name):
                return value
        return None

    def _get_client(self) -> genai.Client:
        api_key = self._resolve_api_key()
        if not api_key:
            raise MissingCredentialsError(
                f"No API key found (set one of: {', '.join(self._api_key_env)})"
            )
        if self._client is None or self._client_key != api_key:
            self._client = genai.Client(api_key=api_key)
            self._client_key = api_key
            logger.info("Gemini client initialized")
        return self._client


def _image_part(image_b64: str) -> types.Part:
    try:
        data = payload_bytes(image_b64)
        extension = image_extension(image_b64)
    except ImageDecodeError as e:
        raise CapabilityError(f"Frame payload is not a readable image: {e}") from e
    mime_type = "image/jpeg" if extension == "jpg" else "image/png"
    return types.Part.from_bytes(data=data, mime_type=mime_type)


class GeminiAnalysisEngine(_GeminiClientMixin):
    """
    Vision analysis through Gemini structured output.

    Attributes:
        model: Gemini model id
        call_count: Total API calls made
        error_count: Total failed calls
    """

    def __init__(
        self,
        model: str = "gemini-2.5-flash",
        api_key: Optional[str] = None,
        api_key_env: Sequence[str] = DEFAULT_API_KEY_ENV,
    ) -> None:
        self.model = model
        self.call_count: int = 0
        self.error_count: int = 0
        self._init_credentials(api_key, api_key_env)

        logger.info(f"GeminiAnalysisEngine initialized: model={model}")

    async def analyze(self, image_b64: str, instruction: str) -> str:
        client = self._get_client()
        self.call_count += 1

        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=[_image_part(image_b64), instruction],
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=build_response_schema(),
                ),
            )
        except genai_errors.APIError as e:
            self.error_count += 1
            raise classify_api_error(e) from e
        except httpx.HTTPError as e:
            self.error_count += 1
            raise CapabilityError(f"Network error calling Gemini: {e}") from e

        text = response.text
        if not text:
            self.error_count += 1
            raise MalformedResponseError("No response text from analysis model")

        logger.debug(f"Gemini analysis returned {len(text)} chars")
        return text


class GeminiEnhancementEngine(_GeminiClientMixin):
    """
    Image enhancement through a Gemini image model.

    Attributes:
        model: Gemini image model id
        call_count: Total API calls made
        error_count: Total failed calls
    """

    def __init__(
        self,
        model: str = "gemini-2.5-flash-image",
        api_key: Optional[str] = None,
        api_key_env: Sequence[str] = DEFAULT_API_KEY_ENV,
    ) -> None:
        self.model = model
        self.call_count: int = 0
        self.error_count: int = 0
        self._init_credentials(api_key, api_key_env)

        logger.info(f"GeminiEnhancementEngine initialized: model={model}")

    async def enhance(
        self,
        image_b64: str,
        prompt: str,
        styles: Sequence[EnhancementStyle],
    ) -> str:
        client = self._get_client()
        self.call_count += 1

        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=[_image_part(image_b64), prompt],
            )
        except genai_errors.APIError as e:
            self.error_count += 1
            raise classify_api_error(e) from e
        except httpx.HTTPError as e:
            self.error_count += 1
            raise CapabilityError(f"Network error calling Gemini: {e}") from e

        for candidate in response.candidates or []:
            if candidate.content is None:
                continue
            for part in candidate.content.parts or []:
                if part.inline_data is not None and part.inline_data.data:
                    return base64.b64encode(part.inline_data.data).decode("ascii")

        self.error_count += 1
        raise NoImageProducedError(
            f"Enhancement model returned no image for styles "
            f"{[EnhancementStyle(s).value for s in styles]}"
        )
