"""
Image Codec
===========

Encoding and decoding of frame payloads.

Frames carry images as base64 strings. This module converts between
those strings and OpenCV BGR matrices.

Design Rules:
    - This is the ONLY place in the codebase that encodes or decodes images
    - Validates shape and dtype
    - Fails fast on corrupt payloads
"""

import base64
import binascii
import logging
import re

import cv2
import numpy as np


logger = logging.getLogger(__name__)


_DATA_URL_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")

_JPEG_SIGNATURE = b"\xff\xd8\xff"


class ImageDecodeError(Exception):
    """Raised when image decoding fails."""
    pass


class ImageEncodeError(Exception):
    """Raised when image encoding fails."""
    pass


def strip_data_url(payload: str) -> str:
    """Remove a `data:image/...;base64,` prefix if present."""
    return _DATA_URL_PREFIX.sub("", payload, count=1)


def payload_bytes(payload_b64: str) -> bytes:
    """
    Decode a base64 payload to raw bytes.

    Raises:
        ImageDecodeError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(strip_data_url(payload_b64), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Base64 decode failed: {e}") from e


def encode_jpeg_b64(bgr: np.ndarray, quality: int = 85) -> str:
    """
    Encode a BGR matrix as base64 JPEG.

    Args:
        bgr: Image as np.ndarray (H, W, 3), dtype=uint8
        quality: JPEG quality 0-100

    Returns:
        Base64-encoded JPEG

    Raises:
        ImageEncodeError: If OpenCV cannot encode the matrix
    """
    _validate_bgr(bgr, ImageEncodeError)
    ok, buffer = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ImageEncodeError("cv2.imencode failed for JPEG")
    return base64.b64encode(buffer.tobytes()).decode("ascii")


def encode_png_b64(bgr: np.ndarray) -> str:
    """Encode a BGR matrix as base64 PNG."""
    _validate_bgr(bgr, ImageEncodeError)
    ok, buffer = cv2.imencode(".png", bgr)
    if not ok:
        raise ImageEncodeError("cv2.imencode failed for PNG")
    return base64.b64encode(buffer.tobytes()).decode("ascii")


def decode_bgr(payload_b64: str) -> np.ndarray:
    """
    Decode a base64 image payload to a BGR matrix.

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or the image is invalid
    """
    image_bytes = payload_bytes(payload_b64)
    nparr = np.frombuffer(image_bytes, np.uint8)
    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if bgr is None:
        raise ImageDecodeError("cv2.imdecode returned None")

    _validate_bgr(bgr, ImageDecodeError)
    return bgr


def image_extension(payload_b64: str) -> str:
    """
    File extension matching the payload's format.

    Sniffs the magic bytes; unknown formats default to "png".
    """
    # Whole base64 quanta only, so the prefix decodes on its own
    prefix = strip_data_url(payload_b64)[:64]
    prefix = prefix[: len(prefix) // 4 * 4]
    head = payload_bytes(prefix)[:8] if len(prefix) >= 12 else b""
    if head.startswith(_JPEG_SIGNATURE):
        return "jpg"
    return "png"


def _validate_bgr(bgr: np.ndarray, error_cls: type) -> None:
    if len(bgr.shape) != 3 or bgr.shape[2] != 3:
        raise error_cls(f"Invalid image shape: {bgr.shape}")
    if bgr.dtype != np.uint8:
        raise error_cls(f"Invalid dtype: {bgr.dtype}")
