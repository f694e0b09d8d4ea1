# src/cache/fingerprint.py - v1
"""Identity-cache key derivation.

Two key families share the identity cache:
- barcode keys: the normalized barcode string.
- image keys: SHA-256 over the decoded image bytes, so the same photo
  hashes identically whether it arrived as bytes, base64 or a data URI.
"""

from __future__ import annotations

import hashlib
import re
from typing import Literal

from shelfscan.core.errors import InvalidResponseError
from shelfscan.core.models import ImagePayload

KeyType = Literal["barcode", "image"]

_IMAGE_KEY = re.compile(r"^[0-9a-f]{64}$")


def normalize_barcode(raw: str) -> str:
    """Strip whitespace and hyphens and upper-case the barcode.

    Raises:
        InvalidResponseError: If nothing is left after normalization.
    """
    barcode = re.sub(r"[\s\-]", "", raw).upper()
    if not barcode:
        raise InvalidResponseError("Barcode is empty", code="INVALID_BARCODE")
    return barcode


def image_fingerprint(image: ImagePayload | bytes | str) -> str:
    """SHA-256 hex digest of the decoded image bytes."""
    if isinstance(image, str):
        image = ImagePayload.from_base64(image)
    raw = image.data if isinstance(image, ImagePayload) else image
    return hashlib.sha256(raw).hexdigest()


def key_type(key: str) -> KeyType:
    """Tell barcode keys from image keys."""
    return "image" if _IMAGE_KEY.match(key) else "barcode"


def short_key(key: str) -> str:
    """Truncated key for log lines."""
    return key if len(key) <= 16 else f"{key[:12]}..."
