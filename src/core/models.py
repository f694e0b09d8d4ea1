# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field, model_validator

from shelfscan.core.errors import ErrorKind, InvalidResponseError, ShelfScanError, classify_error

Tier = Literal[1, 2, 3, 4]

_DATA_URI = re.compile(r"^data:(?P<media>[\w.+-]+/[\w.+-]+)?(;[\w-]+=[\w-]+)*;base64,")


# === IMAGES ===


class ImagePayload(BaseModel):
    """Decoded image bytes as submitted by the caller."""

    data: bytes
    media_type: str = "image/jpeg"

    @classmethod
    def from_base64(cls, encoded: str, media_type: str | None = None) -> ImagePayload:
        """Decode plain base64 or a data URI.

        Raises:
            InvalidResponseError: If the payload is not valid base64 or is empty.
        """
        match = _DATA_URI.match(encoded.strip())
        if match:
            media_type = media_type or match.group("media")
            encoded = encoded.strip()[match.end():]
        try:
            data = base64.b64decode(re.sub(r"\s+", "", encoded), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidResponseError(
                "Image payload is not valid base64", code="INVALID_IMAGE"
            ) from e
        if not data:
            raise InvalidResponseError("Image payload is empty", code="INVALID_IMAGE")
        return cls(data=data, media_type=media_type or "image/jpeg")

    @classmethod
    def from_file(cls, path: str | Path) -> ImagePayload:
        path = Path(path).expanduser()
        media_type, _ = mimetypes.guess_type(path.name)
        return cls(data=path.read_bytes(), media_type=media_type or "image/jpeg")

    def as_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def as_data_uri(self) -> str:
        return f"data:{self.media_type};base64,{self.as_base64()}"


# === PRODUCT IDENTITY ===


class ProductIdentity(BaseModel):
    """A physical retail product. `id` is assigned by the repository."""

    id: str = ""
    barcode: str | None = None
    name: str
    brand: str = ""
    category: str = "Unknown"
    size: str | None = None
    image_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    MATERIAL_FIELDS: ClassVar[tuple[str, ...]] = (
        "barcode", "name", "brand", "category", "size", "image_url",
    )

    @property
    def is_persisted(self) -> bool:
        return bool(self.id)

    def materially_differs(self, other: ProductIdentity) -> bool:
        """True if any identifying field differs (metadata is ignored)."""
        return any(
            getattr(self, f) != getattr(other, f) for f in self.MATERIAL_FIELDS
        )


class ProductContext(BaseModel):
    """Minimal product description handed to the AI analyzers."""

    name: str
    brand: str = ""
    category: str = "Unknown"

    @classmethod
    def from_identity(cls, identity: ProductIdentity) -> ProductContext:
        return cls(name=identity.name, brand=identity.brand, category=identity.category)


# === RESOLUTION ===


class ResolutionRequest(BaseModel):
    """A barcode, an image, or both, plus progress-session ownership."""

    barcode: str | None = None
    image: ImagePayload | None = None
    session_id: str | None = None
    owner_id: str = "anonymous"

    @model_validator(mode="after")
    def _require_input(self) -> ResolutionRequest:
        if not (self.barcode and self.barcode.strip()) and self.image is None:
            raise ValueError("A resolution request needs a barcode or an image")
        return self


class ResolutionResult(BaseModel):
    identity: ProductIdentity
    tier: Tier
    confidence: float = Field(ge=0.0, le=1.0)
    cached: bool = False


AttemptStatus = Literal[
    "resolved",
    "below_threshold",
    "no_match",
    "not_applicable",
    "not_found",
    "transient_error",
    "failed",
]


class TierAttempt(BaseModel):
    """Observability record for one tier visit."""

    tier: Tier
    status: AttemptStatus
    confidence: float | None = None
    error: str | None = None
    duration_ms: float = 0.0


class ErrorInfo(BaseModel):
    """Structured error returned to callers instead of raising."""

    code: str
    kind: ErrorKind
    message: str
    retryable: bool
    tier: int | None = None

    @classmethod
    def from_exception(cls, error: BaseException, tier: int | None = None) -> ErrorInfo:
        kind = classify_error(error)
        if isinstance(error, ShelfScanError):
            return cls(
                code=error.code,
                kind=kind,
                message=error.message,
                retryable=error.retryable,
                tier=tier,
            )
        return cls(
            code="TRANSIENT" if kind is ErrorKind.TRANSIENT else "INTERNAL_ERROR",
            kind=kind,
            message=str(error) or type(error).__name__,
            retryable=kind is ErrorKind.TRANSIENT,
            tier=tier,
        )


class WriteOutcome(str, Enum):
    """Result of a cross-store identity write."""

    COMMITTED = "committed"
    COMPENSATED = "compensated"
    CONSISTENCY_FAULT = "consistency_fault"
    ABORTED = "aborted"


class ResolutionOutcome(BaseModel):
    success: bool
    session_id: str
    result: ResolutionResult | None = None
    error: ErrorInfo | None = None
    attempts: list[TierAttempt] = Field(default_factory=list)
    warning: str | None = None
    consistency: WriteOutcome | None = None
    processing_time_ms: float = 0.0
