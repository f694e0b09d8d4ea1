# src/core/errors.py - v1
"""Error taxonomy shared by every resolution component.

Each exception carries an ErrorKind and a retryable flag so callers can
turn it into a structured ErrorInfo without inspecting messages.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    TRANSIENT = "TRANSIENT"
    VALIDATION = "VALIDATION"
    DATA_CONSISTENCY = "DATA_CONSISTENCY"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"


class ShelfScanError(Exception):
    """Base class for all domain errors."""

    kind: ErrorKind = ErrorKind.VALIDATION
    retryable: bool = False
    default_code: str = "ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}


class NotFoundError(ShelfScanError):
    """The identity is genuinely absent from every store a tier consulted."""

    kind = ErrorKind.NOT_FOUND
    retryable = False
    default_code = "NOT_FOUND"


class TransientError(ShelfScanError):
    """Network, timeout or lock contention; safe to retry or fall through."""

    kind = ErrorKind.TRANSIENT
    retryable = True
    default_code = "TRANSIENT"


class InvalidResponseError(ShelfScanError):
    """Malformed AI or search response, or a malformed request."""

    kind = ErrorKind.VALIDATION
    retryable = False
    default_code = "INVALID_RESPONSE"


class AnalysisValidationError(ShelfScanError):
    """A parseable AI analysis violated its schema; the caller may ask again."""

    kind = ErrorKind.VALIDATION
    retryable = True
    default_code = "AI_ANALYSIS_FAILED"


class ConflictError(ShelfScanError):
    """A write violated a uniqueness or immutability rule."""

    kind = ErrorKind.VALIDATION
    retryable = False
    default_code = "CONFLICT"


class DataConsistencyError(ShelfScanError):
    """A compensating action failed; stores may disagree."""

    kind = ErrorKind.DATA_CONSISTENCY
    retryable = False
    default_code = "DATA_CONSISTENCY"


class ResourceExhaustedError(ShelfScanError):
    """Session or concurrency limit exceeded."""

    kind = ErrorKind.RESOURCE_EXHAUSTED
    retryable = True
    default_code = "RESOURCE_EXHAUSTED"


_TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "connection",
    "network",
    "econnrefused",
    "enotfound",
    "etimedout",
    "econnreset",
    "socket hang up",
    "temporary",
    "unavailable",
)


def is_transient(error: BaseException) -> bool:
    """Return True when *error* is worth retrying or falling through on."""
    if isinstance(error, ShelfScanError):
        return error.kind is ErrorKind.TRANSIENT
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    msg = str(error).lower()
    name = type(error).__name__.lower()
    if "timeout" in name or "connection" in name:
        return True
    return any(marker in msg for marker in _TRANSIENT_MARKERS)


def classify_error(error: BaseException) -> ErrorKind:
    """Map any exception onto the error taxonomy."""
    if isinstance(error, ShelfScanError):
        return error.kind
    if is_transient(error):
        return ErrorKind.TRANSIENT
    return ErrorKind.VALIDATION
