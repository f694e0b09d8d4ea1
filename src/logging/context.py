# src/logging/context.py - v1
"""Per-request logging context: session, request, tier and stage.

Context variables follow the asyncio task that set them, so concurrent
resolutions never see each other's values.
"""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

_session_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("session_id", default=None)
_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)
_tier: contextvars.ContextVar[int | None] = contextvars.ContextVar("tier", default=None)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar("stage", default=None)


@dataclass
class LogContext:
    session_id: str | None = None
    request_id: str | None = None
    tier: int | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Non-None fields, for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        session_id=_session_id.get(),
        request_id=_request_id.get(),
        tier=_tier.get(),
        stage=_stage.get(),
    )


def set_request_context(session_id: str, request_id: str | None = None) -> None:
    """Bind a resolution's identifiers; tier and stage are reset."""
    _session_id.set(session_id)
    _request_id.set(request_id)
    _tier.set(None)
    _stage.set(None)


def set_tier_context(tier: int | None, stage: str | None = None) -> None:
    _tier.set(tier)
    _stage.set(stage)


@contextmanager
def stage_context(stage: str) -> Iterator[None]:
    """Temporarily tag log records with *stage*."""
    token = _stage.set(stage)
    try:
        yield
    finally:
        _stage.reset(token)


def clear_context() -> None:
    _session_id.set(None)
    _request_id.set(None)
    _tier.set(None)
    _stage.set(None)
