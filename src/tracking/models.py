# src/tracking/models.py - v1
"""Observability event models recorded through an EventSink."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SinkEvent(BaseModel):
    """One fire-and-forget observability record."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    level: Literal["info", "warning", "error"] = "info"
    timestamp: datetime = Field(default_factory=_utcnow)
    session_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
