# src/progress/models.py - v1
"""Progress event and session snapshot models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


class ProgressStage(str, Enum):
    TIER1 = "tier1"
    TIER2 = "tier2"
    TIER3 = "tier3"
    TIER4 = "tier4"
    COMPLETE = "complete"
    ERROR = "error"
    TIMEOUT = "timeout"

    @classmethod
    def for_tier(cls, tier: int) -> ProgressStage:
        return cls(f"tier{tier}")


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETE = "complete"
    ERROR = "error"


class ProgressEvent(BaseModel):
    """One entry of a session's append-only log."""

    session_id: str
    sequence: int
    type: EventType
    stage: ProgressStage
    message: str
    timestamp: datetime
    payload: dict[str, Any] | None = None
    retryable: bool | None = None

    @property
    def is_terminal(self) -> bool:
        return self.type is not EventType.PROGRESS


class ProgressSnapshot(BaseModel):
    """Point-in-time poll result."""

    session_id: str
    status: SessionStatus
    events: list[ProgressEvent] = Field(default_factory=list)
    complete: bool = False
    result: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
