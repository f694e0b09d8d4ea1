# src/progress/session.py - v1
"""A single progress session and the emitter handed to the orchestrator.

The session keeps the full ordered log (what poll() returns) and feeds
live events to at most one attached listener queue through a
CoalescingScheduler. Once a terminal event is appended the log is
frozen; later emissions are ignored.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from shelfscan.progress.models import (
    EventType,
    ProgressEvent,
    ProgressSnapshot,
    ProgressStage,
    SessionStatus,
)
from shelfscan.progress.scheduler import CoalescingScheduler

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_S = 0.1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressSession:
    def __init__(
        self,
        session_id: str,
        owner_id: str,
        created_at: float,
        min_interval_s: float = DEFAULT_MIN_INTERVAL_S,
        wall_clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session_id = session_id
        self.owner_id = owner_id
        self.created_at = created_at
        self.status = SessionStatus.ACTIVE
        self.finished_at: float | None = None
        self.detached_at: float | None = None
        self.events: list[ProgressEvent] = []
        self.delivered: list[ProgressEvent] = []
        self._wall_clock = wall_clock
        self._scheduler: CoalescingScheduler[ProgressEvent] = CoalescingScheduler(min_interval_s)
        self._listener: asyncio.Queue[ProgressEvent | None] | None = None

    @property
    def is_final(self) -> bool:
        return self.status is not SessionStatus.ACTIVE

    @property
    def has_listener(self) -> bool:
        return self._listener is not None

    # --- Log ---

    def append(
        self,
        type_: EventType,
        stage: ProgressStage,
        message: str,
        now: float,
        payload: dict[str, Any] | None = None,
        retryable: bool | None = None,
    ) -> ProgressEvent | None:
        if self.is_final:
            logger.debug("Ignoring %s event for finished session %s", stage.value, self.session_id)
            return None

        timestamp = self._wall_clock()
        if self.events and timestamp <= self.events[-1].timestamp:
            timestamp = self.events[-1].timestamp + timedelta(microseconds=1)

        event = ProgressEvent(
            session_id=self.session_id,
            sequence=len(self.events) + 1,
            type=type_,
            stage=stage,
            message=message,
            timestamp=timestamp,
            payload=payload,
            retryable=retryable,
        )
        self.events.append(event)

        if event.is_terminal:
            self.status = SessionStatus.COMPLETE if type_ is EventType.COMPLETE else SessionStatus.ERROR
            self.finished_at = now
            self._deliver(self._scheduler.bypass(event, now))
        else:
            released = self._scheduler.offer(event, now)
            if released is not None:
                self._deliver(released)
        return event

    def flush(self, now: float) -> None:
        released = self._scheduler.flush(now)
        if released is not None:
            self._deliver(released)

    def seconds_until_flush(self, now: float) -> float | None:
        return self._scheduler.seconds_until_flush(now)

    def snapshot(self) -> ProgressSnapshot:
        result = error = None
        if self.events and self.events[-1].is_terminal:
            last = self.events[-1]
            if last.type is EventType.COMPLETE:
                result = last.payload
            else:
                error = {"message": last.message, "stage": last.stage.value,
                         "retryable": last.retryable, **(last.payload or {})}
        return ProgressSnapshot(
            session_id=self.session_id,
            status=self.status,
            events=list(self.events),
            complete=self.is_final,
            result=result,
            error=error,
        )

    # --- Live listener ---

    def attach(self) -> asyncio.Queue[ProgressEvent | None]:
        """Attach a live listener, replacing (and closing) any previous one.

        Listener queues receive None when they are replaced or the session
        is reclaimed.
        """
        if self._listener is not None:
            self._listener.put_nowait(None)
        self._listener = asyncio.Queue()
        self.detached_at = None
        return self._listener

    def detach(self, queue: asyncio.Queue[ProgressEvent | None], now: float) -> None:
        if self._listener is queue:
            self._listener = None
            self.detached_at = now

    def close(self) -> None:
        """Release the listener; called when the session is reclaimed."""
        if self._listener is not None:
            self._listener.put_nowait(None)
            self._listener = None

    def _deliver(self, event: ProgressEvent) -> None:
        self.delivered.append(event)
        if self._listener is not None:
            self._listener.put_nowait(event)


class ProgressEmitter:
    """Write side of a session: what the orchestrator sees."""

    def __init__(
        self,
        session: ProgressSession,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self._clock = clock

    @classmethod
    def detached(cls, session_id: str | None = None) -> ProgressEmitter:
        """Emitter for a session no manager tracks (CLI runs, tests)."""
        session = ProgressSession(
            session_id=session_id or uuid.uuid4().hex,
            owner_id="local",
            created_at=time.monotonic(),
        )
        return cls(session)

    @property
    def session(self) -> ProgressSession:
        return self._session

    @property
    def session_id(self) -> str:
        return self._session.session_id

    def emit(
        self,
        stage: ProgressStage,
        message: str,
        payload: dict[str, Any] | None = None,
    ) -> ProgressEvent | None:
        return self._session.append(EventType.PROGRESS, stage, message, self._clock(), payload)

    def complete(self, message: str, payload: dict[str, Any] | None = None) -> ProgressEvent | None:
        return self._session.append(
            EventType.COMPLETE, ProgressStage.COMPLETE, message, self._clock(), payload
        )

    def fail(
        self,
        message: str,
        *,
        retryable: bool,
        stage: ProgressStage = ProgressStage.ERROR,
        payload: dict[str, Any] | None = None,
    ) -> ProgressEvent | None:
        return self._session.append(
            EventType.ERROR, stage, message, self._clock(), payload, retryable=retryable
        )
