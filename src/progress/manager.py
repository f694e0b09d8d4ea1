# src/progress/manager.py - v1
"""Session registry: creation limits, polling, live streams, reclamation.

One manager instance serves all transports. Live delivery is driven by
the consumer of stream(); housekeeping (force-expiry of overdue
sessions, reclamation of finished ones) happens in sweep(), which
run_reaper() calls periodically from a single background task.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone

from shelfscan.core.errors import ConflictError, NotFoundError, ResourceExhaustedError
from shelfscan.progress.models import (
    EventType,
    ProgressEvent,
    ProgressSnapshot,
    ProgressStage,
    SessionStatus,
)
from shelfscan.progress.session import ProgressEmitter, ProgressSession

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    def __init__(
        self,
        min_interval_s: float = 0.1,
        cleanup_delay_s: float = 5.0,
        session_timeout_s: float = 60.0,
        max_sessions_per_owner: int = 3,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._min_interval_s = min_interval_s
        self._cleanup_delay_s = cleanup_delay_s
        self._session_timeout_s = session_timeout_s
        self._max_per_owner = max_sessions_per_owner
        self._clock = clock
        self._wall_clock = wall_clock
        self._sessions: dict[str, ProgressSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(self, owner_id: str = "anonymous", session_id: str | None = None) -> ProgressEmitter:
        """Open a session and return its emitter.

        Raises:
            ResourceExhaustedError: The owner already has the maximum number
                of active sessions.
            ConflictError: *session_id* is already in use.
        """
        self.sweep()
        if session_id is not None and session_id in self._sessions:
            raise ConflictError(f"Progress session {session_id} already exists")
        if self.active_count(owner_id) >= self._max_per_owner:
            raise ResourceExhaustedError(
                f"Owner {owner_id!r} already has {self._max_per_owner} active sessions",
                details={"owner_id": owner_id, "limit": self._max_per_owner},
            )

        session = ProgressSession(
            session_id=session_id or uuid.uuid4().hex,
            owner_id=owner_id,
            created_at=self._clock(),
            min_interval_s=self._min_interval_s,
            wall_clock=self._wall_clock,
        )
        self._sessions[session.session_id] = session
        logger.debug("Opened progress session %s for %s", session.session_id, owner_id)
        return ProgressEmitter(session, clock=self._clock)

    def active_count(self, owner_id: str) -> int:
        return sum(
            1 for s in self._sessions.values()
            if s.owner_id == owner_id and s.status is SessionStatus.ACTIVE
        )

    def poll(self, session_id: str) -> ProgressSnapshot:
        session = self._get(session_id)
        session.flush(self._clock())
        return session.snapshot()

    async def stream(self, session_id: str) -> AsyncIterator[ProgressEvent]:
        """Replay the log, then yield live events until the terminal one.

        Closing the iterator only detaches the listener; the resolution
        that owns the session keeps running.
        """
        session = self._get(session_id)
        queue = session.attach()
        try:
            for event in list(session.events):
                yield event
            if session.is_final:
                return

            while True:
                timeout = self._next_wakeup(session)
                try:
                    event = await asyncio.wait_for(queue.get(), timeout)
                except asyncio.TimeoutError:
                    self._tick(session)
                    continue
                if event is None:
                    return
                yield event
                if event.is_terminal:
                    return
        finally:
            session.detach(queue, self._clock())

    def sweep(self) -> int:
        """Force-expire overdue sessions and reclaim finished ones.

        Returns:
            Number of sessions reclaimed.
        """
        reclaimed = 0
        for session in list(self._sessions.values()):
            self._tick(session)
            if self._reclaimable(session, self._clock()):
                session.close()
                del self._sessions[session.session_id]
                reclaimed += 1
        if reclaimed:
            logger.debug("Reclaimed %d progress sessions", reclaimed)
        return reclaimed

    async def run_reaper(self, interval_s: float = 1.0) -> None:
        """Call sweep() forever; run as one background task."""
        while True:
            self.sweep()
            await asyncio.sleep(interval_s)

    # --- Internals ---

    def _get(self, session_id: str) -> ProgressSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Unknown progress session {session_id}", code="SESSION_NOT_FOUND")
        return session

    def _tick(self, session: ProgressSession) -> None:
        now = self._clock()
        session.flush(now)
        if not session.is_final and now - session.created_at >= self._session_timeout_s:
            logger.warning("Progress session %s timed out after %.0fs", session.session_id, self._session_timeout_s)
            session.append(
                EventType.ERROR,
                ProgressStage.TIMEOUT,
                "Resolution did not finish in time",
                now,
                retryable=True,
            )

    def _next_wakeup(self, session: ProgressSession) -> float:
        now = self._clock()
        until_deadline = max(0.0, session.created_at + self._session_timeout_s - now)
        until_flush = session.seconds_until_flush(now)
        return until_deadline if until_flush is None else min(until_flush, until_deadline)

    def _reclaimable(self, session: ProgressSession, now: float) -> bool:
        if session.finished_at is None:
            return False
        if session.has_listener:
            # A listener that never disconnects is released after the session ceiling
            return now - session.finished_at >= self._session_timeout_s
        released_at = max(session.finished_at, session.detached_at or session.finished_at)
        return now - released_at >= self._cleanup_delay_s
