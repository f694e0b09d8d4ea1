# src/tracking/event_sink.py - v1
"""Fire-and-forget observability sinks.

Components never call a sink directly; they go through safe_record(),
which guarantees that a broken sink cannot fail a resolution.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from shelfscan.tracking.models import SinkEvent

logger = logging.getLogger(__name__)

_LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


class EventSink(ABC):
    """Receives observability events (tier errors, consistency faults, reports)."""

    @abstractmethod
    def record(self, event: SinkEvent) -> None:
        """Record one event. May raise; callers use safe_record()."""


class LoggingEventSink(EventSink):
    """Forwards events to the shelfscan.events logger."""

    def __init__(self, logger_name: str = "shelfscan.events") -> None:
        self._logger = logging.getLogger(logger_name)

    def record(self, event: SinkEvent) -> None:
        self._logger.log(
            _LEVELS[event.level],
            "event %s",
            event.name,
            extra={"data": event.model_dump(mode="json")},
        )


class MemoryEventSink(EventSink):
    """Keeps events in memory; used for introspection and tests."""

    def __init__(self) -> None:
        self.events: list[SinkEvent] = []

    def record(self, event: SinkEvent) -> None:
        self.events.append(event)

    def named(self, name: str) -> list[SinkEvent]:
        return [e for e in self.events if e.name == name]


class JsonlEventSink(EventSink):
    """Appends events to a JSON-lines file for offline reconciliation."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def record(self, event: SinkEvent) -> None:
        line = event.model_dump_json()
        with self._lock, self._path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")


def safe_record(sink: EventSink | None, event: SinkEvent) -> None:
    """Record *event*, logging and absorbing any sink failure."""
    if sink is None:
        return
    try:
        sink.record(event)
    except Exception:
        logger.warning("Event sink %s failed to record %s", type(sink).__name__, event.name, exc_info=True)
