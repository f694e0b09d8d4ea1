# src/progress/scheduler.py - v1
"""Per-session delivery limiter.

Time is cut into windows of `interval_s` that open on each delivery.
The first event offered in a closed window is delivered at once and
opens a new window; events offered while a window is open replace a
single pending slot. The pending event goes out when flush() is called
after the window closes, or is discarded if a newer offer or a terminal
event arrives first. Nothing is ever queued beyond the latest event.
"""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")


class CoalescingScheduler(Generic[T]):
    def __init__(self, interval_s: float) -> None:
        self._interval = interval_s
        self._window_start: float | None = None
        self._pending: T | None = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def _window_closed(self, now: float) -> bool:
        return self._window_start is None or now - self._window_start >= self._interval

    def offer(self, item: T, now: float) -> T | None:
        """Return *item* if it may be delivered now, else hold it."""
        if self._window_closed(now):
            self._window_start = now
            self._pending = None
            return item
        self._pending = item
        return None

    def flush(self, now: float) -> T | None:
        """Release the pending item once its window has closed."""
        if self._pending is None or not self._window_closed(now):
            return None
        item, self._pending = self._pending, None
        self._window_start = now
        return item

    def bypass(self, item: T, now: float) -> T:
        """Deliver unconditionally (terminal events), dropping any pending item."""
        self._pending = None
        self._window_start = now
        return item

    def seconds_until_flush(self, now: float) -> float | None:
        if self._pending is None or self._window_start is None:
            return None
        return max(0.0, self._window_start + self._interval - now)
