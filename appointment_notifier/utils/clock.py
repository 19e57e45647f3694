"""Clock abstraction so "now" can be controlled in tests."""

import threading
from datetime import datetime, timedelta
from typing import Optional, Protocol

from .timestamps import ensure_utc, utc_now


class Clock(Protocol):
    """Anything that can report the current UTC time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return utc_now()


class FrozenClock:
    """Manually driven clock.

    Time only moves when advance() or set() is called. Safe to share
    between the test thread and the dispatcher thread.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = ensure_utc(start) if start is not None else utc_now()
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = ensure_utc(value)

    def advance(self, delta: timedelta) -> datetime:
        with self._lock:
            self._now = self._now + delta
            return self._now
