"""
Time sources.

Every TTL and lockout computation reads time through a Clock so tests can
move time forward without sleeping.
"""

import threading
import time
from datetime import datetime, timedelta, timezone


class Clock:
    """Wall-clock + monotonic time source."""

    def now(self) -> datetime:
        """Current instant as a timezone-aware UTC datetime."""
        raise NotImplementedError

    def monotonic(self) -> float:
        raise NotImplementedError


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Usage:
        clock = ManualClock()
        clock.advance(timedelta(minutes=15))
    """

    def __init__(self, start: datetime | None = None):
        if start is None:
            start = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        if start.tzinfo is None:
            raise ValueError("ManualClock requires a timezone-aware start time")
        self._lock = threading.Lock()
        self._now = start.astimezone(timezone.utc)
        self._monotonic = 0.0

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def monotonic(self) -> float:
        with self._lock:
            return self._monotonic

    def advance(self, delta: timedelta) -> datetime:
        if delta < timedelta(0):
            raise ValueError("Cannot move a clock backwards")
        with self._lock:
            self._now = self._now + delta
            self._monotonic += delta.total_seconds()
            return self._now

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            raise ValueError("moment must be timezone-aware")
        with self._lock:
            moment = moment.astimezone(timezone.utc)
            self._monotonic += max((moment - self._now).total_seconds(), 0.0)
            self._now = moment
