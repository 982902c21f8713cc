"""
Time source for the kernel.

Issue dates, history timestamps and expiry decisions all read the time
from an injected Clock, never from ``datetime.now()``.  Every Clock
returns timezone-aware UTC datetimes, which is what the expiry moment
(midnight UTC of issue date + validity days) is compared against.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current instant, aware, in UTC."""


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Stands still at ``start`` (2024-01-01 12:00 UTC by default) until moved.

    Expiry tests move it in whole days past a quotation's validity window.
    """

    def __init__(self, start: datetime = EPOCH):
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start")
        self._now = start.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        if delta < timedelta(0):
            raise ValueError("a clock never runs backwards")
        self._now += delta

    def advance_days(self, days: int) -> None:
        self.advance(timedelta(days=days))
