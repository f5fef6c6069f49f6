"""
Clock -- where consolidation runs, matching reports and elimination
entries get their timestamps.

Services take a ``Clock`` in their constructor.  ``SystemClock`` is the
only reader of wall-clock time; ``DeterministicClock`` lets a test pin
``initiated_at`` / ``matched_at`` / ``generated_at`` and move them forward
explicitly, so two runs over identical inputs produce identical records.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """A timezone-aware UTC ``datetime``."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Stands still at ``start`` until ``advance`` moves it."""

    def __init__(self, start: datetime):
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start")
        self._current = start

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float) -> datetime:
        self._current += timedelta(seconds=seconds)
        return self._current
