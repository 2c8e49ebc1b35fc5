"""
Clock -- injectable source of the current time.

Services, the schedule registry and the batch scheduler take a Clock in
their constructor, so expiry checks, audit timestamps and next-run
computation are reproducible under test.  ``SystemClock`` is the only
place that reads the wall clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time."""
        ...


class SystemClock(Clock):
    """Timezone-aware UTC wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance()`` or
    ``set_time()``.  A naive ``fixed_time`` stays naive, which is what the
    SQLite-backed tests need.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward by ``seconds`` and return the new time."""
        self._current += timedelta(seconds=seconds)
        return self._current
