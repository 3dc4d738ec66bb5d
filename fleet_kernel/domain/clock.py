"""
Injectable time source.

Services receive a Clock in their constructor and never call
``datetime.now()`` themselves, so timestamps such as ``closed_at`` and
``driver_signed_at`` are reproducible in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Returns timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time. The only place the kernel reads real time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock.

    ``now()`` is stable until ``advance()``/``set_time()`` is called;
    ``tick()`` moves forward one second and returns the new value.
    """

    DEFAULT_START = datetime(2024, 3, 4, 8, 0, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._current = start or self.DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = value

    def advance(self, seconds: float = 1) -> None:
        self._current = self._current + timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current
