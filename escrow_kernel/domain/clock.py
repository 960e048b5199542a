"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock interface so that services and batch tasks
    never call ``datetime.now()`` directly.  Auction windows and escrow holds
    are pure functions of the injected time.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    - SequentialClock raises ValueError if created with no times.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance via
        constructor injection.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock returning timezone-aware UTC system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
        - The clock keeps whatever tz-awareness ``fixed_time`` has, so tests
          against SQLite can run on naive datetimes.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._offset = timedelta(0)

    def advance(
        self, seconds: float = 0, *, hours: float = 0, days: float = 0
    ) -> datetime:
        """Advance the clock and return the new time."""
        self._offset += timedelta(seconds=seconds, hours=hours, days=days)
        return self.now()


class SequentialClock(Clock):
    """
    Clock that returns times from a predefined list, in order.

    After exhaustion it keeps returning the last value.
    """

    def __init__(self, times: list[datetime]):
        if not times:
            raise ValueError("SequentialClock requires at least one time")
        self._times = list(times)
        self._index = 0

    def now(self) -> datetime:
        if self._index < len(self._times):
            value = self._times[self._index]
            self._index += 1
            return value
        return self._times[-1]
