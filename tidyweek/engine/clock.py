"""Clock abstraction for tidyWeek.

Every lifecycle computation takes "now" from an injected clock instead of
reading the system time, so the same code can evaluate tasks against real
time (and commit the result) or against a simulated instant (and only
preview it).
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol


def as_utc(dt: datetime) -> datetime:
    """Normalize a datetime to timezone-aware UTC.

    Naive datetimes are treated as UTC (the storage convention).

    Args:
        dt: Naive or aware datetime

    Returns:
        Timezone-aware UTC datetime
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_storage(dt: datetime) -> datetime:
    """Convert a datetime to the naive UTC form stored in the database."""
    return as_utc(dt).replace(tzinfo=None)


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Return the current instant (timezone-aware UTC)."""
        ...


class SystemClock:
    """Real wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class SimulatedClock:
    """Operator clock that can be pinned to an arbitrary instant.

    When no simulated instant is set the clock falls through to its base
    clock, so an unset SimulatedClock behaves exactly like real time.
    """

    def __init__(self, base: Optional[Clock] = None, simulated_at: Optional[datetime] = None):
        self.base = base or SystemClock()
        self._simulated_at: Optional[datetime] = None
        self.set_simulated(simulated_at)

    @property
    def simulated_at(self) -> Optional[datetime]:
        return self._simulated_at

    @property
    def is_simulated(self) -> bool:
        return self._simulated_at is not None

    def now(self) -> datetime:
        if self._simulated_at is not None:
            return self._simulated_at
        return as_utc(self.base.now())

    def set_simulated(self, at: Optional[datetime]) -> None:
        """Pin the clock to an instant, or pass None to return to real time."""
        self._simulated_at = as_utc(at) if at is not None else None

    def advance(self, days: int = 0, weeks: int = 0) -> datetime:
        """Move the simulated instant forward (or back, with negative deltas).

        Starts from the current reading, so advancing an unset clock begins
        simulating from real time.

        Args:
            days: Days to add
            weeks: Weeks to add

        Returns:
            The new simulated instant
        """
        self._simulated_at = self.now() + timedelta(days=days, weeks=weeks)
        return self._simulated_at

    def reset(self) -> None:
        """Clear the simulated instant (back to real time)."""
        self._simulated_at = None


class ClockRegistry:
    """Per-user simulated clocks.

    Each user gets their own SimulatedClock so one user's time travel never
    affects another user's view.
    """

    def __init__(self, base: Optional[Clock] = None):
        self.base = base or SystemClock()
        self._clocks: Dict[str, SimulatedClock] = {}
        # Sync endpoints run in a thread pool
        self._lock = threading.Lock()

    def for_user(self, user_id: str) -> SimulatedClock:
        """The user's registered clock, created on first use."""
        with self._lock:
            clock = self._clocks.get(user_id)
            if clock is None:
                clock = SimulatedClock(base=self.base)
                self._clocks[user_id] = clock
            return clock

    def lookup(self, user_id: str) -> SimulatedClock:
        """The user's clock if they are time travelling, else an unregistered real-time clock."""
        with self._lock:
            clock = self._clocks.get(user_id)
        return clock if clock is not None else SimulatedClock(base=self.base)

    def discard(self, user_id: str) -> None:
        """Forget a user's clock; their next lookup starts on real time."""
        with self._lock:
            self._clocks.pop(user_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._clocks)

    def clear(self) -> None:
        with self._lock:
            self._clocks.clear()
