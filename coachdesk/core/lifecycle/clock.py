"""
Time sources for lifecycle decisions.

Everything in the lifecycle engine takes "now" as an argument. The
service asks a Clock for it, so tests can pin time to a known instant
and walk it forward instead of sleeping.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    """Anything that can tell the current instant."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware datetime."""
        ...


class SystemClock:
    """
    Wall-clock time in UTC that never runs backwards.

    If the host clock steps back (NTP correction, VM migration) we keep
    returning the last instant we handed out until real time catches up.
    """

    def __init__(self) -> None:
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        if self._last is not None and current < self._last:
            return self._last
        self._last = current
        return current


class FixedClock:
    """A clock that only moves when told to. Used in tests."""

    def __init__(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            raise ValueError("FixedClock needs a timezone-aware datetime")
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, delta: timedelta) -> datetime:
        if delta < timedelta(0):
            raise ValueError("Clock cannot move backwards")
        self._instant = self._instant + delta
        return self._instant

    def set(self, instant: datetime) -> None:
        if instant < self._instant:
            raise ValueError("Clock cannot move backwards")
        self._instant = instant
