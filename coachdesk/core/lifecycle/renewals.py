"""
Renewal opportunities: active clients whose plan ends this month.

Drives the "renewals due this month" dashboard number. Pure filter,
no mutation.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, TypeVar

from .models import Active, ClientView
from .status import EXPIRING_WINDOW, resolve


# Smallest step a datetime can take.
RESOLUTION = timedelta(microseconds=1)

C = TypeVar("C", bound=ClientView)


@dataclass(frozen=True)
class ReferenceMonth:
    """A calendar month, independent of any timezone until bounds() is asked."""
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError("Month must be between 1 and 12")

    @classmethod
    def containing(cls, instant: datetime, tz: tzinfo = timezone.utc) -> "ReferenceMonth":
        local = instant.astimezone(tz)
        return cls(local.year, local.month)

    def next(self) -> "ReferenceMonth":
        if self.month == 12:
            return ReferenceMonth(self.year + 1, 1)
        return ReferenceMonth(self.year, self.month + 1)

    def bounds(self, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
        """
        First and last instant of the month, both inclusive.

        month_end is one RESOLUTION step before the next month starts,
        i.e. 23:59:59.999999 on the last day.
        """
        month_start = datetime(self.year, self.month, 1, tzinfo=tz)
        following = self.next()
        next_start = datetime(following.year, following.month, 1, tzinfo=tz)
        return month_start, next_start - RESOLUTION


def renewal_opportunities(
    clients: Iterable[C],
    month: ReferenceMonth,
    now: datetime,
    tz: tzinfo = timezone.utc,
    expiring_window: timedelta = EXPIRING_WINDOW,
) -> list[C]:
    """
    Clients that are Active at `now` and whose current period ends in `month`.

    Paused and expired clients are left out, and so are clients already
    inside the expiring window: those show up in the expiring list.
    """
    month_start, month_end = month.bounds(tz)
    matches = []
    for client in clients:
        if not client.is_activated:
            continue
        if not isinstance(resolve(client, now, expiring_window), Active):
            continue
        end_date = client.end_date
        if end_date is not None and month_start <= end_date <= month_end:
            matches.append(client)
    return matches
