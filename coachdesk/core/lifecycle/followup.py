"""
Weekly follow-up scheduling.

Each activated client has a weekday for check-ins. A follow-up is due
when today is that weekday and nothing has been recorded yet today.
"Today" is the calendar date of `now` in whatever timezone `now`
carries; callers pass `now` in the coach's timezone.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from .errors import MissingFollowUpDay, NotActivated
from .models import ClientEntity, FollowUpDay, FollowUpEntry


@dataclass(frozen=True)
class FollowUpStatus:
    """The done/not-done indicator shown on a client's profile."""
    is_done: bool
    latest_entry: Optional[FollowUpEntry]


def _local_date(instant: datetime, reference: datetime) -> date:
    if reference.tzinfo is None:
        return instant.date()
    return instant.astimezone(reference.tzinfo).date()


def has_entry_on(history: Iterable[FollowUpEntry], now: datetime) -> bool:
    today = now.date()
    return any(_local_date(entry.timestamp, now) == today for entry in history)


def is_due(client: ClientEntity, now: datetime) -> bool:
    if client.follow_up_day is None or client.activated_at is None:
        return False
    if now.weekday() != client.follow_up_day.ordinal:
        return False
    return not has_entry_on(client.follow_up_history, now)


def record_follow_up(
    client: ClientEntity,
    follow_up_day: FollowUpDay,
    done: bool,
    notes: str,
    now: datetime,
) -> ClientEntity:
    """
    Append a follow-up entry.

    Storage accepts empty notes; requiring notes when marking done is a
    rule of the mark-done form, not of the ledger.
    """
    if client.follow_up_day is None:
        raise MissingFollowUpDay("Client has no follow-up day set", client.code)

    entry = FollowUpEntry(
        timestamp=now,
        follow_up_day=follow_up_day,
        done=done,
        notes=notes.strip(),
    )
    return replace(client, follow_up_history=client.follow_up_history + (entry,))


def set_follow_up_day(client: ClientEntity, follow_up_day: FollowUpDay) -> ClientEntity:
    if not client.is_activated:
        raise NotActivated(
            "Follow-up day can only be set once the client is activated", client.code
        )
    return replace(client, follow_up_day=follow_up_day)


def latest_entry(history: Sequence[FollowUpEntry]) -> Optional[FollowUpEntry]:
    """Most recent entry by timestamp; on a tie the later-inserted one wins."""
    latest: Optional[FollowUpEntry] = None
    for entry in history:
        if latest is None or entry.timestamp >= latest.timestamp:
            latest = entry
    return latest


def latest_status(client: ClientEntity) -> FollowUpStatus:
    entry = latest_entry(client.follow_up_history)
    return FollowUpStatus(is_done=entry.done if entry else False, latest_entry=entry)


def clients_due(clients: Iterable[ClientEntity], now: datetime) -> list[ClientEntity]:
    return [client for client in clients if is_due(client, now)]


def clients_for_day(clients: Iterable[ClientEntity], day: FollowUpDay) -> list[ClientEntity]:
    return [
        client for client in clients
        if client.is_activated and client.follow_up_day == day
    ]
