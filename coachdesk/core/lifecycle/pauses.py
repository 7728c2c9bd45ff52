"""
Pause and resume.

The pause length is agreed when the pause starts, not measured when it
ends. Resuming pushes the current period's end date out by exactly the
committed number of days, however long the pause actually lasted, so
the coach knows the new end date the moment they press pause.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from .errors import AlreadyPaused, InvalidDuration, MissingReason, NotActivated, NotPaused
from .models import ClientEntity, PauseRecord, RawStatus
from .subscriptions import replace_current


def open_pause(client: ClientEntity) -> Optional[PauseRecord]:
    """The pause record that hasn't been resumed yet, if any."""
    for record in reversed(client.pause_entries):
        if record.is_open:
            return record
    return None


def pause(
    client: ClientEntity,
    duration_days: int,
    reason: str,
    now: datetime,
) -> ClientEntity:
    if not client.is_activated:
        raise NotActivated("Cannot pause a client that was never activated", client.code)
    if client.raw_status == RawStatus.PAUSED or open_pause(client) is not None:
        raise AlreadyPaused("Client is already paused", client.code)
    if duration_days < 1:
        raise InvalidDuration("Pause duration must be at least 1 day", client.code)
    reason = reason.strip()
    if not reason:
        raise MissingReason("A reason is required to pause a client", client.code)

    record = PauseRecord(timestamp=now, duration_days=duration_days, reason=reason)
    return replace(
        client,
        raw_status=RawStatus.PAUSED,
        pause_entries=client.pause_entries + (record,),
    )


def resume(client: ClientEntity) -> ClientEntity:
    """Close the open pause and extend the current period."""
    record = open_pause(client)
    if client.raw_status != RawStatus.PAUSED or record is None:
        raise NotPaused("Client is not currently paused", client.code)

    current = client.current_subscription
    if current is None:
        raise NotActivated("Paused client has no subscription period", client.code)

    extension = timedelta(days=record.duration_days)
    entries = tuple(
        replace(entry, resumed=True) if entry is record else entry
        for entry in client.pause_entries
    )
    extended = replace_current(client, replace(current, end_date=current.end_date + extension))
    return replace(
        extended,
        raw_status=RawStatus.ACTIVE,
        pause_entries=entries,
        total_paused_duration=client.total_paused_duration + extension,
    )
