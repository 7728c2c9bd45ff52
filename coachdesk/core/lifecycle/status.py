"""
Status resolution: what state is a client in right now?

Status is derived, never stored. Every read resolves it again from the
snapshot and the current time, so there's no stored status to drift
away from the data it was computed from.

Resolution order (first match wins):
1. Not activated        -> Onboarded(onboarding state)
2. Raw status PAUSED     -> Paused, even if the frozen end date has passed
3. end_date <= now       -> Expired
4. end_date - now <= window -> Expiring
5. otherwise             -> Active

Paused beats Expired because the pause extension is only applied on
resume; until then the stored end date understates the real one.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, TypeVar

from .errors import InconsistentRecord
from .models import (
    Active,
    ClientView,
    DisplayStatus,
    Expired,
    Expiring,
    Onboarded,
    OnboardingState,
    Paused,
    RawStatus,
    StatusKind,
)


logger = logging.getLogger(__name__)

EXPIRING_WINDOW_DAYS = 10
EXPIRING_WINDOW = timedelta(days=EXPIRING_WINDOW_DAYS)

C = TypeVar("C", bound=ClientView)


def resolve(
    client: ClientView,
    now: datetime,
    expiring_window: timedelta = EXPIRING_WINDOW,
) -> DisplayStatus:
    """Derive the display status of a client at `now`."""
    if client.activated_at is None:
        return Onboarded(client.onboarding_state)

    if client.raw_status == RawStatus.PAUSED:
        return Paused()

    end_date = client.end_date
    if end_date is None:
        logger.warning(
            "Activated client without a subscription period",
            extra={"client_code": client.code},
        )
        raise InconsistentRecord(
            f"Client {client.code} is activated but has no subscription period",
            client.code,
        )

    if end_date <= now:
        return Expired()
    if end_date - now <= expiring_window:
        return Expiring()
    return Active()


# Every StatusKind must appear here; tests check the mapping is total.
_KIND_LABELS = {
    StatusKind.ACTIVE: "Active",
    StatusKind.PAUSED: "Paused",
    StatusKind.EXPIRING: "Expiring",
    StatusKind.EXPIRED: "Expired",
}

_ONBOARDING_LABELS = {
    OnboardingState.HALF: "Half Onboarded",
    OnboardingState.FULL: "Full Onboarded",
}


def status_label(status: DisplayStatus) -> str:
    """Human-readable badge text for a status."""
    if isinstance(status, Onboarded):
        return _ONBOARDING_LABELS[status.state]
    return _KIND_LABELS[status.kind]


# ---------------------------------------------------------------------------
# Dashboard metrics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClientMetrics:
    """Counts shown on the coach's dashboard."""
    total: int = 0
    half_onboarded: int = 0
    full_onboarded: int = 0
    active: int = 0
    expiring: int = 0
    paused: int = 0
    expired: int = 0

    @property
    def activated(self) -> int:
        return self.active + self.expiring + self.paused + self.expired


def compute_client_metrics(
    clients: Iterable[ClientView],
    now: datetime,
    expiring_window: timedelta = EXPIRING_WINDOW,
) -> ClientMetrics:
    counts = {kind: 0 for kind in StatusKind}
    onboarding = {state: 0 for state in OnboardingState}
    total = 0

    for client in clients:
        total += 1
        status = resolve(client, now, expiring_window)
        counts[status.kind] += 1
        if isinstance(status, Onboarded):
            onboarding[status.state] += 1

    return ClientMetrics(
        total=total,
        half_onboarded=onboarding[OnboardingState.HALF],
        full_onboarded=onboarding[OnboardingState.FULL],
        active=counts[StatusKind.ACTIVE],
        expiring=counts[StatusKind.EXPIRING],
        paused=counts[StatusKind.PAUSED],
        expired=counts[StatusKind.EXPIRED],
    )


# ---------------------------------------------------------------------------
# List filters
# ---------------------------------------------------------------------------

class StatusFilter(Enum):
    """Tabs on the clients list."""
    ALL = "all"
    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    HALF = "half"
    FULL = "full"


def matches_filter(status: DisplayStatus, status_filter: StatusFilter) -> bool:
    """
    Does a resolved status belong under a list tab?

    The "active" tab means "paying and running": it includes clients
    that are expiring soon, since they haven't lapsed yet.
    """
    if status_filter == StatusFilter.ALL:
        return True
    if status_filter == StatusFilter.ACTIVE:
        return status.kind in (StatusKind.ACTIVE, StatusKind.EXPIRING)
    if status_filter == StatusFilter.PAUSED:
        return status.kind == StatusKind.PAUSED
    if status_filter == StatusFilter.EXPIRING:
        return status.kind == StatusKind.EXPIRING
    if status_filter == StatusFilter.EXPIRED:
        return status.kind == StatusKind.EXPIRED
    if status_filter == StatusFilter.HALF:
        return isinstance(status, Onboarded) and status.state == OnboardingState.HALF
    if status_filter == StatusFilter.FULL:
        return isinstance(status, Onboarded) and status.state == OnboardingState.FULL
    raise ValueError(f"Unhandled status filter: {status_filter!r}")


def filter_clients(
    clients: Iterable[C],
    status_filter: StatusFilter,
    now: datetime,
    expiring_window: timedelta = EXPIRING_WINDOW,
) -> list[C]:
    return [
        client for client in clients
        if matches_filter(resolve(client, now, expiring_window), status_filter)
    ]


def expiring_clients(
    clients: Iterable[C],
    now: datetime,
    expiring_window: timedelta = EXPIRING_WINDOW,
) -> list[C]:
    """Clients inside the expiring window, soonest end date first."""
    matches = filter_clients(clients, StatusFilter.EXPIRING, now, expiring_window)
    return sorted(matches, key=lambda client: client.end_date)
