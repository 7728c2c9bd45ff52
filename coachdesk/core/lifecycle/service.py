"""
Client lifecycle service.

Ties the pure lifecycle rules to storage. Each action is addressed by
client code and runs the same way:

1. Load a fresh snapshot from the repository
2. Apply a pure transition (raises LifecycleError if not allowed)
3. Save the new snapshot

A rejected action raises before step 3, so nothing is written. The
service holds no client state between calls; serialising concurrent
writes to one client is the repository's business.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Optional, Protocol

from . import followup, onboarding, pauses, progress, renewals, status, subscriptions
from .clock import Clock, SystemClock
from .directory import search_clients
from .errors import LifecycleError
from .models import (
    ClientEntity,
    ClientView,
    ClientSummary,
    DisplayStatus,
    FollowUpDay,
    OnboardingState,
)
from .progress import Measurements
from .renewals import ReferenceMonth
from .status import EXPIRING_WINDOW, ClientMetrics, StatusFilter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ClientRepository(Protocol):
    """
    Storage for client snapshots.

    The service only needs whole-entity reads and writes. Whether that's
    a Snowflake table, an in-memory dict or something else is up to the
    implementation.
    """

    def get_client(self, code: int) -> ClientEntity:
        """Load one client. Raises ClientNotFound if the code is unknown."""
        ...

    def save_client(self, client: ClientEntity) -> None:
        """Insert or replace the snapshot for client.code."""
        ...

    def list_clients(self) -> list[ClientEntity]:
        ...

    def list_summaries(self) -> list[ClientSummary]:
        """Every client as a ClientSummary, without full history."""
        ...

    def next_code(self) -> int:
        """The code the next created client should get."""
        ...


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClientDetail:
    """A client with everything derived from it at one instant."""
    client: ClientEntity
    status: DisplayStatus
    follow_up_due: bool
    follow_up: followup.FollowUpStatus


@dataclass(frozen=True)
class SummaryView:
    summary: ClientSummary
    status: DisplayStatus


@dataclass(frozen=True)
class DashboardSnapshot:
    month: ReferenceMonth
    metrics: ClientMetrics
    renewal_opportunities: int
    follow_ups_due: int


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ClientLifecycleService:
    """
    Applies lifecycle actions to stored clients.

    The expiring window and coach timezone are injected once so every
    consumer (profile badge, list filters, dashboard) agrees on them.
    """

    def __init__(
        self,
        repository: ClientRepository,
        clock: Optional[Clock] = None,
        expiring_window: timedelta = EXPIRING_WINDOW,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._repository = repository
        self._clock = clock or SystemClock()
        self._expiring_window = expiring_window
        self._tz = tz

    @property
    def expiring_window(self) -> timedelta:
        return self._expiring_window

    def now(self) -> datetime:
        """Current instant in the coach's timezone."""
        return self._clock.now().astimezone(self._tz)

    # -----------------------------------------------------------------------
    # Mutating actions
    # -----------------------------------------------------------------------

    def create_client(
        self,
        name: str,
        mobile_number: str,
        onboarding_state: OnboardingState,
        plan_duration_days: Optional[int] = None,
        notes: str = "",
    ) -> ClientEntity:
        code = self._repository.next_code()
        try:
            client = onboarding.create_client(
                code=code,
                name=name,
                mobile_number=mobile_number,
                onboarding_state=onboarding_state,
                now=self.now(),
                plan_duration_days=plan_duration_days,
                notes=notes,
            )
        except LifecycleError as e:
            self._log_rejected("create_client", e)
            raise

        self._repository.save_client(client)
        logger.info(
            "Client created",
            extra={"client_code": code, "onboarding_state": onboarding_state.value},
        )
        return client

    def convert_to_full(self, code: int) -> ClientEntity:
        return self._apply(code, "convert_to_full", onboarding.convert_to_full)

    def change_onboarding_state(self, code: int, state: OnboardingState) -> ClientEntity:
        return self._apply(
            code,
            "change_onboarding_state",
            lambda client: onboarding.change_onboarding_state(client, state),
        )

    def activate(
        self,
        code: int,
        plan_duration_days: int,
        extra_days: int,
        start_date: datetime,
        follow_up_day: FollowUpDay,
    ) -> ClientEntity:
        now = self.now()
        return self._apply(
            code,
            "activate",
            lambda client: subscriptions.activate(
                client, plan_duration_days, extra_days, start_date, follow_up_day, now
            ),
        )

    def renew(
        self,
        code: int,
        plan_duration_days: int,
        extra_days: int,
        start_date: datetime,
    ) -> ClientEntity:
        now = self.now()
        return self._apply(
            code,
            "renew",
            lambda client: subscriptions.renew(
                client, plan_duration_days, extra_days, start_date, now
            ),
        )

    def expire_immediately(self, code: int) -> ClientEntity:
        now = self.now()
        return self._apply(
            code, "expire_immediately",
            lambda client: subscriptions.expire_immediately(client, now),
        )

    def pause(self, code: int, duration_days: int, reason: str) -> ClientEntity:
        now = self.now()
        return self._apply(
            code, "pause",
            lambda client: pauses.pause(client, duration_days, reason, now),
        )

    def resume(self, code: int) -> ClientEntity:
        return self._apply(code, "resume", pauses.resume)

    def record_follow_up(
        self,
        code: int,
        follow_up_day: FollowUpDay,
        done: bool,
        notes: str,
    ) -> ClientEntity:
        now = self.now()
        return self._apply(
            code, "record_follow_up",
            lambda client: followup.record_follow_up(client, follow_up_day, done, notes, now),
        )

    def set_follow_up_day(self, code: int, follow_up_day: FollowUpDay) -> ClientEntity:
        return self._apply(
            code, "set_follow_up_day",
            lambda client: followup.set_follow_up_day(client, follow_up_day),
        )

    def add_progress(self, code: int, measurements: Measurements) -> ClientEntity:
        now = self.now()
        return self._apply(
            code, "add_progress",
            lambda client: progress.add_progress(client, measurements, now),
        )

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    def get_client(self, code: int) -> ClientDetail:
        return self.detail(self._repository.get_client(code))

    def list_clients(self) -> list[ClientEntity]:
        return self._repository.list_clients()

    def list_summaries(
        self,
        status_filter: StatusFilter = StatusFilter.ALL,
        query: str = "",
    ) -> list[SummaryView]:
        now = self.now()
        summaries = self._repository.list_summaries()
        summaries = search_clients(summaries, query)
        summaries = status.filter_clients(summaries, status_filter, now, self._expiring_window)
        return [
            SummaryView(summary=summary, status=self.resolve(summary, now))
            for summary in summaries
        ]

    def resolve(self, client: ClientView, now: Optional[datetime] = None) -> DisplayStatus:
        return status.resolve(client, now or self.now(), self._expiring_window)

    def expiring_clients(self) -> list[ClientSummary]:
        return status.expiring_clients(
            self._repository.list_summaries(), self.now(), self._expiring_window
        )

    def renewal_opportunities(self, month: Optional[ReferenceMonth] = None) -> list[ClientSummary]:
        now = self.now()
        month = month or ReferenceMonth.containing(now, self._tz)
        return renewals.renewal_opportunities(
            self._repository.list_summaries(), month, now, self._tz, self._expiring_window
        )

    def follow_ups_due(self) -> list[ClientEntity]:
        return followup.clients_due(self._repository.list_clients(), self.now())

    def dashboard(self) -> DashboardSnapshot:
        now = self.now()
        month = ReferenceMonth.containing(now, self._tz)
        summaries = self._repository.list_summaries()
        return DashboardSnapshot(
            month=month,
            metrics=status.compute_client_metrics(summaries, now, self._expiring_window),
            renewal_opportunities=len(renewals.renewal_opportunities(
                summaries, month, now, self._tz, self._expiring_window
            )),
            follow_ups_due=len(followup.clients_due(self._repository.list_clients(), now)),
        )

    def detail(self, client: ClientEntity, now: Optional[datetime] = None) -> ClientDetail:
        """Resolve everything a profile page shows for one snapshot."""
        now = now or self.now()
        return ClientDetail(
            client=client,
            status=self.resolve(client, now),
            follow_up_due=followup.is_due(client, now),
            follow_up=followup.latest_status(client),
        )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _apply(
        self,
        code: int,
        action: str,
        transition: Callable[[ClientEntity], ClientEntity],
    ) -> ClientEntity:
        try:
            client = self._repository.get_client(code)
            updated = transition(client)
        except LifecycleError as e:
            self._log_rejected(action, e)
            raise

        self._repository.save_client(updated)
        logger.info(
            "Lifecycle action applied",
            extra={
                "action": action,
                "client_code": code,
                "raw_status": updated.raw_status.value,
                "end_date": updated.end_date.isoformat() if updated.end_date else None,
            },
        )
        return updated

    def _log_rejected(self, action: str, error: LifecycleError) -> None:
        logger.warning(
            "Lifecycle action rejected",
            extra={
                "action": action,
                "client_code": error.client_code,
                "error_kind": error.kind.value,
                "error": error.message,
            },
        )
