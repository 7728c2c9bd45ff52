"""
Domain models for the client lifecycle.

A ClientEntity is a snapshot: everything we know about one client at
the moment it was loaded. Snapshots are frozen. Lifecycle actions never
edit one in place, they build the next snapshot, so a rejected action
can't leave a client half-changed.

No framework imports here. The models should read the same whether the
client came from Snowflake, a test fixture, or a JSON payload.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import ClassVar, Optional, Union


class OnboardingState(Enum):
    """How much setup a not-yet-paying client has completed."""
    HALF = "half"
    FULL = "full"


class RawStatus(Enum):
    """The coach's own active/paused toggle, independent of expiry."""
    ACTIVE = "active"
    PAUSED = "paused"


class FollowUpDay(Enum):
    """
    Weekday a client is checked in with.

    Ordinals follow datetime.weekday() (Monday = 0 ... Sunday = 6) so the
    same numbering is used on both sides of every comparison.
    """
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def ordinal(self) -> int:
        return _WEEKDAY_ORDER.index(self)

    @classmethod
    def from_ordinal(cls, ordinal: int) -> "FollowUpDay":
        return _WEEKDAY_ORDER[ordinal]


_WEEKDAY_ORDER = tuple(FollowUpDay)


@dataclass(frozen=True)
class SubscriptionPeriod:
    """
    One committed plan interval.

    Periods are appended, never edited once superseded. The only fields
    that move on the current period are end_date (pause extension or
    immediate expiry).
    """
    plan_duration_days: int
    extra_days: int
    start_date: datetime
    end_date: datetime
    created_at: datetime

    @property
    def total_days(self) -> int:
        return self.plan_duration_days + self.extra_days


@dataclass(frozen=True)
class PauseRecord:
    """A pause with its length committed up front."""
    timestamp: datetime
    duration_days: int
    reason: str
    resumed: bool = False

    @property
    def is_open(self) -> bool:
        return not self.resumed


@dataclass(frozen=True)
class FollowUpEntry:
    timestamp: datetime
    follow_up_day: FollowUpDay
    done: bool
    notes: str = ""


@dataclass(frozen=True)
class ProgressEntry:
    """Body measurements at one check-in. Not used by lifecycle rules."""
    timestamp: datetime
    weight_kg: float
    neck_inch: float
    chest_inch: float
    waist_inch: float
    hips_inch: float
    thigh_inch: float


@dataclass(frozen=True)
class ClientEntity:
    """
    The aggregate root for one coaching client.

    activated_at and subscriptions move together: a client has a
    subscription period if and only if it has been activated.
    """
    code: int
    name: str
    mobile_number: str
    onboarding_state: OnboardingState
    created_at: datetime
    notes: str = ""
    initial_plan_days: Optional[int] = None
    activated_at: Optional[datetime] = None
    raw_status: RawStatus = RawStatus.ACTIVE
    subscriptions: tuple[SubscriptionPeriod, ...] = ()
    pause_entries: tuple[PauseRecord, ...] = ()
    total_paused_duration: timedelta = timedelta(0)
    follow_up_day: Optional[FollowUpDay] = None
    follow_up_history: tuple[FollowUpEntry, ...] = ()
    progress: tuple[ProgressEntry, ...] = ()

    def __post_init__(self) -> None:
        if self.code < 1:
            raise ValueError("Client code must be a positive integer")
        if (self.activated_at is None) != (not self.subscriptions):
            raise ValueError("activated_at must be set exactly when subscriptions exist")

    @property
    def is_activated(self) -> bool:
        return self.activated_at is not None

    @property
    def current_subscription(self) -> Optional[SubscriptionPeriod]:
        """The most recently appended period, if any."""
        if not self.subscriptions:
            return None
        return self.subscriptions[-1]

    @property
    def end_date(self) -> Optional[datetime]:
        current = self.current_subscription
        return current.end_date if current is not None else None

    def summary(self) -> "ClientSummary":
        return ClientSummary(
            code=self.code,
            name=self.name,
            mobile_number=self.mobile_number,
            onboarding_state=self.onboarding_state,
            activated_at=self.activated_at,
            raw_status=self.raw_status,
            end_date=self.end_date,
            follow_up_day=self.follow_up_day,
        )


@dataclass(frozen=True)
class ClientSummary:
    """
    Lightweight projection for lists and dashboards.

    Carries exactly what the status resolver needs, so list views can be
    resolved without shipping full pause and follow-up history around.
    """
    code: int
    name: str
    mobile_number: str
    onboarding_state: OnboardingState
    activated_at: Optional[datetime]
    raw_status: RawStatus
    end_date: Optional[datetime]
    follow_up_day: Optional[FollowUpDay]

    @property
    def is_activated(self) -> bool:
        return self.activated_at is not None


# Anything the status resolver can read.
ClientView = Union[ClientEntity, ClientSummary]


# ---------------------------------------------------------------------------
# Display status (closed sum type)
# ---------------------------------------------------------------------------

class StatusKind(Enum):
    """Tag shared by the DisplayStatus variants."""
    ONBOARDED = "onboarded"
    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRING = "expiring"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Onboarded:
    """Not activated yet; carries how far onboarding got."""
    state: OnboardingState
    kind: ClassVar[StatusKind] = StatusKind.ONBOARDED


@dataclass(frozen=True)
class Active:
    kind: ClassVar[StatusKind] = StatusKind.ACTIVE


@dataclass(frozen=True)
class Paused:
    kind: ClassVar[StatusKind] = StatusKind.PAUSED


@dataclass(frozen=True)
class Expiring:
    kind: ClassVar[StatusKind] = StatusKind.EXPIRING


@dataclass(frozen=True)
class Expired:
    kind: ClassVar[StatusKind] = StatusKind.EXPIRED


DisplayStatus = Union[Onboarded, Active, Paused, Expiring, Expired]
