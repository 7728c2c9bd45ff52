"""
Client lifecycle rules.

Contains the domain models, the status resolver, the onboarding,
subscription, pause and follow-up transitions, and the service that
applies them to stored clients.
"""

from .errors import ErrorKind, LifecycleError
from .models import (
    Active,
    ClientEntity,
    ClientSummary,
    DisplayStatus,
    Expired,
    Expiring,
    FollowUpDay,
    FollowUpEntry,
    Onboarded,
    OnboardingState,
    Paused,
    PauseRecord,
    ProgressEntry,
    RawStatus,
    StatusKind,
    SubscriptionPeriod,
)
from .service import ClientLifecycleService, ClientRepository
from .status import EXPIRING_WINDOW, resolve

__all__ = [
    "Active",
    "ClientEntity",
    "ClientSummary",
    "DisplayStatus",
    "Expired",
    "Expiring",
    "FollowUpDay",
    "FollowUpEntry",
    "Onboarded",
    "OnboardingState",
    "Paused",
    "PauseRecord",
    "ProgressEntry",
    "RawStatus",
    "StatusKind",
    "SubscriptionPeriod",
    "ErrorKind",
    "LifecycleError",
    "ClientLifecycleService",
    "ClientRepository",
    "EXPIRING_WINDOW",
    "resolve",
]
