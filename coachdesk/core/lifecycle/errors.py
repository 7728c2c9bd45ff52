"""
Structured errors for client lifecycle actions.

Every rejected action raises a LifecycleError carrying an ErrorKind.
The kind is what callers branch on; the message is for logs. Turning a
kind into something a coach reads is the presentation layer's job.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Logical reasons a lifecycle action can be rejected."""
    ACTIVATION_BLOCKED = "activation_blocked"
    INVALID_TRANSITION = "invalid_transition"
    ALREADY_PAUSED = "already_paused"
    NOT_PAUSED = "not_paused"
    INVALID_DURATION = "invalid_duration"
    MISSING_FOLLOW_UP_DAY = "missing_follow_up_day"
    NOT_FOUND = "not_found"
    NOT_ACTIVATED = "not_activated"
    MISSING_REASON = "missing_reason"
    INVALID_CLIENT_DETAILS = "invalid_client_details"
    INVALID_MEASUREMENT = "invalid_measurement"
    INCONSISTENT_RECORD = "inconsistent_record"


class LifecycleError(Exception):
    """
    Base class for rejected lifecycle actions.

    Raised before any new snapshot is built, so a failed action never
    leaves a half-applied change behind.
    """
    kind: ErrorKind

    def __init__(self, message: str, client_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.client_code = client_code


class ActivationBlocked(LifecycleError):
    """Activation attempted while Half onboarded or already activated."""
    kind = ErrorKind.ACTIVATION_BLOCKED


class InvalidTransition(LifecycleError):
    """Onboarding state change that the state machine does not allow."""
    kind = ErrorKind.INVALID_TRANSITION


class AlreadyPaused(LifecycleError):
    kind = ErrorKind.ALREADY_PAUSED


class NotPaused(LifecycleError):
    kind = ErrorKind.NOT_PAUSED


class InvalidDuration(LifecycleError):
    """Plan or pause days below one, or negative extra days."""
    kind = ErrorKind.INVALID_DURATION


class MissingFollowUpDay(LifecycleError):
    kind = ErrorKind.MISSING_FOLLOW_UP_DAY


class ClientNotFound(LifecycleError):
    """Raised by repositories when a client code doesn't exist."""
    kind = ErrorKind.NOT_FOUND


class NotActivated(LifecycleError):
    """Action needs a paid plan but the client was never activated."""
    kind = ErrorKind.NOT_ACTIVATED


class MissingReason(LifecycleError):
    kind = ErrorKind.MISSING_REASON


class InvalidClientDetails(LifecycleError):
    """Name or mobile number rejected at onboarding."""
    kind = ErrorKind.INVALID_CLIENT_DETAILS


class InvalidMeasurement(LifecycleError):
    kind = ErrorKind.INVALID_MEASUREMENT


class InconsistentRecord(LifecycleError):
    """A stored record contradicts itself, e.g. activated with no period."""
    kind = ErrorKind.INCONSISTENT_RECORD
