"""
Subscription ledger: activation, renewal and immediate expiry.

The ledger is append-only. Renewing adds a period instead of stretching
the old one, and the newest period is always the current one. A renewal
may overlap the previous period or leave a gap; the coach decides when
the new commitment starts.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from .errors import ActivationBlocked, InvalidDuration, NotActivated
from .models import ClientEntity, FollowUpDay, OnboardingState, SubscriptionPeriod

logger = logging.getLogger(__name__)


def _validate_durations(client: ClientEntity, plan_duration_days: int, extra_days: int) -> None:
    if plan_duration_days < 1:
        raise InvalidDuration("Plan duration must be at least 1 day", client.code)
    if extra_days < 0:
        raise InvalidDuration("Extra days cannot be negative", client.code)


def _require_activated(client: ClientEntity, action: str) -> SubscriptionPeriod:
    current = client.current_subscription
    if current is None:
        raise NotActivated(f"Cannot {action} a client that was never activated", client.code)
    return current


def build_period(
    plan_duration_days: int,
    extra_days: int,
    start_date: datetime,
    created_at: datetime,
) -> SubscriptionPeriod:
    return SubscriptionPeriod(
        plan_duration_days=plan_duration_days,
        extra_days=extra_days,
        start_date=start_date,
        end_date=start_date + timedelta(days=plan_duration_days + extra_days),
        created_at=created_at,
    )


def replace_current(client: ClientEntity, period: SubscriptionPeriod) -> ClientEntity:
    """Swap the current period for an updated copy of it."""
    return replace(client, subscriptions=client.subscriptions[:-1] + (period,))


def activate(
    client: ClientEntity,
    plan_duration_days: int,
    extra_days: int,
    start_date: datetime,
    follow_up_day: FollowUpDay,
    now: datetime,
) -> ClientEntity:
    """
    Start the client's first paid plan.

    One-shot: a second call fails because the client is already
    activated.
    """
    if client.is_activated:
        raise ActivationBlocked("Client is already activated", client.code)
    if client.onboarding_state != OnboardingState.FULL:
        raise ActivationBlocked(
            "Client must complete full onboarding before activation", client.code
        )
    _validate_durations(client, plan_duration_days, extra_days)

    period = build_period(plan_duration_days, extra_days, start_date, created_at=now)
    return replace(
        client,
        activated_at=start_date,
        subscriptions=(period,),
        follow_up_day=follow_up_day,
    )


def renew(
    client: ClientEntity,
    plan_duration_days: int,
    extra_days: int,
    start_date: datetime,
    now: datetime,
) -> ClientEntity:
    _require_activated(client, "renew")
    _validate_durations(client, plan_duration_days, extra_days)

    period = build_period(plan_duration_days, extra_days, start_date, created_at=now)
    return replace(client, subscriptions=client.subscriptions + (period,))


def expire_immediately(client: ClientEntity, now: datetime) -> ClientEntity:
    """
    End the current period right now (early termination).

    There is no undo; bringing the client back means renewing.
    """
    current = _require_activated(client, "expire")
    if current.end_date < now:
        logger.debug(
            "Expiring a period that already ended",
            extra={"client_code": client.code, "end_date": current.end_date.isoformat()},
        )
    return replace_current(client, replace(current, end_date=now))
