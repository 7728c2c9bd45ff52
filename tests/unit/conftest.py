"""
Shared fixtures for lifecycle tests.

All times are pinned. NOW is Monday 2024-01-15 10:00 UTC, which makes
Monday follow-ups due "today" unless a test says otherwise.
"""

from datetime import datetime, timedelta, timezone

import pytest

from coachdesk.core.lifecycle.models import FollowUpDay, OnboardingState
from coachdesk.core.lifecycle.onboarding import create_client
from coachdesk.core.lifecycle.subscriptions import activate


NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_client():
    """Factory for not-yet-activated clients."""
    def _make(
        code: int = 1,
        onboarding_state: OnboardingState = OnboardingState.FULL,
        name: str = "Asha Rao",
        mobile_number: str = "+91 98765 43210",
        created_at: datetime = NOW,
    ):
        return create_client(
            code=code,
            name=name,
            mobile_number=mobile_number,
            onboarding_state=onboarding_state,
            now=created_at,
        )
    return _make


@pytest.fixture
def make_active_client(make_client):
    """Factory for Full onboarded clients with one subscription period."""
    def _make(
        code: int = 1,
        start: datetime = NOW,
        plan_days: int = 30,
        extra_days: int = 0,
        follow_up_day: FollowUpDay = FollowUpDay.MONDAY,
        name: str = "Asha Rao",
    ):
        client = make_client(code=code, name=name)
        return activate(client, plan_days, extra_days, start, follow_up_day, now=start)
    return _make


@pytest.fixture
def client_ending_at(make_active_client):
    """An activated client whose current period ends exactly at `end`."""
    def _make(end: datetime, code: int = 1):
        return make_active_client(code=code, start=end - timedelta(days=1), plan_days=1)
    return _make
