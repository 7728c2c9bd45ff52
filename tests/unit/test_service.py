"""
Tests for ClientLifecycleService.

Runs the service against the mock Snowflake repository and a FixedClock,
so every action goes through the real load, transition, save path.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from coachdesk.core.lifecycle.clock import FixedClock, SystemClock
from coachdesk.core.lifecycle.errors import (
    ActivationBlocked,
    AlreadyPaused,
    ClientNotFound,
    InvalidClientDetails,
)
from coachdesk.core.lifecycle.models import (
    Active,
    Expired,
    Expiring,
    FollowUpDay,
    Onboarded,
    OnboardingState,
    Paused,
)
from coachdesk.core.lifecycle.progress import Measurements
from coachdesk.core.lifecycle.renewals import ReferenceMonth
from coachdesk.core.lifecycle.service import ClientLifecycleService
from coachdesk.core.lifecycle.status import StatusFilter
from coachdesk.infrastructure.snowflake.client import MockSnowflakeConnection
from coachdesk.infrastructure.snowflake.repositories.clients import SnowflakeClientRepository


NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
IST = timezone(timedelta(hours=5, minutes=30))
JAN_1 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def repository() -> SnowflakeClientRepository:
    return SnowflakeClientRepository(MockSnowflakeConnection())


@pytest.fixture
def service(repository, clock) -> ClientLifecycleService:
    return ClientLifecycleService(repository=repository, clock=clock)


def onboard_full(service: ClientLifecycleService, name: str = "Asha Rao") -> int:
    return service.create_client(name, "98765 43210", OnboardingState.FULL).code


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class TestClocks:

    def test_fixed_clock_only_moves_forward(self):
        clock = FixedClock(NOW)

        assert clock.advance(timedelta(days=1)) == NOW + timedelta(days=1)
        with pytest.raises(ValueError, match="backwards"):
            clock.set(NOW)

    def test_fixed_clock_needs_timezone(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            FixedClock(datetime(2024, 1, 15))

    def test_system_clock_is_aware_and_monotonic(self):
        clock = SystemClock()

        first = clock.now()
        second = clock.now()

        assert first.tzinfo is not None
        assert second >= first


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class TestCreateClient:

    def test_codes_are_assigned_in_order(self, service):
        first = service.create_client("Asha", "98765", OnboardingState.HALF)
        second = service.create_client("Ravi", "91234", OnboardingState.FULL)

        assert (first.code, second.code) == (1, 2)
        assert first.created_at == NOW

    def test_rejected_creation_saves_nothing(self, service, repository):
        with pytest.raises(InvalidClientDetails):
            service.create_client("", "98765", OnboardingState.HALF)

        assert repository.list_clients() == []


class TestLifecycleJourney:

    def test_half_to_renewal(self, service, clock):
        """Onboard, convert, activate, pause, resume, expire and renew."""
        code = service.create_client("Asha", "98765", OnboardingState.HALF).code
        assert service.get_client(code).status == Onboarded(OnboardingState.HALF)

        service.convert_to_full(code)
        service.activate(code, 30, 0, JAN_1, FollowUpDay.MONDAY)
        assert service.get_client(code).status == Active()

        service.pause(code, 7, "Family trip")
        clock.advance(timedelta(days=30))
        assert service.get_client(code).status == Paused()

        resumed = service.resume(code)
        assert resumed.end_date == datetime(2024, 2, 7, tzinfo=timezone.utc)

        expired = service.expire_immediately(code)
        assert expired.end_date == clock.now()
        assert service.get_client(code).status == Expired()

        service.renew(code, 30, 0, clock.now())
        detail = service.get_client(code)
        assert detail.status == Active()
        assert len(detail.client.subscriptions) == 2

    def test_change_onboarding_state(self, service):
        code = service.create_client("Asha", "98765", OnboardingState.HALF).code

        client = service.change_onboarding_state(code, OnboardingState.FULL)

        assert client.onboarding_state == OnboardingState.FULL

    def test_follow_up_and_progress(self, service):
        code = onboard_full(service)
        service.activate(code, 30, 0, JAN_1, FollowUpDay.MONDAY)
        assert service.get_client(code).follow_up_due

        service.record_follow_up(code, FollowUpDay.MONDAY, True, "Diet on track")
        service.set_follow_up_day(code, FollowUpDay.THURSDAY)
        service.add_progress(code, Measurements(70, 14, 38, 32, 38, 22))

        detail = service.get_client(code)
        assert not detail.follow_up_due
        assert detail.follow_up.is_done
        assert detail.client.follow_up_day == FollowUpDay.THURSDAY
        assert detail.client.progress[0].weight_kg == 70


class TestRejectedActions:

    def test_unknown_code_raises_not_found(self, service):
        with pytest.raises(ClientNotFound):
            service.pause(99, 7, "Travel")

    def test_rejection_leaves_stored_client_unchanged(self, service, repository):
        code = onboard_full(service)
        service.activate(code, 30, 0, JAN_1, FollowUpDay.MONDAY)
        service.pause(code, 7, "Travel")
        before = repository.get_client(code)

        with pytest.raises(AlreadyPaused):
            service.pause(code, 3, "Again")

        assert repository.get_client(code) == before

    def test_half_onboarded_activation_is_blocked(self, service, repository):
        code = service.create_client("Asha", "98765", OnboardingState.HALF).code

        with pytest.raises(ActivationBlocked):
            service.activate(code, 30, 0, JAN_1, FollowUpDay.MONDAY)

        assert not repository.get_client(code).is_activated

    def test_rejection_is_logged(self, service, caplog):
        code = service.create_client("Asha", "98765", OnboardingState.HALF).code

        with caplog.at_level(logging.WARNING, logger="coachdesk.core.lifecycle.service"):
            with pytest.raises(ActivationBlocked):
                service.activate(code, 30, 0, JAN_1, FollowUpDay.MONDAY)

        record = next(r for r in caplog.records if r.message == "Lifecycle action rejected")
        assert record.error_kind == "activation_blocked"
        assert record.client_code == code


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@pytest.fixture
def populated(service):
    """
    At NOW (Mon Jan 15):
    1 half onboarded, 2 active ending Jan 31, 3 expiring ending Jan 20,
    4 paused, 5 expired.
    """
    service.create_client("Asha Rao", "98765", OnboardingState.HALF)
    for name, start, plan, day in [
        ("Ravi Kumar", JAN_1, 30, FollowUpDay.MONDAY),
        ("Meera Iyer", JAN_1, 19, FollowUpDay.FRIDAY),
        ("Kiran Shah", JAN_1, 60, FollowUpDay.WEDNESDAY),
        ("Dev Patel", JAN_1, 7, FollowUpDay.MONDAY),
    ]:
        code = onboard_full(service, name)
        service.activate(code, plan, 0, start, day)
    service.pause(4, 5, "Exams")
    return service


class TestReads:

    def test_list_summaries_resolves_status(self, populated):
        views = populated.list_summaries()

        assert [v.status for v in views] == [
            Onboarded(OnboardingState.HALF), Active(), Expiring(), Paused(), Expired(),
        ]

    def test_list_summaries_filters_and_searches(self, populated):
        active_tab = populated.list_summaries(StatusFilter.ACTIVE)
        searched = populated.list_summaries(query="iyer")

        assert [v.summary.code for v in active_tab] == [2, 3]
        assert [v.summary.code for v in searched] == [3]

    def test_expiring_clients(self, populated):
        assert [s.code for s in populated.expiring_clients()] == [3]

    def test_renewal_opportunities_default_to_this_month(self, populated):
        assert [s.code for s in populated.renewal_opportunities()] == [2]
        assert populated.renewal_opportunities(ReferenceMonth(2024, 3)) == []

    def test_follow_ups_due(self, populated):
        """Client 5 is expired but still has Monday check-ins."""
        assert [c.code for c in populated.follow_ups_due()] == [2, 5]

    def test_dashboard(self, populated):
        snapshot = populated.dashboard()

        assert snapshot.month == ReferenceMonth(2024, 1)
        assert snapshot.metrics.total == 5
        assert snapshot.metrics.half_onboarded == 1
        assert snapshot.metrics.active == 1
        assert snapshot.metrics.expiring == 1
        assert snapshot.metrics.paused == 1
        assert snapshot.metrics.expired == 1
        assert snapshot.renewal_opportunities == 1
        assert snapshot.follow_ups_due == 2

    def test_expiring_window_is_injected(self, repository, clock, populated):
        narrow = ClientLifecycleService(repository, clock, expiring_window=timedelta(days=2))

        assert narrow.get_client(3).status == Active()
        assert populated.get_client(3).status == Expiring()

    def test_now_is_in_coach_timezone(self, repository, clock):
        service = ClientLifecycleService(repository, clock, tz=IST)

        assert service.now().utcoffset() == timedelta(hours=5, minutes=30)
        assert service.now() == NOW
