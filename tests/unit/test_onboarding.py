"""Unit tests for client creation and the onboarding state machine."""

from datetime import timedelta

import pytest

from coachdesk.core.lifecycle.errors import (
    ErrorKind,
    InvalidClientDetails,
    InvalidDuration,
    InvalidTransition,
)
from coachdesk.core.lifecycle.models import FollowUpDay, OnboardingState, RawStatus
from coachdesk.core.lifecycle.onboarding import (
    change_onboarding_state,
    convert_to_full,
    create_client,
    mobile_number_error,
)
from coachdesk.core.lifecycle.subscriptions import activate


class TestCreateClient:

    def test_new_client_is_not_activated(self, now):
        client = create_client(1, "Asha Rao", "9876543210", OnboardingState.HALF, now)

        assert not client.is_activated
        assert client.subscriptions == ()
        assert client.raw_status == RawStatus.ACTIVE
        assert client.follow_up_day is None
        assert client.created_at == now

    def test_name_and_mobile_are_trimmed(self, now):
        client = create_client(1, "  Asha Rao ", " 98765 43210 ", OnboardingState.FULL, now)

        assert client.name == "Asha Rao"
        assert client.mobile_number == "98765 43210"

    def test_initial_plan_is_kept_for_reference(self, now):
        client = create_client(
            1, "Asha", "98765", OnboardingState.FULL, now, plan_duration_days=90
        )

        assert client.initial_plan_days == 90
        assert client.end_date is None

    def test_empty_name_is_rejected(self, now):
        with pytest.raises(InvalidClientDetails) as exc_info:
            create_client(1, "   ", "98765", OnboardingState.HALF, now)

        assert exc_info.value.kind == ErrorKind.INVALID_CLIENT_DETAILS
        assert exc_info.value.client_code == 1

    @pytest.mark.parametrize("mobile_number", ["", "   ", "call me"])
    def test_unusable_mobile_number_is_rejected(self, mobile_number, now):
        with pytest.raises(InvalidClientDetails):
            create_client(1, "Asha", mobile_number, OnboardingState.HALF, now)

    def test_zero_day_initial_plan_is_rejected(self, now):
        with pytest.raises(InvalidDuration):
            create_client(1, "Asha", "98765", OnboardingState.HALF, now, plan_duration_days=0)


class TestMobileNumberError:

    def test_valid_number_has_no_error(self):
        assert mobile_number_error("+91 98765-43210") is None

    def test_messages_explain_the_problem(self):
        assert mobile_number_error("") == "Mobile number is required"
        assert mobile_number_error("abc") == "Mobile number must contain digits"


class TestOnboardingStateMachine:

    def test_convert_half_to_full(self, make_client):
        client = make_client(onboarding_state=OnboardingState.HALF)

        converted = convert_to_full(client)

        assert converted.onboarding_state == OnboardingState.FULL
        assert client.onboarding_state == OnboardingState.HALF

    def test_converting_twice_is_rejected(self, make_client):
        """The second conversion has nothing to do, so it's refused."""
        converted = convert_to_full(make_client(onboarding_state=OnboardingState.HALF))

        with pytest.raises(InvalidTransition):
            convert_to_full(converted)

    def test_full_to_half_is_rejected(self, make_client):
        with pytest.raises(InvalidTransition, match="half to full"):
            change_onboarding_state(make_client(), OnboardingState.HALF)

    def test_state_is_frozen_after_activation(self, make_active_client):
        client = make_active_client()

        with pytest.raises(InvalidTransition, match="activated"):
            change_onboarding_state(client, OnboardingState.HALF)

    def test_converting_activated_client_always_fails(self, make_active_client):
        """Rejection doesn't change anything, so the second try fails the same way."""
        client = make_active_client()

        for _ in range(2):
            with pytest.raises(InvalidTransition):
                convert_to_full(client)

        assert client.onboarding_state == OnboardingState.FULL

    def test_half_then_full_then_activate(self, make_client, now):
        """The only road to a paid plan goes through Full onboarding."""
        client = convert_to_full(make_client(onboarding_state=OnboardingState.HALF))

        active = activate(client, 30, 0, now, FollowUpDay.FRIDAY, now)

        assert active.is_activated
        assert active.end_date == now + timedelta(days=30)
