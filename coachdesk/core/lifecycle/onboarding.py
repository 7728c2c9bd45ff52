"""
Onboarding state machine and client creation.

Two states, one legal move: Half -> Full. Once a client is activated
their onboarding state is frozen for good.
"""

import re
from dataclasses import replace
from datetime import datetime
from typing import Optional

from .errors import InvalidClientDetails, InvalidDuration, InvalidTransition
from .models import ClientEntity, OnboardingState


_DIGIT = re.compile(r"\d")


def normalize_mobile_number(value: str) -> str:
    return value.strip()


def mobile_number_error(value: str) -> Optional[str]:
    """Why a mobile number is unusable, or None if it's fine."""
    normalized = normalize_mobile_number(value)
    if not normalized:
        return "Mobile number is required"
    if not _DIGIT.search(normalized):
        return "Mobile number must contain digits"
    return None


def create_client(
    code: int,
    name: str,
    mobile_number: str,
    onboarding_state: OnboardingState,
    now: datetime,
    plan_duration_days: Optional[int] = None,
    notes: str = "",
) -> ClientEntity:
    """
    Build a brand new, not yet activated client.

    plan_duration_days is what was discussed at onboarding. It's kept for
    reference only; the real plan is fixed at activation.
    """
    name = name.strip()
    if not name:
        raise InvalidClientDetails("Client name cannot be empty", code)

    error = mobile_number_error(mobile_number)
    if error:
        raise InvalidClientDetails(error, code)

    if plan_duration_days is not None and plan_duration_days < 1:
        raise InvalidDuration("Plan duration must be at least 1 day", code)

    return ClientEntity(
        code=code,
        name=name,
        mobile_number=normalize_mobile_number(mobile_number),
        onboarding_state=onboarding_state,
        created_at=now,
        notes=notes.strip(),
        initial_plan_days=plan_duration_days,
    )


def change_onboarding_state(client: ClientEntity, target: OnboardingState) -> ClientEntity:
    if client.is_activated:
        raise InvalidTransition(
            "Cannot change onboarding state of an activated client", client.code
        )
    if client.onboarding_state == target:
        raise InvalidTransition(
            f"Client is already {target.value} onboarded", client.code
        )
    if target != OnboardingState.FULL:
        raise InvalidTransition(
            "Onboarding can only move from half to full", client.code
        )
    return replace(client, onboarding_state=target)


def convert_to_full(client: ClientEntity) -> ClientEntity:
    """Complete onboarding for a Half onboarded client."""
    return change_onboarding_state(client, OnboardingState.FULL)
