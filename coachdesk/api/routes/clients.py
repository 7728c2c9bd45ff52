"""
Client lifecycle API endpoints.

Every mutating endpoint maps to one lifecycle action and returns the
client as it looks afterwards, with status re-derived from the saved
snapshot. Rejected actions raise LifecycleError, which the application's
exception handler turns into a structured error response.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field, model_validator

from ...config.settings import Settings
from ...core.lifecycle.directory import format_client_code
from ...core.lifecycle.models import (
    ClientEntity,
    DisplayStatus,
    FollowUpDay,
    Onboarded,
    OnboardingState,
    RawStatus,
)
from ...core.lifecycle.progress import Measurements
from ...core.lifecycle.service import ClientDetail, SummaryView
from ...core.lifecycle.status import StatusFilter, status_label
from ..dependencies import AuthenticatedUser, LifecycleServiceDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class CreateClientRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    mobile_number: str = Field(min_length=1, max_length=32)
    onboarding_state: OnboardingState
    plan_duration_days: Optional[int] = Field(None, ge=1)
    notes: str = Field("", max_length=2000)


class ActivateRequest(BaseModel):
    plan_duration_days: int = Field(ge=1, description="Length of the plan in days")
    extra_days: int = Field(0, ge=0, description="Bonus days added on top of the plan")
    start_date: datetime = Field(description="Plan start. Naive values are read in the coach's timezone.")
    follow_up_day: FollowUpDay


class RenewRequest(BaseModel):
    plan_duration_days: int = Field(ge=1)
    extra_days: int = Field(0, ge=0)
    start_date: datetime


class PauseRequest(BaseModel):
    duration_days: int = Field(ge=1, description="Days the plan end date moves out on resume")
    reason: str = Field(min_length=1, max_length=500)


class FollowUpRequest(BaseModel):
    """
    Record a follow-up.

    Marking a follow-up done requires notes on what was discussed.
    """
    follow_up_day: FollowUpDay
    done: bool
    notes: str = Field("", max_length=2000)

    @model_validator(mode="after")
    def _notes_when_done(self) -> "FollowUpRequest":
        if self.done and not self.notes.strip():
            raise ValueError("Notes are required when marking a follow-up as done")
        return self


class FollowUpDayRequest(BaseModel):
    follow_up_day: FollowUpDay


class ProgressRequest(BaseModel):
    weight_kg: float = Field(gt=0)
    neck_inch: float = Field(gt=0)
    chest_inch: float = Field(gt=0)
    waist_inch: float = Field(gt=0)
    hips_inch: float = Field(gt=0)
    thigh_inch: float = Field(gt=0)


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class StatusPayload(BaseModel):
    kind: str = Field(description="onboarded, active, paused, expiring or expired")
    label: str = Field(description="Badge text")
    onboarding_state: Optional[OnboardingState] = Field(
        None, description="Only set when kind is onboarded"
    )


class SubscriptionItem(BaseModel):
    plan_duration_days: int
    extra_days: int
    start_date: datetime
    end_date: datetime
    created_at: datetime


class PauseItem(BaseModel):
    timestamp: datetime
    duration_days: int
    reason: str
    resumed: bool


class FollowUpItem(BaseModel):
    timestamp: datetime
    follow_up_day: FollowUpDay
    done: bool
    notes: str


class ProgressItem(BaseModel):
    timestamp: datetime
    weight_kg: float
    neck_inch: float
    chest_inch: float
    waist_inch: float
    hips_inch: float
    thigh_inch: float


class ClientSummaryResponse(BaseModel):
    code: int
    display_code: str
    name: str
    mobile_number: str
    onboarding_state: OnboardingState
    activated_at: Optional[datetime]
    raw_status: RawStatus
    end_date: Optional[datetime]
    follow_up_day: Optional[FollowUpDay]
    status: StatusPayload


class ClientDetailResponse(BaseModel):
    code: int
    display_code: str
    name: str
    mobile_number: str
    notes: str
    created_at: datetime
    onboarding_state: OnboardingState
    initial_plan_days: Optional[int]
    activated_at: Optional[datetime]
    raw_status: RawStatus
    end_date: Optional[datetime]
    status: StatusPayload
    total_paused_days: float
    follow_up_day: Optional[FollowUpDay]
    follow_up_due: bool = Field(description="Today is the follow-up day and nothing is recorded yet")
    follow_up_done: bool = Field(description="Done flag of the most recent follow-up entry")
    subscriptions: list[SubscriptionItem]
    pause_entries: list[PauseItem]
    follow_up_history: list[FollowUpItem]
    progress: list[ProgressItem]


# ---------------------------------------------------------------------------
# Converters
# ---------------------------------------------------------------------------

def status_payload(display_status: DisplayStatus) -> StatusPayload:
    return StatusPayload(
        kind=display_status.kind.value,
        label=status_label(display_status),
        onboarding_state=display_status.state if isinstance(display_status, Onboarded) else None,
    )


def summary_response(view: SummaryView) -> ClientSummaryResponse:
    summary = view.summary
    return ClientSummaryResponse(
        code=summary.code,
        display_code=format_client_code(summary.code),
        name=summary.name,
        mobile_number=summary.mobile_number,
        onboarding_state=summary.onboarding_state,
        activated_at=summary.activated_at,
        raw_status=summary.raw_status,
        end_date=summary.end_date,
        follow_up_day=summary.follow_up_day,
        status=status_payload(view.status),
    )


def detail_response(detail: ClientDetail) -> ClientDetailResponse:
    client: ClientEntity = detail.client
    return ClientDetailResponse(
        code=client.code,
        display_code=format_client_code(client.code),
        name=client.name,
        mobile_number=client.mobile_number,
        notes=client.notes,
        created_at=client.created_at,
        onboarding_state=client.onboarding_state,
        initial_plan_days=client.initial_plan_days,
        activated_at=client.activated_at,
        raw_status=client.raw_status,
        end_date=client.end_date,
        status=status_payload(detail.status),
        total_paused_days=client.total_paused_duration.total_seconds() / 86400,
        follow_up_day=client.follow_up_day,
        follow_up_due=detail.follow_up_due,
        follow_up_done=detail.follow_up.is_done,
        subscriptions=[
            SubscriptionItem(
                plan_duration_days=period.plan_duration_days,
                extra_days=period.extra_days,
                start_date=period.start_date,
                end_date=period.end_date,
                created_at=period.created_at,
            )
            for period in client.subscriptions
        ],
        pause_entries=[
            PauseItem(
                timestamp=record.timestamp,
                duration_days=record.duration_days,
                reason=record.reason,
                resumed=record.resumed,
            )
            for record in client.pause_entries
        ],
        follow_up_history=[
            FollowUpItem(
                timestamp=entry.timestamp,
                follow_up_day=entry.follow_up_day,
                done=entry.done,
                notes=entry.notes,
            )
            for entry in client.follow_up_history
        ],
        progress=[
            ProgressItem(
                timestamp=entry.timestamp,
                weight_kg=entry.weight_kg,
                neck_inch=entry.neck_inch,
                chest_inch=entry.chest_inch,
                waist_inch=entry.waist_inch,
                hips_inch=entry.hips_inch,
                thigh_inch=entry.thigh_inch,
            )
            for entry in client.progress
        ],
    )


def _in_coach_timezone(value: datetime, settings: Settings) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=settings.tz)
    return value


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ClientDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Onboard a new client",
)
async def create_client(
    request: CreateClientRequest,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> ClientDetailResponse:
    client = service.create_client(
        name=request.name,
        mobile_number=request.mobile_number,
        onboarding_state=request.onboarding_state,
        plan_duration_days=request.plan_duration_days,
        notes=request.notes,
    )
    return detail_response(service.detail(client))


@router.get(
    "",
    response_model=list[ClientSummaryResponse],
    summary="List clients",
    description="Lightweight summaries, optionally filtered by status tab and search text",
)
async def list_clients(
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
    status_filter: StatusFilter = Query(StatusFilter.ALL, alias="status"),
    q: str = Query("", max_length=200, description="Matches code (#01, 01, 1), name or mobile"),
) -> list[ClientSummaryResponse]:
    views = service.list_summaries(status_filter=status_filter, query=q)
    logger.debug(
        "Listed clients",
        extra={"status_filter": status_filter.value, "count": len(views)}
    )
    return [summary_response(view) for view in views]


@router.get(
    "/{code}",
    response_model=ClientDetailResponse,
    summary="Get client details",
)
async def get_client(
    code: int,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> ClientDetailResponse:
    return detail_response(service.get_client(code))


@router.post(
    "/{code}/convert-to-full",
    response_model=ClientDetailResponse,
    summary="Complete onboarding (Half to Full)",
)
async def convert_to_full(
    code: int,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> ClientDetailResponse:
    return detail_response(service.detail(service.convert_to_full(code)))


@router.post(
    "/{code}/activate",
    response_model=ClientDetailResponse,
    summary="Start the client's first plan",
)
async def activate_client(
    code: int,
    request: ActivateRequest,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
    settings: SettingsDep,
) -> ClientDetailResponse:
    client = service.activate(
        code,
        plan_duration_days=request.plan_duration_days,
        extra_days=request.extra_days,
        start_date=_in_coach_timezone(request.start_date, settings),
        follow_up_day=request.follow_up_day,
    )
    return detail_response(service.detail(client))


@router.post(
    "/{code}/renew",
    response_model=ClientDetailResponse,
    summary="Add a new subscription period",
)
async def renew_subscription(
    code: int,
    request: RenewRequest,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
    settings: SettingsDep,
) -> ClientDetailResponse:
    client = service.renew(
        code,
        plan_duration_days=request.plan_duration_days,
        extra_days=request.extra_days,
        start_date=_in_coach_timezone(request.start_date, settings),
    )
    return detail_response(service.detail(client))


@router.post(
    "/{code}/pause",
    response_model=ClientDetailResponse,
    summary="Pause the client's plan",
)
async def pause_client(
    code: int,
    request: PauseRequest,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> ClientDetailResponse:
    client = service.pause(code, request.duration_days, request.reason)
    return detail_response(service.detail(client))


@router.post(
    "/{code}/resume",
    response_model=ClientDetailResponse,
    summary="Resume a paused client",
    description="Extends the current plan end date by the committed pause duration",
)
async def resume_client(
    code: int,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> ClientDetailResponse:
    return detail_response(service.detail(service.resume(code)))


@router.post(
    "/{code}/expire",
    response_model=ClientDetailResponse,
    summary="End the current plan immediately",
)
async def expire_client(
    code: int,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> ClientDetailResponse:
    return detail_response(service.detail(service.expire_immediately(code)))


@router.post(
    "/{code}/follow-ups",
    response_model=ClientDetailResponse,
    summary="Record a follow-up",
)
async def record_follow_up(
    code: int,
    request: FollowUpRequest,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> ClientDetailResponse:
    client = service.record_follow_up(
        code,
        follow_up_day=request.follow_up_day,
        done=request.done,
        notes=request.notes,
    )
    return detail_response(service.detail(client))


@router.put(
    "/{code}/follow-up-day",
    response_model=ClientDetailResponse,
    summary="Change the weekly follow-up day",
)
async def set_follow_up_day(
    code: int,
    request: FollowUpDayRequest,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> ClientDetailResponse:
    client = service.set_follow_up_day(code, request.follow_up_day)
    return detail_response(service.detail(client))


@router.post(
    "/{code}/progress",
    response_model=ClientDetailResponse,
    summary="Record body measurements",
)
async def add_progress(
    code: int,
    request: ProgressRequest,
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> ClientDetailResponse:
    client = service.add_progress(code, Measurements(**request.model_dump()))
    return detail_response(service.detail(client))
