"""
Dashboard endpoints.

Counts and short lists for the coach's home screen. Everything here is
derived on request from current snapshots; nothing is cached.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.lifecycle.renewals import ReferenceMonth
from ...core.lifecycle.service import SummaryView
from ..dependencies import AuthenticatedUser, LifecycleServiceDep
from .clients import ClientSummaryResponse, summary_response

logger = logging.getLogger(__name__)

router = APIRouter()


class DashboardResponse(BaseModel):
    year: int = Field(description="Calendar year the renewal count refers to")
    month: int = Field(description="Calendar month the renewal count refers to")
    total_clients: int
    half_onboarded: int
    full_onboarded: int
    active: int = Field(description="Active and not inside the expiring window")
    expiring: int
    paused: int
    expired: int
    renewal_opportunities: int = Field(description="Active clients whose plan ends this month")
    follow_ups_due: int = Field(description="Clients to check in with today")
    expiring_window_days: int


@router.get(
    "",
    response_model=DashboardResponse,
    summary="Dashboard metrics",
)
async def get_dashboard(
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> DashboardResponse:
    snapshot = service.dashboard()
    metrics = snapshot.metrics
    return DashboardResponse(
        year=snapshot.month.year,
        month=snapshot.month.month,
        total_clients=metrics.total,
        half_onboarded=metrics.half_onboarded,
        full_onboarded=metrics.full_onboarded,
        active=metrics.active,
        expiring=metrics.expiring,
        paused=metrics.paused,
        expired=metrics.expired,
        renewal_opportunities=snapshot.renewal_opportunities,
        follow_ups_due=snapshot.follow_ups_due,
        expiring_window_days=service.expiring_window.days,
    )


@router.get(
    "/renewals",
    response_model=list[ClientSummaryResponse],
    summary="Renewal opportunities",
    description="Active clients whose current plan ends in the given month (defaults to this month)",
)
async def list_renewal_opportunities(
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
    year: Optional[int] = Query(None, ge=2000, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
) -> list[ClientSummaryResponse]:
    if (year is None) != (month is None):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide both year and month, or neither",
        )

    reference = ReferenceMonth(year, month) if year is not None else None
    now = service.now()
    return [
        summary_response(SummaryView(summary=summary, status=service.resolve(summary, now)))
        for summary in service.renewal_opportunities(reference)
    ]


@router.get(
    "/expiring",
    response_model=list[ClientSummaryResponse],
    summary="Clients inside the expiring window",
)
async def list_expiring_clients(
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> list[ClientSummaryResponse]:
    now = service.now()
    return [
        summary_response(SummaryView(summary=summary, status=service.resolve(summary, now)))
        for summary in service.expiring_clients()
    ]


@router.get(
    "/follow-ups-due",
    response_model=list[ClientSummaryResponse],
    summary="Follow-ups due today",
)
async def list_follow_ups_due(
    api_key: AuthenticatedUser,
    service: LifecycleServiceDep,
) -> list[ClientSummaryResponse]:
    now = service.now()
    due = service.follow_ups_due()
    logger.debug("Follow-ups due", extra={"count": len(due)})
    return [
        summary_response(SummaryView(summary=client.summary(), status=service.resolve(client, now)))
        for client in due
    ]
