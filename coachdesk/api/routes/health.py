"""
Health endpoints.

- GET /health: the process is up. Touches nothing external.
- GET /health/ready: configuration is complete and the client table
  answers. Returns 503 otherwise so the load balancer holds traffic.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ...config.settings import Settings
from ...infrastructure.snowflake.client import create_snowflake_connection
from ...infrastructure.snowflake.repositories.clients import SnowflakeClientRepository
from ..dependencies import SettingsDep, snowflake_config

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    name: str
    ok: bool
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get("", response_model=HealthResponse, summary="Liveness check")
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "snowflake_mock_mode": settings.snowflake_mock_mode,
            "expiring_window_days": settings.expiring_window_days,
            "timezone": settings.timezone,
        }
    )


def _check_configuration(settings: Settings) -> ReadinessCheck:
    missing = settings.validate_required_fields()
    if missing:
        return ReadinessCheck(name="configuration", ok=False, error="Missing: " + ", ".join(missing))
    return ReadinessCheck(name="configuration", ok=True)


def _check_client_table(settings: Settings) -> ReadinessCheck:
    """Open a connection of our own and ask the table for its next code."""
    try:
        with create_snowflake_connection(
            config=snowflake_config(settings),
            mock_mode=settings.snowflake_mock_mode,
        ) as conn:
            SnowflakeClientRepository(conn).next_code()
    except Exception as e:
        logger.error("Client table check failed", extra={"error": str(e)})
        return ReadinessCheck(name="client_table", ok=False, error=str(e))
    return ReadinessCheck(name="client_table", ok=True)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    responses={503: {"model": ReadinessResponse, "description": "Not ready"}},
)
async def readiness_check(
    settings: SettingsDep,
    response: Response,
) -> ReadinessResponse:
    checks = [_check_configuration(settings), _check_client_table(settings)]
    ready = all(check.ok for check in checks)

    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Not ready",
            extra={"failed": [check.name for check in checks if not check.ok]}
        )

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=__version__,
        checks=checks,
    )
