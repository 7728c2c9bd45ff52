"""
FastAPI dependencies.

Routes ask for what they need (the lifecycle service, settings, an
authenticated key) through the Annotated aliases at the bottom of this
module. Tests swap any of them out with app.dependency_overrides.
"""

import logging
import threading
from typing import Annotated, Generator

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.lifecycle.clock import Clock, SystemClock
from ..core.lifecycle.service import ClientLifecycleService
from ..infrastructure.snowflake.client import MockSnowflakeConnection, create_snowflake_connection
from ..infrastructure.snowflake.repositories.clients import (
    SnowflakeClientRepository,
    SnowflakeConfig,
)

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Process-wide singletons. The mock connection holds all mock-mode data.
_mock_connection: MockSnowflakeConnection | None = None
_mock_connection_lock = threading.Lock()
_clock = SystemClock()


async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """Reject the request with 403 unless X-API-Key is a configured key."""
    if not api_key:
        logger.warning("Request without API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing X-API-Key header",
        )

    if api_key not in settings.api_keys_list:
        logger.warning("Rejected API key", extra={"key_prefix": api_key[:4]})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


def get_clock() -> Clock:
    return _clock


def get_mock_connection() -> MockSnowflakeConnection:
    """
    The shared in-memory connection, created on first use.

    Sync dependencies run in FastAPI's threadpool, so two first requests
    can arrive together. Only one of them may create the table.
    """
    global _mock_connection

    with _mock_connection_lock:
        if _mock_connection is None:
            _mock_connection = MockSnowflakeConnection()
        return _mock_connection


def snowflake_config(settings: Settings) -> SnowflakeConfig:
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def get_client_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[SnowflakeClientRepository, None, None]:
    """
    One repository per request.

    Real connections are opened for the request and closed after it.
    In mock mode every request shares the same in-memory table.
    """
    if settings.snowflake_mock_mode:
        yield SnowflakeClientRepository(get_mock_connection())
        return

    with create_snowflake_connection(config=snowflake_config(settings)) as conn:
        yield SnowflakeClientRepository(conn)


def get_lifecycle_service(
    settings: Annotated[Settings, Depends(get_settings)],
    repository: Annotated[SnowflakeClientRepository, Depends(get_client_repository)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> ClientLifecycleService:
    """
    The lifecycle service for this request.

    Window and timezone come from settings here and nowhere else, so the
    profile badge, list tabs and dashboard can't disagree.
    """
    return ClientLifecycleService(
        repository=repository,
        clock=clock,
        expiring_window=settings.expiring_window,
        tz=settings.tz,
    )


AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
LifecycleServiceDep = Annotated[ClientLifecycleService, Depends(get_lifecycle_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
