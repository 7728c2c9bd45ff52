"""
CoachDesk application.

create_app() builds the FastAPI app; the module-level `app` is what the
server imports:

    uvicorn coachdesk.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import clients, dashboard, health
from .config.settings import get_settings
from .core.lifecycle.errors import ErrorKind, LifecycleError

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)

_INVALID_INPUT = status.HTTP_422_UNPROCESSABLE_ENTITY
_CONFLICT = status.HTTP_409_CONFLICT

# Must cover every ErrorKind.
ERROR_STATUS_CODES = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_DURATION: _INVALID_INPUT,
    ErrorKind.MISSING_REASON: _INVALID_INPUT,
    ErrorKind.INVALID_CLIENT_DETAILS: _INVALID_INPUT,
    ErrorKind.INVALID_MEASUREMENT: _INVALID_INPUT,
    ErrorKind.ACTIVATION_BLOCKED: _CONFLICT,
    ErrorKind.INVALID_TRANSITION: _CONFLICT,
    ErrorKind.ALREADY_PAUSED: _CONFLICT,
    ErrorKind.NOT_PAUSED: _CONFLICT,
    ErrorKind.NOT_ACTIVATED: _CONFLICT,
    ErrorKind.MISSING_FOLLOW_UP_DAY: _CONFLICT,
    ErrorKind.INCONSISTENT_RECORD: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

API_DESCRIPTION = """
Client lifecycle for fitness coaches: onboard (Half or Full), convert,
activate a plan, then renew, pause, resume, expire and record weekly
follow-ups.

Status (onboarded, active, expiring, paused, expired) is derived from
the stored history on every read. Every endpoint outside /health needs
an `X-API-Key` header.
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    missing = settings.validate_required_fields()
    if missing:
        logger.error("Configuration incomplete", extra={"missing_fields": missing})

    logger.info(
        "CoachDesk starting",
        extra={
            "version": settings.api_version,
            "snowflake_mock_mode": settings.snowflake_mock_mode,
            "expiring_window_days": settings.expiring_window_days,
            "timezone": settings.timezone,
        }
    )
    yield
    logger.info("CoachDesk stopped")


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    """
    A rejected lifecycle action.

    The body carries the error kind; wording it for the coach is up to
    the client application.
    """
    return JSONResponse(
        status_code=ERROR_STATUS_CODES[exc.kind],
        content={
            "error": exc.kind.value,
            "detail": exc.message,
            "client_code": exc.client_code,
        }
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={"method": request.method, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=API_DESCRIPTION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(clients.router, prefix="/api/v1/clients", tags=["Clients"])
    app.include_router(dashboard.router, prefix="/api/v1/dashboard", tags=["Dashboard"])

    app.add_exception_handler(LifecycleError, lifecycle_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/", include_in_schema=False)
    async def root():
        return {"service": settings.api_title, "version": settings.api_version, "docs": "/docs"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coachdesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=get_settings().log_level.lower(),
    )
