"""Health check and database probe endpoints."""

import time
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.config import get_settings
from src.core.database import ping_database


logger = structlog.get_logger(__name__)

_started_at = time.monotonic()

router = APIRouter(prefix="/health", tags=["health"])
db_router = APIRouter(tags=["health"])


def uptime_seconds() -> float:
    return round(time.monotonic() - _started_at, 3)


async def _database_time(request: Request) -> datetime | None:
    """Database clock, or None when the database is unreachable."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return None
    try:
        return await ping_database(engine)
    except SQLAlchemyError as e:
        logger.warning("database_probe_failed", error=str(e))
        return None


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - the database must answer."""
    settings = get_settings()
    database_ok = await _database_time(request) is not None
    return ORJSONResponse(
        status_code=status.HTTP_200_OK
        if database_ok
        else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if database_ok else "not_ready",
            "database": database_ok,
            "environment": settings.environment,
        },
    )


@router.get("")
async def health() -> dict[str, Any]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "OK",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "uptime": uptime_seconds(),
        "timestamp": datetime.now(UTC).isoformat(),
    }


@db_router.get("/db-test")
async def db_test(request: Request) -> ORJSONResponse:
    """Run a trivial query against the database and report its clock."""
    db_time = await _database_time(request)
    if db_time is None:
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"connected": False, "error": "Database unavailable"},
        )
    time_value = db_time.isoformat() if isinstance(db_time, datetime) else str(db_time)
    return ORJSONResponse(content={"connected": True, "time": time_value})
