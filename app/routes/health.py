# app/routes/health.py

"""Health check endpoint. Never cached."""

from asyncio import timeout as asyncio_timeout
from datetime import UTC, datetime
from logging import getLogger

from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import SQLAlchemyError
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from app.configs import file_logger
from app.context import ServiceContext
from app.db import ping_db
from app.dependencies import ContextDep, rate_limit
from app.errors import StorageError
from app.managers.rate_limiter import Tier
from app.schemas.response import HealthResponse, HealthServices

router = APIRouter(tags=["🩺 Health"])

logger = file_logger(getLogger(__name__))

HEALTH_CHECK_TIMEOUT = 5.0


async def _database_status(context: ServiceContext) -> str:
    try:
        async with asyncio_timeout(HEALTH_CHECK_TIMEOUT):
            await ping_db(context.sessions)
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.warning(f"Health check: metadata store unavailable: {e}")
        return "unhealthy"
    return "healthy"


async def _storage_status(context: ServiceContext) -> str:
    try:
        await context.blobs.ping()
    except StorageError as e:
        logger.warning(f"Health check: blob store unavailable: {e}")
        return "unhealthy"
    return "healthy"


@router.get(
    "/health",
    summary="Health check endpoint",
    response_model=HealthResponse,
    dependencies=[Depends(rate_limit(Tier.HEALTH))],
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "status": "healthy",
                        "services": {"database": "healthy", "storage": "healthy", "cache": "in-memory"},
                        "uptime": 42.5,
                        "timestamp": "2026-01-01T00:00:00+00:00",
                        "environment": "production",
                    },
                },
            },
        },
        503: {"description": "A required service is down"},
    },
    operation_id="health_check",
)
async def health_check(context: ContextDep, response: Response) -> HealthResponse:
    """
    Report metadata store, blob store and cache status.

    The cache is optional: an unhealthy cache is reported but never fails the
    check. Responds 503 when the metadata or blob store is down.
    """
    response.headers["Cache-Control"] = "no-store"
    database = await _database_status(context)
    storage = await _storage_status(context)
    cache = await context.cache.health_check()
    cache_status = cache["backend"] if cache["status"] == "healthy" else "unhealthy"

    healthy = database == "healthy" and storage == "healthy"
    if not healthy:
        response.status_code = HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        success=healthy,
        status="healthy" if healthy else "unhealthy",
        services=HealthServices(database=database, storage=storage, cache=cache_status),
        uptime=round(context.uptime, 3),
        timestamp=datetime.now(tz=UTC).isoformat(),
        environment=context.settings.ENVIRONMENT,
    )
