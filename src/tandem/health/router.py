"""Health, readiness, and version endpoints."""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from redis.exceptions import RedisError

from tandem.config import get_settings
from tandem.database import get_session
from tandem.redis_client import get_redis, redis_available

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    response: Response,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: the database must answer; Redis only if configured."""
    checks: dict[str, str] = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = "ok"
    except (SQLAlchemyError, OSError):
        logger.exception("Readiness: database check failed")
        checks["database"] = "error"

    if redis_available():
        try:
            await get_redis().ping()
            checks["redis"] = "ok"
        except (RedisError, OSError):
            logger.exception("Readiness: redis check failed")
            checks["redis"] = "error"
    else:
        checks["redis"] = "disabled"

    ready = checks["database"] == "ok"
    degraded = checks["redis"] == "error"
    if not ready:
        response.status_code = 503
    return {
        "status": "ready" if ready and not degraded else ("degraded" if ready else "unavailable"),
        "checks": checks,
    }


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
