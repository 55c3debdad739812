"""Health and readiness endpoints.

/health (liveness): "is this process alive?"  Always 200 while the
process can answer; the ``status`` field reports degraded dependencies.
A 503 here would make an orchestrator restart the container, which is
too aggressive for a Redis blip.

/ready (readiness): "can this instance take traffic?"  503 takes the
instance out of the load balancer without restarting it.  The database
is critical when configured (there is no in-memory fallback once
DATABASE_URL is set); Redis is not, since cache misses and the token
blacklist degrade to in-process stores.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from lms.db.engine import engine
from lms.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
        return "ok"
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"


@router.get("/health")
async def health() -> dict:
    checks = {"database": await _check_database(), "redis": await _check_redis()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
