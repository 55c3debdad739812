"""Redis connection management.

Same shape as engine.py: when REDIS_URL is configured a shared async
connection pool is created at import time, otherwise ``redis_pool`` is
None and every consumer (progress cache, token blacklist) uses its
in-memory implementation.

Redis only holds data that may be lost: cached progress snapshots and
revoked token IDs, both with TTLs.  Users, courses and enrollments live
in PostgreSQL (or the in-memory repos).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from lms.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis, mirrors lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured - Redis features use in-memory fallbacks")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Start anyway; cache misses and blacklist checks degrade to errors
        # on the affected requests instead of taking the whole API down.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
