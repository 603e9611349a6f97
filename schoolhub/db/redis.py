"""Redis connection management.

When REDIS_URL is configured, a shared async client backs the local
cache, so remembered role/year/term choices survive process restarts and
are visible to every instance.  When it is unset (local dev, tests),
``redis_pool`` is None and callers fall back to in-memory storage.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from schoolhub.core.config import SETTINGS

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
    """Verify Redis on startup and close the pool on shutdown.

    An unreachable Redis is logged, not fatal: the service keeps running
    and remembered selections simply do not persist.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured, local cache is in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
