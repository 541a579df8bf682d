"""Redis connection management.

Redis carries two things for this service, both optional:

  - the per-user write lock, so that several API instances still have
    a single writer per user (services/user_lock.py)
  - the dashboard read-through cache (services/cache.py)

When REDIS_URL is not set, ``redis_pool`` is None and both fall back to
in-process implementations.  That is fine for one instance; with more,
the optimistic version check on save still prevents lost updates, only
at the cost of more retries.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from quizstats.core.config import SETTINGS

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
    """Verify the connection on startup and close the pool on shutdown."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, using in-memory lock and cache")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except Exception:
        # Start anyway; lock and cache calls will surface the outage per request.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
