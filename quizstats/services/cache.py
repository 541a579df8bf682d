"""Read-through cache for dashboard summaries.

A dashboard query projects a record into buckets, labels and colours.
Clients refresh it far more often than players finish quizzes, so the
rendered JSON is cached per (user, period, bucketing, selector).

Two invalidation paths keep it honest:

  1. Every successful progress write deletes ``dashboard:{user_id}:*``.
     The route rolls the user's windows forward before looking a key
     up, so crossing midnight is such a write, and the state version
     is part of the key.
  2. Redis entries expire after a TTL anyway.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from quizstats.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Return the cached value, or None on a miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete every key matching a trailing-``*`` glob."""
        ...


class InMemoryCacheService:
    """Process-local cache without TTL enforcement; tests clear it between runs."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]


class RedisCacheService:
    """Redis-backed cache shared by all API instances."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: KEYS blocks the server for the whole keyspace walk.
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
