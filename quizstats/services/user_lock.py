"""Single-writer-per-user locking.

Every write to a user's progress is a read-modify-write: load the
state, apply the engine, save.  Two requests for the same user running
that cycle at once would both read version N and one of them would lose
the race.  The version check on save catches that, but a lock around
the whole cycle means the race almost never happens in the first place.

Different users never contend: locks are keyed by user id.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError
from redis.exceptions import TimeoutError as RedisTimeoutError

from quizstats.services.errors import ConcurrentUpdateConflict, PersistenceUnavailable

logger = logging.getLogger(__name__)


class UserLock(Protocol):
    def hold(self, user_id: str) -> AbstractAsyncContextManager[None]:
        """Async context manager held for the duration of one write."""
        ...


class InMemoryUserLock:
    """One asyncio.Lock per user; correct within a single process only.

    A user's lock is dropped once nobody holds it or waits on it, so the
    table only ever holds users with a write in flight.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._users[user_id] = self._users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[user_id] -= 1
            if not self._users[user_id]:
                del self._users[user_id]
                del self._locks[user_id]


class RedisUserLock:
    """Redis lock shared by every API instance and the rollup worker.

    ``timeout`` bounds how long a crashed holder can block a user;
    ``blocking_timeout`` bounds how long a request waits for the lock
    before giving up with ConcurrentUpdateConflict.
    """

    _PREFIX = "lock:progress:"

    def __init__(
        self,
        redis_client,
        *,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
    ) -> None:
        self._redis = redis_client
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._redis.lock(
            f"{self._PREFIX}{user_id}",
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise PersistenceUnavailable("lock store unreachable") from e
        if not acquired:
            logger.warning("Timed out waiting for progress lock user=%s", user_id)
            raise ConcurrentUpdateConflict(user_id, "timed out waiting for write lock")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Held past ``timeout``; another writer may already own it.
                logger.warning("Progress lock for user=%s expired before release", user_id)
