"""Module-level singletons for the progress API and the rollup worker.

Backends are picked once at import time from SETTINGS:

  DATABASE_URL set  -> PgProgressStateRepo, otherwise in-memory
  REDIS_URL set     -> RedisUserLock, otherwise an in-process lock

Tests run with neither, and clear the in-memory stores between cases
(see tests/conftest.py).
"""

from __future__ import annotations

from quizstats.core.config import SETTINGS
from quizstats.db.engine import async_session_factory
from quizstats.db.redis import redis_pool
from quizstats.repos.pg_progress_repo import PgProgressStateRepo
from quizstats.repos.progress_repo import InMemoryProgressStateRepo, ProgressStateRepo
from quizstats.services.cache import cache_service
from quizstats.services.progress_service import ProgressService
from quizstats.services.rollup_engine import RollupEngine
from quizstats.services.user_lock import InMemoryUserLock, RedisUserLock, UserLock

if async_session_factory is not None:
    progress_repo: ProgressStateRepo = PgProgressStateRepo(async_session_factory)
else:
    progress_repo = InMemoryProgressStateRepo()

if redis_pool is not None:
    user_lock: UserLock = RedisUserLock(redis_pool)
else:
    user_lock = InMemoryUserLock()

progress_service = ProgressService(
    progress_repo,
    user_lock,
    RollupEngine(SETTINGS.tz),
    cache_service,
    max_retries=SETTINGS.save_retries,
)


def get_progress_service() -> ProgressService:
    """FastAPI dependency; tests override it to inject a fixed clock."""
    return progress_service
