from __future__ import annotations

import sys
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from quizstats.api.dependencies import get_progress_service, progress_repo, user_lock
from quizstats.main import app
from quizstats.models.progress import QuizCompletionEvent
from quizstats.services.cache import cache_service
from quizstats.services.progress_service import ProgressService
from quizstats.services.rollup_engine import RollupEngine

# Ensure repo root is on sys.path so `import quizstats` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Wednesday, mid-month, mid-year: no window boundary nearby.
DEFAULT_NOW = datetime(2024, 3, 6, 15, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, now: datetime = DEFAULT_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_event(
    quiz_id: str = "q1",
    *,
    occurred_at: datetime = DEFAULT_NOW,
    total_questions: int = 10,
    correct: int = 7,
    incorrect: int = 2,
    skipped: int = 1,
    time_spent_seconds: int = 120,
) -> QuizCompletionEvent:
    return QuizCompletionEvent(
        quiz_id=quiz_id,
        total_questions=total_questions,
        correct=correct,
        incorrect=incorrect,
        skipped=skipped,
        time_spent_seconds=time_spent_seconds,
        occurred_at=occurred_at,
    )


def event_json(
    quiz_id: str = "q1",
    *,
    occurred_at: datetime = DEFAULT_NOW,
    total_questions: int = 10,
    correct: int = 7,
    incorrect: int = 2,
    skipped: int = 1,
) -> dict:
    return {
        "quizId": quiz_id,
        "totalQuestions": total_questions,
        "correct": correct,
        "incorrect": incorrect,
        "skipped": skipped,
        "timeSpentSeconds": 120,
        "occurredAt": occurred_at.isoformat(),
    }


@pytest.fixture(autouse=True)
def reset_progress_store() -> None:
    """Clear stored progress and the archive between tests."""
    if hasattr(progress_repo, "_states"):
        progress_repo._states.clear()  # type: ignore[union-attr]
        progress_repo._archive.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_user_locks() -> None:
    if hasattr(user_lock, "_locks"):
        user_lock._locks.clear()  # type: ignore[union-attr]
        user_lock._users.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(clock: FakeClock) -> ProgressService:
    """Service over the app's own in-memory singletons, with a fake clock."""
    return ProgressService(
        progress_repo,
        user_lock,
        RollupEngine(UTC),
        cache_service,
        max_retries=3,
        clock=clock,
    )


@pytest.fixture
def client(service: ProgressService) -> Iterator[TestClient]:
    app.dependency_overrides[get_progress_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_progress_service, None)
