"""Progress endpoints: ingest, queries, reset and the error mapping."""

from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient

from quizstats.api.dependencies import get_progress_service
from quizstats.main import app
from quizstats.services.errors import ConcurrentUpdateConflict, PersistenceUnavailable
from tests.conftest import DEFAULT_NOW, FakeClock, event_json

_BASE = "/v1/users/u1"


def test_ingest_returns_overall_stats_and_all_periods(client: TestClient) -> None:
    resp = client.post(f"{_BASE}/progress/events", json=event_json())
    assert resp.status_code == 200
    body = resp.json()

    assert set(body["progress"]) == {"daily", "weekly", "monthly", "yearly", "all-time"}
    daily = body["progress"]["daily"]
    assert daily["periodKind"] == "daily"
    assert daily["stats"]["totalQuizzes"] == 1
    assert daily["history"][0]["quizId"] == "q1"

    overall = body["overallStats"]
    assert overall["totalQuizzesTaken"] == 1
    assert overall["totalCorrectAnswers"] == 7
    assert overall["overallAccuracy"] == 70.0
    assert overall["currentStreak"] == 1
    assert overall["lastQuizDate"] is not None


def test_duplicate_delivery_is_idempotent(client: TestClient) -> None:
    payload = event_json("q1", total_questions=5, correct=3, incorrect=1, skipped=1)
    first = client.post(f"{_BASE}/progress/events", json=payload).json()
    second = client.post(f"{_BASE}/progress/events", json=payload).json()

    assert first == second
    daily = second["progress"]["daily"]
    assert len(daily["history"]) == 1
    assert daily["stats"]["totalQuizzes"] == 1
    assert daily["stats"]["correctAnswers"] == 3


def test_occurred_at_defaults_to_server_time(client: TestClient, clock: FakeClock) -> None:
    payload = event_json()
    del payload["occurredAt"]
    body = client.post(f"{_BASE}/progress/events", json=payload).json()
    entry = body["progress"]["daily"]["history"][0]
    assert entry["date"].startswith(clock.now.date().isoformat())


def test_invalid_event_is_422(client: TestClient) -> None:
    resp = client.post(
        f"{_BASE}/progress/events",
        json=event_json(total_questions=2, correct=2, incorrect=1, skipped=0),
    )
    assert resp.status_code == 422
    assert "exceeds total_questions" in resp.json()["detail"]

    after = client.get(f"{_BASE}/progress").json()
    assert after["overallStats"]["totalQuizzesTaken"] == 0


def test_missing_field_is_422(client: TestClient) -> None:
    payload = event_json()
    del payload["quizId"]
    assert client.post(f"{_BASE}/progress/events", json=payload).status_code == 422


def test_get_progress_for_new_user_is_empty(client: TestClient) -> None:
    resp = client.get("/v1/users/nobody/progress")
    assert resp.status_code == 200
    body = resp.json()
    assert body["overallStats"]["totalQuizzesTaken"] == 0
    assert body["progress"]["all-time"]["windowEnd"] is None
    assert body["progress"]["daily"]["stats"]["worstScorePercent"] is None


def test_get_single_period_accepts_short_names(client: TestClient) -> None:
    client.post(f"{_BASE}/progress/events", json=event_json())
    for name in ("weekly", "week"):
        resp = client.get(f"{_BASE}/progress/{name}")
        assert resp.status_code == 200
        assert resp.json()["periodKind"] == "weekly"
        assert resp.json()["stats"]["totalQuizzes"] == 1


def test_unknown_period_is_400(client: TestClient) -> None:
    resp = client.get(f"{_BASE}/progress/fortnightly")
    assert resp.status_code == 400
    assert "fortnightly" in resp.json()["detail"]


def test_archive_lists_closed_windows(client: TestClient, clock: FakeClock) -> None:
    client.post(f"{_BASE}/progress/events", json=event_json())
    clock.advance(days=1)
    client.get(f"{_BASE}/progress")

    resp = client.get(f"{_BASE}/progress/daily/archive")
    assert resp.status_code == 200
    archived = resp.json()
    assert len(archived) == 1
    assert archived[0]["stats"]["totalQuizzes"] == 1
    assert client.get(f"{_BASE}/progress/monthly/archive").json() == []


def test_event_from_a_past_year_counts_toward_all_time(client: TestClient) -> None:
    old = DEFAULT_NOW - timedelta(days=400)
    body = client.post(f"{_BASE}/progress/events", json=event_json(occurred_at=old)).json()
    assert body["progress"]["all-time"]["stats"]["totalQuizzes"] == 1
    assert body["progress"]["yearly"]["stats"]["totalQuizzes"] == 0


def test_reset_clears_progress(client: TestClient) -> None:
    client.post(f"{_BASE}/progress/events", json=event_json())
    resp = client.delete(f"{_BASE}/progress")
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Progress reset"
    assert body["overallStats"]["totalQuizzesTaken"] == 0
    assert body["progress"]["daily"]["history"] == []


def test_users_are_isolated(client: TestClient) -> None:
    client.post("/v1/users/alice/progress/events", json=event_json())
    bob = client.get("/v1/users/bob/progress").json()
    assert bob["overallStats"]["totalQuizzesTaken"] == 0


def test_recent_lists_newest_first(client: TestClient, clock: FakeClock) -> None:
    for i in range(3):
        client.post(f"{_BASE}/progress/events", json=event_json(f"q{i}", occurred_at=clock.now))
        clock.advance(hours=1)
    client.post(
        f"{_BASE}/progress/events",
        json=event_json("old", occurred_at=DEFAULT_NOW - timedelta(days=400)),
    )

    resp = client.get(f"{_BASE}/progress/recent")
    assert resp.status_code == 200
    assert [e["quizId"] for e in resp.json()] == ["q2", "q1", "q0", "old"]
    assert resp.json()[0]["scorePercent"] == 70.0


def test_recent_honours_limit(client: TestClient, clock: FakeClock) -> None:
    for i in range(12):
        client.post(f"{_BASE}/progress/events", json=event_json(f"q{i}", occurred_at=clock.now))
        clock.advance(minutes=5)

    assert len(client.get(f"{_BASE}/progress/recent").json()) == 10
    two = client.get(f"{_BASE}/progress/recent", params={"limit": 2}).json()
    assert [e["quizId"] for e in two] == ["q11", "q10"]
    assert client.get(f"{_BASE}/progress/recent", params={"limit": 0}).status_code == 422


def test_recent_for_new_user_is_empty(client: TestClient) -> None:
    assert client.get("/v1/users/nobody/progress/recent").json() == []


def test_future_quiz_resent_next_day_is_counted_once(
    client: TestClient, clock: FakeClock
) -> None:
    payload = event_json("qf", occurred_at=DEFAULT_NOW + timedelta(days=1, hours=2))
    client.post(f"{_BASE}/progress/events", json=payload)
    clock.advance(days=1, hours=3)
    body = client.post(f"{_BASE}/progress/events", json=payload).json()

    assert body["progress"]["daily"]["stats"]["totalQuizzes"] == 0
    assert body["overallStats"]["totalQuizzesTaken"] == 1
    archived = client.get(f"{_BASE}/progress/daily/archive").json()
    assert sum(r["stats"]["totalQuizzes"] for r in archived) == 1


# ---- error mapping for store-level failures ----


class _FailingService:
    def __init__(self, error: Exception) -> None:
        self._error = error

    def now(self):
        return DEFAULT_NOW

    async def ingest(self, user_id, event):
        raise self._error


def _with_failing_service(error: Exception):
    app.dependency_overrides[get_progress_service] = lambda: _FailingService(error)
    try:
        return TestClient(app).post(f"{_BASE}/progress/events", json=event_json())
    finally:
        app.dependency_overrides.pop(get_progress_service, None)


def test_conflict_is_409() -> None:
    resp = _with_failing_service(ConcurrentUpdateConflict("u1", "gave up"))
    assert resp.status_code == 409


def test_store_outage_is_503_with_retry_after() -> None:
    resp = _with_failing_service(PersistenceUnavailable("progress store unreachable"))
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "1"
