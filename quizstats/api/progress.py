"""Progress ingestion, record queries and the dashboard endpoint.

Every route is scoped to ``/v1/users/{user_id}``.  Bodies and responses
use camelCase keys, which is what the mobile and web clients send:

  POST   /progress/events                 ingest one finished quiz
  GET    /progress                        overall stats + all five records
  GET    /progress/recent?limit=10        latest quizzes, newest first
  GET    /progress/{period_kind}          one current record
  GET    /progress/{period_kind}/archive  closed windows, oldest first
  GET    /dashboard/{period_kind}         display summary (read-through cached)
  DELETE /progress                        reset to empty windows

Domain errors are turned into HTTP errors here and nowhere else:

  InvalidEvent              422
  UnknownPeriodKind         400
  InvalidSelector           400
  ConcurrentUpdateConflict  409
  PersistenceUnavailable    503 + Retry-After
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from quizstats.api.dependencies import get_progress_service
from quizstats.core.metrics import CACHE_OPERATIONS
from quizstats.models.dashboard import Bucketing, DashboardSelector, DisplaySummary
from quizstats.models.progress import (
    PERIOD_KINDS,
    OverallStats,
    ProgressRecord,
    QuizCompletionEvent,
    UserProgressState,
)
from quizstats.services.cache import cache_service
from quizstats.services.errors import (
    ConcurrentUpdateConflict,
    InvalidEvent,
    InvalidSelector,
    PersistenceUnavailable,
    UnknownPeriodKind,
)
from quizstats.services.progress_service import ProgressService, dashboard_cache_prefix
from quizstats.services.windows import as_aware, parse_period_kind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users/{user_id}", tags=["progress"])

# Five minutes absorbs dashboard refresh storms; writes invalidate
# explicitly and reads roll windows forward before the lookup.
_DASHBOARD_CACHE_TTL = 300

Service = Annotated[ProgressService, Depends(get_progress_service)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class QuizEventIn(_CamelModel):
    quiz_id: str
    total_questions: int
    correct: int
    incorrect: int
    skipped: int = 0
    time_spent_seconds: int = 0
    occurred_at: datetime | None = None


class PeriodStatsOut(_CamelModel):
    total_quizzes: int
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    skipped_answers: int
    average_score_percent: float
    best_score_percent: float
    worst_score_percent: float | None
    current_streak_days: int
    longest_streak_days: int
    total_time_spent_seconds: int


class HistoryEntryOut(_CamelModel):
    quiz_id: str
    date: datetime
    questions_answered: int
    correct: int
    incorrect: int
    skipped: int
    score_percent: float
    time_spent_seconds: int


class ProgressRecordOut(_CamelModel):
    period_kind: str
    window_start: datetime
    window_end: datetime | None
    last_updated: datetime
    stats: PeriodStatsOut
    history: list[HistoryEntryOut]

    @classmethod
    def from_record(cls, record: ProgressRecord) -> ProgressRecordOut:
        return cls(
            period_kind=record.period_kind,
            window_start=record.window_start,
            window_end=record.window_end,
            last_updated=record.last_updated,
            stats=PeriodStatsOut(**asdict(record.stats)),
            history=[HistoryEntryOut(**asdict(e)) for e in record.history],
        )


class OverallStatsOut(_CamelModel):
    total_quizzes_taken: int
    total_questions_answered: int
    total_correct_answers: int
    total_incorrect_answers: int
    total_skipped_answers: int
    overall_accuracy: float
    average_quiz_score: float
    best_quiz_score: float
    total_time_spent_seconds: int
    current_streak: int
    longest_streak: int
    last_quiz_date: datetime | None


class ProgressOut(_CamelModel):
    overall_stats: OverallStatsOut
    progress: dict[str, ProgressRecordOut]

    @classmethod
    def from_state(cls, state: UserProgressState) -> ProgressOut:
        overall = OverallStats.from_record(state.record("all-time"))
        return cls(
            overall_stats=OverallStatsOut(**asdict(overall)),
            progress={
                kind: ProgressRecordOut.from_record(state.record(kind))
                for kind in PERIOD_KINDS
            },
        )


class ResetOut(ProgressOut):
    message: str


class DisplayBucketOut(_CamelModel):
    label: str
    start: datetime
    end: datetime
    quizzes: int
    correct: int
    incorrect: int
    skipped: int
    total: int
    percent: float
    color: str
    is_active: bool


class DisplaySummaryOut(_CamelModel):
    period_kind: str
    label: str
    window_start: datetime
    window_end: datetime | None
    total_quizzes: int
    total_correct: int
    total_incorrect: int
    total_skipped: int
    overall_percent: float
    color: str
    is_active: bool
    buckets: list[DisplayBucketOut] = Field(default_factory=list)

    @classmethod
    def from_summary(cls, summary: DisplaySummary) -> DisplaySummaryOut:
        return cls(
            period_kind=summary.period_kind,
            label=summary.label,
            window_start=summary.window_start,
            window_end=summary.window_end,
            total_quizzes=summary.total_quizzes,
            total_correct=summary.total_correct,
            total_incorrect=summary.total_incorrect,
            total_skipped=summary.total_skipped,
            overall_percent=summary.overall_percent,
            color=summary.color,
            is_active=summary.is_active,
            buckets=[
                DisplayBucketOut(**asdict(b), total=b.total) for b in summary.buckets
            ],
        )


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@contextmanager
def _domain_errors(user_id: str) -> Iterator[None]:
    try:
        yield
    except InvalidEvent as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from None
    except (UnknownPeriodKind, InvalidSelector) as e:
        logger.warning("Bad progress query for user=%s: %s", user_id, e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    except ConcurrentUpdateConflict as e:
        logger.warning("Progress update conflict: %s", e, extra={"user_id": user_id})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    except PersistenceUnavailable as e:
        logger.warning("Progress store unavailable for user=%s: %s", user_id, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
            headers={"Retry-After": "1"},
        ) from None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/progress/events", response_model=ProgressOut)
async def ingest_quiz(user_id: str, payload: QuizEventIn, service: Service) -> ProgressOut:
    event = QuizCompletionEvent(
        quiz_id=payload.quiz_id,
        total_questions=payload.total_questions,
        correct=payload.correct,
        incorrect=payload.incorrect,
        skipped=payload.skipped,
        time_spent_seconds=payload.time_spent_seconds,
        occurred_at=as_aware(payload.occurred_at or service.now()),
    )
    with _domain_errors(user_id):
        state = await service.ingest(user_id, event)
    return ProgressOut.from_state(state)


@router.get("/progress", response_model=ProgressOut)
async def get_progress(user_id: str, service: Service) -> ProgressOut:
    with _domain_errors(user_id):
        state = await service.get_state(user_id)
    return ProgressOut.from_state(state)


@router.get("/progress/recent", response_model=list[HistoryEntryOut])
async def get_recent(
    user_id: str,
    service: Service,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> list[HistoryEntryOut]:
    with _domain_errors(user_id):
        entries = await service.recent(user_id, limit)
    return [HistoryEntryOut(**asdict(e)) for e in entries]


@router.get("/progress/{period_kind}", response_model=ProgressRecordOut)
async def get_period(user_id: str, period_kind: str, service: Service) -> ProgressRecordOut:
    with _domain_errors(user_id):
        kind = parse_period_kind(period_kind)
        record = await service.get_record(user_id, kind)
    return ProgressRecordOut.from_record(record)


@router.get("/progress/{period_kind}/archive", response_model=list[ProgressRecordOut])
async def get_archive(
    user_id: str, period_kind: str, service: Service
) -> list[ProgressRecordOut]:
    with _domain_errors(user_id):
        kind = parse_period_kind(period_kind)
        records = await service.list_archived(user_id, kind)
    return [ProgressRecordOut.from_record(r) for r in records]


@router.get("/dashboard/{period_kind}", response_model=DisplaySummaryOut)
async def get_dashboard(
    user_id: str,
    period_kind: str,
    service: Service,
    bucketing: Bucketing = "aggregate",
    year: Annotated[int | None, Query()] = None,
    month: Annotated[int | None, Query()] = None,
    week: Annotated[int | None, Query()] = None,
    day: Annotated[int | None, Query()] = None,
) -> DisplaySummaryOut:
    selector = DashboardSelector(year=year, month=month, week=week, day=day)
    with _domain_errors(user_id):
        kind = parse_period_kind(period_kind)
        # Rolls windows forward first; a rollover bumps the version and
        # clears this user's entries, so a hit never outlives its window.
        state = await service.get_state(user_id)
        cache_key = (
            f"{dashboard_cache_prefix(user_id)}{kind}:{bucketing}:"
            f"{selector.cache_key()}:v{state.version}"
        )

        cached = await cache_service.get(cache_key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return DisplaySummaryOut.model_validate(json.loads(cached))

        CACHE_OPERATIONS.labels(operation="miss").inc()
        summary = await service.dashboard(
            user_id, kind, bucketing=bucketing, selector=selector
        )

    out = DisplaySummaryOut.from_summary(summary)
    await cache_service.set(
        cache_key, out.model_dump_json(by_alias=True), _DASHBOARD_CACHE_TTL
    )
    return out


@router.delete("/progress", response_model=ResetOut)
async def reset_progress(user_id: str, service: Service) -> ResetOut:
    with _domain_errors(user_id):
        state = await service.reset(user_id)
    base = ProgressOut.from_state(state)
    return ResetOut(
        message="Progress reset",
        overall_stats=base.overall_stats,
        progress=base.progress,
    )
