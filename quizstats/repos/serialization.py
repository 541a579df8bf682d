"""JSON document shape for persisted progress state.

Timestamps are stored as ISO-8601 strings with their UTC offset so a
document read back compares equal to the state that was written.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from quizstats.models.progress import (
    HistoryEntry,
    PeriodStats,
    ProgressRecord,
    UserProgressState,
)


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def entry_to_doc(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "quiz_id": entry.quiz_id,
        "date": _dt(entry.date),
        "questions_answered": entry.questions_answered,
        "correct": entry.correct,
        "incorrect": entry.incorrect,
        "skipped": entry.skipped,
        "score_percent": entry.score_percent,
        "time_spent_seconds": entry.time_spent_seconds,
    }


def entry_from_doc(doc: dict[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        quiz_id=doc["quiz_id"],
        date=datetime.fromisoformat(doc["date"]),
        questions_answered=doc["questions_answered"],
        correct=doc["correct"],
        incorrect=doc["incorrect"],
        skipped=doc["skipped"],
        score_percent=doc["score_percent"],
        time_spent_seconds=doc["time_spent_seconds"],
    )


def stats_to_doc(stats: PeriodStats) -> dict[str, Any]:
    return {
        "total_quizzes": stats.total_quizzes,
        "total_questions": stats.total_questions,
        "correct_answers": stats.correct_answers,
        "incorrect_answers": stats.incorrect_answers,
        "skipped_answers": stats.skipped_answers,
        "average_score_percent": stats.average_score_percent,
        "best_score_percent": stats.best_score_percent,
        "worst_score_percent": stats.worst_score_percent,
        "current_streak_days": stats.current_streak_days,
        "longest_streak_days": stats.longest_streak_days,
        "total_time_spent_seconds": stats.total_time_spent_seconds,
    }


def stats_from_doc(doc: dict[str, Any]) -> PeriodStats:
    return PeriodStats(**doc)


def record_to_doc(record: ProgressRecord) -> dict[str, Any]:
    return {
        "period_kind": record.period_kind,
        "window_start": _dt(record.window_start),
        "window_end": _dt(record.window_end),
        "last_updated": _dt(record.last_updated),
        "stats": stats_to_doc(record.stats),
        "history": [entry_to_doc(e) for e in record.history],
    }


def record_from_doc(doc: dict[str, Any]) -> ProgressRecord:
    return ProgressRecord(
        period_kind=doc["period_kind"],
        window_start=datetime.fromisoformat(doc["window_start"]),
        window_end=_parse_dt(doc["window_end"]),
        last_updated=datetime.fromisoformat(doc["last_updated"]),
        stats=stats_from_doc(doc["stats"]),
        history=tuple(entry_from_doc(e) for e in doc["history"]),
    )


def state_to_doc(state: UserProgressState) -> dict[str, Any]:
    return {
        "user_id": state.user_id,
        "created_at": _dt(state.created_at),
        "records": {kind: record_to_doc(r) for kind, r in state.records.items()},
    }


def state_from_doc(doc: dict[str, Any], *, version: int) -> UserProgressState:
    return UserProgressState(
        user_id=doc["user_id"],
        created_at=datetime.fromisoformat(doc["created_at"]),
        records={kind: record_from_doc(r) for kind, r in doc["records"].items()},
        version=version,
    )
