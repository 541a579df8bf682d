from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

PeriodKind = Literal["daily", "weekly", "monthly", "yearly", "all-time"]

# Storage order; also the order records are listed in API responses.
PERIOD_KINDS: tuple[PeriodKind, ...] = (
    "daily",
    "weekly",
    "monthly",
    "yearly",
    "all-time",
)


@dataclass(frozen=True, slots=True)
class QuizCompletionEvent:
    """One finished quiz as reported by the client.

    ``quiz_id`` is the idempotency key: delivering the same quiz twice
    must leave the rollups exactly as a single delivery would.
    """

    quiz_id: str
    total_questions: int
    correct: int
    incorrect: int
    skipped: int
    time_spent_seconds: int
    occurred_at: datetime


@dataclass(frozen=True, slots=True)
class Window:
    """Half-open ``[start, end)`` range; ``end is None`` means open-ended."""

    start: datetime
    end: datetime | None

    def contains(self, instant: datetime) -> bool:
        if instant < self.start:
            return False
        return self.end is None or instant < self.end

    @property
    def is_open(self) -> bool:
        return self.end is None


@dataclass(frozen=True, slots=True)
class PeriodStats:
    """Derived totals for one window.  Never authored directly."""

    total_quizzes: int = 0
    total_questions: int = 0
    correct_answers: int = 0
    incorrect_answers: int = 0
    skipped_answers: int = 0
    average_score_percent: float = 0.0
    best_score_percent: float = 0.0
    worst_score_percent: float | None = None  # None until a quiz with questions
    current_streak_days: int = 0
    longest_streak_days: int = 0
    total_time_spent_seconds: int = 0


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    quiz_id: str
    date: datetime
    questions_answered: int
    correct: int
    incorrect: int
    skipped: int
    score_percent: float
    time_spent_seconds: int


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """The running rollup for one (user, period kind) window.

    ``history`` keeps ingestion order, which is not necessarily
    chronological when events arrive late.
    """

    period_kind: PeriodKind
    window_start: datetime
    window_end: datetime | None
    last_updated: datetime
    stats: PeriodStats = field(default_factory=PeriodStats)
    history: tuple[HistoryEntry, ...] = ()

    @property
    def window(self) -> Window:
        return Window(self.window_start, self.window_end)

    def has_quiz(self, quiz_id: str) -> bool:
        return any(e.quiz_id == quiz_id for e in self.history)


@dataclass(frozen=True, slots=True)
class UserProgressState:
    """Exactly one current ProgressRecord per period kind for a user.

    ``version`` is owned by the persistence layer and bumped on every
    successful save; the engine never changes it.
    """

    user_id: str
    created_at: datetime
    records: dict[PeriodKind, ProgressRecord]
    version: int = 0

    def record(self, kind: PeriodKind) -> ProgressRecord:
        return self.records[kind]


@dataclass(frozen=True, slots=True)
class OverallStats:
    """Account-wide summary, projected from the all-time record."""

    total_quizzes_taken: int = 0
    total_questions_answered: int = 0
    total_correct_answers: int = 0
    total_incorrect_answers: int = 0
    total_skipped_answers: int = 0
    overall_accuracy: float = 0.0
    average_quiz_score: float = 0.0
    best_quiz_score: float = 0.0
    total_time_spent_seconds: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_quiz_date: datetime | None = None

    @staticmethod
    def from_record(record: ProgressRecord) -> OverallStats:
        s = record.stats
        accuracy = (
            s.correct_answers / s.total_questions * 100 if s.total_questions > 0 else 0.0
        )
        last = max((e.date for e in record.history), default=None)
        return OverallStats(
            total_quizzes_taken=s.total_quizzes,
            total_questions_answered=s.total_questions,
            total_correct_answers=s.correct_answers,
            total_incorrect_answers=s.incorrect_answers,
            total_skipped_answers=s.skipped_answers,
            overall_accuracy=accuracy,
            average_quiz_score=s.average_score_percent,
            best_quiz_score=s.best_score_percent,
            total_time_spent_seconds=s.total_time_spent_seconds,
            current_streak=s.current_streak_days,
            longest_streak=s.longest_streak_days,
            last_quiz_date=last,
        )
