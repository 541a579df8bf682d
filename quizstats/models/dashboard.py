from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from quizstats.models.progress import PeriodKind

Bucketing = Literal["aggregate", "breakdown"]


@dataclass(frozen=True, slots=True)
class DisplayBucket:
    label: str
    start: datetime
    end: datetime
    quizzes: int
    correct: int
    incorrect: int
    skipped: int
    percent: float
    color: str
    is_active: bool

    @property
    def total(self) -> int:
        return self.correct + self.incorrect + self.skipped


@dataclass(frozen=True, slots=True)
class DisplaySummary:
    """Client-facing view of one window: totals, colour and sub-buckets."""

    period_kind: PeriodKind
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
    buckets: tuple[DisplayBucket, ...]


@dataclass(frozen=True, slots=True)
class DashboardSelector:
    """Explicit calendar selection for a dashboard query; all parts optional."""

    year: int | None = None
    month: int | None = None
    week: int | None = None
    day: int | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.year is None
            and self.month is None
            and self.week is None
            and self.day is None
        )

    def cache_key(self) -> str:
        parts = (self.year, self.month, self.week, self.day)
        return "-".join("" if p is None else str(p) for p in parts)
