"""Rollup engine: applies quiz events to a user's five period records.

STATE TRANSITIONS, NOT STORAGE
-------------------------------
The engine never loads or saves anything.  Every method takes an
immutable ``UserProgressState`` and returns a new one, plus the records
that were closed along the way.  The caller (ProgressService) owns the
read-modify-write cycle, locking and retries.  Because a transition has
no side effects, a failed save can simply be retried from a fresh load.

EXACTLY-ONCE ACCOUNTING
------------------------
``quiz_id`` is the idempotency key.  The all-time record never closes,
so its history holds every quiz the user has ever been credited with;
a quiz id found there makes the whole event a no-op.  Checking only the
target record would not be enough: a future-dated event is clamped to
``now``, so a re-delivery after midnight routes to a new daily window
that has never seen the id.  Each record's own history is still checked
too.  Earlier versions of this system appended blindly and needed a
clean-up script to remove duplicate history rows.

WINDOW MIGRATION
-----------------
``ensure_current(state, now)`` replaces every record whose window ended
at or before ``now`` with an empty record for the window containing
``now``.  The closed record is returned so it can be archived as "last
week", "last month" and so on.  All-time never closes.

LATE EVENTS
------------
An event is routed by when it happened (clamped to ``now``).  Closed
windows are never reopened: a late quiz counts toward all-time and
toward every current window that still contains it.  A quiz from last
Monday played on a Wednesday lands in this week, month and year but not
in today's daily record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, tzinfo

from quizstats.models.progress import (
    PERIOD_KINDS,
    HistoryEntry,
    PeriodKind,
    PeriodStats,
    ProgressRecord,
    QuizCompletionEvent,
    UserProgressState,
)
from quizstats.services import accumulator, streaks
from quizstats.services.errors import InvalidEvent
from quizstats.services.windows import as_aware, local_date, resolve_window

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Rollover:
    state: UserProgressState
    archived: tuple[ProgressRecord, ...] = ()


@dataclass(frozen=True, slots=True)
class IngestResult:
    state: UserProgressState
    archived: tuple[ProgressRecord, ...]
    applied_kinds: tuple[PeriodKind, ...]

    @property
    def duplicate(self) -> bool:
        return not self.applied_kinds


def validate_event(event: QuizCompletionEvent) -> None:
    if not event.quiz_id or not event.quiz_id.strip():
        raise InvalidEvent("quiz_id must be non-empty")
    counts = {
        "total_questions": event.total_questions,
        "correct": event.correct,
        "incorrect": event.incorrect,
        "skipped": event.skipped,
        "time_spent_seconds": event.time_spent_seconds,
    }
    for name, value in counts.items():
        if value < 0:
            raise InvalidEvent(f"{name} must be non-negative (got {value})")
    answered = event.correct + event.incorrect + event.skipped
    if answered > event.total_questions:
        raise InvalidEvent(
            f"correct+incorrect+skipped ({answered}) exceeds "
            f"total_questions ({event.total_questions})"
        )


class RollupEngine:
    def __init__(self, tz: tzinfo) -> None:
        self.tz = tz

    # -- construction -------------------------------------------------------

    def empty_record(
        self, kind: PeriodKind, now: datetime, *, created_at: datetime
    ) -> ProgressRecord:
        window = resolve_window(kind, now, tz=self.tz, account_created_at=created_at)
        return ProgressRecord(
            period_kind=kind,
            window_start=window.start,
            window_end=window.end,
            last_updated=as_aware(now),
        )

    def new_state(
        self, user_id: str, now: datetime, *, created_at: datetime | None = None
    ) -> UserProgressState:
        created = as_aware(created_at or now)
        records = {
            kind: self.empty_record(kind, now, created_at=created)
            for kind in PERIOD_KINDS
        }
        return UserProgressState(user_id=user_id, created_at=created, records=records)

    # -- migration -----------------------------------------------------------

    def ensure_current(
        self, state: UserProgressState, now: datetime, *, refresh_streaks: bool = True
    ) -> Rollover:
        now = as_aware(now)
        today = local_date(now, self.tz)
        records = dict(state.records)
        archived: list[ProgressRecord] = []
        changed = False

        for kind in PERIOD_KINDS:
            record = records.get(kind)
            if record is None:
                records[kind] = self.empty_record(kind, now, created_at=state.created_at)
                changed = True
                continue

            if record.window_end is not None and record.window_end <= now:
                logger.info(
                    "Rolling over %s window for user=%s (%s -> %s)",
                    kind,
                    state.user_id,
                    record.window_start.date(),
                    record.window_end.date(),
                    extra={"user_id": state.user_id, "period_kind": kind},
                )
                archived.append(record)
                records[kind] = self.empty_record(kind, now, created_at=state.created_at)
                changed = True
                continue

            if not refresh_streaks:
                continue
            refreshed = self._refresh_current_streak(record, today)
            if refreshed is not record:
                records[kind] = refreshed
                changed = True

        if not changed:
            return Rollover(state)
        return Rollover(replace(state, records=records), tuple(archived))

    def _refresh_current_streak(self, record: ProgressRecord, today) -> ProgressRecord:
        if not record.history:
            return record
        current, longest = streaks.recompute(
            streaks.history_dates(record.history, self.tz), today
        )
        stats = record.stats
        if (current, longest) == (stats.current_streak_days, stats.longest_streak_days):
            return record
        return replace(
            record,
            stats=replace(
                stats, current_streak_days=current, longest_streak_days=longest
            ),
        )

    # -- ingestion -----------------------------------------------------------

    def ingest(
        self, state: UserProgressState, event: QuizCompletionEvent, now: datetime
    ) -> IngestResult:
        validate_event(event)
        now = as_aware(now)
        effective_at = min(as_aware(event.occurred_at), now)

        all_time = state.records.get("all-time")
        if all_time is not None and all_time.has_quiz(event.quiz_id):
            rollover = self.ensure_current(state, now)
            return IngestResult(
                state=rollover.state, archived=rollover.archived, applied_kinds=()
            )

        first = self.ensure_current(state, effective_at, refresh_streaks=False)
        records = dict(first.state.records)
        entry = HistoryEntry(
            quiz_id=event.quiz_id,
            date=effective_at,
            questions_answered=event.total_questions,
            correct=event.correct,
            incorrect=event.incorrect,
            skipped=event.skipped,
            score_percent=accumulator.score_percent(
                event.correct, event.total_questions
            ),
            time_spent_seconds=event.time_spent_seconds,
        )
        today = local_date(now, self.tz)

        applied: list[PeriodKind] = []
        for kind in PERIOD_KINDS:
            record = records[kind]
            if record.has_quiz(event.quiz_id):
                continue
            if kind != "all-time" and effective_at < record.window_start:
                logger.debug(
                    "Late quiz=%s skipped for closed %s window of user=%s",
                    event.quiz_id,
                    kind,
                    state.user_id,
                )
                continue
            records[kind] = self._append(record, entry, today, now)
            applied.append(kind)

        updated = replace(first.state, records=records) if applied else first.state
        second = self.ensure_current(updated, now)
        return IngestResult(
            state=second.state,
            archived=first.archived + second.archived,
            applied_kinds=tuple(applied),
        )

    def _append(
        self,
        record: ProgressRecord,
        entry: HistoryEntry,
        today,
        now: datetime,
    ) -> ProgressRecord:
        history = record.history + (entry,)
        stats: PeriodStats = accumulator.apply_entry(record.stats, entry)
        current, longest = streaks.recompute(
            streaks.history_dates(history, self.tz), today
        )
        stats = replace(stats, current_streak_days=current, longest_streak_days=longest)
        return replace(record, stats=stats, history=history, last_updated=now)
