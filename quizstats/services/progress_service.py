"""Load / transition / save orchestration for user progress.

THE WRITE CYCLE
----------------
Every operation that can change a user's state goes through ``_mutate``:

  1. take the per-user lock (single writer per user)
  2. load the state, or seed an empty one for a first-time user
  3. apply a pure engine transition
  4. skip the write entirely when nothing changed
  5. compare-and-swap save on ``version``, together with any records
     that were closed by a rollover
  6. on a lost race, reload and go again, at most ``max_retries`` times

Step 5 is all-or-nothing: state and archive land in one write, so an
error at any point leaves the stored state as it was.  Because ingest
is idempotent per quiz_id, callers can retry a failed request as a
whole.

Reads use the same cycle.  A read after midnight is what closes
yesterday's daily window when no quiz has arrived since, so the
"current" records a client sees always cover the moment of the query.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from quizstats.core.metrics import PERIOD_ROLLOVERS, QUIZ_EVENTS, SAVE_CONFLICTS
from quizstats.models.dashboard import Bucketing, DashboardSelector, DisplaySummary
from quizstats.models.progress import (
    HistoryEntry,
    PeriodKind,
    ProgressRecord,
    QuizCompletionEvent,
    UserProgressState,
)
from quizstats.repos.progress_repo import ProgressStateRepo
from quizstats.services import dashboard
from quizstats.services.cache import CacheService
from quizstats.services.errors import ConcurrentUpdateConflict, InvalidEvent, ProgressError
from quizstats.services.rollup_engine import RollupEngine, validate_event
from quizstats.services.user_lock import UserLock
from quizstats.services.windows import window_for_selector

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Transition = Callable[
    [UserProgressState, datetime],
    tuple[UserProgressState, Sequence[ProgressRecord]],
]


def utcnow() -> datetime:
    return datetime.now(UTC)


def dashboard_cache_prefix(user_id: str) -> str:
    return f"dashboard:{user_id}:"


@dataclass(frozen=True, slots=True)
class _Outcome:
    state: UserProgressState
    changed: bool


class ProgressService:
    def __init__(
        self,
        repo: ProgressStateRepo,
        lock: UserLock,
        engine: RollupEngine,
        cache: CacheService,
        *,
        max_retries: int = 3,
        clock: Clock = utcnow,
    ) -> None:
        self._repo = repo
        self._lock = lock
        self._engine = engine
        self._cache = cache
        self._max_retries = max_retries
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # -- write cycle ---------------------------------------------------------

    async def _mutate(self, user_id: str, transition: Transition) -> _Outcome:
        async with self._lock.hold(user_id):
            for attempt in range(1, self._max_retries + 1):
                now = self._clock()
                current = await self._repo.load_state(user_id)
                if current is None:
                    current = self._engine.new_state(user_id, now)

                new_state, archived = transition(current, now)
                if current.version > 0 and new_state == current:
                    return _Outcome(current, changed=False)

                to_save = replace(new_state, version=current.version + 1)
                saved = await self._repo.save_state(
                    to_save, expected_version=current.version, archived=archived
                )
                if saved:
                    for record in archived:
                        PERIOD_ROLLOVERS.labels(period_kind=record.period_kind).inc()
                    await self._cache.delete_pattern(f"{dashboard_cache_prefix(user_id)}*")
                    return _Outcome(to_save, changed=True)

                SAVE_CONFLICTS.inc()
                logger.warning(
                    "Version conflict saving progress for user=%s, retrying (%d/%d)",
                    user_id,
                    attempt,
                    self._max_retries,
                    extra={"user_id": user_id},
                )

        raise ConcurrentUpdateConflict(
            user_id, f"version changed on {self._max_retries} consecutive saves"
        )

    # -- operations ----------------------------------------------------------

    async def ingest(self, user_id: str, event: QuizCompletionEvent) -> UserProgressState:
        try:
            validate_event(event)
        except InvalidEvent as e:
            QUIZ_EVENTS.labels(result="invalid").inc()
            logger.warning(
                "Rejected quiz event for user=%s quiz=%s: %s",
                user_id,
                event.quiz_id,
                e,
                extra={"user_id": user_id, "quiz_id": event.quiz_id},
            )
            raise

        applied: tuple[PeriodKind, ...] = ()

        def transition(state: UserProgressState, now: datetime):
            nonlocal applied
            result = self._engine.ingest(state, event, now)
            applied = result.applied_kinds
            return result.state, result.archived

        outcome = await self._mutate(user_id, transition)

        if applied:
            QUIZ_EVENTS.labels(result="applied").inc()
            logger.info(
                "Recorded quiz=%s for user=%s in %s",
                event.quiz_id,
                user_id,
                ",".join(applied),
                extra={"user_id": user_id, "quiz_id": event.quiz_id},
            )
        else:
            QUIZ_EVENTS.labels(result="duplicate").inc()
            logger.info(
                "Duplicate quiz=%s for user=%s ignored",
                event.quiz_id,
                user_id,
                extra={"user_id": user_id, "quiz_id": event.quiz_id},
            )
        return outcome.state

    async def get_state(self, user_id: str) -> UserProgressState:
        return (await self._ensure_current(user_id)).state

    async def _ensure_current(self, user_id: str) -> _Outcome:
        def transition(state: UserProgressState, now: datetime):
            rollover = self._engine.ensure_current(state, now)
            return rollover.state, rollover.archived

        return await self._mutate(user_id, transition)

    async def get_record(self, user_id: str, kind: PeriodKind) -> ProgressRecord:
        state = await self.get_state(user_id)
        return state.record(kind)

    async def recent(self, user_id: str, limit: int = 10) -> list[HistoryEntry]:
        """Most recent quizzes first, from the all-time history."""
        state = await self.get_state(user_id)
        history = state.record("all-time").history
        return sorted(history, key=lambda e: e.date, reverse=True)[:limit]

    async def list_archived(self, user_id: str, kind: PeriodKind) -> list[ProgressRecord]:
        return await self._repo.list_archived(user_id, kind)

    async def dashboard(
        self,
        user_id: str,
        kind: PeriodKind,
        *,
        bucketing: Bucketing = "aggregate",
        selector: DashboardSelector | None = None,
    ) -> DisplaySummary:
        state = await self.get_state(user_id)
        now = self._clock()
        tz = self._engine.tz

        if selector is None or selector.is_empty:
            record = state.record(kind)
            if kind == "daily" and bucketing == "breakdown":
                # The weekday table needs the rest of the week, not just today.
                entries = state.record("weekly").history
                return dashboard.summarize(
                    kind, record.window, entries, bucketing=bucketing, tz=tz, now=now
                )
            return dashboard.project(record, bucketing, tz=tz, now=now)

        window = window_for_selector(
            kind, selector, tz=tz, now=now, account_created_at=state.created_at
        )
        return dashboard.summarize(
            kind,
            window,
            state.record("all-time").history,
            bucketing=bucketing,
            tz=tz,
            now=now,
        )

    async def reset(self, user_id: str) -> UserProgressState:
        """Clear all progress for a user and start again with empty windows."""
        async with self._lock.hold(user_id):
            existing = await self._repo.load_state(user_id)
            created_at = existing.created_at if existing is not None else None
            await self._repo.delete_state(user_id)
            state = self._engine.new_state(user_id, self._clock(), created_at=created_at)
            to_save = replace(state, version=1)
            if not await self._repo.save_state(to_save, expected_version=0):
                raise ConcurrentUpdateConflict(user_id, "state recreated during reset")
        await self._cache.delete_pattern(f"{dashboard_cache_prefix(user_id)}*")
        logger.info("Progress reset for user=%s", user_id, extra={"user_id": user_id})
        return to_save

    async def delete(self, user_id: str) -> None:
        """Drop every trace of a user's progress (account deletion)."""
        async with self._lock.hold(user_id):
            await self._repo.delete_state(user_id)
        await self._cache.delete_pattern(f"{dashboard_cache_prefix(user_id)}*")
        logger.info("Progress deleted for user=%s", user_id, extra={"user_id": user_id})

    async def sweep_all(self) -> tuple[int, int]:
        """Bring every stored user's windows up to date.

        Returns ``(processed, changed)``.  One failing user is logged and
        skipped; the sweep carries on with the rest.
        """
        processed = 0
        changed = 0
        for user_id in await self._repo.list_user_ids():
            try:
                outcome = await self._ensure_current(user_id)
            except ProgressError:
                logger.exception("Rollup sweep failed for user=%s", user_id)
                continue
            processed += 1
            if outcome.changed:
                changed += 1
        return processed, changed
