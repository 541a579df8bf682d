"""Day-based streaks.

A streak is a run of consecutive calendar days with at least one quiz.
Several quizzes on one day count once.  The most recent run is only
"current" while its last day is today or yesterday, so a player who has
not played yet today keeps their streak until the day is over.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta, tzinfo

from quizstats.models.progress import HistoryEntry
from quizstats.services.windows import local_date

_ONE_DAY = timedelta(days=1)


def history_dates(history: Iterable[HistoryEntry], tz: tzinfo) -> set[date]:
    return {local_date(e.date, tz) for e in history}


def recompute(dates: Iterable[date], today: date) -> tuple[int, int]:
    """Return ``(current_streak_days, longest_streak_days)``."""
    ordered = sorted(set(dates), reverse=True)
    if not ordered:
        return 0, 0

    longest = 0
    run = 0
    first_run: int | None = None
    previous: date | None = None

    for day in ordered:
        if previous is not None and previous - day == _ONE_DAY:
            run += 1
        else:
            if previous is not None and first_run is None:
                first_run = run
            run = 1
        longest = max(longest, run)
        previous = day

    if first_run is None:
        first_run = run

    current = first_run if today - ordered[0] <= _ONE_DAY else 0
    return current, longest
