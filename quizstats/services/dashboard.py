"""Project progress records into the dashboard's display shape.

Display percentages use ``correct / (correct + incorrect)``: skipped
questions do not count against the player here.  Stored stats use
``correct / total_questions`` instead (see accumulator.score_percent).
Both conventions are pinned by tests.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta, tzinfo

from quizstats.models.dashboard import Bucketing, DisplayBucket, DisplaySummary
from quizstats.models.progress import HistoryEntry, PeriodKind, ProgressRecord, Window
from quizstats.services.windows import (
    as_aware,
    local_date,
    midnight,
    week_start,
)

WARM_COLOR = "#ffe066"
MID_COLOR = "#ffa366"
LOW_COLOR = "#ff6666"
NEUTRAL_COLOR = "#cccccc"

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
# Indexed by date.weekday(): Monday == 0
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def color_for(percent: float, is_active: bool) -> str:
    if not is_active:
        return NEUTRAL_COLOR
    if percent >= 50:
        return WARM_COLOR
    if percent >= 25:
        return MID_COLOR
    return LOW_COLOR


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


def format_day(day: date) -> str:
    return f"{DAY_NAMES[day.weekday()]}, {MONTH_NAMES[day.month - 1]} {day.day}, {day.year}"


def format_month(day: date) -> str:
    return f"{MONTH_NAMES[day.month - 1]} {day.year}"


def format_week(first: date) -> str:
    last = first + timedelta(days=6)
    if first.year != last.year:
        return (
            f"{MONTH_NAMES[first.month - 1]} {first.day}, {first.year}-"
            f"{MONTH_NAMES[last.month - 1]} {last.day}, {last.year}"
        )
    if first.month != last.month:
        return (
            f"{MONTH_NAMES[first.month - 1]} {first.day}-"
            f"{MONTH_NAMES[last.month - 1]} {last.day}, {first.year}"
        )
    return f"{MONTH_NAMES[first.month - 1]} {first.day}-{last.day}, {first.year}"


def window_label(kind: PeriodKind, window: Window, tz: tzinfo) -> str:
    first = local_date(window.start, tz)
    if kind == "daily":
        return format_day(first)
    if kind == "weekly":
        return format_week(first)
    if kind == "monthly":
        return format_month(first)
    if kind == "yearly":
        return str(first.year)
    return "All time"


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------


def _bucket_ranges(
    kind: PeriodKind, window: Window, tz: tzinfo, now: datetime
) -> list[tuple[str, date, date]]:
    """(label, first day, day after last) for each breakdown bucket."""
    first = local_date(window.start, tz)

    if kind in ("daily", "weekly"):
        sunday = week_start(first)
        days = [sunday + timedelta(days=i) for i in range(7)]
        return [(DAY_NAMES[d.weekday()], d, d + timedelta(days=1)) for d in days]

    if kind == "monthly":
        end = local_date(window.end, tz) if window.end else first
        out = []
        d = first
        while d < end:
            out.append((f"{MONTH_NAMES[d.month - 1]} {d.day}, {d.year}", d, d + timedelta(days=1)))
            d += timedelta(days=1)
        return out

    if kind == "yearly":
        out = []
        for month in range(1, 13):
            start = date(first.year, month, 1)
            end = date(first.year + 1, 1, 1) if month == 12 else date(first.year, month + 1, 1)
            out.append((format_month(start), start, end))
        return out

    last_year = max(local_date(now, tz).year, first.year)
    return [
        (str(year), date(year, 1, 1), date(year + 1, 1, 1))
        for year in range(first.year, last_year + 1)
    ]


def _make_bucket(
    label: str, start: datetime, end: datetime, entries: list[HistoryEntry]
) -> DisplayBucket:
    correct = sum(e.correct for e in entries)
    incorrect = sum(e.incorrect for e in entries)
    skipped = sum(e.skipped for e in entries)
    answered = correct + incorrect
    is_active = answered > 0
    percent = correct / answered * 100 if is_active else 0.0
    return DisplayBucket(
        label=label,
        start=start,
        end=end,
        quizzes=len(entries),
        correct=correct,
        incorrect=incorrect,
        skipped=skipped,
        percent=round(percent, 1),
        color=color_for(percent, is_active),
        is_active=is_active,
    )


def summarize(
    kind: PeriodKind,
    window: Window,
    entries: Iterable[HistoryEntry],
    *,
    bucketing: Bucketing,
    tz: tzinfo,
    now: datetime,
) -> DisplaySummary:
    """Build a DisplaySummary for ``window`` from ``entries``.

    Totals only count entries inside the window.  Breakdown buckets may
    reach past it: a daily summary shows the whole Sunday-Saturday week
    so the client can render a per-weekday table, provided ``entries``
    covers that week.
    """
    now = as_aware(now)
    entries = list(entries)
    label = window_label(kind, window, tz)
    in_window = [e for e in entries if window.contains(as_aware(e.date))]
    end = window.end or now
    total = _make_bucket(label, window.start, end, in_window)

    if bucketing == "aggregate":
        buckets: tuple[DisplayBucket, ...] = (total,)
    else:
        ranges = _bucket_ranges(kind, window, tz, now)
        buckets = tuple(
            _make_bucket(
                name,
                midnight(first, tz),
                midnight(after, tz),
                [
                    e
                    for e in entries
                    if first <= local_date(e.date, tz) < after
                ],
            )
            for name, first, after in ranges
        )

    return DisplaySummary(
        period_kind=kind,
        label=label,
        window_start=window.start,
        window_end=window.end,
        total_quizzes=total.quizzes,
        total_correct=total.correct,
        total_incorrect=total.incorrect,
        total_skipped=total.skipped,
        overall_percent=total.percent,
        color=total.color,
        is_active=total.is_active,
        buckets=buckets,
    )


def project(
    record: ProgressRecord,
    bucketing: Bucketing = "aggregate",
    *,
    tz: tzinfo,
    now: datetime,
) -> DisplaySummary:
    return summarize(
        record.period_kind,
        record.window,
        record.history,
        bucketing=bucketing,
        tz=tz,
        now=now,
    )
