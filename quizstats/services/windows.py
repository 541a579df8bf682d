"""Calendar windows for each period kind.

All boundaries are wall-clock midnights in one configured zone (see
``Settings.timezone``).  Building them from calendar dates rather than
by adding 24h keeps them on midnight across DST changes, so a
daily window is 23 or 25 hours long twice a year.

Weeks run Sunday through Saturday.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta, tzinfo

from quizstats.models.dashboard import DashboardSelector
from quizstats.models.progress import PERIOD_KINDS, PeriodKind, Window
from quizstats.services.errors import InvalidSelector, UnknownPeriodKind

# Dashboard clients use the short names.
_ALIASES: dict[str, PeriodKind] = {
    "day": "daily",
    "week": "weekly",
    "month": "monthly",
    "year": "yearly",
    "all": "all-time",
    "alltime": "all-time",
    "all_time": "all-time",
}


def parse_period_kind(raw: str) -> PeriodKind:
    name = raw.strip().lower()
    if name in PERIOD_KINDS:
        return name  # type: ignore[return-value]
    if name in _ALIASES:
        return _ALIASES[name]
    raise UnknownPeriodKind(raw)


def as_aware(instant: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant


def local_date(instant: datetime, tz: tzinfo) -> date:
    return as_aware(instant).astimezone(tz).date()


def midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def week_start(day: date) -> date:
    """The Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def _calendar_window(kind: PeriodKind, day: date, tz: tzinfo) -> Window:
    if kind == "daily":
        start, end = day, day + timedelta(days=1)
    elif kind == "weekly":
        start = week_start(day)
        end = start + timedelta(days=7)
    elif kind == "monthly":
        start = day.replace(day=1)
        end = _first_of_next_month(start)
    elif kind == "yearly":
        start, end = date(day.year, 1, 1), date(day.year + 1, 1, 1)
    else:
        raise UnknownPeriodKind(kind)
    return Window(midnight(start, tz), midnight(end, tz))


def resolve_window(
    kind: str,
    now: datetime,
    *,
    tz: tzinfo,
    account_created_at: datetime | None = None,
) -> Window:
    """Return the window of ``kind`` that contains ``now``.

    The all-time window starts at ``account_created_at`` (``now`` when
    not given) and never ends.
    """
    if kind == "all-time":
        start = as_aware(account_created_at or now).astimezone(tz)
        return Window(start, None)
    if kind not in PERIOD_KINDS:
        raise UnknownPeriodKind(kind)
    return _calendar_window(kind, local_date(now, tz), tz)  # type: ignore[arg-type]


def window_for_selector(
    kind: PeriodKind,
    selector: DashboardSelector,
    *,
    tz: tzinfo,
    now: datetime,
    account_created_at: datetime | None = None,
) -> Window:
    """Resolve an explicit dashboard selection into a window.

    Parts that are not given default to the corresponding part of
    ``now``.  For weekly windows ``week`` (1-based, week 1 being the
    Sunday-start week that contains Jan 1) wins over a month/day
    reference date.
    """
    if kind == "all-time":
        return resolve_window(kind, now, tz=tz, account_created_at=account_created_at)

    today = local_date(now, tz)
    year = selector.year if selector.year is not None else today.year

    if kind == "weekly" and selector.week is not None:
        if not 1 <= selector.week <= 54:
            raise InvalidSelector(f"week must be between 1 and 54 (got {selector.week})")
        first = week_start(_make_date(year, 1, 1))
        start = first + timedelta(weeks=selector.week - 1)
        if start.year > year:
            raise InvalidSelector(f"year {year} has no week {selector.week}")
        return _calendar_window("weekly", start, tz)

    if kind == "yearly":
        return _calendar_window(kind, _make_date(year, 1, 1), tz)

    month = selector.month if selector.month is not None else today.month
    if kind == "monthly":
        return _calendar_window(kind, _make_date(year, month, 1), tz)

    day = selector.day if selector.day is not None else today.day
    return _calendar_window(kind, _make_date(year, month, day), tz)


def _make_date(year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise InvalidSelector(f"invalid date {year}-{month}-{day}: {e}") from None
