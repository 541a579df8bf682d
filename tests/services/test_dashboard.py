"""Dashboard projection.

Display percent is correct / (correct + incorrect); stored stats use
correct / total_questions.  Both are pinned here on purpose.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from quizstats.models.progress import Window
from quizstats.services import dashboard
from quizstats.services.dashboard import (
    LOW_COLOR,
    MID_COLOR,
    NEUTRAL_COLOR,
    WARM_COLOR,
    color_for,
    format_day,
    format_month,
    format_week,
    project,
    summarize,
)
from quizstats.services.rollup_engine import RollupEngine
from tests.conftest import DEFAULT_NOW, make_event

NOW = DEFAULT_NOW


@pytest.mark.parametrize(
    ("percent", "expected"),
    [(100, WARM_COLOR), (50, WARM_COLOR), (49.9, MID_COLOR), (25, MID_COLOR), (24.9, LOW_COLOR), (0, LOW_COLOR)],
)
def test_color_thresholds(percent: float, expected: str) -> None:
    assert color_for(percent, is_active=True) == expected


def test_inactive_is_neutral() -> None:
    assert color_for(80, is_active=False) == NEUTRAL_COLOR


def test_labels() -> None:
    assert format_day(date(2024, 3, 4)) == "Monday, March 4, 2024"
    assert format_month(date(2024, 3, 1)) == "March 2024"
    assert format_week(date(2024, 3, 3)) == "March 3-9, 2024"
    assert format_week(date(2024, 3, 31)) == "March 31-April 6, 2024"
    assert format_week(date(2023, 12, 31)) == "December 31, 2023-January 6, 2024"


def test_zero_events_day_is_inactive_without_dividing_by_zero() -> None:
    engine = RollupEngine(UTC)
    state = engine.new_state("u1", NOW)
    summary = project(state.record("daily"), "breakdown", tz=UTC, now=NOW)

    assert summary.overall_percent == 0
    assert not summary.is_active
    assert summary.color == NEUTRAL_COLOR
    assert len(summary.buckets) == 7
    assert all(not b.is_active for b in summary.buckets)
    assert all(b.color == NEUTRAL_COLOR for b in summary.buckets)


def test_aggregate_uses_correct_over_answered() -> None:
    engine = RollupEngine(UTC)
    state = engine.new_state("u1", NOW)
    event = make_event(total_questions=5, correct=3, incorrect=1, skipped=1)
    state = engine.ingest(state, event, NOW).state
    record = state.record("daily")

    summary = project(record, tz=UTC, now=NOW)
    assert summary.overall_percent == 75.0
    assert summary.color == WARM_COLOR
    assert summary.total_skipped == 1
    assert len(summary.buckets) == 1
    # Stored score counts the skipped question against the player.
    assert record.stats.average_score_percent == pytest.approx(60.0)


def test_all_skipped_quiz_is_inactive() -> None:
    window = Window(datetime(2024, 3, 6, tzinfo=UTC), datetime(2024, 3, 7, tzinfo=UTC))
    engine = RollupEngine(UTC)
    state = engine.new_state("u1", NOW)
    event = make_event(total_questions=4, correct=0, incorrect=0, skipped=4)
    state = engine.ingest(state, event, NOW).state

    summary = summarize(
        "daily", window, state.record("daily").history, bucketing="aggregate", tz=UTC, now=NOW
    )
    assert summary.total_quizzes == 1
    assert not summary.is_active
    assert summary.overall_percent == 0


def test_weekly_breakdown_has_one_bucket_per_weekday() -> None:
    engine = RollupEngine(UTC)
    state = engine.new_state("u1", NOW - timedelta(days=10))
    monday = NOW - timedelta(days=2)
    state = engine.ingest(state, make_event("mon", occurred_at=monday, correct=1, incorrect=3, skipped=0), NOW).state
    state = engine.ingest(state, make_event("wed", correct=4, incorrect=0, skipped=0), NOW).state

    summary = project(state.record("weekly"), "breakdown", tz=UTC, now=NOW)
    labels = [b.label for b in summary.buckets]
    assert labels == ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

    by_label = {b.label: b for b in summary.buckets}
    assert by_label["Monday"].percent == 25.0
    assert by_label["Monday"].color == MID_COLOR
    assert by_label["Wednesday"].percent == 100.0
    assert not by_label["Tuesday"].is_active
    assert summary.total_quizzes == 2
    assert summary.label == "March 3-9, 2024"


def test_yearly_breakdown_is_monthly() -> None:
    engine = RollupEngine(UTC)
    state = engine.new_state("u1", NOW)
    summary = project(state.record("yearly"), "breakdown", tz=UTC, now=NOW)
    assert len(summary.buckets) == 12
    assert summary.buckets[0].label == "January 2024"
    assert summary.label == "2024"


def test_monthly_breakdown_is_daily() -> None:
    engine = RollupEngine(UTC)
    state = engine.new_state("u1", NOW)
    summary = project(state.record("monthly"), "breakdown", tz=UTC, now=NOW)
    assert len(summary.buckets) == 31
    assert summary.label == "March 2024"


def test_all_time_window_is_labelled_and_bucketed_by_year() -> None:
    engine = RollupEngine(UTC)
    state = engine.new_state("u1", NOW, created_at=datetime(2022, 5, 1, tzinfo=UTC))
    summary = project(state.record("all-time"), "breakdown", tz=UTC, now=NOW)
    assert summary.label == "All time"
    assert summary.window_end is None
    assert [b.label for b in summary.buckets] == ["2022", "2023", "2024"]


def test_window_label_for_daily() -> None:
    window = Window(datetime(2024, 3, 4, tzinfo=UTC), datetime(2024, 3, 5, tzinfo=UTC))
    assert dashboard.window_label("daily", window, UTC) == "Monday, March 4, 2024"
