from __future__ import annotations

from datetime import UTC, datetime

import pytest

from quizstats.models.progress import HistoryEntry, PeriodStats
from quizstats.services.accumulator import apply_entry, score_percent

_WHEN = datetime(2024, 3, 6, 12, tzinfo=UTC)


def _entry(correct: int, total: int, *, incorrect: int = 0, skipped: int = 0) -> HistoryEntry:
    return HistoryEntry(
        quiz_id=f"q-{correct}-{total}",
        date=_WHEN,
        questions_answered=total,
        correct=correct,
        incorrect=incorrect,
        skipped=skipped,
        score_percent=score_percent(correct, total),
        time_spent_seconds=60,
    )


def test_score_percent_counts_skipped_in_denominator() -> None:
    # 3 correct, 1 incorrect, 1 skipped out of 5 questions
    assert score_percent(3, 5) == pytest.approx(60.0)


def test_score_percent_with_no_questions_is_zero() -> None:
    assert score_percent(0, 0) == 0.0


def test_first_entry_sets_best_and_worst() -> None:
    stats = apply_entry(PeriodStats(), _entry(8, 10, incorrect=2))
    assert stats.total_quizzes == 1
    assert stats.best_score_percent == pytest.approx(80.0)
    assert stats.worst_score_percent == pytest.approx(80.0)


def test_worst_is_not_pinned_at_zero() -> None:
    stats = apply_entry(PeriodStats(), _entry(9, 10))
    stats = apply_entry(stats, _entry(6, 10))
    assert stats.worst_score_percent == pytest.approx(60.0)
    assert stats.best_score_percent == pytest.approx(90.0)


def test_running_mean_matches_plain_mean() -> None:
    scores = [(5, 10), (10, 10), (3, 4), (0, 8)]
    stats = PeriodStats()
    for correct, total in scores:
        stats = apply_entry(stats, _entry(correct, total))
    expected = sum(c / t * 100 for c, t in scores) / len(scores)
    assert stats.average_score_percent == pytest.approx(expected)


def test_empty_quiz_counts_but_does_not_rank() -> None:
    stats = apply_entry(PeriodStats(), _entry(7, 10))
    stats = apply_entry(stats, _entry(0, 0))
    assert stats.total_quizzes == 2
    assert stats.best_score_percent == pytest.approx(70.0)
    assert stats.worst_score_percent == pytest.approx(70.0)


def test_worst_stays_unset_without_scored_quiz() -> None:
    stats = apply_entry(PeriodStats(), _entry(0, 0))
    assert stats.worst_score_percent is None


def test_totals_are_summed() -> None:
    stats = apply_entry(PeriodStats(), _entry(3, 5, incorrect=1, skipped=1))
    stats = apply_entry(stats, _entry(2, 4, incorrect=2))
    assert stats.total_questions == 9
    assert stats.correct_answers == 5
    assert stats.incorrect_answers == 3
    assert stats.skipped_answers == 1
    assert stats.total_time_spent_seconds == 120


def test_apply_entry_does_not_mutate_input() -> None:
    before = PeriodStats()
    apply_entry(before, _entry(1, 1))
    assert before == PeriodStats()
