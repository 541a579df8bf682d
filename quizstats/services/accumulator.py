"""Fold one quiz into a window's running totals.

Each fold is O(1): the average is kept as a running mean, so adding a
quiz never rescans the window's history.
"""

from __future__ import annotations

from dataclasses import replace

from quizstats.models.progress import HistoryEntry, PeriodStats


def score_percent(correct: int, total_questions: int) -> float:
    """Per-quiz score.  The denominator includes skipped questions."""
    if total_questions <= 0:
        return 0.0
    return correct / total_questions * 100


def apply_entry(stats: PeriodStats, entry: HistoryEntry) -> PeriodStats:
    new_count = stats.total_quizzes + 1
    score = entry.score_percent
    average = (stats.average_score_percent * stats.total_quizzes + score) / new_count

    best = stats.best_score_percent
    worst = stats.worst_score_percent
    # A quiz with no questions has no score to rank.
    if entry.questions_answered > 0:
        best = max(best, score)
        worst = score if worst is None else min(worst, score)

    return replace(
        stats,
        total_quizzes=new_count,
        total_questions=stats.total_questions + entry.questions_answered,
        correct_answers=stats.correct_answers + entry.correct,
        incorrect_answers=stats.incorrect_answers + entry.incorrect,
        skipped_answers=stats.skipped_answers + entry.skipped,
        average_score_percent=average,
        best_score_percent=best,
        worst_score_percent=worst,
        total_time_spent_seconds=stats.total_time_spent_seconds
        + entry.time_spent_seconds,
    )
