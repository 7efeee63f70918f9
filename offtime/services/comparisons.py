"""
Period-over-period comparison of two rollups of the same timeframe.

Changes are percentages from `percentage_change` (a zero baseline reads as
100 when the current value is positive, otherwise 0).

Comparison notes (at most MAX_NOTES, in this order)
----------------------------------------------------
  minutes       > 20 "increased", > 10 "improved", < -20 "decreased"
  consistency   > 15 "improved significantly", < -15 "dropped"
  sessions      > 25 "more sessions"
  goals         > 0  "more goals"
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Union

from offtime.services.rollups import DailyRollup, MonthlyRollup, WeeklyRollup
from offtime.services.trends import percentage_change

MAX_NOTES = 3

Rollup = Union[DailyRollup, WeeklyRollup, MonthlyRollup]

_PERIOD_NOUNS = {"daily": "day", "weekly": "week", "monthly": "month"}


@dataclass
class PeriodTotals:
    start: date
    end: date
    total_minutes: float
    session_count: int
    average_length: float
    goal_completions: int
    consistency_score: float


@dataclass
class PeriodChanges:
    minutes_change: float
    session_count_change: float
    average_length_change: float
    goal_completions_change: float
    consistency_change: float


@dataclass
class Comparison:
    timeframe: str
    current: PeriodTotals
    previous: PeriodTotals
    changes: PeriodChanges
    insights: list[str]


def month_bounds(month: str) -> tuple[date, date]:
    year, mon = (int(part) for part in month.split("-"))
    return date(year, mon, 1), date(year, mon, calendar.monthrange(year, mon)[1])


def period_totals(rollup: Rollup) -> PeriodTotals:
    if isinstance(rollup, DailyRollup):
        return PeriodTotals(
            start=rollup.date,
            end=rollup.date,
            total_minutes=rollup.total_minutes,
            session_count=rollup.session_count,
            average_length=rollup.average_session_length,
            goal_completions=rollup.goal_completions,
            consistency_score=100 if rollup.total_minutes > 0 else 0,
        )
    if isinstance(rollup, WeeklyRollup):
        return PeriodTotals(
            start=rollup.week_start,
            end=rollup.week_start + timedelta(days=6),
            total_minutes=rollup.total_minutes,
            session_count=rollup.session_count,
            average_length=rollup.average_session_length,
            goal_completions=rollup.goal_completions,
            consistency_score=rollup.patterns.consistency_score,
        )
    start, end = month_bounds(rollup.month)
    return PeriodTotals(
        start=start,
        end=end,
        total_minutes=rollup.total_minutes,
        session_count=rollup.session_count,
        average_length=rollup.average_session_length,
        goal_completions=rollup.goal_completions,
        consistency_score=rollup.consistency_score,
    )


def calculate_changes(current: PeriodTotals, previous: PeriodTotals) -> PeriodChanges:
    return PeriodChanges(
        minutes_change=percentage_change(current.total_minutes, previous.total_minutes),
        session_count_change=percentage_change(current.session_count, previous.session_count),
        average_length_change=percentage_change(current.average_length, previous.average_length),
        goal_completions_change=percentage_change(
            current.goal_completions, previous.goal_completions
        ),
        consistency_change=percentage_change(
            current.consistency_score, previous.consistency_score
        ),
    )


def comparison_notes(changes: PeriodChanges, timeframe: str) -> list[str]:
    noun = _PERIOD_NOUNS[timeframe]
    notes: list[str] = []

    if changes.minutes_change > 20:
        notes.append(
            f"Excellent! You increased your {timeframe} minutes by {round(changes.minutes_change)}%"
        )
    elif changes.minutes_change > 10:
        notes.append(
            f"Great progress! Your {timeframe} minutes improved by {round(changes.minutes_change)}%"
        )
    elif changes.minutes_change < -20:
        notes.append(
            f"Your {timeframe} minutes decreased by {round(abs(changes.minutes_change))}%. "
            "Consider what might have changed."
        )

    if changes.consistency_change > 15:
        notes.append(f"Your consistency improved significantly this {noun}!")
    elif changes.consistency_change < -15:
        notes.append(f"Your consistency dropped this {noun}. Try to maintain regular sessions.")

    if changes.session_count_change > 25:
        notes.append(
            f"You're on fire! {round(changes.session_count_change)}% more sessions this {noun}!"
        )

    if changes.goal_completions_change > 0:
        notes.append(
            f"You completed {round(changes.goal_completions_change)}% more goals this {noun}!"
        )

    return notes[:MAX_NOTES]


def compare(current: Rollup, previous: Rollup, timeframe: str) -> Comparison:
    """Compare two rollups of the same `timeframe` ("daily" | "weekly" | "monthly")."""
    now_totals = period_totals(current)
    before_totals = period_totals(previous)
    changes = calculate_changes(now_totals, before_totals)
    return Comparison(
        timeframe=timeframe,
        current=now_totals,
        previous=before_totals,
        changes=changes,
        insights=comparison_notes(changes, timeframe),
    )
