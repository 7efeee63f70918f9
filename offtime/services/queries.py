"""
On-demand queries over an analytics snapshot.

All functions read a snapshot copy handed out by the orchestrator; none of
them touch the database or the best table.

Windows
-------
  trend_for     daily 7, weekly 4, monthly 6 periods unless given
  summarize     week = last 7 days, month = last 30 days,
                quarter = last 12 weeks, year = last 12 months

Range filtering keeps every rollup whose calendar bucket overlaps
[start, end]; either bound may be omitted.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

from offtime.core.errors import InvalidDateRangeError, UnknownMetricError
from offtime.services.comparisons import Comparison, month_bounds, compare
from offtime.services.orchestrator import AnalyticsSnapshot
from offtime.services.rollups import DailyRollup, WeeklyRollup
from offtime.services.trends import METRICS, TrendResult, analyze_trend


class Timeframe(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class SummarySpan(str, enum.Enum):
    week = "week"
    month = "month"
    quarter = "quarter"
    year = "year"


DEFAULT_TREND_PERIODS = {
    Timeframe.daily: 7,
    Timeframe.weekly: 4,
    Timeframe.monthly: 6,
}


@dataclass
class Summary:
    span: SummarySpan
    total_minutes: int
    total_sessions: int
    average_session_length: int
    goal_completions: int
    data_points: int
    period_start: Optional[date]
    period_end: Optional[date]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def series_for(snapshot: AnalyticsSnapshot, timeframe: Timeframe) -> list[Any]:
    if timeframe == Timeframe.daily:
        return snapshot.daily
    if timeframe == Timeframe.weekly:
        return snapshot.weekly
    return snapshot.monthly


def bucket_bounds(rollup: Any) -> tuple[date, date]:
    if isinstance(rollup, DailyRollup):
        return rollup.date, rollup.date
    if isinstance(rollup, WeeklyRollup):
        return rollup.week_start, rollup.week_start + timedelta(days=6)
    return month_bounds(rollup.month)


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def filter_rollups(
    snapshot: AnalyticsSnapshot,
    timeframe: Timeframe,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Any]:
    if start is not None and end is not None and start > end:
        raise InvalidDateRangeError(start, end)

    result = []
    for rollup in series_for(snapshot, timeframe):
        first, last = bucket_bounds(rollup)
        if start is not None and last < start:
            continue
        if end is not None and first > end:
            continue
        result.append(rollup)
    return result


def trend_for(
    snapshot: AnalyticsSnapshot,
    metric: str,
    timeframe: Timeframe = Timeframe.weekly,
    periods: Optional[int] = None,
) -> Optional[TrendResult]:
    if metric not in METRICS:
        raise UnknownMetricError(metric, list(METRICS))
    window = periods if periods is not None else DEFAULT_TREND_PERIODS[timeframe]
    result = analyze_trend(series_for(snapshot, timeframe), metric, periods=window)
    if result is not None:
        result.timeframe = f"{result.timeframe} ({timeframe.value})"
    return result


def compare_latest(snapshot: AnalyticsSnapshot, timeframe: Timeframe) -> Optional[Comparison]:
    """Latest rollup against the one before it; None until two exist."""
    series = series_for(snapshot, timeframe)
    if len(series) < 2:
        return None
    return compare(series[-1], series[-2], timeframe.value)


def summarize(snapshot: AnalyticsSnapshot, span: SummarySpan) -> Summary:
    if span == SummarySpan.week:
        data: list[Any] = snapshot.daily[-7:]
    elif span == SummarySpan.month:
        data = snapshot.daily[-30:]
    elif span == SummarySpan.quarter:
        data = snapshot.weekly[-12:]
    else:
        data = snapshot.monthly[-12:]

    total_minutes = sum(item.total_minutes for item in data)
    total_sessions = sum(item.session_count for item in data)
    average = total_minutes / total_sessions if total_sessions > 0 else 0
    return Summary(
        span=span,
        total_minutes=round(total_minutes),
        total_sessions=total_sessions,
        average_session_length=round(average),
        goal_completions=sum(item.goal_completions for item in data),
        data_points=len(data),
        period_start=bucket_bounds(data[0])[0] if data else None,
        period_end=bucket_bounds(data[-1])[1] if data else None,
    )
