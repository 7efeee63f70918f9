"""
Trend Analyzer — direction / strength / significance of a rollup series.

Two pure entry points
---------------------
analyze_trend(series, metric, periods=4)
    Endpoint variant. A least-squares line is fitted over indices
    0..n-1 and reported for telemetry, but the classification uses the
    total percentage change between the first and last value of the
    window:  pct = (last - first) / first * 100.

analyze_progress_trend(series, metric, window=4)
    Half-average variant used for weekly "progress" framing: the mean of
    the first half of the window against the mean of the second half,
    classified with looser thresholds.

Classification (|pct| < 5 is always stable / weak / low)
--------------------------------------------------------
                 strong   moderate   high    medium
  endpoint        > 25      > 10     > 20     > 10
  progress        > 20      > 10     > 15     >  8
Decreasing trends mirror the thresholds with negated signs.

Both variants return None when the series is shorter than the window.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from offtime.core.errors import UnknownMetricError

logger = logging.getLogger(__name__)


class Direction(str, enum.Enum):
    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"


class Strength(str, enum.Enum):
    weak = "weak"
    moderate = "moderate"
    strong = "strong"


class Significance(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


# Metrics readable from rollups. "consistency_score" lives on
# WeeklyRollup.patterns and directly on MonthlyRollup.
METRICS = frozenset({
    "total_minutes",
    "session_count",
    "average_session_length",
    "longest_session",
    "shortest_session",
    "goal_completions",
    "xp_earned",
    "achievements_unlocked",
    "streak_day",
    "streak_days",
    "max_streak",
    "consistency_score",
})

_STABLE_BAND = 5.0


@dataclass(frozen=True)
class _Thresholds:
    strong: float
    moderate: float
    high: float
    medium: float


ENDPOINT_THRESHOLDS = _Thresholds(strong=25, moderate=10, high=20, medium=10)
PROGRESS_THRESHOLDS = _Thresholds(strong=20, moderate=10, high=15, medium=8)


@dataclass
class Regression:
    slope: float
    intercept: float


@dataclass
class TrendResult:
    metric: str
    direction: Direction
    strength: Strength
    confidence: float         # 0–1
    significance: Significance
    change_percent: float
    timeframe: str
    description: str
    slope: float = 0.0
    intercept: float = 0.0


# ---------------------------------------------------------------------------
# Reusable helpers
# ---------------------------------------------------------------------------

def percentage_change(current: float, previous: float) -> float:
    """Percent delta from `previous` to `current`; a zero baseline maps to 100 or 0."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def linear_regression(values: Sequence[float]) -> Regression:
    """Least-squares fit of values against their indices 0..n-1."""
    n = len(values)
    if n == 0:
        return Regression(slope=0.0, intercept=0.0)
    sum_x = n * (n - 1) / 2
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in enumerate(values))
    sum_xx = n * (n - 1) * (2 * n - 1) / 6
    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return Regression(slope=0.0, intercept=sum_y / n)
    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return Regression(slope=slope, intercept=intercept)


def metric_value(rollup: Any, metric: str) -> float:
    """Read `metric` off a daily, weekly or monthly rollup. Absent fields read as 0."""
    if metric not in METRICS:
        raise UnknownMetricError(metric, list(METRICS))
    value = getattr(rollup, metric, None)
    if value is None:
        patterns = getattr(rollup, "patterns", None)
        value = getattr(patterns, metric, None)
    return float(value or 0)


def classify_change(
    pct: float,
    thresholds: _Thresholds = ENDPOINT_THRESHOLDS,
) -> tuple[Direction, Strength, Significance]:
    if abs(pct) < _STABLE_BAND:
        return Direction.stable, Strength.weak, Significance.low

    magnitude = abs(pct)
    direction = Direction.increasing if pct > 0 else Direction.decreasing
    if magnitude > thresholds.strong:
        strength = Strength.strong
    elif magnitude > thresholds.moderate:
        strength = Strength.moderate
    else:
        strength = Strength.weak
    if magnitude > thresholds.high:
        significance = Significance.high
    elif magnitude > thresholds.medium:
        significance = Significance.medium
    else:
        significance = Significance.low
    return direction, strength, significance


def _describe(metric: str, direction: Direction, strength: Strength, n: int) -> str:
    if direction is Direction.stable:
        return f"{metric} has been stable over the past {n} periods"
    return f"{metric} has been {direction.value} {strength.value}ly over the past {n} periods"


# ---------------------------------------------------------------------------
# Public — analyzers
# ---------------------------------------------------------------------------

def analyze_trend(
    series: Sequence[Any],
    metric: str,
    periods: int = 4,
) -> Optional[TrendResult]:
    """Classify the last `periods` points by their endpoint percentage change."""
    if periods < 1 or len(series) < periods:
        return None

    values = [metric_value(item, metric) for item in series[-periods:]]
    regression = linear_regression(values)
    pct = percentage_change(values[-1], values[0])
    direction, strength, significance = classify_change(pct, ENDPOINT_THRESHOLDS)
    n = len(values)
    logger.debug(
        "trend metric=%s n=%d slope=%.3f intercept=%.3f pct=%.2f",
        metric, n, regression.slope, regression.intercept, pct,
    )
    return TrendResult(
        metric=metric,
        direction=direction,
        strength=strength,
        confidence=min(n / 6, 1.0),
        significance=significance,
        change_percent=pct,
        timeframe=f"{n} periods",
        description=_describe(metric, direction, strength, n),
        slope=regression.slope,
        intercept=regression.intercept,
    )


def analyze_progress_trend(
    series: Sequence[Any],
    metric: str,
    window: int = 4,
) -> Optional[TrendResult]:
    """Compare the first-half and second-half averages of the last `window` points."""
    if window < 2 or len(series) < window:
        return None

    values = [metric_value(item, metric) for item in series[-window:]]
    mid = (window + 1) // 2
    first_avg = sum(values[:mid]) / mid
    second_avg = sum(values[mid:]) / (window - mid)
    pct = percentage_change(second_avg, first_avg)
    direction, strength, significance = classify_change(pct, PROGRESS_THRESHOLDS)
    regression = linear_regression(values)
    return TrendResult(
        metric=metric,
        direction=direction,
        strength=strength,
        confidence=min(len(series) / 6, 1.0),
        significance=significance,
        change_percent=pct,
        timeframe=f"{window} periods",
        description=_describe(metric, direction, strength, window),
        slope=regression.slope,
        intercept=regression.intercept,
    )
