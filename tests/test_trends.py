"""
Tests for the Trend Analyzer.

Covered:
  - percentage_change incl. zero baseline
  - least-squares regression
  - endpoint classification table and the stable band
  - half-average progress variant
  - short series → None, unknown metric → UnknownMetricError
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from offtime.core.errors import UnknownMetricError
from offtime.services.trends import (
    Direction,
    ENDPOINT_THRESHOLDS,
    PROGRESS_THRESHOLDS,
    Significance,
    Strength,
    analyze_progress_trend,
    analyze_trend,
    classify_change,
    linear_regression,
    metric_value,
    percentage_change,
)


def _series(values, metric="total_minutes"):
    return [SimpleNamespace(**{metric: v}) for v in values]


class TestHelpers:
    def test_percentage_change(self):
        assert percentage_change(150, 100) == 50
        assert percentage_change(50, 100) == -50

    def test_percentage_change_zero_baseline(self):
        assert percentage_change(10, 0) == 100
        assert percentage_change(0, 0) == 0

    def test_linear_regression(self):
        r = linear_regression([1, 3, 5, 7])
        assert r.slope == pytest.approx(2)
        assert r.intercept == pytest.approx(1)

    def test_linear_regression_single_point(self):
        r = linear_regression([4])
        assert r.slope == 0
        assert r.intercept == 4

    def test_metric_value_reads_nested_patterns(self):
        weekly = SimpleNamespace(patterns=SimpleNamespace(consistency_score=71))
        assert metric_value(weekly, "consistency_score") == 71

    def test_metric_value_rejects_unknown_metric(self):
        with pytest.raises(UnknownMetricError) as exc:
            metric_value(SimpleNamespace(total_minutes=1), "happiness")
        assert exc.value.details["metric"] == "happiness"


class TestClassification:
    @pytest.mark.parametrize("pct, expected", [
        (30, (Direction.increasing, Strength.strong, Significance.high)),
        (15, (Direction.increasing, Strength.moderate, Significance.medium)),
        (7, (Direction.increasing, Strength.weak, Significance.low)),
        (4.9, (Direction.stable, Strength.weak, Significance.low)),
        (-4.9, (Direction.stable, Strength.weak, Significance.low)),
        (-12, (Direction.decreasing, Strength.moderate, Significance.medium)),
        (-40, (Direction.decreasing, Strength.strong, Significance.high)),
    ])
    def test_endpoint_table(self, pct, expected):
        assert classify_change(pct, ENDPOINT_THRESHOLDS) == expected

    def test_progress_table_is_looser(self):
        assert classify_change(22, PROGRESS_THRESHOLDS) == (
            Direction.increasing, Strength.strong, Significance.high
        )
        assert classify_change(9, PROGRESS_THRESHOLDS) == (
            Direction.increasing, Strength.weak, Significance.medium
        )


class TestAnalyzeTrend:
    def test_endpoint_change(self):
        t = analyze_trend(_series([100, 120, 90, 180]), "total_minutes")
        assert t.change_percent == pytest.approx(80)
        assert t.direction == Direction.increasing
        assert t.strength == Strength.strong
        assert t.confidence == pytest.approx(4 / 6)
        assert t.timeframe == "4 periods"

    def test_uses_last_periods_only(self):
        t = analyze_trend(_series([500, 100, 100, 100, 100]), "total_minutes", periods=4)
        assert t.direction == Direction.stable

    def test_short_series(self):
        assert analyze_trend(_series([1, 2, 3]), "total_minutes", periods=4) is None

    def test_unknown_metric(self):
        with pytest.raises(UnknownMetricError):
            analyze_trend(_series([1, 2, 3, 4]), "nope")

    def test_small_relative_change_on_large_values_is_stable(self):
        t = analyze_trend(_series([100000, 101000, 102500, 104000]), "total_minutes")
        assert t.change_percent == pytest.approx(4)
        assert t.direction == Direction.stable
        assert t.strength == Strength.weak
        assert t.significance == Significance.low


class TestProgressTrend:
    def test_half_averages(self):
        t = analyze_progress_trend(_series([100, 120, 90, 180]), "total_minutes")
        # (90 + 180) / 2 = 135 vs (100 + 120) / 2 = 110
        assert t.change_percent == pytest.approx((135 - 110) / 110 * 100)
        assert t.direction == Direction.increasing
        assert t.strength == Strength.strong
        assert t.significance == Significance.high

    def test_odd_window_puts_middle_in_first_half(self):
        t = analyze_progress_trend(_series([100, 100, 130]), "total_minutes", window=3)
        assert t.change_percent == pytest.approx(30)

    def test_decline(self):
        t = analyze_progress_trend(_series([200, 200, 100, 100]), "total_minutes")
        assert t.direction == Direction.decreasing
        assert t.significance == Significance.high

    def test_short_series(self):
        assert analyze_progress_trend(_series([1, 2]), "total_minutes", window=4) is None
