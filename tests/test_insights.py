"""
Tests for the Insight Rule Engine.

Covered:
  - immutable registry: duplicate / unknown rule ids, rebuilds leave the original intact
  - engine: ordering, truncation, stamping, faulty rules skipped
  - each built-in rule's trigger and decline paths
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

import pytest

from offtime.core.errors import DuplicateRuleError, UnknownRuleError
from offtime.services.insights import (
    AnalyticsContext,
    ConsistencyData,
    Insight,
    InsightEngine,
    InsightKind,
    InsightRule,
    RuleCategory,
    RuleRegistry,
    default_registry,
    format_hour,
)
from offtime.services.patterns import (
    BehaviorPattern,
    DurationRange,
    PatternPayload,
    PatternType,
)
from offtime.services.personal_bests import PersonalBestCategory, PersonalBestRecord
from offtime.services.records import DayRecord
from offtime.services.rollups import build_rollups

# Sunday; the current week started Monday 2026-03-09.
_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
_TODAY = _NOW.date()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _records(minutes_by_day: dict[date, float]) -> list[DayRecord]:
    return [DayRecord(day=d, offline_minutes=m) for d, m in sorted(minutes_by_day.items())]


def _context(records=(), patterns=(), bests=(), streak=0) -> AnalyticsContext:
    rollups = build_rollups(records)
    return AnalyticsContext(
        daily=rollups.daily,
        weekly=rollups.weekly,
        monthly=rollups.monthly,
        patterns=list(patterns),
        personal_bests=list(bests),
        current_streak=streak,
        now=_NOW,
    )


def _run(rule_id: str, ctx: AnalyticsContext):
    rule = default_registry().get(rule_id)
    if not rule.condition(ctx):
        return None
    return rule.generate(ctx)


def _stub_rule(rule_id: str, priority: int, confidence: float, fail: bool = False) -> InsightRule:
    def generate(ctx):
        if fail:
            raise RuntimeError("boom")
        return Insight(
            kind=InsightKind.consistency_improvement,
            title=rule_id,
            description="",
            confidence=confidence,
            actionable=False,
            data=ConsistencyData(current_consistency=0, days_active=0, suggested_days=[]),
        )

    return InsightRule(
        id=rule_id,
        name=rule_id,
        description="",
        condition=lambda ctx: True,
        generate=generate,
        priority=priority,
        category=RuleCategory.habit,
    )


def _pattern(pattern_type: PatternType, confidence: float = 0.8, **payload) -> BehaviorPattern:
    return BehaviorPattern(
        pattern_type=pattern_type,
        pattern=PatternPayload(**payload),
        confidence=confidence,
        last_updated=_NOW,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestRuleRegistry:
    def test_default_registry_has_seven_rules(self):
        assert len(default_registry()) == 7

    def test_duplicate_ids_rejected(self):
        with pytest.raises(DuplicateRuleError):
            RuleRegistry([_stub_rule("a", 1, 0.5), _stub_rule("a", 2, 0.5)])

    def test_with_rule_builds_new_registry(self):
        base = RuleRegistry([_stub_rule("a", 1, 0.5)])
        extended = base.with_rule(_stub_rule("b", 1, 0.5))
        assert base.ids == ["a"]
        assert extended.ids == ["a", "b"]

    def test_with_rule_duplicate(self):
        with pytest.raises(DuplicateRuleError):
            default_registry().with_rule(_stub_rule("streak_protection", 1, 0.5))

    def test_without_rule(self):
        reduced = default_registry().without_rule("trend_analysis")
        assert "trend_analysis" not in reduced
        assert "trend_analysis" in default_registry()

    def test_without_unknown_rule(self):
        with pytest.raises(UnknownRuleError):
            default_registry().without_rule("nope")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class TestInsightEngine:
    def test_orders_by_priority_then_confidence(self):
        registry = RuleRegistry([
            _stub_rule("low", 1, 0.9),
            _stub_rule("high_weak", 5, 0.2),
            _stub_rule("high_strong", 5, 0.7),
        ])
        insights = InsightEngine(registry).generate(_context())
        assert [i.type for i in insights] == ["high_strong", "high_weak", "low"]

    def test_truncates_to_limit(self):
        registry = RuleRegistry(_stub_rule(f"r{i}", i, 0.5) for i in range(10))
        insights = InsightEngine(registry, limit=8).generate(_context())
        assert len(insights) == 8
        assert insights[0].type == "r9"

    def test_stamps_rule_fields(self):
        insight = InsightEngine(RuleRegistry([_stub_rule("a", 4, 0.5)])).generate(_context())[0]
        assert insight.type == "a"
        assert insight.priority == 4
        assert insight.category == "habit"
        assert insight.created_at == _NOW
        assert insight.id.startswith("a_")

    def test_faulty_rule_is_skipped(self, caplog):
        registry = RuleRegistry([_stub_rule("bad", 9, 0.5, fail=True), _stub_rule("good", 1, 0.5)])
        with caplog.at_level(logging.ERROR, logger="offtime.services.insights"):
            insights = InsightEngine(registry).generate(_context())
        assert [i.type for i in insights] == ["good"]
        assert "bad" in caplog.text

    def test_empty_context_yields_nothing(self):
        assert InsightEngine().generate(_context()) == []

    def test_use_registry(self):
        engine = InsightEngine()
        engine.use_registry(RuleRegistry([_stub_rule("only", 1, 0.5)]))
        assert [i.type for i in engine.generate(_context())] == ["only"]


# ---------------------------------------------------------------------------
# Built-in rules
# ---------------------------------------------------------------------------

class TestStreakProtection:
    def test_fires_when_today_is_empty(self):
        records = _records({_TODAY - timedelta(days=i): 30 for i in range(1, 4)})
        insight = _run("streak_protection", _context(records, streak=5))
        assert insight.kind == InsightKind.streak_protection
        assert insight.data.current_streak == 5
        assert insight.expires_at == _NOW + timedelta(hours=24)

    def test_quiet_when_today_has_minutes(self):
        records = _records({_TODAY: 20})
        assert _run("streak_protection", _context(records, streak=5)) is None

    def test_quiet_for_short_streaks(self):
        assert _run("streak_protection", _context(streak=2)) is None


class TestConsistency:
    def test_suggests_inactive_weekdays(self):
        records = _records({date(2026, 3, 9): 30, date(2026, 3, 10): 0, date(2026, 3, 11): 0})
        insight = _run("consistency_improvement", _context(records))
        assert insight.data.current_consistency == 33
        assert insight.data.days_active == 1
        assert insight.data.suggested_days == ["Tuesday", "Wednesday"]

    def test_quiet_when_consistent(self):
        records = _records({date(2026, 3, 9) + timedelta(days=i): 30 for i in range(7)})
        assert _run("consistency_improvement", _context(records)) is None


class TestGoalAchievement:
    def test_on_track(self):
        records = _records({
            date(2026, 3, 2): 300,     # previous week sets the goal
            date(2026, 3, 9): 60,
            date(2026, 3, 10): 60,
        })
        insight = _run("goal_achievement", _context(records))
        assert insight.title == "You're On Track!"
        assert insight.data.weekly_goal == 300
        assert insight.data.probability == 100
        assert insight.data.sessions_needed == 3
        assert insight.data.days_remaining == 5
        assert insight.confidence == pytest.approx(0.9)

    def test_at_risk(self):
        records = _records({
            date(2026, 3, 2): 1000,
            date(2026, 3, 9): 30,
            date(2026, 3, 10): 30,
        })
        insight = _run("goal_achievement", _context(records))
        # projected 30 * 7 = 210 of 1000
        assert insight.title == "Goal at Risk"
        assert insight.data.probability == pytest.approx(21)

    def test_needs_three_days(self):
        records = _records({date(2026, 3, 9): 60, date(2026, 3, 10): 60})
        assert _run("goal_achievement", _context(records)) is None


class TestSessionLength:
    def test_suggests_longer_sessions(self):
        records = _records({date(2026, 3, 1) + timedelta(days=i): 30 for i in range(10)})
        duration = _pattern(
            PatternType.duration_preference,
            preferred_duration=DurationRange(min=30, max=90, average=60),
        )
        insight = _run("session_length_optimization", _context(records, patterns=[duration]))
        assert insight.data.optimal_duration == 60
        assert insight.data.current_average == 30
        assert insight.data.suggestion == "longer"

    def test_declines_within_tolerance(self):
        records = _records({date(2026, 3, 1) + timedelta(days=i): 30 for i in range(10)})
        duration = _pattern(
            PatternType.duration_preference,
            preferred_duration=DurationRange(min=30, max=40, average=38),
        )
        assert _run("session_length_optimization", _context(records, patterns=[duration])) is None

    def test_needs_ten_days(self):
        records = _records({date(2026, 3, 1) + timedelta(days=i): 30 for i in range(9)})
        duration = _pattern(
            PatternType.duration_preference,
            preferred_duration=DurationRange(min=30, max=90, average=90),
        )
        assert _run("session_length_optimization", _context(records, patterns=[duration])) is None


class TestTrendAnalysis:
    def test_reports_strong_growth(self):
        records = _records({
            date(2026, 2, 16): 100,
            date(2026, 2, 23): 120,
            date(2026, 3, 2): 90,
            date(2026, 3, 9): 180,
        })
        insight = _run("trend_analysis", _context(records))
        assert insight.title == "Excellent Progress!"
        assert insight.data.trend.change_percent == pytest.approx((135 - 110) / 110 * 100)

    def test_declines_on_flat_weeks(self):
        records = _records({
            date(2026, 2, 23): 100,
            date(2026, 3, 2): 100,
            date(2026, 3, 9): 102,
        })
        assert _run("trend_analysis", _context(records)) is None


class TestOptimalTiming:
    def test_uses_top_hour(self):
        timing = _pattern(PatternType.time_preference, confidence=0.6,
                          preferred_hours=[19, 7], preferred_days=[1])
        insight = _run("optimal_timing", _context(patterns=[timing]))
        assert insight.data.optimal_hour == 19
        assert "7:00 PM" in insight.description
        assert insight.confidence == 0.6

    def test_format_hour(self):
        assert format_hour(0) == "12:00 AM"
        assert format_hour(9) == "9:00 AM"
        assert format_hour(12) == "12:00 PM"
        assert format_hour(23) == "11:00 PM"


class TestPersonalBestRecognition:
    @staticmethod
    def _record(on: date, improvement):
        return PersonalBestRecord(
            id="x",
            category=PersonalBestCategory.most_daily_minutes,
            title="Most Daily Minutes",
            value=150,
            unit="minutes",
            date=on,
            improvement=improvement,
        )

    def test_recent_best(self):
        insight = _run("personal_best", _context(bests=[self._record(_TODAY - timedelta(days=1), 25)]))
        assert insight.confidence == 1.0
        assert insight.actionable is False
        assert insight.data.category == "most_daily_minutes"

    def test_old_best_is_ignored(self):
        assert _run("personal_best", _context(bests=[self._record(_TODAY - timedelta(days=3), 25)])) is None

    def test_seeded_record_is_ignored(self):
        assert _run("personal_best", _context(bests=[self._record(_TODAY, None)])) is None
