"""
Tests for the Rollup Aggregator.

Covered:
  - daily fields from notes and from the estimation policy
  - longest >= average >= shortest even when notes disagree with the total
  - weekly bucketing (Monday start, Sunday closes the week)
  - weekly totals, best day, consistency, most productive day/hour
  - monthly aggregation, month-over-month trends, milestones
  - empty input
"""
from __future__ import annotations

from datetime import date, datetime, timedelta

from offtime.services.records import DayRecord, SessionNoteRecord
from offtime.services.rollups import (
    build_daily_rollup,
    build_daily_rollups,
    build_monthly_rollups,
    build_rollups,
    build_weekly_rollups,
    month_key,
    week_start,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_MONDAY = date(2026, 3, 2)


def _day(d: date, minutes: float, **kwargs) -> DayRecord:
    return DayRecord(day=d, offline_minutes=minutes, **kwargs)


def _note(d: date, hour: int, minutes: float, **kwargs) -> SessionNoteRecord:
    return SessionNoteRecord(
        started_at=datetime(d.year, d.month, d.day, hour, 0),
        duration_minutes=minutes,
        **kwargs,
    )


def _week(start: date, minutes: list[float]) -> list[DayRecord]:
    return [_day(start + timedelta(days=i), m) for i, m in enumerate(minutes)]


# ---------------------------------------------------------------------------
# Daily
# ---------------------------------------------------------------------------

class TestDailyRollup:
    def test_estimated_sessions_without_notes(self):
        r = build_daily_rollup(_day(_MONDAY, 90))
        assert r.session_count == 3
        assert r.average_session_length == 30
        assert r.longest_session == 30
        assert r.shortest_session == 30

    def test_short_day_counts_as_one_session(self):
        r = build_daily_rollup(_day(_MONDAY, 20))
        assert r.session_count == 1
        assert r.average_session_length == 20

    def test_explicit_session_count_wins_over_estimate(self):
        r = build_daily_rollup(_day(_MONDAY, 90, session_count=2))
        assert r.session_count == 2
        assert r.average_session_length == 45

    def test_notes_drive_session_stats(self):
        record = _day(_MONDAY, 60, notes=(
            _note(_MONDAY, 9, 20, mood="calm", activities=("reading",)),
            _note(_MONDAY, 18, 40, mood="calm", activities=("reading", "walk"),
                  goal_achieved=True),
        ))
        r = build_daily_rollup(record)
        assert r.session_count == 2
        assert r.average_session_length == 30
        assert r.longest_session == 40
        assert r.shortest_session == 20
        assert r.goal_completions == 1
        assert r.mood == "calm"
        assert r.top_activities[0] == "reading"
        assert r.hourly_distribution[9].minutes == 20
        assert r.hourly_distribution[18].session_count == 1

    def test_bounds_hold_when_notes_disagree_with_total(self):
        record = _day(_MONDAY, 200, notes=(_note(_MONDAY, 9, 10), _note(_MONDAY, 10, 15)))
        r = build_daily_rollup(record)
        assert r.longest_session >= r.average_session_length >= r.shortest_session

    def test_negative_minutes_read_as_zero(self):
        r = build_daily_rollup(_day(_MONDAY, -15))
        assert r.total_minutes == 0

    def test_hourly_distribution_has_24_slots(self):
        r = build_daily_rollup(_day(_MONDAY, 45))
        assert [b.hour for b in r.hourly_distribution] == list(range(24))

    def test_daily_rollups_are_chronological(self):
        records = [_day(_MONDAY + timedelta(days=2), 10), _day(_MONDAY, 20)]
        assert [r.date for r in build_daily_rollups(records)] == [
            _MONDAY, _MONDAY + timedelta(days=2)
        ]


# ---------------------------------------------------------------------------
# Weekly
# ---------------------------------------------------------------------------

class TestWeeklyRollup:
    def test_week_start_is_monday(self):
        assert week_start(date(2026, 3, 4)) == _MONDAY       # Wednesday
        assert week_start(date(2026, 3, 8)) == _MONDAY       # Sunday closes the week
        assert week_start(date(2026, 3, 9)) == date(2026, 3, 9)

    def test_reference_week(self):
        dailies = build_daily_rollups(_week(_MONDAY, [30, 45, 0, 60, 90, 20, 75]))
        weeks = build_weekly_rollups(dailies)
        assert len(weeks) == 1
        w = weeks[0]
        assert w.week_start == _MONDAY
        assert w.total_minutes == 320
        assert w.patterns.consistency_score == 86
        assert w.best_day.date == _MONDAY + timedelta(days=4)
        assert w.best_day.minutes == 90
        assert w.best_day.reason == "Highest total time"
        # Friday is index 5 with Sunday = 0.
        assert w.patterns.most_productive_day == 5
        assert abs(w.patterns.average_daily_goal - 320 / 7) < 1e-9

    def test_best_day_tie_keeps_first(self):
        dailies = build_daily_rollups(_week(_MONDAY, [50, 50]))
        assert build_weekly_rollups(dailies)[0].best_day.date == _MONDAY

    def test_best_day_reason_prefers_goals(self):
        record = _day(_MONDAY, 40, notes=(_note(_MONDAY, 8, 40, goal_achieved=True),))
        week = build_weekly_rollups(build_daily_rollups([record]))[0]
        assert week.best_day.reason == "Most goals completed"

    def test_partial_week_consistency_uses_days_present(self):
        dailies = build_daily_rollups(_week(_MONDAY, [30, 0]))
        assert build_weekly_rollups(dailies)[0].patterns.consistency_score == 50

    def test_most_productive_hour_from_notes(self):
        record = _day(_MONDAY, 70, notes=(_note(_MONDAY, 7, 20), _note(_MONDAY, 21, 50)))
        week = build_weekly_rollups(build_daily_rollups([record]))[0]
        assert week.patterns.most_productive_hour == 21

    def test_streak_days_and_splitting(self):
        records = [
            _day(_MONDAY, 30, streak_day=1),
            _day(_MONDAY + timedelta(days=1), 30, streak_day=2),
            _day(_MONDAY + timedelta(days=7), 30, streak_day=0),
        ]
        weeks = build_weekly_rollups(build_daily_rollups(records))
        assert [w.week_start for w in weeks] == [_MONDAY, _MONDAY + timedelta(days=7)]
        assert weeks[0].streak_days == 2
        assert weeks[1].streak_days == 0


# ---------------------------------------------------------------------------
# Monthly
# ---------------------------------------------------------------------------

class TestMonthlyRollup:
    def test_month_key(self):
        assert month_key(date(2026, 3, 2)) == "2026-03"

    def test_weeks_grouped_by_week_start_month(self):
        # Week of Mon 2026-03-30 spills into April but belongs to March.
        records = _week(date(2026, 3, 30), [60] * 7)
        months = build_monthly_rollups(build_weekly_rollups(build_daily_rollups(records)))
        assert [m.month for m in months] == ["2026-03"]
        assert months[0].total_minutes == 420

    def test_trends_against_previous_month(self):
        records = _week(date(2026, 2, 2), [100]) + _week(date(2026, 3, 2), [150])
        months = build_monthly_rollups(build_weekly_rollups(build_daily_rollups(records)))
        assert months[0].trends.minutes_change == 0
        assert months[1].trends.minutes_change == 50

    def test_consistency_is_mean_of_weeks(self):
        records = _week(date(2026, 3, 2), [30] * 7) + _week(date(2026, 3, 9), [30, 0])
        month = build_monthly_rollups(build_weekly_rollups(build_daily_rollups(records)))[0]
        assert month.consistency_score == 75   # (100 + 50) / 2

    def test_milestones(self):
        records = [
            _day(date(2026, 3, 2) + timedelta(days=i), 100, streak_day=i + 1)
            for i in range(7)
        ]
        month = build_monthly_rollups(build_weekly_rollups(build_daily_rollups(records)))[0]
        kinds = {(m.type, m.value) for m in month.milestones}
        assert ("total_time", 600) in kinds
        assert ("total_time", 1200) not in kinds
        assert ("session_count", 20) in kinds     # 7 days x 3 estimated sessions
        assert ("streak", 7) in kinds

    def test_empty_input(self):
        result = build_rollups([])
        assert result.daily == []
        assert result.weekly == []
        assert result.monthly == []
