"""
Tests for the Personal Best Tracker.

Covered:
  - strictly-greater rule and in-place overwrite with previous_best
  - improvement formula and significance tiers
  - milestone crossing
  - daily / weekly / streak dispatch
  - at-least-once streak semantics
  - seeding from history emits nothing
"""
from __future__ import annotations

from datetime import date, timedelta

import pytest

from offtime.services.personal_bests import (
    EventSignificance,
    PersonalBestCategory,
    PersonalBestTracker,
    classify_significance,
    crosses_milestone,
    improvement_percent,
)
from offtime.services.records import DayRecord
from offtime.services.rollups import build_daily_rollup, build_weekly_rollups

_DAY = date(2026, 3, 2)


def _daily(d: date, minutes: float, sessions: int = 1):
    return build_daily_rollup(DayRecord(day=d, offline_minutes=minutes, session_count=sessions))


class TestHelpers:
    def test_improvement_percent(self):
        assert improvement_percent(100, 130) == pytest.approx(30)
        assert improvement_percent(0, 50) == 100

    def test_crosses_milestone(self):
        cat = PersonalBestCategory.longest_session
        assert crosses_milestone(cat, 50, 60)
        assert crosses_milestone(cat, 65, 130)
        assert not crosses_milestone(cat, 60, 70)

    def test_significance_tiers(self):
        cat = PersonalBestCategory.best_consistency     # no milestone table
        assert classify_significance(cat, 50, 80, 60) == EventSignificance.milestone
        assert classify_significance(cat, 50, 62, 24) == EventSignificance.major
        assert classify_significance(cat, 50, 55, 10) == EventSignificance.minor


class TestTracker:
    def test_longest_session_sequence(self):
        tracker = PersonalBestTracker()
        events = []
        for i, minutes in enumerate([65, 130, 130]):
            events += [
                e for e in tracker.check_daily(_daily(_DAY + timedelta(days=i), minutes))
                if e.category == PersonalBestCategory.longest_session
            ]
        assert len(events) == 2
        assert events[0].old_value == 0
        assert events[1].old_value == 65
        assert events[1].significance == EventSignificance.milestone
        best = tracker.best(PersonalBestCategory.longest_session)
        assert best.value == 130
        assert best.previous_best.value == 65
        assert best.date == _DAY + timedelta(days=1)

    def test_equal_value_is_not_a_best(self):
        tracker = PersonalBestTracker()
        tracker.submit(PersonalBestCategory.most_daily_minutes, 90, _DAY)
        assert tracker.submit(PersonalBestCategory.most_daily_minutes, 90, _DAY) is None

    def test_first_record_has_no_previous(self):
        tracker = PersonalBestTracker()
        tracker.submit(PersonalBestCategory.most_daily_sessions, 3, _DAY)
        record = tracker.best(PersonalBestCategory.most_daily_sessions)
        assert record.previous_best is None
        assert record.unit == "sessions"
        assert record.id == f"most_daily_sessions_{_DAY.isoformat()}"

    def test_daily_check_covers_three_categories(self):
        events = PersonalBestTracker().check_daily(_daily(_DAY, 90, sessions=2))
        assert {e.category for e in events} == {
            PersonalBestCategory.longest_session,
            PersonalBestCategory.most_daily_minutes,
            PersonalBestCategory.most_daily_sessions,
        }

    def test_weekly_check(self):
        dailies = [_daily(_DAY + timedelta(days=i), 60) for i in range(7)]
        week = build_weekly_rollups(dailies)[0]
        tracker = PersonalBestTracker()
        events = tracker.check(week)
        assert {e.category for e in events} == {
            PersonalBestCategory.most_weekly_minutes,
            PersonalBestCategory.best_consistency,
        }
        assert all(e.date == week.week_start for e in events)

    def test_streak_emits_at_least_once(self):
        tracker = PersonalBestTracker()
        assert len(tracker.check_streak(7, _DAY)) == 1
        assert tracker.check_streak(7, _DAY) == []
        [event] = tracker.check_streak(8, _DAY)
        assert event.old_value == 7

    def test_streak_only_when_supplied(self):
        events = PersonalBestTracker().check_daily(_daily(_DAY, 30))
        assert PersonalBestCategory.longest_streak not in {e.category for e in events}

    def test_records_in_category_order(self):
        tracker = PersonalBestTracker()
        tracker.submit(PersonalBestCategory.best_consistency, 50, _DAY)
        tracker.submit(PersonalBestCategory.longest_session, 20, _DAY)
        assert [r.category for r in tracker.records()] == [
            PersonalBestCategory.longest_session,
            PersonalBestCategory.best_consistency,
        ]


class TestSeeding:
    def test_seed_sets_table_without_events(self):
        history = [_daily(_DAY + timedelta(days=i), m) for i, m in enumerate([40, 120, 80])]
        tracker = PersonalBestTracker()
        tracker.seed_from_history(history, build_weekly_rollups(history), longest_streak=12, on=_DAY)
        assert tracker.best(PersonalBestCategory.most_daily_minutes).value == 120
        assert tracker.best(PersonalBestCategory.most_daily_minutes).improvement is None
        assert tracker.best(PersonalBestCategory.longest_streak).value == 12

        # Only a value above the seeded best is celebrated.
        assert tracker.check_daily(_daily(_DAY + timedelta(days=5), 100)) == []
