"""
Personal Best Tracker — one live record per category, superseded in place.

Category → metric
-----------------
  longest_session       DailyRollup.longest_session
  most_daily_minutes    DailyRollup.total_minutes
  most_daily_sessions   DailyRollup.session_count
  most_weekly_minutes   WeeklyRollup.total_minutes
  best_consistency      WeeklyRollup.patterns.consistency_score
  longest_streak        live streak counter supplied by the caller

A value strictly greater than the stored best (0 when none) emits a
PersonalBestEvent and overwrites the table entry. Monthly rollups are not
checked directly.

Significance
------------
  milestone  improvement > 50 %, or the new value reaches a milestone
             from MILESTONES that the old value had not reached
  major      improvement > 20 %
  minor      anything else

Streak values are compared on every call that supplies one; the same
streak submitted twice emits once (the second value is not greater).
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Union

from offtime.services.rollups import DailyRollup, MonthlyRollup, WeeklyRollup

logger = logging.getLogger(__name__)


class PersonalBestCategory(str, enum.Enum):
    longest_session = "longest_session"
    most_daily_minutes = "most_daily_minutes"
    most_daily_sessions = "most_daily_sessions"
    most_weekly_minutes = "most_weekly_minutes"
    longest_streak = "longest_streak"
    best_consistency = "best_consistency"


class EventSignificance(str, enum.Enum):
    minor = "minor"
    major = "major"
    milestone = "milestone"


_TITLES = {
    PersonalBestCategory.longest_session: "Longest Session",
    PersonalBestCategory.most_daily_minutes: "Most Daily Minutes",
    PersonalBestCategory.most_daily_sessions: "Most Daily Sessions",
    PersonalBestCategory.most_weekly_minutes: "Most Weekly Minutes",
    PersonalBestCategory.longest_streak: "Longest Streak",
    PersonalBestCategory.best_consistency: "Best Consistency",
}

_UNITS = {
    PersonalBestCategory.longest_session: "minutes",
    PersonalBestCategory.most_daily_minutes: "minutes",
    PersonalBestCategory.most_daily_sessions: "sessions",
    PersonalBestCategory.most_weekly_minutes: "minutes",
    PersonalBestCategory.longest_streak: "days",
    PersonalBestCategory.best_consistency: "%",
}

MILESTONES: dict[PersonalBestCategory, tuple[int, ...]] = {
    PersonalBestCategory.longest_session: (60, 120, 180, 240),
    PersonalBestCategory.most_daily_minutes: (120, 240, 360, 480),
    PersonalBestCategory.longest_streak: (7, 14, 30, 60, 100),
    PersonalBestCategory.most_weekly_minutes: (600, 1200, 1800, 2400),
}

_MILESTONE_IMPROVEMENT = 50
_MAJOR_IMPROVEMENT = 20


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PreviousBest:
    value: float
    date: date


@dataclass(frozen=True)
class PersonalBestRecord:
    id: str
    category: PersonalBestCategory
    title: str
    value: float
    unit: str
    date: date
    previous_best: Optional[PreviousBest] = None
    improvement: Optional[float] = None


@dataclass(frozen=True)
class PersonalBestEvent:
    category: PersonalBestCategory
    old_value: float
    new_value: float
    improvement: float
    date: date
    significance: EventSignificance


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def title_for(category: PersonalBestCategory) -> str:
    return _TITLES[category]


def unit_for(category: PersonalBestCategory) -> str:
    return _UNITS[category]


def improvement_percent(old_value: float, new_value: float) -> float:
    if old_value > 0:
        return (new_value - old_value) / old_value * 100
    return 100.0


def crosses_milestone(category: PersonalBestCategory, old_value: float, new_value: float) -> bool:
    return any(old_value < m <= new_value for m in MILESTONES.get(category, ()))


def classify_significance(
    category: PersonalBestCategory,
    old_value: float,
    new_value: float,
    improvement: float,
) -> EventSignificance:
    if improvement > _MILESTONE_IMPROVEMENT or crosses_milestone(category, old_value, new_value):
        return EventSignificance.milestone
    if improvement > _MAJOR_IMPROVEMENT:
        return EventSignificance.major
    return EventSignificance.minor


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------

class PersonalBestTracker:
    """
    Owns the category → record table. Not thread-safe on its own; the
    orchestrator serializes every call that can mutate it.
    """

    def __init__(self, records: Iterable[PersonalBestRecord] = ()):
        self._table: dict[PersonalBestCategory, PersonalBestRecord] = {
            r.category: r for r in records
        }

    def __len__(self) -> int:
        return len(self._table)

    def best(self, category: PersonalBestCategory) -> Optional[PersonalBestRecord]:
        return self._table.get(category)

    def records(self) -> list[PersonalBestRecord]:
        """Current table in category order. Records are immutable, so this is a safe copy."""
        return [self._table[c] for c in PersonalBestCategory if c in self._table]

    # -- core ---------------------------------------------------------------

    def _store(self, category: PersonalBestCategory, value: float, on: date,
               improvement: Optional[float]) -> None:
        existing = self._table.get(category)
        previous = None
        if existing is not None and existing.value > 0:
            previous = PreviousBest(value=existing.value, date=existing.date)
        self._table[category] = PersonalBestRecord(
            id=f"{category.value}_{on.isoformat()}",
            category=category,
            title=title_for(category),
            value=value,
            unit=unit_for(category),
            date=on,
            previous_best=previous,
            improvement=improvement,
        )

    def submit(
        self, category: PersonalBestCategory, value: float, on: date
    ) -> Optional[PersonalBestEvent]:
        """Compare one value against the table; emit and overwrite when it is a new best."""
        existing = self._table.get(category)
        old_value = existing.value if existing is not None else 0
        if not value > old_value:
            return None

        improvement = improvement_percent(old_value, value)
        event = PersonalBestEvent(
            category=category,
            old_value=old_value,
            new_value=value,
            improvement=improvement,
            date=on,
            significance=classify_significance(category, old_value, value, improvement),
        )
        self._store(category, value, on, improvement)
        logger.info(
            "New personal best %s: %s -> %s (%s)",
            category.value, old_value, value, event.significance.value,
        )
        return event

    # -- per rollup shape ---------------------------------------------------

    def check_daily(
        self,
        daily: DailyRollup,
        current_streak: Optional[int] = None,
        on: Optional[date] = None,
    ) -> list[PersonalBestEvent]:
        events = [
            self.submit(PersonalBestCategory.longest_session, daily.longest_session, daily.date),
            self.submit(PersonalBestCategory.most_daily_minutes, daily.total_minutes, daily.date),
            self.submit(PersonalBestCategory.most_daily_sessions, daily.session_count, daily.date),
        ]
        events += self.check_streak(current_streak, on)
        return [e for e in events if e is not None]

    def check_weekly(
        self,
        weekly: WeeklyRollup,
        current_streak: Optional[int] = None,
        on: Optional[date] = None,
    ) -> list[PersonalBestEvent]:
        events = [
            self.submit(PersonalBestCategory.most_weekly_minutes, weekly.total_minutes,
                        weekly.week_start),
            self.submit(PersonalBestCategory.best_consistency,
                        weekly.patterns.consistency_score, weekly.week_start),
        ]
        events += self.check_streak(current_streak, on)
        return [e for e in events if e is not None]

    def check_streak(
        self, current_streak: Optional[int], on: Optional[date] = None
    ) -> list[PersonalBestEvent]:
        if current_streak is None:
            return []
        event = self.submit(PersonalBestCategory.longest_streak, current_streak, on or _today())
        return [event] if event is not None else []

    def check(
        self,
        rollup: Union[DailyRollup, WeeklyRollup, MonthlyRollup],
        current_streak: Optional[int] = None,
        on: Optional[date] = None,
    ) -> list[PersonalBestEvent]:
        if isinstance(rollup, DailyRollup):
            return self.check_daily(rollup, current_streak, on)
        if isinstance(rollup, WeeklyRollup):
            return self.check_weekly(rollup, current_streak, on)
        return self.check_streak(current_streak, on)

    # -- bootstrap ----------------------------------------------------------

    def seed_from_history(
        self,
        dailies: Iterable[DailyRollup],
        weeklies: Iterable[WeeklyRollup],
        longest_streak: int = 0,
        on: Optional[date] = None,
    ) -> None:
        """
        Fill the table from past rollups without emitting events, so that a
        fresh table doesn't celebrate every historical value at once.
        """
        candidates: dict[PersonalBestCategory, tuple[float, date]] = {}

        def offer(category: PersonalBestCategory, value: float, when: date) -> None:
            if value > candidates.get(category, (0, when))[0]:
                candidates[category] = (value, when)

        for d in dailies:
            offer(PersonalBestCategory.longest_session, d.longest_session, d.date)
            offer(PersonalBestCategory.most_daily_minutes, d.total_minutes, d.date)
            offer(PersonalBestCategory.most_daily_sessions, d.session_count, d.date)
        for w in weeklies:
            offer(PersonalBestCategory.most_weekly_minutes, w.total_minutes, w.week_start)
            offer(PersonalBestCategory.best_consistency, w.patterns.consistency_score, w.week_start)
        if longest_streak > 0:
            offer(PersonalBestCategory.longest_streak, longest_streak, on or _today())

        for category, (value, when) in candidates.items():
            existing = self._table.get(category)
            if existing is None or value > existing.value:
                self._store(category, value, when, improvement=None)
        logger.debug("Seeded %d personal best categories from history", len(candidates))
