"""
Rollup Aggregator — folds raw day records into daily, weekly and monthly
statistical summaries.

Pure functions of their input; no database, no clock.

Public API
----------
build_daily_rollups(records)    -> list[DailyRollup]    (chronological)
build_weekly_rollups(dailies)   -> list[WeeklyRollup]   (keyed by Monday)
build_monthly_rollups(weeklies) -> list[MonthlyRollup]  (keyed by YYYY-MM of week start)
build_rollups(records)          -> RollupSet

Empty input yields empty output at every level.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from offtime.services.records import (
    DayRecord,
    day_index,
    estimate_session_count,
    non_negative,
)
from offtime.services.trends import percentage_change


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class HourlyBucket:
    hour: int                # 0–23
    minutes: float = 0.0
    session_count: int = 0


@dataclass
class DailyRollup:
    date: date
    total_minutes: float
    session_count: int
    average_session_length: float
    longest_session: float
    shortest_session: float
    goal_completions: int
    xp_earned: int
    achievements_unlocked: int
    streak_day: int
    mood: Optional[str]
    top_activities: list[str]
    hourly_distribution: list[HourlyBucket]   # always 24 slots


@dataclass
class BestDay:
    date: date
    minutes: float
    reason: str


@dataclass
class WeeklyPatterns:
    most_productive_day: int      # 0–6, Sunday = 0
    most_productive_hour: int     # 0–23
    average_daily_goal: float
    consistency_score: int        # 0–100


@dataclass
class WeeklyRollup:
    week_start: date              # Monday
    total_minutes: float
    session_count: int
    average_session_length: float
    goal_completions: int
    xp_earned: int
    achievements_unlocked: int
    streak_days: int
    daily_breakdown: list[DailyRollup]
    best_day: BestDay
    patterns: WeeklyPatterns


@dataclass
class MonthlyTrends:
    """Percentage deltas against the previous month in the series."""
    minutes_change: float = 0.0
    session_count_change: float = 0.0
    average_length_change: float = 0.0
    consistency_change: float = 0.0


@dataclass
class Milestone:
    id: str
    type: str                 # "streak" | "total_time" | "session_count" | "goal_completion"
    title: str
    description: str
    value: float
    date: date


@dataclass
class MonthlyRollup:
    month: str                    # YYYY-MM
    total_minutes: float
    session_count: int
    average_session_length: float
    goal_completions: int
    xp_earned: int
    achievements_unlocked: int
    consistency_score: float      # mean of weekly consistency scores
    max_streak: int
    weekly_breakdown: list[WeeklyRollup]
    trends: MonthlyTrends = field(default_factory=MonthlyTrends)
    milestones: list[Milestone] = field(default_factory=list)


@dataclass
class RollupSet:
    daily: list[DailyRollup]
    weekly: list[WeeklyRollup]
    monthly: list[MonthlyRollup]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_TOP_ACTIVITIES = 3
_LONG_SESSION_MINUTES = 60
_MANY_SESSIONS = 3

_TOTAL_TIME_MILESTONES = (600, 1200, 1800, 3000)
_SESSION_COUNT_MILESTONES = (20, 50, 100)
_GOAL_COMPLETION_MILESTONES = (10, 25, 50)
_PERFECT_WEEK_DAYS = 7


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def week_start(d: date) -> date:
    """Monday of d's week (Sunday belongs to the week that began six days earlier)."""
    idx = day_index(d)
    offset = -6 if idx == 0 else 1 - idx
    return d + timedelta(days=offset)


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def _most_common_mood(record: DayRecord) -> Optional[str]:
    moods = Counter(n.mood for n in record.notes if n.mood)
    if not moods:
        return None
    return moods.most_common(1)[0][0]


def _top_activities(record: DayRecord) -> list[str]:
    counts: Counter[str] = Counter()
    for note in record.notes:
        counts.update(note.activities)
    return [name for name, _ in counts.most_common(_TOP_ACTIVITIES)]


def _hourly_distribution(record: DayRecord) -> list[HourlyBucket]:
    buckets = [HourlyBucket(hour=h) for h in range(24)]
    for note in record.notes:
        bucket = buckets[note.started_at.hour]
        bucket.minutes += non_negative(note.duration_minutes)
        bucket.session_count += 1
    return buckets


def best_day_reason(day: DailyRollup) -> str:
    if day.goal_completions > 0:
        return "Most goals completed"
    if day.longest_session > _LONG_SESSION_MINUTES:
        return "Longest session"
    if day.session_count > _MANY_SESSIONS:
        return "Most sessions"
    return "Highest total time"


def _first_max_index(values: list[float]) -> int:
    best = 0
    for i, v in enumerate(values):
        if v > values[best]:
            best = i
    return best


def _average(total: float, count: int) -> float:
    return total / count if count > 0 else 0.0


# ---------------------------------------------------------------------------
# Daily
# ---------------------------------------------------------------------------

def build_daily_rollup(record: DayRecord) -> DailyRollup:
    total = non_negative(record.offline_minutes)
    count = estimate_session_count(record)
    average = _average(total, count)
    durations = [non_negative(n.duration_minutes) for n in record.notes]

    return DailyRollup(
        date=record.day,
        total_minutes=total,
        session_count=count,
        average_session_length=average,
        # The average is folded in so longest >= average >= shortest holds
        # even when notes don't sum to the reported total.
        longest_session=max(durations + [average]),
        shortest_session=min(durations + [average]),
        goal_completions=sum(1 for n in record.notes if n.goal_achieved),
        xp_earned=int(non_negative(record.xp_earned)),
        achievements_unlocked=int(non_negative(record.achievements_unlocked)),
        streak_day=int(non_negative(record.streak_day)),
        mood=_most_common_mood(record),
        top_activities=_top_activities(record),
        hourly_distribution=_hourly_distribution(record),
    )


def build_daily_rollups(records: Iterable[DayRecord]) -> list[DailyRollup]:
    return [build_daily_rollup(r) for r in sorted(records, key=lambda r: r.day)]


# ---------------------------------------------------------------------------
# Weekly
# ---------------------------------------------------------------------------

def build_weekly_rollup(start: date, days: list[DailyRollup]) -> WeeklyRollup:
    total = sum(d.total_minutes for d in days)
    sessions = sum(d.session_count for d in days)

    best = days[_first_max_index([d.total_minutes for d in days])]

    day_totals = [0.0] * 7
    hour_totals = [0.0] * 24
    for d in days:
        day_totals[day_index(d.date)] += d.total_minutes
        for bucket in d.hourly_distribution:
            hour_totals[bucket.hour] += bucket.minutes

    active_days = sum(1 for d in days if d.total_minutes > 0)

    return WeeklyRollup(
        week_start=start,
        total_minutes=total,
        session_count=sessions,
        average_session_length=_average(total, sessions),
        goal_completions=sum(d.goal_completions for d in days),
        xp_earned=sum(d.xp_earned for d in days),
        achievements_unlocked=sum(d.achievements_unlocked for d in days),
        streak_days=sum(1 for d in days if d.streak_day > 0),
        daily_breakdown=days,
        best_day=BestDay(date=best.date, minutes=best.total_minutes, reason=best_day_reason(best)),
        patterns=WeeklyPatterns(
            most_productive_day=_first_max_index(day_totals),
            most_productive_hour=_first_max_index(hour_totals),
            average_daily_goal=total / 7,
            consistency_score=round(100 * active_days / len(days)),
        ),
    )


def build_weekly_rollups(dailies: Iterable[DailyRollup]) -> list[WeeklyRollup]:
    weeks: dict[date, list[DailyRollup]] = {}
    for day in sorted(dailies, key=lambda d: d.date):
        weeks.setdefault(week_start(day.date), []).append(day)
    return [build_weekly_rollup(start, days) for start, days in weeks.items()]


# ---------------------------------------------------------------------------
# Monthly
# ---------------------------------------------------------------------------

def _threshold_milestones(
    month: str,
    kind: str,
    label: str,
    unit: str,
    value: float,
    thresholds: tuple[int, ...],
    on: date,
) -> list[Milestone]:
    return [
        Milestone(
            id=f"{month}_{kind}_{t}",
            type=kind,
            title=f"{t} {label}",
            description=f"Reached {t} {unit} in {month}.",
            value=t,
            date=on,
        )
        for t in thresholds
        if value >= t
    ]


def _monthly_milestones(month: str, weeks: list[WeeklyRollup], totals: dict) -> list[Milestone]:
    last_day = weeks[-1].daily_breakdown[-1].date
    milestones: list[Milestone] = []
    milestones += _threshold_milestones(
        month, "total_time", "Offline Minutes", "offline minutes",
        totals["minutes"], _TOTAL_TIME_MILESTONES, last_day,
    )
    milestones += _threshold_milestones(
        month, "session_count", "Sessions", "sessions",
        totals["sessions"], _SESSION_COUNT_MILESTONES, last_day,
    )
    milestones += _threshold_milestones(
        month, "goal_completion", "Goals Completed", "completed goals",
        totals["goals"], _GOAL_COMPLETION_MILESTONES, last_day,
    )
    for week in weeks:
        if week.streak_days >= _PERFECT_WEEK_DAYS:
            milestones.append(Milestone(
                id=f"{month}_streak_{week.week_start.isoformat()}",
                type="streak",
                title="Perfect Week",
                description=f"Kept the streak alive every day of the week of {week.week_start}.",
                value=week.streak_days,
                date=week.daily_breakdown[-1].date,
            ))
    return milestones


def _monthly_trends(current: MonthlyRollup, previous: Optional[MonthlyRollup]) -> MonthlyTrends:
    if previous is None:
        return MonthlyTrends()
    return MonthlyTrends(
        minutes_change=percentage_change(current.total_minutes, previous.total_minutes),
        session_count_change=percentage_change(current.session_count, previous.session_count),
        average_length_change=percentage_change(
            current.average_session_length, previous.average_session_length
        ),
        consistency_change=percentage_change(current.consistency_score, previous.consistency_score),
    )


def build_monthly_rollups(weeklies: Iterable[WeeklyRollup]) -> list[MonthlyRollup]:
    months: dict[str, list[WeeklyRollup]] = {}
    for week in sorted(weeklies, key=lambda w: w.week_start):
        months.setdefault(month_key(week.week_start), []).append(week)

    result: list[MonthlyRollup] = []
    for month, weeks in months.items():
        total = sum(w.total_minutes for w in weeks)
        sessions = sum(w.session_count for w in weeks)
        goals = sum(w.goal_completions for w in weeks)
        rollup = MonthlyRollup(
            month=month,
            total_minutes=total,
            session_count=sessions,
            average_session_length=_average(total, sessions),
            goal_completions=goals,
            xp_earned=sum(w.xp_earned for w in weeks),
            achievements_unlocked=sum(w.achievements_unlocked for w in weeks),
            consistency_score=sum(w.patterns.consistency_score for w in weeks) / len(weeks),
            max_streak=max(w.streak_days for w in weeks),
            weekly_breakdown=weeks,
            milestones=_monthly_milestones(
                month, weeks, {"minutes": total, "sessions": sessions, "goals": goals}
            ),
        )
        rollup.trends = _monthly_trends(rollup, result[-1] if result else None)
        result.append(rollup)
    return result


# ---------------------------------------------------------------------------
# Public — all levels at once
# ---------------------------------------------------------------------------

def build_rollups(records: Iterable[DayRecord]) -> RollupSet:
    daily = build_daily_rollups(records)
    weekly = build_weekly_rollups(daily)
    monthly = build_monthly_rollups(weekly)
    return RollupSet(daily=daily, weekly=weekly, monthly=monthly)
