"""
Behavior Pattern Miner — infers preference clusters from session observations.

Patterns are recomputed wholesale every analytics cycle from the full
observation history; nothing is updated incrementally.

Sub-analyses (each may independently find nothing)
--------------------------------------------------
  time_preference      days above 1.2x the mean day frequency,
                       hours above 1.5x the mean hour frequency
                       confidence = min(n / 20, 1)
  duration_preference  min / max / average duration (needs >= 3)
                       confidence = min(n / 15, 1)
  goal_preference      top 3 referenced goal ids
                       confidence = min(distinct goals / 5, 1)
  activity_preference  top 5 activities + top 2 moods
                       confidence = min((activities + moods) / 7, 1)

Fewer than MIN_OBSERVATIONS observations yield no patterns at all.
"""
from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Iterable, Optional, Sequence

from offtime.services.records import (
    DayRecord,
    day_index,
    estimate_session_count,
    non_negative,
)

MIN_OBSERVATIONS = 5
MIN_DURATION_OBSERVATIONS = 3

_DAY_FACTOR = 1.2
_HOUR_FACTOR = 1.5

# Synthesized sessions start at 10:00 and are spaced 4 hours apart.
_FIRST_ESTIMATED_HOUR = 10
_ESTIMATED_HOUR_STEP = 4


class PatternType(str, enum.Enum):
    time_preference = "time_preference"
    duration_preference = "duration_preference"
    goal_preference = "goal_preference"
    activity_preference = "activity_preference"


@dataclass(frozen=True)
class SessionObservation:
    day_of_week: int          # 0–6, Sunday = 0
    hour_of_day: int          # 0–23
    duration_minutes: float
    date: datetime
    goal_id: Optional[str] = None
    mood: Optional[str] = None
    activities: tuple[str, ...] = ()


@dataclass
class DurationRange:
    min: float = 0.0
    max: float = 0.0
    average: float = 0.0


@dataclass
class PatternPayload:
    preferred_days: list[int] = field(default_factory=list)
    preferred_hours: list[int] = field(default_factory=list)
    preferred_duration: DurationRange = field(default_factory=DurationRange)
    preferred_goals: list[str] = field(default_factory=list)
    preferred_activities: list[str] = field(default_factory=list)
    preferred_moods: list[str] = field(default_factory=list)


@dataclass
class BehaviorPattern:
    pattern_type: PatternType
    pattern: PatternPayload
    confidence: float
    last_updated: datetime


# ---------------------------------------------------------------------------
# Observation extraction
# ---------------------------------------------------------------------------

def extract_observations(records: Iterable[DayRecord]) -> list[SessionObservation]:
    """
    One observation per real session note. Days without notes but with
    offline minutes are synthesized: estimated session count, equal
    durations, evenly spaced start hours.
    """
    observations: list[SessionObservation] = []
    for record in records:
        if record.notes:
            for note in record.notes:
                observations.append(SessionObservation(
                    day_of_week=day_index(note.started_at.date()),
                    hour_of_day=note.started_at.hour,
                    duration_minutes=non_negative(note.duration_minutes),
                    date=note.started_at,
                    goal_id=note.goal_id,
                    mood=note.mood,
                    activities=tuple(note.activities),
                ))
            continue

        minutes = non_negative(record.offline_minutes)
        if minutes <= 0:
            continue
        count = estimate_session_count(record)
        for i in range(count):
            hour = min(_FIRST_ESTIMATED_HOUR + i * _ESTIMATED_HOUR_STEP, 23)
            observations.append(SessionObservation(
                day_of_week=day_index(record.day),
                hour_of_day=hour,
                duration_minutes=minutes / count,
                date=datetime.combine(record.day, time(hour=hour)),
            ))

    return sorted(observations, key=lambda o: _sort_key(o.date))


def _sort_key(moment: datetime) -> datetime:
    # Notes may be tz-aware while synthesized sessions are naive.
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Sub-analyses
# ---------------------------------------------------------------------------

def _above_mean(frequencies: list[int], factor: float) -> list[int]:
    mean = sum(frequencies) / len(frequencies)
    chosen = [i for i, f in enumerate(frequencies) if f > mean * factor]
    return sorted(chosen, key=lambda i: (-frequencies[i], i))


def analyze_time_preference(
    observations: Sequence[SessionObservation], now: datetime
) -> Optional[BehaviorPattern]:
    day_freq = [0] * 7
    hour_freq = [0] * 24
    for o in observations:
        day_freq[o.day_of_week] += 1
        hour_freq[o.hour_of_day] += 1

    preferred_days = _above_mean(day_freq, _DAY_FACTOR)
    preferred_hours = _above_mean(hour_freq, _HOUR_FACTOR)
    if not preferred_days and not preferred_hours:
        return None

    return BehaviorPattern(
        pattern_type=PatternType.time_preference,
        pattern=PatternPayload(preferred_days=preferred_days, preferred_hours=preferred_hours),
        confidence=min(len(observations) / 20, 1.0),
        last_updated=now,
    )


def analyze_duration_preference(
    observations: Sequence[SessionObservation], now: datetime
) -> Optional[BehaviorPattern]:
    durations = sorted(o.duration_minutes for o in observations)
    if len(durations) < MIN_DURATION_OBSERVATIONS:
        return None

    return BehaviorPattern(
        pattern_type=PatternType.duration_preference,
        pattern=PatternPayload(preferred_duration=DurationRange(
            min=durations[0],
            max=durations[-1],
            average=sum(durations) / len(durations),
        )),
        confidence=min(len(observations) / 15, 1.0),
        last_updated=now,
    )


def analyze_goal_preference(
    observations: Sequence[SessionObservation], now: datetime
) -> Optional[BehaviorPattern]:
    goals = Counter(o.goal_id for o in observations if o.goal_id)
    if not goals:
        return None

    return BehaviorPattern(
        pattern_type=PatternType.goal_preference,
        pattern=PatternPayload(preferred_goals=[g for g, _ in goals.most_common(3)]),
        confidence=min(len(goals) / 5, 1.0),
        last_updated=now,
    )


def analyze_activity_preference(
    observations: Sequence[SessionObservation], now: datetime
) -> Optional[BehaviorPattern]:
    activities: Counter[str] = Counter()
    moods: Counter[str] = Counter()
    for o in observations:
        activities.update(o.activities)
        if o.mood:
            moods[o.mood] += 1

    top_activities = [a for a, _ in activities.most_common(5)]
    top_moods = [m for m, _ in moods.most_common(2)]
    if not top_activities and not top_moods:
        return None

    return BehaviorPattern(
        pattern_type=PatternType.activity_preference,
        pattern=PatternPayload(preferred_activities=top_activities, preferred_moods=top_moods),
        confidence=min((len(top_activities) + len(top_moods)) / 7, 1.0),
        last_updated=now,
    )


_ANALYSES = (
    analyze_time_preference,
    analyze_duration_preference,
    analyze_goal_preference,
    analyze_activity_preference,
)


# ---------------------------------------------------------------------------
# Public — main entry point
# ---------------------------------------------------------------------------

def mine_patterns(
    observations: Sequence[SessionObservation],
    now: Optional[datetime] = None,
) -> list[BehaviorPattern]:
    if len(observations) < MIN_OBSERVATIONS:
        return []
    stamp = now or datetime.now(tz=timezone.utc)
    patterns = []
    for analysis in _ANALYSES:
        pattern = analysis(observations, stamp)
        if pattern is not None:
            patterns.append(pattern)
    return patterns


def find_pattern(
    patterns: Iterable[BehaviorPattern], pattern_type: PatternType
) -> Optional[BehaviorPattern]:
    return next((p for p in patterns if p.pattern_type == pattern_type), None)
