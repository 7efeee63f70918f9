"""
Input records for the analytics core.

These are the immutable shapes the raw-record store hands to the
aggregator and the pattern miner. Nothing in the core mutates them.

Estimation policy
-----------------
Older clients report only a day's total offline minutes, without
per-session notes. When notes are missing the core *estimates* sessions:

  session_count = max(1, floor(offline_minutes / ESTIMATED_SESSION_MINUTES))

and treats every estimated session as equally long. An explicit
`session_count` reported by the client takes precedence over the estimate;
real notes take precedence over both.

Day-of-week convention: Sunday = 0 ... Saturday = 6.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

ESTIMATED_SESSION_MINUTES = 30


@dataclass(frozen=True)
class SessionNoteRecord:
    started_at: datetime
    duration_minutes: float
    goal_id: Optional[str] = None
    mood: Optional[str] = None
    activities: tuple[str, ...] = ()
    goal_achieved: bool = False


@dataclass(frozen=True)
class DayRecord:
    day: date
    offline_minutes: float
    session_count: Optional[int] = None
    xp_earned: int = 0
    achievements_unlocked: int = 0
    streak_day: int = 0
    notes: tuple[SessionNoteRecord, ...] = field(default_factory=tuple)


def non_negative(value) -> float:
    """Malformed negatives are treated as zero, never rejected."""
    if value is None:
        return 0
    return value if value > 0 else 0


def day_index(d: date) -> int:
    """Day of week with Sunday as 0."""
    return (d.weekday() + 1) % 7


def estimate_session_count(record: DayRecord) -> int:
    if record.notes:
        return len(record.notes)
    if record.session_count and record.session_count > 0:
        return record.session_count
    minutes = non_negative(record.offline_minutes)
    return max(1, math.floor(minutes / ESTIMATED_SESSION_MINUTES))
