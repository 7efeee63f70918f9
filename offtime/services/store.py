"""
Raw-record store: day totals, session notes, streak counters and the
durable copy of the personal best table.

Public API
----------
upsert_day_stat(db, day, ...)           → DayStat        (commit)
record_session(db, started_at, ...)     → SessionNote    (commit; creates/updates the day)
set_streak(db, current, longest=None)   → StreakState    (commit)
get_current_streak(db)                  → int
get_longest_streak(db)                  → int
load_day_records(db)                    → list[DayRecord]          (chronological)
load_personal_bests(db)                 → list[PersonalBestRecord]
save_personal_bests(db, records)        → None           (commit; one row per category)

SqlAnalyticsStore(session_factory) adapts the functions above to the
orchestrator's store port, opening one session per call.
"""
from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from offtime.models.day_stat import DayStat
from offtime.models.personal_best import PersonalBest
from offtime.models.session_note import SessionNote
from offtime.models.streak import StreakState
from offtime.services.personal_bests import (
    PersonalBestCategory,
    PersonalBestRecord,
    PreviousBest,
    title_for,
)
from offtime.services.records import DayRecord, SessionNoteRecord, non_negative

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _encode_activities(activities: Iterable[str]) -> Optional[str]:
    items = [a for a in activities if a]
    return json.dumps(items) if items else None


def _decode_activities(raw: Optional[str]) -> tuple[str, ...]:
    if not raw:
        return ()
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed activities payload: %r", raw)
        return ()
    return tuple(str(v) for v in value) if isinstance(value, list) else ()


def _get_day(db: Session, day: date) -> Optional[DayStat]:
    return db.execute(select(DayStat).where(DayStat.day == day)).scalar_one_or_none()


def _get_streak_row(db: Session) -> Optional[StreakState]:
    return db.execute(select(StreakState).order_by(StreakState.id)).scalars().first()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def upsert_day_stat(
    db: Session,
    day: date,
    offline_minutes: float,
    session_count: Optional[int] = None,
    xp_earned: int = 0,
    achievements_unlocked: int = 0,
    streak_day: int = 0,
) -> DayStat:
    """Create or overwrite the totals of one day."""
    stat = _get_day(db, day)
    if stat is None:
        stat = DayStat(day=day)
        db.add(stat)
    stat.offline_minutes = non_negative(offline_minutes)
    stat.session_count = session_count
    stat.xp_earned = xp_earned
    stat.achievements_unlocked = achievements_unlocked
    stat.streak_day = streak_day
    db.commit()
    db.refresh(stat)
    return stat


def record_session(
    db: Session,
    started_at: datetime,
    duration_minutes: float,
    goal_id: Optional[str] = None,
    mood: Optional[str] = None,
    activities: Iterable[str] = (),
    goal_achieved: bool = False,
    note: Optional[str] = None,
) -> SessionNote:
    """
    Persist a completed session and fold its minutes into the day total.
    A day row is created when the session is the first of its day.
    """
    day = started_at.date()
    minutes = non_negative(duration_minutes)

    stat = _get_day(db, day)
    if stat is None:
        stat = DayStat(day=day, offline_minutes=0)
        db.add(stat)
    stat.offline_minutes = (stat.offline_minutes or 0) + minutes
    if stat.session_count is not None:
        stat.session_count += 1

    session_note = SessionNote(
        day=day,
        started_at=started_at,
        duration_minutes=minutes,
        goal_id=goal_id,
        mood=mood,
        activities=_encode_activities(activities),
        goal_achieved=goal_achieved,
        note=note,
    )
    db.add(session_note)
    db.commit()
    db.refresh(session_note)
    return session_note


def set_streak(
    db: Session, current_streak: int, longest_streak: Optional[int] = None
) -> StreakState:
    """Store the live streak; the longest streak never decreases."""
    row = _get_streak_row(db)
    if row is None:
        row = StreakState(current_streak=0, longest_streak=0)
        db.add(row)
    row.current_streak = max(0, current_streak)
    row.longest_streak = max(row.longest_streak or 0, row.current_streak, longest_streak or 0)
    db.commit()
    db.refresh(row)
    return row


def save_personal_bests(db: Session, records: Iterable[PersonalBestRecord]) -> None:
    existing = {row.category: row for row in db.execute(select(PersonalBest)).scalars()}
    for record in records:
        row = existing.get(record.category.value)
        if row is None:
            row = PersonalBest(category=record.category.value)
            db.add(row)
        row.record_id = record.id
        row.value = record.value
        row.unit = record.unit
        row.achieved_on = record.date
        row.previous_value = record.previous_best.value if record.previous_best else None
        row.previous_achieved_on = record.previous_best.date if record.previous_best else None
        row.improvement = record.improvement
    db.commit()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_current_streak(db: Session) -> int:
    row = _get_streak_row(db)
    return row.current_streak if row is not None else 0


def get_longest_streak(db: Session) -> int:
    row = _get_streak_row(db)
    return row.longest_streak if row is not None else 0


def load_day_records(db: Session) -> list[DayRecord]:
    notes_by_day: dict[date, list[SessionNoteRecord]] = {}
    for n in db.execute(select(SessionNote).order_by(SessionNote.started_at)).scalars():
        notes_by_day.setdefault(n.day, []).append(SessionNoteRecord(
            started_at=n.started_at,
            duration_minutes=n.duration_minutes,
            goal_id=n.goal_id,
            mood=n.mood,
            activities=_decode_activities(n.activities),
            goal_achieved=bool(n.goal_achieved),
        ))

    records = []
    for stat in db.execute(select(DayStat).order_by(DayStat.day)).scalars():
        records.append(DayRecord(
            day=stat.day,
            offline_minutes=stat.offline_minutes,
            session_count=stat.session_count,
            xp_earned=stat.xp_earned,
            achievements_unlocked=stat.achievements_unlocked,
            streak_day=stat.streak_day,
            notes=tuple(notes_by_day.get(stat.day, ())),
        ))
    return records


def load_personal_bests(db: Session) -> list[PersonalBestRecord]:
    records = []
    for row in db.execute(select(PersonalBest)).scalars():
        try:
            category = PersonalBestCategory(row.category)
        except ValueError:
            logger.warning("Skipping personal best row with unknown category %r", row.category)
            continue
        previous = None
        if row.previous_value is not None and row.previous_achieved_on is not None:
            previous = PreviousBest(value=row.previous_value, date=row.previous_achieved_on)
        records.append(PersonalBestRecord(
            id=row.record_id,
            category=category,
            title=title_for(category),
            value=row.value,
            unit=row.unit,
            date=row.achieved_on,
            previous_best=previous,
            improvement=row.improvement,
        ))
    return records


# ---------------------------------------------------------------------------
# Orchestrator store port
# ---------------------------------------------------------------------------

class SqlAnalyticsStore:
    """AnalyticsStore backed by SQLAlchemy; one short-lived session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load_day_records(self) -> list[DayRecord]:
        with self._session_factory() as db:
            return load_day_records(db)

    def current_streak(self) -> int:
        with self._session_factory() as db:
            return get_current_streak(db)

    def longest_streak(self) -> int:
        with self._session_factory() as db:
            return get_longest_streak(db)

    def load_personal_bests(self) -> list[PersonalBestRecord]:
        with self._session_factory() as db:
            return load_personal_bests(db)

    def save_personal_bests(self, records: list[PersonalBestRecord]) -> None:
        with self._session_factory() as db:
            save_personal_bests(db, records)
