"""
Activity router: raw records that feed the analytics core.

POST /activity/days       — upsert the totals of one day
POST /activity/sessions   — record one completed session
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from offtime.db.base import get_db
from offtime.routers.deps import get_orchestrator
from offtime.schemas.activity import (
    DayStatRequest,
    DayStatResponse,
    SessionNoteOut,
    SessionRequest,
    SessionResponse,
)
from offtime.schemas.analytics import PersonalBestEventOut
from offtime.services.orchestrator import AnalyticsOrchestrator
from offtime.services.store import record_session, set_streak, upsert_day_stat

router = APIRouter(prefix="/activity", tags=["activity"])


@router.post(
    "/days",
    response_model=DayStatResponse,
    summary="Create or overwrite one day's totals",
    responses={200: {"description": "Stored day totals. Analytics refresh after a quiet period."}},
)
def upsert_day(
    payload: DayStatRequest,
    db: Session = Depends(get_db),
    orchestrator: AnalyticsOrchestrator = Depends(get_orchestrator),
):
    """
    Store the totals of `day`, replacing whatever was there. When
    `current_streak` is given the live streak counter is updated too.
    """
    stat = upsert_day_stat(
        db,
        day=payload.day,
        offline_minutes=payload.offline_minutes,
        session_count=payload.session_count,
        xp_earned=payload.xp_earned,
        achievements_unlocked=payload.achievements_unlocked,
        streak_day=payload.streak_day,
    )
    if payload.current_streak is not None:
        set_streak(db, payload.current_streak, payload.longest_streak)
    orchestrator.notify_data_changed()
    return DayStatResponse.model_validate(stat)


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a completed session",
    responses={
        201: {"description": "Session stored; includes any personal bests it set."},
        422: {"description": "Validation error."},
    },
)
def create_session(
    payload: SessionRequest,
    db: Session = Depends(get_db),
    orchestrator: AnalyticsOrchestrator = Depends(get_orchestrator),
):
    """
    Store the session, add its minutes to the day, and run the immediate
    personal best check for that day and week.
    """
    note = record_session(
        db,
        started_at=payload.started_at,
        duration_minutes=payload.duration_minutes,
        goal_id=payload.goal_id,
        mood=payload.mood,
        activities=payload.activities,
        goal_achieved=payload.goal_achieved,
        note=payload.note,
    )
    if payload.current_streak is not None:
        set_streak(db, payload.current_streak)

    events = orchestrator.session_completed(payload.started_at.date())
    return SessionResponse(
        session=SessionNoteOut.model_validate(note),
        activities=[a for a in payload.activities if a],
        personal_best_events=[PersonalBestEventOut.model_validate(e) for e in events],
    )
