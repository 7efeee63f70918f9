"""
Activity request / response schemas.

POST /activity/days       → DayStatRequest  → DayStatResponse
POST /activity/sessions   → SessionRequest  → SessionResponse

Negative minutes are accepted and stored as zero; counts must be >= 0.
"""
from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from offtime.schemas.analytics import PersonalBestEventOut

MAX_ACTIVITIES = 20


# ---------------------------------------------------------------------------
# Day totals
# ---------------------------------------------------------------------------

class DayStatRequest(BaseModel):
    """Totals for one day as reported by the tracking client."""
    day: date = Field(examples=["2026-03-02"])
    offline_minutes: float = Field(description="Total offline minutes of the day.")
    session_count: Optional[int] = Field(
        default=None,
        ge=0,
        description="Explicit session count. Omit to let analytics estimate it.",
    )
    xp_earned: int = Field(default=0, ge=0)
    achievements_unlocked: int = Field(default=0, ge=0)
    streak_day: int = Field(default=0, ge=0, description="Streak counter on that day; 0 = no streak.")
    current_streak: Optional[int] = Field(
        default=None, ge=0, description="Live streak counter to store alongside the day."
    )
    longest_streak: Optional[int] = Field(default=None, ge=0)


class DayStatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    day: date
    offline_minutes: float
    session_count: Optional[int] = None
    xp_earned: int
    achievements_unlocked: int
    streak_day: int


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class SessionRequest(BaseModel):
    """One completed offline session."""
    started_at: datetime = Field(examples=["2026-03-02T09:30:00Z"])
    duration_minutes: float
    goal_id: Optional[Annotated[str, Field(max_length=64)]] = None
    mood: Optional[Annotated[str, Field(max_length=32)]] = None
    activities: list[Annotated[str, Field(min_length=1, max_length=64)]] = Field(
        default_factory=list, max_length=MAX_ACTIVITIES
    )
    goal_achieved: bool = False
    note: Optional[Annotated[str, Field(max_length=2_000)]] = None
    current_streak: Optional[int] = Field(
        default=None, ge=0, description="Live streak counter after this session."
    )

    @field_validator("activities", mode="before")
    @classmethod
    def strip_activities(cls, v):
        if isinstance(v, list):
            return [a.strip() if isinstance(a, str) else a for a in v]
        return v


class SessionNoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    day: date
    started_at: datetime
    duration_minutes: float
    goal_id: Optional[str] = None
    mood: Optional[str] = None
    goal_achieved: bool
    note: Optional[str] = None


class SessionResponse(BaseModel):
    session: SessionNoteOut
    activities: list[str]
    personal_best_events: list[PersonalBestEventOut] = Field(
        description="New personal bests found by the immediate check of this session's day."
    )
