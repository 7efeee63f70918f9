"""
Analytics response schemas.

GET  /analytics                        → AnalyticsSnapshotResponse
POST /analytics/recompute              → AnalyticsSnapshotResponse
GET  /analytics/rollups/{timeframe}    → RollupListResponse
GET  /analytics/trends                 → TrendResponse
GET  /analytics/comparison             → ComparisonResponse
GET  /analytics/summary                → SummaryResponse
GET  /analytics/personal-bests         → PersonalBestListResponse

Every model reads straight off the service dataclasses (from_attributes).
"""
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from offtime.services.insights import InsightKind
from offtime.services.patterns import PatternType
from offtime.services.personal_bests import EventSignificance, PersonalBestCategory
from offtime.services.queries import SummarySpan, Timeframe
from offtime.services.trends import Direction, Significance, Strength


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Rollups
# ---------------------------------------------------------------------------

class HourlyBucketOut(_FromAttributes):
    hour: int
    minutes: float
    session_count: int


class DailyRollupOut(_FromAttributes):
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
    mood: Optional[str] = None
    top_activities: list[str]
    hourly_distribution: list[HourlyBucketOut]


class BestDayOut(_FromAttributes):
    date: date
    minutes: float
    reason: str


class WeeklyPatternsOut(_FromAttributes):
    most_productive_day: int = Field(description="0–6, Sunday = 0")
    most_productive_hour: int
    average_daily_goal: float
    consistency_score: int


class WeeklyRollupOut(_FromAttributes):
    week_start: date
    total_minutes: float
    session_count: int
    average_session_length: float
    goal_completions: int
    xp_earned: int
    achievements_unlocked: int
    streak_days: int
    daily_breakdown: list[DailyRollupOut]
    best_day: BestDayOut
    patterns: WeeklyPatternsOut


class MonthlyTrendsOut(_FromAttributes):
    minutes_change: float
    session_count_change: float
    average_length_change: float
    consistency_change: float


class MilestoneOut(_FromAttributes):
    id: str
    type: str
    title: str
    description: str
    value: float
    date: date


class MonthlyRollupOut(_FromAttributes):
    month: str = Field(examples=["2026-03"])
    total_minutes: float
    session_count: int
    average_session_length: float
    goal_completions: int
    xp_earned: int
    achievements_unlocked: int
    consistency_score: float
    max_streak: int
    weekly_breakdown: list[WeeklyRollupOut]
    trends: MonthlyTrendsOut
    milestones: list[MilestoneOut]


class RollupListResponse(BaseModel):
    timeframe: Timeframe
    total: int
    items: list[Union[DailyRollupOut, WeeklyRollupOut, MonthlyRollupOut]]


# ---------------------------------------------------------------------------
# Patterns, trends, insights
# ---------------------------------------------------------------------------

class DurationRangeOut(_FromAttributes):
    min: float
    max: float
    average: float


class PatternPayloadOut(_FromAttributes):
    preferred_days: list[int]
    preferred_hours: list[int]
    preferred_duration: DurationRangeOut
    preferred_goals: list[str]
    preferred_activities: list[str]
    preferred_moods: list[str]


class BehaviorPatternOut(_FromAttributes):
    pattern_type: PatternType
    pattern: PatternPayloadOut
    confidence: float
    last_updated: datetime


class TrendOut(_FromAttributes):
    metric: str
    direction: Direction
    strength: Strength
    confidence: float
    significance: Significance
    change_percent: float
    timeframe: str
    description: str
    slope: float
    intercept: float


class TrendResponse(BaseModel):
    metric: str
    timeframe: Timeframe
    trend: Optional[TrendOut] = Field(
        default=None, description="null when the series is shorter than the window."
    )


class InsightOut(_FromAttributes):
    id: str
    type: str = Field(description="Id of the rule that produced the insight.")
    kind: InsightKind
    title: str
    description: str
    confidence: float
    actionable: bool
    recommendation: Optional[str] = None
    data: dict[str, Any] = Field(description="Structured payload; shape depends on `kind`.")
    priority: int
    category: str
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @field_validator("data", mode="before")
    @classmethod
    def payload_as_dict(cls, v: Any) -> Any:
        if is_dataclass(v) and not isinstance(v, type):
            return asdict(v)
        return v


# ---------------------------------------------------------------------------
# Personal bests
# ---------------------------------------------------------------------------

class PreviousBestOut(_FromAttributes):
    value: float
    date: date


class PersonalBestOut(_FromAttributes):
    id: str
    category: PersonalBestCategory
    title: str
    value: float
    unit: str
    date: date
    previous_best: Optional[PreviousBestOut] = None
    improvement: Optional[float] = None


class PersonalBestEventOut(_FromAttributes):
    category: PersonalBestCategory
    old_value: float
    new_value: float
    improvement: float
    date: date
    significance: EventSignificance


class PersonalBestListResponse(BaseModel):
    total: int
    items: list[PersonalBestOut]


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

class AnalyticsSnapshotResponse(_FromAttributes):
    daily: list[DailyRollupOut]
    weekly: list[WeeklyRollupOut]
    monthly: list[MonthlyRollupOut]
    patterns: list[BehaviorPatternOut]
    insights: list[InsightOut]
    personal_bests: list[PersonalBestOut]
    current_streak: int
    last_calculated: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Comparison and summary
# ---------------------------------------------------------------------------

class PeriodTotalsOut(_FromAttributes):
    start: date
    end: date
    total_minutes: float
    session_count: int
    average_length: float
    goal_completions: int
    consistency_score: float


class PeriodChangesOut(_FromAttributes):
    minutes_change: float
    session_count_change: float
    average_length_change: float
    goal_completions_change: float
    consistency_change: float


class ComparisonOut(_FromAttributes):
    timeframe: str
    current: PeriodTotalsOut
    previous: PeriodTotalsOut
    changes: PeriodChangesOut
    insights: list[str] = Field(description="At most three plain-English notes.")


class ComparisonResponse(BaseModel):
    timeframe: Timeframe
    comparison: Optional[ComparisonOut] = Field(
        default=None, description="null until two rollups of the timeframe exist."
    )


class SummaryResponse(_FromAttributes):
    span: SummarySpan
    total_minutes: int
    total_sessions: int
    average_session_length: int
    goal_completions: int
    data_points: int
    period_start: Optional[date] = None
    period_end: Optional[date] = None
