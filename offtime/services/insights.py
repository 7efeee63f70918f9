"""
Insight Rule Engine — declarative rules evaluated against an analytics context.

A rule is data: {id, condition(ctx) -> bool, generate(ctx) -> Insight | None,
priority, category}. Rules are assembled into an immutable RuleRegistry;
adding or removing a rule builds a new registry (logged), never mutates one
in place.

Evaluation
----------
For every registered rule: if condition holds, call generate and keep a
non-None result. A generator may decline (e.g. "already optimal"); that is
not an error. A rule that raises is logged and skipped for this cycle only.
Output is sorted by (priority desc, confidence desc) and cut to `limit`.

Built-in rules
--------------
  streak_protection            10  motivation    today empty, streak >= 3, expires in 24 h
  optimal_timing                9  optimization  time pattern with preferred hours
  personal_best                 9  motivation    personal best set in the last 3 days
  goal_achievement              8  performance   projected week-end total vs weekly goal
  consistency_improvement       7  habit         latest week consistency < 70
  session_length_optimization   6  optimization  duration pattern, >= 10 days, |diff| > 10 min
  trend_analysis                5  performance   >= 3 weeks, significance not low
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Iterator, Optional, Union

from offtime.core.errors import DuplicateRuleError, UnknownRuleError
from offtime.services.patterns import BehaviorPattern, PatternType, find_pattern
from offtime.services.personal_bests import PersonalBestRecord
from offtime.services.records import day_index
from offtime.services.rollups import DailyRollup, MonthlyRollup, WeeklyRollup
from offtime.services.trends import (
    Direction,
    Significance,
    Strength,
    TrendResult,
    analyze_progress_trend,
)

logger = logging.getLogger(__name__)

MAX_INSIGHTS = 8


# ---------------------------------------------------------------------------
# Context handed to every rule
# ---------------------------------------------------------------------------

@dataclass
class AnalyticsContext:
    daily: list[DailyRollup]
    weekly: list[WeeklyRollup]
    monthly: list[MonthlyRollup]
    patterns: list[BehaviorPattern]
    personal_bests: list[PersonalBestRecord]
    current_streak: int
    now: datetime

    @property
    def today(self) -> date:
        return self.now.date()


# ---------------------------------------------------------------------------
# Insight payloads, one per insight kind
# ---------------------------------------------------------------------------

class InsightKind(str, enum.Enum):
    optimal_timing = "optimal_timing"
    consistency_improvement = "consistency_improvement"
    streak_protection = "streak_protection"
    goal_achievement = "goal_achievement"
    session_length = "session_length"
    trend = "trend"
    personal_best = "personal_best"


class RuleCategory(str, enum.Enum):
    performance = "performance"
    habit = "habit"
    motivation = "motivation"
    optimization = "optimization"


@dataclass(frozen=True)
class OptimalTimingData:
    optimal_hour: int
    preferred_hours: list[int]
    preferred_days: list[int]
    success_rate: int


@dataclass(frozen=True)
class ConsistencyData:
    current_consistency: int
    days_active: int
    suggested_days: list[str]


@dataclass(frozen=True)
class StreakProtectionData:
    current_streak: int
    risk_level: str


@dataclass(frozen=True)
class GoalAchievementData:
    probability: float
    sessions_needed: int
    days_remaining: int
    projected_total: int
    weekly_goal: int


@dataclass(frozen=True)
class SessionLengthData:
    optimal_duration: int
    current_average: int
    suggestion: str           # "longer" | "shorter"


@dataclass(frozen=True)
class TrendData:
    metric: str
    trend: TrendResult


@dataclass(frozen=True)
class PersonalBestData:
    category: str
    value: float
    unit: str
    improvement: float


InsightData = Union[
    OptimalTimingData,
    ConsistencyData,
    StreakProtectionData,
    GoalAchievementData,
    SessionLengthData,
    TrendData,
    PersonalBestData,
]


@dataclass(frozen=True)
class Insight:
    kind: InsightKind
    title: str
    description: str
    confidence: float
    actionable: bool
    data: InsightData
    recommendation: Optional[str] = None
    expires_at: Optional[datetime] = None
    # Stamped by the engine from the producing rule.
    id: str = ""
    type: str = ""
    priority: int = 0
    category: str = ""
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Rules and registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InsightRule:
    id: str
    name: str
    description: str
    condition: Callable[[AnalyticsContext], bool]
    generate: Callable[[AnalyticsContext], Optional[Insight]]
    priority: int
    category: RuleCategory


class RuleRegistry:
    """Immutable, ordered set of rules keyed by id."""

    def __init__(self, rules: Iterable[InsightRule] = ()):
        ordered = tuple(rules)
        seen: set[str] = set()
        for rule in ordered:
            if rule.id in seen:
                raise DuplicateRuleError(rule.id)
            seen.add(rule.id)
        self._rules = ordered

    def __iter__(self) -> Iterator[InsightRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return any(r.id == rule_id for r in self._rules)

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self._rules]

    def get(self, rule_id: str) -> Optional[InsightRule]:
        return next((r for r in self._rules if r.id == rule_id), None)

    def with_rule(self, rule: InsightRule) -> "RuleRegistry":
        if rule.id in self:
            raise DuplicateRuleError(rule.id)
        logger.info("Insight registry rebuilt: added rule %s", rule.id)
        return RuleRegistry(self._rules + (rule,))

    def without_rule(self, rule_id: str) -> "RuleRegistry":
        if rule_id not in self:
            raise UnknownRuleError(rule_id)
        logger.info("Insight registry rebuilt: removed rule %s", rule_id)
        return RuleRegistry(r for r in self._rules if r.id != rule_id)


class InsightEngine:
    def __init__(self, registry: Optional[RuleRegistry] = None, limit: int = MAX_INSIGHTS):
        self._registry = registry if registry is not None else default_registry()
        self._limit = limit

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    def use_registry(self, registry: RuleRegistry) -> None:
        logger.info(
            "Insight engine switched registry: %s -> %s",
            self._registry.ids, registry.ids,
        )
        self._registry = registry

    def generate(self, ctx: AnalyticsContext) -> list[Insight]:
        stamp = int(ctx.now.timestamp() * 1000)
        insights: list[Insight] = []
        for rule in self._registry:
            try:
                if not rule.condition(ctx):
                    continue
                draft = rule.generate(ctx)
            except Exception:
                logger.exception("Insight rule %s failed; skipped this cycle", rule.id)
                continue
            if draft is None:
                continue
            insights.append(replace(
                draft,
                id=f"{rule.id}_{stamp}",
                type=rule.id,
                priority=rule.priority,
                category=rule.category.value,
                created_at=ctx.now,
            ))

        insights.sort(key=lambda i: (-i.priority, -i.confidence))
        return insights[: self._limit]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
_WEEKEND = {0, 6}

_CONSISTENCY_TARGET = 70
_STREAK_AT_RISK = 3
_MIN_DAYS_FOR_DURATION = 10
_DURATION_TOLERANCE = 10
_RECENT_DAYS = 7
_PERSONAL_BEST_RECENCY = timedelta(days=3)
_GOAL_HISTORY_WEEKS = 4
_FALLBACK_SESSION_MINUTES = 30


def format_hour(hour: int) -> str:
    if hour == 0:
        return "12:00 AM"
    if hour < 12:
        return f"{hour}:00 AM"
    if hour == 12:
        return "12:00 PM"
    return f"{hour - 12}:00 PM"


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def suggest_missing_days(week: WeeklyRollup) -> list[str]:
    """Up to two inactive days of the week, weekdays before weekends."""
    active = {day_index(d.date) for d in week.daily_breakdown if d.total_minutes > 0}
    # Monday-first so suggestions read in calendar order.
    inactive = [i for i in (1, 2, 3, 4, 5, 6, 0) if i not in active]
    weekdays = [i for i in inactive if i not in _WEEKEND]
    weekends = [i for i in inactive if i in _WEEKEND]
    return [_DAY_NAMES[i] for i in (weekdays[:2] + weekends[:1])[:2]]


def _today_minutes(ctx: AnalyticsContext) -> float:
    today = next((d for d in ctx.daily if d.date == ctx.today), None)
    return today.total_minutes if today is not None else 0


def _weekly_goal(weekly: list[WeeklyRollup]) -> float:
    """Mean of up to four prior weeks; the current week's own pace when there is no history."""
    history = weekly[-1 - _GOAL_HISTORY_WEEKS:-1]
    if history:
        return sum(w.total_minutes for w in history) / len(history)
    return weekly[-1].patterns.average_daily_goal * 7


# ---------------------------------------------------------------------------
# Rule: optimal timing
# ---------------------------------------------------------------------------

def _optimal_timing_condition(ctx: AnalyticsContext) -> bool:
    pattern = find_pattern(ctx.patterns, PatternType.time_preference)
    return pattern is not None and bool(pattern.pattern.preferred_hours)


def _optimal_timing_generate(ctx: AnalyticsContext) -> Optional[Insight]:
    pattern = find_pattern(ctx.patterns, PatternType.time_preference)
    if pattern is None or not pattern.pattern.preferred_hours:
        return None
    best_hour = pattern.pattern.preferred_hours[0]
    success_rate = round(pattern.confidence * 100)
    return Insight(
        kind=InsightKind.optimal_timing,
        title="Perfect Time for Your Next Session",
        description=f"Your sessions most often start around {format_hour(best_hour)}.",
        confidence=pattern.confidence,
        actionable=True,
        recommendation=f"Try starting your next session around {format_hour(best_hour)}.",
        data=OptimalTimingData(
            optimal_hour=best_hour,
            preferred_hours=list(pattern.pattern.preferred_hours),
            preferred_days=list(pattern.pattern.preferred_days),
            success_rate=success_rate,
        ),
    )


# ---------------------------------------------------------------------------
# Rule: consistency improvement
# ---------------------------------------------------------------------------

def _consistency_condition(ctx: AnalyticsContext) -> bool:
    return bool(ctx.weekly) and ctx.weekly[-1].patterns.consistency_score < _CONSISTENCY_TARGET


def _consistency_generate(ctx: AnalyticsContext) -> Optional[Insight]:
    week = ctx.weekly[-1]
    days_active = sum(1 for d in week.daily_breakdown if d.total_minutes > 0)
    extra = min(7 - days_active, 2)
    suggested = suggest_missing_days(week)
    recommendation = (
        f"Try adding sessions on {' and '.join(suggested)}." if suggested else None
    )
    return Insight(
        kind=InsightKind.consistency_improvement,
        title="Boost Your Consistency",
        description=(
            f"You're active {_plural(days_active, 'day')} per week. "
            f"Adding {_plural(extra, 'more day')} could noticeably improve your consistency."
        ),
        confidence=0.8,
        actionable=True,
        recommendation=recommendation,
        data=ConsistencyData(
            current_consistency=week.patterns.consistency_score,
            days_active=days_active,
            suggested_days=suggested,
        ),
    )


# ---------------------------------------------------------------------------
# Rule: streak protection
# ---------------------------------------------------------------------------

def _streak_condition(ctx: AnalyticsContext) -> bool:
    return ctx.current_streak >= _STREAK_AT_RISK and _today_minutes(ctx) <= 0


def _streak_generate(ctx: AnalyticsContext) -> Optional[Insight]:
    streak = ctx.current_streak
    if streak < _STREAK_AT_RISK:
        return None
    return Insight(
        kind=InsightKind.streak_protection,
        title="Protect Your Streak!",
        description=f"Your {streak}-day streak is at risk! Don't let all that progress go to waste.",
        confidence=0.9,
        actionable=True,
        recommendation=f"Complete just one session today to keep your {streak}-day streak alive.",
        data=StreakProtectionData(current_streak=streak, risk_level="high"),
        expires_at=ctx.now + timedelta(hours=24),
    )


# ---------------------------------------------------------------------------
# Rule: goal achievement prediction
# ---------------------------------------------------------------------------

def predict_goal_achievement(weekly: list[WeeklyRollup]) -> Optional[GoalAchievementData]:
    if not weekly:
        return None
    current = weekly[-1]
    goal = _weekly_goal(weekly)
    if goal <= 0:
        return None

    progress = current.total_minutes
    days_elapsed = sum(1 for d in current.daily_breakdown if d.total_minutes > 0)
    days_remaining = 7 - days_elapsed
    if days_remaining <= 0:
        return None

    daily_average = progress / max(days_elapsed, 1)
    projected = progress + daily_average * days_remaining
    probability = min(projected / goal * 100, 100.0)
    minutes_needed = max(0.0, goal - progress)
    sessions_needed = math.ceil(minutes_needed / (daily_average or _FALLBACK_SESSION_MINUTES))

    return GoalAchievementData(
        probability=probability,
        sessions_needed=max(0, sessions_needed),
        days_remaining=days_remaining,
        projected_total=round(projected),
        weekly_goal=round(goal),
    )


def _goal_condition(ctx: AnalyticsContext) -> bool:
    return bool(ctx.weekly) and len(ctx.daily) >= 3


def _goal_generate(ctx: AnalyticsContext) -> Optional[Insight]:
    prediction = predict_goal_achievement(ctx.weekly)
    if prediction is None:
        return None

    pct = round(prediction.probability)
    sessions = _plural(prediction.sessions_needed, "session")
    if prediction.probability >= 80:
        title = "You're On Track!"
        description = f"You have a {pct}% chance of reaching your weekly goal."
        recommendation = "Keep up the great work!"
    elif prediction.probability >= 50:
        title = "Push a Little Harder"
        description = (
            f"You have a {pct}% chance of reaching your goal. "
            f"{sessions} more would put you on track."
        )
        recommendation = (
            f"Try to fit in {sessions} more in the next "
            f"{_plural(prediction.days_remaining, 'day')}."
        )
    else:
        title = "Goal at Risk"
        description = (
            "Your weekly goal is challenging to reach at the current pace. "
            f"You'd need {sessions} more."
        )
        recommendation = "Consider adjusting your goal or increasing session frequency."

    return Insight(
        kind=InsightKind.goal_achievement,
        title=title,
        description=description,
        confidence=min(prediction.probability / 100 + 0.2, 0.9),
        actionable=True,
        recommendation=recommendation,
        data=prediction,
    )


# ---------------------------------------------------------------------------
# Rule: session length optimization
# ---------------------------------------------------------------------------

def _session_length_condition(ctx: AnalyticsContext) -> bool:
    pattern = find_pattern(ctx.patterns, PatternType.duration_preference)
    return pattern is not None and len(ctx.daily) >= _MIN_DAYS_FOR_DURATION


def _session_length_generate(ctx: AnalyticsContext) -> Optional[Insight]:
    pattern = find_pattern(ctx.patterns, PatternType.duration_preference)
    if pattern is None:
        return None
    optimal = round(pattern.pattern.preferred_duration.average)
    recent = ctx.daily[-_RECENT_DAYS:]
    recent_average = sum(d.average_session_length for d in recent) / len(recent)
    difference = abs(optimal - recent_average)
    if difference <= _DURATION_TOLERANCE:
        return None

    suggestion = "longer" if optimal > recent_average else "shorter"
    observed = "shorter" if suggestion == "longer" else "longer"
    return Insight(
        kind=InsightKind.session_length,
        title="Optimize Your Session Length",
        description=(
            f"Your sessions average {optimal} minutes overall. "
            f"Recent sessions have been {round(difference)} minutes {observed}."
        ),
        confidence=pattern.confidence,
        actionable=True,
        recommendation=f"Try aiming for {suggestion} sessions around {optimal} minutes.",
        data=SessionLengthData(
            optimal_duration=optimal,
            current_average=round(recent_average),
            suggestion=suggestion,
        ),
    )


# ---------------------------------------------------------------------------
# Rule: trend analysis
# ---------------------------------------------------------------------------

def _trend_condition(ctx: AnalyticsContext) -> bool:
    return len(ctx.weekly) >= 3


def _trend_generate(ctx: AnalyticsContext) -> Optional[Insight]:
    window = min(4, len(ctx.weekly))
    trend = analyze_progress_trend(ctx.weekly, "total_minutes", window=window)
    if trend is None or trend.significance == Significance.low:
        return None

    if trend.direction == Direction.increasing:
        if trend.strength == Strength.strong:
            title = "Excellent Progress!"
            recommendation = "You're building great momentum. Keep it going!"
        else:
            title = "Steady Gains"
            recommendation = "Your weekly minutes are climbing. Keep this rhythm."
        description = f"Your weekly minutes have been increasing {trend.strength.value}ly."
    elif trend.direction == Direction.decreasing:
        title = "Progress Declining"
        description = f"Your weekly minutes have been decreasing {trend.strength.value}ly recently."
        recommendation = "Consider what might be affecting your routine and how to get back on track."
    else:
        return None

    return Insight(
        kind=InsightKind.trend,
        title=title,
        description=description,
        confidence=trend.confidence,
        actionable=True,
        recommendation=recommendation,
        data=TrendData(metric="total_minutes", trend=trend),
    )


# ---------------------------------------------------------------------------
# Rule: personal best recognition
# ---------------------------------------------------------------------------

def _recent_personal_bests(ctx: AnalyticsContext) -> list[PersonalBestRecord]:
    # Seeded records carry no improvement: only event-produced ones count.
    cutoff = ctx.today - _PERSONAL_BEST_RECENCY
    return [r for r in ctx.personal_bests if r.improvement is not None and r.date > cutoff]


def _personal_best_condition(ctx: AnalyticsContext) -> bool:
    return bool(_recent_personal_bests(ctx))


def _personal_best_generate(ctx: AnalyticsContext) -> Optional[Insight]:
    recent = _recent_personal_bests(ctx)
    if not recent:
        return None
    best = max(recent, key=lambda r: (r.date, r.improvement or 0))
    improvement = best.improvement or 0
    suffix = f" ({round(improvement)}% better than before!)" if improvement > 0 else ""
    return Insight(
        kind=InsightKind.personal_best,
        title="New Personal Best!",
        description=f"You achieved a new {best.title.lower()}: {best.value:g} {best.unit}{suffix}",
        confidence=1.0,
        actionable=False,
        recommendation="Celebrate this achievement! You're making real progress.",
        data=PersonalBestData(
            category=best.category.value,
            value=best.value,
            unit=best.unit,
            improvement=improvement,
        ),
    )


# ---------------------------------------------------------------------------
# Default registry
# ---------------------------------------------------------------------------

DEFAULT_RULES: tuple[InsightRule, ...] = (
    InsightRule(
        id="optimal_timing",
        name="Optimal Timing Suggestion",
        description="Suggests the best time for sessions from historical start times.",
        condition=_optimal_timing_condition,
        generate=_optimal_timing_generate,
        priority=9,
        category=RuleCategory.optimization,
    ),
    InsightRule(
        id="consistency_improvement",
        name="Consistency Improvement",
        description="Identifies opportunities to be active on more days.",
        condition=_consistency_condition,
        generate=_consistency_generate,
        priority=7,
        category=RuleCategory.habit,
    ),
    InsightRule(
        id="streak_protection",
        name="Streak Protection Alert",
        description="Warns when a meaningful streak is at risk today.",
        condition=_streak_condition,
        generate=_streak_generate,
        priority=10,
        category=RuleCategory.motivation,
    ),
    InsightRule(
        id="goal_achievement",
        name="Goal Achievement Prediction",
        description="Predicts the likelihood of reaching this week's goal.",
        condition=_goal_condition,
        generate=_goal_generate,
        priority=8,
        category=RuleCategory.performance,
    ),
    InsightRule(
        id="session_length_optimization",
        name="Session Length Optimization",
        description="Suggests session lengths closer to the usual duration.",
        condition=_session_length_condition,
        generate=_session_length_generate,
        priority=6,
        category=RuleCategory.optimization,
    ),
    InsightRule(
        id="trend_analysis",
        name="Progress Trend Analysis",
        description="Reports significant changes in weekly minutes.",
        condition=_trend_condition,
        generate=_trend_generate,
        priority=5,
        category=RuleCategory.performance,
    ),
    InsightRule(
        id="personal_best",
        name="Personal Best Recognition",
        description="Celebrates personal bests set in the last few days.",
        condition=_personal_best_condition,
        generate=_personal_best_generate,
        priority=9,
        category=RuleCategory.motivation,
    ),
)


def default_registry() -> RuleRegistry:
    return RuleRegistry(DEFAULT_RULES)
