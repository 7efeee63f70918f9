"""
Analytics router.

GET  /analytics                       — current snapshot (computed on first use)
POST /analytics/recompute             — run a cycle now
GET  /analytics/rollups/{timeframe}   — rollups overlapping [start, end]
GET  /analytics/trends                — trend of one metric
GET  /analytics/comparison            — latest period vs the one before
GET  /analytics/summary               — totals over week / month / quarter / year
GET  /analytics/personal-bests        — current best table
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from offtime.routers.deps import get_orchestrator
from offtime.schemas.analytics import (
    AnalyticsSnapshotResponse,
    ComparisonOut,
    ComparisonResponse,
    DailyRollupOut,
    MonthlyRollupOut,
    PersonalBestListResponse,
    PersonalBestOut,
    RollupListResponse,
    SummaryResponse,
    TrendOut,
    TrendResponse,
    WeeklyRollupOut,
)
from offtime.services.orchestrator import AnalyticsOrchestrator
from offtime.services.queries import (
    SummarySpan,
    Timeframe,
    compare_latest,
    filter_rollups,
    summarize,
    trend_for,
)

router = APIRouter(prefix="/analytics", tags=["analytics"])

_ROLLUP_MODELS = {
    Timeframe.daily: DailyRollupOut,
    Timeframe.weekly: WeeklyRollupOut,
    Timeframe.monthly: MonthlyRollupOut,
}


@router.get(
    "",
    response_model=AnalyticsSnapshotResponse,
    summary="Current analytics snapshot",
)
def get_snapshot(orchestrator: AnalyticsOrchestrator = Depends(get_orchestrator)):
    """Rollups, patterns, up to eight insights and the best table of the last cycle."""
    return AnalyticsSnapshotResponse.model_validate(orchestrator.snapshot())


@router.post(
    "/recompute",
    response_model=AnalyticsSnapshotResponse,
    summary="Recompute analytics now",
)
def recompute(orchestrator: AnalyticsOrchestrator = Depends(get_orchestrator)):
    """Skip the debounce window. Concurrent calls share a single cycle."""
    return AnalyticsSnapshotResponse.model_validate(orchestrator.recompute())


@router.get(
    "/rollups/{timeframe}",
    response_model=RollupListResponse,
    summary="Rollups of one timeframe, optionally limited to a date range",
    responses={422: {"description": "Unknown timeframe or start after end."}},
)
def list_rollups(
    timeframe: Timeframe,
    start: Optional[date] = Query(default=None, examples=["2026-03-01"]),
    end: Optional[date] = Query(default=None, examples=["2026-03-31"]),
    orchestrator: AnalyticsOrchestrator = Depends(get_orchestrator),
):
    items = filter_rollups(orchestrator.snapshot(), timeframe, start, end)
    model = _ROLLUP_MODELS[timeframe]
    return RollupListResponse(
        timeframe=timeframe,
        total=len(items),
        items=[model.model_validate(r) for r in items],
    )


@router.get(
    "/trends",
    response_model=TrendResponse,
    summary="Trend of one metric",
    responses={422: {"description": "Unknown metric."}},
)
def get_trend(
    metric: str = Query(default="total_minutes", examples=["total_minutes"]),
    timeframe: Timeframe = Query(default=Timeframe.weekly),
    periods: Optional[int] = Query(
        default=None, ge=1, le=60,
        description="Window size. Defaults to 7 days, 4 weeks or 6 months.",
    ),
    orchestrator: AnalyticsOrchestrator = Depends(get_orchestrator),
):
    trend = trend_for(orchestrator.snapshot(), metric, timeframe, periods)
    return TrendResponse(
        metric=metric,
        timeframe=timeframe,
        trend=TrendOut.model_validate(trend) if trend is not None else None,
    )


@router.get(
    "/comparison",
    response_model=ComparisonResponse,
    summary="Latest period compared with the previous one",
)
def get_comparison(
    timeframe: Timeframe = Query(default=Timeframe.weekly),
    orchestrator: AnalyticsOrchestrator = Depends(get_orchestrator),
):
    comparison = compare_latest(orchestrator.snapshot(), timeframe)
    return ComparisonResponse(
        timeframe=timeframe,
        comparison=ComparisonOut.model_validate(comparison) if comparison is not None else None,
    )


@router.get(
    "/summary",
    response_model=SummaryResponse,
    summary="Totals over a recent span",
)
def get_summary(
    span: SummarySpan = Query(default=SummarySpan.week),
    orchestrator: AnalyticsOrchestrator = Depends(get_orchestrator),
):
    return SummaryResponse.model_validate(summarize(orchestrator.snapshot(), span))


@router.get(
    "/personal-bests",
    response_model=PersonalBestListResponse,
    summary="Current personal best per category",
)
def list_personal_bests(orchestrator: AnalyticsOrchestrator = Depends(get_orchestrator)):
    records = orchestrator.personal_bests()
    return PersonalBestListResponse(
        total=len(records),
        items=[PersonalBestOut.model_validate(r) for r in records],
    )
