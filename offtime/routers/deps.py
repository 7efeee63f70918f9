"""Shared router dependencies."""
from fastapi import Request

from offtime.services.orchestrator import AnalyticsOrchestrator


def get_orchestrator(request: Request) -> AnalyticsOrchestrator:
    """The process-wide orchestrator created in the app lifespan."""
    return request.app.state.orchestrator
