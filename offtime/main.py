from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from offtime.db.base import SessionLocal, get_db
from offtime.core.config import settings
from offtime.core.logging import configure_logging
from offtime.routers import activity as activity_router
from offtime.routers import analytics as analytics_router
from offtime.services.insights import InsightEngine
from offtime.services.orchestrator import AnalyticsOrchestrator
from offtime.services.store import SqlAnalyticsStore
from offtime.core.errors import (
    OfftimeException,
    offtime_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging(settings.LOG_LEVEL)


def build_orchestrator(session_factory=SessionLocal) -> AnalyticsOrchestrator:
    return AnalyticsOrchestrator(
        store=SqlAnalyticsStore(session_factory),
        engine=InsightEngine(limit=settings.MAX_INSIGHTS),
        debounce_seconds=settings.RECOMPUTE_DEBOUNCE_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests may install their own orchestrator before startup.
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator()
    yield
    app.state.orchestrator.shutdown()
    app.state.orchestrator = None


app = FastAPI(
    title="Offtime Analytics API",
    description=(
        "**Offline-time analytics**\n\n"
        "Folds daily offline-time records into rollups, mines behavior patterns, "
        "tracks personal bests and ranks rule-based insights.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(OfftimeException, offtime_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(activity_router.router)
app.include_router(analytics_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
