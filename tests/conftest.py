"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no server is required for tests.
Every test that touches the database starts from empty tables: analytics
aggregate over all rows, so date isolation alone is not enough.
"""
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from offtime.db.base import Base, get_db
from offtime.main import app
from offtime.services.insights import InsightEngine
from offtime.services.orchestrator import AnalyticsOrchestrator
from offtime.services.store import SqlAnalyticsStore

SQLITE_URL = "sqlite:///./test_offtime.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Sunday 2026-03-15, noon UTC
FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class ManualScheduler:
    """Scheduler that only runs callbacks when the test says so."""

    def __init__(self):
        self._next = 0
        self.pending: dict[int, tuple[float, object]] = {}
        self.cancelled: list[int] = []

    def schedule(self, delay, callback):
        self._next += 1
        self.pending[self._next] = (delay, callback)
        return self._next

    def cancel(self, handle):
        if self.pending.pop(handle, None) is not None:
            self.cancelled.append(handle)

    def fire_all(self) -> int:
        due = list(self.pending.items())
        self.pending.clear()
        for _, (_, callback) in due:
            callback()
        return len(due)


class MemoryStore:
    """In-memory AnalyticsStore."""

    def __init__(self, records=(), current_streak=0, longest_streak=0, bests=()):
        self.records = list(records)
        self.streak = current_streak
        self.longest = longest_streak
        self.bests = list(bests)
        self.saves = 0
        self.loads = 0
        # Optional hook run inside every load, e.g. to hold a cycle open.
        self.on_load = None

    def load_day_records(self):
        self.loads += 1
        if self.on_load is not None:
            self.on_load()
        return list(self.records)

    def current_streak(self):
        return self.streak

    def longest_streak(self):
        return self.longest

    def load_personal_bests(self):
        return list(self.bests)

    def save_personal_bests(self, records):
        self.saves += 1
        self.bests = list(records)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        yield db
    finally:
        db.close()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def orchestrator(scheduler):
    orch = AnalyticsOrchestrator(
        store=SqlAnalyticsStore(TestingSessionLocal),
        scheduler=scheduler,
        engine=InsightEngine(),
        debounce_seconds=5.0,
        clock=lambda: FIXED_NOW,
    )
    yield orch
    orch.shutdown()


@pytest.fixture()
def memory_store():
    return MemoryStore()


@pytest.fixture()
def make_orchestrator(scheduler):
    """Build orchestrators over any store; all are shut down after the test."""
    created = []

    def _make(store, **kwargs):
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        orch = AnalyticsOrchestrator(store=store, scheduler=scheduler, **kwargs)
        created.append(orch)
        return orch

    yield _make
    for orch in created:
        orch.shutdown()


@pytest.fixture()
def client(db, orchestrator):
    app.dependency_overrides[get_db] = override_get_db
    app.state.orchestrator = orchestrator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
