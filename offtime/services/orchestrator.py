"""
Analytics Orchestrator — the only stateful piece of the analytics core.

Owns two long-lived values: the personal best table and the last computed
snapshot. Both leave this module only as copies.

Signals
-------
notify_data_changed()   debounced: a burst of calls collapses into one
                        recompute after `debounce_seconds` of quiet
session_completed(day)  immediate personal best check of that day and its
                        week, then a debounced recompute
recompute()             one full cycle, never concurrent with another

Cycle
-----
  records → rollups → patterns → personal bests (newest daily + weekly,
  live streak) → insights → snapshot → listeners

Triggers that arrive while a cycle runs are coalesced: the running cycle
loops once more and every waiting caller gets that result. The very first
cycle against an empty best table seeds it from history (all but the
newest rollups) so old values are not celebrated as new. The stored
longest streak is seeded only when it beats the live streak.

Listener faults are logged and skipped. Listeners run on the thread that
finished the cycle and must not call recompute().
"""
from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Protocol

from offtime.services.insights import AnalyticsContext, Insight, InsightEngine
from offtime.services.patterns import BehaviorPattern, extract_observations, mine_patterns
from offtime.services.personal_bests import (
    PersonalBestEvent,
    PersonalBestRecord,
    PersonalBestTracker,
)
from offtime.services.records import DayRecord
from offtime.services.rollups import (
    DailyRollup,
    MonthlyRollup,
    WeeklyRollup,
    build_daily_rollups,
    build_monthly_rollups,
    build_weekly_rollup,
    build_weekly_rollups,
    week_start,
)

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 5.0


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------

class Scheduler(Protocol):
    def schedule(self, delay: float, callback: Callable[[], None]) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class ThreadingScheduler:
    """Runs each callback once on a daemon timer thread."""

    def schedule(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, handle: threading.Timer) -> None:
        handle.cancel()


class AnalyticsStore(Protocol):
    def load_day_records(self) -> list[DayRecord]: ...

    def current_streak(self) -> int: ...

    def longest_streak(self) -> int: ...

    def load_personal_bests(self) -> list[PersonalBestRecord]: ...

    def save_personal_bests(self, records: list[PersonalBestRecord]) -> None: ...


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

@dataclass
class AnalyticsSnapshot:
    daily: list[DailyRollup] = field(default_factory=list)
    weekly: list[WeeklyRollup] = field(default_factory=list)
    monthly: list[MonthlyRollup] = field(default_factory=list)
    patterns: list[BehaviorPattern] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)
    personal_bests: list[PersonalBestRecord] = field(default_factory=list)
    current_streak: int = 0
    last_calculated: Optional[datetime] = None


SnapshotListener = Callable[[AnalyticsSnapshot], None]
PersonalBestListener = Callable[[list[PersonalBestEvent]], None]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class AnalyticsOrchestrator:
    def __init__(
        self,
        store: AnalyticsStore,
        scheduler: Optional[Scheduler] = None,
        engine: Optional[InsightEngine] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._scheduler = scheduler or ThreadingScheduler()
        self._engine = engine or InsightEngine()
        self._debounce_seconds = debounce_seconds
        self._clock = clock

        self._tracker: Optional[PersonalBestTracker] = None
        self._seeded = False
        self._snapshot: Optional[AnalyticsSnapshot] = None

        # Serializes every mutation of the best table.
        self._cycle_lock = threading.RLock()
        # Guards the debounce handle, the closed flag and the trigger counters.
        self._cond = threading.Condition()
        self._debounce_handle: Any = None
        self._closed = False
        self._running = False
        self._requested = 0
        self._completed = 0

        self._snapshot_listeners: list[SnapshotListener] = []
        self._best_listeners: list[PersonalBestListener] = []

    @property
    def engine(self) -> InsightEngine:
        return self._engine

    # -- subscriptions ------------------------------------------------------

    def subscribe_snapshots(self, listener: SnapshotListener) -> Callable[[], None]:
        self._snapshot_listeners.append(listener)
        return lambda: self._unsubscribe(self._snapshot_listeners, listener)

    def subscribe_personal_bests(self, listener: PersonalBestListener) -> Callable[[], None]:
        self._best_listeners.append(listener)
        return lambda: self._unsubscribe(self._best_listeners, listener)

    @staticmethod
    def _unsubscribe(listeners: list, listener: Callable) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def _publish(self, listeners: list, payload: Any, kind: str) -> None:
        for listener in list(listeners):
            try:
                listener(copy.deepcopy(payload))
            except Exception:
                logger.exception("%s listener %r failed; skipped", kind, listener)

    # -- signals ------------------------------------------------------------

    def notify_data_changed(self) -> None:
        """(Re)start the quiet period; the recompute runs once it elapses."""
        with self._cond:
            if self._closed:
                return
            if self._debounce_handle is not None:
                self._scheduler.cancel(self._debounce_handle)
            self._debounce_handle = self._scheduler.schedule(
                self._debounce_seconds, self._on_quiet_period_elapsed
            )

    def _on_quiet_period_elapsed(self) -> None:
        with self._cond:
            self._debounce_handle = None
            if self._closed:
                return
        try:
            self.recompute()
        except Exception:
            logger.exception("Debounced analytics recompute failed")

    def session_completed(self, day: Optional[date] = None) -> list[PersonalBestEvent]:
        """
        Check the given day (default: today) and its week for new personal
        bests right away, then schedule the usual debounced recompute.
        """
        with self._cycle_lock:
            target = day or self._clock().date()
            records = self._store.load_day_records()
            streak = self._store.current_streak()
            dailies = build_daily_rollups(records)
            todays = next((d for d in dailies if d.date == target), None)

            events: list[PersonalBestEvent] = []
            if todays is not None:
                start = week_start(target)
                week = build_weekly_rollup(
                    start, [d for d in dailies if week_start(d.date) == start]
                )
                tracker = self._ensure_tracker(
                    history_dailies=[d for d in dailies if d.date != target],
                    history_weeklies=[
                        w for w in build_weekly_rollups(dailies) if w.week_start != start
                    ],
                    current_streak=streak,
                )
                events += tracker.check_daily(todays, current_streak=streak, on=target)
                events += tracker.check_weekly(week)
            else:
                tracker = self._ensure_tracker()
                events += tracker.check_streak(streak, on=target)

            self._persist_if_changed(events)

        if events:
            self._publish(self._best_listeners, events, "Personal best")
        self.notify_data_changed()
        return events

    # -- full cycle ---------------------------------------------------------

    def recompute(self) -> AnalyticsSnapshot:
        """Run one cycle, or wait for the running one to pick this trigger up."""
        with self._cond:
            self._requested += 1
            ticket = self._requested
            if self._running:
                while self._completed < ticket:
                    self._cond.wait()
                return self._copy_or_empty()
            self._running = True

        try:
            while True:
                with self._cond:
                    target = self._requested
                self._run_cycle()
                with self._cond:
                    self._completed = target
                    self._cond.notify_all()
                    if self._requested == target:
                        self._running = False
                        break
                logger.debug("Coalesced %d trigger(s) into another cycle", self._requested - target)
        except BaseException:
            with self._cond:
                self._running = False
                self._completed = self._requested
                self._cond.notify_all()
            raise

        return self._copy_or_empty()

    def _run_cycle(self) -> None:
        with self._cycle_lock:
            now = self._clock()
            records = self._store.load_day_records()
            streak = self._store.current_streak()

            daily = build_daily_rollups(records)
            weekly = build_weekly_rollups(daily)
            monthly = build_monthly_rollups(weekly)
            patterns = mine_patterns(extract_observations(records), now)

            tracker = self._ensure_tracker(
                history_dailies=daily[:-1],
                history_weeklies=weekly[:-1],
                current_streak=streak,
            )
            events: list[PersonalBestEvent] = []
            if daily:
                events += tracker.check_daily(daily[-1], current_streak=streak, on=now.date())
            else:
                events += tracker.check_streak(streak, on=now.date())
            if weekly:
                events += tracker.check_weekly(weekly[-1])
            self._persist_if_changed(events)

            bests = tracker.records()
            insights = self._engine.generate(AnalyticsContext(
                daily=daily,
                weekly=weekly,
                monthly=monthly,
                patterns=patterns,
                personal_bests=bests,
                current_streak=streak,
                now=now,
            ))

            snapshot = AnalyticsSnapshot(
                daily=daily,
                weekly=weekly,
                monthly=monthly,
                patterns=patterns,
                insights=insights,
                personal_bests=bests,
                current_streak=streak,
                last_calculated=now,
            )
            self._snapshot = snapshot
            logger.info(
                "Analytics recomputed: %d days, %d weeks, %d months, %d patterns, "
                "%d insights, %d new personal bests",
                len(daily), len(weekly), len(monthly), len(patterns), len(insights), len(events),
            )

        if events:
            self._publish(self._best_listeners, events, "Personal best")
        self._publish(self._snapshot_listeners, snapshot, "Snapshot")

    # -- best table ---------------------------------------------------------

    def _ensure_tracker(
        self,
        history_dailies: Optional[list[DailyRollup]] = None,
        history_weeklies: Optional[list[WeeklyRollup]] = None,
        current_streak: int = 0,
    ) -> PersonalBestTracker:
        if self._tracker is None:
            self._tracker = PersonalBestTracker(self._store.load_personal_bests())
            # A persisted table is already authoritative.
            self._seeded = len(self._tracker) > 0
        if not self._seeded and history_dailies is not None:
            self._tracker.seed_from_history(
                history_dailies,
                history_weeklies or [],
                longest_streak=self._historical_longest_streak(current_streak),
                on=self._clock().date(),
            )
            self._seeded = True
            if len(self._tracker):
                self._store.save_personal_bests(self._tracker.records())
        return self._tracker

    def _historical_longest_streak(self, current_streak: int) -> int:
        # The stored longest already counts the live streak; that one is
        # checked live so an empty table still reports it as a new best.
        longest = self._store.longest_streak()
        return longest if longest > current_streak else 0

    def _persist_if_changed(self, events: list[PersonalBestEvent]) -> None:
        if events and self._tracker is not None:
            self._store.save_personal_bests(self._tracker.records())

    # -- read side ----------------------------------------------------------

    def _copy_or_empty(self) -> AnalyticsSnapshot:
        snapshot = self._snapshot
        return copy.deepcopy(snapshot) if snapshot is not None else AnalyticsSnapshot()

    def current_snapshot(self) -> Optional[AnalyticsSnapshot]:
        """Copy of the last computed snapshot, or None before the first cycle."""
        snapshot = self._snapshot
        return copy.deepcopy(snapshot) if snapshot is not None else None

    def snapshot(self) -> AnalyticsSnapshot:
        """Copy of the last snapshot; computes the first one on demand."""
        if self._snapshot is None:
            return self.recompute()
        return self._copy_or_empty()

    def personal_bests(self) -> list[PersonalBestRecord]:
        """Current best table; runs the first cycle on demand like snapshot()."""
        if self._snapshot is None:
            self.recompute()
        with self._cycle_lock:
            return list(self._ensure_tracker().records())

    def shutdown(self) -> None:
        with self._cond:
            self._closed = True
            if self._debounce_handle is not None:
                self._scheduler.cancel(self._debounce_handle)
                self._debounce_handle = None
        logger.info("Analytics orchestrator shut down")
