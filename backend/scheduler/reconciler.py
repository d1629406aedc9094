"""
Live reconciler: overlays authoritative live data onto cached fixtures.

Per tick:
  1. fetch the live pool (behind a circuit breaker) and store it
  2. re-anchor the display clock of every live fixture (drift tolerance)
  3. confirm, with one by-id fetch each, tracked fixtures that vanished
     from the live pool; drop them only on a terminal or missing result
  4. overlay the changes onto every cached collection that holds them
  5. pick up in-window, non-terminal fixtures from today's cached window
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

from shared.cache.fixture_cache import FixtureCache
from shared.config import Settings, get_settings
from shared.errors import UpstreamError
from shared.models.domain import Fixture, ScopeKey
from shared.models.enums import FixtureStatus
from shared.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from shared.utils.dates import today_in, utcnow, window_dates
from shared.utils.logging import get_logger
from shared.utils.metrics import ELAPSED_SNAPS, LIVE_FIXTURES, RECONCILER_TICKS, TRACKED_FIXTURES
from shared.utils.time_classifier import is_within_active_window

from ingest.providers.base import UpstreamClient
from scheduler.engine.elapsed import displayed_elapsed, reconcile_elapsed
from scheduler.engine.ticker import ScheduledTask

logger = get_logger(__name__)

LeaderCheck = Callable[[], Awaitable[bool]]


@dataclass
class TrackedFixture:
    fixture_id: int
    kickoff: datetime
    status: FixtureStatus
    last_known_elapsed: Optional[int]
    last_sync_at: datetime
    anchor_elapsed: Optional[int]
    anchor_at: datetime
    seen_live: bool = False

    def display_elapsed(self, now: datetime) -> Optional[int]:
        return displayed_elapsed(self.anchor_elapsed, self.anchor_at, self.status, now)


@dataclass
class TickReport:
    outcome: str
    live: int = 0
    tracked: int = 0
    discovered: list[int] = field(default_factory=list)
    dropped: list[int] = field(default_factory=list)
    snapped: list[int] = field(default_factory=list)
    confirmations: int = 0


class LiveReconciler:
    def __init__(
        self,
        upstream: UpstreamClient,
        cache: FixtureCache,
        settings: Settings | None = None,
        breaker: CircuitBreaker | None = None,
        leader_check: LeaderCheck | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings or get_settings()
        self._upstream = upstream
        self._cache = cache
        self._breaker = breaker or CircuitBreaker(
            "live_reconciler",
            failure_threshold=self._settings.circuit_failure_threshold,
            recovery_timeout_s=self._settings.circuit_recovery_s,
        )
        self._leader_check = leader_check
        self._now = now
        self._tolerance = self._settings.elapsed_drift_tolerance_min
        self._window_hours = self._settings.active_window_hours
        self._match_minutes = self._settings.match_duration_minutes
        self.tracked: dict[int, TrackedFixture] = {}
        self.last_report: Optional[TickReport] = None
        self._task = ScheduledTask(
            "live_reconciler",
            self.tick,
            interval_s=self._settings.reconciler_interval_s,
            startup_delay_s=self._settings.reconciler_startup_delay_s,
        )

    # ── Lifecycle ───────────────────────────────────────────────────────
    def start(self) -> None:
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def stats(self) -> dict[str, Any]:
        report = self.last_report
        return {
            **self._task.stats,
            "tracked": len(self.tracked),
            "last_outcome": report.outcome if report else None,
            "last_live": report.live if report else None,
            "circuit": self._breaker.stats,
        }

    def display_elapsed(self, fixture_id: int) -> Optional[int]:
        tracked = self.tracked.get(fixture_id)
        return tracked.display_elapsed(self._now()) if tracked else None

    # ── Tick ────────────────────────────────────────────────────────────
    async def tick(self) -> TickReport:
        now = self._now()
        if self._leader_check is not None and not await self._leader_check():
            return self._finish(TickReport(outcome="not_leader", tracked=len(self.tracked)))

        try:
            live = await self._breaker.call(self._upstream.fetch_live)
        except CircuitBreakerOpen as exc:
            logger.warning("reconciler_circuit_open", retry_after_s=round(exc.retry_after, 1))
            return self._finish(TickReport(outcome="circuit_open", tracked=len(self.tracked)))
        except UpstreamError as exc:
            logger.warning("reconciler_live_fetch_failed", error_type=type(exc).__name__, error=str(exc))
            return self._finish(TickReport(outcome="upstream_error", tracked=len(self.tracked)))

        report = TickReport(outcome="ok", live=len(live))
        live_ids = {f.id for f in live}
        updates: list[Fixture] = list(live)
        await self._cache.put_collection(ScopeKey.live(), live)

        for fixture in live:
            self._absorb(fixture, now, report)

        for fixture_id in [fid for fid, t in self.tracked.items() if t.seen_live and fid not in live_ids]:
            confirmed = await self._confirm(fixture_id, report)
            if confirmed is not None:
                updates.append(confirmed)
                self._absorb(confirmed, now, report)

        today = today_in(self._settings.server_timezone, now)
        await self._cache.overlay(updates, window_dates(today))

        await self._discover(today, now, report)
        self._expire_upcoming(now, live_ids, report)

        report.tracked = len(self.tracked)
        LIVE_FIXTURES.set(len(live))
        return self._finish(report)

    def _finish(self, report: TickReport) -> TickReport:
        RECONCILER_TICKS.labels(outcome=report.outcome).inc()
        TRACKED_FIXTURES.set(len(self.tracked))
        self.last_report = report
        if report.outcome == "ok":
            logger.info(
                "reconciler_tick",
                live=report.live,
                tracked=report.tracked,
                discovered=len(report.discovered),
                dropped=report.dropped,
                snapped=report.snapped,
                confirmations=report.confirmations,
            )
        return report

    def _absorb(self, fixture: Fixture, now: datetime, report: TickReport) -> None:
        """Fold one authoritative fixture into tracking state."""
        code = fixture.status.code
        if code.is_terminal:
            if self.tracked.pop(fixture.id, None) is not None:
                report.dropped.append(fixture.id)
            return

        authoritative = fixture.status.elapsed
        tracked = self.tracked.get(fixture.id)
        if tracked is None:
            self.tracked[fixture.id] = TrackedFixture(
                fixture_id=fixture.id,
                kickoff=fixture.kickoff_utc,
                status=code,
                last_known_elapsed=authoritative,
                last_sync_at=now,
                anchor_elapsed=authoritative,
                anchor_at=now,
                seen_live=code.is_live,
            )
            return

        local = tracked.display_elapsed(now)
        anchor, snapped = reconcile_elapsed(local, authoritative, self._tolerance)
        if snapped:
            ELAPSED_SNAPS.inc()
            report.snapped.append(fixture.id)
            logger.debug("elapsed_snapped", fixture_id=fixture.id, local=local, authoritative=authoritative)
        tracked.status = code
        tracked.kickoff = fixture.kickoff_utc
        tracked.last_known_elapsed = authoritative
        tracked.last_sync_at = now
        tracked.anchor_elapsed = anchor
        tracked.anchor_at = now
        tracked.seen_live = tracked.seen_live or code.is_live

    async def _confirm(self, fixture_id: int, report: TickReport) -> Optional[Fixture]:
        """One by-id lookup for a fixture missing from the live pool."""
        report.confirmations += 1
        try:
            fixture = await self._upstream.fetch_by_id(fixture_id)
        except UpstreamError as exc:
            logger.warning("reconciler_confirm_failed", fixture_id=fixture_id, error=str(exc))
            return None
        if fixture is None:
            self.tracked.pop(fixture_id, None)
            report.dropped.append(fixture_id)
            logger.info("reconciler_fixture_vanished", fixture_id=fixture_id)
            return None
        return fixture

    async def _discover(self, today: date, now: datetime, report: TickReport) -> None:
        entry = await self._cache.get(ScopeKey.multi_window(today))
        if entry is None:
            return
        for fixture in entry.fixtures:
            if fixture.id in self.tracked or fixture.id in report.dropped or fixture.status.code.is_terminal:
                continue
            if not is_within_active_window(fixture, now, self._window_hours, self._match_minutes):
                continue
            self.tracked[fixture.id] = TrackedFixture(
                fixture_id=fixture.id,
                kickoff=fixture.kickoff_utc,
                status=fixture.status.code,
                last_known_elapsed=fixture.status.elapsed,
                last_sync_at=now,
                anchor_elapsed=fixture.status.elapsed,
                anchor_at=now,
                seen_live=fixture.status.code.is_live,
            )
            report.discovered.append(fixture.id)

    def _expire_upcoming(self, now: datetime, live_ids: set[int], report: TickReport) -> None:
        """Drop never-live fixtures whose active window has passed."""
        horizon = timedelta(hours=self._window_hours)
        duration = timedelta(minutes=self._match_minutes)
        for fid, tracked in list(self.tracked.items()):
            if tracked.seen_live or fid in live_ids:
                continue
            if now > tracked.kickoff + duration + horizon:
                del self.tracked[fid]
                report.dropped.append(fid)
