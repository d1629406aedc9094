"""
Fixture service: freshness check, single-flight refetch, merge, store, fallback.

Every read follows the same path:

    cached entry fresh?  -> serve it
    else (one refresher per scope key) -> fetch, merge, store, serve
    fetch failed         -> serve the stale entry, or an empty list on a cold cache

Upstream exceptions never escape this module.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from shared.cache.fixture_cache import FixtureCache
from shared.cache.freshness import FreshnessPolicy
from shared.config import Settings, get_settings
from shared.errors import UpstreamError
from shared.models.domain import CacheEntry, Fixture, ScopeKey
from shared.models.enums import CacheStatus, FixtureSource
from shared.utils.dates import parse_date, today_in, utcnow, window_dates
from shared.utils.logging import get_logger
from shared.utils.metrics import CACHE_LOOKUPS
from shared.utils.time_classifier import display_order

from ingest.fetcher import MultiWindowFetcher
from ingest.normalization.dedup import Deduplicator
from ingest.normalization.filters import filter_popular
from ingest.providers.base import UpstreamClient

logger = get_logger(__name__)


@dataclass
class FixtureResult:
    """What a read returned and how it was satisfied."""
    scope_key: str
    status: CacheStatus
    fixtures: list[Fixture] = field(default_factory=list)
    written_at: Optional[datetime] = None

    def age_seconds(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.written_at is None:
            return None
        return max(0.0, ((now or utcnow()) - self.written_at).total_seconds())


def default_season(today: date) -> int:
    """api-football seasons are named after their starting year (July cut-over)."""
    return today.year if today.month >= 7 else today.year - 1


class FixtureService:
    def __init__(
        self,
        upstream: UpstreamClient,
        cache: FixtureCache,
        settings: Settings | None = None,
        freshness: FreshnessPolicy | None = None,
        fetcher: MultiWindowFetcher | None = None,
        deduplicator: Deduplicator | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings or get_settings()
        self._upstream = upstream
        self._cache = cache
        self._freshness = freshness or FreshnessPolicy.from_settings(self._settings)
        self._fetcher = fetcher or MultiWindowFetcher(upstream, self._settings, now=now)
        self._dedup = deduplicator or Deduplicator()
        self._now = now
        self._popular = set(self._settings.popular_league_ids)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def cache(self) -> FixtureCache:
        return self._cache

    @property
    def freshness(self) -> FreshnessPolicy:
        return self._freshness

    def now(self) -> datetime:
        return self._now()

    def today(self) -> date:
        return today_in(self._settings.server_timezone, self._now())

    @asynccontextmanager
    async def _single_flight(self, scope: str) -> AsyncIterator[None]:
        """Serialize refreshes per scope key; the lock is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(scope, asyncio.Lock())
        self._lock_users[scope] = self._lock_users.get(scope, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[scope] -= 1
            if not self._lock_users[scope]:
                del self._lock_users[scope]
                self._locks.pop(scope, None)

    def _fresh(self, entry: Optional[CacheEntry]) -> bool:
        return entry is not None and self._freshness.is_fresh(entry, self._now())

    async def _read_through(
        self,
        scope: ScopeKey,
        refresh: Callable[[], Awaitable[Optional[CacheEntry]]],
        fallback: Optional[Callable[[], Awaitable[list[Fixture]]]] = None,
        stale_max_age_s: Optional[float] = None,
    ) -> FixtureResult:
        key = str(scope)
        kind = scope.kind.value
        entry = await self._cache.get(scope)
        if self._fresh(entry):
            CACHE_LOOKUPS.labels(scope_kind=kind, outcome="fresh").inc()
            return FixtureResult(key, CacheStatus.FRESH, entry.fixtures, entry.written_at)

        async with self._single_flight(key):
            # Another request may have refreshed while we waited
            entry = await self._cache.get(scope)
            if self._fresh(entry):
                CACHE_LOOKUPS.labels(scope_kind=kind, outcome="fresh").inc()
                return FixtureResult(key, CacheStatus.FRESH, entry.fixtures, entry.written_at)

            try:
                refreshed = await refresh()
            except UpstreamError as exc:
                logger.warning(
                    "upstream_fallback",
                    scope=key,
                    has_cache=entry is not None,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                usable = entry is not None and (
                    stale_max_age_s is None or entry.age_seconds(self._now()) <= stale_max_age_s
                )
                if usable:
                    CACHE_LOOKUPS.labels(scope_kind=kind, outcome="stale").inc()
                    return FixtureResult(key, CacheStatus.STALE, entry.fixtures, entry.written_at)
                fixtures = await fallback() if fallback else []
                CACHE_LOOKUPS.labels(scope_kind=kind, outcome="empty").inc()
                status = CacheStatus.STALE if fixtures else CacheStatus.EMPTY
                return FixtureResult(key, status, fixtures)

        CACHE_LOOKUPS.labels(scope_kind=kind, outcome="miss").inc()
        if refreshed is None:
            return FixtureResult(key, CacheStatus.EMPTY)
        return FixtureResult(key, CacheStatus.MISS, refreshed.fixtures, refreshed.written_at)

    # ── Date window ─────────────────────────────────────────────────────
    async def get_fixtures_for_date(self, day: Union[date, str], include_all: bool = True) -> FixtureResult:
        """
        De-duplicated fixtures for the 3-day window around ``day``.

        Raises:
            InvalidDateFormat: ``day`` is not a real YYYY-MM-DD date.
        """
        target = parse_date(day)
        scope = ScopeKey.multi_window(target)

        async def refresh() -> CacheEntry:
            result = await self._fetcher.fetch(target)
            merged = self._dedup.merge(result.batches)
            if target == self.today():
                merged = display_order(merged)
            entry = await self._cache.put_collection(scope, merged, scope_date=target, with_fixtures=True)
            for batch in result.batches:
                if batch.source == FixtureSource.LIVE:
                    await self._cache.put_collection(ScopeKey.live(), batch.fixtures)
            logger.info(
                "date_window_refreshed",
                date=target.isoformat(),
                fixtures=len(merged),
                partial_failures=len(result.failures),
            )
            return entry

        result = await self._read_through(scope, refresh)
        if not include_all:
            result.fixtures = filter_popular(result.fixtures, self._popular)
        return result

    # ── Live ────────────────────────────────────────────────────────────
    async def get_live(self) -> FixtureResult:
        """Live fixtures; falls back to live-flagged fixtures in today's cached window."""
        scope = ScopeKey.live()

        async def refresh() -> CacheEntry:
            fixtures = await self._upstream.fetch_live()
            entry = await self._cache.put_collection(scope, fixtures)
            await self._cache.overlay(fixtures, window_dates(self.today()))
            return entry

        return await self._read_through(
            scope,
            refresh,
            fallback=self.cached_live_fixtures,
            stale_max_age_s=self._settings.live_snapshot_max_age_s,
        )

    async def cached_live_fixtures(self) -> list[Fixture]:
        today = self.today()
        entry = await self._cache.get(ScopeKey.multi_window(today))
        if entry is None:
            return []
        return [f for f in entry.fixtures if f.status.code.is_live]

    # ── Single fixture ──────────────────────────────────────────────────
    async def get_fixture(self, fixture_id: int) -> Optional[Fixture]:
        scope = ScopeKey.fixture(fixture_id)

        async def refresh() -> Optional[CacheEntry]:
            fixture = await self._upstream.fetch_by_id(fixture_id)
            if fixture is None:
                return None
            return await self._cache.put_fixture(fixture)

        result = await self._read_through(scope, refresh)
        return result.fixtures[0] if result.fixtures else None

    # ── League ──────────────────────────────────────────────────────────
    async def get_fixtures_for_league(self, league_id: int, season: Optional[int] = None) -> FixtureResult:
        season = season or self._settings.popular_season or default_season(self.today())
        scope = ScopeKey.league(league_id, season)

        async def refresh() -> CacheEntry:
            fixtures = await self._upstream.fetch_by_league(league_id, season)
            return await self._cache.put_collection(scope, fixtures, with_fixtures=True)

        return await self._read_through(scope, refresh)
