"""Fixture-level helpers on top of a FixtureStore."""
from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Iterable, Optional

from shared.cache.base import FixtureStore, PutRequest, ScopeLike
from shared.models.domain import CacheEntry, Fixture, ScopeKey
from shared.models.enums import ScopeKind
from shared.utils.dates import utcnow
from shared.utils.logging import get_logger

logger = get_logger(__name__)

OVERLAY_KINDS = (ScopeKind.MULTI_WINDOW, ScopeKind.DATE, ScopeKind.LEAGUE)


class FixtureCache:
    def __init__(self, store: FixtureStore, now: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self._now = now

    async def get(self, scope: ScopeLike) -> Optional[CacheEntry]:
        return await self.store.get_by_key(scope)

    async def get_fixture(self, fixture_id: int) -> Optional[CacheEntry]:
        return await self.store.get_by_key(ScopeKey.fixture(fixture_id))

    async def put_fixture(self, fixture: Fixture) -> CacheEntry:
        return await self.store.put(ScopeKey.fixture(fixture.id), fixture, written_at=self._now())

    async def put_collection(
        self,
        scope: ScopeKey,
        fixtures: list[Fixture],
        *,
        scope_date: Optional[date] = None,
        with_fixtures: bool = False,
    ) -> CacheEntry:
        """Store an ordered list; optionally refresh each fixture's own entry too."""
        written_at = self._now()
        entry = await self.store.put(scope, list(fixtures), scope_date=scope_date, written_at=written_at)
        if with_fixtures and fixtures:
            await self.store.put_many(
                PutRequest(ScopeKey.fixture(f.id), f, written_at=written_at) for f in fixtures
            )
        return entry

    async def entries_for_date(self, d: date) -> list[CacheEntry]:
        return await self.store.get_by_date(d)

    async def overlay(self, updates: Iterable[Fixture], dates: Iterable[date]) -> int:
        """
        Write authoritative status/score onto every cached collection for
        ``dates`` (and any league scope) that contains an updated fixture,
        plus the fixture's own entry. Collection ``written_at`` is preserved
        so an overlay never makes a stale window look fresh, and a collection
        refreshed since it was read here is left alone.

        Returns the number of entries rewritten.
        """
        by_id = {f.id: f for f in updates}
        if not by_id:
            return 0

        candidates: dict[str, CacheEntry] = {}
        for d in dates:
            for entry in await self.store.get_by_date(d):
                candidates[entry.scope_key] = entry
        for entry in await self.store.get_by_scope_prefix(f"{ScopeKind.LEAGUE.value}:"):
            candidates[entry.scope_key] = entry

        rewrites: list[PutRequest] = []
        for entry in candidates.values():
            if entry.scope.kind not in OVERLAY_KINDS:
                continue
            changed = False
            merged: list[Fixture] = []
            for f in entry.fixtures:
                update = by_id.get(f.id)
                if update is not None and (update.status != f.status or update.score != f.score):
                    f = f.with_live_state(update)
                    changed = True
                merged.append(f)
            if changed:
                rewrites.append(PutRequest(
                    entry.scope_key,
                    merged,
                    entry.scope_date,
                    entry.written_at,
                    expected_written_at=entry.written_at,
                ))

        for f in by_id.values():
            rewrites.append(PutRequest(ScopeKey.fixture(f.id), f, written_at=self._now()))

        written = await self.store.put_many(rewrites)
        if len(written) < len(rewrites):
            logger.info("cache_overlay_superseded", skipped=len(rewrites) - len(written))
        logger.debug("cache_overlay_applied", fixtures=len(by_id), entries=len(written))
        return len(written)
