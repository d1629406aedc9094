"""In-process store: a dict of immutable entries behind an asyncio lock."""
from __future__ import annotations

import asyncio
from datetime import date
from typing import Optional

from shared.cache.base import FixtureStore, PutRequest, ScopeLike, scope_str
from shared.models.domain import CacheEntry


class InMemoryStore(FixtureStore):
    backend_name = "memory"

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get_by_key(self, scope: ScopeLike) -> Optional[CacheEntry]:
        return self._entries.get(scope_str(scope))

    async def _write(self, request: PutRequest) -> Optional[CacheEntry]:
        async with self._lock:
            previous = self._entries.get(request.scope)
            if self._superseded(previous.written_at if previous else None, request.expected_written_at):
                return None
            entry = CacheEntry(
                scope_key=request.scope,
                payload=request.payload,
                written_at=self._stamp(previous.written_at if previous else None, request.written_at),
                scope_date=request.scope_date,
            )
            self._entries[request.scope] = entry
            return entry

    async def get_by_date(self, d: date) -> list[CacheEntry]:
        return sorted(
            (e for e in self._entries.values() if e.scope_date == d),
            key=lambda e: e.scope_key,
        )

    async def get_by_scope_prefix(self, prefix: str) -> list[CacheEntry]:
        return sorted(
            (e for key, e in self._entries.items() if key.startswith(prefix)),
            key=lambda e: e.scope_key,
        )

    def __len__(self) -> int:
        return len(self._entries)
