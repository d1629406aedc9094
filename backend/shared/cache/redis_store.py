"""Redis-backed store shared by every API worker and the reconciler process."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Iterable, Optional

from shared.cache.base import FixtureStore, PutRequest, ScopeLike, dump_payload, load_payload, scope_str
from shared.models.domain import CacheEntry
from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager

logger = get_logger(__name__)


class RedisStore(FixtureStore):
    """
    Entries live in ``fx:entry:{scope}`` hashes; ``fx:date:{date}`` sets index
    them by date. Both expire after ``retention_s`` so storage stays bounded.
    """

    backend_name = "redis"

    def __init__(self, redis: RedisManager, retention_s: int) -> None:
        self._redis = redis
        self._retention_s = retention_s

    @property
    def redis(self) -> RedisManager:
        return self._redis

    def _decode(self, scope: str, raw: Optional[dict[str, str]]) -> Optional[CacheEntry]:
        if not raw or "payload" not in raw:
            return None
        try:
            return CacheEntry(
                scope_key=scope,
                payload=load_payload(raw["payload"]),
                written_at=datetime.fromtimestamp(float(raw["written_at"]), tz=timezone.utc),
                scope_date=date.fromisoformat(raw["date"]) if raw.get("date") else None,
            )
        except ValueError as exc:
            logger.warning("redis_entry_corrupt", scope=scope, error=str(exc))
            return None

    async def get_by_key(self, scope: ScopeLike) -> Optional[CacheEntry]:
        key = scope_str(scope)
        return self._decode(key, await self._redis.get_entry(key))

    async def _write(self, request: PutRequest) -> Optional[CacheEntry]:
        requested = self._stamp(None, request.written_at)
        expected = request.expected_written_at
        stored = await self._redis.put_entry(
            request.scope,
            dump_payload(request.payload),
            requested.timestamp(),
            request.scope_date.isoformat() if request.scope_date else None,
            self._retention_s,
            expected=expected.timestamp() if expected else None,
        )
        if stored is None:
            return None
        return CacheEntry(
            scope_key=request.scope,
            payload=request.payload,
            written_at=datetime.fromtimestamp(stored, tz=timezone.utc),
            scope_date=request.scope_date,
        )

    async def put_many(self, requests: Iterable[PutRequest]) -> list[CacheEntry]:
        batch = list(requests)
        if not batch:
            return []
        stamps = await self._redis.put_entries([
            (
                r.scope,
                dump_payload(r.payload),
                self._stamp(None, r.written_at).timestamp(),
                r.scope_date.isoformat() if r.scope_date else None,
                r.expected_written_at.timestamp() if r.expected_written_at else None,
            )
            for r in batch
        ], self._retention_s)
        return [
            CacheEntry(
                scope_key=r.scope,
                payload=r.payload,
                written_at=datetime.fromtimestamp(ts, tz=timezone.utc),
                scope_date=r.scope_date,
            )
            for r, ts in zip(batch, stamps)
            if ts is not None
        ]

    async def _load_many(self, scopes: list[str]) -> list[CacheEntry]:
        raws = await self._redis.get_entries(scopes)
        entries = [self._decode(s, r) for s, r in zip(scopes, raws)]
        return [e for e in entries if e is not None]

    async def get_by_date(self, d: date) -> list[CacheEntry]:
        scopes = await self._redis.scopes_for_date(d.isoformat())
        entries = await self._load_many(scopes)
        return [e for e in entries if e.scope_date == d]

    async def get_by_scope_prefix(self, prefix: str) -> list[CacheEntry]:
        scopes = sorted({s async for s in self._redis.iter_scopes(prefix)})
        return await self._load_many(scopes)

    async def ping(self) -> bool:
        return bool(await self._redis.client.ping())

    async def close(self) -> None:
        await self._redis.disconnect()
