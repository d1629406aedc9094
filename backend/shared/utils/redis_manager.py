"""
Redis connection manager for Scoreline.
Provides the async connection pool, key namespaces and the atomic
cache-entry primitives used by the Redis fixture store.
"""
from __future__ import annotations

from typing import Any, AsyncIterator, Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
ENTRY_KEY = "fx:entry:{scope}"
DATE_INDEX_KEY = "fx:date:{date}"
LEADER_KEY = "leader:{role}"


def _fmt(template: str, **kwargs: Any) -> str:
    return template.format(**kwargs)


class RedisManager:
    """Manages the async Redis connection pool and provides typed helpers."""

    # Atomic replace keeping written_at monotonic per key.
    # KEYS[1] entry hash, KEYS[2] date index set (or "")
    # ARGV[1] payload, ARGV[2] written_at epoch, ARGV[3] date or "", ARGV[4] ttl, ARGV[5] scope,
    # ARGV[6] expected written_at epoch or "" (skip and return false when it no longer matches)
    _PUT_ENTRY_SCRIPT = """
local prev = redis.call("HGET", KEYS[1], "written_at")
if ARGV[6] ~= "" then
    if not prev or math.abs(tonumber(prev) - tonumber(ARGV[6])) > 0.000005 then
        return false
    end
end
local ts = ARGV[2]
if prev and tonumber(prev) > tonumber(ts) then
    ts = prev
end
redis.call("HSET", KEYS[1], "payload", ARGV[1], "written_at", ts, "date", ARGV[3])
redis.call("EXPIRE", KEYS[1], ARGV[4])
if KEYS[2] ~= "" then
    redis.call("SADD", KEYS[2], ARGV[5])
    redis.call("EXPIRE", KEYS[2], ARGV[4])
end
return ts
"""

    _RENEW_LEADER_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    redis.call("expire", KEYS[1], ARGV[2])
    return 1
end
return 0
"""

    _RELEASE_LEADER_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    redis.call("del", KEYS[1])
    return 1
end
return 0
"""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        """Initialize the connection pool and verify it."""
        self._pool = aioredis.from_url(
            self._settings.redis_url_str,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_str)

    async def disconnect(self) -> None:
        if self._pool:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisManager not connected. Call connect() first.")
        return self._pool

    # ── Cache entries ───────────────────────────────────────────────────
    async def put_entry(
        self,
        scope: str,
        payload: str,
        written_at: float,
        date: Optional[str],
        ttl_s: int,
        expected: Optional[float] = None,
    ) -> Optional[float]:
        """Atomically replace one entry. Returns the stored written_at, or None if superseded."""
        entry_key = _fmt(ENTRY_KEY, scope=scope)
        index_key = _fmt(DATE_INDEX_KEY, date=date) if date else ""
        stored = await self.client.eval(
            self._PUT_ENTRY_SCRIPT,
            2,
            entry_key,
            index_key,
            payload,
            repr(written_at),
            date or "",
            str(ttl_s),
            scope,
            repr(expected) if expected is not None else "",
        )
        return float(stored) if stored is not None else None

    async def put_entries(
        self,
        items: list[tuple[str, str, float, Optional[str], Optional[float]]],
        ttl_s: int,
    ) -> list[Optional[float]]:
        """Pipelined put_entry for (scope, payload, written_at, date, expected) tuples."""
        pipe = self.client.pipeline(transaction=False)
        for scope, payload, written_at, date, expected in items:
            pipe.eval(
                self._PUT_ENTRY_SCRIPT,
                2,
                _fmt(ENTRY_KEY, scope=scope),
                _fmt(DATE_INDEX_KEY, date=date) if date else "",
                payload,
                repr(written_at),
                date or "",
                str(ttl_s),
                scope,
                repr(expected) if expected is not None else "",
            )
        return [float(ts) if ts is not None else None for ts in await pipe.execute()]

    async def get_entry(self, scope: str) -> Optional[dict[str, str]]:
        raw = await self.client.hgetall(_fmt(ENTRY_KEY, scope=scope))
        return raw or None

    async def get_entries(self, scopes: list[str]) -> list[Optional[dict[str, str]]]:
        if not scopes:
            return []
        pipe = self.client.pipeline(transaction=False)
        for scope in scopes:
            pipe.hgetall(_fmt(ENTRY_KEY, scope=scope))
        results = await pipe.execute()
        return [r or None for r in results]

    async def scopes_for_date(self, date: str) -> list[str]:
        members = await self.client.smembers(_fmt(DATE_INDEX_KEY, date=date))
        return sorted(members)

    async def iter_scopes(self, prefix: str) -> AsyncIterator[str]:
        """Yield every stored scope starting with ``prefix``."""
        head = _fmt(ENTRY_KEY, scope="")
        async for key in self.client.scan_iter(match=f"{head}{prefix}*", count=200):
            yield key[len(head):]

    # ── Leader election ─────────────────────────────────────────────────
    async def try_acquire_leader(self, role: str, instance_id: str, ttl_s: int = 30) -> bool:
        """Attempt to acquire leadership using SET NX."""
        key = _fmt(LEADER_KEY, role=role)
        return bool(await self.client.set(key, instance_id, nx=True, ex=ttl_s))

    async def renew_leader(self, role: str, instance_id: str, ttl_s: int = 30) -> bool:
        """Atomically renew leadership if still the current leader."""
        key = _fmt(LEADER_KEY, role=role)
        result = await self.client.eval(self._RENEW_LEADER_SCRIPT, 1, key, instance_id, str(ttl_s))
        return bool(result)

    async def release_leader(self, role: str, instance_id: str) -> bool:
        """Atomically release leadership only if we hold it."""
        key = _fmt(LEADER_KEY, role=role)
        result = await self.client.eval(self._RELEASE_LEADER_SCRIPT, 1, key, instance_id)
        return bool(result)
