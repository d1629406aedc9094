"""SQL-backed store: one ``cached_entries`` row per scope key."""
from __future__ import annotations

from datetime import date, timezone
from typing import Optional

from sqlalchemy import select

from shared.cache.base import FixtureStore, PutRequest, ScopeLike, dump_payload, load_payload, scope_str
from shared.models.domain import CacheEntry, ScopeKey
from shared.models.orm import CachedEntryORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

logger = get_logger(__name__)


def _aware(dt):
    # SQLite drops tzinfo; stored values are always UTC
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


class DatabaseStore(FixtureStore):
    backend_name = "database"

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    def _to_entry(self, row: CachedEntryORM) -> Optional[CacheEntry]:
        try:
            return CacheEntry(
                scope_key=row.scope_key,
                payload=load_payload(row.payload),
                written_at=_aware(row.written_at),
                scope_date=row.scope_date,
            )
        except ValueError as exc:
            logger.warning("db_entry_corrupt", scope=row.scope_key, error=str(exc))
            return None

    async def get_by_key(self, scope: ScopeLike) -> Optional[CacheEntry]:
        async with self._db.read_session() as session:
            row = await session.get(CachedEntryORM, scope_str(scope))
            return self._to_entry(row) if row else None

    async def _write(self, request: PutRequest) -> Optional[CacheEntry]:
        async with self._db.write_session() as session:
            row = await session.get(CachedEntryORM, request.scope, with_for_update=True)
            previous = _aware(row.written_at) if row else None
            if self._superseded(previous, request.expected_written_at):
                logger.debug("db_write_superseded", scope=request.scope)
                return None
            written_at = self._stamp(previous, request.written_at)
            body = dump_payload(request.payload)
            if row is None:
                session.add(CachedEntryORM(
                    scope_key=request.scope,
                    scope_kind=ScopeKey.parse(request.scope).kind.value,
                    scope_date=request.scope_date,
                    payload=body,
                    written_at=written_at,
                ))
            else:
                row.payload = body
                row.scope_date = request.scope_date
                row.written_at = written_at
        return CacheEntry(
            scope_key=request.scope,
            payload=request.payload,
            written_at=written_at,
            scope_date=request.scope_date,
        )

    async def _select(self, stmt) -> list[CacheEntry]:
        async with self._db.read_session() as session:
            rows = (await session.execute(stmt.order_by(CachedEntryORM.scope_key))).scalars().all()
        entries = [self._to_entry(r) for r in rows]
        return [e for e in entries if e is not None]

    async def get_by_date(self, d: date) -> list[CacheEntry]:
        return await self._select(select(CachedEntryORM).where(CachedEntryORM.scope_date == d))

    async def get_by_scope_prefix(self, prefix: str) -> list[CacheEntry]:
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return await self._select(
            select(CachedEntryORM).where(CachedEntryORM.scope_key.like(f"{escaped}%", escape="\\"))
        )

    async def ping(self) -> bool:
        return await self._db.ping()

    async def close(self) -> None:
        await self._db.disconnect()
