"""
Storage interface for cached fixture snapshots.

Every write is a whole-value replace of one scope key. ``written_at`` never
moves backwards for a given key, even when two writers race or a caller
replays an older timestamp.
"""
from __future__ import annotations

import abc
from datetime import date, datetime
from typing import Iterable, Optional, Union

from pydantic import TypeAdapter

from shared.models.domain import CacheEntry, Fixture, ScopeKey
from shared.models.enums import ScopeKind
from shared.utils.dates import utcnow

Payload = Union[list[Fixture], Fixture]
ScopeLike = Union[str, ScopeKey]

PAYLOAD_ADAPTER: TypeAdapter[Payload] = TypeAdapter(Payload)


def scope_str(scope: ScopeLike) -> str:
    return str(scope)


def default_scope_date(scope: ScopeLike, payload: Payload) -> Optional[date]:
    """Date an entry is indexed under when the caller does not supply one."""
    key = scope if isinstance(scope, ScopeKey) else ScopeKey.parse(scope)
    if key.kind in (ScopeKind.DATE, ScopeKind.MULTI_WINDOW):
        return date.fromisoformat(key.discriminator)
    if key.kind == ScopeKind.FIXTURE and isinstance(payload, Fixture):
        return payload.kickoff_utc.date()
    return None


def dump_payload(payload: Payload) -> str:
    return PAYLOAD_ADAPTER.dump_json(payload).decode("utf-8")


def load_payload(raw: Union[str, bytes]) -> Payload:
    return PAYLOAD_ADAPTER.validate_json(raw)


class PutRequest:
    """One item of a ``put_many`` batch."""

    __slots__ = ("scope", "payload", "scope_date", "written_at", "expected_written_at")

    def __init__(
        self,
        scope: ScopeLike,
        payload: Payload,
        scope_date: Optional[date] = None,
        written_at: Optional[datetime] = None,
        expected_written_at: Optional[datetime] = None,
    ) -> None:
        self.scope = scope_str(scope)
        self.payload = payload
        self.scope_date = scope_date if scope_date is not None else default_scope_date(scope, payload)
        self.written_at = written_at
        # When set, the write is skipped unless the stored entry still carries this stamp
        self.expected_written_at = expected_written_at


class FixtureStore(abc.ABC):
    """Keyed snapshot store selected at startup."""

    backend_name: str = "abstract"

    @abc.abstractmethod
    async def get_by_key(self, scope: ScopeLike) -> Optional[CacheEntry]:
        ...

    @abc.abstractmethod
    async def _write(self, request: PutRequest) -> Optional[CacheEntry]:
        """
        Atomically replace one entry, keeping written_at monotonic.
        Returns None when ``expected_written_at`` no longer matches.
        """

    @abc.abstractmethod
    async def get_by_date(self, d: date) -> list[CacheEntry]:
        ...

    @abc.abstractmethod
    async def get_by_scope_prefix(self, prefix: str) -> list[CacheEntry]:
        ...

    async def put(
        self,
        scope: ScopeLike,
        payload: Payload,
        *,
        scope_date: Optional[date] = None,
        written_at: Optional[datetime] = None,
    ) -> CacheEntry:
        """Replace the entry under ``scope``; ``written_at`` defaults to now."""
        return await self._write(PutRequest(scope, payload, scope_date, written_at))

    async def put_many(self, requests: Iterable[PutRequest]) -> list[CacheEntry]:
        """Write a batch; conditional requests that lost a race are left out of the result."""
        written = [await self._write(r) for r in requests]
        return [e for e in written if e is not None]

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    @staticmethod
    def _superseded(previous: Optional[datetime], expected: Optional[datetime]) -> bool:
        """True when a conditional write found the entry rewritten since it was read."""
        return expected is not None and previous != expected

    @staticmethod
    def _stamp(previous: Optional[datetime], requested: Optional[datetime]) -> datetime:
        ts = requested or utcnow()
        if previous is not None and previous > ts:
            return previous
        return ts
