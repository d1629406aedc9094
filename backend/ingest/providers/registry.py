"""
Provider cascade: deterministic failover across configured endpoints.
The cascade is itself an UpstreamClient, so callers never know how many
endpoints sit behind it.
"""
from __future__ import annotations

from datetime import date
from typing import Awaitable, Callable, Optional, TypeVar

from shared.config import Settings, get_settings
from shared.errors import UpstreamError, UpstreamUnavailable
from shared.models.domain import Fixture
from shared.utils.logging import get_logger
from shared.utils.metrics import UPSTREAM_FAILOVERS

from ingest.providers.api_football import ApiFootballProvider
from ingest.providers.base import UpstreamClient

logger = get_logger(__name__)

T = TypeVar("T")


class ProviderCascade(UpstreamClient):
    """
    Tries each provider in order. Rate limiting or unavailability on one
    moves on to the next; the last error is raised when all of them fail.
    """

    name = "cascade"

    def __init__(self, providers: list[UpstreamClient]) -> None:
        if not providers:
            raise ValueError("ProviderCascade needs at least one provider")
        self._providers = providers

    @property
    def providers(self) -> list[UpstreamClient]:
        return list(self._providers)

    async def start(self) -> None:
        for p in self._providers:
            await p.start()

    async def close(self) -> None:
        for p in self._providers:
            await p.close()

    async def _cascade(self, op: str, call: Callable[[UpstreamClient], Awaitable[T]]) -> T:
        last_exc: Optional[UpstreamError] = None
        for provider in self._providers:
            try:
                return await call(provider)
            except UpstreamError as exc:
                last_exc = exc
                UPSTREAM_FAILOVERS.labels(from_endpoint=provider.name).inc()
                logger.warning(
                    "provider_failover",
                    provider=provider.name,
                    op=op,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
        assert last_exc is not None
        raise last_exc

    async def _fetch_by_date(self, day: date) -> list[Fixture]:
        return await self._cascade("date", lambda p: p.fetch_by_date(day))

    async def fetch_live(self) -> list[Fixture]:
        return await self._cascade("live", lambda p: p.fetch_live())

    async def fetch_by_id(self, fixture_id: int) -> Optional[Fixture]:
        return await self._cascade("id", lambda p: p.fetch_by_id(fixture_id))

    async def fetch_by_league(self, league_id: int, season: int) -> list[Fixture]:
        return await self._cascade("league", lambda p: p.fetch_by_league(league_id, season))


def build_upstream(settings: Settings | None = None) -> UpstreamClient:
    """One provider per configured endpoint, wrapped in a cascade when there are several."""
    settings = settings or get_settings()
    providers: list[UpstreamClient] = [ApiFootballProvider(ep) for ep in settings.upstream_endpoints]
    if not providers:
        raise UpstreamUnavailable("no upstream endpoints configured")
    if len(providers) == 1:
        return providers[0]
    return ProviderCascade(providers)
