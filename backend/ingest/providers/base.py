"""
Abstract contract every fixture provider implements.
Providers hold no state beyond their HTTP client.
"""
from __future__ import annotations

import abc
from datetime import date
from typing import Optional, Union

from shared.models.domain import Fixture
from shared.utils.dates import parse_date


class UpstreamClient(abc.ABC):
    """
    Uniform call contract for an upstream fixture provider.

    Implementations raise UpstreamRateLimited after exhausting 429 backoff
    and UpstreamUnavailable on network/5xx failures.
    """

    name: str = "upstream"

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def fetch_by_date(self, day: Union[date, str]) -> list[Fixture]:
        """Fixtures whose provider date is ``day``; rejects malformed dates."""
        return await self._fetch_by_date(parse_date(day))

    @abc.abstractmethod
    async def _fetch_by_date(self, day: date) -> list[Fixture]:
        ...

    @abc.abstractmethod
    async def fetch_live(self) -> list[Fixture]:
        ...

    @abc.abstractmethod
    async def fetch_by_id(self, fixture_id: int) -> Optional[Fixture]:
        ...

    @abc.abstractmethod
    async def fetch_by_league(self, league_id: int, season: int) -> list[Fixture]:
        ...
