"""Shared fixtures: fixture factory, scripted upstream, fixed clock and settings."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Union

import pytest

from shared.config import Settings
from shared.models.domain import Fixture, LeagueRef, Score, StatusInfo, TeamRef
from shared.models.enums import FixtureStatus
from ingest.providers.base import UpstreamClient

NOW = datetime(2025, 6, 15, 14, 0, tzinfo=timezone.utc)

Scripted = Union[list[Fixture], Exception]


def build_fixture(
    fixture_id: int,
    kickoff: datetime = NOW,
    status: FixtureStatus = FixtureStatus.NOT_STARTED,
    elapsed: Optional[int] = None,
    league_id: int = 39,
    league_name: str = "Premier League",
    country: Optional[str] = "England",
    home: str = "Arsenal",
    away: str = "Chelsea",
    score: tuple[Optional[int], Optional[int]] = (None, None),
) -> Fixture:
    return Fixture(
        id=fixture_id,
        kickoff_time=kickoff,
        status=StatusInfo(code=status, label=status.value, elapsed=elapsed),
        league=LeagueRef(id=league_id, name=league_name, country=country, season=2024),
        home_team=TeamRef(id=fixture_id * 10 + 1, name=home),
        away_team=TeamRef(id=fixture_id * 10 + 2, name=away),
        score=Score(home=score[0], away=score[1]),
    )


class ScriptedUpstream(UpstreamClient):
    """UpstreamClient answering from canned results; an Exception value is raised."""

    name = "scripted"

    def __init__(self) -> None:
        self.by_date: dict[date, Scripted] = {}
        self.live: Scripted = []
        self.by_id: dict[int, Union[Fixture, None, Exception]] = {}
        self.by_league: dict[tuple[int, int], Scripted] = {}
        self.calls: list[tuple[str, Any]] = []

    @staticmethod
    def _answer(value: Any) -> Any:
        if isinstance(value, Exception):
            raise value
        return value

    async def _fetch_by_date(self, day: date) -> list[Fixture]:
        self.calls.append(("date", day))
        return self._answer(self.by_date.get(day, []))

    async def fetch_live(self) -> list[Fixture]:
        self.calls.append(("live", None))
        return self._answer(self.live)

    async def fetch_by_id(self, fixture_id: int) -> Optional[Fixture]:
        self.calls.append(("id", fixture_id))
        return self._answer(self.by_id.get(fixture_id))

    async def fetch_by_league(self, league_id: int, season: int) -> list[Fixture]:
        self.calls.append(("league", (league_id, season)))
        return self._answer(self.by_league.get((league_id, season), []))

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)


class Clock:
    """Mutable wall clock for freshness and reconciler tests."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def make_fixture() -> Callable[..., Fixture]:
    return build_fixture


@pytest.fixture
def make_upstream() -> Callable[[], ScriptedUpstream]:
    return ScriptedUpstream


@pytest.fixture
def upstream() -> ScriptedUpstream:
    return ScriptedUpstream()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        window_batch_pause_s=0.0,
        reconciler_enabled=False,
        metrics_enabled=False,
        api_rate_limit_rpm=0,
    )
