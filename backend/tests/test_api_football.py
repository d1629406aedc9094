"""
Tests for api-football row parsing, boundary filters and the HTTP provider.

Run: pytest backend/tests/test_api_football.py -v
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from shared.config import AuthStyle, UpstreamEndpoint
from shared.errors import UpstreamUnavailable
from shared.models.enums import FixtureStatus
from shared.utils.http_client import UpstreamHTTPClient
from ingest.normalization.filters import is_esports, is_international_competition, rejection_reason
from ingest.providers.api_football import (
    ApiFootballProvider,
    is_rate_limit_body,
    parse_fixture,
    parse_response,
)


def row(
    fixture_id: int = 1001,
    league: str = "Premier League",
    country: Any = "England",
    home: str = "Arsenal",
    away: str = "Chelsea",
    short: str = "NS",
    elapsed: Any = None,
) -> dict[str, Any]:
    return {
        "fixture": {
            "id": fixture_id,
            "date": "2025-06-15T19:00:00+00:00",
            "timestamp": 1750014000,
            "status": {"long": "Not Started", "short": short, "elapsed": elapsed},
        },
        "league": {"id": 39, "name": league, "country": country, "season": 2024, "round": "Regular Season - 38"},
        "teams": {
            "home": {"id": 42, "name": home, "logo": "https://media.example/42.png"},
            "away": {"id": 49, "name": away, "logo": "https://media.example/49.png"},
        },
        "goals": {"home": None, "away": None},
    }


# ── Row parsing ─────────────────────────────────────────────────────────

def test_parse_fixture_builds_typed_fixture() -> None:
    fixture = parse_fixture(row(short="2H", elapsed=67))
    assert fixture is not None
    assert fixture.id == 1001
    assert fixture.kickoff_time == datetime(2025, 6, 15, 19, 0, tzinfo=timezone.utc)
    assert fixture.status.code is FixtureStatus.SECOND_HALF
    assert fixture.status.elapsed == 67
    assert fixture.league.round == "Regular Season - 38"
    assert fixture.home_team.name == "Arsenal"


def test_parse_fixture_falls_back_to_timestamp() -> None:
    raw = row()
    raw["fixture"]["date"] = "not a date"
    fixture = parse_fixture(raw)
    assert fixture is not None
    assert fixture.kickoff_time == datetime.fromtimestamp(1750014000, tz=timezone.utc)


@pytest.mark.parametrize("mutate", [
    lambda r: r.pop("teams"),
    lambda r: r["teams"].update(home=None),
    lambda r: r["fixture"].pop("id"),
    lambda r: r["league"].update(name=""),
    lambda r: r["fixture"].update(date=None, timestamp=None),
])
def test_parse_fixture_rejects_missing_required_fields(mutate) -> None:
    raw = row()
    mutate(raw)
    assert parse_fixture(raw) is None


# ── Filters ─────────────────────────────────────────────────────────────

def test_esports_matches_whole_words_only() -> None:
    assert is_esports(parse_fixture(row(league="Esoccer Battle - 8 mins play")))
    assert is_esports(parse_fixture(row(home="Arsenal (Cyber)")))
    # "pes" inside a longer word is not an e-sports marker
    assert not is_esports(parse_fixture(row(home="Espespes United", league="Liga Pesquera")))


def test_international_competitions_are_kept() -> None:
    assert is_international_competition("UEFA Champions League", "World")
    assert not is_international_competition("UEFA Champions League", "England")
    fixture = parse_fixture(row(league="FIFA World Cup", country="World"))
    assert rejection_reason(fixture) is None


@pytest.mark.parametrize("country", [None, "", "  ", "Unknown"])
def test_leagues_without_country_are_dropped(country: Any) -> None:
    fixture = parse_fixture(row(country=country))
    assert rejection_reason(fixture) == "no_country"


def test_parse_response_drops_filtered_and_malformed_rows() -> None:
    body = {
        "errors": [],
        "response": [
            row(1),
            row(2, league="Volta Football"),
            row(3, country=None),
            {"fixture": {}},
            row(4, league="UEFA Nations League", country="Europe"),
        ],
    }
    assert [f.id for f in parse_response(body, "test")] == [1, 4]


def test_parse_response_requires_response_array() -> None:
    with pytest.raises(UpstreamUnavailable):
        parse_response({"errors": []}, "test")


def test_rate_limit_body_detection() -> None:
    assert is_rate_limit_body({"errors": {"rateLimit": "Too many requests"}, "response": []})
    assert is_rate_limit_body({"errors": {"requests": "daily limit reached"}, "response": []})
    assert not is_rate_limit_body({"errors": [], "response": []})
    assert not is_rate_limit_body({"errors": {"token": "invalid"}, "response": []})


# ── Provider over a mock transport ──────────────────────────────────────

@pytest.mark.asyncio
async def test_provider_sends_query_params_and_auth_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"errors": [], "response": [row(1001)]})

    endpoint = UpstreamEndpoint(name="primary", base_url="https://api.example", api_key="k3y")
    http = UpstreamHTTPClient(
        endpoint_name=endpoint.name,
        base_url=endpoint.base_url,
        headers=endpoint.auth_headers(),
        rate_limit_detector=is_rate_limit_body,
        transport=httpx.MockTransport(handler),
    )
    provider = ApiFootballProvider(endpoint, http=http)
    await provider.start()
    try:
        fixtures = await provider.fetch_by_date("2025-06-15")
        live = await provider.fetch_by_id(1001)
        await provider.fetch_by_league(39, 2024)
    finally:
        await provider.close()

    assert [f.id for f in fixtures] == [1001]
    assert live is not None and live.id == 1001
    assert seen[0].url.path == "/fixtures"
    assert seen[0].url.params["date"] == "2025-06-15"
    assert seen[0].headers["x-apisports-key"] == "k3y"
    assert seen[1].url.params["id"] == "1001"
    assert dict(seen[2].url.params) == {"league": "39", "season": "2024"}


@pytest.mark.asyncio
async def test_provider_maps_body_errors_to_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": {"token": "Error/Missing application key."}, "response": []})

    endpoint = UpstreamEndpoint(name="primary", base_url="https://api.example")
    http = UpstreamHTTPClient("primary", endpoint.base_url, transport=httpx.MockTransport(handler))
    provider = ApiFootballProvider(endpoint, http=http)
    async with http:
        with pytest.raises(UpstreamUnavailable):
            await provider.fetch_live()


def test_rapidapi_headers() -> None:
    endpoint = UpstreamEndpoint(
        name="rapid",
        base_url="https://api-football-v1.p.rapidapi.com/v3",
        api_key="abc",
        auth_style=AuthStyle.RAPIDAPI,
    )
    headers = endpoint.auth_headers()
    assert headers["X-RapidAPI-Key"] == "abc"
    assert headers["X-RapidAPI-Host"] == "api-football-v1.p.rapidapi.com"
    assert "x-apisports-key" not in headers
