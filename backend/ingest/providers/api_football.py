"""
api-football v3 connector (direct api-sports host or RapidAPI proxy).
Every query goes through GET /fixtures: ?date=, ?live=all, ?id=, ?league=&season=.
Raw rows are parsed once into validated Fixture objects; malformed and
filtered rows are dropped here so nothing downstream re-checks nested fields.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

from shared.config import UpstreamEndpoint
from shared.errors import UpstreamUnavailable
from shared.models.domain import Fixture, LeagueRef, Score, StatusInfo, TeamRef
from shared.models.enums import FixtureStatus
from shared.utils.http_client import UpstreamHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import FIXTURES_FILTERED

from ingest.normalization.filters import rejection_reason
from ingest.providers.base import UpstreamClient

logger = get_logger(__name__)

FIXTURES_PATH = "/fixtures"
RATE_LIMIT_ERROR_KEYS = ("rateLimit", "requests")


def _errors(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        return {}
    errors = body.get("errors")
    # api-football sends [] when there are no errors, a dict otherwise
    return errors if isinstance(errors, dict) else {}


def is_rate_limit_body(body: Any) -> bool:
    errors = _errors(body)
    return any(key in errors for key in RATE_LIMIT_ERROR_KEYS)


def _parse_kickoff(fx: dict[str, Any]) -> Optional[datetime]:
    raw = fx.get("date")
    if isinstance(raw, str) and raw:
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            dt = None
        if dt is not None:
            return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    ts = fx.get("timestamp")
    if isinstance(ts, (int, float)):
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    return None


def _team(raw: Any) -> Optional[TeamRef]:
    if not isinstance(raw, dict) or raw.get("id") is None or not raw.get("name"):
        return None
    return TeamRef(id=int(raw["id"]), name=str(raw["name"]), logo=raw.get("logo"))


def parse_fixture(raw: Any) -> Optional[Fixture]:
    """Build a Fixture from one api-football row, or None if a required field is missing."""
    if not isinstance(raw, dict):
        return None
    fx = raw.get("fixture") or {}
    league = raw.get("league") or {}
    teams = raw.get("teams") or {}
    goals = raw.get("goals") or {}

    if fx.get("id") is None or league.get("id") is None or not league.get("name"):
        return None
    kickoff = _parse_kickoff(fx)
    home, away = _team(teams.get("home")), _team(teams.get("away"))
    if kickoff is None or home is None or away is None:
        return None

    status = fx.get("status") or {}
    elapsed = status.get("elapsed")
    try:
        return Fixture(
            id=int(fx["id"]),
            kickoff_time=kickoff,
            status=StatusInfo(
                code=FixtureStatus.parse(status.get("short")),
                label=status.get("long") or "",
                elapsed=int(elapsed) if elapsed is not None else None,
            ),
            league=LeagueRef(
                id=int(league["id"]),
                name=str(league["name"]),
                country=league.get("country"),
                logo=league.get("logo"),
                flag=league.get("flag"),
                season=league.get("season"),
                round=league.get("round"),
            ),
            home_team=home,
            away_team=away,
            score=Score(home=goals.get("home"), away=goals.get("away")),
        )
    except (TypeError, ValueError):
        return None


def parse_response(body: Any, endpoint: str = "") -> list[Fixture]:
    """Parse and filter the ``response`` array of a /fixtures reply."""
    rows = body.get("response") if isinstance(body, dict) else None
    if not isinstance(rows, list):
        raise UpstreamUnavailable(f"{endpoint} returned no response array", endpoint=endpoint)

    fixtures: list[Fixture] = []
    dropped: dict[str, int] = {}
    for row in rows:
        fixture = parse_fixture(row)
        reason = "malformed" if fixture is None else rejection_reason(fixture)
        if reason:
            dropped[reason] = dropped.get(reason, 0) + 1
            FIXTURES_FILTERED.labels(reason=reason).inc()
            continue
        fixtures.append(fixture)

    if dropped:
        logger.debug("fixtures_filtered", endpoint=endpoint, kept=len(fixtures), dropped=dropped)
    return fixtures


class ApiFootballProvider(UpstreamClient):
    """One configured api-football endpoint."""

    def __init__(self, endpoint: UpstreamEndpoint, http: UpstreamHTTPClient | None = None) -> None:
        self.name = endpoint.name
        self._endpoint = endpoint
        self._http = http or UpstreamHTTPClient(
            endpoint_name=endpoint.name,
            base_url=endpoint.base_url,
            headers=endpoint.auth_headers(),
            rate_limit_detector=is_rate_limit_body,
        )

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def _get(self, params: dict[str, Any], query: str) -> list[Fixture]:
        body = await self._http.get_json(FIXTURES_PATH, params=params, query=query)
        errors = _errors(body)
        if errors:
            logger.warning("upstream_api_errors", endpoint=self.name, query=query, errors=errors)
            raise UpstreamUnavailable(f"{self.name} reported errors: {errors}", endpoint=self.name)
        return parse_response(body, endpoint=self.name)

    async def _fetch_by_date(self, day: date) -> list[Fixture]:
        return await self._get({"date": day.isoformat()}, query="date")

    async def fetch_live(self) -> list[Fixture]:
        return await self._get({"live": "all"}, query="live")

    async def fetch_by_id(self, fixture_id: int) -> Optional[Fixture]:
        fixtures = await self._get({"id": fixture_id}, query="id")
        for fixture in fixtures:
            if fixture.id == fixture_id:
                return fixture
        return None

    async def fetch_by_league(self, league_id: int, season: int) -> list[Fixture]:
        return await self._get({"league": league_id, "season": season}, query="league")
