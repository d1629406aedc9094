"""
Boundary filters applied while raw provider rows are parsed.

Drops e-sports/virtual fixtures and leagues without a usable country.
Recognised international competitions are always kept.
"""
from __future__ import annotations

import re
from typing import Optional

from shared.models.domain import Fixture

ESPORTS_TERMS = (
    "esoccer",
    "ebet",
    "cyber",
    "esports",
    "e-sports",
    "virtual",
    "efootball",
    "e-football",
    "pes",
    "volta",
    "fc online",
    "gt sport",
    "rocket league",
    "simulation",
    "simulator",
    "dream league",
    "football manager",
)
_ESPORTS_RE = re.compile(r"\b(" + "|".join(re.escape(t) for t in ESPORTS_TERMS) + r")\b")

INTERNATIONAL_COUNTRIES = frozenset({"world", "europe"})
INTERNATIONAL_TERMS = ("uefa", "fifa", "euro", "championship", "nations league", "world cup")


def is_international_competition(league_name: str, country: Optional[str]) -> bool:
    if not country or country.strip().lower() not in INTERNATIONAL_COUNTRIES:
        return False
    name = league_name.lower()
    return any(term in name for term in INTERNATIONAL_TERMS)


def is_esports(fixture: Fixture) -> bool:
    names = (fixture.league.name, fixture.home_team.name, fixture.away_team.name)
    return any(_ESPORTS_RE.search(n.lower()) for n in names)


def has_valid_country(country: Optional[str]) -> bool:
    if country is None or not country.strip():
        return False
    return "unknown" not in country.lower()


def rejection_reason(fixture: Fixture) -> Optional[str]:
    """Why ``fixture`` should be dropped, or None to keep it."""
    if is_international_competition(fixture.league.name, fixture.league.country):
        return None
    if is_esports(fixture):
        return "esports"
    if not has_valid_country(fixture.league.country):
        return "no_country"
    return None


def filter_popular(fixtures: list[Fixture], league_ids: set[int]) -> list[Fixture]:
    return [f for f in fixtures if f.league.id in league_ids]
