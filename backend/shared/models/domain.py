"""
Pydantic v2 domain models shared by ingest, scheduler and api.
These are the canonical wire/internal representations, NOT ORM models.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import FixtureStatus, ScopeKind, TimeLabel


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class FrozenModel(DomainModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)


# ── Reference entities ──────────────────────────────────────────────────
class LeagueRef(FrozenModel):
    id: int
    name: str
    country: Optional[str] = None
    logo: Optional[str] = None
    flag: Optional[str] = None
    season: Optional[int] = None
    round: Optional[str] = None


class TeamRef(FrozenModel):
    id: int
    name: str
    logo: Optional[str] = None


# ── Score / status ──────────────────────────────────────────────────────
class Score(FrozenModel):
    """Goals; both sides are None before kickoff."""
    home: Optional[int] = None
    away: Optional[int] = None


class StatusInfo(FrozenModel):
    code: FixtureStatus = FixtureStatus.TBD
    label: str = ""
    elapsed: Optional[int] = None


# ── Fixture ─────────────────────────────────────────────────────────────
class Fixture(FrozenModel):
    """A single scheduled or played match. Built once at the provider boundary."""
    id: int
    kickoff_time: datetime
    status: StatusInfo
    league: LeagueRef
    home_team: TeamRef
    away_team: TeamRef
    score: Score = Field(default_factory=Score)

    @property
    def is_live(self) -> bool:
        return self.status.code.is_live

    @property
    def kickoff_utc(self) -> datetime:
        return self.kickoff_time.astimezone(timezone.utc)

    def with_live_state(self, authoritative: "Fixture") -> "Fixture":
        """Copy with status and score taken from an authoritative update."""
        return self.model_copy(update={
            "status": authoritative.status,
            "score": authoritative.score,
        })


# ── Cache scope ─────────────────────────────────────────────────────────
class ScopeKey(FrozenModel):
    """Composite cache key: kind plus discriminator, rendered as ``kind:value``."""
    kind: ScopeKind
    discriminator: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.discriminator}"

    @classmethod
    def parse(cls, raw: str) -> "ScopeKey":
        kind, _, disc = raw.partition(":")
        return cls(kind=ScopeKind(kind), discriminator=disc)

    @classmethod
    def for_date(cls, d: date) -> "ScopeKey":
        return cls(kind=ScopeKind.DATE, discriminator=d.isoformat())

    @classmethod
    def multi_window(cls, d: date) -> "ScopeKey":
        return cls(kind=ScopeKind.MULTI_WINDOW, discriminator=d.isoformat())

    @classmethod
    def league(cls, league_id: int, season: Optional[int] = None) -> "ScopeKey":
        disc = str(league_id) if season is None else f"{league_id}:{season}"
        return cls(kind=ScopeKind.LEAGUE, discriminator=disc)

    @classmethod
    def live(cls) -> "ScopeKey":
        return cls(kind=ScopeKind.LIVE, discriminator="all")

    @classmethod
    def fixture(cls, fixture_id: int) -> "ScopeKey":
        return cls(kind=ScopeKind.FIXTURE, discriminator=str(fixture_id))


class CacheEntry(FrozenModel):
    """Immutable snapshot stored under one scope key."""
    scope_key: str
    payload: Union[list[Fixture], Fixture]
    written_at: datetime
    scope_date: Optional[date] = None

    @property
    def scope(self) -> ScopeKey:
        return ScopeKey.parse(self.scope_key)

    @property
    def fixtures(self) -> list[Fixture]:
        if isinstance(self.payload, Fixture):
            return [self.payload]
        return list(self.payload)

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return max(0.0, (now - self.written_at).total_seconds())


# ── Classification ──────────────────────────────────────────────────────
class ClassificationResult(FrozenModel):
    """Derived on demand; depends on wall-clock now, so never cached."""
    label: TimeLabel
    is_within_active_window: bool
    reason: str


class ClassifiedFixture(DomainModel):
    fixture: Fixture
    classification: ClassificationResult
