"""Domain enumerations for the Scoreline fixture core."""
from __future__ import annotations

from enum import Enum


class FixtureStatus(str, Enum):
    """api-football short status codes."""
    TBD = "TBD"
    NOT_STARTED = "NS"
    FIRST_HALF = "1H"
    HALFTIME = "HT"
    SECOND_HALF = "2H"
    EXTRA_TIME = "ET"
    BREAK_TIME = "BT"
    PENALTIES = "P"
    SUSPENDED = "SUSP"
    INTERRUPTED = "INT"
    LIVE = "LIVE"
    FINISHED = "FT"
    FINISHED_AET = "AET"
    FINISHED_PEN = "PEN"
    POSTPONED = "PST"
    CANCELLED = "CANC"
    ABANDONED = "ABD"
    AWARDED = "AWD"
    WALKOVER = "WO"

    @classmethod
    def parse(cls, code: str | None) -> "FixtureStatus":
        """Map a raw code to a status; unknown codes are treated as TBD."""
        try:
            return cls((code or "").strip().upper())
        except ValueError:
            return cls.TBD

    @property
    def is_live(self) -> bool:
        return self in _LIVE

    @property
    def is_active_play(self) -> bool:
        """Live and the clock is running."""
        return self in _ACTIVE_PLAY

    @property
    def is_finished(self) -> bool:
        return self in _FINISHED

    @property
    def is_void(self) -> bool:
        """Will not be (or was not) played to completion."""
        return self in _VOID

    @property
    def is_upcoming(self) -> bool:
        return self in (FixtureStatus.TBD, FixtureStatus.NOT_STARTED)

    @property
    def is_terminal(self) -> bool:
        return self.is_finished or self.is_void


_ACTIVE_PLAY = frozenset({
    FixtureStatus.FIRST_HALF,
    FixtureStatus.SECOND_HALF,
    FixtureStatus.EXTRA_TIME,
    FixtureStatus.LIVE,
})
_LIVE = _ACTIVE_PLAY | frozenset({
    FixtureStatus.HALFTIME,
    FixtureStatus.BREAK_TIME,
    FixtureStatus.PENALTIES,
    FixtureStatus.SUSPENDED,
    FixtureStatus.INTERRUPTED,
})
_FINISHED = frozenset({
    FixtureStatus.FINISHED,
    FixtureStatus.FINISHED_AET,
    FixtureStatus.FINISHED_PEN,
})
_VOID = frozenset({
    FixtureStatus.POSTPONED,
    FixtureStatus.CANCELLED,
    FixtureStatus.ABANDONED,
    FixtureStatus.AWARDED,
    FixtureStatus.WALKOVER,
})


def is_live(status: FixtureStatus) -> bool:
    return status.is_live


def is_finished(status: FixtureStatus) -> bool:
    return status.is_finished


def is_upcoming(status: FixtureStatus) -> bool:
    return status.is_upcoming


class FixtureSource(str, Enum):
    """Where a fixture list came from; drives merge priority."""
    LIVE = "live"
    LEAGUE = "league"
    DATE = "date"


class ScopeKind(str, Enum):
    DATE = "date"
    LEAGUE = "league"
    LIVE = "live"
    MULTI_WINDOW = "multi-window"
    FIXTURE = "fixture"


class DateClass(str, Enum):
    PAST = "past"
    TODAY = "today"
    FUTURE = "future"


class TimeLabel(str, Enum):
    TODAY = "today"
    TOMORROW = "tomorrow"
    YESTERDAY = "yesterday"
    CUSTOM = "custom"


class CacheStatus(str, Enum):
    """How a service response was satisfied."""
    FRESH = "fresh"
    MISS = "miss"
    STALE = "stale"
    EMPTY = "empty"
