"""
Temporal bucketing of fixtures.

The label is anchored to the calendar date of kickoff (in the viewer's zone
when one is given). Whether a fixture is inside its active window is a
separate flag: a finished match from this morning is still ``today`` but no
longer active.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from shared.models.domain import ClassificationResult, ClassifiedFixture, Fixture
from shared.models.enums import TimeLabel
from shared.utils.dates import utcnow

DEFAULT_WINDOW_HOURS = 8.0
DEFAULT_MATCH_MINUTES = 120


def is_within_active_window(
    fixture: Fixture,
    now: Optional[datetime] = None,
    window_hours: float = DEFAULT_WINDOW_HOURS,
    match_minutes: int = DEFAULT_MATCH_MINUTES,
) -> bool:
    """
    True for live fixtures, and for fixtures not postponed/cancelled whose
    kickoff is at most ``window_hours`` ahead or whose assumed finish
    (kickoff + ``match_minutes``) is at most ``window_hours`` behind.
    """
    status = fixture.status.code
    if status.is_live:
        return True
    if status.is_void:
        return False
    now = now or utcnow()
    window = timedelta(hours=window_hours)
    kickoff = fixture.kickoff_utc
    finish = kickoff + timedelta(minutes=match_minutes)
    return kickoff - window <= now <= finish + window


def _in_countdown_window(fixture: Fixture, now: datetime, window_hours: float) -> bool:
    if fixture.status.code.is_live:
        return True
    if not fixture.status.code.is_upcoming:
        return False
    delta = fixture.kickoff_utc - now
    return timedelta(0) <= delta <= timedelta(hours=window_hours)


def classify(
    fixture: Fixture,
    reference_date: date,
    *,
    now: Optional[datetime] = None,
    window_hours: float = DEFAULT_WINDOW_HOURS,
    match_minutes: int = DEFAULT_MATCH_MINUTES,
    tz: Optional[tzinfo] = None,
) -> ClassificationResult:
    """Label ``fixture`` relative to ``reference_date``."""
    now = now or utcnow()
    local_date = fixture.kickoff_time.astimezone(tz or timezone.utc).date()
    offset = (local_date - reference_date).days

    if offset == 0:
        active = is_within_active_window(fixture, now, window_hours, match_minutes)
        reason = "kickoff on reference date"
        if not active:
            reason += "; outside active window"
        return ClassificationResult(label=TimeLabel.TODAY, is_within_active_window=active, reason=reason)

    if offset in (1, -1):
        label = TimeLabel.TOMORROW if offset == 1 else TimeLabel.YESTERDAY
        active = is_within_active_window(fixture, now, window_hours, match_minutes)
        return ClassificationResult(
            label=label,
            is_within_active_window=active,
            reason=f"kickoff {'day after' if offset == 1 else 'day before'} reference date",
        )

    active = _in_countdown_window(fixture, now, window_hours)
    return ClassificationResult(
        label=TimeLabel.CUSTOM,
        is_within_active_window=active,
        reason=f"kickoff {offset:+d} days from reference date"
        + (f"; within {window_hours:g}h window" if active else ""),
    )


def classify_all(
    fixtures: Iterable[Fixture],
    reference_date: date,
    **kwargs,
) -> list[ClassifiedFixture]:
    return [
        ClassifiedFixture(fixture=f, classification=classify(f, reference_date, **kwargs))
        for f in fixtures
    ]


def display_order(fixtures: Iterable[Fixture]) -> list[Fixture]:
    """Live first, then upcoming, then everything else; kickoff order inside each group."""
    def rank(f: Fixture) -> tuple[int, datetime, int]:
        code = f.status.code
        group = 0 if code.is_live else 1 if code.is_upcoming else 2
        return group, f.kickoff_utc, f.id

    return sorted(fixtures, key=rank)
