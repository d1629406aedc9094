"""Unit tests for match-clock derivation and drift reconciliation."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from shared.models.enums import FixtureStatus
from scheduler.engine.elapsed import displayed_elapsed, reconcile_elapsed

ANCHOR_AT = datetime(2025, 6, 15, 14, 0, tzinfo=timezone.utc)


def test_clock_runs_during_active_play() -> None:
    now = ANCHOR_AT + timedelta(minutes=4, seconds=59)
    assert displayed_elapsed(30, ANCHOR_AT, FixtureStatus.FIRST_HALF, now) == 34


@pytest.mark.parametrize("status", [FixtureStatus.HALFTIME, FixtureStatus.BREAK_TIME, FixtureStatus.PENALTIES])
def test_clock_frozen_during_breaks(status: FixtureStatus) -> None:
    now = ANCHOR_AT + timedelta(minutes=10)
    assert displayed_elapsed(45, ANCHOR_AT, status, now) == 45


def test_no_anchor_means_no_clock() -> None:
    assert displayed_elapsed(None, ANCHOR_AT, FixtureStatus.SECOND_HALF, ANCHOR_AT) is None


def test_clock_never_runs_backwards() -> None:
    assert displayed_elapsed(50, ANCHOR_AT, FixtureStatus.SECOND_HALF, ANCHOR_AT - timedelta(minutes=2)) == 50


def test_within_tolerance_keeps_local_estimate() -> None:
    assert reconcile_elapsed(52, 50, tolerance=3) == (52, False)


def test_boundary_is_inclusive_by_default() -> None:
    assert reconcile_elapsed(53, 50, tolerance=3) == (53, False)
    assert reconcile_elapsed(53, 50, tolerance=3, inclusive=False) == (50, True)


def test_beyond_tolerance_snaps() -> None:
    assert reconcile_elapsed(58, 50, tolerance=3) == (50, True)
    assert reconcile_elapsed(40, 50, tolerance=3) == (50, True)


def test_missing_values() -> None:
    assert reconcile_elapsed(50, None, tolerance=3) == (50, False)
    assert reconcile_elapsed(None, 12, tolerance=3) == (12, False)
