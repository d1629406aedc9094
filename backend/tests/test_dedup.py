"""Unit tests for source-priority de-duplication."""
from __future__ import annotations

from shared.models.enums import FixtureSource, FixtureStatus
from ingest.normalization.dedup import Deduplicator, SourcedBatch


def test_live_replaces_date_regardless_of_batch_order(make_fixture) -> None:
    stale = make_fixture(1, status=FixtureStatus.NOT_STARTED)
    live = make_fixture(1, status=FixtureStatus.FIRST_HALF, elapsed=12, score=(1, 0))
    merged = Deduplicator().merge([
        SourcedBatch(FixtureSource.DATE, [stale]),
        SourcedBatch(FixtureSource.LIVE, [live]),
    ])
    assert merged == [live]

    merged = Deduplicator().merge([
        SourcedBatch(FixtureSource.LIVE, [live]),
        SourcedBatch(FixtureSource.DATE, [stale]),
    ])
    assert merged == [live]


def test_league_beats_date_but_not_live(make_fixture) -> None:
    date_v = make_fixture(5, status=FixtureStatus.NOT_STARTED)
    league_v = make_fixture(5, status=FixtureStatus.HALFTIME)
    live_v = make_fixture(5, status=FixtureStatus.SECOND_HALF)
    dedup = Deduplicator()
    assert dedup.merge([SourcedBatch(FixtureSource.DATE, [date_v]), SourcedBatch(FixtureSource.LEAGUE, [league_v])]) == [league_v]
    assert dedup.merge([SourcedBatch(FixtureSource.LIVE, [live_v]), SourcedBatch(FixtureSource.LEAGUE, [league_v])]) == [live_v]


def test_equal_priority_keeps_first_seen(make_fixture) -> None:
    first = make_fixture(9, home="First")
    second = make_fixture(9, home="Second")
    merged = Deduplicator().merge([
        SourcedBatch(FixtureSource.DATE, [first], "2025-06-14"),
        SourcedBatch(FixtureSource.DATE, [second], "2025-06-15"),
    ])
    assert [f.home_team.name for f in merged] == ["First"]


def test_output_keeps_first_appearance_order(make_fixture) -> None:
    merged = Deduplicator().merge([
        SourcedBatch(FixtureSource.DATE, [make_fixture(3), make_fixture(1)]),
        SourcedBatch(FixtureSource.DATE, [make_fixture(2), make_fixture(3)]),
        SourcedBatch(FixtureSource.LIVE, [make_fixture(1, status=FixtureStatus.FIRST_HALF)]),
    ])
    assert [f.id for f in merged] == [3, 1, 2]
    assert merged[1].status.code is FixtureStatus.FIRST_HALF


def test_custom_priority_map(make_fixture) -> None:
    dedup = Deduplicator({FixtureSource.DATE: 0, FixtureSource.LIVE: 1})
    date_v = make_fixture(1)
    live_v = make_fixture(1, status=FixtureStatus.FIRST_HALF)
    assert dedup.merge([SourcedBatch(FixtureSource.LIVE, [live_v]), SourcedBatch(FixtureSource.DATE, [date_v])]) == [date_v]
    assert dedup.rank(FixtureSource.LEAGUE) == 2


def test_empty_input() -> None:
    assert Deduplicator().merge([]) == []
