"""
Tests for the multi-window fetcher: window expansion, batching, partial
failure and the live batch.
"""
from __future__ import annotations

from datetime import date

import pytest

from shared.config import Settings
from shared.errors import UpstreamRateLimited, UpstreamUnavailable
from shared.models.enums import FixtureSource, FixtureStatus
from ingest.fetcher import LIVE_WINDOW, MultiWindowFetcher

TODAY = date(2025, 6, 15)


@pytest.mark.asyncio
async def test_today_fetches_three_windows_and_live(upstream, settings, clock, make_fixture) -> None:
    upstream.by_date = {
        date(2025, 6, 14): [make_fixture(1)],
        date(2025, 6, 15): [make_fixture(2)],
        date(2025, 6, 16): [make_fixture(3)],
    }
    upstream.live = [make_fixture(2, status=FixtureStatus.FIRST_HALF)]

    result = await MultiWindowFetcher(upstream, settings, now=clock).fetch(TODAY)

    assert result.live_requested
    assert [b.label for b in result.batches] == [LIVE_WINDOW, "2025-06-14", "2025-06-15", "2025-06-16"]
    assert result.batches[0].source == FixtureSource.LIVE
    assert result.succeeded_windows == ["2025-06-14", "2025-06-15", "2025-06-16"]
    assert result.failures == []
    assert upstream.count("live") == 1
    assert sorted(d for op, d in upstream.calls if op == "date") == [date(2025, 6, 14), TODAY, date(2025, 6, 16)]


@pytest.mark.asyncio
async def test_other_dates_skip_live(upstream, settings, clock) -> None:
    result = await MultiWindowFetcher(upstream, settings, now=clock).fetch(date(2025, 7, 1))
    assert not result.live_requested
    assert upstream.count("live") == 0
    assert upstream.count("date") == 3


@pytest.mark.asyncio
async def test_one_failed_window_does_not_fail_the_fetch(upstream, settings, clock, make_fixture) -> None:
    upstream.by_date = {
        date(2025, 7, 1): [make_fixture(1)],
        date(2025, 7, 2): UpstreamRateLimited("quota", endpoint="test", attempts=4),
        date(2025, 7, 3): [make_fixture(3)],
    }
    result = await MultiWindowFetcher(upstream, settings, now=clock).fetch(date(2025, 7, 2))
    assert result.succeeded_windows == ["2025-07-01", "2025-07-03"]
    assert [f.window for f in result.failures] == ["2025-07-02"]
    assert isinstance(result.failures[0].cause, UpstreamRateLimited)


@pytest.mark.asyncio
async def test_live_failure_is_partial(upstream, settings, clock, make_fixture) -> None:
    upstream.live = UpstreamUnavailable("down", endpoint="test")
    upstream.by_date = {TODAY: [make_fixture(1)]}
    result = await MultiWindowFetcher(upstream, settings, now=clock).fetch(TODAY)
    assert [f.window for f in result.failures] == [LIVE_WINDOW]
    assert all(b.source == FixtureSource.DATE for b in result.batches)


@pytest.mark.asyncio
async def test_all_windows_failing_raises(upstream, settings, clock) -> None:
    down = UpstreamUnavailable("down", endpoint="test")
    upstream.by_date = {date(2025, 7, 1): down, date(2025, 7, 2): down, date(2025, 7, 3): down}
    with pytest.raises(UpstreamUnavailable):
        await MultiWindowFetcher(upstream, settings, now=clock).fetch(date(2025, 7, 2))


@pytest.mark.asyncio
async def test_batch_size_one_pauses_between_batches(upstream, clock) -> None:
    pauses: list[float] = []

    async def fake_sleep(delay: float) -> None:
        pauses.append(delay)

    settings = Settings(window_batch_size=1, window_batch_pause_s=0.5)
    result = await MultiWindowFetcher(upstream, settings, sleep=fake_sleep, now=clock).fetch(date(2025, 7, 2))
    assert pauses == [0.5, 0.5]
    assert result.succeeded_windows == ["2025-07-01", "2025-07-02", "2025-07-03"]


@pytest.mark.asyncio
async def test_unexpected_errors_propagate(upstream, settings, clock) -> None:
    upstream.by_date = {date(2025, 7, 2): RuntimeError("bug")}
    with pytest.raises(RuntimeError, match="bug"):
        await MultiWindowFetcher(upstream, settings, now=clock).fetch(date(2025, 7, 2))
