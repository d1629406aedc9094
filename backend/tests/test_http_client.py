"""
Tests for the upstream HTTP client: backoff, rate limits and error mapping.
Sleeps are captured instead of awaited.
"""
from __future__ import annotations

from typing import Callable

import httpx
import pytest

from shared.errors import UpstreamRateLimited, UpstreamUnavailable
from shared.utils.http_client import UpstreamHTTPClient, backoff_delay
from ingest.providers.api_football import is_rate_limit_body

OK_BODY = {"errors": [], "response": []}


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    sleeps: list[float],
    max_retries: int = 3,
) -> UpstreamHTTPClient:
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    return UpstreamHTTPClient(
        endpoint_name="test",
        base_url="https://api.example",
        max_retries=max_retries,
        backoff_base_s=2.0,
        backoff_cap_s=30.0,
        rate_limit_detector=is_rate_limit_body,
        sleep=fake_sleep,
        transport=httpx.MockTransport(handler),
    )


def test_backoff_delay_doubles_and_caps() -> None:
    assert [backoff_delay(a, 2.0, 30.0) for a in range(5)] == [2.0, 4.0, 8.0, 16.0, 30.0]


def test_backoff_delay_honours_retry_after_within_cap() -> None:
    assert backoff_delay(0, 2.0, 30.0, retry_after=10.0) == 10.0
    assert backoff_delay(0, 2.0, 30.0, retry_after=300.0) == 30.0
    assert backoff_delay(2, 2.0, 30.0, retry_after=1.0) == 8.0


@pytest.mark.asyncio
async def test_get_json_returns_body() -> None:
    sleeps: list[float] = []
    async with make_client(lambda r: httpx.Response(200, json=OK_BODY), sleeps) as client:
        assert await client.get_json("/fixtures", {"live": "all"}) == OK_BODY
    assert sleeps == []


@pytest.mark.asyncio
async def test_429_retries_with_exponential_backoff() -> None:
    responses = iter([httpx.Response(429), httpx.Response(429), httpx.Response(200, json=OK_BODY)])
    sleeps: list[float] = []
    async with make_client(lambda r: next(responses), sleeps) as client:
        assert await client.get_json("/fixtures") == OK_BODY
    assert sleeps == [2.0, 4.0]


@pytest.mark.asyncio
async def test_in_body_rate_limit_is_retried() -> None:
    limited = {"errors": {"rateLimit": "Too many requests"}, "response": []}
    responses = iter([httpx.Response(200, json=limited), httpx.Response(200, json=OK_BODY)])
    sleeps: list[float] = []
    async with make_client(lambda r: next(responses), sleeps) as client:
        assert await client.get_json("/fixtures") == OK_BODY
    assert sleeps == [2.0]


@pytest.mark.asyncio
async def test_rate_limit_exhaustion_raises_after_max_retries() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(429, headers={"Retry-After": "5"})

    sleeps: list[float] = []
    async with make_client(handler, sleeps, max_retries=2) as client:
        with pytest.raises(UpstreamRateLimited) as exc_info:
            await client.get_json("/fixtures")
    assert len(calls) == 3
    assert exc_info.value.attempts == 3
    assert exc_info.value.status == 429
    assert sleeps == [5.0, 5.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 403, 500, 503])
async def test_error_statuses_map_to_unavailable_without_retry(status: int) -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(status)

    sleeps: list[float] = []
    async with make_client(handler, sleeps) as client:
        with pytest.raises(UpstreamUnavailable) as exc_info:
            await client.get_json("/fixtures")
    assert exc_info.value.status == status
    assert len(calls) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_transport_errors_map_to_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler, []) as client:
        with pytest.raises(UpstreamUnavailable):
            await client.get_json("/fixtures")


@pytest.mark.asyncio
async def test_timeouts_map_to_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    async with make_client(handler, []) as client:
        with pytest.raises(UpstreamUnavailable, match="timed out"):
            await client.get_json("/fixtures")


@pytest.mark.asyncio
async def test_invalid_json_maps_to_unavailable() -> None:
    async with make_client(lambda r: httpx.Response(200, content=b"<html>"), []) as client:
        with pytest.raises(UpstreamUnavailable, match="invalid JSON"):
            await client.get_json("/fixtures")


@pytest.mark.asyncio
async def test_get_json_requires_start() -> None:
    client = make_client(lambda r: httpx.Response(200, json=OK_BODY), [])
    with pytest.raises(RuntimeError):
        await client.get_json("/fixtures")
