"""
Async HTTP client wrapper for upstream fixture providers.
Per-call timeout, 429 backoff, error mapping and metrics.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import httpx

from shared.config import get_settings
from shared.errors import UpstreamRateLimited, UpstreamUnavailable
from shared.utils.logging import get_logger
from shared.utils.metrics import UPSTREAM_LATENCY, UPSTREAM_RATE_LIMIT_RETRIES, UPSTREAM_REQUESTS

logger = get_logger(__name__)

RateLimitDetector = Callable[[Any], bool]
Sleeper = Callable[[float], Awaitable[Any]]


def backoff_delay(attempt: int, base_s: float, cap_s: float, retry_after: Optional[float] = None) -> float:
    """Exponential delay for the given zero-based retry attempt, honouring Retry-After."""
    delay = min(cap_s, base_s * (2 ** attempt))
    if retry_after is not None:
        delay = min(cap_s, max(delay, retry_after))
    return delay


def _retry_after(resp: httpx.Response) -> Optional[float]:
    raw = resp.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


class UpstreamHTTPClient:
    """
    JSON GET client for one upstream endpoint.

    Rate limiting (HTTP 429, or a response body the detector flags) is retried
    with exponential backoff up to ``max_retries`` times, then surfaces as
    UpstreamRateLimited. Timeouts, transport errors, 5xx and other 4xx are
    mapped to UpstreamUnavailable and never retried here.
    """

    def __init__(
        self,
        endpoint_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        connect_timeout_s: float | None = None,
        max_retries: int | None = None,
        backoff_base_s: float | None = None,
        backoff_cap_s: float | None = None,
        rate_limit_detector: RateLimitDetector | None = None,
        sleep: Sleeper = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.endpoint_name = endpoint_name
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout_s if timeout_s is not None else settings.upstream_timeout_s
        self._connect_timeout = (
            connect_timeout_s if connect_timeout_s is not None else settings.upstream_connect_timeout_s
        )
        self._max_retries = max_retries if max_retries is not None else settings.upstream_max_retries
        self._backoff_base = backoff_base_s if backoff_base_s is not None else settings.upstream_backoff_base_s
        self._backoff_cap = backoff_cap_s if backoff_cap_s is not None else settings.upstream_backoff_cap_s
        self._detect_rate_limit = rate_limit_detector
        self._sleep = sleep
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=httpx.Timeout(self._timeout, connect=self._connect_timeout),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "UpstreamHTTPClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def get_json(self, path: str, params: dict[str, Any] | None = None, query: str = "unknown") -> Any:
        """
        GET ``path`` and return the decoded JSON body.

        Raises:
            UpstreamRateLimited: rate limited on every attempt.
            UpstreamUnavailable: timeout, network error, bad status or bad JSON.
        """
        if not self._client:
            raise RuntimeError("UpstreamHTTPClient not started. Call start() first.")

        for attempt in range(self._max_retries + 1):
            start_time = time.perf_counter()
            status = "error"
            try:
                resp = await asyncio.wait_for(
                    self._client.get(path, params=params), timeout=self._timeout
                )
                status = str(resp.status_code)
            except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
                status = "timeout"
                logger.warning("upstream_timeout", endpoint=self.endpoint_name, path=path, params=params)
                raise UpstreamUnavailable(
                    f"{self.endpoint_name} timed out", endpoint=self.endpoint_name
                ) from exc
            except httpx.HTTPError as exc:
                logger.warning(
                    "upstream_transport_error",
                    endpoint=self.endpoint_name,
                    path=path,
                    error=str(exc),
                )
                raise UpstreamUnavailable(
                    f"{self.endpoint_name} transport error: {exc}", endpoint=self.endpoint_name
                ) from exc
            finally:
                UPSTREAM_LATENCY.labels(endpoint=self.endpoint_name).observe(time.perf_counter() - start_time)
                UPSTREAM_REQUESTS.labels(endpoint=self.endpoint_name, query=query, status=status).inc()

            body: Any = None
            rate_limited = resp.status_code == 429
            if not rate_limited:
                if resp.status_code >= 400:
                    logger.warning(
                        "upstream_http_error",
                        endpoint=self.endpoint_name,
                        path=path,
                        status=resp.status_code,
                    )
                    raise UpstreamUnavailable(
                        f"{self.endpoint_name} returned {resp.status_code}",
                        endpoint=self.endpoint_name,
                        status=resp.status_code,
                    )
                try:
                    body = resp.json()
                except ValueError as exc:
                    raise UpstreamUnavailable(
                        f"{self.endpoint_name} returned invalid JSON", endpoint=self.endpoint_name
                    ) from exc
                rate_limited = bool(self._detect_rate_limit and self._detect_rate_limit(body))

            if not rate_limited:
                logger.debug(
                    "upstream_request_success",
                    endpoint=self.endpoint_name,
                    path=path,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return body

            if attempt >= self._max_retries:
                logger.error(
                    "upstream_rate_limit_exhausted",
                    endpoint=self.endpoint_name,
                    path=path,
                    attempts=attempt + 1,
                )
                raise UpstreamRateLimited(
                    f"{self.endpoint_name} rate limited after {attempt + 1} attempts",
                    endpoint=self.endpoint_name,
                    attempts=attempt + 1,
                )

            delay = backoff_delay(attempt, self._backoff_base, self._backoff_cap, _retry_after(resp))
            UPSTREAM_RATE_LIMIT_RETRIES.labels(endpoint=self.endpoint_name).inc()
            logger.warning(
                "upstream_rate_limited",
                endpoint=self.endpoint_name,
                path=path,
                attempt=attempt + 1,
                backoff_s=delay,
            )
            await self._sleep(delay)

        raise RuntimeError("unreachable")  # pragma: no cover
