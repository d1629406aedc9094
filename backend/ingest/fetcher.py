"""
Multi-window fetch: one requested date becomes three provider date queries.

Providers stamp kickoffs in UTC, so a fixture on the viewer's calendar day
can sit on the provider's previous or next day. Fetching [d-1, d, d+1] and
filtering downstream keeps those boundary matches.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Optional

from shared.config import Settings, get_settings
from shared.errors import PartialWindowFailure, UpstreamError, UpstreamUnavailable
from shared.models.domain import Fixture
from shared.models.enums import FixtureSource
from shared.utils.dates import today_in, window_dates
from shared.utils.logging import get_logger
from shared.utils.metrics import MULTI_WINDOW_FETCH, WINDOW_FETCH_FAILURES

from ingest.normalization.dedup import SourcedBatch
from ingest.providers.base import UpstreamClient

logger = get_logger(__name__)

LIVE_WINDOW = "live"


@dataclass
class WindowFetchResult:
    target: date
    batches: list[SourcedBatch] = field(default_factory=list)
    failures: list[PartialWindowFailure] = field(default_factory=list)
    live_requested: bool = False

    @property
    def succeeded_windows(self) -> list[str]:
        return [b.label for b in self.batches if b.source == FixtureSource.DATE]


class MultiWindowFetcher:
    def __init__(
        self,
        upstream: UpstreamClient,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], Optional[datetime]] = lambda: None,
    ) -> None:
        s = settings or get_settings()
        self._upstream = upstream
        self._batch_size = max(1, s.window_batch_size)
        self._pause_s = s.window_batch_pause_s
        self._server_tz = s.server_timezone
        self._sleep = sleep
        self._now = now

    def is_today(self, target: date) -> bool:
        return target == today_in(self._server_tz, self._now())

    async def fetch(self, target: date) -> WindowFetchResult:
        """
        Fetch every window for ``target`` (plus live when it is today).

        Returned batches are in canonical order, live first then windows in
        date order, whatever order the calls completed in.

        Raises:
            UpstreamUnavailable: all three date windows failed.
        """
        start = time.perf_counter()
        result = WindowFetchResult(target=target, live_requested=self.is_today(target))
        live_task: Optional[asyncio.Task[list[Fixture]]] = None
        if result.live_requested:
            live_task = asyncio.create_task(self._upstream.fetch_live())

        windows = window_dates(target)
        outcomes: dict[date, Any] = {}
        try:
            for i in range(0, len(windows), self._batch_size):
                if i:
                    await self._sleep(self._pause_s)
                chunk = windows[i:i + self._batch_size]
                gathered = await asyncio.gather(
                    *(self._upstream.fetch_by_date(d) for d in chunk),
                    return_exceptions=True,
                )
                outcomes.update(zip(chunk, gathered))
        except BaseException:
            if live_task is not None:
                live_task.cancel()
            raise

        if live_task is not None:
            try:
                result.batches.append(SourcedBatch(FixtureSource.LIVE, await live_task, LIVE_WINDOW))
            except UpstreamError as exc:
                self._record_failure(result, LIVE_WINDOW, exc)

        for d in windows:
            outcome = outcomes[d]
            if isinstance(outcome, UpstreamError):
                self._record_failure(result, d.isoformat(), outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.batches.append(SourcedBatch(FixtureSource.DATE, outcome, d.isoformat()))

        MULTI_WINDOW_FETCH.observe(time.perf_counter() - start)

        if not result.succeeded_windows:
            last = result.failures[-1].cause if result.failures else None
            logger.error("multi_window_fetch_failed", target=target.isoformat())
            raise UpstreamUnavailable(f"all date windows failed for {target.isoformat()}") from last

        logger.info(
            "multi_window_fetch_complete",
            target=target.isoformat(),
            windows=result.succeeded_windows,
            failures=[f.window for f in result.failures],
            live=result.live_requested,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return result

    @staticmethod
    def _record_failure(result: WindowFetchResult, window: str, exc: BaseException) -> None:
        failure = PartialWindowFailure(window, exc)
        result.failures.append(failure)
        WINDOW_FETCH_FAILURES.labels(window="live" if window == LIVE_WINDOW else "date").inc()
        logger.warning(
            "window_fetch_failed",
            target=result.target.isoformat(),
            window=window,
            error_type=type(exc).__name__,
            error=str(exc),
        )
