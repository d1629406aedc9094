"""
Scheduled-task abstraction: a coroutine run on a fixed interval until stopped.

The owner controls the lifecycle explicitly with start()/stop(); the stop
event doubles as the cancellation token checked between ticks.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from shared.utils.dates import utcnow
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class ScheduledTask:
    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval_s: float,
        startup_delay_s: float = 0.0,
    ) -> None:
        self.name = name
        self._func = func
        self.interval_s = interval_s
        self.startup_delay_s = startup_delay_s
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self.ticks = 0
        self.errors = 0
        self.last_tick_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.info("scheduled_task_started", task=self.name, interval_s=self.interval_s)

    async def stop(self) -> None:
        self._stop.set()
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("scheduled_task_stopped", task=self.name, ticks=self.ticks)

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True when a stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def run_once(self) -> None:
        try:
            await self._func()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.errors += 1
            self.last_error = str(exc)
            logger.error("scheduled_task_error", task=self.name, error=str(exc), exc_info=True)
        finally:
            self.ticks += 1
            self.last_tick_at = utcnow()

    async def _run(self) -> None:
        if self.startup_delay_s and await self._wait(self.startup_delay_s):
            return
        while not self._stop.is_set():
            await self.run_once()
            if await self._wait(self.interval_s):
                return

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "running": self.is_running,
            "interval_s": self.interval_s,
            "ticks": self.ticks,
            "errors": self.errors,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_error": self.last_error,
        }
