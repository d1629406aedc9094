"""
Standalone reconciler worker.
Runs the LiveReconciler against a shared (redis or database) store so API
workers can serve with SL_RECONCILER_ENABLED=false.
"""
from __future__ import annotations

import asyncio
import signal

from shared.cache.factory import build_store
from shared.cache.fixture_cache import FixtureCache
from shared.cache.redis_store import RedisStore
from shared.config import CacheBackend, get_settings
from shared.utils.health_server import start_health_server
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from ingest.providers.registry import build_upstream
from scheduler.leader import RedisLeaderLease
from scheduler.reconciler import LiveReconciler

logger = get_logger(__name__)


async def main() -> None:
    """Reconciler worker entrypoint."""
    settings = get_settings()
    setup_logging("reconciler")
    start_metrics_server()

    if settings.cache_backend == CacheBackend.MEMORY:
        logger.warning("reconciler_worker_memory_store", hint="API processes will not see these writes")

    store = await build_store(settings)
    upstream = build_upstream(settings)
    await upstream.start()

    lease = None
    if isinstance(store, RedisStore):
        lease = RedisLeaderLease(
            store.redis,
            "reconciler",
            settings.instance_id,
            ttl_s=int(settings.reconciler_interval_s * 3),
        )

    reconciler = LiveReconciler(upstream, FixtureCache(store), settings, leader_check=lease)
    start_health_server("reconciler", lambda: reconciler.stats)

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    reconciler.start()
    logger.info("reconciler_service_started", instance_id=settings.instance_id)
    try:
        await shutdown.wait()
    finally:
        await reconciler.stop()
        if lease is not None:
            await lease.release()
        await upstream.close()
        await store.close()
        logger.info("reconciler_service_stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
