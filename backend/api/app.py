"""
Scoreline API Service.

FastAPI application serving:
- REST endpoints for fixtures by date, live, league and id
- Health, readiness and status endpoints

Startup wires the configured fixture store, the upstream cascade, the
fixture service and (when enabled) the in-process live reconciler.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from shared.cache.base import FixtureStore
from shared.cache.factory import build_store
from shared.cache.fixture_cache import FixtureCache
from shared.cache.redis_store import RedisStore
from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import SERVICE_INFO, start_metrics_server

from api.dependencies import get_reconciler, get_store, init_dependencies, reset_dependencies
from api.middleware import setup_middleware
from api.routes.fixtures import router as fixtures_router
from ingest.providers.registry import build_upstream
from ingest.service import FixtureService
from scheduler.leader import RedisLeaderLease
from scheduler.reconciler import LiveReconciler

logger = get_logger(__name__)

# Retry connection on startup (e.g. Redis/DB not ready yet)
_CONNECT_RETRY_ATTEMPTS = 10
_CONNECT_RETRY_BASE_DELAY_S = 2.0


async def _connect_with_retry(connect_fn: Callable[[], Awaitable[FixtureStore]], name: str) -> FixtureStore:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, _CONNECT_RETRY_ATTEMPTS + 1):
        try:
            return await connect_fn()
        except Exception as exc:
            if attempt == _CONNECT_RETRY_ATTEMPTS:
                raise
            delay = _CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=_CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)
    raise RuntimeError(f"{name} connection attempts exhausted")


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing; tests call init_dependencies themselves."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup (store, upstream client, reconciler) and shutdown
    (graceful cleanup in reverse order).
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()
    SERVICE_INFO.info({"service": "api", "environment": settings.environment.value})

    store = await _connect_with_retry(lambda: build_store(settings), settings.cache_backend.value)
    upstream = build_upstream(settings)
    await upstream.start()

    cache = FixtureCache(store)
    service = FixtureService(upstream, cache, settings)

    reconciler: Optional[LiveReconciler] = None
    lease: Optional[RedisLeaderLease] = None
    if settings.reconciler_enabled:
        if isinstance(store, RedisStore):
            lease = RedisLeaderLease(
                store.redis,
                "reconciler",
                settings.instance_id,
                ttl_s=int(settings.reconciler_interval_s * 3),
            )
        reconciler = LiveReconciler(upstream, cache, settings, leader_check=lease)
        reconciler.start()

    init_dependencies(store, service, reconciler)
    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        store=store.backend_name,
        reconciler=reconciler is not None,
    )

    yield

    # Shutdown
    if reconciler is not None:
        await reconciler.stop()
    if lease is not None:
        await lease.release()
    await upstream.close()
    await store.close()
    reset_dependencies()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    app = FastAPI(
        title="Scoreline API",
        description="Football fixtures with multi-window fetching and live reconciliation",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)
    app.include_router(fixtures_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> JSONResponse:
        """Readiness check: the fixture store must answer a ping."""
        store = get_store()
        store_ok = False
        try:
            store_ok = await store.ping()
        except Exception as exc:
            logger.warning("readiness_store_ping_failed", backend=store.backend_name, error=str(exc))

        return JSONResponse(
            status_code=200 if store_ok else 503,
            content={
                "status": "ok" if store_ok else "degraded",
                "store": store.backend_name,
                "store_ok": store_ok,
            },
        )

    @app.get("/status", tags=["system"])
    async def system_status() -> dict[str, Any]:
        """Reconciler and circuit breaker state."""
        store = get_store()
        reconciler = get_reconciler()
        return {
            "status": "ok",
            "store": store.backend_name,
            "reconciler": reconciler.stats if reconciler is not None else None,
        }

    return app


app = create_app()
