"""Builds the configured FixtureStore at startup."""
from __future__ import annotations

from shared.cache.base import FixtureStore
from shared.cache.memory import InMemoryStore
from shared.config import CacheBackend, Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)


async def build_store(settings: Settings | None = None) -> FixtureStore:
    """Create and connect the store named by ``SL_CACHE_BACKEND``."""
    settings = settings or get_settings()
    backend = settings.cache_backend

    if backend == CacheBackend.REDIS:
        from shared.cache.redis_store import RedisStore
        from shared.utils.redis_manager import RedisManager

        redis = RedisManager(settings)
        await redis.connect()
        store: FixtureStore = RedisStore(redis, retention_s=settings.cache_retention_s)
    elif backend == CacheBackend.DATABASE:
        from shared.cache.database_store import DatabaseStore
        from shared.utils.database import DatabaseManager

        db = DatabaseManager(settings)
        await db.connect()
        store = DatabaseStore(db)
    else:
        store = InMemoryStore()

    logger.info("fixture_store_ready", backend=store.backend_name)
    return store
