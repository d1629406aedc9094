"""Redis lease so only one process runs reconciler ticks against a shared store."""
from __future__ import annotations

import uuid

from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager

logger = get_logger(__name__)


class RedisLeaderLease:
    def __init__(self, redis: RedisManager, role: str, instance_id: str = "", ttl_s: int = 600) -> None:
        self._redis = redis
        self._role = role
        self._instance_id = instance_id or str(uuid.uuid4())[:8]
        self._ttl_s = ttl_s
        self.is_leader = False

    async def __call__(self) -> bool:
        """Acquire or renew leadership; False while another instance holds it."""
        if self.is_leader:
            renewed = await self._redis.renew_leader(self._role, self._instance_id, self._ttl_s)
            if not renewed:
                logger.warning("leadership_lost", role=self._role, instance_id=self._instance_id)
                self.is_leader = False
            return renewed

        acquired = await self._redis.try_acquire_leader(self._role, self._instance_id, self._ttl_s)
        if acquired:
            self.is_leader = True
            logger.info("leadership_acquired", role=self._role, instance_id=self._instance_id)
        return acquired

    async def release(self) -> None:
        if self.is_leader:
            await self._redis.release_leader(self._role, self._instance_id)
            self.is_leader = False
