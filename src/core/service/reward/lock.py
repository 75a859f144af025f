import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.core.exceptions.base import ConflictError
from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

POLL_INTERVAL_SECONDS = 0.05


class RewardLock:
    """
    Redis-based per-(giver, trend) lock held around reward validation and
    write, so two concurrent gives cannot both pass the daily-limit and
    cooldown checks.

    When Redis is unreachable the lock degrades to a no-op and the database
    transaction is the only guard left.
    """

    def __init__(self, redis_client: Optional[Redis]):
        self.redis = redis_client
        self.key_prefix = "lock:reward:"
        self.timeout_ms = settings.REWARD_LOCK_TIMEOUT_SECONDS * 1000
        self.blocking_seconds = settings.REWARD_LOCK_BLOCKING_SECONDS

    def _key(self, giver_id: UUID, trend_id: UUID) -> str:
        return f"{self.key_prefix}{giver_id}:{trend_id}"

    async def _acquire(self, key: str, token: str) -> bool:
        deadline = time.monotonic() + self.blocking_seconds
        while True:
            if await self.redis.set(key, token, nx=True, px=self.timeout_ms):
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(POLL_INTERVAL_SECONDS)

    async def _release(self, key: str, token: str) -> None:
        try:
            # Only the holder deletes; an expired lock may belong to someone else now
            if await self.redis.get(key) in (token, token.encode()):
                await self.redis.delete(key)
        except RedisError as e:
            logger.warning(
                "Failed to release reward lock",
                extra={"key": key, "error": str(e)}
            )

    @asynccontextmanager
    async def hold(self, giver_id: UUID, trend_id: UUID) -> AsyncIterator[bool]:
        """Yields True when the lock is held, False when running unlocked."""
        if self.redis is None:
            yield False
            return

        key = self._key(giver_id, trend_id)
        token = uuid.uuid4().hex

        try:
            acquired = await self._acquire(key, token)
        except RedisError as e:
            logger.warning(
                "Reward lock unavailable, continuing without it",
                extra={"key": key, "error": str(e), "error_type": type(e).__name__}
            )
            acquired = None

        if acquired is None:
            yield False
            return

        if not acquired:
            logger.info("Reward lock busy", extra={"key": key})
            raise ConflictError(
                "Another reward from you on this trend is being processed. Please retry.",
                details={"trend_id": str(trend_id)}
            )

        try:
            yield True
        finally:
            await self._release(key, token)
