from datetime import datetime, timedelta
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.core.logger.logger import get_logger
from src.core.service.auth.models.token import TokenBlacklist
from src.core.utils.clock import ensure_utc, utc_now
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class TokenStore:
    """Redis-based store for revoked token ids"""

    def __init__(self, redis_client: Redis):
        self.redis = redis_client
        self.key_prefix = "promptpalace:blacklist:"
        self.margin_minutes = settings.TOKEN_BLACKLIST_EXPIRE_MARGIN_MINUTES

    def _key(self, jti: str) -> str:
        return f"{self.key_prefix}{jti}"

    async def add_to_blacklist(
        self,
        jti: str,
        exp: datetime,
        reason: Optional[str] = None
    ) -> None:
        """
        Blacklist a token id until its expiry plus a safety margin.
        Already-expired tokens are skipped.
        """
        ttl = ensure_utc(exp) - utc_now() + timedelta(minutes=self.margin_minutes)
        ttl_seconds = int(ttl.total_seconds())

        if ttl_seconds <= 0:
            logger.info("Skipping blacklist for expired token", extra={"jti": jti})
            return

        entry = TokenBlacklist(jti=jti, exp=ensure_utc(exp), reason=reason)
        try:
            await self.redis.setex(self._key(jti), ttl_seconds, entry.model_dump_json())
        except RedisError as e:
            logger.error("Failed to blacklist token", extra={"jti": jti, "error": str(e)})
            raise

        logger.info(
            "Token blacklisted",
            extra={"jti": jti, "expires_in": ttl_seconds, "reason": reason}
        )

    async def get_entry(self, jti: str) -> Optional[TokenBlacklist]:
        raw = await self.redis.get(self._key(jti))
        return TokenBlacklist.model_validate_json(raw) if raw else None

    async def is_blacklisted(self, jti: str) -> bool:
        try:
            return bool(await self.redis.exists(self._key(jti)))
        except RedisError as e:
            # Fail open: an unreachable Redis must not lock every user out
            logger.warning(
                "Failed to check token blacklist, allowing token",
                extra={"jti": jti, "error": str(e), "error_type": type(e).__name__}
            )
            return False
