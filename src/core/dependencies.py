"""
FastAPI dependency injection functions.
Clean, maintainable dependency resolution using FastAPI's native DI system.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.authentication.jwt_bearer import bearer_scheme, optional_bearer_scheme
from src.core.exceptions.base import ForbiddenError, ServiceErrorCode, UnauthorizedError
from src.core.logger.logger import get_logger
from src.core.service.auth.account_service import AccountService
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.account import Account
from src.core.service.auth.models.token import TokenType
from src.core.service.community.community_service import CommunityService
from src.core.service.community.trend_service import TrendService
from src.core.service.entitlement.entitlement_service import EntitlementService
from src.core.service.mail.mail_service import MailService
from src.core.service.media.image_service import ImageHostingService
from src.core.service.prompt.prompt_service import PromptService
from src.core.service.reward.reward_service import RewardService
from src.core.service.subscription.subscription_service import SubscriptionService
from src.infra.config.redis import get_redis
from src.infra.database import get_async_session
from src.infra.repository.account_repository import AccountRepository

logger = get_logger(__name__)


async def get_redis_client() -> Redis:
    """Get Redis client dependency."""
    return await get_redis()


async def get_jwt_service(redis_client: Redis = Depends(get_redis_client)) -> JWTService:
    """Get JWT service with Redis dependency."""
    return JWTService(redis_client)


def get_mail_service() -> MailService:
    return MailService()


def get_image_service() -> ImageHostingService:
    return ImageHostingService()


async def get_account_service(
    session: AsyncSession = Depends(get_async_session),
    jwt_service: JWTService = Depends(get_jwt_service),
    mail_service: MailService = Depends(get_mail_service)
) -> AccountService:
    return AccountService(session, jwt_service, mail_service)


async def get_subscription_service(session: AsyncSession = Depends(get_async_session)) -> SubscriptionService:
    return SubscriptionService(session)


async def get_entitlement_service(session: AsyncSession = Depends(get_async_session)) -> EntitlementService:
    return EntitlementService(session)


async def get_reward_service(
    session: AsyncSession = Depends(get_async_session),
    redis_client: Redis = Depends(get_redis_client)
) -> RewardService:
    """Get reward service; Redis backs the per-giver lock."""
    return RewardService(session, redis_client)


async def get_prompt_service(
    session: AsyncSession = Depends(get_async_session),
    image_service: ImageHostingService = Depends(get_image_service)
) -> PromptService:
    return PromptService(session, image_service)


async def get_community_service(session: AsyncSession = Depends(get_async_session)) -> CommunityService:
    return CommunityService(session)


async def get_trend_service(session: AsyncSession = Depends(get_async_session)) -> TrendService:
    return TrendService(session)


async def _load_account(token: str, jwt_service: JWTService, session: AsyncSession) -> Account:
    payload = await jwt_service.verify_token(token, TokenType.ACCESS)
    try:
        account_id = UUID(payload.sub)
    except ValueError:
        raise UnauthorizedError("Invalid token subject")

    account = await AccountRepository(session).get_by_id(account_id)
    if account is None:
        logger.warning("Token for unknown account", extra={"account_id": payload.sub})
        raise UnauthorizedError("Account no longer exists")
    if account.is_blocked:
        raise ForbiddenError("Your account is blocked.", code=ServiceErrorCode.ACCOUNT_BLOCKED)
    return account


async def get_current_account(
    token: str = Depends(bearer_scheme),
    jwt_service: JWTService = Depends(get_jwt_service),
    session: AsyncSession = Depends(get_async_session)
) -> Account:
    """Verify the bearer access token and load the account it names."""
    return await _load_account(token, jwt_service, session)


async def get_optional_account(
    token: Optional[str] = Depends(optional_bearer_scheme),
    jwt_service: JWTService = Depends(get_jwt_service),
    session: AsyncSession = Depends(get_async_session)
) -> Optional[Account]:
    if token is None:
        return None
    return await _load_account(token, jwt_service, session)


async def require_admin(account: Account = Depends(get_current_account)) -> Account:
    if not account.is_admin:
        logger.info("Admin route refused", extra={"account_id": str(account.id)})
        raise ForbiddenError("Admin access required")
    return account
