"""
Account repository using SQLAlchemy ORM.

Counter mutations are single UPDATE statements evaluated by the database,
never read-modify-write. Methods flush but never commit; the calling
service owns the transaction.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy import case, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.service.auth.models.account import (
    Account,
    AccountRole,
    AccountSubscription,
    Profession,
)
from src.core.service.entitlement.models import (
    AccountLevel,
    Currency,
    SubscriptionStatus,
    UsageLedger,
)
from src.core.utils.clock import ensure_utc, start_of_month, start_of_next_month, utc_now
from src.infra.models import RewardHistoryModel, UserModel
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

PROFILE_FIELDS = {"name", "avatar", "bio", "location", "website", "profession", "currency_preference"}


class AccountRepository:
    """Repository for account database operations using SQLAlchemy ORM"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _model_to_entity(self, model: UserModel) -> Account:
        """Convert SQLAlchemy model to Pydantic entity"""
        return Account(
            id=model.id,
            username=model.username,
            email=model.email,
            name=model.name or "",
            avatar=model.avatar or "",
            bio=model.bio,
            location=model.location,
            website=model.website,
            profession=Profession(model.profession),
            password_hash=model.password_hash,
            is_email_verified=model.is_email_verified,
            is_blocked=model.is_blocked,
            role=AccountRole(model.role),
            level=AccountLevel(model.level),
            currency_preference=Currency(model.currency_preference),
            subscription=AccountSubscription(
                plan_id=model.plan_id,
                status=SubscriptionStatus(model.subscription_status),
                current_period_start=ensure_utc(model.current_period_start),
                current_period_end=ensure_utc(model.current_period_end),
                trial_ends_at=ensure_utc(model.trial_ends_at),
                cancel_at_period_end=model.cancel_at_period_end,
            ),
            usage=UsageLedger(
                prompts_created=model.prompts_created,
                prompts_this_month=model.prompts_this_month,
                api_calls=model.api_calls,
                storage_used=model.storage_used,
                images_uploaded=model.images_uploaded,
                last_reset=ensure_utc(model.usage_last_reset),
            ),
            reward_points=model.reward_points,
            total_rewards_given=model.total_rewards_given,
            total_rewards_received=model.total_rewards_received,
            last_login_at=ensure_utc(model.last_login_at),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )

    async def _get_model(self, *criteria) -> Optional[UserModel]:
        stmt = select(UserModel).where(*criteria).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _update(self, account_id: UUID, **values) -> int:
        stmt = (
            update(UserModel)
            .where(UserModel.id == account_id)
            .values(updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        model = await self._get_model(UserModel.id == account_id)
        return self._model_to_entity(model) if model else None

    async def get_by_email(self, email: str) -> Optional[Account]:
        model = await self._get_model(UserModel.email == email.lower())
        return self._model_to_entity(model) if model else None

    async def get_by_login(self, identifier: str) -> Optional[Account]:
        """Look up by email or username"""
        model = await self._get_model(
            or_(UserModel.email == identifier.lower(), UserModel.username == identifier)
        )
        return self._model_to_entity(model) if model else None

    async def find_conflict(self, username: str, email: str) -> Optional[str]:
        """Return which unique field is already taken, if any. Email is reported first."""
        if await self._get_model(UserModel.email == email.lower()) is not None:
            return "email"
        if await self._get_model(UserModel.username == username) is not None:
            return "username"
        return None

    async def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        reward_points: int,
        otp_hash: Optional[str] = None,
        otp_expires_at: Optional[datetime] = None,
        role: AccountRole = AccountRole.USER,
        is_email_verified: bool = False
    ) -> Account:
        model = UserModel(
            username=username,
            email=email.lower(),
            name=username,
            password_hash=password_hash,
            reward_points=reward_points,
            otp_hash=otp_hash,
            otp_expires_at=otp_expires_at,
            role=role.value,
            is_email_verified=is_email_verified,
            usage_last_reset=utc_now(),
        )
        self.session.add(model)
        await self.session.flush()

        logger.info(
            "New account created in database",
            extra={"account_id": str(model.id), "username": username}
        )
        return self._model_to_entity(model)

    # OTP and credentials

    async def get_otp(self, account_id: UUID, purpose: str) -> Dict[str, Any]:
        model = await self._get_model(UserModel.id == account_id)
        if model is None:
            return {"hash": None, "expires_at": None}
        if purpose == "reset":
            return {"hash": model.reset_otp_hash, "expires_at": ensure_utc(model.reset_otp_expires_at)}
        return {"hash": model.otp_hash, "expires_at": ensure_utc(model.otp_expires_at)}

    async def set_otp(self, account_id: UUID, otp_hash: Optional[str], expires_at: Optional[datetime]) -> None:
        await self._update(account_id, otp_hash=otp_hash, otp_expires_at=expires_at)

    async def set_reset_otp(self, account_id: UUID, otp_hash: Optional[str], expires_at: Optional[datetime]) -> None:
        await self._update(account_id, reset_otp_hash=otp_hash, reset_otp_expires_at=expires_at)

    async def mark_email_verified(self, account_id: UUID) -> None:
        await self._update(account_id, is_email_verified=True, otp_hash=None, otp_expires_at=None)

    async def update_password(self, account_id: UUID, password_hash: str) -> None:
        await self._update(
            account_id,
            password_hash=password_hash,
            reset_otp_hash=None,
            reset_otp_expires_at=None,
        )

    async def record_login(self, account_id: UUID, now: datetime) -> None:
        await self._update(account_id, last_login_at=now)

    async def update_profile(self, account_id: UUID, fields: Dict[str, Any]) -> None:
        values = {}
        for key, value in fields.items():
            if key not in PROFILE_FIELDS or value is None:
                continue
            values[key] = value.value if hasattr(value, "value") else value
        if values:
            await self._update(account_id, **values)

    # Subscription

    async def set_subscription(
        self,
        account_id: UUID,
        plan_id: Optional[UUID],
        status: SubscriptionStatus,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
        trial_ends_at: Optional[datetime] = None
    ) -> None:
        values: Dict[str, Any] = {
            "plan_id": plan_id,
            "subscription_status": status.value,
            "current_period_start": period_start,
            "current_period_end": period_end,
            "trial_ends_at": trial_ends_at,
            "cancel_at_period_end": False,
        }
        await self._update(account_id, **values)

    # Usage ledger

    async def record_content_created(self, account_id: UUID) -> None:
        await self._update(
            account_id,
            prompts_created=UserModel.prompts_created + 1,
            prompts_this_month=UserModel.prompts_this_month + 1,
        )

    async def record_image_uploaded(self, account_id: UUID, byte_size: int) -> None:
        await self._update(
            account_id,
            storage_used=UserModel.storage_used + byte_size,
            images_uploaded=UserModel.images_uploaded + 1,
        )

    async def release_image_storage(self, account_id: UUID, byte_size: int) -> None:
        await self._update(
            account_id,
            storage_used=case(
                (UserModel.storage_used > byte_size, UserModel.storage_used - byte_size),
                else_=0,
            ),
        )

    async def apply_monthly_reset(self, account_id: UUID, now: datetime) -> bool:
        """
        Zero the monthly counters only if the stored last reset lies outside
        the month of `now`. Concurrent callers race on the WHERE clause, so
        at most one of them applies the reset.
        """
        stmt = (
            update(UserModel)
            .where(
                UserModel.id == account_id,
                or_(
                    UserModel.usage_last_reset < start_of_month(now),
                    UserModel.usage_last_reset >= start_of_next_month(now),
                ),
            )
            .values(
                prompts_this_month=0,
                images_uploaded=0,
                api_calls=0,
                usage_last_reset=ensure_utc(now),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        applied = result.rowcount == 1
        if applied:
            logger.info("Monthly usage reset applied", extra={"account_id": str(account_id)})
        return applied

    # Reward balance

    async def debit_points(self, account_id: UUID, amount: int) -> bool:
        """Debit only if the balance covers the amount; False means nothing changed."""
        stmt = (
            update(UserModel)
            .where(UserModel.id == account_id, UserModel.reward_points >= amount)
            .values(
                reward_points=UserModel.reward_points - amount,
                total_rewards_given=UserModel.total_rewards_given + amount,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def credit_points(self, account_id: UUID, amount: int) -> bool:
        rows = await self._update(
            account_id,
            reward_points=UserModel.reward_points + amount,
            total_rewards_received=UserModel.total_rewards_received + amount,
        )
        return rows == 1

    async def leaderboard_candidates(self, medal_filter: Optional[str], limit: int) -> List[Account]:
        stmt = select(UserModel).where(UserModel.total_rewards_received > 0)
        if medal_filter:
            stmt = stmt.where(
                exists().where(
                    RewardHistoryModel.account_id == UserModel.id,
                    RewardHistoryModel.medal_name == medal_filter,
                )
            )
        stmt = (
            stmt.order_by(UserModel.total_rewards_received.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]
