"""
Entitlement service.

Loads the account's plan, runs the pure checks from checker.py and persists
the lazy monthly reset through an atomic conditional update. The require_*
helpers raise EntitlementDenied so request handlers can run checks up front.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import EntitlementDenied
from src.core.logger.logger import get_logger
from src.core.service.auth.models.account import Account
from src.core.service.entitlement import checker
from src.core.service.entitlement.models import AccountLevel, Decision, StorageSummary, SubscriptionPlan
from src.core.utils.clock import Clock, utc_now
from src.infra.config.settings import settings
from src.infra.repository.account_repository import AccountRepository
from src.infra.repository.community_repository import CommunityRepository
from src.infra.repository.plan_repository import PlanRepository

logger = get_logger(__name__)


class EntitlementService:
    def __init__(self, session: AsyncSession, clock: Clock = utc_now):
        self.session = session
        self.clock = clock
        self.accounts = AccountRepository(session)
        self.plans = PlanRepository(session)
        self.communities = CommunityRepository(session)

    async def plan_for(self, account: Account) -> Optional[SubscriptionPlan]:
        plan_id: Optional[UUID] = account.subscription.plan_id
        if plan_id is None:
            return None
        plan = await self.plans.get_by_id(plan_id)
        if plan is None:
            logger.warning(
                "Account references a missing plan",
                extra={"account_id": str(account.id), "plan_id": str(plan_id)}
            )
        return plan

    def _log_denial(self, account: Account, action: str, decision: Decision) -> None:
        logger.info(
            "Entitlement denied",
            extra={"account_id": str(account.id), "action": action, "reason": decision.reason}
        )

    async def can_create_content(self, account: Account) -> Decision:
        now = self.clock()
        plan = await self.plan_for(account)
        decision = checker.can_create_content(account, plan, now)
        if plan is not None and await self.accounts.apply_monthly_reset(account.id, now):
            await self.session.commit()
        if not decision.allowed:
            self._log_denial(account, "create_content", decision)
        return decision

    async def can_upload_image(self, account: Account, byte_size: int) -> Decision:
        plan = await self.plan_for(account)
        decision = checker.can_upload_image(account, plan, byte_size)
        if not decision.allowed:
            self._log_denial(account, "upload_image", decision)
        return decision

    async def can_join_community(self, account: Account) -> Decision:
        plan = await self.plan_for(account)
        joined = await self.communities.count_memberships(account.id)
        decision = checker.can_join_community(plan, joined)
        if not decision.allowed:
            self._log_denial(account, "join_community", decision)
        return decision

    async def storage_summary(self, account: Account) -> StorageSummary:
        plan = await self.plan_for(account)
        return checker.storage_summary(account, plan, settings.DEFAULT_STORAGE_LIMIT_MB)

    # Raising variants used by request handlers

    @staticmethod
    def require(decision: Decision) -> Decision:
        if not decision.allowed:
            raise EntitlementDenied.from_decision(decision)
        return decision

    async def require_create_content(self, account: Account) -> Decision:
        return self.require(await self.can_create_content(account))

    async def require_join_community(self, account: Account) -> Decision:
        return self.require(await self.can_join_community(account))

    def require_level(self, account: Account, required_level: AccountLevel) -> None:
        decision = checker.check_content_level(account.level, required_level)
        if not decision.allowed:
            self._log_denial(account, "content_level", decision)
        self.require(decision)
