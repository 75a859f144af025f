"""Subscription plan catalog and per-account subscription management."""

from datetime import timedelta
from typing import List, Union
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import BadRequestError, EntitlementDenied, NotFoundError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.account import Account
from src.core.service.entitlement import checker
from src.core.service.entitlement.catalog import PLAN_CATALOG
from src.core.service.entitlement.entitlement_service import EntitlementService
from src.core.service.entitlement.models import (
    Currency,
    PlanTier,
    Quota,
    SubscriptionPlan,
    SubscriptionStatus,
)
from src.core.service.subscription.models import (
    ActivationResult,
    FeatureFlags,
    PlanView,
    UsageCounters,
    UsageSummary,
)
from src.core.utils.clock import Clock, utc_now
from src.infra.config.settings import settings
from src.infra.repository.account_repository import AccountRepository
from src.infra.repository.plan_repository import PlanRepository

logger = get_logger(__name__)


def _limit_or_unlimited(quota: Quota) -> Union[int, str]:
    return "unlimited" if quota.is_unlimited else quota.limit


class SubscriptionService:
    def __init__(self, session: AsyncSession, clock: Clock = utc_now):
        self.session = session
        self.clock = clock
        self.plans = PlanRepository(session)
        self.accounts = AccountRepository(session)
        self.entitlements = EntitlementService(session, clock)

    async def seed_plans(self) -> List[SubscriptionPlan]:
        """Idempotent upsert of the built-in plans"""
        seeded = [await self.plans.upsert(plan) for plan in PLAN_CATALOG]
        await self.session.commit()
        logger.info("Subscription plans seeded", extra={"plans": [p.name.value for p in seeded]})
        return seeded

    async def list_active_plans(self, currency: Currency) -> List[PlanView]:
        return [PlanView.of(plan, currency) for plan in await self.plans.list_active()]

    async def get_plan_by_name(self, name: PlanTier) -> SubscriptionPlan:
        plan = await self.plans.get_by_name(name)
        if plan is None:
            raise NotFoundError(f"Plan '{PlanTier(name).value}' not found")
        return plan

    async def activate_free_plan(self, account: Account) -> ActivationResult:
        if account.subscription.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL):
            raise BadRequestError("You already have an active subscription")

        plan = await self.plans.get_free_plan()
        if plan is None:
            raise NotFoundError("Free plan not available")

        gate = checker.can_subscribe(account.level, plan)
        if not gate.allowed:
            raise EntitlementDenied.from_decision(gate)

        now = self.clock()
        trial_ends = now + timedelta(days=settings.FREE_TRIAL_DAYS)
        await self.accounts.set_subscription(
            account.id,
            plan_id=plan.id,
            status=SubscriptionStatus.TRIAL,
            period_start=now,
            period_end=trial_ends,
            trial_ends_at=trial_ends,
        )
        await self.session.commit()

        logger.info(
            "Free plan activated",
            extra={"account_id": str(account.id), "plan": plan.name.value}
        )
        return ActivationResult(
            message="Free plan activated successfully!",
            plan=plan.display_name,
            trial_ends=trial_ends,
            limits=plan.limits,
            features=[feature for feature in plan.features if feature.included],
        )

    async def change_plan(self, account_id: UUID, plan_name: PlanTier) -> Account:
        """Point an account at another plan (admin operation, no payment involved)"""
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("Account not found")

        plan = await self.get_plan_by_name(plan_name)
        gate = checker.can_subscribe(account.level, plan)
        if not gate.allowed:
            raise EntitlementDenied.from_decision(gate)

        now = self.clock()
        await self.accounts.set_subscription(
            account.id,
            plan_id=plan.id,
            status=SubscriptionStatus.ACTIVE,
            period_start=now,
            period_end=now + timedelta(days=30),
        )
        await self.session.commit()

        logger.info(
            "Account plan changed",
            extra={"account_id": str(account.id), "plan": plan.name.value}
        )
        return await self.accounts.get_by_id(account.id)

    async def cancel_subscription(self, account: Account) -> None:
        if account.subscription.plan_id is None:
            raise NotFoundError("No active subscription found")

        await self.accounts.set_subscription(account.id, plan_id=None, status=SubscriptionStatus.CANCELED)
        await self.session.commit()
        logger.info("Subscription cancelled", extra={"account_id": str(account.id)})

    async def usage_summary(self, account: Account) -> UsageSummary:
        plan = await self.entitlements.plan_for(account)
        decision = await self.entitlements.can_create_content(account)
        storage = await self.entitlements.storage_summary(account)
        limits = plan.limits if plan else None

        return UsageSummary(
            plan=plan.display_name if plan else "No active plan",
            user_level=account.level,
            usage=UsageCounters(
                prompts_created=account.usage.prompts_created,
                prompts_this_month=account.usage.prompts_this_month,
                prompts_limit=_limit_or_unlimited(limits.prompts_quota) if limits else 0,
                api_calls=account.usage.api_calls,
                api_limit=_limit_or_unlimited(limits.api_calls_quota) if limits else 0,
                storage_used=account.usage.storage_used,
                storage_limit_mb=limits.storage_limit_mb if limits else settings.DEFAULT_STORAGE_LIMIT_MB,
            ),
            can_create_prompt=decision,
            features=FeatureFlags(
                can_create_private=checker.can_create_private_content(plan),
                can_export=bool(limits and limits.can_export),
                max_communities=_limit_or_unlimited(limits.communities_quota) if limits else 0,
            ),
            storage=storage,
        )
