"""
Subscription plan repository using SQLAlchemy ORM
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.service.entitlement.models import (
    AccountLevel,
    Currency,
    PlanFeature,
    PlanLimits,
    PlanPrice,
    PlanTier,
    SubscriptionPlan,
)
from src.core.utils.clock import ensure_utc
from src.infra.models import SubscriptionPlanModel

LIMIT_COLUMNS = (
    "prompts_limit",
    "api_calls_limit",
    "storage_limit_mb",
    "max_image_size_mb",
    "max_images_per_prompt",
    "max_communities",
    "can_create_private",
    "can_export",
    "max_prompt_length",
    "image_formats",
)


class PlanRepository:
    """Repository for the subscription plan catalog"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _model_to_entity(self, model: SubscriptionPlanModel) -> SubscriptionPlan:
        return SubscriptionPlan(
            id=model.id,
            name=PlanTier(model.name),
            display_name=model.display_name,
            description=model.description,
            tier=model.tier,
            is_free=model.is_free,
            is_active=model.is_active,
            level_required=AccountLevel(model.level_required),
            badge_color=model.badge_color,
            pricing={
                Currency(code): PlanPrice(**price)
                for code, price in (model.pricing or {}).items()
            },
            limits=PlanLimits(**{column: getattr(model, column) for column in LIMIT_COLUMNS}),
            features=[PlanFeature(**feature) for feature in (model.features or [])],
            created_at=ensure_utc(model.created_at),
        )

    def _apply(self, model: SubscriptionPlanModel, plan: SubscriptionPlan) -> None:
        model.display_name = plan.display_name
        model.description = plan.description
        model.tier = plan.tier
        model.is_free = plan.is_free
        model.is_active = plan.is_active
        model.level_required = plan.level_required.value
        model.badge_color = plan.badge_color
        model.pricing = {
            currency.value: price.model_dump() for currency, price in plan.pricing.items()
        }
        model.features = [feature.model_dump() for feature in plan.features]
        for column in LIMIT_COLUMNS:
            setattr(model, column, getattr(plan.limits, column))

    async def get_by_id(self, plan_id: UUID) -> Optional[SubscriptionPlan]:
        model = await self.session.get(SubscriptionPlanModel, plan_id)
        return self._model_to_entity(model) if model else None

    async def get_by_name(self, name: PlanTier) -> Optional[SubscriptionPlan]:
        stmt = select(SubscriptionPlanModel).where(SubscriptionPlanModel.name == PlanTier(name).value)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def get_free_plan(self) -> Optional[SubscriptionPlan]:
        stmt = (
            select(SubscriptionPlanModel)
            .where(SubscriptionPlanModel.is_free.is_(True), SubscriptionPlanModel.is_active.is_(True))
            .order_by(SubscriptionPlanModel.tier)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def list_active(self) -> List[SubscriptionPlan]:
        stmt = (
            select(SubscriptionPlanModel)
            .where(SubscriptionPlanModel.is_active.is_(True))
            .order_by(SubscriptionPlanModel.tier)
        )
        result = await self.session.execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def upsert(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        """Insert or update by plan name"""
        stmt = select(SubscriptionPlanModel).where(SubscriptionPlanModel.name == plan.name.value)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            model = SubscriptionPlanModel(name=plan.name.value)
            self.session.add(model)
        self._apply(model, plan)
        await self.session.flush()
        return self._model_to_entity(model)
