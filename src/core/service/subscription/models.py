from datetime import datetime
from typing import Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel

from src.core.service.entitlement.models import (
    AccountLevel,
    Currency,
    Decision,
    PlanFeature,
    PlanLimits,
    PlanTier,
    StorageSummary,
    SubscriptionPlan,
)


class PlanPricingView(BaseModel):
    monthly: int
    yearly: int
    formatted: Dict[str, str]


class PlanView(BaseModel):
    """Plan priced in the caller's preferred currency"""
    id: Optional[UUID] = None
    name: PlanTier
    display_name: str
    description: str
    tier: int
    is_free: bool
    level_required: AccountLevel
    badge_color: str
    limits: PlanLimits
    features: List[PlanFeature]
    pricing: PlanPricingView
    currency: Currency

    @classmethod
    def of(cls, plan: SubscriptionPlan, currency: Currency) -> "PlanView":
        price = plan.price_for(currency)
        return cls(
            id=plan.id,
            name=plan.name,
            display_name=plan.display_name,
            description=plan.description,
            tier=plan.tier,
            is_free=plan.is_free,
            level_required=plan.level_required,
            badge_color=plan.badge_color,
            limits=plan.limits,
            features=plan.features,
            pricing=PlanPricingView(
                monthly=price.monthly,
                yearly=price.yearly,
                formatted=plan.formatted_pricing(currency),
            ),
            currency=currency,
        )


class ActivationResult(BaseModel):
    success: bool = True
    message: str
    plan: str
    trial_ends: datetime
    limits: PlanLimits
    features: List[PlanFeature]


class PlanChangeRequest(BaseModel):
    plan_name: PlanTier


class UsageCounters(BaseModel):
    prompts_created: int
    prompts_this_month: int
    prompts_limit: Union[int, str]
    api_calls: int
    api_limit: Union[int, str]
    storage_used: int
    storage_limit_mb: int


class FeatureFlags(BaseModel):
    can_create_private: bool
    can_export: bool
    max_communities: Union[int, str]


class UsageSummary(BaseModel):
    plan: str
    user_level: AccountLevel
    usage: UsageCounters
    can_create_prompt: Decision
    features: FeatureFlags
    storage: StorageSummary
