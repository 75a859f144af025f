"""Seeded subscription plan catalog. Upserted by name on startup."""

from typing import List

from src.core.service.entitlement.models import (
    UNLIMITED,
    AccountLevel,
    Currency,
    PlanFeature,
    PlanLimits,
    PlanPrice,
    PlanTier,
    SubscriptionPlan,
)


def _features(private: bool, export: bool) -> List[PlanFeature]:
    return [
        PlanFeature(name="Create Public Prompts", included=True),
        PlanFeature(name="Join Communities", included=True),
        PlanFeature(name="Image Uploads", included=True),
        PlanFeature(name="Private Prompts", included=private),
        PlanFeature(name="Export Features", included=export),
    ]


PLAN_CATALOG: List[SubscriptionPlan] = [
    SubscriptionPlan(
        name=PlanTier.BASIC,
        display_name="Starter Plan",
        description="Perfect for beginners starting with AI prompts",
        tier=1,
        is_free=True,
        level_required=AccountLevel.NEWBIE,
        pricing={
            Currency.USD: PlanPrice(monthly=0, yearly=0),
            Currency.NGN: PlanPrice(monthly=0, yearly=0),
        },
        limits=PlanLimits(
            prompts_limit=20,
            api_calls_limit=100,
            storage_limit_mb=100,
            max_image_size_mb=5,
            max_images_per_prompt=5,
            max_communities=2,
            can_create_private=True,
            can_export=False,
            max_prompt_length=1000,
        ),
        features=_features(private=True, export=False),
    ),
    SubscriptionPlan(
        name=PlanTier.STANDARD,
        display_name="Creator Plan",
        description="For content creators and regular users",
        tier=2,
        level_required=AccountLevel.CONTRIBUTOR,
        badge_color="#3B82F6",
        pricing={
            Currency.USD: PlanPrice(monthly=999, yearly=9999),
            Currency.NGN: PlanPrice(monthly=14985, yearly=149850),
        },
        limits=PlanLimits(
            prompts_limit=100,
            api_calls_limit=1000,
            storage_limit_mb=1024,
            max_image_size_mb=10,
            max_images_per_prompt=10,
            max_communities=5,
            can_create_private=True,
            can_export=True,
            max_prompt_length=5000,
        ),
        features=_features(private=True, export=True),
    ),
    SubscriptionPlan(
        name=PlanTier.PREMIUM,
        display_name="Pro Plan",
        description="For professionals and power users",
        tier=3,
        level_required=AccountLevel.PRO,
        badge_color="#8B5CF6",
        pricing={
            Currency.USD: PlanPrice(monthly=1999, yearly=19999),
            Currency.NGN: PlanPrice(monthly=29985, yearly=299850),
        },
        limits=PlanLimits(
            prompts_limit=UNLIMITED,
            api_calls_limit=10000,
            storage_limit_mb=5120,
            max_image_size_mb=20,
            max_images_per_prompt=20,
            max_communities=UNLIMITED,
            can_create_private=True,
            can_export=True,
            max_prompt_length=10000,
        ),
        features=_features(private=True, export=True),
    ),
]
