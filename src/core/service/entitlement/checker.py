"""
Entitlement checks.

Every function here compares a requested action against the plan limits and
the account's usage ledger and returns a Decision (or a bool for flags).
The only mutation is the lazy monthly reset applied by can_create_content.
"""

import math
from datetime import datetime
from typing import Optional

from src.core.service.auth.models.account import Account
from src.core.service.entitlement.models import (
    AccountLevel,
    Decision,
    StorageSummary,
    SubscriptionPlan,
)
from src.core.service.entitlement.usage_ledger import reset_if_new_month
from src.core.utils.clock import start_of_next_month

BYTES_PER_MB = 1024 * 1024
NO_PLAN_REASON = "No active subscription plan"


def level_meets(account_level: AccountLevel, required_level: AccountLevel) -> bool:
    return AccountLevel(account_level).rank >= AccountLevel(required_level).rank


def can_create_content(account: Account, plan: Optional[SubscriptionPlan], now: datetime) -> Decision:
    if plan is None:
        return Decision.deny(NO_PLAN_REASON)

    reset_if_new_month(account.usage, now)

    quota = plan.limits.prompts_quota
    current_usage = account.usage.prompts_this_month

    if quota.exhausted(current_usage):
        return Decision.deny(
            f"Monthly prompt limit reached ({quota.limit})",
            current_usage=current_usage,
            reset_date=start_of_next_month(now),
        )

    return Decision.allow(
        remaining=quota.remaining(current_usage),
        current_usage=current_usage,
    )


def can_upload_image(account: Account, plan: Optional[SubscriptionPlan], byte_size: int) -> Decision:
    if plan is None:
        return Decision.deny(NO_PLAN_REASON)

    limit_bytes = plan.limits.storage_limit_mb * BYTES_PER_MB
    storage_used = account.usage.storage_used

    if limit_bytes > 0 and storage_used + byte_size > limit_bytes:
        remaining_mb = math.ceil((limit_bytes - storage_used) / BYTES_PER_MB)
        return Decision.deny(
            f"Storage limit exceeded. {remaining_mb}MB remaining",
            current_usage=storage_used,
            remaining_bytes=max(0, limit_bytes - storage_used),
        )

    return Decision.allow(
        remaining_bytes=limit_bytes - storage_used,
        current_usage=storage_used,
    )


def can_create_private_content(plan: Optional[SubscriptionPlan]) -> bool:
    return bool(plan and plan.limits.can_create_private)


def can_join_community(plan: Optional[SubscriptionPlan], joined_count: int) -> Decision:
    if plan is None:
        return Decision.deny(NO_PLAN_REASON)

    quota = plan.limits.communities_quota
    if quota.exhausted(joined_count):
        return Decision.deny(
            f"Community limit reached ({quota.limit})",
            current_usage=joined_count,
        )
    return Decision.allow(remaining=quota.remaining(joined_count), current_usage=joined_count)


def can_subscribe(account_level: AccountLevel, plan: SubscriptionPlan) -> Decision:
    if not level_meets(account_level, plan.level_required):
        return Decision.deny(
            f"Your level ({AccountLevel(account_level).value}) is insufficient for this plan. "
            f"Required: {plan.level_required.value}"
        )
    return Decision.allow()


def check_content_level(account_level: AccountLevel, required_level: AccountLevel) -> Decision:
    if not level_meets(account_level, required_level):
        return Decision.deny(
            f"Your level ({AccountLevel(account_level).value}) is insufficient for this prompt. "
            f"Required: {AccountLevel(required_level).value}"
        )
    return Decision.allow()


def check_prompt_length(plan: Optional[SubscriptionPlan], text: str) -> Decision:
    if plan is None:
        return Decision.deny(NO_PLAN_REASON)
    max_length = plan.limits.max_prompt_length
    if max_length > 0 and len(text) > max_length:
        return Decision.deny(f"Prompt text exceeds your plan limit of {max_length} characters")
    return Decision.allow(remaining=max_length - len(text) if max_length > 0 else "unlimited")


def check_image_constraints(
    plan: Optional[SubscriptionPlan],
    byte_size: int,
    image_format: Optional[str],
    existing_count: int
) -> Decision:
    """Per-image limits: size, format and number of images on one prompt."""
    if plan is None:
        return Decision.deny(NO_PLAN_REASON)

    limits = plan.limits
    if limits.images_per_prompt_quota.exhausted(existing_count):
        return Decision.deny(f"Your plan allows at most {limits.max_images_per_prompt} images per prompt")

    max_bytes = limits.max_image_size_mb * BYTES_PER_MB
    if max_bytes > 0 and byte_size > max_bytes:
        return Decision.deny(f"Image exceeds the {limits.max_image_size_mb}MB size limit of your plan")

    fmt = (image_format or "").lower().lstrip(".")
    if limits.image_formats and fmt not in limits.image_formats:
        return Decision.deny(
            f"Image format '{fmt or 'unknown'}' is not allowed. Allowed: {', '.join(limits.image_formats)}"
        )

    return Decision.allow()


def storage_summary(account: Account, plan: Optional[SubscriptionPlan], default_limit_mb: int) -> StorageSummary:
    limit_mb = plan.limits.storage_limit_mb if plan else default_limit_mb
    limit = limit_mb * BYTES_PER_MB
    used = account.usage.storage_used
    remaining = limit - used
    percentage = (used / limit) * 100 if limit > 0 else 0.0

    return StorageSummary(
        used=used,
        limit=limit,
        used_percentage=f"{percentage:.1f}",
        remaining=remaining,
        formatted={
            "used": f"{used / BYTES_PER_MB:.2f}MB",
            "limit": f"{limit / BYTES_PER_MB:.0f}MB",
            "remaining": f"{remaining / BYTES_PER_MB:.2f}MB",
        },
    )
