"""
Entitlement domain models: account levels, plan catalog entries, quotas,
the embedded usage ledger and the allow/deny Decision.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from src.core.utils.clock import utc_now

# Stored/wire sentinel for "no limit" on count fields
UNLIMITED = -1


class AccountLevel(str, Enum):
    """Account level, declared in ascending order."""
    NEWBIE = "Newbie"
    CONTRIBUTOR = "Contributor"
    PRO = "Pro"
    EXPERT = "Expert"

    @property
    def rank(self) -> int:
        return list(AccountLevel).index(self)


class PlanTier(str, Enum):
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"


class Currency(str, Enum):
    USD = "USD"
    NGN = "NGN"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    INACTIVE = "inactive"
    TRIAL = "trial"


class Quota(BaseModel):
    """A count limit that is either a fixed number or unlimited."""
    limit: Optional[int] = None  # None means unlimited

    class Config:
        frozen = True

    @classmethod
    def limited(cls, limit: int) -> "Quota":
        return cls(limit=limit)

    @classmethod
    def unlimited(cls) -> "Quota":
        return cls(limit=None)

    @classmethod
    def from_raw(cls, raw: int) -> "Quota":
        return cls.unlimited() if raw == UNLIMITED else cls.limited(raw)

    @property
    def is_unlimited(self) -> bool:
        return self.limit is None

    def to_raw(self) -> int:
        return UNLIMITED if self.limit is None else self.limit

    def exhausted(self, used: int) -> bool:
        return self.limit is not None and used >= self.limit

    def remaining(self, used: int) -> Union[int, str]:
        if self.limit is None:
            return "unlimited"
        return max(0, self.limit - used)


class PlanPrice(BaseModel):
    monthly: int = 0  # minor units
    yearly: int = 0


class PlanFeature(BaseModel):
    name: str
    included: bool = True
    description: Optional[str] = None


class PlanLimits(BaseModel):
    prompts_limit: int = 10
    api_calls_limit: int = 100
    storage_limit_mb: int = 1000
    max_image_size_mb: int = 5
    max_images_per_prompt: int = 2
    max_communities: int = 1
    can_create_private: bool = False
    can_export: bool = False
    max_prompt_length: int = 1000
    image_formats: List[str] = Field(default_factory=lambda: ["jpg", "jpeg", "png", "gif", "webp"])

    @property
    def prompts_quota(self) -> Quota:
        return Quota.from_raw(self.prompts_limit)

    @property
    def api_calls_quota(self) -> Quota:
        return Quota.from_raw(self.api_calls_limit)

    @property
    def communities_quota(self) -> Quota:
        return Quota.from_raw(self.max_communities)

    @property
    def images_per_prompt_quota(self) -> Quota:
        return Quota.from_raw(self.max_images_per_prompt)


def _format_minor_units(amount: int, currency: Currency) -> str:
    symbol = "$" if currency == Currency.USD else "₦"
    return f"{symbol}{amount / 100:.2f}"


class SubscriptionPlan(BaseModel):
    """Subscription plan catalog entry"""
    id: Optional[UUID] = None
    name: PlanTier
    display_name: str
    description: str
    tier: int = Field(..., ge=1, le=3)
    is_free: bool = False
    is_active: bool = True
    level_required: AccountLevel = AccountLevel.NEWBIE
    badge_color: str = "#6B7280"
    pricing: Dict[Currency, PlanPrice] = Field(default_factory=dict)
    limits: PlanLimits = Field(default_factory=PlanLimits)
    features: List[PlanFeature] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    def price_for(self, currency: Currency) -> PlanPrice:
        return self.pricing.get(currency, PlanPrice())

    def formatted_pricing(self, currency: Currency) -> Dict[str, str]:
        price = self.price_for(currency)
        return {
            "monthly": _format_minor_units(price.monthly, currency),
            "yearly": _format_minor_units(price.yearly, currency),
        }


class UsageLedger(BaseModel):
    """Per-account usage counters embedded in the account."""
    prompts_created: int = Field(default=0, ge=0)
    prompts_this_month: int = Field(default=0, ge=0)
    api_calls: int = Field(default=0, ge=0)
    storage_used: int = Field(default=0, ge=0)  # bytes
    images_uploaded: int = Field(default=0, ge=0)
    last_reset: datetime = Field(default_factory=utc_now)


class Decision(BaseModel):
    """Outcome of an entitlement check. Denials carry a human-readable reason."""
    allowed: bool
    reason: Optional[str] = None
    remaining: Optional[Union[int, str]] = None
    remaining_bytes: Optional[int] = None
    current_usage: Optional[int] = None
    reset_date: Optional[datetime] = None

    @classmethod
    def allow(cls, **kwargs) -> "Decision":
        return cls(allowed=True, **kwargs)

    @classmethod
    def deny(cls, reason: str, **kwargs) -> "Decision":
        return cls(allowed=False, reason=reason, **kwargs)


class StorageSummary(BaseModel):
    used: int
    limit: int
    used_percentage: str
    remaining: int
    formatted: Dict[str, str]
