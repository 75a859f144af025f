"""
Account model for persistent database storage
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.core.service.entitlement.models import (
    AccountLevel,
    Currency,
    SubscriptionStatus,
    UsageLedger,
)


class AccountRole(str, Enum):
    USER = "user"
    PROMPT_CREATOR = "prompt-creator"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class Profession(str, Enum):
    DEVELOPER = "Developer"
    MARKETER = "Marketer"
    DESIGNER = "Designer"
    CONTENT_WRITER = "Content Writer"
    OTHER = "Other"


class AccountSubscription(BaseModel):
    plan_id: Optional[UUID] = None
    status: SubscriptionStatus = SubscriptionStatus.INACTIVE
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None
    cancel_at_period_end: bool = False


class Account(BaseModel):
    """Account database model"""
    id: UUID
    username: str
    email: str
    name: str = ""
    avatar: str = ""
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    profession: Profession = Profession.OTHER
    password_hash: Optional[str] = None
    is_email_verified: bool = False
    is_blocked: bool = False
    role: AccountRole = AccountRole.USER
    level: AccountLevel = AccountLevel.NEWBIE
    currency_preference: Currency = Currency.USD
    subscription: AccountSubscription = Field(default_factory=AccountSubscription)
    usage: UsageLedger = Field(default_factory=UsageLedger)
    reward_points: int = Field(default=0, ge=0)
    total_rewards_given: int = Field(default=0, ge=0)
    total_rewards_received: int = Field(default=0, ge=0)
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role in (AccountRole.ADMIN, AccountRole.SUPERADMIN)


class AccountPublic(BaseModel):
    """Account fields safe to return to clients"""
    id: UUID
    username: str
    email: str
    name: str
    avatar: str
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    profession: Profession
    role: AccountRole
    level: AccountLevel
    currency_preference: Currency
    is_email_verified: bool
    reward_points: int
    total_rewards_given: int
    total_rewards_received: int
    subscription: AccountSubscription
    created_at: Optional[datetime] = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountPublic":
        return cls(**account.model_dump(exclude={"password_hash"}))
