"""Models for the medal reward ledger."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, Field

from src.core.utils.clock import utc_now

MEDAL_SUMMARY_KEYS = ("gold", "silver", "bronze", "platinum", "diamond")
OTHER_MEDAL = "other"


class MedalTier(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def rank(self) -> int:
        return list(MedalTier).index(self)


class RewardDirection(str, Enum):
    GIVEN = "given"
    RECEIVED = "received"


class RewardType(BaseModel):
    """Medal catalog entry"""
    id: Optional[UUID] = None
    name: str
    display_name: str
    tier: MedalTier = MedalTier.COMMON
    value: int = Field(..., ge=1)
    color: str = "#6b7280"
    icon: str
    description: str
    is_active: bool = True
    daily_limit: Optional[int] = Field(default=None, ge=1)
    cooldown_minutes: int = Field(default=0, ge=0)


class MedalSnapshot(BaseModel):
    """Copy of the medal fields at the time the reward was given"""
    name: str
    tier: MedalTier
    color: str
    icon: str

    @classmethod
    def of(cls, reward_type: RewardType) -> "MedalSnapshot":
        return cls(
            name=reward_type.name,
            tier=reward_type.tier,
            color=reward_type.color,
            icon=reward_type.icon,
        )


class Reward(BaseModel):
    """One point transfer recorded on a trend"""
    id: Optional[UUID] = None
    trend_id: UUID
    giver_id: UUID
    reward_type_id: UUID
    amount: int = Field(..., ge=1)
    message: str = Field(default="", max_length=200)
    is_anonymous: bool = False
    medal: MedalSnapshot
    created_at: datetime = Field(default_factory=utc_now)


class TopReward(BaseModel):
    """A giver's cumulative contribution. The id is withheld for givers who only gave anonymously."""
    giver_id: Optional[UUID] = None
    amount: int
    medal: Optional[str] = None
    is_anonymous: bool = False


class FeaturedMedal(BaseModel):
    reward_type_id: UUID
    count: int
    last_given: Optional[datetime] = None


class TrendAggregates(BaseModel):
    medal_summary: Dict[str, int]
    total_reward_value: int = 0
    reward_count: int = 0
    top_rewards: List[TopReward] = Field(default_factory=list)
    featured_medals: List[FeaturedMedal] = Field(default_factory=list)


class RewardHistoryEntry(BaseModel):
    id: Optional[UUID] = None
    account_id: UUID
    trend_id: UUID
    reward_type_id: Optional[UUID] = None
    medal_name: Optional[str] = None
    amount: int
    direction: RewardDirection
    created_at: datetime = Field(default_factory=utc_now)


class GiveRewardRequest(BaseModel):
    reward_type_id: UUID = Field(..., description="Medal to give")
    message: Optional[str] = Field(default=None, max_length=200)
    is_anonymous: bool = False


class GiveRewardResponse(BaseModel):
    success: bool = True
    message: str
    reward: Reward
    reward_type: RewardType
    aggregates: TrendAggregates
    user_points: int


class MedalBreakdown(BaseModel):
    count: int = 0
    total_value: int = 0
    reward_type: Optional[RewardType] = None


class RewardView(BaseModel):
    """Reward as shown to clients; anonymous givers are hidden"""
    id: Optional[UUID] = None
    giver_id: Optional[UUID] = None
    reward_type_id: UUID
    amount: int
    message: str
    is_anonymous: bool
    medal: MedalSnapshot
    created_at: datetime

    @classmethod
    def of(cls, reward: Reward) -> "RewardView":
        return cls(
            id=reward.id,
            giver_id=None if reward.is_anonymous else reward.giver_id,
            reward_type_id=reward.reward_type_id,
            amount=reward.amount,
            message=reward.message,
            is_anonymous=reward.is_anonymous,
            medal=reward.medal,
            created_at=reward.created_at,
        )


class TrendRewardSummary(BaseModel):
    trend_id: UUID
    summary: Dict[str, int]
    total_value: int
    total_count: int
    breakdown: Dict[str, MedalBreakdown]
    featured_medals: List[FeaturedMedal]
    top_contributors: List[TopReward]
    rewards: List[RewardView] = Field(default_factory=list)


class UserRewardStats(BaseModel):
    account_id: UUID
    username: str
    avatar: str = ""
    points: int
    total_given: int
    total_received: int
    medal_stats: Dict[RewardDirection, Dict[str, MedalBreakdown]]
    recent_history: List[RewardHistoryEntry]


class LeaderboardEntry(BaseModel):
    account_id: UUID
    username: str
    avatar: str = ""
    total_rewards_received: int
    total_rewards_given: int
    medal_counts: Dict[str, int]
    top_medal: Tuple[str, int]


class Leaderboard(BaseModel):
    leaderboard: List[LeaderboardEntry]
    type: RewardDirection
    medal_type: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)
