"""
Community, trend and comment models
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.core.service.reward.ledger import empty_medal_summary
from src.core.service.reward.models import TrendAggregates
from src.core.utils.pagination import Page


class Community(BaseModel):
    id: UUID
    name: str
    description: str
    creator_id: UUID
    is_public: bool = True
    tags: List[str] = Field(default_factory=list)
    member_count: int = 0
    trend_count: int = 0
    created_at: Optional[datetime] = None


class Trend(BaseModel):
    """User-authored content item that can be voted on and rewarded"""
    id: UUID
    community_id: UUID
    author_id: UUID
    title: str
    content: str
    tags: List[str] = Field(default_factory=list)
    vote_score: int = 0
    upvote_count: int = 0
    downvote_count: int = 0
    comment_count: int = 0
    views: int = 0
    is_active: bool = True
    aggregates: TrendAggregates = Field(
        default_factory=lambda: TrendAggregates(medal_summary=empty_medal_summary())
    )
    last_reward_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class Comment(BaseModel):
    id: UUID
    trend_id: UUID
    author_id: UUID
    parent_id: Optional[UUID] = None
    content: str
    depth: int = 0
    created_at: Optional[datetime] = None


class TrendSort(str, Enum):
    HOT = "hot"
    NEW = "new"
    TOP = "top"


class VoteDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class CreateCommunityRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=50)
    description: str = Field(..., min_length=1, max_length=500)
    is_public: bool = True
    tags: List[str] = Field(default_factory=list)


class CreateTrendRequest(BaseModel):
    community_id: UUID
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1, max_length=40000)
    tags: List[str] = Field(default_factory=list)


class CreateCommentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)
    parent_id: Optional[UUID] = None


class VoteResult(BaseModel):
    trend_id: UUID
    vote_score: int
    upvote_count: int
    downvote_count: int
    user_vote: Optional[VoteDirection] = None


class TrendDetail(BaseModel):
    trend: Trend
    comments: List[Comment] = Field(default_factory=list)


class CommunityList(BaseModel):
    communities: List[Community]
    pagination: Page


class TrendList(BaseModel):
    trends: List[Trend]
    pagination: Page
