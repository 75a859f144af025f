"""
SQLAlchemy ORM models for database tables
"""

from datetime import datetime, timezone
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import declarative_base
import uuid

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    """SQLAlchemy ORM model for users table (account, usage ledger, reward balance)"""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(30), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(100), default="", nullable=False)
    avatar = Column(String(500), default="", nullable=False)
    bio = Column(String(500), nullable=True)
    location = Column(String(100), nullable=True)
    website = Column(String(255), nullable=True)
    profession = Column(String(30), default="Other", nullable=False)
    password_hash = Column(String(255), nullable=True)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)
    role = Column(String(20), default="user", nullable=False)
    level = Column(String(20), default="Newbie", nullable=False)
    currency_preference = Column(String(3), default="USD", nullable=False)

    otp_hash = Column(String(64), nullable=True)
    otp_expires_at = Column(DateTime(timezone=True), nullable=True)
    reset_otp_hash = Column(String(64), nullable=True)
    reset_otp_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Subscription
    plan_id = Column(Uuid, ForeignKey("subscription_plans.id"), nullable=True)
    subscription_status = Column(String(20), default="inactive", nullable=False)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)

    # Usage ledger
    prompts_created = Column(Integer, default=0, nullable=False)
    prompts_this_month = Column(Integer, default=0, nullable=False)
    api_calls = Column(Integer, default=0, nullable=False)
    storage_used = Column(BigInteger, default=0, nullable=False)
    images_uploaded = Column(Integer, default=0, nullable=False)
    usage_last_reset = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Reward balance
    reward_points = Column(Integer, default=0, nullable=False)
    total_rewards_given = Column(Integer, default=0, nullable=False)
    total_rewards_received = Column(Integer, default=0, nullable=False)

    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index('idx_users_total_received', 'total_rewards_received'),
        Index('idx_users_plan', 'plan_id'),
    )

    def __repr__(self):
        return f"<User(username='{self.username}', level='{self.level}', points={self.reward_points})>"


class SubscriptionPlanModel(Base):
    """SQLAlchemy ORM model for subscription_plans table"""

    __tablename__ = "subscription_plans"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(20), nullable=False, unique=True)
    display_name = Column(String(50), nullable=False)
    description = Column(String(500), nullable=False)
    tier = Column(Integer, nullable=False)
    is_free = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    level_required = Column(String(20), default="Newbie", nullable=False)
    badge_color = Column(String(20), default="#6B7280", nullable=False)
    pricing = Column(JSON, default=dict, nullable=False)
    features = Column(JSON, default=list, nullable=False)

    # Limits, -1 means unlimited on count columns
    prompts_limit = Column(Integer, nullable=False)
    api_calls_limit = Column(Integer, nullable=False)
    storage_limit_mb = Column(Integer, nullable=False)
    max_image_size_mb = Column(Integer, nullable=False)
    max_images_per_prompt = Column(Integer, nullable=False)
    max_communities = Column(Integer, nullable=False)
    can_create_private = Column(Boolean, default=False, nullable=False)
    can_export = Column(Boolean, default=False, nullable=False)
    max_prompt_length = Column(Integer, nullable=False)
    image_formats = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<SubscriptionPlan(name='{self.name}', tier={self.tier})>"


class RewardTypeModel(Base):
    """SQLAlchemy ORM model for reward_types table (medal catalog)"""

    __tablename__ = "reward_types"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(30), nullable=False, unique=True)
    display_name = Column(String(50), nullable=False)
    tier = Column(String(20), default="common", nullable=False)
    value = Column(Integer, nullable=False)
    color = Column(String(20), default="#6b7280", nullable=False)
    icon = Column(String(20), nullable=False)
    description = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    daily_limit = Column(Integer, nullable=True)
    cooldown_minutes = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<RewardType(name='{self.name}', value={self.value})>"


class CommunityModel(Base):
    """SQLAlchemy ORM model for communities table"""

    __tablename__ = "communities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)
    description = Column(String(500), nullable=False)
    creator_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    is_public = Column(Boolean, default=True, nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    member_count = Column(Integer, default=0, nullable=False)
    trend_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class CommunityMemberModel(Base):
    """SQLAlchemy ORM model for community_members table"""

    __tablename__ = "community_members"

    community_id = Column(Uuid, ForeignKey("communities.id", ondelete="CASCADE"), primary_key=True)
    account_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    is_moderator = Column(Boolean, default=False, nullable=False)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('idx_community_members_account', 'account_id'),
    )


class TrendModel(Base):
    """SQLAlchemy ORM model for trends table, with denormalized reward aggregates"""

    __tablename__ = "trends"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    community_id = Column(Uuid, ForeignKey("communities.id"), nullable=False)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    vote_score = Column(Integer, default=0, nullable=False)
    upvote_count = Column(Integer, default=0, nullable=False)
    downvote_count = Column(Integer, default=0, nullable=False)
    comment_count = Column(Integer, default=0, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    medal_summary = Column(JSON, default=dict, nullable=False)
    total_reward_value = Column(Integer, default=0, nullable=False)
    reward_count = Column(Integer, default=0, nullable=False)
    top_rewards = Column(JSON, default=list, nullable=False)
    featured_medals = Column(JSON, default=list, nullable=False)
    last_reward_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index('idx_trends_community', 'community_id'),
        Index('idx_trends_author', 'author_id'),
        Index('idx_trends_score_created', 'vote_score', 'created_at'),
    )


class TrendVoteModel(Base):
    """SQLAlchemy ORM model for trend_votes table"""

    __tablename__ = "trend_votes"

    trend_id = Column(Uuid, ForeignKey("trends.id", ondelete="CASCADE"), primary_key=True)
    account_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    direction = Column(String(4), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TrendRewardModel(Base):
    """SQLAlchemy ORM model for trend_rewards table (one row per medal given)"""

    __tablename__ = "trend_rewards"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    trend_id = Column(Uuid, ForeignKey("trends.id", ondelete="CASCADE"), nullable=False)
    giver_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    reward_type_id = Column(Uuid, ForeignKey("reward_types.id"), nullable=False)
    amount = Column(Integer, nullable=False)
    message = Column(String(200), default="", nullable=False)
    is_anonymous = Column(Boolean, default=False, nullable=False)
    medal_name = Column(String(30), nullable=False)
    medal_tier = Column(String(20), nullable=False)
    medal_color = Column(String(20), nullable=False)
    medal_icon = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('idx_trend_rewards_trend', 'trend_id'),
        Index('idx_trend_rewards_giver_type', 'trend_id', 'giver_id', 'reward_type_id', 'created_at'),
    )


class RewardHistoryModel(Base):
    """SQLAlchemy ORM model for reward_history table (per-account given/received log)"""

    __tablename__ = "reward_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    trend_id = Column(Uuid, ForeignKey("trends.id", ondelete="SET NULL"), nullable=True)
    reward_type_id = Column(Uuid, ForeignKey("reward_types.id"), nullable=True)
    medal_name = Column(String(30), nullable=True)
    amount = Column(Integer, nullable=False)
    direction = Column(String(10), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('idx_reward_history_account', 'account_id', 'created_at'),
        Index('idx_reward_history_medal', 'medal_name'),
    )


class CommentModel(Base):
    """SQLAlchemy ORM model for comments table"""

    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    trend_id = Column(Uuid, ForeignKey("trends.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    parent_id = Column(Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)
    content = Column(Text, nullable=False)
    depth = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('idx_comments_trend', 'trend_id', 'created_at'),
    )


class PromptModel(Base):
    """SQLAlchemy ORM model for prompts table"""

    __tablename__ = "prompts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False)
    prompt_text = Column(Text, nullable=False)
    result_text = Column(Text, default="", nullable=False)
    ai_tool = Column(String(30), default="Other", nullable=False)
    category = Column(String(30), default="Other", nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    is_public = Column(Boolean, default=True, nullable=False)
    requires_level = Column(String(20), default="Newbie", nullable=False)
    word_count = Column(Integer, default=0, nullable=False)
    character_count = Column(Integer, default=0, nullable=False)
    has_images = Column(Boolean, default=False, nullable=False)
    has_code = Column(Boolean, default=False, nullable=False)
    image_count = Column(Integer, default=0, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    upvote_count = Column(Integer, default=0, nullable=False)
    downvote_count = Column(Integer, default=0, nullable=False)
    rating_average = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    comment_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index('idx_prompts_author', 'author_id', 'created_at'),
        Index('idx_prompts_public_upvotes', 'is_public', 'upvote_count'),
    )


class PromptImageModel(Base):
    """SQLAlchemy ORM model for prompt_images table"""

    __tablename__ = "prompt_images"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    prompt_id = Column(Uuid, ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False)
    public_id = Column(String(255), nullable=False)
    url = Column(String(500), nullable=False)
    thumbnail_url = Column(String(500), nullable=True)
    optimized_url = Column(String(500), nullable=True)
    caption = Column(String(200), default="", nullable=False)
    format = Column(String(10), nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    bytes = Column(BigInteger, default=0, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('idx_prompt_images_prompt', 'prompt_id'),
    )


class PromptVoteModel(Base):
    """SQLAlchemy ORM model for prompt_votes table"""

    __tablename__ = "prompt_votes"

    prompt_id = Column(Uuid, ForeignKey("prompts.id", ondelete="CASCADE"), primary_key=True)
    account_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    direction = Column(String(4), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class PromptRatingModel(Base):
    """SQLAlchemy ORM model for prompt_ratings table (one star rating per account)"""

    __tablename__ = "prompt_ratings"

    prompt_id = Column(Uuid, ForeignKey("prompts.id", ondelete="CASCADE"), primary_key=True)
    account_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class PromptFavoriteModel(Base):
    """SQLAlchemy ORM model for prompt_favorites table"""

    __tablename__ = "prompt_favorites"

    account_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    prompt_id = Column(Uuid, ForeignKey("prompts.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('idx_prompt_favorites_account', 'account_id', 'created_at'),
    )


class PromptCommentModel(Base):
    """SQLAlchemy ORM model for prompt_comments table"""

    __tablename__ = "prompt_comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    prompt_id = Column(Uuid, ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('idx_prompt_comments_prompt', 'prompt_id', 'created_at'),
    )
