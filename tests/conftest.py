"""
Shared fixtures: in-memory SQLite database, fake Redis, a controllable clock
and small factories for accounts, plans, medals and trends.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import fakeredis.aioredis
import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.service.auth.models.account import Account, AccountRole
from src.core.service.auth.password import hash_password
from src.core.service.entitlement.models import AccountLevel, PlanTier, SubscriptionStatus
from src.core.service.reward.reward_service import RewardService
from src.core.service.subscription.subscription_service import SubscriptionService
from src.infra.database import build_session_factory
from src.infra.models import Base, UserModel
from src.infra.repository.account_repository import AccountRepository
from src.infra.repository.community_repository import CommunityRepository
from src.infra.repository.plan_repository import PlanRepository
from src.infra.repository.trend_repository import TrendRepository

FROZEN_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime = FROZEN_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.fixture
async def plans(session):
    """Seeded plan catalog keyed by tier"""
    seeded = await SubscriptionService(session).seed_plans()
    return {plan.name: plan for plan in seeded}


@pytest.fixture
async def medals(session):
    """Seeded medal catalog keyed by name"""
    seeded = await RewardService(session).seed_reward_types()
    return {reward_type.name: reward_type for reward_type in seeded}


@pytest.fixture
def make_account(session):
    counter = {"n": 0}

    async def _make(
        username: Optional[str] = None,
        points: int = 100,
        password: Optional[str] = None,
        verified: bool = True,
        level: AccountLevel = AccountLevel.NEWBIE,
        plan_tier: Optional[PlanTier] = None,
        role: AccountRole = AccountRole.USER,
        **columns
    ) -> Account:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        accounts = AccountRepository(session)
        account = await accounts.create(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password) if password else "not-a-real-hash",
            reward_points=points,
            role=role,
            is_email_verified=verified,
        )

        values = dict(columns)
        values.setdefault("usage_last_reset", FROZEN_NOW)
        if level != AccountLevel.NEWBIE:
            values["level"] = level.value
        if plan_tier is not None:
            plan = await PlanRepository(session).get_by_name(plan_tier)
            values["plan_id"] = plan.id
            values["subscription_status"] = SubscriptionStatus.ACTIVE.value
        if values:
            await session.execute(
                update(UserModel)
                .where(UserModel.id == account.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

        await session.commit()
        return await accounts.get_by_id(account.id)

    return _make


@pytest.fixture
def make_trend(session):
    async def _make(author: Account, title: str = "A trending prompt"):
        communities = CommunityRepository(session)
        community = await communities.create(
            name=f"{author.username}-community-{title}",
            description="Prompt engineers",
            creator_id=author.id,
            is_public=True,
            tags=["ai"],
        )
        await communities.add_member(community.id, author.id, is_moderator=True)
        trend = await TrendRepository(session).create(
            community_id=community.id,
            author_id=author.id,
            title=title,
            content="Look at this prompt",
            tags=["ai"],
        )
        await session.commit()
        return trend

    return _make
