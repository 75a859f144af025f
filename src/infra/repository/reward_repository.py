"""
Reward repository: medal catalog, rewards given on trends and per-account history
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.service.reward.models import (
    MedalSnapshot,
    MedalTier,
    Reward,
    RewardDirection,
    RewardHistoryEntry,
    RewardType,
)
from src.core.utils.clock import ensure_utc
from src.infra.models import RewardHistoryModel, RewardTypeModel, TrendRewardModel


class RewardRepository:
    """Repository for reward types, trend rewards and reward history"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _type_to_entity(self, model: RewardTypeModel) -> RewardType:
        return RewardType(
            id=model.id,
            name=model.name,
            display_name=model.display_name,
            tier=MedalTier(model.tier),
            value=model.value,
            color=model.color,
            icon=model.icon,
            description=model.description,
            is_active=model.is_active,
            daily_limit=model.daily_limit,
            cooldown_minutes=model.cooldown_minutes,
        )

    def _reward_to_entity(self, model: TrendRewardModel) -> Reward:
        return Reward(
            id=model.id,
            trend_id=model.trend_id,
            giver_id=model.giver_id,
            reward_type_id=model.reward_type_id,
            amount=model.amount,
            message=model.message or "",
            is_anonymous=model.is_anonymous,
            medal=MedalSnapshot(
                name=model.medal_name,
                tier=MedalTier(model.medal_tier),
                color=model.medal_color,
                icon=model.medal_icon,
            ),
            created_at=ensure_utc(model.created_at),
        )

    def _history_to_entity(self, model: RewardHistoryModel) -> RewardHistoryEntry:
        return RewardHistoryEntry(
            id=model.id,
            account_id=model.account_id,
            trend_id=model.trend_id,
            reward_type_id=model.reward_type_id,
            medal_name=model.medal_name,
            amount=model.amount,
            direction=RewardDirection(model.direction),
            created_at=ensure_utc(model.created_at),
        )

    # Reward types

    async def get_type(self, reward_type_id: UUID) -> Optional[RewardType]:
        model = await self.session.get(RewardTypeModel, reward_type_id)
        return self._type_to_entity(model) if model else None

    async def list_types(self, active_only: bool = True) -> List[RewardType]:
        stmt = select(RewardTypeModel)
        if active_only:
            stmt = stmt.where(RewardTypeModel.is_active.is_(True))
        result = await self.session.execute(stmt)
        return [self._type_to_entity(model) for model in result.scalars().all()]

    async def types_by_id(self, ids: Iterable[UUID]) -> Dict[UUID, RewardType]:
        ids = set(ids)
        if not ids:
            return {}
        stmt = select(RewardTypeModel).where(RewardTypeModel.id.in_(ids))
        result = await self.session.execute(stmt)
        return {model.id: self._type_to_entity(model) for model in result.scalars().all()}

    async def upsert_type(self, reward_type: RewardType) -> RewardType:
        """Insert or update by medal name"""
        stmt = select(RewardTypeModel).where(RewardTypeModel.name == reward_type.name)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            model = RewardTypeModel(name=reward_type.name)
            self.session.add(model)

        model.display_name = reward_type.display_name
        model.tier = reward_type.tier.value
        model.value = reward_type.value
        model.color = reward_type.color
        model.icon = reward_type.icon
        model.description = reward_type.description
        model.is_active = reward_type.is_active
        model.daily_limit = reward_type.daily_limit
        model.cooldown_minutes = reward_type.cooldown_minutes

        await self.session.flush()
        return self._type_to_entity(model)

    # Rewards on trends

    async def list_for_trend(self, trend_id: UUID) -> List[Reward]:
        stmt = (
            select(TrendRewardModel)
            .where(TrendRewardModel.trend_id == trend_id)
            .order_by(TrendRewardModel.created_at)
        )
        result = await self.session.execute(stmt)
        return [self._reward_to_entity(model) for model in result.scalars().all()]

    async def given_since(
        self,
        trend_id: UUID,
        giver_id: UUID,
        reward_type_id: UUID,
        since: datetime
    ) -> List[Reward]:
        stmt = (
            select(TrendRewardModel)
            .where(
                TrendRewardModel.trend_id == trend_id,
                TrendRewardModel.giver_id == giver_id,
                TrendRewardModel.reward_type_id == reward_type_id,
                TrendRewardModel.created_at >= since,
            )
            .order_by(TrendRewardModel.created_at)
        )
        result = await self.session.execute(stmt)
        return [self._reward_to_entity(model) for model in result.scalars().all()]

    async def add_reward(self, reward: Reward) -> Reward:
        model = TrendRewardModel(
            trend_id=reward.trend_id,
            giver_id=reward.giver_id,
            reward_type_id=reward.reward_type_id,
            amount=reward.amount,
            message=reward.message,
            is_anonymous=reward.is_anonymous,
            medal_name=reward.medal.name,
            medal_tier=reward.medal.tier.value,
            medal_color=reward.medal.color,
            medal_icon=reward.medal.icon,
            created_at=reward.created_at,
        )
        self.session.add(model)
        await self.session.flush()
        return self._reward_to_entity(model)

    # History

    async def add_history(self, entry: RewardHistoryEntry) -> None:
        self.session.add(
            RewardHistoryModel(
                account_id=entry.account_id,
                trend_id=entry.trend_id,
                reward_type_id=entry.reward_type_id,
                medal_name=entry.medal_name,
                amount=entry.amount,
                direction=entry.direction.value,
                created_at=entry.created_at,
            )
        )
        await self.session.flush()

    async def history_for(self, account_id: UUID) -> List[RewardHistoryEntry]:
        stmt = (
            select(RewardHistoryModel)
            .where(RewardHistoryModel.account_id == account_id)
            .order_by(RewardHistoryModel.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [self._history_to_entity(model) for model in result.scalars().all()]

    async def histories_for(self, account_ids: Iterable[UUID]) -> Dict[UUID, List[RewardHistoryEntry]]:
        account_ids = list(account_ids)
        histories: Dict[UUID, List[RewardHistoryEntry]] = {account_id: [] for account_id in account_ids}
        if not account_ids:
            return histories
        stmt = select(RewardHistoryModel).where(RewardHistoryModel.account_id.in_(account_ids))
        result = await self.session.execute(stmt)
        for model in result.scalars().all():
            histories[model.account_id].append(self._history_to_entity(model))
        return histories
