"""
Reward service: medal giving, trend reward summaries, user stats and the
leaderboard.

A successful give runs as one database transaction: reward row, trend
aggregates, giver debit and history, author credit and history. The giver
debit is a conditional update so the balance can never go negative even if
two requests race past validation.
"""

from typing import List, Optional
from uuid import UUID

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import NotFoundError, ServiceError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.account import Account
from src.core.service.reward import ledger, stats
from src.core.service.reward.catalog import REWARD_TYPE_CATALOG
from src.core.service.reward.errors import ContentNotFound, InsufficientPoints
from src.core.service.reward.lock import RewardLock
from src.core.service.reward.models import (
    GiveRewardResponse,
    Leaderboard,
    MedalSnapshot,
    Reward,
    RewardDirection,
    RewardHistoryEntry,
    RewardType,
    RewardView,
    TrendRewardSummary,
    UserRewardStats,
)
from src.core.utils.clock import Clock, start_of_day, utc_now
from src.infra.config.settings import settings
from src.infra.repository.account_repository import AccountRepository
from src.infra.repository.reward_repository import RewardRepository
from src.infra.repository.trend_repository import TrendRepository

logger = get_logger(__name__)

TRANSFER_STEPS = (
    "append_reward",
    "recompute_aggregates",
    "debit_giver",
    "credit_author",
    "commit",
)


class RewardService:
    def __init__(
        self,
        session: AsyncSession,
        redis_client: Optional[Redis] = None,
        clock: Clock = utc_now
    ):
        self.session = session
        self.clock = clock
        self.rewards = RewardRepository(session)
        self.trends = TrendRepository(session)
        self.accounts = AccountRepository(session)
        self.lock = RewardLock(redis_client)

    async def seed_reward_types(self) -> List[RewardType]:
        """Idempotent upsert of the built-in medals"""
        seeded = [await self.rewards.upsert_type(reward_type) for reward_type in REWARD_TYPE_CATALOG]
        await self.session.commit()
        logger.info("Reward types seeded", extra={"count": len(seeded)})
        return seeded

    async def list_reward_types(self) -> List[RewardType]:
        """Active medals, most valuable first, higher tier first on equal value"""
        types = await self.rewards.list_types(active_only=True)
        return sorted(types, key=lambda t: (t.value, t.tier.rank), reverse=True)

    async def give_reward(
        self,
        trend_id: UUID,
        giver_id: UUID,
        reward_type_id: UUID,
        message: Optional[str] = None,
        is_anonymous: bool = False
    ) -> GiveRewardResponse:
        async with self.lock.hold(giver_id, trend_id):
            now = self.clock()

            reward_type = await self.rewards.get_type(reward_type_id)
            trend = await self.trends.get(trend_id)
            if trend is not None and not trend.is_active:
                trend = None
            giver = await self.accounts.get_by_id(giver_id)
            if giver is None:
                raise NotFoundError("Account not found")

            todays = []
            if trend is not None and reward_type is not None:
                todays = await self.rewards.given_since(trend_id, giver_id, reward_type_id, start_of_day(now))

            try:
                reward_type = ledger.validate_reward(
                    reward_type=reward_type,
                    trend_author_id=trend.author_id if trend else None,
                    trend_exists=trend is not None,
                    giver_id=giver_id,
                    todays_rewards=todays,
                    giver_points=giver.reward_points,
                    now=now,
                )
            except ServiceError as e:
                logger.info(
                    "Reward rejected",
                    extra={
                        "account_id": str(giver_id),
                        "trend_id": str(trend_id),
                        "reward_type_id": str(reward_type_id),
                        "code": e.code,
                    }
                )
                raise

            reward = Reward(
                trend_id=trend.id,
                giver_id=giver.id,
                reward_type_id=reward_type.id,
                amount=reward_type.value,
                message=message or "",
                is_anonymous=is_anonymous,
                medal=MedalSnapshot.of(reward_type),
                created_at=now,
            )
            return await self._transfer(reward, reward_type, giver, trend.author_id)

    async def _transfer(
        self,
        reward: Reward,
        reward_type: RewardType,
        giver: Account,
        author_id: UUID
    ) -> GiveRewardResponse:
        step = 0
        try:
            reward = await self.rewards.add_reward(reward)

            step = 1
            aggregates = ledger.compute_trend_aggregates(await self.rewards.list_for_trend(reward.trend_id))
            await self.trends.store_aggregates(reward.trend_id, aggregates, reward.created_at)

            step = 2
            if not await self.accounts.debit_points(giver.id, reward.amount):
                raise InsufficientPoints(required=reward.amount, available=giver.reward_points)
            await self.rewards.add_history(
                RewardHistoryEntry(
                    account_id=giver.id,
                    trend_id=reward.trend_id,
                    reward_type_id=reward_type.id,
                    medal_name=reward_type.name,
                    amount=reward.amount,
                    direction=RewardDirection.GIVEN,
                    created_at=reward.created_at,
                )
            )

            step = 3
            if not await self.accounts.credit_points(author_id, reward.amount):
                raise ContentNotFound("Trend author not found")
            await self.rewards.add_history(
                RewardHistoryEntry(
                    account_id=author_id,
                    trend_id=reward.trend_id,
                    reward_type_id=reward_type.id,
                    medal_name=reward_type.name,
                    amount=reward.amount,
                    direction=RewardDirection.RECEIVED,
                    created_at=reward.created_at,
                )
            )

            step = 4
            await self.session.commit()

        except ServiceError:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "Reward transfer failed, transaction rolled back",
                extra={
                    "account_id": str(giver.id),
                    "trend_id": str(reward.trend_id),
                    "reward_type_id": str(reward_type.id),
                    "step": TRANSFER_STEPS[step],
                    "step_index": step,
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        logger.info(
            "Reward given",
            extra={
                "account_id": str(giver.id),
                "trend_id": str(reward.trend_id),
                "reward_type_id": str(reward_type.id),
                "amount": reward.amount,
            }
        )

        updated_giver = await self.accounts.get_by_id(giver.id)
        return GiveRewardResponse(
            message=f"{reward_type.display_name} awarded successfully!",
            reward=reward,
            reward_type=reward_type,
            aggregates=aggregates,
            user_points=updated_giver.reward_points if updated_giver else giver.reward_points - reward.amount,
        )

    async def trend_reward_summary(self, trend_id: UUID) -> TrendRewardSummary:
        trend = await self.trends.get(trend_id)
        if trend is None or not trend.is_active:
            raise ContentNotFound()

        rewards = await self.rewards.list_for_trend(trend_id)
        aggregates = ledger.compute_trend_aggregates(rewards)
        types_by_id = await self.rewards.types_by_id(r.reward_type_id for r in rewards)

        return TrendRewardSummary(
            trend_id=trend_id,
            summary=aggregates.medal_summary,
            total_value=aggregates.total_reward_value,
            total_count=aggregates.reward_count,
            breakdown=ledger.medal_breakdown(rewards, types_by_id),
            featured_medals=aggregates.featured_medals,
            top_contributors=[top for top in aggregates.top_rewards if not top.is_anonymous],
            rewards=[RewardView.of(reward) for reward in reversed(rewards)],
        )

    async def get_user_reward_stats(self, account: Account) -> UserRewardStats:
        history = await self.rewards.history_for(account.id)
        types_by_name = {t.name: t for t in await self.rewards.list_types(active_only=False)}
        return UserRewardStats(
            account_id=account.id,
            username=account.username,
            avatar=account.avatar,
            points=account.reward_points,
            total_given=account.total_rewards_given,
            total_received=account.total_rewards_received,
            medal_stats=stats.fold_medal_stats(history, types_by_name),
            recent_history=stats.recent_history(history),
        )

    async def get_leaderboard(
        self,
        direction: RewardDirection = RewardDirection.RECEIVED,
        medal_filter: Optional[str] = None,
        limit: Optional[int] = None
    ) -> Leaderboard:
        limit = limit or settings.LEADERBOARD_DEFAULT_LIMIT
        limit = max(1, min(limit, settings.LEADERBOARD_MAX_LIMIT))

        accounts = await self.accounts.leaderboard_candidates(medal_filter, limit)
        histories = await self.rewards.histories_for(a.id for a in accounts)
        entries = stats.build_leaderboard(
            [(account, histories.get(account.id, [])) for account in accounts],
            direction,
            medal_filter,
            limit,
        )
        return Leaderboard(leaderboard=entries, type=direction, medal_type=medal_filter)
