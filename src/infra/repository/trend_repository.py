"""
Trend repository using SQLAlchemy ORM: trends, votes, comments and the
denormalized reward aggregates stored on each trend
"""

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.service.community.models import Comment, Trend, TrendSort, VoteDirection
from src.core.service.reward.ledger import empty_medal_summary
from src.core.service.reward.models import FeaturedMedal, TopReward, TrendAggregates
from src.core.utils.clock import ensure_utc, utc_now
from src.infra.models import CommentModel, TrendModel, TrendVoteModel


class TrendRepository:
    """Repository for trends and everything hanging off them"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _model_to_entity(self, model: TrendModel) -> Trend:
        summary = empty_medal_summary()
        summary.update(model.medal_summary or {})
        return Trend(
            id=model.id,
            community_id=model.community_id,
            author_id=model.author_id,
            title=model.title,
            content=model.content,
            tags=list(model.tags or []),
            vote_score=model.vote_score,
            upvote_count=model.upvote_count,
            downvote_count=model.downvote_count,
            comment_count=model.comment_count,
            views=model.views,
            is_active=model.is_active,
            aggregates=TrendAggregates(
                medal_summary=summary,
                total_reward_value=model.total_reward_value,
                reward_count=model.reward_count,
                top_rewards=[TopReward(**item) for item in (model.top_rewards or [])],
                featured_medals=[FeaturedMedal(**item) for item in (model.featured_medals or [])],
            ),
            last_reward_at=ensure_utc(model.last_reward_at),
            created_at=ensure_utc(model.created_at),
        )

    def _comment_to_entity(self, model: CommentModel) -> Comment:
        return Comment(
            id=model.id,
            trend_id=model.trend_id,
            author_id=model.author_id,
            parent_id=model.parent_id,
            content=model.content,
            depth=model.depth,
            created_at=ensure_utc(model.created_at),
        )

    async def get(self, trend_id: UUID) -> Optional[Trend]:
        stmt = (
            select(TrendModel)
            .where(TrendModel.id == trend_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def create(
        self,
        community_id: UUID,
        author_id: UUID,
        title: str,
        content: str,
        tags: List[str]
    ) -> Trend:
        model = TrendModel(
            community_id=community_id,
            author_id=author_id,
            title=title,
            content=content,
            tags=tags,
            vote_score=0,
            upvote_count=0,
            downvote_count=0,
            comment_count=0,
            views=0,
            is_active=True,
            medal_summary=empty_medal_summary(),
            total_reward_value=0,
            reward_count=0,
            top_rewards=[],
            featured_medals=[],
        )
        self.session.add(model)
        await self.session.flush()
        return self._model_to_entity(model)

    async def list(
        self,
        community_id: Optional[UUID],
        sort: TrendSort,
        page: int,
        limit: int
    ) -> Tuple[List[Trend], int]:
        criteria = [TrendModel.is_active.is_(True)]
        if community_id is not None:
            criteria.append(TrendModel.community_id == community_id)

        if sort == TrendSort.NEW:
            order = (TrendModel.created_at.desc(),)
        elif sort == TrendSort.TOP:
            order = (TrendModel.total_reward_value.desc(), TrendModel.vote_score.desc())
        else:
            order = (TrendModel.vote_score.desc(), TrendModel.created_at.desc())

        total = (
            await self.session.execute(select(func.count()).select_from(TrendModel).where(*criteria))
        ).scalar_one()

        stmt = (
            select(TrendModel)
            .where(*criteria)
            .order_by(*order)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()], total

    async def increment_views(self, trend_id: UUID) -> None:
        await self.session.execute(
            update(TrendModel)
            .where(TrendModel.id == trend_id)
            .values(views=TrendModel.views + 1)
            .execution_options(synchronize_session=False)
        )

    # Votes

    async def get_vote(self, trend_id: UUID, account_id: UUID) -> Optional[VoteDirection]:
        model = await self.session.get(TrendVoteModel, (trend_id, account_id))
        return VoteDirection(model.direction) if model else None

    async def set_vote(self, trend_id: UUID, account_id: UUID, direction: Optional[VoteDirection]) -> None:
        """Replace the account's vote; None removes it"""
        model = await self.session.get(TrendVoteModel, (trend_id, account_id))
        if direction is None:
            if model is not None:
                await self.session.delete(model)
        elif model is None:
            self.session.add(TrendVoteModel(trend_id=trend_id, account_id=account_id, direction=direction.value))
        else:
            model.direction = direction.value
        await self.session.flush()

    async def recount_votes(self, trend_id: UUID) -> Tuple[int, int]:
        """Recompute vote counters from the vote rows"""
        stmt = (
            select(TrendVoteModel.direction, func.count())
            .where(TrendVoteModel.trend_id == trend_id)
            .group_by(TrendVoteModel.direction)
        )
        counts = {direction: count for direction, count in (await self.session.execute(stmt)).all()}
        ups = counts.get(VoteDirection.UP.value, 0)
        downs = counts.get(VoteDirection.DOWN.value, 0)
        await self.session.execute(
            update(TrendModel)
            .where(TrendModel.id == trend_id)
            .values(upvote_count=ups, downvote_count=downs, vote_score=ups - downs)
            .execution_options(synchronize_session=False)
        )
        return ups, downs

    # Comments

    async def get_comment(self, comment_id: UUID) -> Optional[Comment]:
        model = await self.session.get(CommentModel, comment_id)
        return self._comment_to_entity(model) if model else None

    async def add_comment(
        self,
        trend_id: UUID,
        author_id: UUID,
        content: str,
        parent_id: Optional[UUID],
        depth: int
    ) -> Comment:
        model = CommentModel(
            trend_id=trend_id,
            author_id=author_id,
            content=content,
            parent_id=parent_id,
            depth=depth,
        )
        self.session.add(model)
        await self.session.execute(
            update(TrendModel)
            .where(TrendModel.id == trend_id)
            .values(comment_count=TrendModel.comment_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return self._comment_to_entity(model)

    async def top_level_comments(self, trend_id: UUID, limit: int = 50) -> List[Comment]:
        stmt = (
            select(CommentModel)
            .where(CommentModel.trend_id == trend_id, CommentModel.parent_id.is_(None))
            .order_by(CommentModel.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._comment_to_entity(model) for model in result.scalars().all()]

    # Reward aggregates

    async def store_aggregates(self, trend_id: UUID, aggregates: TrendAggregates, last_reward_at: datetime) -> None:
        data = aggregates.model_dump(mode="json")
        await self.session.execute(
            update(TrendModel)
            .where(TrendModel.id == trend_id)
            .values(
                medal_summary=data["medal_summary"],
                total_reward_value=aggregates.total_reward_value,
                reward_count=aggregates.reward_count,
                top_rewards=data["top_rewards"],
                featured_medals=data["featured_medals"],
                last_reward_at=last_reward_at,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
