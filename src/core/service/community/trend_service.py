"""
Trends: creation inside a community, listing, voting and comments.
Rewards on trends live in the reward service.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import BadRequestError, ForbiddenError, NotFoundError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.account import Account
from src.core.service.community.models import (
    Comment,
    CreateCommentRequest,
    CreateTrendRequest,
    Trend,
    TrendDetail,
    TrendList,
    TrendSort,
    VoteDirection,
    VoteResult,
)
from src.core.utils.pagination import Page, clamp_page
from src.infra.repository.community_repository import CommunityRepository
from src.infra.repository.trend_repository import TrendRepository

logger = get_logger(__name__)

MAX_REPLY_DEPTH = 1


class TrendService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.communities = CommunityRepository(session)
        self.trends = TrendRepository(session)

    async def _require_trend(self, trend_id: UUID) -> Trend:
        trend = await self.trends.get(trend_id)
        if trend is None or not trend.is_active:
            raise NotFoundError("Trend not found")
        return trend

    async def create_trend(self, account: Account, request: CreateTrendRequest) -> Trend:
        if await self.communities.get(request.community_id) is None:
            raise NotFoundError("Community not found")
        if not await self.communities.is_member(request.community_id, account.id):
            raise ForbiddenError("You must join this community to post")

        trend = await self.trends.create(
            community_id=request.community_id,
            author_id=account.id,
            title=request.title.strip(),
            content=request.content,
            tags=[tag.strip().lower() for tag in request.tags if tag.strip()],
        )
        await self.communities.increment_trend_count(request.community_id)
        await self.session.commit()

        logger.info(
            "Trend created",
            extra={"trend_id": str(trend.id), "community_id": str(request.community_id), "account_id": str(account.id)}
        )
        return trend

    async def list_trends(
        self,
        community_id: Optional[UUID] = None,
        sort: TrendSort = TrendSort.HOT,
        page: int = 1,
        limit: int = 20
    ) -> TrendList:
        page, limit = clamp_page(page, limit)
        trends, total = await self.trends.list(community_id, sort, page, limit)
        return TrendList(trends=trends, pagination=Page.of(page, limit, total))

    async def get_trend(self, trend_id: UUID) -> TrendDetail:
        await self._require_trend(trend_id)
        await self.trends.increment_views(trend_id)
        await self.session.commit()

        trend = await self.trends.get(trend_id)
        comments = await self.trends.top_level_comments(trend_id)
        return TrendDetail(trend=trend, comments=comments)

    async def vote(self, account: Account, trend_id: UUID, direction: VoteDirection) -> VoteResult:
        """Voting the same way twice withdraws the vote; the opposite direction switches it."""
        await self._require_trend(trend_id)

        current = await self.trends.get_vote(trend_id, account.id)
        new_vote = None if current == direction else direction
        await self.trends.set_vote(trend_id, account.id, new_vote)
        ups, downs = await self.trends.recount_votes(trend_id)
        await self.session.commit()

        return VoteResult(
            trend_id=trend_id,
            vote_score=ups - downs,
            upvote_count=ups,
            downvote_count=downs,
            user_vote=new_vote,
        )

    async def add_comment(self, account: Account, trend_id: UUID, request: CreateCommentRequest) -> Comment:
        await self._require_trend(trend_id)

        depth = 0
        if request.parent_id is not None:
            parent = await self.trends.get_comment(request.parent_id)
            if parent is None or parent.trend_id != trend_id:
                raise NotFoundError("Parent comment not found")
            if parent.depth >= MAX_REPLY_DEPTH:
                raise BadRequestError("Replies can only be one level deep")
            depth = parent.depth + 1

        comment = await self.trends.add_comment(
            trend_id=trend_id,
            author_id=account.id,
            content=request.content,
            parent_id=request.parent_id,
            depth=depth,
        )
        await self.session.commit()
        return comment
