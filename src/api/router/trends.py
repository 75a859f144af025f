"""Trends: posting, voting, comments and medal rewards."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.core.dependencies import get_current_account, get_reward_service, get_trend_service
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
from src.core.service.community.trend_service import TrendService
from src.core.service.reward.models import GiveRewardRequest, GiveRewardResponse, TrendRewardSummary
from src.core.service.reward.reward_service import RewardService

router = APIRouter(
    prefix="/trends",
    tags=["Trends"],
    responses={
        404: {"description": "Trend not found"},
        429: {"description": "Daily medal limit or cooldown active"},
    }
)


@router.post("", response_model=Trend, status_code=status.HTTP_201_CREATED)
async def create_trend(
    request: CreateTrendRequest,
    account: Account = Depends(get_current_account),
    trend_service: TrendService = Depends(get_trend_service)
):
    return await trend_service.create_trend(account, request)


@router.get("", response_model=TrendList)
async def list_trends(
    community_id: Optional[UUID] = Query(None),
    sort: TrendSort = Query(TrendSort.HOT),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    trend_service: TrendService = Depends(get_trend_service)
):
    return await trend_service.list_trends(community_id, sort, page, limit)


@router.get("/{trend_id}", response_model=TrendDetail)
async def get_trend(trend_id: UUID, trend_service: TrendService = Depends(get_trend_service)):
    return await trend_service.get_trend(trend_id)


@router.post("/{trend_id}/upvote", response_model=VoteResult)
async def upvote(
    trend_id: UUID,
    account: Account = Depends(get_current_account),
    trend_service: TrendService = Depends(get_trend_service)
):
    return await trend_service.vote(account, trend_id, VoteDirection.UP)


@router.post("/{trend_id}/downvote", response_model=VoteResult)
async def downvote(
    trend_id: UUID,
    account: Account = Depends(get_current_account),
    trend_service: TrendService = Depends(get_trend_service)
):
    return await trend_service.vote(account, trend_id, VoteDirection.DOWN)


@router.post("/{trend_id}/comments", response_model=Comment, status_code=status.HTTP_201_CREATED)
async def add_comment(
    trend_id: UUID,
    request: CreateCommentRequest,
    account: Account = Depends(get_current_account),
    trend_service: TrendService = Depends(get_trend_service)
):
    return await trend_service.add_comment(account, trend_id, request)


@router.post("/{trend_id}/rewards", response_model=GiveRewardResponse, status_code=status.HTTP_201_CREATED)
async def give_reward(
    trend_id: UUID,
    request: GiveRewardRequest,
    account: Account = Depends(get_current_account),
    reward_service: RewardService = Depends(get_reward_service)
):
    """
    Give a medal to the trend's author. The medal's value moves from the
    giver's points to the author's. Daily limits and cooldowns apply per
    medal type, reset at 00:00 UTC.
    """
    return await reward_service.give_reward(
        trend_id=trend_id,
        giver_id=account.id,
        reward_type_id=request.reward_type_id,
        message=request.message,
        is_anonymous=request.is_anonymous,
    )


@router.get("/{trend_id}/rewards", response_model=TrendRewardSummary)
async def trend_rewards(trend_id: UUID, reward_service: RewardService = Depends(get_reward_service)):
    return await reward_service.trend_reward_summary(trend_id)
