"""Medal catalog, per-user reward stats and the leaderboard."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from src.core.dependencies import get_current_account, get_reward_service
from src.core.service.auth.models.account import Account
from src.core.service.reward.models import Leaderboard, RewardDirection, RewardType, UserRewardStats
from src.core.service.reward.reward_service import RewardService

router = APIRouter(prefix="/rewards", tags=["Rewards"])


@router.get("/types", response_model=List[RewardType])
async def list_reward_types(reward_service: RewardService = Depends(get_reward_service)):
    """Active medals, most valuable first."""
    return await reward_service.list_reward_types()


@router.get("/stats", response_model=UserRewardStats)
async def my_reward_stats(
    account: Account = Depends(get_current_account),
    reward_service: RewardService = Depends(get_reward_service)
):
    return await reward_service.get_user_reward_stats(account)


@router.get("/leaderboard", response_model=Leaderboard)
async def leaderboard(
    type: RewardDirection = Query(RewardDirection.RECEIVED, description="Which direction to count medals in"),
    medal_type: Optional[str] = Query(None, description="Only accounts that received this medal"),
    limit: Optional[int] = Query(None, ge=1),
    reward_service: RewardService = Depends(get_reward_service)
):
    return await reward_service.get_leaderboard(direction=type, medal_filter=medal_type, limit=limit)
