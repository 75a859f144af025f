from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.core.dependencies import get_community_service, get_current_account
from src.core.service.auth.models.account import Account
from src.core.service.community.community_service import CommunityService
from src.core.service.community.models import Community, CommunityList, CreateCommunityRequest

router = APIRouter(prefix="/communities", tags=["Communities"])


@router.post("", response_model=Community, status_code=status.HTTP_201_CREATED)
async def create_community(
    request: CreateCommunityRequest,
    account: Account = Depends(get_current_account),
    community_service: CommunityService = Depends(get_community_service)
):
    return await community_service.create_community(account, request)


@router.get("", response_model=CommunityList)
async def list_communities(
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    community_service: CommunityService = Depends(get_community_service)
):
    """Public communities, largest first."""
    return await community_service.list_communities(search, page, limit)


@router.get("/{community_id}", response_model=Community)
async def get_community(
    community_id: UUID,
    community_service: CommunityService = Depends(get_community_service)
):
    return await community_service.get_community(community_id)


@router.post("/{community_id}/join", response_model=Community)
async def join_community(
    community_id: UUID,
    account: Account = Depends(get_current_account),
    community_service: CommunityService = Depends(get_community_service)
):
    return await community_service.join_community(account, community_id)
