from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import BadRequestError, ConflictError, NotFoundError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.account import Account
from src.core.service.community.models import Community, CommunityList, CreateCommunityRequest
from src.core.service.entitlement.entitlement_service import EntitlementService
from src.core.utils.clock import Clock, utc_now
from src.core.utils.pagination import Page, clamp_page
from src.infra.repository.community_repository import CommunityRepository

logger = get_logger(__name__)


class CommunityService:
    def __init__(self, session: AsyncSession, clock: Clock = utc_now):
        self.session = session
        self.entitlements = EntitlementService(session, clock)
        self.communities = CommunityRepository(session)

    async def create_community(self, account: Account, request: CreateCommunityRequest) -> Community:
        """The creator becomes moderator and first member, which counts against their community quota."""
        name = request.name.strip()
        if await self.communities.name_taken(name):
            raise ConflictError("Community name already exists")

        await self.entitlements.require_join_community(account)

        try:
            community = await self.communities.create(
                name=name,
                description=request.description,
                creator_id=account.id,
                is_public=request.is_public,
                tags=[tag.strip().lower() for tag in request.tags if tag.strip()],
            )
            await self.communities.add_member(community.id, account.id, is_moderator=True)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Community name already exists")

        logger.info("Community created", extra={"community_id": str(community.id), "account_id": str(account.id)})
        return await self.get_community(community.id)

    async def get_community(self, community_id: UUID) -> Community:
        community = await self.communities.get(community_id)
        if community is None:
            raise NotFoundError("Community not found")
        return community

    async def list_communities(self, search: Optional[str] = None, page: int = 1, limit: int = 20) -> CommunityList:
        page, limit = clamp_page(page, limit)
        communities, total = await self.communities.list_public(search, page, limit)
        return CommunityList(communities=communities, pagination=Page.of(page, limit, total))

    async def join_community(self, account: Account, community_id: UUID) -> Community:
        await self.get_community(community_id)
        if await self.communities.is_member(community_id, account.id):
            raise BadRequestError("Already a member of this community")

        await self.entitlements.require_join_community(account)

        await self.communities.add_member(community_id, account.id)
        await self.session.commit()

        logger.info("Community joined", extra={"community_id": str(community_id), "account_id": str(account.id)})
        return await self.get_community(community_id)
