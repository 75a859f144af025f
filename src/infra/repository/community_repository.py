"""
Community repository using SQLAlchemy ORM
"""

from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy import String, cast, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.service.community.models import Community
from src.core.utils.clock import ensure_utc
from src.infra.models import CommunityMemberModel, CommunityModel


class CommunityRepository:
    """Repository for communities and their memberships"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _model_to_entity(self, model: CommunityModel) -> Community:
        return Community(
            id=model.id,
            name=model.name,
            description=model.description,
            creator_id=model.creator_id,
            is_public=model.is_public,
            tags=list(model.tags or []),
            member_count=model.member_count,
            trend_count=model.trend_count,
            created_at=ensure_utc(model.created_at),
        )

    async def get(self, community_id: UUID) -> Optional[Community]:
        stmt = (
            select(CommunityModel)
            .where(CommunityModel.id == community_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def name_taken(self, name: str) -> bool:
        stmt = select(func.count()).select_from(CommunityModel).where(
            func.lower(CommunityModel.name) == name.lower()
        )
        return (await self.session.execute(stmt)).scalar_one() > 0

    async def create(
        self,
        name: str,
        description: str,
        creator_id: UUID,
        is_public: bool,
        tags: List[str]
    ) -> Community:
        model = CommunityModel(
            name=name,
            description=description,
            creator_id=creator_id,
            is_public=is_public,
            tags=tags,
            member_count=0,
            trend_count=0,
        )
        self.session.add(model)
        await self.session.flush()
        return self._model_to_entity(model)

    async def list_public(self, search: Optional[str], page: int, limit: int) -> Tuple[List[Community], int]:
        criteria = [CommunityModel.is_public.is_(True)]
        if search:
            pattern = f"%{search.lower()}%"
            # tags are JSON; matching their text form keeps this portable
            criteria.append(
                or_(
                    func.lower(CommunityModel.name).like(pattern),
                    func.lower(CommunityModel.description).like(pattern),
                    func.lower(cast(CommunityModel.tags, String)).like(pattern),
                )
            )

        total = (
            await self.session.execute(select(func.count()).select_from(CommunityModel).where(*criteria))
        ).scalar_one()

        stmt = (
            select(CommunityModel)
            .where(*criteria)
            .order_by(CommunityModel.member_count.desc(), CommunityModel.trend_count.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()], total

    # Membership

    async def is_member(self, community_id: UUID, account_id: UUID) -> bool:
        model = await self.session.get(CommunityMemberModel, (community_id, account_id))
        return model is not None

    async def count_memberships(self, account_id: UUID) -> int:
        stmt = select(func.count()).select_from(CommunityMemberModel).where(
            CommunityMemberModel.account_id == account_id
        )
        return (await self.session.execute(stmt)).scalar_one()

    async def add_member(self, community_id: UUID, account_id: UUID, is_moderator: bool = False) -> None:
        self.session.add(
            CommunityMemberModel(
                community_id=community_id,
                account_id=account_id,
                is_moderator=is_moderator,
            )
        )
        await self.session.execute(
            update(CommunityModel)
            .where(CommunityModel.id == community_id)
            .values(member_count=CommunityModel.member_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()

    async def increment_trend_count(self, community_id: UUID) -> None:
        await self.session.execute(
            update(CommunityModel)
            .where(CommunityModel.id == community_id)
            .values(trend_count=CommunityModel.trend_count + 1)
            .execution_options(synchronize_session=False)
        )
