"""
Prompt repository using SQLAlchemy ORM: prompts, their hosted images and
the per-account votes, ratings, favorites and comments on them.
"""

from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from sqlalchemy import String, cast, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.service.community.models import VoteDirection
from src.core.service.entitlement.models import AccountLevel
from src.core.service.prompt.models import (
    AITool,
    Prompt,
    PromptCategory,
    PromptComment,
    PromptDraft,
    PromptImage,
    PromptMetadata,
    PromptQuery,
    PromptSort,
    average_rating,
)
from src.core.utils.clock import ensure_utc, utc_now
from src.infra.models import (
    PromptCommentModel,
    PromptFavoriteModel,
    PromptImageModel,
    PromptModel,
    PromptRatingModel,
    PromptVoteModel,
)

PROMPT_FIELDS = {
    "title", "description", "prompt_text", "result_text", "ai_tool",
    "category", "tags", "is_public", "requires_level",
}


class PromptRepository:
    """Repository for prompts and their hosted images"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _image_to_entity(self, model: PromptImageModel) -> PromptImage:
        return PromptImage(
            id=model.id,
            public_id=model.public_id,
            url=model.url,
            thumbnail_url=model.thumbnail_url,
            optimized_url=model.optimized_url,
            caption=model.caption or "",
            format=model.format,
            width=model.width,
            height=model.height,
            bytes=model.bytes,
            is_primary=model.is_primary,
            uploaded_at=ensure_utc(model.uploaded_at),
        )

    def _model_to_entity(self, model: PromptModel, images: List[PromptImageModel]) -> Prompt:
        return Prompt(
            id=model.id,
            author_id=model.author_id,
            title=model.title,
            description=model.description,
            prompt_text=model.prompt_text,
            result_text=model.result_text or "",
            ai_tool=AITool(model.ai_tool),
            category=PromptCategory(model.category),
            tags=list(model.tags or []),
            is_public=model.is_public,
            requires_level=AccountLevel(model.requires_level),
            images=[self._image_to_entity(image) for image in images],
            prompt_metadata=PromptMetadata(
                word_count=model.word_count,
                character_count=model.character_count,
                has_images=model.has_images,
                has_code=model.has_code,
                image_count=model.image_count,
            ),
            views=model.views,
            upvote_count=model.upvote_count,
            downvote_count=model.downvote_count,
            rating_average=model.rating_average,
            rating_count=model.rating_count,
            comment_count=model.comment_count,
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )

    def _comment_to_entity(self, model: PromptCommentModel) -> PromptComment:
        return PromptComment(
            id=model.id,
            prompt_id=model.prompt_id,
            author_id=model.author_id,
            content=model.content,
            created_at=ensure_utc(model.created_at),
        )

    async def _images_for(self, prompt_id: UUID) -> List[PromptImageModel]:
        stmt = (
            select(PromptImageModel)
            .where(PromptImageModel.prompt_id == prompt_id)
            .order_by(PromptImageModel.uploaded_at, PromptImageModel.id)
            .execution_options(populate_existing=True)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def _page(self, criteria: list, order: tuple, page: int, limit: int) -> Tuple[List[Prompt], int]:
        total = (
            await self.session.execute(select(func.count()).select_from(PromptModel).where(*criteria))
        ).scalar_one()

        stmt = (
            select(PromptModel)
            .where(*criteria)
            .order_by(*order)
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        models = (await self.session.execute(stmt)).scalars().all()
        prompts = [self._model_to_entity(model, await self._images_for(model.id)) for model in models]
        return prompts, total

    async def _update(self, prompt_id: UUID, **values) -> None:
        await self.session.execute(
            update(PromptModel)
            .where(PromptModel.id == prompt_id)
            .values(updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )

    async def get(self, prompt_id: UUID) -> Optional[Prompt]:
        stmt = (
            select(PromptModel)
            .where(PromptModel.id == prompt_id)
            .execution_options(populate_existing=True)
        )
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        if model is None:
            return None
        return self._model_to_entity(model, await self._images_for(prompt_id))

    async def create(
        self,
        author_id: UUID,
        draft: PromptDraft,
        metadata: PromptMetadata,
        images: List[PromptImage]
    ) -> Prompt:
        model = PromptModel(
            author_id=author_id,
            title=draft.title,
            description=draft.description,
            prompt_text=draft.prompt_text,
            result_text=draft.result_text,
            ai_tool=draft.ai_tool.value,
            category=draft.category.value,
            tags=draft.tags,
            is_public=draft.is_public,
            requires_level=draft.requires_level.value,
            word_count=metadata.word_count,
            character_count=metadata.character_count,
            has_images=metadata.has_images,
            has_code=metadata.has_code,
            image_count=metadata.image_count,
            views=0,
            upvote_count=0,
            downvote_count=0,
            rating_average=0.0,
            rating_count=0,
            comment_count=0,
        )
        self.session.add(model)
        await self.session.flush()

        image_models = await self.add_images(model.id, images)
        return self._model_to_entity(model, image_models)

    async def update_fields(self, prompt_id: UUID, fields: Dict[str, Any], metadata: PromptMetadata) -> None:
        """Write edited prompt fields together with freshly derived metadata"""
        values = {}
        for key, value in fields.items():
            if key in PROMPT_FIELDS:
                values[key] = value.value if hasattr(value, "value") else value
        await self._update(
            prompt_id,
            word_count=metadata.word_count,
            character_count=metadata.character_count,
            has_images=metadata.has_images,
            has_code=metadata.has_code,
            image_count=metadata.image_count,
            **values,
        )

    async def add_images(self, prompt_id: UUID, images: List[PromptImage]) -> List[PromptImageModel]:
        models = []
        for image in images:
            image_model = PromptImageModel(
                prompt_id=prompt_id,
                public_id=image.public_id,
                url=image.url,
                thumbnail_url=image.thumbnail_url,
                optimized_url=image.optimized_url,
                caption=image.caption,
                format=image.format,
                width=image.width,
                height=image.height,
                bytes=image.bytes,
                is_primary=image.is_primary,
                uploaded_at=utc_now(),
            )
            self.session.add(image_model)
            models.append(image_model)
        await self.session.flush()
        return models

    async def update_image_metadata(self, prompt_id: UUID, image_count: int) -> None:
        await self._update(prompt_id, image_count=image_count, has_images=image_count > 0)

    async def delete_image(self, prompt_id: UUID, image_id: UUID) -> None:
        await self.session.execute(
            delete(PromptImageModel)
            .where(PromptImageModel.prompt_id == prompt_id, PromptImageModel.id == image_id)
            .execution_options(synchronize_session=False)
        )

    async def set_primary_image(self, prompt_id: UUID, image_id: UUID) -> None:
        for image_model in await self._images_for(prompt_id):
            image_model.is_primary = image_model.id == image_id
        await self.session.flush()

    async def delete(self, prompt_id: UUID) -> None:
        for model in (
            PromptImageModel,
            PromptVoteModel,
            PromptRatingModel,
            PromptFavoriteModel,
            PromptCommentModel,
        ):
            await self.session.execute(
                delete(model)
                .where(model.prompt_id == prompt_id)
                .execution_options(synchronize_session=False)
            )
        await self.session.execute(
            delete(PromptModel)
            .where(PromptModel.id == prompt_id)
            .execution_options(synchronize_session=False)
        )

    async def list_by_author(self, author_id: UUID, page: int, limit: int) -> Tuple[List[Prompt], int]:
        return await self._page(
            [PromptModel.author_id == author_id],
            (PromptModel.created_at.desc(),),
            page,
            limit,
        )

    async def list_public(self, query: PromptQuery, page: int, limit: int) -> Tuple[List[Prompt], int]:
        criteria = [PromptModel.is_public.is_(True)]
        if query.ai_tool is not None:
            criteria.append(PromptModel.ai_tool == query.ai_tool.value)
        if query.category is not None:
            criteria.append(PromptModel.category == query.category.value)
        if query.author_id is not None:
            criteria.append(PromptModel.author_id == query.author_id)
        # tags are JSON; matching their text form keeps this portable
        if query.tag:
            criteria.append(func.lower(cast(PromptModel.tags, String)).like(f'%"{query.tag.lower()}"%'))
        if query.search:
            pattern = f"%{query.search.lower()}%"
            criteria.append(
                or_(
                    func.lower(PromptModel.title).like(pattern),
                    func.lower(PromptModel.description).like(pattern),
                    func.lower(cast(PromptModel.tags, String)).like(pattern),
                )
            )

        if query.sort == PromptSort.POPULAR:
            order = (PromptModel.upvote_count.desc(), PromptModel.created_at.desc())
        elif query.sort == PromptSort.TOP_RATED:
            order = (PromptModel.rating_average.desc(), PromptModel.rating_count.desc())
        elif query.sort == PromptSort.MOST_VIEWED:
            order = (PromptModel.views.desc(), PromptModel.created_at.desc())
        else:
            order = (PromptModel.created_at.desc(),)

        return await self._page(criteria, order, page, limit)

    async def increment_views(self, prompt_id: UUID) -> None:
        await self.session.execute(
            update(PromptModel)
            .where(PromptModel.id == prompt_id)
            .values(views=PromptModel.views + 1)
            .execution_options(synchronize_session=False)
        )

    # Votes

    async def get_vote(self, prompt_id: UUID, account_id: UUID) -> Optional[VoteDirection]:
        model = await self.session.get(PromptVoteModel, (prompt_id, account_id))
        return VoteDirection(model.direction) if model else None

    async def set_vote(self, prompt_id: UUID, account_id: UUID, direction: Optional[VoteDirection]) -> None:
        """Replace the account's vote; None removes it"""
        model = await self.session.get(PromptVoteModel, (prompt_id, account_id))
        if direction is None:
            if model is not None:
                await self.session.delete(model)
        elif model is None:
            self.session.add(PromptVoteModel(prompt_id=prompt_id, account_id=account_id, direction=direction.value))
        else:
            model.direction = direction.value
        await self.session.flush()

    async def recount_votes(self, prompt_id: UUID) -> Tuple[int, int]:
        stmt = (
            select(PromptVoteModel.direction, func.count())
            .where(PromptVoteModel.prompt_id == prompt_id)
            .group_by(PromptVoteModel.direction)
        )
        counts = {direction: count for direction, count in (await self.session.execute(stmt)).all()}
        ups = counts.get(VoteDirection.UP.value, 0)
        downs = counts.get(VoteDirection.DOWN.value, 0)
        await self.session.execute(
            update(PromptModel)
            .where(PromptModel.id == prompt_id)
            .values(upvote_count=ups, downvote_count=downs)
            .execution_options(synchronize_session=False)
        )
        return ups, downs

    # Ratings

    async def set_rating(self, prompt_id: UUID, account_id: UUID, rating: int) -> Tuple[float, int]:
        """Store the account's rating, replacing an earlier one, and refresh the average"""
        model = await self.session.get(PromptRatingModel, (prompt_id, account_id))
        if model is None:
            self.session.add(PromptRatingModel(prompt_id=prompt_id, account_id=account_id, rating=rating))
        else:
            model.rating = rating
        await self.session.flush()

        ratings = list(
            (
                await self.session.execute(
                    select(PromptRatingModel.rating).where(PromptRatingModel.prompt_id == prompt_id)
                )
            ).scalars().all()
        )
        average = average_rating(ratings)
        await self.session.execute(
            update(PromptModel)
            .where(PromptModel.id == prompt_id)
            .values(rating_average=average, rating_count=len(ratings))
            .execution_options(synchronize_session=False)
        )
        return average, len(ratings)

    # Favorites

    async def set_favorite(self, account_id: UUID, prompt_id: UUID, favorite: bool) -> None:
        model = await self.session.get(PromptFavoriteModel, (account_id, prompt_id))
        if favorite and model is None:
            self.session.add(PromptFavoriteModel(account_id=account_id, prompt_id=prompt_id))
        elif not favorite and model is not None:
            await self.session.delete(model)
        await self.session.flush()

    async def list_favorites(self, account_id: UUID, page: int, limit: int) -> Tuple[List[Prompt], int]:
        """Favorited prompts still visible to the account, newest favorite first"""
        visible = or_(PromptModel.is_public.is_(True), PromptModel.author_id == account_id)
        base = (
            select(PromptModel)
            .join(PromptFavoriteModel, PromptFavoriteModel.prompt_id == PromptModel.id)
            .where(PromptFavoriteModel.account_id == account_id, visible)
        )
        total = (
            await self.session.execute(select(func.count()).select_from(base.subquery()))
        ).scalar_one()

        stmt = (
            base.order_by(PromptFavoriteModel.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        models = (await self.session.execute(stmt)).scalars().all()
        return [self._model_to_entity(model, await self._images_for(model.id)) for model in models], total

    # Comments

    async def add_comment(self, prompt_id: UUID, author_id: UUID, content: str) -> PromptComment:
        model = PromptCommentModel(prompt_id=prompt_id, author_id=author_id, content=content)
        self.session.add(model)
        await self.session.execute(
            update(PromptModel)
            .where(PromptModel.id == prompt_id)
            .values(comment_count=PromptModel.comment_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return self._comment_to_entity(model)

    async def list_comments(self, prompt_id: UUID, limit: int = 50) -> List[PromptComment]:
        stmt = (
            select(PromptCommentModel)
            .where(PromptCommentModel.prompt_id == prompt_id)
            .order_by(PromptCommentModel.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._comment_to_entity(model) for model in result.scalars().all()]
