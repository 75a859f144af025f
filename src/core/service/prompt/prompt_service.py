"""
Prompt authoring with hosted images.

Every entitlement check runs before anything is uploaded or written. Images
are uploaded first and the database write follows; if the write fails the
uploaded images are deleted again before the error propagates.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import BadRequestError, EntitlementDenied, ForbiddenError, NotFoundError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.account import Account
from src.core.service.community.models import VoteDirection
from src.core.service.entitlement import checker
from src.core.service.entitlement.entitlement_service import EntitlementService
from src.core.service.entitlement.models import Decision, SubscriptionPlan
from src.core.service.media.image_service import ImageHostingService
from src.core.service.media.models import StoredImage
from src.core.service.prompt.models import (
    FavoriteResult,
    ImageUpload,
    Prompt,
    PromptComment,
    PromptDraft,
    PromptImage,
    PromptList,
    PromptQuery,
    PromptRatingResult,
    PromptSort,
    PromptUpdate,
    PromptVoteResult,
    compute_metadata,
)
from src.core.utils.clock import Clock, utc_now
from src.core.utils.pagination import Page, clamp_page
from src.infra.repository.account_repository import AccountRepository
from src.infra.repository.prompt_repository import PromptRepository

logger = get_logger(__name__)

POPULAR_LIMIT = 10


class PromptService:
    def __init__(
        self,
        session: AsyncSession,
        image_service: Optional[ImageHostingService] = None,
        clock: Clock = utc_now
    ):
        self.session = session
        self.images = image_service or ImageHostingService()
        self.entitlements = EntitlementService(session, clock)
        self.accounts = AccountRepository(session)
        self.prompts = PromptRepository(session)

    def _deny(self, account: Account, action: str, decision: Decision) -> None:
        if not decision.allowed:
            logger.info(
                "Entitlement denied",
                extra={"account_id": str(account.id), "action": action, "reason": decision.reason}
            )
            raise EntitlementDenied.from_decision(decision)

    def _check_images(
        self,
        account: Account,
        plan: Optional[SubscriptionPlan],
        uploads: List[ImageUpload],
        existing_count: int,
        freed_bytes: int = 0
    ) -> None:
        for index, upload in enumerate(uploads):
            self._deny(
                account,
                "upload_image",
                checker.check_image_constraints(plan, upload.size, upload.extension, existing_count + index),
            )
        if uploads:
            # Bytes of images removed in the same request no longer count against storage
            total_bytes = max(0, sum(upload.size for upload in uploads) - freed_bytes)
            self._deny(account, "upload_image", checker.can_upload_image(account, plan, total_bytes))

    async def _upload_all(self, account: Account, uploads: List[ImageUpload]) -> List[StoredImage]:
        stored: List[StoredImage] = []
        try:
            for upload in uploads:
                stored.append(await self.images.upload(upload.data, caption=upload.caption))
        except Exception:
            await self._discard(account, stored)
            raise
        return stored

    async def _discard(self, account: Account, stored: List[StoredImage]) -> None:
        for image in stored:
            await self.images.delete(image.public_id)
        if stored:
            logger.warning(
                "Discarded uploaded images after failure",
                extra={"account_id": str(account.id), "public_ids": [image.public_id for image in stored]}
            )

    @staticmethod
    def _to_prompt_images(
        stored: List[StoredImage],
        uploads: List[ImageUpload],
        first_is_primary: bool
    ) -> List[PromptImage]:
        return [
            PromptImage(
                public_id=image.public_id,
                url=image.url,
                thumbnail_url=image.thumbnail_url,
                optimized_url=image.optimized_url,
                caption=upload.caption,
                format=image.format,
                width=image.width,
                height=image.height,
                bytes=image.bytes,
                is_primary=first_is_primary and index == 0,
            )
            for index, (image, upload) in enumerate(zip(stored, uploads))
        ]

    async def _get_owned(self, account: Account, prompt_id: UUID) -> Prompt:
        prompt = await self.prompts.get(prompt_id)
        if prompt is None:
            raise NotFoundError("Prompt not found")
        if prompt.author_id != account.id:
            raise ForbiddenError("Only the author can modify this prompt")
        return prompt

    async def create_prompt(self, account: Account, draft: PromptDraft, uploads: List[ImageUpload]) -> Prompt:
        plan = await self.entitlements.plan_for(account)

        await self.entitlements.require_create_content(account)
        self._deny(account, "prompt_length", checker.check_prompt_length(plan, draft.prompt_text))
        self.entitlements.require_level(account, draft.requires_level)
        if not draft.is_public and not checker.can_create_private_content(plan):
            self._deny(account, "private_content", Decision.deny("Your plan does not allow private prompts"))
        self._check_images(account, plan, uploads, existing_count=0)

        stored = await self._upload_all(account, uploads)
        try:
            prompt = await self.prompts.create(
                author_id=account.id,
                draft=draft,
                metadata=compute_metadata(draft.prompt_text, draft.result_text, len(stored)),
                images=self._to_prompt_images(stored, uploads, first_is_primary=True),
            )
            await self.accounts.record_content_created(account.id)
            for image in stored:
                await self.accounts.record_image_uploaded(account.id, image.bytes)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "Failed to save prompt",
                extra={"account_id": str(account.id), "error": str(e), "error_type": type(e).__name__},
                exc_info=True
            )
            await self._discard(account, stored)
            raise

        logger.info(
            "Prompt created",
            extra={"account_id": str(account.id), "prompt_id": str(prompt.id), "image_count": len(stored)}
        )
        return prompt

    async def update_prompt(
        self,
        account: Account,
        prompt_id: UUID,
        changes: PromptUpdate,
        uploads: List[ImageUpload]
    ) -> Prompt:
        """
        Edit an own prompt. Changed fields go through the same plan checks as
        creation; removed images release their storage and are deleted from
        the host only once the edit is committed.
        """
        prompt = await self._get_owned(account, prompt_id)
        plan = await self.entitlements.plan_for(account)
        fields = changes.changed_fields()

        if "prompt_text" in fields:
            self._deny(account, "prompt_length", checker.check_prompt_length(plan, changes.prompt_text))
        if "requires_level" in fields:
            self.entitlements.require_level(account, changes.requires_level)
        if fields.get("is_public") is False and not checker.can_create_private_content(plan):
            self._deny(account, "private_content", Decision.deny("Your plan does not allow private prompts"))

        images_by_id = {image.id: image for image in prompt.images}
        removed = []
        for image_id in dict.fromkeys(changes.images_to_delete):
            if image_id not in images_by_id:
                raise NotFoundError("Image not found")
            removed.append(images_by_id[image_id])
        removed_ids = {image.id for image in removed}
        kept = [image for image in prompt.images if image.id not in removed_ids]
        freed = sum(image.bytes for image in removed)

        final_count = len(kept) + len(uploads)
        if changes.primary_image_index is not None and changes.primary_image_index >= final_count:
            raise BadRequestError("Primary image index is out of range")
        self._check_images(account, plan, uploads, existing_count=len(kept), freed_bytes=freed)

        stored = await self._upload_all(account, uploads)
        try:
            for image in removed:
                await self.prompts.delete_image(prompt_id, image.id)
            await self.prompts.add_images(
                prompt_id,
                self._to_prompt_images(stored, uploads, first_is_primary=not any(i.is_primary for i in kept)),
            )

            images = (await self.prompts.get(prompt_id)).images
            if changes.primary_image_index is not None:
                await self.prompts.set_primary_image(prompt_id, images[changes.primary_image_index].id)
            elif images and not any(image.is_primary for image in images):
                await self.prompts.set_primary_image(prompt_id, images[0].id)

            await self.prompts.update_fields(
                prompt_id,
                fields,
                compute_metadata(
                    fields.get("prompt_text", prompt.prompt_text),
                    fields.get("result_text", prompt.result_text),
                    len(images),
                ),
            )
            if freed:
                await self.accounts.release_image_storage(account.id, freed)
            for image in stored:
                await self.accounts.record_image_uploaded(account.id, image.bytes)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "Failed to update prompt",
                extra={"account_id": str(account.id), "prompt_id": str(prompt_id), "error": str(e)},
                exc_info=True
            )
            await self._discard(account, stored)
            raise

        for image in removed:
            await self.images.delete(image.public_id)

        logger.info(
            "Prompt updated",
            extra={
                "account_id": str(account.id),
                "prompt_id": str(prompt_id),
                "fields": sorted(fields),
                "images_added": len(stored),
                "images_removed": len(removed),
            }
        )
        return await self.prompts.get(prompt_id)

    async def add_images(self, account: Account, prompt_id: UUID, uploads: List[ImageUpload]) -> Prompt:
        prompt = await self._get_owned(account, prompt_id)
        plan = await self.entitlements.plan_for(account)
        self._check_images(account, plan, uploads, existing_count=len(prompt.images))

        stored = await self._upload_all(account, uploads)
        try:
            await self.prompts.add_images(
                prompt_id,
                self._to_prompt_images(stored, uploads, first_is_primary=not prompt.images),
            )
            await self.prompts.update_image_metadata(prompt_id, len(prompt.images) + len(stored))
            for image in stored:
                await self.accounts.record_image_uploaded(account.id, image.bytes)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "Failed to attach images",
                extra={"account_id": str(account.id), "prompt_id": str(prompt_id), "error": str(e)},
                exc_info=True
            )
            await self._discard(account, stored)
            raise

        return await self.prompts.get(prompt_id)

    async def delete_image(self, account: Account, prompt_id: UUID, image_id: UUID) -> Prompt:
        prompt = await self._get_owned(account, prompt_id)
        image = next((image for image in prompt.images if image.id == image_id), None)
        if image is None:
            raise NotFoundError("Image not found")

        await self.images.delete(image.public_id)

        await self.prompts.delete_image(prompt_id, image_id)
        await self.prompts.update_image_metadata(prompt_id, len(prompt.images) - 1)
        await self.accounts.release_image_storage(account.id, image.bytes)
        await self.session.commit()

        logger.info(
            "Prompt image deleted",
            extra={"account_id": str(account.id), "prompt_id": str(prompt_id), "bytes": image.bytes}
        )
        return await self.prompts.get(prompt_id)

    async def set_primary_image(self, account: Account, prompt_id: UUID, image_id: UUID) -> Prompt:
        prompt = await self._get_owned(account, prompt_id)
        if not any(image.id == image_id for image in prompt.images):
            raise NotFoundError("Image not found")
        await self.prompts.set_primary_image(prompt_id, image_id)
        await self.session.commit()
        return await self.prompts.get(prompt_id)

    async def delete_prompt(self, account: Account, prompt_id: UUID) -> None:
        prompt = await self._get_owned(account, prompt_id)

        for image in prompt.images:
            await self.images.delete(image.public_id)

        await self.prompts.delete(prompt_id)
        if prompt.total_image_bytes:
            await self.accounts.release_image_storage(account.id, prompt.total_image_bytes)
        await self.session.commit()

        logger.info(
            "Prompt deleted",
            extra={"account_id": str(account.id), "prompt_id": str(prompt_id), "released_bytes": prompt.total_image_bytes}
        )

    async def _require_visible(self, prompt_id: UUID, viewer: Optional[Account]) -> Prompt:
        prompt = await self.prompts.get(prompt_id)
        # Private prompts are reported as missing to everyone but the author
        if prompt is None or (not prompt.is_public and (viewer is None or viewer.id != prompt.author_id)):
            raise NotFoundError("Prompt not found")
        return prompt

    async def get_prompt(self, prompt_id: UUID, viewer: Optional[Account] = None) -> Prompt:
        """Fetch a visible prompt; every view by someone other than the author is counted"""
        prompt = await self._require_visible(prompt_id, viewer)
        if viewer is None or viewer.id != prompt.author_id:
            await self.prompts.increment_views(prompt_id)
            await self.session.commit()
            prompt = await self.prompts.get(prompt_id)
        return prompt

    async def list_own(self, account: Account, page: int = 1, limit: int = 20) -> PromptList:
        page, limit = clamp_page(page, limit)
        prompts, total = await self.prompts.list_by_author(account.id, page, limit)
        return PromptList(prompts=prompts, pagination=Page.of(page, limit, total))

    async def list_prompts(self, query: PromptQuery, page: int = 1, limit: int = 20) -> PromptList:
        page, limit = clamp_page(page, limit)
        prompts, total = await self.prompts.list_public(query, page, limit)
        return PromptList(prompts=prompts, pagination=Page.of(page, limit, total))

    async def popular_prompts(self, limit: int = POPULAR_LIMIT) -> List[Prompt]:
        prompts, _ = await self.prompts.list_public(PromptQuery(sort=PromptSort.POPULAR), 1, limit)
        return prompts

    async def vote(self, account: Account, prompt_id: UUID, direction: VoteDirection) -> PromptVoteResult:
        """Voting the same way twice withdraws the vote; the opposite direction switches it."""
        await self._require_visible(prompt_id, account)

        current = await self.prompts.get_vote(prompt_id, account.id)
        new_vote = None if current == direction else direction
        await self.prompts.set_vote(prompt_id, account.id, new_vote)
        ups, downs = await self.prompts.recount_votes(prompt_id)
        await self.session.commit()

        return PromptVoteResult(prompt_id=prompt_id, upvote_count=ups, downvote_count=downs, user_vote=new_vote)

    async def rate(self, account: Account, prompt_id: UUID, rating: int) -> PromptRatingResult:
        await self._require_visible(prompt_id, account)
        average, count = await self.prompts.set_rating(prompt_id, account.id, rating)
        await self.session.commit()
        return PromptRatingResult(prompt_id=prompt_id, rating_average=average, rating_count=count, user_rating=rating)

    async def add_favorite(self, account: Account, prompt_id: UUID) -> FavoriteResult:
        await self._require_visible(prompt_id, account)
        await self.prompts.set_favorite(account.id, prompt_id, True)
        await self.session.commit()
        return FavoriteResult(prompt_id=prompt_id, is_favorite=True)

    async def remove_favorite(self, account: Account, prompt_id: UUID) -> FavoriteResult:
        await self.prompts.set_favorite(account.id, prompt_id, False)
        await self.session.commit()
        return FavoriteResult(prompt_id=prompt_id, is_favorite=False)

    async def list_favorites(self, account: Account, page: int = 1, limit: int = 20) -> PromptList:
        page, limit = clamp_page(page, limit)
        prompts, total = await self.prompts.list_favorites(account.id, page, limit)
        return PromptList(prompts=prompts, pagination=Page.of(page, limit, total))

    async def add_comment(self, account: Account, prompt_id: UUID, content: str) -> PromptComment:
        await self._require_visible(prompt_id, account)
        comment = await self.prompts.add_comment(prompt_id, account.id, content)
        await self.session.commit()
        return comment

    async def list_comments(self, prompt_id: UUID, viewer: Optional[Account] = None) -> List[PromptComment]:
        await self._require_visible(prompt_id, viewer)
        return await self.prompts.list_comments(prompt_id)
