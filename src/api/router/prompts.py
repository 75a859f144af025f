"""Prompts with hosted images. Creation, edits and image uploads are multipart."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError

from src.core.dependencies import get_current_account, get_optional_account, get_prompt_service
from src.core.exceptions.base import ValidationFailed
from src.core.service.auth.models.account import Account
from src.core.service.auth.models.auth import MessageResponse
from src.core.service.community.models import VoteDirection
from src.core.service.entitlement.models import AccountLevel
from src.core.service.prompt.models import (
    AITool,
    CreatePromptCommentRequest,
    FavoriteResult,
    ImageUpload,
    Prompt,
    PromptCategory,
    PromptComment,
    PromptDraft,
    PromptList,
    PromptQuery,
    PromptRatingResult,
    PromptSort,
    PromptUpdate,
    PromptVoteResult,
    RatePromptRequest,
)
from src.core.service.prompt.prompt_service import PromptService

router = APIRouter(
    prefix="/prompts",
    tags=["Prompts"],
    responses={
        403: {"description": "Entitlement denied"},
        502: {"description": "Image host failed"},
    }
)


async def _read_uploads(files: List[UploadFile], captions: List[str]) -> List[ImageUpload]:
    uploads = []
    for index, upload in enumerate(files):
        uploads.append(
            ImageUpload(
                data=await upload.read(),
                filename=upload.filename or "",
                content_type=upload.content_type,
                caption=captions[index] if index < len(captions) else "",
            )
        )
    return uploads


def _split_tags(tags: Optional[str]) -> List[str]:
    if not tags:
        return []
    return [tag.strip().lower() for tag in tags.split(",") if tag.strip()]


@router.post("", response_model=Prompt, status_code=status.HTTP_201_CREATED)
async def create_prompt(
    title: str = Form(...),
    description: str = Form(...),
    prompt_text: str = Form(...),
    result_text: str = Form(""),
    ai_tool: AITool = Form(AITool.OTHER),
    category: PromptCategory = Form(PromptCategory.OTHER),
    tags: Optional[str] = Form(None, description="Comma-separated tags"),
    is_public: bool = Form(True),
    requires_level: AccountLevel = Form(AccountLevel.NEWBIE),
    captions: List[str] = Form([]),
    images: List[UploadFile] = File([]),
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    """
    Create a prompt with optional images. Plan quota, prompt length,
    private-content and storage checks all run before any upload.
    """
    try:
        draft = PromptDraft(
            title=title,
            description=description,
            prompt_text=prompt_text,
            result_text=result_text,
            ai_tool=ai_tool,
            category=category,
            tags=_split_tags(tags),
            is_public=is_public,
            requires_level=requires_level,
        )
    except ValidationError as e:
        raise ValidationFailed(details={"validation_errors": e.errors(include_url=False, include_context=False, include_input=False)})

    uploads = await _read_uploads(images, captions)
    return await prompt_service.create_prompt(account, draft, uploads)


@router.get("/mine", response_model=PromptList)
async def list_my_prompts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.list_own(account, page, limit)


@router.get("", response_model=PromptList)
async def list_prompts(
    search: Optional[str] = Query(None, max_length=100, description="Matches title, description and tags"),
    ai_tool: Optional[AITool] = Query(None),
    category: Optional[PromptCategory] = Query(None),
    tag: Optional[str] = Query(None),
    author_id: Optional[UUID] = Query(None),
    sort: PromptSort = Query(PromptSort.NEW),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    query = PromptQuery(search=search, ai_tool=ai_tool, category=category, tag=tag, author_id=author_id, sort=sort)
    return await prompt_service.list_prompts(query, page, limit)


@router.get("/popular", response_model=List[Prompt])
async def popular_prompts(prompt_service: PromptService = Depends(get_prompt_service)):
    """Most upvoted public prompts"""
    return await prompt_service.popular_prompts()


@router.get("/favorites", response_model=PromptList)
async def list_favorites(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.list_favorites(account, page, limit)


@router.get("/{prompt_id}", response_model=Prompt)
async def get_prompt(
    prompt_id: UUID,
    viewer: Optional[Account] = Depends(get_optional_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.get_prompt(prompt_id, viewer)


@router.put("/{prompt_id}", response_model=Prompt)
async def update_prompt(
    prompt_id: UUID,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    prompt_text: Optional[str] = Form(None),
    result_text: Optional[str] = Form(None),
    ai_tool: Optional[AITool] = Form(None),
    category: Optional[PromptCategory] = Form(None),
    tags: Optional[str] = Form(None, description="Comma-separated tags, replaces the current ones"),
    is_public: Optional[bool] = Form(None),
    requires_level: Optional[AccountLevel] = Form(None),
    images_to_delete: List[UUID] = Form([]),
    primary_image_index: Optional[int] = Form(None),
    captions: List[str] = Form([]),
    images: List[UploadFile] = File([]),
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    """
    Edit a prompt. Only the fields sent are changed. Images listed in
    images_to_delete are removed and new files are attached in the same call.
    """
    try:
        changes = PromptUpdate(
            title=title,
            description=description,
            prompt_text=prompt_text,
            result_text=result_text,
            ai_tool=ai_tool,
            category=category,
            tags=_split_tags(tags) if tags is not None else None,
            is_public=is_public,
            requires_level=requires_level,
            images_to_delete=images_to_delete,
            primary_image_index=primary_image_index,
        )
    except ValidationError as e:
        raise ValidationFailed(details={"validation_errors": e.errors(include_url=False, include_context=False, include_input=False)})

    uploads = await _read_uploads(images, captions)
    return await prompt_service.update_prompt(account, prompt_id, changes, uploads)


@router.delete("/{prompt_id}", response_model=MessageResponse)
async def delete_prompt(
    prompt_id: UUID,
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    await prompt_service.delete_prompt(account, prompt_id)
    return MessageResponse(message="Prompt deleted")


@router.post("/{prompt_id}/images", response_model=Prompt)
async def add_images(
    prompt_id: UUID,
    images: List[UploadFile] = File(...),
    captions: List[str] = Form([]),
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    uploads = await _read_uploads(images, captions)
    return await prompt_service.add_images(account, prompt_id, uploads)


@router.delete("/{prompt_id}/images/{image_id}", response_model=Prompt)
async def delete_image(
    prompt_id: UUID,
    image_id: UUID,
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.delete_image(account, prompt_id, image_id)


@router.put("/{prompt_id}/images/{image_id}/primary", response_model=Prompt)
async def set_primary_image(
    prompt_id: UUID,
    image_id: UUID,
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.set_primary_image(account, prompt_id, image_id)


@router.post("/{prompt_id}/upvote", response_model=PromptVoteResult)
async def upvote(
    prompt_id: UUID,
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.vote(account, prompt_id, VoteDirection.UP)


@router.post("/{prompt_id}/downvote", response_model=PromptVoteResult)
async def downvote(
    prompt_id: UUID,
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.vote(account, prompt_id, VoteDirection.DOWN)


@router.post("/{prompt_id}/rate", response_model=PromptRatingResult)
async def rate_prompt(
    prompt_id: UUID,
    request: RatePromptRequest,
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.rate(account, prompt_id, request.rating)


@router.post("/{prompt_id}/favorite", response_model=FavoriteResult)
async def add_favorite(
    prompt_id: UUID,
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.add_favorite(account, prompt_id)


@router.delete("/{prompt_id}/favorite", response_model=FavoriteResult)
async def remove_favorite(
    prompt_id: UUID,
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.remove_favorite(account, prompt_id)


@router.get("/{prompt_id}/comments", response_model=List[PromptComment])
async def list_comments(
    prompt_id: UUID,
    viewer: Optional[Account] = Depends(get_optional_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.list_comments(prompt_id, viewer)


@router.post("/{prompt_id}/comments", response_model=PromptComment, status_code=status.HTTP_201_CREATED)
async def add_comment(
    prompt_id: UUID,
    request: CreatePromptCommentRequest,
    account: Account = Depends(get_current_account),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    return await prompt_service.add_comment(account, prompt_id, request.content)
