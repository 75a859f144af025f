"""
Prompt models and derived prompt metadata
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.core.service.community.models import VoteDirection
from src.core.service.entitlement.models import AccountLevel
from src.core.utils.pagination import Page

CODE_FENCE = "```"


class AITool(str, Enum):
    CHATGPT = "ChatGPT"
    CLAUDE = "Claude"
    BARD = "Bard"
    MIDJOURNEY = "Midjourney"
    DALL_E = "DALL-E"
    STABLE_DIFFUSION = "Stable Diffusion"
    OTHER = "Other"


class PromptCategory(str, Enum):
    ART = "Art"
    WRITING = "Writing"
    CODE = "Code"
    MARKETING = "Marketing"
    DESIGN = "Design"
    EDUCATION = "Education"
    OTHER = "Other"


class PromptImage(BaseModel):
    id: Optional[UUID] = None
    public_id: str
    url: str
    thumbnail_url: Optional[str] = None
    optimized_url: Optional[str] = None
    caption: str = ""
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    bytes: int = 0
    is_primary: bool = False
    uploaded_at: Optional[datetime] = None


class PromptMetadata(BaseModel):
    word_count: int = 0
    character_count: int = 0
    has_images: bool = False
    has_code: bool = False
    image_count: int = 0


class Prompt(BaseModel):
    id: UUID
    author_id: UUID
    title: str
    description: str
    prompt_text: str
    result_text: str = ""
    ai_tool: AITool = AITool.OTHER
    category: PromptCategory = PromptCategory.OTHER
    tags: List[str] = Field(default_factory=list)
    is_public: bool = True
    requires_level: AccountLevel = AccountLevel.NEWBIE
    images: List[PromptImage] = Field(default_factory=list)
    prompt_metadata: PromptMetadata = Field(default_factory=PromptMetadata)
    views: int = 0
    upvote_count: int = 0
    downvote_count: int = 0
    rating_average: float = 0.0
    rating_count: int = 0
    comment_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def total_image_bytes(self) -> int:
        return sum(image.bytes for image in self.images)


class PromptDraft(BaseModel):
    """Validated form fields for a new prompt"""
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    prompt_text: str = Field(..., min_length=1)
    result_text: str = ""
    ai_tool: AITool = AITool.OTHER
    category: PromptCategory = PromptCategory.OTHER
    tags: List[str] = Field(default_factory=list)
    is_public: bool = True
    requires_level: AccountLevel = AccountLevel.NEWBIE


class PromptUpdate(BaseModel):
    """Partial edit; fields left as None keep their stored value"""
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    prompt_text: Optional[str] = Field(None, min_length=1)
    result_text: Optional[str] = None
    ai_tool: Optional[AITool] = None
    category: Optional[PromptCategory] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None
    requires_level: Optional[AccountLevel] = None
    images_to_delete: List[UUID] = Field(default_factory=list)
    primary_image_index: Optional[int] = Field(None, ge=0)

    def changed_fields(self) -> dict:
        return self.model_dump(exclude_none=True, exclude={"images_to_delete", "primary_image_index"})


class ImageUpload(BaseModel):
    """Raw image received from a multipart request"""
    data: bytes
    filename: str = ""
    content_type: Optional[str] = None
    caption: str = ""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> Optional[str]:
        if "." in self.filename:
            return self.filename.rsplit(".", 1)[-1].lower()
        if self.content_type and "/" in self.content_type:
            return self.content_type.split("/", 1)[-1].lower()
        return None


def compute_metadata(prompt_text: str, result_text: str, image_count: int) -> PromptMetadata:
    return PromptMetadata(
        word_count=len(prompt_text.split()),
        character_count=len(prompt_text),
        has_images=image_count > 0,
        has_code=CODE_FENCE in prompt_text or CODE_FENCE in (result_text or ""),
        image_count=image_count,
    )


class PromptList(BaseModel):
    prompts: List[Prompt]
    pagination: Page


class PromptSort(str, Enum):
    NEW = "new"
    POPULAR = "popular"
    TOP_RATED = "top_rated"
    MOST_VIEWED = "most_viewed"


class PromptQuery(BaseModel):
    """Filters for the public prompt listing"""
    search: Optional[str] = None
    ai_tool: Optional[AITool] = None
    category: Optional[PromptCategory] = None
    tag: Optional[str] = None
    author_id: Optional[UUID] = None
    sort: PromptSort = PromptSort.NEW


class PromptVoteResult(BaseModel):
    prompt_id: UUID
    upvote_count: int
    downvote_count: int
    user_vote: Optional[VoteDirection] = None


class RatePromptRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)


class PromptRatingResult(BaseModel):
    prompt_id: UUID
    rating_average: float
    rating_count: int
    user_rating: int


class FavoriteResult(BaseModel):
    prompt_id: UUID
    is_favorite: bool


class PromptComment(BaseModel):
    id: UUID
    prompt_id: UUID
    author_id: UUID
    content: str
    created_at: Optional[datetime] = None


class CreatePromptCommentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


def average_rating(ratings: List[int]) -> float:
    """Mean of the given star ratings rounded to one decimal, 0.0 when unrated"""
    if not ratings:
        return 0.0
    return round(sum(ratings) / len(ratings), 1)
