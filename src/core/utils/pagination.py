import math
from typing import Tuple

from pydantic import BaseModel

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class Page(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> "Page":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


def clamp_page(page: int, limit: int) -> Tuple[int, int]:
    """Normalize user-supplied paging parameters"""
    return max(1, page), min(max(1, limit), MAX_PAGE_SIZE)
