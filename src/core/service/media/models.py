from typing import Optional

from pydantic import BaseModel


class StoredImage(BaseModel):
    """Descriptor returned by the image host. `bytes` is authoritative for quota accounting."""
    public_id: str
    url: str
    bytes: int
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    thumbnail_url: Optional[str] = None
    optimized_url: Optional[str] = None
