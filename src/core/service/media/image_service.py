"""
Image hosting on Cloudinary.

The SDK is synchronous, so every call runs in the threadpool.
"""

import io
from typing import Any, Dict, Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import cloudinary.utils
from starlette.concurrency import run_in_threadpool

from src.core.exceptions.base import UpstreamError
from src.core.logger.logger import get_logger
from src.core.service.media.models import StoredImage
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

UPLOAD_TRANSFORMATION = [
    {"width": 1200, "height": 800, "crop": "limit", "quality": "auto", "fetch_format": "auto"}
]


class ImageHostingService:
    def __init__(self, folder: Optional[str] = None):
        self.folder = folder or settings.CLOUDINARY_FOLDER
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True,
        )

    @staticmethod
    def thumbnail_url(public_id: str, width: int = 300, height: int = 200) -> str:
        url, _ = cloudinary.utils.cloudinary_url(
            public_id, width=width, height=height, crop="fill", quality="auto", fetch_format="auto"
        )
        return url

    @staticmethod
    def optimized_url(public_id: str, width: int = 1200, height: int = 800) -> str:
        url, _ = cloudinary.utils.cloudinary_url(
            public_id, width=width, height=height, crop="limit", quality="auto", fetch_format="auto"
        )
        return url

    def _to_stored_image(self, result: Dict[str, Any]) -> StoredImage:
        public_id = result["public_id"]
        return StoredImage(
            public_id=public_id,
            url=result.get("secure_url") or result.get("url", ""),
            bytes=int(result.get("bytes", 0)),
            width=result.get("width"),
            height=result.get("height"),
            format=result.get("format"),
            thumbnail_url=self.thumbnail_url(public_id),
            optimized_url=self.optimized_url(public_id),
        )

    async def upload(self, data: bytes, folder: Optional[str] = None, caption: str = "") -> StoredImage:
        options: Dict[str, Any] = {
            "folder": folder or self.folder,
            "resource_type": "image",
            "transformation": UPLOAD_TRANSFORMATION,
        }
        if caption:
            options["context"] = {"caption": caption}

        try:
            result = await run_in_threadpool(cloudinary.uploader.upload, io.BytesIO(data), **options)
        except cloudinary.exceptions.Error as e:
            logger.error("Image upload failed", extra={"error": str(e), "size": len(data)})
            raise UpstreamError("Image upload failed", details={"reason": str(e)})

        image = self._to_stored_image(result)
        logger.info("Image uploaded", extra={"public_id": image.public_id, "bytes": image.bytes})
        return image

    async def delete(self, public_id: str) -> bool:
        """Best effort: failures are logged and reported as False."""
        try:
            result = await run_in_threadpool(cloudinary.uploader.destroy, public_id)
        except cloudinary.exceptions.Error as e:
            logger.error("Image deletion failed", extra={"public_id": public_id, "error": str(e)})
            return False

        deleted = result.get("result") == "ok"
        if not deleted:
            logger.warning("Image host did not delete image", extra={"public_id": public_id, "result": result})
        return deleted
