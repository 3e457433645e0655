"""
S3-compatible object storage for member uploads
"""
import asyncio
import hashlib
import mimetypes
import os
from io import BytesIO
from typing import Any, Dict, Optional

import aioboto3
from botocore.exceptions import ClientError
from fastapi import HTTPException, status
from PIL import Image

from ..config import settings
from ..logging_config import setup_logging

logger = setup_logging(__name__)

THUMBNAIL_SIZES = [
    ("thumb", 150, 150),
    ("medium", 600, 600),
]
IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")


class ObjectStorage:
    """S3-compatible storage manager"""

    def __init__(self):
        self.session = None
        self.client = None

    async def connect(self):
        """Open the S3 client"""
        try:
            self.session = aioboto3.Session()
            self.client = await self.session.client(
                "s3",
                endpoint_url=settings.STORAGE_ENDPOINT_URL,
                aws_access_key_id=settings.STORAGE_ACCESS_KEY_ID,
                aws_secret_access_key=settings.STORAGE_SECRET_ACCESS_KEY,
                region_name=settings.STORAGE_REGION,
            ).__aenter__()

            logger.info("Connected to object storage")

        except Exception as e:
            logger.error(f"Failed to connect to object storage: {e}")
            raise

    async def close(self):
        if self.client:
            await self.client.__aexit__(None, None, None)
            self.client = None

    def public_url(self, key: str) -> str:
        base = settings.STORAGE_PUBLIC_URL or f"{settings.STORAGE_ENDPOINT_URL}/{settings.bucket_name}"
        return f"{base.rstrip('/')}/{key}"

    async def object_exists(self, key: str) -> bool:
        try:
            await self.client.head_object(Bucket=settings.bucket_name, Key=key)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey"):
                return False
            raise

    async def upload_file(self, file_data: bytes, key: str, content_type: Optional[str] = None) -> str:
        """Upload bytes under key; the call is bounded by EXTERNAL_CALL_TIMEOUT"""
        if not content_type:
            content_type = mimetypes.guess_type(key)[0] or "application/octet-stream"

        try:
            await asyncio.wait_for(
                self.client.put_object(
                    Bucket=settings.bucket_name,
                    Key=key,
                    Body=file_data,
                    ContentType=content_type,
                    CacheControl="public, max-age=31536000",
                ),
                timeout=settings.EXTERNAL_CALL_TIMEOUT,
            )
            logger.debug(f"Uploaded file: {key}")
            return key

        except asyncio.TimeoutError:
            logger.error(f"Upload of {key} timed out after {settings.EXTERNAL_CALL_TIMEOUT}s")
            raise
        except Exception as e:
            logger.error(f"Failed to upload {key}: {e}")
            raise

    async def store_upload(self, file_data: bytes, user_id: Any, filename: str,
                           content_type: Optional[str] = None) -> Dict[str, Any]:
        """
        Store a member upload under resources/{user}/{hash}{ext}

        Images also get thumbnails; a thumbnail failure does not fail the upload.
        """
        content_hash = hashlib.sha256(file_data).hexdigest()[:16]
        ext = os.path.splitext(filename)[1].lower()
        mime_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        key = f"resources/{user_id}/{content_hash}{ext}"

        await self.upload_file(file_data, key, mime_type)
        result = {
            "file_url": self.public_url(key),
            "file_name": filename,
            "file_size": len(file_data),
            "mime_type": mime_type,
            "thumbnail_url": None,
        }
        if mime_type in IMAGE_TYPES:
            thumbnails = await self._generate_thumbnails(file_data, f"resources/{user_id}", content_hash)
            result["thumbnail_url"] = thumbnails.get("thumb")
        return result

    async def _generate_thumbnails(self, image_data: bytes, base_key: str, content_hash: str) -> Dict[str, str]:
        """Generate thumbnail sizes"""
        urls = {}
        try:
            image = Image.open(BytesIO(image_data))

            if image.mode in ("RGBA", "LA", "P"):
                image = image.convert("RGB")

            for size_name, width, height in THUMBNAIL_SIZES:
                thumb = image.copy()
                thumb.thumbnail((width, height), Image.Resampling.LANCZOS)

                thumb_buffer = BytesIO()
                thumb.save(thumb_buffer, format="JPEG", quality=85, optimize=True)

                thumb_key = f"{base_key}/{size_name}_{content_hash}.jpg"
                await self.upload_file(thumb_buffer.getvalue(), thumb_key, "image/jpeg")
                urls[size_name] = self.public_url(thumb_key)

        except Exception as e:
            logger.warning(f"Failed to generate thumbnails: {e}")
        return urls

    async def delete_object(self, key: str):
        try:
            await asyncio.wait_for(
                self.client.delete_object(Bucket=settings.bucket_name, Key=key),
                timeout=settings.EXTERNAL_CALL_TIMEOUT,
            )
            logger.debug(f"Deleted object: {key}")

        except Exception as e:
            logger.error(f"Failed to delete {key}: {e}")
            raise

    def key_from_url(self, url: Optional[str]) -> Optional[str]:
        """Object key for a URL produced by public_url, None for foreign URLs"""
        if not url:
            return None
        base = self.public_url("")
        return url[len(base):] if url.startswith(base) else None


# Global storage instance
_storage: Optional[ObjectStorage] = None


async def get_storage() -> ObjectStorage:
    """FastAPI dependency returning the shared storage client"""
    global _storage

    if not settings.storage_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="File storage is not configured"
        )

    if _storage is None:
        _storage = ObjectStorage()
        await _storage.connect()

    return _storage


async def close_storage():
    global _storage

    if _storage:
        await _storage.close()
        _storage = None
