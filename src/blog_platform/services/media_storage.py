"""
# Media Storage

Client for the Cloudinary media host, used for post images, draft images, profile pictures
and messaging attachments. The `cloudinary` SDK is blocking, so every call runs in a worker
thread and is bounded by `settings.EXTERNAL_CALL_TIMEOUT`.

**Operations:**
- `upload(media, folder)` returns the hosted URL and the public id needed to delete it later.
- `delete(public_id)` removes a hosted asset.
- `delete_quietly(public_id)` is the cleanup variant: failures are logged, not raised, so a
  committed content change is never rolled back because an old image could not be removed.

Timeouts surface as `UpstreamTimeoutError` (retryable), any other failure as `UpstreamError`.
"""

import asyncio
import io
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from blog_platform.config import settings
from blog_platform.errors import UpstreamError, UpstreamTimeoutError
from blog_platform.managers.logging_manager import get_logger

logger = get_logger(prefix="[MediaStorage]")

IMAGE_CONTENT_PREFIX = "image/"


@dataclass
class MediaUpload:
    """File received from a client, read fully into memory."""

    data: bytes
    filename: str
    content_type: str

    @property
    def is_image(self) -> bool:
        return (self.content_type or "").startswith(IMAGE_CONTENT_PREFIX)


@dataclass
class StoredMedia:
    """Asset as hosted by the media store."""

    url: str
    public_id: str


class MediaStorage:
    """Cloudinary upload and destroy calls, run off the event loop."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT

    def _configure(self) -> None:
        if not settings.cloudinary_configured:
            raise UpstreamError("Media storage is not configured")
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET.get_secret_value(),
            secure=True,
        )

    async def _call(self, operation: str, func: Callable[..., Dict[str, Any]], *args, **kwargs) -> Dict[str, Any]:
        self._configure()
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Media storage call %s timed out after %ss", operation, self.timeout)
            raise UpstreamTimeoutError("Media storage timed out, please retry")
        except cloudinary.exceptions.Error as e:
            logger.error("Media storage rejected %s: %s", operation, e)
            raise UpstreamError("Media storage rejected the request")
        except OSError as e:
            logger.error("Media storage call %s failed: %s", operation, e, exc_info=True)
            raise UpstreamError("Media storage unavailable")

    async def upload(self, media: MediaUpload, folder: str, resource_type: str = "image") -> StoredMedia:
        """
        Upload a file to the media host.

        Args:
            media (MediaUpload): File contents and metadata.
            folder (str): Destination folder on the media host.
            resource_type (str): `"image"`, `"video"`, `"raw"` or `"auto"`.

        Returns:
            StoredMedia: Delivery URL and public id.

        Raises:
            UpstreamTimeoutError: If the upload exceeds the configured timeout.
            UpstreamError: If the media host is unconfigured, unreachable or rejects the file.
        """
        start_time = time.time()
        result = await self._call(
            "upload",
            cloudinary.uploader.upload,
            io.BytesIO(media.data),
            folder=folder,
            resource_type=resource_type,
            filename=media.filename or "upload",
        )
        stored = StoredMedia(url=result.get("secure_url") or result["url"], public_id=result["public_id"])
        logger.info("Uploaded %s to folder %s in %.3fs", stored.public_id, folder, time.time() - start_time)
        return stored

    async def delete(self, public_id: str, resource_type: str = "image") -> None:
        """Remove a hosted asset. A missing asset is not an error."""
        result = await self._call("destroy", cloudinary.uploader.destroy, public_id, resource_type=resource_type)
        logger.info("Deleted media %s: %s", public_id, result.get("result"))

    async def delete_quietly(self, public_id: Optional[str], resource_type: str = "image") -> bool:
        """Delete an asset as post-commit cleanup. Returns whether the deletion succeeded."""
        if not public_id:
            return True
        try:
            await self.delete(public_id, resource_type)
            return True
        except UpstreamError as e:
            logger.warning("Could not delete media %s during cleanup: %s", public_id, e.message)
            return False


media_storage = MediaStorage()
