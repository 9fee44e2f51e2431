"""
Tests for the media host client.
"""

import time
from unittest.mock import MagicMock, patch

import cloudinary.exceptions
import cloudinary.uploader
import pytest

from blog_platform.errors import UpstreamError, UpstreamTimeoutError
from blog_platform.services.media_storage import MediaStorage, MediaUpload


@pytest.fixture
def storage():
    return MediaStorage(timeout=5)


@pytest.fixture
def picture():
    return MediaUpload(data=b"\x89PNG\r\n", filename="cat.png", content_type="image/png")


@pytest.mark.asyncio
async def test_upload_returns_secure_url(storage, picture):
    result = {"secure_url": "https://res.cloudinary.com/demo/cat.png", "public_id": "blog-images/cat"}
    with patch.object(cloudinary.uploader, "upload", MagicMock(return_value=result)) as upload:
        stored = await storage.upload(picture, "blog-images")

    assert stored.url == "https://res.cloudinary.com/demo/cat.png"
    assert stored.public_id == "blog-images/cat"
    upload.assert_called_once()
    assert upload.call_args.args[0].read() == picture.data
    assert upload.call_args.kwargs["folder"] == "blog-images"
    assert upload.call_args.kwargs["resource_type"] == "image"


@pytest.mark.asyncio
async def test_upload_timeout_is_retryable(picture):
    storage = MediaStorage(timeout=0.05)

    def slow_upload(*args, **kwargs):
        time.sleep(0.3)
        return {"secure_url": "https://cdn/late.png", "public_id": "late"}

    with patch.object(cloudinary.uploader, "upload", slow_upload):
        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await storage.upload(picture, "blog-images")
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_rejected_upload_is_upstream_error(storage, picture):
    rejected = MagicMock(side_effect=cloudinary.exceptions.BadRequest("Invalid image file"))

    with patch.object(cloudinary.uploader, "upload", rejected):
        with pytest.raises(UpstreamError) as exc_info:
            await storage.upload(picture, "blog-images")
    assert not isinstance(exc_info.value, UpstreamTimeoutError)


@pytest.mark.asyncio
async def test_unconfigured_storage_is_upstream_error(storage, picture):
    with patch("blog_platform.services.media_storage.settings") as settings:
        settings.cloudinary_configured = False
        with pytest.raises(UpstreamError):
            await storage.upload(picture, "blog-images")


@pytest.mark.asyncio
async def test_delete_quietly_reports_failure_without_raising(storage):
    failing = MagicMock(side_effect=ConnectionResetError("reset by peer"))

    with patch.object(cloudinary.uploader, "destroy", failing):
        assert await storage.delete_quietly("blog-images/cat") is False
    assert await storage.delete_quietly(None) is True
    failing.assert_called_once()


@pytest.mark.asyncio
async def test_delete(storage):
    with patch.object(cloudinary.uploader, "destroy", MagicMock(return_value={"result": "ok"})) as destroy:
        await storage.delete("blog-images/cat")

    destroy.assert_called_once_with("blog-images/cat", resource_type="image")
