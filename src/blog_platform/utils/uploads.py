"""Conversion of multipart uploads into `MediaUpload` values for the media store."""

from typing import List, Optional

from fastapi import UploadFile

from blog_platform.services.media_storage import MediaUpload


async def read_upload(file: Optional[UploadFile]) -> Optional[MediaUpload]:
    """Read an optional upload fully into memory. Missing or empty parts yield `None`."""
    if file is None or not file.filename:
        return None
    data = await file.read()
    if not data:
        return None
    return MediaUpload(data=data, filename=file.filename, content_type=file.content_type or "")


async def read_uploads(files: Optional[List[UploadFile]]) -> List[MediaUpload]:
    uploads = []
    for file in files or []:
        upload = await read_upload(file)
        if upload is not None:
            uploads.append(upload)
    return uploads
