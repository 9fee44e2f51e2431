"""
# Messaging Routes

A shared message feed with file attachments.

Attributes:
    router (APIRouter): FastAPI router with `/messaging` prefix
"""

from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status

from blog_platform.errors import ValidationError
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.message_models import FileUploadResponse, MessageCreateRequest, MessageResponse
from blog_platform.routes.auth.dependencies import get_current_user
from blog_platform.services.message_service import message_service
from blog_platform.utils.uploads import read_upload

router = APIRouter(prefix="/messaging", tags=["messaging"])


@router.post("/upload", response_model=FileUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(file: UploadFile = File(...), current_user: IdentityClaim = Depends(get_current_user)):
    """Host a file and post it to the feed as a `file` message."""
    upload = await read_upload(file)
    if upload is None:
        raise ValidationError("No file uploaded", [{"field": "file", "message": "Empty file"}])
    message = await message_service.upload_file(current_user, upload)
    return FileUploadResponse(
        message="File uploaded successfully", file_url=message["content"], message_id=str(message["_id"])
    )


@router.post("/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(request: MessageCreateRequest, current_user: IdentityClaim = Depends(get_current_user)):
    message = await message_service.send_message(current_user, request.content, request.message_type)
    return MessageResponse.from_document(message)


@router.get("/messages", response_model=List[MessageResponse])
async def list_messages(current_user: IdentityClaim = Depends(get_current_user)):
    return [MessageResponse.from_document(message) for message in await message_service.list_messages()]
