"""
# AI Chat Routes

Chat sessions with the generative text model. Every session belongs to the user who created
it; other users' chats are reported as missing.

Attributes:
    router (APIRouter): FastAPI router with `/chat` prefix
"""

from typing import List

from fastapi import APIRouter, Depends, status

from blog_platform.models.ai_chat_models import (
    AiChatResponse,
    AiPromptRequest,
    AiReplyResponse,
    NewChatRequest,
    SaveMessagesRequest,
    UpdateTitleRequest,
)
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.blog_models import AckResponse
from blog_platform.routes.auth.dependencies import get_current_user
from blog_platform.services.ai_chat_service import ai_chat_service

router = APIRouter(prefix="/chat", tags=["ai-chat"])


@router.get("/all-chats", response_model=List[AiChatResponse])
async def all_chats(current_user: IdentityClaim = Depends(get_current_user)):
    chats = await ai_chat_service.list_chats(current_user)
    return [AiChatResponse.from_document(chat) for chat in chats]


@router.get("/chats/{chat_id}", response_model=AiChatResponse)
async def get_chat(chat_id: str, current_user: IdentityClaim = Depends(get_current_user)):
    return AiChatResponse.from_document(await ai_chat_service.get_chat(chat_id, current_user))


@router.post("/new-chats", response_model=AiChatResponse, status_code=status.HTTP_201_CREATED)
async def new_chat(request: NewChatRequest, current_user: IdentityClaim = Depends(get_current_user)):
    chat = await ai_chat_service.create_chat(current_user, title=request.title, messages=request.messages)
    return AiChatResponse.from_document(chat)


@router.patch("/update-title/{chat_id}", response_model=AiChatResponse)
async def update_title(
    chat_id: str, request: UpdateTitleRequest, current_user: IdentityClaim = Depends(get_current_user)
):
    chat = await ai_chat_service.update_title(chat_id, request.title, current_user)
    return AiChatResponse.from_document(chat)


@router.post("/save-chats/{chat_id}/messages", response_model=AiChatResponse)
async def save_messages(
    chat_id: str, request: SaveMessagesRequest, current_user: IdentityClaim = Depends(get_current_user)
):
    chat = await ai_chat_service.save_messages(chat_id, request.messages, current_user)
    return AiChatResponse.from_document(chat)


@router.delete("/delete-chats/{chat_id}", response_model=AckResponse)
async def delete_chat(chat_id: str, current_user: IdentityClaim = Depends(get_current_user)):
    await ai_chat_service.delete_chat(chat_id, current_user)
    return AckResponse(message="Chat deleted successfully")


@router.post("/ai-response", response_model=AiReplyResponse)
async def ai_response(request: AiPromptRequest, current_user: IdentityClaim = Depends(get_current_user)):
    """
    Generate the model's reply to a conversation.

    Raises:
        UpstreamTimeoutError(503): The model did not answer in time; retry later.
        UpstreamError(502): The model failed or is not configured.
    """
    return AiReplyResponse(message=await ai_chat_service.generate_reply(request.messages))
