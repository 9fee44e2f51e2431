"""
# AI Chat Service

Owner-scoped chat sessions and a thin proxy to the Gemini generative text API.

Sessions are always looked up by `{_id, user_id}`, so a user can neither read nor modify
another user's chats; a foreign chat id behaves exactly like an unknown one.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from pymongo import DESCENDING, ReturnDocument

from blog_platform.config import settings
from blog_platform.database import AI_CHATS_COLLECTION, db_manager
from blog_platform.errors import NotFoundError, UpstreamError, UpstreamTimeoutError
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.ai_chat_models import DEFAULT_CHAT_TITLE, ChatMessage
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.utils.object_ids import parse_object_id

logger = get_logger(prefix="[AiChat]")


def build_prompt(messages: List[ChatMessage]) -> str:
    """Flatten the conversation into one prompt, one message per line."""
    return "\n".join(message.content for message in messages)


class AiChatService:
    def __init__(self):
        self.collection_name = AI_CHATS_COLLECTION
        self._model = None

    def _collection(self):
        return db_manager.get_collection(self.collection_name)

    def _owned(self, chat_id: str, actor: IdentityClaim) -> Dict[str, Any]:
        return {"_id": parse_object_id(chat_id, "Chat"), "user_id": actor.user_id}

    def _get_model(self):
        if self._model is None:
            if settings.GEMINI_API_KEY is None:
                raise UpstreamError("AI service is not configured")
            genai.configure(api_key=settings.GEMINI_API_KEY.get_secret_value())
            self._model = genai.GenerativeModel(settings.GEMINI_MODEL)
        return self._model

    async def list_chats(self, actor: IdentityClaim) -> List[Dict[str, Any]]:
        cursor = self._collection().find({"user_id": actor.user_id}).sort("updated_at", DESCENDING)
        return await cursor.to_list(length=None)

    async def get_chat(self, chat_id: str, actor: IdentityClaim) -> Dict[str, Any]:
        chat = await self._collection().find_one(self._owned(chat_id, actor))
        if not chat:
            raise NotFoundError("Chat not found")
        return chat

    async def create_chat(
        self, actor: IdentityClaim, title: Optional[str] = None, messages: Optional[List[ChatMessage]] = None
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc = {
            "title": title or DEFAULT_CHAT_TITLE,
            "messages": [message.model_dump(mode="json") for message in messages or []],
            "user_id": actor.user_id,
            "created_at": now,
            "updated_at": now,
        }
        result = await self._collection().insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Chat %s created for user %s", doc["_id"], actor.user_id)
        return doc

    async def _update_owned(self, chat_id: str, actor: IdentityClaim, update: Dict[str, Any]) -> Dict[str, Any]:
        update.setdefault("$set", {})["updated_at"] = datetime.now(timezone.utc)
        chat = await self._collection().find_one_and_update(
            self._owned(chat_id, actor), update, return_document=ReturnDocument.AFTER
        )
        if chat is None:
            raise NotFoundError("Chat not found")
        return chat

    async def update_title(self, chat_id: str, title: str, actor: IdentityClaim) -> Dict[str, Any]:
        return await self._update_owned(chat_id, actor, {"$set": {"title": title}})

    async def save_messages(self, chat_id: str, messages: List[ChatMessage], actor: IdentityClaim) -> Dict[str, Any]:
        """Append messages to a chat in order."""
        dumped = [message.model_dump(mode="json") for message in messages]
        return await self._update_owned(chat_id, actor, {"$push": {"messages": {"$each": dumped}}})

    async def delete_chat(self, chat_id: str, actor: IdentityClaim) -> None:
        result = await self._collection().delete_one(self._owned(chat_id, actor))
        if result.deleted_count == 0:
            raise NotFoundError("Chat not found")
        logger.info("Chat %s deleted by user %s", chat_id, actor.user_id)

    async def generate_reply(self, messages: List[ChatMessage]) -> str:
        """
        Ask the generative model to continue a conversation.

        Raises:
            UpstreamTimeoutError: If the model does not answer within `EXTERNAL_CALL_TIMEOUT`.
            UpstreamError: If the model is unconfigured, fails, or returns no text.
        """
        model = self._get_model()
        prompt = build_prompt(messages)
        try:
            response = await asyncio.wait_for(
                model.generate_content_async(prompt), timeout=settings.EXTERNAL_CALL_TIMEOUT
            )
            text = response.text
        except asyncio.TimeoutError:
            logger.error("AI reply timed out after %ss", settings.EXTERNAL_CALL_TIMEOUT)
            raise UpstreamTimeoutError("AI service timed out, please retry")
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            logger.error("AI reply failed: %s", e, exc_info=True)
            raise UpstreamError("Failed to generate AI response")

        if not text:
            raise UpstreamError("AI service returned an empty response")
        return text


ai_chat_service = AiChatService()
