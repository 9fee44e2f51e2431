"""
# AI Chat Models

Chat sessions between a user and the generative text model. Each session is owned by the
user who created it and holds an ordered list of `{role, content}` messages.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

DEFAULT_CHAT_TITLE = "New Chat"


class ChatRole(str, Enum):
    """Author of a chat message.

    Attributes:
        USER: Message typed by the user.
        AI: Reply produced by the generative model.
    """

    USER = "user"
    AI = "ai"


class ChatMessage(BaseModel):
    role: ChatRole
    content: str = Field(..., min_length=1, max_length=20000)


class NewChatRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=100)
    messages: List[ChatMessage] = Field(default_factory=list)


class SaveMessagesRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)


class UpdateTitleRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)


class AiPromptRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1, description="Conversation so far")


class AiReplyResponse(BaseModel):
    message: str


class AiChatResponse(BaseModel):
    id: str
    title: str
    messages: List[ChatMessage] = []
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AiChatResponse":
        return cls(
            id=str(doc["_id"]),
            title=doc.get("title", DEFAULT_CHAT_TITLE),
            messages=[ChatMessage(**message) for message in doc.get("messages") or []],
            user_id=str(doc.get("user_id", "")),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )
