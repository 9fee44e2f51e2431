"""Messaging feed models."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """Kinds of messages in the feed.

    Attributes:
        TEXT: `content` is the message text.
        FILE: `content` is the hosted file URL.
    """

    TEXT = "text"
    FILE = "file"


class MessageCreateRequest(BaseModel):
    message_type: MessageType = Field(MessageType.TEXT, description="Message kind")
    content: str = Field(..., min_length=1, max_length=5000, description="Text or URL")


class MessageResponse(BaseModel):
    id: str
    sender_id: str
    message_type: MessageType
    content: str
    file_type: Optional[str] = None
    timestamp: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "MessageResponse":
        return cls(
            id=str(doc["_id"]),
            sender_id=str(doc.get("sender_id", "")),
            message_type=MessageType(doc.get("message_type", MessageType.TEXT.value)),
            content=doc.get("content", ""),
            file_type=doc.get("file_type"),
            timestamp=doc.get("timestamp"),
        )


class FileUploadResponse(BaseModel):
    message: str
    file_url: str
    message_id: str
