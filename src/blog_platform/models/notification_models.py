"""Notification models for the admin moderation feed."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from blog_platform.models.blog_models import WeakReference

BLOG_REFERENCE = WeakReference(source_field="blog_id", target_collection="blog_posts", target_key="_id")


class NotificationResponse(BaseModel):
    id: str
    message: str
    title: str
    blog_id: str
    read: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "NotificationResponse":
        return cls(
            id=str(doc["_id"]),
            message=doc.get("message", ""),
            title=doc.get("title", ""),
            blog_id=str(doc.get("blog_id", "")),
            read=doc.get("read", False),
            created_at=doc.get("created_at"),
        )
