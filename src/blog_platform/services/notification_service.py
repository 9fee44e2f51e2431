"""
# Notification Service

The admin-facing moderation feed. A notification is appended every time a post enters the
`pending` state and is consumed by admins reviewing submissions.

`emit` retries with exponential backoff before giving up, so transient store failures do not
turn into a post waiting in review with nobody told about it. Callers decide how to compensate
when every attempt fails.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List

from bson import ObjectId
from pymongo.errors import PyMongoError

from blog_platform.config import settings
from blog_platform.database import NOTIFICATIONS_COLLECTION, db_manager
from blog_platform.errors import NotFoundError
from blog_platform.managers.logging_manager import get_logger
from blog_platform.services.blog_metrics import blog_metrics
from blog_platform.models.notification_models import BLOG_REFERENCE
from blog_platform.utils.object_ids import parse_object_id

logger = get_logger(prefix="[NotificationService]")


class NotificationService:
    def __init__(self):
        self.collection_name = NOTIFICATIONS_COLLECTION

    def _collection(self):
        return db_manager.get_collection(self.collection_name)

    async def emit(self, blog_id: ObjectId, title: str, message: str) -> Dict[str, Any]:
        """
        Append one notification referencing `blog_id`.

        Args:
            blog_id (ObjectId): The post that entered review.
            title (str): Post title shown in the feed.
            message (str): Human-readable event description.

        Returns:
            Dict[str, Any]: The stored notification document.

        Raises:
            PyMongoError: The last store error once every retry is exhausted.
        """
        doc = {
            "message": message,
            "title": title,
            "blog_id": blog_id,
            "read": False,
            "created_at": datetime.now(timezone.utc),
        }
        attempts = settings.NOTIFICATION_EMIT_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                result = await self._collection().insert_one(dict(doc))
                doc["_id"] = result.inserted_id
                blog_metrics.record_notification("emitted")
                logger.info("Notification emitted for post %s", blog_id)
                return doc
            except PyMongoError as e:
                logger.warning("Notification emit attempt %d/%d for post %s failed: %s", attempt, attempts, blog_id, e)
                if attempt == attempts:
                    blog_metrics.record_notification("failed")
                    raise
                await asyncio.sleep(settings.NOTIFICATION_RETRY_BACKOFF * (2 ** (attempt - 1)))

    async def list_unread(self) -> List[Dict[str, Any]]:
        cursor = self._collection().find({"read": False}).sort("created_at", -1)
        return await cursor.to_list(length=None)

    async def mark_read_for_post(self, post_id: str) -> int:
        """Mark every notification about `post_id` as read. Returns the number updated."""
        blog_id = parse_object_id(post_id, "Post")
        result = await self._collection().update_many(
            {**BLOG_REFERENCE.referrers(blog_id), "read": False}, {"$set": {"read": True}}
        )
        logger.info("Marked %d notifications read for post %s", result.modified_count, post_id)
        return result.modified_count

    async def delete(self, notification_id: str) -> None:
        oid = parse_object_id(notification_id, "Notification")
        result = await self._collection().delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise NotFoundError("Notification not found")
        logger.info("Deleted notification %s", notification_id)


notification_service = NotificationService()
