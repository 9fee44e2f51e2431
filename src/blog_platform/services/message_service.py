"""
# Message Service

A shared message feed: authenticated users post text messages or upload files. The sender is
always taken from the verified identity, never from the request body.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from pymongo import ASCENDING

from blog_platform.config import settings
from blog_platform.database import MESSAGES_COLLECTION, db_manager
from blog_platform.errors import ValidationError
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.message_models import MessageType
from blog_platform.services.media_storage import MediaUpload, media_storage

logger = get_logger(prefix="[Messaging]")

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class MessageService:
    def __init__(self):
        self.collection_name = MESSAGES_COLLECTION

    def _collection(self):
        return db_manager.get_collection(self.collection_name)

    async def _insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc["timestamp"] = datetime.now(timezone.utc)
        result = await self._collection().insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def send_message(self, actor: IdentityClaim, content: str, message_type: MessageType) -> Dict[str, Any]:
        doc = await self._insert(
            {"sender_id": actor.user_id, "message_type": message_type.value, "content": content, "file_type": None}
        )
        logger.info("Message %s sent by %s", doc["_id"], actor.user_id)
        return doc

    async def upload_file(self, actor: IdentityClaim, upload: MediaUpload) -> Dict[str, Any]:
        """Host the file and record a `file` message pointing at it."""
        if not upload.data:
            raise ValidationError("No file uploaded", [{"field": "file", "message": "Empty file"}])
        if len(upload.data) > MAX_UPLOAD_BYTES:
            raise ValidationError("File too large", [{"field": "file", "message": "Maximum size is 10 MB"}])

        stored = await media_storage.upload(upload, settings.MESSAGE_UPLOAD_FOLDER, resource_type="auto")
        doc = await self._insert(
            {
                "sender_id": actor.user_id,
                "message_type": MessageType.FILE.value,
                "content": stored.url,
                "file_type": upload.content_type,
                "public_id": stored.public_id,
            }
        )
        logger.info("File message %s uploaded by %s", doc["_id"], actor.user_id)
        return doc

    async def list_messages(self) -> List[Dict[str, Any]]:
        cursor = self._collection().find({}).sort("timestamp", ASCENDING)
        return await cursor.to_list(length=None)


message_service = MessageService()
