"""
# Draft Service

An author's unsubmitted work. Drafts live in their own collection and are visible only to
their author; they become posts only through `submit_draft`, which hands the draft to the
moderation workflow as a `draft -> pending` transition.

Submission is idempotent per draft: the new post records `source_draft_id` under a unique
index, so a retried or concurrent submit returns the post created by the first one instead of
creating a duplicate. The draft is removed only after the post and its notification are stored.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from blog_platform.config import settings
from blog_platform.database import DRAFTS_COLLECTION, POSTS_COLLECTION, db_manager
from blog_platform.errors import NotFoundError, ValidationError
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.blog_models import AUTHOR_REFERENCE, PostContent, PostContentUpdate, PostStatus
from blog_platform.services.media_storage import MediaUpload, media_storage
from blog_platform.services.moderation_workflow import (
    OPERATION_POLICIES,
    AccessPolicy,
    authorize,
    check_transition,
    moderation_workflow,
)
from blog_platform.utils.object_ids import parse_object_id

logger = get_logger(prefix="[DraftService]")


class DraftService:
    def __init__(self):
        self.collection_name = DRAFTS_COLLECTION

    def _collection(self):
        return db_manager.get_collection(self.collection_name)

    async def _load_own(self, draft_id: str, actor: Optional[IdentityClaim]) -> Dict[str, Any]:
        authorize(AccessPolicy.AUTHENTICATED, actor)
        oid = parse_object_id(draft_id, "Draft")
        draft = await self._collection().find_one({"_id": oid})
        if not draft:
            raise NotFoundError("Draft not found")
        authorize(AccessPolicy.OWNER, actor, owner=draft.get("author"))
        return draft

    async def _upload_images(self, images: List[MediaUpload]) -> List:
        stored = []
        for image in images:
            if not image.is_image:
                for done in stored:
                    await media_storage.delete_quietly(done.public_id)
                raise ValidationError(
                    "Only image uploads are allowed", [{"field": "images", "message": f"{image.filename} is not an image"}]
                )
            stored.append(await media_storage.upload(image, settings.CLOUDINARY_FOLDER))
        return stored

    async def create_draft(
        self, content: PostContent, actor: Optional[IdentityClaim], images: Optional[List[MediaUpload]] = None
    ) -> Dict[str, Any]:
        authorize(AccessPolicy.AUTHENTICATED, actor)
        stored = await self._upload_images(images or [])
        now = datetime.now(timezone.utc)
        doc = {
            "title": content.title,
            "content": content.content,
            "category": content.category,
            "author": actor.username,
            "user_id": actor.user_id,
            "images": [media.url for media in stored],
            "image_public_ids": [media.public_id for media in stored],
            "is_draft": True,
            "created_at": now,
            "updated_at": now,
        }
        result = await self._collection().insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Draft %s created by %s", doc["_id"], actor.username)
        return doc

    async def list_drafts(self, actor: Optional[IdentityClaim]) -> List[Dict[str, Any]]:
        authorize(AccessPolicy.AUTHENTICATED, actor)
        cursor = self._collection().find(AUTHOR_REFERENCE.referrers(actor.username)).sort("updated_at", DESCENDING)
        return await cursor.to_list(length=None)

    async def get_draft(self, draft_id: str, actor: Optional[IdentityClaim]) -> Dict[str, Any]:
        return await self._load_own(draft_id, actor)

    async def count_drafts(self, actor: Optional[IdentityClaim]) -> int:
        authorize(AccessPolicy.AUTHENTICATED, actor)
        return await self._collection().count_documents(AUTHOR_REFERENCE.referrers(actor.username))

    async def update_draft(
        self,
        draft_id: str,
        changes: PostContentUpdate,
        actor: Optional[IdentityClaim],
        images: Optional[List[MediaUpload]] = None,
    ) -> Dict[str, Any]:
        """
        Edit a draft. Supplying `images` replaces the draft's image set; the previous images
        are deleted from the media host after the draft is saved.
        """
        draft = await self._load_own(draft_id, actor)
        fields: Dict[str, Any] = changes.changes()
        stored = await self._upload_images(images) if images else []
        if stored:
            fields["images"] = [media.url for media in stored]
            fields["image_public_ids"] = [media.public_id for media in stored]
        fields["updated_at"] = datetime.now(timezone.utc)

        updated = await self._collection().find_one_and_update(
            {"_id": draft["_id"]}, {"$set": fields}, return_document=ReturnDocument.AFTER
        )
        if updated is None:
            for media in stored:
                await media_storage.delete_quietly(media.public_id)
            raise NotFoundError("Draft not found")

        if stored:
            for public_id in draft.get("image_public_ids") or []:
                await media_storage.delete_quietly(public_id)
        logger.info("Draft %s updated by %s", draft_id, actor.username)
        return updated

    async def delete_draft(self, draft_id: str, actor: Optional[IdentityClaim]) -> None:
        draft = await self._load_own(draft_id, actor)
        result = await self._collection().delete_one({"_id": draft["_id"]})
        if result.deleted_count == 0:
            raise NotFoundError("Draft not found")
        for public_id in draft.get("image_public_ids") or []:
            await media_storage.delete_quietly(public_id)
        logger.info("Draft %s deleted by %s", draft_id, actor.username)

    async def submit_draft(self, draft_id: str, actor: Optional[IdentityClaim]) -> Dict[str, Any]:
        """
        Promote a draft to a `pending` post and notify admins.

        The post takes the draft's first image. Other draft images are removed from the media
        host once the draft itself is deleted.

        Raises:
            NotFoundError: Unknown draft.
            AuthorizationError: The caller does not own the draft.
            ValidationError: The draft is missing a title, content or category.
            StoreError: The review notification could not be stored; the draft is kept.
        """
        draft = await self._load_own(draft_id, actor)
        authorize(OPERATION_POLICIES["submit_draft"], actor, owner=draft.get("author"))
        check_transition(PostStatus.DRAFT, PostStatus.PENDING)

        posts = db_manager.get_collection(POSTS_COLLECTION)
        existing = await posts.find_one({"source_draft_id": draft["_id"]})
        if existing:
            logger.info("Draft %s was already submitted as post %s", draft_id, existing["_id"])
            await self._discard_submitted(draft, existing)
            return existing

        try:
            content = PostContent(
                title=draft.get("title", ""), content=draft.get("content", ""), category=draft.get("category", "")
            )
        except ValueError as e:
            raise ValidationError("Draft is incomplete and cannot be submitted", [{"field": "draft", "message": str(e)}])

        image_urls = draft.get("images") or []
        image_ids = draft.get("image_public_ids") or []
        now = datetime.now(timezone.utc)
        doc = {
            "title": content.title,
            "content": content.content,
            "category": content.category,
            "author": draft["author"],
            "user_id": draft.get("user_id", actor.user_id),
            "image": image_urls[0] if image_urls else None,
            "image_public_id": image_ids[0] if image_ids else None,
            "views": 0,
            "liked_users": [],
            "comments": [],
            "is_featured": False,
            "source_draft_id": draft["_id"],
            "status": PostStatus.PENDING.value,
            "published_at": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            post = await moderation_workflow.enter_review(
                doc, f"Draft submitted for review by {actor.username}", source=PostStatus.DRAFT
            )
        except DuplicateKeyError:
            post = await posts.find_one({"source_draft_id": draft["_id"]})
            if not post:
                raise
            logger.info("Concurrent submit of draft %s resolved to post %s", draft_id, post["_id"])

        await self._discard_submitted(draft, post)
        return post

    async def _discard_submitted(self, draft: Dict[str, Any], post: Dict[str, Any]) -> None:
        result = await self._collection().delete_one({"_id": draft["_id"]})
        if result.deleted_count:
            for public_id in draft.get("image_public_ids") or []:
                if public_id != post.get("image_public_id"):
                    await media_storage.delete_quietly(public_id)
            logger.info("Draft %s promoted to post %s", draft["_id"], post["_id"])


draft_service = DraftService()
