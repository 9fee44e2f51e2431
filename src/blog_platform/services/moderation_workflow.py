"""
# Moderation Workflow

The state machine governing a blog post's lifecycle, and the authorization rules gating each
operation on it.

## States and Transitions

```
(new) ───create──────▶ pending
draft ───submit──────▶ pending
pending ─set_status──▶ approved | rejected
approved ─unpublish/edit─▶ pending
rejected ─resubmit/edit──▶ pending
```

Any other `(source, target)` pair, including staying in the same state, is rejected with a
`ValidationError` and nothing is written.

## The Guarded Transition

Every state change of an existing post goes through `ModerationWorkflow.transition`, which:

1. checks the actor against the operation's `AccessPolicy`;
2. checks the post's current state is a legal predecessor of the target;
3. writes `status`, `published_at` and `updated_at` in a single conditional update keyed on
   the observed source state, so a concurrent transition makes this one fail instead of
   silently overwriting it;
4. emits exactly one notification when the target is `pending`.

`published_at` is set to the transition time when entering `approved` and cleared otherwise.

If the notification cannot be stored after its retries, the state write is compensated (a new
post is deleted, an existing post is restored to its previous state) and a `StoreError` is
raised: a post is never left waiting in review without a notification.

## Access Policies

| Operation | Policy |
|-----------|--------|
| `create` | authenticated |
| `update`, `delete` | owner |
| `set_status`, `admin_update`, `admin_delete` | admin |
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from blog_platform.config import settings
from blog_platform.database import POSTS_COLLECTION, db_manager
from blog_platform.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.blog_models import PostContent, PostContentUpdate, PostStatus
from blog_platform.services.blog_metrics import blog_metrics
from blog_platform.services.media_storage import MediaUpload, StoredMedia, media_storage
from blog_platform.services.notification_service import notification_service
from blog_platform.utils.logging_utils import log_error_with_context
from blog_platform.utils.object_ids import parse_object_id

logger = get_logger(prefix="[Moderation]")


class AccessPolicy(str, Enum):
    """Who may invoke an operation.

    Attributes:
        PUBLIC: Anyone, with or without an identity.
        AUTHENTICATED: Any verified identity.
        OWNER: The identity whose username is the post's author.
        ADMIN: An identity with the admin flag.
    """

    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    OWNER = "owner"
    ADMIN = "admin"


OPERATION_POLICIES: Mapping[str, AccessPolicy] = {
    "create": AccessPolicy.AUTHENTICATED,
    "submit_draft": AccessPolicy.OWNER,
    "update": AccessPolicy.OWNER,
    "delete": AccessPolicy.OWNER,
    "get_for_owner": AccessPolicy.OWNER,
    "set_status": AccessPolicy.ADMIN,
    "admin_update": AccessPolicy.ADMIN,
    "admin_delete": AccessPolicy.ADMIN,
    "list_pending": AccessPolicy.ADMIN,
    "list_published": AccessPolicy.PUBLIC,
}

# None is the source state of a post that does not exist yet
ALLOWED_TRANSITIONS: Mapping[Optional[PostStatus], FrozenSet[PostStatus]] = {
    None: frozenset({PostStatus.PENDING}),
    PostStatus.DRAFT: frozenset({PostStatus.PENDING}),
    PostStatus.PENDING: frozenset({PostStatus.APPROVED, PostStatus.REJECTED}),
    PostStatus.APPROVED: frozenset({PostStatus.PENDING}),
    PostStatus.REJECTED: frozenset({PostStatus.PENDING}),
}


def is_allowed_transition(source: Optional[PostStatus], target: PostStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, frozenset())


def check_transition(source: Optional[PostStatus], target: PostStatus) -> None:
    """Raise `ValidationError` unless `source -> target` is on the allow-list."""
    if not is_allowed_transition(source, target):
        source_name = source.value if source else "new"
        raise ValidationError(
            f"Cannot move a post from '{source_name}' to '{target.value}'",
            [{"field": "status", "message": f"'{target.value}' is not reachable from '{source_name}'"}],
        )


def authorize(policy: AccessPolicy, actor: Optional[IdentityClaim], owner: Optional[str] = None) -> None:
    """
    Check `actor` against `policy`.

    Args:
        policy (AccessPolicy): The operation's policy.
        actor (Optional[IdentityClaim]): The verified caller, or `None` when anonymous.
        owner (Optional[str]): Username owning the target document, for `OWNER` checks.

    Raises:
        AuthenticationError: If the policy needs an identity and none was supplied.
        AuthorizationError: If the identity lacks the required role or ownership.
    """
    if policy is AccessPolicy.PUBLIC:
        return
    if actor is None:
        raise AuthenticationError("Authentication required")
    if policy is AccessPolicy.ADMIN and not actor.is_admin:
        raise AuthorizationError("Requires Admin role")
    if policy is AccessPolicy.OWNER and actor.username != owner:
        raise AuthorizationError("You can only modify your own posts")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _state_fields(target: PostStatus, at: datetime) -> Dict[str, Any]:
    return {
        "status": target.value,
        "published_at": at if target is PostStatus.APPROVED else None,
        "updated_at": at,
    }


class ModerationWorkflow:
    """Write side of the post lifecycle. Use the module-level `moderation_workflow` instance."""

    def __init__(self, clock: Callable[[], datetime] = _now):
        self.collection_name = POSTS_COLLECTION
        self.clock = clock

    def _collection(self):
        return db_manager.get_collection(self.collection_name)

    async def _load(self, post_id: str) -> Dict[str, Any]:
        oid = parse_object_id(post_id, "Post")
        post = await self._collection().find_one({"_id": oid})
        if not post:
            raise NotFoundError("Post not found")
        return post

    async def _notify_pending(self, post: Dict[str, Any], message: str, compensate: Callable) -> None:
        """Emit the pending-entry notification or undo the state write that preceded it."""
        try:
            await notification_service.emit(post["_id"], post.get("title", ""), message)
        except PyMongoError as e:
            log_error_with_context(e, {"operation": "emit_pending_notification", "post_id": str(post["_id"])})
            try:
                await compensate()
            except PyMongoError as comp_error:
                log_error_with_context(
                    comp_error, {"operation": "compensate_pending_entry", "post_id": str(post["_id"])}
                )
            raise StoreError("Could not record the review notification; the change was not applied")

    async def transition(
        self,
        post_id: str,
        target: PostStatus,
        actor: Optional[IdentityClaim],
        policy: AccessPolicy,
        extra_fields: Optional[Dict[str, Any]] = None,
        notification_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Move an existing post to `target`, the only path by which a stored post changes state.

        Args:
            post_id (str): Id of the post.
            target (PostStatus): Desired state.
            actor (Optional[IdentityClaim]): The caller.
            policy (AccessPolicy): Policy of the operation invoking the transition.
            extra_fields (Optional[Dict[str, Any]]): Content fields written in the same update.
            notification_message (Optional[str]): Feed text when entering `pending`.

        Returns:
            Dict[str, Any]: The post after the transition.

        Raises:
            NotFoundError: Unknown or malformed `post_id`.
            AuthenticationError / AuthorizationError: `actor` fails `policy`.
            ValidationError: Illegal transition, or the post changed state concurrently.
            StoreError: The notification could not be stored; the transition was undone.
        """
        post = await self._load(post_id)
        authorize(policy, actor, owner=post.get("author"))

        source = PostStatus(post["status"])
        check_transition(source, target)

        fields = dict(extra_fields or {})
        fields.update(_state_fields(target, self.clock()))
        updated = await self._collection().find_one_and_update(
            {"_id": post["_id"], "status": source.value},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise ValidationError("Post status changed concurrently, reload and retry")

        blog_metrics.record_transition(source.value, target.value)
        logger.info(
            "Post %s moved %s -> %s by %s", post_id, source.value, target.value, actor.username if actor else "anonymous"
        )

        if target is PostStatus.PENDING:
            restore = {key: post.get(key) for key in fields}

            async def compensate():
                await self._collection().update_one(
                    {"_id": post["_id"], "status": target.value}, {"$set": restore}
                )
                logger.warning("Restored post %s to '%s' after notification failure", post_id, source.value)

            author = updated.get("author", "")
            await self._notify_pending(updated, notification_message or f"Post resubmitted by {author}", compensate)

        return updated

    async def create(
        self, content: PostContent, actor: Optional[IdentityClaim], image: Optional[MediaUpload] = None
    ) -> Dict[str, Any]:
        """
        Create a post in `pending` and notify admins.

        The image, if any, is uploaded first; if the post cannot be stored it is removed again.
        """
        authorize(OPERATION_POLICIES["create"], actor)
        check_transition(None, PostStatus.PENDING)

        stored_image = await self._upload_image(image)
        now = self.clock()
        doc = {
            "title": content.title,
            "content": content.content,
            "category": content.category,
            "author": actor.username,
            "user_id": actor.user_id,
            "image": stored_image.url if stored_image else None,
            "image_public_id": stored_image.public_id if stored_image else None,
            "views": 0,
            "liked_users": [],
            "comments": [],
            "is_featured": False,
            "created_at": now,
        }
        doc.update(_state_fields(PostStatus.PENDING, now))
        return await self.enter_review(doc, f"New Post submitted by {actor.username}", stored_image)

    async def enter_review(
        self,
        doc: Dict[str, Any],
        notification_message: str,
        stored_image: Optional[StoredMedia] = None,
        source: Optional[PostStatus] = None,
    ) -> Dict[str, Any]:
        """Insert a new `pending` post and emit its notification as one logical unit."""
        try:
            result = await self._collection().insert_one(doc)
        except PyMongoError:
            if stored_image:
                await media_storage.delete_quietly(stored_image.public_id)
            raise
        doc["_id"] = result.inserted_id

        async def compensate():
            await self._collection().delete_one({"_id": doc["_id"]})
            if stored_image:
                await media_storage.delete_quietly(stored_image.public_id)
            logger.warning("Removed post %s after notification failure", doc["_id"])

        await self._notify_pending(doc, notification_message, compensate)
        blog_metrics.record_transition(source.value if source else "new", PostStatus.PENDING.value)
        logger.info("Post %s created by %s and sent for review", doc["_id"], doc.get("author"))
        return doc

    async def set_status(self, post_id: str, target: PostStatus, actor: Optional[IdentityClaim]) -> Dict[str, Any]:
        """Admin moderation decision: approve, reject or return a post to review."""
        return await self.transition(
            post_id,
            target,
            actor,
            OPERATION_POLICIES["set_status"],
            notification_message="Post returned to review by an admin",
        )

    async def update(
        self,
        post_id: str,
        changes: PostContentUpdate,
        actor: Optional[IdentityClaim],
        image: Optional[MediaUpload] = None,
    ) -> Dict[str, Any]:
        """
        Owner edit. Editing an `approved` or `rejected` post sends it back to `pending`;
        editing a `pending` post keeps it there without a second notification.

        A replacement image is uploaded before the edit is committed and the previous image is
        deleted only after the commit succeeds.
        """
        post = await self._load(post_id)
        authorize(OPERATION_POLICIES["update"], actor, owner=post.get("author"))

        fields: Dict[str, Any] = changes.changes()
        stored_image = await self._upload_image(image)
        if stored_image:
            fields.update({"image": stored_image.url, "image_public_id": stored_image.public_id})

        try:
            source = PostStatus(post["status"])
            if source is PostStatus.PENDING:
                fields["updated_at"] = self.clock()
                updated = await self._collection().find_one_and_update(
                    {"_id": post["_id"], "status": PostStatus.PENDING.value},
                    {"$set": fields},
                    return_document=ReturnDocument.AFTER,
                )
                if updated is None:
                    raise ValidationError("Post status changed concurrently, reload and retry")
            else:
                updated = await self.transition(
                    post_id,
                    PostStatus.PENDING,
                    actor,
                    OPERATION_POLICIES["update"],
                    extra_fields=fields,
                    notification_message=f"Post updated by {actor.username} and resubmitted for review",
                )
        except Exception:
            if stored_image:
                await media_storage.delete_quietly(stored_image.public_id)
            raise

        if stored_image:
            await media_storage.delete_quietly(post.get("image_public_id"))
        logger.info("Post %s edited by %s", post_id, actor.username)
        return updated

    async def admin_update(
        self,
        post_id: str,
        changes: PostContentUpdate,
        actor: Optional[IdentityClaim],
        image: Optional[MediaUpload] = None,
    ) -> Dict[str, Any]:
        """Admin content correction. The post keeps its moderation state."""
        authorize(OPERATION_POLICIES["admin_update"], actor)
        post = await self._load(post_id)

        fields: Dict[str, Any] = changes.changes()
        stored_image = await self._upload_image(image)
        if stored_image:
            fields.update({"image": stored_image.url, "image_public_id": stored_image.public_id})
        fields["updated_at"] = self.clock()

        try:
            updated = await self._collection().find_one_and_update(
                {"_id": post["_id"]}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        except PyMongoError:
            if stored_image:
                await media_storage.delete_quietly(stored_image.public_id)
            raise
        if updated is None:
            raise NotFoundError("Post not found")

        if stored_image:
            await media_storage.delete_quietly(post.get("image_public_id"))
        logger.info("Post %s edited by admin %s", post_id, actor.username)
        return updated

    async def delete(self, post_id: str, actor: Optional[IdentityClaim]) -> None:
        """Owner delete."""
        post = await self._load(post_id)
        authorize(OPERATION_POLICIES["delete"], actor, owner=post.get("author"))
        await self._remove(post)
        logger.info("Post %s deleted by owner %s", post_id, actor.username)

    async def admin_delete(self, post_id: str, actor: Optional[IdentityClaim]) -> None:
        authorize(OPERATION_POLICIES["admin_delete"], actor)
        post = await self._load(post_id)
        await self._remove(post)
        logger.info("Post %s deleted by admin %s", post_id, actor.username)

    async def _remove(self, post: Dict[str, Any]) -> None:
        result = await self._collection().delete_one({"_id": post["_id"]})
        if result.deleted_count == 0:
            raise NotFoundError("Post not found")
        await media_storage.delete_quietly(post.get("image_public_id"))

    async def _upload_image(self, image: Optional[MediaUpload]) -> Optional[StoredMedia]:
        if image is None:
            return None
        if not image.is_image:
            raise ValidationError("Only image uploads are allowed", [{"field": "image", "message": "Not an image"}])
        return await media_storage.upload(image, settings.CLOUDINARY_FOLDER)


moderation_workflow = ModerationWorkflow()
