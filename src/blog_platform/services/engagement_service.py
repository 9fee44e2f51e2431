"""
# Engagement Ledger

Reader interactions with posts: views, likes, comments and the featured ranking.

Every write is a single atomic document update:

- **Views** use `$inc`. Views are not deduplicated; repeating the call counts again.
- **Likes** toggle membership of the liker's email in `liked_users` with one conditional
  `find_one_and_update` (`$addToSet` when absent, `$pull` when present). If both miss because a
  concurrent toggle ran in between, the toggle is retried while the post exists. `likes_count` is
  always `len(liked_users)`, so the set and the count cannot drift apart.
- **Comments** are appended with `$push` and never edited.

Engagement is keyed by post id alone, so any existing post can be viewed, liked or commented
regardless of its moderation state. Unknown ids are reported as missing.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument

from blog_platform.config import settings
from blog_platform.database import POSTS_COLLECTION, db_manager
from blog_platform.errors import NotFoundError, ValidationError
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.blog_models import PostStatus
from blog_platform.services.blog_metrics import blog_metrics
from blog_platform.services.moderation_workflow import AccessPolicy, authorize
from blog_platform.utils.object_ids import parse_object_id

logger = get_logger(prefix="[Engagement]")

VIEW_WEIGHT = 0.5
LIKE_WEIGHT = 1
COMMENT_WEIGHT = 2
LIKE_TOGGLE_ATTEMPTS = 5


def popularity(post: Dict[str, Any]) -> float:
    """Featured ranking score: `views * 0.5 + likes + comments * 2`."""
    return (
        post.get("views", 0) * VIEW_WEIGHT
        + len(post.get("liked_users") or []) * LIKE_WEIGHT
        + len(post.get("comments") or []) * COMMENT_WEIGHT
    )


class EngagementService:
    def __init__(self):
        self.collection_name = POSTS_COLLECTION

    def _collection(self):
        return db_manager.get_collection(self.collection_name)

    def _existing(self, post_id: str) -> Dict[str, Any]:
        return {"_id": parse_object_id(post_id, "Post")}

    async def record_view(self, post_id: str) -> int:
        """Increment the view counter and return the new value."""
        post = await self._collection().find_one_and_update(
            self._existing(post_id),
            {"$inc": {"views": 1}},
            projection={"views": 1},
            return_document=ReturnDocument.AFTER,
        )
        if post is None:
            raise NotFoundError("Post not found")
        blog_metrics.record_engagement("view")
        return post["views"]

    async def toggle_like(self, post_id: str, email: str) -> Dict[str, Any]:
        """
        Like the post for `email` if it has not liked it yet, otherwise remove the like.

        Args:
            post_id (str): Target post.
            email (str): The liker's identity.

        Returns:
            Dict[str, Any]: `{"liked": bool, "likes_count": int}` after the toggle.

        Raises:
            NotFoundError: If the post does not exist.
            ValidationError: If concurrent toggles kept racing this one.
        """
        identity = email.strip().lower()
        if not identity:
            raise ValidationError("Email is required to like a post", [{"field": "email", "message": "Required"}])

        base = self._existing(post_id)
        for _ in range(LIKE_TOGGLE_ATTEMPTS):
            post = await self._collection().find_one_and_update(
                {**base, "liked_users": {"$ne": identity}},
                {"$addToSet": {"liked_users": identity}},
                projection={"liked_users": 1},
                return_document=ReturnDocument.AFTER,
            )
            liked = post is not None
            if post is None:
                post = await self._collection().find_one_and_update(
                    {**base, "liked_users": identity},
                    {"$pull": {"liked_users": identity}},
                    projection={"liked_users": 1},
                    return_document=ReturnDocument.AFTER,
                )
            if post is not None:
                blog_metrics.record_engagement("like" if liked else "unlike")
                return {"liked": liked, "likes_count": len(post.get("liked_users") or [])}
            # Both conditional updates missed: the post is gone or another toggle ran in between.
            if await self._collection().find_one(base, {"_id": 1}) is None:
                raise NotFoundError("Post not found")
            logger.debug("Like toggle on post %s raced a concurrent toggle, retrying", post_id)

        raise ValidationError("Post likes changed concurrently, please retry")

    async def add_comment(self, post_id: str, user: str, text: str) -> List[Dict[str, Any]]:
        """Append a comment and return the post's full comment list."""
        user = (user or "").strip()
        text = (text or "").strip()
        errors = []
        if not user:
            errors.append({"field": "user", "message": "Comment author is required"})
        if not text:
            errors.append({"field": "text", "message": "Comment text is required"})
        if errors:
            raise ValidationError("User and text are required", errors)

        comment = {"user": user, "text": text, "created_at": datetime.now(timezone.utc)}
        post = await self._collection().find_one_and_update(
            self._existing(post_id),
            {"$push": {"comments": comment}},
            projection={"comments": 1},
            return_document=ReturnDocument.AFTER,
        )
        if post is None:
            raise NotFoundError("Post not found")
        blog_metrics.record_engagement("comment")
        logger.info("Comment added to post %s by %s", post_id, user)
        return post.get("comments") or []

    async def get_comments(self, post_id: str) -> List[Dict[str, Any]]:
        post = await self._collection().find_one(self._existing(post_id), {"comments": 1})
        if post is None:
            raise NotFoundError("Post not found")
        return post.get("comments") or []

    async def set_featured(self, post_id: str, is_featured: bool, actor: Optional[IdentityClaim]) -> Dict[str, Any]:
        authorize(AccessPolicy.ADMIN, actor)
        oid = parse_object_id(post_id, "Post")
        post = await self._collection().find_one_and_update(
            {"_id": oid},
            {"$set": {"is_featured": is_featured, "updated_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        if post is None:
            raise NotFoundError("Post not found")
        logger.info("Post %s featured=%s by %s", post_id, is_featured, actor.username)
        return post

    async def featured_posts(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Every manually featured approved post (newest first), then the most popular of the
        remaining approved posts until `limit` posts are listed. Manual picks are never cut.
        """
        limit = limit or settings.FEATURED_POSTS_LIMIT
        published = {"status": PostStatus.APPROVED.value}

        cursor = self._collection().find({**published, "is_featured": True}).sort("published_at", DESCENDING)
        featured = await cursor.to_list(length=None)
        remaining = max(0, limit - len(featured))
        if remaining == 0:
            return featured

        candidates = await self._collection().find({**published, "is_featured": {"$ne": True}}).to_list(length=None)
        candidates.sort(key=popularity, reverse=True)
        return featured + candidates[:remaining]


engagement_service = EngagementService()
