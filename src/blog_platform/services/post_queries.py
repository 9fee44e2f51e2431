"""
# Post Queries

Read side of the moderation workflow: every listing, search and count over blog posts.

Public readers only ever see `approved` posts; the `status` filter is applied here rather than
by callers so no mutation history can leak an unapproved post into a public listing. Published
listings are ordered by `published_at`, newest first.
"""

import re
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from blog_platform.database import POSTS_COLLECTION, db_manager
from blog_platform.errors import NotFoundError
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.blog_models import AUTHOR_REFERENCE, PostStatus, SearchSort
from blog_platform.services.moderation_workflow import OPERATION_POLICIES, authorize
from blog_platform.utils.logging_utils import log_performance
from blog_platform.utils.object_ids import parse_object_id

logger = get_logger(prefix="[PostQueries]")

PUBLISHED_FILTER = {"status": PostStatus.APPROVED.value}
PENDING_FILTER = {"status": PostStatus.PENDING.value}

SEARCH_SORTS = {
    SearchSort.MOST_RECENT: [("published_at", DESCENDING), ("created_at", DESCENDING)],
    SearchSort.OLDEST: [("published_at", ASCENDING), ("created_at", ASCENDING)],
    SearchSort.MOST_VIEWED: [("views", DESCENDING), ("published_at", DESCENDING)],
    SearchSort.LEAST_VIEWED: [("views", ASCENDING), ("published_at", DESCENDING)],
}


def _contains(term: str) -> Dict[str, str]:
    return {"$regex": re.escape(term.strip()), "$options": "i"}


def _exactly(term: str) -> Dict[str, str]:
    return {"$regex": f"^{re.escape(term.strip())}$", "$options": "i"}


class PostQueries:
    def __init__(self):
        self.collection_name = POSTS_COLLECTION

    def _collection(self):
        return db_manager.get_collection(self.collection_name)

    async def _find(self, query: Dict[str, Any], sort: List, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        start_time = db_manager.log_query_start(self.collection_name, "find", query)
        try:
            cursor = self._collection().find(query).sort(sort)
            if limit:
                cursor = cursor.limit(limit)
            posts = await cursor.to_list(length=limit)
        except PyMongoError as e:
            db_manager.log_query_error(self.collection_name, "find", start_time, e, query)
            raise
        db_manager.log_query_success(self.collection_name, "find", start_time, len(posts))
        return posts

    async def list_published(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._find(dict(PUBLISHED_FILTER), [("published_at", DESCENDING)], limit)

    async def get_published(self, post_id: str) -> Dict[str, Any]:
        """Fetch an approved post. Unapproved posts are reported as missing."""
        oid = parse_object_id(post_id, "Post")
        post = await self._collection().find_one({"_id": oid, **PUBLISHED_FILTER})
        if not post:
            raise NotFoundError("Post not found")
        return post

    async def list_pending(self, actor: Optional[IdentityClaim]) -> List[Dict[str, Any]]:
        authorize(OPERATION_POLICIES["list_pending"], actor)
        return await self._find(dict(PENDING_FILTER), [("created_at", DESCENDING)])

    async def get_pending(self, post_id: str, actor: Optional[IdentityClaim]) -> Dict[str, Any]:
        authorize(OPERATION_POLICIES["list_pending"], actor)
        oid = parse_object_id(post_id, "Post")
        post = await self._collection().find_one({"_id": oid, **PENDING_FILTER})
        if not post:
            raise NotFoundError("Post not found")
        return post

    async def count_pending(self, actor: Optional[IdentityClaim]) -> int:
        authorize(OPERATION_POLICIES["list_pending"], actor)
        return await self._collection().count_documents(dict(PENDING_FILTER))

    async def get_for_admin(self, post_id: str, actor: Optional[IdentityClaim]) -> Dict[str, Any]:
        """Admin lookup of a post in any state."""
        authorize(OPERATION_POLICIES["admin_update"], actor)
        oid = parse_object_id(post_id, "Post")
        post = await self._collection().find_one({"_id": oid})
        if not post:
            raise NotFoundError("Post not found")
        return post

    async def get_for_owner(self, post_id: str, actor: Optional[IdentityClaim]) -> Dict[str, Any]:
        """An author's own post in any state."""
        oid = parse_object_id(post_id, "Post")
        post = await self._collection().find_one({"_id": oid})
        if not post:
            raise NotFoundError("Post not found")
        authorize(OPERATION_POLICIES["get_for_owner"], actor, owner=post.get("author"))
        return post

    async def list_by_user(self, actor: Optional[IdentityClaim]) -> List[Dict[str, Any]]:
        authorize(OPERATION_POLICIES["create"], actor)
        return await self._find(AUTHOR_REFERENCE.referrers(actor.username), [("created_at", DESCENDING)])

    async def list_by_category(self, category: str) -> List[Dict[str, Any]]:
        """Approved posts in `category`, matched case-insensitively."""
        query = {**PUBLISHED_FILTER, "category": _exactly(category)}
        return await self._find(query, [("published_at", DESCENDING)])

    @log_performance("post_search")
    async def search_published(
        self,
        q: Optional[str] = None,
        category: Optional[str] = None,
        sort: SearchSort = SearchSort.MOST_RECENT,
    ) -> List[Dict[str, Any]]:
        """
        Public search over approved posts.

        Args:
            q (Optional[str]): Case-insensitive substring matched against title and content.
            category (Optional[str]): Exact category, case-insensitive.
            sort (SearchSort): Result ordering.

        Returns:
            List[Dict[str, Any]]: Matching approved posts.
        """
        query: Dict[str, Any] = dict(PUBLISHED_FILTER)
        if q and q.strip():
            query["$or"] = [{"title": _contains(q)}, {"content": _contains(q)}]
        if category and category.strip():
            query["category"] = _exactly(category)
        posts = await self._find(query, SEARCH_SORTS[sort])
        logger.debug("Search q=%r category=%r sort=%s matched %d posts", q, category, sort.value, len(posts))
        return posts

    async def search_own(self, title: str, actor: Optional[IdentityClaim]) -> List[Dict[str, Any]]:
        """Title search across the caller's own posts, any state."""
        authorize(OPERATION_POLICIES["create"], actor)
        query = {"author": actor.username, "title": _contains(title)}
        return await self._find(query, [("created_at", DESCENDING)])

    async def search_all(self, title: str, actor: Optional[IdentityClaim]) -> List[Dict[str, Any]]:
        """Admin title search across every post, any state."""
        authorize(OPERATION_POLICIES["admin_update"], actor)
        return await self._find({"title": _contains(title)}, [("created_at", DESCENDING)])


post_queries = PostQueries()
