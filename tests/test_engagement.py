"""
Tests for reader engagement: views, the like toggle, comments and the featured ranking.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from bson import ObjectId
import pytest

from blog_platform.database import POSTS_COLLECTION
from blog_platform.errors import AuthorizationError, NotFoundError, ValidationError
from blog_platform.services.engagement_service import EngagementService, popularity


@pytest.fixture
def engagement():
    return EngagementService()


@pytest.mark.asyncio
async def test_views_increment_without_deduplication(engagement, make_post):
    post = await make_post()
    post_id = str(post["_id"])

    assert await engagement.record_view(post_id) == 1
    assert await engagement.record_view(post_id) == 2
    assert await engagement.record_view(post_id) == 3


@pytest.mark.asyncio
async def test_like_toggle_is_an_involution(engagement, make_post, database):
    """Liking twice with the same identity restores the original state."""
    post = await make_post()
    post_id = str(post["_id"])

    first = await engagement.toggle_like(post_id, "Reader@Example.com")
    assert first == {"liked": True, "likes_count": 1}

    second = await engagement.toggle_like(post_id, "reader@example.com")
    assert second == {"liked": False, "likes_count": 0}

    stored = await database[POSTS_COLLECTION].find_one({"_id": post["_id"]})
    assert stored["liked_users"] == []


@pytest.mark.asyncio
async def test_likes_count_tracks_distinct_identities(engagement, make_post, database):
    post = await make_post()
    post_id = str(post["_id"])

    await engagement.toggle_like(post_id, "a@example.com")
    await engagement.toggle_like(post_id, "b@example.com")
    result = await engagement.toggle_like(post_id, "c@example.com")

    stored = await database[POSTS_COLLECTION].find_one({"_id": post["_id"]})
    assert result["likes_count"] == len(stored["liked_users"]) == 3
    assert len(set(stored["liked_users"])) == 3


@pytest.mark.asyncio
async def test_like_requires_email(engagement, make_post):
    post = await make_post()
    with pytest.raises(ValidationError):
        await engagement.toggle_like(str(post["_id"]), "   ")


@pytest.mark.asyncio
async def test_comments_are_appended_in_order(engagement, make_post):
    post = await make_post()
    post_id = str(post["_id"])

    await engagement.add_comment(post_id, "Ann", "First!")
    comments = await engagement.add_comment(post_id, " Ben ", " Second ")

    assert [(c["user"], c["text"]) for c in comments] == [("Ann", "First!"), ("Ben", "Second")]
    assert await engagement.get_comments(post_id) == comments


@pytest.mark.asyncio
@pytest.mark.parametrize("user,text,fields", [("", "hi", ["user"]), ("Ann", "  ", ["text"]), ("", "", ["user", "text"])])
async def test_comment_validation(engagement, make_post, database, user, text, fields):
    post = await make_post()

    with pytest.raises(ValidationError) as exc_info:
        await engagement.add_comment(str(post["_id"]), user, text)

    assert exc_info.value.message == "User and text are required"
    assert [error["field"] for error in exc_info.value.errors] == fields
    stored = await database[POSTS_COLLECTION].find_one({"_id": post["_id"]})
    assert stored["comments"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["pending", "rejected"])
async def test_engagement_applies_to_existing_unapproved_posts(engagement, make_post, database, status):
    post = await make_post(status=status)
    post_id = str(post["_id"])

    assert await engagement.record_view(post_id) == 1
    assert await engagement.toggle_like(post_id, "reader@example.com") == {"liked": True, "likes_count": 1}
    await engagement.add_comment(post_id, "bob", "nice")

    comments = await engagement.get_comments(post_id)
    assert [(c["user"], c["text"]) for c in comments] == [("bob", "nice")]
    stored = await database[POSTS_COLLECTION].find_one({"_id": post["_id"]})
    assert stored["status"] == status


@pytest.mark.asyncio
async def test_engagement_on_unknown_post_is_not_found(engagement):
    missing = str(ObjectId())

    with pytest.raises(NotFoundError):
        await engagement.record_view(missing)
    with pytest.raises(NotFoundError):
        await engagement.toggle_like(missing, "reader@example.com")
    with pytest.raises(NotFoundError):
        await engagement.add_comment(missing, "Ann", "Hello")
    with pytest.raises(NotFoundError):
        await engagement.get_comments("not-an-id")


class UnlikeBeforePull:
    """Runs a concurrent unlike right before the toggle's `$pull` step reaches the store."""

    def __init__(self, collection, identity):
        self.collection = collection
        self.find_one_and_update_real = collection.find_one_and_update
        self.identity = identity
        self.calls = 0

    async def __call__(self, query, update, **kwargs):
        self.calls += 1
        if self.calls == 2:
            await self.collection.update_one({"_id": query["_id"]}, {"$pull": {"liked_users": self.identity}})
        return await self.find_one_and_update_real(query, update, **kwargs)


@pytest.mark.asyncio
async def test_like_toggle_retries_when_a_concurrent_unlike_wins(engagement, make_post, database):
    post = await make_post(liked_users=["reader@example.com"])
    collection = database[POSTS_COLLECTION]
    racing = UnlikeBeforePull(collection, "reader@example.com")

    with patch.object(engagement, "_collection", return_value=collection), patch.object(
        collection, "find_one_and_update", racing
    ):
        result = await engagement.toggle_like(str(post["_id"]), "reader@example.com")

    assert result == {"liked": True, "likes_count": 1}
    assert racing.calls == 3
    stored = await collection.find_one({"_id": post["_id"]})
    assert stored["liked_users"] == ["reader@example.com"]


def test_popularity_weights():
    post = {"views": 10, "liked_users": ["a", "b"], "comments": [{}, {}, {}]}
    assert popularity(post) == 10 * 0.5 + 2 + 3 * 2
    assert popularity({}) == 0


@pytest.mark.asyncio
async def test_featured_posts_manual_first_then_popular(engagement, make_post):
    quiet = await make_post(title="quiet", views=1)
    busy = await make_post(title="busy", views=4, comments=[{"user": "a", "text": "b"}] * 3)
    liked = await make_post(title="liked", liked_users=["a", "b", "c"])
    pinned = await make_post(title="pinned", is_featured=True)
    await make_post(title="hidden", status="pending", views=1000, is_featured=True)

    featured = await engagement.featured_posts(limit=3)

    assert [post["_id"] for post in featured] == [pinned["_id"], busy["_id"], liked["_id"]]
    assert quiet["_id"] not in [post["_id"] for post in featured]


@pytest.mark.asyncio
async def test_set_featured_requires_admin(engagement, author, admin, make_post):
    post = await make_post()

    with pytest.raises(AuthorizationError):
        await engagement.set_featured(str(post["_id"]), True, author)

    updated = await engagement.set_featured(str(post["_id"]), True, admin)
    assert updated["is_featured"] is True


@pytest.mark.asyncio
async def test_featured_posts_keeps_every_manual_pick(engagement, make_post):
    now = datetime.now(timezone.utc)
    pinned = [
        await make_post(title=f"pinned {i}", is_featured=True, published_at=now - timedelta(hours=i)) for i in range(3)
    ]
    await make_post(title="popular", views=500)

    featured = await engagement.featured_posts(limit=2)

    assert [post["_id"] for post in featured] == [post["_id"] for post in pinned]
