"""
Tests for drafts: ownership, counting, and submission into the review queue.
"""

from unittest.mock import AsyncMock, patch

import pytest
from pymongo.errors import PyMongoError

from blog_platform.database import DRAFTS_COLLECTION, NOTIFICATIONS_COLLECTION, POSTS_COLLECTION
from blog_platform.errors import AuthenticationError, AuthorizationError, NotFoundError, StoreError, ValidationError
from blog_platform.models.blog_models import PostContent, PostContentUpdate
from blog_platform.services.draft_service import DraftService
from blog_platform.services.media_storage import media_storage
from blog_platform.services.notification_service import notification_service


@pytest.fixture
def drafts():
    return DraftService()


@pytest.fixture
def content():
    return PostContent(title="Work in progress", content="Half an idea", category="Tech")


@pytest.mark.asyncio
async def test_drafts_are_private_to_their_author(drafts, content, author, other_user):
    draft = await drafts.create_draft(content, author)
    draft_id = str(draft["_id"])

    assert (await drafts.get_draft(draft_id, author))["title"] == "Work in progress"
    with pytest.raises(AuthorizationError):
        await drafts.get_draft(draft_id, other_user)
    with pytest.raises(AuthenticationError):
        await drafts.get_draft(draft_id, None)

    assert await drafts.count_drafts(author) == 1
    assert await drafts.count_drafts(other_user) == 0
    assert [d["_id"] for d in await drafts.list_drafts(author)] == [draft["_id"]]
    assert await drafts.list_drafts(other_user) == []


@pytest.mark.asyncio
async def test_update_and_delete_draft(drafts, content, author):
    draft = await drafts.create_draft(content, author)
    draft_id = str(draft["_id"])

    updated = await drafts.update_draft(draft_id, PostContentUpdate(title="Finished"), author)
    assert updated["title"] == "Finished"
    assert updated["content"] == "Half an idea"

    await drafts.delete_draft(draft_id, author)
    with pytest.raises(NotFoundError):
        await drafts.get_draft(draft_id, author)


@pytest.mark.asyncio
async def test_submit_draft_creates_pending_post(drafts, content, author, database):
    draft = await drafts.create_draft(content, author)

    post = await drafts.submit_draft(str(draft["_id"]), author)

    stored = await database[POSTS_COLLECTION].find_one({"_id": post["_id"]})
    assert stored["status"] == "pending"
    assert stored["published_at"] is None
    assert stored["title"] == "Work in progress"
    assert stored["author"] == "alice"
    assert await database[DRAFTS_COLLECTION].count_documents({}) == 0

    notifications = await database[NOTIFICATIONS_COLLECTION].find({}).to_list()
    assert len(notifications) == 1
    assert notifications[0]["message"] == "Draft submitted for review by alice"


@pytest.mark.asyncio
async def test_resubmitting_a_draft_returns_the_same_post(drafts, content, author, database):
    """A retried submit after a lost draft deletion does not create a second post."""
    draft = await drafts.create_draft(content, author)
    snapshot = dict(draft)

    first = await drafts.submit_draft(str(draft["_id"]), author)
    await database[DRAFTS_COLLECTION].insert_one(snapshot)
    second = await drafts.submit_draft(str(draft["_id"]), author)

    assert second["_id"] == first["_id"]
    assert await database[POSTS_COLLECTION].count_documents({}) == 1
    assert await database[NOTIFICATIONS_COLLECTION].count_documents({}) == 1
    assert await database[DRAFTS_COLLECTION].count_documents({}) == 0


@pytest.mark.asyncio
async def test_only_the_author_may_submit(drafts, content, author, other_user, database):
    draft = await drafts.create_draft(content, author)

    with pytest.raises(AuthorizationError):
        await drafts.submit_draft(str(draft["_id"]), other_user)

    assert await database[POSTS_COLLECTION].count_documents({}) == 0
    assert await database[DRAFTS_COLLECTION].count_documents({}) == 1


@pytest.mark.asyncio
async def test_incomplete_draft_cannot_be_submitted(drafts, content, author, database):
    draft = await drafts.create_draft(content, author)
    await database[DRAFTS_COLLECTION].update_one({"_id": draft["_id"]}, {"$set": {"category": ""}})

    with pytest.raises(ValidationError):
        await drafts.submit_draft(str(draft["_id"]), author)

    assert await database[POSTS_COLLECTION].count_documents({}) == 0


@pytest.mark.asyncio
async def test_draft_is_kept_when_notification_fails(drafts, content, author, database):
    draft = await drafts.create_draft(content, author)

    with patch.object(notification_service, "emit", AsyncMock(side_effect=PyMongoError("store down"))):
        with pytest.raises(StoreError):
            await drafts.submit_draft(str(draft["_id"]), author)

    assert await database[POSTS_COLLECTION].count_documents({}) == 0
    assert await database[DRAFTS_COLLECTION].count_documents({"_id": draft["_id"]}) == 1


@pytest.mark.asyncio
async def test_submitted_post_keeps_first_image_and_discards_the_rest(drafts, content, author, database):
    draft = await drafts.create_draft(content, author)
    await database[DRAFTS_COLLECTION].update_one(
        {"_id": draft["_id"]},
        {"$set": {"images": ["https://cdn/a.png", "https://cdn/b.png"], "image_public_ids": ["img/a", "img/b"]}},
    )

    with patch.object(media_storage, "delete_quietly", AsyncMock(return_value=True)) as delete_quietly:
        post = await drafts.submit_draft(str(draft["_id"]), author)

    assert post["image"] == "https://cdn/a.png"
    assert post["image_public_id"] == "img/a"
    delete_quietly.assert_awaited_once_with("img/b")
