"""
Tests for the read side of posts: public visibility, search ordering and admin listings.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from blog_platform.errors import AuthorizationError
from blog_platform.models.blog_models import AUTHOR_REFERENCE, PostStatus, SearchSort
from blog_platform.models.notification_models import BLOG_REFERENCE
from blog_platform.services.moderation_workflow import ModerationWorkflow, is_allowed_transition
from blog_platform.services.post_queries import PostQueries


@pytest.fixture
def queries():
    return PostQueries()


@pytest.mark.asyncio
async def test_random_moderation_history_never_leaks_unapproved_posts(queries, make_post, admin):
    """Whatever sequence of decisions is applied, public reads only return approved posts."""
    rng = random.Random(1234)
    workflow = ModerationWorkflow()
    posts = [await make_post(status="pending", title=f"Post {i}") for i in range(6)]
    states = {str(post["_id"]): PostStatus.PENDING for post in posts}

    for _ in range(40):
        post_id = rng.choice(list(states))
        target = rng.choice([PostStatus.PENDING, PostStatus.APPROVED, PostStatus.REJECTED])
        if not is_allowed_transition(states[post_id], target):
            continue
        await workflow.set_status(post_id, target, admin)
        states[post_id] = target

    approved = {pid for pid, state in states.items() if state is PostStatus.APPROVED}
    assert {str(p["_id"]) for p in await queries.list_published()} == approved
    assert {str(p["_id"]) for p in await queries.search_published("Post")} == approved
    for post in await queries.list_published():
        assert post["published_at"] is not None


@pytest.mark.asyncio
async def test_search_sort_orders(queries, make_post):
    now = datetime.now(timezone.utc)
    old = await make_post(title="old", views=50, published_at=now - timedelta(days=2))
    new = await make_post(title="new", views=5, published_at=now)
    mid = await make_post(title="mid", views=20, published_at=now - timedelta(days=1))

    async def ids(sort):
        return [p["_id"] for p in await queries.search_published(sort=sort)]

    assert await ids(SearchSort.MOST_RECENT) == [new["_id"], mid["_id"], old["_id"]]
    assert await ids(SearchSort.OLDEST) == [old["_id"], mid["_id"], new["_id"]]
    assert await ids(SearchSort.MOST_VIEWED) == [old["_id"], mid["_id"], new["_id"]]
    assert await ids(SearchSort.LEAST_VIEWED) == [new["_id"], mid["_id"], old["_id"]]


@pytest.mark.asyncio
async def test_search_treats_query_literally(queries, make_post):
    await make_post(title="C++ tips")
    await make_post(title="Cats")

    results = await queries.search_published("c++")

    assert [p["title"] for p in results] == ["C++ tips"]


@pytest.mark.asyncio
async def test_review_queue_is_admin_only(queries, make_post, author, admin):
    pending = await make_post(status="pending")
    await make_post(status="approved")

    with pytest.raises(AuthorizationError):
        await queries.list_pending(author)
    assert [p["_id"] for p in await queries.list_pending(admin)] == [pending["_id"]]
    assert await queries.count_pending(admin) == 1


@pytest.mark.asyncio
async def test_owner_sees_own_posts_in_any_state(queries, make_post, author, other_user):
    rejected = await make_post(status="rejected", title="Mine")
    await make_post(status="approved", author="mallory", title="Theirs")

    assert [p["_id"] for p in await queries.list_by_user(author)] == [rejected["_id"]]
    assert [p["_id"] for p in await queries.search_own("mine", author)] == [rejected["_id"]]
    assert (await queries.get_for_owner(str(rejected["_id"]), author))["status"] == "rejected"
    with pytest.raises(AuthorizationError):
        await queries.get_for_owner(str(rejected["_id"]), other_user)


def test_weak_references_build_lookup_queries():
    assert AUTHOR_REFERENCE.kind == "weak"
    assert AUTHOR_REFERENCE.target_collection == "users"
    assert AUTHOR_REFERENCE.referrers("alice") == {"author": "alice"}
    assert BLOG_REFERENCE.target_key == "_id"
    assert BLOG_REFERENCE.referrers("x") == {"blog_id": "x"}
