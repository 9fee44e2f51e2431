"""
End-to-end tests through the HTTP API: the moderation scenarios, reader engagement,
subscription, messaging and the error response contract.
"""

from unittest.mock import AsyncMock, patch

import pytest

from blog_platform.database import db_manager
from blog_platform.services.email_service import email_service
from blog_platform.services.media_storage import StoredMedia, media_storage
from blog_platform.services.trending_cache import TrendingCategoryCache

from conftest import bearer


async def _register_and_login(client, username="alice", password="pw1"):
    response = await client.post("/api/auth/register", json={"username": username, "password": password})
    assert response.status_code == 201
    response = await client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


async def _create_post(client, headers, title="T", content="C", category="Tech"):
    response = await client.post(
        "/api/blogger/create", data={"title": title, "content": content, "category": category}, headers=headers
    )
    assert response.status_code == 201
    return response.json()


# ============================================================================
# Moderation scenarios
# ============================================================================

@pytest.mark.asyncio
async def test_created_post_waits_for_review_with_one_notification(client, admin):
    headers = await _register_and_login(client)

    post = await _create_post(client, headers)

    assert post["status"] == "pending"
    assert post["published_at"] is None
    assert post["is_published"] is False
    assert post["author"] == "alice"

    response = await client.get("/api/notification/notifications", headers=bearer(admin))
    assert response.status_code == 200
    notifications = response.json()
    assert len(notifications) == 1
    assert notifications[0]["blog_id"] == post["id"]
    assert notifications[0]["read"] is False


@pytest.mark.asyncio
async def test_approved_post_moves_to_published_listing(client, admin):
    headers = await _register_and_login(client)
    post = await _create_post(client, headers)

    response = await client.get("/api/blogger/unpublished-blogs", headers=bearer(admin))
    assert [p["id"] for p in response.json()] == [post["id"]]

    response = await client.put(
        f"/api/blogger/update-status/{post['id']}", json={"status": "approved"}, headers=bearer(admin)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["published_at"] is not None

    published = (await client.get("/api/blogger/published-blogs")).json()
    assert post["id"] in [p["id"] for p in published]
    unpublished = (await client.get("/api/blogger/unpublished-blogs", headers=bearer(admin))).json()
    assert post["id"] not in [p["id"] for p in unpublished]


@pytest.mark.asyncio
async def test_anonymous_comment(client, make_post):
    post = await make_post()
    post_id = str(post["_id"])

    response = await client.post(f"/api/userPost/posts/{post_id}/comment", json={"user": "bob", "text": "nice"})
    assert response.status_code == 201

    response = await client.get(f"/api/userPost/posts/{post_id}/comments")
    body = response.json()
    assert body["total_comments"] == 1
    assert body["comments"][0]["user"] == "bob"
    assert body["comments"][0]["text"] == "nice"

    response = await client.post(f"/api/userPost/posts/{post_id}/comment", json={"user": "bob", "text": ""})
    assert response.status_code == 422
    assert response.json()["message"] == "User and text are required"
    assert (await client.get(f"/api/userPost/posts/{post_id}/comments")).json()["total_comments"] == 1


@pytest.mark.asyncio
async def test_owner_edit_of_approved_post_resubmits(client, admin):
    headers = await _register_and_login(client)
    post = await _create_post(client, headers)
    await client.put(f"/api/blogger/update-status/{post['id']}", json={"status": "approved"}, headers=bearer(admin))

    response = await client.put(f"/api/blogger/update/posts/{post['id']}", data={"title": "T2"}, headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert response.json()["title"] == "T2"
    notifications = (await client.get("/api/notification/notifications", headers=bearer(admin))).json()
    assert len(notifications) == 2


@pytest.mark.asyncio
async def test_mark_notifications_read(client, admin):
    headers = await _register_and_login(client)
    post = await _create_post(client, headers)

    response = await client.put(f"/api/notification/read-notifications/{post['id']}", headers=bearer(admin))

    assert response.status_code == 200
    assert response.json()["message"] == "1 notification(s) marked as read"
    assert (await client.get("/api/notification/notifications", headers=bearer(admin))).json() == []


@pytest.mark.asyncio
async def test_public_reads_hide_unapproved_posts(client, make_post):
    approved = await make_post(title="Visible", category="Tech")
    pending = await make_post(title="Visible draft", status="pending", category="Tech")

    assert (await client.get(f"/api/userPost/posts/{pending['_id']}")).status_code == 404
    assert (await client.get(f"/api/userPost/posts/{approved['_id']}")).status_code == 200

    results = (await client.get("/api/userPost/search", params={"q": "visible"})).json()
    assert [p["id"] for p in results] == [str(approved["_id"])]
    by_category = (await client.get("/api/userPost/category", params={"category": "tech"})).json()
    assert [p["id"] for p in by_category] == [str(approved["_id"])]


# ============================================================================
# Reader engagement and listings
# ============================================================================

@pytest.mark.asyncio
async def test_like_and_view(client, make_post):
    post = await make_post()
    post_id = str(post["_id"])

    response = await client.post(f"/api/userPost/posts/{post_id}/like", json={"email": "reader@example.com"})
    assert response.json() == {"liked": True, "likes_count": 1}
    response = await client.post(f"/api/userPost/posts/{post_id}/like", json={"email": "reader@example.com"})
    assert response.json() == {"liked": False, "likes_count": 0}

    response = await client.post(f"/api/userPost/posts/{post_id}/view")
    assert response.json() == {"views": 1}


@pytest.mark.asyncio
async def test_latest_blogs(client, make_post):
    tech = await make_post(category="Tech")
    await make_post(category="Art")
    cache = TrendingCategoryCache(sampler=AsyncMock(return_value=["Tech"]), sample_size=1)

    with patch("blog_platform.routes.user_post.trending_cache", cache):
        response = await client.get("/api/userPost/latest-blogs")

    body = response.json()
    assert body["categories"] == ["Tech"]
    assert [p["id"] for p in body["blogs"]] == [str(tech["_id"])]


@pytest.mark.asyncio
async def test_subscribe_and_verify(client):
    with patch.object(email_service, "send_verification_email", AsyncMock()) as send:
        response = await client.post("/api/userPost/subscribe", json={"email": "reader@example.com"})
        assert response.status_code == 201
        duplicate = await client.post("/api/userPost/subscribe", json={"email": "reader@example.com"})
        assert duplicate.status_code == 409

    link = send.await_args.args[1]
    query = link.split("?", 1)[1]
    response = await client.get(f"/api/userPost/verify?{query}")
    assert response.status_code == 200
    assert response.json()["message"] == "Email verified successfully"


# ============================================================================
# Drafts, chat and messaging
# ============================================================================

@pytest.mark.asyncio
async def test_draft_submission(client, author):
    headers = bearer(author)
    response = await client.post(
        "/api/blogger/create-draft", data={"title": "D", "content": "Body", "category": "Tech"}, headers=headers
    )
    assert response.status_code == 201
    draft_id = response.json()["id"]
    assert (await client.get("/api/blogger/draft-count", headers=headers)).json() == {"count": 1}

    response = await client.post(f"/api/blogger/drafts/{draft_id}/submit", headers=headers)

    assert response.status_code == 201
    assert response.json()["status"] == "pending"
    assert (await client.get("/api/blogger/draft-count", headers=headers)).json() == {"count": 0}


@pytest.mark.asyncio
async def test_chat_sessions_are_owner_scoped(client, author, other_user):
    response = await client.post(
        "/api/chat/new-chats",
        json={"title": "Ideas", "messages": [{"role": "user", "content": "Hello"}]},
        headers=bearer(author),
    )
    assert response.status_code == 201
    chat_id = response.json()["id"]

    assert (await client.get(f"/api/chat/chats/{chat_id}", headers=bearer(author))).status_code == 200
    assert (await client.get(f"/api/chat/chats/{chat_id}", headers=bearer(other_user))).status_code == 404
    assert (await client.get("/api/chat/all-chats", headers=bearer(other_user))).json() == []


@pytest.mark.asyncio
async def test_messaging(client, author):
    headers = bearer(author)
    response = await client.post("/api/messaging/messages", json={"content": "hi all"}, headers=headers)
    assert response.status_code == 201
    assert response.json()["sender_id"] == author.user_id

    stored = StoredMedia(url="https://cdn/notes.pdf", public_id="messages/notes")
    with patch.object(media_storage, "upload", AsyncMock(return_value=stored)):
        response = await client.post(
            "/api/messaging/upload", files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")}, headers=headers
        )
    assert response.status_code == 201
    assert response.json()["file_url"] == "https://cdn/notes.pdf"

    messages = (await client.get("/api/messaging/messages", headers=headers)).json()
    assert [m["message_type"] for m in messages] == ["text", "file"]


# ============================================================================
# Error contract
# ============================================================================

@pytest.mark.asyncio
async def test_missing_token_is_401_with_challenge(client):
    response = await client.post("/api/blogger/create", data={"title": "T", "content": "C", "category": "Tech"})
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json() == {"message": "Access denied. No token provided."}


@pytest.mark.asyncio
async def test_invalid_token_is_401(client):
    response = await client.get("/api/blogger/drafts", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid token"}


@pytest.mark.asyncio
async def test_non_admin_is_403(client, author, make_post):
    post = await make_post(status="pending")
    response = await client.put(
        f"/api/blogger/update-status/{post['_id']}", json={"status": "approved"}, headers=bearer(author)
    )
    assert response.status_code == 403
    assert response.json() == {"message": "Requires Admin role"}


@pytest.mark.asyncio
async def test_illegal_transition_is_422(client, admin, make_post):
    post = await make_post(status="approved")
    response = await client.put(
        f"/api/blogger/update-status/{post['_id']}", json={"status": "rejected"}, headers=bearer(admin)
    )
    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "status"


@pytest.mark.asyncio
async def test_request_validation_is_422_with_field_errors(client):
    response = await client.post("/api/auth/register", json={"username": "al"})
    assert response.status_code == 422
    body = response.json()
    assert body["message"] == "Invalid request"
    assert {"username", "password"} <= {error["field"] for error in body["errors"]}


@pytest.mark.asyncio
async def test_duplicate_username_is_409(client):
    await _register_and_login(client)
    response = await client.post("/api/auth/register", json={"username": "alice", "password": "another"})
    assert response.status_code == 409
    assert response.json()["message"] == "Username already in use"


@pytest.mark.asyncio
async def test_unknown_post_is_404(client):
    assert (await client.get("/api/userPost/posts/not-an-id")).status_code == 404
    assert (await client.get("/api/userPost/posts/0123456789abcdef01234567")).status_code == 404


# ============================================================================
# Health and metrics
# ============================================================================

@pytest.mark.asyncio
async def test_health_reports_database_state(client):
    response = await client.get("/api/health")
    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"

    with patch.object(db_manager, "health_check", AsyncMock(return_value=True)):
        response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["database"] is True


@pytest.mark.asyncio
async def test_metrics_endpoint(client, make_post):
    post = await make_post()
    await client.post(f"/api/userPost/posts/{post['_id']}/view")

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "blog_engagement_events_total" in response.text
    assert "http_requests_total" in response.text
    assert "blog_http_requests_total" not in response.text
