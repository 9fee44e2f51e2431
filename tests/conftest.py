"""
Shared fixtures: an in-memory database bound to `db_manager`, identity helpers and an HTTP
client for the ASGI app.
"""

import os

os.environ.setdefault("SECRET_KEY", "pytest-signing-key-7f3a9c")
os.environ.setdefault("NOTIFICATION_RETRY_BACKOFF", "0")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "demo-cloud")
os.environ.setdefault("CLOUDINARY_API_KEY", "123456789")
os.environ.setdefault("CLOUDINARY_API_SECRET", "cloudinary-test-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timezone  # noqa: E402
from uuid import uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from bson import ObjectId  # noqa: E402
from mongomock_motor import AsyncMongoMockClient  # noqa: E402

from blog_platform.database import POSTS_COLLECTION, db_manager  # noqa: E402
from blog_platform.models.auth_models import IdentityClaim  # noqa: E402
from blog_platform.services.auth_service import create_access_token  # noqa: E402


@pytest.fixture(autouse=True)
async def database():
    db = AsyncMongoMockClient(tz_aware=True)[f"blog_platform_test_{uuid4().hex}"]
    db_manager.database = db
    await db_manager.create_indexes()
    yield db
    db_manager.database = None


@pytest.fixture
def author():
    return IdentityClaim(user_id=str(ObjectId()), username="alice", is_admin=False)


@pytest.fixture
def other_user():
    return IdentityClaim(user_id=str(ObjectId()), username="mallory", is_admin=False)


@pytest.fixture
def admin():
    return IdentityClaim(user_id=str(ObjectId()), username="root", is_admin=True)


def bearer(claim: IdentityClaim) -> dict:
    return {"Authorization": f"Bearer {create_access_token(claim)}"}


@pytest.fixture
def make_post(database):
    """Insert a post directly in the given state."""

    async def _make_post(status="approved", author="alice", category="Tech", **fields):
        now = datetime.now(timezone.utc)
        doc = {
            "title": fields.pop("title", "A title"),
            "content": fields.pop("content", "Some content"),
            "category": category,
            "author": author,
            "image": None,
            "image_public_id": None,
            "status": status,
            "views": 0,
            "liked_users": [],
            "comments": [],
            "is_featured": False,
            "created_at": now,
            "updated_at": now,
            "published_at": now if status == "approved" else None,
        }
        doc.update(fields)
        result = await database[POSTS_COLLECTION].insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    return _make_post


@pytest.fixture
async def client():
    from blog_platform.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
