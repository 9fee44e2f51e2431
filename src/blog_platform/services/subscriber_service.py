"""
# Subscriber Service

Newsletter sign-up with email verification. A random token is mailed to the subscriber and
only its SHA-256 digest is stored; verification compares digests and clears the token, so each
link works once.
"""

import hashlib
import secrets
from datetime import datetime, timezone
from typing import Any, Dict
from urllib.parse import urlencode

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from blog_platform.config import settings
from blog_platform.database import SUBSCRIBERS_COLLECTION, db_manager
from blog_platform.errors import ConflictError, UpstreamError, ValidationError
from blog_platform.managers.logging_manager import get_logger
from blog_platform.services.email_service import email_service

logger = get_logger(prefix="[Subscribers]")


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def verification_link(token: str, email: str) -> str:
    query = urlencode({"token": token, "email": email})
    return f"{settings.FRONTEND_BASE_URL.rstrip('/')}/verify?{query}"


class SubscriberService:
    def __init__(self):
        self.collection_name = SUBSCRIBERS_COLLECTION

    def _collection(self):
        return db_manager.get_collection(self.collection_name)

    async def subscribe(self, email: str) -> Dict[str, Any]:
        """
        Register `email` and send it a verification link.

        If the email cannot be delivered the subscription is removed again so the address can
        retry.

        Raises:
            ConflictError: If the email is already subscribed.
            UpstreamError: If the verification email could not be sent.
        """
        email = email.strip().lower()
        token = secrets.token_hex(32)
        doc = {
            "email": email,
            "verification_token": hash_token(token),
            "is_verified": False,
            "created_at": datetime.now(timezone.utc),
            "verified_at": None,
        }
        try:
            result = await self._collection().insert_one(doc)
        except DuplicateKeyError:
            raise ConflictError("Email already subscribed", [{"field": "email", "message": "Already subscribed"}])
        doc["_id"] = result.inserted_id

        try:
            await email_service.send_verification_email(email, verification_link(token, email))
        except UpstreamError:
            await self._collection().delete_one({"_id": doc["_id"], "is_verified": False})
            logger.warning("Removed unverified subscription after mail failure")
            raise

        logger.info("Subscription %s created, verification sent", doc["_id"])
        return doc

    async def verify(self, token: str, email: str) -> Dict[str, Any]:
        """
        Mark a subscriber verified when `token` matches.

        Raises:
            ValidationError: If the token is wrong, already used or the email is unknown.
        """
        if not token or not email:
            raise ValidationError("Token and email are required")
        subscriber = await self._collection().find_one_and_update(
            {"email": email.strip().lower(), "verification_token": hash_token(token), "is_verified": False},
            {"$set": {"is_verified": True, "verification_token": None, "verified_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        if subscriber is None:
            raise ValidationError(
                "Invalid or expired verification link", [{"field": "token", "message": "Invalid or expired"}]
            )
        logger.info("Subscription %s verified", subscriber["_id"])
        return subscriber


subscriber_service = SubscriberService()
