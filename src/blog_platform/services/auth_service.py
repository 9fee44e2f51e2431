"""
# Authentication Service

User registration, login and profile management, plus issuance and verification of the JWT
identity claims carried by every protected request.

## Tokens

Tokens are HS256 JWTs signed with `settings.SECRET_KEY` and carry
`{user_id, username, is_admin, exp}`. Login tokens live for
`ACCESS_TOKEN_EXPIRE_MINUTES`; `renew_token` issues one valid for `RENEWED_TOKEN_EXPIRE_HOURS`.

## Uniqueness

Usernames are unique through the `users.username` unique index. There is no
check-then-insert: a `DuplicateKeyError` from the store becomes a `ConflictError`, so two
concurrent registrations of one name yield exactly one success.

## Passwords

Hashed with `bcrypt`; plain-text passwords are never stored or logged.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from blog_platform.config import settings
from blog_platform.database import USERS_COLLECTION, db_manager
from blog_platform.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.services.media_storage import MediaUpload, media_storage
from blog_platform.utils.object_ids import parse_object_id

logger = get_logger(prefix="[Auth]")

INVALID_CREDENTIALS = "Invalid username or password"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_access_token(claim: IdentityClaim, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign an identity claim.

    Args:
        claim (IdentityClaim): Identity to embed.
        expires_delta (Optional[timedelta]): Lifetime; defaults to `ACCESS_TOKEN_EXPIRE_MINUTES`.

    Returns:
        str: Encoded JWT.
    """
    expires_delta = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = claim.model_dump()
    payload["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> IdentityClaim:
    """
    Verify a JWT and return its identity claim.

    Raises:
        AuthenticationError: If the token is expired, tampered with or missing claims.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError:
        raise AuthenticationError("Invalid token")

    user_id = payload.get("user_id")
    username = payload.get("username")
    if not user_id or not username:
        raise AuthenticationError("Invalid token")
    return IdentityClaim(user_id=user_id, username=username, is_admin=bool(payload.get("is_admin", False)))


def claim_for(user: Dict[str, Any]) -> IdentityClaim:
    return IdentityClaim(user_id=str(user["_id"]), username=user["username"], is_admin=user.get("is_admin", False))


class AuthService:
    def __init__(self):
        self.collection_name = USERS_COLLECTION

    def _collection(self):
        return db_manager.get_collection(self.collection_name)

    async def register(self, username: str, password: str) -> Dict[str, Any]:
        """
        Create a regular (non-admin) user.

        Raises:
            ConflictError: If the username is taken.
        """
        doc = {
            "username": username,
            "hashed_password": hash_password(password),
            "is_admin": False,
            "profile_picture": None,
            "profile_picture_public_id": None,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            result = await self._collection().insert_one(doc)
        except DuplicateKeyError:
            logger.info("Registration rejected, username %s already exists", username)
            raise ConflictError(
                "Username already in use", [{"field": "username", "message": "Username already in use"}]
            )
        doc["_id"] = result.inserted_id
        logger.info("User %s registered", username)
        return doc

    async def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        user = await self._collection().find_one({"username": username})
        if not user or not verify_password(password, user.get("hashed_password")):
            logger.info("Failed login attempt for %s", username)
            raise AuthenticationError(INVALID_CREDENTIALS)
        return user

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """Verify credentials and issue a token. Returns `{"token", "user"}`."""
        user = await self.authenticate(username, password)
        token = create_access_token(claim_for(user))
        logger.info("User %s logged in", username)
        return {"token": token, "user": user}

    async def admin_login(self, username: str, password: str) -> Dict[str, Any]:
        user = await self.authenticate(username, password)
        if not user.get("is_admin", False):
            logger.warning("Non-admin %s attempted admin login", username)
            raise AuthorizationError("Access denied. Not an admin.")
        token = create_access_token(claim_for(user))
        logger.info("Admin %s logged in", username)
        return {"token": token, "user": user}

    async def renew_token(self, actor: IdentityClaim) -> str:
        """Issue a fresh long-lived token for a still-valid identity."""
        user = await self.get_user(actor)
        return create_access_token(claim_for(user), timedelta(hours=settings.RENEWED_TOKEN_EXPIRE_HOURS))

    async def get_user(self, actor: IdentityClaim) -> Dict[str, Any]:
        oid = parse_object_id(actor.user_id, "User")
        user = await self._collection().find_one({"_id": oid})
        if not user:
            raise NotFoundError("User not found")
        return user

    async def update_profile(
        self,
        actor: IdentityClaim,
        current_password: str,
        username: Optional[str] = None,
        new_password: Optional[str] = None,
        picture: Optional[MediaUpload] = None,
    ) -> Dict[str, Any]:
        """
        Change username, password and/or profile picture. The current password is required.

        Raises:
            AuthenticationError: If `current_password` is wrong.
            ConflictError: If the new username is taken.
            ValidationError: If nothing was supplied to change.
        """
        user = await self.get_user(actor)
        if not verify_password(current_password, user.get("hashed_password")):
            raise AuthenticationError("Current password is incorrect")

        fields: Dict[str, Any] = {}
        if username and username != user["username"]:
            fields["username"] = username
        if new_password:
            fields["hashed_password"] = hash_password(new_password)
        if not fields and picture is None:
            raise ValidationError("Nothing to update", [{"field": "profile", "message": "No changes supplied"}])

        stored = None
        if picture is not None:
            stored = await self._upload_picture(picture)
            fields["profile_picture"] = stored.url
            fields["profile_picture_public_id"] = stored.public_id

        try:
            updated = await self._collection().find_one_and_update(
                {"_id": user["_id"]}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            if stored:
                await media_storage.delete_quietly(stored.public_id)
            raise ConflictError(
                "Username already in use", [{"field": "username", "message": "Username already in use"}]
            )

        if stored:
            await media_storage.delete_quietly(user.get("profile_picture_public_id"))
        logger.info("Profile updated for user %s (%s)", actor.user_id, ", ".join(sorted(fields)))
        return updated

    async def upload_profile_picture(self, actor: IdentityClaim, picture: MediaUpload) -> Dict[str, Any]:
        user = await self.get_user(actor)
        stored = await self._upload_picture(picture)
        updated = await self._collection().find_one_and_update(
            {"_id": user["_id"]},
            {"$set": {"profile_picture": stored.url, "profile_picture_public_id": stored.public_id}},
            return_document=ReturnDocument.AFTER,
        )
        await media_storage.delete_quietly(user.get("profile_picture_public_id"))
        logger.info("Profile picture updated for user %s", actor.user_id)
        return updated

    async def _upload_picture(self, picture: MediaUpload):
        if not picture.is_image:
            raise ValidationError(
                "Only image uploads are allowed", [{"field": "profile_picture", "message": "Not an image"}]
            )
        return await media_storage.upload(picture, settings.PROFILE_PICTURE_FOLDER)


auth_service = AuthService()
