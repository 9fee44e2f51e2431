"""
# Authentication Models

Request and response bodies for registration, login and profile management, plus the
`IdentityClaim` decoded from a bearer token and passed to every protected operation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _check_username(value: str) -> str:
    value = value.strip()
    if not value or any(ch.isspace() for ch in value):
        raise ValueError("Username must not contain whitespace")
    return value


class IdentityClaim(BaseModel):
    """Verified identity extracted from a JWT.

    Attributes:
        user_id: String form of the user's ObjectId.
        username: Unique username, also the weak reference stored in `Post.author`.
        is_admin: Whether the user may perform admin-only operations.
    """

    user_id: str
    username: str
    is_admin: bool = False


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, description="Unique username")
    password: str = Field(..., min_length=1, max_length=128, description="Plain-text password")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        return _check_username(v)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserSummary(BaseModel):
    username: str
    is_admin: bool


class TokenResponse(BaseModel):
    token: str
    user: UserSummary


class UserInfoResponse(BaseModel):
    id: str
    username: str
    is_admin: bool
    profile_picture: Optional[str] = None
    created_at: Optional[datetime] = None


class ProfileUpdateRequest(BaseModel):
    """Profile edit. `current_password` is always required; every other field is optional."""

    current_password: str = Field(..., min_length=1)
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    new_password: Optional[str] = Field(None, min_length=1, max_length=128)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        if v is None:
            return v
        return _check_username(v)
