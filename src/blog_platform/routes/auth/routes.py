"""
# Authentication Routes

Registration, login and profile endpoints.

## API Endpoints

- `POST /auth/register` - Create a user
- `POST /auth/login` - Exchange credentials for a token
- `POST /auth/admin-login` - Same as login, admins only
- `GET /auth/renew-token` - Re-issue a longer-lived token
- `GET /auth/user-info` - Current user's profile
- `PUT /auth/profile` - Change username, password or picture (multipart form)
- `POST /auth/profile-picture` - Upload a new profile picture

Attributes:
    router (APIRouter): FastAPI router with `/auth` prefix
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from blog_platform.errors import ValidationError
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import (
    IdentityClaim,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenResponse,
    UserInfoResponse,
    UserSummary,
)
from blog_platform.models.blog_models import AckResponse
from blog_platform.routes.auth.dependencies import get_current_user
from blog_platform.services.auth_service import auth_service
from blog_platform.utils.uploads import read_upload

logger = get_logger(prefix="[Auth Routes]")

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_info(user: Dict[str, Any]) -> UserInfoResponse:
    return UserInfoResponse(
        id=str(user["_id"]),
        username=user["username"],
        is_admin=user.get("is_admin", False),
        profile_picture=user.get("profile_picture"),
        created_at=user.get("created_at"),
    )


def _token_response(result: Dict[str, Any]) -> TokenResponse:
    user = result["user"]
    return TokenResponse(
        token=result["token"], user=UserSummary(username=user["username"], is_admin=user.get("is_admin", False))
    )


@router.post("/register", response_model=AckResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest):
    """
    Register a new user.

    Usernames are unique; a taken name is rejected with 409 Conflict.
    """
    await auth_service.register(request.username, request.password)
    return AckResponse(message="User registered successfully")


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    result = await auth_service.login(request.username, request.password)
    return _token_response(result)


@router.post("/admin-login", response_model=TokenResponse)
async def admin_login(request: LoginRequest):
    """Login for the admin dashboard. Valid credentials of a non-admin user get 403."""
    result = await auth_service.admin_login(request.username, request.password)
    return _token_response(result)


@router.get("/renew-token", response_model=TokenResponse)
async def renew_token(current_user: IdentityClaim = Depends(get_current_user)):
    token = await auth_service.renew_token(current_user)
    logger.info("Token renewed for %s", current_user.username)
    return TokenResponse(token=token, user=UserSummary(username=current_user.username, is_admin=current_user.is_admin))


@router.get("/user-info", response_model=UserInfoResponse)
async def user_info(current_user: IdentityClaim = Depends(get_current_user)):
    user = await auth_service.get_user(current_user)
    return _user_info(user)


@router.put("/profile", response_model=UserInfoResponse)
async def update_profile(
    current_password: str = Form(...),
    username: Optional[str] = Form(None),
    new_password: Optional[str] = Form(None),
    profile_picture: Optional[UploadFile] = File(None),
    current_user: IdentityClaim = Depends(get_current_user),
):
    """
    Update the caller's profile.

    **Rules:**
    *   `current_password` must match the stored password.
    *   A new `username` must not be taken (409 otherwise).
    *   Posts keep the author name they were written under.

    Returns:
        UserInfoResponse: The updated profile. Clients should log in again after a username
        change, since existing tokens carry the old name.
    """
    changes = ProfileUpdateRequest(
        current_password=current_password, username=username or None, new_password=new_password or None
    )
    picture = await read_upload(profile_picture)
    user = await auth_service.update_profile(
        current_user,
        changes.current_password,
        username=changes.username,
        new_password=changes.new_password,
        picture=picture,
    )
    return _user_info(user)


@router.post("/profile-picture", response_model=UserInfoResponse)
async def upload_profile_picture(
    profile_picture: UploadFile = File(...),
    current_user: IdentityClaim = Depends(get_current_user),
):
    picture = await read_upload(profile_picture)
    if picture is None:
        raise ValidationError("No file uploaded", [{"field": "profile_picture", "message": "Empty file"}])
    user = await auth_service.upload_profile_picture(current_user, picture)
    return _user_info(user)
