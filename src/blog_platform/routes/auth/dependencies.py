"""
# Authentication Dependencies

FastAPI dependencies resolving the caller's identity from the `Authorization: Bearer` header.

- `get_current_user`: requires a valid token; raises `AuthenticationError` (401) otherwise.
- `require_admin`: requires a valid token carrying the admin flag (403 otherwise).

**Usage:**
```python
@router.get("/drafts")
async def list_drafts(current_user: IdentityClaim = Depends(get_current_user)):
    ...
```

Attributes:
    oauth2_scheme (OAuth2PasswordBearer): Bearer token extractor; does not fail on a missing header.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from blog_platform.config import settings
from blog_platform.errors import AuthenticationError
from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.services.auth_service import decode_access_token
from blog_platform.services.moderation_workflow import AccessPolicy, authorize

logger = get_logger(prefix="[Auth Dependencies]")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False)


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> IdentityClaim:
    """
    Resolve the verified identity of the caller.

    Raises:
        AuthenticationError: If the header is missing or the token is invalid or expired.
    """
    if not token:
        raise AuthenticationError("Access denied. No token provided.")
    claim = decode_access_token(token)
    logger.debug("Authenticated %s (admin=%s)", claim.username, claim.is_admin)
    return claim


async def require_admin(current_user: IdentityClaim = Depends(get_current_user)) -> IdentityClaim:
    authorize(AccessPolicy.ADMIN, current_user)
    return current_user
