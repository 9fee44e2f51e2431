"""
# Error Taxonomy

Domain errors raised by services and translated into HTTP responses by the exception
handlers registered in `main.py`.

| Error | HTTP |
|-------|------|
| `AuthenticationError` | 401 |
| `AuthorizationError` | 403 |
| `NotFoundError` | 404 |
| `ValidationError` | 422 |
| `ConflictError` | 409 |
| `StoreError` | 500 |
| `UpstreamError` | 502 |
| `StoreTimeoutError` / `UpstreamTimeoutError` | 503 (retryable) |

Every error response body is `{"message": str}`; validation failures add an `errors` list
of `{"field", "message"}` entries. Internal details never reach the client.
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import ExecutionTimeout, NetworkTimeout, PyMongoError, ServerSelectionTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from blog_platform.config import settings
from blog_platform.managers.logging_manager import get_logger
from blog_platform.utils.logging_utils import log_error_with_context

logger = get_logger(prefix="[Errors]")


class BlogPlatformError(Exception):
    """Base class for every domain error."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> Dict[str, Any]:
        return {"message": self.message}


class AuthenticationError(BlogPlatformError):
    """Missing, malformed, expired or unverifiable identity claim."""

    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(BlogPlatformError):
    """Valid identity without the privilege the operation requires."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(BlogPlatformError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(BlogPlatformError):
    """Invalid input or an illegal state transition."""

    status_code = 422

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        if self.errors:
            body["errors"] = self.errors
        return body


class ConflictError(ValidationError):
    """Uniqueness violation detected by the store."""

    status_code = status.HTTP_409_CONFLICT


class StoreError(BlogPlatformError):
    """Unexpected persistence failure. The message shown to clients is always generic."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


class StoreTimeoutError(StoreError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, message: str = "Database temporarily unavailable, please retry"):
        super().__init__(message)


class UpstreamError(BlogPlatformError):
    """Failure of an external collaborator (media host, mail server, generative text)."""

    status_code = status.HTTP_502_BAD_GATEWAY


class UpstreamTimeoutError(UpstreamError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


STORE_TIMEOUT_ERRORS = (ExecutionTimeout, NetworkTimeout, ServerSelectionTimeoutError)


def store_error_from(exc: PyMongoError) -> StoreError:
    """Map a raw driver error to the domain taxonomy."""
    if isinstance(exc, STORE_TIMEOUT_ERRORS) or getattr(exc, "timeout", False):
        return StoreTimeoutError()
    return StoreError()


def _error_response(exc: BlogPlatformError) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    elif exc.retryable:
        headers = {"Retry-After": str(settings.RETRY_AFTER_SECONDS)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


async def blog_platform_error_handler(request: Request, exc: BlogPlatformError) -> JSONResponse:
    if isinstance(exc, (StoreError, UpstreamError)):
        log_error_with_context(exc, {"operation": "request", "path": request.url.path})
    else:
        logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error_response(exc)


async def pymongo_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    log_error_with_context(exc, {"operation": "request", "path": request.url.path})
    return _error_response(store_error_from(exc))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)


def validation_error_from(exc: Any) -> ValidationError:
    """Build a domain `ValidationError` from FastAPI or pydantic validation failures."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        errors.append({"field": ".".join(location) or "request", "message": error.get("msg", "Invalid value")})
    return ValidationError("Invalid request", errors)


async def request_validation_error_handler(request: Request, exc: Any) -> JSONResponse:
    return _error_response(validation_error_from(exc))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain, driver, HTTP and request-validation handlers to `app`."""
    app.add_exception_handler(BlogPlatformError, blog_platform_error_handler)
    app.add_exception_handler(PyMongoError, pymongo_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(PydanticValidationError, request_validation_error_handler)
