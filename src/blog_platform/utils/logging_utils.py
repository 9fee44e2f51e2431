"""
# Logging Utilities

Shared helpers for structured, contextual logging across the application:

- `RequestLoggingMiddleware`: logs method, path, status code and duration for every request.
- `log_application_lifecycle`: records startup and shutdown milestones.
- `log_error_with_context`: logs an exception together with the operation context.
- `log_performance`: decorator timing an async or sync callable.
"""

import functools
import inspect
import time
from typing import Any, Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from blog_platform.managers.logging_manager import get_logger

logger = get_logger(prefix="[Request]")
lifecycle_logger = get_logger(name="lifecycle", prefix="[Lifecycle]")
error_logger = get_logger(name="errors", prefix="[Error]")
perf_logger = get_logger(name="performance", prefix="[Performance]")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request with its outcome and wall-clock duration."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                "%s %s from %s failed after %.3fs: %s",
                request.method,
                request.url.path,
                client_host,
                duration,
                e,
                exc_info=True,
            )
            raise

        duration = time.time() - start_time
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "%s %s from %s -> %d in %.3fs",
            request.method,
            request.url.path,
            client_host,
            response.status_code,
            duration,
        )
        return response


def log_application_lifecycle(event: str, details: Optional[Dict[str, Any]] = None) -> None:
    """
    Log an application lifecycle milestone.

    Args:
        event (str): Event name, e.g. `"startup_initiated"`.
        details (Optional[Dict[str, Any]]): Extra key/value context.
    """
    lifecycle_logger.info("%s %s", event, details or {})


def log_error_with_context(error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
    """
    Log an exception with the operation context it happened in.

    Args:
        error (BaseException): The exception being reported.
        context (Optional[Dict[str, Any]]): Operation name and related identifiers.
    """
    error_logger.error(
        "%s: %s | context=%s",
        type(error).__name__,
        error,
        context or {},
        exc_info=(type(error), error, error.__traceback__),
    )


def log_performance(operation: str) -> Callable:
    """Decorator that logs how long the wrapped callable took."""

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.time()
                try:
                    return await func(*args, **kwargs)
                finally:
                    perf_logger.debug("%s completed in %.3fs", operation, time.time() - start)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                perf_logger.debug("%s completed in %.3fs", operation, time.time() - start)

        return sync_wrapper

    return decorator
