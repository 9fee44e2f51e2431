"""
# Logging Manager

Central place where the application's loggers are created. Every module obtains its logger
through `get_logger`, optionally tagging it with a component prefix such as `"[Moderation]"`
so records from different subsystems are easy to tell apart in aggregated output.

The root handler is configured once, lazily, on the first call. The level comes from
`settings.LOG_LEVEL`.

Example:
    ```python
    from blog_platform.managers.logging_manager import get_logger

    logger = get_logger(prefix="[Engagement]")
    logger.info("Like toggled for post %s", post_id)
    ```
"""

import logging
import sys
from typing import Any, MutableMapping, Optional, Tuple

from blog_platform.config import settings

DEFAULT_LOGGER_NAME = "blog_platform"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured = False


class PrefixedLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that prepends a fixed component prefix to every message."""

    def __init__(self, logger: logging.Logger, prefix: str):
        super().__init__(logger, {"prefix": prefix})
        self.prefix = prefix

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"{self.prefix} {msg}", kwargs


def _configure_root() -> None:
    global _configured
    if _configured:
        return

    root = logging.getLogger(DEFAULT_LOGGER_NAME)
    level = getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO)
    root.setLevel(level)

    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    _configured = True


def get_logger(name: Optional[str] = None, prefix: Optional[str] = None):
    """
    Return an application logger.

    Args:
        name (Optional[str]): Child logger name under `blog_platform`. Defaults to the root
            application logger.
        prefix (Optional[str]): Component tag prepended to every message.

    Returns:
        logging.Logger | PrefixedLoggerAdapter: The configured logger.
    """
    _configure_root()
    logger_name = DEFAULT_LOGGER_NAME if not name else f"{DEFAULT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(logger_name)
    if prefix:
        return PrefixedLoggerAdapter(logger, prefix)
    return logger
