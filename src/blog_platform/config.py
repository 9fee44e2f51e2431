"""
# Configuration Management Module

This module provides the configuration system for the Blog Platform API. It is built on
**Pydantic Settings** and offers hierarchical configuration loading, startup validation and
secret management for local development and containerized deployments alike.

## Configuration Loading Hierarchy

```
┌─────────────────────────────────────────────────────────────┐
│  1. Environment Variables (HIGHEST PRIORITY)                │
├─────────────────────────────────────────────────────────────┤
│  2. BLOG_PLATFORM_CONFIG_PATH (custom config file path)     │
├─────────────────────────────────────────────────────────────┤
│  3. .blog File (Project Root)                               │
├─────────────────────────────────────────────────────────────┤
│  4. .env File (Project Root)                                │
├─────────────────────────────────────────────────────────────┤
│  5. Default Values (LOWEST PRIORITY)                        │
└─────────────────────────────────────────────────────────────┘
```

If no configuration file is found, the application runs in **environment-only mode**.

## Secret Management

Secrets are typed as `SecretStr` so they never appear in logs or reprs:

- `SECRET_KEY` - JWT signing key (REQUIRED, no default)
- `MONGODB_PASSWORD` - Database password
- `CLOUDINARY_API_SECRET` - Media host API secret
- `SMTP_PASSWORD` - Outbound mail password
- `GEMINI_API_KEY` - Generative text API key

`SECRET_KEY` is rejected at startup when empty or when it looks like a placeholder
(contains `"change"` or `"0000"`).

## Configuration Groups

| Group | Purpose |
|-------|---------|
| **Server** | Host, port, debug mode, log level |
| **Database (MongoDB)** | Connection URL, database name, driver timeouts |
| **JWT Authentication** | Signing key, algorithm, token lifetimes |
| **Moderation** | Featured ranking size, notification retries |
| **Trending Cache** | Sample size, refresh window and retry pause after a failed refresh |
| **Media (Cloudinary)** | Cloud name, API credentials, upload folder |
| **Email (SMTP)** | Mail server, TLS mode, sender address, verification link base |
| **AI (Gemini)** | API key, model name |
| **Timeouts** | Bound on every external call |
| **CORS** | Allowed origins |

## Usage

```python
from blog_platform.config import settings

secret_key = settings.SECRET_KEY.get_secret_value()
if settings.is_production:
    ...
```

Attributes:
    BLOG_FILENAME (str): Primary configuration filename (`.blog`).
    DEFAULT_ENV_FILENAME (str): Fallback configuration filename (`.env`).
    CONFIG_ENV_VAR (str): Environment variable holding a custom config file path.
    PROJECT_ROOT (Path): Directory searched for `.blog` and `.env`.
    CONFIG_PATH (Optional[str]): Resolved configuration file, or `None`.
    settings (Settings): Global singleton instance used throughout the application.
"""

import os
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
BLOG_FILENAME: str = ".blog"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "BLOG_PLATFORM_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determines the configuration file path based on a predefined precedence order.

    1.  **Environment Variable**: `BLOG_PLATFORM_CONFIG_PATH` (if set and file exists).
    2.  **Blog Config**: `.blog` file in the project root directory.
    3.  **Dotenv Config**: `.env` file in the project root directory.
    4.  **Fallback**: `None`, triggering environment-variable-only mode.

    Returns:
        Optional[str]: The absolute path to the configuration file, or `None` if not found.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    blog_path: Path = PROJECT_ROOT / BLOG_FILENAME
    if blog_path.exists():
        return str(blog_path)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    # Environment variables keep precedence over file values
    load_dotenv(dotenv_path=CONFIG_PATH, override=False)


class Settings(BaseSettings):
    """
    Application configuration settings model.

    **Configuration Groups:**
    *   **Server**: Host, port, debug mode.
    *   **Database**: MongoDB connection details and driver timeouts.
    *   **Security**: JWT signing key and token lifetimes.
    *   **Moderation & Engagement**: Featured ranking, notification emission retries.
    *   **Integrations**: Cloudinary, SMTP and Gemini configuration.

    **Validation:**
    Custom validators ensure the signing key is not a placeholder and that the database URL
    and timeout values are usable.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Server configuration
    HOST: str = "127.0.0.1"
    PORT: int = 5000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api"

    # JWT configuration
    SECRET_KEY: SecretStr  # Must be set in .blog or environment
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    RENEWED_TOKEN_EXPIRE_HOURS: int = 5

    # MongoDB configuration
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "blog_platform"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_OPERATION_TIMEOUT: int = 10000  # Client-side bound on every store call (ms)
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None

    # Moderation and engagement
    FEATURED_POSTS_LIMIT: int = 5
    NOTIFICATION_EMIT_RETRIES: int = 3
    NOTIFICATION_RETRY_BACKOFF: float = 0.2  # Base delay in seconds, doubled per attempt

    # Trending cache
    TRENDING_SAMPLE_SIZE: int = 2
    TRENDING_REFRESH_SECONDS: int = 2 * 60 * 60
    TRENDING_RETRY_SECONDS: int = 60
    LATEST_BLOGS_DEFAULT_LIMIT: int = 2

    # Media storage (Cloudinary)
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[SecretStr] = None
    CLOUDINARY_FOLDER: str = "blog-images"
    PROFILE_PICTURE_FOLDER: str = "profile-pictures"
    MESSAGE_UPLOAD_FOLDER: str = "uploads"

    # Email delivery (SMTP)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[SecretStr] = None
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    MAIL_FROM: str = "no-reply@example.com"
    MAIL_FROM_NAME: str = "Blog Platform"
    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # Generative text (Gemini)
    GEMINI_API_KEY: Optional[SecretStr] = None
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # Timeouts for external collaborators (seconds)
    EXTERNAL_CALL_TIMEOUT: int = 30
    RETRY_AFTER_SECONDS: int = 5

    # CORS configuration
    CORS_ENABLED: bool = True
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @field_validator("SECRET_KEY", mode="before")
    @classmethod
    def no_hardcoded_secrets(cls, v: Any, info: Any) -> Any:
        """
        Validates that the signing key is not hardcoded or empty.

        Args:
            v (Any): The value to validate.
            info (Any): Validation info containing the field name.

        Returns:
            Any: The validated value.

        Raises:
            ValueError: If the value is empty, a placeholder, or whitespace.
        """
        if isinstance(v, SecretStr):
            v = v.get_secret_value()
        if not v or "change" in str(v).lower() or "0000" in str(v) or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .blog and not hardcoded!")
        return v

    @field_validator("MONGODB_URL", mode="before")
    @classmethod
    def no_empty_urls(cls, v: Any, info: Any) -> Any:
        """Validates that the MongoDB URL is not empty."""
        if not v or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .blog and not empty!")
        return v

    @field_validator("EXTERNAL_CALL_TIMEOUT", mode="before")
    @classmethod
    def validate_timeout_values(cls, v: Any, info: Any) -> int:
        """
        Validates that timeout values are within a reasonable range (1-300 seconds).

        Raises:
            ValueError: If the timeout is out of range.
        """
        timeout = int(v)
        if timeout < 1 or timeout > 300:
            raise ValueError(f"{info.field_name} must be between 1 and 300 seconds")
        return timeout

    @field_validator(
        "FEATURED_POSTS_LIMIT",
        "NOTIFICATION_EMIT_RETRIES",
        "TRENDING_SAMPLE_SIZE",
        "TRENDING_RETRY_SECONDS",
        mode="before",
    )
    @classmethod
    def validate_positive_integers(cls, v: Any, info: Any) -> int:
        value = int(v)
        if value <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return value

    @property
    def is_production(self) -> bool:
        """`True` when running with `DEBUG=False`."""
        return not self.DEBUG

    @property
    def cors_origins_list(self) -> List[str]:
        """Allowed CORS origins parsed from the comma-separated `CORS_ORIGINS` value."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def cloudinary_configured(self) -> bool:
        """Whether all Cloudinary credentials are present."""
        return bool(self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_API_KEY and self.CLOUDINARY_API_SECRET)


# Global settings instance
settings: Settings = Settings()
