"""
# Database Manager

MongoDB connection management for the Blog Platform API, built on **Motor**
(`AsyncIOMotorClient`). A single `DatabaseManager` instance (`db_manager`) owns the
client, hands out collections, creates the indexes the application relies on and
provides query logging helpers with sensitive-field redaction.

## Collections

| Collection | Purpose | Key indexes |
|------------|---------|-------------|
| `users` | Credentials and profiles | unique `username` |
| `blog_posts` | Posts and moderation state | `(status, published_at)`, `category`, `author` |
| `drafts` | Unsubmitted drafts | `author` |
| `notifications` | Moderation events for admins | `(read, created_at)`, `blog_id` |
| `subscribers` | Newsletter subscribers | unique `email` |
| `ai_chats` | AI chat sessions | `(user_id, created_at)` |
| `messages` | Messaging feed | `timestamp` |

Uniqueness guarantees (`users.username`, `subscribers.email`) are enforced by these
indexes rather than by read-then-write checks, so index creation for them is **required**:
failure to create one aborts startup.

## Timeouts

Every store call is bounded by the driver: `serverSelectionTimeoutMS`, `connectTimeoutMS`
and the client-side operation budget `timeoutMS` all come from `settings`.

Example:
    ```python
    from blog_platform.database import db_manager

    posts = db_manager.get_collection("blog_posts")
    post = await posts.find_one({"status": "approved"})
    ```
"""

import asyncio
import time
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from blog_platform.config import settings
from blog_platform.managers.logging_manager import get_logger

db_logger = get_logger(prefix="[DATABASE]")
perf_logger = get_logger(prefix="[DB_PERFORMANCE]")
health_logger = get_logger(prefix="[DB_HEALTH]")

USERS_COLLECTION = "users"
POSTS_COLLECTION = "blog_posts"
DRAFTS_COLLECTION = "drafts"
NOTIFICATIONS_COLLECTION = "notifications"
SUBSCRIBERS_COLLECTION = "subscribers"
AI_CHATS_COLLECTION = "ai_chats"
MESSAGES_COLLECTION = "messages"


class DatabaseManager:
    """
    Manages the MongoDB client, collections and indexes.

    **Lifecycle:**
    1. **Instantiation**: `client=None`, `database=None`
    2. **Connection**: `connect()` with exponential backoff retry
    3. **Operations**: `get_collection()` for queries
    4. **Shutdown**: `disconnect()`

    Attributes:
        client (`Optional[AsyncIOMotorClient]`): The Motor client, `None` until connected.
        database (`Optional[AsyncIOMotorDatabase]`): The selected database.
    """

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_retries = 3

    def _connection_string(self) -> str:
        if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD:
            password = settings.MONGODB_PASSWORD.get_secret_value()
            db_logger.debug("Using authenticated connection to MongoDB")
            return (
                f"mongodb://{settings.MONGODB_USERNAME}:"
                f"{password}@"
                f"{settings.MONGODB_URL.replace('mongodb://', '')}"
            )
        db_logger.debug("Using unauthenticated connection to MongoDB")
        return settings.MONGODB_URL

    async def connect(self):
        """
        Establish the MongoDB connection with exponential backoff retry logic.

        Up to 3 attempts are made with delays of 1s and 2s between them.

        Raises:
            ServerSelectionTimeoutError: If MongoDB is unreachable after all attempts.
            ConnectionFailure: If authentication fails or the connection is refused.
        """
        start_time = time.time()
        db_logger.info("Starting MongoDB connection process")

        for attempt in range(self._connection_retries):
            attempt_start = time.time()
            try:
                db_logger.info("Connection attempt %d/%d to MongoDB", attempt + 1, self._connection_retries)
                db_logger.info(
                    "MongoDB connection config - Database: %s, ServerTimeout: %dms, ConnTimeout: %dms, OpTimeout: %dms",
                    settings.MONGODB_DATABASE,
                    settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    settings.MONGODB_CONNECTION_TIMEOUT,
                    settings.MONGODB_OPERATION_TIMEOUT,
                )

                self.client = AsyncIOMotorClient(
                    self._connection_string(),
                    serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    connectTimeoutMS=settings.MONGODB_CONNECTION_TIMEOUT,
                    timeoutMS=settings.MONGODB_OPERATION_TIMEOUT,
                    maxPoolSize=50,
                    minPoolSize=5,
                )
                self.database = self.client[settings.MONGODB_DATABASE]

                ping_start = time.time()
                await self.client.admin.command("ping")
                ping_duration = time.time() - ping_start

                total_duration = time.time() - start_time
                perf_logger.info(
                    "MongoDB connection established successfully in %.3fs (ping: %.3fs)", total_duration, ping_duration
                )
                db_logger.info("Successfully connected to MongoDB database: %s", settings.MONGODB_DATABASE)
                return

            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                attempt_duration = time.time() - attempt_start
                perf_logger.warning("Connection attempt %d failed after %.3fs", attempt + 1, attempt_duration)
                db_logger.warning(
                    "Failed to connect to MongoDB (attempt %d/%d): %s", attempt + 1, self._connection_retries, e
                )
                if attempt == self._connection_retries - 1:
                    db_logger.error("All connection attempts failed after %.3fs", time.time() - start_time)
                    raise

                backoff_time = 2**attempt
                db_logger.info("Waiting %.1fs before retry (exponential backoff)", backoff_time)
                await asyncio.sleep(backoff_time)

    async def disconnect(self):
        """Close the client and release every pooled connection."""
        start_time = time.time()
        db_logger.info("Starting MongoDB disconnection process")

        if self.client is None:
            db_logger.warning("Disconnect called but no active MongoDB connection found")
            return

        self.client.close()
        self.client = None
        self.database = None
        perf_logger.info("MongoDB disconnection completed in %.3fs", time.time() - start_time)
        db_logger.info("Successfully disconnected from MongoDB")

    async def health_check(self) -> bool:
        """
        Verify MongoDB connectivity with a `ping`.

        Returns:
            bool: `True` if the database responds, `False` otherwise. Never raises.
        """
        start_time = time.time()
        try:
            if self.client is None:
                health_logger.warning("Health check failed: No database client available")
                return False

            await self.client.admin.command("ping")
            perf_logger.debug("Database health check completed in %.3fs", time.time() - start_time)
            return True

        except (ServerSelectionTimeoutError, ConnectionFailure) as e:
            perf_logger.warning("Database health check failed after %.3fs", time.time() - start_time)
            health_logger.error("Database health check failed: %s", e)
            return False
        except Exception as e:
            health_logger.error("Unexpected error during health check: %s", e)
            return False

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Retrieve a collection from the connected database.

        Args:
            collection_name (str): Name of the collection.

        Returns:
            AsyncIOMotorCollection: The Motor collection.

        Raises:
            ConnectionError: If `connect()` has not been called.
        """
        if self.database is None:
            db_logger.error("Attempted to get collection '%s' without database connection", collection_name)
            raise ConnectionError("Database not connected. Call connect() first.")

        return self.database[collection_name]

    async def create_indexes(self):
        """Create the indexes the application depends on."""
        start_time = time.time()
        db_logger.info("Starting database index creation process")

        # Uniqueness is enforced by the store
        users = self.get_collection(USERS_COLLECTION)
        await self._create_index_if_not_exists(users, "username", {"unique": True}, required=True)

        subscribers = self.get_collection(SUBSCRIBERS_COLLECTION)
        await self._create_index_if_not_exists(subscribers, "email", {"unique": True}, required=True)

        posts = self.get_collection(POSTS_COLLECTION)
        await self._create_index_if_not_exists(posts, [("status", ASCENDING), ("published_at", DESCENDING)], {})
        await self._create_index_if_not_exists(posts, "category", {})
        await self._create_index_if_not_exists(posts, "author", {})
        await self._create_index_if_not_exists(posts, "is_featured", {})
        await self._create_index_if_not_exists(posts, "source_draft_id", {"unique": True, "sparse": True}, required=True)

        drafts = self.get_collection(DRAFTS_COLLECTION)
        await self._create_index_if_not_exists(drafts, "author", {})

        notifications = self.get_collection(NOTIFICATIONS_COLLECTION)
        await self._create_index_if_not_exists(notifications, [("read", ASCENDING), ("created_at", DESCENDING)], {})
        await self._create_index_if_not_exists(notifications, "blog_id", {})

        chats = self.get_collection(AI_CHATS_COLLECTION)
        await self._create_index_if_not_exists(chats, [("user_id", ASCENDING), ("created_at", DESCENDING)], {})

        messages = self.get_collection(MESSAGES_COLLECTION)
        await self._create_index_if_not_exists(messages, "timestamp", {})

        perf_logger.info("Database index creation completed successfully in %.3fs", time.time() - start_time)
        db_logger.info("Database indexes created successfully")

    async def _create_index_if_not_exists(
        self, collection: AsyncIOMotorCollection, field_spec: Any, options: Dict[str, Any], required: bool = False
    ):
        """Create an index if it doesn't already exist. Failures of required indexes propagate."""
        start_time = time.time()
        try:
            await collection.create_index(field_spec, **options)
            perf_logger.debug("Created/ensured index '%s' in %.3fs", field_spec, time.time() - start_time)
        except Exception as e:
            if required:
                db_logger.error("Could not create required index '%s' on '%s': %s", field_spec, collection.name, e)
                raise
            db_logger.warning("Could not create/ensure index '%s': %s", field_spec, e)

    # Database operation logging utilities
    def log_query_start(self, collection_name: str, operation: str, query: Optional[Dict] = None) -> float:
        """Log the start of a database query and return start time for performance tracking"""
        start_time = time.time()
        safe_query = self._sanitize_query_for_logging(query) if query else {}
        db_logger.debug("Starting %s operation on collection '%s' - Query: %s", operation, collection_name, safe_query)
        return start_time

    def log_query_success(
        self, collection_name: str, operation: str, start_time: float, result_count: Optional[int] = None
    ):
        """Log successful completion of a database query with performance metrics"""
        duration = time.time() - start_time
        if result_count is not None:
            perf_logger.info(
                "%s on '%s' completed successfully in %.3fs - %d records",
                operation,
                collection_name,
                duration,
                result_count,
            )
        else:
            perf_logger.info("%s on '%s' completed successfully in %.3fs", operation, collection_name, duration)

    def log_query_error(
        self, collection_name: str, operation: str, start_time: float, error: Exception, query: Optional[Dict] = None
    ):
        """Log database query errors with context and performance metrics"""
        duration = time.time() - start_time
        safe_query = self._sanitize_query_for_logging(query) if query else {}
        perf_logger.error("%s on '%s' failed after %.3fs", operation, collection_name, duration)
        db_logger.error(
            "%s operation failed on collection '%s' after %.3fs - Error: %s, Query: %s",
            operation,
            collection_name,
            duration,
            error,
            safe_query,
        )

    def _sanitize_query_for_logging(self, query: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize database queries for safe logging by removing sensitive data"""
        if not isinstance(query, dict):
            return {}

        sensitive_fields = {
            "password",
            "hashed_password",
            "token",
            "secret",
            "verification_token",
            "email",
        }

        sanitized: Dict[str, Any] = {}
        for key, value in query.items():
            if any(sensitive_field in key.lower() for sensitive_field in sensitive_fields):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_query_for_logging(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    self._sanitize_query_for_logging(item) if isinstance(item, dict) else item for item in value
                ]
            else:
                sanitized[key] = value

        return sanitized


db_manager = DatabaseManager()
