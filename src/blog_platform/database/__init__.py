from blog_platform.database.manager import (
    AI_CHATS_COLLECTION,
    DRAFTS_COLLECTION,
    MESSAGES_COLLECTION,
    NOTIFICATIONS_COLLECTION,
    POSTS_COLLECTION,
    SUBSCRIBERS_COLLECTION,
    USERS_COLLECTION,
    DatabaseManager,
    db_manager,
)

__all__ = [
    "DatabaseManager",
    "db_manager",
    "USERS_COLLECTION",
    "POSTS_COLLECTION",
    "DRAFTS_COLLECTION",
    "NOTIFICATIONS_COLLECTION",
    "SUBSCRIBERS_COLLECTION",
    "AI_CHATS_COLLECTION",
    "MESSAGES_COLLECTION",
]
