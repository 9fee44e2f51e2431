"""
# Blog Post Models

Data structures for blog posts, drafts and reader engagement.

## Moderation States

A post moves through a closed set of states:

```
draft ──submit──▶ pending ──approve──▶ approved
                     ▲  └───reject───▶ rejected
                     └──────edit / unpublish / resubmit──────┘
```

`published_at` is set exactly when a post is `approved`. `is_published` and `likes_count`
are derived at read time and never stored.

## Content Safety

Titles and categories are stripped of all HTML and content is reduced to a safe allowlist
of formatting tags using `bleach`.

## Weak References

`Post.author` names a user by username and `Notification.blog_id` names a post by id.
Neither is joined or enforced; `WeakReference` documents the target of each.

Attributes:
    ALLOWED_CONTENT_TAGS (List[str]): HTML tags kept in post content.
    AUTHOR_REFERENCE (WeakReference): How `Post.author` names its user.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

import bleach
from pydantic import BaseModel, EmailStr, Field, field_validator

ALLOWED_CONTENT_TAGS = [
    "p", "br", "strong", "em", "b", "i", "u", "code", "pre", "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "blockquote", "a", "img", "hr", "span",
]


class PostStatus(str, Enum):
    """Enumeration of post moderation states.

    Attributes:
        DRAFT: Unsubmitted draft, visible only to its author.
        PENDING: Awaiting admin review.
        APPROVED: Publicly visible.
        REJECTED: Declined by an admin; the author may edit and resubmit.
    """

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SearchSort(str, Enum):
    """Sort orders accepted by public post search."""

    MOST_RECENT = "mostRecent"
    OLDEST = "oldest"
    MOST_VIEWED = "mostViewed"
    LEAST_VIEWED = "leastViewed"


class WeakReference(BaseModel):
    """Non-owning pointer from one document to another, resolved by lookup only."""

    kind: Literal["weak"] = "weak"
    source_field: str
    target_collection: str
    target_key: str

    def referrers(self, value: Any) -> Dict[str, Any]:
        """Query matching the documents whose `source_field` points at `value`."""
        return {self.source_field: value}


AUTHOR_REFERENCE = WeakReference(source_field="author", target_collection="users", target_key="username")


def _strip_all_tags(value: str) -> str:
    return bleach.clean(value, tags=[], strip=True).strip()


def _clean_content(value: str) -> str:
    return bleach.clean(value, tags=ALLOWED_CONTENT_TAGS, strip=True).strip()


class PostContent(BaseModel):
    """
    Author-supplied post fields used by create, draft and edit operations.

    **Sanitization:**
    *   **title**, **category**: All HTML tags are stripped.
    *   **content**: Only formatting tags from `ALLOWED_CONTENT_TAGS` survive.

    Every field must be non-empty after sanitization.
    """

    title: str = Field(..., max_length=200, description="Post title")
    content: str = Field(..., description="Post body")
    category: str = Field(..., max_length=100, description="Post category")

    @field_validator("title", "category")
    @classmethod
    def validate_plain_text(cls, v):
        cleaned = _strip_all_tags(v)
        if not cleaned:
            raise ValueError("must not be empty")
        return cleaned

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        cleaned = _clean_content(v)
        if not cleaned:
            raise ValueError("must not be empty")
        return cleaned


class PostContentUpdate(BaseModel):
    """Partial edit of a post or draft. Omitted fields are left unchanged."""

    title: Optional[str] = Field(None, max_length=200)
    content: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)

    @field_validator("title", "category")
    @classmethod
    def validate_plain_text(cls, v):
        if v is None:
            return v
        cleaned = _strip_all_tags(v)
        if not cleaned:
            raise ValueError("must not be empty")
        return cleaned

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        if v is None:
            return v
        cleaned = _clean_content(v)
        if not cleaned:
            raise ValueError("must not be empty")
        return cleaned

    def changes(self) -> Dict[str, str]:
        return self.model_dump(exclude_none=True)


class StatusUpdateRequest(BaseModel):
    """Admin request moving a post to a new moderation state."""

    status: PostStatus = Field(..., description="Target moderation state")


class FeatureRequest(BaseModel):
    is_featured: bool = Field(..., description="Whether the post is manually featured")


class LikeRequest(BaseModel):
    """The liker's identity. Likes are keyed by email address."""

    email: EmailStr


class CommentRequest(BaseModel):
    user: str = Field("", description="Display name of the commenter")
    text: str = Field("", description="Comment body")

    @field_validator("user", "text")
    @classmethod
    def sanitize(cls, v):
        return _strip_all_tags(v or "")


class CommentResponse(BaseModel):
    user: str
    text: str
    created_at: Optional[datetime] = None


class PostResponse(BaseModel):
    """Post as returned to clients. `likes_count` and `is_published` are derived."""

    id: str
    title: str
    content: str
    category: str
    author: str
    image: Optional[str] = None
    status: PostStatus
    is_published: bool
    views: int = 0
    likes_count: int = 0
    liked_users: List[str] = []
    comments: List[CommentResponse] = []
    total_comments: int = 0
    is_featured: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "PostResponse":
        liked_users = list(doc.get("liked_users") or [])
        comments = list(doc.get("comments") or [])
        status = PostStatus(doc["status"])
        return cls(
            id=str(doc["_id"]),
            title=doc.get("title", ""),
            content=doc.get("content", ""),
            category=doc.get("category", ""),
            author=doc.get("author", ""),
            image=doc.get("image"),
            status=status,
            is_published=status == PostStatus.APPROVED,
            views=doc.get("views", 0),
            likes_count=len(liked_users),
            liked_users=liked_users,
            comments=[CommentResponse(**comment) for comment in comments],
            total_comments=len(comments),
            is_featured=doc.get("is_featured", False),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
            published_at=doc.get("published_at"),
        )


class DraftResponse(BaseModel):
    id: str
    title: str
    content: str
    category: str
    author: str
    images: List[str] = []
    is_draft: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "DraftResponse":
        return cls(
            id=str(doc["_id"]),
            title=doc.get("title", ""),
            content=doc.get("content", ""),
            category=doc.get("category", ""),
            author=doc.get("author", ""),
            images=list(doc.get("images") or []),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


class CommentsResponse(BaseModel):
    comments: List[CommentResponse]
    total_comments: int


class LikeResponse(BaseModel):
    liked: bool
    likes_count: int


class ViewResponse(BaseModel):
    views: int


class CountResponse(BaseModel):
    count: int


class LatestBlogsResponse(BaseModel):
    categories: List[str]
    blogs: List[PostResponse]


class AckResponse(BaseModel):
    """Plain acknowledgement body."""

    message: str
