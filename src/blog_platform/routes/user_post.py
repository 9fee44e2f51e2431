"""
# Reader Routes

Public endpoints for readers: browsing and searching approved posts, engagement (views,
likes, comments), the featured and trending listings, and newsletter subscription.

Only `approved` posts are ever visible here. Views and comments need no identity; likes are
keyed by the liker's email address.

Attributes:
    router (APIRouter): FastAPI router with `/userPost` prefix
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.blog_models import (
    CommentRequest,
    CommentResponse,
    CommentsResponse,
    FeatureRequest,
    LatestBlogsResponse,
    LikeRequest,
    LikeResponse,
    PostResponse,
    SearchSort,
    ViewResponse,
)
from blog_platform.models.subscriber_models import SubscribeRequest, VerifyResponse
from blog_platform.routes.auth.dependencies import require_admin
from blog_platform.services.engagement_service import engagement_service
from blog_platform.services.post_queries import post_queries
from blog_platform.services.subscriber_service import subscriber_service
from blog_platform.services.trending_cache import trending_cache

logger = get_logger(prefix="[Reader Routes]")

router = APIRouter(prefix="/userPost", tags=["reader"])


def _comments(comments: List[dict]) -> CommentsResponse:
    return CommentsResponse(
        comments=[CommentResponse(**comment) for comment in comments], total_comments=len(comments)
    )


@router.get("/latest-blogs", response_model=LatestBlogsResponse)
async def latest_blogs(limit: Optional[int] = Query(None, ge=1, le=50)):
    """
    Newest approved posts from the currently trending categories.

    The trending sample is re-drawn every two hours; `categories` reports the sample used.
    """
    result = await trending_cache.latest_blogs(limit)
    return LatestBlogsResponse(
        categories=result["categories"], blogs=[PostResponse.from_document(post) for post in result["blogs"]]
    )


@router.get("/featured-posts", response_model=List[PostResponse])
async def featured_posts():
    """
    Manually featured posts first, then the most popular approved posts.

    Popularity is `views * 0.5 + likes + comments * 2`.
    """
    posts = await engagement_service.featured_posts()
    return [PostResponse.from_document(post) for post in posts]


@router.put("/posts/{post_id}/feature", response_model=PostResponse)
async def set_featured(
    post_id: str, request: FeatureRequest, current_user: IdentityClaim = Depends(require_admin)
):
    post = await engagement_service.set_featured(post_id, request.is_featured, current_user)
    return PostResponse.from_document(post)


@router.post("/posts/{post_id}/like", response_model=LikeResponse)
async def toggle_like(post_id: str, request: LikeRequest):
    """Like the post, or remove the like if this email already liked it."""
    result = await engagement_service.toggle_like(post_id, str(request.email))
    return LikeResponse(**result)


@router.post("/posts/{post_id}/view", response_model=ViewResponse)
async def record_view(post_id: str):
    return ViewResponse(views=await engagement_service.record_view(post_id))


@router.post("/posts/{post_id}/comment", response_model=CommentsResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(post_id: str, request: CommentRequest):
    """
    Append a comment. Both `user` and `text` are required after trimming.

    Returns:
        CommentsResponse: Every comment on the post, oldest first.
    """
    comments = await engagement_service.add_comment(post_id, request.user, request.text)
    return _comments(comments)


@router.get("/posts/{post_id}/comments", response_model=CommentsResponse)
async def get_comments(post_id: str):
    return _comments(await engagement_service.get_comments(post_id))


@router.get("/posts/{post_id}", response_model=PostResponse)
async def get_post(post_id: str):
    post = await post_queries.get_published(post_id)
    return PostResponse.from_document(post)


@router.get("/category", response_model=List[PostResponse])
async def posts_by_category(category: str = Query(..., min_length=1)):
    posts = await post_queries.list_by_category(category)
    return [PostResponse.from_document(post) for post in posts]


@router.get("/search", response_model=List[PostResponse])
async def search_posts(
    q: Optional[str] = Query(None, description="Matched against title and content"),
    category: Optional[str] = Query(None),
    sort: SearchSort = Query(SearchSort.MOST_RECENT),
):
    posts = await post_queries.search_published(q, category, sort)
    return [PostResponse.from_document(post) for post in posts]


@router.post("/subscribe", response_model=VerifyResponse, status_code=status.HTTP_201_CREATED)
async def subscribe(request: SubscribeRequest):
    """Subscribe an email address and send it a verification link."""
    subscriber = await subscriber_service.subscribe(str(request.email))
    return VerifyResponse(message="Verification email sent", email=subscriber["email"])


@router.get("/verify", response_model=VerifyResponse)
async def verify(token: str = Query(..., min_length=1), email: str = Query(..., min_length=3)):
    subscriber = await subscriber_service.verify(token, email)
    return VerifyResponse(message="Email verified successfully", email=subscriber["email"])
