"""
# Blogger Routes

Authoring and moderation endpoints: creating and editing posts, the admin review queue, and
drafts.

## Moderation Flow

```
POST /blogger/create ─────────────▶ pending ──PUT /update-status──▶ approved | rejected
POST /blogger/drafts/{id}/submit ─▶ pending
PUT  /blogger/update/posts/{id} (approved/rejected) ─▶ pending
```

Every transition into `pending` records one admin notification.

## API Endpoints

### Posts
- `POST /blogger/create` - Submit a new post for review (multipart, optional `image`)
- `PUT /blogger/update/posts/{id}` - Owner edit, re-enters review
- `PUT /blogger/admin/update/posts/{id}` - Admin content correction
- `PUT /blogger/update-status/{id}` - Admin moderation decision
- `DELETE /blogger/delete/posts/{id}` / `DELETE /blogger/admin/posts/{id}`

### Listings
- `GET /blogger/published-blogs[/{id}]` - Approved posts
- `GET /blogger/unpublished-blogs[/{id}]`, `GET /blogger/unpublished-count` - Review queue (admin)
- `GET /blogger/posts-by-user`, `GET /blogger/posts/{id}`, `GET /blogger/search` - Caller's own posts
- `GET /blogger/admin/posts/{id}`, `GET /blogger/search-admin` - Any post (admin)

### Drafts
- `POST /blogger/create-draft`, `GET /blogger/drafts`, `GET|PUT /blogger/drafts/{id}`
- `DELETE /blogger/delete-drafts/{id}`, `POST /blogger/drafts/{id}/submit`, `GET /blogger/draft-count`

Attributes:
    router (APIRouter): FastAPI router with `/blogger` prefix
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from blog_platform.managers.logging_manager import get_logger
from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.blog_models import (
    AckResponse,
    CountResponse,
    DraftResponse,
    PostContent,
    PostContentUpdate,
    PostResponse,
    StatusUpdateRequest,
)
from blog_platform.routes.auth.dependencies import get_current_user, require_admin
from blog_platform.services.draft_service import draft_service
from blog_platform.services.moderation_workflow import moderation_workflow
from blog_platform.services.post_queries import post_queries
from blog_platform.utils.uploads import read_upload, read_uploads

logger = get_logger(prefix="[Blogger Routes]")

router = APIRouter(prefix="/blogger", tags=["blogger"])


# Post authoring

@router.post("/create", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    title: str = Form(...),
    content: str = Form(...),
    category: str = Form(...),
    image: Optional[UploadFile] = File(None),
    current_user: IdentityClaim = Depends(get_current_user),
):
    """
    Submit a new post for review.

    **Process:**
    1.  Sanitizes title, content and category.
    2.  Uploads the optional image to the media host.
    3.  Stores the post as `pending` and notifies admins.

    Returns:
        PostResponse: The new post, `status="pending"` and `published_at=null`.

    Raises:
        ValidationError(422): Empty or invalid fields, or a non-image upload.
        StoreError(500): The review notification could not be stored; nothing was created.
    """
    post_content = PostContent(title=title, content=content, category=category)
    post = await moderation_workflow.create(post_content, current_user, image=await read_upload(image))
    return PostResponse.from_document(post)


@router.put("/update/posts/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: str,
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: IdentityClaim = Depends(get_current_user),
):
    """
    Edit one of the caller's own posts.

    An `approved` or `rejected` post goes back to `pending` for review; a `pending` post
    stays pending.
    """
    changes = PostContentUpdate(title=title, content=content, category=category)
    post = await moderation_workflow.update(post_id, changes, current_user, image=await read_upload(image))
    return PostResponse.from_document(post)


@router.put("/admin/update/posts/{post_id}", response_model=PostResponse)
async def admin_update_post(
    post_id: str,
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: IdentityClaim = Depends(require_admin),
):
    changes = PostContentUpdate(title=title, content=content, category=category)
    post = await moderation_workflow.admin_update(post_id, changes, current_user, image=await read_upload(image))
    return PostResponse.from_document(post)


@router.put("/update-status/{post_id}", response_model=PostResponse)
async def update_status(
    post_id: str,
    request: StatusUpdateRequest,
    current_user: IdentityClaim = Depends(require_admin),
):
    """
    Apply a moderation decision.

    Allowed: `pending -> approved|rejected`, `approved -> pending` (unpublish) and
    `rejected -> pending`. Approving sets `published_at`; every other target clears it.

    Raises:
        AuthorizationError(403): Caller is not an admin.
        NotFoundError(404): Unknown post.
        ValidationError(422): Illegal transition or unknown status.
    """
    post = await moderation_workflow.set_status(post_id, request.status, current_user)
    return PostResponse.from_document(post)


@router.delete("/delete/posts/{post_id}", response_model=AckResponse)
async def delete_post(post_id: str, current_user: IdentityClaim = Depends(get_current_user)):
    await moderation_workflow.delete(post_id, current_user)
    return AckResponse(message="Post deleted successfully")


@router.delete("/admin/posts/{post_id}", response_model=AckResponse)
async def admin_delete_post(post_id: str, current_user: IdentityClaim = Depends(require_admin)):
    await moderation_workflow.admin_delete(post_id, current_user)
    return AckResponse(message="Post deleted successfully")


# Listings

@router.get("/published-blogs", response_model=List[PostResponse])
async def published_blogs():
    posts = await post_queries.list_published()
    return [PostResponse.from_document(post) for post in posts]


@router.get("/published-blogs/{post_id}", response_model=PostResponse)
async def published_blog(post_id: str):
    post = await post_queries.get_published(post_id)
    return PostResponse.from_document(post)


@router.get("/unpublished-blogs", response_model=List[PostResponse])
async def unpublished_blogs(current_user: IdentityClaim = Depends(require_admin)):
    posts = await post_queries.list_pending(current_user)
    return [PostResponse.from_document(post) for post in posts]


@router.get("/unpublished-blogs/{post_id}", response_model=PostResponse)
async def unpublished_blog(post_id: str, current_user: IdentityClaim = Depends(require_admin)):
    post = await post_queries.get_pending(post_id, current_user)
    return PostResponse.from_document(post)


@router.get("/unpublished-count", response_model=CountResponse)
async def unpublished_count(current_user: IdentityClaim = Depends(require_admin)):
    return CountResponse(count=await post_queries.count_pending(current_user))


@router.get("/posts-by-user", response_model=List[PostResponse])
async def posts_by_user(current_user: IdentityClaim = Depends(get_current_user)):
    posts = await post_queries.list_by_user(current_user)
    return [PostResponse.from_document(post) for post in posts]


@router.get("/posts/{post_id}", response_model=PostResponse)
async def own_post(post_id: str, current_user: IdentityClaim = Depends(get_current_user)):
    post = await post_queries.get_for_owner(post_id, current_user)
    return PostResponse.from_document(post)


@router.get("/admin/posts/{post_id}", response_model=PostResponse)
async def admin_post(post_id: str, current_user: IdentityClaim = Depends(require_admin)):
    post = await post_queries.get_for_admin(post_id, current_user)
    return PostResponse.from_document(post)


@router.get("/search", response_model=List[PostResponse])
async def search_own_posts(
    q: str = Query(..., min_length=1, description="Title fragment"),
    current_user: IdentityClaim = Depends(get_current_user),
):
    posts = await post_queries.search_own(q, current_user)
    return [PostResponse.from_document(post) for post in posts]


@router.get("/search-admin", response_model=List[PostResponse])
async def search_all_posts(
    q: str = Query(..., min_length=1, description="Title fragment"),
    current_user: IdentityClaim = Depends(require_admin),
):
    posts = await post_queries.search_all(q, current_user)
    return [PostResponse.from_document(post) for post in posts]


# Drafts

@router.post("/create-draft", response_model=DraftResponse, status_code=status.HTTP_201_CREATED)
async def create_draft(
    title: str = Form(...),
    content: str = Form(...),
    category: str = Form(...),
    images: Optional[List[UploadFile]] = File(None),
    current_user: IdentityClaim = Depends(get_current_user),
):
    draft_content = PostContent(title=title, content=content, category=category)
    draft = await draft_service.create_draft(draft_content, current_user, images=await read_uploads(images))
    return DraftResponse.from_document(draft)


@router.get("/drafts", response_model=List[DraftResponse])
async def list_drafts(current_user: IdentityClaim = Depends(get_current_user)):
    drafts = await draft_service.list_drafts(current_user)
    return [DraftResponse.from_document(draft) for draft in drafts]


@router.get("/draft-count", response_model=CountResponse)
async def draft_count(current_user: IdentityClaim = Depends(get_current_user)):
    return CountResponse(count=await draft_service.count_drafts(current_user))


@router.get("/drafts/{draft_id}", response_model=DraftResponse)
async def get_draft(draft_id: str, current_user: IdentityClaim = Depends(get_current_user)):
    draft = await draft_service.get_draft(draft_id, current_user)
    return DraftResponse.from_document(draft)


@router.put("/drafts/{draft_id}", response_model=DraftResponse)
async def update_draft(
    draft_id: str,
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    current_user: IdentityClaim = Depends(get_current_user),
):
    changes = PostContentUpdate(title=title, content=content, category=category)
    draft = await draft_service.update_draft(draft_id, changes, current_user, images=await read_uploads(images))
    return DraftResponse.from_document(draft)


@router.delete("/delete-drafts/{draft_id}", response_model=AckResponse)
async def delete_draft(draft_id: str, current_user: IdentityClaim = Depends(get_current_user)):
    await draft_service.delete_draft(draft_id, current_user)
    return AckResponse(message="Draft deleted successfully")


@router.post("/drafts/{draft_id}/submit", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def submit_draft(draft_id: str, current_user: IdentityClaim = Depends(get_current_user)):
    """Promote a draft to a pending post. Submitting the same draft twice returns the same post."""
    post = await draft_service.submit_draft(draft_id, current_user)
    logger.info("Draft %s submitted as post %s", draft_id, post["_id"])
    return PostResponse.from_document(post)
