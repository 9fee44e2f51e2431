"""
# Notification Routes

The admin moderation feed. Every post entering review produces one notification.

Attributes:
    router (APIRouter): FastAPI router with `/notification` prefix
"""

from typing import List

from fastapi import APIRouter, Depends

from blog_platform.models.auth_models import IdentityClaim
from blog_platform.models.blog_models import AckResponse
from blog_platform.models.notification_models import NotificationResponse
from blog_platform.routes.auth.dependencies import require_admin
from blog_platform.services.notification_service import notification_service

router = APIRouter(prefix="/notification", tags=["notification"])


@router.get("/notifications", response_model=List[NotificationResponse])
async def list_notifications(current_user: IdentityClaim = Depends(require_admin)):
    """Unread notifications, newest first."""
    notifications = await notification_service.list_unread()
    return [NotificationResponse.from_document(doc) for doc in notifications]


@router.put("/read-notifications/{post_id}", response_model=AckResponse)
async def mark_read(post_id: str, current_user: IdentityClaim = Depends(require_admin)):
    """Mark every notification about `post_id` as read."""
    updated = await notification_service.mark_read_for_post(post_id)
    return AckResponse(message=f"{updated} notification(s) marked as read")


@router.delete("/delete-notifications/{notification_id}", response_model=AckResponse)
async def delete_notification(notification_id: str, current_user: IdentityClaim = Depends(require_admin)):
    await notification_service.delete(notification_id)
    return AckResponse(message="Notification deleted")
