"""
Notifications API Router
File: app/api/api_v1/notifications/notifications.py
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.models.notification import Notification
from app.models.user import User
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "type": notification.notification_type,
        "title": notification.title,
        "message": notification.message,
        "link": notification.link,
        "is_read": notification.is_read,
        "read_at": notification.read_at,
        "created_at": notification.created_at,
    }


@router.get("")
async def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Newest first"""
    notifications = NotificationService.list_for_user(db, current_user.id, limit=limit)
    return {
        "success": True,
        "notifications": [serialize_notification(n) for n in notifications],
        "unread_count": NotificationService.unread_count(db, current_user.id)
    }


@router.get("/unread-count")
async def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"success": True, "count": NotificationService.unread_count(db, current_user.id)}


@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notification = NotificationService.mark_as_read(db, notification_id, current_user.id)
    return {"success": True, "notification": serialize_notification(notification)}


@router.put("/read-all")
async def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    updated = NotificationService.mark_all_as_read(db, current_user.id)
    return {"success": True, "message": f"{updated} notification(s) marked as read", "updated": updated}
