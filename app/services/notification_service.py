# =====================================================
# FILE: app/services/notification_service.py
# In-app notifications
# =====================================================

from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime
from typing import Iterable, List, Optional
import logging

from app.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationTypes:
    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
    CONTRACT_APPROVED = "CONTRACT_APPROVED"
    CONTRACT_REJECTED = "CONTRACT_REJECTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    ESCALATION = "ESCALATION"
    CONTRACT_SIGNED = "CONTRACT_SIGNED"
    CONTRACT_EXPIRING = "CONTRACT_EXPIRING"


class NotificationService:
    """Rows are added to the caller's session; the caller commits"""

    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        notification_type: str,
        title: str,
        message: Optional[str] = None,
        link: Optional[str] = None
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            link=link,
            is_read=False
        )
        db.add(notification)
        return notification

    @staticmethod
    def notify_users(
        db: Session,
        user_ids: Iterable[int],
        notification_type: str,
        title: str,
        message: Optional[str] = None,
        link: Optional[str] = None
    ) -> int:
        count = 0
        for user_id in set(user_ids):
            NotificationService.create_notification(db, user_id, notification_type, title, message, link)
            count += 1
        logger.info(f"Queued {count} '{notification_type}' notification(s)")
        return count

    @staticmethod
    def list_for_user(db: Session, user_id: int, limit: int = 50) -> List[Notification]:
        return (
            db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def unread_count(db: Session, user_id: int) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).count()

    @staticmethod
    def mark_as_read(db: Session, notification_id: int, user_id: int) -> Notification:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()

        if not notification:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Notification not found"
            )

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            db.commit()
        return notification

    @staticmethod
    def mark_all_as_read(db: Session, user_id: int) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).update(
            {Notification.is_read: True, Notification.read_at: datetime.utcnow()},
            synchronize_session=False
        )
        db.commit()
        return updated
