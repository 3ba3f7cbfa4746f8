"""Notification repository - in-app notifications and delivery logs"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Notification, NotificationLog


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def list_for_user(
        db: Session, user_id: int, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.id.desc()).limit(limit).all()

    @staticmethod
    def get_for_user(db: Session, notification_id: int, user_id: int) -> Optional[Notification]:
        return (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )

    @staticmethod
    def unread_count(db: Session, user_id: int) -> int:
        return (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .count()
        )

    @staticmethod
    def create(db: Session, commit: bool = True, **data) -> Notification:
        notification = Notification(**data)
        db.add(notification)
        if commit:
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        updated = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({"is_read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
        )
        db.commit()
        return updated

    @staticmethod
    def delete(db: Session, notification: Notification) -> None:
        db.delete(notification)
        db.commit()

    @staticmethod
    def log_delivery(
        db: Session,
        notification_type: str,
        channel: str,
        status: str,
        recipient: Optional[str] = None,
        ticket_id: Optional[int] = None,
        user_id: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> NotificationLog:
        entry = NotificationLog(
            ticket_id=ticket_id,
            user_id=user_id,
            notification_type=notification_type,
            channel=channel,
            recipient=recipient,
            status=status,
            error_message=error_message,
            sent_at=datetime.utcnow(),
        )
        db.add(entry)
        db.commit()
        return entry

    @staticmethod
    def recently_sent(
        db: Session, ticket_id: int, notification_type: str, within_hours: int = 4
    ) -> bool:
        """True when this ticket already had this notification type within the window"""
        since = datetime.utcnow() - timedelta(hours=within_hours)
        return (
            db.query(NotificationLog.id)
            .filter(
                NotificationLog.ticket_id == ticket_id,
                NotificationLog.notification_type == notification_type,
                NotificationLog.sent_at >= since,
            )
            .first()
            is not None
        )
