"""Notification service - in-app notification inbox and delivery preferences"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Notification, User
from .formatting import merge_preferences
from .repository import NotificationRepository
from .schemas import NotificationPreferencesUpdate

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationRepository()

    def list_notifications(self, user: User, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        return self.repo.list_for_user(self.db, user.id, unread_only, min(limit, 200))

    def unread_count(self, user: User) -> int:
        return self.repo.unread_count(self.db, user.id)

    def get_notification(self, notification_id: int, user: User) -> Notification:
        notification = self.repo.get_for_user(self.db, notification_id, user.id)
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        return notification

    def mark_read(self, notification_id: int, user: User) -> Notification:
        notification = self.get_notification(notification_id, user)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_read(self, user: User) -> dict:
        updated = self.repo.mark_all_read(self.db, user.id)
        return {"updated": updated}

    def delete_notification(self, notification_id: int, user: User) -> dict:
        notification = self.get_notification(notification_id, user)
        self.repo.delete(self.db, notification)
        return {"message": "Notification deleted"}

    def get_preferences(self, user: User) -> dict:
        return merge_preferences(user.notification_preferences)

    def update_preferences(self, user: User, data: NotificationPreferencesUpdate) -> dict:
        updates = data.model_dump(exclude_unset=True)
        slack_url = updates.get("slack_webhook_url")
        if slack_url and not slack_url.startswith("https://hooks.slack.com/"):
            raise HTTPException(status_code=400, detail="Slack webhook must be a hooks.slack.com URL")

        preferences = dict(user.notification_preferences or {})
        preferences.update(updates)
        # Reassign so SQLAlchemy detects the JSON change
        user.notification_preferences = preferences
        self.db.commit()
        logger.info(f"🔄 Notification preferences updated for user {user.id}")
        return merge_preferences(preferences)
