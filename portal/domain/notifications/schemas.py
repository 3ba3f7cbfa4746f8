"""Notification domain schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: Optional[str] = None
    link: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    unread_count: int


class NotificationPreferencesUpdate(BaseModel):
    """Partial update; omitted keys keep their stored value"""

    email: Optional[bool] = None
    sms: Optional[bool] = None
    slack: Optional[bool] = None
    whatsapp: Optional[bool] = None
    in_app: Optional[bool] = None
    sms_number: Optional[str] = Field(None, max_length=32)
    whatsapp_number: Optional[str] = Field(None, max_length=32)
    slack_webhook_url: Optional[str] = Field(None, max_length=500)
    notify_on_ticket_created: Optional[bool] = None
    notify_on_ticket_updated: Optional[bool] = None
    notify_on_ticket_comment: Optional[bool] = None
    notify_on_ticket_assigned: Optional[bool] = None
    notify_on_ticket_resolved: Optional[bool] = None
    notify_on_ticket_closed: Optional[bool] = None
    notify_on_sla_warning: Optional[bool] = None
    notify_on_sla_breach: Optional[bool] = None
