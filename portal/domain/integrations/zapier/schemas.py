"""Zapier webhook schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .webhooks import WEBHOOK_EVENTS


def _validate_events(events: list[str]) -> list[str]:
    unknown = [e for e in events if e not in WEBHOOK_EVENTS]
    if unknown:
        raise ValueError(f"Unknown events: {', '.join(unknown)}")
    return events


def _validate_url(url: str) -> str:
    if not url.startswith("https://"):
        raise ValueError("Webhook URL must use https")
    return url


class WebhookCreate(BaseModel):
    organization_id: Optional[int] = None
    name: Optional[str] = Field(None, max_length=255)
    url: str = Field(..., max_length=1000)
    events: list[str] = Field(..., min_length=1)
    filters: Optional[dict[str, Any]] = None

    @field_validator("url")
    @classmethod
    def check_url(cls, v):
        return _validate_url(v)

    @field_validator("events")
    @classmethod
    def check_events(cls, v):
        return _validate_events(v)


class WebhookUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    url: Optional[str] = Field(None, max_length=1000)
    events: Optional[list[str]] = None
    filters: Optional[dict[str, Any]] = None
    is_active: Optional[bool] = None

    @field_validator("url")
    @classmethod
    def check_url(cls, v):
        return _validate_url(v) if v is not None else v

    @field_validator("events")
    @classmethod
    def check_events(cls, v):
        return _validate_events(v) if v is not None else v


class WebhookResponse(BaseModel):
    id: int
    organization_id: int
    name: Optional[str] = None
    url: str
    events: list[str]
    filters: Optional[dict[str, Any]] = None
    is_active: bool
    failure_count: int
    last_triggered_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WebhookDeliveryResponse(BaseModel):
    id: int
    event: str
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    error: Optional[str] = None
    duration_ms: Optional[int] = None
    success: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
