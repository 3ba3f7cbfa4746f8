"""Organization domain schemas"""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

ORG_TYPES = ["internal", "partner", "client"]
ORG_STATUSES = ["active", "suspended", "archived"]
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def _check_slack_url(v):
    if v and not v.startswith("https://hooks.slack.com/"):
        raise ValueError("Slack webhook must be a hooks.slack.com URL")
    return v


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=2, max_length=100)
    org_type: str = "client"
    parent_id: Optional[int] = None
    is_priority: bool = False
    slack_webhook_url: Optional[str] = Field(None, max_length=500)
    settings: Optional[dict[str, Any]] = None

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v):
        if not SLUG_PATTERN.match(v):
            raise ValueError("Slug may contain lowercase letters, numbers and single hyphens")
        return v

    @field_validator("org_type")
    @classmethod
    def validate_type(cls, v):
        if v not in ORG_TYPES:
            raise ValueError(f"Type must be one of: {', '.join(ORG_TYPES)}")
        return v

    @field_validator("slack_webhook_url")
    @classmethod
    def validate_slack(cls, v):
        return _check_slack_url(v)


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_priority: Optional[bool] = None
    slack_webhook_url: Optional[str] = Field(None, max_length=500)
    settings: Optional[dict[str, Any]] = None
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in ORG_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(ORG_STATUSES)}")
        return v

    @field_validator("slack_webhook_url")
    @classmethod
    def validate_slack(cls, v):
        return _check_slack_url(v)


class StaffAssignmentCreate(BaseModel):
    staff_id: int


class OrganizationResponse(BaseModel):
    id: int
    public_id: str
    name: str
    slug: str
    org_type: str
    parent_id: Optional[int] = None
    is_priority: bool
    slack_webhook_url: Optional[str] = None
    settings: Optional[dict[str, Any]] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
