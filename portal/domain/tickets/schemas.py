"""Ticket domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .priority import PRIORITIES

TICKET_STATUSES = ["new", "open", "in_progress", "pending_client", "resolved", "closed"]
TICKET_CATEGORIES = [
    "technical-support",
    "billing",
    "general-inquiry",
    "bug-report",
    "feature-request",
    "urgent",
]


def _check_priority(v):
    if v is not None and v not in PRIORITIES:
        raise ValueError(f"Priority must be one of: {', '.join(PRIORITIES)}")
    return v


def _check_category(v):
    if v is not None and v not in TICKET_CATEGORIES:
        raise ValueError(f"Category must be one of: {', '.join(TICKET_CATEGORIES)}")
    return v


class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=20000)
    category: Optional[str] = None
    priority: Optional[str] = None
    organization_id: Optional[int] = None
    assigned_to: Optional[int] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check_priority(v)

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        return _check_category(v)


class TicketUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=20000)
    category: Optional[str] = None
    priority: Optional[str] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check_priority(v)

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        return _check_category(v)


class TicketStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in TICKET_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(TICKET_STATUSES)}")
        return v


class TicketClose(BaseModel):
    note: Optional[str] = Field(None, max_length=5000)


class TicketAssign(BaseModel):
    assigned_to: int


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)
    is_internal: bool = False


class CommentResponse(BaseModel):
    id: int
    ticket_id: int
    user_id: int
    author_name: Optional[str] = None
    content: str
    is_internal: bool
    created_at: Optional[datetime] = None


class TicketResponse(BaseModel):
    id: int
    public_id: str
    ticket_number: Optional[str] = None
    organization_id: int
    created_by: int
    assigned_to: Optional[int] = None
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    priority: str
    status: str
    first_response_due_at: Optional[datetime] = None
    sla_due_at: Optional[datetime] = None
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    ai_summary: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
