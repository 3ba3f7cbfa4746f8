"""Service catalog and service request schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

RATE_TYPES = ["hourly", "fixed", "tiered", "custom"]
REQUEST_PRIORITIES = ["low", "medium", "high", "urgent"]
REQUEST_STATUSES = ["pending", "responded", "approved", "rejected", "converted", "cancelled"]


def _check(value, allowed: list[str], label: str):
    if value is not None and value not in allowed:
        raise ValueError(f"{label} must be one of: {', '.join(allowed)}")
    return value


# ============================================================================
# CATALOG
# ============================================================================


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    category: Optional[str] = Field(None, max_length=50)
    base_rate: Optional[int] = Field(None, ge=0)
    rate_type: Optional[str] = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    requires_approval: bool = True
    is_active: bool = True
    display_order: int = 0
    organization_id: Optional[int] = None

    @field_validator("rate_type")
    @classmethod
    def validate_rate_type(cls, v):
        return _check(v, RATE_TYPES, "Rate type")


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    category: Optional[str] = Field(None, max_length=50)
    base_rate: Optional[int] = Field(None, ge=0)
    rate_type: Optional[str] = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    requires_approval: Optional[bool] = None
    is_active: Optional[bool] = None
    display_order: Optional[int] = None
    organization_id: Optional[int] = None

    @field_validator("rate_type")
    @classmethod
    def validate_rate_type(cls, v):
        return _check(v, RATE_TYPES, "Rate type")


class ServiceResponse(BaseModel):
    id: int
    organization_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    base_rate: Optional[int] = None
    rate_type: Optional[str] = None
    estimated_hours: Optional[float] = None
    requires_approval: bool
    is_active: bool
    display_order: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# REQUESTS
# ============================================================================


class ServiceRequestCreate(BaseModel):
    service_id: int
    details: Optional[dict[str, Any]] = None
    requested_start_date: Optional[datetime] = None
    priority: Optional[str] = None
    organization_id: Optional[int] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check(v, REQUEST_PRIORITIES, "Priority")


class AdminResponseCreate(BaseModel):
    response_text: str = Field(..., min_length=1, max_length=10000)
    response_metadata: Optional[dict[str, Any]] = None


class ClientFeedbackCreate(BaseModel):
    response_text: str = Field(..., min_length=1, max_length=10000)
    is_approval: bool = False


class ServiceRequestReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class ThreadEntryResponse(BaseModel):
    id: int
    responder_id: int
    response_type: str
    response_text: str
    response_metadata: Optional[dict[str, Any]] = None
    is_approval: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceRequestResponse(BaseModel):
    id: int
    organization_id: int
    service_id: int
    requested_by: int
    status: str
    details: Optional[dict[str, Any]] = None
    requested_start_date: Optional[datetime] = None
    priority: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    converted_ticket_id: Optional[int] = None
    latest_response_at: Optional[datetime] = None
    latest_response_by: Optional[int] = None
    response_count: int = 0
    created_at: Optional[datetime] = None
    service: Optional[ServiceResponse] = None

    class Config:
        from_attributes = True


class ServiceRequestDetail(ServiceRequestResponse):
    responses: list[ThreadEntryResponse] = []
