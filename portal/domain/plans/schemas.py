"""Support plan schemas"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

ASSIGNMENT_STATUSES = ["pending", "active", "paused", "grace_period", "cancelled", "expired"]
WORK_TYPES = ["support", "dev"]


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    support_hours_included: float = Field(0, ge=0)
    dev_hours_included: float = Field(0, ge=0)
    support_hourly_rate: int = Field(0, ge=0)  # cents
    dev_hourly_rate: int = Field(0, ge=0)
    monthly_fee: int = Field(0, ge=0)
    payment_terms_days: int = Field(30, ge=0, le=365)
    rush_support_included: bool = False


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    support_hours_included: Optional[float] = Field(None, ge=0)
    dev_hours_included: Optional[float] = Field(None, ge=0)
    support_hourly_rate: Optional[int] = Field(None, ge=0)
    dev_hourly_rate: Optional[int] = Field(None, ge=0)
    monthly_fee: Optional[int] = Field(None, ge=0)
    payment_terms_days: Optional[int] = Field(None, ge=0, le=365)
    rush_support_included: Optional[bool] = None
    is_active: Optional[bool] = None


class PlanResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    support_hours_included: float
    dev_hours_included: float
    support_hourly_rate: int
    dev_hourly_rate: int
    monthly_fee: int
    payment_terms_days: int
    rush_support_included: bool
    is_active: bool

    class Config:
        from_attributes = True


def _check_status(v):
    if v is not None and v not in ASSIGNMENT_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(ASSIGNMENT_STATUSES)}")
    return v


class AssignmentCreate(BaseModel):
    organization_id: int
    plan_id: int
    status: str = "active"
    start_date: Optional[datetime] = None
    billing_period_start: Optional[datetime] = None
    billing_period_end: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)


class AssignmentUpdate(BaseModel):
    status: Optional[str] = None
    billing_period_start: Optional[datetime] = None
    billing_period_end: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)


class AssignmentResponse(BaseModel):
    id: int
    organization_id: int
    plan_id: int
    status: str
    start_date: Optional[datetime] = None
    billing_period_start: Optional[datetime] = None
    billing_period_end: Optional[datetime] = None
    support_hours_used: float
    dev_hours_used: float

    class Config:
        from_attributes = True


class TimeEntryCreate(BaseModel):
    hours: float = Field(..., gt=0, le=24)
    work_type: str = "support"
    description: str = Field(..., min_length=1, max_length=2000)
    ticket_id: Optional[int] = None
    work_date: Optional[date] = None

    @field_validator("work_type")
    @classmethod
    def validate_work_type(cls, v):
        if v not in WORK_TYPES:
            raise ValueError(f"Work type must be one of: {', '.join(WORK_TYPES)}")
        return v


class TimeEntryResponse(BaseModel):
    id: int
    plan_assignment_id: int
    ticket_id: Optional[int] = None
    staff_id: int
    hours: float
    work_type: str
    description: Optional[str] = None
    is_overage: bool
    overage_hours: float
    work_date: datetime

    class Config:
        from_attributes = True
