"""User domain schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ...permissions import ROLES


def _check_role(v):
    if v is not None and v not in ROLES:
        raise ValueError(f"Role must be one of: {', '.join(ROLES)}")
    return v


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str
    organization_id: Optional[int] = None
    is_account_manager: bool
    is_active: bool
    phone: Optional[str] = None
    timezone: Optional[str] = None
    notification_preferences: Optional[dict[str, Any]] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    timezone: Optional[str] = Field(None, max_length=64)
    notification_preferences: Optional[dict[str, Any]] = None


class UserCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = Field(None, max_length=255)
    role: str = "client"
    organization_id: Optional[int] = None
    is_account_manager: bool = False
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        return _check_role(v)


class UserAdminUpdate(BaseModel):
    role: Optional[str] = None
    is_active: Optional[bool] = None
    is_account_manager: Optional[bool] = None
    organization_id: Optional[int] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        return _check_role(v)


class PermissionOverrideRequest(BaseModel):
    granted: bool
