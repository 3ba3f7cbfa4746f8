"""Project, milestone and task schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

PROJECT_STATUSES = ["active", "on_hold", "completed", "archived"]
TASK_STATUSES = ["todo", "in_progress", "done"]
TASK_PRIORITIES = ["low", "medium", "high", "critical"]
MILESTONE_STATUSES = ["pending", "in_progress", "completed", "missed"]


def _check(value, allowed: list[str], label: str):
    if value is not None and value not in allowed:
        raise ValueError(f"{label} must be one of: {', '.join(allowed)}")
    return value


class ProjectCreate(BaseModel):
    organization_id: int
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    status: str = "active"

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check(v, PROJECT_STATUSES, "Status")


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check(v, PROJECT_STATUSES, "Status")


class ProjectResponse(BaseModel):
    id: int
    organization_id: int
    name: str
    description: Optional[str] = None
    status: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    priority: str = "medium"
    status: str = "todo"
    assigned_to: Optional[int] = None
    milestone_id: Optional[int] = None
    due_date: Optional[datetime] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check(v, TASK_PRIORITIES, "Priority")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check(v, TASK_STATUSES, "Status")


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    priority: Optional[str] = None
    status: Optional[str] = None
    assigned_to: Optional[int] = None
    milestone_id: Optional[int] = None
    due_date: Optional[datetime] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check(v, TASK_PRIORITIES, "Priority")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check(v, TASK_STATUSES, "Status")


class TaskResponse(BaseModel):
    id: int
    project_id: int
    milestone_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    priority: str
    status: str
    assigned_to: Optional[int] = None
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaskListParseRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=50000)
    max_items: int = Field(100, ge=1, le=100)
    use_ai: bool = False


class ParsedTask(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=10000)
    priority: str = "medium"

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check(v, TASK_PRIORITIES, "Priority")


class BulkTaskCreate(BaseModel):
    tasks: list[TaskCreate] = Field(..., min_length=1, max_length=100)


class MilestoneCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    due_date: Optional[datetime] = None
    status: str = "pending"
    sort_order: Optional[int] = Field(None, ge=0)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check(v, MILESTONE_STATUSES, "Status")


class MilestoneUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    due_date: Optional[datetime] = None
    status: Optional[str] = None
    sort_order: Optional[int] = Field(None, ge=0)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check(v, MILESTONE_STATUSES, "Status")


class MilestoneResponse(BaseModel):
    id: int
    project_id: int
    name: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    status: str
    sort_order: int
    task_count: int = 0
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
