"""Project router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    BulkTaskCreate,
    MilestoneCreate,
    MilestoneResponse,
    MilestoneUpdate,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
    TaskCreate,
    TaskListParseRequest,
    TaskResponse,
    TaskUpdate,
)
from .service import ProjectService

router = APIRouter(prefix="/projects", tags=["Projects"])
rate_limit_parse = create_rate_limiter(20, 60, "task_parse", scope="user")


def get_project_service(db: Session = Depends(get_db)) -> ProjectService:
    return ProjectService(db)


# ============================================================================
# PROJECTS
# ============================================================================


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    organization_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.list_projects(current_user, organization_id, status)


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.create_project(current_user, data)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.get_project(project_id, current_user)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    data: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.update_project(project_id, current_user, data)


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.delete_project(project_id, current_user)


# ============================================================================
# TASKS
# ============================================================================


@router.get("/{project_id}/tasks", response_model=list[TaskResponse])
async def list_tasks(
    project_id: int,
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.list_tasks(project_id, current_user, status)


@router.post("/{project_id}/tasks", response_model=TaskResponse, status_code=201)
async def create_task(
    project_id: int,
    data: TaskCreate,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.create_task(project_id, current_user, data)


@router.post("/{project_id}/tasks/parse")
async def parse_tasks(
    project_id: int,
    data: TaskListParseRequest,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
    _: None = Depends(rate_limit_parse),
):
    """Preview the tasks found in pasted text; nothing is saved"""
    return await service.parse_tasks(project_id, current_user, data.text, data.max_items, data.use_ai)


@router.post("/{project_id}/tasks/bulk", response_model=list[TaskResponse], status_code=201)
async def bulk_create_tasks(
    project_id: int,
    data: BulkTaskCreate,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.bulk_create_tasks(project_id, current_user, data)


@router.patch("/{project_id}/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    project_id: int,
    task_id: int,
    data: TaskUpdate,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.update_task(project_id, task_id, current_user, data)


@router.delete("/{project_id}/tasks/{task_id}")
async def delete_task(
    project_id: int,
    task_id: int,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.delete_task(project_id, task_id, current_user)


# ============================================================================
# MILESTONES
# ============================================================================


@router.get("/{project_id}/milestones", response_model=list[MilestoneResponse])
async def list_milestones(
    project_id: int,
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.list_milestones(project_id, current_user, status)


@router.post("/{project_id}/milestones", response_model=MilestoneResponse, status_code=201)
async def create_milestone(
    project_id: int,
    data: MilestoneCreate,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.create_milestone(project_id, current_user, data)


@router.get("/{project_id}/milestones/{milestone_id}", response_model=MilestoneResponse)
async def get_milestone(
    project_id: int,
    milestone_id: int,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.get_milestone(project_id, milestone_id, current_user)


@router.patch("/{project_id}/milestones/{milestone_id}", response_model=MilestoneResponse)
async def update_milestone(
    project_id: int,
    milestone_id: int,
    data: MilestoneUpdate,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.update_milestone(project_id, milestone_id, current_user, data)


@router.delete("/{project_id}/milestones/{milestone_id}")
async def delete_milestone(
    project_id: int,
    milestone_id: int,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return service.delete_milestone(project_id, milestone_id, current_user)
