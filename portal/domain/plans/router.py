"""Support plan router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentUpdate,
    PlanCreate,
    PlanResponse,
    PlanUpdate,
    TimeEntryCreate,
    TimeEntryResponse,
)
from .service import PlanService

router = APIRouter(prefix="/plans", tags=["Plans"])


def get_plan_service(db: Session = Depends(get_db)) -> PlanService:
    return PlanService(db)


# ============================================================================
# PLAN ASSIGNMENTS
# ============================================================================


@router.get("/assignments", response_model=list[AssignmentResponse])
async def list_assignments(
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    return service.list_assignments(current_user, organization_id)


@router.post("/assignments", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    data: AssignmentCreate,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    return service.create_assignment(current_user, data)


@router.patch("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: int,
    data: AssignmentUpdate,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    return service.update_assignment(assignment_id, current_user, data)


@router.get("/assignments/{assignment_id}/usage")
async def get_usage(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    """Hours used and remaining in the current billing period"""
    return service.get_usage(assignment_id, current_user)


@router.get("/assignments/{assignment_id}/time-entries", response_model=list[TimeEntryResponse])
async def list_time_entries(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    return service.list_time_entries(assignment_id, current_user)


@router.post("/assignments/{assignment_id}/time-entries", status_code=201)
async def log_time(
    assignment_id: int,
    data: TimeEntryCreate,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    result = service.log_time(assignment_id, current_user, data)
    return {
        "time_entry": TimeEntryResponse.model_validate(result["time_entry"]),
        "hours_summary": result["hours_summary"],
    }


# ============================================================================
# PLANS
# ============================================================================


@router.get("", response_model=list[PlanResponse])
async def list_plans(
    include_inactive: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    return service.list_plans(current_user, include_inactive)


@router.post("", response_model=PlanResponse, status_code=201)
async def create_plan(
    data: PlanCreate,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    return service.create_plan(current_user, data)


@router.patch("/{plan_id}", response_model=PlanResponse)
async def update_plan(
    plan_id: int,
    data: PlanUpdate,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    return service.update_plan(plan_id, current_user, data)


@router.delete("/{plan_id}")
async def deactivate_plan(
    plan_id: int,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    return service.deactivate_plan(plan_id, current_user)
