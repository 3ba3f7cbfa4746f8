"""Workload router - staff schedules, calendar blocks and capacity"""

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    CalendarBlockCreate,
    CalendarBlockResponse,
    CalendarBlockUpdate,
    ScheduleDayResponse,
    ScheduleUpdate,
)
from .service import WorkloadService

router = APIRouter(prefix="/workload", tags=["Workload"])


def get_workload_service(db: Session = Depends(get_db)) -> WorkloadService:
    return WorkloadService(db)


# ============================================================================
# CAPACITY
# ============================================================================


@router.get("/team")
async def get_team_workload(
    current_user: User = Depends(get_current_user),
    service: WorkloadService = Depends(get_workload_service),
):
    """Workload snapshot for every active staff member"""
    return service.get_team_workload(current_user)


@router.get("/staff/{staff_id}")
async def get_staff_workload(
    staff_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkloadService = Depends(get_workload_service),
):
    return service.get_staff_workload(staff_id, current_user)


@router.get("/staff/{staff_id}/availability")
async def get_staff_availability(
    staff_id: int,
    start: Optional[date] = Query(None),
    days: int = Query(14, ge=1, le=60),
    current_user: User = Depends(get_current_user),
    service: WorkloadService = Depends(get_workload_service),
):
    return service.get_availability(staff_id, current_user, start, days)


# ============================================================================
# SCHEDULES
# ============================================================================


@router.get("/staff/{staff_id}/schedule", response_model=list[ScheduleDayResponse])
async def get_schedule(
    staff_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkloadService = Depends(get_workload_service),
):
    return service.get_schedule(staff_id, current_user)


@router.put("/staff/{staff_id}/schedule", response_model=list[ScheduleDayResponse])
async def update_schedule(
    staff_id: int,
    data: ScheduleUpdate,
    current_user: User = Depends(get_current_user),
    service: WorkloadService = Depends(get_workload_service),
):
    return service.update_schedule(staff_id, current_user, data)


# ============================================================================
# CALENDAR BLOCKS
# ============================================================================


@router.get("/staff/{staff_id}/blocks", response_model=list[CalendarBlockResponse])
async def list_blocks(
    staff_id: int,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    service: WorkloadService = Depends(get_workload_service),
):
    return service.list_blocks(staff_id, current_user, start, end)


@router.post("/blocks", response_model=CalendarBlockResponse, status_code=201)
async def create_block(
    data: CalendarBlockCreate,
    current_user: User = Depends(get_current_user),
    service: WorkloadService = Depends(get_workload_service),
):
    return service.create_block(current_user, data)


@router.patch("/blocks/{block_id}", response_model=CalendarBlockResponse)
async def update_block(
    block_id: int,
    data: CalendarBlockUpdate,
    current_user: User = Depends(get_current_user),
    service: WorkloadService = Depends(get_workload_service),
):
    return service.update_block(block_id, current_user, data)


@router.delete("/blocks/{block_id}")
async def delete_block(
    block_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkloadService = Depends(get_workload_service),
):
    return service.delete_block(block_id, current_user)
