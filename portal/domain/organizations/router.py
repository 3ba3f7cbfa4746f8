"""Organization router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import OrganizationCreate, OrganizationResponse, OrganizationUpdate, StaffAssignmentCreate
from .service import OrganizationService

router = APIRouter(prefix="/organizations", tags=["Organizations"])


def get_organization_service(db: Session = Depends(get_db)) -> OrganizationService:
    return OrganizationService(db)


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    org_type: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return service.list_organizations(current_user, org_type)


@router.post("", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    data: OrganizationCreate,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return service.create_organization(current_user, data)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return service.get_organization(organization_id, current_user)


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: int,
    data: OrganizationUpdate,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return service.update_organization(organization_id, current_user, data)


@router.get("/{organization_id}/staff")
async def list_staff(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return service.list_staff(organization_id, current_user)


@router.post("/{organization_id}/staff", status_code=201)
async def assign_staff(
    organization_id: int,
    data: StaffAssignmentCreate,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    """Give a staff member access to this organization"""
    assignment = service.assign_staff(organization_id, current_user, data.staff_id)
    return {"id": assignment.id, "staff_id": assignment.staff_id, "organization_id": assignment.organization_id}


@router.delete("/{organization_id}/staff/{staff_id}")
async def remove_staff(
    organization_id: int,
    staff_id: int,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return service.remove_staff(organization_id, current_user, staff_id)
