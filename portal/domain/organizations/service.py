"""Organization service - tenants, hierarchy and staff assignments"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...audit import log_action
from ...models import Organization, StaffAssignment, User
from ...permissions import STAFF_ROLES
from ...scoping import accessible_organization_ids, ensure_org_access
from .repository import OrganizationRepository
from .schemas import OrganizationCreate, OrganizationUpdate

logger = logging.getLogger(__name__)


class OrganizationService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = OrganizationRepository()

    def list_organizations(self, user: User, org_type: Optional[str] = None) -> list[Organization]:
        org_ids = accessible_organization_ids(self.db, user)
        return self.repo.list_organizations(self.db, org_ids, org_type)

    def get_organization(self, organization_id: int, user: User) -> Organization:
        ensure_org_access(self.db, user, organization_id)
        organization = self.repo.get_by_id(self.db, organization_id)
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")
        return organization

    def create_organization(self, user: User, data: OrganizationCreate) -> Organization:
        if user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Insufficient permissions")

        if self.repo.get_by_slug(self.db, data.slug):
            raise HTTPException(status_code=409, detail="An organization with this slug already exists")

        if data.parent_id:
            parent = self.repo.get_by_id(self.db, data.parent_id)
            if not parent or parent.org_type != "partner":
                raise HTTPException(status_code=400, detail="Parent must be a partner organization")
            if data.org_type != "client":
                raise HTTPException(status_code=400, detail="Only client organizations can have a parent")

        organization = Organization(**data.model_dump())
        self.db.add(organization)
        self.db.commit()
        self.db.refresh(organization)

        log_action(
            self.db,
            user,
            "organization.create",
            "organization",
            organization.id,
            details={"name": organization.name, "org_type": organization.org_type},
            organization_id=organization.id,
        )
        logger.info(f"✅ Organization {organization.slug} created")
        return organization

    def update_organization(self, organization_id: int, user: User, data: OrganizationUpdate) -> Organization:
        organization = self.get_organization(organization_id, user)
        updates = data.model_dump(exclude_unset=True)

        if user.role != "super_admin":
            is_child = user.role == "partner" and organization.parent_id == user.organization_id
            if not is_child:
                raise HTTPException(status_code=403, detail="Insufficient permissions")
            if "is_priority" in updates:
                raise HTTPException(status_code=403, detail="Only administrators can change priority support")

        for field, value in updates.items():
            setattr(organization, field, value)
        self.db.commit()
        self.db.refresh(organization)

        log_action(
            self.db,
            user,
            "organization.update",
            "organization",
            organization.id,
            details={"fields": sorted(updates)},
            organization_id=organization.id,
        )
        return organization

    def assign_staff(self, organization_id: int, user: User, staff_id: int) -> StaffAssignment:
        if user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        organization = self.get_organization(organization_id, user)

        staff = self.db.query(User).filter(User.id == staff_id).first()
        if not staff or staff.role not in STAFF_ROLES:
            raise HTTPException(status_code=400, detail="Only agency staff can be assigned to organizations")

        if self.repo.get_assignment(self.db, staff_id, organization.id):
            raise HTTPException(status_code=409, detail="Staff member is already assigned")

        assignment = StaffAssignment(staff_id=staff_id, organization_id=organization.id)
        self.db.add(assignment)
        self.db.commit()
        self.db.refresh(assignment)

        log_action(
            self.db,
            user,
            "organization.assign_staff",
            "organization",
            organization.id,
            details={"staff_id": staff_id},
            organization_id=organization.id,
        )
        logger.info(f"👤 Staff {staff_id} assigned to organization {organization.id}")
        return assignment

    def remove_staff(self, organization_id: int, user: User, staff_id: int) -> dict:
        if user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        assignment = self.repo.get_assignment(self.db, staff_id, organization_id)
        if not assignment:
            raise HTTPException(status_code=404, detail="Assignment not found")
        self.db.delete(assignment)
        self.db.commit()
        return {"message": "Staff assignment removed"}

    def list_staff(self, organization_id: int, user: User) -> list[dict]:
        self.get_organization(organization_id, user)
        return [
            {
                "staff_id": a.staff_id,
                "name": a.staff.full_name if a.staff else None,
                "email": a.staff.email if a.staff else None,
                "assigned_at": a.created_at,
            }
            for a in self.repo.list_assignments(self.db, organization_id)
        ]
