"""Organization repository"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Organization, StaffAssignment


class OrganizationRepository:
    @staticmethod
    def get_by_id(db: Session, organization_id: int) -> Optional[Organization]:
        return db.query(Organization).filter(Organization.id == organization_id).first()

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[Organization]:
        return db.query(Organization).filter(Organization.slug == slug).first()

    @staticmethod
    def list_organizations(
        db: Session, org_ids: Optional[set[int]], org_type: Optional[str] = None
    ) -> list[Organization]:
        query = db.query(Organization)
        if org_ids is not None:
            query = query.filter(Organization.id.in_(org_ids))
        if org_type:
            query = query.filter(Organization.org_type == org_type)
        return query.order_by(Organization.name).all()

    @staticmethod
    def get_assignment(db: Session, staff_id: int, organization_id: int) -> Optional[StaffAssignment]:
        return (
            db.query(StaffAssignment)
            .filter(StaffAssignment.staff_id == staff_id, StaffAssignment.organization_id == organization_id)
            .first()
        )

    @staticmethod
    def list_assignments(db: Session, organization_id: int) -> list[StaffAssignment]:
        return (
            db.query(StaffAssignment)
            .filter(StaffAssignment.organization_id == organization_id)
            .order_by(StaffAssignment.id)
            .all()
        )
