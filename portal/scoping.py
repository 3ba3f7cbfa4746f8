"""Organization scoping - every tenant query is filtered through these helpers"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from .models import Organization, StaffAssignment, User

logger = logging.getLogger(__name__)


def accessible_organization_ids(db: Session, user: User) -> Optional[set[int]]:
    """
    Organizations the user may act in.
    Returns None for super admins, meaning no restriction.
    """
    if user.role == "super_admin":
        return None

    org_ids: set[int] = set()
    if user.organization_id:
        org_ids.add(user.organization_id)

    if user.role == "staff":
        assigned = db.query(StaffAssignment.organization_id).filter(
            StaffAssignment.staff_id == user.id
        )
        org_ids.update(row[0] for row in assigned)
    elif user.role in ("partner", "partner_staff") and user.organization_id:
        children = db.query(Organization.id).filter(
            Organization.parent_id == user.organization_id
        )
        org_ids.update(row[0] for row in children)

    return org_ids


def apply_org_scope(query, column, db: Session, user: User):
    """Restrict a query on an organization_id column to the user's scope"""
    org_ids = accessible_organization_ids(db, user)
    if org_ids is None:
        return query
    return query.filter(column.in_(org_ids))


def can_access_org(db: Session, user: User, organization_id: Optional[int]) -> bool:
    if organization_id is None:
        return False
    org_ids = accessible_organization_ids(db, user)
    return org_ids is None or organization_id in org_ids


def ensure_org_access(db: Session, user: User, organization_id: Optional[int]) -> None:
    """Raise 404 for records outside the caller's scope so existence is not leaked"""
    if not can_access_org(db, user, organization_id):
        logger.warning(f"⚠️ User {user.id} denied access to organization {organization_id}")
        raise HTTPException(status_code=404, detail="Not found")
