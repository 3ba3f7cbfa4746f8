"""Audit router - read-only access to the audit trail"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import AuditLog, User
from ...permissions import require_permission
from ...scoping import apply_org_scope
from .schemas import AuditLogResponse

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=list[AuditLogResponse])
async def list_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    organization_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_permission("audit.view")),
    db: Session = Depends(get_db),
):
    """Audit entries within the caller's organizations, newest first"""
    query = apply_org_scope(db.query(AuditLog), AuditLog.organization_id, db, current_user)
    if action:
        query = query.filter(AuditLog.action == action)
    if resource_type:
        query = query.filter(AuditLog.resource_type == resource_type)
    if resource_id:
        query = query.filter(AuditLog.resource_id == resource_id)
    if organization_id:
        query = query.filter(AuditLog.organization_id == organization_id)
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()
