"""Audit trail helpers"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from .models import AuditLog, User

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    user: Optional[User],
    action: str,
    resource_type: str,
    resource_id: Any = None,
    details: Optional[dict] = None,
    organization_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    commit: bool = True,
) -> AuditLog:
    """Record an auditable action, e.g. log_action(db, user, "invoice.create", "invoice", 12)"""
    entry = AuditLog(
        user_id=user.id if user else None,
        organization_id=organization_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        ip_address=ip_address,
    )
    db.add(entry)
    if commit:
        db.commit()
    logger.debug(f"📝 Audit: {action} {resource_type}:{resource_id} by {user.id if user else 'system'}")
    return entry
