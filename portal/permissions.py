"""
Role-based permissions with per-user overrides

Every role has a default permission set. Individual users can be granted
extra permissions or have defaults revoked through UserPermissionOverride rows.
"""

import logging
from typing import Iterable

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from .auth import get_current_user
from .database import get_db
from .models import User, UserPermissionOverride

logger = logging.getLogger(__name__)

ROLES = ["super_admin", "staff", "partner", "partner_staff", "client"]
PRIVILEGED_ROLES = {"super_admin", "staff", "partner", "partner_staff"}
STAFF_ROLES = {"super_admin", "staff"}

PERMISSION_CATEGORIES = {
    "tickets": ["view", "create", "update", "delete", "assign", "close", "comment"],
    "invoices": ["view", "create", "update", "delete", "send", "payment"],
    "contracts": ["view", "create", "update", "delete", "send", "sign"],
    "users": ["view", "create", "update", "delete", "permissions"],
    "organizations": ["view", "create", "update", "delete"],
    "settings": ["view", "update", "branding", "integrations"],
    "reports": ["view", "export"],
    "services": ["view", "create", "update", "approve"],
    "messages": ["view", "send", "delete"],
    "audit": ["view"],
    "files": ["view", "upload", "delete"],
}

ALL_PERMISSIONS = frozenset(
    f"{category}.{action}" for category, actions in PERMISSION_CATEGORIES.items() for action in actions
)


def _category(name: str) -> set[str]:
    return {f"{name}.{action}" for action in PERMISSION_CATEGORIES[name]}


ROLE_PERMISSIONS: dict[str, frozenset] = {
    "super_admin": ALL_PERMISSIONS,
    "staff": frozenset(
        _category("tickets")
        | _category("messages")
        | _category("files")
        | {
            "invoices.view",
            "contracts.view",
            "contracts.create",
            "contracts.update",
            "contracts.send",
            "users.view",
            "organizations.view",
            "settings.view",
            "reports.view",
            "reports.export",
            "services.view",
            "services.create",
            "services.update",
            "services.approve",
        }
    ),
    "partner": frozenset(
        _category("tickets")
        | _category("messages")
        | _category("files")
        | {
            "invoices.view",
            "contracts.view",
            "users.view",
            "users.create",
            "users.update",
            "organizations.view",
            "organizations.update",
            "settings.view",
            "settings.update",
            "reports.view",
            "reports.export",
            "services.view",
            "services.approve",
            "audit.view",
        }
    ),
    "partner_staff": frozenset(
        {
            "tickets.view",
            "tickets.create",
            "tickets.update",
            "tickets.assign",
            "tickets.close",
            "tickets.comment",
            "messages.view",
            "messages.send",
            "files.view",
            "files.upload",
            "invoices.view",
            "contracts.view",
            "users.view",
            "organizations.view",
            "reports.view",
        }
    ),
    "client": frozenset(
        {
            "tickets.view",
            "tickets.create",
            "tickets.close",
            "tickets.comment",
            "invoices.view",
            "contracts.view",
            "contracts.sign",
            "messages.view",
            "messages.send",
            "files.view",
            "files.upload",
            "services.view",
            "settings.view",
        }
    ),
}


def is_privileged(user: User) -> bool:
    return user.role in PRIVILEGED_ROLES


def is_staff(user: User) -> bool:
    return user.role in STAFF_ROLES


def get_user_permissions(db: Session, user: User) -> dict[str, str]:
    """Return effective permissions mapped to their source ("role" or "user_override")"""
    permissions = {name: "role" for name in ROLE_PERMISSIONS.get(user.role, frozenset())}

    overrides = (
        db.query(UserPermissionOverride).filter(UserPermissionOverride.user_id == user.id).all()
    )
    for override in overrides:
        if override.granted:
            permissions[override.permission] = "user_override"
        else:
            permissions.pop(override.permission, None)

    return permissions


def has_permission(db: Session, user: User, permission: str) -> bool:
    if not user.is_active:
        return False
    if user.role == "super_admin":
        return True
    return permission in get_user_permissions(db, user)


def has_any_permission(db: Session, user: User, permissions: Iterable[str]) -> bool:
    if not user.is_active:
        return False
    if user.role == "super_admin":
        return True
    effective = get_user_permissions(db, user)
    return any(name in effective for name in permissions)


def has_all_permissions(db: Session, user: User, permissions: Iterable[str]) -> bool:
    if not user.is_active:
        return False
    if user.role == "super_admin":
        return True
    effective = get_user_permissions(db, user)
    return all(name in effective for name in permissions)


def ensure_permission(db: Session, user: User, permission: str) -> None:
    if not has_permission(db, user, permission):
        logger.warning(f"⚠️ Permission denied: user {user.id} lacks {permission}")
        raise HTTPException(status_code=403, detail=f"Permission denied: {permission}")


def require_permission(permission: str):
    """Dependency factory: resolve the current user and enforce a permission"""

    async def dependency(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> User:
        ensure_permission(db, current_user, permission)
        return current_user

    return dependency


def set_permission_override(
    db: Session, user: User, permission: str, granted: bool, actor: User
) -> UserPermissionOverride:
    if permission not in ALL_PERMISSIONS:
        raise HTTPException(status_code=400, detail=f"Unknown permission: {permission}")

    override = (
        db.query(UserPermissionOverride)
        .filter(
            UserPermissionOverride.user_id == user.id,
            UserPermissionOverride.permission == permission,
        )
        .first()
    )
    if override:
        override.granted = granted
        override.created_by = actor.id
    else:
        override = UserPermissionOverride(
            user_id=user.id, permission=permission, granted=granted, created_by=actor.id
        )
        db.add(override)

    db.commit()
    db.refresh(override)
    logger.info(f"🔄 Permission {permission} {'granted to' if granted else 'revoked from'} user {user.id}")
    return override


def clear_permission_override(db: Session, user: User, permission: str) -> bool:
    deleted = (
        db.query(UserPermissionOverride)
        .filter(
            UserPermissionOverride.user_id == user.id,
            UserPermissionOverride.permission == permission,
        )
        .delete()
    )
    db.commit()
    return bool(deleted)
