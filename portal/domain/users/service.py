"""User service - profiles, invitations and administration"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...audit import log_action
from ...models import Organization, User
from ...permissions import (
    clear_permission_override,
    ensure_permission,
    get_user_permissions,
    set_permission_override,
)
from ...scoping import apply_org_scope, ensure_org_access
from .schemas import ProfileUpdate, UserAdminUpdate, UserCreate

logger = logging.getLogger(__name__)

# Roles a partner may invite into its own scope
PARTNER_INVITABLE_ROLES = {"partner_staff", "client"}


class UserService:
    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # SELF SERVICE
    # ========================================================================

    def update_profile(self, user: User, data: ProfileUpdate) -> User:
        updates = data.model_dump(exclude_unset=True)
        if "notification_preferences" in updates:
            preferences = dict(user.notification_preferences or {})
            preferences.update(updates.pop("notification_preferences") or {})
            user.notification_preferences = preferences
        for field, value in updates.items():
            setattr(user, field, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    def list_users(
        self, user: User, organization_id: Optional[int] = None, role: Optional[str] = None
    ) -> list[User]:
        ensure_permission(self.db, user, "users.view")
        query = apply_org_scope(self.db.query(User), User.organization_id, self.db, user)
        if organization_id:
            query = query.filter(User.organization_id == organization_id)
        if role:
            query = query.filter(User.role == role)
        return query.order_by(User.id).all()

    def get_user(self, user_id: int, user: User) -> User:
        target = self.db.query(User).filter(User.id == user_id).first()
        if not target:
            raise HTTPException(status_code=404, detail="User not found")
        if target.id != user.id and user.role != "super_admin":
            ensure_permission(self.db, user, "users.view")
            ensure_org_access(self.db, user, target.organization_id)
        return target

    def create_user(self, user: User, data: UserCreate) -> User:
        if user.role == "super_admin":
            pass
        elif user.role == "partner":
            ensure_permission(self.db, user, "users.create")
            if data.role not in PARTNER_INVITABLE_ROLES:
                raise HTTPException(status_code=403, detail="Partners can only invite partner staff or clients")
            if data.role == "partner_staff" and data.organization_id not in (None, user.organization_id):
                raise HTTPException(status_code=403, detail="Partner staff must belong to your organization")
        else:
            raise HTTPException(status_code=403, detail="Insufficient permissions")

        organization_id = data.organization_id
        if organization_id is None and user.role == "partner":
            organization_id = user.organization_id
        if organization_id is not None:
            if not self.db.query(Organization.id).filter(Organization.id == organization_id).first():
                raise HTTPException(status_code=404, detail="Organization not found")
            ensure_org_access(self.db, user, organization_id)

        email = data.email.lower()
        if self.db.query(User.id).filter(User.email == email).first():
            raise HTTPException(status_code=409, detail="A user with this email already exists")

        new_user = User(
            email=email,
            full_name=data.full_name,
            role=data.role,
            organization_id=organization_id,
            is_account_manager=data.is_account_manager and data.role == "staff",
            phone=data.phone,
        )
        self.db.add(new_user)
        self.db.commit()
        self.db.refresh(new_user)

        log_action(
            self.db,
            user,
            "user.create",
            "user",
            new_user.id,
            details={"email": email, "role": data.role},
            organization_id=organization_id,
        )
        logger.info(f"✅ User {email} invited as {data.role} by user {user.id}")
        return new_user

    def admin_update_user(self, user_id: int, user: User, data: UserAdminUpdate) -> User:
        if user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        target = self.get_user(user_id, user)
        updates = data.model_dump(exclude_unset=True)

        demoting = updates.get("role", "super_admin") != "super_admin"
        if target.id == user.id and (updates.get("is_active") is False or demoting):
            raise HTTPException(status_code=400, detail="You cannot demote or deactivate yourself")

        for field, value in updates.items():
            setattr(target, field, value)
        self.db.commit()
        self.db.refresh(target)

        log_action(
            self.db,
            user,
            "user.update",
            "user",
            target.id,
            details=updates,
            organization_id=target.organization_id,
        )
        logger.info(f"🔄 User {target.id} updated: {updates}")
        return target

    # ========================================================================
    # PERMISSIONS
    # ========================================================================

    def _require_super_admin(self, user: User) -> None:
        if user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Insufficient permissions")

    def get_permissions(self, user_id: int, user: User) -> dict:
        self._require_super_admin(user)
        target = self.get_user(user_id, user)
        permissions = get_user_permissions(self.db, target)
        return {
            "user_id": target.id,
            "role": target.role,
            "permissions": [
                {"permission": name, "source": source} for name, source in sorted(permissions.items())
            ],
        }

    def set_override(self, user_id: int, user: User, permission: str, granted: bool) -> dict:
        self._require_super_admin(user)
        target = self.get_user(user_id, user)
        set_permission_override(self.db, target, permission, granted, actor=user)
        log_action(
            self.db,
            user,
            "user.permission_override",
            "user",
            target.id,
            details={"permission": permission, "granted": granted},
            organization_id=target.organization_id,
        )
        return self.get_permissions(user_id, user)

    def clear_override(self, user_id: int, user: User, permission: str) -> dict:
        self._require_super_admin(user)
        target = self.get_user(user_id, user)
        if not clear_permission_override(self.db, target, permission):
            raise HTTPException(status_code=404, detail="Permission override not found")
        return self.get_permissions(user_id, user)
