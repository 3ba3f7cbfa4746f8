"""User router - profile and user administration"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...permissions import get_user_permissions
from .schemas import PermissionOverrideRequest, ProfileUpdate, UserAdminUpdate, UserCreate, UserResponse
from .service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


# ============================================================================
# CURRENT USER
# ============================================================================


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.update_profile(current_user, data)


@router.get("/me/permissions")
async def get_my_permissions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"role": current_user.role, "permissions": sorted(get_user_permissions(db, current_user))}


# ============================================================================
# ADMINISTRATION
# ============================================================================


@router.get("", response_model=list[UserResponse])
async def list_users(
    organization_id: Optional[int] = Query(None),
    role: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.list_users(current_user, organization_id, role)


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    data: UserCreate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """Invite a user; they are linked to their auth identity on first sign-in"""
    return service.create_user(current_user, data)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.get_user(user_id, current_user)


@router.patch("/{user_id}", response_model=UserResponse)
async def admin_update_user(
    user_id: int,
    data: UserAdminUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.admin_update_user(user_id, current_user, data)


# ============================================================================
# PERMISSION OVERRIDES
# ============================================================================


@router.get("/{user_id}/permissions")
async def get_user_permissions_endpoint(
    user_id: int,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.get_permissions(user_id, current_user)


@router.put("/{user_id}/permissions/{permission}")
async def set_permission_override(
    user_id: int,
    permission: str,
    data: PermissionOverrideRequest,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.set_override(user_id, current_user, permission, data.granted)


@router.delete("/{user_id}/permissions/{permission}")
async def clear_permission_override(
    user_id: int,
    permission: str,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.clear_override(user_id, current_user, permission)
