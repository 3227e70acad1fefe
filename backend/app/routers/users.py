"""
User control router: users, roles and the permission catalog.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config import settings
from app.core.deps import require_permissions
from app.database import get_db
from app.schemas.common import ApiResponse, PaginatedResponse, ok, paginate
from app.schemas.user import (
    PasswordReset,
    PermissionCatalog,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from app.services import role_service, user_service

router = APIRouter(prefix="/api/v1/user-control", tags=["User control"])


# ----------------------------------------------------------------
# Users
# ----------------------------------------------------------------

@router.get(
    "/users",
    response_model=PaginatedResponse[UserResponse],
    dependencies=[Depends(require_permissions(["read:users"]))],
    summary="List users",
)
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    role_id: Optional[uuid.UUID] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    items, total = user_service.get_users(db, page, limit, search, role_id, is_active)
    return paginate(items, total, page, limit)


@router.get(
    "/users/{user_id}",
    response_model=ApiResponse[UserResponse],
    dependencies=[Depends(require_permissions(["read:users"]))],
    summary="User detail",
)
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(user_service.get_user(db, user_id))


@router.post(
    "/users",
    response_model=ApiResponse[UserResponse],
    status_code=201,
    dependencies=[Depends(require_permissions(["create:users"]))],
    summary="Create a user",
)
def create_user(data: UserCreate, db: Session = Depends(get_db)):
    return ok(user_service.create_user(db, data), "User created")


@router.patch(
    "/users/{user_id}",
    response_model=ApiResponse[UserResponse],
    dependencies=[Depends(require_permissions(["update:users"]))],
    summary="Update a user",
)
def update_user(user_id: uuid.UUID, data: UserUpdate, db: Session = Depends(get_db)):
    return ok(user_service.update_user(db, user_id, data), "User updated")


@router.delete(
    "/users/{user_id}",
    response_model=ApiResponse[UserResponse],
    dependencies=[Depends(require_permissions(["delete:users"]))],
    summary="Deactivate a user",
)
def deactivate_user(user_id: uuid.UUID, db: Session = Depends(get_db)):
    """Soft delete: the account is deactivated and logged out everywhere."""
    return ok(user_service.deactivate_user(db, user_id), "User deactivated")


@router.post(
    "/users/{user_id}/reset-password",
    response_model=ApiResponse[None],
    dependencies=[Depends(require_permissions(["update:users"]))],
    summary="Reset a user's password",
)
def reset_password(user_id: uuid.UUID, data: PasswordReset, db: Session = Depends(get_db)):
    user_service.reset_password(db, user_id, data.new_password)
    return ok(message="Password reset")


# ----------------------------------------------------------------
# Roles
# ----------------------------------------------------------------

@router.get(
    "/roles",
    response_model=PaginatedResponse[RoleResponse],
    dependencies=[Depends(require_permissions(["read:roles"]))],
    summary="List roles",
)
def list_roles(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    items, total = role_service.get_roles(db, page, limit, search, is_active)
    return paginate(items, total, page, limit)


@router.get(
    "/roles/{role_id}",
    response_model=ApiResponse[RoleResponse],
    dependencies=[Depends(require_permissions(["read:roles"]))],
    summary="Role detail",
)
def get_role(role_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(role_service.get_role(db, role_id))


@router.post(
    "/roles",
    response_model=ApiResponse[RoleResponse],
    status_code=201,
    dependencies=[Depends(require_permissions(["create:roles"]))],
    summary="Create a role",
)
def create_role(data: RoleCreate, db: Session = Depends(get_db)):
    return ok(role_service.create_role(db, data), "Role created")


@router.patch(
    "/roles/{role_id}",
    response_model=ApiResponse[RoleResponse],
    dependencies=[Depends(require_permissions(["update:roles"]))],
    summary="Update a role",
)
def update_role(role_id: uuid.UUID, data: RoleUpdate, db: Session = Depends(get_db)):
    return ok(role_service.update_role(db, role_id, data), "Role updated")


@router.delete(
    "/roles/{role_id}",
    response_model=ApiResponse[RoleResponse],
    dependencies=[Depends(require_permissions(["delete:roles"]))],
    summary="Deactivate a role",
)
def deactivate_role(role_id: uuid.UUID, db: Session = Depends(get_db)):
    """Refused while active users hold the role, or for the only default role."""
    return ok(role_service.deactivate_role(db, role_id), "Role deactivated")


@router.get(
    "/permissions",
    response_model=ApiResponse[PermissionCatalog],
    dependencies=[Depends(require_permissions(["read:roles"]))],
    summary="Permission catalog",
)
def list_permissions():
    return ok(role_service.get_all_permissions())
