"""
Role administration and the permission catalog.

A role can only be deactivated when no active user holds it, and the last
default role (given to self-registered users) cannot be deactivated.
"""

import uuid
import logging
from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import BadRequestError, ConflictError, NotFoundError
from app.models.user import Role, User
from app.schemas.user import PermissionItem, RoleCreate, RoleResponse, RoleUpdate

logger = logging.getLogger(__name__)

PERMISSION_CATALOG = {
    "users": [
        ("read:users", "View user information"),
        ("create:users", "Create new users"),
        ("update:users", "Update user information"),
        ("delete:users", "Deactivate users"),
    ],
    "roles": [
        ("read:roles", "View roles"),
        ("create:roles", "Create new roles"),
        ("update:roles", "Update roles"),
        ("delete:roles", "Deactivate roles"),
    ],
    "data-control": [
        ("read:areas", "View areas"),
        ("create:areas", "Create areas"),
        ("update:areas", "Update areas"),
    ],
    "contact-management": [
        ("read:companies", "View companies and contacts"),
        ("create:companies", "Create companies and contacts"),
        ("update:companies", "Update, approve or reject companies; update contacts"),
        ("delete:companies", "Deactivate companies and contacts"),
    ],
    "dsr": [
        ("read:visits", "View visits"),
        ("create:visits", "Create visits and check in"),
        ("update:visits", "Update visits, check out, upload photos"),
        ("create:follow-ups", "Create follow-ups"),
        ("read:follow-ups", "View follow-ups"),
        ("update:follow-ups", "Update follow-ups"),
        ("create:payments", "Record payments"),
        ("read:reports", "View DSR and call reports"),
    ],
    "calls": [
        ("read:calls", "View calls"),
        ("create:calls", "Schedule calls"),
        ("update:calls", "Update, start, end or cancel calls"),
        ("delete:calls", "Delete scheduled calls"),
    ],
}


def get_all_permissions() -> dict[str, list[PermissionItem]]:
    return {
        module: [PermissionItem(key=key, description=desc) for key, desc in items]
        for module, items in PERMISSION_CATALOG.items()
    }


def _get_role(db: Session, role_id: uuid.UUID) -> Role:
    role = db.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role not found")
    return role


def _active_user_count(db: Session, role_id: uuid.UUID) -> int:
    return db.execute(
        select(func.count(User.id)).where(User.role_id == role_id, User.is_active.is_(True))
    ).scalar_one()


def _to_response(db: Session, role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        description=role.description,
        permissions=list(role.permissions or []),
        is_default=bool(role.is_default),
        is_active=bool(role.is_active),
        user_count=_active_user_count(db, role.id),
        created_at=role.created_at,
    )


def _clear_other_defaults(db: Session, role_id: Optional[uuid.UUID]) -> None:
    stmt = update(Role).where(Role.is_default.is_(True)).values(is_default=False)
    if role_id is not None:
        stmt = stmt.where(Role.id != role_id)
    db.execute(stmt)


def get_roles(
    db: Session,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> tuple[list[RoleResponse], int]:
    stmt = select(Role)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Role.name.ilike(pattern), Role.description.ilike(pattern)))
    if is_active is not None:
        stmt = stmt.where(Role.is_active == is_active)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    roles = db.execute(stmt.order_by(Role.name).offset((page - 1) * limit).limit(limit)).scalars().all()
    return [_to_response(db, r) for r in roles], total


def get_role(db: Session, role_id: uuid.UUID) -> RoleResponse:
    return _to_response(db, _get_role(db, role_id))


def create_role(db: Session, data: RoleCreate) -> RoleResponse:
    """A new default role replaces the previous default."""
    if data.is_default:
        _clear_other_defaults(db, None)

    role = Role(
        name=data.name,
        description=data.description,
        permissions=data.permissions,
        is_default=data.is_default,
        is_active=True,
    )
    db.add(role)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"A role named '{data.name}' already exists")
    db.refresh(role)

    logger.info("Role %s (%s) created", role.id, role.name)
    return _to_response(db, role)


def update_role(db: Session, role_id: uuid.UUID, data: RoleUpdate) -> RoleResponse:
    role = _get_role(db, role_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("is_default") is True:
        _clear_other_defaults(db, role_id)
    elif update_data.get("is_default") is False and role.is_default:
        raise BadRequestError("Cannot unset the default role, mark another role as default instead")

    for field, value in update_data.items():
        if value is None and field != "description":
            continue
        setattr(role, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A role with this name already exists")
    db.refresh(role)
    return _to_response(db, role)


def deactivate_role(db: Session, role_id: uuid.UUID) -> RoleResponse:
    """
    Raises BadRequestError if active users still hold the role or if it is
    the only active default role.
    """
    role = _get_role(db, role_id)

    users = _active_user_count(db, role_id)
    if users > 0:
        raise BadRequestError(f"Cannot deactivate role: {users} active user(s) still assigned")

    if role.is_default:
        other_defaults = db.execute(
            select(func.count(Role.id)).where(
                Role.is_default.is_(True),
                Role.is_active.is_(True),
                Role.id != role_id,
            )
        ).scalar_one()
        if other_defaults == 0:
            raise BadRequestError("Cannot deactivate the only default role")

    role.is_active = False
    db.commit()
    db.refresh(role)

    logger.info("Role %s deactivated", role_id)
    return _to_response(db, role)
