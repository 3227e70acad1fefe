"""
User administration: listing, creation, update, deactivation, password reset.
"""

import uuid
import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.security import hash_password
from app.exceptions import ConflictError, NotFoundError
from app.models.user import Role, User
from app.schemas.user import UserCreate, UserResponse, UserUpdate
from app.services import auth_service

logger = logging.getLogger(__name__)


def _get_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _check_role(db: Session, role_id: uuid.UUID) -> None:
    if db.get(Role, role_id) is None:
        raise NotFoundError("Role not found")


def get_users(
    db: Session,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
    role_id: Optional[uuid.UUID] = None,
    is_active: Optional[bool] = None,
) -> tuple[list[UserResponse], int]:
    stmt = select(User)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
            User.email.ilike(pattern),
        ))
    if role_id:
        stmt = stmt.where(User.role_id == role_id)
    if is_active is not None:
        stmt = stmt.where(User.is_active == is_active)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    users = db.execute(
        stmt.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return [UserResponse.model_validate(u) for u in users], total


def get_user(db: Session, user_id: uuid.UUID) -> UserResponse:
    return UserResponse.model_validate(_get_user(db, user_id))


def create_user(db: Session, data: UserCreate) -> UserResponse:
    _check_role(db, data.role_id)

    user = User(
        email=data.email.lower(),
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
        role_id=data.role_id,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already in use")
    db.refresh(user)

    logger.info("User %s created", user.id)
    return UserResponse.model_validate(user)


def update_user(db: Session, user_id: uuid.UUID, data: UserUpdate) -> UserResponse:
    user = _get_user(db, user_id)
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("role_id"):
        _check_role(db, update_data["role_id"])
    if update_data.get("email"):
        update_data["email"] = update_data["email"].lower()

    for field, value in update_data.items():
        if value is None and field != "phone_number":
            continue
        setattr(user, field, value)
    if update_data.get("is_active") is False:
        auth_service.revoke_user_tokens(db, user_id)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already in use")
    db.refresh(user)
    return UserResponse.model_validate(user)


def deactivate_user(db: Session, user_id: uuid.UUID) -> UserResponse:
    """Deactivates the account and revokes its refresh tokens."""
    user = _get_user(db, user_id)
    user.is_active = False
    auth_service.revoke_user_tokens(db, user_id)
    db.commit()
    db.refresh(user)

    logger.info("User %s deactivated", user_id)
    return UserResponse.model_validate(user)


def reset_password(db: Session, user_id: uuid.UUID, new_password: str) -> None:
    """Sets a new password and logs the user out of every device."""
    user = _get_user(db, user_id)
    user.password_hash = hash_password(new_password)
    auth_service.revoke_user_tokens(db, user_id)
    db.commit()
    logger.info("Password reset for user %s", user_id)
