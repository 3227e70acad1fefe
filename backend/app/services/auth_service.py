"""
Authentication: signup, login, refresh-token rotation, logout and profile.

Refresh tokens are stored server side so that logout and rotation actually
revoke them; expired ones are purged by the nightly cleanup job.
"""

import uuid
import logging
from datetime import datetime, timezone

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from app.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from app.models.user import RefreshToken, Role, User
from app.schemas.auth import LoginResponse, ProfileResponse, SignupRequest, TokenPair

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _issue_tokens(db: Session, user: User) -> TokenPair:
    """Signs an access token and stores a new refresh token (caller commits)."""
    access_token = create_access_token(user.id)
    refresh_token, expires_at = create_refresh_token(user.id)
    db.add(RefreshToken(token=refresh_token, user_id=user.id, expires_at=expires_at))
    return TokenPair(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def _to_profile(user: User, role) -> ProfileResponse:
    return ProfileResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone_number=user.phone_number,
        role_id=user.role_id,
        role_name=role.name if role is not None else "",
        permissions=list(role.permissions or []) if role is not None else [],
        last_login=user.last_login,
    )


def signup(db: Session, data: SignupRequest) -> LoginResponse:
    """Self-registration with the default role. Raises ConflictError if the email is taken."""
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first() is not None:
        raise ConflictError("Email already in use")

    role = db.query(Role).filter(Role.is_default.is_(True), Role.is_active.is_(True)).first()
    if role is None:
        raise BadRequestError("No default role is configured, contact an administrator")

    user = User(
        email=email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
        role_id=role.id,
        is_active=True,
    )
    db.add(user)
    try:
        db.flush()  # user.id is needed for the tokens
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already in use")

    tokens = _issue_tokens(db, user)
    db.commit()
    db.refresh(user)

    logger.info("User %s signed up", user.id)
    return LoginResponse(user=_to_profile(user, role), tokens=tokens)


def login(db: Session, email: str, password: str) -> LoginResponse:
    """
    Raises UnauthorizedError on unknown email or wrong password (same message
    for both), ForbiddenError if the account is deactivated.
    """
    user = db.query(User).filter(User.email == email.lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")
    if not user.is_active:
        raise ForbiddenError("Account is deactivated")

    user.last_login = datetime.now(timezone.utc)
    tokens = _issue_tokens(db, user)
    db.commit()
    db.refresh(user)

    logger.info("User %s logged in", user.id)
    return LoginResponse(user=_to_profile(user, db.get(Role, user.role_id)), tokens=tokens)


def refresh(db: Session, refresh_token: str) -> TokenPair:
    """Exchanges a valid stored refresh token for a new pair; the old one is revoked."""
    subject = decode_refresh_token(refresh_token)
    if subject is None:
        raise UnauthorizedError("Invalid refresh token")

    stored = db.query(RefreshToken).filter(RefreshToken.token == refresh_token).first()
    if stored is None:
        raise UnauthorizedError("Invalid refresh token")
    if _as_utc(stored.expires_at) < datetime.now(timezone.utc):
        db.delete(stored)
        db.commit()
        raise UnauthorizedError("Refresh token expired")

    user = db.get(User, stored.user_id)
    if user is None or str(user.id) != subject:
        raise UnauthorizedError("Invalid refresh token")
    if not user.is_active:
        raise ForbiddenError("Account is deactivated")

    db.delete(stored)
    tokens = _issue_tokens(db, user)
    db.commit()
    return tokens


def logout(db: Session, refresh_token: str) -> None:
    """Revokes the refresh token. Unknown tokens are ignored."""
    db.execute(delete(RefreshToken).where(RefreshToken.token == refresh_token))
    db.commit()


def get_profile(db: Session, user_id: uuid.UUID) -> ProfileResponse:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return _to_profile(user, db.get(Role, user.role_id))


def revoke_user_tokens(db: Session, user_id: uuid.UUID) -> None:
    """Deletes every refresh token of a user (caller commits)."""
    db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))


def cleanup_expired_tokens(db: Session) -> int:
    """Deletes expired refresh tokens and returns how many were removed."""
    result = db.execute(
        delete(RefreshToken).where(RefreshToken.expires_at < datetime.now(timezone.utc))
    )
    db.commit()
    return result.rowcount or 0
