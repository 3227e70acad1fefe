"""
Password hashing (passlib bcrypt) and JWT issuing/decoding (python-jose).

Access and refresh tokens are signed with different secrets so that one can
never be replayed as the other.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(subject: Any, extra: Optional[dict] = None) -> str:
    """Signs a short-lived access token whose `sub` is the user id."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": str(subject), "exp": expire, "type": "access"}
    if extra:
        to_encode.update(extra)
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_refresh_token(subject: Any) -> tuple[str, datetime]:
    """
    Signs a refresh token and returns it with its expiry.
    The jti makes two tokens issued in the same second distinct.
    """
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    to_encode = {"sub": str(subject), "exp": expire, "type": "refresh", "jti": uuid.uuid4().hex}
    token = jwt.encode(to_encode, settings.REFRESH_SECRET_KEY, algorithm=settings.ALGORITHM)
    return token, expire


def decode_access_token(token: str) -> Optional[str]:
    """Returns the user id carried by a valid access token, None otherwise."""
    return _decode(token, settings.SECRET_KEY, "access")


def decode_refresh_token(token: str) -> Optional[str]:
    return _decode(token, settings.REFRESH_SECRET_KEY, "refresh")


def _decode(token: str, secret: str, expected_type: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload.get("sub")
