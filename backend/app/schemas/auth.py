"""
Pydantic schemas for authentication: signup, login, token refresh, profile.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, field_validator


class SignupRequest(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    password: str
    phone_number: Optional[str] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty.")
        return v.strip()

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long.")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class CurrentUser(BaseModel):
    """Identity attached to each authenticated request."""
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role_id: uuid.UUID
    role_name: str
    permissions: List[str] = []

    def has_permissions(self, required: List[str]) -> bool:
        return all(p in self.permissions for p in required)


class ProfileResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role_id: uuid.UUID
    role_name: str
    permissions: List[str] = []
    last_login: Optional[datetime] = None


class LoginResponse(BaseModel):
    user: ProfileResponse
    tokens: TokenPair
