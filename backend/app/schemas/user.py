"""
Pydantic schemas for user and role administration.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, field_validator


# ----------------------------------------------------------------
# Users
# ----------------------------------------------------------------

class UserCreate(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    password: str
    phone_number: Optional[str] = None
    role_id: uuid.UUID

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


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    role_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class PasswordReset(BaseModel):
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long.")
        return v


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role_id: uuid.UUID
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------
# Roles
# ----------------------------------------------------------------

class RoleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    permissions: List[str] = []
    is_default: bool = False

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Role name cannot be empty.")
        return v.strip()

    @field_validator("permissions")
    @classmethod
    def permissions_format(cls, v: List[str]) -> List[str]:
        for perm in v:
            if ":" not in perm:
                raise ValueError(f"Invalid permission '{perm}', expected 'action:resource'.")
        return sorted(set(v))


class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    permissions: Optional[List[str]] = None
    is_default: Optional[bool] = None

    @field_validator("permissions")
    @classmethod
    def permissions_format(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        for perm in v:
            if ":" not in perm:
                raise ValueError(f"Invalid permission '{perm}', expected 'action:resource'.")
        return sorted(set(v))


class RoleResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    permissions: List[str] = []
    is_default: bool
    is_active: bool
    user_count: int = 0
    created_at: Optional[datetime] = None


class PermissionItem(BaseModel):
    key: str
    description: str


PermissionCatalog = Dict[str, List[PermissionItem]]
