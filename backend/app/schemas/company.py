"""
Pydantic schemas for companies and their contacts.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

COMPANY_TYPES = {"customer", "distributor", "supplier", "partner", "other"}
COMPANY_STATUSES = {"pending", "approved", "rejected"}


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class CompanyCreate(BaseModel):
    name: str = Field(..., max_length=100)
    code: str = Field(..., max_length=20)
    type: str
    address: Optional[Address] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    website: Optional[str] = None
    gst_number: Optional[str] = Field(None, max_length=20)
    pan_number: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    logo: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    area_id: Optional[uuid.UUID] = None

    @field_validator("name", "code")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be empty.")
        return v.strip()

    @field_validator("type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        if v not in COMPANY_TYPES:
            raise ValueError(f"Invalid company type. Accepted values: {sorted(COMPANY_TYPES)}")
        return v


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    type: Optional[str] = None
    address: Optional[Address] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    website: Optional[str] = None
    gst_number: Optional[str] = Field(None, max_length=20)
    pan_number: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    logo: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    area_id: Optional[uuid.UUID] = None

    @field_validator("type")
    @classmethod
    def valid_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in COMPANY_TYPES:
            raise ValueError(f"Invalid company type. Accepted values: {sorted(COMPANY_TYPES)}")
        return v


class CompanyDecision(BaseModel):
    """Body of approve/reject. A reason is mandatory when rejecting."""
    reason: Optional[str] = Field(None, max_length=500)


class ContactCreate(BaseModel):
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    designation: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    alternate_phone: Optional[str] = Field(None, max_length=20)
    is_decision_maker: bool = False
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("first_name", "last_name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty.")
        return v.strip()


class ContactUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    designation: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    alternate_phone: Optional[str] = Field(None, max_length=20)
    is_decision_maker: Optional[bool] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = Field(None, max_length=500)


class ContactResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    first_name: str
    last_name: str
    designation: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    alternate_phone: Optional[str] = None
    is_decision_maker: bool
    is_active: bool
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CompanyResponse(BaseModel):
    id: uuid.UUID
    name: str
    code: str
    type: str
    address: Optional[dict] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    gst_number: Optional[str] = None
    pan_number: Optional[str] = None
    description: Optional[str] = None
    logo: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str
    status_reason: Optional[str] = None
    is_active: bool
    area_id: Optional[uuid.UUID] = None
    created_by_id: Optional[uuid.UUID] = None
    approved_by_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CompanyDetail(CompanyResponse):
    contacts: List[ContactResponse] = []


class CompanySummary(BaseModel):
    id: uuid.UUID
    name: str
    code: str

    model_config = {"from_attributes": True}


class NearbyCompany(BaseModel):
    id: uuid.UUID
    name: str
    code: str
    type: str
    address: Optional[dict] = None
    latitude: float
    longitude: float
    distance_km: float
