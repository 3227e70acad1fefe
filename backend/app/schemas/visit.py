"""
Pydantic schemas for field visits (DSR) and their photos, follow-ups and payments.
"""

import uuid
import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.company import CompanySummary

VISIT_STATUSES = (
    "PLANNED",
    "CHECKED_IN",
    "PHOTOS_UPLOADED",
    "DETAILS_CAPTURED",
    "PAYMENT_RECORDED",
    "CHECKED_OUT",
    "COMPLETED",
    "CANCELLED",
)
FOLLOW_UP_STATUSES = {"PENDING", "COMPLETED", "CANCELLED"}
FOLLOW_UP_PRIORITIES = {"LOW", "MEDIUM", "HIGH"}
PAYMENT_METHODS = {"CASH", "CHEQUE", "ONLINE", "UPI", "BANK_TRANSFER"}


class Location(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# ----------------------------------------------------------------
# Visits
# ----------------------------------------------------------------

class VisitCreate(BaseModel):
    """Schedules a visit for later (status PLANNED)."""
    company_id: uuid.UUID
    start_time: datetime
    purpose: str = Field(..., max_length=200)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("purpose")
    @classmethod
    def purpose_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Purpose cannot be empty.")
        return v.strip()


class VisitUpdate(BaseModel):
    end_time: Optional[datetime] = None
    status: Optional[str] = None
    purpose: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VISIT_STATUSES:
            raise ValueError(f"Invalid status. Accepted values: {list(VISIT_STATUSES)}")
        return v


class CheckInRequest(BaseModel):
    company_id: uuid.UUID
    purpose: str = Field(..., max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    location: Location

    @field_validator("purpose")
    @classmethod
    def purpose_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Purpose cannot be empty.")
        return v.strip()


class CheckOutRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)
    location: Location


class VisitResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    company_id: uuid.UUID
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str
    purpose: str
    notes: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VisitListItem(VisitResponse):
    company: Optional[CompanySummary] = None
    photos_count: int = 0
    follow_ups_count: int = 0
    payments_count: int = 0


# ----------------------------------------------------------------
# Photos
# ----------------------------------------------------------------

class VisitPhotoResponse(BaseModel):
    id: uuid.UUID
    visit_id: uuid.UUID
    photo_url: str
    caption: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------
# Follow-ups
# ----------------------------------------------------------------

class FollowUpCreate(BaseModel):
    due_date: dt.date
    priority: str = "MEDIUM"
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("priority")
    @classmethod
    def valid_priority(cls, v: str) -> str:
        if v not in FOLLOW_UP_PRIORITIES:
            raise ValueError(f"Invalid priority. Accepted values: {sorted(FOLLOW_UP_PRIORITIES)}")
        return v


class FollowUpUpdate(BaseModel):
    due_date: Optional[dt.date] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in FOLLOW_UP_STATUSES:
            raise ValueError(f"Invalid status. Accepted values: {sorted(FOLLOW_UP_STATUSES)}")
        return v

    @field_validator("priority")
    @classmethod
    def valid_priority(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in FOLLOW_UP_PRIORITIES:
            raise ValueError(f"Invalid priority. Accepted values: {sorted(FOLLOW_UP_PRIORITIES)}")
        return v


class FollowUpResponse(BaseModel):
    id: uuid.UUID
    visit_id: uuid.UUID
    due_date: dt.date
    status: str
    priority: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------
# Payments
# ----------------------------------------------------------------

class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_method: str
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("payment_method")
    @classmethod
    def valid_method(cls, v: str) -> str:
        if v not in PAYMENT_METHODS:
            raise ValueError(f"Invalid payment method. Accepted values: {sorted(PAYMENT_METHODS)}")
        return v


class PaymentResponse(BaseModel):
    id: uuid.UUID
    visit_id: uuid.UUID
    amount: Decimal
    payment_method: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VisitDetail(VisitResponse):
    """Visit with everything attached to it, newest first."""
    company: Optional[CompanySummary] = None
    photos: List[VisitPhotoResponse] = []
    follow_ups: List[FollowUpResponse] = []
    payments: List[PaymentResponse] = []
