"""
Pydantic schemas for scheduled calls.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

CALL_STATUSES = {"SCHEDULED", "IN_PROGRESS", "COMPLETED", "MISSED", "CANCELLED"}


class CallCreate(BaseModel):
    contact_id: Optional[uuid.UUID] = None
    company_id: Optional[uuid.UUID] = None
    scheduled_time: datetime
    purpose: str = Field(..., max_length=200)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("purpose")
    @classmethod
    def purpose_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Purpose cannot be empty.")
        return v.strip()

    @model_validator(mode="after")
    def contact_or_company(self):
        if self.contact_id is None and self.company_id is None:
            raise ValueError("Either contact_id or company_id must be provided.")
        return self


class CallUpdate(BaseModel):
    scheduled_time: Optional[datetime] = None
    purpose: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    outcome: Optional[str] = Field(None, max_length=500)


class CallEnd(BaseModel):
    outcome: str = Field(..., max_length=500)
    notes: Optional[str] = Field(None, max_length=500)


class CallCancel(BaseModel):
    reason: str = Field(..., max_length=500)

    @field_validator("reason")
    @classmethod
    def reason_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("A cancellation reason is required.")
        return v.strip()


class CallResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    contact_id: Optional[uuid.UUID] = None
    company_id: Optional[uuid.UUID] = None
    scheduled_time: datetime
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    duration: Optional[int] = None
    status: str
    purpose: str
    notes: Optional[str] = None
    outcome: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
