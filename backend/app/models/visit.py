"""
SQLAlchemy models for field visits (DSR) and what gets attached to them:
photos, follow-ups and payments.
"""

import uuid
from sqlalchemy import (
    Column, Date, DateTime, Float, ForeignKey, Index, Numeric, String, Text, func, text,
)
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class Visit(Base):
    """One representative's engagement with one company."""
    __tablename__ = "visits"
    __table_args__ = (
        # At most one open check-in per user, enforced by the database
        Index(
            "uq_visits_user_active_check_in",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'CHECKED_IN'"),
        ),
        Index("idx_visits_user_start", "user_id", "start_time"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)  # NULL until checked out
    # PLANNED, CHECKED_IN, PHOTOS_UPLOADED, DETAILS_CAPTURED, PAYMENT_RECORDED,
    # CHECKED_OUT, COMPLETED, CANCELLED
    status = Column(String(20), nullable=False, default="PLANNED")
    purpose = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)
    location = Column(String(100), nullable=True)  # "POINT(lon lat)"
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class VisitPhoto(Base):
    __tablename__ = "visit_photos"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    visit_id = Column(UUID(as_uuid=True), ForeignKey("visits.id", ondelete="CASCADE"), nullable=False)
    photo_url = Column(String(500), nullable=False)
    caption = Column(String(100), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class FollowUp(Base):
    __tablename__ = "follow_ups"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    visit_id = Column(UUID(as_uuid=True), ForeignKey("visits.id", ondelete="CASCADE"), nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String(20), default="PENDING")    # PENDING, COMPLETED, CANCELLED
    priority = Column(String(10), default="MEDIUM")   # LOW, MEDIUM, HIGH
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Payment(Base):
    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    visit_id = Column(UUID(as_uuid=True), ForeignKey("visits.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(20), nullable=False)  # CASH, CHEQUE, ONLINE, UPI, BANK_TRANSFER
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
