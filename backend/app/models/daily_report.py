"""
SQLAlchemy model for the per-user activity snapshot built every night.
"""

import uuid
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class DailyReport(Base):
    __tablename__ = "daily_reports"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_daily_reports_user_date"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    visits_count = Column(Integer, default=0)
    calls_count = Column(Integer, default=0)
    payments_collected = Column(Numeric(12, 2), default=0)
    new_contacts_count = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())
