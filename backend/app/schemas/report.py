"""
Pydantic schemas for the DSR and call reports.
Every figure defaults to zero so an empty range still yields a full report.
"""

import uuid
import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel


# ----------------------------------------------------------------
# Visit (DSR) reports
# ----------------------------------------------------------------

class VisitReportSummary(BaseModel):
    total_visits: int = 0
    completed_visits: int = 0
    total_photos: int = 0
    total_follow_ups: int = 0
    pending_follow_ups: int = 0
    total_payments: int = 0
    total_payment_amount: Decimal = Decimal("0")
    average_duration_minutes: float = 0.0


class VisitReportRow(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    company_name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: Optional[float] = None
    status: str
    purpose: Optional[str] = None
    photos_count: int = 0
    follow_ups_count: int = 0
    payments_count: int = 0
    payments_amount: Decimal = Decimal("0")


class DailyVisitReport(BaseModel):
    date: dt.date
    summary: VisitReportSummary
    status_breakdown: Dict[str, int] = {}
    visits: List[VisitReportRow] = []


class DaySummary(BaseModel):
    date: dt.date
    total_visits: int = 0
    completed_visits: int = 0
    pending_follow_ups: int = 0
    total_payment_amount: Decimal = Decimal("0")


class WeeklyVisitReport(BaseModel):
    start_date: dt.date
    end_date: dt.date
    summary: VisitReportSummary
    daily_summaries: List[DaySummary] = []
    average_visits_per_day: float = 0.0


class WeekStats(BaseModel):
    week: int
    start_date: dt.date
    end_date: dt.date
    total_visits: int = 0
    completed_visits: int = 0


class TopCompany(BaseModel):
    company_id: uuid.UUID
    company_name: Optional[str] = None
    visits: int


class MonthlyVisitReport(BaseModel):
    year: int
    month: int
    start_date: dt.date
    end_date: dt.date
    summary: VisitReportSummary
    weekly_stats: List[WeekStats] = []
    status_counts: Dict[str, int] = {}
    top_companies: List[TopCompany] = []
    payments_by_method: Dict[str, Decimal] = {}
    total_payments_amount: Decimal = Decimal("0")


# ----------------------------------------------------------------
# Call reports
# ----------------------------------------------------------------

class CallReportSummary(BaseModel):
    total_calls: int = 0
    completed_calls: int = 0
    missed_calls: int = 0
    pending_calls: int = 0
    cancelled_calls: int = 0
    total_duration_minutes: float = 0.0
    average_duration_minutes: float = 0.0


class CallDayStats(BaseModel):
    date: dt.date
    total_calls: int = 0
    completed_calls: int = 0
    missed_calls: int = 0
    cancelled_calls: int = 0


class CallWeekStats(BaseModel):
    week: int
    start_date: dt.date
    end_date: dt.date
    total_calls: int = 0
    completed_calls: int = 0


class CallReport(BaseModel):
    start_date: dt.date
    end_date: dt.date
    summary: CallReportSummary
    daily_stats: List[CallDayStats] = []
    weekly_stats: List[CallWeekStats] = []


# ----------------------------------------------------------------
# Nightly snapshot
# ----------------------------------------------------------------

class DailySnapshot(BaseModel):
    user_id: uuid.UUID
    date: dt.date
    visits_count: int = 0
    calls_count: int = 0
    payments_collected: Decimal = Decimal("0")
    new_contacts_count: int = 0
