"""
DSR and call reports, plus the nightly per-user snapshot job.

Read-only aggregations over visits, photos, follow-ups, payments and calls.
An empty range gives a zeroed report, never an error.
"""

import calendar
import csv
import io
import uuid
import logging
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import BadRequestError, StorageError
from app.models.call import Call
from app.models.company import Company, Contact
from app.models.daily_report import DailyReport
from app.models.user import User
from app.models.visit import FollowUp, Payment, Visit, VisitPhoto
from app.schemas.report import (
    CallDayStats,
    CallReport,
    CallReportSummary,
    CallWeekStats,
    DailySnapshot,
    DailyVisitReport,
    DaySummary,
    MonthlyVisitReport,
    TopCompany,
    VisitReportRow,
    VisitReportSummary,
    WeeklyVisitReport,
    WeekStats,
)
from app.services import call_service, storage_service

logger = logging.getLogger(__name__)

COMPLETED_STATUSES = {"CHECKED_OUT", "COMPLETED"}
TOP_COMPANIES = 5


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _duration_minutes(visit) -> Optional[float]:
    if visit.end_time is None or visit.start_time is None:
        return None
    return (_as_utc(visit.end_time) - _as_utc(visit.start_time)).total_seconds() / 60


def _days(start: date, end: date) -> list[date]:
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def _week_chunks(start: date, end: date) -> list[tuple[date, date]]:
    """7-day chunks from start; the last one is cut at end."""
    chunks = []
    chunk_start = start
    while chunk_start <= end:
        chunk_end = min(chunk_start + timedelta(days=6), end)
        chunks.append((chunk_start, chunk_end))
        chunk_start = chunk_end + timedelta(days=1)
    return chunks


# ----------------------------------------------------------------
# Data loading
# ----------------------------------------------------------------

def _load_visits(
    db: Session,
    user_id: uuid.UUID,
    start: date,
    end: date,
    area_id: Optional[uuid.UUID] = None,
) -> list:
    """(Visit, Company) rows whose start_time falls in [start, end], both inclusive."""
    stmt = (
        select(Visit, Company)
        .join(Company, Company.id == Visit.company_id)
        .where(
            Visit.user_id == user_id,
            Visit.start_time >= _day_start(start),
            Visit.start_time < _day_start(end + timedelta(days=1)),
        )
    )
    if area_id:
        stmt = stmt.where(Company.area_id == area_id)
    return db.execute(stmt.order_by(Visit.start_time)).all()


def _load_attachments(db: Session, visit_ids: list) -> dict:
    """Per-visit photo/follow-up/payment counts, open follow-ups, payment amounts and amounts per method."""
    attachments = {
        "photos": {},
        "follow_ups": {},
        "pending_follow_ups": {},
        "payments": {},
        "amounts": {},
        "by_method": defaultdict(Decimal),
    }
    if not visit_ids:
        return attachments

    for key, model in (("photos", VisitPhoto), ("follow_ups", FollowUp)):
        rows = db.execute(
            select(model.visit_id, func.count(model.id))
            .where(model.visit_id.in_(visit_ids))
            .group_by(model.visit_id)
        ).all()
        attachments[key] = {visit_id: count for visit_id, count in rows}

    rows = db.execute(
        select(FollowUp.visit_id, func.count(FollowUp.id))
        .where(FollowUp.visit_id.in_(visit_ids), FollowUp.status == "PENDING")
        .group_by(FollowUp.visit_id)
    ).all()
    attachments["pending_follow_ups"] = {visit_id: count for visit_id, count in rows}

    rows = db.execute(
        select(Payment.visit_id, Payment.payment_method, func.count(Payment.id), func.sum(Payment.amount))
        .where(Payment.visit_id.in_(visit_ids))
        .group_by(Payment.visit_id, Payment.payment_method)
    ).all()
    for visit_id, method, count, amount in rows:
        amount = Decimal(amount or 0)
        attachments["payments"][visit_id] = attachments["payments"].get(visit_id, 0) + count
        attachments["amounts"][visit_id] = attachments["amounts"].get(visit_id, Decimal("0")) + amount
        attachments["by_method"][method] += amount
    return attachments


# ----------------------------------------------------------------
# Aggregation
# ----------------------------------------------------------------

def summarize_visits(rows: list, attachments: dict) -> VisitReportSummary:
    visits = [visit for visit, _ in rows]
    durations = [
        d for d in (_duration_minutes(v) for v in visits if v.status in COMPLETED_STATUSES)
        if d is not None
    ]
    return VisitReportSummary(
        total_visits=len(visits),
        completed_visits=sum(1 for v in visits if v.status in COMPLETED_STATUSES),
        total_photos=sum(attachments["photos"].get(v.id, 0) for v in visits),
        total_follow_ups=sum(attachments["follow_ups"].get(v.id, 0) for v in visits),
        pending_follow_ups=sum(attachments["pending_follow_ups"].get(v.id, 0) for v in visits),
        total_payments=sum(attachments["payments"].get(v.id, 0) for v in visits),
        total_payment_amount=sum(
            (attachments["amounts"].get(v.id, Decimal("0")) for v in visits), Decimal("0")
        ),
        average_duration_minutes=round(sum(durations) / len(durations), 1) if durations else 0.0,
    )


def _visit_row(visit, company, attachments: dict) -> VisitReportRow:
    duration = _duration_minutes(visit)
    return VisitReportRow(
        id=visit.id,
        company_id=visit.company_id,
        company_name=company.name if company is not None else None,
        start_time=visit.start_time,
        end_time=visit.end_time,
        duration_minutes=round(duration, 1) if duration is not None else None,
        status=visit.status,
        purpose=visit.purpose,
        photos_count=attachments["photos"].get(visit.id, 0),
        follow_ups_count=attachments["follow_ups"].get(visit.id, 0),
        payments_count=attachments["payments"].get(visit.id, 0),
        payments_amount=attachments["amounts"].get(visit.id, Decimal("0")),
    )


def _visits_on(rows: list, day: date) -> list:
    return [(v, c) for v, c in rows if _as_utc(v.start_time).date() == day]


# ----------------------------------------------------------------
# Visit reports
# ----------------------------------------------------------------

def get_daily_report(
    db: Session,
    user_id: uuid.UUID,
    day: date,
    area_id: Optional[uuid.UUID] = None,
) -> DailyVisitReport:
    rows = _load_visits(db, user_id, day, day, area_id)
    attachments = _load_attachments(db, [v.id for v, _ in rows])
    return DailyVisitReport(
        date=day,
        summary=summarize_visits(rows, attachments),
        status_breakdown=dict(Counter(v.status for v, _ in rows)),
        visits=[_visit_row(v, c, attachments) for v, c in rows],
    )


def get_weekly_report(
    db: Session,
    user_id: uuid.UUID,
    start_date: date,
    end_date: Optional[date] = None,
    area_id: Optional[uuid.UUID] = None,
) -> WeeklyVisitReport:
    """end_date defaults to start_date + 6 days."""
    end_date = end_date or start_date + timedelta(days=6)
    if end_date < start_date:
        raise BadRequestError("end_date cannot be earlier than start_date")

    rows = _load_visits(db, user_id, start_date, end_date, area_id)
    attachments = _load_attachments(db, [v.id for v, _ in rows])

    daily = []
    for day in _days(start_date, end_date):
        day_rows = _visits_on(rows, day)
        daily.append(DaySummary(
            date=day,
            total_visits=len(day_rows),
            completed_visits=sum(1 for v, _ in day_rows if v.status in COMPLETED_STATUSES),
            pending_follow_ups=sum(attachments["pending_follow_ups"].get(v.id, 0) for v, _ in day_rows),
            total_payment_amount=sum(
                (attachments["amounts"].get(v.id, Decimal("0")) for v, _ in day_rows), Decimal("0")
            ),
        ))

    return WeeklyVisitReport(
        start_date=start_date,
        end_date=end_date,
        summary=summarize_visits(rows, attachments),
        daily_summaries=daily,
        average_visits_per_day=round(len(rows) / len(daily), 2) if daily else 0.0,
    )


def get_monthly_report(
    db: Session,
    user_id: uuid.UUID,
    year: int,
    month: int,
    area_id: Optional[uuid.UUID] = None,
) -> MonthlyVisitReport:
    """Whole calendar month, split in 7-day chunks starting on the 1st."""
    start_date, end_date = _month_bounds(year, month)

    rows = _load_visits(db, user_id, start_date, end_date, area_id)
    attachments = _load_attachments(db, [v.id for v, _ in rows])

    weekly = []
    for week, (chunk_start, chunk_end) in enumerate(_week_chunks(start_date, end_date), start=1):
        chunk_rows = [
            (v, c) for v, c in rows
            if chunk_start <= _as_utc(v.start_time).date() <= chunk_end
        ]
        weekly.append(WeekStats(
            week=week,
            start_date=chunk_start,
            end_date=chunk_end,
            total_visits=len(chunk_rows),
            completed_visits=sum(1 for v, _ in chunk_rows if v.status in COMPLETED_STATUSES),
        ))

    per_company = Counter(v.company_id for v, _ in rows)
    names = {c.id: c.name for _, c in rows if c is not None}
    top = [
        TopCompany(company_id=company_id, company_name=names.get(company_id), visits=count)
        for company_id, count in per_company.most_common(TOP_COMPANIES)
    ]
    summary = summarize_visits(rows, attachments)

    return MonthlyVisitReport(
        year=year,
        month=month,
        start_date=start_date,
        end_date=end_date,
        summary=summary,
        weekly_stats=weekly,
        status_counts=dict(Counter(v.status for v, _ in rows)),
        top_companies=top,
        payments_by_method=dict(attachments["by_method"]),
        total_payments_amount=summary.total_payment_amount,
    )


# ----------------------------------------------------------------
# Call reports
# ----------------------------------------------------------------

def _call_day(call) -> date:
    moment = call.scheduled_time or call.actual_start_time
    return _as_utc(moment).date()


def summarize_calls(calls: list, start_date: date, end_date: date) -> CallReport:
    statuses = Counter(c.status for c in calls)
    completed = statuses.get("COMPLETED", 0)
    total_minutes = sum(c.duration or 0 for c in calls) / 60

    by_day = defaultdict(list)
    for call in calls:
        by_day[_call_day(call)].append(call)
    daily = []
    for day in sorted(by_day):
        day_statuses = Counter(c.status for c in by_day[day])
        daily.append(CallDayStats(
            date=day,
            total_calls=len(by_day[day]),
            completed_calls=day_statuses.get("COMPLETED", 0),
            missed_calls=day_statuses.get("MISSED", 0),
            cancelled_calls=day_statuses.get("CANCELLED", 0),
        ))

    return CallReport(
        start_date=start_date,
        end_date=end_date,
        summary=CallReportSummary(
            total_calls=len(calls),
            completed_calls=completed,
            missed_calls=statuses.get("MISSED", 0),
            pending_calls=statuses.get("SCHEDULED", 0),
            cancelled_calls=statuses.get("CANCELLED", 0),
            total_duration_minutes=round(total_minutes, 1),
            average_duration_minutes=round(total_minutes / completed, 1) if completed else 0.0,
        ),
        daily_stats=daily,
    )


def _load_calls(db: Session, user_id: uuid.UUID, start_date: date, end_date: date) -> list:
    return call_service.calls_in_range(
        db, user_id, _day_start(start_date), _day_start(end_date + timedelta(days=1))
    )


def get_daily_call_report(db: Session, user_id: uuid.UUID, day: date) -> CallReport:
    return summarize_calls(_load_calls(db, user_id, day, day), day, day)


def get_weekly_call_report(
    db: Session,
    user_id: uuid.UUID,
    start_date: date,
    end_date: Optional[date] = None,
) -> CallReport:
    """end_date defaults to start_date + 6 days."""
    end_date = end_date or start_date + timedelta(days=6)
    if end_date < start_date:
        raise BadRequestError("end_date cannot be earlier than start_date")
    return summarize_calls(_load_calls(db, user_id, start_date, end_date), start_date, end_date)


def get_monthly_call_report(db: Session, user_id: uuid.UUID, year: int, month: int) -> CallReport:
    start_date, end_date = _month_bounds(year, month)
    calls = _load_calls(db, user_id, start_date, end_date)
    report = summarize_calls(calls, start_date, end_date)

    for week, (chunk_start, chunk_end) in enumerate(_week_chunks(start_date, end_date), start=1):
        chunk = [c for c in calls if chunk_start <= _call_day(c) <= chunk_end]
        report.weekly_stats.append(CallWeekStats(
            week=week,
            start_date=chunk_start,
            end_date=chunk_end,
            total_calls=len(chunk),
            completed_calls=sum(1 for c in chunk if c.status == "COMPLETED"),
        ))
    return report


# ----------------------------------------------------------------
# Nightly snapshot job
# ----------------------------------------------------------------

def _snapshot_user(db: Session, user_id: uuid.UUID, day: date) -> DailySnapshot:
    start, end = _day_start(day), _day_start(day + timedelta(days=1))

    visits = db.execute(
        select(func.count(Visit.id)).where(
            Visit.user_id == user_id, Visit.start_time >= start, Visit.start_time < end,
        )
    ).scalar_one()
    calls = db.execute(
        select(func.count(Call.id)).where(
            Call.user_id == user_id, Call.scheduled_time >= start, Call.scheduled_time < end,
        )
    ).scalar_one()
    payments = db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0))
        .join(Visit, Visit.id == Payment.visit_id)
        .where(Visit.user_id == user_id, Payment.created_at >= start, Payment.created_at < end)
    ).scalar_one()
    contacts = db.execute(
        select(func.count(Contact.id)).where(
            Contact.created_by_id == user_id, Contact.created_at >= start, Contact.created_at < end,
        )
    ).scalar_one()

    return DailySnapshot(
        user_id=user_id,
        date=day,
        visits_count=visits,
        calls_count=calls,
        payments_collected=Decimal(payments or 0),
        new_contacts_count=contacts,
    )


def generate_daily_reports(db: Session, day: date) -> list[DailySnapshot]:
    """
    Stores one DailyReport per active user for `day` (updated if it already
    exists), then uploads an organisation-wide CSV. A failure for one user is
    logged and does not stop the others.
    """
    users = db.execute(select(User).where(User.is_active.is_(True))).scalars().all()
    logger.info("Generating daily reports for %s (%d users)", day, len(users))

    snapshots = []
    for user in users:
        try:
            snapshot = _snapshot_user(db, user.id, day)
            report = (
                db.query(DailyReport)
                .filter(DailyReport.user_id == user.id, DailyReport.date == day)
                .first()
            )
            if report is None:
                report = DailyReport(user_id=user.id, date=day)
                db.add(report)
            report.visits_count = snapshot.visits_count
            report.calls_count = snapshot.calls_count
            report.payments_collected = snapshot.payments_collected
            report.new_contacts_count = snapshot.new_contacts_count
            db.commit()
            snapshots.append(snapshot)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Daily report failed for user %s: %s", user.id, exc)

    try:
        url = upload_organization_report(users, snapshots, day)
        logger.info("Organisation report for %s stored at %s", day, url)
    except StorageError as exc:
        logger.error("Organisation report upload failed for %s: %s", day, exc)

    return snapshots


def build_organization_csv(users: list, snapshots: list[DailySnapshot], day: date) -> str:
    names = {u.id: (f"{u.first_name} {u.last_name}", u.email) for u in users}
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["date", "user_id", "name", "email", "visits", "calls", "payments_collected", "new_contacts"])
    for s in snapshots:
        name, email = names.get(s.user_id, ("", ""))
        writer.writerow([
            day.isoformat(), s.user_id, name, email,
            s.visits_count, s.calls_count, s.payments_collected, s.new_contacts_count,
        ])
    writer.writerow([
        day.isoformat(), "TOTAL", "", "",
        sum(s.visits_count for s in snapshots),
        sum(s.calls_count for s in snapshots),
        sum((s.payments_collected for s in snapshots), Decimal("0")),
        sum(s.new_contacts_count for s in snapshots),
    ])
    return buffer.getvalue()


def upload_organization_report(users: list, snapshots: list[DailySnapshot], day: date) -> str:
    key = f"reports/organization/{day.year}/{day.month:02d}/daily-{day.isoformat()}.csv"
    content = build_organization_csv(users, snapshots, day).encode("utf-8")
    return storage_service.store(content, "text/csv", "reports/organization", key=key)
