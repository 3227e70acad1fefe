"""
Scheduled calls and their lifecycle:

    SCHEDULED → IN_PROGRESS → COMPLETED
    SCHEDULED → CANCELLED

MISSED is set outside this module. Only the user who scheduled a call can see
or change it.
"""

import uuid
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from app.models.call import Call
from app.models.company import Company, Contact
from app.schemas.call import CallCancel, CallCreate, CallEnd, CallResponse, CallUpdate
from app.utils.notes import append_note

logger = logging.getLogger(__name__)

LOG_STATUSES = ("COMPLETED", "MISSED")

SORT_COLUMNS = {
    "scheduled_time": Call.scheduled_time,
    "created_at": Call.created_at,
    "status": Call.status,
}


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _get_owned_call(db: Session, call_id: uuid.UUID, user_id: uuid.UUID) -> Call:
    call = db.get(Call, call_id)
    if call is None:
        raise NotFoundError("Call not found")
    if call.user_id != user_id:
        raise ForbiddenError("You do not have permission to access this call")
    return call


def _filtered(
    stmt,
    start_date: Optional[date],
    end_date: Optional[date],
    status: Optional[str],
    contact_id: Optional[uuid.UUID],
    company_id: Optional[uuid.UUID],
):
    if start_date is not None:
        stmt = stmt.where(Call.scheduled_time >= _day_start(start_date))
    if end_date is not None:
        stmt = stmt.where(Call.scheduled_time < _day_start(end_date + timedelta(days=1)))
    if status:
        stmt = stmt.where(Call.status == status)
    if contact_id:
        stmt = stmt.where(Call.contact_id == contact_id)
    if company_id:
        stmt = stmt.where(Call.company_id == company_id)
    return stmt


def _paginate(db: Session, stmt, page: int, limit: int, order_by) -> tuple[list[CallResponse], int]:
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    calls = db.execute(stmt.order_by(order_by).offset((page - 1) * limit).limit(limit)).scalars().all()
    return [CallResponse.model_validate(c) for c in calls], total


def get_calls(
    db: Session,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    contact_id: Optional[uuid.UUID] = None,
    company_id: Optional[uuid.UUID] = None,
    sort_by: str = "scheduled_time",
    order: str = "desc",
) -> tuple[list[CallResponse], int]:
    stmt = _filtered(select(Call).where(Call.user_id == user_id), start_date, end_date, status, contact_id, company_id)
    column = SORT_COLUMNS.get(sort_by, Call.scheduled_time)
    return _paginate(db, stmt, page, limit, column.asc() if order == "asc" else column.desc())


def get_call_logs(
    db: Session,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    contact_id: Optional[uuid.UUID] = None,
    company_id: Optional[uuid.UUID] = None,
) -> tuple[list[CallResponse], int]:
    """Finished calls (COMPLETED or MISSED); an explicit status filter replaces that default."""
    stmt = select(Call).where(Call.user_id == user_id)
    if not status:
        stmt = stmt.where(Call.status.in_(LOG_STATUSES))
    stmt = _filtered(stmt, start_date, end_date, status, contact_id, company_id)
    return _paginate(db, stmt, page, limit, Call.scheduled_time.desc())


def get_pending_calls(
    db: Session,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
) -> tuple[list[CallResponse], int]:
    """Calls still SCHEDULED although their time has passed."""
    stmt = select(Call).where(
        Call.user_id == user_id,
        Call.status == "SCHEDULED",
        Call.scheduled_time < datetime.now(timezone.utc),
    )
    return _paginate(db, stmt, page, limit, Call.scheduled_time.desc())


def get_call(db: Session, call_id: uuid.UUID, user_id: uuid.UUID) -> CallResponse:
    return CallResponse.model_validate(_get_owned_call(db, call_id, user_id))


def create_call(db: Session, user_id: uuid.UUID, data: CallCreate) -> CallResponse:
    """
    Schedules a call on a contact and/or a company.
    When only the contact is given, the call is attached to the contact's company too.
    """
    company_id = data.company_id
    if data.contact_id is not None:
        contact = db.get(Contact, data.contact_id)
        if contact is None:
            raise NotFoundError("Contact not found")
        company_id = company_id or contact.company_id
    if data.company_id is not None and db.get(Company, data.company_id) is None:
        raise NotFoundError("Company not found")

    call = Call(
        user_id=user_id,
        contact_id=data.contact_id,
        company_id=company_id,
        scheduled_time=data.scheduled_time,
        status="SCHEDULED",
        purpose=data.purpose,
        notes=data.notes,
    )
    db.add(call)
    db.commit()
    db.refresh(call)

    logger.info("Call %s scheduled by user %s at %s", call.id, user_id, data.scheduled_time)
    return CallResponse.model_validate(call)


def update_call(db: Session, call_id: uuid.UUID, user_id: uuid.UUID, data: CallUpdate) -> CallResponse:
    """Rescheduling is only possible while the call is still SCHEDULED."""
    call = _get_owned_call(db, call_id, user_id)
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("scheduled_time") is not None and call.status != "SCHEDULED":
        raise InvalidStateError("Only scheduled calls can be rescheduled")

    for field, value in update_data.items():
        if value is None and field in ("scheduled_time", "purpose"):
            continue
        setattr(call, field, value)
    db.commit()
    db.refresh(call)
    return CallResponse.model_validate(call)


def delete_call(db: Session, call_id: uuid.UUID, user_id: uuid.UUID) -> None:
    call = _get_owned_call(db, call_id, user_id)
    if call.status != "SCHEDULED":
        raise InvalidStateError("Only scheduled calls can be deleted")
    db.delete(call)
    db.commit()
    logger.info("Call %s deleted by user %s", call_id, user_id)


def start_call(db: Session, call_id: uuid.UUID, user_id: uuid.UUID) -> CallResponse:
    call = _get_owned_call(db, call_id, user_id)
    if call.status != "SCHEDULED":
        raise InvalidStateError(f"Cannot start a call with status {call.status}")

    call.status = "IN_PROGRESS"
    call.actual_start_time = datetime.now(timezone.utc)
    db.commit()
    db.refresh(call)
    return CallResponse.model_validate(call)


def end_call(db: Session, call_id: uuid.UUID, user_id: uuid.UUID, data: CallEnd) -> CallResponse:
    """IN_PROGRESS → COMPLETED; duration in seconds, notes appended."""
    call = _get_owned_call(db, call_id, user_id)
    if call.status != "IN_PROGRESS":
        raise InvalidStateError(f"Cannot end a call with status {call.status}")

    now = datetime.now(timezone.utc)
    started = call.actual_start_time or now
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)

    call.status = "COMPLETED"
    call.actual_end_time = now
    call.duration = max(int((now - started).total_seconds()), 0)
    call.outcome = data.outcome
    call.notes = append_note(call.notes, "Call notes", data.notes)
    db.commit()
    db.refresh(call)

    logger.info("Call %s completed after %s s", call_id, call.duration)
    return CallResponse.model_validate(call)


def cancel_call(db: Session, call_id: uuid.UUID, user_id: uuid.UUID, data: CallCancel) -> CallResponse:
    call = _get_owned_call(db, call_id, user_id)
    if call.status != "SCHEDULED":
        raise InvalidStateError(f"Cannot cancel a call with status {call.status}")

    call.status = "CANCELLED"
    call.notes = append_note(call.notes, "Cancellation reason", data.reason)
    db.commit()
    db.refresh(call)
    return CallResponse.model_validate(call)


def calls_in_range(db: Session, user_id: uuid.UUID, start: datetime, end: datetime) -> list:
    """Calls scheduled or actually started in [start, end)."""
    return db.execute(
        select(Call).where(
            Call.user_id == user_id,
            or_(
                (Call.scheduled_time >= start) & (Call.scheduled_time < end),
                (Call.actual_start_time >= start) & (Call.actual_start_time < end),
            ),
        )
    ).scalars().all()
