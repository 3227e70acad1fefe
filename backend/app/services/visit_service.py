"""
Visit lifecycle: scheduling, check-in, photos, follow-ups, payments, check-out.

Status order:
    PLANNED → CHECKED_IN → PHOTOS_UPLOADED → DETAILS_CAPTURED
            → PAYMENT_RECORDED → CHECKED_OUT → COMPLETED
with CANCELLED as an alternate terminal status.

The status is a partial order, not a strict chain: it records which
activities already happened on the visit. Attaching a photo, a follow-up or a
payment may promote the status as a side effect, only forward and only from
the source statuses listed below. A follow-up created right after check-in
therefore jumps straight to DETAILS_CAPTURED.

Invariants:
- end_time is set if and only if the status is terminal;
- a user owns at most one CHECKED_IN visit (pre-check here, enforced by the
  partial unique index uq_visits_user_active_check_in);
- only the owning user reads or mutates a visit (assert_owns_visit).
"""

import uuid
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from app.models.company import Company
from app.models.visit import FollowUp, Payment, Visit, VisitPhoto
from app.schemas.company import CompanySummary
from app.schemas.visit import (
    CheckInRequest,
    CheckOutRequest,
    FollowUpCreate,
    FollowUpResponse,
    PaymentCreate,
    PaymentResponse,
    VisitCreate,
    VisitDetail,
    VisitListItem,
    VisitPhotoResponse,
    VisitResponse,
    VisitUpdate,
)
from app.services import cache_service, storage_service
from app.utils.geo import to_wkt_point
from app.utils.notes import append_note

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"CHECKED_OUT", "COMPLETED", "CANCELLED"}
PHOTO_UPLOAD_STATUSES = {"CHECKED_IN", "PHOTOS_UPLOADED", "DETAILS_CAPTURED"}
FOLLOW_UP_PROMOTING_STATUSES = {"CHECKED_IN", "PHOTOS_UPLOADED"}
CHECK_OUT_STATUSES = {"CHECKED_IN", "PHOTOS_UPLOADED", "DETAILS_CAPTURED", "PAYMENT_RECORDED"}
# Payment never moves these back to PAYMENT_RECORDED
PAYMENT_KEEPS_STATUSES = {"PAYMENT_RECORDED"} | TERMINAL_STATUSES

SORT_COLUMNS = {
    "start_time": Visit.start_time,
    "end_time": Visit.end_time,
    "created_at": Visit.created_at,
    "status": Visit.status,
}


# ----------------------------------------------------------------
# Guards
# ----------------------------------------------------------------

def assert_owns_visit(visit, user_id: uuid.UUID) -> None:
    """Raises NotFoundError if the visit is missing, ForbiddenError if it belongs to someone else."""
    if visit is None:
        raise NotFoundError("Visit not found")
    if visit.user_id != user_id:
        raise ForbiddenError("You do not have permission to access this visit")


def _get_owned_visit(db: Session, visit_id: uuid.UUID, user_id: uuid.UUID) -> Visit:
    visit = db.get(Visit, visit_id)
    assert_owns_visit(visit, user_id)
    return visit


def _get_company(db: Session, company_id: uuid.UUID) -> Company:
    company = db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _invalidate(visit_id: uuid.UUID) -> None:
    cache_service.delete(cache_service.visit_key(visit_id))


# ----------------------------------------------------------------
# Scheduling and reads
# ----------------------------------------------------------------

def create_visit(db: Session, user_id: uuid.UUID, data: VisitCreate) -> VisitResponse:
    """Schedules a visit in PLANNED. Raises NotFoundError if the company does not exist."""
    _get_company(db, data.company_id)

    visit = Visit(
        user_id=user_id,
        company_id=data.company_id,
        start_time=data.start_time,
        status="PLANNED",
        purpose=data.purpose,
        notes=data.notes,
    )
    db.add(visit)
    db.commit()
    db.refresh(visit)

    logger.info("Visit %s planned by user %s for company %s", visit.id, user_id, data.company_id)
    return VisitResponse.model_validate(visit)


def get_visits(
    db: Session,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    company_id: Optional[uuid.UUID] = None,
    area_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    sort_by: str = "start_time",
    order: str = "desc",
) -> tuple[list[VisitListItem], int]:
    """
    Paginated list of the caller's visits with photo/follow-up/payment counts.
    Dates filter on start_time; end_date is inclusive.
    """
    stmt = (
        select(Visit, Company)
        .join(Company, Company.id == Visit.company_id)
        .where(Visit.user_id == user_id)
    )
    if start_date is not None:
        stmt = stmt.where(Visit.start_time >= datetime.combine(start_date, time.min, tzinfo=timezone.utc))
    if end_date is not None:
        stmt = stmt.where(
            Visit.start_time < datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        )
    if status:
        stmt = stmt.where(Visit.status == status)
    if company_id:
        stmt = stmt.where(Visit.company_id == company_id)
    if area_id:
        stmt = stmt.where(Company.area_id == area_id)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            Visit.purpose.ilike(pattern),
            Visit.notes.ilike(pattern),
            Company.name.ilike(pattern),
        ))

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

    column = SORT_COLUMNS.get(sort_by, Visit.start_time)
    stmt = stmt.order_by(column.asc() if order == "asc" else column.desc())
    rows = db.execute(stmt.offset((page - 1) * limit).limit(limit)).all()

    visit_ids = [visit.id for visit, _ in rows]
    photos = _count_by_visit(db, VisitPhoto, visit_ids)
    follow_ups = _count_by_visit(db, FollowUp, visit_ids)
    payments = _count_by_visit(db, Payment, visit_ids)

    items = []
    for visit, company in rows:
        item = VisitListItem.model_validate(visit)
        item.company = CompanySummary.model_validate(company)
        item.photos_count = photos.get(visit.id, 0)
        item.follow_ups_count = follow_ups.get(visit.id, 0)
        item.payments_count = payments.get(visit.id, 0)
        items.append(item)
    return items, total


def _count_by_visit(db: Session, model, visit_ids: list) -> dict:
    if not visit_ids:
        return {}
    rows = db.execute(
        select(model.visit_id, func.count(model.id))
        .where(model.visit_id.in_(visit_ids))
        .group_by(model.visit_id)
    ).all()
    return {visit_id: count for visit_id, count in rows}


def get_visit(db: Session, visit_id: uuid.UUID, user_id: uuid.UUID) -> VisitDetail:
    """
    Visit with company, photos, follow-ups and payments.
    Served from cache when possible; ownership is checked on cached data too.
    """
    cached = cache_service.get(cache_service.visit_key(visit_id))
    if cached is not None:
        try:
            detail = VisitDetail.model_validate(cached)
        except ValidationError as exc:
            logger.warning("Stale cache entry for visit %s, reloading: %s", visit_id, exc)
            _invalidate(visit_id)
        else:
            assert_owns_visit(detail, user_id)
            return detail

    visit = _get_owned_visit(db, visit_id, user_id)
    detail = _to_detail(db, visit)
    cache_service.set(
        cache_service.visit_key(visit_id),
        detail.model_dump(mode="json"),
        settings.VISIT_CACHE_TTL,
    )
    return detail


def _to_detail(db: Session, visit: Visit) -> VisitDetail:
    detail = VisitDetail.model_validate(visit)
    company = db.get(Company, visit.company_id)
    if company is not None:
        detail.company = CompanySummary.model_validate(company)
    detail.photos = [
        VisitPhotoResponse.model_validate(p)
        for p in db.execute(
            select(VisitPhoto).where(VisitPhoto.visit_id == visit.id).order_by(VisitPhoto.created_at.desc())
        ).scalars().all()
    ]
    detail.follow_ups = [
        FollowUpResponse.model_validate(f)
        for f in db.execute(
            select(FollowUp).where(FollowUp.visit_id == visit.id).order_by(FollowUp.created_at.desc())
        ).scalars().all()
    ]
    detail.payments = [
        PaymentResponse.model_validate(p)
        for p in db.execute(
            select(Payment).where(Payment.visit_id == visit.id).order_by(Payment.created_at.desc())
        ).scalars().all()
    ]
    return detail


def update_visit(
    db: Session,
    visit_id: uuid.UUID,
    user_id: uuid.UUID,
    data: VisitUpdate,
) -> VisitResponse:
    """
    Free-form patch of end_time, status, purpose and notes.

    This path does not go through the guarded transitions: any known status
    can be set, for administrative corrections. The end_time invariant still
    holds after the patch:
    - moving to a terminal status without an end_time stamps it with now,
      or with start_time when the visit was scheduled in the future;
    - moving back to a non-terminal status clears end_time;
    - end_time cannot be set on a non-terminal visit nor precede start_time.
    """
    visit = _get_owned_visit(db, visit_id, user_id)

    update_data = data.model_dump(exclude_unset=True)
    new_status = update_data.get("status") or visit.status
    new_end_time = update_data["end_time"] if "end_time" in update_data else visit.end_time

    if new_status in TERMINAL_STATUSES:
        if new_end_time is None:
            new_end_time = max(datetime.now(timezone.utc), _as_utc(visit.start_time))
    else:
        if "end_time" in update_data and update_data["end_time"] is not None:
            raise BadRequestError(
                "end_time can only be set on a checked-out, completed or cancelled visit"
            )
        new_end_time = None

    if new_end_time is not None and _as_utc(new_end_time) < _as_utc(visit.start_time):
        raise BadRequestError("end_time cannot be earlier than start_time")

    for field, value in update_data.items():
        if field == "end_time" or (field in ("status", "purpose") and value is None):
            continue
        setattr(visit, field, value)
    visit.end_time = new_end_time

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You already have an active check-in. Please check-out first.")
    db.refresh(visit)
    _invalidate(visit_id)

    logger.info("Visit %s updated by user %s (status %s)", visit_id, user_id, visit.status)
    return VisitResponse.model_validate(visit)


# ----------------------------------------------------------------
# Check-in / check-out
# ----------------------------------------------------------------

def check_in(db: Session, user_id: uuid.UUID, data: CheckInRequest) -> VisitResponse:
    """
    Opens a visit directly in CHECKED_IN with start_time = now.

    Raises NotFoundError if the company does not exist, ConflictError if the
    user already has a CHECKED_IN visit. The pre-check gives the friendly
    error; the partial unique index catches concurrent check-ins that both
    passed it.
    """
    _get_company(db, data.company_id)

    active = (
        db.query(Visit)
        .filter(Visit.user_id == user_id, Visit.status == "CHECKED_IN")
        .first()
    )
    if active is not None:
        raise ConflictError("You already have an active check-in. Please check-out first.")

    visit = Visit(
        user_id=user_id,
        company_id=data.company_id,
        start_time=datetime.now(timezone.utc),
        status="CHECKED_IN",
        purpose=data.purpose,
        notes=data.notes,
        location=to_wkt_point(data.location.latitude, data.location.longitude),
        latitude=data.location.latitude,
        longitude=data.location.longitude,
    )
    db.add(visit)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You already have an active check-in. Please check-out first.")
    db.refresh(visit)

    logger.info("Check-in: visit %s for user %s at company %s", visit.id, user_id, data.company_id)
    return VisitResponse.model_validate(visit)


def check_out(
    db: Session,
    visit_id: uuid.UUID,
    user_id: uuid.UUID,
    data: CheckOutRequest,
) -> VisitResponse:
    """
    Closes an open visit: CHECKED_OUT, end_time = now, checkout notes appended.
    Raises InvalidStateError unless the visit is checked in (any pre-checkout status).
    """
    visit = _get_owned_visit(db, visit_id, user_id)
    if visit.status not in CHECK_OUT_STATUSES:
        raise InvalidStateError("Visit is not in a state that can be checked-out")

    visit.status = "CHECKED_OUT"
    visit.end_time = datetime.now(timezone.utc)
    visit.notes = append_note(visit.notes, "Check-out notes", data.notes)
    visit.notes = append_note(
        visit.notes,
        "Check-out location",
        to_wkt_point(data.location.latitude, data.location.longitude),
    )
    db.commit()
    db.refresh(visit)
    _invalidate(visit_id)

    logger.info("Check-out: visit %s for user %s", visit_id, user_id)
    return VisitResponse.model_validate(visit)


# ----------------------------------------------------------------
# Attachments that promote the status
# ----------------------------------------------------------------

def upload_visit_photo(
    db: Session,
    visit_id: uuid.UUID,
    user_id: uuid.UUID,
    content: bytes,
    content_type: str,
    filename: Optional[str] = None,
    caption: Optional[str] = None,
) -> VisitPhotoResponse:
    """
    Stores the photo in object storage and attaches it to the visit.
    The first photo moves CHECKED_IN to PHOTOS_UPLOADED; later photos leave the status alone.
    """
    visit = _get_owned_visit(db, visit_id, user_id)
    if visit.status not in PHOTO_UPLOAD_STATUSES:
        raise InvalidStateError("Cannot upload photos for a visit that is not checked-in")

    url = storage_service.store(content, content_type, f"visits/{visit_id}/photos", filename)

    photo = VisitPhoto(visit_id=visit_id, photo_url=url, caption=caption)
    db.add(photo)
    if visit.status == "CHECKED_IN":
        visit.status = "PHOTOS_UPLOADED"
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        key = storage_service.key_from_url(url)
        if key:
            storage_service.delete(key)
        raise
    db.refresh(photo)
    _invalidate(visit_id)

    logger.info("Photo %s attached to visit %s (status %s)", photo.id, visit_id, visit.status)
    return VisitPhotoResponse.model_validate(photo)


def create_follow_up(
    db: Session,
    visit_id: uuid.UUID,
    user_id: uuid.UUID,
    data: FollowUpCreate,
) -> FollowUpResponse:
    """
    Schedules a follow-up (PENDING) on the visit.
    CHECKED_IN and PHOTOS_UPLOADED move to DETAILS_CAPTURED; other statuses are kept.
    """
    visit = _get_owned_visit(db, visit_id, user_id)

    follow_up = FollowUp(
        visit_id=visit_id,
        due_date=data.due_date,
        priority=data.priority,
        notes=data.notes,
        status="PENDING",
    )
    db.add(follow_up)
    if visit.status in FOLLOW_UP_PROMOTING_STATUSES:
        visit.status = "DETAILS_CAPTURED"
    db.commit()
    db.refresh(follow_up)
    _invalidate(visit_id)

    logger.info("Follow-up %s created on visit %s (status %s)", follow_up.id, visit_id, visit.status)
    return FollowUpResponse.model_validate(follow_up)


def create_payment(
    db: Session,
    visit_id: uuid.UUID,
    user_id: uuid.UUID,
    data: PaymentCreate,
) -> PaymentResponse:
    """
    Records a payment and sets the visit to PAYMENT_RECORDED.
    A visit already at PAYMENT_RECORDED or in a terminal status keeps its status.
    """
    visit = _get_owned_visit(db, visit_id, user_id)

    payment = Payment(
        visit_id=visit_id,
        amount=data.amount,
        payment_method=data.payment_method,
        reference=data.reference,
        notes=data.notes,
    )
    db.add(payment)
    if visit.status not in PAYMENT_KEEPS_STATUSES:
        visit.status = "PAYMENT_RECORDED"
    db.commit()
    db.refresh(payment)
    _invalidate(visit_id)

    logger.info(
        "Payment %s of %s (%s) recorded on visit %s",
        payment.id, data.amount, data.payment_method, visit_id,
    )
    return PaymentResponse.model_validate(payment)
