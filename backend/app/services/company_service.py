"""
Company management: CRUD, approval workflow and proximity search.

Approval workflow:
    pending → approved | rejected
Editing an approved company sends it back to pending; a rejected company is read-only.
"""

import uuid
import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import BadRequestError, ConflictError, InvalidStateError, NotFoundError
from app.models.company import Company, Contact
from app.models.visit import Visit
from app.schemas.company import (
    CompanyCreate,
    CompanyDetail,
    CompanyResponse,
    CompanyUpdate,
    ContactResponse,
    NearbyCompany,
)
from app.services import cache_service
from app.utils.geo import bounding_box, haversine_km

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = {"pending", "approved"}

SORT_COLUMNS = {
    "name": Company.name,
    "code": Company.code,
    "created_at": Company.created_at,
    "status": Company.status,
}


def _get_company(db: Session, company_id: uuid.UUID) -> Company:
    company = db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


def _invalidate(company_id: uuid.UUID) -> None:
    cache_service.delete(cache_service.company_key(company_id))


def _invalidate_visits(db: Session, company_id: uuid.UUID) -> None:
    """Cached visit details embed the company name."""
    if not settings.CACHE_ENABLED:
        return
    visit_ids = db.execute(select(Visit.id).where(Visit.company_id == company_id)).scalars().all()
    for visit_id in visit_ids:
        cache_service.delete(cache_service.visit_key(visit_id))


def get_companies(
    db: Session,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    area_id: Optional[uuid.UUID] = None,
    is_active: Optional[bool] = None,
    sort_by: str = "created_at",
    order: str = "desc",
) -> tuple[list[CompanyResponse], int]:
    stmt = select(Company)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            Company.name.ilike(pattern),
            Company.code.ilike(pattern),
            Company.email.ilike(pattern),
        ))
    if type:
        stmt = stmt.where(Company.type == type)
    if status:
        stmt = stmt.where(Company.status == status)
    if area_id:
        stmt = stmt.where(Company.area_id == area_id)
    if is_active is not None:
        stmt = stmt.where(Company.is_active == is_active)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

    column = SORT_COLUMNS.get(sort_by, Company.created_at)
    stmt = stmt.order_by(column.asc() if order == "asc" else column.desc())
    companies = db.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().all()

    return [CompanyResponse.model_validate(c) for c in companies], total


def get_company(db: Session, company_id: uuid.UUID) -> CompanyDetail:
    """Company with its active contacts, cached for COMPANY_CACHE_TTL seconds."""
    cached = cache_service.get(cache_service.company_key(company_id))
    if cached is not None:
        return CompanyDetail.model_validate(cached)

    company = _get_company(db, company_id)
    detail = CompanyDetail.model_validate(company)
    contacts = db.execute(
        select(Contact)
        .where(Contact.company_id == company_id, Contact.is_active.is_(True))
        .order_by(Contact.first_name)
    ).scalars().all()
    detail.contacts = [ContactResponse.model_validate(c) for c in contacts]

    cache_service.set(
        cache_service.company_key(company_id),
        detail.model_dump(mode="json"),
        settings.COMPANY_CACHE_TTL,
    )
    return detail


def create_company(db: Session, user_id: uuid.UUID, data: CompanyCreate) -> CompanyResponse:
    """Creates a company awaiting approval. Raises ConflictError if the code is taken."""
    company = Company(
        **data.model_dump(exclude={"address"}),
        address=data.address.model_dump(exclude_none=True) if data.address else None,
        status="pending",
        is_active=True,
        created_by_id=user_id,
    )
    db.add(company)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"A company with code '{data.code}' already exists")
    db.refresh(company)

    logger.info("Company %s (%s) created by user %s", company.id, company.code, user_id)
    return CompanyResponse.model_validate(company)


def update_company(db: Session, company_id: uuid.UUID, data: CompanyUpdate) -> CompanyResponse:
    """
    Partial update. Only pending or approved companies can be edited;
    an approved company goes back to pending for re-approval.
    """
    company = _get_company(db, company_id)
    if company.status not in EDITABLE_STATUSES:
        raise InvalidStateError(f"Cannot update a company with status {company.status}")

    update_data = data.model_dump(exclude_unset=True, exclude={"address"})
    renamed = update_data.get("name") not in (None, company.name)
    for field, value in update_data.items():
        if field in ("name", "type") and value is None:
            continue
        setattr(company, field, value)
    if "address" in data.model_fields_set:
        company.address = data.address.model_dump(exclude_none=True) if data.address else None

    if company.status == "approved":
        company.status = "pending"
        company.approved_by_id = None

    db.commit()
    db.refresh(company)
    _invalidate(company_id)
    if renamed:
        _invalidate_visits(db, company_id)
    return CompanyResponse.model_validate(company)


def deactivate_company(db: Session, company_id: uuid.UUID) -> CompanyResponse:
    company = _get_company(db, company_id)
    company.is_active = False
    db.commit()
    db.refresh(company)
    _invalidate(company_id)

    logger.info("Company %s deactivated", company_id)
    return CompanyResponse.model_validate(company)


def approve_company(
    db: Session,
    company_id: uuid.UUID,
    approver_id: uuid.UUID,
    reason: Optional[str] = None,
) -> CompanyResponse:
    company = _get_company(db, company_id)
    if company.status != "pending":
        raise InvalidStateError(f"Only pending companies can be approved (current status: {company.status})")

    company.status = "approved"
    company.status_reason = reason
    company.approved_by_id = approver_id
    db.commit()
    db.refresh(company)
    _invalidate(company_id)

    logger.info("Company %s approved by user %s", company_id, approver_id)
    return CompanyResponse.model_validate(company)


def reject_company(
    db: Session,
    company_id: uuid.UUID,
    approver_id: uuid.UUID,
    reason: Optional[str],
) -> CompanyResponse:
    if not reason or not reason.strip():
        raise BadRequestError("A reason is required to reject a company")
    company = _get_company(db, company_id)
    if company.status != "pending":
        raise InvalidStateError(f"Only pending companies can be rejected (current status: {company.status})")

    company.status = "rejected"
    company.status_reason = reason.strip()
    company.approved_by_id = approver_id
    db.commit()
    db.refresh(company)
    _invalidate(company_id)

    logger.info("Company %s rejected by user %s", company_id, approver_id)
    return CompanyResponse.model_validate(company)


def get_nearby_companies(
    db: Session,
    latitude: float,
    longitude: float,
    radius_km: float = settings.DEFAULT_NEARBY_RADIUS_KM,
    limit: int = settings.DEFAULT_NEARBY_LIMIT,
) -> list[NearbyCompany]:
    """
    Active companies within radius_km of the point, nearest first.
    A bounding box narrows the rows in SQL, haversine gives the exact distance.
    """
    min_lat, max_lat, min_lon, max_lon = bounding_box(latitude, longitude, radius_km)
    candidates = db.execute(
        select(Company).where(
            Company.is_active.is_(True),
            Company.latitude.is_not(None),
            Company.longitude.is_not(None),
            Company.latitude.between(min_lat, max_lat),
            Company.longitude.between(min_lon, max_lon),
        )
    ).scalars().all()

    nearby = []
    for company in candidates:
        distance = haversine_km(latitude, longitude, company.latitude, company.longitude)
        if distance <= radius_km:
            nearby.append(NearbyCompany(
                id=company.id,
                name=company.name,
                code=company.code,
                type=company.type,
                address=company.address,
                latitude=company.latitude,
                longitude=company.longitude,
                distance_km=round(distance, 3),
            ))

    nearby.sort(key=lambda c: c.distance_km)
    return nearby[:limit]
