"""
Sales areas (territories).
"""

import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ConflictError, NotFoundError
from app.models.area import Area
from app.schemas.area import AreaCreate, AreaResponse, AreaUpdate


def get_areas(
    db: Session,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
) -> tuple[list[AreaResponse], int]:
    stmt = select(Area)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Area.name.ilike(pattern), Area.code.ilike(pattern)))

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    areas = db.execute(
        stmt.order_by(Area.name).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return [AreaResponse.model_validate(a) for a in areas], total


def get_area(db: Session, area_id: uuid.UUID) -> AreaResponse:
    area = db.get(Area, area_id)
    if area is None:
        raise NotFoundError("Area not found")
    return AreaResponse.model_validate(area)


def create_area(db: Session, data: AreaCreate) -> AreaResponse:
    area = Area(name=data.name, code=data.code, description=data.description, is_active=True)
    db.add(area)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"An area with code '{data.code}' already exists")
    db.refresh(area)
    return AreaResponse.model_validate(area)


def update_area(db: Session, area_id: uuid.UUID, data: AreaUpdate) -> AreaResponse:
    area = db.get(Area, area_id)
    if area is None:
        raise NotFoundError("Area not found")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(area, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("An area with this code already exists")
    db.refresh(area)
    return AreaResponse.model_validate(area)
