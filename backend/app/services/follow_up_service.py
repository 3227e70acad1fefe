"""
Follow-ups across the caller's visits: listing and updating.
Creation lives in visit_service because it moves the visit status.
"""

import uuid
import logging
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ForbiddenError, NotFoundError
from app.models.visit import FollowUp, Visit
from app.schemas.visit import FollowUpResponse, FollowUpUpdate
from app.services import cache_service

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "due_date": FollowUp.due_date,
    "created_at": FollowUp.created_at,
    "priority": FollowUp.priority,
    "status": FollowUp.status,
}


def get_follow_ups(
    db: Session,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    visit_id: Optional[uuid.UUID] = None,
    sort_by: str = "due_date",
    order: str = "asc",
) -> tuple[list[FollowUpResponse], int]:
    """Paginated follow-ups of the visits owned by the caller, filtered on due date."""
    stmt = (
        select(FollowUp)
        .join(Visit, Visit.id == FollowUp.visit_id)
        .where(Visit.user_id == user_id)
    )
    if start_date is not None:
        stmt = stmt.where(FollowUp.due_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(FollowUp.due_date <= end_date)
    if status:
        stmt = stmt.where(FollowUp.status == status)
    if priority:
        stmt = stmt.where(FollowUp.priority == priority)
    if visit_id:
        stmt = stmt.where(FollowUp.visit_id == visit_id)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

    column = SORT_COLUMNS.get(sort_by, FollowUp.due_date)
    stmt = stmt.order_by(column.desc() if order == "desc" else column.asc())
    follow_ups = db.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().all()

    return [FollowUpResponse.model_validate(f) for f in follow_ups], total


def update_follow_up(
    db: Session,
    follow_up_id: uuid.UUID,
    user_id: uuid.UUID,
    data: FollowUpUpdate,
) -> FollowUpResponse:
    """Only the owner of the parent visit may update a follow-up."""
    follow_up = db.get(FollowUp, follow_up_id)
    if follow_up is None:
        raise NotFoundError("Follow-up not found")
    visit = db.get(Visit, follow_up.visit_id)
    if visit is None or visit.user_id != user_id:
        raise ForbiddenError("You do not have permission to update this follow-up")

    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field != "notes":
            continue
        setattr(follow_up, field, value)

    db.commit()
    db.refresh(follow_up)
    cache_service.delete(cache_service.visit_key(follow_up.visit_id))

    logger.info("Follow-up %s updated by user %s", follow_up_id, user_id)
    return FollowUpResponse.model_validate(follow_up)
