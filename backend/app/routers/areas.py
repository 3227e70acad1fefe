"""
Data control router: sales areas.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config import settings
from app.core.deps import require_permissions
from app.database import get_db
from app.schemas.area import AreaCreate, AreaResponse, AreaUpdate
from app.schemas.common import ApiResponse, PaginatedResponse, ok, paginate
from app.services import area_service

router = APIRouter(prefix="/api/v1/data-control/areas", tags=["Data control"])


@router.get(
    "",
    response_model=PaginatedResponse[AreaResponse],
    dependencies=[Depends(require_permissions(["read:areas"]))],
    summary="List areas",
)
def list_areas(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    items, total = area_service.get_areas(db, page, limit, search)
    return paginate(items, total, page, limit)


@router.get(
    "/{area_id}",
    response_model=ApiResponse[AreaResponse],
    dependencies=[Depends(require_permissions(["read:areas"]))],
    summary="Area detail",
)
def get_area(area_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(area_service.get_area(db, area_id))


@router.post(
    "",
    response_model=ApiResponse[AreaResponse],
    status_code=201,
    dependencies=[Depends(require_permissions(["create:areas"]))],
    summary="Create an area",
)
def create_area(data: AreaCreate, db: Session = Depends(get_db)):
    return ok(area_service.create_area(db, data), "Area created")


@router.patch(
    "/{area_id}",
    response_model=ApiResponse[AreaResponse],
    dependencies=[Depends(require_permissions(["update:areas"]))],
    summary="Update an area",
)
def update_area(area_id: uuid.UUID, data: AreaUpdate, db: Session = Depends(get_db)):
    return ok(area_service.update_area(db, area_id, data), "Area updated")
