"""
DSR router: visits and their lifecycle (check-in, photos, follow-ups,
payments, check-out), follow-ups, nearby companies and visit reports.

Every visit route acts on the caller's own visits only.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from app.config import settings
from app.core.deps import require_permissions
from app.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.common import ApiResponse, PaginatedResponse, ok, paginate
from app.schemas.company import NearbyCompany
from app.schemas.report import DailyVisitReport, MonthlyVisitReport, WeeklyVisitReport
from app.schemas.visit import (
    CheckInRequest,
    CheckOutRequest,
    FollowUpCreate,
    FollowUpResponse,
    FollowUpUpdate,
    PaymentCreate,
    PaymentResponse,
    VisitCreate,
    VisitDetail,
    VisitListItem,
    VisitPhotoResponse,
    VisitResponse,
    VisitUpdate,
)
from app.services import company_service, follow_up_service, report_service, visit_service

router = APIRouter(prefix="/api/v1/dsr", tags=["DSR"])

ALLOWED_PHOTO_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/gif"}
MAX_PHOTO_SIZE_MB = 10


# ----------------------------------------------------------------
# Visits
# ----------------------------------------------------------------

@router.get("/visits", response_model=PaginatedResponse[VisitListItem], summary="List my visits")
def list_visits(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    company_id: Optional[uuid.UUID] = None,
    area_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    sort_by: str = "start_time",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: CurrentUser = Depends(require_permissions(["read:visits"])),
    db: Session = Depends(get_db),
):
    """Filters on start_time; search matches purpose, notes and company name."""
    items, total = visit_service.get_visits(
        db, current_user.id, page, limit,
        start_date, end_date, status, company_id, area_id, search, sort_by, order,
    )
    return paginate(items, total, page, limit)


@router.get("/visits/{visit_id}", response_model=ApiResponse[VisitDetail], summary="Visit detail")
def get_visit(
    visit_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permissions(["read:visits"])),
    db: Session = Depends(get_db),
):
    return ok(visit_service.get_visit(db, visit_id, current_user.id))


@router.post("/visits", response_model=ApiResponse[VisitResponse], status_code=201, summary="Plan a visit")
def create_visit(
    data: VisitCreate,
    current_user: CurrentUser = Depends(require_permissions(["create:visits"])),
    db: Session = Depends(get_db),
):
    return ok(visit_service.create_visit(db, current_user.id, data), "Visit planned")


@router.patch("/visits/{visit_id}", response_model=ApiResponse[VisitResponse], summary="Update a visit")
def update_visit(
    visit_id: uuid.UUID,
    data: VisitUpdate,
    current_user: CurrentUser = Depends(require_permissions(["update:visits"])),
    db: Session = Depends(get_db),
):
    """
    Free-form update. The status can be set to any known value without going
    through the check-in/check-out flow (administrative correction).
    """
    return ok(visit_service.update_visit(db, visit_id, current_user.id, data), "Visit updated")


@router.post("/check-in", response_model=ApiResponse[VisitResponse], status_code=201, summary="Check in at a company")
def check_in(
    data: CheckInRequest,
    current_user: CurrentUser = Depends(require_permissions(["create:visits"])),
    db: Session = Depends(get_db),
):
    """409 if the user already has a checked-in visit."""
    return ok(visit_service.check_in(db, current_user.id, data), "Checked in")


@router.post("/check-out/{visit_id}", response_model=ApiResponse[VisitResponse], summary="Check out of a visit")
def check_out(
    visit_id: uuid.UUID,
    data: CheckOutRequest,
    current_user: CurrentUser = Depends(require_permissions(["update:visits"])),
    db: Session = Depends(get_db),
):
    return ok(visit_service.check_out(db, visit_id, current_user.id, data), "Checked out")


@router.post(
    "/visits/{visit_id}/photos",
    response_model=ApiResponse[VisitPhotoResponse],
    status_code=201,
    summary="Upload a photo for a visit",
)
async def upload_photo(
    visit_id: uuid.UUID,
    photo: UploadFile = File(...),
    caption: Optional[str] = Form(None, max_length=100),
    current_user: CurrentUser = Depends(require_permissions(["update:visits"])),
    db: Session = Depends(get_db),
):
    """
    Multipart upload (field `photo`, optional `caption`).
    Allowed while the visit is CHECKED_IN, PHOTOS_UPLOADED or DETAILS_CAPTURED.
    """
    if photo.content_type not in ALLOWED_PHOTO_TYPES:
        raise HTTPException(status_code=400, detail="Only image files are allowed")

    content = await photo.read()
    if not content:
        raise HTTPException(status_code=400, detail="The file is empty")
    if len(content) > MAX_PHOTO_SIZE_MB * 1024 * 1024:
        raise HTTPException(status_code=400, detail=f"File too large (max {MAX_PHOTO_SIZE_MB} MB)")

    result = visit_service.upload_visit_photo(
        db, visit_id, current_user.id, content, photo.content_type, photo.filename, caption
    )
    return ok(result, "Photo uploaded")


@router.post(
    "/visits/{visit_id}/follow-ups",
    response_model=ApiResponse[FollowUpResponse],
    status_code=201,
    summary="Schedule a follow-up",
)
def create_follow_up(
    visit_id: uuid.UUID,
    data: FollowUpCreate,
    current_user: CurrentUser = Depends(require_permissions(["create:follow-ups"])),
    db: Session = Depends(get_db),
):
    return ok(visit_service.create_follow_up(db, visit_id, current_user.id, data), "Follow-up created")


@router.post(
    "/visits/{visit_id}/payments",
    response_model=ApiResponse[PaymentResponse],
    status_code=201,
    summary="Record a payment",
)
def create_payment(
    visit_id: uuid.UUID,
    data: PaymentCreate,
    current_user: CurrentUser = Depends(require_permissions(["create:payments"])),
    db: Session = Depends(get_db),
):
    return ok(visit_service.create_payment(db, visit_id, current_user.id, data), "Payment recorded")


# ----------------------------------------------------------------
# Follow-ups
# ----------------------------------------------------------------

@router.get("/follow-ups", response_model=PaginatedResponse[FollowUpResponse], summary="List my follow-ups")
def list_follow_ups(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    visit_id: Optional[uuid.UUID] = None,
    sort_by: str = "due_date",
    order: str = Query("asc", pattern="^(asc|desc)$"),
    current_user: CurrentUser = Depends(require_permissions(["read:follow-ups"])),
    db: Session = Depends(get_db),
):
    items, total = follow_up_service.get_follow_ups(
        db, current_user.id, page, limit,
        start_date, end_date, status, priority, visit_id, sort_by, order,
    )
    return paginate(items, total, page, limit)


@router.patch("/follow-ups/{follow_up_id}", response_model=ApiResponse[FollowUpResponse], summary="Update a follow-up")
def update_follow_up(
    follow_up_id: uuid.UUID,
    data: FollowUpUpdate,
    current_user: CurrentUser = Depends(require_permissions(["update:follow-ups"])),
    db: Session = Depends(get_db),
):
    return ok(follow_up_service.update_follow_up(db, follow_up_id, current_user.id, data), "Follow-up updated")


# ----------------------------------------------------------------
# Nearby companies
# ----------------------------------------------------------------

@router.get(
    "/nearby-companies",
    response_model=ApiResponse[List[NearbyCompany]],
    dependencies=[Depends(require_permissions(["read:companies"]))],
    summary="Active companies around a point",
)
def nearby_companies(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(settings.DEFAULT_NEARBY_RADIUS_KM, gt=0, le=100),
    limit: int = Query(settings.DEFAULT_NEARBY_LIMIT, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    return ok(company_service.get_nearby_companies(db, latitude, longitude, radius_km, limit))


# ----------------------------------------------------------------
# Reports
# ----------------------------------------------------------------

@router.get("/reports/daily", response_model=ApiResponse[DailyVisitReport], summary="Daily visit report")
def daily_report(
    report_date: Optional[date] = Query(None, alias="date"),
    area_id: Optional[uuid.UUID] = None,
    current_user: CurrentUser = Depends(require_permissions(["read:reports"])),
    db: Session = Depends(get_db),
):
    """Defaults to today."""
    return ok(report_service.get_daily_report(db, current_user.id, report_date or date.today(), area_id))


@router.get("/reports/weekly", response_model=ApiResponse[WeeklyVisitReport], summary="Weekly visit report")
def weekly_report(
    start_date: date,
    end_date: Optional[date] = None,
    area_id: Optional[uuid.UUID] = None,
    current_user: CurrentUser = Depends(require_permissions(["read:reports"])),
    db: Session = Depends(get_db),
):
    """end_date defaults to start_date + 6 days."""
    return ok(report_service.get_weekly_report(db, current_user.id, start_date, end_date, area_id))


@router.get("/reports/monthly", response_model=ApiResponse[MonthlyVisitReport], summary="Monthly visit report")
def monthly_report(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    area_id: Optional[uuid.UUID] = None,
    current_user: CurrentUser = Depends(require_permissions(["read:reports"])),
    db: Session = Depends(get_db),
):
    return ok(report_service.get_monthly_report(db, current_user.id, year, month, area_id))
