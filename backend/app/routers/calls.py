"""
Calls router: scheduling, lifecycle (start / end / cancel), logs and call reports.

Static paths (/logs, /reports/...) are declared before /{call_id}.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config import settings
from app.core.deps import require_permissions
from app.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.call import CallCancel, CallCreate, CallEnd, CallResponse, CallUpdate
from app.schemas.common import ApiResponse, PaginatedResponse, ok, paginate
from app.schemas.report import CallReport
from app.services import call_service, report_service

router = APIRouter(prefix="/api/v1/calls", tags=["Calls"])


@router.get("", response_model=PaginatedResponse[CallResponse], summary="List my calls")
def list_calls(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    contact_id: Optional[uuid.UUID] = None,
    company_id: Optional[uuid.UUID] = None,
    sort_by: str = "scheduled_time",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: CurrentUser = Depends(require_permissions(["read:calls"])),
    db: Session = Depends(get_db),
):
    items, total = call_service.get_calls(
        db, current_user.id, page, limit,
        start_date, end_date, status, contact_id, company_id, sort_by, order,
    )
    return paginate(items, total, page, limit)


@router.get("/logs", response_model=PaginatedResponse[CallResponse], summary="Finished calls")
def call_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    contact_id: Optional[uuid.UUID] = None,
    company_id: Optional[uuid.UUID] = None,
    current_user: CurrentUser = Depends(require_permissions(["read:calls"])),
    db: Session = Depends(get_db),
):
    """COMPLETED and MISSED calls unless a status filter is given."""
    items, total = call_service.get_call_logs(
        db, current_user.id, page, limit, start_date, end_date, status, contact_id, company_id,
    )
    return paginate(items, total, page, limit)


@router.get("/logs/pending", response_model=PaginatedResponse[CallResponse], summary="Overdue scheduled calls")
def pending_calls(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: CurrentUser = Depends(require_permissions(["read:calls"])),
    db: Session = Depends(get_db),
):
    items, total = call_service.get_pending_calls(db, current_user.id, page, limit)
    return paginate(items, total, page, limit)


# ----------------------------------------------------------------
# Reports
# ----------------------------------------------------------------

@router.get("/reports/daily", response_model=ApiResponse[CallReport], summary="Daily call report")
def daily_call_report(
    report_date: Optional[date] = Query(None, alias="date"),
    current_user: CurrentUser = Depends(require_permissions(["read:reports"])),
    db: Session = Depends(get_db),
):
    return ok(report_service.get_daily_call_report(db, current_user.id, report_date or date.today()))


@router.get("/reports/weekly", response_model=ApiResponse[CallReport], summary="Weekly call report")
def weekly_call_report(
    start_date: date,
    end_date: Optional[date] = None,
    current_user: CurrentUser = Depends(require_permissions(["read:reports"])),
    db: Session = Depends(get_db),
):
    return ok(report_service.get_weekly_call_report(db, current_user.id, start_date, end_date))


@router.get("/reports/monthly", response_model=ApiResponse[CallReport], summary="Monthly call report")
def monthly_call_report(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    current_user: CurrentUser = Depends(require_permissions(["read:reports"])),
    db: Session = Depends(get_db),
):
    return ok(report_service.get_monthly_call_report(db, current_user.id, year, month))


# ----------------------------------------------------------------
# Single call
# ----------------------------------------------------------------

@router.post("", response_model=ApiResponse[CallResponse], status_code=201, summary="Schedule a call")
def create_call(
    data: CallCreate,
    current_user: CurrentUser = Depends(require_permissions(["create:calls"])),
    db: Session = Depends(get_db),
):
    return ok(call_service.create_call(db, current_user.id, data), "Call scheduled")


@router.get("/{call_id}", response_model=ApiResponse[CallResponse], summary="Call detail")
def get_call(
    call_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permissions(["read:calls"])),
    db: Session = Depends(get_db),
):
    return ok(call_service.get_call(db, call_id, current_user.id))


@router.patch("/{call_id}", response_model=ApiResponse[CallResponse], summary="Update a call")
def update_call(
    call_id: uuid.UUID,
    data: CallUpdate,
    current_user: CurrentUser = Depends(require_permissions(["update:calls"])),
    db: Session = Depends(get_db),
):
    return ok(call_service.update_call(db, call_id, current_user.id, data), "Call updated")


@router.delete("/{call_id}", response_model=ApiResponse[None], summary="Delete a scheduled call")
def delete_call(
    call_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permissions(["delete:calls"])),
    db: Session = Depends(get_db),
):
    call_service.delete_call(db, call_id, current_user.id)
    return ok(message="Call deleted")


@router.post("/{call_id}/start", response_model=ApiResponse[CallResponse], summary="Start a call")
def start_call(
    call_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permissions(["update:calls"])),
    db: Session = Depends(get_db),
):
    return ok(call_service.start_call(db, call_id, current_user.id), "Call started")


@router.post("/{call_id}/end", response_model=ApiResponse[CallResponse], summary="End a call")
def end_call(
    call_id: uuid.UUID,
    data: CallEnd,
    current_user: CurrentUser = Depends(require_permissions(["update:calls"])),
    db: Session = Depends(get_db),
):
    return ok(call_service.end_call(db, call_id, current_user.id, data), "Call completed")


@router.post("/{call_id}/cancel", response_model=ApiResponse[CallResponse], summary="Cancel a call")
def cancel_call(
    call_id: uuid.UUID,
    data: CallCancel,
    current_user: CurrentUser = Depends(require_permissions(["update:calls"])),
    db: Session = Depends(get_db),
):
    return ok(call_service.cancel_call(db, call_id, current_user.id, data), "Call cancelled")
