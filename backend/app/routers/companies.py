"""
Contact management router: companies (with approval workflow) and their contacts.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config import settings
from app.core.deps import require_permissions
from app.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.common import ApiResponse, PaginatedResponse, ok, paginate
from app.schemas.company import (
    CompanyCreate,
    CompanyDecision,
    CompanyDetail,
    CompanyResponse,
    CompanyUpdate,
    ContactCreate,
    ContactResponse,
    ContactUpdate,
)
from app.services import company_service, contact_service

router = APIRouter(prefix="/api/v1/contact-management", tags=["Contact management"])


# ----------------------------------------------------------------
# Companies
# ----------------------------------------------------------------

@router.get(
    "/companies",
    response_model=PaginatedResponse[CompanyResponse],
    dependencies=[Depends(require_permissions(["read:companies"]))],
    summary="List companies",
)
def list_companies(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    area_id: Optional[uuid.UUID] = None,
    is_active: Optional[bool] = None,
    sort_by: str = "created_at",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    items, total = company_service.get_companies(
        db, page, limit, search, type, status, area_id, is_active, sort_by, order
    )
    return paginate(items, total, page, limit)


@router.get(
    "/companies/{company_id}",
    response_model=ApiResponse[CompanyDetail],
    dependencies=[Depends(require_permissions(["read:companies"]))],
    summary="Company detail with its active contacts",
)
def get_company(company_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(company_service.get_company(db, company_id))


@router.post(
    "/companies",
    response_model=ApiResponse[CompanyResponse],
    status_code=201,
    summary="Create a company",
)
def create_company(
    data: CompanyCreate,
    current_user: CurrentUser = Depends(require_permissions(["create:companies"])),
    db: Session = Depends(get_db),
):
    """The company starts as pending and must be approved."""
    return ok(company_service.create_company(db, current_user.id, data), "Company created")


@router.patch(
    "/companies/{company_id}",
    response_model=ApiResponse[CompanyResponse],
    dependencies=[Depends(require_permissions(["update:companies"]))],
    summary="Update a company",
)
def update_company(company_id: uuid.UUID, data: CompanyUpdate, db: Session = Depends(get_db)):
    """An approved company goes back to pending after an update."""
    return ok(company_service.update_company(db, company_id, data), "Company updated")


@router.delete(
    "/companies/{company_id}",
    response_model=ApiResponse[CompanyResponse],
    dependencies=[Depends(require_permissions(["delete:companies"]))],
    summary="Deactivate a company",
)
def deactivate_company(company_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(company_service.deactivate_company(db, company_id), "Company deactivated")


@router.post(
    "/companies/{company_id}/approve",
    response_model=ApiResponse[CompanyResponse],
    summary="Approve a pending company",
)
def approve_company(
    company_id: uuid.UUID,
    data: Optional[CompanyDecision] = None,
    current_user: CurrentUser = Depends(require_permissions(["update:companies"])),
    db: Session = Depends(get_db),
):
    reason = data.reason if data else None
    return ok(company_service.approve_company(db, company_id, current_user.id, reason), "Company approved")


@router.post(
    "/companies/{company_id}/reject",
    response_model=ApiResponse[CompanyResponse],
    summary="Reject a pending company",
)
def reject_company(
    company_id: uuid.UUID,
    data: CompanyDecision,
    current_user: CurrentUser = Depends(require_permissions(["update:companies"])),
    db: Session = Depends(get_db),
):
    return ok(company_service.reject_company(db, company_id, current_user.id, data.reason), "Company rejected")


# ----------------------------------------------------------------
# Contacts
# ----------------------------------------------------------------

@router.get(
    "/companies/{company_id}/contacts",
    response_model=PaginatedResponse[ContactResponse],
    dependencies=[Depends(require_permissions(["read:companies"]))],
    summary="List the contacts of a company",
)
def list_contacts(
    company_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    items, total = contact_service.get_contacts(db, company_id, page, limit, search, is_active)
    return paginate(items, total, page, limit)


@router.post(
    "/companies/{company_id}/contacts",
    response_model=ApiResponse[ContactResponse],
    status_code=201,
    summary="Add a contact to a company",
)
def create_contact(
    company_id: uuid.UUID,
    data: ContactCreate,
    current_user: CurrentUser = Depends(require_permissions(["create:companies"])),
    db: Session = Depends(get_db),
):
    return ok(contact_service.create_contact(db, company_id, current_user.id, data), "Contact created")


@router.get(
    "/contacts/{contact_id}",
    response_model=ApiResponse[ContactResponse],
    dependencies=[Depends(require_permissions(["read:companies"]))],
    summary="Contact detail",
)
def get_contact(contact_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(contact_service.get_contact(db, contact_id))


@router.patch(
    "/contacts/{contact_id}",
    response_model=ApiResponse[ContactResponse],
    dependencies=[Depends(require_permissions(["update:companies"]))],
    summary="Update a contact",
)
def update_contact(contact_id: uuid.UUID, data: ContactUpdate, db: Session = Depends(get_db)):
    return ok(contact_service.update_contact(db, contact_id, data), "Contact updated")


@router.delete(
    "/contacts/{contact_id}",
    response_model=ApiResponse[None],
    dependencies=[Depends(require_permissions(["delete:companies"]))],
    summary="Deactivate a contact",
)
def delete_contact(contact_id: uuid.UUID, db: Session = Depends(get_db)):
    contact_service.delete_contact(db, contact_id)
    return ok(message="Contact deleted")
