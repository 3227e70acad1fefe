"""
Contacts of a company. Every change drops the parent company from the cache,
since the cached company embeds its contacts.
"""

import uuid
import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import NotFoundError
from app.models.company import Company, Contact
from app.schemas.company import ContactCreate, ContactResponse, ContactUpdate
from app.services import cache_service

logger = logging.getLogger(__name__)


def _get_contact(db: Session, contact_id: uuid.UUID) -> Contact:
    contact = db.get(Contact, contact_id)
    if contact is None:
        raise NotFoundError("Contact not found")
    return contact


def get_contacts(
    db: Session,
    company_id: uuid.UUID,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> tuple[list[ContactResponse], int]:
    if db.get(Company, company_id) is None:
        raise NotFoundError("Company not found")

    stmt = select(Contact).where(Contact.company_id == company_id)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            Contact.first_name.ilike(pattern),
            Contact.last_name.ilike(pattern),
            Contact.email.ilike(pattern),
            Contact.phone.ilike(pattern),
        ))
    if is_active is not None:
        stmt = stmt.where(Contact.is_active == is_active)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    contacts = db.execute(
        stmt.order_by(Contact.first_name, Contact.last_name)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    return [ContactResponse.model_validate(c) for c in contacts], total


def get_contact(db: Session, contact_id: uuid.UUID) -> ContactResponse:
    return ContactResponse.model_validate(_get_contact(db, contact_id))


def create_contact(
    db: Session,
    company_id: uuid.UUID,
    user_id: uuid.UUID,
    data: ContactCreate,
) -> ContactResponse:
    if db.get(Company, company_id) is None:
        raise NotFoundError("Company not found")

    contact = Contact(**data.model_dump(), company_id=company_id, created_by_id=user_id, is_active=True)
    db.add(contact)
    db.commit()
    db.refresh(contact)
    cache_service.delete(cache_service.company_key(company_id))

    logger.info("Contact %s added to company %s", contact.id, company_id)
    return ContactResponse.model_validate(contact)


def update_contact(db: Session, contact_id: uuid.UUID, data: ContactUpdate) -> ContactResponse:
    contact = _get_contact(db, contact_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(contact, field, value)
    db.commit()
    db.refresh(contact)
    cache_service.delete(cache_service.company_key(contact.company_id))
    return ContactResponse.model_validate(contact)


def delete_contact(db: Session, contact_id: uuid.UUID) -> None:
    """Soft delete: the contact stays referenced by past calls."""
    contact = _get_contact(db, contact_id)
    contact.is_active = False
    db.commit()
    cache_service.delete(cache_service.company_key(contact.company_id))
    logger.info("Contact %s deactivated", contact_id)
