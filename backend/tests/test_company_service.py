"""
Unit tests for companies (approval workflow, cache, proximity search) and contacts.
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from app.exceptions import BadRequestError, ConflictError, InvalidStateError, NotFoundError
from app.models.company import Company, Contact
from app.schemas.company import CompanyCreate, CompanyUpdate, ContactCreate, ContactUpdate
from app.services import company_service, contact_service

USER_ID = uuid.uuid4()
APPROVER_ID = uuid.uuid4()


# --- Helpers ---

def make_company(status="pending", **kwargs):
    return Company(
        id=kwargs.get("id", uuid.uuid4()),
        name=kwargs.get("name", "Acme Traders"),
        code=kwargs.get("code", "ACME01"),
        type="customer",
        status=status,
        is_active=True,
        latitude=kwargs.get("latitude"),
        longitude=kwargs.get("longitude"),
        created_by_id=USER_ID,
    )


def make_contact(company_id, **kwargs):
    return Contact(
        id=uuid.uuid4(),
        company_id=company_id,
        first_name=kwargs.get("first_name", "Priya"),
        last_name="Shah",
        is_decision_maker=False,
        is_active=True,
    )


def _assign_id(obj):
    if getattr(obj, "id", None) is None:
        obj.id = uuid.uuid4()
    if getattr(obj, "is_decision_maker", False) is None:
        obj.is_decision_maker = False


def make_db(obj=None):
    db = MagicMock()
    db.get.return_value = obj
    db.refresh.side_effect = _assign_id
    return db


# --- Schemas ---

def test_company_create_invalid_type():
    with pytest.raises(ValidationError):
        CompanyCreate(name="Acme", code="A1", type="competitor")


def test_company_create_strips_name():
    data = CompanyCreate(name="  Acme  ", code="A1", type="partner")
    assert data.name == "Acme"


# --- create / update ---

def test_create_company_starts_pending():
    db = make_db()
    data = CompanyCreate(
        name="Acme", code="ACME01", type="customer",
        address={"city": "Pune", "country": "IN"},
    )

    result = company_service.create_company(db, USER_ID, data)

    assert result.status == "pending"
    assert result.is_active is True
    assert result.created_by_id == USER_ID
    assert result.address == {"city": "Pune", "country": "IN"}


def test_create_company_duplicate_code():
    db = make_db()
    db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

    with pytest.raises(ConflictError):
        company_service.create_company(db, USER_ID, CompanyCreate(name="Acme", code="ACME01", type="customer"))
    db.rollback.assert_called_once()


def test_update_approved_company_returns_to_pending():
    company = make_company(status="approved")
    company.approved_by_id = APPROVER_ID
    db = make_db(company)

    result = company_service.update_company(db, company.id, CompanyUpdate(phone="0123456789"))

    assert result.status == "pending"
    assert result.approved_by_id is None
    assert result.phone == "0123456789"


def test_update_rejected_company_refused():
    company = make_company(status="rejected")
    db = make_db(company)

    with pytest.raises(InvalidStateError):
        company_service.update_company(db, company.id, CompanyUpdate(name="New"))
    db.commit.assert_not_called()


def test_update_company_ignores_null_name():
    company = make_company()
    db = make_db(company)

    result = company_service.update_company(db, company.id, CompanyUpdate(name=None, website="acme.test"))

    assert result.name == "Acme Traders"
    assert result.website == "acme.test"


def test_update_company_invalidates_cache():
    company = make_company()
    db = make_db(company)

    with patch("app.services.company_service.cache_service") as cache:
        cache.company_key.return_value = f"company:{company.id}"
        company_service.update_company(db, company.id, CompanyUpdate(description="x"))

    cache.delete.assert_called_once_with(f"company:{company.id}")


def test_update_company_rename_invalidates_cached_visits(monkeypatch):
    company = make_company()
    db = make_db(company)
    visit_id = uuid.uuid4()
    db.execute.return_value.scalars.return_value.all.return_value = [visit_id]
    monkeypatch.setattr(company_service.settings, "CACHE_ENABLED", True)

    with patch("app.services.company_service.cache_service") as cache:
        cache.company_key.return_value = f"company:{company.id}"
        cache.visit_key.return_value = f"visit:{visit_id}"
        company_service.update_company(db, company.id, CompanyUpdate(name="Acme Wholesale"))

    cache.visit_key.assert_called_once_with(visit_id)
    deleted = [c.args[0] for c in cache.delete.call_args_list]
    assert deleted == [f"company:{company.id}", f"visit:{visit_id}"]


def test_update_company_same_name_keeps_visit_cache(monkeypatch):
    company = make_company(name="Acme Traders")
    db = make_db(company)
    monkeypatch.setattr(company_service.settings, "CACHE_ENABLED", True)

    with patch("app.services.company_service.cache_service") as cache:
        company_service.update_company(db, company.id, CompanyUpdate(name="Acme Traders"))

    db.execute.assert_not_called()
    cache.delete.assert_called_once()


def test_deactivate_company():
    company = make_company(status="approved")
    db = make_db(company)

    result = company_service.deactivate_company(db, company.id)

    assert result.is_active is False


def test_get_company_not_found():
    with pytest.raises(NotFoundError):
        company_service.get_company(make_db(None), uuid.uuid4())


def test_get_company_cached():
    company = make_company()
    cached = {
        "id": str(company.id), "name": "Acme Traders", "code": "ACME01", "type": "customer",
        "status": "approved", "is_active": True, "contacts": [],
    }
    db = make_db()

    with patch("app.services.company_service.cache_service") as cache:
        cache.get.return_value = cached
        result = company_service.get_company(db, company.id)

    assert result.status == "approved"
    db.get.assert_not_called()


def test_get_company_with_contacts():
    company = make_company()
    db = make_db(company)
    db.execute.return_value.scalars.return_value.all.return_value = [make_contact(company.id)]

    result = company_service.get_company(db, company.id)

    assert len(result.contacts) == 1
    assert result.contacts[0].first_name == "Priya"


# --- approval workflow ---

def test_approve_pending_company():
    company = make_company()
    db = make_db(company)

    result = company_service.approve_company(db, company.id, APPROVER_ID)

    assert result.status == "approved"
    assert result.approved_by_id == APPROVER_ID


@pytest.mark.parametrize("status", ["approved", "rejected"])
def test_approve_non_pending_refused(status):
    company = make_company(status=status)
    db = make_db(company)

    with pytest.raises(InvalidStateError):
        company_service.approve_company(db, company.id, APPROVER_ID)


def test_reject_requires_reason():
    company = make_company()
    db = make_db(company)

    with pytest.raises(BadRequestError):
        company_service.reject_company(db, company.id, APPROVER_ID, "  ")
    assert company.status == "pending"


def test_reject_pending_company():
    company = make_company()
    db = make_db(company)

    result = company_service.reject_company(db, company.id, APPROVER_ID, " Duplicate entry ")

    assert result.status == "rejected"
    assert result.status_reason == "Duplicate entry"


# --- nearby ---

def test_nearby_companies_sorted_and_filtered():
    near = make_company(name="Near", code="N1", latitude=48.8570, longitude=2.3530)
    mid = make_company(name="Mid", code="M1", latitude=48.8700, longitude=2.3600)
    # inside the bounding box corner but beyond the radius
    corner = make_company(name="Corner", code="C1", latitude=48.8566 + 0.044, longitude=2.3522 + 0.067)
    db = make_db()
    db.execute.return_value.scalars.return_value.all.return_value = [mid, corner, near]

    result = company_service.get_nearby_companies(db, 48.8566, 2.3522, radius_km=5)

    assert [c.name for c in result] == ["Near", "Mid"]
    assert result[0].distance_km < result[1].distance_km


def test_nearby_companies_limit():
    companies = [
        make_company(name=f"C{i}", code=f"C{i}", latitude=48.8566 + i * 0.001, longitude=2.3522)
        for i in range(5)
    ]
    db = make_db()
    db.execute.return_value.scalars.return_value.all.return_value = companies

    result = company_service.get_nearby_companies(db, 48.8566, 2.3522, radius_km=5, limit=2)

    assert [c.name for c in result] == ["C0", "C1"]


# --- contacts ---

def test_create_contact_unknown_company():
    with pytest.raises(NotFoundError):
        contact_service.create_contact(make_db(None), uuid.uuid4(), USER_ID, ContactCreate(first_name="A", last_name="B"))


def test_create_contact_invalidates_company_cache():
    company = make_company()
    db = make_db(company)

    with patch("app.services.contact_service.cache_service") as cache:
        cache.company_key.return_value = f"company:{company.id}"
        result = contact_service.create_contact(
            db, company.id, USER_ID, ContactCreate(first_name="Priya", last_name="Shah", is_decision_maker=True)
        )

    assert result.company_id == company.id
    assert result.is_decision_maker is True
    cache.delete.assert_called_once_with(f"company:{company.id}")


def test_update_contact():
    contact = make_contact(uuid.uuid4())
    db = make_db(contact)

    result = contact_service.update_contact(db, contact.id, ContactUpdate(designation="Buyer"))

    assert result.designation == "Buyer"


def test_delete_contact_is_soft():
    contact = make_contact(uuid.uuid4())
    db = make_db(contact)

    contact_service.delete_contact(db, contact.id)

    assert contact.is_active is False
    db.delete.assert_not_called()
    db.commit.assert_called_once()


def test_get_contact_not_found():
    with pytest.raises(NotFoundError):
        contact_service.get_contact(make_db(None), uuid.uuid4())
