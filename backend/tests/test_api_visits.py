"""
API tests for the DSR router: URLs, status codes, validation, permissions
and the response envelope. Services are patched.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import patch

from app.exceptions import ConflictError, InvalidStateError, NotFoundError, StorageError
from app.schemas.report import DailyVisitReport, VisitReportSummary
from app.schemas.visit import FollowUpResponse, PaymentResponse, VisitPhotoResponse, VisitResponse


# --- Helpers ---

def make_visit_response(**kwargs) -> VisitResponse:
    return VisitResponse(
        id=kwargs.get("id", uuid.uuid4()),
        user_id=kwargs.get("user_id", uuid.uuid4()),
        company_id=kwargs.get("company_id", uuid.uuid4()),
        start_time=datetime.now(timezone.utc),
        end_time=kwargs.get("end_time"),
        status=kwargs.get("status", "CHECKED_IN"),
        purpose=kwargs.get("purpose", "Quarterly review"),
        location="POINT(72.8777 19.076)",
        latitude=19.076,
        longitude=72.8777,
    )


def check_in_payload(**overrides) -> dict:
    payload = {
        "company_id": str(uuid.uuid4()),
        "purpose": "Quarterly review",
        "location": {"latitude": 19.076, "longitude": 72.8777},
    }
    payload.update(overrides)
    return payload


# ============================================================
# POST /api/v1/dsr/check-in
# ============================================================

def test_check_in_success(client):
    with patch("app.routers.visits.visit_service.check_in") as mock:
        mock.return_value = make_visit_response()
        response = client.post("/api/v1/dsr/check-in", json=check_in_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["message"] == "Checked in"
    assert body["data"]["status"] == "CHECKED_IN"
    assert body["data"]["latitude"] == 19.076


def test_check_in_already_checked_in(client):
    with patch("app.routers.visits.visit_service.check_in") as mock:
        mock.side_effect = ConflictError("You already have an active visit. Please check out first.")
        response = client.post("/api/v1/dsr/check-in", json=check_in_payload())

    assert response.status_code == 409
    assert response.json() == {
        "status": "error",
        "message": "You already have an active visit. Please check out first.",
    }


def test_check_in_latitude_out_of_range(client):
    response = client.post(
        "/api/v1/dsr/check-in",
        json=check_in_payload(location={"latitude": 91, "longitude": 10}),
    )
    assert response.status_code == 422
    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "Validation failed"
    assert body["errors"]


def test_check_in_missing_location(client):
    payload = check_in_payload()
    del payload["location"]
    assert client.post("/api/v1/dsr/check-in", json=payload).status_code == 422


def test_check_in_without_permission(restricted_client):
    response = restricted_client.post("/api/v1/dsr/check-in", json=check_in_payload())
    assert response.status_code == 403
    assert response.json()["message"] == "Insufficient permissions"


def test_check_in_anonymous(anonymous_client):
    response = anonymous_client.post("/api/v1/dsr/check-in", json=check_in_payload())
    assert response.status_code == 401
    assert response.json()["status"] == "error"


def test_check_in_invalid_token(anonymous_client):
    response = anonymous_client.post(
        "/api/v1/dsr/check-in",
        json=check_in_payload(),
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token"


# ============================================================
# POST /api/v1/dsr/check-out/{id}
# ============================================================

def test_check_out_success(client):
    visit_id = uuid.uuid4()
    with patch("app.routers.visits.visit_service.check_out") as mock:
        mock.return_value = make_visit_response(id=visit_id, status="CHECKED_OUT", end_time=datetime.now(timezone.utc))
        response = client.post(
            f"/api/v1/dsr/check-out/{visit_id}",
            json={"notes": "Signed", "location": {"latitude": 19.0, "longitude": 72.0}},
        )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "CHECKED_OUT"
    assert mock.call_args.args[1] == visit_id


def test_check_out_wrong_status(client):
    with patch("app.routers.visits.visit_service.check_out") as mock:
        mock.side_effect = InvalidStateError("Cannot check out a visit with status PLANNED")
        response = client.post(
            f"/api/v1/dsr/check-out/{uuid.uuid4()}",
            json={"location": {"latitude": 19.0, "longitude": 72.0}},
        )
    assert response.status_code == 400
    assert "PLANNED" in response.json()["message"]


def test_check_out_invalid_uuid(client):
    response = client.post(
        "/api/v1/dsr/check-out/not-a-uuid",
        json={"location": {"latitude": 19.0, "longitude": 72.0}},
    )
    assert response.status_code == 422


# ============================================================
# Visits
# ============================================================

def test_get_visit_not_found(client):
    with patch("app.routers.visits.visit_service.get_visit") as mock:
        mock.side_effect = NotFoundError("Visit not found")
        response = client.get(f"/api/v1/dsr/visits/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["message"] == "Visit not found"


def test_list_visits_pagination_meta(client):
    with patch("app.routers.visits.visit_service.get_visits") as mock:
        mock.return_value = ([make_visit_response(), make_visit_response()], 12)
        response = client.get("/api/v1/dsr/visits?page=2&limit=5")

    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["meta"] == {
        "total_count": 12,
        "page": 2,
        "limit": 5,
        "total_pages": 3,
        "has_next_page": True,
        "has_prev_page": True,
    }


def test_list_visits_invalid_order(client):
    assert client.get("/api/v1/dsr/visits?order=sideways").status_code == 422


def test_update_visit_invalid_status(client):
    response = client.patch(f"/api/v1/dsr/visits/{uuid.uuid4()}", json={"status": "FINISHED"})
    assert response.status_code == 422


# ============================================================
# POST /api/v1/dsr/visits/{id}/photos
# ============================================================

def test_upload_photo_success(client):
    visit_id = uuid.uuid4()
    with patch("app.routers.visits.visit_service.upload_visit_photo") as mock:
        mock.return_value = VisitPhotoResponse(
            id=uuid.uuid4(), visit_id=visit_id, photo_url="https://cdn/visits/a.jpg", caption="Shelf",
        )
        response = client.post(
            f"/api/v1/dsr/visits/{visit_id}/photos",
            files={"photo": ("shelf.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
            data={"caption": "Shelf"},
        )

    assert response.status_code == 201
    assert response.json()["data"]["photo_url"] == "https://cdn/visits/a.jpg"
    args = mock.call_args.args
    assert args[4] == "image/jpeg"
    assert args[5] == "shelf.jpg"
    assert args[6] == "Shelf"


def test_upload_photo_rejects_non_image(client):
    with patch("app.routers.visits.visit_service.upload_visit_photo") as mock:
        response = client.post(
            f"/api/v1/dsr/visits/{uuid.uuid4()}/photos",
            files={"photo": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
        )
    assert response.status_code == 400
    assert response.json()["message"] == "Only image files are allowed"
    mock.assert_not_called()


def test_upload_photo_rejects_empty_file(client):
    response = client.post(
        f"/api/v1/dsr/visits/{uuid.uuid4()}/photos",
        files={"photo": ("empty.png", b"", "image/png")},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "The file is empty"


def test_upload_photo_caption_too_long(client):
    response = client.post(
        f"/api/v1/dsr/visits/{uuid.uuid4()}/photos",
        files={"photo": ("a.png", b"png", "image/png")},
        data={"caption": "x" * 101},
    )
    assert response.status_code == 422


def test_upload_photo_storage_down(client):
    with patch("app.routers.visits.visit_service.upload_visit_photo") as mock:
        mock.side_effect = StorageError("File upload failed, please retry later.")
        response = client.post(
            f"/api/v1/dsr/visits/{uuid.uuid4()}/photos",
            files={"photo": ("a.png", b"png", "image/png")},
        )
    assert response.status_code == 502
    assert response.json()["status"] == "error"


# ============================================================
# Follow-ups and payments
# ============================================================

def test_create_follow_up(client):
    visit_id = uuid.uuid4()
    with patch("app.routers.visits.visit_service.create_follow_up") as mock:
        mock.return_value = FollowUpResponse(
            id=uuid.uuid4(), visit_id=visit_id, due_date=date(2026, 11, 2), status="PENDING", priority="HIGH",
        )
        response = client.post(
            f"/api/v1/dsr/visits/{visit_id}/follow-ups",
            json={"due_date": "2026-11-02", "priority": "HIGH"},
        )

    assert response.status_code == 201
    assert response.json()["data"]["priority"] == "HIGH"


def test_create_follow_up_invalid_priority(client):
    response = client.post(
        f"/api/v1/dsr/visits/{uuid.uuid4()}/follow-ups",
        json={"due_date": "2026-11-02", "priority": "URGENT"},
    )
    assert response.status_code == 422


def test_create_payment(client):
    visit_id = uuid.uuid4()
    with patch("app.routers.visits.visit_service.create_payment") as mock:
        mock.return_value = PaymentResponse(
            id=uuid.uuid4(), visit_id=visit_id, amount=Decimal("250.00"), payment_method="UPI",
        )
        response = client.post(
            f"/api/v1/dsr/visits/{visit_id}/payments",
            json={"amount": "250.00", "payment_method": "UPI"},
        )

    assert response.status_code == 201
    assert response.json()["message"] == "Payment recorded"


def test_create_payment_negative_amount(client):
    response = client.post(
        f"/api/v1/dsr/visits/{uuid.uuid4()}/payments",
        json={"amount": "-5", "payment_method": "CASH"},
    )
    assert response.status_code == 422


# ============================================================
# Nearby companies and reports
# ============================================================

def test_nearby_companies_requires_coordinates(client):
    assert client.get("/api/v1/dsr/nearby-companies?latitude=19.0").status_code == 422


def test_nearby_companies_passes_radius(client):
    with patch("app.routers.visits.company_service.get_nearby_companies") as mock:
        mock.return_value = []
        response = client.get("/api/v1/dsr/nearby-companies?latitude=19.0&longitude=72.0&radius_km=2.5&limit=3")

    assert response.status_code == 200
    assert response.json()["data"] == []
    assert mock.call_args.args[1:] == (19.0, 72.0, 2.5, 3)


def test_daily_report_date_alias(client, current_user):
    with patch("app.routers.visits.report_service.get_daily_report") as mock:
        mock.return_value = DailyVisitReport(date=date(2026, 3, 10), summary=VisitReportSummary())
        response = client.get("/api/v1/dsr/reports/daily?date=2026-03-10")

    assert response.status_code == 200
    assert response.json()["data"]["summary"]["total_visits"] == 0
    assert mock.call_args.args[1] == current_user.id
    assert mock.call_args.args[2] == date(2026, 3, 10)


def test_monthly_report_invalid_month(client):
    assert client.get("/api/v1/dsr/reports/monthly?year=2026&month=13").status_code == 422


def test_reports_without_permission(restricted_client):
    assert restricted_client.get("/api/v1/dsr/reports/daily").status_code == 403
