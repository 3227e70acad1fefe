"""
API tests for authentication, the health check and the error envelope.
"""

import uuid
from unittest.mock import MagicMock, patch

from app.core.security import create_access_token
from app.exceptions import ConflictError, UnauthorizedError
from app.models.user import Role, User
from app.schemas.auth import LoginResponse, ProfileResponse, TokenPair


# --- Helpers ---

def make_login_response(email="rep@fieldforce.test") -> LoginResponse:
    return LoginResponse(
        user=ProfileResponse(
            id=uuid.uuid4(),
            email=email,
            first_name="Sam",
            last_name="Rep",
            role_id=uuid.uuid4(),
            role_name="Sales representative",
            permissions=["read:visits"],
        ),
        tokens=TokenPair(access_token="access", refresh_token="refresh", expires_in=3600),
    )


# ============================================================
# Health
# ============================================================

def test_health(anonymous_client):
    response = anonymous_client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unknown_route_uses_error_envelope(anonymous_client):
    response = anonymous_client.get("/api/v1/nowhere")
    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "Not Found"}


# ============================================================
# Signup / login
# ============================================================

def test_signup_success(anonymous_client):
    with patch("app.routers.auth.auth_service.signup") as mock:
        mock.return_value = make_login_response("new@rep.test")
        response = anonymous_client.post("/api/v1/auth/signup", json={
            "first_name": "New", "last_name": "Rep", "email": "new@rep.test", "password": "longenough",
        })

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Account created"
    assert body["data"]["tokens"]["token_type"] == "bearer"


def test_signup_short_password(anonymous_client):
    response = anonymous_client.post("/api/v1/auth/signup", json={
        "first_name": "New", "last_name": "Rep", "email": "new@rep.test", "password": "short",
    })
    assert response.status_code == 422
    assert response.json()["message"] == "Validation failed"


def test_signup_email_taken(anonymous_client):
    with patch("app.routers.auth.auth_service.signup", side_effect=ConflictError("Email already registered")):
        response = anonymous_client.post("/api/v1/auth/signup", json={
            "first_name": "New", "last_name": "Rep", "email": "new@rep.test", "password": "longenough",
        })
    assert response.status_code == 409


def test_login_success(anonymous_client):
    with patch("app.routers.auth.auth_service.login") as mock:
        mock.return_value = make_login_response()
        response = anonymous_client.post("/api/v1/auth/login", json={
            "email": "rep@fieldforce.test", "password": "secret-pass",
        })

    assert response.status_code == 200
    assert response.json()["data"]["user"]["role_name"] == "Sales representative"
    mock.assert_called_once()
    assert mock.call_args.args[1:] == ("rep@fieldforce.test", "secret-pass")


def test_login_invalid_credentials(anonymous_client):
    with patch("app.routers.auth.auth_service.login", side_effect=UnauthorizedError("Invalid credentials")):
        response = anonymous_client.post("/api/v1/auth/login", json={
            "email": "rep@fieldforce.test", "password": "bad",
        })
    assert response.status_code == 401
    assert response.json() == {"status": "error", "message": "Invalid credentials"}


def test_login_invalid_email(anonymous_client):
    response = anonymous_client.post("/api/v1/auth/login", json={"email": "nope", "password": "x"})
    assert response.status_code == 422


# ============================================================
# Refresh / logout / profile
# ============================================================

def test_refresh_token(anonymous_client):
    with patch("app.routers.auth.auth_service.refresh") as mock:
        mock.return_value = TokenPair(access_token="a2", refresh_token="r2", expires_in=3600)
        response = anonymous_client.post("/api/v1/auth/refresh-token", json={"refresh_token": "r1"})

    assert response.status_code == 200
    assert response.json()["data"]["refresh_token"] == "r2"


def test_logout(anonymous_client):
    with patch("app.routers.auth.auth_service.logout") as mock:
        response = anonymous_client.post("/api/v1/auth/logout", json={"refresh_token": "r1"})

    assert response.status_code == 200
    assert response.json()["message"] == "Logged out"
    assert mock.call_args.args[1] == "r1"


def test_profile_requires_token(anonymous_client):
    response = anonymous_client.get("/api/v1/auth/profile")
    assert response.status_code == 401
    assert response.json()["message"] == "Authentication required"


def test_profile_resolves_bearer_token():
    """Runs the real get_current_user against a mocked session."""
    from fastapi.testclient import TestClient

    from app.database import get_db
    from app.main import app

    role = Role(id=uuid.uuid4(), name="Manager", permissions=["read:users"], is_active=True)
    user = User(
        id=uuid.uuid4(), email="boss@fieldforce.test", first_name="Ada", last_name="Boss",
        role_id=role.id, is_active=True,
    )
    db = MagicMock()
    db.get.side_effect = lambda model, ident: {User: user, Role: role}[model]
    app.dependency_overrides[get_db] = lambda: db

    try:
        with TestClient(app) as c, patch("app.routers.auth.auth_service.get_profile") as mock:
            mock.return_value = ProfileResponse(
                id=user.id, email=user.email, first_name="Ada", last_name="Boss",
                role_id=role.id, role_name="Manager", permissions=["read:users"],
            )
            response = c.get(
                "/api/v1/auth/profile",
                headers={"Authorization": f"Bearer {create_access_token(user.id)}"},
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["data"]["email"] == "boss@fieldforce.test"
    assert mock.call_args.args[1] == user.id


def test_deactivated_user_token_refused():
    from fastapi.testclient import TestClient

    from app.database import get_db
    from app.main import app

    user = User(id=uuid.uuid4(), email="gone@fieldforce.test", first_name="A", last_name="B",
                role_id=uuid.uuid4(), is_active=False)
    db = MagicMock()
    db.get.return_value = user
    app.dependency_overrides[get_db] = lambda: db

    try:
        with TestClient(app) as c:
            response = c.get(
                "/api/v1/auth/profile",
                headers={"Authorization": f"Bearer {create_access_token(user.id)}"},
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 403
    assert response.json()["message"] == "Account is deactivated"
