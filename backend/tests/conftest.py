"""
Shared test configuration.
get_db is overridden so no test ever opens a PostgreSQL connection; the Redis
cache and the background scheduler are switched off.
"""

import uuid
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.core.deps import get_current_user
from app.database import get_db
from app.main import app
from app.schemas.auth import CurrentUser
from app.services.role_service import PERMISSION_CATALOG

ALL_PERMISSIONS = [key for items in PERMISSION_CATALOG.values() for key, _ in items]


def make_current_user(permissions=None) -> CurrentUser:
    return CurrentUser(
        id=uuid.uuid4(),
        email="rep@fieldforce.test",
        first_name="Sam",
        last_name="Rep",
        role_id=uuid.uuid4(),
        role_name="Sales representative",
        permissions=ALL_PERMISSIONS if permissions is None else permissions,
    )


@pytest.fixture(autouse=True)
def no_external_services(monkeypatch):
    monkeypatch.setattr(settings, "CACHE_ENABLED", False)
    monkeypatch.setattr(settings, "SCHEDULER_ENABLED", False)


@pytest.fixture
def current_user():
    return make_current_user()


@pytest.fixture
def client(current_user):
    """Test HTTP client: mocked DB, authenticated user holding every permission."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: current_user
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def restricted_client():
    """Authenticated user whose role holds no permission at all."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: make_current_user(permissions=[])
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    """No bearer token: the real get_current_user runs."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
