import pytest
from fastapi.testclient import TestClient

from price_sync.auth import hash_password
from price_sync.config import settings
from price_sync.dependencies import require_auth
from price_sync.main import app
from price_sync.routes import auth as auth_routes

from fakes import ENCRYPTION_KEY, OPERATOR_PASSWORD

OPERATOR_PASSWORD_HASH = hash_password(OPERATOR_PASSWORD)


@pytest.fixture()
def api_client(tmp_path, monkeypatch):
    """App with a throwaway database and the scheduler left stopped."""
    monkeypatch.setattr(settings, "database_path", str(tmp_path / "api.db"))
    monkeypatch.setattr(settings, "scheduler_enabled", False)
    monkeypatch.setattr(settings, "admin_password_hash", OPERATOR_PASSWORD_HASH)
    monkeypatch.setattr(settings, "encryption_key", ENCRYPTION_KEY)
    monkeypatch.setattr(settings, "streetpricer_username", "")
    auth_routes.failed_attempts.clear()

    with TestClient(app) as client:
        yield client

    auth_routes.failed_attempts.clear()


@pytest.fixture()
def authed_client(api_client):
    app.dependency_overrides[require_auth] = lambda: None
    yield api_client
    app.dependency_overrides.clear()
