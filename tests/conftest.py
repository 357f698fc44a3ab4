import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app


@pytest.fixture
def app_settings(tmp_path):
    """Isolated settings: in-memory SQLite, temp uploads dir, fast bcrypt."""
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-secret-with-at-least-32-bytes!!",
        uploads_dir=str(tmp_path / "uploads"),
        frontend_dist_dir=str(tmp_path / "no-client"),
        bcrypt_rounds=4,
        auth_rate_limit_max_requests=50,
        rate_limit_max_requests=50,
        log_level="WARNING",
    )


@pytest.fixture
def app(app_settings):
    return create_app(app_settings)


@pytest.fixture
def client(app):
    """FastAPI test client (runs lifespan, does not raise server exceptions)."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def register_user(client):
    """Factory: register a user over HTTP, return (token, user JSON)."""

    def _register(username="alice", email="alice@example.com", password="secret123"):
        resp = client.post(
            "/api/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["token"], body["user"]

    return _register


@pytest.fixture
def auth_headers(register_user):
    """Headers for an authenticated request as a freshly registered user."""
    token, _ = register_user()
    return {"Authorization": f"Bearer {token}"}
