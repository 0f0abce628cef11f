import pytest

from app.main import app
from app.core.config import settings
from app.core.database import get_redis, get_columns, table_exists, ensure_notifications_table

class FakeRedis:
    """Just enough of the redis client for the fixed-window limiter."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, seconds, value):
        self.store[key] = str(value)

    def incr(self, key):
        self.store[key] = str(int(self.store.get(key, 0)) + 1)
        return int(self.store[key])

@pytest.fixture
def limited(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 3)
    app.dependency_overrides[get_redis] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_redis, None)

class TestServiceSurface:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == settings.VERSION
        assert "X-Process-Time" in response.headers

    def test_root_and_info(self, client):
        assert client.get("/").json()["message"] == "Welcome to MediVault API"

        info = client.get("/api/v1/info").json()
        assert info["name"] == settings.APP_NAME
        assert info["endpoints"]["appointments"] == "/api/v1/appointments"

    def test_unknown_endpoint(self, client):
        response = client.get("/api/v1/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Endpoint not found"}

    def test_unauthorized_carries_bearer_challenge(self, client):
        response = client.get("/api/v1/auth/me")
        assert response.headers["WWW-Authenticate"] == "Bearer"

class TestSchemaHelpers:

    def test_table_helpers(self, test_db):
        assert table_exists("notifications")
        assert not table_exists("medicines")
        assert {"recipient_id", "recipient_role", "metadata"} <= get_columns("notifications")
        assert get_columns("medicines") == set()

    def test_ensure_notifications_table_is_idempotent(self, test_db):
        ensure_notifications_table()
        ensure_notifications_table()
        assert table_exists("notifications")

class TestRateLimit:

    def test_login_rate_limited(self, client, limited):
        credentials = {"username": "nobody", "password": "whatever"}
        statuses = [client.post("/api/v1/auth/login", json=credentials).status_code for _ in range(4)]
        assert statuses == [401, 401, 401, 429]

        response = client.post("/api/v1/auth/login", json=credentials)
        assert response.json()["message"] == "Too many requests. Please try again later."

    def test_disabled_limiter_never_blocks(self, client):
        credentials = {"username": "nobody", "password": "whatever"}
        statuses = {client.post("/api/v1/auth/login", json=credentials).status_code for _ in range(12)}
        assert statuses == {401}
