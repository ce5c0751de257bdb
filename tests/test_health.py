from learnsy.core.database import get_db
from learnsy.main import app


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["message"] == "Learnsy API is running"
    assert body["version"]


def test_security_headers(client):
    response = client.get("/api/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_database_outage_reports_503(client):
    class BrokenDatabase:
        async def command(self, name):
            raise ConnectionError("connection refused")

    async def broken_db():
        return BrokenDatabase()

    app.dependency_overrides[get_db] = broken_db
    response = client.get("/api/health/db")
    assert response.status_code == 503
    assert response.json() == {"success": False, "message": "Database unavailable"}


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json()["success"] is False
