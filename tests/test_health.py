"""Tests for health endpoints and app-level routes."""

from fastapi.testclient import TestClient


def test_liveness(client: TestClient) -> None:
    """Test the liveness endpoint."""
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness(client: TestClient) -> None:
    """Test the readiness endpoint."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["database"] is True
    assert data["environment"] == "testing"


def test_health(client: TestClient) -> None:
    """Test the general health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "OK"
    assert data["app_name"] == "reloc-api"
    assert data["uptime"] >= 0
    assert "version" in data
    assert "timestamp" in data


def test_db_test(client: TestClient) -> None:
    """Test the database probe."""
    response = client.get("/db-test")
    assert response.status_code == 200
    data = response.json()
    assert data["connected"] is True
    assert data["time"]


def test_root(client: TestClient) -> None:
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Reloc Community API is running..."
    assert "version" in data
    assert data["endpoints"]["comments"] == "GET /api/posts/:id/comments"


def test_unknown_route_is_404(client: TestClient) -> None:
    response = client.get("/api/nope")
    assert response.status_code == 404
    data = response.json()
    assert data["error"] is True
    assert data["message"] == "Endpoint not found"
    assert data["request_id"] == response.headers["X-Request-ID"]


def test_security_headers_on_app(client: TestClient) -> None:
    response = client.get("/health")
    assert "Content-Security-Policy" in response.headers
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_unlisted_origin_is_forbidden(client: TestClient) -> None:
    response = client.get("/api/posts", headers={"Origin": "https://evil.example"})
    assert response.status_code == 403
    data = response.json()
    assert data["error"] is True
    assert data["message"] == "CORS policy violation"
    assert "access-control-allow-origin" not in response.headers


def test_listed_origin_gets_cors_headers(client: TestClient) -> None:
    response = client.get("/api/posts", headers={"Origin": "http://localhost:3000"})
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


def test_preflight_from_unlisted_origin_is_forbidden(client: TestClient) -> None:
    response = client.options(
        "/api/posts",
        headers={
            "Origin": "https://evil.example",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert response.status_code == 403
