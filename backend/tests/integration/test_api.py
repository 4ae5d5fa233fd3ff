"""
Integration tests for API endpoints using FastAPI TestClient.

Tests basic endpoints (root, health) and the request context middleware.
"""

import uuid

from fastapi.testclient import TestClient


class TestRootEndpoint:
    """Tests for GET /."""

    def test_returns_api_info(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Konversi Dokumen API"
        assert data["version"] == "0.1.0"
        assert "docs" in data


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_returns_healthy(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestRequestContextMiddleware:
    """Tests for X-Request-ID / X-Session-ID headers injected by RequestContextMiddleware."""

    def test_request_id_header_present(self, client: TestClient):
        response = client.get("/health")
        assert "x-request-id" in response.headers

    def test_request_id_is_valid_uuid(self, client: TestClient):
        response = client.get("/health")
        request_id = response.headers["x-request-id"]
        # Should not raise ValueError
        uuid.UUID(request_id)

    def test_request_id_unique_per_request(self, client: TestClient):
        r1 = client.get("/health")
        r2 = client.get("/health")
        assert r1.headers["x-request-id"] != r2.headers["x-request-id"]

    def test_session_id_issued_when_missing(self, client: TestClient):
        response = client.get("/health")
        uuid.UUID(response.headers["x-session-id"])

    def test_session_id_echoed(self, client: TestClient):
        response = client.get("/health", headers={"X-Session-ID": "session-abc"})
        assert response.headers["x-session-id"] == "session-abc"


class TestAuthProtection:
    """Endpoints that need a logged-in user."""

    def test_history_without_token_returns_401(self, client: TestClient):
        response = client.get("/api/v1/convert/history")
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "login_required"

    def test_orders_without_token_returns_401(self, client: TestClient):
        response = client.get("/api/v1/subscription/orders")
        assert response.status_code == 401

    def test_token_without_supabase_returns_503(self, client: TestClient):
        response = client.get(
            "/api/v1/convert/status",
            headers={"Authorization": "Bearer some-token"},
        )
        assert response.status_code == 503

    def test_public_endpoints_no_auth_required(self, client: TestClient):
        assert client.get("/health").status_code == 200
        assert client.get("/api/v1/convert/formats").status_code == 200
        assert client.get("/api/v1/subscription/plans").status_code == 200
