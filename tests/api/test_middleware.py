"""Tests for health endpoints and API middleware."""

from fastapi.testclient import TestClient


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "podbridge", "version": "0.1.0"}

    def test_ready_reports_store(self, client: TestClient) -> None:
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "document_store": "InMemoryDocumentStore"}


class TestRequestIdMiddleware:
    """Tests for request ID correlation middleware."""

    def test_generates_request_id_if_not_provided(self, client: TestClient) -> None:
        response = client.get("/health")

        assert len(response.headers["X-Request-ID"]) == 36

    def test_uses_provided_request_id(self, client: TestClient) -> None:
        response = client.get("/health", headers={"X-Request-ID": "custom-request-id-12345"})

        assert response.headers["X-Request-ID"] == "custom-request-id-12345"

    def test_error_response_carries_request_id(self, auth_client: TestClient) -> None:
        response = auth_client.get(
            "/stores/acme.myshopify.com/merchant",
            headers={"X-Request-ID": "req-404"},
        )

        assert response.status_code == 404
        assert response.json()["request_id"] == "req-404"


class TestApiKeyMiddleware:
    """Tests for API key authentication middleware."""

    def test_docs_are_public(self, client: TestClient) -> None:
        assert client.get("/openapi.json").status_code == 200

    def test_invalid_auth_format_rejected(self, client: TestClient) -> None:
        response = client.get(
            "/stores/acme.myshopify.com/orders",
            headers={"Authorization": "InvalidFormat"},
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    def test_event_token_does_not_open_dashboard(self, client: TestClient, token) -> None:
        response = client.get("/stores/acme.myshopify.com/orders", params=token)
        assert response.status_code == 401

    def test_valid_api_key(self, auth_client: TestClient, seed_merchant, make_merchant) -> None:
        seed_merchant(make_merchant())

        response = auth_client.get("/stores/acme.myshopify.com/merchant")

        assert response.status_code == 200
