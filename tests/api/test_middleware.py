"""Tests for API middleware."""

import pytest
from fastapi.testclient import TestClient

from catalog_engine.infrastructure.config import settings


class TestRequestIdMiddleware:
    """Tests for request ID correlation middleware."""

    def test_generates_request_id_if_not_provided(self, client: TestClient) -> None:
        """Should generate request ID if not in request headers."""
        response = client.get("/health")
        assert response.status_code == 200
        assert "X-Request-ID" in response.headers
        # UUID format
        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 36

    def test_uses_provided_request_id(self, client: TestClient) -> None:
        """Should use request ID from request headers."""
        custom_id = "custom-request-id-12345"
        response = client.get(
            "/health",
            headers={"X-Request-ID": custom_id},
        )
        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == custom_id

    def test_request_id_in_error_body(self, client: TestClient) -> None:
        """Error responses carry the request ID."""
        response = client.get(
            "/exports/missing",
            headers={"X-Request-ID": "req-1", "X-Seller-ID": "seller-1"},
        )
        assert response.status_code == 404
        assert response.json()["request_id"] == "req-1"
        assert response.headers["X-Request-ID"] == "req-1"


class TestSellerIdentity:
    """Tests for the seller identity header."""

    def test_public_endpoints_dont_require_seller(self, client: TestClient) -> None:
        """Health and category endpoints work without a seller."""
        assert client.get("/health").status_code == 200
        assert client.get("/ready").status_code == 200
        assert client.get("/categories").status_code == 200

    def test_seller_endpoints_require_header(self, client: TestClient) -> None:
        """Seller-scoped endpoints reject requests without a seller."""
        response = client.get("/imports")
        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "SELLER_REQUIRED"

    def test_blank_seller_rejected(self, client: TestClient) -> None:
        """A blank seller header counts as missing."""
        response = client.get("/exports", headers={"X-Seller-ID": "   "})
        assert response.status_code == 401


class TestUploadLimitMiddleware:
    """Tests for the upload size guard."""

    def test_declared_size_over_limit_rejected(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Uploads declaring a body above the limit never reach the endpoint."""
        monkeypatch.setattr(settings, "max_upload_bytes", 0)
        content = b"SKU,Title\n" + b"A,B\n" * 20000

        response = client.post(
            "/imports/preview",
            files={"file": ("big.csv", content, "text/csv")},
            headers={"X-Seller-ID": "seller-1", "X-Request-ID": "req-big"},
        )

        assert response.status_code == 413
        data = response.json()
        assert data["error_code"] == "FILE_TOO_LARGE"
        assert data["request_id"] == "req-big"

    def test_other_paths_not_checked(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Only upload endpoints are size-checked."""
        monkeypatch.setattr(settings, "max_upload_bytes", 0)

        response = client.post("/categories", json={"name": "Books"})

        assert response.status_code == 201
