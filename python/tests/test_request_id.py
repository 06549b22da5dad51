"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on auth failures
- Request ID in error response body
- Access log entries with status, subject, path and method
"""

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from bedrock.app import build_application
from bedrock.middleware.request_id import is_valid_request_id, resolve_request_id
from tests.helpers import auth_headers


class TestRequestIdMiddleware:
    """Tests for X-Request-ID middleware."""

    def test_request_id_generated_when_missing(self, client: TestClient):
        """Request ID is generated when not provided."""
        response = client.get("/hello")

        assert response.status_code == 200
        UUID(response.headers["X-Request-ID"])

    def test_request_id_preserved_when_valid(self, client: TestClient):
        """Valid non-UUID request IDs are preserved."""
        response = client.get("/hello", headers={"X-Request-ID": "abc_def-123"})
        assert response.headers["X-Request-ID"] == "abc_def-123"

    def test_uuid_request_id_lowercased(self, client: TestClient):
        upper = "A1B2C3D4-E5F6-4789-ABCD-EF0123456789"
        response = client.get("/hello", headers={"X-Request-ID": upper})
        assert response.headers["X-Request-ID"] == upper.lower()

    def test_invalid_request_id_replaced(self, client: TestClient):
        """IDs with disallowed characters are replaced with a fresh UUID."""
        response = client.get("/hello", headers={"X-Request-ID": "bad id with spaces"})

        request_id = response.headers["X-Request-ID"]
        assert request_id != "bad id with spaces"
        UUID(request_id)

    def test_request_id_on_auth_failure(self, client: TestClient):
        """401s from route middleware still carry the ID, in header and body."""
        response = client.get("/me", headers={"X-Request-ID": "trace-401"})

        assert response.status_code == 401
        assert response.headers["X-Request-ID"] == "trace-401"
        assert response.json()["error"]["request_id"] == "trace-401"

    def test_request_id_on_authenticated_request(self, client: TestClient):
        response = client.get("/me", headers=auth_headers("user-9"))
        assert response.status_code == 202
        assert "X-Request-ID" in response.headers


class TestRequestIdValidation:
    """Tests for the validation helpers."""

    @pytest.mark.parametrize("value", ["abc", "a.b-c_d", "x" * 128, str(uuid4())])
    def test_valid_ids(self, value: str):
        assert is_valid_request_id(value)

    @pytest.mark.parametrize("value", ["", "x" * 129, "has space", "slash/id", "ünïcode"])
    def test_invalid_ids(self, value: str):
        assert not is_valid_request_id(value)

    def test_resolve_keeps_non_uuid_case(self):
        assert resolve_request_id("MixedCase") == "MixedCase"

    def test_resolve_lowercases_uuid(self):
        assert resolve_request_id("ABCDEF01-2345-4789-ABCD-EF0123456789") == (
            "abcdef01-2345-4789-abcd-ef0123456789"
        )

    @pytest.mark.parametrize("value", [None, "", "bad id"])
    def test_resolve_generates_uuid_for_missing_or_invalid(self, value):
        UUID(resolve_request_id(value))


class TestAccessLog:
    """Tests for the request_completed entry."""

    def test_access_entry_carries_subject(self, routes):
        client = TestClient(build_application(routes, log_requests=True))

        with capture_logs() as logs:
            response = client.get(
                "/me", headers={**auth_headers("user-42"), "X-Request-ID": "trace-42"}
            )

        assert response.status_code == 202
        entries = [e for e in logs if e["event"] == "request_completed"]
        assert len(entries) == 1
        entry = entries[0]
        assert entry["status_code"] == 202
        assert entry["user_id"] == "user-42"
        assert entry["path"] == "/me"
        assert entry["method"] == "GET"

    def test_access_entry_for_anonymous_request(self, routes):
        client = TestClient(build_application(routes, log_requests=True))

        with capture_logs() as logs:
            client.get("/hello")

        entry = next(e for e in logs if e["event"] == "request_completed")
        assert entry["status_code"] == 200
        assert entry["user_id"] is None

    def test_access_log_can_be_disabled(self, routes):
        client = TestClient(build_application(routes, log_requests=False))

        with capture_logs() as logs:
            client.get("/hello")

        assert not any(e["event"] == "request_completed" for e in logs)
