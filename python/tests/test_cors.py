"""Tests for CORS header injection.

Tests cover:
- Wildcard and explicit origin handling
- Optional headers (credentials, max-age, exposed headers)
- Preflight responses on registered routes
"""

from fastapi.testclient import TestClient

from bedrock.app import Route, build_application
from bedrock.middleware.cors import CORSConfig, cors_headers, default_cors_config
from tests.helpers import hello_handler


def make_client(config: CORSConfig) -> TestClient:
    routes = [Route("GET", "/hello", hello_handler)]
    app = build_application(routes, cors=config, log_requests=False)
    return TestClient(app)


class TestDefaultConfig:
    """Tests for default_cors_config()."""

    def test_default_values(self):
        config = default_cors_config()

        assert config.allowed_origins == ["*"]
        assert config.allowed_methods == ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
        assert config.allowed_headers == ["Accept", "Authorization", "Content-Type", "X-CSRF-Token"]
        assert config.exposed_headers == ["Link"]
        assert config.allow_credentials is False
        assert config.max_age == 300

    def test_default_headers_on_response(self, client: TestClient):
        response = client.get("/hello", headers={"Origin": "http://example.com"})

        assert response.headers["access-control-allow-origin"] == "*"
        assert (
            response.headers["access-control-allow-methods"]
            == "GET, POST, PUT, DELETE, PATCH, OPTIONS"
        )
        assert (
            response.headers["access-control-allow-headers"]
            == "Accept, Authorization, Content-Type, X-CSRF-Token"
        )
        assert response.headers["access-control-expose-headers"] == "Link"
        assert response.headers["access-control-max-age"] == "300"
        assert "access-control-allow-credentials" not in response.headers

    def test_wildcard_without_origin_header(self, client: TestClient):
        """The wildcard is sent even when the request has no Origin."""
        response = client.get("/hello")
        assert response.headers["access-control-allow-origin"] == "*"


class TestExplicitOrigins:
    """Tests for a fixed allow-list."""

    config = CORSConfig(
        allowed_origins=["https://app.example.com", "https://admin.example.com"],
        allowed_methods=["GET"],
        allow_credentials=True,
    )

    def test_listed_origin_is_echoed(self):
        response = make_client(self.config).get(
            "/hello", headers={"Origin": "https://admin.example.com"}
        )
        assert response.headers["access-control-allow-origin"] == "https://admin.example.com"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_unlisted_origin_gets_no_allow_origin(self):
        response = make_client(self.config).get(
            "/hello", headers={"Origin": "https://evil.example.com"}
        )

        assert response.status_code == 200
        assert "access-control-allow-origin" not in response.headers
        assert response.headers["access-control-allow-methods"] == "GET"

    def test_empty_lists_and_zero_max_age_omit_headers(self):
        response = make_client(self.config).get(
            "/hello", headers={"Origin": "https://app.example.com"}
        )

        assert "access-control-allow-headers" not in response.headers
        assert "access-control-expose-headers" not in response.headers
        assert "access-control-max-age" not in response.headers


class TestPreflight:
    """Tests for OPTIONS on registered routes."""

    def test_preflight_returns_bare_200(self, client: TestClient):
        response = client.options(
            "/hello",
            headers={
                "Origin": "http://example.com",
                "Access-Control-Request-Method": "GET",
            },
        )

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-methods" in response.headers

    def test_preflight_on_protected_route_skips_auth(self, client: TestClient):
        """OPTIONS does not run the route's middleware."""
        response = client.options("/me", headers={"Origin": "http://example.com"})
        assert response.status_code == 200

    def test_preflight_on_unknown_route_is_404(self, client: TestClient):
        response = client.options("/unknown", headers={"Origin": "http://example.com"})
        assert response.status_code == 404


class TestCorsHeaders:
    """Tests for the pure header computation."""

    def test_first_matching_entry_wins(self):
        config = CORSConfig(allowed_origins=["https://a.example.com", "*"])
        assert cors_headers(config, "https://a.example.com") == {
            "access-control-allow-origin": "https://a.example.com"
        }
        assert cors_headers(config, "https://b.example.com") == {
            "access-control-allow-origin": "*"
        }

    def test_no_origins_configured(self):
        assert cors_headers(CORSConfig(), "https://a.example.com") == {}
