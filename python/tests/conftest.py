"""Pytest configuration and fixtures for bedrock tests.

Test isolation strategy:
- Every environment variable bedrock reads is cleared before each test
- HTTP-level tests wrap a built ASGI app in Starlette's TestClient
- Runner lifecycle tests bind real listeners on 127.0.0.1
"""

import sys
from pathlib import Path

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi.testclient import TestClient

from bedrock.app import Route, build_application
from bedrock.auth.middleware import require_auth
from bedrock.health import HealthStatus
from bedrock.middleware.cors import default_cors_config
from tests.helpers import TEST_SECRET, echo_user_handler, hello_handler

BEDROCK_ENV_VARS = [
    "HTTP_PORT",
    "HEALTH_PORT",
    "METRICS_PORT",
    "LOG_LEVEL",
    "ENVIRONMENT",
    "NOMAD_PORT_http",
    "NOMAD_PORT_health",
    "NOMAD_PORT_metrics",
    "JWT_SECRET",
    "TOKEN_TTL_MINUTES",
    "UPLOAD_DIR",
    "DEMO_USERNAME",
    "DEMO_PASSWORD",
    "DATABASE_URL",
    "MAX_CONNECTIONS",
    "API_KEY",
    "CACHE_TTL",
    "FEATURE_ENABLED",
    "SAMPLE_RATIO",
    "WORKER_COUNT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure no ambient environment leaks into config or port resolution."""
    for name in BEDROCK_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def health_status() -> HealthStatus:
    """A fresh health tracker (both flags False)."""
    return HealthStatus()


@pytest.fixture
def routes() -> list[Route]:
    """A small route table: one public route, one protected route."""
    return [
        Route("GET", "/hello", hello_handler),
        Route("GET", "/me", echo_user_handler, middleware=(require_auth(TEST_SECRET),)),
    ]


@pytest.fixture
def client(routes: list[Route]) -> TestClient:
    """Client for the application routes with default CORS, no health endpoints."""
    app = build_application(routes, cors=default_cors_config(), log_requests=False)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def merged_client(routes: list[Route], health_status: HealthStatus) -> TestClient:
    """Client for a merged-mode app: health endpoints in front of the routes."""
    app = build_application(
        routes, cors=default_cors_config(), health=health_status, log_requests=False
    )
    return TestClient(app, raise_server_exceptions=False)
