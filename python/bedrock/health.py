"""Process health state and its HTTP endpoints.

Two independent flags:
- healthy: the application's start hook succeeded
- ready: the main listener is accepting connections (cleared on shutdown)

Endpoints (any HTTP method):
- /health: 200 if healthy, else 503
- /ready: 200 if ready, else 503
- /live: alias of /health

Only the server runner changes the flags; the endpoints just read them.
"""

import threading
from collections.abc import Callable

from starlette.routing import Route as StarletteRoute
from starlette.types import Receive, Scope, Send

from bedrock.responses import JSONResponse

HEALTH_PATH = "/health"
READY_PATH = "/ready"
LIVE_PATH = "/live"

RESERVED_PATHS = frozenset({HEALTH_PATH, READY_PATH, LIVE_PATH})


class HealthStatus:
    """Thread-safe pair of health flags, both False initially."""

    def __init__(self) -> None:
        # Reads are single attribute loads, so one mutex serves readers and writers
        self._lock = threading.Lock()
        self._healthy = False
        self._ready = False

    def set_healthy(self, healthy: bool) -> None:
        with self._lock:
            self._healthy = healthy

    def set_ready(self, ready: bool) -> None:
        with self._lock:
            self._ready = ready

    def is_healthy(self) -> bool:
        with self._lock:
            return self._healthy

    def is_ready(self) -> bool:
        with self._lock:
            return self._ready


class StatusEndpoint:
    """ASGI endpoint that answers 200 or 503 depending on a flag.

    Being a plain ASGI callable rather than a function, a Starlette Route
    built from it accepts every HTTP method.
    """

    def __init__(self, probe: Callable[[], bool], up: str, down: str):
        self.probe = probe
        self.up = up
        self.down = down

    def render(self) -> JSONResponse:
        if self.probe():
            return JSONResponse(200, {"status": self.up})
        return JSONResponse(503, {"status": self.down})

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.render()(scope, receive, send)


def health_handler(status: HealthStatus) -> StatusEndpoint:
    """Build the /health (and /live) endpoint for status."""
    return StatusEndpoint(status.is_healthy, "healthy", "unhealthy")


def ready_handler(status: HealthStatus) -> StatusEndpoint:
    """Build the /ready endpoint for status."""
    return StatusEndpoint(status.is_ready, "ready", "not ready")


def health_routes(status: HealthStatus) -> list[StarletteRoute]:
    """Starlette routes for the three health endpoints, answering any method."""
    alive = health_handler(status)
    return [
        StarletteRoute(HEALTH_PATH, alive),
        StarletteRoute(READY_PATH, ready_handler(status)),
        StarletteRoute(LIVE_PATH, alive),
    ]
