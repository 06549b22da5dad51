"""Application contract and ASGI dispatch-table construction.

An application implements the ``App`` protocol: async start/stop hooks plus
a ``routes()`` list. ``build_application`` turns those routes into an ASGI
app.

Layering of the built app (outermost first):
1. Health endpoints, in merged mode only (bypass everything below)
2. CORSMiddleware (headers on every application response)
3. FastAPI app: exception handlers, then RequestIDMiddleware
4. Router: one route per application Route, plus an OPTIONS responder
5. Per-route middleware chain, then the handler
"""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from fastapi import FastAPI
from starlette.applications import Starlette
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.routing import Route as StarletteRoute
from starlette.types import ASGIApp, Receive, Scope, Send

from bedrock.errors import ApiError, RouteConflictError
from bedrock.health import RESERVED_PATHS, HealthStatus, health_routes
from bedrock.logging import get_logger
from bedrock.middleware.chain import Handler, Middleware, chain
from bedrock.middleware.cors import CORSConfig, CORSMiddleware, default_cors_config
from bedrock.middleware.request_id import RequestIDMiddleware
from bedrock.responses import (
    EmptyResponse,
    Response,
    api_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
)

logger = get_logger(__name__)

# Path parameter name used to implement prefix routes
PREFIX_REST_PARAM = "bedrock_rest"


@dataclass(frozen=True)
class Route:
    """One application endpoint.

    Attributes:
        method: HTTP method; "" accepts any method.
        path: URL path, with ``{name}`` placeholders for path parameters.
        handler: ``async def handler(request) -> Response``.
        middleware: Applied in order around handler; the first sees the request first.
        is_prefix: Match every path starting with ``path``.
    """

    method: str
    path: str
    handler: Handler
    middleware: tuple[Middleware, ...] = field(default_factory=tuple)
    is_prefix: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "middleware", tuple(self.middleware))

    @property
    def pattern(self) -> str:
        """The router path pattern for this route."""
        if self.is_prefix:
            return f"{self.path}{{{PREFIX_REST_PARAM}:path}}"
        return self.path


@runtime_checkable
class App(Protocol):
    """What the server runner needs from an application."""

    async def on_start(self) -> None:
        """Initialize resources. Raising aborts startup."""
        ...

    async def on_stop(self) -> None:
        """Release resources during shutdown."""
        ...

    def routes(self) -> list[Route]:
        """Routes to serve. An empty list runs the process in background mode."""
        ...


class RouteEndpoint:
    """ASGI adapter that runs a Handler and writes the Response it returns."""

    def __init__(self, handler: Handler):
        self.handler = handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive, send)
        response = await self.handler(request)
        await response(scope, receive, send)


async def preflight_handler(request: Request) -> Response:
    """Bare 200 for OPTIONS; CORS headers are added by CORSMiddleware."""
    return EmptyResponse(200)


def check_route_conflicts(routes: list[Route]) -> None:
    """Reject routes that reuse a reserved health path.

    Raises:
        RouteConflictError: For the first conflicting route.
    """
    for route in routes:
        if route.path in RESERVED_PATHS:
            raise RouteConflictError(route.path)


def router_routes(routes: list[Route]) -> list[StarletteRoute]:
    """Translate application routes into Starlette routes.

    Each distinct pattern also gets one OPTIONS responder, registered after
    the application's own routes for that pattern.
    """
    result: list[StarletteRoute] = []
    preflight_patterns: list[str] = []

    for route in routes:
        handler = chain(route.handler, *route.middleware)
        methods = [route.method] if route.method else None
        result.append(StarletteRoute(route.pattern, RouteEndpoint(handler), methods=methods))
        if route.pattern not in preflight_patterns:
            preflight_patterns.append(route.pattern)

    for pattern in preflight_patterns:
        result.append(
            StarletteRoute(pattern, RouteEndpoint(preflight_handler), methods=["OPTIONS"])
        )

    return result


def create_app(routes: list[Route], log_requests: bool = True) -> FastAPI:
    """Create the FastAPI app serving routes.

    Args:
        routes: Application routes.
        log_requests: Whether RequestIDMiddleware emits access log entries.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="bedrock",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        redirect_slashes=False,
        routes=router_routes(routes),
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)

    return app


def build_health_application(status: HealthStatus) -> Starlette:
    """ASGI app serving only /health, /ready and /live."""
    return Starlette(
        routes=health_routes(status),
        exception_handlers={StarletteHTTPException: http_exception_handler},
    )


class HealthFirstApplication:
    """Sends reserved health paths to the health app and everything else on."""

    def __init__(self, health_app: ASGIApp, app: ASGIApp):
        self.health_app = health_app
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"] in RESERVED_PATHS:
            await self.health_app(scope, receive, send)
            return
        await self.app(scope, receive, send)


def build_application(
    routes: list[Route],
    cors: CORSConfig | None = None,
    health: HealthStatus | None = None,
    log_requests: bool = True,
) -> ASGIApp:
    """Build the complete ASGI app for routes.

    Args:
        routes: Application routes.
        cors: CORS settings; defaults to ``default_cors_config()``.
        health: When given (merged mode), health endpoints are served in
            front of the application, outside CORS and request middleware.
        log_requests: Whether to emit access log entries.

    Raises:
        RouteConflictError: In merged mode, a route uses a reserved health path.
    """
    if health is not None:
        check_route_conflicts(routes)

    app = CORSMiddleware(
        create_app(routes, log_requests=log_requests),
        cors if cors is not None else default_cors_config(),
    )

    if health is None:
        return app

    return HealthFirstApplication(build_health_application(health), app)
