"""Pure ASGI CORS header injection.

Headers are added on the http.response.start message, so streaming bodies
are never buffered. Preflight requests are not answered here: every
registered route also gets an OPTIONS responder, and this layer decorates
that reply like any other.
"""

from dataclasses import dataclass, field

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

WILDCARD = "*"


@dataclass
class CORSConfig:
    """Cross-origin settings.

    Attributes:
        allowed_origins: Origins to echo back; "*" allows any origin.
        allowed_methods: Sent as Access-Control-Allow-Methods when non-empty.
        allowed_headers: Sent as Access-Control-Allow-Headers when non-empty.
        exposed_headers: Sent as Access-Control-Expose-Headers when non-empty.
        allow_credentials: Sends Access-Control-Allow-Credentials: true when set.
        max_age: Preflight cache lifetime in seconds; omitted when <= 0.
    """

    allowed_origins: list[str] = field(default_factory=list)
    allowed_methods: list[str] = field(default_factory=list)
    allowed_headers: list[str] = field(default_factory=list)
    exposed_headers: list[str] = field(default_factory=list)
    allow_credentials: bool = False
    max_age: int = 0


def default_cors_config() -> CORSConfig:
    """Permissive settings suitable for development."""
    return CORSConfig(
        allowed_origins=[WILDCARD],
        allowed_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allowed_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token"],
        exposed_headers=["Link"],
        allow_credentials=False,
        max_age=300,
    )


def resolve_allowed_origin(config: CORSConfig, origin: str | None) -> str | None:
    """Return the Access-Control-Allow-Origin value for origin, or None.

    The first matching entry wins: "*" yields the literal wildcard, an exact
    match yields the request's own origin.
    """
    for allowed in config.allowed_origins:
        if allowed == WILDCARD:
            return WILDCARD
        if origin and allowed == origin:
            return origin
    return None


def cors_headers(config: CORSConfig, origin: str | None) -> dict[str, str]:
    """Compute the CORS response headers for a request from origin."""
    headers: dict[str, str] = {}

    allow_origin = resolve_allowed_origin(config, origin)
    if allow_origin is not None:
        headers["access-control-allow-origin"] = allow_origin

    if config.allowed_methods:
        headers["access-control-allow-methods"] = ", ".join(config.allowed_methods)
    if config.allowed_headers:
        headers["access-control-allow-headers"] = ", ".join(config.allowed_headers)
    if config.exposed_headers:
        headers["access-control-expose-headers"] = ", ".join(config.exposed_headers)
    if config.allow_credentials:
        headers["access-control-allow-credentials"] = "true"
    if config.max_age > 0:
        headers["access-control-max-age"] = str(config.max_age)

    return headers


class CORSMiddleware:
    """Pure ASGI middleware that sets CORS headers on every HTTP response."""

    def __init__(self, app: ASGIApp, config: CORSConfig | None = None):
        self.app = app
        self.config = config if config is not None else default_cors_config()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        extra = cors_headers(self.config, origin)

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                resp_headers = MutableHeaders(scope=message)
                for name, value in extra.items():
                    resp_headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)
