"""Request correlation and access logging for application routes.

Every HTTP request gets an ID: a well-formed incoming X-Request-ID is kept
(UUIDs lowercased), anything else is replaced with a fresh UUID4. The ID is
bound into the log context for the lifetime of the request, echoed on the
response, and stamped on one ``request_completed`` access entry together
with the status, the duration and the authenticated subject if any.

Health endpoints in merged mode are dispatched before this layer and are
neither tagged nor access-logged.
"""

import re
import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from bedrock.auth.middleware import USER_ID_STATE_KEY
from bedrock.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"

# ASCII only, so the character bound is also the byte bound
_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]{1,128}")
_UUID_PATTERN = re.compile(r"[0-9a-fA-F]{8}(?:-[0-9a-fA-F]{4}){3}-[0-9a-fA-F]{12}")

logger = get_logger(__name__)


def is_valid_request_id(value: str) -> bool:
    return _REQUEST_ID_PATTERN.fullmatch(value) is not None


def resolve_request_id(incoming: str | None) -> str:
    """Pick the ID for a request from its X-Request-ID header value."""
    if not incoming or not is_valid_request_id(incoming):
        return str(uuid.uuid4())
    if _UUID_PATTERN.fullmatch(incoming):
        return incoming.lower()
    return incoming


class RequestIDMiddleware:
    """ASGI layer that tags each request with an ID and logs its outcome.

    Args:
        app: The wrapped ASGI application.
        log_requests: Emit a ``request_completed`` entry per request.
    """

    def __init__(self, app: ASGIApp, log_requests: bool = True):
        self.app = app
        self.log_requests = log_requests

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.monotonic()
        request_id = resolve_request_id(Headers(scope=scope).get(REQUEST_ID_HEADER))
        method = scope["method"]
        path = scope["path"]
        status_code = 500

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                message.setdefault("headers", [])
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        set_request_context(request_id, path=path, method=method)
        try:
            await self.app(scope, receive, send_with_request_id)
        except Exception:
            logger.exception("request_failed", method=method, path=path)
            raise
        else:
            if self.log_requests:
                # Auth runs inside the route, so the subject is only known now
                logger.info(
                    "request_completed",
                    method=method,
                    path=path,
                    status_code=status_code,
                    user_id=scope.get("state", {}).get(USER_ID_STATE_KEY),
                    duration_ms=round((time.monotonic() - started) * 1000, 2),
                )
        finally:
            clear_request_context()
