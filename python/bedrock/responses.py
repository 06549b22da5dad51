"""Response types, envelope helpers, and exception handlers.

Handlers return a ``Response``: a value that knows how to write itself onto
the ASGI send stream. Instances are ASGI callables, so the router awaits them
directly.

Body envelopes follow one convention:
- Success: { "data": ... }
- Error: { "error": { "code": "E_...", "message": "...", "request_id": "..." } }
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from fastapi.encoders import jsonable_encoder
from starlette.requests import Request
from starlette.responses import JSONResponse as StarletteJSONResponse
from starlette.responses import Response as StarletteResponse
from starlette.types import Receive, Scope, Send

from bedrock.errors import ERROR_CODE_TO_STATUS, ApiError, ApiErrorCode
from bedrock.logging import get_logger, get_request_id

logger = get_logger(__name__)


class Response(ABC):
    """A handler result that serializes itself (status + body) onto the wire."""

    status_code: int

    @abstractmethod
    async def write(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Send the complete HTTP response through ``send``."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.write(scope, receive, send)


class JSONResponse(Response):
    """Status code plus a JSON-encoded payload.

    Args:
        status_code: HTTP status code.
        data: Any value ``jsonable_encoder`` accepts (dicts, lists, pydantic models, ...).
        headers: Optional extra response headers.
    """

    media_type = "application/json"

    def __init__(
        self,
        status_code: int,
        data: Any,
        headers: Mapping[str, str] | None = None,
    ):
        self.status_code = status_code
        self.data = data
        self.headers = dict(headers or {})

    async def write(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = StarletteJSONResponse(
            content=jsonable_encoder(self.data),
            status_code=self.status_code,
            headers=self.headers,
        )
        await response(scope, receive, send)

    def __repr__(self) -> str:
        return f"JSONResponse(status_code={self.status_code!r}, data={self.data!r})"


class EmptyResponse(Response):
    """Status code with no body. Used for preflight replies."""

    def __init__(self, status_code: int = 200, headers: Mapping[str, str] | None = None):
        self.status_code = status_code
        self.headers = dict(headers or {})

    async def write(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = StarletteResponse(status_code=self.status_code, headers=self.headers)
        await response(scope, receive, send)


def json_response(status_code: int, data: Any) -> JSONResponse:
    """Build a JSON response with the given status."""
    return JSONResponse(status_code, data)


def server_error(data: Any) -> JSONResponse:
    """Build a 500 JSON response carrying data."""
    return JSONResponse(500, data)


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Optional request ID for correlation (auto-populated from context if None).

    Returns:
        Dict with "error" key containing code, message, and request_id.
    """
    if request_id is None:
        request_id = get_request_id()

    error = {"code": code.value, "message": message}
    if request_id:
        error["request_id"] = request_id

    return {"error": error}


def api_error_response(code: ApiErrorCode, message: str) -> JSONResponse:
    """Build an error-envelope response with the status mapped to code."""
    return JSONResponse(ERROR_CODE_TO_STATUS.get(code, 500), error_response(code, message))


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(exc.status_code, error_response(exc.code, exc.message))


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle Starlette HTTPException (404, 405, form parse errors, ...)."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        403: ApiErrorCode.E_FORBIDDEN,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_METHOD_NOT_ALLOWED,
        413: ApiErrorCode.E_FILE_TOO_LARGE,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        exc.status_code,
        error_response(code, message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", error_type=type(exc).__name__)

    return JSONResponse(500, error_response(ApiErrorCode.E_INTERNAL, "Internal server error"))
