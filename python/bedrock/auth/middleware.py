"""Bearer token authentication as a per-route middleware.

Provides:
- require_auth: Middleware factory that validates ``Authorization: Bearer <token>``
- with_user_id / get_user_id: request-scoped identity storage and lookup

Order of checks:
1. Authorization header present
2. Header is exactly "Bearer <token>"
3. Token validates under the shared secret
4. Subject attached to request state, then the wrapped handler runs

All failures answer 401 with a generic message; the precise reason only
goes to the log.
"""

from starlette.requests import Request

from bedrock.auth.tokens import validate_jwt
from bedrock.errors import ApiErrorCode, AuthError, BadFormatError, MissingHeaderError
from bedrock.logging import get_logger, get_request_id, set_request_context
from bedrock.middleware.chain import Handler, Middleware
from bedrock.responses import JSONResponse, Response, api_error_response

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "authorization"
BEARER_SCHEME = "Bearer"

# Namespaced so it cannot collide with application state attributes
USER_ID_STATE_KEY = "bedrock.user_id"

MISSING_HEADER_MESSAGE = "missing authorization header"
BAD_FORMAT_MESSAGE = "invalid authorization format"
INVALID_TOKEN_MESSAGE = "invalid token"


def with_user_id(request: Request, user_id: str) -> Request:
    """Attach user_id to the request's scoped state and return the request."""
    setattr(request.state, USER_ID_STATE_KEY, user_id)
    return request


def get_user_id(request: Request) -> str | None:
    """Return the authenticated subject, or None when auth did not run."""
    return getattr(request.state, USER_ID_STATE_KEY, None)


def extract_bearer_token(request: Request) -> str:
    """Pull the token out of the Authorization header.

    The header must split on single spaces into exactly two parts, the first
    being the case-sensitive scheme "Bearer".

    Raises:
        MissingHeaderError: No Authorization header.
        BadFormatError: Any other shape.
    """
    header = request.headers.get(AUTHORIZATION_HEADER)
    if not header:
        raise MissingHeaderError(MISSING_HEADER_MESSAGE)

    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME:
        raise BadFormatError(BAD_FORMAT_MESSAGE)

    return parts[1]


def require_auth(secret: str) -> Middleware:
    """Build a middleware that rejects requests without a valid token.

    Args:
        secret: Shared HMAC secret used to validate tokens.

    Returns:
        A Middleware for use in ``Route.middleware`` or ``chain``.
    """

    def middleware(next_handler: Handler) -> Handler:
        async def handler(request: Request) -> Response:
            try:
                token = extract_bearer_token(request)
            except MissingHeaderError:
                return _unauthorized(request, MissingHeaderError.reason, MISSING_HEADER_MESSAGE)
            except BadFormatError:
                return _unauthorized(request, BadFormatError.reason, BAD_FORMAT_MESSAGE)

            try:
                user_id = validate_jwt(token, secret)
            except AuthError as e:
                return _unauthorized(request, e.reason, INVALID_TOKEN_MESSAGE)

            set_request_context(get_request_id(), user_id)
            return await next_handler(with_user_id(request, user_id))

        return handler

    return middleware


def _unauthorized(request: Request, reason: str, message: str) -> JSONResponse:
    logger.warning("auth_failure", reason=reason, path=request.url.path)
    return api_error_response(ApiErrorCode.E_UNAUTHENTICATED, message)
