"""Error definitions.

Two families live here:
- ApiError / ApiErrorCode: errors that become an HTTP error envelope.
- BedrockError and its subclasses: framework failures raised by the config
  loader, the token service, and the server runner.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for HTTP error envelopes.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"

    # Method errors (405)
    E_METHOD_NOT_ALLOWED = "E_METHOD_NOT_ALLOWED"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_FILE_TOO_LARGE = "E_FILE_TOO_LARGE"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_METHOD_NOT_ALLOWED: 405,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_FILE_TOO_LARGE: 400,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class BedrockError(Exception):
    """Base class for framework errors."""


# Configuration errors (fatal at startup)


class ConfigError(BedrockError):
    """Base class for configuration loading failures."""


class ConfigTypeError(ConfigError, TypeError):
    """The load destination is not a config model instance."""


class ConfigDecodeError(ConfigError):
    """The config file exists but could not be decoded into the destination.

    Attributes:
        path: The file that failed to decode.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"failed to decode config file {path}: {reason}")


class EnvConversionError(ConfigError):
    """An environment variable could not be converted to its field's type.

    Attributes:
        field: Dotted name of the target field.
        env_var: The environment variable that was read.
        value: The offending raw value.
    """

    def __init__(self, field: str, env_var: str, value: str, expected: str):
        self.field = field
        self.env_var = env_var
        self.value = value
        self.expected = expected
        super().__init__(
            f"failed to set field {field} from env {env_var}: "
            f'cannot parse "{value}" as {expected}'
        )


# Token and authentication errors (surfaced as 401)


class AuthError(BedrockError):
    """Base class for authentication failures."""

    reason = "auth_failed"


class MissingHeaderError(AuthError):
    """The Authorization header is absent."""

    reason = "missing_header"


class BadFormatError(AuthError):
    """The Authorization header is not of the form ``Bearer <token>``."""

    reason = "bad_format"


class InvalidSignatureError(AuthError):
    """The token signature does not verify, or a non-HMAC algorithm was used."""

    reason = "invalid_signature"


class ExpiredTokenError(AuthError):
    """The token's expiry is not in the future."""

    reason = "expired"


class MalformedTokenError(AuthError):
    """The token cannot be parsed or lacks required claims."""

    reason = "malformed"


# Server runner errors


class RouteConflictError(BedrockError):
    """An application route collides with a reserved health path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"route {path} conflicts with a reserved health endpoint")


class StartupError(BedrockError):
    """The application's start hook failed."""


class ListenerError(BedrockError):
    """A listener could not be bound or started."""
