"""bedrock: minimal web-application scaffolding.

Routing, JSON request/response helpers, JWT auth middleware, bcrypt password
hashing, TOML + environment configuration, CORS, and a health/readiness
lifecycle tied to process signals.
"""

from bedrock.app import App, Route, build_application
from bedrock.auth import (
    check_password,
    generate_jwt,
    get_user_id,
    hash_password,
    require_auth,
    validate_jwt,
    with_user_id,
)
from bedrock.config import BaseConfig, EnvVar, Loader, load_config, resolve_port
from bedrock.errors import (
    ApiError,
    ApiErrorCode,
    AuthError,
    BedrockError,
    ConfigDecodeError,
    ConfigError,
    ConfigTypeError,
    EnvConversionError,
    ListenerError,
    RouteConflictError,
    StartupError,
)
from bedrock.health import HealthStatus
from bedrock.middleware import CORSConfig, Handler, Middleware, chain, default_cors_config
from bedrock.request import (
    UploadedFile,
    decode_json,
    get_form_value,
    get_uploaded_file,
    get_uploaded_files,
    parse_multipart_form,
    path_param,
    query_param,
)
from bedrock.responses import EmptyResponse, JSONResponse, Response, json_response, server_error
from bedrock.server import Runner, run, run_with_cors

__all__ = [
    "ApiError",
    "ApiErrorCode",
    "App",
    "AuthError",
    "BaseConfig",
    "BedrockError",
    "CORSConfig",
    "ConfigDecodeError",
    "ConfigError",
    "ConfigTypeError",
    "EmptyResponse",
    "EnvConversionError",
    "EnvVar",
    "Handler",
    "HealthStatus",
    "JSONResponse",
    "ListenerError",
    "Loader",
    "Middleware",
    "Response",
    "Route",
    "RouteConflictError",
    "Runner",
    "StartupError",
    "UploadedFile",
    "build_application",
    "chain",
    "check_password",
    "decode_json",
    "default_cors_config",
    "generate_jwt",
    "get_form_value",
    "get_uploaded_file",
    "get_uploaded_files",
    "get_user_id",
    "hash_password",
    "json_response",
    "load_config",
    "parse_multipart_form",
    "path_param",
    "query_param",
    "require_auth",
    "resolve_port",
    "run",
    "run_with_cors",
    "server_error",
    "validate_jwt",
    "with_user_id",
]
