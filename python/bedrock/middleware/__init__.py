"""Request middleware: per-route chaining, CORS, and request correlation."""

from bedrock.middleware.chain import Handler, Middleware, chain
from bedrock.middleware.cors import CORSConfig, CORSMiddleware, default_cors_config

__all__ = [
    "CORSConfig",
    "CORSMiddleware",
    "Handler",
    "Middleware",
    "chain",
    "default_cors_config",
]
