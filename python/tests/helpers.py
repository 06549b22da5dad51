"""Test helpers for tokens, handlers, ports, and a scriptable App.

Provides:
- Token minting for test authentication
- Header generation for test requests
- Reusable route handlers
- Free-port lookup and polling for runner lifecycle tests
- StubApp: an App whose hooks can be gated or made to fail
"""

import asyncio
import base64
import json
import socket
import time
from collections.abc import Callable

import jwt
from starlette.requests import Request

from bedrock.app import Route
from bedrock.auth.middleware import get_user_id
from bedrock.responses import JSONResponse, Response

# At least 32 bytes so PyJWT does not warn about short HMAC keys
TEST_SECRET = "bedrock-test-secret-0123456789abcdef"
OTHER_SECRET = "another-test-secret-fedcba9876543210"
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_test_token(
    user_id: str,
    secret: str = TEST_SECRET,
    expires_in: int = DEFAULT_EXPIRES_IN,
    algorithm: str = "HS256",
    **extra_claims,
) -> str:
    """Mint a signed test token.

    Args:
        user_id: The `sub` claim.
        secret: HMAC secret.
        expires_in: Token validity in seconds from now (negative for expired).
        algorithm: HMAC algorithm to sign with.
        **extra_claims: Additional claims to include.
    """
    now = int(time.time())
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def mint_expired_token(user_id: str, secret: str = TEST_SECRET) -> str:
    """Mint a token that expired a minute ago."""
    return mint_test_token(user_id, secret=secret, expires_in=-60)


def mint_unsigned_token(user_id: str) -> str:
    """Build an ``alg: none`` token by hand."""

    def encode(part: dict) -> str:
        raw = json.dumps(part, separators=(",", ":")).encode()
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()

    now = int(time.time())
    header = {"alg": "none", "typ": "JWT"}
    payload = {"sub": user_id, "iat": now, "exp": now + DEFAULT_EXPIRES_IN}
    return f"{encode(header)}.{encode(payload)}."


def mint_rsa_token(user_id: str) -> str:
    """Mint an RS256 token signed with a throwaway RSA key."""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_key_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    now = int(time.time())
    payload = {"sub": user_id, "iat": now, "exp": now + DEFAULT_EXPIRES_IN}
    return jwt.encode(payload, private_key_bytes, algorithm="RS256")


def auth_headers(user_id: str, secret: str = TEST_SECRET) -> dict[str, str]:
    """Authorization header carrying a valid token for user_id."""
    return {"Authorization": f"Bearer {mint_test_token(user_id, secret=secret)}"}


async def hello_handler(request: Request) -> Response:
    return JSONResponse(200, {"message": "Hello!"})


async def echo_user_handler(request: Request) -> Response:
    return JSONResponse(202, {"user_id": get_user_id(request)})


def free_port() -> int:
    """Ask the OS for a currently unused TCP port on 127.0.0.1."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll predicate until it holds, failing the test after timeout seconds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


class StubApp:
    """App whose start hook can be held open or made to fail.

    Attributes:
        started / stopped: Whether each hook ran.
        start_gate: When set, on_start waits for it before returning.
    """

    def __init__(
        self,
        routes: list[Route] | None = None,
        start_error: Exception | None = None,
        stop_error: Exception | None = None,
    ):
        self._routes = routes or []
        self.start_error = start_error
        self.stop_error = stop_error
        self.start_gate: asyncio.Event | None = None
        self.start_entered = False
        self.started = False
        self.stopped = False

    async def on_start(self) -> None:
        self.start_entered = True
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    async def on_stop(self) -> None:
        self.stopped = True
        if self.stop_error is not None:
            raise self.stop_error

    def routes(self) -> list[Route]:
        return self._routes
