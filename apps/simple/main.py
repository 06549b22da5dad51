"""Example bedrock service.

Routes:
- GET /hello: greeting
- GET /error: always 500
- POST /user: echo a decoded user as 201
- POST /login: exchange username/password for a token
- GET /me: the authenticated subject (requires a bearer token)
- POST /uploadFile: store a multipart "document" under the upload directory

Run with: python apps/simple/main.py [config.toml]
"""

import sys
from datetime import timedelta
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field
from starlette.requests import Request

from bedrock import (
    BaseConfig,
    BedrockError,
    ConfigError,
    EnvVar,
    Response,
    Route,
    check_password,
    decode_json,
    generate_jwt,
    get_uploaded_file,
    get_user_id,
    hash_password,
    json_response,
    load_config,
    require_auth,
    run,
    server_error,
)
from bedrock.logging import configure_logging, get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.toml"


class AppConfig(BaseModel):
    """Service configuration; ``[bedrock]`` holds the shared settings."""

    bedrock: BaseConfig = Field(default_factory=BaseConfig)

    jwt_secret: Annotated[str, EnvVar("JWT_SECRET")] = ""
    token_ttl_minutes: Annotated[int, EnvVar("TOKEN_TTL_MINUTES")] = 60
    upload_dir: Annotated[str, EnvVar("UPLOAD_DIR")] = "uploads"
    demo_username: Annotated[str, EnvVar("DEMO_USERNAME")] = "demo"
    demo_password: Annotated[str, EnvVar("DEMO_PASSWORD")] = ""


class User(BaseModel):
    firstname: str = ""
    lastname: str = ""
    email: str = ""


class LoginRequest(BaseModel):
    username: str
    password: str


class SimpleApp:
    """Implements the bedrock App protocol."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.password_hashes: dict[str, str] = {}

    async def on_start(self) -> None:
        if not self.config.jwt_secret:
            raise ValueError("jwt_secret is not configured")

        Path(self.config.upload_dir).mkdir(parents=True, exist_ok=True)
        if self.config.demo_password:
            self.password_hashes[self.config.demo_username] = hash_password(
                self.config.demo_password
            )
        logger.info("simple_app_started", upload_dir=self.config.upload_dir)

    async def on_stop(self) -> None:
        self.password_hashes.clear()
        logger.info("simple_app_stopped")

    def routes(self) -> list[Route]:
        return [
            Route("GET", "/hello", self.hello),
            Route("GET", "/error", self.error),
            Route("POST", "/user", self.create_user),
            Route("POST", "/login", self.login),
            Route("GET", "/me", self.me, middleware=(require_auth(self.config.jwt_secret),)),
            Route("POST", "/uploadFile", self.upload_document),
        ]

    async def hello(self, request: Request) -> Response:
        return json_response(200, {"message": "Hello!"})

    async def error(self, request: Request) -> Response:
        return server_error({"message": "Something went wrong"})

    async def create_user(self, request: Request) -> Response:
        user = await decode_json(request, User)
        return json_response(201, user)

    async def login(self, request: Request) -> Response:
        body = await decode_json(request, LoginRequest)
        hashed = self.password_hashes.get(body.username)
        if hashed is None or not check_password(body.password, hashed):
            return json_response(401, {"message": "invalid credentials"})

        token = generate_jwt(
            body.username,
            self.config.jwt_secret,
            timedelta(minutes=self.config.token_ttl_minutes),
        )
        return json_response(200, {"token": token})

    async def me(self, request: Request) -> Response:
        return json_response(200, {"user_id": get_user_id(request)})

    async def upload_document(self, request: Request) -> Response:
        uploaded = await get_uploaded_file(request, "document")
        try:
            # Strip any client-supplied directories
            filename = Path(uploaded.filename).name or "upload.bin"
            destination = Path(self.config.upload_dir) / filename
            destination.write_bytes(await uploaded.read_all())
        finally:
            await uploaded.close()

        return json_response(200, {"filename": filename, "path": str(destination)})


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    config_path = args[0] if args else DEFAULT_CONFIG_PATH

    configure_logging()
    try:
        config = load_config(config_path, AppConfig())
    except ConfigError as e:
        logger.error("config_load_failed", path=config_path, error=str(e))
        return 1

    try:
        run(SimpleApp(config), config.bedrock)
    except BedrockError as e:
        logger.error("server_failed", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
