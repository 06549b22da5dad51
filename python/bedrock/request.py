"""Request helpers: JSON body decoding, path/query params, multipart uploads.

Failures raise ApiError subclasses, which the registered exception handler
turns into a 400 error envelope.
"""

import json
from dataclasses import dataclass
from typing import IO, Any, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.datastructures import FormData
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.requests import Request

from bedrock.errors import ApiErrorCode, InvalidRequestError

ModelT = TypeVar("ModelT", bound=BaseModel)


async def decode_json(request: Request, model: type[ModelT] | None = None) -> Any:
    """Decode the request body as JSON.

    Args:
        request: The incoming request.
        model: Optional pydantic model to validate the payload into.

    Returns:
        The decoded JSON value, or a model instance when model is given.

    Raises:
        InvalidRequestError: The body is not valid JSON or fails validation.
    """
    body = await request.body()
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequestError(message="Invalid JSON") from e

    if model is None:
        return data

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidRequestError(message="Invalid request body") from e


def path_param(request: Request, name: str) -> str:
    """Return the named path placeholder value, or "" when absent."""
    return str(request.path_params.get(name, ""))


def query_param(request: Request, name: str, default: str = "") -> str:
    """Return the first value of a query parameter, or default."""
    return request.query_params.get(name, default)


@dataclass
class UploadedFile:
    """A file received in a multipart form.

    Wraps Starlette's UploadFile. ``file`` is the underlying file object,
    spooled to disk when large; ``filename`` and ``content_type`` are
    client-supplied; ``size`` is in bytes.
    """

    upload: StarletteUploadFile

    @property
    def file(self) -> IO[bytes]:
        return self.upload.file

    @property
    def filename(self) -> str:
        return self.upload.filename or ""

    @property
    def size(self) -> int | None:
        return self.upload.size

    @property
    def content_type(self) -> str | None:
        return self.upload.content_type

    async def read_all(self) -> bytes:
        """Read the whole file from the start."""
        await self.upload.seek(0)
        return await self.upload.read()

    async def close(self) -> None:
        await self.upload.close()


async def parse_multipart_form(request: Request, max_body_mb: int | None = None) -> FormData:
    """Parse a multipart/form-data body.

    File parts are spooled to temporary files once they outgrow memory, so
    large uploads are accepted unless max_body_mb is given. Starlette caches
    the parsed form on the request, so repeated calls are cheap.

    Args:
        request: The incoming request.
        max_body_mb: Optional ceiling on Content-Length in megabytes.

    Raises:
        InvalidRequestError: The request is not multipart.
        ApiError: E_FILE_TOO_LARGE when Content-Length exceeds max_body_mb.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        raise InvalidRequestError(message="request is not multipart/form-data")

    content_length = request.headers.get("content-length", "")
    if max_body_mb is not None and content_length.isdigit():
        if int(content_length) > max_body_mb * 1024 * 1024:
            raise InvalidRequestError(
                code=ApiErrorCode.E_FILE_TOO_LARGE,
                message=f"request body exceeds {max_body_mb} MB",
            )

    return await request.form()


async def get_uploaded_file(request: Request, field: str) -> UploadedFile:
    """Return the first file uploaded under field.

    Raises:
        InvalidRequestError: No file was sent under field.
    """
    form = await parse_multipart_form(request)
    value = form.get(field)
    if not isinstance(value, StarletteUploadFile):
        raise InvalidRequestError(message=f"missing file field {field}")
    return UploadedFile(value)


async def get_uploaded_files(request: Request, field: str) -> list[UploadedFile]:
    """Return every file uploaded under field.

    Raises:
        InvalidRequestError: No files were sent under field.
    """
    form = await parse_multipart_form(request)
    files = [UploadedFile(v) for v in form.getlist(field) if isinstance(v, StarletteUploadFile)]
    if not files:
        raise InvalidRequestError(message=f"no files found for field {field}")
    return files


async def get_form_value(request: Request, field: str) -> str:
    """Return a plain form field value, or "" when absent."""
    form = await parse_multipart_form(request)
    value = form.get(field)
    return value if isinstance(value, str) else ""
