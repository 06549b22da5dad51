"""Configuration loading from a TOML file plus environment overrides.

Config records are pydantic models. A field opts into environment overrides
by carrying an ``EnvVar`` marker in its ``Annotated`` metadata:

    class AppConfig(BaseModel):
        bedrock: BaseConfig = Field(default_factory=BaseConfig)
        database_url: Annotated[str, EnvVar("DATABASE_URL")] = ""

Loading order:
1. Decode the TOML file over the destination (a missing file is fine).
2. Walk every field, nested models included, and overwrite each annotated
   field whose environment variable is set and non-empty.

Port getters on BaseConfig consult NOMAD_PORT_<label> first. The Nomad value
wins over both the file and the HTTP_PORT/HEALTH_PORT/METRICS_PORT overrides.
"""

import os
import re
import tomllib
from dataclasses import dataclass
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from bedrock.errors import ConfigDecodeError, ConfigTypeError, EnvConversionError
from bedrock.logging import get_logger

logger = get_logger(__name__)

NOMAD_PORT_PREFIX = "NOMAD_PORT_"

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)
_BOOL_VALUES = {
    **dict.fromkeys(("1", "t", "T", "TRUE", "true", "True"), True),
    **dict.fromkeys(("0", "f", "F", "FALSE", "false", "False"), False),
}

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class EnvVar:
    """Marks a config field as overridable from the named environment variable."""

    name: str


class BaseConfig(BaseModel):
    """Settings every bedrock service shares.

    Usually embedded in an application config as a ``bedrock`` field, which
    maps to a ``[bedrock]`` table in the TOML file.
    """

    http_port: Annotated[int, EnvVar("HTTP_PORT")] = 0
    health_port: Annotated[int, EnvVar("HEALTH_PORT")] = 0
    metrics_port: Annotated[int, EnvVar("METRICS_PORT")] = 0
    log_level: Annotated[str, EnvVar("LOG_LEVEL")] = ""
    environment: Annotated[str, EnvVar("ENVIRONMENT")] = ""

    def get_http_port(self) -> int:
        """HTTP port, preferring NOMAD_PORT_http when set."""
        return resolve_port("http", self.http_port)

    def get_health_port(self) -> int:
        """Health port, preferring NOMAD_PORT_health when set."""
        return resolve_port("health", self.health_port)

    def get_metrics_port(self) -> int:
        """Metrics port, preferring NOMAD_PORT_metrics when set."""
        return resolve_port("metrics", self.metrics_port)


def resolve_port(label: str, fallback: int) -> int:
    """Resolve a port from ``NOMAD_PORT_<label>``.

    Args:
        label: Nomad port label, e.g. "http".
        fallback: Value returned when the variable is unset or unparsable.

    Returns:
        The Nomad-assigned port, or fallback.
    """
    env_name = f"{NOMAD_PORT_PREFIX}{label}"
    raw = os.environ.get(env_name, "")
    if not raw:
        return fallback

    if not _INT_PATTERN.fullmatch(raw):
        logger.warning(
            "nomad_port_invalid",
            env_var=env_name,
            value=raw,
            fallback=fallback,
        )
        return fallback

    port = int(raw)
    logger.info("nomad_port_resolved", env_var=env_name, port=port)
    return port


class Loader:
    """Loads a TOML file and environment overrides into a config model.

    Args:
        path: Path to the TOML file. A missing file is not an error.
    """

    def __init__(self, path: str | os.PathLike[str]):
        self.path = os.fspath(path)

    def load(self, destination: ModelT) -> ModelT:
        """Populate destination in place.

        Args:
            destination: A pydantic model instance.

        Returns:
            The same destination, for convenience.

        Raises:
            ConfigTypeError: destination is None, a class, or not a model instance.
            ConfigDecodeError: The file exists but is malformed or has mistyped values.
            EnvConversionError: An environment value cannot be parsed for its field.
        """
        if destination is None:
            raise ConfigTypeError("config destination must not be None")
        if isinstance(destination, type):
            raise ConfigTypeError(
                f"config destination must be a model instance, got class {destination.__name__}"
            )
        if not isinstance(destination, BaseModel):
            raise ConfigTypeError(
                f"config destination must be a pydantic model instance, "
                f"got {type(destination).__name__}"
            )

        data = self._read_file()
        if data is not None:
            self._apply_file(destination, data)

        _apply_env(destination, prefix="")
        return destination

    def _read_file(self) -> dict[str, Any] | None:
        if not self.path:
            return None
        try:
            with open(self.path, "rb") as fh:
                data = tomllib.load(fh)
        except FileNotFoundError:
            logger.debug("config_file_missing", path=self.path)
            return None
        except OSError as e:
            raise ConfigDecodeError(self.path, str(e)) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigDecodeError(self.path, str(e)) from e
        except UnicodeDecodeError as e:
            raise ConfigDecodeError(self.path, str(e)) from e

        logger.debug("config_file_loaded", path=self.path)
        return data

    def _apply_file(self, destination: BaseModel, data: dict[str, Any]) -> None:
        merged = _deep_merge(destination.model_dump(), data)
        try:
            decoded = type(destination).model_validate(merged)
        except ValidationError as e:
            raise ConfigDecodeError(self.path, str(e)) from e

        for name in type(destination).model_fields:
            setattr(destination, name, getattr(decoded, name))


def load_config(path: str | os.PathLike[str], destination: ModelT) -> ModelT:
    """Shorthand for ``Loader(path).load(destination)``."""
    return Loader(path).load(destination)


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base; nested tables merge, everything else replaces."""
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _apply_env(model: BaseModel, prefix: str) -> None:
    for name, info in type(model).model_fields.items():
        field_path = f"{prefix}{name}"
        value = getattr(model, name)

        if isinstance(value, BaseModel):
            _apply_env(value, prefix=f"{field_path}.")
            continue

        env = next((m for m in info.metadata if isinstance(m, EnvVar)), None)
        if env is None:
            continue

        raw = os.environ.get(env.name, "")
        if not raw:
            continue

        constraints = [m for m in info.metadata if not isinstance(m, EnvVar)]
        target = Annotated[(info.annotation, *constraints)] if constraints else info.annotation
        try:
            parsed = TypeAdapter(target).validate_python(_parse_scalar(info.annotation, raw))
        except (ValueError, ValidationError) as e:
            raise EnvConversionError(
                field=field_path,
                env_var=env.name,
                value=raw,
                expected=_type_name(info.annotation),
            ) from e

        setattr(model, name, parsed)
        logger.debug("config_env_override", field=field_path, env_var=env.name)


def _type_name(annotation: Any) -> str:
    return getattr(annotation, "__name__", str(annotation))


def _parse_scalar(annotation: Any, raw: str) -> Any:
    """Parse raw with strconv-style rules for bool, int and float fields.

    No surrounding whitespace, digit separators, or yes/no spellings are
    accepted. Other annotations receive the raw string unchanged.
    """
    if annotation is bool:
        if raw not in _BOOL_VALUES:
            raise ValueError(f"invalid bool {raw!r}")
        return _BOOL_VALUES[raw]
    if annotation is int:
        if not _INT_PATTERN.fullmatch(raw):
            raise ValueError(f"invalid int {raw!r}")
        return int(raw)
    if annotation is float:
        if not _FLOAT_PATTERN.fullmatch(raw):
            raise ValueError(f"invalid float {raw!r}")
        return float(raw)
    return raw
