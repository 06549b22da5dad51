"""Print the configuration a bedrock service would start with.

Loads ``AppConfig`` from a TOML file plus environment overrides, then shows
each port with where it came from (Nomad or config) and which variables are
overriding file values.

Run with: python apps/config_demo/main.py [config.toml]
"""

import os
import sys
from typing import Annotated

from pydantic import BaseModel, Field

from bedrock import BaseConfig, ConfigError, EnvVar, load_config
from bedrock.config import NOMAD_PORT_PREFIX

DEFAULT_CONFIG_PATH = "config.toml"

OVERRIDE_VARS = (
    "HTTP_PORT",
    "HEALTH_PORT",
    "METRICS_PORT",
    "LOG_LEVEL",
    "ENVIRONMENT",
    "DATABASE_URL",
    "MAX_CONNECTIONS",
    "API_KEY",
    "CACHE_TTL",
)


class AppConfig(BaseModel):
    bedrock: BaseConfig = Field(default_factory=BaseConfig)

    database_url: Annotated[str, EnvVar("DATABASE_URL")] = ""
    max_connections: Annotated[int, EnvVar("MAX_CONNECTIONS")] = 0
    api_key: Annotated[str, EnvVar("API_KEY")] = ""
    cache_ttl: Annotated[int, EnvVar("CACHE_TTL")] = 0


def mask_api_key(key: str) -> str:
    """Show only the first and last four characters of longer keys."""
    if not key:
        return "(not set)"
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}****{key[-4:]}"


def port_source(label: str) -> str:
    env_name = f"{NOMAD_PORT_PREFIX}{label}"
    return f"from {env_name}" if os.environ.get(env_name) else "from config"


def render(cfg: AppConfig) -> list[str]:
    """Lines describing cfg and the environment it was loaded under."""
    base = cfg.bedrock
    lines = [
        "Bedrock Configuration:",
        f"  HTTP Port:    {base.http_port}",
        f"  Health Port:  {base.health_port}",
        f"  Metrics Port: {base.metrics_port}",
        f"  Log Level:    {base.log_level}",
        f"  Environment:  {base.environment}",
        "",
        "Resolved Ports (Nomad-aware):",
        f"  HTTP Port:    {base.get_http_port()} ({port_source('http')})",
        f"  Health Port:  {base.get_health_port()} ({port_source('health')})",
        f"  Metrics Port: {base.get_metrics_port()} ({port_source('metrics')})",
        "",
        "Application Configuration:",
        f"  Database URL:    {cfg.database_url}",
        f"  Max Connections: {cfg.max_connections}",
        f"  API Key:         {mask_api_key(cfg.api_key)}",
        f"  Cache TTL:       {cfg.cache_ttl}",
        "",
        "Environment Variable Overrides:",
    ]
    for name in OVERRIDE_VARS:
        if os.environ.get(name):
            lines.append(f"  {name} is overridden")
        else:
            lines.append(f"  {name} (using TOML value)")
    return lines


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    config_path = args[0] if args else DEFAULT_CONFIG_PATH

    print(f"Loading configuration from: {config_path}")
    try:
        cfg = load_config(config_path, AppConfig())
    except ConfigError as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        return 1

    print("\n".join(render(cfg)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
