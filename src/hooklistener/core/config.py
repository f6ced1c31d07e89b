"""Configuration types with environment variable support.

All settings can be configured via environment variables with the
HOOKLISTENER_ prefix. Example: HOOKLISTENER_MAX_IN_FLIGHT_WRITES=4 allows four
concurrent appends.

Precedence, highest first: command-line flags, config file, environment,
``.env``, defaults.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hooklistener.queue.producer import DEFAULT_TABLE
from hooklistener.webhooks.events import EVENT_HEADER, SIGNATURE_HEADER


CONFIG_SECTION = "hooklistener"


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML or TOML listener config file into a mapping.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: On bad encoding, bad syntax, an unknown suffix, or a
            document that is not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    if path.suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
    elif path.suffix == ".toml":
        try:
            data = tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {path}: {e}") from e
    else:
        raise ValueError(f"Unsupported config format: {path.suffix}")

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must hold a mapping, got {type(data).__name__}")
    return data


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Join nested sections into field names: ``{"log": {"level": x}}`` -> ``log_level``."""
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load listener settings from a config file.

    Settings may sit at the top level or under a ``hooklistener`` section,
    so the listener can share a file with other tools. When the section is
    present, other top-level tables are ignored.
    """
    data = load_config_from_file(path)
    section = data.get(CONFIG_SECTION)
    if section is not None:
        if not isinstance(section, dict):
            raise ValueError(f"[{CONFIG_SECTION}] in {path} must be a table")
        data = section
    return flatten_config(data)


class GatewayConfig(BaseSettings):
    """Gateway configuration.

    Environment overrides, for example:
    - HOOKLISTENER_BIND: Listen address (host:port)
    - HOOKLISTENER_SECRET: Shared webhook secret
    - HOOKLISTENER_DATABASE_URL: PostgreSQL connection string for the log
    - HOOKLISTENER_MAX_BODY_SIZE: Optional body cap in bytes
    """

    model_config = SettingsConfigDict(
        env_prefix="HOOKLISTENER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    bind: str = Field(
        default="127.0.0.1:8080",
        description="Listen address as host:port.",
    )
    secret: str = Field(
        default="",
        repr=False,
        description="Shared secret used to verify webhook signatures.",
    )
    database_url: str = Field(
        default="",
        repr=False,
        description="PostgreSQL connection string for the append-only log.",
    )
    route_prefix: str = Field(
        default="gh",
        description="First path segment of the ingestion route (POST /<prefix>/<path>).",
    )
    queue_table: str = Field(
        default=DEFAULT_TABLE,
        description="Log table that receives one row per verified delivery.",
    )
    max_in_flight_writes: int = Field(
        default=1,
        ge=1,
        description="Maximum concurrent appends to the log. All requests queue behind this.",
    )
    max_body_size: int | None = Field(
        default=None,
        ge=1,
        description="Reject bodies larger than this many bytes. None means unbounded.",
    )
    verify_in_thread: bool = Field(
        default=True,
        description="Compute HMACs in a worker thread instead of on the event loop.",
    )
    connect_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for the log connection at startup.",
    )
    signature_header: str = Field(
        default=SIGNATURE_HEADER,
        description="Header carrying the '<algo>=<hex>' signature.",
    )
    event_header: str = Field(
        default=EVENT_HEADER,
        description="Header carrying the event type.",
    )
    log_level: str = Field(
        default="info",
        description="Log level: debug, info, warning or error.",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines instead of console output.",
    )

    @property
    def secret_bytes(self) -> bytes:
        return self.secret.encode("utf-8")

    @property
    def normalized_prefix(self) -> str:
        return self.route_prefix.strip("/")

    def missing_settings(self) -> list[str]:
        """Return the names of settings that must be set before serving."""
        missing = []
        if not self.secret:
            missing.append("secret")
        if not self.database_url:
            missing.append("database_url")
        return missing

    def to_display_dict(self) -> dict[str, Any]:
        """Configuration for display, with secrets masked."""
        data = self.model_dump()
        data["secret"] = "***" if self.secret else ""
        data["database_url"] = "***" if self.database_url else ""
        return data


def build_config(
    file_config: dict[str, Any] | None = None,
    overrides: dict[str, Any] | None = None,
) -> GatewayConfig:
    """Build the gateway configuration from file values and explicit overrides.

    Overrides whose value is None are ignored so unset CLI flags fall through
    to the file, environment and defaults.
    """
    values: dict[str, Any] = dict(file_config or {})
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return GatewayConfig(**values)
