"""Connection configuration and startup settings.

Settings are read once at startup from a ConfigSource. Sources are
deliberately simple (name -> string) so that mappings, YAML files or
any other provider can feed them.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from .errors import ConfigValidationError
from .storage import DEFAULT_STORAGE_DIR

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "localhost"
DEFAULT_PORT = "4455"
DEFAULT_SETTLE_DELAY = 1.0


class ConnectionConfig(BaseModel):
    """Where and how to reach the control server.

    The port is kept as text so that raw user input can be validated
    rather than rejected at construction.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str = DEFAULT_ADDRESS
    port: str = DEFAULT_PORT
    password: str = ""

    @field_validator("port", mode="before")
    @classmethod
    def _port_as_text(cls, value: Any) -> Any:
        # YAML and callers may hand over a bare number
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def url(self) -> str:
        return f"ws://{self.address.strip()}:{self.port.strip()}"

    def replace(self, **changes: Any) -> ConnectionConfig:
        """Return a validated copy with some fields changed.

        Raises:
            pydantic.ValidationError: On unknown fields or wrong types
        """
        return ConnectionConfig.model_validate({**self.model_dump(), **changes})

    def validate_fields(self) -> list[str]:
        """Return human-readable validation errors (empty when valid)."""
        return validate_connection_config(self.address, self.port)

    def ensure_valid(self) -> None:
        """Raise ConfigValidationError if the config is not usable."""
        errors = self.validate_fields()
        if errors:
            raise ConfigValidationError(errors)


def validate_connection_config(address: str | None, port: str | None) -> list[str]:
    """Validate raw address and port values.

    Args:
        address: Host name or IP address
        port: Port number as text

    Returns:
        List of error messages, empty if valid
    """
    errors: list[str] = []

    if not address or not address.strip():
        errors.append("Address is required")

    if not port or not port.strip():
        errors.append("Port is required")
    else:
        try:
            port_num = int(port.strip())
        except ValueError:
            port_num = None
        if port_num is None or not 1 <= port_num <= 65535:
            errors.append("Port must be a valid number between 1 and 65535")

    return errors


# =============================================================================
# Configuration sources
# =============================================================================


@runtime_checkable
class ConfigSource(Protocol):
    """Protocol for startup configuration providers."""

    def read(self, name: str) -> str | None:
        """Return the raw value for name, or None if not set."""
        ...


class MappingConfigSource:
    """Configuration backed by a plain mapping."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values = dict(values or {})

    def read(self, name: str) -> str | None:
        value = self._values.get(name)
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


class YamlConfigSource(MappingConfigSource):
    """Configuration loaded from a YAML file.

    The file holds a top-level mapping, optionally nested under an
    `obs` key:

        obs:
          address: 192.168.1.20
          port: 4455
          password: secret
          auto_connect: false
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        with open(self.path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {self.path} must contain a mapping")
        if isinstance(data.get("obs"), dict):
            data = data["obs"]

        logger.debug(f"Loaded configuration from {self.path}")
        super().__init__(data)


# =============================================================================
# Settings
# =============================================================================


class Settings(BaseModel):
    """Everything read from configuration at startup."""

    connection: ConnectionConfig = ConnectionConfig()
    auto_connect: bool = True
    settle_delay: float = DEFAULT_SETTLE_DELAY
    storage_dir: Path = DEFAULT_STORAGE_DIR


def _parse_auto_connect(raw: str | None) -> bool:
    # Enabled unless explicitly switched off.
    return raw is None or raw.strip().lower() != "false"


def load_settings(source: ConfigSource | None = None) -> Settings:
    """Read settings once from a configuration source.

    Args:
        source: Where to read from (defaults only when None)

    Returns:
        Resolved Settings
    """
    if source is None:
        return Settings()

    connection = ConnectionConfig(
        address=source.read("address") or DEFAULT_ADDRESS,
        port=source.read("port") or DEFAULT_PORT,
        password=source.read("password") or "",
    )

    settle_delay = DEFAULT_SETTLE_DELAY
    raw_delay = source.read("settle_delay")
    if raw_delay:
        try:
            settle_delay = max(0.0, float(raw_delay))
        except ValueError:
            logger.warning(f"Ignoring invalid settle_delay: {raw_delay!r}")

    raw_dir = source.read("storage_dir")
    storage_dir = Path(raw_dir).expanduser() if raw_dir else DEFAULT_STORAGE_DIR

    return Settings(
        connection=connection,
        auto_connect=_parse_auto_connect(source.read("auto_connect")),
        settle_delay=settle_delay,
        storage_dir=storage_dir,
    )
