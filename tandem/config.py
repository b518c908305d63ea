from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


class DiscoveryConfig(BaseModel):
    """Client-side service discovery."""
    timeout: float = Field(10.0, gt=0)
    poll_interval: float = Field(0.05, gt=0, le=5.0)


class DispatchConfig(BaseModel):
    internal_error_message: str = Field("Internal server error", min_length=1)
    log_tracebacks: bool = Field(True)


class ClientConfig(BaseModel):
    client_id: str | None = None

    @field_validator("client_id")
    @classmethod
    def _validate_client_id(cls, value: str | None) -> str | None:
        if value is not None and (not value or any(c.isspace() for c in value)):
            raise ValueError("client_id must be a non-empty token without whitespace")
        return value


class TransportConfig(BaseModel):
    unreliable_drop_rate: float = Field(0.0, ge=0.0, le=1.0)


class LoggingConfig(BaseModel):
    level: str = Field("INFO")
    format: str = Field("%(asctime)s | %(name)s | %(levelname)s | %(message)s")
    datefmt: str = Field("%Y-%m-%d %H:%M:%S")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level


class TandemConfig(BaseModel):
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


SYSTEM_CONFIG = Path("/etc/tandem/tandem.yml")
DEFAULT_CONFIG = Path("configs/tandem.yml")


def load_config(path: Path) -> TandemConfig:
    with Path(path).expanduser().open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    try:
        return TandemConfig.model_validate(raw)
    except ValidationError as exc:  # pragma: no cover - formatting
        raise ValueError(str(exc)) from exc


def resolve_config_path(cli_path: Path | None) -> Path:
    """
    First existing file among the CLI path, $TANDEM_CONFIG, /etc/tandem/tandem.yml
    and configs/tandem.yml. When none exists the path the user asked for
    is returned, so the caller reports that one.
    """
    env = os.environ.get("TANDEM_CONFIG")
    requested = [Path(p).expanduser() for p in (cli_path, env) if p]
    for candidate in [*requested, SYSTEM_CONFIG, DEFAULT_CONFIG]:
        if candidate.exists():
            return candidate.resolve()
    return requested[0] if requested else DEFAULT_CONFIG.resolve()
