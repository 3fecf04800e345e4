"""Configuration loading helpers."""

from __future__ import annotations

import os
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

from .errors import ConfigError
from .retry import RetryPolicy

CONFIG_FILE = Path.home() / ".config" / "psqlenv" / "config.toml"
DATABASE_URL_ENV = "DATABASE_URL"


class RetryConfig(BaseModel):
    """Backoff settings for the connection retry loop."""

    max_tries: int = 10
    initial_delay: float = 0.1
    max_delay: float = 2.0


class AppConfig(BaseModel):
    """Shape of the configuration file."""

    database_url: str | None = None
    migrations_source: str = "migrations"
    connect_timeout: float = 10.0
    sqlite_create_db_wal: bool = True
    retry: RetryConfig = Field(default_factory=RetryConfig)
    migrate_command: list[str] = Field(default_factory=lambda: ["sqlx", "migrate", "run"])

    def retry_policy(self, connect_timeout: float | None = None) -> RetryPolicy:
        """Build the retry policy; the time budget is the connect timeout."""

        return RetryPolicy(
            max_tries=self.retry.max_tries,
            max_time=connect_timeout if connect_timeout is not None else self.connect_timeout,
            initial_delay=self.retry.initial_delay,
            max_delay=self.retry.max_delay,
        )


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    return AppConfig(**data)


def resolve_database_url(config: AppConfig, override: str | None = None) -> str:
    """Pick the URL from the CLI flag, then ``DATABASE_URL``, then the config file."""

    for candidate in (override, os.environ.get(DATABASE_URL_ENV), config.database_url):
        if candidate and candidate.strip():
            return candidate.strip()
    raise ConfigError(
        f"No database URL given; pass --database-url or set {DATABASE_URL_ENV}."
    )


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if not isinstance(raw, dict):
        return data
    for key in ("database_url", "migrations_source"):
        value = raw.get(key)
        if isinstance(value, str):
            data[key] = value
    timeout = raw.get("connect_timeout")
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
        data["connect_timeout"] = float(timeout)
    wal = raw.get("sqlite_create_db_wal")
    if isinstance(wal, bool):
        data["sqlite_create_db_wal"] = wal
    command = raw.get("migrate_command")
    if isinstance(command, list) and command and all(isinstance(part, str) for part in command):
        data["migrate_command"] = list(command)
    retry = raw.get("retry")
    if isinstance(retry, dict):
        parsed: dict[str, object] = {}
        max_tries = retry.get("max_tries")
        if isinstance(max_tries, int) and not isinstance(max_tries, bool) and max_tries > 0:
            parsed["max_tries"] = max_tries
        for key in ("initial_delay", "max_delay"):
            value = retry.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
                parsed[key] = float(value)
        data["retry"] = RetryConfig(**parsed)
    return data


__all__ = [
    "CONFIG_FILE",
    "DATABASE_URL_ENV",
    "AppConfig",
    "RetryConfig",
    "load_config",
    "resolve_database_url",
]
