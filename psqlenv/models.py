"""Shared dataclasses used across driver, prompt and lifecycle modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit, urlunsplit


@dataclass(frozen=True, slots=True)
class ConnectionTarget:
    """Validated connection URL plus the options for a single invocation."""

    url: str
    connect_timeout: float = 10.0
    sqlite_create_db_wal: bool = True

    @property
    def scheme(self) -> str:
        return self.url.split(":", 1)[0].lower()

    @property
    def display(self) -> str:
        """URL safe for prompts and log lines (password masked)."""

        return mask_password(self.url)

    def create_options(self) -> CreateOptions:
        return CreateOptions(sqlite_wal=self.sqlite_create_db_wal)


@dataclass(frozen=True, slots=True)
class CreateOptions:
    """Engine-specific settings applied when a database is first created."""

    sqlite_wal: bool = True


@dataclass(frozen=True, slots=True)
class MigrateOptions:
    """Flags forwarded to the migration engine."""

    dry_run: bool = False
    ignore_missing: bool = False
    fake: bool = False
    target_version: int | None = None


class ConfirmationDecision(str, Enum):
    """Outcome of a destructive-action prompt."""

    PROCEED = "proceed"
    DECLINE = "decline"
    INTERRUPTED = "interrupted"

    @property
    def proceed(self) -> bool:
        return self is ConfirmationDecision.PROCEED


def mask_password(url: str) -> str:
    """Replace the password component of a URL with ``***``."""

    parts = urlsplit(url)
    if not parts.password:
        return url
    userinfo = f"{parts.username or ''}:***"
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


__all__ = [
    "ConfirmationDecision",
    "ConnectionTarget",
    "CreateOptions",
    "MigrateOptions",
    "mask_password",
]
