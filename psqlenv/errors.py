"""Exception hierarchy shared by drivers, prompts and the lifecycle layer."""

from __future__ import annotations


class PsqlenvError(RuntimeError):
    """Base class for failures surfaced to the caller."""


class ConfigError(PsqlenvError):
    """Raised when required connection settings are missing."""


class DriverError(PsqlenvError):
    """Raised when a database driver call fails."""


class TransientConnectionError(DriverError):
    """Raised when the server is not reachable yet; safe to retry."""


class UnsupportedDatabaseError(DriverError):
    """Raised when no driver handles the URL scheme."""


class PromptError(PsqlenvError):
    """Raised when the confirmation prompt fails for reasons other than an interrupt."""


class MigrationError(PsqlenvError):
    """Raised when the migration engine fails."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class LifecycleError(PsqlenvError):
    """Raised when create/drop fails; names the operation and target."""

    def __init__(self, operation: str, target: str, cause: BaseException) -> None:
        super().__init__(f"Failed to {operation} database at {target}: {cause}")
        self.operation = operation
        self.target = target


__all__ = [
    "ConfigError",
    "DriverError",
    "LifecycleError",
    "MigrationError",
    "PromptError",
    "PsqlenvError",
    "TransientConnectionError",
    "UnsupportedDatabaseError",
]
