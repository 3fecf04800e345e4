"""Database drivers that check, create and drop databases."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable
from urllib.parse import unquote, urlsplit, urlunsplit

import asyncpg

from .errors import DriverError, TransientConnectionError, UnsupportedDatabaseError
from .models import CreateOptions, mask_password

LOG = logging.getLogger(__name__)

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionRefusedError,
    ConnectionResetError,
    ConnectionAbortedError,
    TimeoutError,
    asyncpg.CannotConnectNowError,
    asyncpg.TooManyConnectionsError,
)


@runtime_checkable
class DatabaseDriver(Protocol):
    """Protocol implemented by database drivers."""

    async def exists(self, url: str) -> bool:
        """Return whether the database addressed by ``url`` exists."""

    async def create(self, url: str, *, options: CreateOptions) -> None:
        """Create the database."""

    async def drop(self, url: str) -> None:
        """Drop the database; may fail while other sessions are connected."""

    async def force_drop(self, url: str) -> None:
        """Drop the database even if other sessions are connected."""


class AsyncpgDriver:
    """PostgreSQL driver; issues DDL through the server's maintenance database."""

    _EXISTS_QUERY = "SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = $1)"

    _TERMINATE_QUERY = """
        SELECT pg_terminate_backend(pid)
        FROM pg_stat_activity
        WHERE datname = $1 AND pid <> pg_backend_pid()
    """

    def __init__(self, *, connect_timeout: float = 10.0) -> None:
        self._connect_timeout = connect_timeout

    async def exists(self, url: str) -> bool:
        name, maintenance_url = _split_postgres_url(url)
        conn = await self._connect(maintenance_url)
        try:
            found = await conn.fetchval(self._EXISTS_QUERY, name)
        except Exception as exc:
            raise DriverError(f"Failed to check database '{name}': {exc}") from exc
        finally:
            await _close_quietly(conn)
        LOG.debug("Existence check finished", extra={"database": name, "exists": bool(found)})
        return bool(found)

    async def create(self, url: str, *, options: CreateOptions) -> None:
        name, maintenance_url = _split_postgres_url(url)
        await self._execute(maintenance_url, f"CREATE DATABASE {quote_identifier(name)}", name)

    async def drop(self, url: str) -> None:
        name, maintenance_url = _split_postgres_url(url)
        await self._execute(maintenance_url, f"DROP DATABASE IF EXISTS {quote_identifier(name)}", name)

    async def force_drop(self, url: str) -> None:
        name, maintenance_url = _split_postgres_url(url)
        conn = await self._connect(maintenance_url)
        try:
            if conn.get_server_version().major >= 13:
                await conn.execute(f"DROP DATABASE IF EXISTS {quote_identifier(name)} WITH (FORCE)")
            else:
                await conn.execute(self._TERMINATE_QUERY, name)
                await conn.execute(f"DROP DATABASE IF EXISTS {quote_identifier(name)}")
        except Exception as exc:
            raise DriverError(f"Failed to force drop database '{name}': {exc}") from exc
        finally:
            await _close_quietly(conn)

    async def _execute(self, maintenance_url: str, statement: str, name: str) -> None:
        conn = await self._connect(maintenance_url)
        try:
            await conn.execute(statement)
        except Exception as exc:
            raise DriverError(f"Statement failed for database '{name}': {exc}") from exc
        finally:
            await _close_quietly(conn)

    async def _connect(self, dsn: str):
        try:
            return await asyncpg.connect(dsn=dsn, timeout=self._connect_timeout)
        except _TRANSIENT_ERRORS as exc:
            raise TransientConnectionError(
                f"Could not connect to {mask_password(dsn)}: {exc}"
            ) from exc
        except Exception as exc:
            raise DriverError(f"Failed to connect to {mask_password(dsn)}: {exc}") from exc


class SqliteDriver:
    """SQLite driver; a database is a file on disk."""

    async def exists(self, url: str) -> bool:
        path = _sqlite_path(url)
        if path is None:
            return True
        return await asyncio.to_thread(path.exists)

    async def create(self, url: str, *, options: CreateOptions) -> None:
        path = _sqlite_path(url)
        if path is None:
            return
        await asyncio.to_thread(self._create_file, path, options.sqlite_wal)

    async def drop(self, url: str) -> None:
        path = _sqlite_path(url)
        if path is None:
            raise DriverError("In-memory SQLite databases cannot be dropped.")
        await asyncio.to_thread(self._remove_files, path)

    async def force_drop(self, url: str) -> None:
        await self.drop(url)

    @staticmethod
    def _create_file(path: Path, wal: bool) -> None:
        try:
            conn = sqlite3.connect(path)
            try:
                if wal:
                    conn.execute("PRAGMA journal_mode = WAL")
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            raise DriverError(f"Failed to create SQLite database '{path}': {exc}") from exc

    @staticmethod
    def _remove_files(path: Path) -> None:
        try:
            path.unlink()
            for suffix in ("-wal", "-shm"):
                Path(f"{path}{suffix}").unlink(missing_ok=True)
        except OSError as exc:
            raise DriverError(f"Failed to drop SQLite database '{path}': {exc}") from exc


class DemoDriver:
    """In-memory driver that records every call (tests and dry runs)."""

    def __init__(self, existing: Iterable[str] = (), *, busy: Iterable[str] = ()) -> None:
        self.databases: set[str] = set(existing)
        self.busy: set[str] = set(busy)
        self.calls: list[str] = []
        self.create_options: list[CreateOptions] = []

    async def exists(self, url: str) -> bool:
        self.calls.append("exists")
        return url in self.databases

    async def create(self, url: str, *, options: CreateOptions) -> None:
        self.calls.append("create")
        self.create_options.append(options)
        if url in self.databases:
            raise DriverError(f"database {mask_password(url)} already exists")
        self.databases.add(url)

    async def drop(self, url: str) -> None:
        self.calls.append("drop")
        if url in self.busy:
            raise DriverError(f"database {mask_password(url)} is being accessed by other users")
        self.databases.discard(url)

    async def force_drop(self, url: str) -> None:
        self.calls.append("force_drop")
        self.busy.discard(url)
        self.databases.discard(url)


def driver_for_url(url: str, *, connect_timeout: float = 10.0) -> DatabaseDriver:
    """Return the driver registered for the URL scheme."""

    scheme = url.split(":", 1)[0].lower()
    if scheme in {"postgres", "postgresql"}:
        return AsyncpgDriver(connect_timeout=connect_timeout)
    if scheme == "sqlite":
        return SqliteDriver()
    if scheme == "demo":
        return DemoDriver()
    raise UnsupportedDatabaseError(f"No driver available for URL scheme '{scheme}'.")


def quote_identifier(name: str) -> str:
    """Quote a PostgreSQL identifier."""

    return '"' + name.replace('"', '""') + '"'


def _split_postgres_url(url: str) -> tuple[str, str]:
    """Return the database name and a URL for the server's maintenance database."""

    parts = urlsplit(url)
    name = unquote(parts.path.lstrip("/"))
    if not name:
        raise DriverError(f"URL {mask_password(url)} does not name a database.")
    maintenance = "template1" if name == "postgres" else "postgres"
    return name, urlunsplit((parts.scheme, parts.netloc, f"/{maintenance}", parts.query, ""))


def _sqlite_path(url: str) -> Path | None:
    """Filesystem path for a SQLite URL, or ``None`` for in-memory databases."""

    rest = url.split(":", 1)[1] if ":" in url else ""
    if rest.startswith("//"):
        rest = rest[2:]
    rest, _, query = rest.partition("?")
    if rest in {"", ":memory:"} or "mode=memory" in query:
        return None
    return Path(unquote(rest))


async def _close_quietly(conn) -> None:
    try:
        await conn.close()
    except Exception:  # pragma: no cover - best effort cleanup
        pass


__all__ = [
    "AsyncpgDriver",
    "DatabaseDriver",
    "DemoDriver",
    "SqliteDriver",
    "driver_for_url",
    "quote_identifier",
]
