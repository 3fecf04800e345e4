"""Migration engine adapters invoked once the database exists."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from .errors import MigrationError
from .models import ConnectionTarget, MigrateOptions

LOG = logging.getLogger(__name__)


class Migrator(Protocol):
    """Interface implemented by migration engines."""

    async def run(
        self,
        source: str,
        target: ConnectionTarget,
        *,
        dry_run: bool,
        ignore_missing: bool,
        fake: bool,
        target_version: int | None,
    ) -> None: ...


class CommandMigrator:
    """Runs an external migration command such as ``sqlx migrate run``."""

    def __init__(self, command: Sequence[str]) -> None:
        if not command:
            raise ValueError("Migration command must not be empty.")
        self._command = tuple(command)

    async def run(
        self,
        source: str,
        target: ConnectionTarget,
        *,
        dry_run: bool,
        ignore_missing: bool,
        fake: bool,
        target_version: int | None,
    ) -> None:
        options = MigrateOptions(
            dry_run=dry_run,
            ignore_missing=ignore_missing,
            fake=fake,
            target_version=target_version,
        )
        argv = self.build_argv(source, target, options)
        LOG.info("Running migrations", extra={"source": source, "target": target.display})
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise MigrationError(f"Migration command '{self._command[0]}' not found.") from exc
        stdout, stderr = await process.communicate()
        if stdout:
            LOG.info(stdout.decode(errors="replace").rstrip())
        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            raise MigrationError(
                f"Migrations from '{source}' failed with exit status {process.returncode}"
                + (f": {detail}" if detail else "."),
                returncode=process.returncode,
                stderr=detail,
            )

    def build_argv(self, source: str, target: ConnectionTarget, options: MigrateOptions) -> list[str]:
        argv = [*self._command, "--source", source, "--database-url", target.url]
        if options.dry_run:
            argv.append("--dry-run")
        if options.ignore_missing:
            argv.append("--ignore-missing")
        if options.fake:
            argv.append("--fake")
        if options.target_version is not None:
            argv.extend(["--target-version", str(options.target_version)])
        return argv


@dataclass(frozen=True, slots=True)
class MigrationRun:
    """A migration invocation captured by :class:`RecordingMigrator`."""

    source: str
    target: ConnectionTarget
    options: MigrateOptions


class RecordingMigrator:
    """Records invocations instead of applying migrations."""

    def __init__(self) -> None:
        self.runs: list[MigrationRun] = []

    async def run(
        self,
        source: str,
        target: ConnectionTarget,
        *,
        dry_run: bool,
        ignore_missing: bool,
        fake: bool,
        target_version: int | None,
    ) -> None:
        self.runs.append(
            MigrationRun(
                source=source,
                target=target,
                options=MigrateOptions(
                    dry_run=dry_run,
                    ignore_missing=ignore_missing,
                    fake=fake,
                    target_version=target_version,
                ),
            )
        )


__all__ = ["CommandMigrator", "MigrationRun", "Migrator", "RecordingMigrator"]
