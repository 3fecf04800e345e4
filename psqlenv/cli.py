"""Command line entry point for database lifecycle commands."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.markup import escape

from .config import AppConfig, load_config, resolve_database_url
from .drivers import DatabaseDriver, DemoDriver, driver_for_url
from .errors import PsqlenvError
from .lifecycle import DatabaseLifecycle
from .migrate import CommandMigrator, Migrator, RecordingMigrator
from .models import ConnectionTarget

LOG = logging.getLogger(__name__)

_STDERR = Console(stderr=True)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="psqlenv", description="Manage the target database.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity")
    groups = parser.add_subparsers(dest="group", required=True)
    database = groups.add_parser("database", help="Create, drop, reset or set up the database")
    commands = database.add_subparsers(dest="command", required=True)

    connect = argparse.ArgumentParser(add_help=False)
    connect.add_argument("--database-url", "-D", help="Database URL (defaults to $DATABASE_URL)")
    connect.add_argument("--connect-timeout", type=float, help="Seconds to keep retrying the connection")
    connect.add_argument(
        "--no-sqlite-create-db-wal",
        dest="sqlite_create_db_wal",
        action="store_false",
        default=None,
        help="Do not switch new SQLite databases to WAL journal mode",
    )

    destructive = argparse.ArgumentParser(add_help=False)
    destructive.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    destructive.add_argument(
        "-f", "--force", action="store_true", help="Drop even while other sessions are connected"
    )

    source = argparse.ArgumentParser(add_help=False)
    source.add_argument("--source", help="Location of the migration scripts")

    commands.add_parser("create", parents=[connect], help="Create the database if it is missing")
    commands.add_parser("drop", parents=[connect, destructive], help="Drop the database if it exists")
    commands.add_parser(
        "reset", parents=[connect, destructive, source], help="Drop, recreate and migrate the database"
    )
    commands.add_parser("setup", parents=[connect, source], help="Create the database and migrate it")
    return parser.parse_args(argv)


def build_target(args: argparse.Namespace, config: AppConfig) -> ConnectionTarget:
    timeout = args.connect_timeout if args.connect_timeout is not None else config.connect_timeout
    wal = args.sqlite_create_db_wal if args.sqlite_create_db_wal is not None else config.sqlite_create_db_wal
    return ConnectionTarget(
        url=resolve_database_url(config, args.database_url),
        connect_timeout=timeout,
        sqlite_create_db_wal=wal,
    )


def build_migrator(driver: DatabaseDriver, config: AppConfig) -> Migrator:
    """Demo targets record migration runs instead of invoking the migration command."""

    if isinstance(driver, DemoDriver):
        return RecordingMigrator()
    return CommandMigrator(config.migrate_command)


async def run_command(args: argparse.Namespace, config: AppConfig) -> None:
    target = build_target(args, config)
    driver = driver_for_url(target.url, connect_timeout=target.connect_timeout)
    lifecycle = DatabaseLifecycle(
        driver,
        build_migrator(driver, config),
        policy=config.retry_policy(target.connect_timeout),
    )
    source = getattr(args, "source", None) or config.migrations_source
    LOG.debug("Running database command", extra={"command": args.command, "target": target.display})
    if args.command == "create":
        await lifecycle.create(target)
    elif args.command == "drop":
        await lifecycle.drop(target, confirm=not args.yes, force=args.force)
    elif args.command == "reset":
        await lifecycle.reset(source, target, confirm=not args.yes, force=args.force)
    elif args.command == "setup":
        await lifecycle.setup(source, target)
    else:  # pragma: no cover - argparse rejects unknown commands
        raise ValueError(f"Unknown command '{args.command}'.")


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)
    try:
        asyncio.run(run_command(args, load_config()))
    except PsqlenvError as exc:
        _STDERR.print(f"[bold red]error:[/bold red] {escape(str(exc))}", highlight=False, soft_wrap=True)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
