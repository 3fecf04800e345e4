"""Tests for the command line entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from psqlenv import cli
from psqlenv import config as config_module
from psqlenv.config import AppConfig
from psqlenv.drivers import DemoDriver, SqliteDriver
from psqlenv.migrate import CommandMigrator, RecordingMigrator


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "missing.toml")
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture
def driver(monkeypatch: pytest.MonkeyPatch) -> DemoDriver:
    demo = DemoDriver()
    monkeypatch.setattr(cli, "driver_for_url", lambda url, **kwargs: demo)
    return demo


@pytest.fixture
def migrator(monkeypatch: pytest.MonkeyPatch) -> RecordingMigrator:
    recorder = RecordingMigrator()
    monkeypatch.setattr(cli, "CommandMigrator", lambda command: recorder)
    monkeypatch.setattr(cli, "RecordingMigrator", lambda: recorder)
    return recorder


def test_parse_args_reads_destructive_flags() -> None:
    args = cli.parse_args(["database", "reset", "-y", "--force", "--source", "db", "-D", "demo://x"])

    assert args.command == "reset"
    assert args.yes is True
    assert args.force is True
    assert args.source == "db"
    assert args.database_url == "demo://x"
    assert args.sqlite_create_db_wal is None


def test_build_target_falls_back_to_config() -> None:
    args = cli.parse_args(["database", "create", "--no-sqlite-create-db-wal"])
    config = AppConfig(database_url="sqlite://app.db", connect_timeout=2.5)

    target = cli.build_target(args, config)

    assert target.url == "sqlite://app.db"
    assert target.connect_timeout == 2.5
    assert target.sqlite_create_db_wal is False


def test_setup_command_creates_and_migrates(driver: DemoDriver, migrator: RecordingMigrator) -> None:
    exit_code = cli.main(["database", "setup", "--database-url", "demo://app", "--source", "db"])

    assert exit_code == 0
    assert driver.calls == ["exists", "create"]
    assert migrator.runs[0].source == "db"


def test_drop_with_yes_skips_prompt(driver: DemoDriver, migrator: RecordingMigrator) -> None:
    driver.databases.add("demo://app")

    exit_code = cli.main(["database", "drop", "-y", "--database-url", "demo://app"])

    assert exit_code == 0
    assert driver.calls == ["exists", "drop"]


def test_missing_url_reports_error(
    driver: DemoDriver, migrator: RecordingMigrator, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = cli.main(["database", "create"])

    assert exit_code == 1
    assert "DATABASE_URL" in capsys.readouterr().err
    assert driver.calls == []


def test_driver_failures_report_operation(
    driver: DemoDriver, migrator: RecordingMigrator, capsys: pytest.CaptureFixture[str]
) -> None:
    driver.databases.add("demo://app")
    driver.busy.add("demo://app")

    exit_code = cli.main(["database", "drop", "-y", "--database-url", "demo://app"])

    assert exit_code == 1
    assert "Failed to drop database at demo://app" in capsys.readouterr().err


def test_build_migrator_records_runs_for_demo_targets() -> None:
    config = AppConfig()

    assert isinstance(cli.build_migrator(DemoDriver(), config), RecordingMigrator)
    assert isinstance(cli.build_migrator(SqliteDriver(), config), CommandMigrator)


@pytest.mark.parametrize("command", [["setup"], ["reset", "-y"]])
def test_demo_target_runs_without_migration_command(command: list[str]) -> None:
    exit_code = cli.main(["database", *command, "--database-url", "demo://localhost/app"])

    assert exit_code == 0
