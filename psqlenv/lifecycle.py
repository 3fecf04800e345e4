"""Brings a database to a known state before migrations run."""

from __future__ import annotations

import logging

from .drivers import DatabaseDriver
from .errors import DriverError, LifecycleError
from .migrate import Migrator
from .models import ConnectionTarget
from .prompt import ConfirmationGate
from .retry import RetryPolicy, retry_connect_errors

LOG = logging.getLogger(__name__)


async def create_database(
    driver: DatabaseDriver,
    target: ConnectionTarget,
    *,
    policy: RetryPolicy | None = None,
) -> bool:
    """Create the database unless it already exists; return whether it was created."""

    # Only the existence check is retried; create itself is not idempotent.
    exists = await retry_connect_errors(target, driver.exists, policy=policy)
    if exists:
        LOG.debug("Database already exists, skipping create", extra={"target": target.display})
        return False
    await driver.create(target.url, options=target.create_options())
    LOG.info("Created database", extra={"target": target.display})
    return True


async def drop_database(
    driver: DatabaseDriver,
    target: ConnectionTarget,
    *,
    force: bool = False,
    policy: RetryPolicy | None = None,
) -> bool:
    """Drop the database if it exists; return whether anything was dropped."""

    exists = await retry_connect_errors(target, driver.exists, policy=policy)
    if not exists:
        LOG.debug("Database does not exist, skipping drop", extra={"target": target.display})
        return False
    if force:
        await driver.force_drop(target.url)
    else:
        await driver.drop(target.url)
    LOG.info("Dropped database", extra={"target": target.display, "force": force})
    return True


class DatabaseLifecycle:
    """Create, drop, reset and set up a database."""

    def __init__(
        self,
        driver: DatabaseDriver,
        migrator: Migrator,
        *,
        gate: ConfirmationGate | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._driver = driver
        self._migrator = migrator
        self._gate = gate or ConfirmationGate()
        self._policy = policy

    async def create(self, target: ConnectionTarget) -> None:
        try:
            await create_database(self._driver, target, policy=self._policy)
        except DriverError as exc:
            raise LifecycleError("create", target.display, exc) from exc

    async def drop(self, target: ConnectionTarget, *, confirm: bool = True, force: bool = False) -> bool:
        """Drop the database; returns ``False`` when the user declined."""

        if confirm and not await self._gate.confirm_drop(target.display):
            return False
        try:
            await drop_database(self._driver, target, force=force, policy=self._policy)
        except DriverError as exc:
            raise LifecycleError("drop", target.display, exc) from exc
        return True

    async def reset(
        self,
        migration_source: str,
        target: ConnectionTarget,
        *,
        confirm: bool = True,
        force: bool = False,
    ) -> None:
        dropped = await self.drop(target, confirm=confirm, force=force)
        if not dropped:
            LOG.warning(
                "Drop was declined; running setup against the existing database",
                extra={"target": target.display},
            )
        await self.setup(migration_source, target)

    async def setup(self, migration_source: str, target: ConnectionTarget) -> None:
        """Ensure the database exists, then apply migrations from ``migration_source``."""

        await self.create(target)
        await self._migrator.run(
            migration_source,
            target,
            dry_run=False,
            ignore_missing=False,
            fake=False,
            target_version=None,
        )


__all__ = ["DatabaseLifecycle", "create_database", "drop_database"]
