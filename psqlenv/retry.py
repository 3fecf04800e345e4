"""Retry loop for idempotent checks that may hit a server that is not up yet."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

import backoff

from .errors import TransientConnectionError

if TYPE_CHECKING:
    from .models import ConnectionTarget

LOG = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff settings."""

    max_tries: int = 10
    max_time: float | None = 10.0
    initial_delay: float = 0.1
    max_delay: float = 2.0


async def retry_connect_errors(
    target: "ConnectionTarget",
    operation: Callable[[str], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
) -> T:
    """Run ``operation(target.url)``, retrying only transient connection errors.

    Only pass read-only or otherwise repeatable operations here. Anything that
    is not a :class:`TransientConnectionError` is raised on the first failure;
    once the policy is exhausted the last transient error is raised.
    """

    policy = policy or RetryPolicy(max_time=target.connect_timeout)

    def _log_retry(details: dict[str, Any]) -> None:
        LOG.warning(
            "Database not reachable yet, retrying in %.2fs (attempt %d): %s",
            details["wait"],
            details["tries"],
            details.get("exception"),
            extra={"target": target.display, "attempt": details["tries"]},
        )

    @backoff.on_exception(
        backoff.expo,
        TransientConnectionError,
        max_tries=policy.max_tries,
        max_time=policy.max_time,
        on_backoff=_log_retry,
        factor=policy.initial_delay,
        max_value=policy.max_delay,
    )
    async def _attempt() -> T:
        return await operation(target.url)

    return await _attempt()


__all__ = ["RetryPolicy", "retry_connect_errors"]
