"""Interactive confirmation for destructive actions."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Protocol, TypeVar

import questionary
from questionary import Style
from rich.console import Console

from .errors import PromptError
from .models import ConfirmationDecision

LOG = logging.getLogger(__name__)

ConfirmPrompt = Callable[[str], bool]

T = TypeVar("T")

# Ctrl+C surfaces as any of these depending on where the signal lands.
_INTERRUPTS: tuple[type[BaseException], ...] = (KeyboardInterrupt, EOFError, InterruptedError)

PROMPT_STYLE = Style(
    [
        ("qmark", "fg:#ff5f5f bold"),
        ("question", "bold"),
        ("answer", "fg:#00afaf bold"),
    ]
)


class Terminal(Protocol):
    """Terminal capability used to restore the cursor."""

    def set_cursor_visible(self, visible: bool) -> None: ...


class RichTerminal:
    """Terminal backed by a rich console on stderr."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)

    def set_cursor_visible(self, visible: bool) -> None:
        self._console.show_cursor(visible)


def questionary_confirm(message: str) -> bool:
    """Blocking yes/no prompt; defaults to no and waits for Enter."""

    answer = questionary.confirm(
        message,
        default=False,
        auto_enter=False,
        style=PROMPT_STYLE,
    ).unsafe_ask()
    return bool(answer)


async def run_in_daemon_thread(func: Callable[..., T], *args: object) -> T:
    """Run a blocking call on a daemon thread and await its result.

    Unlike the default executor, a daemon thread that is still blocked on
    console input does not hold up event loop shutdown once the awaiting
    task has been cancelled.
    """

    loop = asyncio.get_running_loop()
    future: asyncio.Future[T] = loop.create_future()

    def _deliver(result: object, exc: BaseException | None) -> None:
        if future.done():
            return
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(result)  # type: ignore[arg-type]

    def _worker() -> None:
        result: object = None
        error: BaseException | None = None
        try:
            result = func(*args)
        except BaseException as exc:
            error = exc
        if loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(_deliver, result, error)
        except RuntimeError:  # pragma: no cover - loop closed after the check
            LOG.debug("Prompt finished after the event loop closed")

    threading.Thread(target=_worker, name="psqlenv-confirm", daemon=True).start()
    return await future


class CursorGuard:
    """Restores cursor visibility once unless disarmed first.

    Use as a context manager around a prompt. Call :meth:`disarm` once the
    prompt has answered normally; any other exit (interrupt, error or task
    cancellation) makes the terminal cursor visible again on scope exit.

    The guard never hides the cursor itself. Hiding and showing it while the
    prompt is running is up to the prompt library; the guard only covers the
    exits where that library cannot restore it.
    """

    def __init__(self, terminal: Terminal) -> None:
        self._terminal = terminal
        self._armed = True
        self.fired = False

    @property
    def armed(self) -> bool:
        return self._armed

    def disarm(self) -> None:
        self._armed = False

    def fire(self) -> None:
        if not self._armed:
            return
        self._armed = False
        self.fired = True
        self._terminal.set_cursor_visible(True)

    def __enter__(self) -> CursorGuard:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.fire()


class ConfirmationGate:
    """Asks the user before a database is dropped."""

    def __init__(self, prompt: ConfirmPrompt | None = None, terminal: Terminal | None = None) -> None:
        self._prompt = prompt or questionary_confirm
        self._terminal = terminal or RichTerminal()

    async def ask(self, target_description: str) -> ConfirmationDecision:
        """Prompt on a worker thread and classify the answer."""

        message = f"Drop database at {target_description}?"
        with CursorGuard(self._terminal) as guard:
            try:
                answer = await run_in_daemon_thread(self._prompt, message)
            except _INTERRUPTS:
                LOG.info("Drop confirmation interrupted", extra={"target": target_description})
                return ConfirmationDecision.INTERRUPTED
            except Exception as exc:
                raise PromptError(f"Confirm dialog failed with {exc}") from exc
            guard.disarm()
        if answer:
            return ConfirmationDecision.PROCEED
        LOG.info("Drop declined", extra={"target": target_description})
        return ConfirmationDecision.DECLINE

    async def confirm_drop(self, target_description: str) -> bool:
        decision = await self.ask(target_description)
        return decision.proceed


__all__ = [
    "ConfirmPrompt",
    "ConfirmationGate",
    "CursorGuard",
    "RichTerminal",
    "run_in_daemon_thread",
    "Terminal",
    "questionary_confirm",
]
