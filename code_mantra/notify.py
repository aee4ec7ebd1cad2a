"""Notification dispatch — the one outward call the engine makes.

The presentation collaborator is anything with ``notify(message)``.  It may
return an awaitable (an async popup API); failures either way are logged and
never propagate back into the engine, so suppression records and timer
re-arms already made stay valid.

Sinks
-----
LogSink        — structlog ``info`` record per notification
ConsoleSink    — rich console line (CLI)
CallbackSink   — wraps a plain callable
RecordingSink  — keeps every message with its timestamp (replay, tests)
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from rich.console import Console

from code_mantra.exceptions import NotificationError
from code_mantra.logging import get_logger

log = get_logger(__name__)

DEFAULT_PREFIX = "🔔 Code Mantra: "


class NotificationSink(Protocol):
    def notify(self, message: str) -> Awaitable[None] | None: ...


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


class LogSink:
    def notify(self, message: str) -> None:
        log.info("notification", message=message)


class ConsoleSink:
    def __init__(self, console: Console | None = None, clock: Callable[[], float] | None = None) -> None:
        self._console = console or Console()
        self._clock = clock

    def notify(self, message: str) -> None:
        if self._clock is not None:
            self._console.print(f"[dim]{self._clock():>10.3f}s[/dim]  {message}")
        else:
            self._console.print(message)


class CallbackSink:
    def __init__(self, callback: Callable[[str], Any]) -> None:
        self._callback = callback

    def notify(self, message: str) -> Any:
        return self._callback(message)


@dataclass
class RecordingSink:
    """Keeps every message.  ``clock`` timestamps entries when given."""

    clock: Callable[[], float] | None = None
    messages: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def notify(self, message: str) -> None:
        self.messages.append(message)
        if self.clock is not None:
            self.timestamps.append(self.clock())

    def clear(self) -> None:
        self.messages.clear()
        self.timestamps.clear()


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------


class Notifier:
    """Prefixes messages and shields the engine from sink failures."""

    def __init__(self, sink: NotificationSink, prefix: str = DEFAULT_PREFIX) -> None:
        self._sink = sink
        self.prefix = prefix
        self.sent = 0
        self.failed = 0
        self._pending: set[asyncio.Future[Any]] = set()

    def send(self, message: str) -> None:
        text = f"{self.prefix}{message}"
        log.debug("notification_dispatch", message=text)
        try:
            result = self._sink.notify(text)
        except Exception as exc:
            self._record_failure(text, exc)
            return
        if inspect.isawaitable(result):
            self._track(text, result)
        else:
            self.sent += 1

    def _track(self, text: str, awaitable: Awaitable[Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
            future = asyncio.ensure_future(awaitable, loop=loop)
        except RuntimeError as exc:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._record_failure(text, exc)
            return
        self._pending.add(future)

        def _done(fut: asyncio.Future[Any]) -> None:
            self._pending.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                self._record_failure(text, exc)
            else:
                self.sent += 1

        future.add_done_callback(_done)

    def _record_failure(self, text: str, exc: BaseException) -> None:
        self.failed += 1
        error = exc if isinstance(exc, NotificationError) else NotificationError(text, str(exc))
        log.error("notification_failed", error=error.message, **error.context)

    async def drain(self) -> None:
        """Wait for every in-flight async notification to settle."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
