"""Schedulers — cancelable delayed callbacks on a single event queue.

Every delay in the engine (suppression cleanup, saving flag, edit debounce,
timer cadence, idle polling) goes through a :class:`Scheduler`, so the same
code runs on the asyncio loop in production and on virtual time in replays
and tests.

AsyncioScheduler  — wraps the running loop (``loop.call_later``)
ManualScheduler   — virtual clock advanced explicitly with ``advance()``
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Any, Callable, Protocol

from code_mantra.exceptions import SchedulerError
from code_mantra.logging import get_logger

log = get_logger(__name__)


class Handle(Protocol):
    """A pending delayed callback."""

    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    """Clock plus cancelable delayed callbacks.  Times are in seconds."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Handle: ...


# ---------------------------------------------------------------------------
# AsyncioScheduler
# ---------------------------------------------------------------------------


class AsyncioScheduler:
    """Schedules callbacks on an asyncio event loop.

    The loop is resolved lazily so the scheduler can be constructed before
    the loop starts.  ``now()`` is the loop's monotonic clock.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise SchedulerError("AsyncioScheduler requires a running event loop") from exc
        return self._loop

    def now(self) -> float:
        return self._get_loop().time()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        return self._get_loop().call_later(max(0.0, delay), callback, *args)


# ---------------------------------------------------------------------------
# ManualScheduler
# ---------------------------------------------------------------------------


class ManualHandle:
    """Handle returned by :class:`ManualScheduler`."""

    __slots__ = ("when", "callback", "args", "_cancelled")

    def __init__(self, when: float, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """Virtual-time scheduler.

    Nothing runs until :meth:`advance` is called.  Callbacks fire in deadline
    order; callbacks sharing a deadline fire in scheduling order.  Exceptions
    escaping a callback are logged and do not stop the advance, mirroring how
    an event loop reports errors from ``call_later`` handlers.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, ManualHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualHandle:
        handle = ManualHandle(self._now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """Move the clock forward by *seconds*, running every due callback.

        Returns the number of callbacks that ran.
        """
        if seconds < 0:
            raise SchedulerError(f"Cannot advance by a negative amount: {seconds}")
        return self.advance_to(self._now + seconds)

    def advance_to(self, deadline: float) -> int:
        """Run every callback due at or before *deadline*, then set the clock to it."""
        ran = 0
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled():
                continue
            self._now = max(self._now, when)
            try:
                handle.callback(*handle.args)
            except Exception as exc:
                log.error(
                    "scheduled_callback_error",
                    callback=getattr(handle.callback, "__qualname__", repr(handle.callback)),
                    error=str(exc),
                )
            ran += 1
        self._now = max(self._now, deadline)
        return ran

    @property
    def pending(self) -> int:
        """Number of callbacks scheduled and not cancelled."""
        return sum(1 for _, _, h in self._queue if not h.cancelled())
