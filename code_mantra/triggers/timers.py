"""TimerPool — named, self-re-arming countdown timers for ``onTimer`` rules.

Each timer is keyed by a deterministic identity (``timer-<rule index>``), so
re-registering a rule replaces its timer instead of stacking a second one.

Cadence
-------
When a timer fires its callback runs.  If the same timer entry is still
registered under its identity afterwards, it re-arms for another period.
The next deadline is computed from the previous *deadline*, not from when
the callback finished, so a slow callback or a late wake-up does not make
the reminder drift.

A callback that raises is logged and the re-arm still happens.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from code_mantra.logging import get_logger
from code_mantra.scheduling import Handle, Scheduler

log = get_logger(__name__)

TimerCallback = Callable[[], object]


@dataclass
class TimerState:
    duration_minutes: float
    callback: TimerCallback
    armed_at: float
    due_at: float
    handle: Handle | None = None
    fire_count: int = 0

    @property
    def period_seconds(self) -> float:
        return self.duration_minutes * 60.0


class TimerPool:
    """Owns every live reminder timer.  At most one timer per identity."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._timers: dict[str, TimerState] = {}
        self._disposed = False

    # ---------------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------------

    def start(self, identity: str, duration_minutes: float, callback: TimerCallback) -> None:
        """Arm a timer under *identity*, cancelling any timer already there."""
        if self._disposed:
            log.warning("timer_pool_disposed", identity=identity)
            return
        if duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")

        self.stop(identity)
        now = self._scheduler.now()
        state = TimerState(
            duration_minutes=duration_minutes,
            callback=callback,
            armed_at=now,
            due_at=now + duration_minutes * 60.0,
        )
        self._timers[identity] = state
        self._arm(identity, state)
        log.debug("timer_started", identity=identity, duration_minutes=duration_minutes)

    def stop(self, identity: str) -> None:
        """Cancel and remove one timer.  Unknown identities are ignored."""
        state = self._timers.pop(identity, None)
        if state is None:
            return
        if state.handle is not None:
            state.handle.cancel()
        log.debug("timer_stopped", identity=identity)

    def clear_all(self) -> None:
        """Cancel every timer (rule configuration changed, rebuild from scratch)."""
        for identity in list(self._timers):
            self.stop(identity)
        log.debug("timers_cleared")

    def dispose(self) -> None:
        if self._disposed:
            return
        self.clear_all()
        self._disposed = True

    def active_count(self) -> int:
        return len(self._timers)

    def is_active(self, identity: str) -> bool:
        return identity in self._timers

    def get(self, identity: str) -> TimerState | None:
        return self._timers.get(identity)

    @property
    def identities(self) -> list[str]:
        return list(self._timers)

    # ---------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------

    def _arm(self, identity: str, state: TimerState) -> None:
        delay = state.due_at - self._scheduler.now()
        state.handle = self._scheduler.call_later(delay, self._on_fire, identity, state)

    def _on_fire(self, identity: str, state: TimerState) -> None:
        if self._timers.get(identity) is not state:
            return  # replaced or stopped after this handle was armed
        state.fire_count += 1
        log.debug("timer_fired", identity=identity, fire_count=state.fire_count)
        try:
            state.callback()
        except Exception as exc:
            log.error("timer_callback_error", identity=identity, error=str(exc))

        # The callback may have stopped or replaced this timer.
        if self._timers.get(identity) is not state:
            return
        period = state.period_seconds
        now = self._scheduler.now()
        next_due = state.due_at + period
        if next_due <= now:
            # Fell more than a full period behind: skip missed beats.
            missed = int((now - state.due_at) // period)
            next_due = state.due_at + (missed + 1) * period
        state.armed_at = state.due_at
        state.due_at = next_due
        self._arm(identity, state)
