"""IdleWatcher — one reminder per uninterrupted idle stretch.

Polls every ``poll_interval`` seconds (60 by default) how long it has been
since the last recorded activity.  For the first enabled ``onIdle`` rule
whose ``idle_duration`` has been reached it fires once, then stays quiet
until activity is recorded again.

Activity is debounced: a burst of ``update_activity()`` calls within the
debounce delay collapses into a single commit once the burst settles.  The
commit moves ``last_activity_at`` to the commit time and re-opens the
episode so the next idle stretch can fire.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from code_mantra.logging import get_logger
from code_mantra.rules.models import Rule, TriggerKind
from code_mantra.scheduling import Handle, Scheduler

log = get_logger(__name__)

POLL_INTERVAL_SECONDS = 60.0
ACTIVITY_DEBOUNCE_SECONDS = 1.0

RulesProvider = Callable[[], Sequence[Rule]]
IdleCallback = Callable[[Rule], object]


@dataclass
class IdleState:
    last_activity_at: float = 0.0
    notified_for_current_episode: bool = False


class IdleWatcher:
    """Polling idle detector driven by a :class:`Scheduler`."""

    def __init__(
        self,
        scheduler: Scheduler,
        get_rules: RulesProvider,
        on_idle: IdleCallback,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        debounce: float = ACTIVITY_DEBOUNCE_SECONDS,
    ) -> None:
        self._scheduler = scheduler
        self._get_rules = get_rules
        self._on_idle = on_idle
        self._poll_interval = poll_interval
        self._debounce = debounce
        self.state = IdleState()
        self._poll_handle: Handle | None = None
        self._debounce_handle: Handle | None = None

    # ---------------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------------

    def start(self) -> bool:
        """Begin polling.  Returns False (and does nothing) without ``onIdle`` rules."""
        if self.is_running:
            return True
        if not self._idle_rules():
            log.debug("idle_watcher_skipped", reason="no onIdle rules")
            return False
        self.state = IdleState(last_activity_at=self._scheduler.now())
        self._schedule_poll()
        log.info("idle_watcher_started", poll_interval=self._poll_interval)
        return True

    def stop(self) -> None:
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        log.debug("idle_watcher_stopped")

    @property
    def is_running(self) -> bool:
        return self._poll_handle is not None

    # ---------------------------------------------------------------------------
    # Activity
    # ---------------------------------------------------------------------------

    def update_activity(self) -> None:
        """Record user activity; the state update lands after the debounce delay."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = self._scheduler.call_later(self._debounce, self._commit_activity)

    def _commit_activity(self) -> None:
        self._debounce_handle = None
        self.state.last_activity_at = self._scheduler.now()
        self.state.notified_for_current_episode = False
        log.debug("activity_recorded")

    def idle_minutes(self) -> float:
        return (self._scheduler.now() - self.state.last_activity_at) / 60.0

    # ---------------------------------------------------------------------------
    # Polling
    # ---------------------------------------------------------------------------

    def _schedule_poll(self) -> None:
        self._poll_handle = self._scheduler.call_later(self._poll_interval, self._tick)

    def _tick(self) -> None:
        self._schedule_poll()
        self.check()

    def check(self) -> Rule | None:
        """Evaluate idle rules now.  Returns the rule that fired, if any."""
        if self.state.notified_for_current_episode:
            return None
        rules = self._idle_rules()
        if not rules:
            return None
        idle = self.idle_minutes()
        log.debug("idle_check", idle_minutes=round(idle, 1))
        for rule in rules:
            if idle >= rule.idle_duration:
                self.state.notified_for_current_episode = True
                log.info("idle_threshold_reached", idle_minutes=round(idle, 1), threshold=rule.idle_duration)
                try:
                    self._on_idle(rule)
                except Exception as exc:
                    log.error("idle_callback_error", error=str(exc))
                return rule
        return None

    def _idle_rules(self) -> list[Rule]:
        return [r for r in self._get_rules() if r.trigger == TriggerKind.ON_IDLE and r.enabled]
