"""MantraDaemon — owns every manager and wires host events to adapters.

The daemon is the single event-loop driver: it owns one SuppressionLedger,
one TimerPool, one IdleWatcher, one RuleEngine and one adapter per trigger
kind, and threads them through a shared :class:`TriggerContext`.  Nothing is
global except the pattern cache.

Lifecycle::

    daemon = MantraDaemon(sink=ConsoleSink())
    daemon.activate()              # timers, idle polling, workspace greeting
    daemon.on_document_save("/src/app.ts", language_id="typescript")
    ...
    daemon.reload()                # configuration changed: rebuild from scratch
    daemon.deactivate()            # cancel every timer, debounce and poll

Host wiring (1:1 with the adapters)::

    on_document_open    → OpenAdapter       (+ line-count baseline, activity)
    on_document_close   → ledger cleanup, pending edit cancelled
    on_document_save    → SaveAdapter       (+ activity)
    on_document_change  → EditAdapter + ContentChangeAdapter
    on_editor_focus     → FocusAdapter      (+ activity)
    on_file_create      → CreateAdapter
    on_file_delete      → DeleteAdapter     (+ ledger cleanup, pending edit cancelled)

Every decision runs to completion inside one callback turn; no locks are
needed because ledger and pool are only touched from the loop thread.
"""

from __future__ import annotations

import random
from typing import Iterable, Sequence

from code_mantra.config import Settings, get_settings
from code_mantra.logging import get_logger
from code_mantra.notify import LogSink, NotificationSink, Notifier
from code_mantra.rules.engine import RuleEngine
from code_mantra.rules.models import ContentChange, Rule, TriggerKind
from code_mantra.rules.patterns import clear_pattern_cache
from code_mantra.scheduling import AsyncioScheduler, Scheduler
from code_mantra.triggers.adapters import (
    ContentChangeAdapter,
    CreateAdapter,
    DeleteAdapter,
    EditAdapter,
    FocusAdapter,
    OpenAdapter,
    SaveAdapter,
    SettingsProvider,
    Throttle,
    TriggerContext,
    WorkspaceOpenAdapter,
)
from code_mantra.triggers.idle import IdleWatcher
from code_mantra.triggers.ledger import SuppressionLedger
from code_mantra.triggers.timers import TimerPool

log = get_logger(__name__)

ChangeInput = ContentChange | Sequence[int]


class MantraDaemon:
    """Reminder engine driver.  Long-lived; activate once, reload on config change."""

    def __init__(
        self,
        settings_provider: SettingsProvider | None = None,
        sink: NotificationSink | None = None,
        scheduler: Scheduler | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings_provider or get_settings
        self.scheduler: Scheduler = scheduler or AsyncioScheduler()
        initial = self._settings()
        self.notifier = Notifier(sink or LogSink(), prefix=initial.notification_prefix)
        self.ledger = SuppressionLedger(self.scheduler)
        self.timers = TimerPool(self.scheduler)
        self.engine = RuleEngine(rng)
        self.throttle = Throttle(self.scheduler, initial.triggers.min_interval_ms / 1000.0)
        self._ctx = TriggerContext(
            scheduler=self.scheduler,
            ledger=self.ledger,
            engine=self.engine,
            notifier=self.notifier,
            throttle=self.throttle,
            settings=self._settings,
        )
        self.idle = IdleWatcher(self.scheduler, self._idle_rules, self._on_idle)

        self.save_adapter = SaveAdapter(self._ctx)
        self.edit_adapter = EditAdapter(self._ctx, initial.triggers.on_edit.delay_ms / 1000.0)
        self.open_adapter = OpenAdapter(self._ctx)
        self.focus_adapter = FocusAdapter(self._ctx)
        self.create_adapter = CreateAdapter(self._ctx)
        self.delete_adapter = DeleteAdapter(self._ctx)
        self.change_adapter = ContentChangeAdapter(self._ctx)
        self.workspace_adapter = WorkspaceOpenAdapter(self._ctx)
        self._active = False

    # ---------------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------------

    def activate(self, greet: bool = True) -> None:
        """Arm timers and idle polling; fire the workspace-open greeting."""
        if self._active:
            return
        settings = self._settings()
        if not settings.enabled:
            log.info("mantra_disabled")
            return
        self._active = True

        # Settings may have changed since construction.
        self.notifier.prefix = settings.notification_prefix
        self.throttle.interval = settings.triggers.min_interval_ms / 1000.0
        self.edit_adapter.delay = settings.triggers.on_edit.delay_ms / 1000.0

        rules = settings.parsed_rules()
        self._start_timers(settings, rules)
        if settings.triggers.is_enabled(TriggerKind.ON_IDLE):
            self.idle.start()
        if greet:
            self.workspace_adapter.handle()
        log.info(
            "mantra_activated",
            rules=len(rules),
            skipped_rules=len(settings.rules) - len(rules),
            timers=self.timers.active_count(),
            idle=self.idle.is_running,
        )

    def deactivate(self) -> None:
        """Cancel every timer, debounce and poll; drop derived state."""
        for adapter in self._adapters():
            adapter.dispose()
        self.timers.clear_all()
        self.idle.stop()
        self.ledger.clear()
        self.throttle.clear()
        clear_pattern_cache()
        if self._active:
            log.info("mantra_deactivated")
        self._active = False

    def reload(self) -> None:
        """Rebuild adapters and timers after a configuration change."""
        log.info("mantra_reloading")
        self.deactivate()
        self.activate(greet=False)

    @property
    def is_active(self) -> bool:
        return self._active

    # ---------------------------------------------------------------------------
    # Host wiring
    # ---------------------------------------------------------------------------

    def on_document_open(
        self,
        file_path: str,
        language_id: str | None = None,
        line_count: int | None = None,
    ) -> Rule | None:
        if not self._active:
            return None
        self.idle.update_activity()
        if line_count is not None:
            # Opening above a threshold is not a crossing; only later edits are.
            self.ledger.update_line_count(file_path, line_count)
        return self.open_adapter.handle(file_path, language_id, line_count)

    def on_document_close(self, file_path: str) -> None:
        if not self._active:
            return
        self.edit_adapter.cancel(file_path)
        self.throttle.forget(file_path)
        self.ledger.cleanup_file(file_path)

    def on_document_save(self, file_path: str, language_id: str | None = None) -> Rule | None:
        if not self._active:
            return None
        self.idle.update_activity()
        return self.save_adapter.handle(file_path, language_id)

    def on_document_change(
        self,
        file_path: str,
        changes: Iterable[ChangeInput] = (),
        line_count: int | None = None,
        language_id: str | None = None,
    ) -> list[Rule]:
        if not self._active:
            return []
        normalized = [_to_change(c) for c in changes]
        self.idle.update_activity()
        self.edit_adapter.handle(file_path, language_id)
        return self.change_adapter.handle(file_path, normalized, line_count, language_id)

    def on_editor_focus(self, file_path: str | None, language_id: str | None = None) -> Rule | None:
        if not self._active:
            return None
        self.idle.update_activity()
        if file_path is None:
            return None  # focus moved away from every editor
        return self.focus_adapter.handle(file_path, language_id)

    def on_file_create(self, file_path: str) -> Rule | None:
        if not self._active:
            return None
        return self.create_adapter.handle(file_path)

    def on_file_delete(self, file_path: str) -> Rule | None:
        if not self._active:
            return None
        rule = self.delete_adapter.handle(file_path)
        self.edit_adapter.cancel(file_path)
        self.throttle.forget(file_path)
        self.ledger.cleanup_file(file_path)
        return rule

    # ---------------------------------------------------------------------------
    # Timers & idle
    # ---------------------------------------------------------------------------

    def _start_timers(self, settings: Settings, rules: Sequence[Rule]) -> None:
        self.timers.clear_all()
        if not settings.triggers.is_enabled(TriggerKind.ON_TIMER):
            return
        for rule in rules:
            if rule.trigger != TriggerKind.ON_TIMER or not rule.enabled:
                continue
            self.timers.start(rule.timer_identity, rule.duration_minutes, self._timer_callback(rule))

    def _timer_callback(self, rule: Rule):
        def _fire() -> None:
            log.info("timer_reminder", identity=rule.timer_identity, minutes=rule.duration_minutes)
            self.notifier.send(rule.message)

        return _fire

    def _idle_rules(self) -> list[Rule]:
        settings = self._settings()
        if not settings.enabled or not settings.triggers.is_enabled(TriggerKind.ON_IDLE):
            return []
        return settings.parsed_rules()

    def _on_idle(self, rule: Rule) -> None:
        self.notifier.send(rule.message)

    def _adapters(self):
        return (
            self.save_adapter,
            self.edit_adapter,
            self.open_adapter,
            self.focus_adapter,
            self.create_adapter,
            self.delete_adapter,
            self.change_adapter,
        )


def _to_change(value: ChangeInput) -> ContentChange:
    if isinstance(value, ContentChange):
        return value
    start, end, *rest = value
    return ContentChange(int(start), int(end), int(rest[0]) if rest else 0)
