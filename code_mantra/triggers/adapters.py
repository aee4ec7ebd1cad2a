"""Trigger-source adapters — one per host event kind.

Each adapter turns a raw host event into a :class:`TriggerEvent`, applies the
host filters (global switch, per-kind switch, language allow-list, exclude
patterns), its own rate limit where relevant, asks the SuppressionLedger for
a veto, and lets the RuleEngine pick the rule to fire.

Pipeline::

    host event
        ↓
    TriggerAdapter.accepts()          (filters)
        ↓
    Throttle.allow()                  (save / edit / open / focus only)
        ↓
    SuppressionLedger.should_suppress()
        ↓
    RuleEngine.select()
        ↓
    SuppressionLedger.record_notification()  →  Notifier.send()

Adapters
--------
SaveAdapter           — onSave, then marks the file as saving
EditAdapter           — onEdit, debounced per file
OpenAdapter           — onOpen
FocusAdapter          — onFocus
CreateAdapter         — onCreate (ledger-suppressed)
DeleteAdapter         — onDelete
ContentChangeAdapter  — onLargeDelete + onFileSizeExceeded
WorkspaceOpenAdapter  — onWorkspaceOpen greeting, every rule, no filters
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from typing import Callable, ClassVar, Sequence

from code_mantra.config import Settings
from code_mantra.logging import bind_event_context, clear_event_context, get_logger
from code_mantra.notify import Notifier
from code_mantra.rules.engine import RuleEngine, RuleFilter
from code_mantra.rules.models import (
    ContentChange,
    Rule,
    TriggerEvent,
    TriggerKind,
    net_deleted_lines,
)
from code_mantra.rules.patterns import compile_pattern
from code_mantra.scheduling import Handle, Scheduler
from code_mantra.triggers.ledger import SuppressionLedger

log = get_logger(__name__)

SettingsProvider = Callable[[], Settings]


# ---------------------------------------------------------------------------
# Shared collaborators
# ---------------------------------------------------------------------------


class Throttle:
    """Per-file, per-kind minimum interval between notifications.

    Coarser than the ledger's suppression window and independent of it: it
    exists to stop accidental spam, not to deduplicate related triggers.
    """

    def __init__(self, scheduler: Scheduler, interval_seconds: float) -> None:
        self._scheduler = scheduler
        self.interval = interval_seconds
        self._last: dict[tuple[str, TriggerKind], float] = {}

    def allow(self, file_path: str, kind: TriggerKind) -> bool:
        last = self._last.get((file_path, kind))
        if last is None:
            return True
        elapsed = self._scheduler.now() - last
        if elapsed < self.interval:
            log.debug("notification_throttled", file_path=file_path, trigger=kind.value, elapsed=elapsed)
            return False
        return True

    def stamp(self, file_path: str, kind: TriggerKind) -> None:
        self._last[(file_path, kind)] = self._scheduler.now()

    def forget(self, file_path: str) -> None:
        for key in [k for k in self._last if k[0] == file_path]:
            del self._last[key]

    def clear(self) -> None:
        self._last.clear()


@dataclass
class TriggerContext:
    """Collaborators shared by every adapter, owned by the daemon."""

    scheduler: Scheduler
    ledger: SuppressionLedger
    engine: RuleEngine
    notifier: Notifier
    throttle: Throttle
    settings: SettingsProvider

    def rules(self) -> list[Rule]:
        """Fresh rule snapshot — the configuration store is re-read every decision."""
        return self.settings().parsed_rules()

    def fire(self, event: TriggerEvent, rule: Rule) -> None:
        self.ledger.record_notification(event.file_path, event.kind)
        log.info(
            "reminder_fired",
            trigger=event.kind.value,
            file_path=event.file_path,
            index=rule.index,
        )
        self.notifier.send(rule.message)


# ---------------------------------------------------------------------------
# Base adapter
# ---------------------------------------------------------------------------


class TriggerAdapter(ABC):
    """Shared filtering and evaluation for file-based trigger kinds."""

    kind: ClassVar[TriggerKind]
    throttled: ClassVar[bool] = False
    suppressible: ClassVar[bool] = True

    def __init__(self, ctx: TriggerContext) -> None:
        self._ctx = ctx

    def accepts(
        self,
        file_path: str,
        language_id: str | None = None,
        kind: TriggerKind | None = None,
    ) -> bool:
        """Host filters: global switch, kind switch, language, exclusions."""
        settings = self._ctx.settings()
        kind = kind or self.kind
        if not settings.enabled or not settings.triggers.is_enabled(kind):
            return False
        if not settings.language_allowed(language_id):
            log.debug("language_not_supported", file_path=file_path, language_id=language_id)
            return False
        return not is_excluded(settings, file_path)

    def make_event(self, file_path: str, language_id: str | None = None, **payload: object) -> TriggerEvent:
        return TriggerEvent(
            file_path=file_path,
            kind=self.kind,
            timestamp=self._ctx.scheduler.now(),
            language_id=language_id,
            **payload,  # type: ignore[arg-type]
        )

    def evaluate(self, event: TriggerEvent, extra: RuleFilter | None = None) -> Rule | None:
        """Throttle → suppression → selection → record + notify."""
        bind_event_context(file_path=event.file_path, trigger=event.kind.value)
        try:
            if self.throttled and not self._ctx.throttle.allow(event.file_path, event.kind):
                return None
            if self.suppressible and self._ctx.ledger.should_suppress(event.file_path, event.kind):
                return None
            rule = self._ctx.engine.select(event, self._ctx.rules(), extra)
            if rule is None:
                return None
            if self.throttled:
                self._ctx.throttle.stamp(event.file_path, event.kind)
            self._ctx.fire(event, rule)
            return rule
        finally:
            clear_event_context()

    def dispose(self) -> None:
        """Release pending callbacks.  Stateless adapters have none."""


def is_excluded(settings: Settings, file_path: str) -> bool:
    for pattern in settings.exclude_patterns:
        if compile_pattern(pattern).test(file_path):
            log.debug("path_excluded", file_path=file_path, pattern=pattern)
            return True
    return False


# ---------------------------------------------------------------------------
# Simple file adapters
# ---------------------------------------------------------------------------


class SaveAdapter(TriggerAdapter):
    kind = TriggerKind.ON_SAVE
    throttled = True

    def handle(self, file_path: str, language_id: str | None = None) -> Rule | None:
        rule = None
        if self.accepts(file_path, language_id):
            rule = self.evaluate(self.make_event(file_path, language_id))
        # Change events emitted by the save itself land inside this window.
        self._ctx.ledger.mark_file_saving(file_path)
        return rule


class OpenAdapter(TriggerAdapter):
    kind = TriggerKind.ON_OPEN
    throttled = True

    def handle(
        self,
        file_path: str,
        language_id: str | None = None,
        line_count: int | None = None,
    ) -> Rule | None:
        if not self.accepts(file_path, language_id):
            return None
        return self.evaluate(self.make_event(file_path, language_id, line_count=line_count))


class FocusAdapter(TriggerAdapter):
    kind = TriggerKind.ON_FOCUS
    throttled = True

    def handle(self, file_path: str, language_id: str | None = None) -> Rule | None:
        if not self.accepts(file_path, language_id):
            return None
        return self.evaluate(self.make_event(file_path, language_id))


class CreateAdapter(TriggerAdapter):
    kind = TriggerKind.ON_CREATE

    def handle(self, file_path: str) -> Rule | None:
        if not self.accepts(file_path):
            return None
        return self.evaluate(self.make_event(file_path))


class DeleteAdapter(TriggerAdapter):
    kind = TriggerKind.ON_DELETE
    suppressible = False

    def handle(self, file_path: str) -> Rule | None:
        if not self.accepts(file_path):
            return None
        return self.evaluate(self.make_event(file_path))


# ---------------------------------------------------------------------------
# EditAdapter — debounced
# ---------------------------------------------------------------------------


class EditAdapter(TriggerAdapter):
    """Evaluates ``onEdit`` once a file has been quiet for ``delay`` seconds.

    Every change cancels the file's pending evaluation and arms a new one, so
    only the last change of a burst is ever evaluated.
    """

    kind = TriggerKind.ON_EDIT
    throttled = True

    def __init__(self, ctx: TriggerContext, delay_seconds: float) -> None:
        super().__init__(ctx)
        self.delay = delay_seconds
        self._pending: dict[str, Handle] = {}

    def handle(self, file_path: str, language_id: str | None = None) -> None:
        if not self.accepts(file_path, language_id):
            return
        self.cancel(file_path)
        self._pending[file_path] = self._ctx.scheduler.call_later(
            self.delay, self._on_quiet, file_path, language_id
        )

    def _on_quiet(self, file_path: str, language_id: str | None) -> None:
        self._pending.pop(file_path, None)
        self.evaluate(self.make_event(file_path, language_id))

    def cancel(self, file_path: str) -> None:
        handle = self._pending.pop(file_path, None)
        if handle is not None:
            handle.cancel()

    def is_pending(self, file_path: str) -> bool:
        return file_path in self._pending

    def dispose(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()


# ---------------------------------------------------------------------------
# ContentChangeAdapter — large deletions and size thresholds
# ---------------------------------------------------------------------------


class ContentChangeAdapter(TriggerAdapter):
    """Watches change batches for large deletions and line-count crossings."""

    kind = TriggerKind.ON_LARGE_DELETE

    def handle(
        self,
        file_path: str,
        changes: Sequence[ContentChange],
        line_count: int | None = None,
        language_id: str | None = None,
    ) -> list[Rule]:
        fired: list[Rule] = []
        settings = self._ctx.settings()
        if not settings.enabled or is_excluded(settings, file_path):
            return fired

        rule = self._check_large_delete(file_path, changes, language_id)
        if rule is not None:
            fired.append(rule)
        if line_count is not None:
            rule = self._check_size(file_path, line_count, language_id)
            if rule is not None:
                fired.append(rule)
        return fired

    def _check_large_delete(
        self,
        file_path: str,
        changes: Sequence[ContentChange],
        language_id: str | None,
    ) -> Rule | None:
        if not self.accepts(file_path, language_id, TriggerKind.ON_LARGE_DELETE):
            return None
        if self._ctx.ledger.is_file_saving(file_path):
            log.debug("large_delete_ignored_saving", file_path=file_path)
            return None
        deleted = net_deleted_lines(changes)
        if deleted <= 0:
            return None
        event = self.make_event(file_path, language_id, changes=list(changes))
        return self.evaluate(event, extra=lambda r: deleted >= r.deletion_threshold)

    def _check_size(self, file_path: str, line_count: int, language_id: str | None) -> Rule | None:
        ledger = self._ctx.ledger
        ledger.reset_size_thresholds_below(file_path, line_count)
        rule: Rule | None = None
        if self.accepts(file_path, language_id, TriggerKind.ON_FILE_SIZE_EXCEEDED):
            event = TriggerEvent(
                file_path=file_path,
                kind=TriggerKind.ON_FILE_SIZE_EXCEEDED,
                timestamp=self._ctx.scheduler.now(),
                language_id=language_id,
                line_count=line_count,
            )

            def crossed(r: Rule) -> bool:
                return ledger.did_cross_threshold(
                    file_path, line_count, r.line_size_threshold
                ) and not ledger.is_size_threshold_notified(file_path, r.line_size_threshold)

            candidates = self._ctx.engine.matching(event, self._ctx.rules(), crossed)
            for candidate in candidates:
                ledger.mark_size_threshold_notified(file_path, candidate.line_size_threshold)
            rule = self._ctx.engine.choose(candidates)
            if rule is not None:
                self._ctx.fire(event, rule)
        ledger.update_line_count(file_path, line_count)
        return rule


# ---------------------------------------------------------------------------
# WorkspaceOpenAdapter — greeting
# ---------------------------------------------------------------------------


class WorkspaceOpenAdapter:
    """Fires every enabled ``onWorkspaceOpen`` rule once, unconditionally."""

    kind = TriggerKind.ON_WORKSPACE_OPEN

    def __init__(self, ctx: TriggerContext) -> None:
        self._ctx = ctx

    def handle(self) -> list[Rule]:
        settings = self._ctx.settings()
        if not settings.enabled or not settings.triggers.is_enabled(self.kind):
            return []
        rules = [r for r in self._ctx.rules() if r.trigger == self.kind and r.enabled]
        if rules:
            log.info("workspace_open_rules", count=len(rules))
        for rule in rules:
            self._ctx.notifier.send(rule.message)
        return rules
