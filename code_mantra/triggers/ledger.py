"""SuppressionLedger — per-file memory that keeps one user action to one reminder.

Several trigger sources can fire for the same file within milliseconds of
each other (a save also produces change events; creating a file implies a
save).  The ledger records when each trigger kind last fired for each file
and vetoes a new notification when:

1. the file is currently being saved,
2. the same kind fired for the file within the suppression window, or
3. a dominant kind fired for the file within the window
   (``onSave`` dominates ``onEdit``; ``onCreate`` dominates ``onSave``).

It also keeps the line-count baseline used to detect upward crossings of
size thresholds, and which thresholds have already been reported for the
current "above threshold" episode.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from code_mantra.logging import get_logger
from code_mantra.rules.models import TriggerKind
from code_mantra.scheduling import Handle, Scheduler

log = get_logger(__name__)

SUPPRESSION_WINDOW_SECONDS = 0.5
SAVING_FLAG_SECONDS = 0.2

# dominant kind → kinds it suppresses within the window
SUPPRESSION_RULES: dict[TriggerKind, frozenset[TriggerKind]] = {
    TriggerKind.ON_SAVE: frozenset({TriggerKind.ON_EDIT}),
    TriggerKind.ON_CREATE: frozenset({TriggerKind.ON_SAVE}),
}


@dataclass
class FileRecord:
    """Everything the ledger knows about one file."""

    last_fired: dict[TriggerKind, float] = field(default_factory=dict)
    previous_line_count: int | None = None
    notified_size_thresholds: set[int] = field(default_factory=set)

    def is_empty(self) -> bool:
        return (
            not self.last_fired
            and self.previous_line_count is None
            and not self.notified_size_thresholds
        )


class SuppressionLedger:
    """Per-file, per-trigger-kind record of recent notifications."""

    def __init__(
        self,
        scheduler: Scheduler,
        window_seconds: float = SUPPRESSION_WINDOW_SECONDS,
        saving_seconds: float = SAVING_FLAG_SECONDS,
    ) -> None:
        self._scheduler = scheduler
        self._window = window_seconds
        self._saving_seconds = saving_seconds
        self._files: dict[str, FileRecord] = {}
        self._saving: dict[str, Handle] = {}  # file_path → pending unmark
        self._cleanups: set[Handle] = set()

    # ---------------------------------------------------------------------------
    # Suppression
    # ---------------------------------------------------------------------------

    def should_suppress(self, file_path: str, kind: TriggerKind) -> bool:
        """Return True if a notification of *kind* for *file_path* must be dropped."""
        if file_path in self._saving:
            log.debug("suppressed_saving", file_path=file_path, trigger=kind.value)
            return True

        record = self._files.get(file_path)
        if record is None or not record.last_fired:
            return False

        now = self._scheduler.now()
        last = record.last_fired.get(kind)
        if last is not None and now - last < self._window:
            log.debug("suppressed_same_trigger", file_path=file_path, trigger=kind.value)
            return True

        for dominant, suppressed in SUPPRESSION_RULES.items():
            if kind not in suppressed:
                continue
            fired_at = record.last_fired.get(dominant)
            if fired_at is not None and now - fired_at < self._window:
                log.debug(
                    "suppressed_by_dominant",
                    file_path=file_path,
                    trigger=kind.value,
                    dominant=dominant.value,
                )
                return True
        return False

    def record_notification(self, file_path: str, kind: TriggerKind) -> None:
        """Store *now* for (*file_path*, *kind*) and schedule pruning of old entries."""
        record = self._files.setdefault(file_path, FileRecord())
        record.last_fired[kind] = self._scheduler.now()
        log.debug("notification_recorded", file_path=file_path, trigger=kind.value)

        handle: Handle | None = None

        def _cleanup() -> None:
            self._cleanups.discard(handle)  # type: ignore[arg-type]
            self._prune(file_path)

        handle = self._scheduler.call_later(self._window * 2, _cleanup)
        self._cleanups.add(handle)

    # ---------------------------------------------------------------------------
    # Saving flag
    # ---------------------------------------------------------------------------

    def mark_file_saving(self, file_path: str) -> None:
        """Flag *file_path* as saving for a short window.  A newer mark restarts it."""
        previous = self._saving.pop(file_path, None)
        if previous is not None:
            previous.cancel()
        self._saving[file_path] = self._scheduler.call_later(
            self._saving_seconds, self._unmark_saving, file_path
        )
        log.debug("file_marked_saving", file_path=file_path)

    def is_file_saving(self, file_path: str) -> bool:
        return file_path in self._saving

    def _unmark_saving(self, file_path: str) -> None:
        self._saving.pop(file_path, None)
        log.debug("file_unmarked_saving", file_path=file_path)

    # ---------------------------------------------------------------------------
    # Line-count baseline & size thresholds
    # ---------------------------------------------------------------------------

    def update_line_count(self, file_path: str, line_count: int) -> None:
        self._files.setdefault(file_path, FileRecord()).previous_line_count = line_count

    def get_previous_line_count(self, file_path: str) -> int | None:
        record = self._files.get(file_path)
        return record.previous_line_count if record else None

    def did_cross_threshold(self, file_path: str, current_line_count: int, threshold: int) -> bool:
        """True only for a live upward crossing: previous < threshold <= current.

        Without a baseline (first observation of the file) nothing has been
        crossed.
        """
        previous = self.get_previous_line_count(file_path)
        if previous is None:
            return False
        crossed = previous < threshold <= current_line_count
        if crossed:
            log.debug(
                "threshold_crossed",
                file_path=file_path,
                threshold=threshold,
                previous=previous,
                current=current_line_count,
            )
        return crossed

    def is_size_threshold_notified(self, file_path: str, threshold: int) -> bool:
        record = self._files.get(file_path)
        return record is not None and threshold in record.notified_size_thresholds

    def mark_size_threshold_notified(self, file_path: str, threshold: int) -> None:
        self._files.setdefault(file_path, FileRecord()).notified_size_thresholds.add(threshold)

    def reset_size_thresholds_below(self, file_path: str, line_count: int) -> None:
        """Forget every notified threshold that *line_count* is now below."""
        record = self._files.get(file_path)
        if record is None or not record.notified_size_thresholds:
            return
        dropped = {t for t in record.notified_size_thresholds if line_count < t}
        if dropped:
            record.notified_size_thresholds -= dropped
            log.debug("size_thresholds_reset", file_path=file_path, thresholds=sorted(dropped))

    # ---------------------------------------------------------------------------
    # Teardown
    # ---------------------------------------------------------------------------

    def cleanup_file(self, file_path: str) -> None:
        """Forget everything about a closed file."""
        self._files.pop(file_path, None)
        pending = self._saving.pop(file_path, None)
        if pending is not None:
            pending.cancel()
        log.debug("file_cleaned_up", file_path=file_path)

    def clear(self) -> None:
        """Drop all state and cancel pending callbacks."""
        for handle in self._saving.values():
            handle.cancel()
        for handle in self._cleanups:
            handle.cancel()
        self._saving.clear()
        self._cleanups.clear()
        self._files.clear()

    @property
    def tracked_files(self) -> list[str]:
        return list(self._files)

    def _prune(self, file_path: str) -> None:
        record = self._files.get(file_path)
        if record is None:
            return
        now = self._scheduler.now()
        stale = [k for k, t in record.last_fired.items() if now - t >= self._window * 2]
        for kind in stale:
            del record.last_fired[kind]
        if record.is_empty():
            del self._files[file_path]
