"""Unit tests — triggers/ledger.py (SuppressionLedger)."""

from __future__ import annotations

import pytest

from code_mantra.rules.models import TriggerKind
from code_mantra.scheduling import ManualScheduler
from code_mantra.triggers.ledger import SuppressionLedger

PATH = "/repo/src/app.ts"


@pytest.fixture
def ledger(scheduler: ManualScheduler) -> SuppressionLedger:
    return SuppressionLedger(scheduler)


@pytest.mark.unit
class TestSameTriggerSuppression:
    def test_nothing_recorded_is_never_suppressed(self, ledger: SuppressionLedger) -> None:
        assert ledger.should_suppress(PATH, TriggerKind.ON_SAVE) is False

    def test_same_kind_within_window(self, ledger: SuppressionLedger, scheduler: ManualScheduler) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        scheduler.advance(0.3)
        assert ledger.should_suppress(PATH, TriggerKind.ON_SAVE) is True

    def test_same_kind_after_window(self, ledger: SuppressionLedger, scheduler: ManualScheduler) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        scheduler.advance(0.5)
        assert ledger.should_suppress(PATH, TriggerKind.ON_SAVE) is False

    def test_other_file_unaffected(self, ledger: SuppressionLedger) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        assert ledger.should_suppress("/repo/other.ts", TriggerKind.ON_SAVE) is False

    def test_unrelated_kind_unaffected(self, ledger: SuppressionLedger) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        assert ledger.should_suppress(PATH, TriggerKind.ON_OPEN) is False


@pytest.mark.unit
class TestDominance:
    def test_save_suppresses_edit(self, ledger: SuppressionLedger, scheduler: ManualScheduler) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        scheduler.advance(0.1)
        assert ledger.should_suppress(PATH, TriggerKind.ON_EDIT) is True

    def test_save_no_longer_suppresses_edit_after_window(
        self, ledger: SuppressionLedger, scheduler: ManualScheduler
    ) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        scheduler.advance(0.6)
        assert ledger.should_suppress(PATH, TriggerKind.ON_EDIT) is False

    def test_create_suppresses_save(self, ledger: SuppressionLedger, scheduler: ManualScheduler) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_CREATE)
        scheduler.advance(0.2)
        assert ledger.should_suppress(PATH, TriggerKind.ON_SAVE) is True

    def test_dominance_is_not_symmetric(self, ledger: SuppressionLedger) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_EDIT)
        assert ledger.should_suppress(PATH, TriggerKind.ON_SAVE) is False

    def test_dominance_is_not_transitive(self, ledger: SuppressionLedger) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_CREATE)
        assert ledger.should_suppress(PATH, TriggerKind.ON_EDIT) is False


@pytest.mark.unit
class TestSavingFlag:
    def test_saving_suppresses_every_kind(self, ledger: SuppressionLedger) -> None:
        ledger.mark_file_saving(PATH)
        for kind in (TriggerKind.ON_EDIT, TriggerKind.ON_SAVE, TriggerKind.ON_LARGE_DELETE):
            assert ledger.should_suppress(PATH, kind) is True

    def test_flag_clears_after_saving_window(self, ledger: SuppressionLedger, scheduler: ManualScheduler) -> None:
        ledger.mark_file_saving(PATH)
        scheduler.advance(0.19)
        assert ledger.is_file_saving(PATH) is True
        scheduler.advance(0.02)
        assert ledger.is_file_saving(PATH) is False

    def test_remark_restarts_window(self, ledger: SuppressionLedger, scheduler: ManualScheduler) -> None:
        ledger.mark_file_saving(PATH)
        scheduler.advance(0.15)
        ledger.mark_file_saving(PATH)
        scheduler.advance(0.1)
        assert ledger.is_file_saving(PATH) is True
        scheduler.advance(0.15)
        assert ledger.is_file_saving(PATH) is False


@pytest.mark.unit
class TestThresholdCrossing:
    def test_no_baseline_means_no_crossing(self, ledger: SuppressionLedger) -> None:
        assert ledger.did_cross_threshold(PATH, 500, 300) is False

    @pytest.mark.parametrize(
        "previous,current,expected",
        [
            (250, 310, True),
            (299, 300, True),
            (300, 310, False),   # already at the threshold
            (310, 250, False),   # downward
            (250, 299, False),   # still below
        ],
    )
    def test_crossing(self, ledger: SuppressionLedger, previous: int, current: int, expected: bool) -> None:
        ledger.update_line_count(PATH, previous)
        assert ledger.did_cross_threshold(PATH, current, 300) is expected

    def test_notified_thresholds_reset_when_dropping_below(self, ledger: SuppressionLedger) -> None:
        ledger.mark_size_threshold_notified(PATH, 300)
        ledger.mark_size_threshold_notified(PATH, 500)
        ledger.reset_size_thresholds_below(PATH, 400)
        assert ledger.is_size_threshold_notified(PATH, 300) is True
        assert ledger.is_size_threshold_notified(PATH, 500) is False

    def test_baseline_is_tracked(self, ledger: SuppressionLedger) -> None:
        assert ledger.get_previous_line_count(PATH) is None
        ledger.update_line_count(PATH, 42)
        assert ledger.get_previous_line_count(PATH) == 42


@pytest.mark.unit
class TestPruningAndTeardown:
    def test_entries_pruned_after_twice_the_window(
        self, ledger: SuppressionLedger, scheduler: ManualScheduler
    ) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        assert PATH in ledger.tracked_files
        scheduler.advance(1.0)
        assert ledger.should_suppress(PATH, TriggerKind.ON_SAVE) is False
        assert PATH not in ledger.tracked_files

    def test_prune_keeps_line_count_baseline(
        self, ledger: SuppressionLedger, scheduler: ManualScheduler
    ) -> None:
        ledger.update_line_count(PATH, 120)
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        scheduler.advance(1.0)
        assert ledger.get_previous_line_count(PATH) == 120

    def test_cleanup_file_forgets_everything(self, ledger: SuppressionLedger) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        ledger.update_line_count(PATH, 10)
        ledger.mark_file_saving(PATH)
        ledger.cleanup_file(PATH)
        assert ledger.should_suppress(PATH, TriggerKind.ON_SAVE) is False
        assert ledger.get_previous_line_count(PATH) is None

    def test_clear_cancels_pending_callbacks(
        self, ledger: SuppressionLedger, scheduler: ManualScheduler
    ) -> None:
        ledger.record_notification(PATH, TriggerKind.ON_SAVE)
        ledger.mark_file_saving(PATH)
        ledger.clear()
        assert scheduler.pending == 0
        assert ledger.tracked_files == []
