"""Shared pytest fixtures for the code-mantra test suite."""

from __future__ import annotations

import random
from typing import Any, Callable

import pytest

from code_mantra.config import Settings, override_settings
from code_mantra.daemon import MantraDaemon
from code_mantra.notify import RecordingSink
from code_mantra.rules.patterns import clear_pattern_cache
from code_mantra.scheduling import ManualScheduler


@pytest.fixture(autouse=True)
def _reset_globals() -> Any:
    yield
    clear_pattern_cache()
    override_settings(None)


# ---------------------------------------------------------------------------
# Time & sinks
# ---------------------------------------------------------------------------


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler(start=1000.0)


@pytest.fixture
def sink(scheduler: ManualScheduler) -> RecordingSink:
    return RecordingSink(clock=scheduler.now)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def build_settings(rules: list[dict[str, Any]] | None = None, **overrides: Any) -> Settings:
    """Settings with every trigger kind enabled, an empty prefix and no throttle.

    Tests opt back into defaults through ``overrides``.
    """
    triggers: dict[str, Any] = {
        "min_interval_ms": 0,
        "on_save": {"enabled": True},
        "on_edit": {"enabled": True, "delay_ms": 5000},
        "on_open": {"enabled": True},
        "on_focus": {"enabled": True},
    }
    triggers.update(overrides.pop("triggers", {}))
    data: dict[str, Any] = {
        "rules": rules or [],
        "notification_prefix": "",
        "triggers": triggers,
    }
    data.update(overrides)
    return Settings(**data)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    return build_settings


# ---------------------------------------------------------------------------
# Daemon
# ---------------------------------------------------------------------------


class SettingsHolder:
    """Mutable settings source — swap ``current`` to simulate a config edit."""

    def __init__(self, settings: Settings) -> None:
        self.current = settings

    def __call__(self) -> Settings:
        return self.current


@pytest.fixture
def make_daemon(
    scheduler: ManualScheduler, sink: RecordingSink
) -> Callable[..., tuple[MantraDaemon, SettingsHolder]]:
    def _make(
        rules: list[dict[str, Any]] | None = None,
        seed: int = 7,
        activate: bool = True,
        **overrides: Any,
    ) -> tuple[MantraDaemon, SettingsHolder]:
        holder = SettingsHolder(build_settings(rules, **overrides))
        daemon = MantraDaemon(
            settings_provider=holder,
            sink=sink,
            scheduler=scheduler,
            rng=random.Random(seed),
        )
        if activate:
            daemon.activate()
        return daemon, holder

    return _make
