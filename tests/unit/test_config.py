"""Unit tests — Settings.load, get_settings, override_settings."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from code_mantra.config import Settings, TriggersConfig, get_settings, override_settings
from code_mantra.exceptions import ConfigurationError
from code_mantra.rules.models import TriggerKind


@pytest.fixture
def fake_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))
    return home


@pytest.mark.unit
class TestSettingsLoad:
    def test_load_defaults_when_no_files(self) -> None:
        with patch.object(Path, "exists", return_value=False):
            settings = Settings.load()
        assert settings.enabled is True
        assert settings.rules == []
        assert settings.triggers.min_interval_ms == 1000
        assert settings.exclude_patterns == ["**/node_modules/**", "**/.git/**"]

    def test_load_from_custom_config_file(self, fake_home: Path, tmp_path: Path) -> None:
        config_file = tmp_path / "mantra.yaml"
        config_file.write_text(
            "notification_prefix: '>> '\n"
            "rules:\n"
            "  - trigger: onSave\n"
            "    message: Commit early\n"
            "    filePattern: '**/*.py'\n"
            "triggers:\n"
            "  on_edit:\n"
            "    enabled: true\n"
            "    delay_ms: 2000\n"
        )
        settings = Settings.load(config_file=config_file)
        assert settings.notification_prefix == ">> "
        assert settings.triggers.on_edit.enabled is True
        assert settings.triggers.on_edit.delay_ms == 2000
        rules = settings.parsed_rules()
        assert [r.message for r in rules] == ["Commit early"]

    def test_explicit_file_overrides_user_file(self, fake_home: Path, tmp_path: Path) -> None:
        user_dir = fake_home / ".code-mantra"
        user_dir.mkdir()
        (user_dir / "config.yaml").write_text("enabled: false\nnotification_prefix: 'user '\n")
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("notification_prefix: 'explicit '\n")

        settings = Settings.load(config_file=explicit)
        assert settings.enabled is False
        assert settings.notification_prefix == "explicit "

    def test_file_outranks_environment(
        self, fake_home: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CODE_MANTRA_NOTIFICATION_PREFIX", "env ")
        monkeypatch.setenv("CODE_MANTRA_ENABLED", "false")
        config_file = tmp_path / "c.yaml"
        config_file.write_text("notification_prefix: 'file '\n")

        settings = Settings.load(config_file=config_file)
        assert settings.notification_prefix == "file "
        assert settings.enabled is False

    def test_nested_environment_variable(self, fake_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODE_MANTRA_TRIGGERS__MIN_INTERVAL_MS", "2500")
        settings = Settings.load()
        assert settings.triggers.min_interval_ms == 2500

    def test_invalid_yaml_raises(self, fake_home: Path, tmp_path: Path) -> None:
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("rules: [unterminated\n")
        with pytest.raises(ConfigurationError) as exc_info:
            Settings.load(config_file=config_file)
        assert exc_info.value.path == str(config_file)

    def test_non_mapping_yaml_raises(self, fake_home: Path, tmp_path: Path) -> None:
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            Settings.load(config_file=config_file)

    def test_empty_file_is_defaults(self, fake_home: Path, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert Settings.load(config_file=config_file).rules == []

    def test_malformed_rule_does_not_block_loading(self, fake_home: Path, tmp_path: Path) -> None:
        config_file = tmp_path / "c.yaml"
        config_file.write_text(
            "rules:\n"
            "  - trigger: onSave\n"
            "  - trigger: onIdle\n"
            "    message: Break\n"
            "    idleDuration: 10\n"
        )
        settings = Settings.load(config_file=config_file)
        assert len(settings.rules) == 2
        assert [r.index for r in settings.parsed_rules()] == [1]


@pytest.mark.unit
class TestTriggerToggles:
    def test_defaults(self) -> None:
        triggers = TriggersConfig()
        assert triggers.is_enabled(TriggerKind.ON_SAVE) is True
        assert triggers.is_enabled(TriggerKind.ON_EDIT) is False
        assert triggers.is_enabled(TriggerKind.ON_OPEN) is False
        assert triggers.is_enabled(TriggerKind.ON_FOCUS) is False
        assert triggers.is_enabled(TriggerKind.ON_TIMER) is True
        assert triggers.on_edit.delay_ms == 5000

    def test_every_kind_has_a_toggle(self) -> None:
        triggers = TriggersConfig()
        for kind in TriggerKind:
            assert isinstance(triggers.is_enabled(kind), bool)


@pytest.mark.unit
class TestLanguageFilter:
    def test_empty_list_allows_everything(self) -> None:
        assert Settings().language_allowed("rust") is True

    def test_allow_list(self) -> None:
        settings = Settings(supported_languages=["python", "typescript"])
        assert settings.language_allowed("python") is True
        assert settings.language_allowed("go") is False
        assert settings.language_allowed(None) is True


@pytest.mark.unit
class TestGetSettings:
    def test_get_settings_caches_instance(self) -> None:
        override_settings(None)
        with patch.object(Path, "exists", return_value=False):
            first = get_settings()
            second = get_settings()
        assert first is second

    def test_override_settings(self) -> None:
        custom = Settings(enabled=False)
        override_settings(custom)
        assert get_settings() is custom
