"""Code Mantra — Engine configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. Environment variables prefixed with CODE_MANTRA_
    3. User config:   ~/.code-mantra/config.yaml
    4. An explicit config file passed to ``Settings.load()``

File values are passed as init arguments, which pydantic-settings ranks
above the environment.

The rule list is kept as raw mappings: a malformed rule must not prevent the
rest of the configuration from loading.  Rules are validated on every
decision by ``code_mantra.rules.parse_rules``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from code_mantra.exceptions import ConfigurationError
from code_mantra.rules.models import Rule, TriggerKind, parse_rules


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class TriggerToggle(BaseModel):
    enabled: bool = True


class EditTriggerToggle(TriggerToggle):
    enabled: bool = False
    delay_ms: Annotated[int, Field(ge=0, le=600_000)] = Field(
        default=5000,
        description="Quiet period after the last change before onEdit is evaluated.",
    )


class TriggersConfig(BaseModel):
    """Per-kind enable flags plus the adapters' rate limit."""

    min_interval_ms: Annotated[int, Field(ge=0, le=60_000)] = Field(
        default=1000,
        description="Minimum interval between two notifications of one kind for one file.",
    )
    on_save: TriggerToggle = Field(default_factory=TriggerToggle)
    on_edit: EditTriggerToggle = Field(default_factory=EditTriggerToggle)
    on_open: TriggerToggle = Field(default_factory=lambda: TriggerToggle(enabled=False))
    on_focus: TriggerToggle = Field(default_factory=lambda: TriggerToggle(enabled=False))
    on_create: TriggerToggle = Field(default_factory=TriggerToggle)
    on_delete: TriggerToggle = Field(default_factory=TriggerToggle)
    on_large_delete: TriggerToggle = Field(default_factory=TriggerToggle)
    on_file_size_exceeded: TriggerToggle = Field(default_factory=TriggerToggle)
    on_workspace_open: TriggerToggle = Field(default_factory=TriggerToggle)
    on_idle: TriggerToggle = Field(default_factory=TriggerToggle)
    on_timer: TriggerToggle = Field(default_factory=TriggerToggle)

    def is_enabled(self, kind: TriggerKind) -> bool:
        toggle: TriggerToggle = getattr(self, _TOGGLE_FIELDS[kind])
        return toggle.enabled


_TOGGLE_FIELDS: dict[TriggerKind, str] = {
    TriggerKind.ON_SAVE: "on_save",
    TriggerKind.ON_EDIT: "on_edit",
    TriggerKind.ON_OPEN: "on_open",
    TriggerKind.ON_FOCUS: "on_focus",
    TriggerKind.ON_CREATE: "on_create",
    TriggerKind.ON_DELETE: "on_delete",
    TriggerKind.ON_LARGE_DELETE: "on_large_delete",
    TriggerKind.ON_FILE_SIZE_EXCEEDED: "on_file_size_exceeded",
    TriggerKind.ON_WORKSPACE_OPEN: "on_workspace_open",
    TriggerKind.ON_IDLE: "on_idle",
    TriggerKind.ON_TIMER: "on_timer",
}


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CODE_MANTRA_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    enabled: bool = True
    notification_prefix: str = "🔔 Code Mantra: "
    rules: list[Any] = Field(
        default_factory=list,
        description="Raw rule mappings (camelCase keys).  Malformed entries are skipped.",
    )
    supported_languages: list[str] = Field(
        default_factory=list,
        description="Language ids file triggers apply to.  Empty = all languages.",
    )
    exclude_patterns: list[str] = Field(
        default_factory=lambda: ["**/node_modules/**", "**/.git/**"],
        description="Globs for paths that never trigger reminders.",
    )
    triggers: TriggersConfig = Field(default_factory=TriggersConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("rules", mode="before")
    @classmethod
    def rules_must_be_list(cls, v: object) -> object:
        if v is None:
            return []
        return v

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from file + environment variables.

        Raises:
            ConfigurationError: if an existing config file is not valid YAML
                or does not hold a mapping.
        """
        data: dict[str, object] = {}

        candidates = [Path.home() / ".code-mantra" / "config.yaml"]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                data.update(_read_yaml(path))

        return cls(**data)

    def parsed_rules(self) -> list[Rule]:
        return parse_rules(self.rules)

    def language_allowed(self, language_id: str | None) -> bool:
        if not self.supported_languages or language_id is None:
            return True
        return language_id in self.supported_languages


def _read_yaml(path: Path) -> dict[str, object]:
    import yaml  # lazy import — only needed when a file exists

    try:
        with path.open(encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(str(path), str(exc)) from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(str(path), f"expected a mapping, got {type(loaded).__name__}")
    return loaded


# Module-level singleton — replaced by ``Settings.load()`` at startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings | None) -> None:
    """Replace the module-level singleton.  Used by reloads and tests."""
    global _settings
    _settings = settings
