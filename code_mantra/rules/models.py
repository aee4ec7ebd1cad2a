"""Rule data models.

Rules come from the configuration store as loosely-typed mappings and are
validated here into immutable :class:`Rule` snapshots.  Malformed entries
are never fatal: :func:`parse_rules` skips them and keeps evaluating the
rest.

Key classes
-----------
TriggerKind    — category of activity a rule responds to
TimerType      — preset cadence for ``onTimer`` rules
Rule           — one validated reminder rule
ContentChange  — one edited range of a document change batch
TriggerEvent   — canonical event handed from an adapter to the RuleEngine

Rule keys quick-reference (camelCase in configuration)
-------------------------------------------------------
trigger              str   — one of TriggerKind
message              str   — text shown to the user (non-blank)
filePattern          str   — glob; absent/blank = all files
enabled              bool  — default True
deletionThreshold    int   — onLargeDelete, 1..10000 (default 100)
lineSizeThreshold    int   — onFileSizeExceeded, 1..10000 (default 300)
idleDuration         int   — onIdle minutes, 1..120 (default 15)
duration             int   — onTimer minutes, 1..120 (default 25)
timerType            str   — "pomodoro" | "workBreak" | "custom"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from code_mantra.exceptions import RuleValidationError
from code_mantra.logging import get_logger

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TriggerKind(str, Enum):
    """Category of activity a rule responds to."""

    ON_SAVE = "onSave"
    ON_EDIT = "onEdit"
    ON_OPEN = "onOpen"
    ON_FOCUS = "onFocus"
    ON_CREATE = "onCreate"
    ON_DELETE = "onDelete"
    ON_LARGE_DELETE = "onLargeDelete"
    ON_FILE_SIZE_EXCEEDED = "onFileSizeExceeded"
    ON_WORKSPACE_OPEN = "onWorkspaceOpen"
    ON_IDLE = "onIdle"
    ON_TIMER = "onTimer"


class TimerType(str, Enum):
    POMODORO = "pomodoro"
    WORK_BREAK = "workBreak"
    CUSTOM = "custom"


TIMER_PRESET_MINUTES: dict[TimerType, int] = {
    TimerType.POMODORO: 25,
    TimerType.WORK_BREAK: 50,
}

DEFAULT_DELETION_THRESHOLD = 100
DEFAULT_LINE_SIZE_THRESHOLD = 300
DEFAULT_IDLE_MINUTES = 15
DEFAULT_TIMER_MINUTES = 25


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------


class Rule(BaseModel):
    """One reminder rule — an immutable snapshot per evaluation."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    trigger: TriggerKind
    message: Annotated[str, Field(min_length=1)]
    file_pattern: str | None = None
    enabled: bool = True
    deletion_threshold: Annotated[int, Field(ge=1, le=10_000)] = DEFAULT_DELETION_THRESHOLD
    line_size_threshold: Annotated[int, Field(ge=1, le=10_000)] = DEFAULT_LINE_SIZE_THRESHOLD
    idle_duration: Annotated[int, Field(ge=1, le=120)] = DEFAULT_IDLE_MINUTES
    duration: Annotated[int, Field(ge=1, le=120)] | None = None
    timer_type: TimerType | None = None

    index: int | None = Field(default=None, exclude=True)
    """Position in the raw rule list.  Timer identities derive from it."""

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("file_pattern", mode="before")
    @classmethod
    def blank_pattern_is_absent(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="before")
    @classmethod
    def fill_timer_duration(cls, data: object) -> object:
        if not isinstance(data, dict) or data.get("duration") is not None:
            return data
        raw_type = data.get("timerType", data.get("timer_type"))
        try:
            preset = TIMER_PRESET_MINUTES.get(TimerType(raw_type)) if raw_type else None
        except ValueError:
            return data  # unknown timerType is reported by field validation
        return {**data, "duration": preset or DEFAULT_TIMER_MINUTES}

    @property
    def timer_identity(self) -> str:
        """Deterministic TimerPool key.  Messages are not unique, positions are."""
        return f"timer-{self.index if self.index is not None else id(self)}"

    @property
    def duration_minutes(self) -> int:
        return self.duration or DEFAULT_TIMER_MINUTES


def validate_rule(raw: Any, index: int | None = None) -> Rule:
    """Validate one raw rule mapping.

    Raises:
        RuleValidationError: if the entry is not a mapping or fails validation.
    """
    if isinstance(raw, Rule):
        return raw if index is None else raw.model_copy(update={"index": index})
    if not isinstance(raw, dict):
        raise RuleValidationError(
            index, [{"loc": (), "msg": f"expected a mapping, got {type(raw).__name__}"}]
        )
    try:
        rule = Rule.model_validate(raw)
    except ValidationError as exc:
        raise RuleValidationError(index, exc.errors(include_url=False)) from exc
    return rule.model_copy(update={"index": index})


def parse_rules(raw_rules: Iterable[Any]) -> list[Rule]:
    """Return the valid rules from *raw_rules*; malformed entries are skipped."""
    rules: list[Rule] = []
    for index, raw in enumerate(raw_rules):
        try:
            rules.append(validate_rule(raw, index))
        except RuleValidationError as exc:
            log.debug("rule_skipped", index=index, reason=exc.summary())
    return rules


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentChange:
    """One edited range: lines ``start_line..end_line`` replaced by ``inserted_lines`` lines."""

    start_line: int
    end_line: int
    inserted_lines: int = 0

    @property
    def range_lines_removed(self) -> int:
        return self.end_line - self.start_line

    @property
    def net_deleted(self) -> int:
        """Lines removed beyond those re-inserted.  Negative for net insertions."""
        return self.range_lines_removed - self.inserted_lines


def net_deleted_lines(changes: Iterable[ContentChange]) -> int:
    """Sum of net deletions, counting only ranges that shrank."""
    return sum(c.net_deleted for c in changes if c.net_deleted > 0)


@dataclass
class TriggerEvent:
    """Canonical event produced by a trigger-source adapter."""

    file_path: str
    kind: TriggerKind
    timestamp: float
    language_id: str | None = None
    changes: list[ContentChange] = field(default_factory=list)
    line_count: int | None = None
