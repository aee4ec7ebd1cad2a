"""Rule models, glob matching, and rule selection."""

from code_mantra.rules.engine import RuleEngine
from code_mantra.rules.models import (
    ContentChange,
    Rule,
    TimerType,
    TriggerEvent,
    TriggerKind,
    parse_rules,
    validate_rule,
)
from code_mantra.rules.patterns import Matcher, clear_pattern_cache, compile_pattern

__all__ = [
    "ContentChange",
    "Matcher",
    "Rule",
    "RuleEngine",
    "TimerType",
    "TriggerEvent",
    "TriggerKind",
    "clear_pattern_cache",
    "compile_pattern",
    "parse_rules",
    "validate_rule",
]
