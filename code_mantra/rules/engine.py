"""RuleEngine — match a TriggerEvent against the current rule set.

A rule matches an event of kind K iff ``rule.trigger == K``, the rule is
enabled, and its file pattern is absent or matches the event's path.
``onTimer`` rules never match file events; the TimerPool drives them.

When several rules match one event exactly one is chosen, uniformly at
random, so that no single rule always wins for a given set of files.
"""

from __future__ import annotations

import random
from typing import Callable, Sequence

from code_mantra.logging import get_logger
from code_mantra.rules.models import Rule, TriggerEvent, TriggerKind
from code_mantra.rules.patterns import compile_pattern

log = get_logger(__name__)

RuleFilter = Callable[[Rule], bool]


class RuleEngine:
    """Stateless matcher plus a random selector.

    Usage::

        engine = RuleEngine(rng=random.Random(42))
        rule = engine.select(event, rules)
        if rule is not None:
            notifier.send(rule.message)
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def rules_of_kind(self, rules: Sequence[Rule], kind: TriggerKind) -> list[Rule]:
        """Enabled rules of *kind*, in configuration order."""
        return [r for r in rules if r.trigger == kind and r.enabled]

    def matching(
        self,
        event: TriggerEvent,
        rules: Sequence[Rule],
        extra: RuleFilter | None = None,
    ) -> list[Rule]:
        """All rules that match *event*.

        ``extra`` narrows the result further (thresholds for content-change
        kinds).
        """
        if event.kind == TriggerKind.ON_TIMER:
            return []
        result: list[Rule] = []
        for rule in self.rules_of_kind(rules, event.kind):
            if not compile_pattern(rule.file_pattern).test(event.file_path):
                continue
            if extra is not None and not extra(rule):
                continue
            result.append(rule)
        return result

    def choose(self, candidates: Sequence[Rule]) -> Rule | None:
        """Uniform random pick among *candidates*."""
        if not candidates:
            return None
        return candidates[self._rng.randrange(len(candidates))]

    def select(
        self,
        event: TriggerEvent,
        rules: Sequence[Rule],
        extra: RuleFilter | None = None,
    ) -> Rule | None:
        candidates = self.matching(event, rules, extra)
        rule = self.choose(candidates)
        if rule is None:
            log.debug("no_matching_rule", trigger=event.kind.value, file_path=event.file_path)
        else:
            log.debug(
                "rule_selected",
                trigger=event.kind.value,
                file_path=event.file_path,
                index=rule.index,
                candidates=len(candidates),
            )
        return rule
