"""Rule sets: an ordered conjunction of uniquely named, independent rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

from archweave.rules.combinators import AccessRule, DependencyRule
from archweave.rules.layers import LayeredArchitecture
from archweave.rules.predicates import RuleConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

Rule = DependencyRule | AccessRule | LayeredArchitecture

RULE_TYPES: tuple[type, ...] = (DependencyRule, AccessRule, LayeredArchitecture)


class RuleSet:
    """Satisfied iff every member rule is satisfied.

    Members are kept in insertion order; names must be unique.  Leaving a
    rule out of the set is the only way to skip it.
    """

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: list[Rule] = []
        self._names: set[str] = set()
        for rule in rules:
            self.add(rule)

    def add(self, rule: Rule) -> RuleSet:
        if not isinstance(rule, RULE_TYPES):
            msg = f"Unsupported rule object: {rule!r}"
            raise RuleConfigurationError(msg)
        if rule.name in self._names:
            msg = f"Duplicate rule name '{rule.name}'"
            raise RuleConfigurationError(msg)
        self._names.add(rule.name)
        self._rules.append(rule)
        return self

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __repr__(self) -> str:
        return f"RuleSet({[r.name for r in self._rules]})"

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(r.name for r in self._rules)

    def get(self, name: str) -> Rule | None:
        for rule in self._rules:
            if rule.name == name:
                return rule
        return None
