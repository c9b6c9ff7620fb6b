"""Evaluate a rule set against a graph and collect every violation.

Evaluation is a batch check: every rule and every candidate edge is
visited, nothing stops at the first violation.  Rules share nothing but the
read-only graph, so they may run on worker threads; the report is sorted
afterwards and is therefore identical for identical inputs.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archweave.rules.combinators import (
    AccessRule,
    DependencyRule,
    Violation,
    evaluate_access_rule,
    evaluate_dependency_rule,
)
from archweave.rules.layers import LayeredArchitecture, evaluate_layered_architecture
from archweave.rules.predicates import RuleConfigurationError
from archweave.rules.ruleset import Rule, RuleSet

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from archweave.graph.model import Graph

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ViolationReport:
    """Sorted, immutable outcome of one evaluation; empty iff the graph conforms."""

    violations: tuple[Violation, ...] = ()
    rules_evaluated: int = 0
    classes_analyzed: int = 0
    edges_analyzed: int = 0
    rule_names: tuple[str, ...] = field(default=(), repr=False)

    def __len__(self) -> int:
        return len(self.violations)

    def __iter__(self) -> Iterator[Violation]:
        return iter(self.violations)

    def __bool__(self) -> bool:
        return bool(self.violations)

    @property
    def is_empty(self) -> bool:
        return not self.violations

    def by_rule(self) -> dict[str, list[Violation]]:
        """Group violations per rule; every evaluated rule gets an entry."""
        grouped: dict[str, list[Violation]] = {name: [] for name in self.rule_names}
        for violation in self.violations:
            grouped.setdefault(violation.rule_name, []).append(violation)
        return grouped


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate_rule(graph: Graph, rule: Rule) -> list[Violation]:
    """Dispatch a single rule to its evaluator."""
    if isinstance(rule, DependencyRule):
        violations = evaluate_dependency_rule(graph, rule)
    elif isinstance(rule, AccessRule):
        violations = evaluate_access_rule(graph, rule)
    elif isinstance(rule, LayeredArchitecture):
        violations = evaluate_layered_architecture(graph, rule)
    else:
        msg = f"Unsupported rule object: {rule!r}"
        raise RuleConfigurationError(msg)
    logger.debug("Rule '%s': %d violation(s)", rule.name, len(violations))
    return violations


def evaluate(
    graph: Graph,
    rules: RuleSet | Iterable[Rule],
    *,
    workers: int | None = None,
) -> ViolationReport:
    """Evaluate all *rules* against *graph* and return the sorted report.

    Parameters
    ----------
    graph:
        The immutable graph built for this analysis run.
    rules:
        A :class:`RuleSet`, or any iterable of rules (wrapped in a RuleSet,
        which rejects duplicate names).
    workers:
        When greater than 1, rules are evaluated on a thread pool of that
        size.  The report is the same as for a sequential run.
    """
    rule_set = rules if isinstance(rules, RuleSet) else RuleSet(rules)
    rule_list = list(rule_set)

    violations: list[Violation] = []
    if workers is not None and workers > 1 and len(rule_list) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for result in pool.map(lambda r: evaluate_rule(graph, r), rule_list):
                violations.extend(result)
    else:
        for rule in rule_list:
            violations.extend(evaluate_rule(graph, rule))

    violations.sort(key=Violation.sort_key)

    report = ViolationReport(
        violations=tuple(violations),
        rules_evaluated=len(rule_list),
        classes_analyzed=len(graph),
        edges_analyzed=len(graph.all_edges()),
        rule_names=rule_set.names,
    )
    logger.info(
        "Evaluated %d rule(s) over %d classes: %d violation(s)",
        report.rules_evaluated,
        report.classes_analyzed,
        len(report),
    )
    return report
