"""Forbidden-dependency and forbidden-access rules, and the Violation record."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from archweave.rules.predicates import (
    ClassPredicate,
    RuleConfigurationError,
    any_class,
    edge_kind_in,
    no_class,
)

if TYPE_CHECKING:
    from archweave.graph.model import ClassNode, DependencyEdge, Graph

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Violation:
    """A single rule violation.

    ``target`` is ``None`` only for findings that are not tied to an edge
    (e.g. an empty mandatory layer).
    """

    rule_name: str
    rule_type: str  # "dependency" | "access" | "layer"
    source: str | None
    target: str | None
    message: str
    rule_description: str = ""
    source_layer: str | None = None
    target_layer: str | None = None
    edge_kinds: tuple[str, ...] = ()

    def sort_key(self) -> tuple[str, str, str, str]:
        return (self.rule_name, self.source or "", self.target or "", self.message)


def _check_rule_name(name: str) -> None:
    if not isinstance(name, str) or not name.strip():
        msg = "Rule name must be a non-empty string"
        raise RuleConfigurationError(msg)


def _check_predicate(rule_name: str, field_name: str, value: object) -> None:
    if not isinstance(value, ClassPredicate):
        msg = f"Rule '{rule_name}': '{field_name}' must be a class predicate, got {value!r}"
        raise RuleConfigurationError(msg)


def check_edge_kinds(rule_name: str, kinds: frozenset[str] | None) -> frozenset[str] | None:
    """Validate a rule's edge-kind filter; ``None`` means every kind."""
    if kinds is None:
        return None
    try:
        return edge_kind_in(*kinds)
    except RuleConfigurationError as exc:
        msg = f"Rule '{rule_name}': invalid 'edge_kinds': {exc}"
        raise RuleConfigurationError(msg) from exc


def _edge_in_scope(edge: DependencyEdge, edge_kinds: frozenset[str] | None) -> bool:
    if edge.is_self_edge:
        return False
    return edge_kinds is None or bool(edge.kinds & edge_kinds)


def _reason(because: str | None) -> str:
    return f", because {because}" if because else ""


@dataclass(frozen=True)
class DependencyRule:
    """Classes matching *subject* (and not *exempt*) must not depend on any *targets*.

    *targets* is a disjunction: an edge matching any one of them is a
    violation.  Exemption is decided once per subject class, so an exempt
    class contributes nothing to this rule.
    """

    name: str
    subject: ClassPredicate
    targets: tuple[ClassPredicate, ...]
    exempt: ClassPredicate | None = None
    description: str = ""
    because: str | None = None
    edge_kinds: frozenset[str] | None = None

    def __post_init__(self) -> None:
        _check_rule_name(self.name)
        _check_predicate(self.name, "subject", self.subject)
        if not self.targets:
            msg = f"Rule '{self.name}': at least one target predicate is required"
            raise RuleConfigurationError(msg)
        object.__setattr__(self, "targets", tuple(self.targets))
        for target in self.targets:
            _check_predicate(self.name, "targets", target)
        if self.exempt is not None:
            _check_predicate(self.name, "exempt", self.exempt)
        object.__setattr__(self, "edge_kinds", check_edge_kinds(self.name, self.edge_kinds))

    def in_scope(self, node: ClassNode) -> bool:
        if not self.subject.test(node):
            return False
        return self.exempt is None or not self.exempt.test(node)

    def explain(self) -> str:
        targets = " or ".join(str(t) for t in self.targets)
        text = f"no classes that {self.subject} should depend on classes that {targets}"
        return text + _reason(self.because)


@dataclass(frozen=True)
class AccessRule:
    """Only classes matching *allowed* (or *exempt*) may access classes matching *targets*.

    By default a member of *targets* that is not *allowed* is flagged like
    any other class.  Set *allow_internal* to let members of *targets*
    access each other.
    """

    name: str
    targets: ClassPredicate
    allowed: ClassPredicate
    exempt: ClassPredicate | None = None
    description: str = ""
    because: str | None = None
    edge_kinds: frozenset[str] | None = None
    allow_internal: bool = False

    def __post_init__(self) -> None:
        _check_rule_name(self.name)
        _check_predicate(self.name, "targets", self.targets)
        _check_predicate(self.name, "allowed", self.allowed)
        if self.exempt is not None:
            _check_predicate(self.name, "exempt", self.exempt)
        object.__setattr__(self, "edge_kinds", check_edge_kinds(self.name, self.edge_kinds))

    def in_scope(self, node: ClassNode) -> bool:
        if self.allowed.test(node):
            return False
        if self.allow_internal and self.targets.test(node):
            return False
        return self.exempt is None or not self.exempt.test(node)

    def explain(self) -> str:
        text = f"classes that {self.targets} should only be accessed by classes that {self.allowed}"
        return text + _reason(self.because)


# ---------------------------------------------------------------------------
# Construction helpers
# ---------------------------------------------------------------------------


def forbid_dependency(
    name: str,
    *targets: ClassPredicate,
    that: ClassPredicate | None = None,
    exempt: ClassPredicate | None = None,
    description: str = "",
    because: str | None = None,
    edge_kinds: frozenset[str] | None = None,
) -> DependencyRule:
    """Build a :class:`DependencyRule`; *that* defaults to every class."""
    return DependencyRule(
        name=name,
        subject=that if that is not None else any_class(),
        targets=tuple(targets),
        exempt=exempt,
        description=description,
        because=because,
        edge_kinds=edge_kinds,
    )


def forbid_access(
    name: str,
    targets: ClassPredicate,
    *,
    allowed: ClassPredicate | None = None,
    exempt: ClassPredicate | None = None,
    description: str = "",
    because: str | None = None,
    edge_kinds: frozenset[str] | None = None,
    allow_internal: bool = False,
) -> AccessRule:
    """Build an :class:`AccessRule`; *allowed* defaults to no class.

    With the defaults, every edge into *targets* is a violation, including
    edges between two members of *targets*.
    """
    return AccessRule(
        name=name,
        targets=targets,
        allowed=allowed if allowed is not None else no_class(),
        exempt=exempt,
        description=description,
        because=because,
        edge_kinds=edge_kinds,
        allow_internal=allow_internal,
    )


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate_dependency_rule(graph: Graph, rule: DependencyRule) -> list[Violation]:
    """Return one violation per edge from an in-scope class to a forbidden target."""
    violations: list[Violation] = []
    subjects = [node for node in graph.classes if not node.external and rule.in_scope(node)]
    logger.debug("Rule '%s': %d classes in scope", rule.name, len(subjects))
    if not subjects:
        logger.warning("Rule '%s': no class in the graph is in scope", rule.name)

    for node in subjects:
        for edge in graph.edges_from(node):
            if not _edge_in_scope(edge, rule.edge_kinds):
                continue
            target = graph.node(edge.target)
            matched = next((t for t in rule.targets if t.test(target)), None)
            if matched is None:
                continue
            violations.append(
                Violation(
                    rule_name=rule.name,
                    rule_type="dependency",
                    source=node.name,
                    target=target.name,
                    message=(
                        f"Class '{node.name}' depends on '{target.name}' "
                        f"({', '.join(sorted(edge.kinds))}) which matches "
                        f"'{matched}': violates rule '{rule.name}' ({rule.explain()})"
                    ),
                    rule_description=rule.description,
                    edge_kinds=tuple(sorted(edge.kinds)),
                )
            )

    return violations


def evaluate_access_rule(graph: Graph, rule: AccessRule) -> list[Violation]:
    """Return one violation per edge from a non-allowed class into the protected targets."""
    violations: list[Violation] = []

    for node in graph.classes:
        if node.external or not rule.in_scope(node):
            continue
        for edge in graph.edges_from(node):
            if not _edge_in_scope(edge, rule.edge_kinds):
                continue
            target = graph.node(edge.target)
            if not rule.targets.test(target):
                continue
            violations.append(
                Violation(
                    rule_name=rule.name,
                    rule_type="access",
                    source=node.name,
                    target=target.name,
                    message=(
                        f"Class '{node.name}' accesses '{target.name}' "
                        f"({', '.join(sorted(edge.kinds))}) but is not permitted to: "
                        f"violates rule '{rule.name}' ({rule.explain()})"
                    ),
                    rule_description=rule.description,
                    edge_kinds=tuple(sorted(edge.kinds)),
                )
            )

    return violations
