"""Rules domain: predicates, forbidden-edge rules, layered architectures, rules.yml loader."""

from archweave.rules.combinators import (
    AccessRule,
    DependencyRule,
    Violation,
    forbid_access,
    forbid_dependency,
)
from archweave.rules.layers import (
    Layer,
    LayeredArchitecture,
    LayeredArchitectureBuilder,
    layered_architecture,
)
from archweave.rules.loader import load_rules, parse_predicate, parse_rules
from archweave.rules.predicates import (
    ClassPredicate,
    EdgePredicate,
    RuleConfigurationError,
    all_of,
    any_class,
    any_of,
    are_annotated_with,
    are_assignable_to,
    are_external,
    belong_to_any_of,
    have_fully_qualified_name,
    have_name_matching,
    have_simple_name_matching,
    no_class,
    not_,
    reside_in_any_package,
    reside_in_package,
    reside_outside_of_packages,
)
from archweave.rules.ruleset import Rule, RuleSet

__all__ = [
    "AccessRule",
    "ClassPredicate",
    "DependencyRule",
    "EdgePredicate",
    "Layer",
    "LayeredArchitecture",
    "LayeredArchitectureBuilder",
    "Rule",
    "RuleConfigurationError",
    "RuleSet",
    "Violation",
    "all_of",
    "any_class",
    "any_of",
    "are_annotated_with",
    "are_assignable_to",
    "are_external",
    "belong_to_any_of",
    "forbid_access",
    "forbid_dependency",
    "have_fully_qualified_name",
    "have_name_matching",
    "have_simple_name_matching",
    "layered_architecture",
    "load_rules",
    "no_class",
    "not_",
    "parse_predicate",
    "parse_rules",
    "reside_in_any_package",
    "reside_in_package",
    "reside_outside_of_packages",
]
