"""Parse ``rules.yml`` into validated rule objects.

Example::

    version: 1
    rules:
      - name: no-logic-in-model
        description: Model must stay independent of logic
        forbid_dependency:
          that: { package: "org.app.model.." }
          except: { annotated_with: AllowedToUseLogic }
          targets:
            - { package: "org.app.logic.." }
      - name: layers
        layers:
          - { name: Gui, packages: ["org.app.gui.."] }
          - { name: Cli, packages: ["org.app.cli.."] }
        access:
          Cli: []

Every schema problem is reported as :class:`RuleConfigurationError` naming
the offending rule and field.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import yaml

from archweave.rules.combinators import AccessRule, DependencyRule
from archweave.rules.layers import Layer, LayeredArchitecture
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
    edge_kind_in,
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

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})
RULE_KINDS: tuple[str, ...] = ("forbid_dependency", "forbid_access", "layers")
PREDICATE_KEYS: frozenset[str] = frozenset(
    {
        "package",
        "any_package",
        "outside_packages",
        "name",
        "any_name",
        "name_matches",
        "simple_name_matches",
        "annotated_with",
        "assignable_to",
        "external",
        "not",
        "all",
        "any",
    }
)

DOCUMENT_KEYS: frozenset[str] = frozenset({"version", "rules"})
RULE_KEYS: frozenset[str] = frozenset({"name", "description", "because", *RULE_KINDS})
LAYER_RULE_KEYS: frozenset[str] = frozenset({"access", "ignore", "edge_kinds"})
DEPENDENCY_KEYS: frozenset[str] = frozenset({"that", "except", "targets", "edge_kinds"})
ACCESS_KEYS: frozenset[str] = frozenset(
    {"targets", "allowed", "except", "edge_kinds", "allow_internal"}
)
LAYER_KEYS: frozenset[str] = frozenset({"name", "packages", "that", "optional"})
IGNORE_KEYS: frozenset[str] = frozenset({"from", "to"})

# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _check_keys(data: dict[str, Any], allowed: frozenset[str], context: str) -> None:
    unknown = sorted(str(key) for key in data if key not in allowed)
    if unknown:
        msg = f"{context}: unknown key(s) {unknown}, allowed: {sorted(allowed)}"
        raise RuleConfigurationError(msg)


def _string_list(value: object, context: str) -> list[str]:
    """Accept a string or a list of strings."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return list(value)
    msg = f"{context}: expected a string or a non-empty list of strings"
    raise RuleConfigurationError(msg)


def _single_string(value: object, context: str) -> str:
    if not isinstance(value, str) or not value.strip():
        msg = f"{context}: expected a non-empty string"
        raise RuleConfigurationError(msg)
    return value


def _parse_annotation(value: object, context: str) -> ClassPredicate:
    if isinstance(value, str):
        return are_annotated_with(_single_string(value, context))
    if isinstance(value, dict):
        name = _single_string(value.get("name"), f"{context}.name")
        params = value.get("params") or {}
        if not isinstance(params, dict):
            msg = f"{context}.params must be a mapping"
            raise RuleConfigurationError(msg)
        return are_annotated_with(name, **{str(k): str(v) for k, v in params.items()})
    msg = f"{context}: expected an annotation name or a {{name, params}} mapping"
    raise RuleConfigurationError(msg)


def _parse_predicate_list(value: object, context: str) -> list[ClassPredicate]:
    if not isinstance(value, list) or not value:
        msg = f"{context}: expected a non-empty list of predicates"
        raise RuleConfigurationError(msg)
    return [parse_predicate(item, f"{context}[{idx}]") for idx, item in enumerate(value)]


def _parse_one(key: str, value: Any, context: str) -> ClassPredicate:
    ctx = f"{context}.{key}"
    if key == "package":
        return reside_in_package(_single_string(value, ctx))
    if key == "any_package":
        return reside_in_any_package(*_string_list(value, ctx))
    if key == "outside_packages":
        return reside_outside_of_packages(*_string_list(value, ctx))
    if key == "name":
        return have_fully_qualified_name(_single_string(value, ctx))
    if key == "any_name":
        return belong_to_any_of(*_string_list(value, ctx))
    if key == "name_matches":
        return have_name_matching(_single_string(value, ctx))
    if key == "simple_name_matches":
        return have_simple_name_matching(_single_string(value, ctx))
    if key == "annotated_with":
        return _parse_annotation(value, ctx)
    if key == "assignable_to":
        return are_assignable_to(_single_string(value, ctx))
    if key == "external":
        if not isinstance(value, bool):
            msg = f"{ctx}: expected true or false"
            raise RuleConfigurationError(msg)
        return are_external() if value else not_(are_external())
    if key == "not":
        return not_(parse_predicate(value, ctx))
    if key == "all":
        return all_of(*_parse_predicate_list(value, ctx))
    if key == "any":
        return any_of(*_parse_predicate_list(value, ctx))
    msg = f"{context}: unknown predicate key '{key}', must be one of {sorted(PREDICATE_KEYS)}"
    raise RuleConfigurationError(msg)


def parse_predicate(data: object, context: str) -> ClassPredicate:
    """Parse a predicate mapping.

    An empty mapping matches any class.  Several keys in one mapping are
    combined with AND, the same way a node matcher combines its fields.
    """
    if not isinstance(data, dict):
        msg = f"{context}: predicate must be a mapping"
        raise RuleConfigurationError(msg)
    if not data:
        return any_class()
    return all_of(*(_parse_one(str(key), value, context) for key, value in data.items()))


def _parse_edge_kinds(data: dict[str, Any], context: str) -> frozenset[str] | None:
    raw = data.get("edge_kinds")
    if raw is None:
        return None
    return edge_kind_in(*_string_list(raw, f"{context}.edge_kinds"))


def _optional_predicate(data: dict[str, Any], key: str, context: str) -> ClassPredicate | None:
    if key not in data or data[key] is None:
        return None
    return parse_predicate(data[key], f"{context}.{key}")


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _parse_dependency_rule(
    name: str,
    description: str,
    because: str | None,
    block: dict[str, Any],
) -> DependencyRule:
    """Parse the 'forbid_dependency' block of a rule."""
    context = f"Rule '{name}' forbid_dependency"
    _check_keys(block, DEPENDENCY_KEYS, context)
    targets_raw = block.get("targets")
    if isinstance(targets_raw, dict):
        targets_raw = [targets_raw]
    if not isinstance(targets_raw, list) or not targets_raw:
        msg = f"{context}.targets must be a mapping or a non-empty list of mappings"
        raise RuleConfigurationError(msg)
    targets = tuple(
        parse_predicate(item, f"{context}.targets[{idx}]") for idx, item in enumerate(targets_raw)
    )

    return DependencyRule(
        name=name,
        subject=_optional_predicate(block, "that", context) or any_class(),
        targets=targets,
        exempt=_optional_predicate(block, "except", context),
        description=description,
        because=because,
        edge_kinds=_parse_edge_kinds(block, context),
    )


def _parse_access_rule(
    name: str,
    description: str,
    because: str | None,
    block: dict[str, Any],
) -> AccessRule:
    """Parse the 'forbid_access' block of a rule."""
    context = f"Rule '{name}' forbid_access"
    _check_keys(block, ACCESS_KEYS, context)
    if "targets" not in block:
        msg = f"{context}.targets is required"
        raise RuleConfigurationError(msg)
    allow_internal = block.get("allow_internal", False)
    if not isinstance(allow_internal, bool):
        msg = f"{context}.allow_internal must be true or false"
        raise RuleConfigurationError(msg)

    return AccessRule(
        name=name,
        targets=parse_predicate(block["targets"], f"{context}.targets"),
        allowed=_optional_predicate(block, "allowed", context) or no_class(),
        exempt=_optional_predicate(block, "except", context),
        description=description,
        because=because,
        edge_kinds=_parse_edge_kinds(block, context),
        allow_internal=allow_internal,
    )


def _parse_layer(idx: int, data: object, context: str) -> Layer:
    if not isinstance(data, dict):
        msg = f"{context}: layer at index {idx} must be a mapping"
        raise RuleConfigurationError(msg)
    layer_name = data.get("name")
    if not isinstance(layer_name, str) or not layer_name.strip():
        msg = f"{context}: layer at index {idx} missing required 'name' field"
        raise RuleConfigurationError(msg)
    _check_keys(data, LAYER_KEYS, f"{context} layer '{layer_name}'")

    has_packages = "packages" in data
    has_that = "that" in data
    if has_packages == has_that:
        msg = f"{context}: layer '{layer_name}' must have exactly one of 'packages' or 'that'"
        raise RuleConfigurationError(msg)
    if has_packages:
        predicate = reside_in_any_package(
            *_string_list(data["packages"], f"{context} layer '{layer_name}'.packages")
        )
    else:
        predicate = parse_predicate(data["that"], f"{context} layer '{layer_name}'.that")

    optional = data.get("optional", False)
    if not isinstance(optional, bool):
        msg = f"{context}: layer '{layer_name}'.optional must be true or false"
        raise RuleConfigurationError(msg)
    return Layer(name=layer_name, predicate=predicate, optional=optional)


def _parse_layer_rule(
    name: str,
    description: str,
    because: str | None,
    rule_data: dict[str, Any],
) -> LayeredArchitecture:
    """Parse a layered-architecture rule from the top-level rule data."""
    context = f"Rule '{name}'"
    layers_raw = rule_data.get("layers")
    if not isinstance(layers_raw, list) or not layers_raw:
        msg = f"{context}: 'layers' must be a non-empty list"
        raise RuleConfigurationError(msg)
    layers = tuple(_parse_layer(idx, item, context) for idx, item in enumerate(layers_raw))

    access_raw = rule_data.get("access") or {}
    if not isinstance(access_raw, dict):
        msg = f"{context}: 'access' must be a mapping of layer -> accessor layers"
        raise RuleConfigurationError(msg)
    access: dict[str, frozenset[str]] = {}
    for layer_name, accessors in access_raw.items():
        if accessors is None:
            accessors = []
        if isinstance(accessors, str):
            accessors = [accessors]
        if not isinstance(accessors, list) or not all(isinstance(a, str) for a in accessors):
            msg = f"{context}: access.{layer_name} must be a list of layer names"
            raise RuleConfigurationError(msg)
        access[str(layer_name)] = frozenset(accessors)

    ignore_raw = rule_data.get("ignore") or []
    if not isinstance(ignore_raw, list):
        msg = f"{context}: 'ignore' must be a list of {{from, to}} mappings"
        raise RuleConfigurationError(msg)
    ignored: list[EdgePredicate] = []
    for idx, item in enumerate(ignore_raw):
        if not isinstance(item, dict) or "from" not in item or "to" not in item:
            msg = f"{context}: ignore[{idx}] must be a mapping with 'from' and 'to'"
            raise RuleConfigurationError(msg)
        _check_keys(item, IGNORE_KEYS, f"{context} ignore[{idx}]")
        ignored.append(
            EdgePredicate(
                source=parse_predicate(item["from"], f"{context} ignore[{idx}].from"),
                target=parse_predicate(item["to"], f"{context} ignore[{idx}].to"),
            )
        )

    return LayeredArchitecture(
        name=name,
        layers=layers,
        access=access,
        ignored=tuple(ignored),
        description=description,
        because=because,
        edge_kinds=_parse_edge_kinds(rule_data, context),
    )


def parse_rules(data: object) -> RuleSet:
    """Validate an already-decoded rules document and build a :class:`RuleSet`."""
    if not isinstance(data, dict):
        msg = "rules.yml must be a YAML mapping"
        raise RuleConfigurationError(msg)

    version = data.get("version")
    if version is None:
        msg = "rules.yml: missing required 'version' field"
        raise RuleConfigurationError(msg)
    if isinstance(version, bool) or version not in SUPPORTED_SCHEMA_VERSIONS:
        expected = sorted(SUPPORTED_SCHEMA_VERSIONS)
        msg = f"rules.yml: unsupported version {version}, expected one of {expected}"
        raise RuleConfigurationError(msg)

    _check_keys(data, DOCUMENT_KEYS, "rules.yml")

    rules_data = data.get("rules") or []
    if not isinstance(rules_data, list):
        msg = "rules.yml: 'rules' must be a list"
        raise RuleConfigurationError(msg)

    rules: list[Rule] = []
    for idx, rule_data in enumerate(rules_data):
        if not isinstance(rule_data, dict):
            msg = f"rules.yml: rule at index {idx} must be a mapping"
            raise RuleConfigurationError(msg)

        name = rule_data.get("name")
        if name is None or not isinstance(name, str) or not name.strip():
            msg = f"rules.yml: rule at index {idx} missing required 'name' field"
            raise RuleConfigurationError(msg)

        description = str(rule_data.get("description", ""))
        because_raw = rule_data.get("because")
        because = str(because_raw) if because_raw is not None else None

        present = [kind for kind in RULE_KINDS if kind in rule_data]
        if len(present) != 1:
            msg = (
                f"rules.yml: rule '{name}' must have exactly one of "
                f"{', '.join(repr(k) for k in RULE_KINDS)}"
            )
            raise RuleConfigurationError(msg)

        kind = present[0]
        allowed_keys = RULE_KEYS | LAYER_RULE_KEYS if kind == "layers" else RULE_KEYS
        _check_keys(rule_data, allowed_keys, f"Rule '{name}'")
        if kind == "layers":
            rules.append(_parse_layer_rule(name, description, because, rule_data))
            continue

        block = rule_data[kind]
        if not isinstance(block, dict):
            msg = f"Rule '{name}': '{kind}' must be a mapping"
            raise RuleConfigurationError(msg)
        if kind == "forbid_dependency":
            rules.append(_parse_dependency_rule(name, description, because, block))
        else:
            rules.append(_parse_access_rule(name, description, because, block))

    # RuleSet rejects duplicate names.
    return RuleSet(rules)


def load_rules(rules_path: Path) -> RuleSet:
    """Parse rules.yml and return the validated :class:`RuleSet`.

    Raises :class:`RuleConfigurationError` on unreadable files, invalid YAML
    and schema errors.
    """
    try:
        with rules_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Cannot read rules file {rules_path}: {exc}"
        raise RuleConfigurationError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {rules_path}: {exc}"
        raise RuleConfigurationError(msg) from exc

    rule_set = parse_rules(data)
    logger.info("Loaded %d rule(s) from %s", len(rule_set), rules_path)
    return rule_set
