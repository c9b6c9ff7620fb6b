"""Layered-architecture checker: named layers plus an inbound-access matrix."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from archweave.rules.combinators import Violation, check_edge_kinds
from archweave.rules.predicates import (
    ClassPredicate,
    EdgePredicate,
    RuleConfigurationError,
    reside_in_any_package,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from archweave.graph.model import ClassNode, Graph

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Layer:
    """A named group of classes; an empty layer is a violation unless *optional*."""

    name: str
    predicate: ClassPredicate
    optional: bool = False


@dataclass(frozen=True, eq=False)
class LayeredArchitecture:
    """Layers in priority order plus, per layer, the layers allowed to depend on it.

    A layer without an ``access`` entry is unconstrained.  A layer mapped to
    the empty set is terminal: no other layer may depend on it.  The first
    layer whose predicate matches a class owns that class; classes in no
    layer are skipped.
    """

    name: str
    layers: tuple[Layer, ...]
    access: Mapping[str, frozenset[str]] = field(default_factory=dict)
    ignored: tuple[EdgePredicate, ...] = ()
    description: str = ""
    because: str | None = None
    edge_kinds: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            msg = "Rule name must be a non-empty string"
            raise RuleConfigurationError(msg)
        object.__setattr__(self, "layers", tuple(self.layers))
        if not self.layers:
            msg = f"Rule '{self.name}': at least one layer must be declared"
            raise RuleConfigurationError(msg)

        declared: set[str] = set()
        for layer in self.layers:
            if not layer.name or not layer.name.strip():
                msg = f"Rule '{self.name}': layer names must be non-empty"
                raise RuleConfigurationError(msg)
            if layer.name in declared:
                msg = f"Rule '{self.name}': duplicate layer '{layer.name}'"
                raise RuleConfigurationError(msg)
            if not isinstance(layer.predicate, ClassPredicate):
                msg = f"Rule '{self.name}': layer '{layer.name}' needs a class predicate"
                raise RuleConfigurationError(msg)
            declared.add(layer.name)

        normalized: dict[str, frozenset[str]] = {}
        for layer_name, accessors in self.access.items():
            if layer_name not in declared:
                msg = (
                    f"Rule '{self.name}': access matrix references undeclared layer "
                    f"'{layer_name}' (declared: {sorted(declared)})"
                )
                raise RuleConfigurationError(msg)
            accessor_set = frozenset(accessors)
            unknown = sorted(accessor_set - declared)
            if unknown:
                msg = (
                    f"Rule '{self.name}': layer '{layer_name}' lists undeclared accessor "
                    f"layer(s) {unknown} (declared: {sorted(declared)})"
                )
                raise RuleConfigurationError(msg)
            normalized[layer_name] = accessor_set
        object.__setattr__(self, "access", MappingProxyType(normalized))
        object.__setattr__(self, "ignored", tuple(self.ignored))
        object.__setattr__(self, "edge_kinds", check_edge_kinds(self.name, self.edge_kinds))

    @property
    def layer_names(self) -> tuple[str, ...]:
        return tuple(layer.name for layer in self.layers)

    def layer_of(self, node: ClassNode) -> str | None:
        """Return the first layer whose predicate matches *node*, or ``None``."""
        for layer in self.layers:
            if layer.predicate.test(node):
                return layer.name
        return None

    def permits(self, source_layer: str, target_layer: str) -> bool:
        if source_layer == target_layer:
            return True
        accessors = self.access.get(target_layer)
        if accessors is None:
            return True
        return source_layer in accessors

    def explain_access(self, target_layer: str) -> str:
        accessors = self.access.get(target_layer, frozenset())
        if not accessors:
            return f"layer '{target_layer}' may not be accessed by any layer"
        names = ", ".join(f"'{n}'" for n in sorted(accessors))
        return f"layer '{target_layer}' may only be accessed by layers [{names}]"


# ---------------------------------------------------------------------------
# Fluent construction
# ---------------------------------------------------------------------------


class LayeredArchitectureBuilder:
    """Step-by-step construction mirroring the usual layered-architecture DSL.

    Example::

        rule = (
            layered_architecture("layers")
            .layer("Gui").defined_by("org.app.gui..")
            .layer("Cli").defined_by("org.app.cli..")
            .where_layer("Cli").may_not_be_accessed_by_any_layer()
            .build()
        )
    """

    def __init__(self, name: str, *, description: str = "") -> None:
        self._name = name
        self._description = description
        self._layers: list[Layer] = []
        self._access: dict[str, frozenset[str]] = {}
        self._ignored: list[EdgePredicate] = []
        self._because: str | None = None
        self._edge_kinds: frozenset[str] | None = None

    def layer(self, name: str) -> _LayerDefinition:
        return _LayerDefinition(self, name, optional=False)

    def optional_layer(self, name: str) -> _LayerDefinition:
        return _LayerDefinition(self, name, optional=True)

    def where_layer(self, name: str) -> _LayerAccess:
        if name not in {layer.name for layer in self._layers}:
            msg = f"Rule '{self._name}': where_layer() references undeclared layer '{name}'"
            raise RuleConfigurationError(msg)
        return _LayerAccess(self, name)

    def ignore_dependency(
        self, source: ClassPredicate, target: ClassPredicate
    ) -> LayeredArchitectureBuilder:
        self._ignored.append(EdgePredicate(source=source, target=target))
        return self

    def because(self, reason: str) -> LayeredArchitectureBuilder:
        self._because = reason
        return self

    def only_edge_kinds(self, kinds: frozenset[str]) -> LayeredArchitectureBuilder:
        self._edge_kinds = kinds
        return self

    def build(self) -> LayeredArchitecture:
        return LayeredArchitecture(
            name=self._name,
            layers=tuple(self._layers),
            access=dict(self._access),
            ignored=tuple(self._ignored),
            description=self._description,
            because=self._because,
            edge_kinds=self._edge_kinds,
        )

    def _add_layer(self, layer: Layer) -> LayeredArchitectureBuilder:
        self._layers.append(layer)
        return self

    def _set_access(self, name: str, accessors: Iterable[str]) -> LayeredArchitectureBuilder:
        self._access[name] = frozenset(accessors)
        return self


class _LayerDefinition:
    def __init__(self, builder: LayeredArchitectureBuilder, name: str, *, optional: bool) -> None:
        self._builder = builder
        self._name = name
        self._optional = optional

    def defined_by(self, *packages: str) -> LayeredArchitectureBuilder:
        return self.defined_by_predicate(reside_in_any_package(*packages))

    def defined_by_predicate(self, predicate: ClassPredicate) -> LayeredArchitectureBuilder:
        return self._builder._add_layer(
            Layer(name=self._name, predicate=predicate, optional=self._optional)
        )


class _LayerAccess:
    def __init__(self, builder: LayeredArchitectureBuilder, name: str) -> None:
        self._builder = builder
        self._name = name

    def may_only_be_accessed_by_layers(self, *names: str) -> LayeredArchitectureBuilder:
        return self._builder._set_access(self._name, names)

    def may_not_be_accessed_by_any_layer(self) -> LayeredArchitectureBuilder:
        return self._builder._set_access(self._name, ())


def layered_architecture(name: str, *, description: str = "") -> LayeredArchitectureBuilder:
    return LayeredArchitectureBuilder(name, description=description)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate_layered_architecture(graph: Graph, rule: LayeredArchitecture) -> list[Violation]:
    """Check every edge whose endpoints both resolve to a layer.

    Same-layer edges and edges into unconstrained layers are legal; an edge
    into a constrained layer is legal only if the source layer is listed as
    a permitted accessor.  Non-optional layers that own no class are reported
    once each.
    """
    layer_of: dict[str, str] = {}
    members: dict[str, int] = {name: 0 for name in rule.layer_names}
    for node in graph.classes:
        layer_name = rule.layer_of(node)
        if layer_name is not None:
            layer_of[node.name] = layer_name
            members[layer_name] += 1

    logger.debug(
        "Rule '%s': layer sizes %s",
        rule.name,
        ", ".join(f"{name}={count}" for name, count in members.items()),
    )

    violations: list[Violation] = []
    suffix = f", because {rule.because}" if rule.because else ""

    for layer in rule.layers:
        if not layer.optional and members[layer.name] == 0:
            violations.append(
                Violation(
                    rule_name=rule.name,
                    rule_type="layer",
                    source=None,
                    target=None,
                    message=f"Layer '{layer.name}' is empty (rule '{rule.name}'){suffix}",
                    rule_description=rule.description,
                    source_layer=layer.name,
                )
            )

    for edge in graph.all_edges():
        source_layer = layer_of.get(edge.source)
        target_layer = layer_of.get(edge.target)
        # Classes outside every layer are unconstrained.
        if source_layer is None or target_layer is None:
            continue
        if rule.permits(source_layer, target_layer):
            continue
        if rule.edge_kinds is not None and not (edge.kinds & rule.edge_kinds):
            continue
        source = graph.node(edge.source)
        target = graph.node(edge.target)
        if any(ignored.test(edge, source, target) for ignored in rule.ignored):
            continue

        violations.append(
            Violation(
                rule_name=rule.name,
                rule_type="layer",
                source=edge.source,
                target=edge.target,
                message=(
                    f"Layer violation: '{edge.source}' (layer '{source_layer}') depends on "
                    f"'{edge.target}' (layer '{target_layer}'), but "
                    f"{rule.explain_access(target_layer)} (rule '{rule.name}'){suffix}"
                ),
                rule_description=rule.description,
                source_layer=source_layer,
                target_layer=target_layer,
                edge_kinds=tuple(sorted(edge.kinds)),
            )
        )

    return violations
