"""Class-level dependency graph: nodes, collapsed edges, and read-only queries.

The graph is assembled once by :func:`build_graph` and never mutated
afterwards, so a single instance can be shared by concurrent rule
evaluations without locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_EDGE_KINDS: frozenset[str] = frozenset(
    {
        "field",
        "method",
        "call",
        "access",
        "extends",
        "implements",
        "annotation",
        "dependency",
    }
)
DEFAULT_EDGE_KIND = "dependency"

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GraphBuildError(Exception):
    """Raised when graph input is unreadable or internally inconsistent."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Annotation:
    """An annotation identifier with optional parameters."""

    name: str
    params: tuple[tuple[str, str], ...] = ()

    def param(self, key: str) -> str | None:
        for k, v in self.params:
            if k == key:
                return v
        return None


@dataclass(frozen=True)
class ClassSpec:
    """Builder-side description of one class, before resolution."""

    name: str
    package: str | None = None
    annotations: tuple[Annotation, ...] = ()
    supertypes: tuple[str, ...] = ()
    external: bool = False


@dataclass(frozen=True)
class EdgeSpec:
    """Builder-side description of one reference from *source* to *target*."""

    source: str
    target: str
    kind: str = DEFAULT_EDGE_KIND


@dataclass(frozen=True)
class ClassNode:
    """One static type in the analyzed codebase.

    ``supertypes`` holds the transitive closure of declared supertypes and
    interfaces; ``direct_supertypes`` keeps the declaration as given.
    """

    name: str
    package: str
    annotations: frozenset[Annotation] = frozenset()
    direct_supertypes: frozenset[str] = frozenset()
    supertypes: frozenset[str] = frozenset()
    external: bool = False
    _annotation_names: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        names: set[str] = set()
        for ann in self.annotations:
            names.add(ann.name)
            names.add(ann.name.rsplit(".", 1)[-1])
        object.__setattr__(self, "_annotation_names", frozenset(names))

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    def has_annotation(self, name: str) -> bool:
        """Return True if an annotation with *name* (qualified or simple) is present."""
        return name in self._annotation_names

    def is_assignable_to(self, type_name: str) -> bool:
        """Return True if this class is *type_name* or one of its subtypes."""
        return type_name == self.name or type_name in self.supertypes


@dataclass(frozen=True)
class DependencyEdge:
    """A collapsed ``source -> target`` reference with the union of its kinds."""

    source: str
    target: str
    kinds: frozenset[str] = frozenset({DEFAULT_EDGE_KIND})

    @property
    def is_self_edge(self) -> bool:
        return self.source == self.target

    def __str__(self) -> str:
        return f"{self.source} -> {self.target}"


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class Graph:
    """Read-only view over the class nodes and their outgoing edges."""

    def __init__(
        self,
        nodes: Mapping[str, ClassNode],
        edges: Mapping[str, tuple[DependencyEdge, ...]],
    ) -> None:
        self._nodes: Mapping[str, ClassNode] = MappingProxyType(dict(nodes))
        self._edges: Mapping[str, tuple[DependencyEdge, ...]] = MappingProxyType(dict(edges))
        self._classes: tuple[ClassNode, ...] = tuple(
            self._nodes[name] for name in sorted(self._nodes)
        )
        self._all_edges: tuple[DependencyEdge, ...] = tuple(
            edge for name in sorted(self._edges) for edge in self._edges[name]
        )

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __repr__(self) -> str:
        return f"Graph(classes={len(self._nodes)}, edges={len(self._all_edges)})"

    @property
    def classes(self) -> tuple[ClassNode, ...]:
        """All nodes, sorted by qualified name."""
        return self._classes

    def get(self, name: str) -> ClassNode | None:
        return self._nodes.get(name)

    def node(self, name: str) -> ClassNode:
        """Return the node for *name*, raising ``KeyError`` if absent."""
        return self._nodes[name]

    def classes_where(self, predicate: Callable[[ClassNode], bool]) -> tuple[ClassNode, ...]:
        return tuple(node for node in self._classes if predicate(node))

    def edges_from(self, cls: ClassNode | str) -> tuple[DependencyEdge, ...]:
        name = cls if isinstance(cls, str) else cls.name
        return self._edges.get(name, ())

    def all_edges(self) -> tuple[DependencyEdge, ...]:
        return self._all_edges


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


def package_of(qualified_name: str) -> str:
    """Return the package prefix of a dotted qualified name ("" for the default package).

    Nested classes written as ``Outer$Inner`` keep ``Outer``'s package.
    """
    if "." not in qualified_name:
        return ""
    return qualified_name.rsplit(".", 1)[0]


def _supertype_closure(specs: dict[str, ClassSpec]) -> dict[str, frozenset[str]]:
    """Flatten the supertype relation per class, rejecting cycles."""
    closure: dict[str, frozenset[str]] = {}
    in_progress: set[str] = set()

    def visit(name: str, chain: tuple[str, ...]) -> frozenset[str]:
        if name in closure:
            return closure[name]
        if name in in_progress:
            cycle = " -> ".join([*chain, name])
            msg = f"Supertype cycle detected: {cycle}"
            raise GraphBuildError(msg)
        in_progress.add(name)
        acc: set[str] = set()
        for sup in specs[name].supertypes:
            acc.add(sup)
            acc.update(visit(sup, (*chain, name)))
        in_progress.discard(name)
        closure[name] = frozenset(acc)
        return closure[name]

    for name in sorted(specs):
        visit(name, ())
    return closure


def build_graph(
    classes: Iterable[ClassSpec],
    edges: Iterable[EdgeSpec] = (),
) -> Graph:
    """Resolve class and edge specs into an immutable :class:`Graph`.

    Two-pass approach:
    1. Register classes, validate names/packages, resolve supertypes and
       flatten their closure.
    2. Collapse edges per ``(source, target)`` pair; undeclared targets become
       external stub nodes.

    Raises :class:`GraphBuildError` on duplicate or empty names, a package
    that contradicts the qualified name, an unresolvable supertype, a
    supertype cycle, an unknown edge kind, or an edge from an undeclared class.
    """
    specs: dict[str, ClassSpec] = {}
    for spec in classes:
        if not spec.name or not spec.name.strip():
            msg = "Class with empty name"
            raise GraphBuildError(msg)
        if spec.name in specs:
            msg = f"Duplicate class '{spec.name}'"
            raise GraphBuildError(msg)
        if spec.package is not None and spec.package != package_of(spec.name):
            msg = (
                f"Class '{spec.name}' declares package '{spec.package}' "
                f"but its name places it in '{package_of(spec.name)}'"
            )
            raise GraphBuildError(msg)
        specs[spec.name] = spec

    for spec in specs.values():
        for sup in spec.supertypes:
            if sup not in specs:
                msg = f"Class '{spec.name}' declares supertype '{sup}' which resolves to nothing"
                raise GraphBuildError(msg)

    closure = _supertype_closure(specs)

    nodes: dict[str, ClassNode] = {
        name: _make_node(spec, closure[name]) for name, spec in specs.items()
    }

    # --- Pass 2: edges ---
    collapsed: dict[str, dict[str, set[str]]] = {}
    for edge in edges:
        if edge.source not in specs:
            msg = f"Edge source '{edge.source}' is not a declared class"
            raise GraphBuildError(msg)
        if edge.kind not in VALID_EDGE_KINDS:
            msg = (
                f"Edge '{edge.source}' -> '{edge.target}': invalid kind '{edge.kind}', "
                f"must be one of {sorted(VALID_EDGE_KINDS)}"
            )
            raise GraphBuildError(msg)
        if not edge.target:
            msg = f"Edge from '{edge.source}' has an empty target"
            raise GraphBuildError(msg)
        if edge.target not in nodes:
            logger.debug("Creating external stub for referenced class %s", edge.target)
            nodes[edge.target] = _make_node(ClassSpec(name=edge.target, external=True), frozenset())
        collapsed.setdefault(edge.source, {}).setdefault(edge.target, set()).add(edge.kind)

    edge_map: dict[str, tuple[DependencyEdge, ...]] = {
        src: tuple(
            DependencyEdge(source=src, target=dst, kinds=frozenset(kinds))
            for dst, kinds in sorted(targets.items())
        )
        for src, targets in collapsed.items()
    }

    graph = Graph(nodes, edge_map)
    logger.debug("Built %r", graph)
    return graph


def _make_node(spec: ClassSpec, closure: frozenset[str]) -> ClassNode:
    return ClassNode(
        name=spec.name,
        package=package_of(spec.name),
        annotations=frozenset(spec.annotations),
        direct_supertypes=frozenset(spec.supertypes),
        supertypes=closure,
        external=spec.external,
    )
