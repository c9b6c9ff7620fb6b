"""Predicate library: reusable boolean tests over a single class or edge.

Every predicate is a frozen value built from a declarative argument
(package pattern, annotation identifier, type name, ...).  Patterns are
compiled once at construction, so evaluation only looks at the node's own
attributes.  Predicates compose with ``&``, ``|`` and ``~``.

Package patterns use dotted identifier syntax:

* ``org.app.gui`` matches exactly that package;
* ``org.app.gui..`` matches it and every subpackage;
* ``..service..`` matches any package with a ``service`` segment;
* ``*`` matches any characters inside a single segment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archweave.graph.model import VALID_EDGE_KINDS

if TYPE_CHECKING:
    from archweave.graph.model import ClassNode, DependencyEdge

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RuleConfigurationError(ValueError):
    """Raised when a rule or predicate is constructed from invalid input."""


# ---------------------------------------------------------------------------
# Pattern compilation
# ---------------------------------------------------------------------------

_SEGMENT_RE = re.compile(r"^[A-Za-z_$*][\w$*]*$")


def compile_package_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a dotted package pattern into an anchored regex.

    Raises :class:`RuleConfigurationError` for empty patterns, empty
    segments (``a...b``) and characters that cannot appear in a package.
    """
    if not isinstance(pattern, str) or not pattern.strip():
        msg = "Package pattern must be a non-empty string"
        raise RuleConfigurationError(msg)
    pattern = pattern.strip()
    if "..." in pattern:
        msg = f"Invalid package pattern '{pattern}': '...' is not allowed"
        raise RuleConfigurationError(msg)

    # Split on '..' (any number of segments), then on '.' (one separator).
    parts = pattern.split("..")
    regex = ""
    for idx, part in enumerate(parts):
        if part:
            for segment in part.split("."):
                if not _SEGMENT_RE.match(segment):
                    msg = f"Invalid package pattern '{pattern}': bad segment '{segment}'"
                    raise RuleConfigurationError(msg)
            body = r"\.".join(re.escape(s).replace(r"\*", r"[^.]*") for s in part.split("."))
            regex += body
        if idx < len(parts) - 1:
            # '..' between two parts: zero or more intermediate segments.
            if part and parts[idx + 1]:
                regex += r"(?:\.[^.]+)*\."
            elif part:
                regex += r"(?:\.[^.]+)*"
            elif parts[idx + 1]:
                regex += r"(?:[^.]+\.)*"
            else:
                regex += r".*"
    return re.compile(f"^{regex}$")


def _compile_regex(expr: str) -> re.Pattern[str]:
    try:
        return re.compile(expr)
    except re.error as exc:
        msg = f"Invalid regular expression '{expr}': {exc}"
        raise RuleConfigurationError(msg) from exc


def _require_names(values: tuple[str, ...], what: str) -> tuple[str, ...]:
    if not values:
        msg = f"{what}: at least one value is required"
        raise RuleConfigurationError(msg)
    for value in values:
        if not isinstance(value, str) or not value.strip():
            msg = f"{what}: values must be non-empty strings, got {value!r}"
            raise RuleConfigurationError(msg)
    return tuple(v.strip() for v in values)


# ---------------------------------------------------------------------------
# Class predicates
# ---------------------------------------------------------------------------


class ClassPredicate:
    """Base class for predicates over a single :class:`ClassNode`."""

    description: str = ""

    def __call__(self, node: ClassNode) -> bool:
        return self.test(node)

    def test(self, node: ClassNode) -> bool:
        raise NotImplementedError

    def __and__(self, other: ClassPredicate) -> ClassPredicate:
        return all_of(self, other)

    def __or__(self, other: ClassPredicate) -> ClassPredicate:
        return any_of(self, other)

    def __invert__(self) -> ClassPredicate:
        return not_(self)

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True)
class _Constant(ClassPredicate):
    value: bool
    description: str

    def test(self, node: ClassNode) -> bool:
        return self.value


@dataclass(frozen=True)
class PackagePredicate(ClassPredicate):
    """Matches classes whose package matches any of *patterns*."""

    patterns: tuple[str, ...]
    description: str = ""
    _compiled: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        patterns = _require_names(self.patterns, "Package predicate")
        object.__setattr__(self, "patterns", patterns)
        object.__setattr__(
            self, "_compiled", tuple(compile_package_pattern(p) for p in patterns)
        )
        if not self.description:
            if len(patterns) == 1:
                desc = f"reside in a package '{patterns[0]}'"
            else:
                desc = "reside in any package [" + ", ".join(f"'{p}'" for p in patterns) + "]"
            object.__setattr__(self, "description", desc)

    def test(self, node: ClassNode) -> bool:
        return any(rx.match(node.package) for rx in self._compiled)


@dataclass(frozen=True)
class NamePredicate(ClassPredicate):
    """Matches classes whose fully qualified name is one of *names*."""

    names: tuple[str, ...]
    description: str = ""
    _lookup: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        names = _require_names(self.names, "Name predicate")
        object.__setattr__(self, "names", names)
        object.__setattr__(self, "_lookup", frozenset(names))
        if not self.description:
            if len(names) == 1:
                desc = f"have fully qualified name '{names[0]}'"
            else:
                desc = "belong to any of [" + ", ".join(sorted(names)) + "]"
            object.__setattr__(self, "description", desc)

    def test(self, node: ClassNode) -> bool:
        return node.name in self._lookup


@dataclass(frozen=True)
class NameMatchingPredicate(ClassPredicate):
    """Matches classes whose (simple or qualified) name matches a regex."""

    regex: str
    simple: bool = False
    description: str = ""
    _compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", _compile_regex(self.regex))
        if not self.description:
            which = "simple name" if self.simple else "name"
            object.__setattr__(self, "description", f"have {which} matching '{self.regex}'")

    def test(self, node: ClassNode) -> bool:
        subject = node.simple_name if self.simple else node.name
        return self._compiled.fullmatch(subject) is not None


@dataclass(frozen=True)
class AnnotationPredicate(ClassPredicate):
    """Matches classes carrying an annotation, optionally with given parameters."""

    annotation: str
    params: tuple[tuple[str, str], ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        (annotation,) = _require_names((self.annotation,), "Annotation predicate")
        object.__setattr__(self, "annotation", annotation)
        if not self.description:
            object.__setattr__(self, "description", f"are annotated with @{annotation}")

    def test(self, node: ClassNode) -> bool:
        if not node.has_annotation(self.annotation):
            return False
        if not self.params:
            return True
        wanted = set(self.params)
        qualified = "." in self.annotation
        for ann in node.annotations:
            if qualified:
                same = ann.name == self.annotation
            else:
                same = ann.name.rsplit(".", 1)[-1] == self.annotation
            if same and wanted.issubset(ann.params):
                return True
        return False


@dataclass(frozen=True)
class AssignablePredicate(ClassPredicate):
    """Matches *type_name* and every class with it in its supertype closure."""

    type_name: str
    description: str = ""

    def __post_init__(self) -> None:
        (type_name,) = _require_names((self.type_name,), "Assignability predicate")
        object.__setattr__(self, "type_name", type_name)
        if not self.description:
            object.__setattr__(self, "description", f"are assignable to {type_name}")

    def test(self, node: ClassNode) -> bool:
        return node.is_assignable_to(self.type_name)


@dataclass(frozen=True)
class ExternalPredicate(ClassPredicate):
    """Matches stub nodes for referenced classes outside the analyzed code."""

    description: str = "are external"

    def test(self, node: ClassNode) -> bool:
        return node.external


@dataclass(frozen=True)
class AllOf(ClassPredicate):
    operands: tuple[ClassPredicate, ...]
    description: str = ""

    def __post_init__(self) -> None:
        if not self.description:
            desc = " and ".join(str(p) for p in self.operands)
            object.__setattr__(self, "description", desc)

    def test(self, node: ClassNode) -> bool:
        return all(p.test(node) for p in self.operands)


@dataclass(frozen=True)
class AnyOf(ClassPredicate):
    operands: tuple[ClassPredicate, ...]
    description: str = ""

    def __post_init__(self) -> None:
        if not self.description:
            desc = " or ".join(str(p) for p in self.operands)
            object.__setattr__(self, "description", desc)

    def test(self, node: ClassNode) -> bool:
        return any(p.test(node) for p in self.operands)


@dataclass(frozen=True)
class Not(ClassPredicate):
    operand: ClassPredicate
    description: str = ""

    def __post_init__(self) -> None:
        if not self.description:
            object.__setattr__(self, "description", f"not ({self.operand})")

    def test(self, node: ClassNode) -> bool:
        return not self.operand.test(node)


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def any_class() -> ClassPredicate:
    return _Constant(value=True, description="any class")


def no_class() -> ClassPredicate:
    return _Constant(value=False, description="no class")


def reside_in_package(pattern: str) -> ClassPredicate:
    return PackagePredicate(patterns=(pattern,))


def reside_in_any_package(*patterns: str) -> ClassPredicate:
    return PackagePredicate(patterns=patterns)


def reside_outside_of_packages(*patterns: str) -> ClassPredicate:
    inner = PackagePredicate(patterns=patterns)
    return Not(
        operand=inner,
        description="reside outside of packages [" + ", ".join(f"'{p}'" for p in inner.patterns) + "]",
    )


def have_fully_qualified_name(name: str) -> ClassPredicate:
    return NamePredicate(names=(name,))


def belong_to_any_of(*names: str) -> ClassPredicate:
    return NamePredicate(names=names)


def have_name_matching(regex: str) -> ClassPredicate:
    return NameMatchingPredicate(regex=regex)


def have_simple_name_matching(regex: str) -> ClassPredicate:
    return NameMatchingPredicate(regex=regex, simple=True)


def are_annotated_with(annotation: str, **params: str) -> ClassPredicate:
    return AnnotationPredicate(
        annotation=annotation,
        params=tuple(sorted((k, str(v)) for k, v in params.items())),
    )


def are_assignable_to(type_name: str) -> ClassPredicate:
    return AssignablePredicate(type_name=type_name)


def are_external() -> ClassPredicate:
    return ExternalPredicate()


def all_of(*predicates: ClassPredicate) -> ClassPredicate:
    if not predicates:
        msg = "all_of() requires at least one predicate"
        raise RuleConfigurationError(msg)
    if len(predicates) == 1:
        return predicates[0]
    return AllOf(operands=tuple(predicates))


def any_of(*predicates: ClassPredicate) -> ClassPredicate:
    if not predicates:
        msg = "any_of() requires at least one predicate"
        raise RuleConfigurationError(msg)
    if len(predicates) == 1:
        return predicates[0]
    return AnyOf(operands=tuple(predicates))


def not_(predicate: ClassPredicate) -> ClassPredicate:
    return Not(operand=predicate)


# ---------------------------------------------------------------------------
# Edge predicates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EdgePredicate:
    """Matches an edge iff its source matches *source* and its target matches *target*.

    *kinds*, when given, additionally requires the edge to carry at least one
    of those kinds.
    """

    source: ClassPredicate
    target: ClassPredicate
    kinds: frozenset[str] | None = None

    def __call__(self, edge: DependencyEdge, source: ClassNode, target: ClassNode) -> bool:
        return self.test(edge, source, target)

    def test(self, edge: DependencyEdge, source: ClassNode, target: ClassNode) -> bool:
        if self.kinds is not None and not (edge.kinds & self.kinds):
            return False
        return self.source.test(source) and self.target.test(target)

    def __str__(self) -> str:
        return f"from classes that {self.source} to classes that {self.target}"


def edge_kind_in(*kinds: str) -> frozenset[str]:
    """Validate and normalize an edge-kind filter."""
    names = _require_names(kinds, "Edge kind filter")
    for kind in names:
        if kind not in VALID_EDGE_KINDS:
            msg = f"Invalid edge kind '{kind}', must be one of {sorted(VALID_EDGE_KINDS)}"
            raise RuleConfigurationError(msg)
    return frozenset(names)
