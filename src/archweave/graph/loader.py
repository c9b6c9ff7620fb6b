"""YAML graph-description loader.

Reads one ``*.yml`` file, or every ``*.yml`` file of a directory in sorted
order, and resolves the collected records with :func:`build_graph`::

    classes:
      - name: org.app.model.Entry
        annotations: [AllowedToUseLogic]
        supertypes: [org.app.model.Base]
      - name: org.app.model.Base
    edges:
      - { src: org.app.model.Entry, dst: org.app.logic.Parser, kind: call }
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from archweave.graph.model import (
    DEFAULT_EDGE_KIND,
    Annotation,
    ClassSpec,
    EdgeSpec,
    Graph,
    GraphBuildError,
    build_graph,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class ParsedFile:
    """Result of parsing a single YAML graph file."""

    classes: list[ClassSpec] = field(default_factory=list)
    edges: list[EdgeSpec] = field(default_factory=list)


def parse_annotation(value: Any, context: str) -> Annotation:
    """Normalize ``"Name"`` or ``{name: Name, params: {...}}``."""
    if isinstance(value, str) and value.strip():
        return Annotation(name=value.strip())
    if isinstance(value, dict):
        name = value.get("name")
        if not isinstance(name, str) or not name.strip():
            msg = f"{context}: annotation mapping missing 'name'"
            raise GraphBuildError(msg)
        params_raw = value.get("params") or {}
        if not isinstance(params_raw, dict):
            msg = f"{context}: annotation '{name}' params must be a mapping"
            raise GraphBuildError(msg)
        params = tuple(sorted((str(k), str(v)) for k, v in params_raw.items()))
        return Annotation(name=name.strip(), params=params)
    msg = f"{context}: invalid annotation {value!r}"
    raise GraphBuildError(msg)


def _str_list(value: Any, context: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(value)
    msg = f"{context}: expected a list of strings"
    raise GraphBuildError(msg)


def _parse_class(data: Any, context: str) -> ClassSpec:
    if isinstance(data, str):
        return ClassSpec(name=data)
    if not isinstance(data, dict):
        msg = f"{context}: class entry must be a mapping or a name"
        raise GraphBuildError(msg)

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        msg = f"{context}: class missing 'name'"
        raise GraphBuildError(msg)
    ctx = f"{context} '{name}'"

    package = data.get("package")
    if package is not None and not isinstance(package, str):
        msg = f"{ctx}: 'package' must be a string"
        raise GraphBuildError(msg)

    annotations_raw = data.get("annotations") or []
    if not isinstance(annotations_raw, list):
        msg = f"{ctx}: 'annotations' must be a list"
        raise GraphBuildError(msg)

    return ClassSpec(
        name=name,
        package=package,
        annotations=tuple(parse_annotation(a, ctx) for a in annotations_raw),
        supertypes=_str_list(data.get("supertypes"), f"{ctx}.supertypes"),
        external=bool(data.get("external", False)),
    )


def _parse_edge(data: Any, context: str) -> EdgeSpec:
    if not isinstance(data, dict):
        msg = f"{context}: edge entry must be a mapping"
        raise GraphBuildError(msg)
    src = data.get("src")
    dst = data.get("dst")
    if not isinstance(src, str) or not isinstance(dst, str):
        msg = f"{context}: edge requires string 'src' and 'dst'"
        raise GraphBuildError(msg)
    kind = data.get("kind", DEFAULT_EDGE_KIND)
    return EdgeSpec(source=src, target=dst, kind=str(kind))


def parse_graph_file(path: Path) -> ParsedFile:
    """Parse a single YAML graph file into class and edge specs."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Cannot read graph file {path}: {exc}"
        raise GraphBuildError(msg) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {path}: {exc}"
        raise GraphBuildError(msg) from exc

    if data is None:
        return ParsedFile()
    if not isinstance(data, dict):
        msg = f"{path}: graph file must be a YAML mapping"
        raise GraphBuildError(msg)

    classes_raw = data.get("classes") or []
    edges_raw = data.get("edges") or []
    if not isinstance(classes_raw, list) or not isinstance(edges_raw, list):
        msg = f"{path}: 'classes' and 'edges' must be lists"
        raise GraphBuildError(msg)

    return ParsedFile(
        classes=[_parse_class(c, f"{path.name} classes[{i}]") for i, c in enumerate(classes_raw)],
        edges=[_parse_edge(e, f"{path.name} edges[{i}]") for i, e in enumerate(edges_raw)],
    )


def load_graph(path: Path) -> Graph:
    """Load a graph from a YAML file or a directory of ``*.yml`` files."""
    if path.is_dir():
        files = sorted(path.glob("*.yml"))
        if not files:
            msg = f"No *.yml graph files found in {path}"
            raise GraphBuildError(msg)
    elif path.is_file():
        files = [path]
    else:
        msg = f"Graph path does not exist: {path}"
        raise GraphBuildError(msg)

    classes: list[ClassSpec] = []
    edges: list[EdgeSpec] = []
    for yml_path in files:
        parsed = parse_graph_file(yml_path)
        classes.extend(parsed.classes)
        edges.extend(parsed.edges)

    graph = build_graph(classes, edges)
    logger.info("Loaded %r from %d file(s)", graph, len(files))
    return graph
