"""Graph domain: class nodes, dependency edges, YAML graph loader."""

from archweave.graph.loader import ParsedFile, load_graph, parse_graph_file
from archweave.graph.model import (
    Annotation,
    ClassNode,
    ClassSpec,
    DependencyEdge,
    EdgeSpec,
    Graph,
    GraphBuildError,
    build_graph,
)

__all__ = [
    "Annotation",
    "ClassNode",
    "ClassSpec",
    "DependencyEdge",
    "EdgeSpec",
    "Graph",
    "GraphBuildError",
    "ParsedFile",
    "build_graph",
    "load_graph",
    "parse_graph_file",
]
