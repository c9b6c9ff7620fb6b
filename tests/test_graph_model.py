"""Tests for archweave.graph.model: node construction, edge collapsing, build errors."""

from __future__ import annotations

import pytest

from archweave.graph.model import (
    Annotation,
    ClassSpec,
    DependencyEdge,
    EdgeSpec,
    Graph,
    GraphBuildError,
    build_graph,
    package_of,
)

# ---------------------------------------------------------------------------
# package_of
# ---------------------------------------------------------------------------


class TestPackageOf:
    def test_dotted_name(self) -> None:
        assert package_of("org.app.model.Entry") == "org.app.model"

    def test_default_package(self) -> None:
        assert package_of("Entry") == ""

    def test_nested_class_keeps_outer_package(self) -> None:
        assert package_of("org.app.model.Outer$Inner") == "org.app.model"


# ---------------------------------------------------------------------------
# ClassNode
# ---------------------------------------------------------------------------


class TestClassNode:
    def test_package_derived_from_name(self, app_graph: Graph) -> None:
        node = app_graph.node("org.app.model.Entry")
        assert node.package == "org.app.model"
        assert node.simple_name == "Entry"

    def test_annotation_by_simple_or_qualified_name(self, app_graph: Graph) -> None:
        node = app_graph.node("org.app.model.Legacy")
        assert node.has_annotation("AllowedToUseLogic")
        assert node.has_annotation("org.app.AllowedToUseLogic")
        assert not node.has_annotation("Deprecated")

    def test_assignable_to_itself_and_supertypes(self, app_graph: Graph) -> None:
        node = app_graph.node("org.app.model.Entry")
        assert node.is_assignable_to("org.app.model.Entry")
        assert node.is_assignable_to("org.app.model.Base")
        assert not node.is_assignable_to("org.app.logic.Parser")

    def test_supertype_closure_is_transitive(self) -> None:
        graph = build_graph(
            [
                ClassSpec(name="a.Root"),
                ClassSpec(name="a.Middle", supertypes=("a.Root",)),
                ClassSpec(name="a.Leaf", supertypes=("a.Middle",)),
            ]
        )
        leaf = graph.node("a.Leaf")
        assert leaf.direct_supertypes == frozenset({"a.Middle"})
        assert leaf.supertypes == frozenset({"a.Middle", "a.Root"})

    def test_annotation_param_lookup(self) -> None:
        ann = Annotation(name="Marker", params=(("level", "high"),))
        assert ann.param("level") == "high"
        assert ann.param("missing") is None


# ---------------------------------------------------------------------------
# Graph queries
# ---------------------------------------------------------------------------


class TestGraphQueries:
    def test_classes_sorted_by_name(self, app_graph: Graph) -> None:
        names = [node.name for node in app_graph.classes]
        assert names == sorted(names)

    def test_len_and_contains_include_external_stubs(self, app_graph: Graph) -> None:
        assert len(app_graph) == 7
        assert "java.util.List" in app_graph
        assert "org.app.Missing" not in app_graph

    def test_external_stub_created_for_undeclared_target(self, app_graph: Graph) -> None:
        stub = app_graph.node("java.util.List")
        assert stub.external
        assert stub.package == "java.util"
        assert app_graph.edges_from(stub) == ()

    def test_get_and_node(self, app_graph: Graph) -> None:
        assert app_graph.get("org.app.Missing") is None
        with pytest.raises(KeyError):
            app_graph.node("org.app.Missing")

    def test_classes_where(self, app_graph: Graph) -> None:
        found = app_graph.classes_where(lambda n: n.package == "org.app.model")
        assert [n.simple_name for n in found] == ["Base", "Entry", "Legacy"]

    def test_edges_from_by_node_or_name(self, app_graph: Graph) -> None:
        node = app_graph.node("org.app.model.Entry")
        by_node = app_graph.edges_from(node)
        by_name = app_graph.edges_from("org.app.model.Entry")
        assert by_node == by_name
        assert [e.target for e in by_node] == ["org.app.logic.Parser", "org.app.model.Base"]

    def test_all_edges_count(self, app_graph: Graph) -> None:
        assert len(app_graph.all_edges()) == 8

    def test_repr(self, app_graph: Graph) -> None:
        assert repr(app_graph) == "Graph(classes=7, edges=8)"


# ---------------------------------------------------------------------------
# Edge collapsing
# ---------------------------------------------------------------------------


class TestEdges:
    def test_duplicate_edges_collapse_with_union_of_kinds(self) -> None:
        graph = build_graph(
            [ClassSpec(name="a.A"), ClassSpec(name="a.B")],
            [
                EdgeSpec("a.A", "a.B", "call"),
                EdgeSpec("a.A", "a.B", "field"),
                EdgeSpec("a.A", "a.B", "call"),
            ],
        )
        (edge,) = graph.edges_from("a.A")
        assert edge.kinds == frozenset({"call", "field"})

    def test_default_kind(self) -> None:
        graph = build_graph([ClassSpec(name="a.A"), ClassSpec(name="a.B")], [EdgeSpec("a.A", "a.B")])
        (edge,) = graph.all_edges()
        assert edge.kinds == frozenset({"dependency"})

    def test_self_edge_flag_and_str(self) -> None:
        edge = DependencyEdge(source="a.A", target="a.A")
        assert edge.is_self_edge
        assert str(edge) == "a.A -> a.A"


# ---------------------------------------------------------------------------
# Build errors
# ---------------------------------------------------------------------------


class TestBuildErrors:
    def test_duplicate_class(self) -> None:
        with pytest.raises(GraphBuildError, match="Duplicate class"):
            build_graph([ClassSpec(name="a.A"), ClassSpec(name="a.A")])

    def test_empty_name(self) -> None:
        with pytest.raises(GraphBuildError, match="empty name"):
            build_graph([ClassSpec(name="  ")])

    def test_package_mismatch(self) -> None:
        with pytest.raises(GraphBuildError, match="declares package"):
            build_graph([ClassSpec(name="a.b.C", package="a.x")])

    def test_matching_package_accepted(self) -> None:
        graph = build_graph([ClassSpec(name="a.b.C", package="a.b")])
        assert graph.node("a.b.C").package == "a.b"

    def test_unresolved_supertype(self) -> None:
        with pytest.raises(GraphBuildError, match="resolves to nothing"):
            build_graph([ClassSpec(name="a.A", supertypes=("a.Ghost",))])

    def test_supertype_cycle(self) -> None:
        with pytest.raises(GraphBuildError, match="cycle"):
            build_graph(
                [
                    ClassSpec(name="a.A", supertypes=("a.B",)),
                    ClassSpec(name="a.B", supertypes=("a.A",)),
                ]
            )

    def test_edge_from_undeclared_class(self) -> None:
        with pytest.raises(GraphBuildError, match="not a declared class"):
            build_graph([ClassSpec(name="a.A")], [EdgeSpec("a.Ghost", "a.A")])

    def test_invalid_edge_kind(self) -> None:
        with pytest.raises(GraphBuildError, match="invalid kind 'imports'"):
            build_graph(
                [ClassSpec(name="a.A"), ClassSpec(name="a.B")],
                [EdgeSpec("a.A", "a.B", "imports")],
            )

    def test_empty_edge_target(self) -> None:
        with pytest.raises(GraphBuildError, match="empty target"):
            build_graph([ClassSpec(name="a.A")], [EdgeSpec("a.A", "")])
