"""Tests for archweave.engine.evaluator: batch evaluation and the violation report."""

from __future__ import annotations

import pytest

from archweave.engine.evaluator import ViolationReport, evaluate, evaluate_rule
from archweave.graph.model import ClassSpec, EdgeSpec, Graph, build_graph
from archweave.rules.combinators import forbid_access, forbid_dependency
from archweave.rules.layers import layered_architecture
from archweave.rules.predicates import (
    RuleConfigurationError,
    are_annotated_with,
    reside_in_package,
)
from archweave.rules.ruleset import RuleSet

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _rules() -> RuleSet:
    return RuleSet(
        [
            forbid_dependency(
                "no-logic-in-model",
                reside_in_package("org.app.logic.."),
                that=reside_in_package("org.app.model.."),
                exempt=are_annotated_with("AllowedToUseLogic"),
            ),
            forbid_access(
                "logic-via-gui-only",
                reside_in_package("org.app.logic.."),
                allowed=reside_in_package("org.app.gui.."),
            ),
            (
                layered_architecture("layers")
                .layer("Gui").defined_by("org.app.gui..")
                .layer("Cli").defined_by("org.app.cli..")
                .where_layer("Cli").may_not_be_accessed_by_any_layer()
                .build()
            ),
        ]
    )


# ---------------------------------------------------------------------------
# evaluate
# ---------------------------------------------------------------------------


class TestEvaluate:
    def test_conforming_graph_gives_empty_report(self, app_graph: Graph) -> None:
        rules = RuleSet(
            [
                forbid_dependency(
                    "model-not-gui",
                    reside_in_package("org.app.gui.."),
                    that=reside_in_package("org.app.model.."),
                )
            ]
        )
        report = evaluate(app_graph, rules)
        assert report.is_empty
        assert not report
        assert len(report) == 0
        assert report.rules_evaluated == 1

    def test_exhaustive_across_rules_and_edges(self, app_graph: Graph) -> None:
        report = evaluate(app_graph, _rules())
        found = {(v.rule_name, v.source, v.target) for v in report}
        assert found == {
            ("no-logic-in-model", "org.app.model.Entry", "org.app.logic.Parser"),
            ("logic-via-gui-only", "org.app.model.Entry", "org.app.logic.Parser"),
            ("logic-via-gui-only", "org.app.model.Legacy", "org.app.logic.Parser"),
            ("layers", "org.app.gui.MainFrame", "org.app.cli.Launcher"),
        }

    def test_overlapping_rules_not_deduplicated(self, app_graph: Graph) -> None:
        report = evaluate(app_graph, _rules())
        entry_parser = [
            v for v in report
            if (v.source, v.target) == ("org.app.model.Entry", "org.app.logic.Parser")
        ]
        assert len(entry_parser) == 2

    def test_report_sorted(self, app_graph: Graph) -> None:
        report = evaluate(app_graph, _rules())
        keys = [v.sort_key() for v in report]
        assert keys == sorted(keys)

    def test_deterministic(self, app_graph: Graph) -> None:
        assert evaluate(app_graph, _rules()) == evaluate(app_graph, _rules())

    def test_rule_order_does_not_matter(self, app_graph: Graph) -> None:
        forward = evaluate(app_graph, _rules())
        backward = evaluate(app_graph, list(reversed(list(_rules()))))
        assert forward.violations == backward.violations

    def test_parallel_equals_sequential(self, app_graph: Graph) -> None:
        sequential = evaluate(app_graph, _rules())
        parallel = evaluate(app_graph, _rules(), workers=4)
        assert parallel.violations == sequential.violations

    def test_counts(self, app_graph: Graph) -> None:
        report = evaluate(app_graph, _rules())
        assert report.rules_evaluated == 3
        assert report.classes_analyzed == len(app_graph)
        assert report.edges_analyzed == len(app_graph.all_edges())

    def test_by_rule_lists_every_rule(self, app_graph: Graph) -> None:
        rules = _rules()
        rules.add(
            forbid_dependency("clean", reside_in_package("nowhere"), that=reside_in_package("org.."))
        )
        grouped = evaluate(app_graph, rules).by_rule()
        assert list(grouped) == ["no-logic-in-model", "logic-via-gui-only", "layers", "clean"]
        assert len(grouped["logic-via-gui-only"]) == 2
        assert grouped["clean"] == []

    def test_plain_iterable_with_duplicate_names_rejected(self, app_graph: Graph) -> None:
        rule = forbid_dependency("r", reside_in_package("a.."))
        with pytest.raises(RuleConfigurationError, match="Duplicate rule name"):
            evaluate(app_graph, [rule, rule])

    def test_unsupported_rule_object(self, app_graph: Graph) -> None:
        with pytest.raises(RuleConfigurationError, match="Unsupported rule object"):
            evaluate_rule(app_graph, object())  # type: ignore[arg-type]

    def test_many_violations_same_rule(self) -> None:
        classes = [ClassSpec(name=f"a.C{i}") for i in range(20)] + [ClassSpec(name="b.T")]
        edges = [EdgeSpec(f"a.C{i}", "b.T", "call") for i in range(20)]
        graph = build_graph(classes, edges)
        rule = forbid_dependency("r", reside_in_package("b"), that=reside_in_package("a"))
        report = evaluate(graph, [rule])
        assert len(report) == 20


class TestViolationReport:
    def test_default_is_empty(self) -> None:
        report = ViolationReport()
        assert report.is_empty
        assert list(report) == []
        assert report.by_rule() == {}
