"""Tests for archweave.engine.linter: lint orchestration and output formatters."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from archweave.engine.evaluator import ViolationReport
from archweave.engine.linter import (
    LintError,
    LintResult,
    format_json,
    format_porcelain,
    format_rich,
    lint,
)
from archweave.rules.combinators import Violation

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _dependency_violation() -> Violation:
    return Violation(
        rule_name="no-logic-in-model",
        rule_type="dependency",
        source="org.app.model.Entry",
        target="org.app.logic.Parser",
        message="Class 'org.app.model.Entry' depends on 'org.app.logic.Parser'",
        rule_description="Model must stay independent of logic",
        edge_kinds=("call",),
    )


def _layer_violation() -> Violation:
    return Violation(
        rule_name="layers",
        rule_type="layer",
        source="org.app.gui.MainFrame",
        target="org.app.cli.Launcher",
        message="Layer violation",
        source_layer="Gui",
        target_layer="Cli",
        edge_kinds=("dependency",),
    )


def _empty_layer_violation() -> Violation:
    return Violation(
        rule_name="layers",
        rule_type="layer",
        source=None,
        target=None,
        message="Layer 'Web' is empty (rule 'layers')",
        source_layer="Web",
    )


def _result(*violations: Violation) -> LintResult:
    report = ViolationReport(
        violations=tuple(sorted(violations, key=Violation.sort_key)),
        rules_evaluated=2,
        classes_analyzed=6,
        edges_analyzed=4,
        rule_names=("no-logic-in-model", "layers"),
    )
    return LintResult(report=report, elapsed_ms=12.0)


# ---------------------------------------------------------------------------
# lint
# ---------------------------------------------------------------------------


class TestLint:
    def test_lint_with_violations(self, graph_file: Path, violating_rules_file: Path) -> None:
        result = lint(graph_file, violating_rules_file)
        pairs = [(v.rule_name, v.source, v.target) for v in result.violations]
        assert pairs == [
            ("layers", "org.app.gui.MainFrame", "org.app.cli.Launcher"),
            ("no-logic-in-model", "org.app.model.Entry", "org.app.logic.Parser"),
        ]
        assert result.rules_evaluated == 2
        assert result.elapsed_ms >= 0

    def test_lint_clean(self, graph_file: Path, clean_rules_file: Path) -> None:
        result = lint(graph_file, clean_rules_file)
        assert result.violations == ()

    def test_lint_parallel(self, graph_file: Path, violating_rules_file: Path) -> None:
        sequential = lint(graph_file, violating_rules_file)
        parallel = lint(graph_file, violating_rules_file, workers=2)
        assert parallel.violations == sequential.violations

    def test_invalid_rules_raise_lint_error(self, graph_file: Path, tmp_path: Path) -> None:
        rules = tmp_path / "bad.yml"
        rules.write_text("version: 1\nrules:\n  - name: r\n")
        with pytest.raises(LintError, match="Invalid rules configuration"):
            lint(graph_file, rules)

    def test_broken_graph_raises_lint_error(
        self, tmp_path: Path, violating_rules_file: Path
    ) -> None:
        graph = tmp_path / "broken.yml"
        graph.write_text("classes:\n  - name: a.A\n    supertypes: [a.Ghost]\n")
        with pytest.raises(LintError, match="Cannot build graph"):
            lint(graph, violating_rules_file)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class TestFormatRich:
    def test_format_with_violations(self) -> None:
        output = format_rich(_result(_dependency_violation(), _layer_violation()))
        assert "✗ no-logic-in-model" in output
        assert "Model must stay independent of logic" in output
        assert "org.app.model.Entry → org.app.logic.Parser" in output
        assert "[Gui → Cli]" in output
        assert "2 violations found" in output

    def test_format_no_violations(self) -> None:
        output = format_rich(_result())
        assert "✓ No violations found" in output
        assert "2 rules evaluated" in output

    def test_summary_line(self) -> None:
        output = format_rich(_result())
        assert "Rules: 2 loaded" in output
        assert "Graph: 6 classes, 4 edges" in output

    def test_per_rule_table(self) -> None:
        output = format_rich(_result(_dependency_violation()))
        table_lines = [line for line in output.splitlines() if "layers" in line]
        assert table_lines
        assert table_lines[-1].rstrip().endswith("0")

    def test_no_color_by_default(self) -> None:
        output = format_rich(_result(_dependency_violation()))
        assert "\x1b[" not in output


class TestFormatJson:
    def test_valid_json_output(self) -> None:
        data = json.loads(format_json(_result(_dependency_violation())))
        assert set(data) == {"violations", "summary"}

    def test_violation_fields(self) -> None:
        data = json.loads(format_json(_result(_layer_violation())))
        (v,) = data["violations"]
        assert v["rule_name"] == "layers"
        assert v["source_layer"] == "Gui"
        assert v["target_layer"] == "Cli"
        assert v["edge_kinds"] == ["dependency"]

    def test_summary_fields(self) -> None:
        data = json.loads(format_json(_result(_dependency_violation(), _layer_violation())))
        summary = data["summary"]
        assert summary["rules_evaluated"] == 2
        assert summary["violations_count"] == 2
        assert summary["classes_analyzed"] == 6
        assert summary["edges_analyzed"] == 4
        assert summary["violations_by_rule"] == {"no-logic-in-model": 1, "layers": 1}


class TestFormatPorcelain:
    def test_one_line_per_violation(self) -> None:
        output = format_porcelain(_result(_dependency_violation(), _layer_violation()))
        assert len(output.splitlines()) == 2

    def test_correct_format(self) -> None:
        output = format_porcelain(_result(_layer_violation()))
        assert output == "layers:layer:org.app.gui.MainFrame:org.app.cli.Launcher:Gui:Cli"

    def test_missing_fields_empty(self) -> None:
        output = format_porcelain(_result(_empty_layer_violation()))
        assert output == "layers:layer:::Web:"

    def test_empty_result(self) -> None:
        assert format_porcelain(_result()) == ""
