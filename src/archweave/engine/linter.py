"""Linter orchestrator: load graph and rules, evaluate, format results."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archweave.engine.evaluator import ViolationReport, evaluate
from archweave.graph.loader import load_graph
from archweave.graph.model import GraphBuildError
from archweave.rules.loader import load_rules
from archweave.rules.predicates import RuleConfigurationError

if TYPE_CHECKING:
    from pathlib import Path

    from archweave.rules.combinators import Violation

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class LintError(Exception):
    """Raised when the graph or the rules cannot be loaded."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class LintResult:
    """Result of a lint run."""

    report: ViolationReport = field(default_factory=ViolationReport)
    elapsed_ms: float = 0.0

    @property
    def violations(self) -> tuple[Violation, ...]:
        return self.report.violations

    @property
    def rules_evaluated(self) -> int:
        return self.report.rules_evaluated


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def lint(
    graph_path: Path,
    rules_path: Path,
    *,
    workers: int | None = None,
) -> LintResult:
    """Run the lint process: load the graph, load rules, evaluate, and return results.

    Parameters
    ----------
    graph_path:
        A YAML graph description, or a directory of ``*.yml`` descriptions.
    rules_path:
        Path to ``rules.yml``.
    workers:
        Thread count for rule evaluation (``None`` = sequential).

    Raises
    ------
    LintError
        When the graph cannot be built or the rules are misconfigured.
        Nothing is evaluated in that case.
    """
    start = time.monotonic()

    # Rules are validated before the graph is touched.
    try:
        rules = load_rules(rules_path)
    except RuleConfigurationError as exc:
        msg = f"Invalid rules configuration: {exc}"
        raise LintError(msg) from exc

    try:
        graph = load_graph(graph_path)
    except GraphBuildError as exc:
        msg = f"Cannot build graph: {exc}"
        raise LintError(msg) from exc

    report = evaluate(graph, rules, workers=workers)
    elapsed = (time.monotonic() - start) * 1000
    logger.debug("Lint finished in %.1f ms", elapsed)
    return LintResult(report=report, elapsed_ms=elapsed)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_rich(result: LintResult, *, color: bool = False, width: int = 120) -> str:
    """Render a LintResult with rich: one block per violation, then a per-rule table.

    Example output with violations::

        Rules: 2 loaded   Graph: 25 classes, 142 edges

        ✗ no-logic-in-model
          Model must stay independent of logic
          org.app.model.Entry → org.app.logic.Parser
          Class 'org.app.model.Entry' depends on ...

         Rule                  Type        Violations
         no-logic-in-model     dependency  1
         layers                layer       0

        1 violations found (2 rules evaluated, 0.0s)
    """
    from io import StringIO

    from rich.console import Console
    from rich.table import Table
    from rich.text import Text

    report = result.report
    buf = StringIO()
    console = Console(
        file=buf,
        force_terminal=color,
        no_color=not color,
        width=width,
        highlight=False,
    )

    console.print(
        f"Rules: [bold]{report.rules_evaluated}[/] loaded   "
        f"Graph: [bold]{report.classes_analyzed}[/] classes, "
        f"[bold]{report.edges_analyzed}[/] edges"
    )
    console.print()

    elapsed_str = f"{result.elapsed_ms / 1000:.1f}s"

    if not report.violations:
        console.print(
            f"[green]✓ No violations found[/] "
            f"({report.rules_evaluated} rules evaluated, {elapsed_str})"
        )
        return buf.getvalue().rstrip("\n")

    rule_types: dict[str, str] = {}
    for v in report.violations:
        rule_types.setdefault(v.rule_name, v.rule_type)
        header = Text()
        header.append("✗ ", style="bold red")
        header.append(v.rule_name, style="bold")
        console.print(header)
        if v.rule_description:
            console.print(Text(f"  {v.rule_description}", style="dim"))
        if v.source is not None and v.target is not None:
            loc = f"{v.source} → {v.target}"
            if v.source_layer is not None:
                loc += f"  [{v.source_layer} → {v.target_layer}]"
            console.print(Text(f"  {loc}", style="cyan"))
        console.print(Text(f"  {v.message}"))
        console.print()

    table = Table(box=None, padding=(0, 1))
    table.add_column("Rule", style="bold")
    table.add_column("Type")
    table.add_column("Violations", justify="right")
    for name, items in report.by_rule().items():
        table.add_row(name, rule_types.get(name, ""), str(len(items)))
    console.print(table)
    console.print()

    console.print(
        f"[bold red]{len(report)} violations found[/] "
        f"({report.rules_evaluated} rules evaluated, {elapsed_str})"
    )
    return buf.getvalue().rstrip("\n")


def format_json(result: LintResult) -> str:
    """Format a LintResult as structured JSON with ``violations`` and ``summary``."""
    report = result.report
    violations_list: list[dict[str, object]] = []
    for v in report.violations:
        violations_list.append(
            {
                "rule_name": v.rule_name,
                "rule_type": v.rule_type,
                "source": v.source,
                "target": v.target,
                "source_layer": v.source_layer,
                "target_layer": v.target_layer,
                "edge_kinds": list(v.edge_kinds),
                "message": v.message,
            }
        )

    output: dict[str, object] = {
        "violations": violations_list,
        "summary": {
            "rules_evaluated": report.rules_evaluated,
            "violations_count": len(report),
            "classes_analyzed": report.classes_analyzed,
            "edges_analyzed": report.edges_analyzed,
            "violations_by_rule": {
                name: len(items) for name, items in report.by_rule().items()
            },
            "elapsed_ms": result.elapsed_ms,
        },
    }

    return json.dumps(output, indent=2)


def format_porcelain(result: LintResult) -> str:
    """Format a LintResult as one line per violation.

    Format: ``rule_name:rule_type:source:target:source_layer:target_layer``

    Missing fields are empty strings.  Returns an empty string when there
    are no violations.
    """
    if not result.violations:
        return ""

    lines: list[str] = []
    for v in result.violations:
        fields = (
            v.rule_name,
            v.rule_type,
            v.source or "",
            v.target or "",
            v.source_layer or "",
            v.target_layer or "",
        )
        lines.append(":".join(fields))

    return "\n".join(lines)
