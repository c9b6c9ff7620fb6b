"""Archweave CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from archweave import __version__


@click.group()
@click.version_option(version=__version__, prog_name="archweave")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Archweave - architecture conformance checks over a class dependency graph."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@main.command()
@click.option(
    "--graph",
    "graph_path",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Graph description: a YAML file or a directory of *.yml files.",
)
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Rules file (rules.yml).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Evaluate rules on this many threads.",
)
@click.pass_context
def check(
    ctx: click.Context,
    *,
    graph_path: Path,
    rules_path: Path,
    fmt: str | None,
    workers: int | None,
) -> None:
    """Evaluate architecture rules against a dependency graph.

    Violations are printed to stderr.
    Exit codes: 0 = no violations, 1 = violations found,
    2 = configuration or graph error.
    """
    from archweave.engine.linter import LintError
    from archweave.engine.linter import format_json as _format_json
    from archweave.engine.linter import format_porcelain as _format_porcelain
    from archweave.engine.linter import format_rich as _format_rich
    from archweave.engine.linter import lint as run_lint

    # Resolve output format: explicit flag > TTY detection.
    if fmt is None:
        fmt = "rich" if sys.stderr.isatty() else "porcelain"

    try:
        result = run_lint(graph_path, rules_path, workers=workers)
    except LintError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if fmt == "rich":
        output = _format_rich(result, color=sys.stderr.isatty())
    elif fmt == "json":
        output = _format_json(result)
    else:
        output = _format_porcelain(result)

    if result.violations:
        click.echo(output, err=True)
        sys.exit(1)

    quiet = bool(ctx.obj and ctx.obj.get("quiet"))
    if output and not quiet:
        click.echo(output)


@main.command()
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Rules file (rules.yml).",
)
@click.option(
    "--graph",
    "graph_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Optionally also build the graph description.",
)
def validate(*, rules_path: Path, graph_path: Path | None) -> None:
    """Check that the rules (and optionally the graph) load without evaluating them.

    Exit codes: 0 = valid, 2 = configuration or graph error.
    """
    from archweave.graph.loader import load_graph
    from archweave.graph.model import GraphBuildError
    from archweave.rules.loader import load_rules
    from archweave.rules.predicates import RuleConfigurationError

    try:
        rules = load_rules(rules_path)
    except RuleConfigurationError as exc:
        click.echo(f"Error: Invalid rules configuration: {exc}", err=True)
        sys.exit(2)

    click.echo(f"Rules: {len(rules)} valid ({', '.join(rules.names) or 'none'})")

    if graph_path is not None:
        try:
            graph = load_graph(graph_path)
        except GraphBuildError as exc:
            click.echo(f"Error: Cannot build graph: {exc}", err=True)
            sys.exit(2)
        click.echo(f"Graph: {len(graph)} classes, {len(graph.all_edges())} edges")
