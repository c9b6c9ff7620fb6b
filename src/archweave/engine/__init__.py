"""Engine: evaluator and lint orchestration."""

from archweave.engine.evaluator import ViolationReport, evaluate, evaluate_rule
from archweave.engine.linter import (
    LintError,
    LintResult,
    format_json,
    format_porcelain,
    format_rich,
    lint,
)

__all__ = [
    "LintError",
    "LintResult",
    "ViolationReport",
    "evaluate",
    "evaluate_rule",
    "format_json",
    "format_porcelain",
    "format_rich",
    "lint",
]
