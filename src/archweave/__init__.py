"""Archweave: architecture-conformance rule engine over class dependency graphs."""

__version__ = "0.4.0"
