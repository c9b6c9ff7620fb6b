"""Shared test fixtures for Archweave."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from archweave.graph.model import Annotation, ClassSpec, EdgeSpec, Graph, build_graph

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def app_graph() -> Graph:
    """A small application graph with model, logic, gui and cli packages.

    Edges:
    - model.Entry -> logic.Parser (call)       forbidden for model
    - model.Entry -> model.Base (extends)      same package
    - model.Legacy (@AllowedToUseLogic) -> logic.Parser (call)
    - logic.Parser -> model.Entry (field)
    - gui.MainFrame -> logic.Parser (call)
    - gui.MainFrame -> cli.Launcher (call)
    - cli.Launcher -> gui.MainFrame (call)
    - logic.Parser -> java.util.List (field)   external target
    """
    classes = [
        ClassSpec(name="org.app.model.Base"),
        ClassSpec(name="org.app.model.Entry", supertypes=("org.app.model.Base",)),
        ClassSpec(
            name="org.app.model.Legacy",
            annotations=(Annotation(name="org.app.AllowedToUseLogic"),),
        ),
        ClassSpec(name="org.app.logic.Parser"),
        ClassSpec(name="org.app.gui.MainFrame"),
        ClassSpec(name="org.app.cli.Launcher"),
    ]
    edges = [
        EdgeSpec("org.app.model.Entry", "org.app.logic.Parser", "call"),
        EdgeSpec("org.app.model.Entry", "org.app.model.Base", "extends"),
        EdgeSpec("org.app.model.Legacy", "org.app.logic.Parser", "call"),
        EdgeSpec("org.app.logic.Parser", "org.app.model.Entry", "field"),
        EdgeSpec("org.app.gui.MainFrame", "org.app.logic.Parser", "call"),
        EdgeSpec("org.app.gui.MainFrame", "org.app.cli.Launcher", "call"),
        EdgeSpec("org.app.cli.Launcher", "org.app.gui.MainFrame", "call"),
        EdgeSpec("org.app.logic.Parser", "java.util.List", "field"),
    ]
    return build_graph(classes, edges)


GRAPH_YAML = """\
classes:
  - name: org.app.model.Base
  - name: org.app.model.Entry
    supertypes: [org.app.model.Base]
  - name: org.app.model.Legacy
    annotations: [AllowedToUseLogic]
  - name: org.app.logic.Parser
  - name: org.app.gui.MainFrame
  - name: org.app.cli.Launcher
edges:
  - { src: org.app.model.Entry, dst: org.app.logic.Parser, kind: call }
  - { src: org.app.model.Entry, dst: org.app.model.Base, kind: extends }
  - { src: org.app.model.Legacy, dst: org.app.logic.Parser, kind: call }
  - { src: org.app.gui.MainFrame, dst: org.app.cli.Launcher }
"""

CLEAN_RULES_YAML = """\
version: 1
rules:
  - name: gui-not-in-model
    description: Model must not know the GUI
    forbid_dependency:
      that: { package: "org.app.model.." }
      targets:
        - { package: "org.app.gui.." }
"""

VIOLATING_RULES_YAML = """\
version: 1
rules:
  - name: no-logic-in-model
    description: Model must stay independent of logic
    forbid_dependency:
      that: { package: "org.app.model.." }
      except: { annotated_with: AllowedToUseLogic }
      targets:
        - { package: "org.app.logic.." }
  - name: layers
    layers:
      - { name: Gui, packages: ["org.app.gui.."] }
      - { name: Cli, packages: ["org.app.cli.."] }
    access:
      Cli: []
"""


@pytest.fixture()
def graph_file(tmp_path: Path) -> Path:
    """Write the YAML version of the application graph."""
    path = tmp_path / "graph.yml"
    path.write_text(GRAPH_YAML)
    return path


@pytest.fixture()
def clean_rules_file(tmp_path: Path) -> Path:
    path = tmp_path / "rules-clean.yml"
    path.write_text(CLEAN_RULES_YAML)
    return path


@pytest.fixture()
def violating_rules_file(tmp_path: Path) -> Path:
    path = tmp_path / "rules.yml"
    path.write_text(VIOLATING_RULES_YAML)
    return path
