"""
Tests for JSON Symbol Graph Documents.

Verifies schema validation, graph construction, and export of source-built graphs.
"""

import json
import textwrap
from pathlib import Path

import pytest

from reentrancy_guard.analysis.model import GraphBuildError
from reentrancy_guard.analysis.reentrancy import ReentrancyChecker
from reentrancy_guard.enums import SymbolKind
from reentrancy_guard.frontends.graph_json import (
  dump_graph_document,
  load_graph_file,
  parse_graph_document,
  graph_from_document,
)
from reentrancy_guard.frontends.python_source import build_graph_from_source

DOCUMENT = {
  "classes": [
    {
      "name": "app.Registry",
      "parents": ["app.Base"],
      "members": [
        {"name": "counter", "type": "int"},
        {"name": "h", "kind": "param_accessor", "type": "app.H"},
        {"name": "run", "kind": "method", "type": "app.Other"},
      ],
    },
    {
      "name": "app.Holder",
      "members": [{"name": "total", "type": "int", "mutable": True, "location": {"path": "h.py", "line": 4}}],
    },
    {"name": "app.Base", "annotations": ["@unshared"], "members": [{"name": "x", "mutable": True}]},
    {"name": "app.Other", "members": [{"name": "y", "mutable": True}]},
  ],
  "aliases": {"app.H": "app.Holder"},
  "static_owners": ["app.Registry"],
}


@pytest.fixture
def graph_file(tmp_path: Path) -> Path:
  path = tmp_path / "graph.json"
  path.write_text(json.dumps(DOCUMENT))
  return path


def test_load_and_check(graph_file: Path):
  graph = load_graph_file(graph_file)

  result = ReentrancyChecker(graph).run()

  assert [d.symbol for d in result.diagnostics] == ["app.Holder.total"]
  assert result.diagnostics[0].location == "h.py:4:1"
  assert result.visited_classes == ["app.Registry", "app.Holder"]


def test_markers_have_at_prefix_stripped(graph_file: Path):
  graph = load_graph_file(graph_file)
  base = graph.lookup("app.Base")
  assert {a.name for a in base.annotations} == {"unshared"}


@pytest.mark.parametrize(
  "doc, message",
  [
    ({"classes": [{"name": "A", "color": "red"}]}, "Invalid graph document"),
    ({"classes": [{"name": "A", "kind": "field"}]}, "Invalid graph document"),
    ({"classes": [{"name": "A", "members": [{"name": "B", "kind": "class"}]}]}, "Invalid graph document"),
    ({"classes": [{"name": "A", "members": [{"name": "x", "kind": "widget"}]}]}, "Invalid graph document"),
    ({"classes": [{"name": "A", "members": [{"name": "x", "kind": "other", "mutable": True}]}]}, "cannot be mutable"),
    ({"classes": [{"name": "A"}, {"name": "B.C", "owner": "A"}]}, "must be named"),
  ],
)
def test_schema_violations(doc, message):
  with pytest.raises(GraphBuildError, match=message):
    parse_graph_document(json.dumps(doc))


def test_not_json():
  with pytest.raises(GraphBuildError):
    parse_graph_document("{not json")


def test_invalid_type_text():
  doc = parse_graph_document(json.dumps({"classes": [{"name": "A", "members": [{"name": "x", "type": "1 +"}]}]}))
  with pytest.raises(GraphBuildError, match="Invalid type"):
    graph_from_document(doc)


def test_unknown_static_owner():
  doc = parse_graph_document(json.dumps({"classes": [{"name": "A"}], "static_owners": ["B"]}))
  with pytest.raises(GraphBuildError, match="Unknown static owner"):
    graph_from_document(doc)


def test_duplicate_class():
  doc = parse_graph_document(json.dumps({"classes": [{"name": "A"}, {"name": "A"}]}))
  with pytest.raises(GraphBuildError, match="Duplicate"):
    graph_from_document(doc)


def test_nested_class_gets_its_owner():
  doc = parse_graph_document(
    json.dumps(
      {
        "classes": [
          {"name": "app.Color.Meta", "owner": "app.Color", "members": [{"name": "hits", "mutable": True}]},
          {"name": "app.Color", "kind": "enum_values_holder"},
        ]
      }
    )
  )
  graph = graph_from_document(doc)

  meta = graph.lookup("app.Color.Meta")
  assert meta.name == "Meta"
  assert meta.owner is graph.lookup("app.Color")


def test_unknown_owner():
  doc = parse_graph_document(json.dumps({"classes": [{"name": "A.B", "owner": "A"}]}))
  with pytest.raises(GraphBuildError, match="Unknown owner"):
    graph_from_document(doc)


def test_missing_file(tmp_path: Path):
  with pytest.raises(GraphBuildError, match="Failed to read"):
    load_graph_file(tmp_path / "absent.json")


def test_exported_source_graph_checks_the_same(tmp_path: Path):
  code = textwrap.dedent(
    """
    import enum

    class Color(enum.Enum):
        RED = 1

    class Holder:
        total: int = 0

    class Registry:
        class Inner:
            flag: bool = False

        def __init__(self, holder: Holder):
            self._holder = holder

        @property
        def holder(self) -> Holder:
            return self._holder

    REGISTRY = Registry(Holder())
    """
  )
  graph = build_graph_from_source(code, module="app")
  out = tmp_path / "graph.json"
  out.write_text(dump_graph_document(graph))

  data = json.loads(out.read_text())
  registry = next(c for c in data["classes"] if c["name"] == "app.Registry")
  assert [m["name"] for m in registry["members"]] == ["Inner", "__init__", "_holder", "holder"]
  assert {c["name"]: c.get("owner") for c in data["classes"]}["app.Registry.Inner"] == "app.Registry"
  assert {c["name"]: c["kind"] for c in data["classes"]}["app.Color"] == SymbolKind.ENUM_VALUES_HOLDER.value
  assert data["static_owners"] == ["app.Registry"]

  original = ReentrancyChecker(graph).run()
  reloaded = ReentrancyChecker(load_graph_file(out)).run()
  assert [d.model_dump() for d in reloaded.diagnostics] == [d.model_dump() for d in original.diagnostics]
  assert reloaded.visited_classes == original.visited_classes


def test_class_nested_in_enum_stays_exempt_after_export(tmp_path: Path):
  code = textwrap.dedent(
    """
    from enum import Enum
    from typing import Final

    class Color(Enum):
        RED = 1

        class Meta:
            hits = 0

    class Registry:
        m: Final["Color.Meta"]

    REGISTRY = Registry()
    """
  )
  graph = build_graph_from_source(code, module="main")
  out = tmp_path / "graph.json"
  out.write_text(dump_graph_document(graph))

  data = json.loads(out.read_text())
  assert {c["name"]: c.get("owner") for c in data["classes"]}["main.Color.Meta"] == "main.Color"

  original = ReentrancyChecker(graph).run()
  reloaded = ReentrancyChecker(load_graph_file(out)).run()
  assert original.diagnostics == []
  assert reloaded.diagnostics == []
  assert reloaded.visited_classes == original.visited_classes == ["main.Registry"]
