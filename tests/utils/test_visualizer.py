"""
Tests for the Symbol Graph Visualizers.

Verifies:
1. Tree rendering of classes, members and markers.
2. Mermaid node and edge generation, including singleton and state styling.
"""

from rich.console import Console

from reentrancy_guard.analysis.model import SymbolGraph
from reentrancy_guard.utils.visualizer import MermaidGenerator, build_graph_tree


def render(renderable) -> str:
  capture = Console(record=True, width=200)
  capture.print(renderable)
  return capture.export_text()


def sample_graph(klass, member):
  holder = klass("Holder", member("total", type_text="int", mutable=True))
  base = klass("Base", annotations=["unshared"])
  registry = klass(
    "Registry",
    member("holder", type_text="Holder"),
    member("items", type_text="list[int]", mutable=True),
    parents=["Base"],
  )
  return SymbolGraph([registry, holder, base], static_owners=[registry.symbol])


def test_tree_lists_classes_and_members(klass, member):
  text = render(build_graph_tree(sample_graph(klass, member)))

  assert "Symbol graph (3 classes, 1 singletons)" in text
  assert "Registry class" in text
  assert "extends Base" in text
  assert "holder: Holder field" in text
  # Type arguments are printed literally, not consumed as markup
  assert "var items: list[int] field" in text
  assert "Base class @unshared" in text


def test_mermaid_structure(klass, member):
  mermaid = MermaidGenerator(sample_graph(klass, member)).generate()

  assert mermaid.startswith("graph TD")
  assert "classDef singleton" in mermaid
  assert '["Registry"]:::singleton' in mermaid
  assert '["Holder"]:::cls' in mermaid
  assert mermaid.count(":::state") == 2
  assert "-->|holder|" in mermaid
  assert "-.->|extends|" in mermaid


def test_mermaid_ids_are_stable(klass, member):
  graph = sample_graph(klass, member)
  assert MermaidGenerator(graph).generate() == MermaidGenerator(graph).generate()


def test_mermaid_empty_graph():
  assert MermaidGenerator(SymbolGraph([])).generate().startswith("graph TD")
