"""
Graph Inspection Handlers.

Implements `reentrancy-guard graph` (render the symbol graph) and
`reentrancy-guard export` (write the graph as a JSON document).
"""

from pathlib import Path
from typing import List, Optional

from rich.markup import escape

from reentrancy_guard.analysis.model import GraphBuildError
from reentrancy_guard.cli.handlers.check import load_graph, search_path
from reentrancy_guard.config import RuntimeConfig
from reentrancy_guard.frontends.graph_json import dump_graph_document
from reentrancy_guard.utils.console import console, log_error, log_success
from reentrancy_guard.utils.visualizer import MermaidGenerator, build_graph_tree


def handle_graph(paths: List[Path], mermaid_out: Optional[Path] = None) -> int:
  """
  Prints the symbol graph as a tree, optionally writing a Mermaid diagram.

  Args:
      paths: Python files/directories or JSON graph documents.
      mermaid_out: Destination for the Mermaid diagram.

  Returns:
      int: Exit code.
  """
  try:
    graph = load_graph(paths, RuntimeConfig.load(search_path=search_path(paths)))
  except (GraphBuildError, ValueError) as e:
    log_error(escape(str(e)))
    return 1

  console.print(build_graph_tree(graph))

  if mermaid_out:
    mermaid_out.write_text(MermaidGenerator(graph).generate(), encoding="utf-8")
    log_success(f"Mermaid diagram written to [path]{escape(str(mermaid_out))}[/path]")
  return 0


def handle_export(paths: List[Path], out: Path) -> int:
  """
  Writes the symbol graph built from the inputs as a JSON document.

  Args:
      paths: Python files/directories (or JSON documents to merge).
      out: Output file.

  Returns:
      int: Exit code.
  """
  try:
    graph = load_graph(paths, RuntimeConfig.load(search_path=search_path(paths)))
  except (GraphBuildError, ValueError) as e:
    log_error(escape(str(e)))
    return 1

  out.write_text(dump_graph_document(graph) + "\n", encoding="utf-8")
  log_success(f"Exported {len(graph)} classes to [path]{escape(str(out))}[/path]")
  return 0