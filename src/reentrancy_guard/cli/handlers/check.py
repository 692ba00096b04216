"""
Check Command Handler.

This module implements the `reentrancy-guard check` command.
It orchestrates:
1. Configuration loading (pyproject.toml + CLI overrides).
2. Symbol graph construction from Python sources or JSON graph documents.
3. The reentrancy check over every singleton of the graph.
4. Reporting as log lines plus a summary table, or as JSON.
"""

import json
from pathlib import Path
from typing import List, Optional

from rich.markup import escape
from rich.table import Table

from reentrancy_guard.analysis.model import GraphBuildError, SymbolGraph
from reentrancy_guard.analysis.reentrancy import ReentrancyChecker
from reentrancy_guard.analysis.reporter import log_sink
from reentrancy_guard.config import RuntimeConfig
from reentrancy_guard.frontends.graph_json import GraphDocument, graph_from_document, parse_graph_document
from reentrancy_guard.frontends.python_source import build_graph_from_paths
from reentrancy_guard.utils.console import console, log_error, log_info, log_success, log_warning, set_trace_logging


def search_path(paths: List[Path]) -> Optional[Path]:
  """Directory from which to search for pyproject.toml."""
  if not paths:
    return None
  return paths[0] if paths[0].is_dir() else paths[0].parent


def load_graph(paths: List[Path], config: RuntimeConfig) -> SymbolGraph:
  """
  Builds one symbol graph from the given inputs.

  JSON inputs are merged into a single graph document; anything else is
  treated as Python source (files or directories).

  Args:
      paths: Input files or directories.
      config: Front end settings (markers, singleton decorators, excludes).

  Returns:
      SymbolGraph: The combined graph.

  Raises:
      GraphBuildError: If inputs are missing, mixed, or cannot be parsed.
  """
  missing = [p for p in paths if not p.exists()]
  if missing:
    raise GraphBuildError(f"Path not found: {', '.join(str(p) for p in missing)}")

  json_inputs = [p for p in paths if p.is_file() and p.suffix == ".json"]
  if not json_inputs:
    return build_graph_from_paths(paths, config)
  if len(json_inputs) != len(paths):
    raise GraphBuildError("Cannot mix JSON graph documents with Python sources")

  merged = GraphDocument()
  for path in json_inputs:
    try:
      text = path.read_text("utf-8")
    except OSError as e:
      raise GraphBuildError(f"Failed to read {path}: {e}") from e
    doc = parse_graph_document(text)
    merged.classes.extend(doc.classes)
    merged.aliases.update(doc.aliases)
    merged.static_owners.extend(doc.static_owners)
  return graph_from_document(merged)


def handle_check(
  paths: List[Path],
  trace: Optional[bool] = None,
  severity: Optional[str] = None,
  json_mode: bool = False,
) -> int:
  """
  Checks the inputs for mutable state reachable from singletons.

  Args:
      paths: Python files/directories or JSON graph documents.
      trace: Override for the visitation trace setting.
      severity: Override for the finding severity ('error', 'warning', 'info').
      json_mode: If True, print diagnostics as JSON to stdout and suppress Rich logs.

  Returns:
      int: Exit code (1 if error-severity violations were found or inputs are invalid).
  """
  try:
    config = RuntimeConfig.load(trace=trace, severity=severity, search_path=search_path(paths))
  except ValueError as e:
    log_error(escape(str(e)))
    return 1

  set_trace_logging(config.trace)

  try:
    graph = load_graph(paths, config)
  except GraphBuildError as e:
    log_error(escape(str(e)))
    return 1

  if not config.check_reentrant:
    if not json_mode:
      log_warning("Reentrancy check disabled by configuration (check_reentrant = false).")
    else:
      print("[]")
    return 0

  if not json_mode:
    log_info(f"Checking {len(graph)} classes from {len(graph.static_owners)} singletons...")

  checker = ReentrancyChecker(graph, config, sink=None if json_mode else log_sink)
  result = checker.run()

  if json_mode:
    print(json.dumps([d.model_dump(mode="json") for d in result.diagnostics], indent=2))
    return 0 if result.success else 1

  if result.has_violations:
    table = Table(title="Reachable Mutable State")
    table.add_column("Symbol", style="symbol")
    table.add_column("Type", style="cyan")
    table.add_column("Location", style="path")
    table.add_column("Severity", style="dim")
    for diag in result.diagnostics:
      table.add_row(
        escape(diag.symbol),
        escape(diag.declared_type or "?"),
        escape(diag.location or "-"),
        diag.severity.value,
      )
    console.print(table)

  console.print("[bold]Reentrancy Summary[/bold]")
  console.print(f"Singletons:        {len(result.roots)}")
  console.print(f"Classes scanned:   {len(result.visited_classes)}")
  console.print(f"Violations:        [red]{len(result.diagnostics)}[/red]")

  if result.success:
    log_success("No error-level reachable mutable state found.")
    return 0
  return 1
