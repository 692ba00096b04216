"""
Main Entry Point for reentrancy-guard CLI.

This module handles argument parsing and dispatches to specific command
handlers defined in `reentrancy_guard.cli.commands`.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from reentrancy_guard.cli import commands
from reentrancy_guard.enums import Severity
from reentrancy_guard import __version__


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Parses arguments via argparse and calls the appropriate handler function.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, non-zero for failure).
  """
  parser = argparse.ArgumentParser(description="reentrancy-guard: Mutable state reachability checker")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: CHECK ---
  cmd_check = subparsers.add_parser("check", help="Report mutable state reachable from singletons")
  cmd_check.add_argument("paths", type=Path, nargs="+", help="Python files/directories or JSON graph documents")
  cmd_check.add_argument(
    "--trace",
    action="store_true",
    default=None,
    help="Log every visited symbol, indented by depth (Overrides config)",
  )
  cmd_check.add_argument(
    "--severity",
    choices=[s.value for s in Severity],
    default=None,
    help="Severity of findings. Only 'error' fails the run (Overrides config)",
  )
  cmd_check.add_argument("--json", action="store_true", help="Print diagnostics as JSON")

  # --- Command: GRAPH ---
  cmd_graph = subparsers.add_parser("graph", help="Show the symbol graph as a tree")
  cmd_graph.add_argument("paths", type=Path, nargs="+", help="Python files/directories or JSON graph documents")
  cmd_graph.add_argument("--mermaid", type=Path, default=None, help="Also write a Mermaid diagram to this file")

  # --- Command: EXPORT ---
  cmd_export = subparsers.add_parser("export", help="Write the symbol graph as a JSON document")
  cmd_export.add_argument("paths", type=Path, nargs="+", help="Python files or directories")
  cmd_export.add_argument("--out", type=Path, required=True, help="Output JSON file")

  args = parser.parse_args(argv)

  if args.command == "check":
    return commands.handle_check(args.paths, args.trace, args.severity, args.json)

  elif args.command == "graph":
    return commands.handle_graph(args.paths, args.mermaid)

  elif args.command == "export":
    return commands.handle_export(args.paths, args.out)

  return 0


if __name__ == "__main__":
  sys.exit(main())
