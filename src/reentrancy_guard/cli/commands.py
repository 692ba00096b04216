"""
CLI Command Handlers Facade.

This module re-exports handlers from `reentrancy_guard.cli.handlers` so the
dispatcher (and tests patching it) have a single import location.
"""

from reentrancy_guard.cli.handlers.check import handle_check, load_graph
from reentrancy_guard.cli.handlers.graph import handle_export, handle_graph

__all__ = [
  "handle_check",
  "handle_export",
  "handle_graph",
  "load_graph",
]
