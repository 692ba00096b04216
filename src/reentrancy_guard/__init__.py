"""
reentrancy-guard Package.

A static reachability checker proving that no process-wide singleton
transitively exposes mutable state, a precondition for safely sharing one
compiler (or any long-lived service) instance across threads.

Usage
-----

Simple String Check
^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    import reentrancy_guard as rg
    code = '''
    class Registry:
        def __init__(self):
            self.counter = 0

    REGISTRY = Registry()
    '''
    result = rg.check(code)
    for diag in result.diagnostics:
        print(diag.message)

Advanced Usage (Graph API)
^^^^^^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    from reentrancy_guard import ReentrancyChecker, RuntimeConfig
    from reentrancy_guard.frontends.graph_json import load_graph_file

    graph = load_graph_file(Path("graph.json"))
    result = ReentrancyChecker(graph, RuntimeConfig(trace=True)).run()
"""

from typing import Optional

from reentrancy_guard.analysis.reentrancy import CheckResult, ReentrancyChecker
from reentrancy_guard.config import RuntimeConfig
from reentrancy_guard.frontends.python_source import build_graph_from_source

__version__ = "0.1.0"


def check(code: str, module: str = "main", config: Optional[RuntimeConfig] = None) -> CheckResult:
  """
  Checks a string of Python code for mutable state reachable from singletons.

  This is a convenience wrapper around `build_graph_from_source` and
  `ReentrancyChecker`. For multi-file projects use the CLI or
  `build_graph_from_paths`.

  Args:
      code (str): The source code to check.
      module (str): Module name used to qualify class names.
      config (RuntimeConfig, optional): Marker names, activation and trace settings.

  Returns:
      CheckResult: One diagnostic per flagged symbol.

  Raises:
      GraphBuildError: If the code cannot be parsed.
  """
  config = config or RuntimeConfig()
  graph = build_graph_from_source(code, module=module, config=config)
  return ReentrancyChecker(graph, config).run()


__all__ = [
  "CheckResult",
  "ReentrancyChecker",
  "RuntimeConfig",
  "check",
  "__version__",
]
