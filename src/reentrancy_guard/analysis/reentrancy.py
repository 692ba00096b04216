"""
Reentrancy Check: Reachability of Mutable State from Singletons.

This module checks that no process-wide singleton transitively exposes mutable
state, a precondition for running one compiler instance concurrently.

Starting from each static owner, the `ReachabilityScanner` walks depth first over:

1.  **Members**: Every declared member in declaration order. Mutable members are
    flagged. Fields and accessors (getters, constructor parameter accessors) are
    followed into the classes their declared type denotes.
2.  **Parents**: Every direct parent class, since inherited state is reachable
    through any subclass instance.

Setters, plain method bodies and members or classes exempted by the
`ExclusionPolicy` are never followed. Known limitations: generic instantiation
with stateful type arguments and array element types go undetected.

Per-run state (visited classes, ledger, indentation depth) lives in an explicit
`TraversalContext`, so independent runs cannot interfere.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, Field

from reentrancy_guard.analysis.ledger import ViolationLedger
from reentrancy_guard.analysis.model import Symbol, SymbolGraph
from reentrancy_guard.analysis.policy import ExclusionPolicy
from reentrancy_guard.analysis.reporter import Diagnostic, DiagnosticReporter, DiagnosticSink
from reentrancy_guard.config import RuntimeConfig
from reentrancy_guard.enums import Severity, SymbolKind


@dataclass
class TraversalContext:
  """
  Mutable state of one checker run, shared across all of its roots.

  Attributes:
      visited: Classes already scanned (insertion-ordered set).
      ledger: Violations found so far.
      depth: Current recursion depth, used for trace indentation.
  """

  visited: Dict[Symbol, None] = field(default_factory=dict)
  ledger: ViolationLedger = field(default_factory=ViolationLedger)
  depth: int = 0


class ReachabilityScanner:
  """
  Depth-first scanner flagging mutable state reachable from a singleton class.
  """

  def __init__(self, graph: SymbolGraph, policy: ExclusionPolicy, reporter: DiagnosticReporter):
    """
    Initializes the scanner.

    Args:
        graph: The read-only symbol graph, also used as the type oracle.
        policy: Exemption rules, consulted before every visit decision.
        reporter: Destination for findings and trace lines.
    """
    self.graph = graph
    self.policy = policy
    self.reporter = reporter

  def scan(self, root: Symbol, ctx: TraversalContext) -> None:
    """
    Visits a singleton's class and everything reachable from it.

    Args:
        root: Class symbol owning a process-wide singleton.
        ctx: Traversal state of the current run.

    Raises:
        ValueError: If `root` is not a class symbol.
    """
    if not root.is_class:
      raise ValueError(f"Scan root must be a class symbol, got {root}")
    self._visit_class(root, ctx)

  @contextmanager
  def _scanning(self, sym: Symbol, ctx: TraversalContext) -> Iterator[None]:
    self.reporter.trace(sym, ctx.depth)
    ctx.depth += 1
    try:
      yield
    finally:
      ctx.depth -= 1

  def _visit_class(self, cls: Symbol, ctx: TraversalContext) -> None:
    if cls in ctx.visited or self.policy.is_exempt(cls):
      return
    # Mark before recursing: a class may reach itself through members or parents
    ctx.visited[cls] = None
    with self._scanning(cls, ctx):
      for sym in self.graph.members(cls):
        self._visit_member(cls, sym, ctx)
      for parent in self.graph.parent_classes(cls):
        self._visit_class(parent, ctx)

  def _visit_member(self, cls: Symbol, sym: Symbol, ctx: TraversalContext) -> None:
    kind = sym.kind
    if kind == SymbolKind.SETTER or self.policy.is_exempt(sym):
      return

    if kind in (SymbolKind.CLASS, SymbolKind.ENUM_VALUES_HOLDER, SymbolKind.OTHER):
      # Nested classes and non-term members are not part of the instance state
      return

    if sym.mutable:
      violation = ctx.ledger.record(cls, sym, sym.declared_type)
      if violation is not None:
        self.reporter.report(violation)
      return

    if kind in (SymbolKind.FIELD, SymbolKind.ACCESSOR, SymbolKind.PARAM_ACCESSOR):
      with self._scanning(sym, ctx):
        for target in self.graph.class_symbols(sym.declared_type):
          self._visit_class(target, ctx)
    elif kind == SymbolKind.METHOD:
      return
    else:
      raise ValueError(f"Unhandled symbol kind: {kind}")


class CheckResult(BaseModel):
  """
  Outcome of one checker run.
  """

  enabled: bool = Field(True, description="False if the check was disabled by configuration.")
  roots: List[str] = Field(default_factory=list, description="Qualified names of the scanned singleton classes.")
  visited_classes: List[str] = Field(default_factory=list, description="Classes scanned, in visiting order.")
  diagnostics: List[Diagnostic] = Field(default_factory=list, description="One diagnostic per flagged symbol.")

  @property
  def has_violations(self) -> bool:
    return len(self.diagnostics) > 0

  @property
  def success(self) -> bool:
    """
    True unless an error-severity diagnostic was produced.

    Returns:
        bool: False if the result should block the build.
    """
    return not any(d.severity == Severity.ERROR for d in self.diagnostics)


class ReentrancyChecker:
  """
  Driver running the scanner over every static owner of a graph.
  """

  def __init__(
    self,
    graph: SymbolGraph,
    config: Optional[RuntimeConfig] = None,
    sink: Optional[DiagnosticSink] = None,
  ):
    """
    Initializes the checker.

    Args:
        graph: The symbol graph to check.
        config: Runtime configuration. Defaults are used if None.
        sink: Optional destination for diagnostics as they are found.
    """
    self.graph = graph
    self.config = config or RuntimeConfig()
    self.policy = ExclusionPolicy.from_config(self.config)
    self.sink = sink

  def run(self, roots: Optional[Iterable[Symbol]] = None) -> CheckResult:
    """
    Scans the given roots (default: the graph's static owners).

    All roots share one traversal context, so common ancestors are scanned once.

    Args:
        roots: Class symbols to start from.

    Returns:
        CheckResult: Diagnostics and visitation summary.
    """
    if not self.config.check_reentrant:
      return CheckResult(enabled=False)

    root_list = list(self.graph.static_owners if roots is None else roots)
    reporter = DiagnosticReporter(
      sink=self.sink,
      severity=self.config.severity,
      trace_enabled=self.config.trace,
    )
    scanner = ReachabilityScanner(self.graph, self.policy, reporter)
    ctx = TraversalContext()

    for root in root_list:
      scanner.scan(root, ctx)

    return CheckResult(
      roots=[r.qualified_name for r in root_list],
      visited_classes=[c.qualified_name for c in ctx.visited],
      diagnostics=reporter.diagnostics,
    )
