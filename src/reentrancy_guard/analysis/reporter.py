"""
Diagnostic Reporter for the reentrancy check.

Renders each violation as a located, human-readable `Diagnostic` and forwards it
to a sink accepting `(severity, location, message)`. A separately toggled trace
channel emits one indented line per visited symbol for operator debugging.
"""

import logging
from typing import Callable, List, Optional

from pydantic import BaseModel, Field
from rich.markup import escape

from reentrancy_guard.analysis.ledger import Violation
from reentrancy_guard.analysis.model import SourceLocation, Symbol
from reentrancy_guard.enums import Severity
from reentrancy_guard.utils.console import TRACE_LOGGER_NAME

DiagnosticSink = Callable[[Severity, Optional[SourceLocation], str], None]

_trace_logger = logging.getLogger(TRACE_LOGGER_NAME)

_SEVERITY_LEVELS = {
  Severity.ERROR: logging.ERROR,
  Severity.WARNING: logging.WARNING,
  Severity.INFO: logging.INFO,
}


class Diagnostic(BaseModel):
  """
  A rendered finding.
  """

  severity: Severity = Field(Severity.ERROR, description="Severity of the finding.")
  location: Optional[str] = Field(None, description="'path:line:column' of the flagged symbol, if known.")
  message: str = Field(..., description="Human readable explanation.")
  symbol: str = Field(..., description="Qualified name of the flagged symbol.")
  declared_type: Optional[str] = Field(None, description="Declared type of the flagged symbol.")


def render_message(violation: Violation) -> str:
  """
  Builds the message text for a violation.

  Args:
      violation: The recorded finding.

  Returns:
      str: Two-line message naming the symbol and its type, plus a hint.
  """
  sym = violation.symbol
  type_text = str(violation.declared_type) if violation.declared_type is not None else "<unknown>"
  return (
    f"possible data race involving globally reachable {sym.show_located()}: {type_text}\n"
    f"  use --trace to find out more about why the {sym.kind.label} is reachable."
  )


def log_sink(severity: Severity, location: Optional[SourceLocation], message: str) -> None:
  """
  Default sink writing diagnostics to standard logging.

  Args:
      severity: Diagnostic severity.
      location: Source position, if known.
      message: Rendered message.
  """
  prefix = f"{location}: " if location else ""
  logging.log(_SEVERITY_LEVELS[severity], escape(f"{prefix}{message}"), extra={"markup": True})


class DiagnosticReporter:
  """
  Emits diagnostics for violations and optional visitation trace lines.

  Attributes:
      diagnostics (List[Diagnostic]): Every diagnostic reported so far, in order.
  """

  def __init__(
    self,
    sink: Optional[DiagnosticSink] = None,
    severity: Severity = Severity.ERROR,
    trace_enabled: bool = False,
  ):
    """
    Initializes the reporter.

    Args:
        sink: Destination for `(severity, location, message)`. None keeps
            diagnostics in memory only.
        severity: Severity stamped on every finding.
        trace_enabled: If True, `trace` writes to the trace logger.
    """
    self.sink = sink
    self.severity = severity
    self.trace_enabled = trace_enabled
    self.diagnostics: List[Diagnostic] = []

  def report(self, violation: Violation) -> Diagnostic:
    """
    Renders and emits one violation.

    Args:
        violation: The finding to report.

    Returns:
        Diagnostic: The rendered record.
    """
    sym = violation.symbol
    message = render_message(violation)
    diagnostic = Diagnostic(
      severity=self.severity,
      location=str(sym.location) if sym.location else None,
      message=message,
      symbol=sym.qualified_name,
      declared_type=str(violation.declared_type) if violation.declared_type is not None else None,
    )
    self.diagnostics.append(diagnostic)
    if self.sink is not None:
      self.sink(self.severity, sym.location, message)
    return diagnostic

  def trace(self, symbol: Symbol, depth: int) -> None:
    """
    Emits one trace line for a visited symbol, indented by recursion depth.

    Args:
        symbol: The symbol being scanned.
        depth: Current recursion depth.
    """
    if self.trace_enabled:
      _trace_logger.debug(escape(f"{'  ' * depth}scanning {symbol}"), extra={"markup": True})
