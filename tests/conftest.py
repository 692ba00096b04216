"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Console capture so CLI/log output can be asserted.
- Builders for small hand-made symbol graphs.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

import pytest
from rich.console import Console

# Add src to path so we can import 'reentrancy_guard' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from reentrancy_guard.analysis.model import Annotation, ClassInfo, Symbol, TypeRef  # noqa: E402
from reentrancy_guard.enums import SymbolKind  # noqa: E402
from reentrancy_guard.frontends.types import parse_type  # noqa: E402
from reentrancy_guard.utils.console import TRACE_LOGGER_NAME, reset_console, set_console  # noqa: E402


@pytest.fixture
def captured_console():
  """
  Routes console and logging output to a recording console.

  Yields:
      Console: Call `export_text()` to read what was printed.
  """
  capture = Console(record=True, width=200)
  set_console(capture)
  yield capture
  reset_console()


@pytest.fixture(autouse=True)
def reset_trace_logger():
  """Keeps the trace logger level from leaking between tests."""
  yield
  logging.getLogger(TRACE_LOGGER_NAME).setLevel(logging.NOTSET)


def _markers(names: Iterable[str]) -> frozenset:
  return frozenset(Annotation(n) for n in names)


def make_member(
  name: str,
  kind: SymbolKind = SymbolKind.FIELD,
  type_text: Optional[str] = None,
  mutable: bool = False,
  annotations: Iterable[str] = (),
) -> dict:
  """Describes a member; `make_class` creates the symbol with the right owner."""
  return dict(
    name=name,
    kind=kind,
    declared_type=parse_type(type_text) if type_text else None,
    mutable=mutable,
    annotations=_markers(annotations),
  )


def make_class(
  name: str,
  *members: dict,
  parents: Iterable[str] = (),
  annotations: Iterable[str] = (),
  kind: SymbolKind = SymbolKind.CLASS,
) -> ClassInfo:
  """Builds a ClassInfo whose members are owned by the new class symbol."""
  cls = Symbol(name=name, kind=kind, annotations=_markers(annotations))
  return ClassInfo(
    symbol=cls,
    members=tuple(Symbol(owner=cls, **m) for m in members),
    parents=tuple(TypeRef.named(p) for p in parents),
  )


@pytest.fixture
def member():
  return make_member


@pytest.fixture
def klass():
  return make_class
