"""
Violation Ledger.

Accumulates every symbol flagged as reachable mutable state during one checker
run. The ledger only grows; recording the same symbol again is a no-op.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from reentrancy_guard.analysis.model import Symbol, TypeRef


@dataclass(frozen=True)
class Violation:
  """
  A single "reachable mutable state" finding.

  Attributes:
      owner: The class declaring the flagged symbol.
      symbol: The mutable symbol.
      declared_type: The declared type of the symbol, if known.
  """

  owner: Symbol
  symbol: Symbol
  declared_type: Optional[TypeRef] = None


class ViolationLedger:
  """
  Insertion-ordered set of violations keyed by symbol identity.
  """

  def __init__(self) -> None:
    self._entries: Dict[Symbol, Violation] = {}

  def record(self, owner: Symbol, symbol: Symbol, declared_type: Optional[TypeRef]) -> Optional[Violation]:
    """
    Records a violation unless `symbol` is already flagged.

    Args:
        owner: Class declaring the symbol.
        symbol: The flagged mutable symbol.
        declared_type: Its declared type.

    Returns:
        The new Violation, or None if the symbol was already recorded.
    """
    if symbol in self._entries:
      return None
    violation = Violation(owner=owner, symbol=symbol, declared_type=declared_type)
    self._entries[symbol] = violation
    return violation

  def snapshot(self) -> Tuple[Violation, ...]:
    """All recorded violations in first-recorded order."""
    return tuple(self._entries.values())

  def __contains__(self, symbol: object) -> bool:
    return symbol in self._entries

  def __len__(self) -> int:
    return len(self._entries)

  def __iter__(self) -> Iterator[Violation]:
    return iter(self.snapshot())
