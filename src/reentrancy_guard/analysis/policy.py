"""
Exclusion Policy for the reentrancy check.

A symbol is exempt from the check when it carries the *sharable* marker (safe to
share across threads), the *unshared* marker (never accessed concurrently), or
when it is owned by the enum values holder, whose contents are initialized
eagerly before any use.
"""

from dataclasses import dataclass

from reentrancy_guard.analysis.model import Annotation, Symbol
from reentrancy_guard.config import RuntimeConfig
from reentrancy_guard.enums import SymbolKind


@dataclass(frozen=True)
class ExclusionPolicy:
  """
  Pure predicate deciding whether a symbol is exempt.

  The two marker identities are resolved once and held as plain values.
  """

  sharable: Annotation = Annotation("sharable")
  unshared: Annotation = Annotation("unshared")

  @classmethod
  def from_config(cls, config: RuntimeConfig) -> "ExclusionPolicy":
    """
    Resolves the marker identities named in the configuration.

    Args:
        config: Runtime configuration holding the annotation names.

    Returns:
        ExclusionPolicy: The resolved policy.
    """
    return cls(
      sharable=Annotation(config.sharable_annotation),
      unshared=Annotation(config.unshared_annotation),
    )

  def is_exempt(self, sym: Symbol) -> bool:
    """
    Reports whether `sym` is excluded from the check.

    Args:
        sym: A class or member symbol.

    Returns:
        bool: True if the symbol must be neither visited nor flagged.
    """
    return (
      sym.has_annotation(self.sharable)
      or sym.has_annotation(self.unshared)
      or (sym.owner is not None and sym.owner.kind == SymbolKind.ENUM_VALUES_HOLDER)
    )
