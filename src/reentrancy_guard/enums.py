"""
Enumerations for reentrancy-guard.

This module defines the closed vocabularies shared across the codebase:
symbol kinds of the graph model, diagnostic severities, and the structural
forms a declared type can take.
"""

from enum import Enum


class SymbolKind(str, Enum):
  """
  Closed classification of graph symbols.

  The scanner matches on this tag exhaustively instead of re-deriving the
  category from loose flag combinations.
  """

  CLASS = "class"
  ENUM_VALUES_HOLDER = "enum_values_holder"  # Eagerly initialized enum container
  FIELD = "field"
  METHOD = "method"
  ACCESSOR = "accessor"  # Parameterless getter (property)
  PARAM_ACCESSOR = "param_accessor"  # Reads a constructor parameter
  SETTER = "setter"
  OTHER = "other"

  @property
  def is_class(self) -> bool:
    """True for kinds describing a class (including the enum holder)."""
    return self in (SymbolKind.CLASS, SymbolKind.ENUM_VALUES_HOLDER)

  @property
  def is_method(self) -> bool:
    """True for kinds that carry the `method` flag."""
    return self in (
      SymbolKind.METHOD,
      SymbolKind.ACCESSOR,
      SymbolKind.PARAM_ACCESSOR,
      SymbolKind.SETTER,
    )

  @property
  def label(self) -> str:
    """Human readable noun used in diagnostics."""
    return _KIND_LABELS[self]


_KIND_LABELS = {
  SymbolKind.CLASS: "class",
  SymbolKind.ENUM_VALUES_HOLDER: "enum",
  SymbolKind.FIELD: "field",
  SymbolKind.METHOD: "method",
  SymbolKind.ACCESSOR: "accessor",
  SymbolKind.PARAM_ACCESSOR: "parameter accessor",
  SymbolKind.SETTER: "setter",
  SymbolKind.OTHER: "symbol",
}


class Severity(str, Enum):
  """
  Severity attached to emitted diagnostics.

  The checker always produces ERROR; hosts may downgrade via configuration.
  """

  ERROR = "error"
  WARNING = "warning"
  INFO = "info"


class TypeForm(str, Enum):
  """
  Structural forms of a declared type reference.
  """

  NAMED = "named"
  UNION = "union"
  INTERSECTION = "intersection"
  APPLIED = "applied"  # Generic application, arguments are not followed
  ARRAY = "array"  # Element types are not followed
