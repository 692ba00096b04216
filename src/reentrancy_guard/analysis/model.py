"""
Symbol Graph Model.

Immutable description of the elaborated program that the reentrancy check runs
over. Front ends (`reentrancy_guard.frontends`) build a `SymbolGraph` once; the
checker only reads it.

The model consists of:

1.  **Symbol**: A named entity (class, field, method, accessor, ...) with an owner
    back-reference, a declared type, a mutability flag and attached annotations.
    Symbols hash by identity, so two distinct symbols with equal names never merge.
2.  **ClassInfo**: The declared members and the parent references of a class.
3.  **TypeRef**: A structural declared type. `SymbolGraph.class_symbols` widens a
    type to the underlying class symbols it denotes.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from reentrancy_guard.enums import SymbolKind, TypeForm


class GraphBuildError(ValueError):
  """
  Raised when a symbol graph cannot be constructed from its input.
  """


@dataclass(frozen=True)
class SourceLocation:
  """
  Position of a declaration in its source file (1-based line and column).
  """

  path: str
  line: int
  column: int = 1

  def __str__(self) -> str:
    return f"{self.path}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Annotation:
  """
  A marker attached to a symbol. Only its identity (name) is relevant.
  """

  name: str

  def __str__(self) -> str:
    return f"@{self.name}"


@dataclass(frozen=True)
class TypeRef:
  """
  Structural reference to a declared type.

  Attributes:
      form: The structural form (named, union, ...).
      name: Qualified name for NAMED types, base name for APPLIED types.
      args: Member types (UNION/INTERSECTION), type arguments (APPLIED)
          or the element type (ARRAY).
  """

  form: TypeForm
  name: str = ""
  args: Tuple["TypeRef", ...] = ()

  @classmethod
  def named(cls, name: str) -> "TypeRef":
    return cls(TypeForm.NAMED, name)

  @classmethod
  def union(cls, *members: "TypeRef") -> "TypeRef":
    return cls(TypeForm.UNION, args=tuple(members))

  @classmethod
  def intersection(cls, *members: "TypeRef") -> "TypeRef":
    return cls(TypeForm.INTERSECTION, args=tuple(members))

  @classmethod
  def applied(cls, base: str, *args: "TypeRef") -> "TypeRef":
    return cls(TypeForm.APPLIED, base, tuple(args))

  @classmethod
  def array(cls, element: "TypeRef") -> "TypeRef":
    return cls(TypeForm.ARRAY, args=(element,))

  def __str__(self) -> str:
    if self.form == TypeForm.NAMED:
      return self.name
    if self.form == TypeForm.UNION:
      return " | ".join(str(a) for a in self.args)
    if self.form == TypeForm.INTERSECTION:
      return " & ".join(str(a) for a in self.args)
    if self.form == TypeForm.APPLIED:
      if not self.args:
        return self.name
      return f"{self.name}[{', '.join(str(a) for a in self.args)}]"
    return f"Array[{self.args[0]}]"


@dataclass(frozen=True, eq=False)
class Symbol:
  """
  A named entity of the program.

  Symbols compare and hash by identity. The `owner` is a back-reference to the
  enclosing class used for diagnostics; a symbol never owns its owner.
  """

  name: str
  kind: SymbolKind
  owner: Optional["Symbol"] = field(default=None, repr=False)
  declared_type: Optional[TypeRef] = None
  mutable: bool = False
  annotations: FrozenSet[Annotation] = frozenset()
  location: Optional[SourceLocation] = None

  @property
  def is_method(self) -> bool:
    return self.kind.is_method

  @property
  def is_class(self) -> bool:
    return self.kind.is_class

  @property
  def qualified_name(self) -> str:
    """Dotted name through the owner chain (e.g. `app.Registry.counter`)."""
    if self.owner is None:
      return self.name
    return f"{self.owner.qualified_name}.{self.name}"

  def has_annotation(self, annotation: Annotation) -> bool:
    return annotation in self.annotations

  def show_located(self) -> str:
    """
    Describes the symbol together with its owner, e.g. `field counter in class Registry`.
    """
    text = f"{self.kind.label} {self.name}"
    if self.owner is not None:
      text += f" in {self.owner.kind.label} {self.owner.qualified_name}"
    return text

  def __str__(self) -> str:
    return f"{self.kind.label} {self.qualified_name}"


@dataclass(frozen=True)
class ClassInfo:
  """
  Declared members and direct parents of a class-kind symbol.

  Member order is declaration order and only matters for deterministic
  diagnostic ordering.
  """

  symbol: Symbol
  members: Tuple[Symbol, ...] = ()
  parents: Tuple[TypeRef, ...] = ()


class SymbolGraph:
  """
  Read-only graph of classes, their members and inheritance edges.

  Also acts as the type oracle for the scanner: `class_symbols` maps a
  declared type to the class symbols it denotes, seeing through aliases,
  unions and intersections.
  """

  def __init__(
    self,
    classes: Iterable[ClassInfo],
    aliases: Optional[Mapping[str, TypeRef]] = None,
    static_owners: Iterable[Symbol] = (),
  ):
    """
    Initializes the graph.

    Args:
        classes: Class descriptions. Each symbol must be class-kind and unique by
            qualified name.
        aliases: Type alias table (qualified alias name -> aliased type).
        static_owners: Class symbols owning process-wide singletons.

    Raises:
        GraphBuildError: If a non-class symbol is given a ClassInfo, a name is
            declared twice, or a static owner is unknown.
    """
    self._infos: Dict[Symbol, ClassInfo] = {}
    self._by_name: Dict[str, Symbol] = {}

    for info in classes:
      sym = info.symbol
      if not sym.is_class:
        raise GraphBuildError(f"ClassInfo attached to non-class symbol '{sym.qualified_name}'")
      qname = sym.qualified_name
      if qname in self._by_name:
        raise GraphBuildError(f"Duplicate class definition '{qname}'")
      self._infos[sym] = info
      self._by_name[qname] = sym

    self._aliases: Dict[str, TypeRef] = dict(aliases or {})

    self._static_owners: List[Symbol] = []
    for owner in static_owners:
      if owner not in self._infos:
        raise GraphBuildError(f"Static owner '{owner.qualified_name}' is not a class of this graph")
      if owner not in self._static_owners:
        self._static_owners.append(owner)

  @property
  def classes(self) -> Tuple[ClassInfo, ...]:
    return tuple(self._infos.values())

  @property
  def aliases(self) -> Dict[str, TypeRef]:
    return dict(self._aliases)

  @property
  def static_owners(self) -> Tuple[Symbol, ...]:
    return tuple(self._static_owners)

  def __len__(self) -> int:
    return len(self._infos)

  def lookup(self, name: str) -> Optional[Symbol]:
    """Finds a class symbol by qualified name."""
    return self._by_name.get(name)

  def class_info(self, cls: Symbol) -> Optional[ClassInfo]:
    return self._infos.get(cls)

  def members(self, cls: Symbol) -> Tuple[Symbol, ...]:
    """Declared members of `cls`; empty for classes outside the graph."""
    info = self._infos.get(cls)
    return info.members if info else ()

  def parent_classes(self, cls: Symbol) -> List[Symbol]:
    """
    Resolves the direct parents of `cls` to class symbols, in declaration order.

    Parents that do not resolve to a class of the graph (e.g. library bases)
    are dropped.
    """
    info = self._infos.get(cls)
    if info is None:
      return []
    result: List[Symbol] = []
    for parent in info.parents:
      for sym in self.class_symbols(parent):
        if sym not in result:
          result.append(sym)
    return result

  def class_symbols(self, tpe: Optional[TypeRef]) -> List[Symbol]:
    """
    Widens a declared type to its underlying class symbols.

    A type may denote zero, one or several classes. Generic arguments and
    array elements are deliberately not followed.

    Args:
        tpe: The declared type (None denotes an untyped symbol).

    Returns:
        Distinct class symbols in first-seen order.
    """
    found: Dict[Symbol, None] = {}
    if tpe is not None:
      self._widen(tpe, found, set())
    return list(found)

  def _widen(self, tpe: TypeRef, found: Dict[Symbol, None], expanding: Set[str]) -> None:
    if tpe.form in (TypeForm.UNION, TypeForm.INTERSECTION):
      for member in tpe.args:
        self._widen(member, found, expanding)
    elif tpe.form == TypeForm.APPLIED:
      self._widen(TypeRef.named(tpe.name), found, expanding)
    elif tpe.form == TypeForm.NAMED:
      sym = self._by_name.get(tpe.name)
      if sym is not None:
        found[sym] = None
      elif tpe.name in self._aliases and tpe.name not in expanding:
        # Alias cycles are cut by never expanding the same alias twice on a path
        expanding.add(tpe.name)
        self._widen(self._aliases[tpe.name], found, expanding)
        expanding.discard(tpe.name)
