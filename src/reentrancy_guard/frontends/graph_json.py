"""
JSON Symbol Graph Documents.

Lets hosts with their own front end hand a finished class graph to the checker,
and lets graphs built from Python sources be exported for inspection.

Document layout::

    {
      "classes": [
        {
          "name": "app.Registry",
          "kind": "class",
          "annotations": [],
          "parents": ["app.Base"],
          "members": [
            {"name": "counter", "kind": "field", "type": "int", "mutable": true}
          ]
        }
      ],
      "aliases": {"app.H": "app.Holder"},
      "static_owners": ["app.Registry"]
    }

Types use Python annotation syntax with `A & B` for intersections and `Array[T]`
for arrays. Class names are fully qualified; nested classes are listed as
top-level entries under their qualified name, with `owner` naming the enclosing
class (`{"name": "app.Color.Meta", "owner": "app.Color"}`). Ownership matters:
classes and members owned by an enum values holder are exempt from the check.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from reentrancy_guard.analysis.model import (
  Annotation,
  ClassInfo,
  GraphBuildError,
  SourceLocation,
  Symbol,
  SymbolGraph,
  TypeRef,
)
from reentrancy_guard.enums import SymbolKind
from reentrancy_guard.frontends.types import parse_type


class LocationSpec(BaseModel):
  """Source position of a declaration."""

  model_config = ConfigDict(extra="forbid")

  path: str
  line: int = Field(..., ge=1)
  column: int = Field(1, ge=1)


class MemberSpec(BaseModel):
  """
  A declared member of a class.
  """

  model_config = ConfigDict(extra="forbid")

  name: str = Field(..., min_length=1)
  kind: SymbolKind = Field(SymbolKind.FIELD, description="Member kind. Class kinds are not allowed.")
  type: Optional[str] = Field(None, description="Declared type in Python annotation syntax.")
  mutable: bool = Field(False, description="True for reassignable state (a 'var').")
  annotations: List[str] = Field(default_factory=list, description="Marker names attached to the member.")
  location: Optional[LocationSpec] = None

  @field_validator("kind")
  @classmethod
  def validate_member_kind(cls, v: SymbolKind) -> SymbolKind:
    if v.is_class:
      raise ValueError(f"Member kind '{v.value}' is not allowed; declare classes as top-level entries")
    return v

  @model_validator(mode="after")
  def validate_other_is_not_state(self) -> "MemberSpec":
    # 'other' members are not terms, so they can never hold state
    if self.kind == SymbolKind.OTHER and self.mutable:
      raise ValueError(f"Member '{self.name}' of kind 'other' cannot be mutable; use 'field'")
    return self


class ClassSpec(BaseModel):
  """
  A class with its members and direct parents.
  """

  model_config = ConfigDict(extra="forbid")

  name: str = Field(..., min_length=1, description="Fully qualified class name.")
  owner: Optional[str] = Field(None, description="Qualified name of the enclosing class, for nested classes.")
  kind: SymbolKind = Field(SymbolKind.CLASS, description="'class' or 'enum_values_holder'.")
  annotations: List[str] = Field(default_factory=list)
  parents: List[str] = Field(default_factory=list, description="Parent types in declaration order.")
  members: List[MemberSpec] = Field(default_factory=list)
  location: Optional[LocationSpec] = None

  @field_validator("kind")
  @classmethod
  def validate_class_kind(cls, v: SymbolKind) -> SymbolKind:
    if not v.is_class:
      raise ValueError(f"Class kind must be 'class' or 'enum_values_holder', got '{v.value}'")
    return v

  @model_validator(mode="after")
  def validate_owner_prefix(self) -> "ClassSpec":
    if self.owner is not None and not self.name.startswith(f"{self.owner}."):
      raise ValueError(f"Nested class '{self.name}' must be named '{self.owner}.<name>'")
    return self


class GraphDocument(BaseModel):
  """
  Root of a JSON symbol graph document.
  """

  model_config = ConfigDict(extra="forbid")

  classes: List[ClassSpec] = Field(default_factory=list)
  aliases: Dict[str, str] = Field(default_factory=dict, description="Qualified alias name -> aliased type.")
  static_owners: List[str] = Field(default_factory=list, description="Classes owning process-wide singletons.")


def _annotations(names: List[str]) -> frozenset:
  return frozenset(Annotation(n.strip().lstrip("@")) for n in names if n.strip())


def _location(spec: Optional[LocationSpec]) -> Optional[SourceLocation]:
  return SourceLocation(spec.path, spec.line, spec.column) if spec else None


def _type(text: Optional[str], where: str) -> Optional[TypeRef]:
  if text is None or not text.strip():
    return None
  ref = parse_type(text)
  if ref is None:
    raise GraphBuildError(f"Invalid type '{text}' in {where}")
  return ref


def graph_from_document(doc: GraphDocument) -> SymbolGraph:
  """
  Builds a `SymbolGraph` from a validated document.

  Args:
      doc: The parsed document.

  Returns:
      SymbolGraph: The graph.

  Raises:
      GraphBuildError: On invalid types, duplicate classes, unknown owners or
        unknown static owners.
  """
  infos: List[ClassInfo] = []
  by_name: Dict[str, Symbol] = {}
  specs_by_name: Dict[str, ClassSpec] = {}
  for spec in doc.classes:
    specs_by_name.setdefault(spec.name, spec)

  def class_symbol(spec: ClassSpec) -> Symbol:
    # Owners are strict name prefixes, so resolution always terminates
    if spec.name in by_name:
      return by_name[spec.name]
    owner = None
    name = spec.name
    if spec.owner is not None:
      if spec.owner not in specs_by_name:
        raise GraphBuildError(f"Unknown owner '{spec.owner}' of class '{spec.name}'")
      owner = class_symbol(specs_by_name[spec.owner])
      name = spec.name[len(spec.owner) + 1 :]
    sym = Symbol(
      name=name,
      kind=spec.kind,
      owner=owner,
      annotations=_annotations(spec.annotations),
      location=_location(spec.location),
    )
    by_name[spec.name] = sym
    return sym

  for spec in doc.classes:
    cls = class_symbol(spec)
    members = tuple(
      Symbol(
        name=m.name,
        kind=m.kind,
        owner=cls,
        declared_type=_type(m.type, f"{spec.name}.{m.name}"),
        mutable=m.mutable,
        annotations=_annotations(m.annotations),
        location=_location(m.location),
      )
      for m in spec.members
    )
    parents = tuple(p for p in (_type(t, f"parents of {spec.name}") for t in spec.parents) if p is not None)
    infos.append(ClassInfo(symbol=cls, members=members, parents=parents))

  aliases: Dict[str, TypeRef] = {}
  for name, text in doc.aliases.items():
    ref = _type(text, f"alias {name}")
    if ref is not None:
      aliases[name] = ref

  owners = []
  for name in doc.static_owners:
    if name not in by_name:
      raise GraphBuildError(f"Unknown static owner '{name}'")
    owners.append(by_name[name])

  return SymbolGraph(infos, aliases=aliases, static_owners=owners)


def document_from_graph(graph: SymbolGraph) -> GraphDocument:
  """
  Serializes a graph into a document. Class-kind members are omitted since
  nested classes appear as entries of their own, linked through `owner`.
  """

  def loc(sym: Symbol) -> Optional[LocationSpec]:
    if sym.location is None:
      return None
    return LocationSpec(path=sym.location.path, line=sym.location.line, column=sym.location.column)

  classes = []
  for info in graph.classes:
    cls = info.symbol
    classes.append(
      ClassSpec(
        name=cls.qualified_name,
        owner=cls.owner.qualified_name if cls.owner is not None else None,
        kind=cls.kind,
        annotations=sorted(a.name for a in cls.annotations),
        parents=[str(p) for p in info.parents],
        members=[
          MemberSpec(
            name=m.name,
            kind=m.kind,
            type=str(m.declared_type) if m.declared_type is not None else None,
            mutable=m.mutable,
            annotations=sorted(a.name for a in m.annotations),
            location=loc(m),
          )
          for m in info.members
          if not m.is_class
        ],
        location=loc(cls),
      )
    )
  return GraphDocument(
    classes=classes,
    aliases={k: str(v) for k, v in graph.aliases.items()},
    static_owners=[s.qualified_name for s in graph.static_owners],
  )


def parse_graph_document(text: str) -> GraphDocument:
  """
  Validates JSON text against the document schema.

  Raises:
      GraphBuildError: If the text is not valid JSON or violates the schema.
  """
  try:
    return GraphDocument.model_validate_json(text)
  except ValidationError as e:
    raise GraphBuildError(f"Invalid graph document: {e}") from e


def load_graph_file(path: Path) -> SymbolGraph:
  """
  Reads a JSON graph document and builds its graph.

  Args:
      path: Path to the `.json` document.

  Returns:
      SymbolGraph: The graph.

  Raises:
      GraphBuildError: If the file is unreadable or invalid.
  """
  try:
    text = path.read_text("utf-8")
  except OSError as e:
    raise GraphBuildError(f"Failed to read {path}: {e}") from e
  return graph_from_document(parse_graph_document(text))


def dump_graph_document(graph: SymbolGraph) -> str:
  """
  Renders a graph as an indented JSON document.
  """
  return json.dumps(document_from_graph(graph).model_dump(mode="json", exclude_none=True), indent=2)
