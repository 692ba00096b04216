"""
Type Expression Conversion.

Converts Python type expressions (LibCST nodes or strings) into `TypeRef`
objects of the symbol graph model.

Supported forms:
1.  **Names**: `Holder`, `pkg.Holder` (resolved through a caller supplied resolver).
2.  **Unions**: `A | B`, `Optional[A]`, `Union[A, B]`.
3.  **Intersections**: `A & B` (only meaningful in graph documents).
4.  **Wrappers**: `Final[T]`, `ClassVar[T]`, `Annotated[T, ...]` are unwrapped; `Final`
    marks the declaration immutable and `Annotated` metadata may carry markers.
5.  **Forward references**: String annotations are parsed and converted.
6.  **Generics and arrays**: `list[Holder]` becomes an applied type and `Array[T]` an
    array type. Neither has its arguments followed by the checker.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Set, Union

import libcst as cst

from reentrancy_guard.analysis.model import TypeRef

_TYPING_MODULES = {"", "typing", "typing_extensions", "t"}
_QUALIFIER_WRAPPERS = {"ClassVar", "Required", "NotRequired", "ReadOnly", "InitVar"}
_ARRAY_NAMES = {"Array", "array", "ndarray", "bytearray"}


def get_full_name(node: cst.CSTNode) -> str:
  """
  Recursively resolves a CST Name or Attribute chain to a dot-separated string.

  Args:
    node: The CST node representing the identifier.

  Returns:
    str: The dotted name, or an empty string for other node types.

  Example:
    >>> get_full_name(cst.Attribute(value=cst.Name("typing"), attr=cst.Name("Final")))
    'typing.Final'
  """
  if isinstance(node, cst.Name):
    return node.value
  elif isinstance(node, cst.Attribute):
    prefix = get_full_name(node.value)
    return f"{prefix}.{node.attr.value}" if prefix else ""
  return ""


def _split(dotted: str):
  module, _, leaf = dotted.rpartition(".")
  return module, leaf


def typing_form(dotted: str) -> str:
  """
  Returns the bare typing construct name (`Optional`, `Final`, ...) if `dotted`
  names one, else an empty string.
  """
  module, leaf = _split(dotted)
  return leaf if module in _TYPING_MODULES else ""


@dataclass
class ConvertedType:
  """
  Result of converting an annotation.

  Attributes:
      type_ref: The structural type, or None if it could not be determined.
      final: True if the annotation declared the target `Final`.
      class_var: True if the annotation was wrapped in `ClassVar`.
      markers: Marker names found in `Annotated` metadata.
  """

  type_ref: Optional[TypeRef] = None
  final: bool = False
  class_var: bool = False
  markers: Set[str] = field(default_factory=set)


class TypeExpressionConverter:
  """
  Converts annotation expressions to `TypeRef`s.
  """

  def __init__(self, resolve: Optional[Callable[[str], str]] = None, markers: Iterable[str] = ()):
    """
    Initializes the converter.

    Args:
        resolve: Maps a dotted name as written to its qualified name.
            Identity if None.
        markers: Marker names recognized in `Annotated` metadata.
    """
    self.resolve = resolve or (lambda name: name)
    self.markers = set(markers)

  def convert(self, node: Union[cst.BaseExpression, str]) -> ConvertedType:
    """
    Converts an annotation node or string.

    Args:
        node: The annotation expression.

    Returns:
        ConvertedType: The type plus declaration qualifiers.
    """
    out = ConvertedType()
    if isinstance(node, str):
      parsed = _parse_string(node)
      if parsed is None:
        return out
      node = parsed
    out.type_ref = self._to_ref(node, out)
    return out

  def typing_form_of(self, dotted: str) -> str:
    """
    Like `typing_form`, but sees through import aliases (`import typing as tp`).

    Args:
        dotted: The name as written.

    Returns:
        str: The typing construct name, or an empty string.
    """
    resolved = self.resolve(dotted)
    if resolved != dotted:
      return typing_form(resolved)
    return typing_form(dotted)

  def _to_ref(self, node: cst.BaseExpression, out: ConvertedType) -> Optional[TypeRef]:
    if isinstance(node, (cst.Name, cst.Attribute)):
      dotted = get_full_name(node)
      form = self.typing_form_of(dotted)
      if form == "Final":
        out.final = True
        return None
      if form == "ClassVar":
        out.class_var = True
        return None
      if not dotted:
        return None
      return TypeRef.named(self.resolve(dotted))

    if isinstance(node, (cst.SimpleString, cst.ConcatenatedString)):
      value = node.evaluated_value
      parsed = _parse_string(value) if isinstance(value, str) else None
      return self._to_ref(parsed, out) if parsed is not None else None

    if isinstance(node, cst.BinaryOperation):
      left = self._to_ref(node.left, out)
      right = self._to_ref(node.right, out)
      parts = [p for p in (left, right) if p is not None]
      if isinstance(node.operator, cst.BitOr):
        return _flatten(TypeRef.union, parts)
      if isinstance(node.operator, cst.BitAnd):
        return _flatten(TypeRef.intersection, parts)
      return None

    if isinstance(node, cst.Subscript):
      return self._subscript(node, out)

    return None

  def _subscript(self, node: cst.Subscript, out: ConvertedType) -> Optional[TypeRef]:
    dotted = get_full_name(node.value)
    args = [el.slice.value for el in node.slice if isinstance(el.slice, cst.Index)]
    form = self.typing_form_of(dotted)

    if form == "Final":
      out.final = True
      return self._to_ref(args[0], out) if args else None
    if form in _QUALIFIER_WRAPPERS:
      if form == "ClassVar":
        out.class_var = True
      return self._to_ref(args[0], out) if args else None
    if form == "Annotated":
      for meta in args[1:]:
        name = _marker_name(meta)
        if name in self.markers:
          out.markers.add(name)
      return self._to_ref(args[0], out) if args else None

    converted = [self._to_ref(a, out) for a in args]
    parts = [c for c in converted if c is not None]
    if form == "Optional":
      return _flatten(TypeRef.union, parts + [TypeRef.named("None")])
    if form == "Union":
      return _flatten(TypeRef.union, parts)
    if _split(dotted)[1] in _ARRAY_NAMES:
      return TypeRef.array(parts[0]) if parts else TypeRef.array(TypeRef.named("object"))
    if not dotted:
      return None
    return TypeRef.applied(self.resolve(dotted), *parts)


def _flatten(factory: Callable[..., TypeRef], parts) -> Optional[TypeRef]:
  if not parts:
    return None
  if len(parts) == 1:
    return parts[0]
  form = factory().form
  flat = []
  for part in parts:
    flat.extend(part.args if part.form == form else (part,))
  return factory(*flat)


def _marker_name(node: cst.BaseExpression) -> str:
  if isinstance(node, cst.Call):
    node = node.func
  return _split(get_full_name(node))[1]


def _parse_string(text: str) -> Optional[cst.BaseExpression]:
  try:
    return cst.parse_expression(text.strip())
  except cst.ParserSyntaxError:
    return None


def parse_type(text: str, resolve: Optional[Callable[[str], str]] = None) -> Optional[TypeRef]:
  """
  Parses a type written in Python syntax (e.g. `"Holder | None"`).

  Args:
      text: The type expression.
      resolve: Optional name resolver.

  Returns:
      The TypeRef, or None if the text is not a type expression.
  """
  return TypeExpressionConverter(resolve).convert(text).type_ref
