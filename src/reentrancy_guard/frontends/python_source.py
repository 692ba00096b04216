"""
Python Source Front End.

Builds a `SymbolGraph` from Python modules using LibCST. Classes are collected
from every module first (pass 1), then their members are elaborated (pass 2), so
type references may point across modules and forward in a file.

Python declarations map to graph symbols as follows:

1.  **Classes**: Every class defined at module level or nested in another class.
    Subclasses of `Enum`/`IntEnum`/`StrEnum`/`Flag`/`IntFlag` are enum value holders.
2.  **Fields**: Annotated class attributes, unannotated class attributes and
    `self.x` assignments in `__init__`. Fields are mutable unless typed `Final`;
    instance fields of a frozen dataclass or a `NamedTuple` are immutable too,
    class-level attributes (`ClassVar`, unannotated) of such classes are not.
    A nested class becomes an immutable field typed by that class.
3.  **Parameter accessors**: Fields of dataclasses and `NamedTuple`s.
4.  **Accessors / Setters**: `@property` and `@cached_property` getters; `@x.setter`.
5.  **Methods**: Any other `def`.
6.  **Singletons**: Classes instantiated at module level (`REGISTRY = Registry()`)
    or decorated with a configured singleton decorator.
7.  **Markers**: Decorators and `Annotated[T, marker]` metadata naming the configured
    sharable / unshared annotations.
"""

from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

import libcst as cst
from libcst.metadata import MetadataWrapper, PositionProvider

from reentrancy_guard.analysis.model import (
  Annotation,
  ClassInfo,
  GraphBuildError,
  SourceLocation,
  Symbol,
  SymbolGraph,
  TypeRef,
)
from reentrancy_guard.config import RuntimeConfig
from reentrancy_guard.enums import SymbolKind
from reentrancy_guard.frontends.types import ConvertedType, TypeExpressionConverter, get_full_name

_ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag", "ReprEnum"}
_PROPERTY_DECORATORS = {"property", "cached_property"}
_DATACLASS_DECORATORS = {"dataclass", "dataclasses.dataclass"}


def _leaf(dotted: str) -> str:
  return dotted.rpartition(".")[2]


def _decorator_name(decorator: cst.Decorator) -> str:
  expr = decorator.decorator
  if isinstance(expr, cst.Call):
    expr = expr.func
  return get_full_name(expr)


@dataclass
class _Module:
  """
  Pass 1 state of one parsed module.
  """

  name: str
  path: str
  tree: cst.Module
  positions: object
  is_package: bool = False
  imports: Dict[str, str] = field(default_factory=dict)
  # Local dotted class path ("Outer.Inner") -> qualified name
  classes: Dict[str, str] = field(default_factory=dict)
  aliases: Set[str] = field(default_factory=set)


@dataclass
class _ClassDecl:
  """
  A collected class awaiting member elaboration.
  """

  symbol: Symbol
  node: cst.ClassDef
  module: _Module
  scope: Tuple[str, ...]
  frozen: bool = False
  param_fields: bool = False


class _ClassCollector(cst.CSTVisitor):
  """
  Pass 1 visitor creating class symbols (outer classes before nested ones).
  """

  def __init__(self, builder: "PythonGraphBuilder", module: _Module):
    self.builder = builder
    self.module = module
    self._stack: List[Tuple[str, Symbol]] = []

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    # Classes local to functions are not part of the static structure
    return False

  def visit_ClassDef(self, node: cst.ClassDef) -> Optional[bool]:
    local_path = tuple(p for p, _ in self._stack) + (node.name.value,)
    owner = self._stack[-1][1] if self._stack else None
    name = node.name.value if owner else f"{self.module.name}.{node.name.value}"

    bases = [get_full_name(arg.value) for arg in node.bases if arg.keyword is None]
    kind = SymbolKind.ENUM_VALUES_HOLDER if any(_leaf(b) in _ENUM_BASES for b in bases) else SymbolKind.CLASS

    decorators = [_decorator_name(d) for d in node.decorators]
    symbol = Symbol(
      name=name,
      kind=kind,
      owner=owner,
      annotations=self.builder._markers_from_names(decorators),
      location=self.builder._location(self.module, node),
    )

    frozen, is_dataclass = _dataclass_flags(node)
    is_named_tuple = any(_leaf(b) == "NamedTuple" for b in bases)
    decl = _ClassDecl(
      symbol=symbol,
      node=node,
      module=self.module,
      scope=local_path,
      frozen=frozen or is_named_tuple,
      param_fields=is_dataclass or is_named_tuple,
    )
    self.module.classes[".".join(local_path)] = symbol.qualified_name
    self.builder._declare(decl)

    if any(_leaf(d) in self.builder.singleton_decorators for d in decorators):
      self.builder._static_owner_names.append((self.module, ".".join(local_path)))

    self._stack.append((node.name.value, symbol))
    return True

  def leave_ClassDef(self, original_node: cst.ClassDef) -> None:
    self._stack.pop()


def _dataclass_flags(node: cst.ClassDef) -> Tuple[bool, bool]:
  """
  Returns (frozen, is_dataclass) for a class definition.
  """
  for decorator in node.decorators:
    expr = decorator.decorator
    target = expr.func if isinstance(expr, cst.Call) else expr
    if get_full_name(target) not in _DATACLASS_DECORATORS:
      continue
    frozen = False
    if isinstance(expr, cst.Call):
      for arg in expr.args:
        if arg.keyword and arg.keyword.value == "frozen":
          frozen = isinstance(arg.value, cst.Name) and arg.value.value == "True"
    return frozen, True
  return False, False


class _SelfAssignCollector(cst.CSTVisitor):
  """
  Collects `self.x = ...` and `self.x: T = ...` targets inside a method body.
  """

  def __init__(self, self_name: str):
    self.self_name = self_name
    # (attribute name, target node, annotation, value)
    self.found: List[Tuple[str, cst.CSTNode, Optional[cst.BaseExpression], Optional[cst.BaseExpression]]] = []

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    return False

  def visit_ClassDef(self, node: cst.ClassDef) -> Optional[bool]:
    return False

  def visit_Assign(self, node: cst.Assign) -> None:
    for target in node.targets:
      self._collect(target.target, None, node.value)

  def visit_AnnAssign(self, node: cst.AnnAssign) -> None:
    self._collect(node.target, node.annotation.annotation, node.value)

  def _collect(self, target, annotation, value) -> None:
    if isinstance(target, cst.Attribute) and isinstance(target.value, cst.Name):
      if target.value.value == self.self_name:
        self.found.append((target.attr.value, target, annotation, value))
    elif isinstance(target, (cst.Tuple, cst.List)):
      for element in target.elements:
        self._collect(element.value, None, None)


class PythonGraphBuilder:
  """
  Accumulates Python modules and builds their `SymbolGraph`.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None):
    """
    Initializes the builder.

    Args:
        config: Supplies marker and singleton decorator names.
    """
    self.config = config or RuntimeConfig()
    self.marker_names = {self.config.sharable_annotation, self.config.unshared_annotation}
    self.singleton_decorators = {_leaf(d) for d in self.config.singleton_decorators}
    self._modules: List[_Module] = []
    self._decls: List[_ClassDecl] = []
    self._decl_by_node: Dict[cst.ClassDef, _ClassDecl] = {}
    self._static_owner_names: List[Tuple[_Module, str]] = []

  # --- Pass 1 ---

  def add_source(self, code: str, module: str = "main", path: Optional[str] = None, is_package: bool = False) -> None:
    """
    Parses one module and collects its classes.

    Args:
        code: Python source text.
        module: Dotted module name used to qualify class names.
        path: File path reported in source locations.
        is_package: True if the source is a package `__init__`.

    Raises:
        GraphBuildError: If the source cannot be parsed or the module is added twice.
    """
    if any(m.name == module for m in self._modules):
      raise GraphBuildError(f"Module '{module}' added twice")
    try:
      tree = cst.parse_module(code)
    except cst.ParserSyntaxError as e:
      raise GraphBuildError(f"Failed to parse {path or module}: {e}") from e

    wrapper = MetadataWrapper(tree)
    mod = _Module(
      name=module,
      path=path or f"<{module}>",
      tree=wrapper.module,
      positions=wrapper.resolve(PositionProvider),
      is_package=is_package,
    )
    self._collect_imports(mod)
    wrapper.module.visit(_ClassCollector(self, mod))
    self._modules.append(mod)

  def add_file(self, path: Path, module: Optional[str] = None) -> None:
    """
    Reads and adds a Python file.

    Args:
        path: The `.py` file.
        module: Module name. Defaults to the file stem.

    Raises:
        GraphBuildError: If the file cannot be read or parsed.
    """
    try:
      code = path.read_text("utf-8")
    except (OSError, UnicodeDecodeError) as e:
      raise GraphBuildError(f"Failed to read {path}: {e}") from e
    name = module or (path.parent.name if path.stem == "__init__" else path.stem)
    self.add_source(code, module=name, path=str(path), is_package=path.stem == "__init__")

  def _declare(self, decl: _ClassDecl) -> None:
    self._decls.append(decl)
    self._decl_by_node[decl.node] = decl

  def _collect_imports(self, mod: _Module) -> None:
    for stmt in mod.tree.body:
      if not isinstance(stmt, cst.SimpleStatementLine):
        continue
      for small in stmt.body:
        if isinstance(small, cst.Import):
          for alias in small.names:
            full = get_full_name(alias.name)
            if alias.asname and isinstance(alias.asname.name, cst.Name):
              mod.imports[alias.asname.name.value] = full
            else:
              head = full.split(".")[0]
              mod.imports[head] = head
        elif isinstance(small, cst.ImportFrom) and not isinstance(small.names, cst.ImportStar):
          source = self._import_source(mod, small)
          for alias in small.names:
            imported = get_full_name(alias.name)
            local = alias.asname.name.value if alias.asname and isinstance(alias.asname.name, cst.Name) else imported
            mod.imports[local] = f"{source}.{imported}" if source else imported

  def _import_source(self, mod: _Module, node: cst.ImportFrom) -> str:
    source = get_full_name(node.module) if node.module else ""
    level = len(node.relative)
    if level == 0:
      return source
    package_parts = mod.name.split(".")
    if not mod.is_package:
      package_parts = package_parts[:-1]
    if level > 1:
      package_parts = package_parts[: len(package_parts) - (level - 1)]
    return ".".join([p for p in package_parts if p] + ([source] if source else []))

  # --- Pass 2 ---

  def build(self) -> SymbolGraph:
    """
    Elaborates members of every collected class and builds the graph.

    Returns:
        SymbolGraph: The finished, read-only graph.

    Raises:
        GraphBuildError: If the collected classes are inconsistent (e.g. duplicates).
    """
    aliases: Dict[str, TypeRef] = {}
    static_owners: List[Symbol] = []
    by_qualified = {d.symbol.qualified_name: d.symbol for d in self._decls}

    for mod in self._modules:
      self._collect_module_bindings(mod, aliases, static_owners, by_qualified)

    for mod, local in self._static_owner_names:
      sym = by_qualified.get(mod.classes[local])
      if sym is not None and sym not in static_owners:
        static_owners.append(sym)

    infos = [self._elaborate(decl) for decl in self._decls]
    return SymbolGraph(infos, aliases=aliases, static_owners=static_owners)

  def _collect_module_bindings(
    self,
    mod: _Module,
    aliases: Dict[str, TypeRef],
    static_owners: List[Symbol],
    by_qualified: Dict[str, Symbol],
  ) -> None:
    """
    Finds module-level aliases and singleton instances.
    """
    converter = self._converter(mod, ())

    def declares_alias(small: cst.BaseSmallStatement) -> bool:
      if not isinstance(small, cst.AnnAssign):
        return False
      return converter.typing_form_of(get_full_name(small.annotation.annotation)) == "TypeAlias"

    # Register alias names first so later references resolve to them
    for small in self._module_assignments(mod):
      if declares_alias(small):
        if isinstance(small.target, cst.Name):
          mod.aliases.add(small.target.value)
      elif isinstance(small, cst.Assign) and isinstance(small.value, (cst.Name, cst.Attribute)):
        for target in small.targets:
          if isinstance(target.target, cst.Name):
            mod.aliases.add(target.target.value)

    for small in self._module_assignments(mod):
      value = small.value
      if value is None:
        continue
      if isinstance(small, cst.AnnAssign):
        targets = [small.target]
        if declares_alias(small):
          converted = converter.convert(value)
          if converted.type_ref is not None and isinstance(small.target, cst.Name):
            aliases[f"{mod.name}.{small.target.value}"] = converted.type_ref
          continue
      else:
        targets = [t.target for t in small.targets]

      if isinstance(value, cst.Call):
        qualified = self._resolve(mod, (), get_full_name(value.func))
        sym = by_qualified.get(qualified)
        if sym is not None and sym not in static_owners:
          static_owners.append(sym)
      elif isinstance(value, (cst.Name, cst.Attribute)):
        target_ref = TypeRef.named(self._resolve(mod, (), get_full_name(value)))
        for target in targets:
          if isinstance(target, cst.Name) and target_ref.name != f"{mod.name}.{target.value}":
            aliases[f"{mod.name}.{target.value}"] = target_ref

  def _module_assignments(self, mod: _Module) -> Iterator[cst.BaseSmallStatement]:
    for stmt in mod.tree.body:
      if isinstance(stmt, cst.SimpleStatementLine):
        for small in stmt.body:
          if isinstance(small, (cst.Assign, cst.AnnAssign)):
            yield small

  def _elaborate(self, decl: _ClassDecl) -> ClassInfo:
    converter = self._converter(decl.module, decl.scope)
    members: List[Symbol] = []
    names: Set[Tuple[str, SymbolKind]] = set()

    def add(sym: Symbol) -> None:
      key = (sym.name, SymbolKind.FIELD if sym.kind == SymbolKind.PARAM_ACCESSOR else sym.kind)
      if key not in names:
        names.add(key)
        members.append(sym)

    for stmt in _class_statements(decl.node):
      if isinstance(stmt, cst.SimpleStatementLine):
        for small in stmt.body:
          for sym in self._class_attribute(decl, small, converter):
            add(sym)
      elif isinstance(stmt, cst.FunctionDef):
        for sym in self._function_members(decl, stmt, converter):
          add(sym)
      elif isinstance(stmt, cst.ClassDef):
        nested = self._decl_by_node.get(stmt)
        if nested is not None:
          add(self._nested_class_field(decl, nested))

    parents = []
    for arg in decl.node.bases:
      if arg.keyword is not None:
        continue
      ref = converter.convert(arg.value).type_ref
      if ref is not None:
        parents.append(ref)

    return ClassInfo(symbol=decl.symbol, members=tuple(members), parents=tuple(parents))

  def _class_attribute(
    self, decl: _ClassDecl, small: cst.BaseSmallStatement, converter: TypeExpressionConverter
  ) -> Iterator[Symbol]:
    if isinstance(small, cst.AnnAssign) and isinstance(small.target, cst.Name):
      converted = converter.convert(small.annotation.annotation)
      if converted.type_ref is None and small.value is not None:
        converted.type_ref = self._infer_value_type(decl.module, decl.scope, small.value)
      kind = SymbolKind.PARAM_ACCESSOR if decl.param_fields and not converted.class_var else SymbolKind.FIELD
      instance = kind == SymbolKind.PARAM_ACCESSOR
      yield self._field(decl, small.target.value, kind, converted, small.target, instance=instance)
    elif isinstance(small, cst.Assign):
      for target in small.targets:
        node = target.target
        if not isinstance(node, cst.Name) or _is_dunder(node.value):
          continue
        converted = ConvertedType(type_ref=self._infer_value_type(decl.module, decl.scope, small.value))
        yield self._field(decl, node.value, SymbolKind.FIELD, converted, node, instance=False)

  def _function_members(
    self, decl: _ClassDecl, node: cst.FunctionDef, converter: TypeExpressionConverter
  ) -> Iterator[Symbol]:
    name = node.name.value
    decorators = [_decorator_name(d) for d in node.decorators]
    markers = self._markers_from_names(decorators)
    location = self._location(decl.module, node)

    if any(_leaf(d) in _PROPERTY_DECORATORS for d in decorators):
      converted = converter.convert(node.returns.annotation) if node.returns else ConvertedType()
      yield Symbol(
        name=name,
        kind=SymbolKind.ACCESSOR,
        owner=decl.symbol,
        declared_type=converted.type_ref,
        annotations=markers | self._markers(converted.markers),
        location=location,
      )
      return

    if any(d.endswith(".setter") for d in decorators):
      yield Symbol(name=name, kind=SymbolKind.SETTER, owner=decl.symbol, annotations=markers, location=location)
      return
    if any(d.endswith(".deleter") for d in decorators):
      yield Symbol(name=name, kind=SymbolKind.OTHER, owner=decl.symbol, annotations=markers, location=location)
      return

    yield Symbol(name=name, kind=SymbolKind.METHOD, owner=decl.symbol, annotations=markers, location=location)

    if name == "__init__":
      yield from self._instance_fields(decl, node, converter)

  def _instance_fields(
    self, decl: _ClassDecl, node: cst.FunctionDef, converter: TypeExpressionConverter
  ) -> Iterator[Symbol]:
    params = list(node.params.params)
    if not params:
      return
    self_name = params[0].name.value
    param_types = {p.name.value: p.annotation.annotation for p in params[1:] if p.annotation is not None}

    collector = _SelfAssignCollector(self_name)
    node.body.visit(collector)
    for attr, target, annotation, value in collector.found:
      if annotation is not None:
        converted = converter.convert(annotation)
      elif isinstance(value, cst.Name) and value.value in param_types:
        converted = converter.convert(param_types[value.value])
        converted.final = False
      else:
        converted = ConvertedType()
      if converted.type_ref is None and value is not None:
        converted.type_ref = self._infer_value_type(decl.module, decl.scope, value)
      yield self._field(decl, attr, SymbolKind.FIELD, converted, target)

  def _field(
    self,
    decl: _ClassDecl,
    name: str,
    kind: SymbolKind,
    converted: ConvertedType,
    node: cst.CSTNode,
    instance: bool = True,
  ) -> Symbol:
    # Freezing a class only blocks assignment on its instances, never on the class itself
    frozen = instance and decl.frozen
    return Symbol(
      name=name,
      kind=kind,
      owner=decl.symbol,
      declared_type=converted.type_ref,
      mutable=not (converted.final or frozen),
      annotations=self._markers(converted.markers),
      location=self._location(decl.module, node),
    )

  def _nested_class_field(self, decl: _ClassDecl, nested: _ClassDecl) -> Symbol:
    """
    A nested class is a class object stored on its enclosing class, so it is
    modeled as an immutable field typed by that class.
    """
    return Symbol(
      name=nested.node.name.value,
      kind=SymbolKind.FIELD,
      owner=decl.symbol,
      declared_type=TypeRef.named(nested.symbol.qualified_name),
      location=nested.symbol.location,
    )

  def _infer_value_type(self, mod: _Module, scope: Tuple[str, ...], value: cst.BaseExpression) -> Optional[TypeRef]:
    if isinstance(value, cst.Call):
      dotted = get_full_name(value.func)
      return TypeRef.named(self._resolve(mod, scope, dotted)) if dotted else None
    if isinstance(value, (cst.List, cst.ListComp)):
      return TypeRef.named("list")
    if isinstance(value, (cst.Dict, cst.DictComp)):
      return TypeRef.named("dict")
    if isinstance(value, (cst.Set, cst.SetComp)):
      return TypeRef.named("set")
    return None

  # --- Helpers ---

  def _converter(self, mod: _Module, scope: Tuple[str, ...]) -> TypeExpressionConverter:
    return TypeExpressionConverter(lambda dotted: self._resolve(mod, scope, dotted), self.marker_names)

  def _resolve(self, mod: _Module, scope: Tuple[str, ...], dotted: str) -> str:
    """
    Resolves a dotted name as written in `mod` (inside class `scope`) to a qualified name.

    Lookup order: enclosing class scopes (innermost first), module classes and
    aliases, imports. Unresolvable names are returned unchanged.
    """
    for depth in range(len(scope), -1, -1):
      candidate = ".".join(scope[:depth] + (dotted,))
      if candidate in mod.classes:
        return mod.classes[candidate]
    if dotted in mod.aliases:
      return f"{mod.name}.{dotted}"
    head, _, rest = dotted.partition(".")
    if head in mod.imports:
      target = mod.imports[head]
      return f"{target}.{rest}" if rest else target
    return dotted

  def _markers_from_names(self, names: Iterable[str]) -> frozenset:
    return self._markers(_leaf(n) for n in names)

  def _markers(self, names: Iterable[str]) -> frozenset:
    return frozenset(Annotation(n) for n in names if n in self.marker_names)

  def _location(self, mod: _Module, node: cst.CSTNode) -> Optional[SourceLocation]:
    code_range = mod.positions.get(node)
    if code_range is None:
      return None
    return SourceLocation(mod.path, code_range.start.line, code_range.start.column + 1)


def _class_statements(node: cst.ClassDef) -> Sequence[cst.CSTNode]:
  body = node.body
  if isinstance(body, cst.SimpleStatementSuite):
    return [cst.SimpleStatementLine(body=body.body)]
  return body.body


def _is_dunder(name: str) -> bool:
  return name.startswith("__") and name.endswith("__")


def module_name_for(path: Path, root: Path) -> str:
  """
  Derives a dotted module name for `path` relative to the scanned `root`.

  If `root` is itself a package (contains `__init__.py`), its name prefixes the result.
  """
  rel = path.relative_to(root).with_suffix("")
  parts = list(rel.parts)
  if parts and parts[-1] == "__init__":
    parts = parts[:-1]
  if (root / "__init__.py").exists():
    parts = [root.name] + parts
  return ".".join(parts) or root.name


def iter_python_files(paths: Iterable[Path], exclude: Sequence[str] = ()) -> Iterator[Tuple[Path, str]]:
  """
  Yields `(file, module_name)` for every `.py` file under the given paths.

  Args:
      paths: Files or directories.
      exclude: Glob patterns (matched against the posix path) to skip.
  """
  for base in paths:
    if base.is_file():
      candidates = [(base, base.stem)]
    else:
      candidates = [(f, module_name_for(f, base)) for f in sorted(base.rglob("*.py"))]
    for f, module in candidates:
      if any(fnmatch(f.as_posix(), pattern) for pattern in exclude):
        continue
      yield f, module


def build_graph_from_source(code: str, module: str = "main", config: Optional[RuntimeConfig] = None) -> SymbolGraph:
  """
  Builds a graph from a single source string.

  Args:
      code: Python source text.
      module: Module name used to qualify class names.
      config: Marker and singleton settings.

  Returns:
      SymbolGraph: The elaborated graph.
  """
  builder = PythonGraphBuilder(config)
  builder.add_source(code, module=module)
  return builder.build()


def build_graph_from_paths(paths: Iterable[Path], config: Optional[RuntimeConfig] = None) -> SymbolGraph:
  """
  Builds one graph spanning all Python files under `paths`.

  Args:
      paths: Files or directories.
      config: Marker, singleton and exclusion settings.

  Returns:
      SymbolGraph: The elaborated graph.
  """
  builder = PythonGraphBuilder(config)
  for f, module in iter_python_files(paths, builder.config.exclude):
    builder.add_file(f, module=module)
  return builder.build()