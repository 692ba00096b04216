"""
Symbol Graph Visualization Utility.

Renders a `SymbolGraph` for operators:

1.  `build_graph_tree`: A Rich `Tree` listing every class with its members,
    parents and markers. Singleton classes are highlighted.
2.  `MermaidGenerator`: A Mermaid.js `graph TD` diagram of reachability edges
    (member types and parents) between classes.
"""

from typing import Dict, List

from rich.markup import escape
from rich.tree import Tree

from reentrancy_guard.analysis.model import Symbol, SymbolGraph


def _marker_suffix(sym: Symbol) -> str:
  if not sym.annotations:
    return ""
  names = " ".join(str(a) for a in sorted(sym.annotations, key=lambda a: a.name))
  return f" [dim]{escape(names)}[/dim]"


def build_graph_tree(graph: SymbolGraph) -> Tree:
  """
  Builds a Rich tree of classes and members.

  Args:
      graph: The graph to render.

  Returns:
      Tree: Renderable with one branch per class.
  """
  owners = set(graph.static_owners)
  root = Tree(f"[bold]Symbol graph[/bold] ({len(graph)} classes, {len(owners)} singletons)")

  for info in graph.classes:
    cls = info.symbol
    style = "bold red" if cls in owners else "bold blue"
    label = f"[{style}]{escape(cls.qualified_name)}[/{style}] [dim]{cls.kind.label}[/dim]{_marker_suffix(cls)}"
    branch = root.add(label)
    if info.parents:
      branch.add(f"[italic]extends[/italic] {escape(', '.join(str(p) for p in info.parents))}")
    for member in info.members:
      type_text = f": {member.declared_type}" if member.declared_type is not None else ""
      var = "var " if member.mutable else ""
      text = f"{var}{member.name}{type_text}"
      line = f"[yellow]{escape(text)}[/yellow]" if member.mutable else escape(text)
      branch.add(f"{line} [dim]{member.kind.label}[/dim]{_marker_suffix(member)}")
  return root


class MermaidGenerator:
  """
  Generates a Mermaid `graph TD` string of class-to-class reachability edges.

  Edges are labeled with the member name they go through, or `extends` for
  parents. Mutable members are drawn as edges to a dedicated state node.
  """

  STYLES = """
    %% Styles
    classDef singleton fill:#ea4335,stroke:#20344b,color:#ffffff,rx:5px;
    classDef cls fill:#4285f4,stroke:#20344b,color:#ffffff,rx:5px;
    classDef state fill:#f9ab00,stroke:#20344b,color:#20344b,rx:2px;
    """

  def __init__(self, graph: SymbolGraph):
    self.graph = graph
    self._ids: Dict[Symbol, str] = {}

  def _id(self, sym: Symbol) -> str:
    if sym not in self._ids:
      self._ids[sym] = f"n{len(self._ids)}"
    return self._ids[sym]

  def generate(self) -> str:
    """
    Returns:
        str: The Mermaid diagram source.
    """
    owners = set(self.graph.static_owners)
    nodes: List[str] = []
    edges: List[str] = []

    for info in self.graph.classes:
      cls = info.symbol
      css = "singleton" if cls in owners else "cls"
      nodes.append(f'  {self._id(cls)}["{cls.qualified_name}"]:::{css}')
      for member in info.members:
        if member.mutable:
          state_id = self._id(member)
          nodes.append(f'  {state_id}(["var {member.name}"]):::state')
          edges.append(f"  {self._id(cls)} --> {state_id}")
          continue
        for target in self.graph.class_symbols(member.declared_type):
          edges.append(f"  {self._id(cls)} -->|{member.name}| {self._id(target)}")
      for parent in self.graph.parent_classes(cls):
        edges.append(f"  {self._id(cls)} -.->|extends| {self._id(parent)}")

    return "\n".join(["graph TD", self.STYLES.rstrip()] + nodes + edges) + "\n"
