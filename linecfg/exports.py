"""
Derived views of a ControlFlowGraph: a spanning tree for tree renderers and
a function-level call graph.
"""

from collections import deque
from dataclasses import dataclass, field

from .cfg_model import CFGNode, ControlFlowGraph


@dataclass
class CFGTreeNode:
    id: str
    label: str
    kind: str
    line: int | None = None
    children: list["CFGTreeNode"] = field(default_factory=list)
    is_conditional: bool = False
    branch_type: str | None = None  # condition of the edge that reached this node
    metadata: dict | None = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "label": self.label,
            "kind": self.kind,
            "is_conditional": self.is_conditional,
            "children": [child.to_dict() for child in self.children],
        }
        if self.line is not None:
            d["line"] = self.line
        if self.branch_type:
            d["branch_type"] = self.branch_type
        if self.metadata:
            d["metadata"] = self.metadata
        return d


@dataclass
class CallGraphNode:
    name: str
    calls: list[str] = field(default_factory=list)
    called_by: list[str] = field(default_factory=list)
    is_method: bool = False
    parent_class: str | None = None

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "calls": list(self.calls),
            "called_by": list(self.called_by),
            "is_method": self.is_method,
        }
        if self.parent_class:
            d["parent_class"] = self.parent_class
        return d


def _tree_node(node: CFGNode, branch_type: str | None) -> CFGTreeNode:
    metadata = node.metadata.to_dict() if node.metadata is not None else None
    return CFGTreeNode(
        id=node.id,
        label=node.label,
        kind=node.kind,
        line=node.line,
        is_conditional=node.kind in ("condition", "loop"),
        branch_type=branch_type,
        metadata=metadata or None,
    )


def _control_successors(cfg: ControlFlowGraph):
    successors: dict[str, list] = {}
    for edge in cfg.edges:
        if edge.condition != "call":
            successors.setdefault(edge.source, []).append(edge)
    return successors


def build_cfg_tree(cfg: ControlFlowGraph) -> CFGTreeNode | None:
    """Depth-first spanning tree from the entry node, ignoring call edges.

    Every node appears at most once, under the first parent that reaches it.
    """
    nodes = {node.id: node for node in cfg.nodes}
    if cfg.entry_node not in nodes:
        return None
    successors = _control_successors(cfg)

    root = _tree_node(nodes[cfg.entry_node], None)
    visited = {root.id}
    stack = [(root, iter(successors.get(root.id, ())))]
    while stack:
        parent, edges = stack[-1]
        edge = next(edges, None)
        if edge is None:
            stack.pop()
            continue
        if edge.target in visited or edge.target not in nodes:
            continue
        visited.add(edge.target)
        child = _tree_node(nodes[edge.target], edge.condition)
        parent.children.append(child)
        stack.append((child, iter(successors.get(edge.target, ()))))
    return root


def _reachable(successors, start: str) -> set[str]:
    seen = {start}
    queue = deque([start])
    while queue:
        for edge in successors.get(queue.popleft(), ()):
            if edge.target not in seen:
                seen.add(edge.target)
                queue.append(edge.target)
    return seen


def build_call_graph(cfg: ControlFlowGraph) -> dict[str, CallGraphNode]:
    """Function-level call graph keyed by ``Class.method`` or function name.

    A call edge is attributed to the function whose entry reaches the
    calling node over non-call edges.
    """
    graph: dict[str, CallGraphNode] = {}
    names_by_entry: dict[str, str] = {}
    for func in cfg.functions:
        name = f"{func.class_name}.{func.name}" if func.class_name else func.name
        names_by_entry[func.node_id] = name
        graph.setdefault(
            name,
            CallGraphNode(name=name, is_method=func.class_name is not None, parent_class=func.class_name),
        )

    successors = _control_successors(cfg)
    reach = {entry: _reachable(successors, entry) for entry in names_by_entry}

    for edge in cfg.edges:
        if edge.condition != "call":
            continue
        callee = names_by_entry.get(edge.target)
        if callee is None:
            continue
        for entry, reached in reach.items():
            if edge.source not in reached:
                continue
            caller = names_by_entry[entry]
            if callee not in graph[caller].calls:
                graph[caller].calls.append(callee)
            if caller not in graph[callee].called_by:
                graph[callee].called_by.append(caller)
            break
    return graph
