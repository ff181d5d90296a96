"""
Control flow graph data model.

Nodes and edges are immutable values; a ``ControlFlowGraph`` is built once
per analysis request and handed to callers as-is.

Node kinds:
- "entry" / "exit": synthetic start and function exit nodes
- "class": container node for a class, struct or impl block
- "function" / "method" / "constructor": function entry nodes
- "condition" / "loop": branch points
- "return" / "throw": terminal statements, always wired to the exit
- "statement": everything else
- "property": class field, hung from its class container

Edge conditions:
- "true" / "false": branch outcomes of condition and loop nodes
- "iterate": loop body back to its loop node
- "break" / "continue": early loop exits and restarts
- "exception": try block to a catch handler
- "call": calling statement to the callee's entry node
- "contains" / "inherits": container hierarchy, not control flow
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class NodeMetadata:
    is_async: bool = False
    is_constructor: bool = False
    parameters: tuple[str, ...] = ()
    class_name: str | None = None
    method_name: str | None = None

    def to_dict(self) -> dict:
        d: dict = {}
        if self.is_async:
            d["is_async"] = True
        if self.is_constructor:
            d["is_constructor"] = True
        if self.parameters:
            d["parameters"] = list(self.parameters)
        if self.class_name:
            d["class_name"] = self.class_name
        if self.method_name:
            d["method_name"] = self.method_name
        return d


@dataclass(frozen=True)
class CFGNode:
    id: str
    kind: str
    label: str
    line: int | None = None  # 1-based source line
    code: str | None = None  # raw source snippet
    parent_id: str | None = None  # owning container, not a control-flow link
    depth: int = 0
    group: str | None = None  # function or class the node belongs to
    metadata: NodeMetadata | None = None
    children: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        d = {"id": self.id, "kind": self.kind, "label": self.label, "depth": self.depth}
        if self.line is not None:
            d["line"] = self.line
        if self.code is not None:
            d["code"] = self.code
        if self.parent_id is not None:
            d["parent"] = self.parent_id
        if self.group is not None:
            d["group"] = self.group
        if self.metadata is not None:
            meta = self.metadata.to_dict()
            if meta:
                d["metadata"] = meta
        if self.children:
            d["children"] = list(self.children)
        return d


@dataclass(frozen=True)
class CFGEdge:
    """Directed edge; identity is the (source, target, condition) triple."""

    source: str
    target: str
    condition: str | None = None
    label: str | None = None
    category: str | None = None  # "hierarchy", "call" or "control"

    @property
    def key(self) -> tuple[str, str, str | None]:
        return (self.source, self.target, self.condition)

    def to_dict(self) -> dict:
        d = {"from": self.source, "to": self.target}
        if self.condition:
            d["condition"] = self.condition
        if self.label:
            d["label"] = self.label
        if self.category:
            d["category"] = self.category
        return d


@dataclass(frozen=True)
class CFGClassInfo:
    id: str
    name: str
    node_id: str
    parent_class: str | None = None
    methods: tuple[str, ...] = ()  # entry node ids
    properties: tuple[str, ...] = ()  # property node ids

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "name": self.name,
            "node": self.node_id,
            "methods": list(self.methods),
            "properties": list(self.properties),
        }
        if self.parent_class:
            d["parent_class"] = self.parent_class
        return d


@dataclass(frozen=True)
class CFGFunctionInfo:
    id: str
    name: str
    node_id: str  # entry node
    exit_node_id: str
    class_name: str | None = None
    parameters: tuple[str, ...] = ()
    calls: tuple[str, ...] = ()
    cyclomatic_complexity: int = 1  # decision points + 1

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "name": self.name,
            "entry": self.node_id,
            "exit": self.exit_node_id,
            "parameters": list(self.parameters),
            "calls": list(self.calls),
            "cyclomatic_complexity": self.cyclomatic_complexity,
        }
        if self.class_name:
            d["class_name"] = self.class_name
        return d


@dataclass(frozen=True)
class ControlFlowGraph:
    """Heuristic control flow graph for one source text.

    This is a structural approximation recovered from line patterns, not a
    certified-correct graph of the program.
    """

    nodes: tuple[CFGNode, ...]
    edges: tuple[CFGEdge, ...]
    entry_node: str
    exit_nodes: tuple[str, ...]
    classes: tuple[CFGClassInfo, ...] = ()
    functions: tuple[CFGFunctionInfo, ...] = ()
    call_graph: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def node(self, node_id: str) -> CFGNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing(self, node_id: str) -> list[CFGEdge]:
        return [e for e in self.edges if e.source == node_id]

    def incoming(self, node_id: str) -> list[CFGEdge]:
        return [e for e in self.edges if e.target == node_id]

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "entry_node": self.entry_node,
            "exit_nodes": list(self.exit_nodes),
            "classes": [c.to_dict() for c in self.classes],
            "functions": [f.to_dict() for f in self.functions],
            "call_graph": {name: list(calls) for name, calls in self.call_graph.items()},
        }
