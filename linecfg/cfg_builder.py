"""
Recursive block CFG construction.

``build_block`` walks a range of logical lines and emits nodes and edges for
it, recursing into loop bodies and branches. It replaces a parser: block
extents come from brace/indentation matching, constructs from the line
classifier.

Deferred edges are ``PendingEdge`` values (source node + the condition tag
the edge will carry). Every call returns the ones it could not wire:

- ``last``: the dangling predecessor the caller continues from
- ``pending``: branch false paths, loop exits and merged branch ends, wired
  to whatever node the caller emits next (or to the exit)
- ``breaks``: break statements, passed up until the enclosing loop or
  switch turns them into edges to its first successor

All mutable state of one request lives in ``BuilderContext``; the walker
state of one ``build_block`` call lives in ``_BlockWalker`` and is never
shared with other calls.
"""

import re
from dataclasses import dataclass, field, replace
from typing import NamedTuple

from .cfg_model import CFGEdge, CFGNode, NodeMetadata
from .line_classifier import LineAnalysis, classify_line, should_skip_line
from .scope_detector import ClassScope, FunctionScope
from .source_text import SourceText

_ELSE_LINE = re.compile(r"^(?:else\b(?!\s*->)|elif\b)")
_ELIF_LINE = re.compile(r"^(?:else\s+if\b|elif\b)")
_HANDLER_LINE = re.compile(r"^(?:(?:catch|except|rescue|finally|ensure)\b|else\s*:)")


class PendingEdge(NamedTuple):
    """An edge whose target is not known yet."""

    source: str
    condition: str | None = None
    label: str | None = None


class LoopFrame(NamedTuple):
    node_id: str


@dataclass
class BlockResult:
    last: PendingEdge | None
    pending: list[PendingEdge] = field(default_factory=list)
    breaks: list[PendingEdge] = field(default_factory=list)
    has_return: bool = False

    @property
    def last_node(self) -> str | None:
        return self.last.source if self.last is not None else None

    @property
    def pending_nodes(self) -> list[str]:
        return [p.source for p in self.pending + self.breaks]


class BuilderContext:
    """Per-request arena: node id counter, nodes, edges and scope tables."""

    def __init__(self, source: SourceText):
        self.source = source
        self.language = source.language
        self.nodes: list[CFGNode] = []
        self.edges: list[CFGEdge] = []
        self.classes: list[ClassScope] = []
        self.functions: list[FunctionScope] = []
        self.class_nodes: dict[str, str] = {}  # class name -> container node id
        self.call_graph: dict[str, list[str]] = {}

        self._node_counter = 0
        self._edge_keys: set[tuple[str, str, str | None]] = set()
        self._outgoing: dict[str, list[CFGEdge]] = {}
        self._owned: dict[str, list[CFGNode]] = {}
        self._children: dict[str, list[str]] = {}
        self._function_starts: dict[int, FunctionScope] = {}

    def create_node(
        self,
        kind: str,
        label: str,
        line: int | None = None,
        code: str | None = None,
        *,
        parent_id: str | None = None,
        depth: int = 0,
        group: str | None = None,
        metadata: NodeMetadata | None = None,
    ) -> str:
        node_id = f"node_{self._node_counter}"
        self._node_counter += 1
        node = CFGNode(
            id=node_id,
            kind=kind,
            label=label,
            line=line,
            code=code,
            parent_id=parent_id,
            depth=depth,
            group=group,
            metadata=metadata,
        )
        self.nodes.append(node)
        if parent_id is not None:
            self._owned.setdefault(parent_id, []).append(node)
        return node_id

    def add_edge(
        self,
        source: str,
        target: str,
        condition: str | None = None,
        label: str | None = None,
        category: str | None = None,
    ) -> bool:
        """Add an edge unless the (source, target, condition) triple exists."""
        key = (source, target, condition)
        if key in self._edge_keys:
            return False
        edge = CFGEdge(source, target, condition, label, category)
        self._edge_keys.add(key)
        self.edges.append(edge)
        self._outgoing.setdefault(source, []).append(edge)
        return True

    def outgoing(self, node_id: str) -> list[CFGEdge]:
        return self._outgoing.get(node_id, [])

    def owned_nodes(self, parent_id: str) -> list[CFGNode]:
        return self._owned.get(parent_id, [])

    def add_child(self, container_id: str, child_id: str):
        self._children.setdefault(container_id, []).append(child_id)

    def register_functions(self, functions: list[FunctionScope]):
        self.functions = functions
        self._function_starts = {f.start_line: f for f in functions if not f.implicit}
        for func in functions:
            calls = self.call_graph.setdefault(func.name, [])
            calls.extend(c for c in func.calls if c not in calls)

    def function_starting_at(self, index: int) -> FunctionScope | None:
        return self._function_starts.get(index)

    def resolve_function(self, name: str, prefer_class: str | None = None) -> FunctionScope | None:
        """Built function named ``name``, preferring one of ``prefer_class``."""
        fallback = None
        for func in self.functions:
            if func.name != name or func.entry_node_id is None:
                continue
            if func.parent_class == prefer_class:
                return func
            if fallback is None:
                fallback = func
        return fallback

    def finalized_nodes(self) -> tuple[CFGNode, ...]:
        """Nodes with container children filled in."""
        return tuple(
            replace(node, children=tuple(self._children[node.id]))
            if node.id in self._children
            else node
            for node in self.nodes
        )


class _BlockWalker:
    """State of one ``build_block`` call."""

    def __init__(self, ctx, func, exit_id, depth, loops, predecessor):
        self.ctx: BuilderContext = ctx
        self.source: SourceText = ctx.source
        self.func: FunctionScope = func
        self.exit_id: str = exit_id
        self.depth: int = depth
        self.loops: tuple[LoopFrame, ...] = loops
        self.prev: PendingEdge | None = predecessor
        self.pending: list[PendingEdge] = []
        self.breaks: list[PendingEdge] = []
        self.has_return = False
        # Set on the walker of a switch body
        self.case_labels = False
        self.last_label: str | None = None
        self.default_label: str | None = None

    def run(self, start: int, end: int) -> BlockResult:
        end = min(end, len(self.source) - 1)
        index = start
        while index <= end:
            index = self._step(index, end)
        return BlockResult(self.prev, self.pending, self.breaks, self.has_return)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(self, kind: str, label: str, index: int, metadata: NodeMetadata | None = None) -> str:
        line = self.source[index]
        return self.ctx.create_node(
            kind,
            label,
            line.number,
            line.trimmed,
            parent_id=self.func.entry_node_id,
            depth=self.func.depth + 1 + self.depth,
            group=self.func.qualified_name,
            metadata=metadata,
        )

    def _wire(self, pending: PendingEdge, target: str):
        self.ctx.add_edge(pending.source, target, pending.condition, pending.label, "control")

    def _connect(self, node_id: str):
        """Wire the predecessor and deferred edges into ``node_id``.

        Breaks are left alone: they leave the enclosing loop or switch.
        """
        if self.prev is not None:
            self._wire(self.prev, node_id)
        for pending in self.pending:
            self._wire(pending, node_id)
        self.prev = None
        self.pending = []

    def _sub_block(self, start: int, end: int, predecessor: PendingEdge | None, loops=None) -> BlockResult:
        return build_block(
            self.ctx,
            self.func,
            start,
            end,
            predecessor,
            self.exit_id,
            self.depth + 1,
            self.loops if loops is None else loops,
        )

    def _absorb(self, result: BlockResult, terminals: list[PendingEdge]):
        if result.last is not None:
            terminals.append(result.last)
        self.pending.extend(result.pending)
        self.breaks.extend(result.breaks)
        self.has_return = self.has_return or result.has_return

    def _merge(self, terminals: list[PendingEdge]):
        # First branch end continues the flow, the others join at the next node
        self.prev = terminals[0] if terminals else None
        self.pending.extend(terminals[1:])

    def _block_end(self, header: int, end: int) -> int:
        return min(self.source.find_block_end(header), end)

    def _body_end(self, header: int, block_end: int) -> int:
        if block_end > header and self.source[block_end].code_trimmed.startswith("}"):
            return block_end - 1
        return block_end

    def _continuation(self, header: int, block_end: int, end: int, pattern) -> int | None:
        """Index of an else/catch-style line continuing the block at ``header``."""
        following = self.source.next_code_line(block_end + 1, end)
        if following is None:
            return None
        line = self.source[following]
        if not pattern.match(line.code_trimmed):
            return None
        if not self.source.opens_brace_block(header) and line.indent != self.source[header].indent:
            return None
        return following

    def _chain_end(self, header: int, end: int) -> int:
        block_end = self._block_end(header, end)
        while True:
            following = self._continuation(header, block_end, end, _ELSE_LINE)
            if following is None:
                return block_end
            header = following
            block_end = self._block_end(following, end)

    # ------------------------------------------------------------------
    # Constructs
    # ------------------------------------------------------------------

    def _step(self, index: int, end: int) -> int:
        line = self.source[index]
        if not line.is_code or should_skip_line(line.trimmed):
            return index + 1

        nested = self.ctx.function_starting_at(index)
        if nested is not None and nested is not self.func and self.func.contains(index):
            # Nested functions get their own CFG
            return nested.end_line + 1

        analysis = classify_line(line.text, line.trimmed, self.ctx.language)
        construct = analysis.construct

        if construct == "else":
            return index + 1
        if construct in ("if", "elif"):
            return self._conditional(index, end, analysis)
        if construct == "guard":
            return self._guard(index, end, analysis)
        if construct == "switch":
            return self._switch(index, end, analysis)
        if construct == "try":
            return self._try(index, end, analysis)
        if analysis.kind == "loop":
            return self._loop(index, end, analysis)
        if analysis.kind in ("return", "throw"):
            return self._terminal(index, analysis)
        if construct == "break":
            return self._break(index, analysis)
        if construct == "continue":
            return self._continue(index, analysis)
        if self.case_labels and construct in ("case", "default"):
            return self._case_label(index, analysis)
        return self._statement(index, analysis)

    def _loop(self, index: int, end: int, analysis: LineAnalysis) -> int:
        block_end = self._block_end(index, end)
        if analysis.construct == "foreach" and block_end == index:
            # items.map(x => x * 2) opens no block
            return self._statement(index, analysis)

        node = self._emit("loop", analysis.label, index)
        self._connect(node)

        frame = LoopFrame(node)
        body = self._sub_block(
            index + 1,
            self._body_end(index, block_end),
            PendingEdge(node, "true", "body"),
            loops=self.loops + (frame,),
        )
        if body.last is not None:
            if body.last.source == node:
                # Empty body
                self.ctx.add_edge(node, node, "true", "body", "control")
            elif body.last.condition is None:
                self.ctx.add_edge(body.last.source, node, "iterate", "iterate", "control")
            else:
                self._wire(body.last, node)
        for pending in body.pending:
            self._wire(pending, node)
        self.has_return = self.has_return or body.has_return

        self.pending.append(PendingEdge(node, "false", "exit"))
        self.pending.extend(body.breaks)
        return block_end + 1

    def _conditional(self, index: int, end: int, analysis: LineAnalysis) -> int:
        node = self._emit("condition", analysis.label, index)
        self._connect(node)

        terminals: list[PendingEdge] = []
        block_end = self._block_end(index, end)
        then = self._sub_block(
            index + 1, self._body_end(index, block_end), PendingEdge(node, "true", "then")
        )
        self._absorb(then, terminals)

        else_index = self._continuation(index, block_end, end, _ELSE_LINE)
        if else_index is None:
            self.pending.append(PendingEdge(node, "false", "else"))
            self._merge(terminals)
            return block_end + 1

        if _ELIF_LINE.match(self.source[else_index].code_trimmed):
            chain_end = self._chain_end(else_index, end)
            other = self._sub_block(else_index, chain_end, PendingEdge(node, "false", "else"))
            next_index = chain_end + 1
        else:
            else_end = self._block_end(else_index, end)
            other = self._sub_block(
                else_index + 1,
                self._body_end(else_index, else_end),
                PendingEdge(node, "false", "else"),
            )
            next_index = else_end + 1
        self._absorb(other, terminals)
        self._merge(terminals)
        return next_index

    def _guard(self, index: int, end: int, analysis: LineAnalysis) -> int:
        node = self._emit("condition", analysis.label, index)
        self._connect(node)

        block_end = self._block_end(index, end)
        terminals = [PendingEdge(node, "true", "then")]
        otherwise = self._sub_block(
            index + 1, self._body_end(index, block_end), PendingEdge(node, "false", "else")
        )
        self._absorb(otherwise, terminals)
        self._merge(terminals)
        return block_end + 1

    def _switch(self, index: int, end: int, analysis: LineAnalysis) -> int:
        node = self._emit("condition", analysis.label, index)
        self._connect(node)

        block_end = self._block_end(index, end)
        labels = _BlockWalker(
            self.ctx,
            self.func,
            self.exit_id,
            self.depth + 1,
            self.loops,
            PendingEdge(node, "true", "case"),
        )
        labels.case_labels = True
        body = labels.run(index + 1, self._body_end(index, block_end))

        terminals: list[PendingEdge] = []
        if body.last is not None:
            terminals.append(body.last)
        # break leaves the switch, not an enclosing loop
        self.pending.extend(body.pending)
        self.pending.extend(body.breaks)
        if labels.default_label is not None:
            self.ctx.add_edge(node, labels.default_label, "false", "default", "control")
        else:
            self.pending.append(PendingEdge(node, "false", "default"))
        self.has_return = self.has_return or body.has_return
        self._merge(terminals)
        return block_end + 1

    def _try(self, index: int, end: int, analysis: LineAnalysis) -> int:
        node = self._emit("statement", analysis.label, index)
        self._connect(node)

        terminals: list[PendingEdge] = []
        block_end = self._block_end(index, end)
        body = self._sub_block(index + 1, self._body_end(index, block_end), PendingEdge(node))
        self._absorb(body, terminals)
        body_last = body.last

        while True:
            handler = self._continuation(index, block_end, end, _HANDLER_LINE)
            if handler is None:
                break
            line = self.source[handler]
            handler_analysis = classify_line(line.text, line.trimmed, self.ctx.language)
            block_end = self._block_end(handler, end)
            body_end = self._body_end(handler, block_end)

            if handler_analysis.construct == "catch":
                handler_node = self._emit("statement", handler_analysis.label, handler)
                self.ctx.add_edge(node, handler_node, "exception", "catch", "control")
                result = self._sub_block(handler + 1, body_end, PendingEdge(handler_node))
                self._absorb(result, terminals)
            elif handler_analysis.construct == "else":
                # try/except/else: runs only when the try body completed
                if body_last in terminals:
                    terminals.remove(body_last)
                result = self._sub_block(handler + 1, body_end, body_last)
                self._absorb(result, terminals)
            else:
                finally_node = self._emit("statement", handler_analysis.label, handler)
                self._merge(terminals)
                self._connect(finally_node)
                terminals = []
                result = self._sub_block(handler + 1, body_end, PendingEdge(finally_node))
                self._absorb(result, terminals)

        self._merge(terminals)
        return block_end + 1

    def _terminal(self, index: int, analysis: LineAnalysis) -> int:
        node = self._emit(analysis.kind, analysis.label, index)
        self._connect(node)
        self.ctx.add_edge(node, self.exit_id, None, None, "control")
        self.has_return = True
        self.prev = None
        return index + 1

    def _break(self, index: int, analysis: LineAnalysis) -> int:
        node = self._emit("statement", analysis.label, index)
        self._connect(node)
        self.breaks.append(PendingEdge(node, "break", "break"))
        self.prev = None
        return index + 1

    def _continue(self, index: int, analysis: LineAnalysis) -> int:
        node = self._emit("statement", analysis.label, index)
        self._connect(node)
        if self.loops:
            self.ctx.add_edge(node, self.loops[-1].node_id, "continue", "continue", "control")
            self.prev = None
        else:
            self.prev = PendingEdge(node)
        return index + 1

    def _case_label(self, index: int, analysis: LineAnalysis) -> int:
        node = self._emit("statement", analysis.label, index)
        unreached = self.prev is None and not self.pending
        self._connect(node)
        if analysis.construct == "default":
            # Entered by the switch node's false edge
            self.default_label = node
        elif unreached and self.last_label is not None:
            # Tried when the previous label did not match
            self.ctx.add_edge(self.last_label, node, None, "next case", "control")
        self.last_label = node
        self.prev = PendingEdge(node)
        return index + 1

    def _statement(self, index: int, analysis: LineAnalysis) -> int:
        # Only branch headers become condition nodes; case/ternary/assert
        # lines are plain statements in the flow
        metadata = None
        if analysis.is_call and analysis.called_name:
            metadata = NodeMetadata(method_name=analysis.called_name)
        node = self._emit("statement", analysis.label, index, metadata)
        self._connect(node)
        self.prev = PendingEdge(node)

        if analysis.is_call and analysis.called_name:
            callee = self.ctx.resolve_function(analysis.called_name, self.func.parent_class)
            if callee is not None:
                self.ctx.add_edge(node, callee.entry_node_id, "call", "calls", "call")
        return index + 1


def build_block(
    ctx: BuilderContext,
    func: FunctionScope,
    start: int,
    end: int,
    predecessor: PendingEdge | str | None,
    exit_id: str,
    depth: int = 0,
    loops: tuple[LoopFrame, ...] = (),
) -> BlockResult:
    """Emit nodes and edges for lines ``start..end`` of ``func``.

    Args:
        ctx: Request context holding nodes, edges and scopes.
        func: Function whose body the range belongs to.
        start: First logical line index of the range.
        end: Last logical line index of the range (inclusive).
        predecessor: Node (or deferred edge) the first emitted node hangs from.
        exit_id: The function's exit node; return/throw nodes wire to it.
        depth: Nesting depth of the range inside the function body.
        loops: Enclosing loops, innermost last.

    Returns:
        BlockResult with the dangling predecessor, unwired deferred edges and
        whether a return/throw occurred.
    """
    if isinstance(predecessor, str):
        predecessor = PendingEdge(predecessor)
    walker = _BlockWalker(ctx, func, exit_id, depth, loops, predecessor)
    return walker.run(start, end)


def build_function_cfg(ctx: BuilderContext, func: FunctionScope) -> None:
    """Create the entry/exit pair of ``func`` and build its body CFG."""
    parent_node_id = ctx.class_nodes.get(func.parent_class) if func.parent_class else None

    if func.is_constructor:
        kind = "constructor"
    elif func.parent_class:
        kind = "method"
    else:
        kind = "function"

    shown = ", ".join(func.parameters[:2])
    if len(func.parameters) > 2:
        shown += "..."
    group = func.qualified_name
    source = ctx.source

    entry_id = ctx.create_node(
        kind,
        f"{func.name}({shown})",
        source[func.start_line].number if len(source) else 1,
        parent_id=parent_node_id,
        depth=func.depth,
        group=group,
        metadata=NodeMetadata(
            is_async=func.is_async,
            is_constructor=func.is_constructor,
            parameters=tuple(func.parameters),
            class_name=func.parent_class,
            method_name=func.name,
        ),
    )
    func.entry_node_id = entry_id

    if parent_node_id is not None:
        ctx.add_child(parent_node_id, entry_id)
        ctx.add_edge(parent_node_id, entry_id, "contains", "contains", "hierarchy")

    exit_id = ctx.create_node(
        "exit",
        "exit",
        source[func.end_line].number if len(source) else 1,
        parent_id=entry_id,
        depth=func.depth + 1,
        group=group,
    )
    func.exit_node_id = exit_id

    result = build_block(ctx, func, func.body_start, func.end_line, PendingEdge(entry_id), exit_id, 0)

    if result.last is not None:
        ctx.add_edge(result.last.source, exit_id, result.last.condition, result.last.label, "control")
    for pending in result.pending + result.breaks:
        ctx.add_edge(pending.source, exit_id, pending.condition, pending.label, "control")

    if not ctx.outgoing(entry_id):
        ctx.add_edge(entry_id, exit_id, None, None, "control")
