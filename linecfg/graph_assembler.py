"""
Graph assembly: one source text in, one ControlFlowGraph out.

Steps:
1. prepare logical lines (masking, brace splitting)
2. detect classes, functions and class properties
3. emit class containers, property nodes and hierarchy edges
4. build the entry/exit pair and body CFG of every function
5. add call edges the single pass could not resolve
6. package nodes, edges and per-function/per-class descriptors
"""

import logging
import re

from .cfg_builder import BuilderContext, build_function_cfg
from .cfg_model import CFGClassInfo, CFGFunctionInfo, ControlFlowGraph, NodeMetadata
from .languages import DEFAULT_LANGUAGE
from .scope_detector import detect_classes, detect_functions, detect_properties
from .source_text import SourceText

logger = logging.getLogger(__name__)

# Node kinds that never originate call edges
_NON_CALLING_KINDS = frozenset({"return", "throw", "condition", "loop", "exit"})
_DECISION_KINDS = frozenset({"condition", "loop"})


def _create_class_nodes(ctx: BuilderContext):
    source = ctx.source
    for cls in ctx.classes:
        existing = ctx.class_nodes.get(cls.name)
        if existing is not None:
            # impl blocks and reopened classes share one container
            cls.node_id = existing
            continue
        cls.node_id = ctx.create_node(
            "class",
            cls.name,
            source[cls.start_line].number,
            source[cls.start_line].trimmed,
            depth=0,
            group=cls.name,
            metadata=NodeMetadata(class_name=cls.name),
        )
        ctx.class_nodes[cls.name] = cls.node_id

    linked = set()
    for cls in ctx.classes:
        if not cls.parent_class or cls.name in linked:
            continue
        parent_id = ctx.class_nodes.get(cls.parent_class)
        if parent_id is None or parent_id == cls.node_id:
            continue
        ctx.add_edge(cls.node_id, parent_id, "inherits", "extends", "hierarchy")
        linked.add(cls.name)


def _create_property_nodes(ctx: BuilderContext) -> dict[str, list[str]]:
    properties: dict[str, list[str]] = {}
    source = ctx.source
    for cls in ctx.classes:
        for name, index in cls.properties:
            node_id = ctx.create_node(
                "property",
                name,
                source[index].number,
                source[index].trimmed,
                parent_id=cls.node_id,
                depth=1,
                group=cls.name,
                metadata=NodeMetadata(class_name=cls.name),
            )
            ctx.add_child(cls.node_id, node_id)
            ctx.add_edge(cls.node_id, node_id, "contains", "contains", "hierarchy")
            properties.setdefault(cls.name, []).append(node_id)
    return properties


def _add_call_edges(ctx: BuilderContext):
    """Connect calling statements to callee entries found after them."""
    for func in ctx.functions:
        if func.entry_node_id is None:
            continue
        owned = ctx.owned_nodes(func.entry_node_id)
        for name in func.calls:
            callee = ctx.resolve_function(name, func.parent_class)
            if callee is None:
                continue
            mention = re.compile(rf"\b{re.escape(name)}\s*\(")
            for node in owned:
                if node.kind in _NON_CALLING_KINDS or not node.code:
                    continue
                if mention.search(node.code):
                    ctx.add_edge(node.id, callee.entry_node_id, "call", "calls", "call")


def _function_descriptors(ctx: BuilderContext) -> tuple[CFGFunctionInfo, ...]:
    descriptors = []
    for func in ctx.functions:
        decisions = sum(
            1 for node in ctx.owned_nodes(func.entry_node_id) if node.kind in _DECISION_KINDS
        )
        prefix = f"{func.parent_class}_" if func.parent_class else ""
        descriptors.append(
            CFGFunctionInfo(
                id=f"func_{prefix}{func.name}",
                name=func.name,
                node_id=func.entry_node_id,
                exit_node_id=func.exit_node_id,
                class_name=func.parent_class,
                parameters=tuple(func.parameters),
                calls=tuple(func.calls),
                cyclomatic_complexity=decisions + 1,
            )
        )
    return tuple(descriptors)


def _class_descriptors(ctx: BuilderContext, properties: dict[str, list[str]]) -> tuple[CFGClassInfo, ...]:
    descriptors = []
    seen = set()
    for cls in ctx.classes:
        if cls.name in seen:
            continue
        seen.add(cls.name)
        parent = next(
            (c.parent_class for c in ctx.classes if c.name == cls.name and c.parent_class), None
        )
        methods = tuple(
            f.entry_node_id for f in ctx.functions if f.parent_class == cls.name and f.entry_node_id
        )
        descriptors.append(
            CFGClassInfo(
                id=f"class_{cls.name}",
                name=cls.name,
                node_id=cls.node_id,
                parent_class=parent,
                methods=methods,
                properties=tuple(properties.get(cls.name, ())),
            )
        )
    return tuple(descriptors)


def build_control_flow_graph(code: str, language: str = DEFAULT_LANGUAGE) -> ControlFlowGraph:
    """Build a heuristic CFG for ``code`` written in ``language``.

    Never raises for malformed input: unknown constructs become plain
    statements and unterminated blocks run to the end of the text.

    Args:
        code: Source text; may be empty.
        language: Language tag (``javascript``, ``python``, ``go``...).

    Returns:
        ControlFlowGraph covering every detected function (or an implicit
        ``main`` wrapping the whole input when none is found). Input without
        any code yields a bare entry/exit pair.
    """
    source = SourceText.from_code(code, language)
    ctx = BuilderContext(source)
    properties: dict[str, list[str]] = {}

    if any(line.is_code for line in source.lines):
        ctx.classes = detect_classes(source)
        functions = detect_functions(source, ctx.classes)
        detect_properties(source, ctx.classes, functions)

        _create_class_nodes(ctx)
        properties = _create_property_nodes(ctx)

        ctx.register_functions(functions)
        for func in functions:
            build_function_cfg(ctx, func)
        _add_call_edges(ctx)
    else:
        logger.debug("No code in input, emitting bare entry/exit pair")
        entry = ctx.create_node("entry", "start", 1)
        end = ctx.create_node("exit", "end", max(len(source.lines), 1))
        ctx.add_edge(entry, end, None, None, "control")

    nodes = ctx.finalized_nodes()
    cfg = ControlFlowGraph(
        nodes=nodes,
        edges=tuple(ctx.edges),
        entry_node=nodes[0].id,
        exit_nodes=tuple(node.id for node in nodes if node.kind == "exit"),
        classes=_class_descriptors(ctx, properties),
        functions=_function_descriptors(ctx),
        call_graph={name: tuple(calls) for name, calls in ctx.call_graph.items()},
    )
    logger.debug(
        f"Built CFG ({source.language}): {len(cfg.nodes)} nodes, {len(cfg.edges)} edges, "
        f"{len(cfg.functions)} functions, {len(cfg.classes)} classes"
    )
    return cfg
