"""Heuristic, language-agnostic control flow graphs from raw source text."""

from .cfg_model import (
    CFGClassInfo,
    CFGEdge,
    CFGFunctionInfo,
    CFGNode,
    ControlFlowGraph,
    NodeMetadata,
)
from .exports import CallGraphNode, CFGTreeNode, build_call_graph, build_cfg_tree
from .graph_assembler import build_control_flow_graph
from .layout import NodePosition, calculate_node_positions

__all__ = [
    "CFGClassInfo",
    "CFGEdge",
    "CFGFunctionInfo",
    "CFGNode",
    "CFGTreeNode",
    "CallGraphNode",
    "ControlFlowGraph",
    "NodeMetadata",
    "NodePosition",
    "build_call_graph",
    "build_cfg_tree",
    "build_control_flow_graph",
    "calculate_node_positions",
]
