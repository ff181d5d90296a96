"""
Tree layout for rendering a CFG without a graph visualisation library.

Levels come from a breadth-first walk over non-call edges starting at the
entry node. Each node is placed centred above the subtree it discovered
first; nodes the walk never reaches are stacked in a column at x=600.
"""

from collections import deque
from dataclasses import dataclass

from .cfg_model import ControlFlowGraph

NODE_WIDTH = 200
NODE_HEIGHT = 80
HORIZONTAL_GAP = 100
VERTICAL_GAP = 120
DISCONNECTED_X = 600


@dataclass(frozen=True)
class NodePosition:
    x: float
    y: float
    level: int
    branch: str = "center"  # "left", "right" or "center"

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "level": self.level, "branch": self.branch}


def _branch_tag(index: int, count: int) -> str:
    if count >= 2 and index == 0:
        return "left"
    if count >= 2 and index == count - 1:
        return "right"
    return "center"


def calculate_node_positions(cfg: ControlFlowGraph) -> dict[str, NodePosition]:
    """Map node ids to layout positions (x of the node centre, y of its top)."""
    positions: dict[str, NodePosition] = {}
    if not cfg.nodes:
        return positions

    successors: dict[str, list[str]] = {node.id: [] for node in cfg.nodes}
    for edge in cfg.edges:
        if edge.condition == "call" or edge.source not in successors:
            continue
        targets = successors[edge.source]
        if edge.target not in targets:
            targets.append(edge.target)

    # Breadth-first spanning tree
    levels = {cfg.entry_node: 0}
    tree_children: dict[str, list[str]] = {}
    order = []
    queue = deque([cfg.entry_node])
    while queue:
        node_id = queue.popleft()
        order.append(node_id)
        discovered = []
        for target in successors.get(node_id, ()):
            if target not in levels:
                levels[target] = levels[node_id] + 1
                discovered.append(target)
                queue.append(target)
        tree_children[node_id] = discovered

    widths: dict[str, float] = {}
    for node_id in reversed(order):
        children = tree_children[node_id]
        total = sum(widths[child] for child in children)
        total += HORIZONTAL_GAP * max(len(children) - 1, 0)
        widths[node_id] = max(NODE_WIDTH, total)

    positions[cfg.entry_node] = NodePosition(0, 0, 0, "center")
    for node_id in order:
        parent = positions[node_id]
        children = tree_children[node_id]
        if not children:
            continue
        span = sum(widths[child] for child in children)
        span += HORIZONTAL_GAP * (len(children) - 1)
        left = parent.x - span / 2
        y = parent.y + NODE_HEIGHT + VERTICAL_GAP
        for index, child in enumerate(children):
            positions[child] = NodePosition(
                left + widths[child] / 2, y, levels[child], _branch_tag(index, len(children))
            )
            left += widths[child] + HORIZONTAL_GAP

    y = 0
    for node in cfg.nodes:
        if node.id not in positions:
            positions[node.id] = NodePosition(DISCONNECTED_X, y, 0, "center")
            y += NODE_HEIGHT + VERTICAL_GAP
    return positions
