"""Tests for the breadth-first tree layout."""

IF_ELSE = """\
function f(x) {
  if (x>0) { return 1 } else { return -1 }
}
"""


def test_if_else_layout(build, find):
    from linecfg.layout import calculate_node_positions

    cfg = build(IF_ELSE)
    positions = calculate_node_positions(cfg)
    assert set(positions) == {n.id for n in cfg.nodes}

    entry = find(cfg, "function")[0]
    condition = find(cfg, "condition")[0]
    ret_pos = find(cfg, "return", "return 1")[0]
    ret_neg = find(cfg, "return", "return -1")[0]
    exit_node = find(cfg, "exit")[0]

    assert positions[entry.id].to_dict() == {"x": 0, "y": 0, "level": 0, "branch": "center"}
    assert (positions[condition.id].x, positions[condition.id].y) == (0, 200)
    assert (positions[ret_pos.id].x, positions[ret_pos.id].branch) == (-150, "left")
    assert (positions[ret_neg.id].x, positions[ret_neg.id].branch) == (150, "right")
    assert positions[ret_pos.id].level == 2
    # Exit hangs under the branch that reached it first
    assert (positions[exit_node.id].x, positions[exit_node.id].y) == (-150, 600)
    assert positions[exit_node.id].level == 3


def test_call_edges_do_not_shape_layout(build, find):
    from linecfg.layout import calculate_node_positions

    cfg = build("function a() {\n  b();\n}\nfunction b() {\n  return 1;\n}\n")
    positions = calculate_node_positions(cfg)
    b_entry = find(cfg, "function", "b")[0]
    # Reached only through a call edge, so it is stacked with the other
    # disconnected nodes
    assert positions[b_entry.id].x == 600
    assert positions[b_entry.id].level == 0


def test_disconnected_nodes_are_stacked():
    from linecfg.cfg_model import CFGEdge, CFGNode, ControlFlowGraph
    from linecfg.layout import calculate_node_positions

    cfg = ControlFlowGraph(
        nodes=(
            CFGNode("node_0", "entry", "start"),
            CFGNode("node_1", "exit", "end"),
            CFGNode("node_2", "statement", "lost"),
            CFGNode("node_3", "statement", "also lost"),
        ),
        edges=(CFGEdge("node_0", "node_1"),),
        entry_node="node_0",
        exit_nodes=("node_1",),
    )
    positions = calculate_node_positions(cfg)
    assert (positions["node_1"].x, positions["node_1"].y) == (0, 200)
    assert (positions["node_2"].x, positions["node_2"].y) == (600, 0)
    assert (positions["node_3"].x, positions["node_3"].y) == (600, 200)


def test_three_way_split_tags():
    from linecfg.cfg_model import CFGEdge, CFGNode, ControlFlowGraph
    from linecfg.layout import calculate_node_positions

    nodes = tuple(CFGNode(f"node_{i}", "statement", str(i)) for i in range(4))
    edges = tuple(CFGEdge("node_0", f"node_{i}") for i in (1, 2, 3))
    cfg = ControlFlowGraph(nodes=nodes, edges=edges, entry_node="node_0", exit_nodes=())
    positions = calculate_node_positions(cfg)
    assert [positions[f"node_{i}"].branch for i in (1, 2, 3)] == ["left", "center", "right"]
    assert [positions[f"node_{i}"].x for i in (1, 2, 3)] == [-300, 0, 300]


def test_long_function_does_not_recurse(build):
    from linecfg.layout import calculate_node_positions

    body = "\n".join(f"  step{i}();" for i in range(3000))
    cfg = build(f"function long() {{\n{body}\n}}\n")
    positions = calculate_node_positions(cfg)
    assert len(positions) == len(cfg.nodes)


def test_empty_graph():
    from linecfg.cfg_model import ControlFlowGraph
    from linecfg.layout import calculate_node_positions

    assert calculate_node_positions(ControlFlowGraph((), (), "node_0", ())) == {}
