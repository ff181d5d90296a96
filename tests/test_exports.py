"""Tests for the tree view and the function-level call graph."""

IF_ELSE = """\
function f(x) {
  if (x>0) { return 1 } else { return -1 }
}
"""

CALLS = """\
function helper(v) {
  return v * 2;
}

function run(values) {
  const doubled = helper(values);
  return doubled;
}
"""


class TestCFGTree:
    def test_if_else_tree(self, build):
        from linecfg.exports import build_cfg_tree

        tree = build_cfg_tree(build(IF_ELSE))
        assert tree.kind == "function"
        assert tree.branch_type is None

        [condition] = tree.children
        assert condition.kind == "condition"
        assert condition.is_conditional

        positive, negative = condition.children
        assert (positive.label, positive.branch_type) == ("return 1", "true")
        assert (negative.label, negative.branch_type) == ("return -1", "false")
        # Exit is listed once, under the branch that reached it first
        assert [child.kind for child in positive.children] == ["exit"]
        assert negative.children == []

    def test_tree_skips_call_edges(self, build):
        from linecfg.exports import build_cfg_tree

        tree = build_cfg_tree(build(CALLS))
        labels = []
        stack = [tree]
        while stack:
            node = stack.pop()
            labels.append(node.label)
            stack.extend(node.children)
        assert "helper(v)" in labels
        assert "run(values)" not in labels

    def test_to_dict(self, build):
        from linecfg.exports import build_cfg_tree

        data = build_cfg_tree(build(IF_ELSE)).to_dict()
        assert data["kind"] == "function"
        assert data["metadata"] == {"parameters": ["x"], "method_name": "f"}
        condition = data["children"][0]
        assert condition["is_conditional"] is True
        assert [c["branch_type"] for c in condition["children"]] == ["true", "false"]

    def test_missing_entry(self):
        from linecfg.cfg_model import ControlFlowGraph
        from linecfg.exports import build_cfg_tree

        assert build_cfg_tree(ControlFlowGraph((), (), "node_0", ())) is None


class TestCallGraph:
    def test_functions(self, build):
        from linecfg.exports import build_call_graph

        graph = build_call_graph(build(CALLS))
        assert set(graph) == {"helper", "run"}
        assert graph["run"].calls == ["helper"]
        assert graph["run"].called_by == []
        assert graph["helper"].called_by == ["run"]
        assert not graph["helper"].is_method

    def test_methods_are_qualified(self, build):
        from linecfg.exports import build_call_graph

        cfg = build(
            """\
            class Dog {
              bark() {
                this.log("woof");
              }
              log(msg) {
                return msg.trim();
              }
            }
            """,
            "typescript",
        )
        graph = build_call_graph(cfg)
        assert set(graph) == {"Dog.bark", "Dog.log"}
        bark = graph["Dog.bark"]
        assert bark.is_method
        assert bark.parent_class == "Dog"
        assert bark.calls == ["Dog.log"]
        assert graph["Dog.log"].to_dict() == {
            "name": "Dog.log",
            "calls": [],
            "called_by": ["Dog.bark"],
            "is_method": True,
            "parent_class": "Dog",
        }

    def test_uncalled_functions_are_listed(self, build):
        from linecfg.exports import build_call_graph

        graph = build_call_graph(build("function lonely() {\n  return 1;\n}\n"))
        assert graph["lonely"].calls == []
        assert graph["lonely"].called_by == []
