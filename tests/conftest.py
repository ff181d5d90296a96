"""Pytest configuration and fixtures."""

import textwrap

import pytest


@pytest.fixture
def build():
    """Build a CFG from a dedented snippet."""
    from linecfg import build_control_flow_graph

    def _build(code, language="javascript"):
        return build_control_flow_graph(textwrap.dedent(code), language)

    return _build


@pytest.fixture
def find():
    """Look up nodes by kind and (optionally) label prefix."""

    def _find(cfg, kind, label=None):
        return [
            node
            for node in cfg.nodes
            if node.kind == kind and (label is None or node.label.startswith(label))
        ]

    return _find


@pytest.fixture
def edge_set():
    """(source, target, condition) triples of a graph."""

    def _edge_set(cfg):
        return {(e.source, e.target, e.condition) for e in cfg.edges}

    return _edge_set
