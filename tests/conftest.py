"""Shared fixtures for the depgraph test suite."""

import importlib.util
import textwrap

import pytest

from depgraph.graph import Edge, EdgeType, Graph, Node


def pytest_collect_file(parent, file_path):  # noqa: ARG001
    """Skip test_code_tree_* files when tree-sitter is not installed."""
    if file_path.name.startswith("test_code_tree") and file_path.suffix == ".py":
        if importlib.util.find_spec("tree_sitter") is None:
            return None  # skip collection entirely


@pytest.fixture
def make_project(tmp_path):
    """Factory: write {relative path: source} into a fresh project directory."""

    def _make(files: dict[str, str], name: str = "proj"):
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        return root

    return _make


@pytest.fixture
def chain_graph():
    """Factory: graph with nodes ``ids`` linked in order: a -> b -> c ..."""

    def _chain(*ids: str, edge_type: EdgeType = EdgeType.IMPORTS) -> Graph:
        nodes = [Node(i, i, "module") for i in ids]
        edges = [Edge(a, b, edge_type) for a, b in zip(ids, ids[1:])]
        return Graph(nodes=nodes, edges=edges)

    return _chain


@pytest.fixture
def small_graph():
    """Four nodes: app imports service and util, service extends base.

    app.main --imports--> app.service --extends--> app.base
    app.main --imports--> app.util
    """
    nodes = [
        Node("app.main", "main", "module", {"file_path": "app/main.py", "line": 1}),
        Node("app.service", "service", "class", {"file_path": "app/service.py", "line": 3}),
        Node("app.base", "base", "class", {"file_path": "app/base.py", "line": 1}),
        Node("app.util", "util", "module", {"file_path": "app/util.py", "line": 1}),
    ]
    edges = [
        Edge("app.main", "app.service", EdgeType.IMPORTS),
        Edge("app.service", "app.base", EdgeType.EXTENDS),
        Edge("app.main", "app.util", EdgeType.IMPORTS),
    ]
    return Graph(nodes=nodes, edges=edges, metadata={"language": "python"})
