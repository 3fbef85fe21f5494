"""Tests for the shared analysis session."""

import threading

import pytest

from depgraph.session import AnalysisSession


def test_empty_session():
    session = AnalysisSession()
    assert session.get_graph() is None
    assert session.get_node_by_id("x") is None
    assert session.edges_touching("x") == []
    assert session.metrics() is None


def test_lookup(small_graph):
    session = AnalysisSession(small_graph)
    assert session.get_node_by_id("app.base").type == "class"
    assert session.get_node_by_id("missing") is None
    touching = session.edges_touching("app.service")
    assert [(e.source, e.target) for e in touching] == [
        ("app.main", "app.service"), ("app.service", "app.base")]


def test_metrics_cached_until_replace(small_graph, chain_graph):
    session = AnalysisSession(small_graph)
    first = session.metrics()
    assert first.max_depth == 2
    assert session.metrics() is first
    session.replace(chain_graph("a", "b", "c", "d"))
    assert session.metrics().max_depth == 3


def test_close(small_graph, chain_graph):
    with AnalysisSession(small_graph) as session:
        assert not session.closed
    assert session.closed
    assert session.get_graph() is None
    with pytest.raises(RuntimeError, match="closed"):
        session.replace(chain_graph("a"))


def test_readers_see_whole_graphs(chain_graph):
    """Concurrent readers only ever observe one of the published graphs."""
    graphs = [chain_graph(*[f"g{g}n{i}" for i in range(g + 1)]) for g in range(10)]
    session = AnalysisSession(graphs[0])
    seen: list[int] = []
    errors: list[Exception] = []

    def reader():
        try:
            for _ in range(500):
                graph = session.get_graph()
                seen.append(len(graph.nodes))
                assert len(graph.edges) == len(graph.nodes) - 1
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for graph in graphs[1:]:
        session.replace(graph)
    for t in threads:
        t.join()
    assert errors == []
    assert set(seen) <= set(range(1, 11))
