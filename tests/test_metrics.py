"""Tests for cycle detection and max-depth computation."""

import pytest

from depgraph.errors import CycleDetectedError
from depgraph.graph import Edge, EdgeType, Graph, Node
from depgraph.metrics import compute_metrics, find_cycles, max_depth


def _graph(ids, pairs, edge_type=EdgeType.IMPORTS):
    return Graph(nodes=[Node(i, i, "module") for i in ids],
                 edges=[Edge(a, b, edge_type) for a, b in pairs])


class TestMaxDepth:
    def test_empty_graph(self):
        assert max_depth(Graph()) == 0

    def test_nodes_without_edges(self):
        assert max_depth(_graph(["a", "b"], [])) == 0

    def test_chain_of_four(self, chain_graph):
        assert max_depth(chain_graph("a", "b", "c", "d")) == 3

    def test_two_cycle_is_zero(self):
        assert max_depth(_graph(["a", "b"], [("a", "b"), ("b", "a")])) == 0

    def test_self_loop_is_zero(self):
        assert max_depth(_graph(["a"], [("a", "a")])) == 0

    def test_cycle_counts_as_one_unit(self):
        # x -> (a <-> b) -> y
        graph = _graph(["x", "a", "b", "y"],
                       [("x", "a"), ("a", "b"), ("b", "a"), ("b", "y")])
        assert max_depth(graph) == 2

    def test_longest_branch_wins(self):
        graph = _graph(["r", "a", "b", "c", "z"],
                       [("r", "z"), ("r", "a"), ("a", "b"), ("b", "c")])
        assert max_depth(graph) == 3

    def test_diamond(self):
        graph = _graph(["a", "b", "c", "d"],
                       [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")])
        assert max_depth(graph) == 2

    def test_long_chain_does_not_recurse(self, chain_graph):
        ids = [f"n{i}" for i in range(5000)]
        assert max_depth(chain_graph(*ids)) == 4999

    def test_large_cycle_terminates(self):
        ids = [f"n{i}" for i in range(2000)]
        pairs = list(zip(ids, ids[1:])) + [(ids[-1], ids[0])]
        assert max_depth(_graph(ids, pairs)) == 0

    def test_edge_type_filter(self):
        graph = Graph(
            nodes=[Node(i, i, "class") for i in "abc"],
            edges=[Edge("a", "b", EdgeType.CALLS), Edge("b", "c", EdgeType.EXTENDS)],
        )
        assert max_depth(graph) == 2
        assert max_depth(graph, edge_types=["extends"]) == 1
        assert max_depth(graph, edge_types=[EdgeType.IMPORTS]) == 0

    def test_raise_policy(self):
        graph = _graph(["a", "b", "c"], [("a", "b"), ("b", "a"), ("b", "c")])
        with pytest.raises(CycleDetectedError) as info:
            max_depth(graph, cycle_policy="raise")
        assert info.value.cycles == [["a", "b"]]

    def test_raise_policy_acyclic(self, chain_graph):
        assert max_depth(chain_graph("a", "b", "c"), cycle_policy="raise") == 2

    def test_unknown_policy(self, chain_graph):
        with pytest.raises(ValueError, match="Unknown cycle policy"):
            max_depth(chain_graph("a"), cycle_policy="ignore")


class TestFindCycles:
    def test_no_cycles(self, small_graph):
        assert find_cycles(small_graph) == []

    def test_members_in_node_order(self):
        graph = _graph(["c", "a", "b"], [("a", "b"), ("b", "c"), ("c", "a")])
        assert find_cycles(graph) == [["c", "a", "b"]]

    def test_multiple_cycles_ordered(self):
        graph = _graph(["p", "q", "x", "y", "s"],
                       [("x", "y"), ("y", "x"), ("p", "q"), ("q", "p"), ("s", "s")])
        assert find_cycles(graph) == [["p", "q"], ["x", "y"], ["s"]]

    def test_edges_to_unknown_nodes_ignored(self):
        graph = Graph(nodes=[Node("a", "a", "module")],
                      edges=[Edge("a", "ghost"), Edge("ghost", "a")])
        assert find_cycles(graph) == []


class TestComputeMetrics:
    def test_counts(self, small_graph):
        metrics = compute_metrics(small_graph)
        assert metrics.node_count == 4
        assert metrics.edge_count == 3
        assert metrics.max_depth == 2
        assert metrics.cycles == []

    def test_reports_cycles(self):
        graph = _graph(["a", "b"], [("a", "b"), ("b", "a")])
        metrics = compute_metrics(graph)
        assert metrics.max_depth == 0
        assert metrics.to_dict()["cycles"] == [["a", "b"]]

    def test_raise_policy(self):
        graph = _graph(["a", "b"], [("a", "b"), ("b", "a")])
        with pytest.raises(CycleDetectedError, match="a -> b"):
            compute_metrics(graph, cycle_policy="raise")
