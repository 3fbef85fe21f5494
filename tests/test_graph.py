"""Tests for the standardized graph model."""

import pytest

from depgraph.errors import GraphIntegrityError
from depgraph.graph import Edge, EdgeType, Graph, Node


class TestEdgeType:
    @pytest.mark.parametrize("raw,expected", [
        ("imports", EdgeType.IMPORTS),
        ("IMPORT", EdgeType.IMPORTS),
        ("require", EdgeType.IMPORTS),
        ("extend", EdgeType.EXTENDS),
        ("Implements", EdgeType.IMPLEMENTS),
        ("call", EdgeType.CALLS),
        ("has_method", EdgeType.DEFINES),
        ("contains", EdgeType.DEFINES),
        ("use", EdgeType.USES),
    ])
    def test_known_kinds(self, raw, expected):
        assert EdgeType.from_relation(raw) is expected

    @pytest.mark.parametrize("raw", ["annotates", "", None, "weird-kind"])
    def test_unknown_kind_is_dependency(self, raw):
        assert EdgeType.from_relation(raw) is EdgeType.DEPENDENCY

    def test_enum_passthrough(self):
        assert EdgeType.from_relation(EdgeType.CALLS) is EdgeType.CALLS


class TestLookup:
    def test_get_node_by_id(self, small_graph):
        node = small_graph.get_node_by_id("app.service")
        assert node is not None
        assert node.type == "class"
        assert small_graph.get_node_by_id("missing") is None

    def test_contains(self, small_graph):
        assert "app.util" in small_graph
        assert "nope" not in small_graph

    def test_index_follows_appends(self, small_graph):
        small_graph.nodes.append(Node("app.extra", "extra", "module"))
        assert small_graph.get_node_by_id("app.extra") is not None

    def test_index_follows_replacement(self, small_graph):
        small_graph.get_node_by_id("app.main")
        small_graph.nodes[0] = Node("app.cli", "cli", "module")
        assert small_graph.get_node_by_id("app.cli") is small_graph.nodes[0]
        assert small_graph.get_node_by_id("app.main") is None

    def test_index_follows_remove_then_append(self, small_graph):
        assert "app.util" in small_graph
        small_graph.nodes.pop()
        small_graph.nodes.append(Node("app.extra", "extra", "module"))
        assert "app.util" not in small_graph
        assert "app.extra" in small_graph

    def test_edges_touching_both_directions(self, small_graph):
        edges = small_graph.edges_touching("app.service")
        assert [(e.source, e.target) for e in edges] == [
            ("app.main", "app.service"),
            ("app.service", "app.base"),
        ]

    def test_outgoing_incoming(self, small_graph):
        assert [e.target for e in small_graph.outgoing("app.main")] == [
            "app.service", "app.util"]
        assert [e.source for e in small_graph.incoming("app.base")] == ["app.service"]


class TestValidate:
    def test_valid_graph(self, small_graph):
        small_graph.validate()

    def test_duplicate_ids(self):
        graph = Graph(nodes=[Node("a", "a", "module"), Node("a", "a", "module")])
        with pytest.raises(GraphIntegrityError, match="Duplicate"):
            graph.validate()

    def test_dangling_edge(self):
        graph = Graph(nodes=[Node("a", "a", "module")],
                      edges=[Edge("a", "b", EdgeType.IMPORTS)])
        with pytest.raises(GraphIntegrityError, match="unknown node b"):
            graph.validate()

    def test_integrity_error_is_value_error(self):
        graph = Graph(nodes=[Node("a", "a", "module")], edges=[Edge("a", "zz")])
        with pytest.raises(ValueError):
            graph.validate()


class TestSerialization:
    def test_round_trip(self, small_graph):
        data = small_graph.to_dict()
        assert data["edges"][1] == {"source": "app.service", "target": "app.base",
                                    "type": "extends"}
        assert Graph.from_dict(data).to_dict() == data

    def test_from_dict_defaults(self):
        graph = Graph.from_dict({"nodes": [{"id": "x"}],
                                 "edges": [{"source": "x", "target": "x"}]})
        assert graph.nodes[0].title == "x"
        assert graph.edges[0].type is EdgeType.DEPENDENCY

    def test_to_dataframes(self, small_graph):
        nodes_df, edges_df = small_graph.to_dataframes()
        assert list(nodes_df["id"]) == ["app.main", "app.service", "app.base", "app.util"]
        assert list(nodes_df.columns) == ["id", "title", "type", "file_path", "line"]
        assert len(edges_df) == 3
        assert set(edges_df["type"]) == {"imports", "extends"}

    def test_empty_dataframes(self):
        nodes_df, edges_df = Graph().to_dataframes()
        assert nodes_df.empty and edges_df.empty
        assert list(edges_df.columns) == ["source", "target", "type"]
