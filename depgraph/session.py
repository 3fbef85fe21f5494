"""Shared access to the current graph for consumers (tree views, diagrams)."""

from __future__ import annotations

import logging
import threading

from .graph import Edge, Graph, Node
from .metrics import GraphMetrics, compute_metrics

logger = logging.getLogger(__name__)


class AnalysisSession:
    """Holds the most recent graph and hands out read-only views of it.

    A background analysis swaps in a new graph with ``replace``; readers
    always see either the old graph or the new one, never a mix.  Metrics
    are computed lazily and cached until the graph changes.
    """

    def __init__(self, graph: Graph | None = None, *,
                 cycle_policy: str = "condense"):
        self._lock = threading.Lock()
        self._graph = graph
        self._metrics: GraphMetrics | None = None
        self._closed = False
        self.cycle_policy = cycle_policy

    @property
    def closed(self) -> bool:
        return self._closed

    def get_graph(self) -> Graph | None:
        with self._lock:
            return self._graph

    def get_node_by_id(self, node_id: str) -> Node | None:
        graph = self.get_graph()
        return graph.get_node_by_id(node_id) if graph is not None else None

    def edges_touching(self, node_id: str) -> list[Edge]:
        graph = self.get_graph()
        return graph.edges_touching(node_id) if graph is not None else []

    def metrics(self) -> GraphMetrics | None:
        with self._lock:
            graph, cached = self._graph, self._metrics
        if graph is None:
            return None
        if cached is not None:
            return cached
        computed = compute_metrics(graph, cycle_policy=self.cycle_policy)
        with self._lock:
            # keep the result only if the graph was not replaced meanwhile
            if self._graph is graph:
                self._metrics = computed
        return computed

    def replace(self, graph: Graph) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("AnalysisSession is closed")
            self._graph = graph
            self._metrics = None
        logger.debug("Session graph replaced (%d nodes)", len(graph.nodes))

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._graph = None
            self._metrics = None

    def __enter__(self) -> "AnalysisSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
