"""Structural metrics over a standardized dependency graph."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .config import CYCLE_POLICIES
from .errors import CycleDetectedError
from .graph import EdgeType, Graph

logger = logging.getLogger(__name__)


@dataclass
class GraphMetrics:
    node_count: int
    edge_count: int
    max_depth: int
    cycles: list[list[str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "max_depth": self.max_depth,
            "cycles": [list(c) for c in self.cycles],
        }


def _adjacency(graph: Graph,
               edge_types: Iterable[EdgeType | str] | None) -> dict[str, list[str]]:
    allowed = None
    if edge_types is not None:
        allowed = {EdgeType.from_relation(t) for t in edge_types}
    adjacency: dict[str, list[str]] = {n.id: [] for n in graph.nodes}
    for edge in graph.edges:
        if allowed is not None and edge.type not in allowed:
            continue
        if edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source].append(edge.target)
    return adjacency


def _strongly_connected(adjacency: dict[str, list[str]]) -> list[list[str]]:
    """Tarjan's algorithm without recursion.

    Components come out in reverse topological order: every component is
    emitted after all components reachable from it.
    """
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    sccs: list[list[str]] = []
    counter = 0

    for root in adjacency:
        if root in index:
            continue
        index[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(adjacency[root]))]
        while work:
            v, successors = work[-1]
            descended = False
            for w in successors:
                if w not in index:
                    index[w] = lowlink[w] = counter
                    counter += 1
                    stack.append(w)
                    on_stack.add(w)
                    work.append((w, iter(adjacency[w])))
                    descended = True
                    break
                if w in on_stack:
                    lowlink[v] = min(lowlink[v], index[w])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[v])
            if lowlink[v] == index[v]:
                scc: list[str] = []
                while True:
                    w = stack.pop()
                    on_stack.discard(w)
                    scc.append(w)
                    if w == v:
                        break
                sccs.append(scc)
    return sccs


def find_cycles(graph: Graph,
                edge_types: Iterable[EdgeType | str] | None = None) -> list[list[str]]:
    """Return groups of node ids that form dependency cycles.

    A group is a strongly connected component with at least two members, or
    a single node with an edge to itself.  Members are listed in graph node
    order and groups are ordered by their first member.
    """
    adjacency = _adjacency(graph, edge_types)
    position = {node_id: i for i, node_id in enumerate(adjacency)}
    cycles = []
    for scc in _strongly_connected(adjacency):
        if len(scc) > 1 or scc[0] in adjacency[scc[0]]:
            cycles.append(sorted(scc, key=position.__getitem__))
    cycles.sort(key=lambda c: position[c[0]])
    return cycles


def max_depth(graph: Graph, *, cycle_policy: str = "condense",
              edge_types: Iterable[EdgeType | str] | None = None) -> int:
    """Length, in edges, of the longest dependency chain.

    With ``cycle_policy="condense"`` every cycle counts as a single unit, so
    the computation always terminates and ``A -> B -> A`` has depth 0.  With
    ``"raise"`` a graph containing any cycle raises CycleDetectedError.
    """
    if cycle_policy not in CYCLE_POLICIES:
        raise ValueError(f"Unknown cycle policy {cycle_policy!r}; "
                         f"expected one of {', '.join(CYCLE_POLICIES)}")
    adjacency = _adjacency(graph, edge_types)
    if not adjacency:
        return 0

    sccs = _strongly_connected(adjacency)
    if cycle_policy == "raise":
        cycles = find_cycles(graph, edge_types)
        if cycles:
            raise CycleDetectedError(cycles)

    component: dict[str, int] = {}
    for i, scc in enumerate(sccs):
        for node_id in scc:
            component[node_id] = i

    # successors of a component were emitted before it
    depth = [0] * len(sccs)
    for i, scc in enumerate(sccs):
        best = 0
        for node_id in scc:
            for target in adjacency[node_id]:
                j = component[target]
                if j != i:
                    best = max(best, depth[j] + 1)
        depth[i] = best
    return max(depth)


def compute_metrics(graph: Graph, *, cycle_policy: str = "condense",
                    edge_types: Iterable[EdgeType | str] | None = None) -> GraphMetrics:
    cycles = find_cycles(graph, edge_types)
    if cycles:
        logger.info("Graph contains %d dependency cycle(s)", len(cycles))
    if cycle_policy == "raise" and cycles:
        raise CycleDetectedError(cycles)
    depth = max_depth(graph, cycle_policy="condense", edge_types=edge_types)
    logger.info("Graph contains %d nodes with maximum depth of %d",
                len(graph.nodes), depth)
    return GraphMetrics(
        node_count=len(graph.nodes),
        edge_count=len(graph.edges),
        max_depth=depth,
        cycles=cycles,
    )


__all__ = ["GraphMetrics", "find_cycles", "max_depth", "compute_metrics"]
