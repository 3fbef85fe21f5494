"""Standardized, language-agnostic dependency graph model."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import pandas as pd

from .errors import GraphIntegrityError


class EdgeType(str, Enum):
    """Edge kinds shared by every converter regardless of source language."""

    IMPORTS = "imports"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    CALLS = "calls"
    USES = "uses"
    DEFINES = "defines"
    DEPENDENCY = "dependency"

    @classmethod
    def from_relation(cls, kind) -> "EdgeType":
        """Map a raw relation kind onto the shared enumeration.

        Matching ignores case and a trailing plural ``s``; a few synonyms
        used by older producers are folded in. Anything unrecognized maps to
        ``DEPENDENCY`` so that no relation is silently dropped.
        """
        if isinstance(kind, cls):
            return kind
        text = str(kind or "").strip().lower().replace("-", "_")
        if text in _RELATION_ALIASES:
            return _RELATION_ALIASES[text]
        for candidate in (text, text + "s", text.rstrip("s")):
            try:
                return cls(candidate)
            except ValueError:
                continue
        return cls.DEPENDENCY


_RELATION_ALIASES = {
    "import": EdgeType.IMPORTS,
    "require": EdgeType.IMPORTS,
    "requires": EdgeType.IMPORTS,
    "inherits": EdgeType.EXTENDS,
    "inheritance": EdgeType.EXTENDS,
    "call": EdgeType.CALLS,
    "usage": EdgeType.USES,
    "contains": EdgeType.DEFINES,
    "has_method": EdgeType.DEFINES,
    "depends_on": EdgeType.DEPENDENCY,
}


@dataclass
class Node:
    id: str
    title: str
    type: str
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Node":
        node_id = str(data["id"])
        return cls(
            id=node_id,
            title=str(data.get("title") or node_id),
            type=str(data.get("type") or "symbol"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    type: EdgeType = EdgeType.DEPENDENCY

    def to_dict(self) -> dict:
        return {"source": self.source, "target": self.target,
                "type": self.type.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Edge":
        return cls(
            source=str(data["source"]),
            target=str(data["target"]),
            type=EdgeType.from_relation(data.get("type")),
        )


def _same_nodes(a: list[Node], b: list[Node]) -> bool:
    return len(a) == len(b) and all(x is y for x, y in zip(a, b))


@dataclass
class Graph:
    """Nodes keyed by id plus an ordered list of typed edges.

    Node insertion order is preserved and is part of the serialized form,
    so two graphs built from the same input serialize identically.
    """

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    _index: dict[str, Node] | None = field(
        default=None, init=False, repr=False, compare=False)
    _indexed: list[Node] = field(
        default_factory=list, init=False, repr=False, compare=False)

    # ── Lookup ──────────────────────────────────────────────────────────

    def _node_index(self) -> dict[str, Node]:
        if self._index is None or not _same_nodes(self._indexed, self.nodes):
            self._index = {n.id: n for n in self.nodes}
            self._indexed = list(self.nodes)
        return self._index

    def get_node_by_id(self, node_id: str) -> Node | None:
        return self._node_index().get(node_id)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._node_index()

    def edges_touching(self, node_id: str) -> list[Edge]:
        """Return every edge with ``node_id`` as source or target."""
        return [e for e in self.edges
                if e.source == node_id or e.target == node_id]

    def outgoing(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.source == node_id]

    def incoming(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.target == node_id]

    # ── Integrity ───────────────────────────────────────────────────────

    def validate(self) -> None:
        """Raise GraphIntegrityError on duplicate ids or dangling edges."""
        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                raise GraphIntegrityError(f"Duplicate node id: {node.id}")
            seen.add(node.id)
        for edge in self.edges:
            for end in (edge.source, edge.target):
                if end not in seen:
                    raise GraphIntegrityError(
                        f"Edge {edge.source} -> {edge.target} "
                        f"references unknown node {end}"
                    )

    # ── Serialization ───────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Graph":
        """Load the standardized ``{nodes, edges, metadata}`` shape."""
        return cls(
            nodes=[Node.from_dict(n) for n in data.get("nodes") or []],
            edges=[Edge.from_dict(e) for e in data.get("edges") or []],
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dataframes(self) -> tuple[pd.DataFrame, pd.DataFrame]:
        """Return (nodes, edges) as DataFrames for tabular consumers."""
        node_rows = [{
            "id": n.id,
            "title": n.title,
            "type": n.type,
            "file_path": n.metadata.get("file_path"),
            "line": n.metadata.get("line"),
        } for n in self.nodes]
        edge_rows = [e.to_dict() for e in self.edges]
        nodes_df = pd.DataFrame(
            node_rows, columns=["id", "title", "type", "file_path", "line"])
        edges_df = pd.DataFrame(edge_rows, columns=["source", "target", "type"])
        return nodes_df, edges_df
