"""
Convert language-specific dependency data into the standardized Graph.

Three input shapes are recognized structurally:

* ``standard`` -- ``{nodes, edges, metadata}``, already a graph;
* ``language-specific`` -- ``LanguageDependencies`` or its dict form
  (``{format: "language-specific", symbols: [...]}``), what the parsers emit;
* ``legacy-java`` -- ``{classes: [{name, package, type, sourceFile,
  extends, implements, imports, dependencies}]}``, the older Java format.

Whatever the input, the result holds only edges whose endpoints are both
nodes of the graph.  Edges to external or unresolved targets are dropped and
counted in ``metadata["pruned_edges"]``.
"""

from __future__ import annotations

import logging
from enum import Enum

from .errors import SnapshotFormatError
from .graph import Edge, EdgeType, Graph, Node
from .parsers.models import LanguageDependencies

logger = logging.getLogger(__name__)


class DependencyFormat(str, Enum):
    STANDARD = "standard"
    LANGUAGE_SPECIFIC = "language-specific"
    LEGACY_JAVA = "legacy-java"
    UNKNOWN = "unknown"


def detect_dependency_type(raw) -> DependencyFormat:
    """Classify raw dependency data by its structure alone."""
    if isinstance(raw, LanguageDependencies):
        return DependencyFormat.LANGUAGE_SPECIFIC
    if isinstance(raw, Graph):
        return DependencyFormat.STANDARD
    if not isinstance(raw, dict):
        return DependencyFormat.UNKNOWN
    if isinstance(raw.get("nodes"), list) and isinstance(raw.get("edges"), list):
        return DependencyFormat.STANDARD
    if (raw.get("format") == LanguageDependencies.FORMAT
            or isinstance(raw.get("symbols"), list)):
        return DependencyFormat.LANGUAGE_SPECIFIC
    if isinstance(raw.get("classes"), list):
        return DependencyFormat.LEGACY_JAVA
    return DependencyFormat.UNKNOWN


class _GraphBuilder:
    """Accumulates nodes and edges with first-seen ordering and dedupe."""

    def __init__(self):
        self.nodes: dict[str, Node] = {}
        self.edges: dict[tuple[str, str, EdgeType], Edge] = {}
        self.duplicate_nodes = 0

    def add_node(self, node: Node) -> None:
        if node.id in self.nodes:
            self.duplicate_nodes += 1
            logger.debug("Duplicate node id %s; keeping the first", node.id)
            return
        self.nodes[node.id] = node

    def add_edge(self, source: str, target: str, kind) -> None:
        edge = Edge(source, target, EdgeType.from_relation(kind))
        self.edges.setdefault((edge.source, edge.target, edge.type), edge)

    def build(self, metadata: dict) -> Graph:
        kept: list[Edge] = []
        pruned = 0
        for edge in self.edges.values():
            if edge.source in self.nodes and edge.target in self.nodes:
                kept.append(edge)
            else:
                pruned += 1
                logger.debug("Pruned edge %s -> %s (%s): endpoint not in graph",
                             edge.source, edge.target, edge.type.value)
        if pruned:
            logger.info("Pruned %d edge(s) with endpoints outside the graph", pruned)
        metadata = dict(metadata)
        metadata["pruned_edges"] = pruned
        if self.duplicate_nodes:
            metadata["duplicate_nodes"] = self.duplicate_nodes
        return Graph(nodes=list(self.nodes.values()), edges=kept, metadata=metadata)


# ── Language-specific ─────────────────────────────────────────────────


def _from_language_specific(deps: LanguageDependencies) -> Graph:
    builder = _GraphBuilder()
    for symbol in deps.symbols:
        metadata = dict(symbol.metadata)
        metadata["file_path"] = symbol.file_path
        metadata["line"] = symbol.line
        metadata.setdefault("language", deps.language)
        builder.add_node(Node(symbol.id, symbol.title, symbol.kind, metadata))
    for symbol in deps.symbols:
        for relation in symbol.relations:
            builder.add_edge(symbol.id, relation.target, relation.kind)
    return builder.build({
        "source_format": DependencyFormat.LANGUAGE_SPECIFIC.value,
        "language": deps.language,
        "project": deps.project,
        "root": deps.root_path,
        "diagnostics": [d.to_dict() for d in deps.diagnostics],
    })


# ── Legacy Java ───────────────────────────────────────────────────────


def _as_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return [str(v) for v in value if v]


def _from_legacy_java(data: dict) -> Graph:
    builder = _GraphBuilder()
    classes = [c for c in data["classes"] if isinstance(c, dict) and c.get("name")]
    package_of: dict[str, str] = {}
    for cls in classes:
        name = str(cls["name"])
        package = str(cls.get("package") or "")
        fqn = name if not package or "." in name else f"{package}.{name}"
        package_of[fqn] = package
        builder.add_node(Node(fqn, name.rsplit(".", 1)[-1],
                              str(cls.get("type") or "class").lower(), {
                                  "file_path": cls.get("sourceFile") or "",
                                  "line": None,
                                  "package": package,
                                  "language": "java",
                              }))

    def resolve(target: str, package: str) -> str:
        if target in builder.nodes or not package:
            return target
        same_package = f"{package}.{target}"
        return same_package if same_package in builder.nodes else target

    fields = (("extends", EdgeType.EXTENDS), ("implements", EdgeType.IMPLEMENTS),
              ("imports", EdgeType.IMPORTS), ("dependencies", EdgeType.DEPENDENCY))
    for cls in classes:
        name = str(cls["name"])
        package = str(cls.get("package") or "")
        fqn = name if not package or "." in name else f"{package}.{name}"
        for key, edge_type in fields:
            for target in _as_list(cls.get(key)):
                builder.add_edge(fqn, resolve(target, package), edge_type)
    return builder.build({
        "source_format": DependencyFormat.LEGACY_JAVA.value,
        "language": "java",
        "diagnostics": [],
    })


# ── Entry point ───────────────────────────────────────────────────────


def convert(data) -> Graph:
    """Convert any recognized dependency shape into a standardized Graph.

    Raises SnapshotFormatError for unrecognized shapes and
    GraphIntegrityError for a standardized graph that does not validate.
    """
    kind = detect_dependency_type(data)
    logger.debug("Converting %s dependency data", kind.value)
    if kind is DependencyFormat.LANGUAGE_SPECIFIC:
        if not isinstance(data, LanguageDependencies):
            data = LanguageDependencies.from_dict(data)
        return _from_language_specific(data)
    if kind is DependencyFormat.LEGACY_JAVA:
        return _from_legacy_java(data)
    if kind is DependencyFormat.STANDARD:
        graph = data if isinstance(data, Graph) else Graph.from_dict(data)
        graph.validate()
        return graph
    raise SnapshotFormatError(
        f"Unrecognized dependency data: expected nodes/edges, symbols or "
        f"classes, got {type(data).__name__}"
        + (f" with keys {sorted(data)[:5]}" if isinstance(data, dict) else "")
    )


__all__ = ["DependencyFormat", "detect_dependency_type", "convert"]
