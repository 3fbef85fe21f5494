"""Standardized dependency graphs for Java, Python and TypeScript projects.

Usage::

    from depgraph import analyze

    result = analyze("/path/to/project")
    result.graph.get_node_by_id("pkg.module.Class")
    result.metrics.max_depth
"""

from .config import Settings, load_settings
from .converter import DependencyFormat, convert, detect_dependency_type
from .detect import Language, ProjectType, detect
from .errors import (
    DepgraphError, ProjectNotFoundError, NoParserError, FatalParseError,
    SnapshotFormatError, GraphIntegrityError, CycleDetectedError,
)
from .graph import Edge, EdgeType, Graph, Node
from .metrics import GraphMetrics, compute_metrics, find_cycles, max_depth
from .pipeline import AnalysisResult, analyze, load_or_analyze
from .scheduler import AnalysisScheduler
from .session import AnalysisSession
from .snapshot import SnapshotStore, load_snapshot

__version__ = "0.1.0"

__all__ = [
    "Settings", "load_settings",
    "DependencyFormat", "convert", "detect_dependency_type",
    "Language", "ProjectType", "detect",
    "DepgraphError", "ProjectNotFoundError", "NoParserError",
    "FatalParseError", "SnapshotFormatError", "GraphIntegrityError",
    "CycleDetectedError",
    "Edge", "EdgeType", "Graph", "Node",
    "GraphMetrics", "compute_metrics", "find_cycles", "max_depth",
    "AnalysisResult", "analyze", "load_or_analyze",
    "AnalysisScheduler", "AnalysisSession",
    "SnapshotStore", "load_snapshot",
]
