"""One analysis run: detect the project, parse it, measure and persist the graph."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from .config import Settings, load_settings
from .detect import ProjectType, detect
from .errors import ProjectNotFoundError
from .graph import Graph
from .metrics import GraphMetrics, compute_metrics
from .snapshot import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    project_type: ProjectType | None
    graph: Graph
    metrics: GraphMetrics
    elapsed_ms: float
    from_cache: bool = False

    def summary(self) -> str:
        source = "Loaded cached graph" if self.from_cache else "Dependency analysis completed"
        return (f"{source} in {self.elapsed_ms / 1000:.2f} seconds. "
                f"Found {self.metrics.node_count} nodes with max depth of "
                f"{self.metrics.max_depth}.")


def _default_store(root: Path, settings: Settings) -> SnapshotStore:
    return SnapshotStore(root / settings.snapshot_dir)


def analyze(root: str | Path, *, registry=None, settings: Settings | None = None,
            store: SnapshotStore | None = None, save: bool = True) -> AnalysisResult:
    """Analyze the project at ``root`` from scratch.

    Raises ProjectNotFoundError when nothing recognizable lives at ``root``,
    NoParserError when no registered parser handles the detected language,
    and FatalParseError when parsing yields nothing usable.  A failed run
    writes nothing, so any previous snapshot stays in place.
    """
    start = time.perf_counter()
    root = Path(root).resolve()
    if settings is None:
        settings = load_settings(root) if root.is_dir() else Settings()

    project_type = detect(root, settings)
    if project_type is None:
        raise ProjectNotFoundError(f"No supported project found at {root}")
    logger.info("Analyzing %s as %s", project_type.display_name,
                project_type.language.value)

    if registry is None:
        from .parsers import default_registry
        registry = default_registry(settings)

    graph = registry.parse(project_type)
    graph.metadata["project_type"] = project_type.to_dict()
    metrics = compute_metrics(graph, cycle_policy=settings.cycle_policy)

    if save:
        store = store or _default_store(root, settings)
        store.save(graph)

    elapsed = (time.perf_counter() - start) * 1000
    result = AnalysisResult(project_type, graph, metrics, elapsed)
    logger.info(result.summary(), extra={"elapsed_ms": elapsed,
                                         "project": project_type.name})
    return result


def load_or_analyze(root: str | Path, *, registry=None,
                    settings: Settings | None = None,
                    store: SnapshotStore | None = None) -> AnalysisResult:
    """Return the persisted graph for ``root`` if there is one, else analyze."""
    start = time.perf_counter()
    root = Path(root).resolve()
    if not root.is_dir():
        raise ProjectNotFoundError(f"No such directory: {root}")
    if settings is None:
        settings = load_settings(root)
    store = store or _default_store(root, settings)

    graph = store.load()
    if graph is None:
        return analyze(root, registry=registry, settings=settings, store=store)

    metrics = compute_metrics(graph, cycle_policy=settings.cycle_policy)
    elapsed = (time.perf_counter() - start) * 1000
    return AnalysisResult(None, graph, metrics, elapsed, from_cache=True)


__all__ = ["AnalysisResult", "analyze", "load_or_analyze"]
