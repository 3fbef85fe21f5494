"""On-disk JSON snapshots of analyzed graphs.

A snapshot directory may hold up to three files, consulted in order:

* ``standard-dependencies.json`` -- the standardized graph;
* ``language-dependencies.json`` -- raw language-specific parser output;
* ``dependencies.json`` -- the legacy Java class list.

Loading a non-standard file converts it and writes the result back as the
standard snapshot, so the conversion happens once.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from .converter import convert
from .errors import GraphIntegrityError, SnapshotFormatError
from .graph import Graph
from .parsers.models import LanguageDependencies

logger = logging.getLogger(__name__)

STANDARD_FILE = "standard-dependencies.json"
LANGUAGE_FILE = "language-dependencies.json"
LEGACY_FILE = "dependencies.json"

SNAPSHOT_FILES = (STANDARD_FILE, LANGUAGE_FILE, LEGACY_FILE)


def _read_json(path: Path):
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise SnapshotFormatError(f"{path} is not valid JSON: {exc}") from exc


def _write_json(path: Path, data) -> None:
    """Write JSON atomically: readers see the old file or the new one."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp",
                               dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise


def load_snapshot(path: str | Path) -> Graph:
    """Load one snapshot file of any recognized shape.

    Raises SnapshotFormatError for invalid JSON or unrecognized shapes.
    """
    path = Path(path)
    data = _read_json(path)
    try:
        return convert(data)
    except (SnapshotFormatError, GraphIntegrityError):
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise SnapshotFormatError(f"Malformed dependency data in {path}: {exc}") from exc


class SnapshotStore:
    """Snapshot files kept in one directory (``<project>/.depgraph`` by default)."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, filename: str) -> Path:
        return self.directory / filename

    @property
    def standard_path(self) -> Path:
        return self.path_for(STANDARD_FILE)

    def exists(self) -> bool:
        return any(self.path_for(name).is_file() for name in SNAPSHOT_FILES)

    def load(self) -> Graph | None:
        """Return the first usable snapshot as a standardized graph, or None."""
        for name in SNAPSHOT_FILES:
            path = self.path_for(name)
            if not path.is_file():
                continue
            try:
                graph = load_snapshot(path)
            except (OSError, SnapshotFormatError, GraphIntegrityError) as exc:
                logger.warning("Ignoring unusable snapshot %s: %s", path, exc)
                continue
            logger.info("Loaded %s with %d nodes", name, len(graph.nodes))
            if name != STANDARD_FILE:
                logger.info("Re-saving converted %s as %s", name, STANDARD_FILE)
                self.save(graph)
            return graph
        return None

    def save(self, graph: Graph) -> Path:
        path = self.standard_path
        _write_json(path, graph.to_dict())
        logger.debug("Saved %d nodes, %d edges to %s",
                     len(graph.nodes), len(graph.edges), path)
        return path

    def save_language_specific(self, deps: LanguageDependencies) -> Path:
        path = self.path_for(LANGUAGE_FILE)
        _write_json(path, deps.to_dict())
        return path
