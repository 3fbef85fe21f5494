"""Source tree walking shared by detection and parsing."""

from __future__ import annotations

import os
from collections import Counter
from pathlib import Path
from typing import Iterable, Iterator

from .config import DEFAULT_EXCLUDE_DIRS

EXTENSION_MAP: dict[str, str] = {
    ".java": "java",
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}


def iter_source_files(
    root: Path,
    extensions: Iterable[str],
    exclude_dirs: frozenset[str] = DEFAULT_EXCLUDE_DIRS,
) -> Iterator[Path]:
    """Yield files under ``root`` with one of ``extensions``, sorted.

    Directories named in ``exclude_dirs`` and hidden directories are not
    descended into.  TypeScript declaration files (``.d.ts``) are skipped.
    """
    exts = tuple(extensions)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in exclude_dirs and not d.startswith(".")
        )
        for name in sorted(filenames):
            if name.endswith(exts) and not name.endswith(".d.ts"):
                yield Path(dirpath) / name


def count_languages(
    root: Path, exclude_dirs: frozenset[str] = DEFAULT_EXCLUDE_DIRS,
) -> Counter:
    """Count recognized source files per language under ``root``."""
    counts: Counter = Counter()
    for path in iter_source_files(root, EXTENSION_MAP, exclude_dirs):
        counts[EXTENSION_MAP[path.suffix]] += 1
    return counts
