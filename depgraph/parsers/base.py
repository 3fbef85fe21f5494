"""Abstract base class for language parsers and shared helpers."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from tree_sitter import Parser

from ..config import Settings
from ..detect import Language, ProjectType
from ..errors import FatalParseError
from ..files import iter_source_files
from ..graph import Graph
from .models import Diagnostic, LanguageDependencies, ParseResult

logger = logging.getLogger(__name__)


class SourceSyntaxError(ValueError):
    """A source file whose syntax tree contains errors."""

    def __init__(self, path: str, line: int | None):
        self.path = path
        self.line = line
        where = f" near line {line}" if line else ""
        super().__init__(f"Syntax error in {path}{where}")


class LanguageParser(ABC):
    """Base class that all language parsers must extend.

    ``parse`` is the only entry point callers need: it runs the
    language-specific extraction and hands the result to the shared
    converter.  Subclasses implement ``parse_file`` for one source file and
    never build graph nodes themselves.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._local = threading.local()

    @property
    @abstractmethod
    def language(self) -> Language:
        """Return the language this parser handles."""
        ...

    @property
    @abstractmethod
    def file_extensions(self) -> list[str]:
        """Return list of file extensions this parser handles (e.g. ['.py'])."""
        ...

    @property
    def language_name(self) -> str:
        return self.language.value

    @property
    def noise_names(self) -> frozenset[str]:
        """Names to exclude from call-edge resolution (common stdlib methods).

        Override in subclasses to provide language-specific noise sets.
        """
        return frozenset()

    @property
    def module_separator(self) -> str:
        return "."

    def can_handle(self, project_type: ProjectType) -> bool:
        return project_type.language == self.language

    @abstractmethod
    def _grammar_for(self, filepath: Path):
        """Return the tree-sitter Language used for ``filepath``."""
        ...

    @abstractmethod
    def parse_file(self, filepath: Path, src_root: Path,
                   project_root: Path | None = None) -> ParseResult:
        """Parse a single source file and return extracted entities.

        Raises OSError, UnicodeDecodeError or SourceSyntaxError when the
        file cannot be used; ``parse_directory`` and ``parse`` turn those
        into diagnostics.
        """
        ...

    # ── Tree-sitter plumbing ────────────────────────────────────────────

    def _parse_tree(self, filepath: Path, source: bytes, rel_path: str):
        """Parse ``source`` with a per-thread parser, rejecting broken trees."""
        grammar = self._grammar_for(filepath)
        parsers = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = self._local.parsers = {}
        parser = parsers.get(id(grammar))
        if parser is None:
            parser = parsers[id(grammar)] = Parser(grammar)
        tree = parser.parse(source)
        if tree.root_node.has_error:
            raise SourceSyntaxError(rel_path, _first_error_line(tree.root_node))
        return tree.root_node

    # ── Extraction ──────────────────────────────────────────────────────

    def _parse_one(self, filepath: Path, src_root: Path,
                   project_root: Path) -> ParseResult:
        try:
            return self.parse_file(filepath, src_root, project_root)
        except SourceSyntaxError as exc:
            return ParseResult(diagnostics=[
                Diagnostic(exc.path, str(exc), exc.line)])
        except (OSError, UnicodeDecodeError) as exc:
            rel = _relative(filepath, project_root)
            return ParseResult(diagnostics=[
                Diagnostic(rel, f"Could not read {rel}: {exc}")])

    def source_files(self, src_root: Path) -> list[Path]:
        return list(iter_source_files(
            src_root, self.file_extensions, self.settings.exclude_dirs))

    def parse_directory(self, src_root: Path,
                        project_root: Path | None = None) -> ParseResult:
        """Parse all matching files under src_root."""
        project_root = project_root or src_root
        return self._parse_files(
            [(f, src_root) for f in self.source_files(src_root)], project_root)

    def _parse_files(self, jobs: list[tuple[Path, Path]],
                     project_root: Path) -> ParseResult:
        """Parse files on a bounded worker pool, merging in input order."""
        combined = ParseResult()
        if not jobs:
            return combined
        workers = max(1, min(self.settings.max_workers, len(jobs)))
        with ThreadPoolExecutor(max_workers=workers,
                                thread_name_prefix=f"depgraph-{self.language_name}") as pool:
            results = pool.map(
                lambda job: self._parse_one(job[0], job[1], project_root), jobs)
            for result in results:
                combined.merge(result)
        return combined

    def parse_to_language_specific(self, project_type: ProjectType) -> LanguageDependencies:
        """Walk the project's source roots and resolve symbols and relations."""
        from .resolve import build_dependencies

        project_root = Path(project_type.root_path)
        roots = list(project_type.source_roots) or [project_root]
        jobs: list[tuple[Path, Path]] = []
        seen: set[Path] = set()
        for src_root in roots:
            src_root = Path(src_root)
            if not src_root.is_dir():
                raise FatalParseError(f"Source root is not a readable directory: {src_root}")
            try:
                files = self.source_files(src_root)
            except OSError as exc:
                raise FatalParseError(f"Cannot read source root {src_root}: {exc}") from exc
            for f in files:
                if f not in seen:
                    seen.add(f)
                    jobs.append((f, src_root))

        if not jobs:
            raise FatalParseError(
                f"No {self.language_name} source files found in {project_root}"
            )
        logger.info("Found %d %s files", len(jobs), self.language_name)

        result = self._parse_files(jobs, project_root)
        for diag in result.diagnostics:
            logger.warning("Skipped %s: %s", diag.path, diag.message)
        if not result.files:
            raise FatalParseError(
                f"None of the {len(jobs)} {self.language_name} files in "
                f"{project_root} could be parsed"
            )

        return build_dependencies(
            result,
            language=self.language_name,
            project=project_type.name,
            root_path=str(project_root),
            separator=self.module_separator,
            noise_names=self.noise_names,
            max_call_targets=self.settings.max_call_targets,
        )

    def parse(self, project_type: ProjectType) -> Graph:
        """Parse the project and convert to the standardized graph."""
        from ..converter import convert

        logger.debug("Starting language-specific parsing for %s", self.language_name)
        start = time.perf_counter()
        deps = self.parse_to_language_specific(project_type)
        elapsed = (time.perf_counter() - start) * 1000
        logger.info("Completed language-specific parsing for %s in %.2fms",
                    self.language_name, elapsed,
                    extra={"elapsed_ms": elapsed, "step": "extract",
                           "language": self.language_name})

        logger.debug("Starting conversion to standard format for %s", self.language_name)
        start = time.perf_counter()
        graph = convert(deps)
        elapsed = (time.perf_counter() - start) * 1000
        logger.info("Completed conversion for %s in %.2fms",
                    self.language_name, elapsed,
                    extra={"elapsed_ms": elapsed, "step": "convert",
                           "language": self.language_name})
        return graph


# ── Shared helpers ─────────────────────────────────────────────────────


def node_text(node, source: bytes) -> str:
    """Extract the text of a tree-sitter node."""
    return source[node.start_byte:node.end_byte].decode("utf8")


def count_lines(source: bytes) -> int:
    """Count lines of code in source bytes."""
    return source.count(b"\n") + (1 if source and not source.endswith(b"\n") else 0)


def strip_doc_comment(text: str) -> str | None:
    """Turn a /** ... */ comment into plain text, or None if not a doc comment."""
    text = text.strip()
    if not text.startswith("/**"):
        return None
    text = text[3:]
    if text.endswith("*/"):
        text = text[:-2]
    lines = []
    for line in text.split("\n"):
        line = line.strip()
        if line.startswith("* "):
            line = line[2:]
        elif line.startswith("*"):
            line = line[1:]
        lines.append(line)
    return "\n".join(lines).strip()


def _first_error_line(root) -> int | None:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()
