"""Parser registry: dispatches a detected project to the parser for its language."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ..config import Settings
from ..detect import Language, ProjectType
from ..errors import NoParserError
from ..graph import Graph
from .base import LanguageParser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParseTiming:
    project: str
    language: str
    elapsed_ms: float
    outcome: str               # "completed" | "failed"


class ParserRegistry:
    """Ordered collection of language parsers.

    Lookup walks parsers in registration order and returns the first one
    whose ``can_handle`` accepts the project type.
    """

    def __init__(self, parsers: list[LanguageParser] | None = None):
        self._parsers: list[LanguageParser] = []
        self.timings: list[ParseTiming] = []
        for parser in parsers or []:
            self.register_parser(parser)

    def register_parser(self, parser: LanguageParser) -> None:
        self._parsers.append(parser)
        logger.debug("Registered parser for %s", parser.language_name)

    @property
    def parsers(self) -> list[LanguageParser]:
        return list(self._parsers)

    def get_parser(self, project_type: ProjectType) -> LanguageParser | None:
        for parser in self._parsers:
            if parser.can_handle(project_type):
                return parser
        return None

    def parse(self, project_type: ProjectType) -> Graph:
        """Parse with the matching parser, timing the run.

        Raises NoParserError when no registered parser handles the project;
        any error raised by the parser itself propagates unchanged after
        the failure is logged.
        """
        parser = self.get_parser(project_type)
        if parser is None:
            raise NoParserError(
                f"No parser available for project type: {project_type.name} "
                f"({project_type.language.value})"
            )

        language = project_type.language.value
        logger.info("Starting parse for %s (%s)", project_type.name, language)
        start = time.perf_counter()
        try:
            graph = parser.parse(project_type)
        except Exception:
            self._record(project_type, start, "failed", logging.ERROR)
            raise
        self._record(project_type, start, "completed", logging.INFO)
        return graph

    def _record(self, project_type: ProjectType, start: float,
                outcome: str, level: int) -> None:
        elapsed = (time.perf_counter() - start) * 1000
        language = project_type.language.value
        self.timings.append(ParseTiming(project_type.name, language, elapsed, outcome))
        logger.log(level, "%s parse for %s (%s) in %.2fms",
                   outcome.capitalize(), project_type.name, language, elapsed,
                   extra={"elapsed_ms": elapsed, "project": project_type.name,
                          "language": language, "outcome": outcome})


def get_parser(language: Language | str,
               settings: Settings | None = None) -> LanguageParser:
    """Get a parser instance for the given language."""
    language = Language(language)
    if language is Language.JAVA:
        from .java import JavaParser
        return JavaParser(settings)
    elif language is Language.PYTHON:
        from .python import PythonParser
        return PythonParser(settings)
    elif language is Language.TYPESCRIPT:
        from .typescript import TypeScriptParser
        return TypeScriptParser(settings)
    else:
        from .typescript import JavaScriptParser
        return JavaScriptParser(settings)


def default_registry(settings: Settings | None = None) -> ParserRegistry:
    """Registry with every built-in parser whose grammar is installed."""
    registry = ParserRegistry()
    for language in (Language.JAVA, Language.PYTHON,
                     Language.TYPESCRIPT, Language.JAVASCRIPT):
        try:
            registry.register_parser(get_parser(language, settings))
        except ImportError as e:
            logger.warning("Skipping %s (grammar not installed): %s",
                           language.value, e)
    return registry
