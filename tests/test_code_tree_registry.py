"""Tests for parser dispatch and timing."""

import logging
from pathlib import Path

import pytest

from depgraph.detect import Language, ProjectType
from depgraph.errors import FatalParseError, NoParserError
from depgraph.graph import Graph, Node
from depgraph.parsers.base import LanguageParser
from depgraph.parsers.registry import ParserRegistry, default_registry, get_parser


class FakeParser(LanguageParser):
    """Returns a fixed graph (or raises) without touching the filesystem."""

    def __init__(self, language, tag="fake", error=None):
        super().__init__()
        self._language = language
        self.tag = tag
        self.error = error
        self.calls = 0

    @property
    def language(self):
        return self._language

    @property
    def file_extensions(self):
        return [".fake"]

    def _grammar_for(self, filepath):
        raise NotImplementedError

    def parse_file(self, filepath, src_root, project_root=None):
        raise NotImplementedError

    def parse(self, project_type):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return Graph(nodes=[Node(self.tag, self.tag, "module")])


def _project(language=Language.PYTHON):
    return ProjectType("demo", language, Path("/tmp/demo"))


def test_dispatch_by_language():
    java, python = FakeParser(Language.JAVA, "j"), FakeParser(Language.PYTHON, "p")
    registry = ParserRegistry([java, python])
    assert registry.parse(_project(Language.PYTHON)).nodes[0].id == "p"
    assert (java.calls, python.calls) == (0, 1)


def test_first_registered_wins():
    first, second = FakeParser(Language.PYTHON, "1"), FakeParser(Language.PYTHON, "2")
    registry = ParserRegistry()
    registry.register_parser(first)
    registry.register_parser(second)
    assert registry.get_parser(_project()) is first
    assert registry.parsers == [first, second]


def test_no_parser():
    registry = ParserRegistry([FakeParser(Language.JAVA)])
    assert registry.get_parser(_project()) is None
    with pytest.raises(NoParserError, match="No parser available for project type: demo"):
        registry.parse(_project())
    assert registry.timings == []


def test_timing_recorded_and_logged(caplog):
    registry = ParserRegistry([FakeParser(Language.PYTHON)])
    with caplog.at_level(logging.INFO, logger="depgraph.parsers.registry"):
        registry.parse(_project())
    (timing,) = registry.timings
    assert timing.project == "demo"
    assert timing.language == "python"
    assert timing.outcome == "completed"
    assert timing.elapsed_ms >= 0
    messages = [r.getMessage() for r in caplog.records]
    assert messages[0] == "Starting parse for demo (python)"
    done = caplog.records[-1]
    assert done.getMessage().startswith("Completed parse for demo (python) in ")
    assert done.elapsed_ms == timing.elapsed_ms
    assert done.outcome == "completed"


def test_failure_logged_and_reraised(caplog):
    error = FatalParseError("nothing parsed")
    registry = ParserRegistry([FakeParser(Language.PYTHON, error=error)])
    with caplog.at_level(logging.INFO, logger="depgraph.parsers.registry"):
        with pytest.raises(FatalParseError) as info:
            registry.parse(_project())
    assert info.value is error
    assert registry.timings[-1].outcome == "failed"
    failed = caplog.records[-1]
    assert failed.levelno == logging.ERROR
    assert failed.getMessage().startswith("Failed parse for demo")


@pytest.mark.parametrize("language", list(Language))
def test_builtin_parsers(language):
    parser = get_parser(language)
    assert parser.language is language
    assert parser.can_handle(_project(language))


def test_default_registry_covers_all_languages():
    registry = default_registry()
    for language in Language:
        assert registry.get_parser(_project(language)).language is language
