"""End-to-end tests: detect, parse, convert, measure, persist, and the CLI."""

import json
import logging

import pytest

ts = pytest.importorskip("tree_sitter", reason="requires tree-sitter")

from depgraph.cli import EXIT_FATAL, EXIT_NOT_FOUND, EXIT_OK, main  # noqa: E402
from depgraph.config import Settings  # noqa: E402
from depgraph.detect import Language  # noqa: E402
from depgraph.errors import (  # noqa: E402
    CycleDetectedError, FatalParseError, NoParserError, ProjectNotFoundError,
)
from depgraph.parsers.registry import ParserRegistry, get_parser  # noqa: E402
from depgraph.pipeline import analyze, load_or_analyze  # noqa: E402
from depgraph.snapshot import LEGACY_FILE, STANDARD_FILE, SnapshotStore  # noqa: E402

PY_PROJECT = {
    "pyproject.toml": """\
        [project]
        name = "shop"
    """,
    "shop/__init__.py": "",
    "shop/base.py": """\
        class Base:
            pass
    """,
    "shop/models.py": """\
        from shop.base import Base


        class Item(Base):
            pass
    """,
    "shop/api.py": """\
        from shop import models


        def handler():
            return models.Item()
    """,
}


@pytest.fixture
def py_project(make_project):
    return make_project(PY_PROJECT, name="shop")


class TestAnalyze:
    def test_python_project(self, py_project):
        result = analyze(py_project)
        assert result.project_type.language is Language.PYTHON
        assert result.project_type.name == "shop"
        assert not result.from_cache
        graph = result.graph
        graph.validate()
        assert graph.metadata["project_type"]["name"] == "shop"
        edges = {(e.source, e.target, e.type.value) for e in graph.edges}
        assert ("shop.models.Item", "shop.base.Base", "extends") in edges
        assert ("shop.api", "shop.models", "imports") in edges
        assert ("shop.models", "shop.base.Base", "imports") in edges
        # api -> models -> base.Base
        assert result.metrics.max_depth >= 2
        assert result.metrics.node_count == len(graph.nodes)
        assert result.summary().startswith("Dependency analysis completed in ")

    def test_snapshot_written(self, py_project):
        result = analyze(py_project)
        path = py_project / ".depgraph" / STANDARD_FILE
        assert json.loads(path.read_text()) == result.graph.to_dict()

    def test_custom_store_and_no_save(self, py_project, tmp_path):
        store = SnapshotStore(tmp_path / "out")
        analyze(py_project, store=store)
        assert store.standard_path.is_file()
        analyze(py_project, save=False, store=SnapshotStore(tmp_path / "none"))
        assert not (tmp_path / "none").exists()

    def test_deterministic(self, py_project):
        first = analyze(py_project, save=False).graph.to_dict()
        second = analyze(py_project, save=False,
                         settings=Settings(max_workers=1)).graph.to_dict()
        first["metadata"].pop("project_type")
        second["metadata"].pop("project_type")
        assert first == second

    def test_invalid_file_yields_diagnostic(self, make_project):
        """One broken file among valid ones: the rest of the graph survives."""
        files = dict(PY_PROJECT)
        files["shop/broken.py"] = "def oops(:\n"
        root = make_project(files, name="shop")
        graph = analyze(root).graph
        assert "shop.models.Item" in {n.id for n in graph.nodes}
        assert [d["path"] for d in graph.metadata["diagnostics"]] == ["shop/broken.py"]

    def test_not_found(self, tmp_path):
        with pytest.raises(ProjectNotFoundError):
            analyze(tmp_path / "missing")
        empty = tmp_path / "empty"
        empty.mkdir()
        with pytest.raises(FileNotFoundError):
            analyze(empty)

    def test_no_parser(self, py_project):
        registry = ParserRegistry([get_parser(Language.JAVA)])
        with pytest.raises(NoParserError):
            analyze(py_project, registry=registry)

    def test_failure_keeps_previous_snapshot(self, make_project):
        root = make_project({"app.py": "def ok():\n    pass\n"})
        analyze(root)
        path = root / ".depgraph" / STANDARD_FILE
        before = path.read_text()
        (root / "app.py").write_text("def (:\n")
        with pytest.raises(FatalParseError):
            analyze(root)
        assert path.read_text() == before

    def test_cycle_policy_raise(self, make_project):
        root = make_project({
            "a.py": "import b\n",
            "b.py": "import a\n",
        })
        assert analyze(root, save=False).metrics.cycles == [["a", "b"]]
        with pytest.raises(CycleDetectedError):
            analyze(root, settings=Settings(cycle_policy="raise"))
        assert not (root / ".depgraph").exists()


class TestLoadOrAnalyze:
    def test_uses_cache(self, py_project):
        fresh = load_or_analyze(py_project)
        assert not fresh.from_cache
        cached = load_or_analyze(py_project)
        assert cached.from_cache
        assert cached.graph.to_dict() == fresh.graph.to_dict()
        assert cached.summary().startswith("Loaded cached graph in ")

    def test_legacy_snapshot(self, make_project):
        root = make_project({"App.java": "class App {}\n"})
        legacy = {"classes": [{"name": "App", "package": "", "type": "CLASS"}]}
        (root / ".depgraph").mkdir()
        (root / ".depgraph" / LEGACY_FILE).write_text(json.dumps(legacy))
        result = load_or_analyze(root)
        assert result.from_cache
        assert [n.id for n in result.graph.nodes] == ["App"]
        assert (root / ".depgraph" / STANDARD_FILE).is_file()

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ProjectNotFoundError):
            load_or_analyze(tmp_path / "nope")


class TestCli:
    def test_analyze(self, py_project, capsys):
        assert main(["analyze", str(py_project)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Found" in out and "max depth" in out

    def test_analyze_json(self, py_project, capsys, tmp_path):
        out_dir = tmp_path / "snap"
        code = main(["analyze", str(py_project), "--json", "--no-cache", "-o", str(out_dir)])
        assert code == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert {"nodes", "edges", "metadata"} <= set(data)
        assert (out_dir / STANDARD_FILE).is_file()

    def test_analyze_not_found(self, tmp_path, capsys):
        assert main(["analyze", str(tmp_path / "missing")]) == EXIT_NOT_FOUND
        assert capsys.readouterr().err.startswith("depgraph: ")

    def test_analyze_fatal(self, make_project, capsys):
        root = make_project({"bad.py": "def (:\n"})
        assert main(["analyze", str(root)]) == EXIT_FATAL
        assert "could be parsed" in capsys.readouterr().err

    def test_metrics(self, py_project, capsys):
        analyze(py_project)
        capsys.readouterr()
        snapshot = py_project / ".depgraph" / STANDARD_FILE
        assert main(["metrics", str(snapshot)]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["cycles"] == []
        assert data["node_count"] > 0

    def test_metrics_bad_snapshot(self, tmp_path, capsys):
        path = tmp_path / "x.json"
        path.write_text('{"hello": 1}')
        assert main(["metrics", str(path)]) == EXIT_FATAL
        assert main(["metrics", str(tmp_path / "missing.json")]) == EXIT_NOT_FOUND

    def test_detect(self, py_project, capsys):
        try:
            assert main(["-v", "detect", str(py_project)]) == EXIT_OK
        finally:
            logging.getLogger("depgraph").setLevel(logging.NOTSET)
        data = json.loads(capsys.readouterr().out)
        assert data["language"] == "python"
        assert data["build_system"] == "pip"
