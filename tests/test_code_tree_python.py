"""Tests for the Python parser and its resolved dependency graph."""

import pytest

ts = pytest.importorskip("tree_sitter", reason="requires tree-sitter")

from depgraph.detect import Language, ProjectType  # noqa: E402
from depgraph.errors import FatalParseError  # noqa: E402
from depgraph.parsers.python import PythonParser  # noqa: E402

MODELS = '''\
    """Domain models."""
    from enum import Enum
    from typing import Protocol


    class Status(Enum):
        ACTIVE = 1
        INACTIVE = 2


    class Repository(Protocol):
        def save(self, item): ...


    class Base:
        pass


    class User(Base):
        """A registered user."""
        status: Status = Status.ACTIVE

        def __init__(self, name):
            self.name = name

        def greet(self):
            return format_name(self.name)


    def format_name(name):
        return name.title()
'''

SERVICE = '''\
    from .models import User, Repository
    from . import models
    import os


    class MemoryRepository(Repository):
        def save(self, item):
            self.items.append(item)


    class UserService:
        def __init__(self):
            self.repo = MemoryRepository()

        async def create(self, name):
            user = User(name)
            self.repo.save(user)
            return user
'''


def _parse(root):
    pt = ProjectType("proj", Language.PYTHON, root, (root,))
    return PythonParser().parse(pt)


def _edges(graph):
    return {(e.source, e.target, e.type.value) for e in graph.edges}


@pytest.fixture
def app_graph(make_project):
    root = make_project({
        "app/__init__.py": "",
        "app/models.py": MODELS,
        "app/service.py": SERVICE,
    })
    return _parse(root)


class TestSymbols:
    def test_node_kinds(self, app_graph):
        kinds = {n.id: n.type for n in app_graph.nodes}
        assert kinds["app"] == "module"
        assert kinds["app.models"] == "module"
        assert kinds["app.models.User"] == "class"
        assert kinds["app.models.Status"] == "enum"
        assert kinds["app.models.Repository"] == "protocol"
        assert kinds["app.models.User.greet"] == "method"
        assert kinds["app.models.format_name"] == "function"

    def test_node_metadata(self, app_graph):
        user = app_graph.get_node_by_id("app.models.User")
        assert user.title == "User"
        assert user.metadata["file_path"] == "app/models.py"
        assert user.metadata["line"] == 19
        assert user.metadata["docstring"] == "A registered user."
        assert user.metadata["bases"] == ["Base"]
        assert user.metadata["language"] == "python"
        status = app_graph.get_node_by_id("app.models.Status")
        assert status.metadata["variants"] == ["ACTIVE", "INACTIVE"]
        create = app_graph.get_node_by_id("app.service.UserService.create")
        assert create.metadata["is_async"] is True

    def test_graph_is_valid(self, app_graph):
        app_graph.validate()
        assert app_graph.metadata["diagnostics"] == []


class TestRelations:
    def test_defines(self, app_graph):
        edges = _edges(app_graph)
        assert ("app.models", "app.models.User", "defines") in edges
        assert ("app.models", "app.models.format_name", "defines") in edges
        assert ("app.models.User", "app.models.User.greet", "defines") in edges

    def test_extends_and_implements(self, app_graph):
        edges = _edges(app_graph)
        assert ("app.models.User", "app.models.Base", "extends") in edges
        assert ("app.service.MemoryRepository", "app.models.Repository",
                "implements") in edges

    def test_imports(self, app_graph):
        edges = _edges(app_graph)
        assert ("app.service", "app.models.User", "imports") in edges
        assert ("app.service", "app.models.Repository", "imports") in edges
        assert ("app.service", "app.models", "imports") in edges
        # stdlib imports are outside the graph
        assert not any(t in ("os", "enum", "typing") for _, t, _ in edges)

    def test_calls(self, app_graph):
        edges = _edges(app_graph)
        assert ("app.models.User.greet", "app.models.format_name", "calls") in edges
        # receiver "repo" does not name an owner; same file breaks the tie
        assert ("app.service.UserService.create",
                "app.service.MemoryRepository.save", "calls") in edges
        assert ("app.service.UserService.create",
                "app.models.Repository.save", "calls") not in edges

    def test_instantiation_uses(self, app_graph):
        edges = _edges(app_graph)
        assert ("app.service.UserService.create", "app.models.User", "uses") in edges
        assert ("app.service.UserService.__init__",
                "app.service.MemoryRepository", "uses") in edges

    def test_attribute_types_used(self, app_graph):
        edges = _edges(app_graph)
        assert ("app.models.User", "app.models.Status", "uses") in edges
        assert ("app.service.UserService", "app.service.MemoryRepository",
                "uses") in edges


class TestParseFile:
    def test_file_details(self, make_project):
        root = make_project({"pkg/mod.py": '''\
            import json
            from ..core import engine as eng, Helper
            from . import *

            __all__ = ["run"]


            @decorator.with_args(1)
            @staticmethod
            def run(x: int) -> str:
                """Run it."""
                return str(x)
        '''})
        result = PythonParser().parse_file(root / "pkg/mod.py", root)
        (file_info,) = result.files
        assert file_info.module_path == "pkg.mod"
        assert file_info.exports == ["run"]
        assert [(i.module, i.names, i.level) for i in file_info.imports] == [
            ("json", [], 0), ("core", ["engine", "Helper"], 2), ("", ["*"], 1)]
        (fn,) = result.functions
        assert fn.qualified_name == "pkg.mod.run"
        assert fn.return_type == "str"
        assert fn.docstring == "Run it."
        assert fn.decorators == ["decorator.with_args(1)", "staticmethod"]
        assert fn.metadata["is_static"] is True
        assert "(x: int) -> str" in fn.signature

    def test_test_file_flag(self, make_project):
        root = make_project({"tests/test_mod.py": "def test_a():\n    pass\n",
                             "util.py": ""})
        parser = PythonParser()
        assert parser.parse_file(root / "tests/test_mod.py", root).files[0].is_test
        assert not parser.parse_file(root / "util.py", root).files[0].is_test


class TestDiagnostics:
    def test_syntax_error_becomes_diagnostic(self, make_project):
        root = make_project({
            "good.py": "def ok():\n    return 1\n",
            "bad.py": "def broken(:\n    pass\n",
        })
        graph = _parse(root)
        assert [n.id for n in graph.nodes] == ["good", "good.ok"]
        (diag,) = graph.metadata["diagnostics"]
        assert diag["path"] == "bad.py"
        assert diag["message"].startswith("Syntax error in bad.py")

    def test_parse_directory_collects_diagnostics(self, make_project):
        root = make_project({
            "good.py": "def ok():\n    return 1\n",
            "bad.py": "def broken(:\n    pass\n",
        })
        result = PythonParser().parse_directory(root)
        assert [f.path for f in result.files] == ["good.py"]
        assert [fn.qualified_name for fn in result.functions] == ["good.ok"]
        (diag,) = result.diagnostics
        assert diag.path == "bad.py"
        assert diag.line == 1

    def test_all_files_broken_is_fatal(self, make_project):
        root = make_project({"bad.py": "class (:\n"})
        with pytest.raises(FatalParseError, match="could be parsed"):
            _parse(root)

    def test_no_files_is_fatal(self, make_project):
        root = make_project({"README.md": "hi"})
        with pytest.raises(FatalParseError, match="No python source files"):
            _parse(root)



def test_relative_import_beyond_top_level_is_unresolved(make_project):
    root = make_project({
        "a/__init__.py": "",
        "a/b/__init__.py": "",
        "a/b/c.py": "from .. import b\nfrom .... import x\n",
    })
    graph = _parse(root)
    imports = {(s, t) for s, t, kind in _edges(graph) if kind == "imports"}
    assert imports == {("a.b.c", "a.b")}
    assert graph.metadata["pruned_edges"] >= 1

def test_id_collision_gets_file_suffix(make_project):
    """Two source roots declaring the same module keep distinct ids."""
    root = make_project({"a/util.py": "def f():\n    pass\n",
                         "b/util.py": "def g():\n    pass\n"})
    pt = ProjectType("proj", Language.PYTHON, root, (root / "a", root / "b"))
    graph = PythonParser().parse(pt)
    ids = [n.id for n in graph.nodes]
    assert ids[0] == "util"
    assert "util@b/util.py" in ids
    assert ("util@b/util.py", "util.g", "defines") in _edges(graph)
