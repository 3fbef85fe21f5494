"""Tests for project type detection."""

from depgraph.config import Settings
from depgraph.detect import Language, detect, detect_manifest, supported_languages

POM = """\
<?xml version="1.0"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <groupId>com.acme</groupId>
  <artifactId>shop</artifactId>
</project>
"""


class TestManifests:
    def test_maven(self, make_project):
        root = make_project({
            "pom.xml": POM,
            "src/main/java/com/acme/App.java": "class App {}",
            "src/test/java/com/acme/AppTest.java": "class AppTest {}",
        })
        pt = detect(root)
        assert pt.language is Language.JAVA
        assert pt.name == "shop"
        assert pt.build_system == "maven"
        assert pt.source_roots == (root.resolve() / "src/main/java", root.resolve() / "src/test/java")

    def test_maven_without_tests(self, make_project):
        root = make_project({
            "pom.xml": POM,
            "src/main/java/App.java": "class App {}",
            "src/test/java/AppTest.java": "class AppTest {}",
        })
        pt = detect(root, Settings(include_tests=False))
        assert pt.source_roots == (root.resolve() / "src/main/java",)

    def test_gradle_name(self, make_project):
        root = make_project({
            "build.gradle.kts": "plugins { java }",
            "settings.gradle.kts": 'rootProject.name = "inventory"\n',
            "App.java": "class App {}",
        })
        pt = detect(root)
        assert pt.language is Language.JAVA
        assert pt.name == "inventory"
        assert pt.build_system == "gradle"
        assert pt.source_roots == (root.resolve(),)

    def test_pyproject(self, make_project):
        root = make_project({
            "pyproject.toml": """\
                [project]
                name = "widgets"

                [build-system]
                build-backend = "hatchling.build"
            """,
            "src/widgets/__init__.py": "",
        })
        pt = detect(root)
        assert pt.language is Language.PYTHON
        assert pt.name == "widgets"
        assert pt.build_system == "hatchling"
        assert pt.source_roots == (root.resolve() / "src",)

    def test_requirements_flat_layout(self, make_project):
        root = make_project({"requirements.txt": "requests\n", "app.py": ""})
        pt = detect(root)
        assert pt.language is Language.PYTHON
        assert pt.source_roots == (root.resolve(),)
        assert pt.build_system == "pip"

    def test_package_json_typescript(self, make_project):
        root = make_project({
            "package.json": '{"name": "web-app"}',
            "src/index.ts": "export const x = 1;",
        })
        pt = detect(root)
        assert pt.language is Language.TYPESCRIPT
        assert pt.name == "web-app"
        assert pt.source_roots == (root.resolve() / "src",)

    def test_package_json_javascript(self, make_project):
        root = make_project({
            "package.json": '{"name": "legacy"}',
            "lib/main.js": "module.exports = {};",
        })
        pt = detect(root)
        assert pt.language is Language.JAVASCRIPT
        assert pt.source_roots == (root.resolve(),)

    def test_bad_package_json_still_detected(self, make_project):
        root = make_project({"package.json": "{not json", "index.js": ""})
        pt = detect(root)
        assert pt.language is Language.JAVASCRIPT
        assert pt.name == "proj"

    def test_manifest_order(self, make_project):
        root = make_project({"pom.xml": POM, "package.json": "{}"})
        reader, manifest = detect_manifest(root)
        assert manifest.name == "pom.xml"

    def test_manifest_beats_file_census(self, make_project):
        """Two languages, one manifest: the manifest decides."""
        root = make_project({
            "package.json": '{"name": "mixed"}',
            "a.py": "", "b.py": "", "c.py": "",
            "index.js": "",
        })
        assert detect(root).language is Language.JAVASCRIPT


class TestCensus:
    def test_most_files_wins(self, make_project):
        root = make_project({"a.py": "", "b.py": "", "x.js": ""})
        pt = detect(root)
        assert pt.language is Language.PYTHON
        assert pt.manifest is None
        assert pt.name == "proj"

    def test_tie_broken_by_fixed_order(self, make_project):
        root = make_project({"A.java": "", "a.py": "", "x.ts": ""})
        assert detect(root).language is Language.JAVA

    def test_excluded_dirs_ignored(self, make_project):
        root = make_project({
            "main.py": "",
            "node_modules/lib/a.js": "", "node_modules/lib/b.js": "",
            ".hidden/c.js": "",
        })
        assert detect(root).language is Language.PYTHON


class TestNotFound:
    def test_missing_directory(self, tmp_path):
        assert detect(tmp_path / "nope") is None

    def test_no_source_files(self, make_project):
        root = make_project({"README.md": "# hi"})
        assert detect(root) is None


def test_project_type_to_dict(make_project):
    root = make_project({"app.py": ""})
    data = detect(root).to_dict()
    assert data["language"] == "python"
    assert data["root_path"] == str(root.resolve())
    assert data["manifest"] is None


def test_supported_languages():
    assert supported_languages() == ["java", "python", "typescript", "javascript"]
