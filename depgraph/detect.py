"""Detect which kind of project lives in a directory.

Manifest readers are tried in a fixed order and the first match wins:
Java build files, then Python packaging files, then ``package.json``.  A
directory with several languages but a single manifest is therefore always
classified by that manifest.  Without any manifest the most common source
language wins, ties broken by the same order.
"""

from __future__ import annotations

import json
import logging
import re
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .config import Settings, load_toml
from .files import count_languages, iter_source_files

logger = logging.getLogger(__name__)


class Language(str, Enum):
    JAVA = "java"
    PYTHON = "python"
    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"


# Tie-break order for manifest-less detection
LANGUAGE_PRIORITY: tuple[Language, ...] = (
    Language.JAVA, Language.PYTHON, Language.TYPESCRIPT, Language.JAVASCRIPT,
)


@dataclass(frozen=True)
class ProjectType:
    """What to parse: detected language plus where its sources live."""
    name: str
    language: Language
    root_path: Path
    source_roots: tuple[Path, ...] = ()
    manifest: Path | None = None
    build_system: str | None = None

    @property
    def display_name(self) -> str:
        if self.build_system:
            return f"{self.name} ({self.build_system})"
        return self.name

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "language": self.language.value,
            "root_path": str(self.root_path),
            "source_roots": [str(p) for p in self.source_roots],
            "manifest": str(self.manifest) if self.manifest else None,
            "build_system": self.build_system,
        }


# ── Base class ────────────────────────────────────────────────────────


class ManifestReader(ABC):
    """Base class for project manifest readers."""

    @property
    @abstractmethod
    def manifest_filenames(self) -> tuple[str, ...]:
        """Filenames this reader recognizes, most specific first."""
        ...

    def find(self, project_root: Path) -> Path | None:
        for filename in self.manifest_filenames:
            candidate = project_root / filename
            if candidate.is_file():
                return candidate
        return None

    @abstractmethod
    def read(self, manifest_path: Path, project_root: Path,
             settings: Settings) -> ProjectType:
        """Parse the manifest and return the project type."""
        ...


# ── Java: Maven / Gradle ─────────────────────────────────────────────


class MavenReader(ManifestReader):

    @property
    def manifest_filenames(self) -> tuple[str, ...]:
        return ("pom.xml",)

    def read(self, manifest_path: Path, project_root: Path,
             settings: Settings) -> ProjectType:
        return ProjectType(
            name=_pom_name(manifest_path) or project_root.name,
            language=Language.JAVA,
            root_path=project_root,
            source_roots=_java_source_roots(project_root, settings),
            manifest=manifest_path,
            build_system="maven",
        )


class GradleReader(ManifestReader):

    @property
    def manifest_filenames(self) -> tuple[str, ...]:
        return ("build.gradle.kts", "build.gradle",
                "settings.gradle.kts", "settings.gradle")

    def read(self, manifest_path: Path, project_root: Path,
             settings: Settings) -> ProjectType:
        return ProjectType(
            name=_gradle_name(project_root) or project_root.name,
            language=Language.JAVA,
            root_path=project_root,
            source_roots=_java_source_roots(project_root, settings),
            manifest=manifest_path,
            build_system="gradle",
        )


# ── Python ────────────────────────────────────────────────────────────


class PyProjectReader(ManifestReader):
    """Reads pyproject.toml (PEP 621) and the older setuptools files."""

    @property
    def manifest_filenames(self) -> tuple[str, ...]:
        return ("pyproject.toml", "setup.py", "setup.cfg", "requirements.txt")

    def read(self, manifest_path: Path, project_root: Path,
             settings: Settings) -> ProjectType:
        name = None
        build_system = "setuptools"
        if manifest_path.name == "pyproject.toml":
            try:
                data = load_toml(manifest_path)
            except (OSError, ValueError) as exc:
                logger.warning("Could not read %s: %s", manifest_path, exc)
                data = {}
            name = data.get("project", {}).get("name")
            if name is None:
                name = data.get("tool", {}).get("poetry", {}).get("name")
            backend = data.get("build-system", {}).get("build-backend", "")
            build_system = backend.split(".")[0] if backend else "pip"
        elif manifest_path.name == "requirements.txt":
            build_system = "pip"

        src = project_root / "src"
        if src.is_dir() and any(src.glob("*/__init__.py")):
            roots = (src,)
        else:
            roots = (project_root,)

        return ProjectType(
            name=name or project_root.name,
            language=Language.PYTHON,
            root_path=project_root,
            source_roots=roots,
            manifest=manifest_path,
            build_system=build_system,
        )


# ── TypeScript / JavaScript ──────────────────────────────────────────


class PackageJsonReader(ManifestReader):

    @property
    def manifest_filenames(self) -> tuple[str, ...]:
        return ("package.json",)

    def read(self, manifest_path: Path, project_root: Path,
             settings: Settings) -> ProjectType:
        try:
            data = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s: %s", manifest_path, exc)
            data = {}
        name = data.get("name") if isinstance(data, dict) else None

        src = project_root / "src"
        roots = (src,) if src.is_dir() else (project_root,)

        is_ts = (project_root / "tsconfig.json").is_file() or any(
            True for _ in iter_source_files(
                project_root, (".ts", ".tsx", ".mts"), settings.exclude_dirs)
        )
        return ProjectType(
            name=name or project_root.name,
            language=Language.TYPESCRIPT if is_ts else Language.JAVASCRIPT,
            root_path=project_root,
            source_roots=roots,
            manifest=manifest_path,
            build_system="npm",
        )


# ── Detection ─────────────────────────────────────────────────────────

MANIFEST_READERS: list[type[ManifestReader]] = [
    MavenReader,
    GradleReader,
    PyProjectReader,
    PackageJsonReader,
]


def detect_manifest(project_root: Path) -> tuple[ManifestReader, Path] | None:
    """Find the primary manifest in a directory (first match wins)."""
    for reader_cls in MANIFEST_READERS:
        reader = reader_cls()
        manifest = reader.find(project_root)
        if manifest is not None:
            return reader, manifest
    return None


def detect(root: str | Path, settings: Settings | None = None) -> ProjectType | None:
    """Detect the project type at ``root``.

    Returns None when the directory does not exist or contains nothing a
    registered language recognizes; callers treat that as "cannot proceed"
    and may try a different root.
    """
    settings = settings or Settings()
    project_root = Path(root).resolve()
    if not project_root.is_dir():
        logger.info("Not a directory: %s", project_root)
        return None

    found = detect_manifest(project_root)
    if found is not None:
        reader, manifest = found
        project_type = reader.read(manifest, project_root, settings)
        logger.info("Detected %s project via %s",
                    project_type.language.value, manifest.name)
        return project_type

    counts = count_languages(project_root, settings.exclude_dirs)
    if not counts:
        logger.info("No supported source files under %s", project_root)
        return None
    best = max(LANGUAGE_PRIORITY,
               key=lambda lang: (counts.get(lang.value, 0),
                                 -LANGUAGE_PRIORITY.index(lang)))
    logger.info("Detected %s project by file census %s",
                best.value, dict(sorted(counts.items())))
    return ProjectType(
        name=project_root.name,
        language=best,
        root_path=project_root,
        source_roots=(project_root,),
    )


# ── Helpers ───────────────────────────────────────────────────────────


def _java_source_roots(project_root: Path,
                       settings: Settings) -> tuple[Path, ...]:
    main = project_root / "src" / "main" / "java"
    if not main.is_dir():
        return (project_root,)
    roots = [main]
    test = project_root / "src" / "test" / "java"
    if settings.include_tests and test.is_dir():
        roots.append(test)
    return tuple(roots)


def _pom_name(pom_path: Path) -> str | None:
    """Read <name> or <artifactId> from a pom.xml."""
    try:
        root = ET.parse(pom_path).getroot()
    except (OSError, ET.ParseError) as exc:
        logger.warning("Could not parse %s: %s", pom_path, exc)
        return None
    ns = ""
    if root.tag.startswith("{"):
        ns = root.tag[:root.tag.index("}") + 1]
    for tag in ("name", "artifactId"):
        elem = root.find(f"{ns}{tag}")
        if elem is not None and elem.text and elem.text.strip():
            return elem.text.strip()
    return None


def _gradle_name(project_root: Path) -> str | None:
    """Extract rootProject.name from settings.gradle(.kts)."""
    for settings_name in ("settings.gradle.kts", "settings.gradle"):
        path = project_root / settings_name
        if not path.is_file():
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except OSError:
            continue
        m = re.search(r"""rootProject\.name\s*=\s*['"]([^'"]+)['"]""", content)
        if m:
            return m.group(1)
    return None


def supported_languages() -> list[str]:
    return [lang.value for lang in LANGUAGE_PRIORITY]


__all__ = [
    "Language", "ProjectType", "ManifestReader", "MANIFEST_READERS",
    "detect", "detect_manifest", "supported_languages",
]
