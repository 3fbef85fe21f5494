"""Analysis settings read from ``.depgraph.toml`` or ``pyproject.toml``."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_DIRS: frozenset[str] = frozenset({
    "node_modules", "bower_components", "vendor",
    ".git", ".hg", ".svn",
    "__pycache__", ".venv", "venv", "env", ".tox", ".eggs",
    ".mypy_cache", ".pytest_cache", ".ruff_cache",
    "dist", "build", "target", "out", "coverage", ".next",
    ".idea", ".vscode", ".gradle", ".depgraph",
})

CYCLE_POLICIES = ("condense", "raise")


def _default_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass(frozen=True)
class Settings:
    exclude_dirs: frozenset[str] = DEFAULT_EXCLUDE_DIRS
    max_workers: int = field(default_factory=_default_workers)
    max_call_targets: int = 5
    snapshot_dir: str = ".depgraph"
    debounce_seconds: float = 2.0
    cycle_policy: str = "condense"
    include_tests: bool = True

    def with_overrides(self, **overrides) -> "Settings":
        return replace(self, **overrides)


# ── TOML loading (stdlib 3.11+, tomli fallback for 3.10) ─────────────

_tomllib = None


def load_toml(path: Path) -> dict:
    """Load a TOML file, using stdlib tomllib or tomli fallback."""
    global _tomllib
    if _tomllib is None:
        try:
            import tomllib as _tl
        except ModuleNotFoundError:
            try:
                import tomli as _tl  # type: ignore[no-redef]
            except ImportError:
                raise ImportError(
                    "TOML parsing requires Python 3.11+ or the 'tomli' package. "
                    "Install with: pip install tomli"
                ) from None
        _tomllib = _tl
    with open(path, "rb") as f:
        return _tomllib.load(f)


def _read_table(root: Path) -> dict | None:
    """Return the depgraph config table, or None if there is none."""
    candidates = (
        (root / ".depgraph.toml", ("depgraph",)),
        (root / "pyproject.toml", ("tool", "depgraph")),
    )
    for path, keys in candidates:
        if not path.is_file():
            continue
        try:
            data = load_toml(path)
        except (OSError, ValueError) as exc:
            # tomllib.TOMLDecodeError is a ValueError subclass
            logger.warning("Ignoring unreadable config %s: %s", path, exc)
            continue
        for key in keys:
            data = data.get(key, {}) if isinstance(data, dict) else {}
        if data:
            logger.debug("Loaded settings from %s", path)
            return data
    return None


def settings_from_mapping(table: dict, base: Settings | None = None) -> Settings:
    """Build Settings from a config table, ignoring unknown or bad values."""
    settings = base or Settings()
    overrides: dict = {}

    extra = table.get("exclude")
    if isinstance(extra, list):
        overrides["exclude_dirs"] = settings.exclude_dirs | frozenset(
            str(x) for x in extra)

    for key, kind in (("max_workers", int), ("max_call_targets", int),
                      ("debounce_seconds", (int, float)),
                      ("snapshot_dir", str), ("include_tests", bool)):
        if key not in table:
            continue
        value = table[key]
        if isinstance(value, kind) and not (kind is int and isinstance(value, bool)):
            overrides[key] = value
        else:
            logger.warning("Ignoring invalid setting %s=%r", key, value)

    policy = table.get("cycle_policy")
    if policy is not None:
        if policy in CYCLE_POLICIES:
            overrides["cycle_policy"] = policy
        else:
            logger.warning("Ignoring unknown cycle_policy %r", policy)

    if overrides.get("max_workers", 1) < 1:
        logger.warning("max_workers must be positive; using default")
        overrides.pop("max_workers")

    return settings.with_overrides(**overrides)


def load_settings(root: str | Path) -> Settings:
    """Load settings for a project root, falling back to defaults."""
    table = _read_table(Path(root))
    if table is None:
        return Settings()
    return settings_from_mapping(table)
