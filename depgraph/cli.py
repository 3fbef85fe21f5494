"""Command-line interface for depgraph."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import load_settings
from .detect import detect
from .errors import DepgraphError, ProjectNotFoundError, NoParserError
from .metrics import compute_metrics
from .pipeline import analyze, load_or_analyze
from .snapshot import SnapshotStore, load_snapshot

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_NOT_FOUND = 2


def _cmd_analyze(args) -> int:
    root = args.project_dir.resolve()
    settings = load_settings(root) if root.is_dir() else None
    store = SnapshotStore(args.output) if args.output else None
    if args.no_cache:
        result = analyze(root, settings=settings, store=store)
    else:
        result = load_or_analyze(root, settings=settings, store=store)

    if args.json:
        json.dump(result.graph.to_dict(), sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        print(result.summary())
        for cycle in result.metrics.cycles:
            print(f"  cycle: {' -> '.join(cycle)}")
    return EXIT_OK


def _cmd_metrics(args) -> int:
    if not args.snapshot.is_file():
        raise ProjectNotFoundError(f"No such snapshot: {args.snapshot}")
    graph = load_snapshot(args.snapshot)
    metrics = compute_metrics(graph)
    print(json.dumps(metrics.to_dict(), indent=2))
    return EXIT_OK


def _cmd_detect(args) -> int:
    project_type = detect(args.project_dir)
    if project_type is None:
        raise ProjectNotFoundError(f"No supported project found at {args.project_dir}")
    print(json.dumps(project_type.to_dict(), indent=2))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="depgraph",
        description="Build a standardized dependency graph from a Java, Python or TypeScript project.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) output",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("analyze", help="Analyze a project and save its graph")
    p.add_argument("project_dir", type=Path, help="Path to the project to analyze")
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Snapshot directory (default: <project>/.depgraph)",
    )
    p.add_argument("--json", action="store_true", help="Print the graph as JSON")
    p.add_argument(
        "--no-cache",
        action="store_true",
        help="Re-analyze even if a saved snapshot exists",
    )
    p.set_defaults(func=_cmd_analyze)

    p = sub.add_parser("metrics", help="Print metrics for a saved snapshot")
    p.add_argument("snapshot", type=Path, help="Path to a dependency JSON file")
    p.set_defaults(func=_cmd_metrics)

    p = sub.add_parser("detect", help="Print the detected project type")
    p.add_argument("project_dir", type=Path, help="Path to the project")
    p.set_defaults(func=_cmd_detect)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(message)s")
    if args.verbose:
        logging.getLogger("depgraph").setLevel(logging.DEBUG)

    try:
        return args.func(args)
    except (ProjectNotFoundError, NoParserError) as exc:
        print(f"depgraph: {exc}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except DepgraphError as exc:
        print(f"depgraph: {exc}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
