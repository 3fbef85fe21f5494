"""Exception types raised by depgraph.

Each error also derives from the closest built-in exception so callers can
catch either the specific type or the generic one.
"""


class DepgraphError(Exception):
    """Base class for all depgraph errors."""


class ProjectNotFoundError(DepgraphError, FileNotFoundError):
    """No supported project was detected at a root directory."""


class NoParserError(DepgraphError, LookupError):
    """No registered parser can handle a project type."""


class FatalParseError(DepgraphError, RuntimeError):
    """A parse run could not produce any usable result."""


class SnapshotFormatError(DepgraphError, ValueError):
    """Persisted dependency data has an unrecognized shape."""


class GraphIntegrityError(DepgraphError, ValueError):
    """A graph has duplicate node ids or edges pointing at missing nodes."""


class CycleDetectedError(DepgraphError, ValueError):
    """A dependency cycle was found where an acyclic graph was required."""

    def __init__(self, cycles: list[list[str]]):
        self.cycles = cycles
        preview = "; ".join(" -> ".join(c) for c in cycles[:3])
        more = f" (+{len(cycles) - 3} more)" if len(cycles) > 3 else ""
        super().__init__(f"{len(cycles)} dependency cycle(s): {preview}{more}")
