"""Intermediate representation produced by the language parsers.

Two layers live here.  The ``*Info`` records are what a parser pulls out of
a single source file with tree-sitter; they still refer to other types by
their bare source names.  After every file has been parsed, the resolver
turns the merged records into ``Symbol`` objects with stable ids and
resolved ``Relation`` targets, wrapped in ``LanguageDependencies``.  Only
the latter is handed to the converter.
"""

from dataclasses import dataclass, field


@dataclass
class Diagnostic:
    """A recoverable problem recorded while parsing one file."""
    path: str
    message: str
    line: int | None = None

    def to_dict(self) -> dict:
        return {"path": self.path, "message": self.message, "line": self.line}

    @classmethod
    def from_dict(cls, data: dict) -> "Diagnostic":
        return cls(path=str(data.get("path", "")),
                   message=str(data.get("message", "")),
                   line=data.get("line"))


@dataclass
class ImportInfo:
    """One import statement.

    ``module`` is the imported module path as written (dotted for Python and
    Java, a specifier string for TS/JS).  ``names`` lists the imported
    members for ``from x import a, b`` style imports.  ``level`` counts the
    leading dots of a Python relative import.
    """
    module: str
    names: list[str] = field(default_factory=list)
    level: int = 0
    line: int = 0


@dataclass
class FileInfo:
    path: str                  # relative to the project root, POSIX separators
    filename: str
    loc: int
    module_path: str           # language-specific qualified path
    language: str
    imports: list[ImportInfo] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)
    is_test: bool = False


@dataclass
class FunctionInfo:
    name: str
    qualified_name: str
    visibility: str
    is_async: bool
    is_method: bool
    signature: str
    file_path: str
    line_number: int
    docstring: str | None
    return_type: str | None
    owner: str | None = None   # qualified name of the enclosing type
    decorators: list[str] = field(default_factory=list)
    calls: list[tuple[str, int]] = field(default_factory=list)  # (name, line_number)
    end_line: int | None = None
    metadata: dict = field(default_factory=dict)


@dataclass
class ClassInfo:
    name: str
    qualified_name: str
    kind: str                  # "class"
    visibility: str
    file_path: str
    line_number: int
    docstring: str | None
    bases: list[str] = field(default_factory=list)
    end_line: int | None = None
    metadata: dict = field(default_factory=dict)


@dataclass
class EnumInfo:
    name: str
    qualified_name: str
    visibility: str
    file_path: str
    line_number: int
    docstring: str | None
    variants: list[str] = field(default_factory=list)
    end_line: int | None = None


@dataclass
class InterfaceInfo:
    """Represents protocols (Python) and interfaces (Java, TS)."""
    name: str
    qualified_name: str
    kind: str                  # "protocol" | "interface"
    visibility: str
    file_path: str
    line_number: int
    docstring: str | None
    end_line: int | None = None


@dataclass
class AttributeInfo:
    """Class field or property; its type feeds ``uses`` relations."""
    name: str
    qualified_name: str
    owner_qualified_name: str
    type_annotation: str | None
    visibility: str
    file_path: str
    line_number: int


@dataclass
class TypeRelationship:
    """An inheritance (extends) or implementation (implements) clause."""
    source_type: str           # qualified name of the declaring type
    target_type: str           # name as written in source
    relationship: str          # "extends" | "implements"
    file_path: str = ""


@dataclass
class ParseResult:
    """Unified result from any language parser."""
    files: list[FileInfo] = field(default_factory=list)
    functions: list[FunctionInfo] = field(default_factory=list)
    classes: list[ClassInfo] = field(default_factory=list)
    enums: list[EnumInfo] = field(default_factory=list)
    interfaces: list[InterfaceInfo] = field(default_factory=list)
    type_relationships: list[TypeRelationship] = field(default_factory=list)
    attributes: list[AttributeInfo] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def merge(self, other: "ParseResult") -> "ParseResult":
        """Merge another ParseResult into this one (mutates self)."""
        self.files.extend(other.files)
        self.functions.extend(other.functions)
        self.classes.extend(other.classes)
        self.enums.extend(other.enums)
        self.interfaces.extend(other.interfaces)
        self.type_relationships.extend(other.type_relationships)
        self.attributes.extend(other.attributes)
        self.diagnostics.extend(other.diagnostics)
        return self


# ── Resolved representation ───────────────────────────────────────────


@dataclass
class Relation:
    kind: str                  # "imports" | "extends" | "implements" | "calls" | "uses" | "defines"
    target: str                # target symbol id (may be external)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "target": self.target}


@dataclass
class Symbol:
    id: str
    title: str
    kind: str                  # "module" | "class" | "interface" | "enum" | "function" | "method" ...
    file_path: str
    line: int | None = None
    metadata: dict = field(default_factory=dict)
    relations: list[Relation] = field(default_factory=list)

    def add_relation(self, kind: str, target: str) -> None:
        """Append a relation unless an identical one is already present."""
        for rel in self.relations:
            if rel.kind == kind and rel.target == target:
                return
        self.relations.append(Relation(kind, target))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "kind": self.kind,
            "file_path": self.file_path,
            "line": self.line,
            "metadata": dict(self.metadata),
            "relations": [r.to_dict() for r in self.relations],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Symbol":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or data["id"]),
            kind=str(data.get("kind") or "symbol"),
            file_path=str(data.get("file_path") or ""),
            line=data.get("line"),
            metadata=dict(data.get("metadata") or {}),
            relations=[Relation(str(r.get("kind", "")), str(r["target"]))
                       for r in data.get("relations") or []
                       if "target" in r],
        )


@dataclass
class LanguageDependencies:
    """Everything one parse run discovered, ready for conversion."""
    language: str
    project: str
    root_path: str
    symbols: list[Symbol] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    FORMAT = "language-specific"

    def to_dict(self) -> dict:
        return {
            "format": self.FORMAT,
            "language": self.language,
            "project": self.project,
            "root": self.root_path,
            "symbols": [s.to_dict() for s in self.symbols],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LanguageDependencies":
        return cls(
            language=str(data.get("language") or "unknown"),
            project=str(data.get("project") or ""),
            root_path=str(data.get("root") or ""),
            symbols=[Symbol.from_dict(s) for s in data.get("symbols") or []],
            diagnostics=[Diagnostic.from_dict(d)
                         for d in data.get("diagnostics") or []],
        )
