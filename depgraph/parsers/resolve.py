"""
Turn merged per-file extraction records into resolved symbols.

The parsers only see one file at a time, so every cross-file reference they
record (imports, base classes, calls, attribute types) is still a name as
written in source.  This module builds the project-wide symbol table and
resolves those names to symbol ids, producing ``LanguageDependencies``.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from pathlib import Path

import pandas as pd

from .models import (
    ClassInfo, EnumInfo, FileInfo, FunctionInfo, ImportInfo, InterfaceInfo,
    LanguageDependencies, ParseResult, Symbol,
)

logger = logging.getLogger(__name__)

TYPE_KINDS = frozenset({"class", "interface", "protocol", "enum"})

_IDENT_RE = re.compile(r"[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*")


class SymbolTable:
    """Symbols by id, plus the lookups the resolver needs.

    Records are keyed by ``(file_path, qualified_name)`` so that two files
    declaring the same qualified name get distinct symbols: the first one
    (in path order) keeps the plain id, later ones become
    ``<qualified>@<file_path>``.
    """

    def __init__(self, root_path: str, language: str):
        self.root_path = Path(root_path)
        self.language = language
        self.symbols: dict[str, Symbol] = {}
        self.by_record: dict[tuple[str, str], str] = {}
        self.by_qname: dict[str, str] = {}
        self.by_simple: dict[str, list[str]] = defaultdict(list)

    def add(self, qualified_name: str, title: str, kind: str, file_path: str,
            line: int | None, metadata: dict | None = None) -> Symbol:
        key = (file_path, qualified_name)
        existing = self.by_record.get(key)
        if existing is not None:
            return self.symbols[existing]

        symbol_id = qualified_name
        if symbol_id in self.symbols:
            symbol_id = f"{qualified_name}@{file_path}"
            logger.debug("Id collision for %s; using %s", qualified_name, symbol_id)

        meta = {
            "qualified_name": qualified_name,
            "language": self.language,
            "source_file": str(self.root_path / file_path) if file_path else "",
        }
        meta.update(metadata or {})
        symbol = Symbol(id=symbol_id, title=title, kind=kind,
                        file_path=file_path, line=line, metadata=meta)
        self.symbols[symbol_id] = symbol
        self.by_record[key] = symbol_id
        self.by_qname.setdefault(qualified_name, symbol_id)
        if kind in TYPE_KINDS:
            self.by_simple[title].append(symbol_id)
        return symbol

    def record(self, file_path: str, qualified_name: str) -> str | None:
        return self.by_record.get((file_path, qualified_name))

    def lookup(self, qualified_name: str) -> str | None:
        return self.by_qname.get(qualified_name)

    def kind_of(self, symbol_id: str) -> str | None:
        symbol = self.symbols.get(symbol_id)
        return symbol.kind if symbol is not None else None

    def is_type(self, symbol_id: str | None) -> bool:
        return symbol_id is not None and self.kind_of(symbol_id) in TYPE_KINDS


# ── Phase 1: Symbols ──────────────────────────────────────────────────


def _sorted(records: list, key=lambda r: (r.file_path, r.line_number)) -> list:
    return sorted(records, key=key)


def _doc_metadata(record) -> dict:
    meta: dict = {"visibility": record.visibility}
    if record.docstring:
        meta["docstring"] = record.docstring
    if record.end_line is not None:
        meta["end_line"] = record.end_line
    return meta


def _build_module_symbols(files: list[FileInfo], table: SymbolTable,
                          separator: str, group_by_package: bool) -> dict[str, str]:
    """One symbol per file (or per package for Java); returns file -> module id."""
    file_module: dict[str, str] = {}
    for f in files:
        if group_by_package:
            package = f.module_path or "(default)"
            existing = table.lookup(package)
            if existing is not None and table.kind_of(existing) == "package":
                symbol = table.symbols[existing]
                symbol.metadata["files"].append(f.path)
                symbol.metadata["loc"] += f.loc
            else:
                symbol = table.add(package, package, "package", "", None, {
                    "files": [f.path], "loc": f.loc,
                })
            file_module[f.path] = symbol.id
            continue

        title = f.module_path.rsplit(separator, 1)[-1]
        meta: dict = {"loc": f.loc, "filename": f.filename}
        if f.exports:
            meta["exports"] = list(f.exports)
        if f.is_test:
            meta["is_test"] = True
        symbol = table.add(f.module_path, title, "module", f.path, 1, meta)
        file_module[f.path] = symbol.id
    return file_module


def _build_type_symbols(result: ParseResult, table: SymbolTable,
                        test_files: set[str]) -> None:
    records: list[ClassInfo | InterfaceInfo | EnumInfo] = []
    records.extend(result.classes)
    records.extend(result.interfaces)
    records.extend(result.enums)
    for rec in _sorted(records):
        meta = _doc_metadata(rec)
        if isinstance(rec, ClassInfo):
            kind = rec.kind
            if rec.bases:
                meta["bases"] = list(rec.bases)
            meta.update(rec.metadata)
        elif isinstance(rec, InterfaceInfo):
            kind = rec.kind
        else:
            kind = "enum"
            if rec.variants:
                meta["variants"] = list(rec.variants)
        if rec.file_path in test_files:
            meta["is_test"] = True
        table.add(rec.qualified_name, rec.name, kind, rec.file_path,
                  rec.line_number, meta)


def _build_function_symbols(functions: list[FunctionInfo], table: SymbolTable,
                            test_files: set[str]) -> list[tuple[str, FunctionInfo]]:
    resolved: list[tuple[str, FunctionInfo]] = []
    for fn in _sorted(functions):
        meta = {"visibility": fn.visibility, "signature": fn.signature}
        if fn.docstring:
            meta["docstring"] = fn.docstring
        if fn.return_type:
            meta["return_type"] = fn.return_type
        if fn.decorators:
            meta["decorators"] = list(fn.decorators)
        if fn.is_async:
            meta["is_async"] = True
        if fn.end_line is not None:
            meta["end_line"] = fn.end_line
        if fn.file_path in test_files:
            meta["is_test"] = True
        meta.update(fn.metadata)
        symbol = table.add(fn.qualified_name, fn.name,
                           "method" if fn.owner else "function",
                           fn.file_path, fn.line_number, meta)
        resolved.append((symbol.id, fn))
    return resolved


# ── Phase 2: Name resolution ──────────────────────────────────────────


class _Resolver:
    """Resolves names as written in one file to symbol ids."""

    def __init__(self, table: SymbolTable, files: list[FileInfo]):
        self.table = table
        self.module_of: dict[str, str] = {f.path: f.module_path for f in files}
        self.bindings: dict[str, dict[str, str]] = defaultdict(dict)

    def bind(self, file_path: str, local_name: str, symbol_id: str) -> None:
        self.bindings[file_path].setdefault(local_name, symbol_id)

    def resolve_type(self, name: str, file_path: str,
                     scope: str | None = None) -> str | None:
        """Resolve a type name: exact, enclosing scopes, imports, unique name."""
        table = self.table
        name = name.strip()
        if not name:
            return None

        exact = table.lookup(name)
        if table.is_type(exact):
            return exact

        # enclosing scopes, innermost first, ending at the module
        module = self.module_of.get(file_path, "")
        scopes = []
        while scope:
            scopes.append(scope)
            if scope == module or "." not in scope:
                break
            scope = scope.rsplit(".", 1)[0]
        if module and module not in scopes:
            scopes.append(module)
        for prefix in scopes:
            candidate = table.record(file_path, f"{prefix}.{name}") or table.lookup(
                f"{prefix}.{name}")
            if table.is_type(candidate):
                return candidate

        head, _, rest = name.partition(".")
        bound = self.bindings.get(file_path, {}).get(head)
        if bound is not None:
            if not rest and table.is_type(bound):
                return bound
            if rest:
                target = table.symbols[bound].metadata.get("qualified_name", bound)
                candidate = table.lookup(f"{target}.{rest}")
                if table.is_type(candidate):
                    return candidate

        simple = name.rsplit(".", 1)[-1]
        matches = table.by_simple.get(simple, [])
        if len(matches) == 1:
            return matches[0]
        return None


def _python_import_base(f: FileInfo, imp: ImportInfo) -> str:
    """Absolute module path targeted by a (possibly relative) Python import."""
    if imp.level == 0:
        return imp.module
    parts = f.module_path.split(".")
    if f.filename != "__init__.py":
        parts = parts[:-1]
    if imp.level - 1 > len(parts):
        return "." * imp.level + imp.module  # beyond the top-level package
    if imp.level > 1:
        parts = parts[:len(parts) - (imp.level - 1)]
    if imp.module:
        parts.append(imp.module)
    return ".".join(p for p in parts if p)


def _resolve_imports(files: list[FileInfo], table: SymbolTable,
                     resolver: _Resolver, file_module: dict[str, str],
                     language: str) -> None:
    """Module imports module/symbol; Java binds imports to the file's types."""
    types_in_file: dict[str, list[str]] = defaultdict(list)
    if language == "java":
        for symbol in table.symbols.values():
            if symbol.kind in TYPE_KINDS and symbol.file_path:
                qname = symbol.metadata["qualified_name"]
                parent = qname.rsplit(".", 1)[0] if "." in qname else ""
                if parent == resolver.module_of.get(symbol.file_path, ""):
                    types_in_file[symbol.file_path].append(symbol.id)

    for f in files:
        sources = types_in_file.get(f.path) or [file_module[f.path]]
        for imp in f.imports:
            base = _python_import_base(f, imp) if language == "python" else imp.module
            targets: list[str] = []
            if imp.names and imp.names != ["*"]:
                for name in imp.names:
                    member = table.lookup(f"{base}.{name}")
                    if member is not None:
                        resolver.bind(f.path, name, member)
                        targets.append(member)
                if not targets:
                    targets.append(table.lookup(base) or base)
            else:
                target = table.lookup(base)
                if target is not None and language == "java" and imp.names != ["*"]:
                    resolver.bind(f.path, base.rsplit(".", 1)[-1], target)
                elif target is not None and language == "python":
                    resolver.bind(f.path, base.split(".")[0],
                                  table.lookup(base.split(".")[0]) or target)
                targets.append(target or base)
            for source_id in sources:
                for target in targets:
                    if target != source_id:
                        table.symbols[source_id].add_relation("imports", target)


def _resolve_type_relationships(result: ParseResult, table: SymbolTable,
                                resolver: _Resolver) -> None:
    for tr in sorted(result.type_relationships,
                     key=lambda t: (t.file_path, t.source_type)):
        source_id = table.record(tr.file_path, tr.source_type)
        if source_id is None:
            continue
        scope = tr.source_type.rsplit(".", 1)[0]
        target = resolver.resolve_type(tr.target_type, tr.file_path, scope)
        kind = tr.relationship
        if target is None:
            # unresolved bases stay as written; the converter drops them
            table.symbols[source_id].add_relation(kind, tr.target_type)
            continue
        if (kind == "extends" and table.kind_of(source_id) == "class"
                and table.kind_of(target) in ("interface", "protocol")):
            kind = "implements"
        if target != source_id:
            table.symbols[source_id].add_relation(kind, target)


def _resolve_defines(table: SymbolTable, file_module: dict[str, str],
                     functions: list[tuple[str, FunctionInfo]]) -> None:
    """Modules define top-level types and functions; types define members."""
    for symbol in list(table.symbols.values()):
        if symbol.kind not in TYPE_KINDS:
            continue
        qname = symbol.metadata["qualified_name"]
        parent = qname.rsplit(".", 1)[0] if "." in qname else ""
        owner = table.record(symbol.file_path, parent)
        if owner is not None and table.is_type(owner):
            table.symbols[owner].add_relation("defines", symbol.id)
        elif symbol.file_path in file_module:
            table.symbols[file_module[symbol.file_path]].add_relation(
                "defines", symbol.id)

    for symbol_id, fn in functions:
        owner = table.record(fn.file_path, fn.owner) if fn.owner else None
        if owner is not None:
            table.symbols[owner].add_relation("defines", symbol_id)
        elif fn.file_path in file_module:
            table.symbols[file_module[fn.file_path]].add_relation(
                "defines", symbol_id)


# ── Phase 3: Calls and usage ──────────────────────────────────────────


def _scope_of(fn: FunctionInfo) -> str:
    if fn.owner:
        return fn.owner
    return fn.qualified_name.rsplit(".", 1)[0] if "." in fn.qualified_name else ""


def _narrow(targets: list[str], *predicates) -> list[str]:
    """Apply scope tiers in order; the first tier that matches anything wins."""
    for predicate in predicates:
        narrowed = [t for t in targets if predicate(t)]
        if narrowed:
            return narrowed
    return targets


def _build_call_edges(functions: list[tuple[str, FunctionInfo]],
                      max_targets: int = 5,
                      excluded_names: frozenset[str] = frozenset()) -> pd.DataFrame:
    """Resolve function calls by name matching with optional receiver hints.

    Calls can be bare names ("process") or qualified ("Receiver.method").
    Candidates are narrowed in tiers, stopping at the first tier that
    matches anything:

    0. receiver hint -- targets whose owner's short name is the receiver;
    1. same scope -- targets sharing the caller's owner or module;
    2. same file;
    3. everything with that name.

    Names in excluded_names are skipped (common stdlib methods).
    Names with more than max_targets remaining candidates are skipped as
    too ambiguous.
    """
    name_lookup: dict[str, list[str]] = defaultdict(list)
    records: dict[str, FunctionInfo] = {}
    for symbol_id, fn in functions:
        if symbol_id not in name_lookup[fn.name]:
            name_lookup[fn.name].append(symbol_id)
        records.setdefault(symbol_id, fn)

    def short_owner(symbol_id: str) -> str:
        return _scope_of(records[symbol_id]).rsplit(".", 1)[-1]

    edges = []
    seen = set()

    for caller_id, fn in functions:
        scope = _scope_of(fn)
        for called_name, line in fn.calls:
            if "." in called_name:
                receiver_hint, method_name = called_name.rsplit(".", 1)
            else:
                receiver_hint = None
                method_name = called_name

            if method_name in excluded_names:
                continue
            if method_name not in name_lookup:
                continue

            targets = _narrow(
                name_lookup[method_name],
                lambda t: receiver_hint is not None and short_owner(t) == receiver_hint,
                lambda t: _scope_of(records[t]) == scope,
                lambda t: records[t].file_path == fn.file_path,
            )

            if len(targets) > max_targets:
                continue

            for target_id in targets:
                if target_id != caller_id:
                    key = (caller_id, target_id)
                    if key not in seen:
                        seen.add(key)
                        edges.append({
                            "caller": caller_id,
                            "callee": target_id,
                            "line": line,
                        })

    if not edges:
        return pd.DataFrame(columns=["caller", "callee", "line"])
    return pd.DataFrame(edges)


def _resolve_instantiations(functions: list[tuple[str, FunctionInfo]],
                            table: SymbolTable, resolver: _Resolver) -> None:
    """A function ``uses`` the classes it constructs."""
    for symbol_id, fn in functions:
        scope = fn.owner or resolver.module_of.get(fn.file_path)
        for called_name, _line in fn.calls:
            name = called_name.rsplit(".", 1)[-1]
            if not name[:1].isupper():
                continue
            target = resolver.resolve_type(name, fn.file_path, scope)
            if target is not None and table.kind_of(target) == "class":
                table.symbols[symbol_id].add_relation("uses", target)


def _resolve_attribute_types(result: ParseResult, table: SymbolTable,
                             resolver: _Resolver) -> None:
    """A type ``uses`` the types of its attributes (generic arguments included)."""
    for attr in sorted(result.attributes,
                       key=lambda a: (a.file_path, a.line_number, a.name)):
        if not attr.type_annotation:
            continue
        owner = table.record(attr.file_path, attr.owner_qualified_name)
        if owner is None:
            continue
        for name in _IDENT_RE.findall(attr.type_annotation):
            target = resolver.resolve_type(name, attr.file_path,
                                           attr.owner_qualified_name)
            if target is not None and target != owner:
                table.symbols[owner].add_relation("uses", target)


# ── Entry point ───────────────────────────────────────────────────────


def build_dependencies(
    result: ParseResult,
    *,
    language: str,
    project: str,
    root_path: str,
    separator: str = ".",
    noise_names: frozenset[str] = frozenset(),
    max_call_targets: int = 5,
) -> LanguageDependencies:
    """Resolve a merged ParseResult into symbols with typed relations."""
    files = sorted(result.files, key=lambda f: f.path)
    test_files = {f.path for f in files if f.is_test}
    table = SymbolTable(root_path, language)

    file_module = _build_module_symbols(files, table, separator,
                                        group_by_package=(language == "java"))
    _build_type_symbols(result, table, test_files)
    functions = _build_function_symbols(result.functions, table, test_files)

    resolver = _Resolver(table, files)
    _resolve_defines(table, file_module, functions)
    _resolve_imports(files, table, resolver, file_module, language)
    _resolve_type_relationships(result, table, resolver)

    call_edges = _build_call_edges(functions, max_call_targets, noise_names)
    for caller, callee in call_edges[["caller", "callee"]].itertuples(index=False):
        table.symbols[caller].add_relation("calls", callee)
    _resolve_instantiations(functions, table, resolver)
    _resolve_attribute_types(result, table, resolver)

    logger.debug("Resolved %d symbols (%d call edges) for %s",
                 len(table.symbols), len(call_edges), project)
    return LanguageDependencies(
        language=language,
        project=project,
        root_path=root_path,
        symbols=list(table.symbols.values()),
        diagnostics=sorted(result.diagnostics, key=lambda d: (d.path, d.line or 0)),
    )
