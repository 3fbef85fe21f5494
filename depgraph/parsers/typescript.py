"""TypeScript and JavaScript parsers using tree-sitter."""

import posixpath
from functools import cache
from pathlib import Path

from tree_sitter import Language as Grammar

from ..detect import Language
from .base import LanguageParser, node_text, count_lines, strip_doc_comment
from .models import (
    ParseResult, FileInfo, FunctionInfo, ClassInfo,
    EnumInfo, InterfaceInfo, TypeRelationship, AttributeInfo, ImportInfo,
)


@cache
def _get_ts_language():
    import tree_sitter_typescript as ts_typescript
    return Grammar(ts_typescript.language_typescript())


@cache
def _get_tsx_language():
    import tree_sitter_typescript as ts_typescript
    return Grammar(ts_typescript.language_tsx())


@cache
def _get_js_language():
    import tree_sitter_javascript as ts_javascript
    return Grammar(ts_javascript.language())


JS_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs")
TS_EXTENSIONS = (".ts", ".tsx", ".mts")
_MODULE_SUFFIXES = TS_EXTENSIONS + JS_EXTENSIONS

_TEST_SUFFIXES = tuple(
    f".{kind}{ext}" for kind in ("test", "spec") for ext in _MODULE_SUFFIXES
)

JSTS_NOISE_NAMES: frozenset[str] = frozenset({
    # Array methods
    "push", "pop", "shift", "unshift", "map", "filter", "reduce",
    "forEach", "find", "findIndex", "some", "every", "includes",
    "indexOf", "slice", "splice", "concat", "join", "flat", "flatMap",
    "sort", "reverse",
    # Object methods
    "keys", "values", "entries", "assign", "freeze",
    "hasOwnProperty", "toString", "valueOf",
    # String methods
    "trim", "split", "replace", "match", "test", "search",
    "startsWith", "endsWith", "substring", "toLowerCase", "toUpperCase",
    # Promise methods
    "then", "catch", "finally", "resolve", "reject",
    # Console methods
    "log", "warn", "error", "info", "debug",
    # DOM / common
    "addEventListener", "removeEventListener", "querySelector",
    "getElementById", "createElement", "require",
})

_CLASS_NODES = ("class_declaration", "abstract_class_declaration", "class")
_FUNCTION_NODES = ("function_declaration", "generator_function_declaration",
                   "function", "function_expression")


class _BaseJSTSParser(LanguageParser):
    """Shared logic for TypeScript and JavaScript parsing."""

    @property
    def noise_names(self) -> frozenset[str]:
        return JSTS_NOISE_NAMES

    @property
    def module_separator(self) -> str:
        return "/"

    # ── Helpers ─────────────────────────────────────────────────────────

    def _get_name(self, node, source: bytes) -> str:
        """Get the declared name, falling back to the first identifier-like child."""
        name = node.child_by_field_name("name")
        if name is not None:
            return node_text(name, source)
        for child in node.children:
            if child.type in ("identifier", "type_identifier",
                              "property_identifier"):
                return node_text(child, source)
        return "unknown"

    def _get_visibility(self, node, source: bytes) -> str:
        """Determine visibility: 'export' if exported, else 'private'."""
        parent = node.parent
        if parent is not None and parent.type == "export_statement":
            return "export"
        for child in node.children:
            if child.type == "accessibility_modifier":
                text = node_text(child, source)
                if text in ("private", "protected"):
                    return text
                return "public"
        if node.type in ("method_definition", "method_signature"):
            if self._get_name(node, source).startswith("#"):
                return "private"
            return "public"
        return "private"

    def _get_body(self, node):
        body = node.child_by_field_name("body")
        if body is not None:
            return body
        for child in node.children:
            if child.type in ("statement_block", "class_body"):
                return child
        return None

    def _get_docstring(self, node, source: bytes) -> str | None:
        """Extract JSDoc comment before a node (or before its export)."""
        target = node
        if node.parent is not None and node.parent.type == "export_statement":
            target = node.parent
        sibling = target.prev_named_sibling
        if sibling is not None and sibling.type == "comment":
            return strip_doc_comment(node_text(sibling, source))
        return None

    def _type_name(self, node, source: bytes) -> str | None:
        """Reduce a heritage entry to a name: Base<T> -> Base, ns.Base -> ns.Base."""
        if node.type in ("identifier", "type_identifier", "member_expression",
                         "nested_type_identifier"):
            return node_text(node, source)
        if node.type == "generic_type":
            for inner in node.children:
                name = self._type_name(inner, source)
                if name:
                    return name
        return None

    def _heritage_clauses(self, node):
        for child in node.children:
            if child.type == "class_heritage":
                clauses = [c for c in child.children
                           if c.type in ("extends_clause", "implements_clause")]
                if clauses:
                    yield from clauses
                else:
                    # JavaScript grammar: class_heritage holds the expression
                    yield child
            elif child.type in ("extends_clause", "implements_clause",
                                "extends_type_clause"):
                yield child

    def _get_heritage(self, node, source: bytes) -> tuple[list[str], list[str]]:
        """Extract extends and implements from a class/interface declaration.

        Returns (extends_list, implements_list)
        """
        extends: list[str] = []
        implements: list[str] = []
        for clause in self._heritage_clauses(node):
            target = implements if clause.type == "implements_clause" else extends
            for sub in clause.named_children:
                name = self._type_name(sub, source)
                if name:
                    target.append(name)
        return extends, implements

    def _get_signature(self, node, source: bytes) -> str:
        """Extract function/method signature (everything before the body)."""
        parts = []
        for child in node.children:
            if child.type in ("statement_block", "class_body", "=>"):
                break
            parts.append(node_text(child, source))
        return " ".join(parts)

    def _annotation_text(self, node, source: bytes) -> str:
        text = node_text(node, source)
        if text.startswith(":"):
            text = text[1:].strip()
        return text

    def _get_return_type(self, node, source: bytes) -> str | None:
        """Extract return type annotation from a function."""
        ret = node.child_by_field_name("return_type")
        if ret is not None:
            return self._annotation_text(ret, source)
        return None

    def _is_async(self, node, source: bytes) -> bool:
        for child in node.children:
            if child.is_named:
                continue
            text = node_text(child, source)
            if text == "async":
                return True
            if text in ("function", "("):
                break
        return False

    def _extract_calls(self, body_node, source: bytes) -> list[tuple[str, int]]:
        """Recursively extract function/method names called within a block.

        Emits qualified calls where possible: "receiver.method" for
        member expressions, bare names for this/super and plain calls.
        Returns list of (call_name, line_number) tuples.
        """
        calls: list[tuple[str, int]] = []
        stack = [body_node]
        while stack:
            node = stack.pop()
            if node.type == "call_expression":
                line = node.start_point[0] + 1
                func = node.child_by_field_name("function")
                if func is not None and func.type == "identifier":
                    calls.append((node_text(func, source), line))
                elif func is not None and func.type == "member_expression":
                    prop = func.child_by_field_name("property")
                    obj = func.child_by_field_name("object")
                    if prop is not None and obj is not None:
                        prop_name = node_text(prop, source)
                        hint = node_text(obj, source).rsplit(".", 1)[-1]
                        if hint in ("this", "super", "window",
                                    "document", "console") or "(" in hint:
                            calls.append((prop_name, line))
                        else:
                            calls.append((f"{hint}.{prop_name}", line))
                    elif prop is not None:
                        calls.append((node_text(prop, source), line))
            elif node.type == "new_expression":
                ctor = node.child_by_field_name("constructor")
                if ctor is not None and ctor.type in ("identifier", "member_expression"):
                    calls.append((node_text(ctor, source).rsplit(".", 1)[-1],
                                  node.start_point[0] + 1))
            stack.extend(reversed(node.children))
        return calls

    def _strip_module_suffix(self, path: str) -> str:
        for ext in _MODULE_SUFFIXES:
            if path.endswith(ext):
                path = path[:-len(ext)]
                break
        # index files represent the directory
        if path == "index":
            return ""
        if path.endswith("/index"):
            path = path[:-len("/index")]
        return path

    def _file_to_module_path(self, filepath: Path, src_root: Path) -> str:
        module = self._strip_module_suffix(filepath.relative_to(src_root).as_posix())
        return module or src_root.name

    def _resolve_specifier(self, specifier: str, filepath: Path,
                           src_root: Path) -> str:
        """Turn a relative import specifier into a module path under src_root.

        Bare package specifiers are returned unchanged.
        """
        if not specifier.startswith("."):
            return specifier
        base = filepath.parent.relative_to(src_root).as_posix()
        joined = posixpath.normpath(posixpath.join(base, specifier))
        if joined == ".." or joined.startswith("../"):
            return specifier
        if joined == ".":
            return src_root.name
        return self._strip_module_suffix(joined) or src_root.name

    def _get_decorators(self, node, source: bytes) -> list[str]:
        """Collect decorators: children of the node, or preceding siblings."""
        decorators = []
        for child in node.children:
            if child.type == "decorator":
                decorators.append(node_text(child, source).lstrip("@").strip())
        sibling = node.prev_named_sibling
        while sibling is not None and sibling.type in ("decorator", "comment"):
            if sibling.type == "decorator":
                decorators.insert(0, node_text(sibling, source).lstrip("@").strip())
            sibling = sibling.prev_named_sibling
        return decorators

    def _extract_class_fields(self, body, source: bytes, rel_path: str,
                              owner: str, result: ParseResult):
        """Extract class field/property declarations as AttributeInfo."""
        for child in body.children:
            if child.type not in ("public_field_definition",
                                  "property_declaration",
                                  "field_definition"):
                continue
            name_node = child.child_by_field_name("name") or child.child_by_field_name("property")
            if name_node is None:
                continue
            type_node = child.child_by_field_name("type")
            type_ann = self._annotation_text(type_node, source) if type_node is not None else None
            value = child.child_by_field_name("value")
            if type_ann is None and value is not None and value.type == "new_expression":
                ctor = value.child_by_field_name("constructor")
                if ctor is not None:
                    type_ann = node_text(ctor, source)
            visibility = "public"
            for sub in child.children:
                if sub.type == "accessibility_modifier":
                    visibility = node_text(sub, source)
            name = node_text(name_node, source)
            result.attributes.append(AttributeInfo(
                name=name,
                qualified_name=f"{owner}.{name}",
                owner_qualified_name=owner,
                type_annotation=type_ann,
                visibility=visibility,
                file_path=rel_path,
                line_number=child.start_point[0] + 1,
            ))

    def _extract_parameter_properties(self, method, source: bytes,
                                      rel_path: str, owner: str,
                                      result: ParseResult):
        """constructor(private repo: Repo) declares a field too."""
        params = method.child_by_field_name("parameters")
        if params is None:
            return
        for param in params.named_children:
            if param.type not in ("required_parameter", "optional_parameter"):
                continue
            modifier = None
            for sub in param.children:
                if sub.type in ("accessibility_modifier", "readonly"):
                    modifier = node_text(sub, source)
            pattern = param.child_by_field_name("pattern")
            if modifier is None or pattern is None:
                continue
            type_node = param.child_by_field_name("type")
            name = node_text(pattern, source)
            result.attributes.append(AttributeInfo(
                name=name,
                qualified_name=f"{owner}.{name}",
                owner_qualified_name=owner,
                type_annotation=(self._annotation_text(type_node, source)
                                 if type_node is not None else None),
                visibility=modifier if modifier != "readonly" else "public",
                file_path=rel_path,
                line_number=param.start_point[0] + 1,
            ))

    def _get_enum_members(self, node, source: bytes) -> list[str]:
        """Extract member names from an enum body."""
        members = []
        body = self._get_body(node)
        if body is not None:
            for child in body.named_children:
                if child.type == "enum_assignment":
                    name = child.child_by_field_name("name")
                    members.append(node_text(name or child, source))
                elif child.type in ("property_identifier", "identifier"):
                    members.append(node_text(child, source))
        return members

    # ── Parsing ─────────────────────────────────────────────────────────

    def _parse_function(self, node, source: bytes, name: str, prefix: str,
                        rel_path: str, owner: str | None = None,
                        visibility_node=None) -> FunctionInfo:
        body = self._get_body(node)
        metadata: dict = {}
        for child in node.children:
            if not child.is_named and node_text(child, source) == "static":
                metadata["is_static"] = True
                break
        if owner is not None and name == "constructor":
            metadata["is_constructor"] = True
        if node.type == "arrow_function":
            metadata["is_arrow"] = True

        return FunctionInfo(
            name=name,
            qualified_name=f"{prefix}.{name}",
            visibility=self._get_visibility(visibility_node or node, source),
            is_async=self._is_async(node, source),
            is_method=owner is not None,
            signature=self._get_signature(node, source),
            file_path=rel_path,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._get_docstring(visibility_node or node, source),
            return_type=self._get_return_type(node, source),
            owner=owner,
            decorators=self._get_decorators(node, source),
            calls=self._extract_calls(body, source) if body is not None else [],
            metadata=metadata,
        )

    def _parse_class(self, node, source: bytes, module_path: str,
                     rel_path: str, result: ParseResult):
        """Parse a class declaration node."""
        name = self._get_name(node, source)
        qualified_name = f"{module_path}.{name}"
        extends, implements = self._get_heritage(node, source)
        decorators = self._get_decorators(node, source)

        metadata: dict = {}
        if decorators:
            metadata["decorators"] = decorators
        if node.type == "abstract_class_declaration":
            metadata["is_abstract"] = True

        result.classes.append(ClassInfo(
            name=name,
            qualified_name=qualified_name,
            kind="class",
            visibility=self._get_visibility(node, source),
            file_path=rel_path,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._get_docstring(node, source),
            bases=extends,
            metadata=metadata,
        ))

        for base in extends:
            result.type_relationships.append(TypeRelationship(
                source_type=qualified_name,
                target_type=base,
                relationship="extends",
                file_path=rel_path,
            ))
        for iface in implements:
            result.type_relationships.append(TypeRelationship(
                source_type=qualified_name,
                target_type=iface,
                relationship="implements",
                file_path=rel_path,
            ))

        body = self._get_body(node)
        if body is None:
            return
        self._extract_class_fields(body, source, rel_path, qualified_name, result)
        for child in body.children:
            if child.type in ("method_definition", "abstract_method_signature"):
                method_name = self._get_name(child, source)
                result.functions.append(self._parse_function(
                    child, source, method_name, qualified_name, rel_path,
                    owner=qualified_name,
                ))
                if method_name == "constructor":
                    self._extract_parameter_properties(
                        child, source, rel_path, qualified_name, result)

    def _parse_interface(self, node, source: bytes, module_path: str,
                         rel_path: str, result: ParseResult):
        """Parse an interface_declaration node (TypeScript only)."""
        name = self._get_name(node, source)
        qualified_name = f"{module_path}.{name}"
        extends, _ = self._get_heritage(node, source)

        result.interfaces.append(InterfaceInfo(
            name=name,
            qualified_name=qualified_name,
            kind="interface",
            visibility=self._get_visibility(node, source),
            file_path=rel_path,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._get_docstring(node, source),
        ))

        # Interface extends edges (interface extending another interface)
        for base in extends:
            result.type_relationships.append(TypeRelationship(
                source_type=qualified_name,
                target_type=base,
                relationship="extends",
                file_path=rel_path,
            ))

        body = self._get_body(node)
        if body is None:
            return
        for item in body.children:
            if item.type == "method_signature":
                result.functions.append(self._parse_function(
                    item, source, self._get_name(item, source),
                    qualified_name, rel_path, owner=qualified_name,
                ))
            elif item.type == "property_signature":
                prop = item.child_by_field_name("name")
                type_node = item.child_by_field_name("type")
                if prop is None:
                    continue
                prop_name = node_text(prop, source)
                result.attributes.append(AttributeInfo(
                    name=prop_name,
                    qualified_name=f"{qualified_name}.{prop_name}",
                    owner_qualified_name=qualified_name,
                    type_annotation=(self._annotation_text(type_node, source)
                                     if type_node is not None else None),
                    visibility="public",
                    file_path=rel_path,
                    line_number=item.start_point[0] + 1,
                ))

    def _parse_enum(self, node, source: bytes, module_path: str,
                    rel_path: str, result: ParseResult):
        """Parse an enum_declaration node."""
        name = self._get_name(node, source)
        result.enums.append(EnumInfo(
            name=name,
            qualified_name=f"{module_path}.{name}",
            visibility=self._get_visibility(node, source),
            file_path=rel_path,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._get_docstring(node, source),
            variants=self._get_enum_members(node, source),
        ))

    def _parse_variables(self, node, source: bytes, module_path: str,
                         rel_path: str, result: ParseResult,
                         file_info: FileInfo, exported: bool):
        """const foo = () => {} / const Foo = class {} at module level."""
        for child in node.named_children:
            if child.type != "variable_declarator":
                continue
            name_node = child.child_by_field_name("name")
            value = child.child_by_field_name("value")
            if name_node is None or name_node.type != "identifier":
                continue
            name = node_text(name_node, source)
            if exported:
                file_info.exports.append(name)
            if value is None:
                continue
            if value.type in ("arrow_function", "function", "function_expression"):
                result.functions.append(self._parse_function(
                    value, source, name, module_path, rel_path,
                    visibility_node=node,
                ))

    def _parse_import(self, node, source: bytes, filepath: Path,
                      src_root: Path) -> ImportInfo | None:
        """import x, { a, b } from './y'  /  export { a } from './y'"""
        source_node = node.child_by_field_name("source")
        if source_node is None:
            return None
        specifier = node_text(source_node, source).strip("'\"`")
        names: list[str] = []
        stack = list(node.named_children)
        while stack:
            current = stack.pop(0)
            if current.type in ("import_specifier", "export_specifier"):
                name = current.child_by_field_name("name")
                if name is not None:
                    names.append(node_text(name, source))
            elif current.type in ("import_clause", "named_imports", "export_clause"):
                stack.extend(current.named_children)
        if node.type == "export_statement" and not names and any(
                not c.is_named and node_text(c, source) == "*" for c in node.children):
            names = ["*"]
        return ImportInfo(
            module=self._resolve_specifier(specifier, filepath, src_root),
            names=names,
            line=node.start_point[0] + 1,
        )

    def _find_requires(self, root, source: bytes, filepath: Path,
                       src_root: Path) -> list[ImportInfo]:
        """CommonJS ``require('x')`` calls anywhere in the file."""
        imports: list[ImportInfo] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "call_expression":
                func = node.child_by_field_name("function")
                args = node.child_by_field_name("arguments")
                if (func is not None and func.type == "identifier"
                        and node_text(func, source) == "require"
                        and args is not None and args.named_child_count == 1
                        and args.named_children[0].type == "string"):
                    specifier = node_text(args.named_children[0], source).strip("'\"`")
                    imports.append(ImportInfo(
                        module=self._resolve_specifier(specifier, filepath, src_root),
                        line=node.start_point[0] + 1,
                    ))
            stack.extend(reversed(node.children))
        return imports

    def _parse_top_level(self, node, source: bytes, module_path: str,
                         rel_path: str, result: ParseResult,
                         file_info: FileInfo, exported: bool = False):
        """Parse a top-level AST node."""
        if node.type in _FUNCTION_NODES:
            name = self._get_name(node, source)
            result.functions.append(self._parse_function(
                node, source, name, module_path, rel_path))
            if exported:
                file_info.exports.append(name)
        elif node.type in _CLASS_NODES:
            self._parse_class(node, source, module_path, rel_path, result)
            if exported:
                file_info.exports.append(self._get_name(node, source))
        elif node.type == "interface_declaration":
            self._parse_interface(node, source, module_path, rel_path, result)
            if exported:
                file_info.exports.append(self._get_name(node, source))
        elif node.type == "enum_declaration":
            self._parse_enum(node, source, module_path, rel_path, result)
            if exported:
                file_info.exports.append(self._get_name(node, source))
        elif node.type in ("lexical_declaration", "variable_declaration"):
            self._parse_variables(node, source, module_path, rel_path,
                                  result, file_info, exported)
        elif node.type == "export_statement":
            declaration = node.child_by_field_name("declaration")
            if declaration is None:
                for child in node.named_children:
                    if child.type in _CLASS_NODES + _FUNCTION_NODES:
                        declaration = child
                        break
            if declaration is not None:
                self._parse_top_level(declaration, source, module_path,
                                      rel_path, result, file_info, exported=True)
            for child in node.named_children:
                if child.type == "export_clause":
                    for sub in child.named_children:
                        if sub.type == "export_specifier":
                            alias = sub.child_by_field_name("alias")
                            name = sub.child_by_field_name("name")
                            target = alias or name
                            if target is not None:
                                file_info.exports.append(node_text(target, source))

    def _is_test_file(self, filepath: Path, rel_path: str) -> bool:
        return (filepath.name.endswith(_TEST_SUFFIXES)
                or "/__tests__/" in f"/{rel_path}")

    def parse_file(self, filepath: Path, src_root: Path,
                   project_root: Path | None = None) -> ParseResult:
        source = filepath.read_bytes()
        rel_path = filepath.relative_to(project_root or src_root).as_posix()
        root = self._parse_tree(filepath, source, rel_path)
        module_path = self._file_to_module_path(filepath, src_root)

        file_info = FileInfo(
            path=rel_path,
            filename=filepath.name,
            loc=count_lines(source),
            module_path=module_path,
            language=self.language_name,
            is_test=self._is_test_file(filepath, rel_path),
        )

        result = ParseResult()
        result.files.append(file_info)

        for child in root.children:
            if child.type == "import_statement" or (
                    child.type == "export_statement"
                    and child.child_by_field_name("source") is not None):
                imp = self._parse_import(child, source, filepath, src_root)
                if imp is not None:
                    file_info.imports.append(imp)
                continue
            self._parse_top_level(child, source, module_path, rel_path,
                                  result, file_info)

        file_info.imports.extend(self._find_requires(root, source, filepath, src_root))
        return result


class TypeScriptParser(_BaseJSTSParser):
    """Parses .ts/.tsx/.mts, plus any plain JavaScript the project carries."""

    @property
    def language(self) -> Language:
        return Language.TYPESCRIPT

    @property
    def file_extensions(self) -> list[str]:
        return list(TS_EXTENSIONS + JS_EXTENSIONS)

    def _grammar_for(self, filepath: Path):
        suffix = filepath.suffix
        if suffix == ".tsx":
            return _get_tsx_language()
        if suffix in JS_EXTENSIONS:
            return _get_js_language()
        return _get_ts_language()


class JavaScriptParser(_BaseJSTSParser):

    @property
    def language(self) -> Language:
        return Language.JAVASCRIPT

    @property
    def file_extensions(self) -> list[str]:
        return list(JS_EXTENSIONS)

    def _grammar_for(self, filepath: Path):
        return _get_js_language()
