"""Java language parser using tree-sitter-java."""

from pathlib import Path

import tree_sitter_java as ts_java
from tree_sitter import Language as Grammar

from ..detect import Language
from .base import LanguageParser, node_text, count_lines, strip_doc_comment
from .models import (
    ParseResult, FileInfo, FunctionInfo, ClassInfo,
    EnumInfo, InterfaceInfo, TypeRelationship, AttributeInfo, ImportInfo,
)

JAVA_LANGUAGE = Grammar(ts_java.language())

JAVA_NOISE_NAMES: frozenset[str] = frozenset({
    # Object methods
    "toString", "equals", "hashCode", "compareTo", "getClass",
    "notify", "notifyAll", "wait", "clone", "finalize",
    # Collection methods
    "length", "size", "get", "set", "add", "remove", "contains",
    "isEmpty", "put", "keySet", "values", "entrySet",
    "iterator", "next", "hasNext", "clear",
    # Stream API
    "stream", "map", "filter", "collect", "forEach", "reduce",
    "flatMap", "sorted", "distinct", "limit",
    # I/O
    "println", "printf", "print", "format",
    "read", "write", "close", "flush",
})

_TYPE_NODES = frozenset({
    "type_identifier", "generic_type", "array_type", "scoped_type_identifier",
    "integral_type", "floating_point_type", "boolean_type", "void_type",
})

_TYPE_DECLARATIONS = frozenset({
    "class_declaration", "interface_declaration", "enum_declaration",
    "record_declaration", "annotation_type_declaration",
})


class JavaParser(LanguageParser):

    @property
    def language(self) -> Language:
        return Language.JAVA

    @property
    def file_extensions(self) -> list[str]:
        return [".java"]

    @property
    def noise_names(self) -> frozenset[str]:
        return JAVA_NOISE_NAMES

    def _grammar_for(self, filepath: Path):
        return JAVA_LANGUAGE

    # ── Helpers ─────────────────────────────────────────────────────────

    def _modifiers(self, node):
        for child in node.children:
            if child.type == "modifiers":
                return child
        return None

    def _get_visibility(self, node, source: bytes) -> str:
        """Extract visibility from modifiers node."""
        mods = self._modifiers(node)
        if mods is None:
            return "package-private"
        words = {node_text(sub, source) for sub in mods.children}
        for visibility in ("public", "protected", "private"):
            if visibility in words:
                return visibility
        return "package-private"

    def _has_modifier(self, node, source: bytes, modifier: str) -> bool:
        """Check if a node has a specific modifier (static, abstract, final, etc.)."""
        mods = self._modifiers(node)
        if mods is None:
            return False
        return any(node_text(sub, source) == modifier for sub in mods.children)

    def _get_annotations(self, node, source: bytes) -> list[str]:
        """Extract annotation names from the modifiers node."""
        annotations: list[str] = []
        mods = self._modifiers(node)
        if mods is None:
            return annotations
        for sub in mods.children:
            if sub.type in ("annotation", "marker_annotation"):
                text = node_text(sub, source)
                annotations.append(text[1:] if text.startswith("@") else text)
        return annotations

    def _get_doc_comment(self, node, source: bytes) -> str | None:
        """Extract Javadoc comment (/** ... */) before a node."""
        sibling = node.prev_named_sibling
        if sibling is not None and sibling.type in ("comment", "block_comment"):
            return strip_doc_comment(node_text(sibling, source))
        return None

    def _get_name(self, node, source: bytes) -> str:
        name = node.child_by_field_name("name")
        return node_text(name, source) if name is not None else "unknown"

    def _get_signature(self, node, source: bytes) -> str:
        """Extract method signature (everything before the body)."""
        parts = []
        for child in node.children:
            if child.type in ("block", "constructor_body", ";"):
                break
            if child.type == "modifiers":
                continue
            parts.append(node_text(child, source))
        return " ".join(parts)

    def _get_return_type(self, node, source: bytes) -> str | None:
        ret = node.child_by_field_name("type")
        return node_text(ret, source) if ret is not None else None

    def _type_name(self, node, source: bytes) -> str | None:
        """Reduce a type node to its raw name: List<Foo> -> List, a.b.C -> a.b.C."""
        if node.type == "generic_type":
            for inner in node.children:
                if inner.type in ("type_identifier", "scoped_type_identifier"):
                    return node_text(inner, source)
            return None
        if node.type == "array_type":
            element = node.child_by_field_name("element")
            return self._type_name(element, source) if element is not None else None
        if node.type in ("type_identifier", "scoped_type_identifier"):
            return node_text(node, source)
        return None

    def _type_arguments(self, node, source: bytes) -> list[str]:
        """Collect referenced type names, including generic arguments."""
        names: list[str] = []
        stack = [node]
        while stack:
            current = stack.pop()
            if current.type in ("type_identifier", "scoped_type_identifier"):
                names.append(node_text(current, source))
                continue
            stack.extend(reversed(current.children))
        return names

    def _extract_calls(self, body_node, source: bytes) -> list[tuple[str, int]]:
        """Recursively extract function/method names called within a block.

        Emits qualified calls where possible: "receiver.method" for
        method invocations on objects, bare names for this/super calls.
        ``new Foo()`` is reported as ``"Foo"``.
        """
        calls: list[tuple[str, int]] = []
        stack = [body_node]
        while stack:
            node = stack.pop()
            if node.type == "method_invocation":
                line = node.start_point[0] + 1
                name = node.child_by_field_name("name")
                obj = node.child_by_field_name("object")
                if name is not None and obj is not None:
                    method_name = node_text(name, source)
                    hint = node_text(obj, source).rsplit(".", 1)[-1]
                    if hint in ("this", "super") or "(" in hint:
                        calls.append((method_name, line))
                    else:
                        calls.append((f"{hint}.{method_name}", line))
                elif name is not None:
                    calls.append((node_text(name, source), line))
            elif node.type == "object_creation_expression":
                type_node = node.child_by_field_name("type")
                if type_node is not None:
                    type_name = self._type_name(type_node, source)
                    if type_name:
                        calls.append((type_name, node.start_point[0] + 1))
            stack.extend(reversed(node.children))
        return calls

    def _get_package(self, root, source: bytes) -> str:
        """Extract package name from package_declaration."""
        for child in root.children:
            if child.type == "package_declaration":
                for sub in child.children:
                    if sub.type in ("scoped_identifier", "identifier"):
                        return node_text(sub, source)
        return ""

    def _file_to_module_path(self, filepath: Path, src_root: Path,
                             package: str) -> str:
        if package:
            return package
        # Default package: fall back to the directory structure
        rel = filepath.relative_to(src_root)
        parts = list(rel.parent.parts)
        return ".".join(parts)

    def _get_superclass(self, node, source: bytes) -> str | None:
        """Extract extends clause from class."""
        superclass = node.child_by_field_name("superclass")
        if superclass is None:
            return None
        for sub in superclass.children:
            name = self._type_name(sub, source)
            if name:
                return name
        return None

    def _get_interfaces(self, node, source: bytes) -> list[str]:
        """Extract implements (class) or extends (interface) type lists."""
        interfaces: list[str] = []
        for child in node.children:
            if child.type in ("super_interfaces", "extends_interfaces"):
                for sub in child.children:
                    if sub.type == "type_list":
                        for t in sub.children:
                            name = self._type_name(t, source)
                            if name:
                                interfaces.append(name)
        return interfaces

    def _get_enum_constants(self, node, source: bytes) -> list[str]:
        """Extract enum constant names."""
        constants: list[str] = []
        body = node.child_by_field_name("body")
        if body is None:
            return constants
        for sub in body.children:
            if sub.type == "enum_constant":
                constants.append(self._get_name(sub, source))
        return constants

    # ── Parsing ─────────────────────────────────────────────────────────

    def _parse_method(self, node, source: bytes, rel_path: str,
                      owner: str) -> FunctionInfo:
        name = self._get_name(node, source)
        body = node.child_by_field_name("body")

        metadata: dict = {}
        if node.type == "constructor_declaration":
            metadata["is_constructor"] = True
        if self._has_modifier(node, source, "static"):
            metadata["is_static"] = True
        if self._has_modifier(node, source, "abstract"):
            metadata["is_abstract"] = True

        return FunctionInfo(
            name=name,
            qualified_name=f"{owner}.{name}",
            visibility=self._get_visibility(node, source),
            is_async=False,
            is_method=True,
            signature=self._get_signature(node, source),
            file_path=rel_path,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._get_doc_comment(node, source),
            return_type=self._get_return_type(node, source),
            owner=owner,
            decorators=self._get_annotations(node, source),
            calls=self._extract_calls(body, source) if body is not None else [],
            metadata=metadata,
        )

    def _parse_type(self, node, source: bytes, prefix: str, rel_path: str,
                    result: ParseResult):
        """Dispatch a type declaration (handles nesting)."""
        if node.type in ("class_declaration", "record_declaration"):
            self._parse_class(node, source, prefix, rel_path, result)
        elif node.type in ("interface_declaration", "annotation_type_declaration"):
            self._parse_interface(node, source, prefix, rel_path, result)
        elif node.type == "enum_declaration":
            self._parse_enum(node, source, prefix, rel_path, result)

    def _parse_class(self, node, source: bytes, prefix: str, rel_path: str,
                     result: ParseResult):
        """Parse a class_declaration node (handles nested classes)."""
        name = self._get_name(node, source)
        qualified_name = f"{prefix}.{name}" if prefix else name

        superclass = self._get_superclass(node, source)
        interfaces = self._get_interfaces(node, source)
        annotations = self._get_annotations(node, source)

        metadata: dict = {}
        if annotations:
            metadata["decorators"] = annotations
        if self._has_modifier(node, source, "abstract"):
            metadata["is_abstract"] = True
        if node.type == "record_declaration":
            metadata["is_record"] = True

        result.classes.append(ClassInfo(
            name=name,
            qualified_name=qualified_name,
            kind="class",
            visibility=self._get_visibility(node, source),
            file_path=rel_path,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._get_doc_comment(node, source),
            bases=[superclass] if superclass else [],
            metadata=metadata,
        ))

        if superclass:
            result.type_relationships.append(TypeRelationship(
                source_type=qualified_name,
                target_type=superclass,
                relationship="extends",
                file_path=rel_path,
            ))
        for iface in interfaces:
            result.type_relationships.append(TypeRelationship(
                source_type=qualified_name,
                target_type=iface,
                relationship="implements",
                file_path=rel_path,
            ))

        self._parse_body(node.child_by_field_name("body"), source,
                         qualified_name, rel_path, result)

    def _parse_body(self, body, source: bytes, owner: str, rel_path: str,
                    result: ParseResult):
        """Parse methods, fields, and nested types from a class-like body."""
        if body is None:
            return
        for item in body.children:
            if item.type in ("method_declaration", "constructor_declaration"):
                result.functions.append(
                    self._parse_method(item, source, rel_path, owner))
            elif item.type == "field_declaration":
                self._parse_field(item, source, owner, rel_path, result)
            elif item.type in _TYPE_DECLARATIONS:
                self._parse_type(item, source, owner, rel_path, result)
            elif item.type == "enum_body_declarations":
                self._parse_body(item, source, owner, rel_path, result)

    def _parse_field(self, node, source: bytes, owner: str, rel_path: str,
                     result: ParseResult):
        """Parse a field_declaration into AttributeInfo records."""
        type_node = node.child_by_field_name("type")
        type_names = self._type_arguments(type_node, source) if type_node is not None else []
        visibility = self._get_visibility(node, source)
        for declarator in node.children_by_field_name("declarator"):
            name = self._get_name(declarator, source)
            for type_name in type_names or [None]:
                result.attributes.append(AttributeInfo(
                    name=name,
                    qualified_name=f"{owner}.{name}",
                    owner_qualified_name=owner,
                    type_annotation=type_name,
                    visibility=visibility,
                    file_path=rel_path,
                    line_number=node.start_point[0] + 1,
                ))

    def _parse_interface(self, node, source: bytes, prefix: str,
                         rel_path: str, result: ParseResult):
        """Parse an interface_declaration node."""
        name = self._get_name(node, source)
        qualified_name = f"{prefix}.{name}" if prefix else name

        result.interfaces.append(InterfaceInfo(
            name=name,
            qualified_name=qualified_name,
            kind="interface",
            visibility=self._get_visibility(node, source),
            file_path=rel_path,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._get_doc_comment(node, source),
        ))

        # Interface extends edges
        for base in self._get_interfaces(node, source):
            result.type_relationships.append(TypeRelationship(
                source_type=qualified_name,
                target_type=base,
                relationship="extends",
                file_path=rel_path,
            ))

        self._parse_body(node.child_by_field_name("body"), source,
                         qualified_name, rel_path, result)

    def _parse_enum(self, node, source: bytes, prefix: str, rel_path: str,
                    result: ParseResult):
        """Parse an enum_declaration node."""
        name = self._get_name(node, source)
        qualified_name = f"{prefix}.{name}" if prefix else name

        result.enums.append(EnumInfo(
            name=name,
            qualified_name=qualified_name,
            visibility=self._get_visibility(node, source),
            file_path=rel_path,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._get_doc_comment(node, source),
            variants=self._get_enum_constants(node, source),
        ))
        for iface in self._get_interfaces(node, source):
            result.type_relationships.append(TypeRelationship(
                source_type=qualified_name,
                target_type=iface,
                relationship="implements",
                file_path=rel_path,
            ))
        self._parse_body(node.child_by_field_name("body"), source,
                         qualified_name, rel_path, result)

    def _parse_import(self, node, source: bytes) -> ImportInfo | None:
        """import a.b.C; / import a.b.*; / import static a.b.C.m;"""
        text = node_text(node, source)
        is_static = " static " in f" {text} "
        for sub in node.children:
            if sub.type in ("scoped_identifier", "identifier"):
                path = node_text(sub, source)
                wildcard = any(c.type == "asterisk" for c in node.children)
                if is_static and not wildcard and "." in path:
                    # static member import: depend on the declaring type
                    path = path.rsplit(".", 1)[0]
                return ImportInfo(
                    module=path,
                    names=["*"] if wildcard else [],
                    line=node.start_point[0] + 1,
                )
        return None

    def parse_file(self, filepath: Path, src_root: Path,
                   project_root: Path | None = None) -> ParseResult:
        source = filepath.read_bytes()
        rel_path = filepath.relative_to(project_root or src_root).as_posix()
        root = self._parse_tree(filepath, source, rel_path)

        package = self._get_package(root, source)
        module_path = self._file_to_module_path(filepath, src_root, package)

        file_info = FileInfo(
            path=rel_path,
            filename=filepath.name,
            loc=count_lines(source),
            module_path=module_path,
            language="java",
        )
        stem = filepath.stem
        if (stem.endswith("Test") or stem.endswith("Tests")
                or "/src/test/" in f"/{rel_path}"):
            file_info.is_test = True

        result = ParseResult()
        result.files.append(file_info)

        for child in root.children:
            if child.type in _TYPE_DECLARATIONS:
                self._parse_type(child, source, module_path, rel_path, result)
            elif child.type == "import_declaration":
                imp = self._parse_import(child, source)
                if imp is not None:
                    file_info.imports.append(imp)

        return result
