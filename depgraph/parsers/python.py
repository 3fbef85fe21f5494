"""Python language parser using tree-sitter-python."""

from pathlib import Path

import tree_sitter_python as ts_python
from tree_sitter import Language as Grammar

from ..detect import Language
from .base import LanguageParser, node_text, count_lines
from .models import (
    ParseResult, FileInfo, FunctionInfo, ClassInfo,
    EnumInfo, InterfaceInfo, TypeRelationship, AttributeInfo, ImportInfo,
)

PY_LANGUAGE = Grammar(ts_python.language())

# Base classes that indicate an enum
_ENUM_BASES = frozenset({
    "Enum", "IntEnum", "StrEnum", "Flag", "IntFlag",
    "enum.Enum", "enum.IntEnum", "enum.StrEnum", "enum.Flag", "enum.IntFlag",
})

# Base classes that indicate a protocol/interface
_PROTOCOL_BASES = frozenset({"Protocol", "typing.Protocol"})

# Bases that carry no dependency information
_IGNORED_BASES = _PROTOCOL_BASES | frozenset({"object", "Generic", "typing.Generic"})

PYTHON_NOISE_NAMES: frozenset[str] = frozenset({
    # Builtins
    "len", "str", "int", "float", "bool", "list", "dict", "set", "tuple",
    "print", "isinstance", "issubclass", "type", "range", "enumerate",
    "zip", "map", "filter", "sorted", "reversed", "any", "all",
    "min", "max", "sum", "abs", "round", "hash", "id", "repr",
    "super", "getattr", "setattr", "hasattr", "delattr",
    "callable", "iter", "next", "open", "format",
    # Common method names
    "append", "extend", "update", "pop", "get", "keys", "values", "items",
    "join", "split", "strip", "replace", "startswith", "endswith",
})

_SELF_NAMES = frozenset({"self", "cls", "super()"})


class PythonParser(LanguageParser):

    @property
    def language(self) -> Language:
        return Language.PYTHON

    @property
    def file_extensions(self) -> list[str]:
        return [".py"]

    @property
    def noise_names(self) -> frozenset[str]:
        return PYTHON_NOISE_NAMES

    def _grammar_for(self, filepath: Path):
        return PY_LANGUAGE

    # ── Helpers ─────────────────────────────────────────────────────────

    def _get_visibility(self, name: str) -> str:
        if name.startswith("__") and name.endswith("__"):
            return "public"
        if name.startswith("_"):
            return "private"
        return "public"

    def _get_name(self, node, source: bytes) -> str:
        """Get the identifier name from a definition node."""
        name = node.child_by_field_name("name")
        if name is not None:
            return node_text(name, source)
        return "unknown"

    def _get_block(self, node):
        """Get the body block of a class/function definition."""
        for child in node.children:
            if child.type == "block":
                return child
        return None

    def _get_docstring(self, node, source: bytes) -> str | None:
        """Extract docstring from the first expression_statement in a block."""
        block = self._get_block(node)
        if block is None:
            return None
        for child in block.children:
            if child.type == "expression_statement":
                for sub in child.children:
                    if sub.type == "string":
                        raw = node_text(sub, source)
                        for prefix in ("r", "R", "u", "U"):
                            if raw.startswith(prefix):
                                raw = raw[1:]
                        for delim in ('"""', "'''", '"', "'"):
                            if raw.startswith(delim) and raw.endswith(delim):
                                return raw[len(delim):-len(delim)].strip()
                        return raw
                break  # only first statement can be a docstring
            elif child.type != "comment":
                break
        return None

    def _get_bases(self, node, source: bytes) -> list[str]:
        """Extract base class names from a class_definition's argument_list."""
        bases = []
        args = node.child_by_field_name("superclasses")
        if args is None:
            return bases
        for arg in args.children:
            if arg.type in ("identifier", "attribute"):
                bases.append(node_text(arg, source))
            elif arg.type == "subscript":
                # e.g. Generic[T], Protocol[T] - take the base name
                value = arg.child_by_field_name("value")
                if value is not None:
                    bases.append(node_text(value, source))
            # keyword_argument (metaclass=...) carries no base
        return bases

    def _get_decorators(self, decorated_node, source: bytes) -> list[str]:
        """Extract decorator names from a decorated_definition."""
        decorators = []
        for child in decorated_node.children:
            if child.type == "decorator":
                text = node_text(child, source).strip()
                if text.startswith("@"):
                    text = text[1:]
                decorators.append(text)
        return decorators

    def _get_decorated_inner(self, node):
        """Get the inner definition (function/class) from a decorated_definition."""
        return node.child_by_field_name("definition")

    def _get_signature(self, node, source: bytes) -> str:
        """Extract function signature (everything before the body)."""
        parts = []
        for child in node.children:
            if child.type == "block":
                break
            if child.type == "comment":
                continue
            parts.append(node_text(child, source))
        return " ".join(parts).rstrip(" :")

    def _get_return_type(self, node, source: bytes) -> str | None:
        ret = node.child_by_field_name("return_type")
        return node_text(ret, source) if ret is not None else None

    def _is_async(self, node, source: bytes) -> bool:
        """Check if function is async (look for 'async' keyword before 'def')."""
        for child in node.children:
            if not child.is_named and node_text(child, source) == "async":
                return True
            if not child.is_named and node_text(child, source) == "def":
                break
        return False

    def _extract_calls(self, body_node, source: bytes) -> list[tuple[str, int]]:
        """Recursively extract called names within a block.

        ``obj.method()`` is reported as ``"obj.method"`` so the resolver can
        use the receiver as a hint; calls on self/cls/super() are bare.
        """
        calls: list[tuple[str, int]] = []
        stack = [body_node]
        while stack:
            node = stack.pop()
            if node.type == "call":
                line = node.start_point[0] + 1
                func = node.child_by_field_name("function")
                if func is not None and func.type == "identifier":
                    calls.append((node_text(func, source), line))
                elif func is not None and func.type == "attribute":
                    attr = func.child_by_field_name("attribute")
                    obj = func.child_by_field_name("object")
                    if attr is not None:
                        name = node_text(attr, source)
                        hint = node_text(obj, source).rsplit(".", 1)[-1] if obj else ""
                        if not hint or hint in _SELF_NAMES or "(" in hint:
                            calls.append((name, line))
                        else:
                            calls.append((f"{hint}.{name}", line))
            stack.extend(reversed(node.children))
        return calls

    def _file_to_module_path(self, filepath: Path, src_root: Path) -> str:
        """Convert a Python file path to a dotted module path.

        e.g. src_root=project/src, file=project/src/pkg/api/client.py
        -> pkg.api.client
        """
        rel = filepath.relative_to(src_root)
        parts = list(rel.parts)
        parts[-1] = parts[-1][:-len(".py")]
        # __init__ means the directory itself is the module
        if parts[-1] == "__init__":
            parts = parts[:-1]
        if parts:
            return ".".join(parts)
        return src_root.name

    def _get_enum_variants(self, node, source: bytes) -> list[str]:
        """Extract enum variant names from a class body."""
        variants = []
        block = self._get_block(node)
        if block is None:
            return variants
        for child in block.children:
            if child.type == "expression_statement":
                for sub in child.children:
                    if sub.type == "assignment":
                        left = sub.child_by_field_name("left")
                        if left is not None and left.type == "identifier":
                            variants.append(node_text(left, source))
        return variants

    def _parse_imports(self, node, source: bytes) -> list[ImportInfo]:
        """Parse an import statement into ImportInfo records."""
        line = node.start_point[0] + 1
        if node.type == "import_statement":
            # import a.b, c as d
            imports = []
            for child in node.children_by_field_name("name"):
                if child.type == "aliased_import":
                    child = child.child_by_field_name("name")
                if child is not None:
                    imports.append(ImportInfo(module=node_text(child, source), line=line))
            return imports

        # from x import a, b / from . import c / from .x import *
        module_node = node.child_by_field_name("module_name")
        if module_node is None:
            return []
        level = 0
        if module_node.type == "relative_import":
            module = ""
            for sub in module_node.children:
                if sub.type == "import_prefix":
                    level = node_text(sub, source).count(".")
                elif sub.type == "dotted_name":
                    module = node_text(sub, source)
        else:
            module = node_text(module_node, source)

        names = []
        for child in node.children_by_field_name("name"):
            if child.type == "aliased_import":
                child = child.child_by_field_name("name")
            if child is not None:
                names.append(node_text(child, source))
        if any(child.type == "wildcard_import" for child in node.children):
            names = ["*"]
        return [ImportInfo(module=module, names=names, level=level, line=line)]

    def _classify_decorators(self, decorators: list[str]) -> dict:
        """Extract semantic flags from decorator names."""
        flags = {}
        for dec in decorators:
            base = dec.split("(")[0].split(".")[-1]
            if base == "abstractmethod":
                flags["is_abstract"] = True
            elif base == "property":
                flags["is_property"] = True
            elif base == "staticmethod":
                flags["is_static"] = True
            elif base == "classmethod":
                flags["is_classmethod"] = True
        return flags

    def _assignment_type(self, assignment, source: bytes) -> str | None:
        """Type of an assignment target: its annotation, or Cls in ``x = Cls()``."""
        type_node = assignment.child_by_field_name("type")
        if type_node is not None:
            return node_text(type_node, source)
        right = assignment.child_by_field_name("right")
        if right is not None and right.type == "call":
            func = right.child_by_field_name("function")
            if func is not None and func.type in ("identifier", "attribute"):
                name = node_text(func, source)
                if name.rsplit(".", 1)[-1][:1].isupper():
                    return name
        return None

    def _extract_class_attributes(self, class_node, source: bytes,
                                  owner_qname: str, rel_path: str,
                                  result: ParseResult):
        """Extract attributes from class body and __init__ self assignments."""
        block = self._get_block(class_node)
        if block is None:
            return
        seen_names: set[str] = set()

        # 1. Class-body assignments: x = value, x: type = value
        for child in block.children:
            if child.type != "expression_statement":
                continue
            for sub in child.children:
                if sub.type != "assignment":
                    continue
                left = sub.child_by_field_name("left")
                if left is None or left.type != "identifier":
                    continue
                attr_name = node_text(left, source)
                seen_names.add(attr_name)
                result.attributes.append(AttributeInfo(
                    name=attr_name,
                    qualified_name=f"{owner_qname}.{attr_name}",
                    owner_qualified_name=owner_qname,
                    type_annotation=self._assignment_type(sub, source),
                    visibility=self._get_visibility(attr_name),
                    file_path=rel_path,
                    line_number=child.start_point[0] + 1,
                ))

        # 2. self.x assignments in __init__
        for child in block.children:
            fn_node = child
            if child.type == "decorated_definition":
                fn_node = self._get_decorated_inner(child)
            if (fn_node is not None and fn_node.type == "function_definition"
                    and self._get_name(fn_node, source) == "__init__"):
                init_block = self._get_block(fn_node)
                if init_block is not None:
                    self._walk_self_attrs(init_block, source, owner_qname,
                                          rel_path, result, seen_names)
                break

    def _walk_self_attrs(self, block, source: bytes, owner_qname: str,
                         rel_path: str, result: ParseResult,
                         seen_names: set[str]):
        """Find self.x = ... assignments anywhere inside ``block``."""
        stack = [block]
        while stack:
            node = stack.pop()
            if node.type == "assignment":
                left = node.child_by_field_name("left")
                if left is not None and left.type == "attribute":
                    text = node_text(left, source)
                    attr_name = text[5:] if text.startswith("self.") else ""
                    if attr_name and "." not in attr_name and attr_name not in seen_names:
                        seen_names.add(attr_name)
                        result.attributes.append(AttributeInfo(
                            name=attr_name,
                            qualified_name=f"{owner_qname}.{attr_name}",
                            owner_qualified_name=owner_qname,
                            type_annotation=self._assignment_type(node, source),
                            visibility=self._get_visibility(attr_name),
                            file_path=rel_path,
                            line_number=node.start_point[0] + 1,
                        ))
            if node.type in ("function_definition", "class_definition", "lambda"):
                continue
            stack.extend(reversed(node.children))

    # ── Parsing ─────────────────────────────────────────────────────────

    def _parse_function(self, node, source: bytes, module_path: str,
                        rel_path: str, owner: str | None = None) -> FunctionInfo:
        name = self._get_name(node, source)
        prefix = owner or module_path
        block = self._get_block(node)

        return FunctionInfo(
            name=name,
            qualified_name=f"{prefix}.{name}",
            visibility=self._get_visibility(name),
            is_async=self._is_async(node, source),
            is_method=owner is not None,
            signature=self._get_signature(node, source),
            file_path=rel_path,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docstring=self._get_docstring(node, source),
            return_type=self._get_return_type(node, source),
            owner=owner,
            calls=self._extract_calls(block, source) if block else [],
        )

    def _parse_class(self, node, source: bytes, prefix: str,
                     module_path: str, rel_path: str, result: ParseResult,
                     decorators: list[str] | None = None):
        """Parse a class_definition node and populate the result."""
        name = self._get_name(node, source)
        qualified_name = f"{prefix}.{name}"
        bases = self._get_bases(node, source)
        docstring = self._get_docstring(node, source)
        line = node.start_point[0] + 1
        end_line = node.end_point[0] + 1

        if _ENUM_BASES & set(bases):
            result.enums.append(EnumInfo(
                name=name,
                qualified_name=qualified_name,
                visibility=self._get_visibility(name),
                file_path=rel_path,
                line_number=line,
                end_line=end_line,
                docstring=docstring,
                variants=self._get_enum_variants(node, source),
            ))
            return

        if _PROTOCOL_BASES & set(bases):
            result.interfaces.append(InterfaceInfo(
                name=name,
                qualified_name=qualified_name,
                kind="protocol",
                visibility=self._get_visibility(name),
                file_path=rel_path,
                line_number=line,
                end_line=end_line,
                docstring=docstring,
            ))
        else:
            result.classes.append(ClassInfo(
                name=name,
                qualified_name=qualified_name,
                kind="class",
                visibility=self._get_visibility(name),
                file_path=rel_path,
                line_number=line,
                end_line=end_line,
                docstring=docstring,
                bases=bases,
                metadata={"decorators": decorators} if decorators else {},
            ))

        for base in bases:
            if base not in _IGNORED_BASES:
                result.type_relationships.append(TypeRelationship(
                    source_type=qualified_name,
                    target_type=base,
                    relationship="extends",
                    file_path=rel_path,
                ))

        # Methods and nested classes
        block = self._get_block(node)
        if block:
            for child in block.children:
                inner = child
                child_decorators: list[str] = []
                if child.type == "decorated_definition":
                    inner = self._get_decorated_inner(child)
                    child_decorators = self._get_decorators(child, source)
                if inner is None:
                    continue
                if inner.type == "function_definition":
                    fn = self._parse_function(inner, source, module_path,
                                              rel_path, owner=qualified_name)
                    fn.decorators = child_decorators
                    fn.metadata.update(self._classify_decorators(child_decorators))
                    result.functions.append(fn)
                elif inner.type == "class_definition":
                    self._parse_class(inner, source, qualified_name,
                                      module_path, rel_path, result,
                                      decorators=child_decorators)

        self._extract_class_attributes(node, source, qualified_name, rel_path, result)

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
            language="python",
            is_test=(filepath.name.startswith("test_")
                     or filepath.name.endswith("_test.py")
                     or "tests" in filepath.relative_to(src_root).parts[:-1]),
        )
        result = ParseResult()
        result.files.append(file_info)

        for child in root.children:
            if child.type == "function_definition":
                result.functions.append(self._parse_function(
                    child, source, module_path, rel_path,
                ))

            elif child.type == "decorated_definition":
                inner = self._get_decorated_inner(child)
                decorators = self._get_decorators(child, source)
                if inner is not None and inner.type == "function_definition":
                    fn = self._parse_function(inner, source, module_path, rel_path)
                    fn.decorators = decorators
                    fn.metadata.update(self._classify_decorators(decorators))
                    result.functions.append(fn)
                elif inner is not None and inner.type == "class_definition":
                    self._parse_class(inner, source, module_path, module_path,
                                      rel_path, result, decorators=decorators)

            elif child.type == "class_definition":
                self._parse_class(child, source, module_path, module_path,
                                  rel_path, result)

            elif child.type in ("import_statement", "import_from_statement"):
                file_info.imports.extend(self._parse_imports(child, source))

            elif child.type == "expression_statement":
                for sub in child.children:
                    if sub.type != "assignment":
                        continue
                    left = sub.child_by_field_name("left")
                    right = sub.child_by_field_name("right")
                    if (left is not None and node_text(left, source) == "__all__"
                            and right is not None and right.type in ("list", "tuple")):
                        for item in right.children:
                            if item.type == "string":
                                file_info.exports.append(
                                    node_text(item, source).strip("'\""))

        return result
