"""Tree-sitter language parsers and the registry that dispatches to them.

Requires the tree-sitter grammars: ``pip install depgraph``
"""

try:
    import tree_sitter  # noqa: F401
except ImportError:
    raise ImportError(
        "The depgraph.parsers module requires tree-sitter. "
        "Install with: pip install tree-sitter tree-sitter-python "
        "tree-sitter-java tree-sitter-typescript tree-sitter-javascript"
    ) from None

from .models import (
    Diagnostic, ImportInfo, FileInfo, FunctionInfo, ClassInfo, EnumInfo,
    InterfaceInfo, AttributeInfo, TypeRelationship, ParseResult,
    Relation, Symbol, LanguageDependencies,
)
from .base import LanguageParser, SourceSyntaxError
from .registry import ParserRegistry, ParseTiming, get_parser, default_registry
from .resolve import build_dependencies

__all__ = [
    "Diagnostic", "ImportInfo", "FileInfo", "FunctionInfo", "ClassInfo",
    "EnumInfo", "InterfaceInfo", "AttributeInfo", "TypeRelationship",
    "ParseResult", "Relation", "Symbol", "LanguageDependencies",
    "LanguageParser", "SourceSyntaxError",
    "ParserRegistry", "ParseTiming", "get_parser", "default_registry",
    "build_dependencies",
]
