"""Syntax-tree chunking for JavaScript and TypeScript using tree-sitter."""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

from tree_sitter import Language, Node, Parser

from .base import ChunkKind, ChunkStrategy, CodeChunk

try:
    import tree_sitter_javascript as tsjs
    import tree_sitter_typescript as tsts

    TREE_SITTER_AVAILABLE = True
except ImportError:
    TREE_SITTER_AVAILABLE = False


FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
CLASS_NODES = {"class_declaration", "abstract_class_declaration", "class"}
FUNCTION_VALUES = {"arrow_function", "function_expression", "function"}


class TreeSitterStrategy(ChunkStrategy):
    """Emits function, method and function-valued variable chunks.

    Class bodies themselves are not chunked; their methods are, named
    ``Class.method``.
    """

    SUPPORTED_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx")

    def __init__(self) -> None:
        if not TREE_SITTER_AVAILABLE:
            raise ImportError(
                "tree-sitter grammars not available. Install with: "
                "pip install tree-sitter-javascript tree-sitter-typescript"
            )
        self._parsers: dict[str, Parser] = {}

    def _parser_for(self, suffix: str) -> Parser:
        if suffix not in self._parsers:
            self._parsers[suffix] = Parser(Language(self._language_capsule(suffix)))
        return self._parsers[suffix]

    @staticmethod
    def _language_capsule(suffix: str) -> Any:
        if suffix == ".ts":
            return tsts.language_typescript()
        if suffix == ".tsx":
            return tsts.language_tsx()
        return tsjs.language()

    def chunk(self, file_path: str, content: str) -> list[CodeChunk]:
        source = content.encode("utf-8")
        tree = self._parser_for(Path(file_path).suffix.lower()).parse(source)

        chunks = []
        for node in self._walk(tree.root_node):
            found = self._classify(node, source)
            if found is None:
                continue
            name, kind = found
            chunks.append(
                CodeChunk.create(
                    file_path=file_path,
                    name=name,
                    kind=kind,
                    start_line=node.start_point[0] + 1,
                    end_line=node.end_point[0] + 1,
                    content=self.extract_node_text(node, source),
                )
            )
        return chunks

    @staticmethod
    def _walk(root: Node) -> Iterator[Node]:
        """Pre-order traversal in source order."""
        stack = [root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def _classify(self, node: Node, source: bytes) -> tuple[str, ChunkKind] | None:
        if node.type in FUNCTION_DECLARATIONS:
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                return self.extract_node_text(name_node, source), ChunkKind.FUNCTION

        elif node.type == "method_definition":
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                method_name = self.extract_node_text(name_node, source)
                class_name = self._enclosing_class_name(node, source)
                if class_name:
                    return f"{class_name}.{method_name}", ChunkKind.METHOD
                return method_name, ChunkKind.METHOD

        elif node.type == "variable_declarator":
            name_node = node.child_by_field_name("name")
            value_node = node.child_by_field_name("value")
            if (
                name_node is not None
                and name_node.type == "identifier"
                and value_node is not None
                and value_node.type in FUNCTION_VALUES
            ):
                return self.extract_node_text(name_node, source), ChunkKind.FUNCTION

        return None

    def _enclosing_class_name(self, node: Node, source: bytes) -> str:
        parent = node.parent
        while parent is not None:
            if parent.type in CLASS_NODES:
                name_node = parent.child_by_field_name("name")
                if name_node is not None:
                    return self.extract_node_text(name_node, source)
            parent = parent.parent
        return ""

    @staticmethod
    def extract_node_text(node: Node, source: bytes) -> str:
        return source[node.start_byte : node.end_byte].decode("utf-8")
