"""Indentation-tracking chunking for Python sources."""

import re
from dataclasses import dataclass, field

from .base import ChunkKind, ChunkStrategy, CodeChunk

CLASS_PATTERN = re.compile(r"^\s*class\s+([a-zA-Z_][a-zA-Z0-9_]*)\s*(?:\([^)]*\))?\s*:")
FUNCTION_PATTERN = re.compile(r"^\s*(?:async\s+)?def\s+([a-zA-Z_][a-zA-Z0-9_]*)\s*\(")


@dataclass
class _OpenChunk:
    name: str
    kind: ChunkKind
    indent: int
    start_line: int
    lines: list[str] = field(default_factory=list)
    end_line: int = 0

    def add(self, line: str, line_no: int) -> None:
        self.lines.append(line)
        self.end_line = line_no

    def build(self, file_path: str) -> CodeChunk:
        return CodeChunk.create(
            file_path=file_path,
            name=self.name,
            kind=self.kind,
            start_line=self.start_line,
            end_line=self.end_line,
            content="\n".join(self.lines),
        )


def indentation_of(line: str) -> int:
    return len(line) - len(line.lstrip())


class IndentStrategy(ChunkStrategy):
    """Tracks one open class and one open function by indentation level.

    A method's lines also extend its enclosing class. Chunks are emitted in
    the order they close, so a method precedes its class.
    """

    SUPPORTED_EXTENSIONS = (".py", ".pyw")

    def chunk(self, file_path: str, content: str) -> list[CodeChunk]:
        chunks: list[CodeChunk] = []
        current_class: _OpenChunk | None = None
        current_function: _OpenChunk | None = None

        for line_no, line in enumerate(content.split("\n"), start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                for open_chunk in (current_function, current_class):
                    if open_chunk is not None:
                        open_chunk.add(line, line_no)
                continue

            indent = indentation_of(line)

            if current_function is not None and indent <= current_function.indent:
                chunks.append(current_function.build(file_path))
                current_function = None

            if current_class is not None and indent <= current_class.indent:
                chunks.append(current_class.build(file_path))
                current_class = None

            if current_class is not None:
                current_class.add(line, line_no)

            if current_function is not None:
                current_function.add(line, line_no)
                continue

            if current_class is not None:
                match = FUNCTION_PATTERN.match(line)
                if match:
                    current_function = _OpenChunk(
                        name=f"{current_class.name}.{match.group(1)}",
                        kind=ChunkKind.METHOD,
                        indent=indent,
                        start_line=line_no,
                    )
                    current_function.add(line, line_no)
                continue

            match = CLASS_PATTERN.match(line)
            if match:
                current_class = _OpenChunk(
                    name=match.group(1),
                    kind=ChunkKind.CLASS,
                    indent=indent,
                    start_line=line_no,
                )
                current_class.add(line, line_no)
                continue

            match = FUNCTION_PATTERN.match(line)
            if match:
                current_function = _OpenChunk(
                    name=match.group(1),
                    kind=ChunkKind.FUNCTION,
                    indent=indent,
                    start_line=line_no,
                )
                current_function.add(line, line_no)

        if current_function is not None:
            chunks.append(current_function.build(file_path))
        if current_class is not None:
            chunks.append(current_class.build(file_path))

        return chunks
