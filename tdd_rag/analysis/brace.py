"""Regex and brace-counting chunking for curly-brace languages."""

import re
from dataclasses import dataclass
from pathlib import Path

from .base import ChunkKind, ChunkStrategy, CodeChunk


@dataclass(frozen=True)
class PatternSet:
    """Declaration patterns for one language; group 1 captures the name."""

    functions: tuple[re.Pattern[str], ...]
    classes: tuple[re.Pattern[str], ...]


GENERIC_PATTERNS = PatternSet(
    functions=(
        re.compile(
            r"\b(?:function|def|func|fn|sub|method|procedure)\s+([a-zA-Z0-9_]+)\s*\([^)]*\)"
        ),
        re.compile(
            r"\b(?:public|private|protected|static|final)\s+(?:[\w<>\[\]]+\s+)?([a-zA-Z0-9_]+)\s*\([^)]*\)"
        ),
    ),
    classes=(
        re.compile(
            r"\bclass\s+([a-zA-Z0-9_]+)(?:\s+(?:extends|implements)\s+[a-zA-Z0-9_,\s<>]+)?\s*\{?"
        ),
    ),
)

JAVA_PATTERNS = PatternSet(
    functions=(
        re.compile(
            r"\b(?:public|private|protected|static|final|abstract)?\s*(?:[\w<>\[\]]+\s+)?([a-zA-Z0-9_]+)\s*\([^)]*\)\s*(?:throws\s+[\w,\s]+)?\s*\{"
        ),
    ),
    classes=(
        re.compile(
            r"\b(?:public|private|protected)?\s*(?:abstract|final)?\s*class\s+([a-zA-Z0-9_]+)(?:\s+(?:extends|implements)\s+[a-zA-Z0-9_,\s<>]+)?\s*\{"
        ),
    ),
)

CPP_PATTERNS = PatternSet(
    functions=(
        re.compile(
            r"\b(?:[\w]+\s+)+([a-zA-Z0-9_]+)\s*\([^;]*\)\s*(?:const|override|final|noexcept)?\s*\{"
        ),
    ),
    classes=(
        re.compile(
            r"\b(?:class|struct)\s+([a-zA-Z0-9_]+)(?:\s*:\s*(?:public|private|protected)\s+[a-zA-Z0-9_]+)?\s*\{"
        ),
    ),
)

RUBY_PATTERNS = PatternSet(
    functions=(re.compile(r"\bdef\s+([a-zA-Z0-9_?!]+)(?:\([^)]*\))?"),),
    classes=(re.compile(r"\bclass\s+([a-zA-Z0-9_]+)(?:\s*<\s*[a-zA-Z0-9_:]+)?"),),
)

GO_PATTERNS = PatternSet(
    functions=(re.compile(r"\bfunc\s+(?:\([^)]*\)\s*)?([a-zA-Z0-9_]+)\s*\("),),
    classes=(re.compile(r"\btype\s+([a-zA-Z0-9_]+)\s+(?:struct|interface)\s*\{"),),
)

RUST_PATTERNS = PatternSet(
    functions=(re.compile(r"\bfn\s+([a-zA-Z0-9_]+)\s*(?:<[^>]*>)?\s*\("),),
    classes=(
        re.compile(r"\b(?:struct|enum|trait)\s+([a-zA-Z0-9_]+)"),
        re.compile(r"\bimpl(?:<[^>]*>)?\s+(?:[\w:<>]+\s+for\s+)?([a-zA-Z0-9_]+)"),
    ),
)

PATTERNS_BY_EXTENSION: dict[str, PatternSet] = {
    ".java": JAVA_PATTERNS,
    ".cpp": CPP_PATTERNS,
    ".hpp": CPP_PATTERNS,
    ".rb": RUBY_PATTERNS,
    ".go": GO_PATTERNS,
    ".rs": RUST_PATTERNS,
}


def brace_delta(line: str) -> int:
    return line.count("{") - line.count("}")


class BraceStrategy(ChunkStrategy):
    """Opens a chunk on a declaration match and closes it when braces balance.

    Any extension without its own pattern table uses the generic table, so
    this strategy doubles as the secondary pass for languages whose primary
    strategy found nothing.
    """

    SUPPORTED_EXTENSIONS = (
        ".java",
        ".c",
        ".cpp",
        ".h",
        ".hpp",
        ".cs",
        ".rb",
        ".go",
        ".rs",
        ".php",
        ".swift",
        ".kt",
        ".dart",
    )

    def patterns_for(self, file_path: str) -> PatternSet:
        return PATTERNS_BY_EXTENSION.get(
            Path(file_path).suffix.lower(), GENERIC_PATTERNS
        )

    def chunk(self, file_path: str, content: str) -> list[CodeChunk]:
        patterns = self.patterns_for(file_path)
        chunks: list[CodeChunk] = []

        # (name, kind, start_line, lines)
        current: tuple[str, ChunkKind, int, list[str]] | None = None
        depth = 0

        for line_no, line in enumerate(content.split("\n"), start=1):
            if current is not None:
                current[3].append(line)
                depth += brace_delta(line)
                if depth <= 0:
                    chunks.append(self._build(file_path, current, line_no))
                    current = None
                continue

            match = self._match(line, patterns)
            if match is None:
                continue

            name, kind = match
            current = (name, kind, line_no, [line])
            depth = brace_delta(line)
            if depth == 0 and "{" in line and "}" in line:
                chunks.append(self._build(file_path, current, line_no))
                current = None

        if current is not None:
            chunks.append(
                self._build(file_path, current, current[2] + len(current[3]) - 1)
            )

        return chunks

    @staticmethod
    def _match(line: str, patterns: PatternSet) -> tuple[str, ChunkKind] | None:
        for pattern in patterns.classes:
            found = pattern.search(line)
            if found:
                return found.group(1), ChunkKind.CLASS
        for pattern in patterns.functions:
            found = pattern.search(line)
            if found:
                return found.group(1), ChunkKind.FUNCTION
        return None

    @staticmethod
    def _build(
        file_path: str,
        current: tuple[str, ChunkKind, int, list[str]],
        end_line: int,
    ) -> CodeChunk:
        name, kind, start_line, lines = current
        return CodeChunk.create(
            file_path=file_path,
            name=name,
            kind=kind,
            start_line=start_line,
            end_line=end_line,
            content="\n".join(lines),
        )
