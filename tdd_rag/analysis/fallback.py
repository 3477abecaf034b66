"""Fixed-size line block chunking used when no declaration is found."""

from pathlib import Path

from .base import ChunkKind, ChunkStrategy, CodeChunk

DEFAULT_BLOCK_LINES = 50


def split_lines(content: str) -> list[str]:
    """Split on newlines keeping the terminators, so ``"".join`` is lossless."""
    parts = content.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


class LineChunkStrategy(ChunkStrategy):
    """Cuts a file into consecutive blocks of ``block_lines`` lines."""

    def __init__(self, block_lines: int = DEFAULT_BLOCK_LINES):
        if block_lines < 1:
            raise ValueError("block_lines must be positive")
        self.block_lines = block_lines

    def can_parse(self, file_path: str) -> bool:
        return True

    def chunk(self, file_path: str, content: str) -> list[CodeChunk]:
        lines = split_lines(content)
        file_name = Path(file_path).name
        chunks = []

        if not lines:
            return [
                CodeChunk(
                    id=f"{file_path}:chunk_1:1",
                    content="",
                    file_path=file_path,
                    start_line=1,
                    end_line=1,
                    kind=ChunkKind.OTHER,
                    name=f"{file_name}_chunk_1",
                )
            ]

        for offset in range(0, len(lines), self.block_lines):
            block = lines[offset : offset + self.block_lines]
            number = offset // self.block_lines + 1
            start_line = offset + 1
            chunks.append(
                CodeChunk(
                    id=f"{file_path}:chunk_{number}:{start_line}",
                    content="".join(block),
                    file_path=file_path,
                    start_line=start_line,
                    end_line=offset + len(block),
                    kind=ChunkKind.OTHER,
                    name=f"{file_name}_chunk_{number}",
                )
            )

        return chunks
