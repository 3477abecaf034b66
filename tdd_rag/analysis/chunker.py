"""Chunker: selects a strategy by extension and never raises past a file."""

from pathlib import Path

from ..filesystem import FileSystem, LocalFileSystem
from ..indexer_logging import LogCategory, get_category_logger
from .base import ChunkStrategy, CodeChunk
from .brace import BraceStrategy
from .fallback import LineChunkStrategy
from .indentation import IndentStrategy
from .javascript import TreeSitterStrategy

logger = get_category_logger(LogCategory.ANALYSIS)

SUPPORTED_EXTENSIONS = frozenset(
    {
        ".js",
        ".ts",
        ".jsx",
        ".tsx",
        ".py",
        ".pyw",
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
    }
)


class Chunker:
    """Splits source files into named, typed chunks.

    Each extension maps to an ordered chain of strategies; the first one
    that yields chunks wins and the line-block strategy closes every chain,
    so any non-empty supported file produces at least one chunk.
    """

    def __init__(
        self,
        file_system: FileSystem | None = None,
        strategies: list[ChunkStrategy] | None = None,
        fallback: ChunkStrategy | None = None,
    ):
        self.file_system = file_system or LocalFileSystem()
        self.brace = BraceStrategy()
        self.strategies = (
            strategies
            if strategies is not None
            else [TreeSitterStrategy(), IndentStrategy(), self.brace]
        )
        self.fallback = fallback or LineChunkStrategy()

    @staticmethod
    def is_supported(file_path: str) -> bool:
        return Path(file_path).suffix.lower() in SUPPORTED_EXTENSIONS

    def strategy_chain(self, file_path: str) -> list[ChunkStrategy]:
        primary = next((s for s in self.strategies if s.can_parse(file_path)), None)
        chain: list[ChunkStrategy] = []
        if primary is not None:
            chain.append(primary)
        if isinstance(primary, TreeSitterStrategy):
            chain.append(self.brace)
        chain.append(self.fallback)
        return chain

    def parse(self, file_path: str, content: str) -> list[CodeChunk]:
        """Chunk ``content``; deterministic for identical input."""
        for strategy in self.strategy_chain(file_path):
            try:
                chunks = strategy.chunk(file_path, content)
            except Exception as e:
                logger.warning(
                    f"⚠️ {type(strategy).__name__} failed on {file_path}: {e}",
                    extra={"file_path": file_path},
                )
                continue
            if chunks:
                return chunks
        return []

    async def parse_file(self, file_path: str) -> list[CodeChunk]:
        """Read and chunk one file; read or parse failure yields ``[]``."""
        try:
            content = await self.file_system.read_text(file_path)
        except OSError as e:
            logger.error(
                f"❌ Failed to read {file_path}: {e}", extra={"file_path": file_path}
            )
            return []

        chunks = self.parse(file_path, content)
        logger.debug(f"Parsed {file_path} into {len(chunks)} chunks")
        return chunks

    async def parse_files(self, file_paths: list[str]) -> list[CodeChunk]:
        all_chunks: list[CodeChunk] = []
        for file_path in file_paths:
            if not self.is_supported(file_path):
                logger.debug(f"Skipping unsupported file {file_path}")
                continue
            all_chunks.extend(await self.parse_file(file_path))
        return all_chunks
