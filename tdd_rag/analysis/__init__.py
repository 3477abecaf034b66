"""Source analysis: chunking strategies and test coverage heuristics."""

from .base import ChunkKind, ChunkStrategy, CodeChunk
from .chunker import SUPPORTED_EXTENSIONS, Chunker
from .coverage import CoverageAnalyzer

__all__ = [
    "Chunker",
    "ChunkKind",
    "ChunkStrategy",
    "CodeChunk",
    "CoverageAnalyzer",
    "SUPPORTED_EXTENSIONS",
]
