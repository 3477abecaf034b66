"""Similarity retrieval and context-document assembly."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from ..analysis.base import ChunkKind, CodeChunk
from ..analysis.coverage import CoverageAnalyzer
from ..errors import TddRagError
from ..indexer_logging import LogCategory, get_category_logger
from ..storage.base import Namespace
from ..storage.vector_store import VectorStore
from ..watcher.patterns import relative_posix

logger = get_category_logger(LogCategory.RETRIEVAL)

DEFAULT_MAX_RESULTS = 15


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


@dataclass
class RetrievalResult:
    source_chunks: list[CodeChunk] = field(default_factory=list)
    test_chunks: list[CodeChunk] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.source_chunks and not self.test_chunks


@dataclass
class ContextDocument:
    """Structured context handed to the prompt layer."""

    query: str
    feature: str
    source: dict[str, Any]
    tests: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "feature": self.feature,
            "source": self.source,
            "tests": self.tests,
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def _cancelled(signal: CancelSignal | None) -> bool:
    return signal is not None and signal.is_set()


def format_chunks(
    chunks: list[CodeChunk],
    project_root: Path | None = None,
    include_structure: bool = True,
) -> dict[str, Any]:
    """Group chunks by project-relative file.

    With ``include_structure`` the result carries a nested directory tree
    and a per-file index of functions and class methods next to the code.
    """
    structure: dict[str, Any] = {}
    headers: dict[str, Any] = {}
    code: dict[str, dict[str, str]] = {}

    for chunk in chunks:
        rel_path = relative_posix(chunk.file_path, project_root)
        code.setdefault(rel_path, {})[chunk.name] = chunk.content
        if not include_structure:
            continue

        *directories, file_name = [part for part in rel_path.split("/") if part]
        node = structure
        for directory in directories:
            node = node.setdefault(directory, {})
        node[file_name] = ""

        entry = headers.setdefault(rel_path, {"functions": [], "classes": {}})
        if chunk.kind is ChunkKind.FUNCTION:
            if chunk.name not in entry["functions"]:
                entry["functions"].append(chunk.name)
        elif chunk.kind is ChunkKind.METHOD and "." in chunk.name:
            class_name, method_name = chunk.name.split(".", 1)
            cls = entry["classes"].setdefault(
                class_name, {"methods": [], "relationships": []}
            )
            if method_name not in cls["methods"]:
                cls["methods"].append(method_name)
        elif chunk.kind is ChunkKind.CLASS:
            entry["classes"].setdefault(
                chunk.name, {"methods": [], "relationships": []}
            )

    if not include_structure:
        return {"code": code}
    return {"codebase_structure": structure, "headers": headers, "code": code}


def filter_untested(chunks: list[CodeChunk], tested: set[str]) -> list[CodeChunk]:
    """Keep chunks whose symbol is not in ``tested``; methods go by their class."""
    untested = []
    for chunk in chunks:
        symbol = chunk.owner_name if chunk.kind is ChunkKind.METHOD else chunk.name
        if symbol not in tested:
            untested.append(chunk)
    return untested


class RetrievalAugmenter:
    """Pulls similar source and test chunks and shapes them for a prompt."""

    def __init__(
        self,
        vector_store: VectorStore,
        coverage_analyzer: CoverageAnalyzer | None = None,
        project_root: Path | None = None,
    ):
        self.vector_store = vector_store
        self.coverage_analyzer = coverage_analyzer or CoverageAnalyzer()
        self.project_root = project_root

    async def retrieve(
        self,
        query: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        cancel_signal: CancelSignal | None = None,
    ) -> RetrievalResult:
        """Query the source namespace, then the test namespace.

        Cancellation is checked around each query and yields an empty
        result; backend failures are logged and also yield an empty result.
        """
        if _cancelled(cancel_signal):
            logger.debug("Retrieval cancelled before start")
            return RetrievalResult()

        try:
            source_chunks = await self.vector_store.query(
                query, max_results, Namespace.SOURCE
            )
            if _cancelled(cancel_signal):
                logger.debug("Retrieval cancelled after source query")
                return RetrievalResult()

            test_chunks = await self.vector_store.query(
                query, max_results, Namespace.TEST
            )
            if _cancelled(cancel_signal):
                logger.debug("Retrieval cancelled after test query")
                return RetrievalResult()
        except TddRagError as e:
            logger.error(f"❌ Retrieval failed: {e}")
            return RetrievalResult()

        logger.info(
            f"🔎 Retrieved {len(source_chunks)} source and {len(test_chunks)} test chunks"
        )
        return RetrievalResult(source_chunks=source_chunks, test_chunks=test_chunks)

    def augment(
        self,
        query: str,
        feature: str,
        source_chunks: list[CodeChunk],
        test_chunks: list[CodeChunk],
    ) -> ContextDocument:
        return ContextDocument(
            query=query,
            feature=feature,
            source=format_chunks(source_chunks, self.project_root, include_structure=True),
            tests=format_chunks(test_chunks, self.project_root, include_structure=False),
        )

    async def augment_untested(
        self,
        query: str,
        feature: str,
        source_chunks: list[CodeChunk],
        test_chunks: list[CodeChunk],
        test_files: list[str],
    ) -> ContextDocument:
        tested = await self.coverage_analyzer.analyze(test_files)
        untested = filter_untested(source_chunks, tested)
        logger.debug(
            f"{len(untested)}/{len(source_chunks)} source chunks have no detected tests"
        )
        return self.augment(query, feature, untested, test_chunks)
