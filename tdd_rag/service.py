"""Wires configuration, storage, watching and retrieval for one project."""

import os
import secrets
import string
import time
from pathlib import Path
from typing import Any

from .analysis.chunker import Chunker
from .analysis.coverage import CoverageAnalyzer
from .config import IndexerConfig, load_config
from .embeddings.base import Embedder
from .embeddings.registry import create_embedder_from_config
from .filesystem import FileSystem, LocalFileSystem
from .indexer_logging import get_logger
from .indexing.manager import IndexManager, ProgressCallback
from .indexing.namespaces import is_test_file
from .retrieval.augmenter import (
    DEFAULT_MAX_RESULTS,
    CancelSignal,
    ContextDocument,
    RetrievalAugmenter,
    RetrievalResult,
)
from .storage.base import VectorBackend
from .storage.qdrant import QdrantBackend
from .storage.state import JsonStateStore, StateStore
from .storage.vector_store import DimensionResolver, VectorStore
from .watcher.debounce import Scheduler
from .watcher.handler import FileWatcher, WatchdogFileWatcher
from .watcher.patterns import matches_pattern, relative_posix, should_include

logger = get_logger()

STATE_FILE = "index_state.json"
USER_ID_KEY = "user_id"

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_user_id(now: float | None = None) -> str:
    """``user-<base36 milliseconds>-<7 random base36 chars>``."""
    millis = int((time.time() if now is None else now) * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
    return f"user-{_to_base36(millis)}-{suffix}"


async def resolve_user_id(config: IndexerConfig, state_store: StateStore) -> str:
    """Configured id, else the persisted one, else a new persisted id."""
    if config.user_id:
        return config.user_id
    stored = await state_store.get(USER_ID_KEY)
    if stored:
        return str(stored)
    user_id = generate_user_id()
    await state_store.put(USER_ID_KEY, user_id)
    logger.info(f"🆔 Generated user id {user_id}")
    return user_id


class RagService:
    """One project's indexing pipeline and retrieval entry points.

    Collaborators can be injected; anything left out is built from the
    configuration when ``start()`` runs.
    """

    def __init__(
        self,
        project_path: Path,
        config: IndexerConfig | None = None,
        backend: VectorBackend | None = None,
        embedder: Embedder | None = None,
        state_store: StateStore | None = None,
        file_system: FileSystem | None = None,
        watcher: FileWatcher | None = None,
        scheduler: Scheduler | None = None,
        dimension_resolver: DimensionResolver | None = None,
        progress_sink: ProgressCallback | None = None,
    ):
        self.project_path = Path(os.path.abspath(project_path))
        self.config = config or load_config(self.project_path)
        state_directory = self.config.state_directory or self.project_path / ".tdd-rag"
        self.state_store = state_store or JsonStateStore(state_directory / STATE_FILE)
        self.file_system = file_system or LocalFileSystem()

        self._backend = backend
        self._embedder = embedder
        self._watcher = watcher
        self._scheduler = scheduler
        self._dimension_resolver = dimension_resolver
        self._progress_sink = progress_sink

        self.vector_store: VectorStore | None = None
        self.index_manager: IndexManager | None = None
        self.augmenter: RetrievalAugmenter | None = None

    async def start(self, watch: bool = False) -> None:
        """Build the pipeline, initialize the collection and load index state."""
        config = self.config
        user_id = await resolve_user_id(config, self.state_store)

        backend = self._backend or QdrantBackend(
            url=config.qdrant_url, api_key=config.qdrant_api_key
        )
        embedder = self._embedder or create_embedder_from_config(config)
        self.vector_store = VectorStore(
            backend,
            embedder,
            user_id=user_id,
            project_id=config.project_id,
            collection_prefix=config.collection_prefix,
            batch_size=config.batch_size,
            batch_delay_seconds=config.batch_delay_seconds,
            max_embedding_chars=config.max_embedding_chars,
            content_excerpt_chars=config.content_excerpt_chars,
            dimension_resolver=self._dimension_resolver,
        )
        await self.vector_store.initialize()

        watcher = self._watcher
        if watcher is None and watch:
            watcher = WatchdogFileWatcher(self.project_path)

        self.index_manager = IndexManager(
            config,
            Chunker(self.file_system),
            self.vector_store,
            file_system=self.file_system,
            state_store=self.state_store,
            watcher=watcher,
            scheduler=self._scheduler,
            project_root=self.project_path,
            progress_sink=self._progress_sink,
        )
        await self.index_manager.start()

        self.augmenter = RetrievalAugmenter(
            self.vector_store, CoverageAnalyzer(self.file_system), self.project_path
        )
        logger.info(f"🚀 Service ready for {self.project_path} (tenant {self.vector_store.tenant})")

    def _require_started(self) -> tuple[IndexManager, RetrievalAugmenter]:
        if self.index_manager is None or self.augmenter is None:
            raise RuntimeError("Service is not started")
        return self.index_manager, self.augmenter

    def discover_files(self) -> list[str]:
        """Supported files under the project that pass the include/exclude globs."""
        include = self.config.include_patterns
        exclude = self.config.exclude_patterns
        found: list[str] = []

        for directory, dir_names, file_names in os.walk(self.project_path):
            rel_dir = relative_posix(directory, self.project_path)
            dir_names[:] = sorted(
                name
                for name in dir_names
                if not any(
                    matches_pattern(
                        f"{name}/" if rel_dir == "." else f"{rel_dir}/{name}/", pattern
                    )
                    for pattern in exclude
                )
            )
            for file_name in sorted(file_names):
                path = os.path.join(directory, file_name)
                if Chunker.is_supported(path) and should_include(
                    path, include, exclude, self.project_path
                ):
                    found.append(path)

        if len(found) > self.config.max_index_size:
            logger.warning(
                f"⚠️ Found {len(found)} files, indexing the first {self.config.max_index_size}"
            )
            found = found[: self.config.max_index_size]
        return found

    async def index_project(self, progress_callback: ProgressCallback | None = None) -> bool:
        manager, _ = self._require_started()
        files = self.discover_files()
        manager.set_watched_files(files)
        return await manager.index_project_files(files, progress_callback)

    async def clear_index(self) -> bool:
        manager, _ = self._require_started()
        return await manager.clear_index()

    async def retrieve(
        self,
        query: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        cancel_signal: CancelSignal | None = None,
    ) -> RetrievalResult:
        _, augmenter = self._require_started()
        return await augmenter.retrieve(query, max_results, cancel_signal)

    async def build_context(
        self,
        query: str,
        feature: str = "",
        max_results: int = DEFAULT_MAX_RESULTS,
        cancel_signal: CancelSignal | None = None,
        untested_only: bool = False,
    ) -> ContextDocument:
        """Retrieve and shape context for ``query`` in one call."""
        manager, augmenter = self._require_started()
        result = await augmenter.retrieve(query, max_results, cancel_signal)
        if not untested_only:
            return augmenter.augment(query, feature, result.source_chunks, result.test_chunks)

        test_files = sorted(
            path for path in manager.watched_files if is_test_file(path, self.project_path)
        )
        return await augmenter.augment_untested(
            query, feature, result.source_chunks, result.test_chunks, test_files
        )

    async def status(self) -> dict[str, Any]:
        manager, _ = self._require_started()
        assert self.vector_store is not None
        status = manager.get_status()
        status["collection"] = self.vector_store.collection_name
        status["tenant"] = self.vector_store.tenant
        status["stored_records"] = await self.vector_store.count()
        return status

    async def close(self) -> None:
        if self.index_manager is not None:
            await self.index_manager.stop()
        if self.vector_store is not None:
            await self.vector_store.close()

    async def __aenter__(self) -> "RagService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
