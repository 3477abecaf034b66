"""Keeps the vector index in step with the files of a project."""

import asyncio
import os
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..analysis.base import CodeChunk
from ..analysis.chunker import Chunker
from ..config.models import IndexerConfig, ReindexStrategy
from ..errors import TddRagError
from ..filesystem import FileStat, FileSystem, LocalFileSystem, sha256_checksum
from ..indexer_logging import LogCategory, get_category_logger
from ..storage.base import Namespace
from ..storage.state import MemoryStateStore, StateStore
from ..storage.vector_store import VectorStore
from ..watcher.debounce import AsyncioScheduler, Debouncer, ScheduledTask, Scheduler
from ..watcher.handler import FileEventKind, FileWatcher, WatchSubscription
from ..watcher.patterns import should_include
from .namespaces import classify_namespace
from .types import (
    FileState,
    IndexedFileMetadata,
    IndexingProgress,
    IndexingStage,
    ProjectMetadata,
    UpdateOutcome,
)

logger = get_category_logger(LogCategory.INDEXER)

ProgressCallback = Callable[[IndexingProgress], None]

FILES_STATE_KEY = "indexed_files"
PROJECT_STATE_KEY = "project_metadata"


class _ParsedFile:
    __slots__ = ("path", "stat", "checksum", "chunks")

    def __init__(
        self, path: str, stat: FileStat, checksum: str, chunks: list[CodeChunk]
    ):
        self.path = path
        self.stat = stat
        self.checksum = checksum
        self.chunks = chunks


class IndexManager:
    """Decides what to re-index and when, and keeps file metadata current.

    Every record id listed in the file metadata exists in the vector
    store. Single-file updates and bulk passes run one at a time; a bulk
    pass requested while another is running is rejected.
    """

    def __init__(
        self,
        config: IndexerConfig,
        chunker: Chunker,
        vector_store: VectorStore,
        file_system: FileSystem | None = None,
        state_store: StateStore | None = None,
        watcher: FileWatcher | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.time,
        checksum: Callable[[bytes], str] = sha256_checksum,
        project_root: Path | None = None,
        progress_sink: ProgressCallback | None = None,
    ):
        self.config = config
        self.chunker = chunker
        self.vector_store = vector_store
        self.file_system = file_system or LocalFileSystem()
        self.state_store = state_store or MemoryStateStore()
        self.watcher = watcher
        self.scheduler = scheduler or AsyncioScheduler()
        self.clock = clock
        self.checksum = checksum
        self.project_root = Path(os.path.abspath(project_root)) if project_root else None
        self.progress_sink = progress_sink

        self.indexed_files: dict[str, IndexedFileMetadata] = {}
        self.project = ProjectMetadata(strategy=config.strategy)
        self.watched_files: set[str] = set()

        self._debouncer: Debouncer[str, FileEventKind] = Debouncer(
            self.scheduler, config.indexing_delay_seconds, self._process_event
        )
        self._lock = asyncio.Lock()
        self._is_indexing = False
        self._reindexing: set[str] = set()
        self._subscription: WatchSubscription | None = None
        self._cleanup_task: ScheduledTask | None = None
        self._loaded = False

    async def initialize(self) -> None:
        """Load persisted file and project metadata."""
        stored_files = await self.state_store.get(FILES_STATE_KEY, {}) or {}
        stored_project = await self.state_store.get(PROJECT_STATE_KEY)

        self.indexed_files = {
            path: IndexedFileMetadata.from_dict(entry)
            for path, entry in stored_files.items()
        }
        if stored_project:
            self.project = ProjectMetadata.from_dict(stored_project)
            self.project.strategy = self.config.strategy
            self.watched_files = set(self.project.included_files)
        self._loaded = True
        logger.info(f"📂 Loaded index state for {len(self.indexed_files)} files")

    async def start(self) -> None:
        """Load state and schedule periodic cleanup when enabled."""
        if not self._loaded:
            await self.initialize()
        if self.config.auto_cleanup and self._cleanup_task is None:
            interval = self.config.cleanup_interval_hours * 3600
            self._cleanup_task = self.scheduler.call_repeating(
                interval, self.run_cleanup
            )
            logger.debug(f"Scheduled cleanup every {self.config.cleanup_interval_hours}h")

    async def stop(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self._debouncer.cancel_all()

    @property
    def is_indexing(self) -> bool:
        return self._is_indexing

    def _normalize(self, file_path: str) -> str:
        return os.path.abspath(file_path)

    def _classify(self, path: str) -> Namespace:
        """Namespace of ``path`` judged below the project root.

        Without a configured root the common parent of the known files
        stands in, so ancestor directories never decide the namespace.
        """
        root = self.project_root
        if root is None:
            known = self.watched_files | set(self.indexed_files) | {path}
            root = Path(os.path.commonpath([os.path.dirname(p) for p in known]))
        return classify_namespace(path, root)

    def _emit(self, progress: IndexingProgress, callback: ProgressCallback | None) -> None:
        if callback is not None:
            callback(progress)
        if self.progress_sink is not None and self.config.enable_progress_notifications:
            self.progress_sink(progress)

    async def _persist(self) -> None:
        self.project.total_files = len(self.indexed_files)
        self.project.included_files = sorted(self.watched_files)
        await self.state_store.put(
            FILES_STATE_KEY,
            {path: meta.to_dict() for path, meta in self.indexed_files.items()},
        )
        await self.state_store.put(PROJECT_STATE_KEY, self.project.to_dict())

    def set_watched_files(self, file_paths: list[str]) -> None:
        """Replace the working set and (re)install the change subscription."""
        self.watched_files = {self._normalize(path) for path in file_paths}
        self.project.included_files = sorted(self.watched_files)

        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

        if self.config.auto_indexing and self.watcher is not None:
            self._subscription = self.watcher.watch(
                self.config.include_patterns,
                self.config.exclude_patterns,
                self.handle_file_event,
            )
        logger.info(f"👁️ Tracking {len(self.watched_files)} files")

    def handle_file_event(self, file_path: str, kind: FileEventKind) -> bool:
        """Debounce a raw file event; returns False when it is ignored."""
        path = self._normalize(file_path)
        if not should_include(
            path,
            self.config.include_patterns,
            self.config.exclude_patterns,
            self.project_root,
        ):
            return False
        if not self.chunker.is_supported(path):
            return False
        if kind is not FileEventKind.CREATED and not (
            path in self.watched_files or path in self.indexed_files
        ):
            return False
        self._debouncer.submit(path, kind)
        return True

    def pending_events(self) -> list[str]:
        return self._debouncer.pending()

    async def _process_event(self, file_path: str, kind: FileEventKind) -> None:
        if kind is FileEventKind.DELETED:
            await self.handle_file_deleted(file_path)
            return
        if kind is FileEventKind.CREATED:
            self.watched_files.add(file_path)
        await self.handle_file_changed(file_path)

    def get_file_state(self, file_path: str) -> FileState:
        path = self._normalize(file_path)
        if path in self._reindexing:
            return FileState.REINDEXING
        if path in self.indexed_files:
            return FileState.INDEXED
        return FileState.UNINDEXED

    def should_full_reindex(self) -> bool:
        """Smart strategy: rebuild when near capacity or when many files changed recently."""
        strategy = self.config.strategy
        if strategy is ReindexStrategy.FULL:
            return True
        if strategy is ReindexStrategy.INCREMENTAL:
            return False

        tracked = len(self.indexed_files)
        if tracked > self.config.full_reindex_capacity_ratio * self.config.max_index_size:
            logger.info(
                f"📈 Index holds {tracked} files, near the {self.config.max_index_size} limit"
            )
            return True
        if tracked == 0:
            return False

        cutoff = self.clock() - self.config.recent_change_window_seconds
        recent = sum(1 for meta in self.indexed_files.values() if meta.last_modified >= cutoff)
        if recent / tracked > self.config.full_reindex_change_ratio:
            logger.info(f"📈 {recent}/{tracked} files changed recently")
            return True
        return False

    async def handle_file_changed(self, file_path: str) -> UpdateOutcome:
        path = self._normalize(file_path)
        if self._is_indexing:
            logger.debug(f"Bulk indexing in progress, deferring {path}")
            self._debouncer.submit(path, FileEventKind.CHANGED)
            return UpdateOutcome.DEFERRED

        async with self._lock:
            try:
                return await self._update_file(path)
            except (TddRagError, OSError) as e:
                logger.error(f"❌ Failed to update {path}: {e}", extra={"file_path": path})
                return UpdateOutcome.FAILED

    async def _update_file(self, path: str) -> UpdateOutcome:
        try:
            stat = await self.file_system.stat(path)
            data = await self.file_system.read_file(path)
        except FileNotFoundError:
            return await self._delete_file(path)

        checksum = self.checksum(data)
        existing = self.indexed_files.get(path)
        if existing is not None and existing.checksum == checksum:
            if existing.last_modified < stat.mtime:
                existing.last_modified = stat.mtime
                await self._persist()
            logger.debug(f"Content unchanged, skipping {path}")
            return UpdateOutcome.SKIPPED

        self.watched_files.add(path)
        if self.should_full_reindex():
            # A bulk pass queued behind this update may already own the flag
            was_indexing = self._is_indexing
            self._is_indexing = True
            try:
                await self._full_reindex()
            finally:
                self._is_indexing = was_indexing
            return UpdateOutcome.FULL

        await self._reindex_file(path, stat, data, checksum)
        return UpdateOutcome.INCREMENTAL

    async def _reindex_file(
        self, path: str, stat: FileStat, data: bytes, checksum: str
    ) -> None:
        self._reindexing.add(path)
        try:
            await self._drop_records([path])
            chunks = self.chunker.parse(path, data.decode("utf-8", errors="replace"))
            namespace = self._classify(path)
            stored = await self._store(
                [_ParsedFile(path, stat, checksum, chunks)], namespace
            )
            await self._persist()
            logger.info(
                f"🔄 Re-indexed {path} ({stored} chunks, {namespace.value})",
                extra={"file_path": path, "namespace": namespace.value},
            )
        finally:
            self._reindexing.discard(path)

    async def handle_file_deleted(self, file_path: str) -> UpdateOutcome:
        path = self._normalize(file_path)
        if self._is_indexing:
            self._debouncer.submit(path, FileEventKind.DELETED)
            return UpdateOutcome.DEFERRED

        async with self._lock:
            try:
                return await self._delete_file(path)
            except (TddRagError, OSError) as e:
                logger.error(f"❌ Failed to remove {path}: {e}", extra={"file_path": path})
                return UpdateOutcome.FAILED

    async def _delete_file(self, path: str) -> UpdateOutcome:
        self.watched_files.discard(path)
        if path not in self.indexed_files:
            return UpdateOutcome.SKIPPED
        await self._drop_records([path])
        del self.indexed_files[path]
        await self._persist()
        logger.info(f"🗑️ Removed {path} from index", extra={"file_path": path})
        return UpdateOutcome.DELETED

    async def _drop_records(self, paths: list[str]) -> None:
        """Delete stored records of ``paths`` and forget their ids."""
        stale = [
            record_id
            for path in paths
            if path in self.indexed_files
            for record_id in self.indexed_files[path].chunk_ids
        ]
        if not stale:
            return
        await self.vector_store.delete_many(stale)
        for path in paths:
            if path in self.indexed_files:
                self.indexed_files[path].chunk_ids = []
                self.indexed_files[path].checksum = ""

    async def full_reindex(self, progress_callback: ProgressCallback | None = None) -> bool:
        """Clear this tenant's records and index the whole working set."""
        if self._is_indexing:
            logger.warning("⚠️ Indexing already in progress, full re-index rejected")
            return False
        self._is_indexing = True
        try:
            async with self._lock:
                return await self._full_reindex(progress_callback)
        except (TddRagError, OSError) as e:
            logger.error(f"❌ Full re-index failed: {e}")
            return False
        finally:
            self._is_indexing = False

    async def _full_reindex(self, progress_callback: ProgressCallback | None = None) -> bool:
        logger.info(f"🔁 Full re-index of {len(self.watched_files)} files")
        await self.vector_store.delete_all()
        self.indexed_files.clear()
        await self._persist()
        files = sorted(self.watched_files)
        success = await self._index_files(files, progress_callback)
        self.project.last_full_index_time = self.clock()
        await self._persist()
        return success

    async def index_project_files(
        self,
        file_paths: list[str],
        progress_callback: ProgressCallback | None = None,
    ) -> bool:
        """Index ``file_paths`` split into source and test namespaces.

        Returns False when another pass is running or when anything
        failed along the way.
        """
        if self._is_indexing:
            logger.warning("⚠️ Indexing already in progress, request rejected")
            return False
        self._is_indexing = True
        try:
            async with self._lock:
                files = sorted({self._normalize(path) for path in file_paths})
                self.watched_files.update(files)
                success = await self._index_files(files, progress_callback)
                await self._persist()
                return success
        except (TddRagError, OSError) as e:
            logger.error(f"❌ Indexing failed: {e}")
            return False
        finally:
            self._is_indexing = False

    async def _index_files(
        self, files: list[str], progress_callback: ProgressCallback | None
    ) -> bool:
        supported = [path for path in files if self.chunker.is_supported(path)]
        groups: dict[Namespace, list[str]] = {Namespace.SOURCE: [], Namespace.TEST: []}
        for path in supported:
            groups[self._classify(path)].append(path)

        total = len(supported)
        self._emit(
            IndexingProgress(
                IndexingStage.SCANNING,
                0,
                total,
                message=(
                    f"Found {len(groups[Namespace.SOURCE])} source files and "
                    f"{len(groups[Namespace.TEST])} test files"
                ),
            ),
            progress_callback,
        )
        if total == 0:
            logger.warning("⚠️ No supported files to index")
            return False

        success = True
        processed = 0
        batch_size = self.config.file_batch_size
        for namespace, group in groups.items():
            if not group:
                continue
            stored_in_group = 0
            for start in range(0, len(group), batch_size):
                batch = group[start : start + batch_size]
                self._emit(
                    IndexingProgress(
                        IndexingStage.PARSING, processed, total, current_file=batch[0]
                    ),
                    progress_callback,
                )
                parsed = await self._parse_batch(batch)
                await self._drop_records([item.path for item in parsed])

                chunk_count = sum(len(item.chunks) for item in parsed)
                self._emit(
                    IndexingProgress(
                        IndexingStage.EMBEDDING,
                        processed,
                        total,
                        current_file=batch[-1],
                        message=f"Embedding {chunk_count} {namespace.value} chunks",
                    ),
                    progress_callback,
                )
                stored = await self._store(parsed, namespace)
                if stored < chunk_count or len(parsed) < len(batch):
                    success = False
                stored_in_group += stored
                processed += len(batch)
                await self._persist()

                self._emit(
                    IndexingProgress(
                        IndexingStage.STORING,
                        processed,
                        total,
                        current_file=batch[-1],
                        message=f"Stored {stored}/{chunk_count} {namespace.value} chunks",
                    ),
                    progress_callback,
                )

            if stored_in_group == 0:
                logger.warning(f"⚠️ No {namespace.value} chunks were stored")
                success = False

        self._emit(
            IndexingProgress(
                IndexingStage.COMPLETE,
                total,
                total,
                message="Indexing complete" if success else "Indexing finished with errors",
            ),
            progress_callback,
        )
        logger.info(
            f"{'✅' if success else '⚠️'} Indexed {total} files "
            f"({len(self.indexed_files)} tracked)"
        )
        return success

    async def _parse_batch(self, batch: list[str]) -> list[_ParsedFile]:
        parsed = []
        for path in batch:
            try:
                stat = await self.file_system.stat(path)
                data = await self.file_system.read_file(path)
            except OSError as e:
                logger.error(f"❌ Failed to read {path}: {e}", extra={"file_path": path})
                continue
            chunks = self.chunker.parse(path, data.decode("utf-8", errors="replace"))
            parsed.append(_ParsedFile(path, stat, self.checksum(data), chunks))
        return parsed

    async def _store(self, parsed: list[_ParsedFile], namespace: Namespace) -> int:
        """Upsert chunks of ``parsed`` and record the ids that were stored.

        A file whose chunks were not all stored keeps an empty checksum so
        the next change event retries it.
        """
        chunks = [chunk for item in parsed for chunk in item.chunks]
        stored_ids: set[str] = set()
        if chunks:
            result = await self.vector_store.upsert(chunks, namespace)
            stored_ids = set(result.ids)

        stored_count = 0
        for item in parsed:
            expected = [self.vector_store.record_id_for(c, namespace) for c in item.chunks]
            kept = [record_id for record_id in expected if record_id in stored_ids]
            complete = len(kept) == len(expected)
            stored_count += len(kept)
            self.indexed_files[item.path] = IndexedFileMetadata(
                file_path=item.path,
                last_modified=item.stat.mtime,
                checksum=item.checksum if complete else "",
                size=item.stat.size,
                chunk_ids=kept,
            )
        return stored_count

    async def clear_index(self) -> bool:
        """Delete this tenant's records and forget all file metadata."""
        if self._is_indexing:
            logger.warning("⚠️ Indexing in progress, clear rejected")
            return False
        async with self._lock:
            try:
                await self.vector_store.delete_all()
                self.indexed_files.clear()
                self.project = ProjectMetadata(
                    strategy=self.config.strategy,
                    included_files=sorted(self.watched_files),
                )
                await self._persist()
            except (TddRagError, OSError) as e:
                logger.error(f"❌ Failed to clear index: {e}")
                return False
        logger.info("🧹 Index cleared")
        return True

    async def run_cleanup(self) -> int:
        """Drop tracked files that no longer exist and are older than the threshold."""
        threshold = self.config.cleanup_threshold_days * 86400
        now = self.clock()
        removed = 0
        for path, meta in list(self.indexed_files.items()):
            if await self.file_system.exists(path):
                continue
            if now - meta.last_modified < threshold:
                continue
            if await self.handle_file_deleted(path) is UpdateOutcome.DELETED:
                removed += 1
        if removed:
            logger.info(f"🧹 Cleanup removed {removed} stale files")
        return removed

    def get_status(self) -> dict[str, Any]:
        return {
            "tracked_files": len(self.indexed_files),
            "watched_files": len(self.watched_files),
            "chunks": sum(len(m.chunk_ids) for m in self.indexed_files.values()),
            "is_indexing": self._is_indexing,
            "pending_events": len(self._debouncer.pending()),
            "strategy": self.config.strategy.value,
            "last_full_index_time": self.project.last_full_index_time,
            "auto_indexing": self.config.auto_indexing,
        }
