"""
Shared fixtures for the tdd-rag test suite.

Provides test fixtures for:
- Deterministic embedder and in-memory vector backend
- Fake file system and manually driven scheduler
- Vector store and index manager wiring
- Temporary repository creation
"""

import asyncio
import hashlib
import os
import time
from pathlib import Path
from typing import Any

import numpy as np
import pytest
import pytest_asyncio

from tdd_rag.analysis.chunker import Chunker
from tdd_rag.config.models import IndexerConfig
from tdd_rag.embeddings.base import Embedder, EmbeddingResult
from tdd_rag.filesystem import FileStat, FileSystem
from tdd_rag.indexing.manager import IndexManager
from tdd_rag.storage.base import SearchHit, StorageResult, VectorBackend, VectorPoint
from tdd_rag.storage.state import MemoryStateStore
from tdd_rag.storage.vector_store import VectorStore
from tdd_rag.watcher.debounce import ScheduledTask, Scheduler

PROJECT_ROOT = "/project"
CLOCK_NOW = 10_000_000.0


# ---------------------------------------------------------------------------
# Mock embedder
# ---------------------------------------------------------------------------


class DummyEmbedder(Embedder):
    """Fast, deterministic embedder for testing.

    Texts containing any of ``fail_markers`` come back as failed results
    carrying ``error``. ``gate`` (an ``asyncio.Event``) blocks every call
    until it is set.
    """

    def __init__(
        self,
        dimension: int = 8,
        error: Exception | None = None,
        fail_markers: tuple[str, ...] = (),
    ):
        self.dimension = dimension
        self.error = error
        self.fail_markers = fail_markers
        self.gate: asyncio.Event | None = None
        self.calls: list[list[str]] = []

    def vector_for(self, text: str) -> list[float]:
        seed = int(hashlib.sha256(text.encode()).hexdigest()[:8], 16)
        rng = np.random.default_rng(seed)
        return rng.random(self.dimension).astype(np.float32).tolist()

    def _fails(self, text: str) -> bool:
        if self.error is None:
            return False
        return not self.fail_markers or any(m in text for m in self.fail_markers)

    async def embed_batch(
        self, texts: list[str], input_type: str = "document"
    ) -> list[EmbeddingResult]:
        self.calls.append(list(texts))
        if self.gate is not None:
            await self.gate.wait()

        results = []
        for text in texts:
            if self._fails(text):
                results.append(
                    EmbeddingResult.failed(text, "dummy", self.error, time.time())
                )
            else:
                results.append(
                    EmbeddingResult(
                        text=text,
                        embedding=self.vector_for(text),
                        model="dummy",
                        token_count=len(text.split()),
                        processing_time=0.001,
                    )
                )
        return results

    def get_model_info(self) -> dict[str, Any]:
        return {"provider": "dummy", "model": "dummy", "dimensions": self.dimension}

    @property
    def embedded_texts(self) -> list[str]:
        return [text for call in self.calls for text in call]


# ---------------------------------------------------------------------------
# In-memory vector backend
# ---------------------------------------------------------------------------


def _matches(payload: dict[str, Any], conditions: dict[str, Any] | None) -> bool:
    return all(payload.get(k) == v for k, v in (conditions or {}).items())


class InMemoryBackend(VectorBackend):
    """Dictionary-backed vector backend with cosine scoring."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, Any]] = {}
        self.connected = False
        self.upsert_calls = 0
        self.search_calls = 0

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def collection_exists(self, collection_name: str) -> bool:
        return collection_name in self.collections

    async def get_vector_size(self, collection_name: str) -> int:
        return self.collections[collection_name]["size"]

    async def create_collection(self, collection_name: str, vector_size: int) -> None:
        self.collections[collection_name] = {"size": vector_size, "points": {}}

    async def delete_collection(self, collection_name: str) -> None:
        self.collections.pop(collection_name, None)

    async def upsert_points(
        self, collection_name: str, points: list[VectorPoint]
    ) -> StorageResult:
        self.upsert_calls += 1
        collection = self.collections[collection_name]
        for point in points:
            assert len(point.vector) == collection["size"]
            collection["points"][point.id] = point
        return StorageResult(
            success=True,
            operation="upsert",
            items_processed=len(points),
            ids=[point.id for point in points],
        )

    async def delete_points(
        self, collection_name: str, record_ids: list[str]
    ) -> StorageResult:
        points = self.collections[collection_name]["points"]
        for record_id in record_ids:
            points.pop(record_id, None)
        return StorageResult(
            success=True, operation="delete", items_processed=len(record_ids)
        )

    async def delete_by_filter(
        self, collection_name: str, filter_conditions: dict[str, Any]
    ) -> StorageResult:
        points = self.collections[collection_name]["points"]
        doomed = [pid for pid, p in points.items() if _matches(p.payload, filter_conditions)]
        for pid in doomed:
            del points[pid]
        return StorageResult(success=True, operation="clear", items_processed=len(doomed))

    async def search_similar(
        self,
        collection_name: str,
        query_vector: list[float],
        limit: int = 10,
        filter_conditions: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        self.search_calls += 1
        query = np.asarray(query_vector, dtype=np.float64)
        hits = []
        for point in self.collections[collection_name]["points"].values():
            if not _matches(point.payload, filter_conditions):
                continue
            vector = np.asarray(point.vector, dtype=np.float64)
            norm = np.linalg.norm(query) * np.linalg.norm(vector)
            score = float(query @ vector / norm) if norm else 0.0
            hits.append(SearchHit(id=point.id, score=score, payload=dict(point.payload)))
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]

    async def count(
        self, collection_name: str, filter_conditions: dict[str, Any] | None = None
    ) -> int:
        points = self.collections[collection_name]["points"].values()
        return sum(1 for p in points if _matches(p.payload, filter_conditions))

    def ids(self) -> set[str]:
        return {rid for c in self.collections.values() for rid in c["points"]}


# ---------------------------------------------------------------------------
# File system and scheduler doubles
# ---------------------------------------------------------------------------


class FakeFileSystem(FileSystem):
    """In-memory files with explicit modification times."""

    def __init__(self) -> None:
        self.files: dict[str, tuple[bytes, float]] = {}

    def write(self, path: str, content: str, mtime: float = 1000.0) -> str:
        key = os.path.abspath(path)
        self.files[key] = (content.encode("utf-8"), mtime)
        return key

    def remove(self, path: str) -> None:
        self.files.pop(os.path.abspath(path), None)

    async def read_file(self, path: str) -> bytes:
        try:
            return self.files[os.path.abspath(path)][0]
        except KeyError:
            raise FileNotFoundError(path) from None

    async def stat(self, path: str) -> FileStat:
        try:
            data, mtime = self.files[os.path.abspath(path)]
        except KeyError:
            raise FileNotFoundError(path) from None
        return FileStat(mtime=mtime, size=len(data))

    async def exists(self, path: str) -> bool:
        return os.path.abspath(path) in self.files


class _ManualTask(ScheduledTask):
    def __init__(self, due: float, callback: Any):
        self.due = due
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Scheduler whose clock only moves when ``advance`` is awaited."""

    def __init__(self) -> None:
        self.now = 0.0
        self.tasks: list[_ManualTask] = []

    def call_later(self, delay: float, callback: Any) -> ScheduledTask:
        task = _ManualTask(self.now + delay, callback)
        self.tasks.append(task)
        return task

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.tasks if not t.cancelled and t.due <= target]
            if not due:
                break
            task = min(due, key=lambda t: t.due)
            self.tasks.remove(task)
            self.now = task.due
            result = task.callback()
            if asyncio.iscoroutine(result):
                await result
        self.now = target

    @property
    def pending(self) -> list[_ManualTask]:
        return [t for t in self.tasks if not t.cancelled]


# ---------------------------------------------------------------------------
# Wiring fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def dummy_embedder() -> DummyEmbedder:
    return DummyEmbedder()


@pytest.fixture()
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture()
def fake_fs() -> FakeFileSystem:
    return FakeFileSystem()


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def state_store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture()
def test_config() -> IndexerConfig:
    return IndexerConfig(
        batch_delay_seconds=0.0,
        user_id="alice",
        project_id="demo",
        include_patterns=["**/*.js", "**/*.ts", "**/*.py"],
    )


@pytest_asyncio.fixture()
async def vector_store(backend, dummy_embedder) -> VectorStore:
    store = VectorStore(
        backend,
        dummy_embedder,
        user_id="alice",
        project_id="demo",
        batch_delay_seconds=0.0,
    )
    await store.initialize()
    dummy_embedder.calls.clear()
    return store


@pytest.fixture()
def make_manager(test_config, vector_store, fake_fs, state_store, scheduler):
    """Factory for an IndexManager over the fake file system."""

    def _make(config: IndexerConfig | None = None, **kwargs: Any) -> IndexManager:
        options = {
            "file_system": fake_fs,
            "state_store": state_store,
            "scheduler": scheduler,
            "clock": lambda: CLOCK_NOW,
            "project_root": Path(PROJECT_ROOT),
        }
        options.update(kwargs)
        return IndexManager(config or test_config, Chunker(fake_fs), vector_store, **options)

    return _make


# ---------------------------------------------------------------------------
# Sample sources
# ---------------------------------------------------------------------------

CALC_JS = """function add(a, b) {
  return a + b;
}

class Calc {
  sum(a, b) {
    return a + b;
  }
}
"""

CALC_TEST_JS = """describe("calc", () => {
  it("adds numbers", () => {
    expect(add(1, 2)).toBe(3);
  });
});
"""

CALC_PY = """def add(a, b):
    return a + b


class Calc:
    def sum(self, a, b):
        return a + b
"""


@pytest.fixture()
def temp_repo(tmp_path_factory) -> Path:
    """Create a temporary repository with source and test files."""
    repo_path = tmp_path_factory.mktemp("sample_repo")

    (repo_path / "src").mkdir()
    (repo_path / "src" / "calc.js").write_text(CALC_JS)
    (repo_path / "src" / "calc.py").write_text(CALC_PY)

    (repo_path / "test").mkdir()
    (repo_path / "test" / "calc.test.js").write_text(CALC_TEST_JS)

    (repo_path / "node_modules" / "lib").mkdir(parents=True)
    (repo_path / "node_modules" / "lib" / "index.js").write_text(
        "function vendored() {\n  return 1;\n}\n"
    )
    (repo_path / "README.md").write_text("# sample\n")
    return repo_path
