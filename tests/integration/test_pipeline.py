"""
Integration tests for the full indexing pipeline.

Runs the service over a real directory with the embedded Qdrant backend
and the deterministic test embedder.
"""

import pytest
import pytest_asyncio

from tdd_rag.config.models import IndexerConfig
from tdd_rag.indexing.types import UpdateOutcome
from tdd_rag.service import RagService
from tdd_rag.storage.base import Namespace
from tdd_rag.storage.qdrant import QdrantBackend
from tdd_rag.storage.state import JsonStateStore
from tdd_rag.storage.vector_store import DimensionResolution
from tests.conftest import DummyEmbedder

pytestmark = pytest.mark.integration


def pipeline_config(tmp_path) -> IndexerConfig:
    return IndexerConfig(
        batch_delay_seconds=0.0,
        user_id="integration",
        project_id="sample",
        auto_cleanup=False,
        strategy="incremental",
        state_directory=tmp_path / "state",
    )


@pytest_asyncio.fixture
async def backend():
    """Embedded Qdrant kept open across service restarts within a test."""
    qdrant = QdrantBackend(url=":memory:")
    await qdrant.connect()
    yield qdrant
    await qdrant.close()


async def start_service(repo, tmp_path, backend, embedder=None) -> RagService:
    config = pipeline_config(tmp_path)
    service = RagService(
        repo,
        config=config,
        backend=backend,
        embedder=embedder or DummyEmbedder(dimension=16),
        state_store=JsonStateStore(config.state_directory / "index_state.json"),
    )
    await service.start()
    return service


def assert_consistent(manager, stored_ids):
    tracked = {rid for meta in manager.indexed_files.values() for rid in meta.chunk_ids}
    assert tracked == stored_ids


async def stored_record_ids(service) -> set[str]:
    store = service.vector_store
    hits = await store.backend.search_similar(
        store.collection_name,
        [1.0] * store.dimension,
        limit=1000,
        filter_conditions={"user_id": store.user_id, "project_id": store.project_id},
    )
    return {hit.payload["record_id"] for hit in hits}


class TestQdrantPipeline:
    """Index, update, delete and clear against embedded Qdrant."""

    @pytest.mark.asyncio
    async def test_index_and_retrieve(self, temp_repo, tmp_path, backend):
        service = await start_service(temp_repo, tmp_path, backend)

        assert await service.index_project()

        store = service.vector_store
        assert await store.count(Namespace.SOURCE) == 5
        assert await store.count(Namespace.TEST) >= 1
        assert_consistent(service.index_manager, await stored_record_ids(service))

        result = await service.retrieve("function add(a, b)", max_results=3)
        assert len(result.source_chunks) == 3
        assert all(chunk.file_path.startswith(str(temp_repo)) for chunk in result.source_chunks)
        assert result.test_chunks

    @pytest.mark.asyncio
    async def test_incremental_update_and_delete(self, temp_repo, tmp_path, backend):
        service = await start_service(temp_repo, tmp_path, backend)
        await service.index_project()
        manager = service.index_manager
        calc_js = str(temp_repo / "src" / "calc.js")

        (temp_repo / "src" / "calc.js").write_text(
            "function multiply(a, b) {\n  return a * b;\n}\n"
        )
        assert await manager.handle_file_changed(calc_js) is UpdateOutcome.INCREMENTAL
        assert [rid.rsplit(":", 2)[1] for rid in manager.indexed_files[calc_js].chunk_ids] == [
            "multiply"
        ]
        assert_consistent(manager, await stored_record_ids(service))

        (temp_repo / "src" / "calc.js").unlink()
        assert await manager.handle_file_changed(calc_js) is UpdateOutcome.DELETED
        assert calc_js not in manager.indexed_files
        assert_consistent(manager, await stored_record_ids(service))

        await service.close()

    @pytest.mark.asyncio
    async def test_state_survives_restart(self, temp_repo, tmp_path, backend):
        first = await start_service(temp_repo, tmp_path, backend)
        await first.index_project()
        tracked = dict(first.index_manager.indexed_files)
        await first.index_manager.stop()

        second = await start_service(temp_repo, tmp_path, backend)
        calc_py = str(temp_repo / "src" / "calc.py")

        assert second.index_manager.indexed_files == tracked
        assert await second.index_manager.handle_file_changed(calc_py) is UpdateOutcome.SKIPPED

    @pytest.mark.asyncio
    async def test_clear_keeps_other_projects(self, temp_repo, tmp_path, backend):
        service = await start_service(temp_repo, tmp_path, backend)
        await service.index_project()

        other = RagService(
            temp_repo,
            config=pipeline_config(tmp_path).model_copy(update={"project_id": "other"}),
            backend=backend,
            embedder=DummyEmbedder(dimension=16),
            state_store=JsonStateStore(tmp_path / "other" / "index_state.json"),
        )
        await other.start()
        await other.index_project()

        assert await service.clear_index()

        assert await service.vector_store.count() == 0
        assert await other.vector_store.count() > 0
        assert (await service.retrieve("add")).is_empty

    @pytest.mark.asyncio
    async def test_dimension_mismatch_recreate(self, temp_repo, tmp_path, backend):
        service = await start_service(temp_repo, tmp_path, backend)
        await service.index_project()
        await service.index_manager.stop()

        config = pipeline_config(tmp_path)
        resized = RagService(
            temp_repo,
            config=config,
            backend=backend,
            embedder=DummyEmbedder(dimension=32),
            state_store=JsonStateStore(tmp_path / "resized" / "index_state.json"),
            dimension_resolver=lambda mismatch: DimensionResolution.RECREATE,
        )
        await resized.start()

        assert resized.vector_store.dimension == 32
        assert await resized.vector_store.count() == 0
