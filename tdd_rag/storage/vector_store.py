"""Tenant- and namespace-scoped embedding storage over a vector backend."""

import asyncio
import inspect
import re
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from pydantic import ValidationError

from ..analysis.base import CodeChunk
from ..embeddings.base import Embedder
from ..errors import (
    DimensionMismatchError,
    ErrorCategory,
    VectorStoreError,
    classify_error,
    wrap_backend_error,
)
from ..indexer_logging import LogCategory, get_category_logger
from .base import EmbeddingMetadata, Namespace, StorageResult, VectorBackend, VectorPoint

logger = get_category_logger(LogCategory.STORAGE)

DIMENSION_PROBE_TEXT = "Sample text to determine embedding dimension"
TRUNCATION_MARKER = "... [truncated]"


class DimensionResolution(Enum):
    """Caller decision when an existing collection has the wrong size."""

    RECREATE = "recreate"
    ADAPT = "adapt"


DimensionResolver = Callable[
    [DimensionMismatchError], DimensionResolution | Awaitable[DimensionResolution]
]


def sanitize_name(value: str) -> str:
    """Lowercase and replace anything outside ``[a-z0-9-]`` with ``-``."""
    return re.sub(r"[^a-z0-9-]", "-", value.lower())


def fit_vector(vector: list[float], dimension: int) -> list[float]:
    """Pad with zeros or truncate to ``dimension``."""
    if len(vector) > dimension:
        return vector[:dimension]
    if len(vector) < dimension:
        return vector + [0.0] * (dimension - len(vector))
    return vector


class VectorStore:
    """Embeds chunks and stores them in one collection per user.

    Records are scoped by ``user_id``, ``project_id`` and namespace through
    payload filters, and identified as ``{tenant}_{namespace}_{chunk_id}``.
    """

    def __init__(
        self,
        backend: VectorBackend,
        embedder: Embedder,
        user_id: str,
        project_id: str,
        collection_prefix: str = "tdd-ai-companion",
        batch_size: int = 5,
        batch_delay_seconds: float = 1.0,
        max_embedding_chars: int = 8192,
        content_excerpt_chars: int = 1000,
        dimension_resolver: DimensionResolver | None = None,
    ):
        if not user_id:
            raise ValueError("user_id is required")
        if not project_id:
            raise ValueError("project_id is required")

        self.backend = backend
        self.embedder = embedder
        self.user_id = user_id
        self.project_id = project_id
        self.collection_name = f"{sanitize_name(collection_prefix)}-{sanitize_name(user_id)}"
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.max_embedding_chars = max_embedding_chars
        self.content_excerpt_chars = content_excerpt_chars
        self.dimension_resolver = dimension_resolver

        self.dimension: int | None = None
        self._initialized = False

    @property
    def tenant(self) -> str:
        return f"{self.user_id}.{self.project_id}"

    def record_id_for(self, chunk: CodeChunk, namespace: Namespace) -> str:
        return f"{self.tenant}_{namespace.value}_{chunk.id}"

    def _scope(self, namespace: Namespace | None = None) -> dict[str, Any]:
        scope: dict[str, Any] = {
            "user_id": self.user_id,
            "project_id": self.project_id,
        }
        if namespace is not None:
            scope["namespace"] = namespace.value
        return scope

    async def initialize(self) -> None:
        """Connect, probe the embedding size and ensure the collection exists."""
        await self.backend.connect()
        model_dimension = await self._probe_dimension()

        if not await self.backend.collection_exists(self.collection_name):
            await self.backend.create_collection(self.collection_name, model_dimension)
            self.dimension = model_dimension
            self._initialized = True
            return

        existing = await self.backend.get_vector_size(self.collection_name)
        self.dimension = existing
        if existing != model_dimension:
            mismatch = DimensionMismatchError(
                self.collection_name, expected=model_dimension, actual=existing
            )
            logger.warning(f"⚠️ {mismatch.message}")
            resolution = await self._resolve_mismatch(mismatch)

            if resolution is DimensionResolution.RECREATE:
                await self.backend.delete_collection(self.collection_name)
                await self.backend.create_collection(
                    self.collection_name, model_dimension
                )
                self.dimension = model_dimension
            else:
                logger.info(
                    f"Adapting embeddings from {model_dimension} to {existing} dimensions"
                )

        self._initialized = True
        logger.info(
            f"✅ Vector store ready: {self.collection_name} ({self.dimension} dimensions)"
        )

    async def _resolve_mismatch(
        self, mismatch: DimensionMismatchError
    ) -> DimensionResolution:
        if self.dimension_resolver is None:
            raise mismatch
        decision = self.dimension_resolver(mismatch)
        if inspect.isawaitable(decision):
            decision = await decision
        return decision

    async def _probe_dimension(self) -> int:
        result = await self.embedder.embed_text(DIMENSION_PROBE_TEXT)
        if result.success:
            logger.debug(f"Determined embedding dimension: {result.dimension}")
            return result.dimension

        error = result.exception or VectorStoreError(result.error or "unknown error")
        if classify_error(error) is not ErrorCategory.OTHER:
            raise wrap_backend_error(error, "Probing embedding dimension")

        fallback = int(self.embedder.get_model_info().get("dimensions", 0))
        if fallback <= 0:
            raise wrap_backend_error(error, "Probing embedding dimension")
        logger.warning(
            f"⚠️ Could not determine embedding dimension ({result.error}), "
            f"using model default {fallback}"
        )
        return fallback

    def _require_initialized(self) -> int:
        if not self._initialized or self.dimension is None:
            raise VectorStoreError("Vector store is not initialized")
        return self.dimension

    def prepare_text(self, text: str) -> str:
        if len(text) > self.max_embedding_chars:
            return text[: self.max_embedding_chars] + TRUNCATION_MARKER
        return text

    async def embed(
        self,
        texts: list[str],
        strict: bool = False,
        input_type: str = "document",
    ) -> list[list[float]]:
        """Embed texts at the collection's dimensionality.

        Blank texts map to zero vectors. A failed embedding also maps to a
        zero vector unless ``strict`` is set, in which case the classified
        error is raised.
        """
        dimension = self._require_initialized()
        vectors: list[list[float]] = [[0.0] * dimension for _ in texts]

        pending = [(i, self.prepare_text(t)) for i, t in enumerate(texts) if t.strip()]
        if not pending:
            return vectors

        results = await self.embedder.embed_batch(
            [text for _, text in pending], input_type=input_type
        )
        for (index, _), result in zip(pending, results, strict=True):
            if result.success:
                vectors[index] = fit_vector(result.embedding, dimension)
                continue

            error = result.exception or VectorStoreError(result.error or "unknown error")
            if strict:
                raise wrap_backend_error(error, "Embedding failed")
            logger.warning(
                f"⚠️ Embedding failed ({classify_error(error).value}), "
                f"using zero vector: {result.error}"
            )

        return vectors

    async def upsert(
        self,
        chunks: list[CodeChunk],
        namespace: Namespace,
        batch_size: int | None = None,
    ) -> StorageResult:
        """Embed and store chunks batch by batch.

        A failing batch is logged and skipped; later batches still run.
        """
        start_time = time.time()
        self._require_initialized()
        size = batch_size or self.batch_size
        batches = [chunks[i : i + size] for i in range(0, len(chunks), size)]
        result = StorageResult(success=True, operation="upsert")

        for number, batch in enumerate(batches, start=1):
            if number > 1 and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)

            try:
                stored = await self._upsert_batch(batch, namespace)
            except (VectorStoreError, ValidationError) as e:
                files = sorted({chunk.file_path for chunk in batch})
                message = f"Batch {number}/{len(batches)} failed ({', '.join(files)}): {e}"
                logger.error(
                    f"❌ {message}",
                    extra={"batch": number, "namespace": namespace.value},
                )
                result.items_failed += len(batch)
                result.errors.append(message)
                continue

            result.items_processed += len(stored)
            result.ids.extend(stored)
            logger.debug(
                f"Stored batch {number}/{len(batches)} ({len(stored)} chunks, {namespace.value})"
            )

        result.success = result.items_failed == 0
        result.processing_time = time.time() - start_time
        return result

    async def _upsert_batch(
        self, batch: list[CodeChunk], namespace: Namespace
    ) -> list[str]:
        vectors = await self.embed([chunk.content for chunk in batch], strict=True)
        points = []
        for chunk, vector in zip(batch, vectors, strict=True):
            record_id = self.record_id_for(chunk, namespace)
            metadata = EmbeddingMetadata.from_chunk(
                chunk,
                record_id=record_id,
                user_id=self.user_id,
                project_id=self.project_id,
                namespace=namespace,
                excerpt_chars=self.content_excerpt_chars,
            )
            points.append(
                VectorPoint(id=record_id, vector=vector, payload=metadata.to_payload())
            )

        stored = await self.backend.upsert_points(self.collection_name, points)
        return stored.ids

    async def query(
        self, query_text: str, top_k: int, namespace: Namespace
    ) -> list[CodeChunk]:
        """Most similar chunks in ``namespace``; an empty namespace gives ``[]``."""
        self._require_initialized()
        if not query_text.strip() or top_k <= 0:
            return []
        if not await self.backend.collection_exists(self.collection_name):
            return []

        vectors = await self.embed([query_text], strict=True, input_type="query")
        hits = await self.backend.search_similar(
            self.collection_name,
            vectors[0],
            limit=top_k,
            filter_conditions=self._scope(namespace),
        )

        chunks = []
        for hit in hits:
            try:
                chunks.append(EmbeddingMetadata.model_validate(hit.payload).to_chunk())
            except ValidationError as e:
                logger.warning(f"⚠️ Skipping record {hit.id} with invalid metadata: {e}")
        return chunks

    async def delete_many(self, record_ids: list[str]) -> StorageResult:
        self._require_initialized()
        if not record_ids:
            return StorageResult(success=True, operation="delete")
        return await self.backend.delete_points(self.collection_name, record_ids)

    async def delete_all(self, namespace: Namespace | None = None) -> StorageResult:
        """Delete every record of this tenant, optionally one namespace only."""
        self._require_initialized()
        if not await self.backend.collection_exists(self.collection_name):
            return StorageResult(success=True, operation="clear")
        return await self.backend.delete_by_filter(
            self.collection_name, self._scope(namespace)
        )

    async def count(self, namespace: Namespace | None = None) -> int:
        self._require_initialized()
        if not await self.backend.collection_exists(self.collection_name):
            return 0
        return await self.backend.count(self.collection_name, self._scope(namespace))

    async def close(self) -> None:
        await self.backend.close()
