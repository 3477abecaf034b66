"""Qdrant vector backend built on the async client."""

import time
import uuid
import warnings
from typing import Any

from ..errors import VectorStoreError, wrap_backend_error
from ..indexer_logging import LogCategory, get_category_logger
from .base import SearchHit, StorageResult, VectorBackend, VectorPoint

logger = get_category_logger(LogCategory.STORAGE)

try:
    from qdrant_client import AsyncQdrantClient
    from qdrant_client.models import (
        Distance,
        FieldCondition,
        Filter,
        FilterSelector,
        MatchValue,
        PointIdsList,
        PointStruct,
        VectorParams,
    )

    QDRANT_AVAILABLE = True
except ImportError:
    QDRANT_AVAILABLE = False

POINT_ID_NAMESPACE = uuid.UUID("5b0f8a52-8d4e-4f0c-9a53-6a3c2b1f7e11")


def point_id_for(record_id: str) -> str:
    """Qdrant only accepts integer or UUID ids; map record ids deterministically."""
    return str(uuid.uuid5(POINT_ID_NAMESPACE, record_id))


class QdrantBackend(VectorBackend):
    """Qdrant implementation of the vector backend port.

    ``url`` may be a server URL or ``":memory:"`` for the embedded local
    mode used in tests.
    """

    DISTANCE_METRICS = {
        "cosine": "COSINE",
        "euclidean": "EUCLID",
        "dot": "DOT",
    }

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: str | None = None,
        timeout: int = 60,
        distance_metric: str = "cosine",
    ):
        if not QDRANT_AVAILABLE:
            raise ImportError(
                "Qdrant client not available. Install with: pip install qdrant-client"
            )
        if distance_metric not in self.DISTANCE_METRICS:
            raise ValueError(
                f"Invalid distance metric: {distance_metric}. "
                f"Available: {list(self.DISTANCE_METRICS)}"
            )

        self.url = url
        self.api_key = api_key or None
        self.timeout = timeout
        self.distance = getattr(Distance, self.DISTANCE_METRICS[distance_metric])
        self.client: Any = None

    async def connect(self) -> None:
        if self.client is not None:
            return
        try:
            with warnings.catch_warnings():
                warnings.filterwarnings(
                    "ignore", message="Api key is used with an insecure connection"
                )
                if self.url == ":memory:":
                    self.client = AsyncQdrantClient(location=":memory:")
                else:
                    self.client = AsyncQdrantClient(
                        url=self.url, api_key=self.api_key, timeout=self.timeout
                    )
            await self.client.get_collections()
        except Exception as e:
            self.client = None
            raise VectorStoreError(
                f"Failed to connect to Qdrant at {self.url}: {e}",
                suggestion="check QDRANT_URL and that the server is running",
            ) from e
        logger.debug(f"Connected to Qdrant at {self.url}")

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None

    def _require_client(self) -> Any:
        if self.client is None:
            raise VectorStoreError("Qdrant backend is not connected")
        return self.client

    async def collection_exists(self, collection_name: str) -> bool:
        client = self._require_client()
        try:
            return bool(await client.collection_exists(collection_name))
        except Exception as e:
            raise wrap_backend_error(e, f"Checking collection {collection_name}") from e

    async def get_vector_size(self, collection_name: str) -> int:
        client = self._require_client()
        try:
            info = await client.get_collection(collection_name)
        except Exception as e:
            raise wrap_backend_error(e, f"Describing collection {collection_name}") from e

        vectors_config = info.config.params.vectors
        if isinstance(vectors_config, dict):
            vectors_config = next(iter(vectors_config.values()))
        return int(vectors_config.size)

    async def create_collection(self, collection_name: str, vector_size: int) -> None:
        client = self._require_client()
        try:
            await client.create_collection(
                collection_name=collection_name,
                vectors_config=VectorParams(size=vector_size, distance=self.distance),
            )
        except Exception as e:
            raise wrap_backend_error(e, f"Creating collection {collection_name}") from e
        logger.info(f"✅ Created collection {collection_name} (dimension {vector_size})")

    async def delete_collection(self, collection_name: str) -> None:
        client = self._require_client()
        try:
            await client.delete_collection(collection_name=collection_name)
        except Exception as e:
            raise wrap_backend_error(e, f"Deleting collection {collection_name}") from e
        logger.info(f"🗑️ Deleted collection {collection_name}")

    async def upsert_points(
        self, collection_name: str, points: list[VectorPoint]
    ) -> StorageResult:
        start_time = time.time()
        if not points:
            return StorageResult(success=True, operation="upsert")

        client = self._require_client()
        structs = [
            PointStruct(id=point_id_for(p.id), vector=p.vector, payload=p.payload)
            for p in points
        ]
        try:
            await client.upsert(collection_name=collection_name, points=structs, wait=True)
        except Exception as e:
            raise wrap_backend_error(e, f"Upserting into {collection_name}") from e

        return StorageResult(
            success=True,
            operation="upsert",
            items_processed=len(points),
            processing_time=time.time() - start_time,
            ids=[p.id for p in points],
        )

    async def delete_points(
        self, collection_name: str, record_ids: list[str]
    ) -> StorageResult:
        start_time = time.time()
        if not record_ids:
            return StorageResult(success=True, operation="delete")

        client = self._require_client()
        try:
            await client.delete(
                collection_name=collection_name,
                points_selector=PointIdsList(
                    points=[point_id_for(record_id) for record_id in record_ids]
                ),
                wait=True,
            )
        except Exception as e:
            raise wrap_backend_error(e, f"Deleting points from {collection_name}") from e

        return StorageResult(
            success=True,
            operation="delete",
            items_processed=len(record_ids),
            processing_time=time.time() - start_time,
        )

    async def delete_by_filter(
        self, collection_name: str, filter_conditions: dict[str, Any]
    ) -> StorageResult:
        start_time = time.time()
        client = self._require_client()
        try:
            await client.delete(
                collection_name=collection_name,
                points_selector=FilterSelector(
                    filter=self._build_filter(filter_conditions)
                ),
                wait=True,
            )
        except Exception as e:
            raise wrap_backend_error(e, f"Clearing {collection_name}") from e

        return StorageResult(
            success=True,
            operation="clear",
            processing_time=time.time() - start_time,
        )

    async def search_similar(
        self,
        collection_name: str,
        query_vector: list[float],
        limit: int = 10,
        filter_conditions: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        client = self._require_client()
        query_filter = (
            self._build_filter(filter_conditions) if filter_conditions else None
        )
        try:
            response = await client.query_points(
                collection_name=collection_name,
                query=query_vector,
                limit=limit,
                query_filter=query_filter,
                with_payload=True,
            )
        except Exception as e:
            raise wrap_backend_error(e, f"Searching {collection_name}") from e

        hits = [
            SearchHit(id=str(point.id), score=point.score, payload=point.payload or {})
            for point in response.points
        ]
        logger.debug(
            f"🔍 {len(hits)} hits in {collection_name} for filter {filter_conditions}"
        )
        return hits

    async def count(
        self, collection_name: str, filter_conditions: dict[str, Any] | None = None
    ) -> int:
        client = self._require_client()
        count_filter = (
            self._build_filter(filter_conditions) if filter_conditions else None
        )
        try:
            result = await client.count(
                collection_name=collection_name, count_filter=count_filter, exact=True
            )
        except Exception as e:
            raise wrap_backend_error(e, f"Counting points in {collection_name}") from e
        return int(result.count)

    @staticmethod
    def _build_filter(filter_conditions: dict[str, Any]) -> "Filter":
        conditions = [
            FieldCondition(key=key, match=MatchValue(value=value))
            for key, value in filter_conditions.items()
            if isinstance(value, str | int | bool)
        ]
        return Filter(must=conditions)
