"""Vector storage, backends and index state persistence."""

from .base import (
    EmbeddingMetadata,
    Namespace,
    SearchHit,
    StorageResult,
    VectorBackend,
    VectorPoint,
)
from .qdrant import QdrantBackend
from .state import JsonStateStore, MemoryStateStore, StateStore
from .vector_store import DimensionResolution, VectorStore

__all__ = [
    "DimensionResolution",
    "EmbeddingMetadata",
    "JsonStateStore",
    "MemoryStateStore",
    "Namespace",
    "QdrantBackend",
    "SearchHit",
    "StateStore",
    "StorageResult",
    "VectorBackend",
    "VectorPoint",
    "VectorStore",
]
