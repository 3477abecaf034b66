"""Base classes and interfaces for vector storage."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..analysis.base import ChunkKind, CodeChunk


class Namespace(str, Enum):
    """Partition separating source chunks from test chunks."""

    SOURCE = "source"
    TEST = "test"


@dataclass
class StorageResult:
    """Result of a storage operation."""

    success: bool
    operation: str  # "upsert", "delete", "clear"

    items_processed: int = 0
    items_failed: int = 0
    processing_time: float = 0.0

    # Record ids actually written by an upsert
    ids: list[str] = field(default_factory=list)

    errors: list[str] = field(default_factory=list)


@dataclass
class VectorPoint:
    """A record to be written to the backend."""

    id: str
    vector: list[float]
    payload: dict[str, Any]

    def __post_init__(self) -> None:
        if len(self.vector) == 0:
            raise ValueError("Vector cannot be empty")
        if not isinstance(self.payload, dict):
            raise ValueError("Payload must be a dictionary")


@dataclass
class SearchHit:
    id: str
    score: float
    payload: dict[str, Any]


class EmbeddingMetadata(BaseModel):
    """Payload stored alongside every vector.

    Validated on write and on read so that records from another schema
    version never leak into retrieval results.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    record_id: str = Field(min_length=1)
    chunk_id: str = Field(min_length=1)
    content: str
    file_path: str = Field(min_length=1)
    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    kind: ChunkKind
    name: str
    user_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    namespace: Namespace

    @model_validator(mode="after")
    def check_line_range(self) -> "EmbeddingMetadata":
        if self.end_line < self.start_line:
            raise ValueError(
                f"end_line {self.end_line} precedes start_line {self.start_line}"
            )
        return self

    @classmethod
    def from_chunk(
        cls,
        chunk: CodeChunk,
        record_id: str,
        user_id: str,
        project_id: str,
        namespace: Namespace,
        excerpt_chars: int,
    ) -> "EmbeddingMetadata":
        return cls(
            record_id=record_id,
            chunk_id=chunk.id,
            content=chunk.content[:excerpt_chars],
            file_path=chunk.file_path,
            start_line=chunk.start_line,
            end_line=chunk.end_line,
            kind=chunk.kind,
            name=chunk.name,
            user_id=user_id,
            project_id=project_id,
            namespace=namespace,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_chunk(self) -> CodeChunk:
        return CodeChunk(
            id=self.chunk_id,
            content=self.content,
            file_path=self.file_path,
            start_line=self.start_line,
            end_line=self.end_line,
            kind=self.kind,
            name=self.name,
        )


class VectorBackend(ABC):
    """Abstract vector database.

    Implementations raise ``VectorStoreError`` subclasses on failure.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection and verify the backend is reachable."""

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def collection_exists(self, collection_name: str) -> bool:
        pass

    @abstractmethod
    async def get_vector_size(self, collection_name: str) -> int:
        """Dimensionality of an existing collection."""

    @abstractmethod
    async def create_collection(self, collection_name: str, vector_size: int) -> None:
        pass

    @abstractmethod
    async def delete_collection(self, collection_name: str) -> None:
        pass

    @abstractmethod
    async def upsert_points(
        self, collection_name: str, points: list[VectorPoint]
    ) -> StorageResult:
        pass

    @abstractmethod
    async def delete_points(
        self, collection_name: str, record_ids: list[str]
    ) -> StorageResult:
        pass

    @abstractmethod
    async def delete_by_filter(
        self, collection_name: str, filter_conditions: dict[str, Any]
    ) -> StorageResult:
        pass

    @abstractmethod
    async def search_similar(
        self,
        collection_name: str,
        query_vector: list[float],
        limit: int = 10,
        filter_conditions: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        pass

    @abstractmethod
    async def count(
        self, collection_name: str, filter_conditions: dict[str, Any] | None = None
    ) -> int:
        pass
