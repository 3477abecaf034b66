"""Data types shared by the indexing components."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from ..config.models import ReindexStrategy


class IndexingStage(str, Enum):
    SCANNING = "scanning"
    PARSING = "parsing"
    EMBEDDING = "embedding"
    STORING = "storing"
    COMPLETE = "complete"


class FileState(str, Enum):
    UNINDEXED = "unindexed"
    INDEXED = "indexed"
    REINDEXING = "reindexing"


class UpdateOutcome(str, Enum):
    """What a single-file event ended up doing."""

    SKIPPED = "skipped"
    INCREMENTAL = "incremental"
    FULL = "full"
    DELETED = "deleted"
    DEFERRED = "deferred"
    FAILED = "failed"


@dataclass
class IndexingProgress:
    stage: IndexingStage
    current: int
    total: int
    current_file: str = ""
    message: str = ""

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 100.0
        return (self.current / self.total) * 100


@dataclass
class IndexedFileMetadata:
    """Tracking entry for one indexed file.

    ``chunk_ids`` are the record ids live in the vector backend for the file.
    """

    file_path: str
    last_modified: float
    checksum: str
    size: int
    chunk_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexedFileMetadata":
        return cls(
            file_path=data["file_path"],
            last_modified=float(data["last_modified"]),
            checksum=data.get("checksum", ""),
            size=int(data.get("size", 0)),
            chunk_ids=list(data.get("chunk_ids", [])),
        )


@dataclass
class ProjectMetadata:
    total_files: int = 0
    last_full_index_time: float | None = None
    strategy: ReindexStrategy = ReindexStrategy.SMART
    included_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "last_full_index_time": self.last_full_index_time,
            "strategy": self.strategy.value,
            "included_files": list(self.included_files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectMetadata":
        return cls(
            total_files=int(data.get("total_files", 0)),
            last_full_index_time=data.get("last_full_index_time"),
            strategy=ReindexStrategy(data.get("strategy", ReindexStrategy.SMART.value)),
            included_files=list(data.get("included_files", [])),
        )
