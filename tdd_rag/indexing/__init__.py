"""Index orchestration: change detection, re-index policy and bulk passes."""

from .manager import IndexManager
from .namespaces import classify_namespace, is_test_file
from .types import (
    FileState,
    IndexedFileMetadata,
    IndexingProgress,
    IndexingStage,
    ProjectMetadata,
    UpdateOutcome,
)

__all__ = [
    "FileState",
    "IndexManager",
    "IndexedFileMetadata",
    "IndexingProgress",
    "IndexingStage",
    "ProjectMetadata",
    "UpdateOutcome",
    "classify_namespace",
    "is_test_file",
]
