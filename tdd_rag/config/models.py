"""Configuration model for the indexing pipeline."""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ReindexStrategy(str, Enum):
    """How a single-file change is propagated to the index."""

    INCREMENTAL = "incremental"
    FULL = "full"
    SMART = "smart"


DEFAULT_INCLUDE_PATTERNS = [
    "**/*.js",
    "**/*.ts",
    "**/*.jsx",
    "**/*.tsx",
    "**/*.py",
    "**/*.java",
    "**/*.c",
    "**/*.cpp",
    "**/*.h",
    "**/*.hpp",
    "**/*.cs",
    "**/*.rb",
    "**/*.go",
    "**/*.rs",
    "**/*.php",
    "**/*.swift",
    "**/*.kt",
    "**/*.dart",
]

DEFAULT_EXCLUDE_PATTERNS = [
    "**/node_modules/**",
    "**/.git/**",
    "**/dist/**",
    "**/build/**",
    "**/out/**",
    "**/.venv/**",
    "**/__pycache__/**",
    "**/*.min.js",
    "**/.tdd-rag/**",
]


class IndexerConfig(BaseModel):
    """Indexing, storage and embedding settings with validation."""

    # Indexing behavior
    auto_indexing: bool = Field(default=True)
    strategy: ReindexStrategy = Field(default=ReindexStrategy.SMART)
    indexing_delay_ms: int = Field(default=2000, ge=0, le=60000)
    max_index_size: int = Field(default=10000, ge=1)
    batch_size: int = Field(default=5, ge=1, le=1000)
    file_batch_size: int = Field(default=10, ge=1, le=1000)
    batch_delay_seconds: float = Field(default=1.0, ge=0.0)
    include_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS)
    )
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )
    enable_progress_notifications: bool = Field(default=True)

    # Cleanup
    auto_cleanup: bool = Field(default=True)
    cleanup_threshold_days: int = Field(default=30, ge=1, le=365)
    cleanup_interval_hours: float = Field(default=24.0, gt=0)

    # Smart strategy thresholds
    full_reindex_capacity_ratio: float = Field(default=0.8, gt=0.0, le=1.0)
    full_reindex_change_ratio: float = Field(default=0.3, gt=0.0, le=1.0)
    recent_change_window_seconds: float = Field(default=60.0, gt=0.0)

    # Chunk payload limits
    max_embedding_chars: int = Field(default=8192, ge=256)
    content_excerpt_chars: int = Field(default=1000, ge=1)

    # Vector backend
    qdrant_url: str = Field(default="http://localhost:6333")
    qdrant_api_key: str = Field(default="")
    collection_prefix: str = Field(default="tdd-ai-companion")

    # Embeddings
    embedding_provider: str = Field(default="openai")
    embedding_model: str = Field(default="")
    openai_api_key: str = Field(default="")
    voyage_api_key: str = Field(default="")

    # Tenancy
    user_id: str = Field(default="")
    project_id: str = Field(default="default")

    # State management
    state_directory: Path | None = Field(default=None)

    @field_validator("include_patterns", "exclude_patterns")
    @classmethod
    def validate_patterns(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            raise ValueError("Patterns must be a list")
        for pattern in v:
            if not isinstance(pattern, str) or not pattern.strip():
                raise ValueError("All patterns must be non-empty strings")
        return v

    @field_validator("embedding_provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        provider = v.strip().lower()
        if provider not in ("openai", "voyage"):
            raise ValueError(f"Unsupported embedding provider: {v}")
        return provider

    @property
    def indexing_delay_seconds(self) -> float:
        return self.indexing_delay_ms / 1000.0
