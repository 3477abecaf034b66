"""Base classes and interfaces for text embedding generation."""

import asyncio
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ..indexer_logging import get_logger

T = TypeVar("T")


@dataclass
class EmbeddingResult:
    """Result of an embedding operation."""

    text: str
    embedding: list[float]

    model: str = ""
    token_count: int = 0
    processing_time: float = 0.0
    error: str | None = None
    exception: Exception | None = field(default=None, repr=False, compare=False)

    @property
    def success(self) -> bool:
        """Check if embedding generation was successful."""
        return self.error is None and len(self.embedding) > 0

    @property
    def dimension(self) -> int:
        return len(self.embedding)

    @classmethod
    def failed(
        cls, text: str, model: str, error: Exception, started: float
    ) -> "EmbeddingResult":
        return cls(
            text=text,
            embedding=[],
            model=model,
            processing_time=time.time() - started,
            error=str(error),
            exception=error,
        )


class Embedder(ABC):
    """Abstract base class for text embedding generators."""

    @abstractmethod
    async def embed_batch(
        self, texts: list[str], input_type: str = "document"
    ) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts.

        Args:
            texts: Text strings to embed.
            input_type: "document" for indexed content, "query" for search
                text. Providers without asymmetric embeddings ignore it.
        """

    @abstractmethod
    def get_model_info(self) -> dict[str, Any]:
        """Get information about the embedding model."""

    async def embed_text(
        self, text: str, input_type: str = "document"
    ) -> EmbeddingResult:
        """Generate embedding for a single text."""
        results = await self.embed_batch([text], input_type=input_type)
        return results[0]


class RetryableEmbedder(Embedder):
    """Base class for embedders that retry transient failures."""

    TRANSIENT_ERRORS = (
        "rate limit",
        "timeout",
        "connection",
        "temporary",
        "503",
        "502",
        "429",
    )

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        backoff_factor: float = 2.0,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.logger = get_logger()

    def _calculate_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter."""
        delay = self.base_delay * (self.backoff_factor**attempt)
        delay = min(delay, self.max_delay)
        jitter = random.uniform(0.1, 0.3) * delay
        return delay + jitter

    def _should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        error_str = str(error).lower()
        return any(err in error_str for err in self.TRANSIENT_ERRORS)

    async def _embed_with_retry(
        self, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """Run ``operation`` until it succeeds or a non-transient error occurs."""
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                return await operation()
            except Exception as e:
                last_error = e
                if not self._should_retry(e, attempt):
                    break
                delay = self._calculate_delay(attempt)
                self.logger.warning(
                    f"Embedding attempt {attempt + 1} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

        assert last_error is not None
        raise last_error
