"""OpenAI embeddings implementation with retry logic."""

import time
from typing import Any

from .base import EmbeddingResult, RetryableEmbedder

try:
    import openai

    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False


class OpenAIEmbedder(RetryableEmbedder):
    """OpenAI embeddings through the async client."""

    MODELS = {
        "text-embedding-3-small": {"dimensions": 1536, "max_batch": 2048},
        "text-embedding-3-large": {"dimensions": 3072, "max_batch": 2048},
        "text-embedding-ada-002": {"dimensions": 1536, "max_batch": 2048},
    }
    DEFAULT_MODEL = "text-embedding-3-small"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        timeout: float = 30.0,
    ) -> None:
        if not OPENAI_AVAILABLE:
            raise ImportError(
                "OpenAI package not available. Install with: pip install openai"
            )
        if not api_key:
            raise ValueError("Valid OpenAI API key required")

        model = model or self.DEFAULT_MODEL
        if model not in self.MODELS:
            raise ValueError(
                f"Unsupported model: {model}. Available: {list(self.MODELS.keys())}"
            )

        super().__init__(max_retries=max_retries, base_delay=base_delay)
        self.model = model
        self.model_config = self.MODELS[model]
        self.client = openai.AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def embed_batch(
        self, texts: list[str], input_type: str = "document"
    ) -> list[EmbeddingResult]:
        if not texts:
            return []

        results: list[EmbeddingResult] = []
        max_batch = self.model_config["max_batch"]
        for offset in range(0, len(texts), max_batch):
            results.extend(await self._embed_batch(texts[offset : offset + max_batch]))
        return results

    async def _embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        start_time = time.time()

        async def _embed() -> Any:
            return await self.client.embeddings.create(
                model=self.model, input=texts, encoding_format="float"
            )

        try:
            response = await self._embed_with_retry(_embed)
        except Exception as e:
            return [EmbeddingResult.failed(t, self.model, e, start_time) for t in texts]

        processing_time = time.time() - start_time
        tokens_per_text = response.usage.total_tokens // len(texts)
        ordered = sorted(response.data, key=lambda item: item.index)
        return [
            EmbeddingResult(
                text=text,
                embedding=list(item.embedding),
                model=self.model,
                token_count=tokens_per_text,
                processing_time=processing_time / len(texts),
            )
            for text, item in zip(texts, ordered, strict=True)
        ]

    def get_model_info(self) -> dict[str, Any]:
        return {
            "provider": "openai",
            "model": self.model,
            "dimensions": self.model_config["dimensions"],
        }
