"""Voyage AI embeddings implementation with retry logic."""

import time
from typing import Any

from .base import EmbeddingResult, RetryableEmbedder

try:
    import voyageai

    VOYAGE_AVAILABLE = True
except ImportError:
    VOYAGE_AVAILABLE = False


class VoyageEmbedder(RetryableEmbedder):
    """Voyage AI embeddings; code-tuned model by default."""

    MODELS = {
        "voyage-code-3": {"dimensions": 1024},
        "voyage-3": {"dimensions": 1024},
        "voyage-3-lite": {"dimensions": 512},
        "voyage-3.5-lite": {"dimensions": 1024},
    }
    DEFAULT_MODEL = "voyage-code-3"
    MAX_BATCH = 128

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
    ):
        if not VOYAGE_AVAILABLE:
            raise ImportError(
                "VoyageAI package not available. Install with: pip install voyageai"
            )
        if not api_key or not api_key.strip():
            raise ValueError("Valid Voyage AI API key required")

        model = model or self.DEFAULT_MODEL
        if model not in self.MODELS:
            raise ValueError(
                f"Unsupported model: {model}. Available: {list(self.MODELS.keys())}"
            )

        super().__init__(max_retries=max_retries, base_delay=base_delay)
        self.model = model
        self.model_config = self.MODELS[model]
        self.client = voyageai.AsyncClient(api_key=api_key)

    async def embed_batch(
        self, texts: list[str], input_type: str = "document"
    ) -> list[EmbeddingResult]:
        if not texts:
            return []

        results: list[EmbeddingResult] = []
        for offset in range(0, len(texts), self.MAX_BATCH):
            batch = texts[offset : offset + self.MAX_BATCH]
            results.extend(await self._embed_batch(batch, input_type))
        return results

    async def _embed_batch(
        self, texts: list[str], input_type: str
    ) -> list[EmbeddingResult]:
        start_time = time.time()

        async def _embed() -> Any:
            return await self.client.embed(
                texts=texts, model=self.model, input_type=input_type
            )

        try:
            response = await self._embed_with_retry(_embed)
        except Exception as e:
            return [EmbeddingResult.failed(t, self.model, e, start_time) for t in texts]

        processing_time = time.time() - start_time
        tokens_per_text = response.total_tokens // len(texts)
        return [
            EmbeddingResult(
                text=text,
                embedding=list(embedding),
                model=self.model,
                token_count=tokens_per_text,
                processing_time=processing_time / len(texts),
            )
            for text, embedding in zip(texts, response.embeddings, strict=True)
        ]

    def get_model_info(self) -> dict[str, Any]:
        return {
            "provider": "voyage",
            "model": self.model,
            "dimensions": self.model_config["dimensions"],
        }
