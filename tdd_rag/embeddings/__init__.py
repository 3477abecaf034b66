"""Embeddings package for generating vector representations of text."""

from .base import Embedder, EmbeddingResult, RetryableEmbedder
from .openai import OpenAIEmbedder
from .registry import EmbedderRegistry, create_embedder_from_config
from .voyage import VoyageEmbedder

__all__ = [
    "Embedder",
    "EmbeddingResult",
    "RetryableEmbedder",
    "OpenAIEmbedder",
    "VoyageEmbedder",
    "EmbedderRegistry",
    "create_embedder_from_config",
]
