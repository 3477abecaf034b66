"""Registry for creating embedders from configuration."""

from typing import Any

from ..errors import ConfigurationError
from .base import Embedder
from .openai import OPENAI_AVAILABLE, OpenAIEmbedder
from .voyage import VOYAGE_AVAILABLE, VoyageEmbedder


class EmbedderRegistry:
    """Registry for creating and managing embedders."""

    def __init__(self) -> None:
        self._embedders: dict[str, type[Embedder]] = {}
        self._register_default_embedders()

    def _register_default_embedders(self) -> None:
        if OPENAI_AVAILABLE:
            self.register("openai", OpenAIEmbedder)
        if VOYAGE_AVAILABLE:
            self.register("voyage", VoyageEmbedder)

    def register(self, name: str, embedder_class: type[Embedder]) -> None:
        self._embedders[name] = embedder_class

    def create_embedder(self, provider: str, config: dict[str, Any]) -> Embedder:
        if provider not in self._embedders:
            available = list(self._embedders.keys())
            raise ConfigurationError(
                f"Unknown embedder provider: {provider}. Available: {available}",
                suggestion="Install the provider package or set EMBEDDING_PROVIDER",
            )

        embedder_class = self._embedders[provider]
        try:
            return embedder_class(**config)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Failed to create {provider} embedder: {e}",
                suggestion=f"Check the {provider} API key in your environment",
            ) from e


def create_embedder_from_config(config: Any) -> Embedder:
    """Create an embedder from an ``IndexerConfig``."""
    provider = config.embedding_provider
    if provider == "voyage":
        provider_config = {"api_key": config.voyage_api_key}
    else:
        provider_config = {"api_key": config.openai_api_key}
    if config.embedding_model:
        provider_config["model"] = config.embedding_model

    return EmbedderRegistry().create_embedder(provider, provider_config)
