"""
Factory for creating embedder providers.
"""

from a3s_context.config import EmbedderConfig
from a3s_context.core.embeddings.base import Embedder
from a3s_context.core.embeddings.mock import MockEmbedder
from a3s_context.core.embeddings.ollama import OllamaEmbedder
from a3s_context.core.embeddings.openai import OpenAIEmbedder
from a3s_context.utils.exceptions import ConfigurationError


class EmbedderFactory:
    """Factory for creating embedder providers from configuration."""

    @staticmethod
    def create(config: EmbedderConfig) -> Embedder:
        """
        Create embedder from configuration.

        Args:
            config: Embedder configuration

        Returns:
            Embedder instance

        Raises:
            ConfigurationError: If provider is not supported or misconfigured
        """
        if config.provider == "ollama":
            return OllamaEmbedder(
                host=config.base_url,
                model=config.model,
                timeout=config.timeout,
                dimension=config.dimension,
            )
        elif config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required")
            return OpenAIEmbedder(
                api_key=config.api_key,
                model=config.model,
                base_url=config.base_url,
                timeout=config.timeout,
                dimension=config.dimension,
            )
        elif config.provider == "mock":
            return MockEmbedder(dimension=config.dimension or 256)
        else:
            raise ConfigurationError(f"Unsupported embedder provider: {config.provider}")

    @staticmethod
    async def get_dimension(embedder: Embedder, config: EmbedderConfig | None = None) -> int:
        """
        Get embedding dimension with fallback logic.

        Priority:
        1. From config if provided
        2. From the embedder (known model table or probe embedding)
        """
        if config and config.dimension:
            return config.dimension
        return await embedder.get_dimension()
