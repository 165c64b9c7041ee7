"""
Abstract base class for embedding providers.
Turns node content and query text into fixed-dimension vectors.
"""

import asyncio
from abc import ABC, abstractmethod


class Embedder(ABC):
    """
    Abstract base for embedding providers.

    Responsibilities:
    - Generate vector embeddings for text
    - Report a fixed dimension matching the vector index
    - Classify failures as transient (rate limit, timeout, outage) or permanent
    """

    @abstractmethod
    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding vector for text.

        Args:
            text: Text to embed
            **kwargs: Provider-specific parameters

        Returns:
            List of floats representing the embedding vector

        Raises:
            ValidationError: If text is empty
            EmbeddingError: If embedding generation fails (check .transient)
        """
        pass

    async def batch_embed(
        self, texts: list[str], batch_size: int = 32, **kwargs
    ) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Default implementation runs up to batch_size requests concurrently.
        Override for provider-specific batch APIs.

        Args:
            texts: List of texts to embed
            batch_size: Max concurrent requests
            **kwargs: Provider-specific parameters

        Returns:
            List of embedding vectors (same order as input texts)
        """
        semaphore = asyncio.Semaphore(max(1, batch_size))

        async def embed_one(text: str) -> list[float]:
            async with semaphore:
                return await self.embed(text, **kwargs)

        return list(await asyncio.gather(*(embed_one(text) for text in texts)))

    async def get_dimension(self) -> int:
        """
        Get the dimension of embeddings produced by this provider.

        Default implementation embeds a test string.
        Override for efficiency if dimension is known.

        Returns:
            Embedding vector dimension
        """
        test_embedding = await self.embed("test")
        return len(test_embedding)

    @abstractmethod
    async def close(self):
        """
        Close any open connections.
        """
        pass
