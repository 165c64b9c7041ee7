"""
Ollama embedder using native ollama-python SDK.
"""

import httpx
import ollama

from a3s_context.core.embeddings.base import Embedder
from a3s_context.utils.exceptions import EmbeddingError, ValidationError
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)


def is_transient_ollama_error(error: Exception) -> bool:
    """Rate limits, server errors and unreachable hosts are retryable."""
    if isinstance(error, ollama.ResponseError):
        return error.status_code == 429 or error.status_code >= 500
    return isinstance(error, httpx.TransportError | ConnectionError | TimeoutError)


class OllamaEmbedder(Embedder):
    """
    Ollama embedder for generating text embeddings.

    Uses native ollama-python SDK for embedding generation.
    Supports models like nomic-embed-text, mxbai-embed-large, etc.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 120.0,
        dimension: int | None = None,
    ):
        """
        Initialize Ollama embedder.

        Args:
            host: Ollama server URL
            model: Embedding model name (e.g., "nomic-embed-text", "mxbai-embed-large")
            timeout: Request timeout in seconds
            dimension: Known embedding dimension (skips the probe request)
        """
        self.host = host
        self.model = model
        self.timeout = timeout
        self._dimension = dimension

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for text using Ollama.

        Raises:
            ValidationError: If text is empty
            EmbeddingError: If Ollama embedding fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        try:
            response = await self.client.embeddings(model=self.model, prompt=text, **kwargs)
        except Exception as e:
            transient = is_transient_ollama_error(e)
            logger.error(
                f"Ollama embedding error: {e}",
                extra={"model": self.model, "host": self.host, "transient": transient},
            )
            raise EmbeddingError(
                f"Ollama embedding error: {e}",
                transient=transient,
                context={"model": self.model},
            ) from e

        if not response or "embedding" not in response or not response["embedding"]:
            raise EmbeddingError("Ollama returned invalid embedding response")

        return list(response["embedding"])

    async def get_dimension(self) -> int:
        """
        Get embedding dimension.
        Caches result after first call.
        """
        if self._dimension is None:
            test_embedding = await self.embed("test")
            self._dimension = len(test_embedding)
        return self._dimension

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
