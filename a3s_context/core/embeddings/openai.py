"""
OpenAI embedder using official SDK.
"""

import openai
from openai import AsyncOpenAI

from a3s_context.core.embeddings.base import Embedder
from a3s_context.utils.exceptions import EmbeddingError, ValidationError
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)

TRANSIENT_OPENAI_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


class OpenAIEmbedder(Embedder):
    """
    OpenAI embedder for generating text embeddings.

    Uses official OpenAI SDK with support for batch processing.
    Supports models like text-embedding-3-small, text-embedding-3-large, etc.
    """

    # Known dimensions for OpenAI embedding models
    _MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
        dimension: int | None = None,
    ):
        """
        Initialize OpenAI embedder.

        Args:
            api_key: OpenAI API key
            model: Embedding model name (e.g., "text-embedding-3-small")
            organization: Optional organization ID
            base_url: Optional custom base URL (OpenAI-compatible servers)
            timeout: Request timeout in seconds
            dimension: Known embedding dimension for unlisted models
        """
        self.model = model
        self._dimension = dimension

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    def _wrap_error(self, e: Exception, operation: str, **extra) -> EmbeddingError:
        transient = isinstance(e, TRANSIENT_OPENAI_ERRORS)
        logger.error(
            f"OpenAI {operation} error: {e}",
            extra={
                "model": self.model,
                "error_type": type(e).__name__,
                "transient": transient,
                **extra,
            },
        )
        return EmbeddingError(
            f"OpenAI {operation} error: {e}", transient=transient, context={"model": self.model}
        )

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for text using OpenAI.

        Raises:
            ValidationError: If text is empty
            EmbeddingError: If OpenAI API call fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        try:
            response = await self.client.embeddings.create(model=self.model, input=text, **kwargs)
        except openai.OpenAIError as e:
            raise self._wrap_error(e, "embedding") from e

        if not response.data:
            raise EmbeddingError("OpenAI returned empty embedding response")

        return response.data[0].embedding

    async def batch_embed(
        self, texts: list[str], batch_size: int = 2048, **kwargs
    ) -> list[list[float]]:
        """
        Batch embed using OpenAI's native batch API.

        OpenAI supports up to 2048 inputs per request.

        Raises:
            ValidationError: If texts list is empty
            EmbeddingError: If batch embedding fails
        """
        if not texts:
            raise ValidationError("Texts list cannot be empty")

        embeddings = []
        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            try:
                response = await self.client.embeddings.create(
                    model=self.model, input=batch, **kwargs
                )
            except openai.OpenAIError as e:
                raise self._wrap_error(
                    e, "batch embedding", batch_size=batch_size, num_texts=len(texts)
                ) from e

            if len(response.data) != len(batch):
                raise EmbeddingError(
                    f"OpenAI returned {len(response.data)} embeddings for {len(batch)} inputs"
                )

            # Order by the input index the API reports
            ordered = sorted(response.data, key=lambda item: item.index)
            embeddings.extend(item.embedding for item in ordered)

        return embeddings

    async def get_dimension(self) -> int:
        """
        Get embedding dimension.

        Uses the configured or known dimension when available,
        falls back to a test embedding otherwise.
        """
        if self._dimension is not None:
            return self._dimension
        if self.model in self._MODEL_DIMENSIONS:
            return self._MODEL_DIMENSIONS[self.model]

        self._dimension = await super().get_dimension()
        return self._dimension

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
