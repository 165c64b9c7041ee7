"""
Abstract base class for LLM providers.
Used for digest generation and pointwise rerank scoring.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel


class LLMProvider(ABC):
    """
    Abstract base for LLM text generation providers.

    Responsibilities:
    - Text completion (digest prompts)
    - Structured output into Pydantic models (rerank scores)
    - Transient/permanent classification of failures
    """

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 1000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion from prompt.

        Args:
            prompt: The input prompt
            response_format: Optional Pydantic model for structured output
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic)
            **kwargs: Provider-specific parameters

        Returns:
            Pydantic model instance if response_format provided, else string

        Raises:
            ValidationError: If the prompt is empty or structured output cannot be parsed
            LLMError: If the provider call fails (check .transient)
        """
        pass

    @abstractmethod
    async def close(self):
        """
        Close any open connections.
        """
