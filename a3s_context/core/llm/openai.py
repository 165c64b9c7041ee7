"""
OpenAI LLM provider using official SDK.
"""

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel

from a3s_context.core.embeddings.openai import TRANSIENT_OPENAI_ERRORS
from a3s_context.core.llm.base import LLMProvider
from a3s_context.utils.exceptions import LLMError, ValidationError
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAILLM(LLMProvider):
    """
    OpenAI LLM provider for text generation.

    Uses official OpenAI SDK with native structured output support.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        """
        Initialize OpenAI LLM provider.

        Args:
            api_key: OpenAI API key
            model: Model name (e.g., "gpt-4o", "gpt-4o-mini")
            organization: Optional organization ID
            base_url: Optional custom base URL
            timeout: Request timeout in seconds
        """
        self.model = model

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 1000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion using OpenAI.

        Uses the parse API when response_format is provided.

        Raises:
            LLMError: If OpenAI API call fails or returns nothing
            ValidationError: If the prompt is empty or parsing yields nothing
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty")

        params = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }

        try:
            if response_format:
                response = await self.client.chat.completions.parse(
                    **params, response_format=response_format
                )
                parsed = response.choices[0].message.parsed
                if not parsed:
                    raise ValidationError("OpenAI returned empty parsed response")
                return parsed

            response = await self.client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            transient = isinstance(e, TRANSIENT_OPENAI_ERRORS)
            logger.error(
                f"OpenAI API error: {e}",
                extra={
                    "model": self.model,
                    "error_type": type(e).__name__,
                    "transient": transient,
                },
            )
            raise LLMError(
                f"OpenAI API error: {e}", transient=transient, context={"model": self.model}
            ) from e

        content = response.choices[0].message.content
        if not content:
            raise LLMError("OpenAI returned empty content")
        return content

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
