"""
Ollama LLM provider using native ollama-python SDK.
"""

import json

import ollama
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from a3s_context.core.embeddings.ollama import is_transient_ollama_error
from a3s_context.core.llm.base import LLMProvider
from a3s_context.utils.exceptions import LLMError, ValidationError
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)

_EXAMPLE_VALUES = {"string": "<{name}>", "number": 0.5, "integer": 1, "boolean": True}


def example_for(response_format: type[BaseModel]) -> dict:
    """Build a placeholder JSON object from a model's schema properties."""
    example = {}
    for name, info in response_format.model_json_schema().get("properties", {}).items():
        field_type = info.get("type", "string")
        if field_type == "array":
            example[name] = []
        elif field_type == "object":
            example[name] = {}
        else:
            value = _EXAMPLE_VALUES.get(field_type)
            example[name] = value.format(name=name) if isinstance(value, str) else value
    return example


def extract_json(content: str) -> str:
    """Strip markdown code fences around a JSON answer."""
    content = content.strip()
    if "```json" in content:
        content = content.split("```json")[1].split("```")[0].strip()
    elif "```" in content:
        content = content.split("```")[1].split("```")[0].strip()
    return content


class OllamaLLM(LLMProvider):
    """
    Ollama LLM provider for text generation.

    Uses native ollama-python SDK for chat completions
    with JSON mode for structured outputs.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        timeout: float = 120.0,
    ):
        """
        Initialize Ollama LLM provider.

        Args:
            host: Ollama server URL
            model: Model name for text generation (e.g., "llama3.1", "mistral")
            timeout: Request timeout in seconds
        """
        self.host = host
        self.model = model
        self.timeout = timeout

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 1000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion using Ollama.

        Structured output uses JSON mode plus an example object in the prompt.
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty")

        options = {
            "temperature": temperature,
            "num_predict": max_tokens,
            **kwargs.pop("options", {}),
        }

        format_type = None
        if response_format:
            format_type = "json"
            prompt = (
                f"{prompt}\n\n"
                "Respond with valid JSON matching this structure:\n"
                f"{json.dumps(example_for(response_format), indent=2)}\n\n"
                "Return ONLY the JSON object, no markdown formatting or extra text."
            )

        try:
            response = await self.client.chat(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                format=format_type,
                options=options,
                **kwargs,
            )
        except Exception as e:
            transient = is_transient_ollama_error(e)
            logger.error(
                f"Ollama completion error: {e}",
                extra={"model": self.model, "host": self.host, "transient": transient},
            )
            raise LLMError(
                f"Ollama completion error: {e}", transient=transient, context={"model": self.model}
            ) from e

        content = response["message"]["content"]
        if not response_format:
            return content

        try:
            return response_format.model_validate_json(extract_json(content))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Failed to parse structured output as {response_format.__name__}: {e}",
                context={"raw": content[:500]},
            ) from e

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
