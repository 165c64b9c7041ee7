"""
Factory for creating LLM providers.
"""

from a3s_context.config import LLMConfig
from a3s_context.core.llm.base import LLMProvider
from a3s_context.core.llm.ollama import OllamaLLM
from a3s_context.core.llm.openai import OpenAILLM
from a3s_context.utils.exceptions import ConfigurationError


class LLMFactory:
    """Factory for creating LLM providers from configuration."""

    @staticmethod
    def create(config: LLMConfig) -> LLMProvider | None:
        """
        Create LLM provider from configuration.

        Args:
            config: LLM configuration

        Returns:
            LLM provider instance, or None for provider "none"
            (digests then use the extractive fallback)

        Raises:
            ConfigurationError: If provider is not supported or misconfigured
        """
        if config.provider == "none":
            return None
        elif config.provider == "ollama":
            return OllamaLLM(
                host=config.base_url,
                model=config.model,
                timeout=config.timeout,
            )
        elif config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required")
            return OpenAILLM(
                api_key=config.api_key,
                model=config.model,
                base_url=config.base_url,
                timeout=config.timeout,
            )
        else:
            raise ConfigurationError(f"Unsupported LLM provider: {config.provider}")
