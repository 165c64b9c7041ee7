"""
Factory for creating reranker providers.
"""

import os

from a3s_context.config import RerankConfig
from a3s_context.core.llm.openai import OpenAILLM
from a3s_context.core.rerank.base import Reranker
from a3s_context.core.rerank.cohere import CohereReranker
from a3s_context.core.rerank.jina import JinaReranker
from a3s_context.core.rerank.mock import MockReranker
from a3s_context.core.rerank.openai import OpenAIReranker
from a3s_context.utils.exceptions import ConfigurationError


class RerankerFactory:
    """Factory for creating rerankers from configuration."""

    @staticmethod
    def _api_key(config: RerankConfig, env_var: str) -> str:
        api_key = config.api_key or os.getenv(env_var)
        if not api_key:
            raise ConfigurationError(
                f"{config.provider} reranker requires an API key (config or {env_var})"
            )
        return api_key

    @staticmethod
    def create(config: RerankConfig) -> Reranker:
        """
        Create reranker from configuration.

        API keys fall back to JINA_API_KEY / COHERE_API_KEY / OPENAI_API_KEY.

        Raises:
            ConfigurationError: If provider is not supported or has no API key
        """
        if config.provider == "mock":
            return MockReranker()
        elif config.provider == "jina":
            return JinaReranker(
                api_key=RerankerFactory._api_key(config, "JINA_API_KEY"),
                api_base=config.api_base,
                model=config.model,
                timeout=config.timeout,
            )
        elif config.provider == "cohere":
            return CohereReranker(
                api_key=RerankerFactory._api_key(config, "COHERE_API_KEY"),
                api_base=config.api_base,
                model=config.model,
                timeout=config.timeout,
            )
        elif config.provider == "openai":
            llm = OpenAILLM(
                api_key=RerankerFactory._api_key(config, "OPENAI_API_KEY"),
                model=config.model or "gpt-4o-mini",
                base_url=config.api_base,
                timeout=config.timeout,
            )
            return OpenAIReranker(llm)
        else:
            raise ConfigurationError(f"Unsupported rerank provider: {config.provider}")
