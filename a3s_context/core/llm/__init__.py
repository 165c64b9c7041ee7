"""
LLM provider abstraction layer for digest generation and rerank scoring.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""
from a3s_context.core.llm.base import LLMProvider
from a3s_context.core.llm.ollama import OllamaLLM
from a3s_context.core.llm.openai import OpenAILLM

__all__ = [
    "LLMProvider",
    "OllamaLLM",
    "OpenAILLM",
]
