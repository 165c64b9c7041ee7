"""
Embedder abstraction layer for text embeddings.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
- Mock (deterministic hashed bag-of-words, offline)
"""
from a3s_context.core.embeddings.base import Embedder
from a3s_context.core.embeddings.mock import MockEmbedder
from a3s_context.core.embeddings.ollama import OllamaEmbedder
from a3s_context.core.embeddings.openai import OpenAIEmbedder

__all__ = [
    "Embedder",
    "MockEmbedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
]
