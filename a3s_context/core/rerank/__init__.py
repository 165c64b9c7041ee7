"""
Reranker abstraction layer.

Supported providers:
- Mock (lexical overlap, offline)
- Jina (HTTP API)
- Cohere (HTTP API)
- OpenAI (pointwise LLM scoring)
"""
from a3s_context.core.rerank.base import Reranker
from a3s_context.core.rerank.cohere import CohereReranker
from a3s_context.core.rerank.http import HTTPReranker
from a3s_context.core.rerank.jina import JinaReranker
from a3s_context.core.rerank.mock import MockReranker
from a3s_context.core.rerank.openai import OpenAIReranker, RelevanceScore

__all__ = [
    "Reranker",
    "HTTPReranker",
    "MockReranker",
    "JinaReranker",
    "CohereReranker",
    "OpenAIReranker",
    "RelevanceScore",
]
