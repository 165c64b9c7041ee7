"""
Factory modules for creating A3S Context components.

Provides modular factories for LLM, Embedder, Node Store, Vector Index and Reranker.
"""

from a3s_context.core.factory.embedder_factory import EmbedderFactory
from a3s_context.core.factory.llm_factory import LLMFactory
from a3s_context.core.factory.node_store_factory import NodeStoreFactory
from a3s_context.core.factory.reranker_factory import RerankerFactory
from a3s_context.core.factory.vector_index_factory import VectorIndexFactory

__all__ = [
    "LLMFactory",
    "EmbedderFactory",
    "NodeStoreFactory",
    "VectorIndexFactory",
    "RerankerFactory",
]
