"""Approximate nearest-neighbor index over node embeddings."""

from a3s_context.core.vector_index.hnsw import HNSWIndex

__all__ = ["HNSWIndex"]
