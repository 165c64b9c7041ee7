"""
Factory for creating the vector index.
"""

from a3s_context.config import VectorIndexConfig
from a3s_context.core.vector_index.hnsw import HNSWIndex


class VectorIndexFactory:
    """Factory for creating vector indexes from configuration."""

    @staticmethod
    def create(config: VectorIndexConfig, dimension: int) -> HNSWIndex:
        """
        Create vector index from configuration.

        Args:
            config: Index parameters
            dimension: Embedding dimension (from the embedder)

        Returns:
            Empty HNSW index
        """
        return HNSWIndex(
            dimension=dimension,
            metric=config.metric,
            m=config.m,
            ef_construction=config.ef_construction,
            ef_search=config.ef_search,
            seed=config.seed,
        )
