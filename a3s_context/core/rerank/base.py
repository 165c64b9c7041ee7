"""
Abstract base class for reranker providers.
Rescores a small candidate set against the query after vector search.
"""

from abc import ABC, abstractmethod

from a3s_context.models.retrieval import RerankDocument, RerankResult


class Reranker(ABC):
    """
    Abstract base for reranking providers.

    Responsibilities:
    - Score candidates against a query
    - Return a re-ordered subset of at most top_n results
    - Raise ProviderError (transient or permanent) on failure
    """

    @abstractmethod
    async def rerank(
        self, query: str, documents: list[RerankDocument], top_n: int
    ) -> list[RerankResult]:
        """
        Rerank documents by relevance to query.

        Args:
            query: Query text
            documents: Candidates in their current order
            top_n: Max results to return

        Returns:
            Results sorted by score descending, at most top_n

        Raises:
            ProviderError: If the provider call fails
        """
        pass

    async def close(self):
        """Close any open connections."""


def top_results(results: list[RerankResult], top_n: int) -> list[RerankResult]:
    """Sort by score descending (ties keep request order) and truncate."""
    ordered = sorted(results, key=lambda r: (-r.score, r.index))
    return ordered[: max(0, top_n)]
