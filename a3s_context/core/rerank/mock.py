"""
Deterministic offline reranker.

Scores each document by the fraction of distinct query words it contains.
"""

import re

from a3s_context.core.rerank.base import Reranker, top_results
from a3s_context.models.retrieval import RerankDocument, RerankResult

WORD_PATTERN = re.compile(r"\w+")


class MockReranker(Reranker):
    """Lexical overlap reranker for tests and offline use."""

    def __init__(self):
        self.calls = 0

    async def rerank(
        self, query: str, documents: list[RerankDocument], top_n: int
    ) -> list[RerankResult]:
        self.calls += 1
        query_words = set(WORD_PATTERN.findall(query.lower()))

        results = []
        for index, doc in enumerate(documents):
            doc_words = set(WORD_PATTERN.findall(doc.text.lower()))
            score = len(query_words & doc_words) / len(query_words) if query_words else 0.0
            results.append(RerankResult(id=doc.id, index=index, score=score))

        return top_results(results, top_n)
