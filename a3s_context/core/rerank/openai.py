"""
Pointwise LLM reranker.

Asks a chat model to rate each document's relevance to the query on a 0-10
scale and normalizes the rating to [0, 1].
"""

import asyncio

from pydantic import BaseModel, Field

from a3s_context.core.llm.base import LLMProvider
from a3s_context.core.rerank.base import Reranker, top_results
from a3s_context.models.retrieval import RerankDocument, RerankResult
from a3s_context.utils.exceptions import LLMError, ProviderError, ValidationError
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)

SCORE_PROMPT = """Rate the relevance of the following document to the query on a scale of 0 to 10.

Query: {query}

Document: {document}

Answer with the score only."""


class RelevanceScore(BaseModel):
    """Structured relevance rating."""

    score: float = Field(..., ge=0.0, le=10.0, description="Relevance from 0 to 10")


class OpenAIReranker(Reranker):
    """Reranker that scores each candidate with one LLM call."""

    def __init__(self, llm: LLMProvider, concurrency: int = 4):
        """
        Initialize LLM reranker.

        Args:
            llm: Chat model used for scoring (normally OpenAILLM)
            concurrency: Max scoring calls in flight
        """
        self.llm = llm
        self.concurrency = max(1, concurrency)

    async def _score(self, query: str, document: RerankDocument) -> float:
        prompt = SCORE_PROMPT.format(query=query, document=document.text)
        try:
            rating = await self.llm.complete(
                prompt, response_format=RelevanceScore, max_tokens=20, temperature=0.0
            )
        except ValidationError as e:
            # Unparseable rating counts as irrelevant
            logger.warning(
                f"Unparseable relevance rating for {document.id}: {e}",
                extra={"document_id": document.id},
            )
            return 0.0
        except LLMError as e:
            raise ProviderError(
                f"LLM rerank scoring failed: {e}",
                transient=e.transient,
                context={"document_id": document.id},
            ) from e

        return rating.score / 10.0

    async def rerank(
        self, query: str, documents: list[RerankDocument], top_n: int
    ) -> list[RerankResult]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def score_one(index: int, doc: RerankDocument) -> RerankResult:
            async with semaphore:
                score = await self._score(query, doc)
            return RerankResult(id=doc.id, index=index, score=score)

        results = await asyncio.gather(*(score_one(i, doc) for i, doc in enumerate(documents)))
        return top_results(list(results), top_n)

    async def close(self):
        await self.llm.close()
