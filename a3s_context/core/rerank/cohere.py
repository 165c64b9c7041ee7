"""
Cohere Rerank API provider.
"""

import httpx

from a3s_context.core.rerank.http import HTTPReranker
from a3s_context.models.retrieval import RerankDocument


class CohereReranker(HTTPReranker):
    """Reranker using the Cohere v2 Rerank API."""

    provider = "cohere"
    DEFAULT_API_BASE = "https://api.cohere.com/v2"
    DEFAULT_MODEL = "rerank-v3.5"

    def __init__(
        self,
        api_key: str,
        api_base: str | None = None,
        model: str | None = None,
        timeout: float = 30.0,
        max_tokens_per_doc: int = 4096,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            api_base=api_base or self.DEFAULT_API_BASE,
            api_key=api_key,
            model=model or self.DEFAULT_MODEL,
            timeout=timeout,
            transport=transport,
        )
        self.max_tokens_per_doc = max_tokens_per_doc

    def _payload(self, query: str, documents: list[RerankDocument], top_n: int) -> dict:
        payload = super()._payload(query, documents, top_n)
        payload["max_tokens_per_doc"] = self.max_tokens_per_doc
        return payload
