"""
Jina Reranker API provider.
"""

import httpx

from a3s_context.core.rerank.http import HTTPReranker


class JinaReranker(HTTPReranker):
    """Reranker using the Jina Rerank API."""

    provider = "jina"
    DEFAULT_API_BASE = "https://api.jina.ai/v1"
    DEFAULT_MODEL = "jina-reranker-v2-base-multilingual"

    def __init__(
        self,
        api_key: str,
        api_base: str | None = None,
        model: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            api_base=api_base or self.DEFAULT_API_BASE,
            api_key=api_key,
            model=model or self.DEFAULT_MODEL,
            timeout=timeout,
            transport=transport,
        )
