"""
Shared client for hosted rerank APIs.

Jina and Cohere expose the same request/response shape:

    POST {api_base}/rerank
    {"model": ..., "query": ..., "documents": [...], "top_n": ...}
    -> {"results": [{"index": 0, "relevance_score": 0.93}, ...]}
"""

import httpx

from a3s_context.core.rerank.base import Reranker, top_results
from a3s_context.models.retrieval import RerankDocument, RerankResult
from a3s_context.utils.exceptions import ProviderError
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)


def is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class HTTPReranker(Reranker):
    """Reranker backed by an HTTP rerank endpoint."""

    provider = "http"

    def __init__(
        self,
        api_base: str,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize HTTP reranker.

        Args:
            api_base: API base URL (without the /rerank suffix)
            api_key: Bearer token
            model: Rerank model name
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_base = api_base.rstrip("/")
        self.model = model
        self.client = httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def _payload(self, query: str, documents: list[RerankDocument], top_n: int) -> dict:
        return {
            "model": self.model,
            "query": query,
            "documents": [doc.text for doc in documents],
            "top_n": top_n,
        }

    async def rerank(
        self, query: str, documents: list[RerankDocument], top_n: int
    ) -> list[RerankResult]:
        if not documents:
            return []

        try:
            response = await self.client.post(
                "/rerank", json=self._payload(query, documents, min(top_n, len(documents)))
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(
                f"{self.provider} rerank API error {status}",
                extra={"provider": self.provider, "status": status, "model": self.model},
            )
            raise ProviderError(
                f"{self.provider} rerank API error {status}: {e.response.text[:200]}",
                transient=is_transient_status(status),
                context={"provider": self.provider, "status": status},
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                f"{self.provider} rerank request failed: {e}",
                extra={"provider": self.provider, "error_type": type(e).__name__},
            )
            raise ProviderError(
                f"{self.provider} rerank request failed: {e}",
                transient=True,
                context={"provider": self.provider},
            ) from e
        except ValueError as e:
            raise ProviderError(
                f"{self.provider} returned invalid JSON: {e}", context={"provider": self.provider}
            ) from e

        return top_results(self._parse(body, documents), top_n)

    def _parse(self, body: dict, documents: list[RerankDocument]) -> list[RerankResult]:
        try:
            entries = body["results"]
            results = []
            for entry in entries:
                index = int(entry["index"])
                if index < 0:
                    raise IndexError(f"document index {index} out of range")
                results.append(
                    RerankResult(
                        id=documents[index].id,
                        index=index,
                        score=float(entry["relevance_score"]),
                    )
                )
            return results
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError(
                f"Malformed {self.provider} rerank response: {e}",
                context={"provider": self.provider},
            ) from e

    async def close(self):
        await self.client.aclose()
