"""Fixtures for service tests.

Fixtures use function scope: each test gets a fresh in-memory store, index
and engine. Embeddings come from a keyword embedder whose vectors are easy to
reason about, so expected rankings can be read straight off the test data.
"""

import re
from collections.abc import AsyncGenerator

import pytest

from a3s_context.config import (
    Config,
    DigestConfig,
    RetrievalConfig,
    StorageConfig,
    TokenizerConfig,
)
from a3s_context.core.embeddings.base import Embedder
from a3s_context.core.node_store import InMemoryNodeStore
from a3s_context.core.rerank.base import Reranker
from a3s_context.core.vector_index import HNSWIndex
from a3s_context.models.retrieval import RerankDocument, RerankResult
from a3s_context.services.context_engine import ContextEngine
from a3s_context.services.retrieval_engine import RetrievalEngine
from a3s_context.utils.exceptions import ProviderError

# Word -> axis; the last axis is a small constant so every text is embeddable
TOPICS = {
    "auth": 0,
    "authentication": 0,
    "login": 0,
    "password": 0,
    "api": 1,
    "endpoint": 1,
    "rest": 1,
    "deploy": 2,
    "kubernetes": 2,
    "cluster": 2,
}
DIMENSION = 4


class KeywordEmbedder(Embedder):
    """Embeds text by counting topic keywords."""

    def __init__(self):
        self.calls = 0
        self.error: Exception | None = None

    async def embed(self, text: str, **kwargs) -> list[float]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        vector = [0.0] * DIMENSION
        for word in re.findall(r"\w+", text.lower()):
            if word in TOPICS:
                vector[TOPICS[word]] += 1.0
        vector[DIMENSION - 1] = 0.1
        return vector

    async def get_dimension(self) -> int:
        return DIMENSION

    async def close(self):
        pass


class FailingReranker(Reranker):
    """Reranker that always fails."""

    def __init__(self, transient: bool = False, error: Exception | None = None):
        self.transient = transient
        self.error = error
        self.calls = 0

    async def rerank(
        self, query: str, documents: list[RerankDocument], top_n: int
    ) -> list[RerankResult]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        raise ProviderError("reranker unavailable", transient=self.transient)


def make_config(**retrieval) -> Config:
    """Offline test configuration: approximate tokens, no retry delays."""
    return Config(
        storage=StorageConfig(backend="memory"),
        tokenizer=TokenizerConfig(provider="approximate"),
        digest=DigestConfig(retry_delay=0.0),
        retrieval=RetrievalConfig(retry_delay=0.0, **retrieval),
    )


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def store() -> InMemoryNodeStore:
    return InMemoryNodeStore()


@pytest.fixture
def index() -> HNSWIndex:
    return HNSWIndex(dimension=DIMENSION)


@pytest.fixture
def failing_reranker() -> FailingReranker:
    return FailingReranker()


@pytest.fixture
def flaky_reranker() -> FailingReranker:
    return FailingReranker(transient=True)


@pytest.fixture
def crashing_reranker() -> FailingReranker:
    """Reranker raising an error that is not a ProviderError."""
    return FailingReranker(error=RuntimeError("connection reset"))


@pytest.fixture
def make_retrieval(store, index, embedder):
    """Factory for retrieval engines over the shared store and index."""

    def factory(reranker: Reranker | None = None, **retrieval) -> RetrievalEngine:
        return RetrievalEngine(
            store, index, embedder, make_config(**retrieval).retrieval, reranker=reranker
        )

    return factory


@pytest.fixture
def make_engine(embedder):
    """Factory for uninitialized engines with custom parts or settings."""

    def factory(
        store=None, index=None, digest: DigestConfig | None = None, **retrieval
    ) -> ContextEngine:
        config = make_config(**retrieval)
        if digest is not None:
            config.digest = digest
        return ContextEngine(
            store if store is not None else InMemoryNodeStore(),
            index if index is not None else HNSWIndex(dimension=DIMENSION),
            embedder,
            config,
        )

    return factory


@pytest.fixture
async def engine(store, index, embedder) -> AsyncGenerator[ContextEngine, None]:
    """Context engine over memory store, keyword embedder, no LLM."""
    engine = ContextEngine(store, index, embedder, make_config())
    await engine.initialize()
    yield engine
    await engine.close()
