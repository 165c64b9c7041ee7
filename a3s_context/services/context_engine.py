"""
Context Engine - single entry point over the context store.

Brings together:
- Node store (source of truth) and HNSW vector index (derived state)
- Embedder, digest LLM and reranker providers
- Digest manager, retrieval engine and sessions

Write path: node → store → digests (when eager) → embedding → index.
The index is only ever updated after the store, so it can always be rebuilt
from the embeddings saved on surviving nodes.
"""

from __future__ import annotations

import asyncio
from functools import partial

from a3s_context.config import Config, DigestReadPolicy, EmbedSource
from a3s_context.core.embeddings.base import Embedder
from a3s_context.core.factory import (
    EmbedderFactory,
    LLMFactory,
    NodeStoreFactory,
    RerankerFactory,
    VectorIndexFactory,
)
from a3s_context.core.llm.base import LLMProvider
from a3s_context.core.node_store.base import NodeStore
from a3s_context.core.rerank.base import Reranker
from a3s_context.core.tokenizer import Tokenizer
from a3s_context.core.vector_index.hnsw import HNSWIndex
from a3s_context.models.node import DigestLevel, Node, NodeType
from a3s_context.models.pathway import Pathway
from a3s_context.models.retrieval import BatchResult, DigestView, QueryOptions, QueryResult, StoreStats
from a3s_context.services.digest_manager import DigestManager
from a3s_context.services.retrieval_engine import RetrievalEngine
from a3s_context.services.session import Session, SessionManager
from a3s_context.utils.exceptions import (
    A3SError,
    DigestGenerationError,
    EmbeddingError,
    NotFoundError,
    ValidationError,
    VectorIndexError,
)
from a3s_context.utils.locks import KeyedLock
from a3s_context.utils.logger import get_logger
from a3s_context.utils.retry import retry_transient, with_timeout

logger = get_logger(__name__)


class ContextEngine:
    """
    Hierarchical context store with semantic retrieval.

    Features:
    - Pathway-addressed nodes with Brief / Summary / Full digests
    - Vector + hierarchical search with optional reranking
    - Conversation sessions under a3s://session
    """

    def __init__(
        self,
        store: NodeStore,
        index: HNSWIndex,
        embedder: Embedder,
        config: Config | None = None,
        llm: LLMProvider | None = None,
        reranker: Reranker | None = None,
    ):
        """
        Initialize Context Engine.

        Args:
            store: Node store backend
            index: Vector index sized to the embedder's dimension
            embedder: Embedder for node and query embeddings
            config: Configuration object
            llm: Optional LLM for digest generation (extractive fallback if None)
            reranker: Optional reranker for the final retrieval stage
        """
        self.config = config or Config()
        self.store = store
        self.index = index
        self.embedder = embedder
        self.llm = llm
        self.reranker = reranker

        self.digests = DigestManager(
            store=store,
            llm=llm,
            tokenizer=Tokenizer(self.config.tokenizer),
            config=self.config.digest,
        )
        self.retrieval = RetrievalEngine(
            store=store,
            index=index,
            embedder=embedder,
            config=self.config.retrieval,
            reranker=reranker,
        )
        # Session writes and deletes keep the index in step like any other node
        self.sessions = SessionManager(
            store,
            self.config.session,
            write=self.put_node,
            remove=partial(self.remove, recursive=True),
        )

        # Serializes the write pipeline per pathway
        self._write_locks = KeyedLock()

    @classmethod
    async def create(cls, config: Config | None = None) -> "ContextEngine":
        """
        Build and initialize an engine from configuration.

        Raises:
            ConfigurationError: If a provider is unsupported or misconfigured
            StorageError: If the node store cannot be opened
        """
        config = config or Config()

        logger.info(
            f"Configuration: storage={config.storage.backend.value}, "
            f"embedder={config.embedder.provider}/{config.embedder.model}, "
            f"llm={config.llm.provider}"
        )

        store = NodeStoreFactory.create(config.storage)
        embedder = EmbedderFactory.create(config.embedder)
        llm = LLMFactory.create(config.llm)
        reranker = (
            RerankerFactory.create(config.retrieval.rerank_config)
            if config.retrieval.rerank
            else None
        )

        dimension = await EmbedderFactory.get_dimension(embedder, config.embedder)
        logger.info(f"Embedding dimension: {dimension}")
        index = VectorIndexFactory.create(config.storage.vector_index, dimension)

        engine = cls(store, index, embedder, config, llm=llm, reranker=reranker)
        await engine.initialize()
        return engine

    async def initialize(self) -> None:
        """Open the store and rebuild the index from stored embeddings."""
        logger.info("Initializing Context Engine")
        await self.store.initialize()
        await self.rebuild_index()
        logger.info("Context Engine ready")

    async def close(self) -> None:
        """Cancel background digest work and release all providers."""
        await self.digests.close()
        await self.embedder.close()
        if self.llm is not None:
            await self.llm.close()
        if self.reranker is not None:
            await self.reranker.close()
        await self.store.close()
        logger.info("Context Engine closed")

    # ═══════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════

    async def put(
        self,
        pathway: Pathway | str,
        content: str,
        node_type: NodeType = NodeType.DOCUMENT,
        metadata: dict[str, str] | None = None,
        tags: list[str] | None = None,
    ) -> Node:
        """
        Write content at a pathway, then digest, embed and index it.

        Args:
            pathway: Target pathway
            content: Full content
            node_type: Type of node
            metadata: Optional string metadata
            tags: Optional tags

        Returns:
            The stored node (with digests and embedding when produced)

        Raises:
            InvalidPathwayError: If the pathway is malformed
            ValidationError: If a container is written under a leaf node
            StorageError: If the write fails
            EmbeddingError: If the node was stored but could not be embedded
            VectorIndexError: If the embedding does not fit the index
        """
        node = Node(
            pathway=Pathway.parse(pathway),
            type=node_type,
            content=content,
            metadata=metadata or {},
            tags=tags or [],
        )
        return await self.put_node(node)

    async def put_node(self, node: Node) -> Node:
        """Write a prepared node through the full write path; the caller's node is not modified."""
        node = node.model_copy(deep=True)
        pathway = node.pathway

        async with self._write_locks.acquire(str(pathway)):
            previous = await self.store.get(pathway)
            if previous is not None:
                node.created_at = previous.created_at
                # Previous digests stay, stale if the content moved on
                if node.digest.brief is None and node.digest.summary is None:
                    node.digest = previous.digest
                if previous.content_hash == node.content_hash and node.embedding is None:
                    node.embedding = previous.embedding

            # Index entry goes first so it never outlives the content it was made from
            if node.embedding is None:
                await self.index.aremove(node.id)

            await self.store.put(node)

            if self.config.digest.eager:
                node = await self._eager_digests(node)

            if node.embedding is None:
                node = await self._embed_and_index(node)
            elif node.id not in self.index:
                await self.index.ainsert(node.id, node.embedding)

        logger.debug(
            f"Stored {node.type.value} node at {pathway}",
            extra={
                "pathway": str(pathway),
                "node_type": node.type.value,
                "content_length": len(node.content),
                "embedded": node.embedding is not None,
            },
        )
        return node

    async def put_many(self, nodes: list[Node], concurrency: int | None = None) -> BatchResult:
        """
        Write many nodes in parallel with bounded concurrency.

        Failures are collected per pathway; other nodes are still written.
        """
        semaphore = asyncio.Semaphore(max(1, concurrency or self.config.retrieval.concurrency))
        result = BatchResult()

        async def run(node: Node) -> None:
            async with semaphore:
                try:
                    await self.put_node(node)
                    result.succeeded.append(str(node.pathway))
                except A3SError as e:
                    result.failed[str(node.pathway)] = str(e)

        await asyncio.gather(*(run(node) for node in nodes))

        logger.info(
            f"Batch write: {len(result.succeeded)} stored, {len(result.failed)} failed",
            extra={"succeeded": len(result.succeeded), "failed": len(result.failed)},
        )
        return result

    async def mkdir(self, pathway: Pathway | str, metadata: dict[str, str] | None = None) -> Node:
        """
        Create a directory node; an existing container is returned unchanged.

        Raises:
            ValidationError: If a non-container node already holds the pathway
        """
        pathway = Pathway.parse(pathway)
        existing = await self.store.get(pathway)
        if existing is not None:
            if not existing.is_container:
                raise ValidationError(
                    f"{pathway} already holds a {existing.type.value} node",
                    context={"pathway": str(pathway)},
                )
            return existing

        node = Node(pathway=pathway, type=NodeType.DIRECTORY, metadata=metadata or {})
        await self.store.put(node)
        return node

    async def remove(self, pathway: Pathway | str, recursive: bool = False) -> int:
        """
        Delete a node (and descendants if recursive) with their index entries.

        Returns:
            Number of nodes removed

        Raises:
            NotFoundError: If nothing exists at the pathway
            ConflictError: If recursive is False and the pathway has descendants
            StorageError: If the removal fails (index entries of surviving nodes are restored)
        """
        pathway = Pathway.parse(pathway)
        targets = await self.store.list(pathway, recursive=True) if recursive else []
        node = await self.store.get(pathway)
        if node is not None:
            targets.append(node)

        for target in targets:
            await self.index.aremove(target.id)

        try:
            count = await self.store.delete(pathway, recursive=recursive)
        except A3SError:
            await self._restore_index(targets)
            raise

        return count

    # ═══════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════

    async def get(self, pathway: Pathway | str, track_access: bool = False) -> Node | None:
        """Get a node; with track_access its access counter is bumped."""
        if not track_access:
            return await self.store.get(pathway)
        try:
            return await self.store.update(pathway, lambda node: node.mark_accessed())
        except NotFoundError:
            return None

    async def read(
        self,
        pathway: Pathway | str,
        level: DigestLevel = DigestLevel.FULL,
        policy: DigestReadPolicy | None = None,
    ) -> DigestView:
        """
        Read a node at a digest level.

        Raises:
            NotFoundError: If the node does not exist
            DigestGenerationError: If the level must be generated and that fails
        """
        return await self.digests.read(pathway, level, policy)

    async def brief(self, pathway: Pathway | str) -> str | None:
        return (await self.read(pathway, DigestLevel.BRIEF)).text

    async def summary(self, pathway: Pathway | str) -> str | None:
        return (await self.read(pathway, DigestLevel.SUMMARY)).text

    async def list(self, pathway: Pathway | str, recursive: bool = False) -> list[Node]:
        return await self.store.list(pathway, recursive)

    async def query(self, text: str, options: QueryOptions | None = None, **kwargs) -> QueryResult:
        """
        Semantic query; keyword arguments are QueryOptions fields.

        Example:
            await engine.query("auth flow", namespace="knowledge", limit=5)
        """
        if kwargs:
            base = options.model_dump() if options is not None else {}
            options = QueryOptions(**{**base, **kwargs})
        return await self.retrieval.query(text, options)

    async def search_text(
        self, pattern: str, under: Pathway | str | None = None, case_insensitive: bool = True
    ) -> list[Pathway]:
        return await self.store.search_text(pattern, under, case_insensitive)

    async def stats(self) -> StoreStats:
        stats = await self.store.stats()
        stats.index_size = len(self.index)
        return stats

    # ═══════════════════════════════════════════════════════════
    # SESSIONS
    # ═══════════════════════════════════════════════════════════

    async def open_session(self, session_id: str | None = None) -> Session:
        return await self.sessions.open(session_id)

    # ═══════════════════════════════════════════════════════════
    # INDEX MAINTENANCE
    # ═══════════════════════════════════════════════════════════

    async def rebuild_index(self) -> int:
        """
        Rebuild the vector index from embeddings stored on nodes.

        Nodes whose embedding does not match the index dimension are skipped
        and can be re-embedded with embed_missing().
        """
        items = []
        skipped = 0
        async for node in self.store.iter_nodes():
            if not node.embedding:
                continue
            if len(node.embedding) != self.index.dimension:
                skipped += 1
                continue
            items.append((node.id, node.embedding))

        if skipped:
            logger.warning(
                f"Skipped {skipped} node(s) with embeddings of the wrong dimension",
                extra={"skipped": skipped, "dimension": self.index.dimension},
            )

        return await self.index.arebuild(items)

    async def embed_missing(self, concurrency: int | None = None) -> BatchResult:
        """Embed and index every node that has embeddable text but no embedding."""
        semaphore = asyncio.Semaphore(max(1, concurrency or self.config.retrieval.concurrency))
        result = BatchResult()

        async def run(node: Node) -> None:
            async with semaphore:
                try:
                    async with self._write_locks.acquire(str(node.pathway)):
                        await self._embed_and_index(node)
                    result.succeeded.append(str(node.pathway))
                except A3SError as e:
                    result.failed[str(node.pathway)] = str(e)

        pending = [
            node
            async for node in self.store.iter_nodes()
            if not node.embedding and self._embedding_text(node)
        ]
        await asyncio.gather(*(run(node) for node in pending))
        return result

    # ═══════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════

    async def _eager_digests(self, node: Node) -> Node:
        if node.is_container or not node.content.strip():
            return node
        try:
            return await self.digests.ensure(node)
        except DigestGenerationError as e:
            # The node is stored; the digest will be generated on first read
            logger.warning(
                f"Eager digest generation failed for {node.pathway}: {e}",
                extra={"pathway": str(node.pathway), "transient": e.transient},
            )
            return node

    def _embedding_text(self, node: Node) -> str:
        if self.config.retrieval.embed_source == EmbedSource.BRIEF:
            brief = node.get_digest(DigestLevel.BRIEF)
            if brief and not node.is_digest_stale(DigestLevel.BRIEF):
                return brief
        return node.content

    async def _embed(self, text: str) -> list[float]:
        retrieval = self.config.retrieval

        async def call() -> list[float]:
            return await with_timeout(
                self.embedder.embed(text), self.config.embedder.timeout, EmbeddingError, "embedding"
            )

        return await retry_transient(call, "embedding", retrieval.max_retries, retrieval.retry_delay)

    async def _embed_and_index(self, node: Node) -> Node:
        text = self._embedding_text(node)
        if not text.strip():
            return node

        embedding = await self._embed(text)
        if len(embedding) != self.index.dimension:
            raise VectorIndexError(
                f"Embedding dimension {len(embedding)} does not match index dimension "
                f"{self.index.dimension}",
                context={"pathway": str(node.pathway)},
            )
        source_hash = node.content_hash

        def attach(current: Node) -> None:
            if current.content_hash != source_hash:
                raise EmbeddingError(
                    f"Content of {node.pathway} changed during embedding",
                    transient=True,
                    context={"pathway": str(node.pathway)},
                )
            current.embedding = embedding

        updated = await self.store.update(node.pathway, attach)
        await self.index.ainsert(updated.id, embedding)
        return updated

    async def _restore_index(self, nodes: list[Node]) -> None:
        for node in nodes:
            if not await self.store.exists(node.pathway):
                continue
            if node.embedding and len(node.embedding) == self.index.dimension:
                await self.index.ainsert(node.id, node.embedding)
