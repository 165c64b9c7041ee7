"""
Retrieval Engine - vector search plus hierarchical exploration.

Pipeline:
query text → embedding → oversampled HNSW search → hierarchy / sibling
expansion → namespace + pathway filter → threshold → optional rerank → limit

Hierarchy scoring: an ancestor `h` hops above a vector hit with score `s`
gets the derived score `s * decay**h`; its final score is the maximum over its
own direct score and every derived score. Maximum is monotonic: a new
higher-scoring descendant can never lower a container's score. Expansion is a
single round seeded only by vector hits and bounded by `max_depth`.

Tie-break for equal scores: fewer segments first, then pathway order.
"""

import time

from pydantic import BaseModel

from a3s_context.config import RetrievalConfig, SimilarityMetric
from a3s_context.core.embeddings.base import Embedder
from a3s_context.core.node_store.base import NodeStore
from a3s_context.core.rerank.base import Reranker
from a3s_context.core.vector_index.hnsw import HNSWIndex
from a3s_context.models.node import DigestLevel, Node
from a3s_context.models.pathway import Pathway, PathwayPattern
from a3s_context.models.retrieval import (
    Match,
    MatchSource,
    QueryOptions,
    QueryResult,
    RerankDocument,
)
from a3s_context.utils.exceptions import (
    EmbeddingError,
    ProviderError,
    ValidationError,
    VectorIndexError,
)
from a3s_context.utils.logger import get_logger
from a3s_context.utils.retry import retry_transient, with_timeout

logger = get_logger(__name__)


class Candidate(BaseModel):
    """A node under consideration with its best score so far."""

    node: Node
    score: float
    via: MatchSource


def rank_key(candidate: Candidate) -> tuple:
    pathway = candidate.node.pathway
    return (-candidate.score, pathway.depth, pathway.sort_key)


class RetrievalEngine:
    """
    Answers semantic queries over the node store.

    Args:
        store: Node store (source of truth)
        index: Vector index over node embeddings
        embedder: Query embedder (same model as node embeddings)
        config: Retrieval configuration
        reranker: Optional reranker for the final stage
    """

    def __init__(
        self,
        store: NodeStore,
        index: HNSWIndex,
        embedder: Embedder,
        config: RetrievalConfig | None = None,
        reranker: Reranker | None = None,
    ):
        self.store = store
        self.index = index
        self.embedder = embedder
        self.config = config or RetrievalConfig()
        self.reranker = reranker

    async def query(self, text: str, options: QueryOptions | None = None) -> QueryResult:
        """
        Run a retrieval query.

        Args:
            text: Query text
            options: Query options (defaults from configuration)

        Returns:
            QueryResult with ranked matches and diagnostics

        Raises:
            ValidationError: Empty query or threshold outside the metric's range
            InvalidPathwayError: Malformed pathway_filter
            EmbeddingError: If the query cannot be embedded
            VectorIndexError: If the query embedding does not fit the index
            ProviderError: If rerank_required is set and reranking fails
        """
        options = options or QueryOptions()
        if not text or not text.strip():
            raise ValidationError("Query text cannot be empty")

        limit = options.limit or self.config.default_limit
        threshold = (
            options.threshold if options.threshold is not None else self.config.score_threshold
        )
        hierarchical = (
            options.hierarchical if options.hierarchical is not None else self.config.hierarchical
        )
        max_depth = options.max_depth if options.max_depth is not None else self.config.max_depth
        rerank = options.rerank if options.rerank is not None else self.config.rerank
        rerank = rerank or options.rerank_required

        if self.index.metric == SimilarityMetric.COSINE and not -1.0 <= threshold <= 1.0:
            raise ValidationError(
                f"Threshold {threshold} is outside the cosine range [-1, 1]",
                context={"threshold": threshold},
            )
        pattern = PathwayPattern.compile(options.pathway_filter) if options.pathway_filter else None

        # 1. Embed
        start = time.time()
        vector = await self._embed_query(text)
        embed_ms = (time.time() - start) * 1000

        # 2. Oversampled vector search
        start = time.time()
        k = max(limit * self.config.expansion_factor, limit)
        ef = max(options.ef or self.index.ef_search, k)
        hits = self.index.search(vector, k, ef)
        candidates = await self._resolve_hits(hits)

        # 3. Hierarchical expansion
        if hierarchical and max_depth > 0 and candidates:
            await self._expand(candidates, vector, max_depth)

        total = len(candidates)

        # 4. Namespace and pathway filter by exclusion; 5. threshold
        kept = [
            c
            for c in candidates.values()
            if (options.namespace is None or c.node.pathway.namespace == options.namespace)
            and (pattern is None or pattern.matches(c.node.pathway))
            and c.score >= threshold
        ]
        kept.sort(key=rank_key)

        # 6. Rerank, degrading to similarity order on failure; 7. limit
        result = QueryResult(total_candidates=total, embed_ms=embed_ms)
        rerank_scores: dict[str, float] = {}
        if rerank and kept:
            reranked = await self._rerank(text, kept, options.rerank_required, result.degraded)
            if reranked is not None:
                kept, rerank_scores = reranked
                result.reranked = True

        result.matches = [
            self._to_match(c, options, rerank_scores.get(c.node.id)) for c in kept[:limit]
        ]
        result.search_ms = (time.time() - start) * 1000

        logger.debug(
            f"Query returned {len(result.matches)} match(es) from {total} candidate(s)",
            extra={
                "matches": len(result.matches),
                "candidates": total,
                "reranked": result.reranked,
                "degraded": len(result.degraded),
                "embed_ms": round(embed_ms, 2),
                "search_ms": round(result.search_ms, 2),
            },
        )
        return result

    # ═══════════════════════════════════════════════════════════
    # STAGES
    # ═══════════════════════════════════════════════════════════

    async def _embed_query(self, text: str) -> list[float]:
        async def call() -> list[float]:
            return await with_timeout(
                self.embedder.embed(text), self.config.timeout, EmbeddingError, "query embedding"
            )

        return await retry_transient(
            call, "query embedding", self.config.max_retries, self.config.retry_delay
        )

    async def _resolve_hits(self, hits: list[tuple[str, float]]) -> dict[Pathway, Candidate]:
        """Map index hits to live nodes, dropping dangling index entries."""
        candidates: dict[Pathway, Candidate] = {}
        for node_id, score in hits:
            node = await self.store.get_by_id(node_id)
            if node is None:
                logger.warning(
                    f"Removing dangling index entry {node_id}",
                    extra={"node_id": node_id},
                )
                await self.index.aremove(node_id)
                continue
            candidates[node.pathway] = Candidate(node=node, score=score, via=MatchSource.VECTOR)
        return candidates

    async def _expand(
        self, candidates: dict[Pathway, Candidate], vector: list[float], max_depth: int
    ) -> None:
        """Score stored ancestors of vector hits, then score siblings of hits."""
        decay = self.config.hierarchy_decay
        hits = [(c.node.pathway, c.score) for c in candidates.values()]
        lookups: dict[Pathway, Node | None] = {}

        async def lookup(pathway: Pathway) -> Node | None:
            if pathway not in lookups:
                lookups[pathway] = await self.store.get(pathway)
            return lookups[pathway]

        for pathway, score in hits:
            for hops, ancestor in enumerate(pathway.ancestors(max_depth), start=1):
                derived = score * decay**hops
                existing = candidates.get(ancestor)
                if existing is not None:
                    if derived > existing.score:
                        existing.score = derived
                        existing.via = MatchSource.HIERARCHY
                    continue
                node = await lookup(ancestor)
                if node is not None:
                    candidates[ancestor] = Candidate(
                        node=node, score=derived, via=MatchSource.HIERARCHY
                    )

        listed: set[Pathway] = set()
        for pathway, _ in hits:
            parent = pathway.parent
            if parent is None or parent in listed or await lookup(parent) is None:
                continue
            listed.add(parent)
            for sibling in await self.store.list(parent):
                if sibling.pathway in candidates or not sibling.embedding:
                    continue
                try:
                    score = self.index.similarity(vector, sibling.embedding)
                except VectorIndexError as e:
                    logger.warning(
                        f"Skipping sibling {sibling.pathway} with unusable embedding: {e}",
                        extra={"pathway": str(sibling.pathway)},
                    )
                    continue
                candidates[sibling.pathway] = Candidate(
                    node=sibling, score=score, via=MatchSource.SIBLING
                )

    async def _rerank(
        self,
        text: str,
        ranked: list[Candidate],
        required: bool,
        degraded: list[str],
    ) -> tuple[list[Candidate], dict[str, float]] | None:
        """
        Reorder candidates with the reranker.

        Returns:
            (reordered subset, node id -> rerank score), or None when
            reranking is unavailable and the similarity order stands
        """
        if self.reranker is None:
            reason = "rerank requested but no reranker is configured"
            if required:
                raise ProviderError(reason)
            degraded.append(reason)
            return None

        rerank_config = self.config.rerank_config
        documents = [
            RerankDocument(
                id=c.node.id, text=c.node.get_digest(DigestLevel.BRIEF) or c.node.content
            )
            for c in ranked
        ]

        async def call():
            return await with_timeout(
                self.reranker.rerank(text, documents, rerank_config.top_n),
                rerank_config.timeout,
                ProviderError,
                "rerank",
            )

        try:
            results = await retry_transient(
                call, "rerank", self.config.max_retries, self.config.retry_delay
            )
        except ProviderError as e:
            if required:
                raise
            logger.warning(
                f"Rerank failed, returning similarity order: {e}",
                extra={"transient": e.transient, "candidates": len(ranked)},
            )
            degraded.append(f"rerank failed: {e}")
            return None
        except Exception as e:
            # Providers outside this package may raise their own errors
            if required:
                raise ProviderError(
                    f"Rerank failed: {e}", context={"error_type": type(e).__name__}
                ) from e
            logger.warning(
                f"Rerank failed with {type(e).__name__}, returning similarity order: {e}",
                extra={"error_type": type(e).__name__, "candidates": len(ranked)},
            )
            degraded.append(f"rerank failed: {e}")
            return None

        by_id = {c.node.id: c for c in ranked}
        reordered = []
        scores = {}
        for r in results[: rerank_config.top_n]:
            candidate = by_id.get(r.id)
            if candidate is None or r.id in scores:
                continue
            reordered.append(candidate)
            scores[r.id] = r.score
        return reordered, scores

    def _to_match(
        self, candidate: Candidate, options: QueryOptions, rerank_score: float | None
    ) -> Match:
        node = candidate.node
        return Match(
            pathway=node.pathway,
            node_type=node.type,
            score=candidate.score,
            via=candidate.via,
            brief=node.get_digest(DigestLevel.BRIEF),
            stale_brief=node.is_digest_stale(DigestLevel.BRIEF),
            rerank_score=rerank_score,
            content=node.content if options.include_content else None,
            summary=node.get_digest(DigestLevel.SUMMARY) if options.include_summary else None,
        )
