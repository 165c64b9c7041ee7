"""
HNSW vector index.

Hierarchical navigable small world graph over node embeddings, keyed by node
id. The index holds derived state only: it can always be rebuilt from the
embeddings stored on surviving nodes.

Mutations are plain synchronous code with no suspension points, so a mutation
that has started always runs to completion. Validation happens before any
graph edit. The async wrappers serialize mutations behind one writer lock;
search never locks.
"""

import asyncio
import heapq
import math
from collections.abc import Iterable

import numpy as np

from a3s_context.config import SimilarityMetric
from a3s_context.utils.exceptions import VectorIndexError
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)


class HNSWIndex:
    """
    Approximate nearest-neighbor index.

    Features:
    - Multi-layer proximity graph with seeded level assignment
    - Max degree M on upper layers and 2*M on layer 0
    - Keep-closest pruning when neighbor lists overflow
    - Cosine (normalized vectors) or inner product similarity
    - Removal with neighbor repair and entry point re-election

    Example:
        >>> index = HNSWIndex(dimension=3)
        >>> index.insert("a", [1.0, 0.0, 0.0])
        >>> index.search([1.0, 0.1, 0.0], k=1)
        [('a', 0.995...)]
    """

    def __init__(
        self,
        dimension: int,
        metric: SimilarityMetric = SimilarityMetric.COSINE,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 64,
        seed: int = 42,
    ):
        """
        Initialize HNSW index.

        Args:
            dimension: Embedding dimension, fixed for the lifetime of the index
            metric: Similarity metric, fixed for the lifetime of the index
            m: Max connections per node on upper layers (2*m on layer 0)
            ef_construction: Beam width while inserting
            ef_search: Default beam width while searching
            seed: Seed of the level assignment RNG
        """
        if dimension <= 0:
            raise VectorIndexError(f"Dimension must be positive, got {dimension}")
        if m < 2:
            raise VectorIndexError(f"M must be at least 2, got {m}")

        self.dimension = dimension
        self.metric = SimilarityMetric(metric)
        self.m = m
        self.ef_construction = max(ef_construction, m)
        self.ef_search = ef_search
        self.seed = seed

        self._level_mult = 1.0 / math.log(m)
        self._rng = np.random.default_rng(seed)
        self._lock = asyncio.Lock()
        self._reset()

    def _reset(self) -> None:
        self._vectors: dict[str, np.ndarray] = {}
        self._levels: dict[str, int] = {}
        # layer -> node id -> ordered neighbor ids
        self._layers: list[dict[str, list[str]]] = []
        self._entry_point: str | None = None

    # ═══════════════════════════════════════════════════════════
    # VECTOR HELPERS
    # ═══════════════════════════════════════════════════════════

    def _prepare(self, vector: Iterable[float]) -> np.ndarray:
        """Validate a vector and bring it into metric space."""
        try:
            arr = np.asarray(vector, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise VectorIndexError(f"Embedding is not numeric: {e}") from e

        if arr.shape != (self.dimension,):
            raise VectorIndexError(
                f"Dimension mismatch: expected {self.dimension}, got {arr.shape[0] if arr.ndim == 1 else arr.shape}",
                context={"expected": self.dimension, "shape": list(arr.shape)},
            )
        if not np.all(np.isfinite(arr)):
            raise VectorIndexError("Embedding contains non-finite values")

        if self.metric == SimilarityMetric.COSINE:
            norm = np.linalg.norm(arr)
            if norm == 0.0:
                raise VectorIndexError("Cannot index a zero vector under cosine similarity")
            arr = arr / norm
        return arr

    def _similarity(self, query: np.ndarray, node_id: str) -> float:
        return float(np.dot(query, self._vectors[node_id]))

    def _max_degree(self, layer: int) -> int:
        return self.m * 2 if layer == 0 else self.m

    def _draw_level(self) -> int:
        # 1 - U lies in (0, 1], keeping the log finite
        u = 1.0 - self._rng.random()
        return int(-math.log(u) * self._level_mult)

    def _closest(self, base_id: str, candidates: list[str], limit: int) -> list[str]:
        """Keep-closest selection of neighbor ids for base_id."""
        base = self._vectors[base_id]
        scored = sorted(
            ((float(np.dot(base, self._vectors[c])), c) for c in candidates),
            key=lambda item: (-item[0], item[1]),
        )
        return [c for _, c in scored[:limit]]

    # ═══════════════════════════════════════════════════════════
    # GRAPH SEARCH
    # ═══════════════════════════════════════════════════════════

    def _search_layer(
        self, query: np.ndarray, entry_points: list[str], ef: int, layer: int
    ) -> list[tuple[float, str]]:
        """
        Best-first beam search within one layer.

        Returns:
            Up to ef (score, node_id) pairs, best first
        """
        graph = self._layers[layer]
        visited = set(entry_points)
        candidates: list[tuple[float, str]] = []  # max-heap on score via negation
        results: list[tuple[float, str]] = []  # min-heap on score, worst on top

        for ep in entry_points:
            score = self._similarity(query, ep)
            heapq.heappush(candidates, (-score, ep))
            heapq.heappush(results, (score, ep))
            if len(results) > ef:
                heapq.heappop(results)

        while candidates:
            neg_score, current = heapq.heappop(candidates)
            if len(results) >= ef and -neg_score < results[0][0]:
                break

            for neighbor in graph.get(current, ()):
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                score = self._similarity(query, neighbor)
                if len(results) < ef or score > results[0][0]:
                    heapq.heappush(candidates, (-score, neighbor))
                    heapq.heappush(results, (score, neighbor))
                    if len(results) > ef:
                        heapq.heappop(results)

        return sorted(results, key=lambda item: (-item[0], item[1]))

    def _descend(self, query: np.ndarray, down_to: int) -> str:
        """Greedy descent from the top layer to layer down_to (exclusive)."""
        entry = self._entry_point
        for layer in range(len(self._layers) - 1, down_to, -1):
            entry = self._search_layer(query, [entry], 1, layer)[0][1]
        return entry

    # ═══════════════════════════════════════════════════════════
    # MUTATIONS
    # ═══════════════════════════════════════════════════════════

    def insert(self, node_id: str, embedding: Iterable[float]) -> None:
        """
        Insert or replace the embedding of a node.

        Raises:
            VectorIndexError: Dimension mismatch or non-finite values (index unchanged)
        """
        vector = self._prepare(embedding)
        if node_id in self._vectors:
            self.remove(node_id)

        level = self._draw_level()
        self._vectors[node_id] = vector
        self._levels[node_id] = level

        if self._entry_point is None:
            self._layers = [{} for _ in range(level + 1)]
            for layer in self._layers:
                layer[node_id] = []
            self._entry_point = node_id
            return

        top = len(self._layers) - 1
        entry_points = [self._descend(vector, level)] if level < top else [self._entry_point]

        for layer in range(min(level, top), -1, -1):
            found = self._search_layer(vector, entry_points, self.ef_construction, layer)
            neighbors = [nid for _, nid in found[: self.m]]
            graph = self._layers[layer]
            graph[node_id] = neighbors

            max_degree = self._max_degree(layer)
            for neighbor in neighbors:
                links = graph[neighbor]
                links.append(node_id)
                if len(links) > max_degree:
                    graph[neighbor] = self._closest(neighbor, links, max_degree)

            entry_points = [nid for _, nid in found]

        if level > top:
            for _ in range(top + 1, level + 1):
                self._layers.append({node_id: []})
            self._entry_point = node_id

    def remove(self, node_id: str) -> bool:
        """
        Remove a node, repairing neighbors that lose an edge.

        Returns:
            True if the node was present
        """
        if node_id not in self._vectors:
            return False

        level = self._levels.pop(node_id)

        for layer in range(level + 1):
            graph = self._layers[layer]
            orphaned = graph.pop(node_id, [])
            max_degree = self._max_degree(layer)

            for other, links in graph.items():
                if node_id not in links:
                    continue
                links.remove(node_id)
                # Reconnect through the removed node's neighbors
                replacements = [c for c in orphaned if c != other and c not in links and c in graph]
                if replacements:
                    graph[other] = self._closest(other, links + replacements, max_degree)

        del self._vectors[node_id]

        while self._layers and not self._layers[-1]:
            self._layers.pop()

        if not self._vectors:
            self._reset()
        elif self._entry_point == node_id or self._entry_point not in self._layers[-1]:
            top = len(self._layers) - 1
            self._entry_point = min(self._layers[top])

        return True

    def clear(self) -> None:
        self._reset()
        self._rng = np.random.default_rng(self.seed)

    def rebuild(self, items: Iterable[tuple[str, Iterable[float]]]) -> int:
        """
        Rebuild from scratch.

        Args:
            items: (node_id, embedding) pairs

        Returns:
            Number of entries indexed
        """
        self.clear()
        for node_id, embedding in items:
            self.insert(node_id, embedding)
        logger.info(
            f"Rebuilt vector index with {len(self)} entries",
            extra={"size": len(self), "dimension": self.dimension},
        )
        return len(self)

    async def ainsert(self, node_id: str, embedding: Iterable[float]) -> None:
        async with self._lock:
            self.insert(node_id, embedding)

    async def aremove(self, node_id: str) -> bool:
        async with self._lock:
            return self.remove(node_id)

    async def arebuild(self, items: Iterable[tuple[str, Iterable[float]]]) -> int:
        async with self._lock:
            return self.rebuild(items)

    # ═══════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════

    def search(
        self, query: Iterable[float], k: int, ef: int | None = None
    ) -> list[tuple[str, float]]:
        """
        Approximate k nearest neighbors.

        Args:
            query: Query embedding
            k: Max results
            ef: Beam width (defaults to ef_search; raised to at least k)

        Returns:
            (node_id, score) pairs sorted by score descending, ties by id

        Raises:
            VectorIndexError: Dimension mismatch or non-finite values
        """
        vector = self._prepare(query)
        if k <= 0 or self._entry_point is None:
            return []

        ef = max(ef or self.ef_search, k)
        entry = self._descend(vector, 0)
        found = self._search_layer(vector, [entry], ef, 0)
        return [(nid, score) for score, nid in found[:k]]

    def score(self, query: Iterable[float], node_id: str) -> float | None:
        """Exact similarity between a query and an indexed node."""
        if node_id not in self._vectors:
            return None
        return self._similarity(self._prepare(query), node_id)

    def similarity(self, query: Iterable[float], vector: Iterable[float]) -> float:
        """Similarity of two raw vectors under this index's metric."""
        return float(np.dot(self._prepare(query), self._prepare(vector)))

    def get_embedding(self, node_id: str) -> list[float] | None:
        """Stored vector (normalized under cosine)."""
        vector = self._vectors.get(node_id)
        return vector.tolist() if vector is not None else None

    @property
    def max_level(self) -> int:
        return len(self._layers) - 1

    @property
    def entry_point(self) -> str | None:
        return self._entry_point

    def neighbors(self, node_id: str, layer: int = 0) -> list[str]:
        if layer >= len(self._layers):
            return []
        return list(self._layers[layer].get(node_id, []))

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._vectors
