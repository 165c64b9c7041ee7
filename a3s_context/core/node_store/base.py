"""
Base interface for node storage.

The node store is the single source of truth for node existence. Backends
are selected at construction time from configuration.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable

from a3s_context.models.node import DigestLevel, Node
from a3s_context.models.pathway import Namespace, Pathway
from a3s_context.models.retrieval import StoreStats


class NodeStore(ABC):
    """Abstract base class for node store implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the backend (create directories, load records).

        Raises:
            StorageError: If the backend cannot be opened
        """
        pass

    @abstractmethod
    async def put(self, node: Node) -> None:
        """
        Store a node, overwriting any node at the same pathway.

        Last writer wins; there is no optimistic concurrency check.

        Args:
            node: Node to store

        Raises:
            ValidationError: If node is a container whose stored parent is a leaf
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, pathway: Pathway | str) -> Node | None:
        """
        Retrieve a node by pathway.

        Returns:
            A copy of the stored node, or None if absent
        """
        pass

    @abstractmethod
    async def get_by_id(self, node_id: str) -> Node | None:
        """Retrieve a node by its identifier."""
        pass

    @abstractmethod
    async def list(self, pathway: Pathway | str, recursive: bool = False) -> list[Node]:
        """
        List nodes under a pathway, in pathway order.

        Args:
            pathway: Parent pathway (need not be stored itself)
            recursive: All descendants instead of immediate children

        Returns:
            Child or descendant nodes; the pathway itself is excluded
        """
        pass

    @abstractmethod
    async def delete(self, pathway: Pathway | str, recursive: bool = False) -> int:
        """
        Delete a node, optionally with all its descendants.

        Args:
            pathway: Pathway to delete
            recursive: Also delete descendants

        Returns:
            Number of nodes removed

        Raises:
            NotFoundError: If nothing exists at (or, recursively, under) pathway
            ConflictError: If recursive is False and pathway has descendants
            StorageError: If the removal fails
        """
        pass

    @abstractmethod
    async def update(self, pathway: Pathway | str, mutate: Callable[[Node], None]) -> Node:
        """
        Read-modify-write a node under its write lock.

        Args:
            pathway: Pathway of the node
            mutate: Callback applied in place to a copy of the stored node

        Returns:
            The node as written

        Raises:
            NotFoundError: If the node is absent
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def iter_nodes(self, namespace: Namespace | None = None) -> AsyncIterator[Node]:
        """Iterate over stored nodes in pathway order."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        pass

    async def exists(self, pathway: Pathway | str) -> bool:
        return await self.get(pathway) is not None

    async def put_many(self, nodes: list[Node]) -> None:
        for node in nodes:
            await self.put(node)

    async def search_text(
        self,
        pattern: str,
        under: Pathway | str | None = None,
        case_insensitive: bool = True,
    ) -> list[Pathway]:
        """
        Find nodes whose content contains a substring.

        Args:
            pattern: Substring to look for
            under: Restrict to this pathway and its descendants
            case_insensitive: Compare lowercased text

        Returns:
            Matching pathways in pathway order
        """
        scope = Pathway.parse(under) if under is not None else None
        needle = pattern.lower() if case_insensitive else pattern

        results = []
        async for node in self.iter_nodes(scope.namespace if scope else None):
            if scope is not None and node.pathway != scope and not scope.is_ancestor_of(node.pathway):
                continue
            haystack = node.content.lower() if case_insensitive else node.content
            if needle in haystack:
                results.append(node.pathway)
        return results

    async def stats(self) -> StoreStats:
        """Count nodes, embeddings and digest coverage."""
        stats = StoreStats()
        async for node in self.iter_nodes():
            stats.total_nodes += 1
            ns = node.pathway.namespace.value
            stats.by_namespace[ns] = stats.by_namespace.get(ns, 0) + 1
            stats.by_type[node.type.value] = stats.by_type.get(node.type.value, 0) + 1
            stats.content_bytes += len(node.content.encode("utf-8"))
            if node.embedding:
                stats.with_embedding += 1
            if node.digest.brief is not None:
                stats.with_brief += 1
            if node.digest.summary is not None:
                stats.with_summary += 1
            if node.is_digest_stale(DigestLevel.BRIEF) or node.is_digest_stale(
                DigestLevel.SUMMARY
            ):
                stats.stale_digests += 1
        return stats
