"""
In-memory node store.

A mapping from Pathway to Node with copy-on-read. Used for tests and
ephemeral contexts, and as the read cache of the local backend.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from a3s_context.core.node_store.base import NodeStore
from a3s_context.models.node import Node
from a3s_context.models.pathway import Namespace, Pathway
from a3s_context.utils.exceptions import ConflictError, NotFoundError, ValidationError
from a3s_context.utils.locks import KeyedLock, SharedExclusiveLock
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)


def lock_key(pathway: Pathway) -> str:
    """
    Lock shard for a pathway: namespace plus first segment.

    Writes anywhere in one top-level subtree serialize with each other, so a
    recursive delete excludes concurrent puts beneath it. A namespace root has
    no shard of its own; writes to it lock the whole namespace.
    """
    if not pathway.segments:
        return pathway.namespace.value
    return f"{pathway.namespace.value}/{pathway.segments[0]}"


class InMemoryNodeStore(NodeStore):
    """
    Dict-backed node store.

    Readers never lock. Writers hold their namespace gate shared plus the lock
    of their subtree shard; writes to a namespace root hold the gate exclusive.
    Subclasses persist through the `_persist` / `_unpersist` hooks, which run
    under those locks. Deletes drop each record from the map as soon as the
    backend has removed it.
    """

    def __init__(self):
        self._nodes: dict[Pathway, Node] = {}
        self._ids: dict[str, Pathway] = {}
        self._locks = KeyedLock()
        self._gates = {namespace: SharedExclusiveLock() for namespace in Namespace}

    @asynccontextmanager
    async def _write_lock(self, pathway: Pathway) -> AsyncIterator[None]:
        gate = self._gates[pathway.namespace]
        if pathway.is_root:
            async with gate.exclusive():
                yield
            return
        async with gate.shared(), self._locks.acquire(lock_key(pathway)):
            yield

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        self._nodes.clear()
        self._ids.clear()

    # ═══════════════════════════════════════════════════════════
    # PERSISTENCE HOOKS
    # ═══════════════════════════════════════════════════════════

    async def _persist(self, node: Node) -> None:
        """Make a node durable. No-op in memory."""

    async def _unpersist(self, pathway: Pathway) -> None:
        """Remove the durable record of one node. No-op in memory."""

    # ═══════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════

    def _check_parent(self, node: Node) -> None:
        if not node.is_container:
            return
        parent_path = node.pathway.parent
        parent = self._nodes.get(parent_path) if parent_path is not None else None
        if parent is not None and not parent.is_container:
            raise ValidationError(
                f"Cannot store container {node.pathway} under leaf node of type "
                f"{parent.type.value}",
                context={"pathway": str(node.pathway), "parent_type": parent.type.value},
            )

    def _commit(self, node: Node) -> None:
        self._nodes[node.pathway] = node
        self._ids[node.id] = node.pathway

    async def put(self, node: Node) -> None:
        stored = node.model_copy(deep=True)
        await asyncio.shield(self._put(stored))

        logger.debug(
            f"Stored node {stored.pathway}",
            extra={"pathway": str(stored.pathway), "type": stored.type.value},
        )

    async def _put(self, node: Node) -> None:
        async with self._write_lock(node.pathway):
            self._check_parent(node)
            await self._persist(node)
            self._commit(node)

    async def update(self, pathway: Pathway | str, mutate: Callable[[Node], None]) -> Node:
        pathway = Pathway.parse(pathway)
        node = await asyncio.shield(self._update(pathway, mutate))
        return node.model_copy(deep=True)

    async def _update(self, pathway: Pathway, mutate: Callable[[Node], None]) -> Node:
        async with self._write_lock(pathway):
            current = self._nodes.get(pathway)
            if current is None:
                raise NotFoundError(f"Node not found: {pathway}", context={"pathway": str(pathway)})

            node = current.model_copy(deep=True)
            mutate(node)
            if node.pathway != pathway:
                raise ValidationError(
                    "update() cannot move a node", context={"pathway": str(pathway)}
                )
            await self._persist(node)
            self._commit(node)
            return node

    async def delete(self, pathway: Pathway | str, recursive: bool = False) -> int:
        pathway = Pathway.parse(pathway)
        count = await asyncio.shield(self._delete(pathway, recursive))

        logger.info(
            f"Deleted {count} node(s) at {pathway}",
            extra={"pathway": str(pathway), "recursive": recursive, "count": count},
        )
        return count

    async def _delete(self, pathway: Pathway, recursive: bool) -> int:
        async with self._write_lock(pathway):
            present = pathway in self._nodes
            descendants = [p for p in self._nodes if pathway.is_ancestor_of(p)]

            if not recursive:
                if not present:
                    raise NotFoundError(
                        f"Node not found: {pathway}", context={"pathway": str(pathway)}
                    )
                if descendants:
                    raise ConflictError(
                        f"Cannot delete {pathway}: it has {len(descendants)} descendant(s); "
                        "use recursive=True",
                        context={"pathway": str(pathway), "descendants": len(descendants)},
                    )

            targets = ([pathway] if present else []) + descendants
            if not targets:
                raise NotFoundError(
                    f"Nothing to delete at {pathway}", context={"pathway": str(pathway)}
                )

            # Deepest first: a failure part way leaves the survivors a connected tree
            targets = sorted(targets, key=lambda p: (-p.depth, p))
            for target in targets:
                await self._unpersist(target)
                removed = self._nodes.pop(target)
                self._ids.pop(removed.id, None)
            return len(targets)

    # ═══════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════

    async def get(self, pathway: Pathway | str) -> Node | None:
        node = self._nodes.get(Pathway.parse(pathway))
        return node.model_copy(deep=True) if node is not None else None

    async def get_by_id(self, node_id: str) -> Node | None:
        pathway = self._ids.get(node_id)
        if pathway is None:
            return None
        return await self.get(pathway)

    async def exists(self, pathway: Pathway | str) -> bool:
        return Pathway.parse(pathway) in self._nodes

    async def list(self, pathway: Pathway | str, recursive: bool = False) -> list[Node]:
        pathway = Pathway.parse(pathway)
        if recursive:
            found = [p for p in self._nodes if pathway.is_ancestor_of(p)]
        else:
            found = [p for p in self._nodes if p.parent == pathway]
        return [self._nodes[p].model_copy(deep=True) for p in sorted(found)]

    async def iter_nodes(self, namespace: Namespace | None = None) -> AsyncIterator[Node]:
        for pathway in sorted(self._nodes):
            if namespace is not None and pathway.namespace != namespace:
                continue
            node = self._nodes.get(pathway)
            if node is not None:
                yield node.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._nodes)
