"""Node storage backends."""

from a3s_context.core.node_store.base import NodeStore
from a3s_context.core.node_store.local import LocalNodeStore
from a3s_context.core.node_store.memory import InMemoryNodeStore

__all__ = ["NodeStore", "LocalNodeStore", "InMemoryNodeStore"]
