"""
Factory for creating node store backends.
"""

from a3s_context.config import StorageBackendType, StorageConfig
from a3s_context.core.node_store.base import NodeStore
from a3s_context.core.node_store.local import LocalNodeStore
from a3s_context.core.node_store.memory import InMemoryNodeStore
from a3s_context.utils.exceptions import ConfigurationError


class NodeStoreFactory:
    """Factory for creating node store backends from configuration."""

    @staticmethod
    def create(config: StorageConfig) -> NodeStore:
        """
        Create node store from configuration.

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.backend == StorageBackendType.LOCAL:
            return LocalNodeStore(root=config.path)
        elif config.backend == StorageBackendType.MEMORY:
            return InMemoryNodeStore()
        else:
            raise ConfigurationError(f"Unsupported storage backend: {config.backend}")
