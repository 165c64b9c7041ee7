"""Fixtures for node store tests.

Every store test runs against both backends.
"""

from collections.abc import AsyncGenerator

import pytest

from a3s_context.core.node_store import InMemoryNodeStore, LocalNodeStore, NodeStore


@pytest.fixture(params=["memory", "local"])
async def node_store(request, tmp_path) -> AsyncGenerator[NodeStore, None]:
    """Initialized store of each backend."""
    if request.param == "memory":
        store = InMemoryNodeStore()
    else:
        store = LocalNodeStore(root=tmp_path / "store")
    await store.initialize()
    yield store
    await store.close()
