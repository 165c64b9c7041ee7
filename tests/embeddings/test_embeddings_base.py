"""
Tests for embeddings base class.
"""

import asyncio

import pytest

from a3s_context.core.embeddings.base import Embedder


class FixedEmbedder(Embedder):
    """Embedder returning a vector derived from text length."""

    def __init__(self):
        self.in_flight = 0
        self.peak = 0

    async def embed(self, text: str, **kwargs):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        return [float(len(text)), 0.2, 0.3, 0.4, 0.5]

    async def close(self):
        pass


@pytest.mark.unit
@pytest.mark.asyncio
class TestEmbedderBase:
    """Test base Embedder functionality."""

    async def test_abstract_instantiation(self):
        """Test that abstract class cannot be instantiated."""
        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            Embedder()

    async def test_batch_embed_keeps_order(self):
        """Test default batch_embed returns vectors in input order."""
        embedder = FixedEmbedder()
        results = await embedder.batch_embed(["a", "bbb", "cc"])

        assert [vector[0] for vector in results] == [1.0, 3.0, 2.0]

    async def test_batch_embed_bounds_concurrency(self):
        """Test batch_size caps the requests in flight."""
        embedder = FixedEmbedder()
        results = await embedder.batch_embed([f"text{i}" for i in range(10)], batch_size=2)

        assert len(results) == 10
        assert embedder.peak <= 2

    async def test_batch_embed_empty(self):
        """Test empty input gives empty output."""
        assert await FixedEmbedder().batch_embed([]) == []

    async def test_get_dimension_default(self):
        """Test default get_dimension probes with one embedding."""
        assert await FixedEmbedder().get_dimension() == 5
