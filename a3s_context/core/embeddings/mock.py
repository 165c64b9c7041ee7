"""
Deterministic offline embedder.

Hashed bag-of-words: each lowercased word is hashed into one of `dimension`
buckets with a hash-derived sign, and the counts are L2-normalized. Texts
sharing words have positive cosine similarity; no network or model needed.
"""

import hashlib
import re

import numpy as np

from a3s_context.core.embeddings.base import Embedder
from a3s_context.utils.exceptions import ValidationError

WORD_PATTERN = re.compile(r"\w+")


class MockEmbedder(Embedder):
    """Hashed bag-of-words embedder for tests and offline use."""

    def __init__(self, dimension: int = 256):
        if dimension <= 0:
            raise ValidationError(f"Dimension must be positive, got {dimension}")
        self.dimension = dimension
        self.calls = 0

    def _bucket(self, token: str) -> tuple[int, float]:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self.dimension, sign

    async def embed(self, text: str, **kwargs) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        self.calls += 1
        vector = np.zeros(self.dimension, dtype=np.float64)
        tokens = WORD_PATTERN.findall(text.lower()) or [text.strip()]
        for token in tokens:
            bucket, sign = self._bucket(token)
            vector[bucket] += sign

        norm = np.linalg.norm(vector)
        if norm == 0.0:
            # Every token cancelled out; fall back to the whole text
            bucket, sign = self._bucket(text)
            vector[bucket] = sign
            norm = 1.0
        return (vector / norm).tolist()

    async def get_dimension(self) -> int:
        return self.dimension

    async def close(self):
        pass
