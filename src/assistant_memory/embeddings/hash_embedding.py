"""Deterministic lexical embedding used as the default backend."""

import logging
import re
from typing import Dict, List, Tuple

import numpy as np

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"\b\w+\b")

# Word hashes are folded into [1, HASH_MODULUS]
HASH_MODULUS = 65521

WORD_WEIGHT = 0.1


def stable_hash(word: str) -> int:
    """
    31-multiplier rolling hash folded to a small positive integer.

    Unlike the builtin hash(), the result does not change between processes.
    """
    value = 0
    for char in word:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    return value % HASH_MODULUS + 1


class HashEmbedding:
    """
    Lexical fingerprint embedding.

    Each word contributes sin(h * (i + 1)) to dimension i, where h is the
    word's stable hash; the sum is L2-normalised. Texts sharing words score
    high, unrelated texts land near zero. This is not a semantic model:
    synonyms do not match.

    Example:
        >>> embedder = HashEmbedding(dimension=384)
        >>> a = embedder.embed("singleton pattern")
        >>> b = embedder.embed("singleton pattern")
        >>> a == b
        True
    """

    def __init__(self, dimension: int = 384):
        if dimension <= 0:
            raise ValueError("dimension must be positive")

        self._dimension = dimension
        self._phases = np.arange(1, dimension + 1, dtype=np.float64)
        self._cache: Dict[str, Tuple[float, ...]] = {}

        logger.info(f"HashEmbedding initialized ({dimension} dimensions)")

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return f"hash-sin-{self._dimension}"

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def embed(self, text: str) -> List[float]:
        """Embed text synchronously. Empty or word-less text yields the zero vector."""
        cached = self._cache.get(text)
        if cached is not None:
            return list(cached)

        vector = np.zeros(self._dimension, dtype=np.float64)
        for word in WORD_PATTERN.findall(text.lower()):
            vector += np.sin(stable_hash(word) * self._phases) * WORD_WEIGHT

        magnitude = np.linalg.norm(vector)
        if magnitude > 0:
            vector /= magnitude

        result = tuple(float(v) for v in vector)
        self._cache[text] = result
        return list(result)

    async def embed_document(self, text: str) -> List[float]:
        return self.embed(text)

    async def embed_query(self, text: str) -> List[float]:
        return self.embed(text)

    async def embed_documents(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        return [self.embed(text) for text in texts]

    async def embed_queries(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        return [self.embed(text) for text in texts]
