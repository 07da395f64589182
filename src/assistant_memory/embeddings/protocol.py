"""
Text embedding protocol for assistant-memory.

Provides a unified interface for embedding text into dense vectors. The
retrieval engine and the storage layer only ever see this protocol, so the
reference HashEmbedding can be swapped for a real model without touching them.
"""

from typing import List, Protocol

from typing_extensions import runtime_checkable


@runtime_checkable
class TextEmbedding(Protocol):
    """
    Protocol for text embedding providers.

    All implementations must:

    1. Return deterministic vectors for the same input
    2. Return unit-length vectors (or the zero vector for empty input)
    3. Expose their output dimension for compatibility checking
    4. Implement async methods for consistency

    Example:
        >>> embedder = HashEmbedding(dimension=384)
        >>> vector = await embedder.embed_document("Hello world")
        >>> len(vector) == embedder.dimension
        True
    """

    @property
    def dimension(self) -> int:
        """
        Vector dimension produced by this embedder.

        Stored vectors of a different length score 0.0 against queries, so
        switching models should be followed by a re-import (which re-embeds).
        """
        ...

    @property
    def model_name(self) -> str:
        """Identifier of the embedding model (e.g., "hash-sin-384")."""
        ...

    async def embed_document(self, text: str) -> List[float]:
        """
        Generate embedding for a record's content.

        Args:
            text: Document text to embed

        Returns:
            Embedding vector of length `dimension`
        """
        ...

    async def embed_query(self, text: str) -> List[float]:
        """
        Generate embedding for a search query.

        Some models distinguish between documents and queries. This method
        handles query-specific preprocessing.

        Args:
            text: Query text to embed

        Returns:
            Embedding vector of length `dimension`
        """
        ...

    async def embed_documents(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        """
        Generate embeddings for multiple documents (same order as input).
        """
        ...

    async def embed_queries(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        """
        Generate embeddings for multiple queries (same order as input).
        """
        ...
