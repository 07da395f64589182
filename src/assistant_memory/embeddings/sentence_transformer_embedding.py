"""Sentence-transformers embedding adapter for assistant-memory."""

import logging
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedding:
    """
    Embedding adapter backed by a local sentence-transformers model.

    Instruction-tuned families (E5, BGE...) expect different prefixes for
    stored documents and for queries; pass them as document_prefix and
    query_prefix. Vectors are cached per (prefix, text) for the lifetime of
    the adapter.

    Example:
        >>> embedder = SentenceTransformerEmbedding(
        ...     model_name="intfloat/e5-small-v2",
        ...     document_prefix="passage: ",
        ...     query_prefix="query: ",
        ... )
        >>> vector = await embedder.embed_query("How do I configure logging?")
        >>> len(vector)
        384
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        device: Optional[str] = None,
        document_prefix: str = "",
        query_prefix: str = "",
        show_progress_bar: bool = False,
        cache_folder: Optional[str] = None,
    ):
        """
        Initialize the embedder.

        Args:
            model_name: HuggingFace model identifier
            device: Device for computation ("cuda", "cpu", or None for auto)
            document_prefix: Prepended to stored content before encoding
            query_prefix: Prepended to search text before encoding
            show_progress_bar: Show encoding progress (disable in production)
            cache_folder: Directory for model cache (None = default ~/.cache)
        """
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ImportError(
                "sentence-transformers is required for SentenceTransformerEmbedding. "
                "Install with: pip install assistant-memory[embeddings-transformers]"
            ) from e

        self._model_name = model_name
        self._document_prefix = document_prefix
        self._query_prefix = query_prefix
        self._show_progress = show_progress_bar
        self._cache: Dict[Tuple[str, str], Tuple[float, ...]] = {}

        logger.info(f"Loading sentence-transformers model: {model_name}")
        self._model = SentenceTransformer(model_name, device=device, cache_folder=cache_folder)
        self._dimension = self._model.get_sentence_embedding_dimension()
        logger.info(f"Model loaded: {model_name} ({self._dimension} dimensions)")

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name

    def _encode(self, texts: List[str], prefix: str, batch_size: int = 32) -> List[List[float]]:
        results: List[Optional[List[float]]] = [None] * len(texts)
        pending: List[int] = []

        for index, text in enumerate(texts):
            if not text or not text.strip():
                results[index] = [0.0] * self._dimension
                continue
            cached = self._cache.get((prefix, text))
            if cached is not None:
                results[index] = list(cached)
            else:
                pending.append(index)

        if pending:
            embeddings = self._model.encode(
                [f"{prefix}{texts[index]}" for index in pending],
                normalize_embeddings=True,
                show_progress_bar=self._show_progress,
                batch_size=batch_size,
            )
            for index, embedding in zip(pending, embeddings):
                vector = [float(v) for v in embedding]
                self._cache[(prefix, texts[index])] = tuple(vector)
                results[index] = vector

        return results

    async def embed_document(self, text: str) -> List[float]:
        return self._encode([text], self._document_prefix)[0]

    async def embed_query(self, text: str) -> List[float]:
        return self._encode([text], self._query_prefix)[0]

    async def embed_documents(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        if not texts:
            return []
        return self._encode(texts, self._document_prefix, batch_size)

    async def embed_queries(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        if not texts:
            return []
        return self._encode(texts, self._query_prefix, batch_size)
