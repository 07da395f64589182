"""
Text embedding abstractions for assistant-memory.

Provides a protocol-based embedding interface with interchangeable backends:
- HashEmbedding: deterministic lexical fingerprint (default, no model download)
- SentenceTransformerEmbedding: local sentence-transformers model; needs the
  `embeddings-transformers` extra, imported lazily when instantiated
"""

from assistant_memory.embeddings.hash_embedding import HashEmbedding
from assistant_memory.embeddings.protocol import TextEmbedding
from assistant_memory.embeddings.sentence_transformer_embedding import (
    SentenceTransformerEmbedding,
)
from assistant_memory.embeddings.similarity import cosine_similarity

__all__ = [
    "TextEmbedding",
    "HashEmbedding",
    "SentenceTransformerEmbedding",
    "cosine_similarity",
]
