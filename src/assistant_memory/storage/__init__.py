"""
Storage for memory records.

Provides the durable store protocol, its SQLAlchemy implementation and the
bounded hot cache that sits in front of it.
"""

from assistant_memory.storage.cache import HotCache
from assistant_memory.storage.protocols import MemoryRecordStore
from assistant_memory.storage.sqlalchemy import SQLAlchemyMemoryStore, create_memory_engine

__all__ = [
    "MemoryRecordStore",
    "SQLAlchemyMemoryStore",
    "HotCache",
    "create_memory_engine",
]
