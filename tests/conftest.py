"""Shared fixtures for assistant-memory tests."""

import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from assistant_memory.config import MemoryConfig
from assistant_memory.memory_service import MemoryService
from assistant_memory.storage.sqlalchemy import SQLAlchemyMemoryStore, create_memory_engine


class StubEmbedding:
    """Embedding with fixed vectors per text; unknown text maps to the zero vector."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dimension: int = 3, delay: float = 0.0):
        self.vectors = vectors or {}
        self._dimension = dimension
        self.delay = delay

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return "stub"

    async def _lookup(self, text: str) -> List[float]:
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.vectors.get(text, [0.0] * self._dimension))

    async def embed_document(self, text: str) -> List[float]:
        return await self._lookup(text)

    async def embed_query(self, text: str) -> List[float]:
        return await self._lookup(text)

    async def embed_documents(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        return [await self._lookup(text) for text in texts]

    async def embed_queries(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        return [await self._lookup(text) for text in texts]


@pytest.fixture
def stub_embedding_cls():
    """The StubEmbedding class, for tests that need fixed vectors."""
    return StubEmbedding


@pytest.fixture
def memory_store():
    """Fresh SQLAlchemy memory store on in-memory SQLite."""
    store = SQLAlchemyMemoryStore(create_memory_engine("sqlite:///:memory:"))
    store.create_tables()
    yield store
    store.dispose()


@pytest.fixture
def memory_config(tmp_path):
    """Config with the database file under tmp_path."""
    return MemoryConfig(database_path=str(tmp_path / "memory" / "database.sqlite"))


@pytest_asyncio.fixture
async def memory_service(memory_config):
    """Initialized MemoryService using the default HashEmbedding."""
    service = MemoryService(memory_config)
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture
def age_record():
    """Rewrite a stored record's timestamps to make it look older."""

    def _age(store: SQLAlchemyMemoryStore, memory_id: str, days: float, **changes):
        record = store.get_record(memory_id)
        past = datetime.now() - timedelta(days=days)
        record.created_at = past
        record.updated_at = past
        record.last_accessed = past
        for name, value in changes.items():
            setattr(record, name, value)
        store.update_record(record)
        return record

    return _age
