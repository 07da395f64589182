import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from assistant_memory.config import MemoryConfig
from assistant_memory.embeddings import HashEmbedding, TextEmbedding
from assistant_memory.errors import InitializationError, NotFoundError, StorageError
from assistant_memory.health import HealthReporter
from assistant_memory.learning import LearningPatternTracker, reinforcements_for_record
from assistant_memory.models import (
    Interaction,
    LearningPattern,
    MemoryContext,
    MemoryHealthStatus,
    MemoryMetadata,
    MemoryQuery,
    MemoryRecord,
    MemorySearchResult,
    MemoryStats,
    MemoryType,
    MemoryUpdate,
    OptimizationReport,
    Relationship,
    RelationshipType,
    content_checksum,
)
from assistant_memory.retention import RetentionEngine
from assistant_memory.retrieval import RetrievalEngine
from assistant_memory.scheduler import MaintenanceScheduler
from assistant_memory.snapshot import ExportDocument, read_export, write_export
from assistant_memory.storage import (
    HotCache,
    MemoryRecordStore,
    SQLAlchemyMemoryStore,
    create_memory_engine,
)

logger = logging.getLogger(__name__)


class MemoryService:
    """
    Persistent memory engine for one project.

    Every public operation runs under a single asyncio.Lock, so stores,
    searches, updates and retention steps never interleave. Durable calls are
    made from worker threads.

    Example:
        async with MemoryService(MemoryConfig.for_project(".")) as memory:
            memory_id = await memory.store_memory(MemoryType.CODE_PATTERN, "Pattern: singleton")
            results = await memory.search_memories(MemoryQuery(text="singleton"))
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        embedding: Optional[TextEmbedding] = None,
        store: Optional[MemoryRecordStore] = None,
    ):
        self.config = config or MemoryConfig()
        self.embedding = embedding or HashEmbedding(self.config.vector_dimensions)
        self.store = store
        self._owns_store = store is None

        self.cache = HotCache(self.config.cache_capacity)
        self.context = MemoryContext()
        self._lock = asyncio.Lock()
        self._initialized = False
        self._scheduler: Optional[MaintenanceScheduler] = None

        self.retrieval: Optional[RetrievalEngine] = None
        self.retention: Optional[RetentionEngine] = None
        self.health: Optional[HealthReporter] = None
        self.patterns: Optional[LearningPatternTracker] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self):
        """
        Open the durable store, create the schema and warm the cache.

        Raises:
            InitializationError: directory cannot be created or the store is unreachable
        """
        if self._initialized:
            return

        try:
            if self.store is None:
                if self.config.is_file_database:
                    Path(self.config.database_path).parent.mkdir(parents=True, exist_ok=True)
                self.store = SQLAlchemyMemoryStore(create_memory_engine(self.config.database_url))

            await asyncio.to_thread(self.store.create_tables)
            await asyncio.to_thread(self.store.ping)
        except (OSError, StorageError) as e:
            logger.error(f"Failed to initialize memory system: {e}")
            raise InitializationError(f"Failed to initialize memory system: {e}") from e

        self.retrieval = RetrievalEngine(self.store, self.embedding, self.cache, self.config)
        self.retention = RetentionEngine(
            self.store, self.embedding, self.cache, self.config, self._lock
        )
        self.health = HealthReporter(self.store, self.cache, self.config)
        self.patterns = LearningPatternTracker(self.store)

        recent = await asyncio.to_thread(self.store.recent_records, self.config.initial_cache_load)
        for record in recent:
            self.cache.put(record)

        self._initialized = True
        status = await self.health.check()
        logger.info(
            f"Memory system initialized ({self.config.database_url}, "
            f"{len(recent)} cached, health={status.status})"
        )

    async def close(self):
        await self.stop_maintenance()
        if self._initialized and self._owns_store and hasattr(self.store, "dispose"):
            self.store.dispose()
            self.store = None
        self.cache.clear()
        self._initialized = False
        logger.info("Memory system closed")

    async def __aenter__(self) -> "MemoryService":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _require_initialized(self):
        if not self._initialized:
            raise InitializationError("Memory system not initialized")

    async def store_memory(
        self,
        type: MemoryType | str,
        content: str,
        metadata: MemoryMetadata | Dict[str, Any] | None = None,
        importance: float = 0.5,
        tags: Optional[List[str]] = None,
        session_id: Optional[str] = None,
        project_id: Optional[str] = None,
        associated_files: Optional[List[str]] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Persist a new memory and return its id.

        The record, the relationships listed in metadata and the derived
        learning-pattern reinforcements are written in one transaction.
        Project, session and files default to the current context.

        Raises:
            NotFoundError: a relationship names an unknown target
            StorageError: the write failed; nothing was stored
            asyncio.TimeoutError: timeout elapsed (the write is all or nothing)
        """
        self._require_initialized()

        if isinstance(metadata, dict):
            metadata = MemoryMetadata(**metadata)
        elif metadata is not None:
            metadata = metadata.model_copy(deep=True)

        now = datetime.now()
        record = MemoryRecord(
            type=type,
            content=content,
            metadata=metadata or MemoryMetadata(),
            created_at=now,
            updated_at=now,
            last_accessed=now,
            importance=importance,
            tags=tags or [],
            associated_files=(
                associated_files if associated_files is not None else list(self.context.active_files)
            ),
            session_id=session_id if session_id is not None else self.context.current_session,
            project_id=project_id if project_id is not None else self.context.current_project,
        )
        record.metadata.checksum = content_checksum(content)
        record.metadata.compressed = False

        return await asyncio.wait_for(self._store(record), timeout=timeout)

    async def _store(self, record: MemoryRecord) -> str:
        async with self._lock:
            relationships = [
                Relationship(
                    source_id=record.id,
                    target_id=descriptor.target_id,
                    type=descriptor.type,
                    strength=descriptor.strength,
                    metadata=descriptor.metadata,
                )
                for descriptor in record.metadata.relationships
            ]
            if relationships:
                targets = {relationship.target_id for relationship in relationships}
                existing = await asyncio.to_thread(self.store.existing_ids, targets)
                missing = sorted(targets - existing)
                if missing:
                    raise NotFoundError(missing[0], kind="Relationship target")

            record.embedding = await self.embedding.embed_document(record.content)
            reinforcements = reinforcements_for_record(record)

            await asyncio.to_thread(self.store.add_record, record, relationships, reinforcements)
            self.cache.put(record)

            logger.info(
                f"Stored memory {record.id} (type={record.type.value}, "
                f"importance={record.importance}, relationships={len(relationships)})"
            )
            return record.id

    async def search_memories(
        self, query: MemoryQuery | Dict[str, Any], timeout: Optional[float] = None
    ) -> List[MemorySearchResult]:
        self._require_initialized()
        if isinstance(query, dict):
            query = MemoryQuery(**query)

        return await asyncio.wait_for(self._search(query), timeout=timeout)

    async def _search(self, query: MemoryQuery) -> List[MemorySearchResult]:
        async with self._lock:
            return await self.retrieval.search(query)

    async def get_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        """Get a memory by id; a hit counts as an access, a miss changes nothing."""
        self._require_initialized()

        async with self._lock:
            record = self.cache.get(memory_id)
            cached = record is not None
            if not cached:
                record = await asyncio.to_thread(self.store.get_record, memory_id)
                if record is None:
                    logger.debug(f"Memory {memory_id} not found")
                    return None

            now = datetime.now()
            await asyncio.to_thread(self.store.touch_record, memory_id, now)
            record.access_count += 1
            record.last_accessed = now

            if cached:
                self.cache.touch(memory_id, now)
            else:
                self.cache.put(record)
            return record

    async def update_memory(
        self, memory_id: str, updates: MemoryUpdate | Dict[str, Any]
    ) -> MemoryRecord:
        """
        Apply a partial update.

        Content changes recompute the embedding and checksum in the same write
        and clear the compressed flag.

        Raises:
            NotFoundError: memory_id is unknown
            ValueError: the metadata patch names relationships (use relate_memories)
        """
        self._require_initialized()
        if isinstance(updates, dict):
            updates = MemoryUpdate(**updates)

        async with self._lock:
            record = await asyncio.to_thread(self.store.get_record, memory_id)
            if record is None:
                raise NotFoundError(memory_id)

            if updates.metadata is not None:
                merged = record.metadata.model_dump()
                merged.update(updates.metadata)
                checksum, compressed = record.metadata.checksum, record.metadata.compressed
                record.metadata = MemoryMetadata(**merged)
                record.metadata.checksum = checksum
                record.metadata.compressed = compressed

            if updates.content is not None and updates.content != record.content:
                record.content = updates.content
                record.embedding = await self.embedding.embed_document(updates.content)
                record.metadata.checksum = content_checksum(updates.content)
                record.metadata.compressed = False

            if updates.type is not None:
                record.type = updates.type
            if updates.importance is not None:
                record.importance = updates.importance
            if updates.tags is not None:
                record.tags = list(dict.fromkeys(updates.tags))
            if updates.associated_files is not None:
                record.associated_files = updates.associated_files

            record.updated_at = datetime.now()
            await asyncio.to_thread(self.store.update_record, record)
            if memory_id in self.cache:
                self.cache.put(record)

            logger.info(f"Updated memory {memory_id}")
            return record

    async def delete_memory(self, memory_id: str, permanent: bool = False):
        """
        Archive a memory, or remove it and its relationships when permanent.

        Raises:
            NotFoundError: memory_id is unknown
        """
        self._require_initialized()

        async with self._lock:
            if permanent:
                found = await asyncio.to_thread(self.store.delete_record, memory_id)
            else:
                found = await asyncio.to_thread(self.store.archive_record, memory_id)
            if not found:
                raise NotFoundError(memory_id)

            self.cache.discard(memory_id)
            logger.info(f"{'Deleted' if permanent else 'Archived'} memory {memory_id}")

    async def relate_memories(
        self,
        source_id: str,
        target_id: str,
        type: RelationshipType | str = RelationshipType.RELATED,
        strength: float = 0.5,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Relationship:
        self._require_initialized()
        relationship = Relationship(
            source_id=source_id,
            target_id=target_id,
            type=type,
            strength=strength,
            metadata=metadata or {},
        )

        async with self._lock:
            existing = await asyncio.to_thread(self.store.existing_ids, [source_id, target_id])
            for memory_id in (source_id, target_id):
                if memory_id not in existing:
                    raise NotFoundError(memory_id)

            await asyncio.to_thread(self.store.add_relationship, relationship)
            return relationship

    async def learn_from_interaction(
        self, interaction: Interaction | Dict[str, Any]
    ) -> LearningPattern:
        self._require_initialized()
        if isinstance(interaction, dict):
            interaction = Interaction(**interaction)

        async with self._lock:
            return await self.patterns.reinforce(
                interaction.type,
                interaction.success,
                interaction.context,
                interaction.duration,
            )

    async def top_patterns(self, category: Optional[str] = None, n: int = 10) -> List[LearningPattern]:
        self._require_initialized()
        async with self._lock:
            return await self.patterns.top_patterns(category, n)

    async def get_memory_stats(self) -> MemoryStats:
        self._require_initialized()
        async with self._lock:
            return await self.health.stats()

    async def check_health(self) -> MemoryHealthStatus:
        self._require_initialized()
        async with self._lock:
            return await self.health.check()

    async def optimize_memory(self) -> OptimizationReport:
        """Deduplicate, compress, archive expired records and bound the cache."""
        self._require_initialized()
        return await self.retention.optimize(self.retrieval.average_latency_ms)

    async def export_memories(self, path: str | Path) -> Path:
        """Write every record (archived included), relationship and pattern to a JSON document."""
        self._require_initialized()

        async with self._lock:
            document = ExportDocument(
                memories=await asyncio.to_thread(self.store.all_records),
                relationships=await asyncio.to_thread(self.store.all_relationships),
                patterns=await asyncio.to_thread(self.store.all_patterns),
                config=self.config.model_dump(mode="json"),
            )
            return await asyncio.to_thread(write_export, document, path)

    async def import_memories(self, path: str | Path) -> Dict[str, int]:
        """
        Merge an export document into this store.

        Embeddings and checksums are recomputed from content. Records whose
        id already exists are skipped.

        Raises:
            ValueError: malformed document or unsupported version
        """
        self._require_initialized()
        document = await asyncio.to_thread(read_export, path)

        records = document.memories
        embeddings = await self.embedding.embed_documents([record.content for record in records])
        for record, embedding in zip(records, embeddings):
            record.embedding = embedding
            record.metadata.checksum = content_checksum(record.content)

        async with self._lock:
            return await asyncio.to_thread(
                self.store.import_snapshot, records, document.relationships, document.patterns
            )

    def update_context(self, context: MemoryContext | Dict[str, Any] | None = None, **fields) -> MemoryContext:
        """Merge fields into the working context used as defaults by store_memory."""
        if isinstance(context, MemoryContext):
            context = context.model_dump(exclude_unset=True)
        updates = {**(context or {}), **fields}
        self.context = MemoryContext(**{**self.context.model_dump(), **updates})
        return self.context

    def start_maintenance(self):
        """Run optimization and health checks in the background on their configured intervals."""
        self._require_initialized()
        if self._scheduler and self._scheduler.running:
            return

        self._scheduler = MaintenanceScheduler()
        self._scheduler.add_job(
            "optimize", self.config.optimize_interval_seconds, self.optimize_memory
        )
        self._scheduler.add_job(
            "health_check", self.config.health_check_interval_seconds, self.check_health
        )
        self._scheduler.start()

    async def stop_maintenance(self):
        if self._scheduler:
            await self._scheduler.stop()

    @property
    def scheduler(self) -> Optional[MaintenanceScheduler]:
        return self._scheduler
