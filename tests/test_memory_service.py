"""
Tests for MemoryService.

Runs the service against a real SQLite file under tmp_path to verify
lifecycle, CRUD semantics, access bookkeeping and timeouts.
"""

import asyncio
from unittest.mock import Mock

import pytest

from assistant_memory.config import MemoryConfig
from assistant_memory.errors import InitializationError, NotFoundError, StorageError
from assistant_memory.memory_service import MemoryService
from assistant_memory.models import (
    MemoryContext,
    MemoryMetadata,
    MemoryRelationship,
    MemoryType,
    MemoryUpdate,
    RelationshipType,
    content_checksum,
)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_initialize_creates_database_directory(self, memory_config, tmp_path):
        service = MemoryService(memory_config)
        await service.initialize()

        assert service.initialized
        assert (tmp_path / "memory" / "database.sqlite").exists()
        await service.close()
        assert not service.initialized

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, memory_service):
        await memory_service.initialize()
        assert memory_service.initialized

    @pytest.mark.asyncio
    async def test_uncreatable_directory_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        service = MemoryService(MemoryConfig(database_path=str(blocker / "memory" / "database.sqlite")))

        with pytest.raises(InitializationError):
            await service.initialize()
        assert not service.initialized

    @pytest.mark.asyncio
    async def test_unreachable_store_raises(self):
        store = Mock()
        store.create_tables = Mock(side_effect=StorageError("disk I/O error"))
        service = MemoryService(MemoryConfig(database_path=":memory:"), store=store)

        with pytest.raises(InitializationError):
            await service.initialize()
        assert not service.initialized

    @pytest.mark.asyncio
    async def test_operations_before_initialize_raise(self, memory_config):
        service = MemoryService(memory_config)

        with pytest.raises(InitializationError):
            await service.store_memory(MemoryType.CONVERSATION, "hello")
        with pytest.raises(InitializationError):
            await service.get_memory("mem_1")
        with pytest.raises(InitializationError):
            await service.search_memories({"text": "hello"})

    @pytest.mark.asyncio
    async def test_async_context_manager(self, memory_config):
        async with MemoryService(memory_config) as service:
            memory_id = await service.store_memory(MemoryType.CONVERSATION, "hello")
            assert await service.get_memory(memory_id) is not None
        assert not service.initialized

    @pytest.mark.asyncio
    async def test_reopen_keeps_data(self, memory_config):
        async with MemoryService(memory_config) as service:
            memory_id = await service.store_memory(MemoryType.DOCUMENTATION, "persisted")

        async with MemoryService(memory_config) as service:
            record = await service.get_memory(memory_id)
            assert record.content == "persisted"

    @pytest.mark.asyncio
    async def test_cache_warmed_on_initialize(self, memory_config):
        async with MemoryService(memory_config) as service:
            memory_id = await service.store_memory(MemoryType.DOCUMENTATION, "warm me")

        async with MemoryService(memory_config) as service:
            assert memory_id in service.cache


class TestStoreAndGet:
    @pytest.mark.asyncio
    async def test_round_trip(self, memory_service):
        memory_id = await memory_service.store_memory(
            MemoryType.CODE_PATTERN,
            "Pattern: repository",
            metadata={"source": "code_analysis", "confidence": 0.7},
            importance=0.6,
            tags=["code", "pattern", "code"],
        )

        record = await memory_service.get_memory(memory_id)

        assert record.content == "Pattern: repository"
        assert record.type == MemoryType.CODE_PATTERN
        assert set(record.tags) == {"code", "pattern"}
        assert record.importance == 0.6
        assert record.metadata.source == "code_analysis"
        assert record.checksum == content_checksum("Pattern: repository")
        assert len(record.embedding) == memory_service.config.vector_dimensions

    @pytest.mark.asyncio
    async def test_accepts_string_type(self, memory_service):
        memory_id = await memory_service.store_memory("tool_usage", "used grep")
        record = await memory_service.get_memory(memory_id)
        assert record.type == MemoryType.TOOL_USAGE

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, memory_service):
        ids = {await memory_service.store_memory(MemoryType.CONVERSATION, "same") for _ in range(5)}
        assert len(ids) == 5

    @pytest.mark.asyncio
    async def test_caller_metadata_not_mutated(self, memory_service):
        metadata = MemoryMetadata(source="caller")
        await memory_service.store_memory(MemoryType.CONVERSATION, "hello", metadata)
        assert metadata.checksum is None

    @pytest.mark.asyncio
    async def test_context_defaults(self, memory_service):
        memory_service.update_context(
            current_project="/work/app", current_session="s-42", active_files=["app.py"]
        )

        memory_id = await memory_service.store_memory(MemoryType.CONVERSATION, "hello")
        record = await memory_service.get_memory(memory_id)

        assert record.project_id == "/work/app"
        assert record.session_id == "s-42"
        assert record.associated_files == ["app.py"]

        override_id = await memory_service.store_memory(
            MemoryType.CONVERSATION, "other", project_id="p2", associated_files=[]
        )
        override = await memory_service.get_memory(override_id)
        assert override.project_id == "p2"
        assert override.associated_files == []

    @pytest.mark.asyncio
    async def test_update_context_merges(self, memory_service):
        memory_service.update_context(current_project="p1")
        context = memory_service.update_context(MemoryContext(user_focus=["tests"]))

        assert context.current_project == "p1"
        assert context.user_focus == ["tests"]

    @pytest.mark.asyncio
    async def test_store_reinforces_patterns(self, memory_service):
        await memory_service.store_memory(MemoryType.CODE_PATTERN, "class Foo: pass", tags=["python"])

        patterns = await memory_service.top_patterns(category="code_pattern")

        assert len(patterns) == 1
        assert patterns[0].pattern == "code_pattern_success"
        assert patterns[0].frequency == 2
        assert set(patterns[0].examples) == {"class_definition", "tag_python"}

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, memory_service):
        assert await memory_service.get_memory("mem_missing") is None


class TestAccessBookkeeping:
    @pytest.mark.asyncio
    async def test_get_increments_once_and_advances(self, memory_service):
        memory_id = await memory_service.store_memory(MemoryType.CONVERSATION, "hello")
        before = memory_service.store.get_record(memory_id)

        await asyncio.sleep(0.01)
        first = await memory_service.get_memory(memory_id)
        await asyncio.sleep(0.01)
        second = await memory_service.get_memory(memory_id)

        assert first.access_count == before.access_count + 1
        assert second.access_count == before.access_count + 2
        assert first.last_accessed > before.last_accessed
        assert second.last_accessed > first.last_accessed

    @pytest.mark.asyncio
    async def test_cache_and_durable_store_agree(self, memory_service):
        memory_id = await memory_service.store_memory(MemoryType.CONVERSATION, "hello")

        cached = await memory_service.get_memory(memory_id)
        durable = memory_service.store.get_record(memory_id)

        assert cached.access_count == durable.access_count
        assert cached.last_accessed == durable.last_accessed

    @pytest.mark.asyncio
    async def test_get_after_cache_eviction_reads_durable(self, memory_service):
        memory_id = await memory_service.store_memory(MemoryType.CONVERSATION, "hello")
        memory_service.cache.clear()

        record = await memory_service.get_memory(memory_id)

        assert record.access_count == 2
        assert memory_id in memory_service.cache

    @pytest.mark.asyncio
    async def test_failed_get_touches_nothing(self, memory_service):
        memory_id = await memory_service.store_memory(MemoryType.CONVERSATION, "hello")
        before = memory_service.store.get_record(memory_id)

        assert await memory_service.get_memory("mem_missing") is None

        after = memory_service.store.get_record(memory_id)
        assert after.access_count == before.access_count
        assert after.last_accessed == before.last_accessed


class TestUpdate:
    @pytest.mark.asyncio
    async def test_content_change_recomputes_embedding_and_checksum(self, memory_service):
        memory_id = await memory_service.store_memory(MemoryType.DOCUMENTATION, "old text")
        original = memory_service.store.get_record(memory_id)
        await asyncio.sleep(0.01)

        await memory_service.update_memory(memory_id, {"content": "brand new words"})
        updated = memory_service.store.get_record(memory_id)

        assert updated.content == "brand new words"
        assert updated.checksum == content_checksum("brand new words")
        assert updated.embedding == memory_service.embedding.embed("brand new words")
        assert updated.embedding != original.embedding
        assert updated.updated_at > original.updated_at

    @pytest.mark.asyncio
    async def test_partial_update_leaves_other_fields(self, memory_service):
        memory_id = await memory_service.store_memory(
            MemoryType.DOCUMENTATION, "text", importance=0.4, tags=["docs"]
        )

        await memory_service.update_memory(
            memory_id, MemoryUpdate(importance=0.9, metadata={"relevance": 0.1})
        )
        updated = await memory_service.get_memory(memory_id)

        assert updated.importance == 0.9
        assert updated.metadata.relevance == 0.1
        assert updated.content == "text"
        assert updated.tags == ["docs"]
        assert updated.checksum == content_checksum("text")

    @pytest.mark.asyncio
    async def test_updated_at_refreshed_without_content_change(self, memory_service):
        memory_id = await memory_service.store_memory(MemoryType.DOCUMENTATION, "text")
        original = memory_service.store.get_record(memory_id)
        await asyncio.sleep(0.01)

        await memory_service.update_memory(memory_id, {"tags": ["new"]})

        assert memory_service.store.get_record(memory_id).updated_at > original.updated_at

    @pytest.mark.asyncio
    async def test_relationships_cannot_be_patched(self, memory_service):
        source = await memory_service.store_memory(MemoryType.DOCUMENTATION, "source")
        target = await memory_service.store_memory(MemoryType.DOCUMENTATION, "target")

        with pytest.raises(ValueError):
            await memory_service.update_memory(
                source, {"metadata": {"relationships": [{"target_id": target, "type": "uses"}]}}
            )

        assert memory_service.store.get_record(source).metadata.relationships == []
        assert memory_service.store.get_relationships(source_id=source) == []

    @pytest.mark.asyncio
    async def test_update_refreshes_cached_copy(self, memory_service):
        memory_id = await memory_service.store_memory(MemoryType.DOCUMENTATION, "text")

        await memory_service.update_memory(memory_id, {"content": "changed"})

        assert (await memory_service.get_memory(memory_id)).content == "changed"

    @pytest.mark.asyncio
    async def test_unknown_id_raises(self, memory_service):
        with pytest.raises(NotFoundError):
            await memory_service.update_memory("mem_missing", {"importance": 0.2})


class TestDelete:
    @pytest.mark.asyncio
    async def test_soft_delete_archives(self, memory_service):
        memory_id = await memory_service.store_memory(MemoryType.CONVERSATION, "hello")

        await memory_service.delete_memory(memory_id)

        assert memory_service.store.get_record(memory_id).archived is True
        assert await memory_service.search_memories({}) == []
        archived = await memory_service.search_memories({"include_archived": True})
        assert [result.record.id for result in archived] == [memory_id]

    @pytest.mark.asyncio
    async def test_permanent_delete_removes_record_and_edges(self, memory_service):
        target = await memory_service.store_memory(MemoryType.CONVERSATION, "target")
        source = await memory_service.store_memory(
            MemoryType.CONVERSATION,
            "source",
            metadata={"relationships": [{"target_id": target, "type": "uses", "strength": 0.7}]},
        )

        await memory_service.delete_memory(target, permanent=True)

        assert await memory_service.get_memory(target) is None
        assert memory_service.store.get_relationships(source_id=source) == []

    @pytest.mark.asyncio
    async def test_unknown_id_raises(self, memory_service):
        with pytest.raises(NotFoundError):
            await memory_service.delete_memory("mem_missing")
        with pytest.raises(NotFoundError):
            await memory_service.delete_memory("mem_missing", permanent=True)


class TestRelationships:
    @pytest.mark.asyncio
    async def test_relationships_stored_with_record(self, memory_service):
        target = await memory_service.store_memory(MemoryType.CONVERSATION, "target")
        source = await memory_service.store_memory(
            MemoryType.CONVERSATION,
            "source",
            metadata=MemoryMetadata(
                relationships=[MemoryRelationship(target_id=target, type=RelationshipType.DEPENDENT, strength=0.6)]
            ),
        )

        edges = memory_service.store.get_relationships(source_id=source)

        assert len(edges) == 1
        assert edges[0].target_id == target
        assert edges[0].type == RelationshipType.DEPENDENT
        assert edges[0].strength == 0.6

    @pytest.mark.asyncio
    async def test_unknown_target_writes_nothing(self, memory_service):
        with pytest.raises(NotFoundError):
            await memory_service.store_memory(
                MemoryType.CONVERSATION,
                "source",
                metadata={"relationships": [{"target_id": "mem_missing"}]},
            )

        assert memory_service.store.count_records() == 0

    @pytest.mark.asyncio
    async def test_relate_memories(self, memory_service):
        a = await memory_service.store_memory(MemoryType.CONVERSATION, "a")
        b = await memory_service.store_memory(MemoryType.CONVERSATION, "b")

        edge = await memory_service.relate_memories(a, b, RelationshipType.SIMILAR, 0.9)

        assert edge.source_id == a
        assert memory_service.store.get_relationships(target_id=b)[0].id == edge.id

        with pytest.raises(NotFoundError):
            await memory_service.relate_memories(a, "mem_missing")


class TestLearnFromInteraction:
    @pytest.mark.asyncio
    async def test_reinforces_pattern(self, memory_service):
        await memory_service.learn_from_interaction(
            {"type": "tool_bash", "success": True, "context": {"cmd": "ls"}, "duration": 15}
        )
        pattern = await memory_service.learn_from_interaction(
            {"type": "tool_bash", "success": True, "duration": 5}
        )

        assert pattern.frequency == 2
        assert pattern.success_rate == 1.0
        assert pattern.context["last_duration_ms"] == 5


class TestTimeouts:
    @pytest.mark.asyncio
    async def test_store_timeout_leaves_nothing(self, memory_config, stub_embedding_cls):
        service = MemoryService(memory_config, embedding=stub_embedding_cls(delay=0.5))
        await service.initialize()

        with pytest.raises(asyncio.TimeoutError):
            await service.store_memory(MemoryType.CONVERSATION, "slow", timeout=0.05)

        assert service.store.count_records() == 0
        await service.close()

    @pytest.mark.asyncio
    async def test_search_timeout(self, memory_config, stub_embedding_cls):
        service = MemoryService(memory_config, embedding=stub_embedding_cls())
        await service.initialize()
        await service.store_memory(MemoryType.CONVERSATION, "fast")
        service.embedding.delay = 0.5

        with pytest.raises(asyncio.TimeoutError):
            await service.search_memories({"text": "fast"}, timeout=0.05)

        # The lock was released; later calls still work
        service.embedding.delay = 0
        assert await service.search_memories({"text": "fast", "similarity_threshold": 0}, timeout=5)
        await service.close()

    @pytest.mark.asyncio
    async def test_concurrent_stores_all_persist(self, memory_service):
        ids = await asyncio.gather(
            *[memory_service.store_memory(MemoryType.CONVERSATION, f"message {i}") for i in range(10)]
        )

        assert len(set(ids)) == 10
        assert memory_service.store.count_records() == 10
