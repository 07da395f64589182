"""Tests for the agent-facing MemoryIntegration façade."""

import pytest
import pytest_asyncio

from assistant_memory.integration import MemoryIntegration
from assistant_memory.models import MemoryQuery, MemoryType


@pytest_asyncio.fixture
async def integration(tmp_path):
    memory = MemoryIntegration(tmp_path, session_id="session-1")
    yield memory
    await memory.close()


async def only_record(memory: MemoryIntegration, memory_type: MemoryType):
    results = await memory.service.search_memories(MemoryQuery(type=memory_type))
    assert len(results) == 1
    return results[0].record


@pytest.mark.asyncio
async def test_lazy_initialization_creates_project_database(integration, tmp_path):
    assert not integration.service.initialized

    await integration.store_conversation("hi", "hello")

    assert integration.service.initialized
    assert (tmp_path / ".assistant_memory" / "memory" / "database.sqlite").exists()


@pytest.mark.asyncio
async def test_store_conversation(integration, tmp_path):
    await integration.store_conversation("How do I run tests?", "Use pytest", {"topic": "testing"})

    record = await only_record(integration, MemoryType.CONVERSATION)
    assert record.content == "User: How do I run tests?\nAssistant: Use pytest"
    assert record.importance == 0.7
    assert set(record.tags) == {"conversation", "dialogue"}
    assert record.metadata.source == "conversation"
    assert record.metadata.context["topic"] == "testing"
    assert record.project_id == str(tmp_path)
    assert record.session_id == "session-1"


@pytest.mark.asyncio
async def test_store_code_pattern(integration):
    await integration.store_code_pattern("singleton", "one instance", file_path="app/db.py", language="python")

    record = await only_record(integration, MemoryType.CODE_PATTERN)
    assert record.content == "Pattern: singleton\nDescription: one instance"
    assert record.importance == 0.8
    assert set(record.tags) == {"code", "pattern", "python", "file"}
    assert record.metadata.context["file_path"] == "app/db.py"


@pytest.mark.asyncio
async def test_store_user_preference(integration):
    await integration.store_user_preference("formatting", "indent", {"style": "spaces", "width": 4})

    record = await only_record(integration, MemoryType.USER_PREFERENCE)
    assert record.content == 'formatting: indent = {"style": "spaces", "width": 4}'
    assert record.importance == 0.9
    assert set(record.tags) == {"preference", "formatting"}
    assert record.metadata.confidence == 1.0


@pytest.mark.asyncio
async def test_store_error_resolution(integration):
    await integration.store_error_resolution("ModuleNotFoundError: yaml", "pip install pyyaml")

    record = await only_record(integration, MemoryType.ERROR_RESOLUTION)
    assert record.content == "Error: ModuleNotFoundError: yaml\nSolution: pip install pyyaml"
    assert record.importance == 0.95
    assert set(record.tags) == {"error", "solution", "troubleshooting"}


@pytest.mark.asyncio
async def test_search_relevant_memories_across_types(integration):
    await integration.store_code_pattern("singleton", "one instance")
    await integration.store_error_resolution("singleton", "lock")
    await integration.store_conversation("unrelated", "weather talk")

    results = await integration.search_relevant_memories(
        "singleton", max_results=10, types=[MemoryType.CODE_PATTERN, MemoryType.ERROR_RESOLUTION]
    )

    assert {result.record.type for result in results} == {
        MemoryType.CODE_PATTERN,
        MemoryType.ERROR_RESOLUTION,
    }
    assert [result.score for result in results] == sorted((r.score for r in results), reverse=True)


@pytest.mark.asyncio
async def test_contextual_memories_markdown(integration):
    await integration.store_code_pattern("singleton", "one instance", language="python")

    block = await integration.get_contextual_memories("singleton", active_files=["app.py"])

    assert "## Relevant Context from Memory:" in block
    assert "### CODE PATTERN (Relevance:" in block
    assert "Pattern: singleton" in block
    assert "*Tags: code, pattern, python*" in block
    assert integration.service.context.active_files == ["app.py"]
    assert integration.service.context.user_focus == ["singleton"]


@pytest.mark.asyncio
async def test_contextual_memories_empty(integration):
    assert await integration.get_contextual_memories("anything") == ""


@pytest.mark.asyncio
async def test_learn_from_interaction(integration):
    await integration.learn_from_interaction(
        user_message="list files",
        response="done",
        success=True,
        tools_used=["bash", "read_file"],
        duration=120,
    )

    patterns = {pattern.pattern for pattern in await integration.service.top_patterns(n=50)}
    assert {"user_interaction_success", "tool_bash_success", "tool_read_file_success"} <= patterns

    record = await only_record(integration, MemoryType.CONVERSATION)
    assert record.metadata.context["tools_used"] == ["bash", "read_file"]


@pytest.mark.asyncio
async def test_passthroughs(integration, tmp_path):
    await integration.store_user_preference("editor", "theme", "dark")

    stats = await integration.get_memory_stats()
    report = await integration.optimize_memory()
    path = await integration.export_memories(tmp_path / "export.json")
    counts = await integration.import_memories(path)

    assert stats.total_records == 1
    assert report.deduplicated == 0
    assert counts["skipped"] == 1
