"""
Example: Persistent memory for a coding assistant

Demonstrates:
1. Storing memories with tags, importance and relationships
2. Similarity search and importance-based listing
3. Learning patterns from interaction outcomes
4. Optimization, stats and export
5. The MemoryIntegration façade

Optional real embeddings:
    pip install assistant-memory[embeddings-transformers]
"""

import asyncio
import logging
import tempfile
from pathlib import Path

from assistant_memory import (
    MemoryConfig,
    MemoryIntegration,
    MemoryQuery,
    MemoryService,
    MemoryType,
)


async def example_memory_service(workdir: Path):
    """Example: Store, search and maintain memories directly."""
    print("\n=== MemoryService ===")

    config = MemoryConfig.for_project(workdir)
    async with MemoryService(config) as memory:
        memory.update_context(current_project=str(workdir), current_session="demo")

        singleton = await memory.store_memory(
            MemoryType.CODE_PATTERN,
            "Pattern: singleton\nDescription: one instance",
            importance=0.8,
            tags=["code", "pattern"],
        )
        await memory.store_memory(
            MemoryType.ARCHITECTURAL_DECISION,
            "Database access goes through a single connection pool",
            importance=0.9,
            tags=["architecture"],
            metadata={"relationships": [{"target_id": singleton, "type": "uses", "strength": 0.7}]},
        )

        results = await memory.search_memories(MemoryQuery(text="singleton pattern", max_results=5))
        for result in results:
            print(f"{result.score:.2f}  {result.record.type.value}: {result.record.content.splitlines()[0]}")

        print("\nBy importance:")
        for result in await memory.search_memories(MemoryQuery(max_results=5)):
            related = ", ".join(r.id for r in result.related_records) or "-"
            print(f"{result.record.importance:.2f}  {result.record.content[:50]}  related: {related}")

        await memory.learn_from_interaction({"type": "tool_bash", "success": True, "duration": 120})
        for pattern in await memory.top_patterns(n=3):
            print(f"Pattern {pattern.pattern}: frequency={pattern.frequency}, confidence={pattern.confidence}")

        report = await memory.optimize_memory()
        print(f"\nOptimization: {report.model_dump()}")

        stats = await memory.get_memory_stats()
        print(f"Records: {stats.total_records}, health: {stats.health.status}")

        path = await memory.export_memories(workdir / "export.json")
        print(f"Exported to {path}")


async def example_integration(workdir: Path):
    """Example: Agent-facing façade with preset memory kinds."""
    print("\n=== MemoryIntegration ===")

    memory = MemoryIntegration(workdir, session_id="demo")
    try:
        await memory.store_error_resolution(
            "ModuleNotFoundError: No module named 'yaml'", "pip install pyyaml"
        )
        await memory.store_user_preference("formatting", "indent", "4 spaces")
        await memory.learn_from_interaction(
            user_message="why does import yaml fail?",
            response="Install pyyaml",
            success=True,
            tools_used=["bash"],
            duration=800,
        )

        print(await memory.get_contextual_memories("import yaml fails with ModuleNotFoundError"))
    finally:
        await memory.close()


async def main():
    logging.basicConfig(level=logging.INFO)

    with tempfile.TemporaryDirectory() as tmp:
        await example_memory_service(Path(tmp) / "service")
        await example_integration(Path(tmp) / "integration")


if __name__ == "__main__":
    asyncio.run(main())
