"""
Agent-facing façade over MemoryService.

Stores the fixed kinds of memory an assistant produces (conversations, code
patterns, preferences, error resolutions) with preset importance and tags,
and renders relevant memories as a markdown block for prompts.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from assistant_memory.config import MemoryConfig
from assistant_memory.embeddings import TextEmbedding
from assistant_memory.memory_service import MemoryService
from assistant_memory.models import (
    MemoryMetadata,
    MemorySearchResult,
    MemoryStats,
    MemoryType,
    OptimizationReport,
)

logger = logging.getLogger(__name__)

CONTEXT_MEMORY_TYPES = [
    MemoryType.CONVERSATION,
    MemoryType.CODE_PATTERN,
    MemoryType.ERROR_RESOLUTION,
    MemoryType.USER_PREFERENCE,
]


def _timestamp() -> str:
    return datetime.now().isoformat()


class MemoryIntegration:
    """
    One memory database per project, initialized on first use.

    Example:
        memory = MemoryIntegration("/path/to/project", session_id="s1")
        await memory.store_error_resolution("ImportError: foo", "pip install foo")
        context = await memory.get_contextual_memories("foo import fails")
        await memory.close()
    """

    def __init__(
        self,
        project_path: str | Path,
        session_id: str,
        embedding: Optional[TextEmbedding] = None,
        **config_overrides,
    ):
        self.project_path = Path(project_path)
        config = MemoryConfig.for_project(self.project_path, **config_overrides)

        self.service = MemoryService(config, embedding=embedding)
        self.service.update_context(
            current_project=str(self.project_path),
            current_session=session_id,
            working_directory=str(self.project_path),
        )

    async def _ensure_initialized(self):
        if not self.service.initialized:
            await self.service.initialize()

    async def initialize(self):
        await self._ensure_initialized()

    async def store_conversation(
        self,
        user_message: str,
        assistant_response: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        await self._ensure_initialized()

        return await self.service.store_memory(
            MemoryType.CONVERSATION,
            f"User: {user_message}\nAssistant: {assistant_response}",
            MemoryMetadata(
                source="conversation",
                confidence=0.9,
                relevance=0.8,
                context={"timestamp": _timestamp(), **(context or {})},
            ),
            importance=0.7,
            tags=["conversation", "dialogue"],
        )

    async def store_code_pattern(
        self,
        pattern: str,
        description: str,
        file_path: Optional[str] = None,
        language: Optional[str] = None,
    ) -> str:
        await self._ensure_initialized()

        tags = ["code", "pattern"]
        if language:
            tags.append(language)
        if file_path:
            tags.append("file")

        return await self.service.store_memory(
            MemoryType.CODE_PATTERN,
            f"Pattern: {pattern}\nDescription: {description}",
            MemoryMetadata(
                source="code_analysis",
                confidence=0.8,
                relevance=0.9,
                context={"file_path": file_path, "language": language, "timestamp": _timestamp()},
            ),
            importance=0.8,
            tags=tags,
        )

    async def store_user_preference(self, category: str, preference: str, value: Any) -> str:
        await self._ensure_initialized()

        return await self.service.store_memory(
            MemoryType.USER_PREFERENCE,
            f"{category}: {preference} = {json.dumps(value)}",
            MemoryMetadata(
                source="user_interaction",
                confidence=1.0,
                relevance=0.9,
                context={
                    "category": category,
                    "preference": preference,
                    "value": value,
                    "timestamp": _timestamp(),
                },
            ),
            importance=0.9,
            tags=["preference", category],
        )

    async def store_error_resolution(
        self, error: str, solution: str, context: Optional[Dict[str, Any]] = None
    ) -> str:
        await self._ensure_initialized()

        return await self.service.store_memory(
            MemoryType.ERROR_RESOLUTION,
            f"Error: {error}\nSolution: {solution}",
            MemoryMetadata(
                source="error_handling",
                confidence=0.9,
                relevance=1.0,
                context={**(context or {}), "timestamp": _timestamp()},
            ),
            importance=0.95,
            tags=["error", "solution", "troubleshooting"],
        )

    async def search_relevant_memories(
        self,
        query: str,
        max_results: int = 10,
        types: Optional[List[MemoryType]] = None,
    ) -> List[MemorySearchResult]:
        """
        Similarity search, optionally split across memory types.

        With several types each gets an equal share of max_results; the merged
        list is re-sorted by score.
        """
        await self._ensure_initialized()

        if not types:
            return await self.service.search_memories(
                {"text": query, "max_results": max_results, "similarity_threshold": 0.3}
            )

        per_type = -(-max_results // len(types))
        results: List[MemorySearchResult] = []
        for memory_type in types:
            results.extend(
                await self.service.search_memories(
                    {
                        "text": query,
                        "type": memory_type,
                        "max_results": per_type,
                        "similarity_threshold": 0.3,
                    }
                )
            )

        results.sort(key=lambda result: result.score, reverse=True)
        return results[:max_results]

    async def get_contextual_memories(
        self,
        current_message: str,
        active_files: Optional[List[str]] = None,
        working_directory: Optional[str] = None,
    ) -> str:
        """Markdown block of memories relevant to the message, or "" when none match."""
        await self._ensure_initialized()

        self.service.update_context(
            active_files=active_files or [],
            user_focus=[current_message],
            temporary_context={
                "current_task": current_message,
                "working_directory": working_directory or str(self.project_path),
            },
        )

        memories = await self.search_relevant_memories(current_message, 5, CONTEXT_MEMORY_TYPES)
        if not memories:
            return ""

        lines = ["", "## Relevant Context from Memory:"]
        for result in memories:
            heading = result.record.type.value.replace("_", " ").upper()
            lines.append("")
            lines.append(f"### {heading} (Relevance: {result.score * 100:.0f}%)")
            lines.append(result.record.content)
            if result.record.tags:
                lines.append(f"*Tags: {', '.join(result.record.tags)}*")

        return "\n".join(lines) + "\n"

    async def learn_from_interaction(
        self,
        user_message: str,
        response: str,
        success: bool,
        tools_used: Optional[List[str]] = None,
        duration: float = 0.0,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Store the exchange, then reinforce user_interaction and one tool_<name> pattern per tool."""
        await self._ensure_initialized()
        tools_used = tools_used or []
        context = context or {}

        await self.store_conversation(
            user_message,
            response,
            {"success": success, "tools_used": tools_used, "duration": duration, **context},
        )

        await self.service.learn_from_interaction(
            {"type": "user_interaction", "success": success, "context": context, "duration": duration}
        )
        for tool in tools_used:
            await self.service.learn_from_interaction(
                {
                    "type": f"tool_{tool}",
                    "success": success,
                    "context": {"tool": tool, **context},
                    "duration": duration,
                }
            )

    async def get_memory_stats(self) -> MemoryStats:
        await self._ensure_initialized()
        return await self.service.get_memory_stats()

    async def optimize_memory(self) -> OptimizationReport:
        await self._ensure_initialized()
        return await self.service.optimize_memory()

    async def export_memories(self, path: str | Path) -> Path:
        await self._ensure_initialized()
        return await self.service.export_memories(path)

    async def import_memories(self, path: str | Path) -> Dict[str, int]:
        await self._ensure_initialized()
        return await self.service.import_memories(path)

    async def close(self):
        if self.service.initialized:
            await self.service.close()
