"""
assistant-memory: persistent memory engine for AI coding assistants.

Core components:
- embeddings: Pluggable text embedding protocol and backends
- storage: Durable SQLAlchemy store and bounded hot cache
- retrieval: Structured filtering plus similarity ranking
- retention: Deduplication, compression, archival and cache bounding
- learning: Learning-pattern reinforcement
- health: Stats and advisory health classification
- integration: Agent-facing façade with preset memory kinds
"""

__version__ = "0.1.0"

from assistant_memory.config import MemoryConfig, RetentionPolicy
from assistant_memory.errors import (
    CorruptDataError,
    InitializationError,
    MemoryEngineError,
    NotFoundError,
    StorageError,
)
from assistant_memory.integration import MemoryIntegration
from assistant_memory.memory_service import MemoryService
from assistant_memory.models import (
    Interaction,
    LearningPattern,
    MemoryContext,
    MemoryHealthStatus,
    MemoryMetadata,
    MemoryQuery,
    MemoryRecord,
    MemoryRelationship,
    MemorySearchResult,
    MemoryStats,
    MemoryType,
    MemoryUpdate,
    OptimizationReport,
    Relationship,
    RelationshipType,
    TimeRange,
    ValidationAdvisory,
)

__all__ = [
    "__version__",
    # Service
    "MemoryService",
    "MemoryIntegration",
    # Config
    "MemoryConfig",
    "RetentionPolicy",
    # Models
    "MemoryType",
    "RelationshipType",
    "MemoryRecord",
    "MemoryMetadata",
    "MemoryRelationship",
    "Relationship",
    "LearningPattern",
    "Interaction",
    "MemoryQuery",
    "TimeRange",
    "MemorySearchResult",
    "MemoryUpdate",
    "MemoryContext",
    "MemoryStats",
    "MemoryHealthStatus",
    "ValidationAdvisory",
    "OptimizationReport",
    # Errors
    "MemoryEngineError",
    "InitializationError",
    "NotFoundError",
    "StorageError",
    "CorruptDataError",
]
