"""
Exception hierarchy for the memory engine.

Health findings are not exceptions; they are reported as
ValidationAdvisory entries on MemoryStats.
"""


class MemoryEngineError(Exception):
    """Base class for all memory engine errors."""


class InitializationError(MemoryEngineError):
    """Durable store unreachable, or the engine was used before initialize()."""


class NotFoundError(MemoryEngineError):
    """A get/update/delete referenced an id that does not exist."""

    def __init__(self, memory_id: str, kind: str = "Memory"):
        self.memory_id = memory_id
        super().__init__(f"{kind} with id {memory_id} not found")


class StorageError(MemoryEngineError):
    """Transient failure while reading or writing the durable store. Safe to retry."""


class CorruptDataError(MemoryEngineError):
    """A stored JSON blob (embedding, metadata, tags...) could not be decoded."""

    def __init__(self, memory_id: str, field: str, detail: str = ""):
        self.memory_id = memory_id
        self.field = field
        message = f"Corrupt {field} for {memory_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
