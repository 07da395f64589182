"""
Storage protocol definitions for durable memory.

The memory service, retrieval, retention and health components only talk to
this interface. SQLAlchemyMemoryStore is the shipped implementation; other
backends only need to satisfy the protocol.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Set

from assistant_memory.errors import CorruptDataError
from assistant_memory.models import (
    LearningPattern,
    MemoryQuery,
    MemoryRecord,
    Relationship,
    Reinforcement,
)


class MemoryRecordStore(Protocol):
    """
    Protocol for durable memory storage.

    Implementations are synchronous and must serialize their own writes;
    callers push them onto worker threads.
    """

    def create_tables(self) -> None:
        """Create the schema if it does not exist."""
        ...

    def ping(self) -> None:
        """Raise StorageError if the medium is unreachable."""
        ...

    def add_record(
        self,
        record: MemoryRecord,
        relationships: Iterable[Relationship] = (),
        reinforcements: Iterable[Reinforcement] = (),
    ) -> str:
        """
        Insert a record with its edges and pattern reinforcements.

        All three are written in a single transaction: either everything is
        committed or nothing is.

        Returns:
            The record id
        """
        ...

    def get_record(self, memory_id: str) -> Optional[MemoryRecord]:
        """Get a record by id without touching access metadata."""
        ...

    def existing_ids(self, memory_ids: Iterable[str]) -> Set[str]:
        """Subset of the given ids that exist in the store."""
        ...

    def update_record(self, record: MemoryRecord) -> bool:
        """Overwrite a record. Returns False if the id is unknown."""
        ...

    def touch_record(self, memory_id: str, when: datetime) -> bool:
        """Increment access_count and set last_accessed."""
        ...

    def archive_record(self, memory_id: str) -> bool:
        ...

    def archive_records(self, memory_ids: Iterable[str]) -> int:
        ...

    def delete_record(self, memory_id: str) -> bool:
        """Permanently delete a record and every edge naming it."""
        ...

    def delete_records(self, memory_ids: Iterable[str]) -> int:
        ...

    def query_records(self, query: MemoryQuery) -> List[MemoryRecord]:
        """
        Apply the structured filters of a query (text is ignored).

        Returns:
            Matching records, importance then last access descending
        """
        ...

    def recent_records(self, limit: int) -> List[MemoryRecord]:
        ...

    def related_records(
        self, memory_id: str, limit: int = 5, include_archived: bool = False
    ) -> List[MemoryRecord]:
        """Targets of the record's outgoing edges, strongest first."""
        ...

    def add_relationship(self, relationship: Relationship) -> str:
        ...

    def get_relationships(
        self, source_id: Optional[str] = None, target_id: Optional[str] = None
    ) -> List[Relationship]:
        ...

    def reinforce_pattern(self, reinforcement: Reinforcement) -> LearningPattern:
        """Create or incrementally update the pattern keyed by (type, outcome)."""
        ...

    def get_pattern(self, pattern: str, category: str) -> Optional[LearningPattern]:
        ...

    def list_patterns(self, category: Optional[str] = None) -> List[LearningPattern]:
        ...

    def find_duplicate_groups(self) -> List[List[str]]:
        """Groups of non-archived ids sharing a checksum, earliest first."""
        ...

    def compression_candidates(self, created_before: datetime, min_chars: int) -> List[MemoryRecord]:
        ...

    def count_created_before(self, created_before: datetime) -> int:
        """Non-archived records created before the cutoff."""
        ...

    def archival_candidates(
        self, created_before: datetime, exempt_above: Optional[float] = None
    ) -> List[str]:
        ...

    def reindex(self) -> None:
        ...

    def count_records(self, archived: bool = False) -> int:
        ...

    def records_by_type(self) -> Dict[str, int]:
        ...

    def average_importance(self) -> float:
        ...

    def most_accessed(self, limit: int = 10) -> List[MemoryRecord]:
        ...

    def recently_created(self, limit: int = 10) -> List[MemoryRecord]:
        ...

    def integrity_check(self) -> str:
        """'ok' or a description of the problems found."""
        ...

    def storage_bytes(self) -> int:
        ...

    def drain_corruption_events(self) -> List[CorruptDataError]:
        """Corrupt blobs seen on reads since the previous call."""
        ...

    def all_records(self) -> List[MemoryRecord]:
        ...

    def all_relationships(self) -> List[Relationship]:
        ...

    def all_patterns(self) -> List[LearningPattern]:
        ...

    def import_snapshot(
        self,
        records: List[MemoryRecord],
        relationships: List[Relationship],
        patterns: List[LearningPattern],
    ) -> Dict[str, int]:
        """Merge a snapshot in one transaction; returns per-kind counts."""
        ...
