"""
Bounded in-process cache of recently used memory records.

The durable store is the source of truth; the cache only saves round trips.
Entries are deep copies so callers can never mutate a cached record.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import List, Optional

from assistant_memory.models import MemoryRecord

logger = logging.getLogger(__name__)


class HotCache:
    """
    LRU cache of MemoryRecords keyed by id.

    Inserting beyond capacity drops the least recently used entry.
    evict_stale() drops entries whose last_accessed is older than a cutoff.
    """

    def __init__(self, capacity: int = 500):
        if capacity <= 0:
            raise ValueError("capacity must be positive")

        self._capacity = capacity
        self._entries: "OrderedDict[str, MemoryRecord]" = OrderedDict()
        self.hits = 0
        self.misses = 0

        logger.info(f"HotCache initialized (capacity={capacity})")

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_ratio(self) -> float:
        if self.lookups == 0:
            return 0.0
        return self.hits / self.lookups

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, memory_id: str) -> bool:
        return memory_id in self._entries

    def get(self, memory_id: str) -> Optional[MemoryRecord]:
        """Look up a record, counting the hit or miss."""
        record = self._entries.get(memory_id)
        if record is None:
            self.misses += 1
            return None

        self.hits += 1
        self._entries.move_to_end(memory_id)
        return record.model_copy(deep=True)

    def put(self, record: MemoryRecord):
        self._entries[record.id] = record.model_copy(deep=True)
        self._entries.move_to_end(record.id)

        while len(self._entries) > self._capacity:
            evicted_id, _ = self._entries.popitem(last=False)
            logger.debug(f"Cache full, evicted {evicted_id}")

    def touch(self, memory_id: str, when: datetime) -> bool:
        """Mirror access bookkeeping on a cached entry, if present."""
        record = self._entries.get(memory_id)
        if record is None:
            return False
        record.access_count += 1
        record.last_accessed = when
        self._entries.move_to_end(memory_id)
        return True

    def discard(self, memory_id: str) -> bool:
        return self._entries.pop(memory_id, None) is not None

    def evict_stale(self, cutoff: datetime) -> int:
        """Drop entries not accessed since cutoff. Returns the number evicted."""
        stale = [
            memory_id
            for memory_id, record in self._entries.items()
            if record.last_accessed < cutoff
        ]
        for memory_id in stale:
            del self._entries[memory_id]

        if stale:
            logger.debug(f"Evicted {len(stale)} stale cache entries")
        return len(stale)

    def ids(self) -> List[str]:
        return list(self._entries.keys())

    def clear(self):
        self._entries.clear()
        self.hits = 0
        self.misses = 0
