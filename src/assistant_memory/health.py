"""
Health and statistics reporting.

Health is advisory: findings are collected as ValidationAdvisory entries and
classified, never raised.
"""

import asyncio
import logging
from datetime import datetime
from typing import List

from assistant_memory.config import MemoryConfig
from assistant_memory.errors import StorageError
from assistant_memory.models import MemoryHealthStatus, MemoryStats, ValidationAdvisory
from assistant_memory.storage import HotCache, MemoryRecordStore

logger = logging.getLogger(__name__)

CRITICAL_ADVISORY_COUNT = 3
TOP_RECORDS = 10


def classify(advisories: List[ValidationAdvisory], integrity_ok: bool = True) -> str:
    """healthy with no findings, degraded with one or two, critical beyond that."""
    if not integrity_ok or len(advisories) >= CRITICAL_ADVISORY_COUNT:
        return "critical"
    if advisories:
        return "degraded"
    return "healthy"


class HealthReporter:
    def __init__(self, store: MemoryRecordStore, cache: HotCache, config: MemoryConfig):
        self.store = store
        self.cache = cache
        self.config = config
        self.last_status: MemoryHealthStatus | None = None

    async def check(self) -> MemoryHealthStatus:
        """Run every health check. Callers hold the service lock."""
        advisories: List[ValidationAdvisory] = []
        integrity_ok = True

        try:
            integrity = await asyncio.to_thread(self.store.integrity_check)
            if integrity != "ok":
                integrity_ok = False
                advisories.append(
                    ValidationAdvisory(
                        issue=f"Database integrity check failed: {integrity}",
                        recommendation="Restore from an export or rebuild the database",
                    )
                )

            size_bytes = await asyncio.to_thread(self.store.storage_bytes)
            limit_bytes = self.config.max_memory_size_mb * 1024 * 1024
            if size_bytes > limit_bytes:
                advisories.append(
                    ValidationAdvisory(
                        issue="Database size exceeds configured limit",
                        recommendation="Run memory optimization or increase size limit",
                    )
                )
        except StorageError as e:
            integrity_ok = False
            logger.error(f"Health check failed: {e}")
            advisories.append(
                ValidationAdvisory(
                    issue="Health check failed",
                    recommendation="Check database permissions and file system",
                )
            )

        corrupt = self.store.drain_corruption_events()
        if corrupt:
            fields = sorted({f"{event.memory_id}.{event.field}" for event in corrupt})
            advisories.append(
                ValidationAdvisory(
                    issue=f"{len(corrupt)} corrupt data blob(s) read: {', '.join(fields[:5])}",
                    recommendation="Re-store or update the affected memories",
                )
            )

        if (
            self.cache.lookups >= self.config.min_cache_lookups
            and self.cache.hit_ratio < self.config.cache_hit_ratio_floor
        ):
            advisories.append(
                ValidationAdvisory(
                    issue=f"Low cache hit rate ({self.cache.hit_ratio:.0%})",
                    recommendation="Increase cache size or optimize access patterns",
                )
            )

        status = MemoryHealthStatus(
            status=classify(advisories, integrity_ok),
            advisories=advisories,
            last_checkup=datetime.now(),
        )
        if status.status != "healthy":
            logger.warning(f"Memory health {status.status}: {'; '.join(status.issues)}")
        else:
            logger.debug("Memory health check passed")

        self.last_status = status
        return status

    async def stats(self) -> MemoryStats:
        health = await self.check()

        return MemoryStats(
            total_records=await asyncio.to_thread(self.store.count_records, False),
            archived_records=await asyncio.to_thread(self.store.count_records, True),
            records_by_type=await asyncio.to_thread(self.store.records_by_type),
            storage_bytes=await asyncio.to_thread(self.store.storage_bytes),
            avg_importance=await asyncio.to_thread(self.store.average_importance),
            most_accessed=await asyncio.to_thread(self.store.most_accessed, TOP_RECORDS),
            recently_created=await asyncio.to_thread(self.store.recently_created, TOP_RECORDS),
            health=health,
        )
