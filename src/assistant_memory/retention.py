"""
Retention and optimization: deduplication, compression, archival expiry and
hot cache bounding.

Every step takes the service lock separately, so foreground calls can
interleave between steps but never observe a half-finished one.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta

from assistant_memory.config import MemoryConfig
from assistant_memory.embeddings import TextEmbedding
from assistant_memory.models import OptimizationReport, content_checksum
from assistant_memory.storage import HotCache, MemoryRecordStore

logger = logging.getLogger(__name__)

COMPRESSION_MARKER = "...[compressed]"


class RetentionEngine:
    def __init__(
        self,
        store: MemoryRecordStore,
        embedding: TextEmbedding,
        cache: HotCache,
        config: MemoryConfig,
        lock: asyncio.Lock,
    ):
        self.store = store
        self.embedding = embedding
        self.cache = cache
        self.config = config
        self.lock = lock

    async def deduplicate(self) -> int:
        """Keep the earliest record of each checksum group, delete the rest permanently."""
        async with self.lock:
            groups = await asyncio.to_thread(self.store.find_duplicate_groups)
            doomed = [memory_id for group in groups for memory_id in group[1:]]
            if not doomed:
                return 0

            deleted = await asyncio.to_thread(self.store.delete_records, doomed)
            for memory_id in doomed:
                self.cache.discard(memory_id)

            logger.info(f"Deduplicated {deleted} memories across {len(groups)} groups")
            return deleted

    async def compress(self, now: datetime) -> tuple[int, float]:
        """
        Truncate old, long records to a fixed-length head.

        Lossy: the record is flagged compressed and its checksum and embedding
        are recomputed from the truncated content in the same write.

        Returns:
            (number compressed, share of old records that were compressed)
        """
        if not self.config.compression_enabled:
            return 0, 0.0

        async with self.lock:
            created_before = now - timedelta(days=self.config.compress_after_days)
            candidates = await asyncio.to_thread(
                self.store.compression_candidates, created_before, self.config.compress_min_chars
            )
            old_count = await asyncio.to_thread(self.store.count_created_before, created_before)

            for record in candidates:
                record.content = record.content[: self.config.compress_head_chars] + COMPRESSION_MARKER
                record.embedding = await self.embedding.embed_document(record.content)
                record.metadata.checksum = content_checksum(record.content)
                record.metadata.compressed = True
                record.updated_at = now

                await asyncio.to_thread(self.store.update_record, record)
                if record.id in self.cache:
                    self.cache.put(record)
                logger.debug(f"Compressed memory {record.id}")

            if candidates:
                logger.info(f"Compressed {len(candidates)} memories")

            ratio = len(candidates) / old_count if old_count else 0.0
            return len(candidates), ratio

    async def archive_expired(self, now: datetime) -> int:
        """Archive records older than archive_after_days, sparing important ones when configured."""
        policy = self.config.retention_policy

        async with self.lock:
            created_before = now - timedelta(days=policy.archive_after_days)
            exempt_above = policy.importance_floor if policy.never_delete_important else None
            expired = await asyncio.to_thread(
                self.store.archival_candidates, created_before, exempt_above
            )
            if not expired:
                return 0

            archived = await asyncio.to_thread(self.store.archive_records, expired)
            for memory_id in expired:
                self.cache.discard(memory_id)
            return archived

    async def evict_cache(self, now: datetime) -> int:
        async with self.lock:
            cutoff = now - timedelta(hours=self.config.cache_idle_window_hours)
            return self.cache.evict_stale(cutoff)

    async def reindex(self):
        async with self.lock:
            await asyncio.to_thread(self.store.reindex)

    async def optimize(self, average_retrieval_ms: float = 0.0) -> OptimizationReport:
        """Run every retention step in order and report what was done."""
        started = time.perf_counter()
        now = datetime.now()

        deduplicated = await self.deduplicate()
        compressed, compression_ratio = await self.compress(now)
        archived = await self.archive_expired(now)
        evicted = await self.evict_cache(now)
        await self.reindex()

        report = OptimizationReport(
            deduplicated=deduplicated,
            compressed=compressed,
            archived=archived,
            evicted=evicted,
            cache_hit_ratio=self.cache.hit_ratio,
            compression_ratio=compression_ratio,
            duration_ms=(time.perf_counter() - started) * 1000,
            average_retrieval_ms=average_retrieval_ms,
        )
        logger.info(
            f"Memory optimization complete: deduplicated={deduplicated}, "
            f"compressed={compressed}, archived={archived}, evicted={evicted}, "
            f"duration={report.duration_ms:.1f}ms"
        )
        return report
