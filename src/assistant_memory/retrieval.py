"""
Retrieval engine: structured filtering, similarity ranking and the one-hop
relationship walk.
"""

import asyncio
import logging
import time
from collections import deque
from datetime import datetime
from typing import List, Tuple

from assistant_memory.config import MemoryConfig
from assistant_memory.embeddings import TextEmbedding, cosine_similarity
from assistant_memory.models import MemoryQuery, MemoryRecord, MemorySearchResult
from assistant_memory.storage import HotCache, MemoryRecordStore

logger = logging.getLogger(__name__)

MAX_RELATED_RECORDS = 5
LATENCY_SAMPLES = 1000


class RetrievalEngine:
    """
    Answers MemoryQuery requests against the durable store.

    Callers hold the service lock for the duration of search().
    """

    def __init__(
        self,
        store: MemoryRecordStore,
        embedding: TextEmbedding,
        cache: HotCache,
        config: MemoryConfig,
    ):
        self.store = store
        self.embedding = embedding
        self.cache = cache
        self.config = config
        self._latencies_ms: deque = deque(maxlen=LATENCY_SAMPLES)

    @property
    def average_latency_ms(self) -> float:
        if not self._latencies_ms:
            return 0.0
        return sum(self._latencies_ms) / len(self._latencies_ms)

    def _threshold(self, query: MemoryQuery) -> float:
        if query.similarity_threshold is not None:
            return query.similarity_threshold
        return self.config.vector_search_threshold

    async def _rank_by_similarity(
        self, query: MemoryQuery, candidates: List[MemoryRecord]
    ) -> List[Tuple[MemoryRecord, float, str]]:
        query_vector = await self.embedding.embed_query(query.text)
        threshold = self._threshold(query)

        scored = []
        for record in candidates:
            score = cosine_similarity(query_vector, record.embedding)
            # A threshold of 0 or below admits every candidate, even orthogonal ones
            if threshold > 0 and score < threshold:
                continue
            scored.append((record, score, f"Similarity: {score * 100:.1f}%"))

        scored.sort(key=lambda item: (-item[1], -item[0].importance))
        return scored

    @staticmethod
    def _rank_by_importance(candidates: List[MemoryRecord]) -> List[Tuple[MemoryRecord, float, str]]:
        ranked = sorted(
            candidates,
            key=lambda record: (record.importance, record.last_accessed),
            reverse=True,
        )
        return [(record, record.importance, "Importance-based match") for record in ranked]

    async def search(self, query: MemoryQuery) -> List[MemorySearchResult]:
        """
        Run a query.

        1. Structured filters narrow the candidate pool.
        2. With text, candidates are scored by cosine similarity and those
           below the threshold dropped; without text, importance ranks them.
        3. The list is truncated to max_results.
        4. Each result gets up to five related records; only the primary
           records have their access metadata updated.
        """
        started = time.perf_counter()

        candidates = await asyncio.to_thread(self.store.query_records, query)
        if not candidates:
            self._record_latency(started)
            logger.debug("Search found no candidates")
            return []

        if query.text:
            ranked = await self._rank_by_similarity(query, candidates)
        else:
            ranked = self._rank_by_importance(candidates)

        if query.max_results is not None:
            ranked = ranked[: query.max_results]

        results = []
        now = datetime.now()
        for record, score, explanation in ranked:
            related = await asyncio.to_thread(
                self.store.related_records,
                record.id,
                MAX_RELATED_RECORDS,
                query.include_archived,
            )
            await asyncio.to_thread(self.store.touch_record, record.id, now)
            self.cache.touch(record.id, now)

            record.access_count += 1
            record.last_accessed = now
            results.append(
                MemorySearchResult(
                    record=record,
                    score=score,
                    explanation=explanation,
                    related_records=related,
                )
            )

        self._record_latency(started)
        logger.info(f"{len(results)} memories found ({len(candidates)} candidates)")
        return results

    def _record_latency(self, started: float):
        self._latencies_ms.append((time.perf_counter() - started) * 1000)
