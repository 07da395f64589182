"""
Learning pattern tracking.

Keeps frequency and success-rate counters per (interaction type, outcome)
pattern. Patterns are monotonic accumulators: frequency never decreases and
patterns are never removed.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from assistant_memory.models import LearningPattern, MemoryRecord, Reinforcement

logger = logging.getLogger(__name__)

PATTERN_MIN_CONFIDENCE = 0.5
PATTERN_MAX_CONFIDENCE = 0.95
PATTERN_HIGH_CONFIDENCE_FREQUENCY = 5
PATTERN_STALE_DAYS = 30
MAX_EXAMPLES = 10

STRUCTURAL_KEYWORDS = [
    ("function ", "function_definition"),
    ("class ", "class_definition"),
    ("import ", "import_statement"),
    ("export ", "export_statement"),
]


def calculate_confidence(frequency: int, days_since_last: int = 0) -> float:
    """
    Confidence in a pattern based on how often it has been reinforced.

    Args:
        frequency: Number of reinforcements so far
        days_since_last: Days between this and the previous reinforcement

    Returns:
        Confidence score between 0.0 and PATTERN_MAX_CONFIDENCE
    """
    if frequency <= 1:
        base = PATTERN_MIN_CONFIDENCE
    elif frequency == 2:
        base = 0.7
    elif frequency == 3:
        base = 0.8
    elif frequency >= PATTERN_HIGH_CONFIDENCE_FREQUENCY:
        base = PATTERN_MAX_CONFIDENCE
    else:
        base = min(PATTERN_MAX_CONFIDENCE, 0.5 + (frequency * 0.1))

    recency_factor = 1.0
    if days_since_last > PATTERN_STALE_DAYS:
        recency_factor = 0.95
        logger.debug(f"Applying recency decay: {days_since_last} days since last reinforcement")

    return min(PATTERN_MAX_CONFIDENCE, base * recency_factor)


def extract_patterns(content: str, tags: List[str]) -> List[str]:
    """Structural keyword and tag patterns found in a record's content."""
    patterns = [name for keyword, name in STRUCTURAL_KEYWORDS if keyword in content]

    if "error" in content or "Error" in content:
        patterns.append("error_handling")

    patterns.extend(f"tag_{tag}" for tag in tags)
    return patterns


def reinforcements_for_record(record: MemoryRecord) -> List[Reinforcement]:
    """One successful reinforcement of the record's type per extracted pattern."""
    return [
        Reinforcement(
            interaction_type=record.type.value,
            success=True,
            context={"pattern": pattern, "tags": list(record.tags)},
            example=pattern,
        )
        for pattern in extract_patterns(record.content, record.tags)
    ]


def apply_reinforcement(
    existing: Optional[LearningPattern],
    reinforcement: Reinforcement,
    now: Optional[datetime] = None,
) -> LearningPattern:
    """
    Fold one observation into a pattern.

    success_rate' = (success_rate * frequency + outcome) / (frequency + 1)
    frequency'    = frequency + 1
    """
    now = now or datetime.now()
    outcome = 1.0 if reinforcement.success else 0.0
    example = reinforcement.example or reinforcement.pattern_key
    context = dict(reinforcement.context)
    context["last_duration_ms"] = reinforcement.duration_ms

    if existing is None:
        return LearningPattern(
            pattern=reinforcement.pattern_key,
            category=reinforcement.interaction_type,
            frequency=1,
            success_rate=outcome,
            last_reinforced=now,
            context=context,
            examples=[example],
            confidence=calculate_confidence(1),
        )

    frequency = existing.frequency + 1
    success_rate = (existing.success_rate * existing.frequency + outcome) / frequency
    days_since_last = max(0, (now - existing.last_reinforced).days)

    examples = list(existing.examples)
    if example not in examples:
        examples.append(example)
    examples = examples[-MAX_EXAMPLES:]

    return existing.model_copy(
        update={
            "frequency": frequency,
            "success_rate": min(1.0, max(0.0, success_rate)),
            "last_reinforced": now,
            "context": {**existing.context, **context},
            "examples": examples,
            "confidence": calculate_confidence(frequency, days_since_last),
        }
    )


class LearningPatternTracker:
    """
    Reinforces and ranks learning patterns in the durable store.

    Callers are expected to hold the service lock; durable calls are pushed
    to a worker thread.
    """

    def __init__(self, store):
        self.store = store

    async def reinforce(
        self,
        interaction_type: str,
        success: bool,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: float = 0.0,
    ) -> LearningPattern:
        reinforcement = Reinforcement(
            interaction_type=interaction_type,
            success=success,
            context=context or {},
            duration_ms=duration_ms,
        )
        pattern = await asyncio.to_thread(self.store.reinforce_pattern, reinforcement)

        logger.debug(
            f"Reinforced pattern {pattern.pattern}: frequency={pattern.frequency}, "
            f"success_rate={pattern.success_rate:.2f}"
        )
        return pattern

    async def top_patterns(self, category: Optional[str] = None, n: int = 10) -> List[LearningPattern]:
        """Patterns sorted by frequency x success rate, highest first."""
        patterns = await asyncio.to_thread(self.store.list_patterns, category)
        patterns.sort(key=lambda p: (p.score, p.frequency), reverse=True)
        return patterns[:n]
