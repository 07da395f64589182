"""
SQLAlchemy-based durable memory storage.

Works with any SQLAlchemy-compatible database; SQLite is the default (one
database file per project). Holds three tables: memory records, the
relationship graph between them, and learning patterns.
"""

import json
import logging
import threading
from collections import deque
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Engine,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    event,
    func,
    or_,
    text,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.pool import StaticPool
from pydantic import ValidationError

from assistant_memory.errors import CorruptDataError, StorageError
from assistant_memory.learning import apply_reinforcement
from assistant_memory.models import (
    LearningPattern,
    MemoryMetadata,
    MemoryQuery,
    MemoryRecord,
    Relationship,
    Reinforcement,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

MAX_CORRUPTION_EVENTS = 100


class MemoryRecordDB(Base):
    """SQLAlchemy model for memory records."""

    __tablename__ = "memories"

    id = Column(String, primary_key=True)
    # Insertion order; breaks created_at ties
    sequence = Column(Integer, nullable=False, index=True)

    type = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    checksum = Column(String, nullable=True, index=True)
    importance = Column(Float, nullable=False, default=0.5, index=True)

    # Partition keys
    project_id = Column(String, nullable=False, default="", index=True)
    session_id = Column(String, nullable=False, default="", index=True)

    # Timestamps and access bookkeeping
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)
    last_accessed = Column(DateTime, nullable=False, index=True)
    access_count = Column(Integer, nullable=False, default=0)

    archived = Column(Boolean, nullable=False, default=False, index=True)
    compressed = Column(Boolean, nullable=False, default=False)

    # JSON serialized
    metadata_json = Column(Text, nullable=False, default="{}")
    embedding_json = Column(Text, nullable=True)
    tags_json = Column(Text, nullable=False, default="[]")
    associated_files_json = Column(Text, nullable=False, default="[]")

    __table_args__ = (Index("idx_memories_project_session", "project_id", "session_id"),)

    def to_memory_record(self, on_corrupt=None) -> MemoryRecord:
        """
        Convert database model to MemoryRecord.

        Blobs that fail to decode are replaced by empty values and reported
        through on_corrupt(CorruptDataError) instead of failing the read.
        """

        def decode(raw: Optional[str], default: Any, field: str, expected: type) -> Any:
            if raw is None:
                return default
            try:
                value = json.loads(raw)
                if not isinstance(value, expected):
                    raise ValueError(f"expected {expected.__name__}, got {type(value).__name__}")
                return value
            except (TypeError, ValueError) as e:
                error = CorruptDataError(self.id, field, str(e))
                if on_corrupt:
                    on_corrupt(error)
                return default

        metadata_dict = decode(self.metadata_json, {}, "metadata", dict)
        try:
            metadata = MemoryMetadata(**metadata_dict)
        except ValidationError as e:
            if on_corrupt:
                on_corrupt(CorruptDataError(self.id, "metadata", str(e)))
            metadata = MemoryMetadata()

        metadata.checksum = self.checksum
        metadata.compressed = bool(self.compressed)

        embedding = decode(self.embedding_json, None, "embedding", list)
        if embedding is not None and not all(isinstance(v, (int, float)) for v in embedding):
            if on_corrupt:
                on_corrupt(CorruptDataError(self.id, "embedding", "non-numeric values"))
            embedding = None

        return MemoryRecord(
            id=self.id,
            type=self.type,
            content=self.content,
            metadata=metadata,
            embedding=embedding,
            created_at=self.created_at,
            updated_at=self.updated_at,
            last_accessed=self.last_accessed,
            access_count=self.access_count,
            importance=self.importance,
            tags=decode(self.tags_json, [], "tags", list),
            associated_files=decode(self.associated_files_json, [], "associated_files", list),
            session_id=self.session_id,
            project_id=self.project_id,
            archived=bool(self.archived),
        )

    def apply_record(self, record: MemoryRecord):
        """Copy every mutable field of a MemoryRecord onto this row."""
        self.type = record.type.value
        self.content = record.content
        self.checksum = record.metadata.checksum
        self.importance = record.importance
        self.project_id = record.project_id
        self.session_id = record.session_id
        self.created_at = record.created_at
        self.updated_at = record.updated_at
        self.last_accessed = record.last_accessed
        self.access_count = record.access_count
        self.archived = record.archived
        self.compressed = record.metadata.compressed
        self.metadata_json = record.metadata.model_dump_json()
        self.embedding_json = json.dumps(record.embedding) if record.embedding is not None else None
        self.tags_json = json.dumps(record.tags)
        self.associated_files_json = json.dumps(record.associated_files)


class RelationshipDB(Base):
    """SQLAlchemy model for directed edges between memory records."""

    __tablename__ = "memory_relationships"

    id = Column(String, primary_key=True)
    source_id = Column(
        String, ForeignKey("memories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_id = Column(
        String, ForeignKey("memories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    relationship_type = Column(String, nullable=False)
    strength = Column(Float, nullable=False)
    metadata_json = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    def to_relationship(self) -> Relationship:
        try:
            metadata = json.loads(self.metadata_json) if self.metadata_json else {}
        except ValueError:
            logger.warning(f"Corrupt metadata on relationship {self.id}, using empty metadata")
            metadata = {}

        return Relationship(
            id=self.id,
            source_id=self.source_id,
            target_id=self.target_id,
            type=self.relationship_type,
            strength=self.strength,
            metadata=metadata if isinstance(metadata, dict) else {},
            created_at=self.created_at,
        )

    @staticmethod
    def from_relationship(relationship: Relationship) -> "RelationshipDB":
        return RelationshipDB(
            id=relationship.id,
            source_id=relationship.source_id,
            target_id=relationship.target_id,
            relationship_type=relationship.type.value,
            strength=relationship.strength,
            metadata_json=json.dumps(relationship.metadata),
            created_at=relationship.created_at,
        )


class LearningPatternDB(Base):
    """SQLAlchemy model for learning patterns."""

    __tablename__ = "learning_patterns"

    id = Column(String, primary_key=True)
    pattern = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)
    frequency = Column(Integer, nullable=False, default=0)
    success_rate = Column(Float, nullable=False, default=0.0)
    last_reinforced = Column(DateTime, nullable=False)
    context_json = Column(Text, nullable=False, default="{}")
    examples_json = Column(Text, nullable=False, default="[]")
    confidence = Column(Float, nullable=False, default=0.0)

    __table_args__ = (Index("idx_patterns_pattern_category", "pattern", "category", unique=True),)

    def to_learning_pattern(self) -> LearningPattern:
        try:
            context = json.loads(self.context_json) if self.context_json else {}
            examples = json.loads(self.examples_json) if self.examples_json else []
        except ValueError:
            logger.warning(f"Corrupt context on learning pattern {self.id}, using empty values")
            context, examples = {}, []

        return LearningPattern(
            id=self.id,
            pattern=self.pattern,
            category=self.category,
            frequency=self.frequency,
            success_rate=self.success_rate,
            last_reinforced=self.last_reinforced,
            context=context,
            examples=examples,
            confidence=self.confidence,
        )

    def apply_pattern(self, pattern: LearningPattern):
        self.pattern = pattern.pattern
        self.category = pattern.category
        self.frequency = pattern.frequency
        self.success_rate = pattern.success_rate
        self.last_reinforced = pattern.last_reinforced
        self.context_json = json.dumps(pattern.context, default=str)
        self.examples_json = json.dumps(pattern.examples)
        self.confidence = pattern.confidence


def create_memory_engine(url: str) -> Engine:
    """
    Create an engine for the memory store.

    In-memory SQLite shares a single connection across threads so every
    worker thread sees the same database. SQLite connections get foreign key
    enforcement switched on.
    """
    if url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    else:
        engine = create_engine(url)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


class SQLAlchemyMemoryStore:
    """
    SQLAlchemy-based memory storage.

    Every session runs under one re-entrant lock, so the store behaves as a
    single writer even when its methods are called from worker threads.

    Example:
        from assistant_memory.storage.sqlalchemy import create_memory_engine
        engine = create_memory_engine("sqlite:///memory.sqlite")
        store = SQLAlchemyMemoryStore(engine)
        store.create_tables()
    """

    def __init__(self, engine: Engine):
        """
        Initialize the SQLAlchemy memory store.

        Args:
            engine: SQLAlchemy engine for database connection
        """
        self.engine = engine
        self._lock = threading.RLock()
        self._corruption_events: deque = deque(maxlen=MAX_CORRUPTION_EVENTS)
        logger.info(f"SQLAlchemyMemoryStore initialized (engine={engine.url})")

    @contextmanager
    def _session(self):
        """Serialized database session with automatic commit/rollback."""
        with self._lock:
            session = Session(self.engine, expire_on_commit=False)
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Database error: {e}")
                raise StorageError(str(e)) from e
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def _record_corruption(self, error: CorruptDataError):
        logger.warning(f"{error}; treating field as empty")
        self._corruption_events.append(error)

    def _to_record(self, row: MemoryRecordDB) -> MemoryRecord:
        return row.to_memory_record(on_corrupt=self._record_corruption)

    def drain_corruption_events(self) -> List[CorruptDataError]:
        """Return and forget corrupt-blob events seen since the last call."""
        with self._lock:
            events = list(self._corruption_events)
            self._corruption_events.clear()
            return events

    def create_tables(self):
        """Create database tables and indexes if they don't exist."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create tables: {e}")
            raise StorageError(str(e)) from e
        logger.info("Database tables created/verified")

    def ping(self):
        """Round-trip to the database; raises StorageError if unreachable."""
        with self._session() as session:
            session.execute(text("SELECT 1"))

    def dispose(self):
        self.engine.dispose()

    # Records

    def _next_sequence(self, session: Session) -> int:
        current = session.query(func.max(MemoryRecordDB.sequence)).scalar()
        return (current or 0) + 1

    def add_record(
        self,
        record: MemoryRecord,
        relationships: Iterable[Relationship] = (),
        reinforcements: Iterable[Reinforcement] = (),
    ) -> str:
        """Insert a record, its outgoing edges and its pattern reinforcements in one transaction."""
        with self._session() as session:
            row = MemoryRecordDB(id=record.id, sequence=self._next_sequence(session))
            row.apply_record(record)
            session.add(row)
            session.flush()

            for relationship in relationships:
                session.add(RelationshipDB.from_relationship(relationship))

            for reinforcement in reinforcements:
                self._reinforce(session, reinforcement)

            logger.debug(f"Inserted memory {record.id}: '{record.content[:50]}'")
            return record.id

    def get_record(self, memory_id: str) -> Optional[MemoryRecord]:
        with self._session() as session:
            row = session.get(MemoryRecordDB, memory_id)
            if not row:
                return None
            return self._to_record(row)

    def existing_ids(self, memory_ids: Iterable[str]) -> Set[str]:
        ids = list(set(memory_ids))
        if not ids:
            return set()
        with self._session() as session:
            rows = session.query(MemoryRecordDB.id).filter(MemoryRecordDB.id.in_(ids)).all()
            return {row[0] for row in rows}

    def update_record(self, record: MemoryRecord) -> bool:
        """Overwrite a stored record with the given state."""
        with self._session() as session:
            row = session.get(MemoryRecordDB, record.id)
            if not row:
                return False
            row.apply_record(record)
            return True

    def touch_record(self, memory_id: str, when: datetime) -> bool:
        """Access bookkeeping: access_count + 1, last_accessed = when."""
        with self._session() as session:
            count = (
                session.query(MemoryRecordDB)
                .filter(MemoryRecordDB.id == memory_id)
                .update(
                    {
                        MemoryRecordDB.access_count: MemoryRecordDB.access_count + 1,
                        MemoryRecordDB.last_accessed: when,
                    },
                    synchronize_session=False,
                )
            )
            return count > 0

    def archive_records(self, memory_ids: Iterable[str]) -> int:
        ids = list(memory_ids)
        if not ids:
            return 0
        with self._session() as session:
            count = (
                session.query(MemoryRecordDB)
                .filter(MemoryRecordDB.id.in_(ids), MemoryRecordDB.archived.is_(False))
                .update({MemoryRecordDB.archived: True}, synchronize_session=False)
            )
            logger.info(f"Archived {count} memories")
            return count

    def archive_record(self, memory_id: str) -> bool:
        with self._session() as session:
            row = session.get(MemoryRecordDB, memory_id)
            if not row:
                return False
            row.archived = True
            return True

    def delete_records(self, memory_ids: Iterable[str]) -> int:
        """Permanently delete records together with every edge naming them."""
        ids = list(memory_ids)
        if not ids:
            return 0
        with self._session() as session:
            session.query(RelationshipDB).filter(
                or_(RelationshipDB.source_id.in_(ids), RelationshipDB.target_id.in_(ids))
            ).delete(synchronize_session=False)
            count = (
                session.query(MemoryRecordDB)
                .filter(MemoryRecordDB.id.in_(ids))
                .delete(synchronize_session=False)
            )
            logger.info(f"Deleted {count} memories permanently")
            return count

    def delete_record(self, memory_id: str) -> bool:
        return self.delete_records([memory_id]) > 0

    def query_records(self, query: MemoryQuery) -> List[MemoryRecord]:
        """
        Apply the structured filters of a query.

        Ordered by importance, then last access (both descending). Tag
        OR-matching is narrowed with LIKE and confirmed on the decoded tags.
        """
        with self._session() as session:
            q = session.query(MemoryRecordDB)

            if not query.include_archived:
                q = q.filter(MemoryRecordDB.archived.is_(False))
            if query.type is not None:
                q = q.filter(MemoryRecordDB.type == query.type.value)
            if query.project_id is not None:
                q = q.filter(MemoryRecordDB.project_id == query.project_id)
            if query.session_id is not None:
                q = q.filter(MemoryRecordDB.session_id == query.session_id)
            if query.min_importance is not None:
                q = q.filter(MemoryRecordDB.importance >= query.min_importance)
            if query.time_range is not None:
                q = q.filter(
                    MemoryRecordDB.created_at.between(query.time_range.start, query.time_range.end)
                )
            if query.tags:
                q = q.filter(
                    or_(*[MemoryRecordDB.tags_json.like(f"%{json.dumps(tag)}%") for tag in query.tags])
                )

            rows = q.order_by(
                MemoryRecordDB.importance.desc(),
                MemoryRecordDB.last_accessed.desc(),
                MemoryRecordDB.sequence.asc(),
            ).all()
            records = [self._to_record(row) for row in rows]

        if query.tags:
            wanted = set(query.tags)
            records = [record for record in records if wanted.intersection(record.tags)]

        return records

    def recent_records(self, limit: int) -> List[MemoryRecord]:
        """Non-archived records, most recently accessed first."""
        with self._session() as session:
            rows = (
                session.query(MemoryRecordDB)
                .filter(MemoryRecordDB.archived.is_(False))
                .order_by(MemoryRecordDB.last_accessed.desc())
                .limit(limit)
                .all()
            )
            return [self._to_record(row) for row in rows]

    def all_records(self) -> List[MemoryRecord]:
        """Every record, archived included, in insertion order."""
        with self._session() as session:
            rows = session.query(MemoryRecordDB).order_by(MemoryRecordDB.sequence.asc()).all()
            return [self._to_record(row) for row in rows]

    # Relationships

    def add_relationship(self, relationship: Relationship) -> str:
        with self._session() as session:
            session.add(RelationshipDB.from_relationship(relationship))
            logger.debug(
                f"Added relationship {relationship.source_id} -[{relationship.type.value}]-> "
                f"{relationship.target_id}"
            )
            return relationship.id

    def get_relationships(
        self, source_id: Optional[str] = None, target_id: Optional[str] = None
    ) -> List[Relationship]:
        with self._session() as session:
            q = session.query(RelationshipDB)
            if source_id is not None:
                q = q.filter(RelationshipDB.source_id == source_id)
            if target_id is not None:
                q = q.filter(RelationshipDB.target_id == target_id)
            rows = q.order_by(RelationshipDB.strength.desc()).all()
            return [row.to_relationship() for row in rows]

    def all_relationships(self) -> List[Relationship]:
        return self.get_relationships()

    def related_records(
        self, memory_id: str, limit: int = 5, include_archived: bool = False
    ) -> List[MemoryRecord]:
        """One-hop walk along outgoing edges, strongest first. Does not touch access metadata."""
        with self._session() as session:
            q = (
                session.query(MemoryRecordDB)
                .join(RelationshipDB, RelationshipDB.target_id == MemoryRecordDB.id)
                .filter(RelationshipDB.source_id == memory_id)
            )
            if not include_archived:
                q = q.filter(MemoryRecordDB.archived.is_(False))
            rows = q.order_by(RelationshipDB.strength.desc()).limit(limit).all()
            return [self._to_record(row) for row in rows]

    # Learning patterns

    def _reinforce(self, session: Session, reinforcement: Reinforcement) -> LearningPattern:
        row = (
            session.query(LearningPatternDB)
            .filter(
                LearningPatternDB.pattern == reinforcement.pattern_key,
                LearningPatternDB.category == reinforcement.interaction_type,
            )
            .first()
        )
        existing = row.to_learning_pattern() if row else None
        pattern = apply_reinforcement(existing, reinforcement)

        if row is None:
            row = LearningPatternDB(id=pattern.id)
            session.add(row)
        row.apply_pattern(pattern)
        session.flush()
        return pattern

    def reinforce_pattern(self, reinforcement: Reinforcement) -> LearningPattern:
        with self._session() as session:
            return self._reinforce(session, reinforcement)

    def get_pattern(self, pattern: str, category: str) -> Optional[LearningPattern]:
        with self._session() as session:
            row = (
                session.query(LearningPatternDB)
                .filter(LearningPatternDB.pattern == pattern, LearningPatternDB.category == category)
                .first()
            )
            return row.to_learning_pattern() if row else None

    def list_patterns(self, category: Optional[str] = None) -> List[LearningPattern]:
        with self._session() as session:
            q = session.query(LearningPatternDB)
            if category is not None:
                q = q.filter(LearningPatternDB.category == category)
            return [row.to_learning_pattern() for row in q.all()]

    def all_patterns(self) -> List[LearningPattern]:
        return self.list_patterns()

    # Retention helpers

    def find_duplicate_groups(self) -> List[List[str]]:
        """
        Ids of non-archived, uncompressed records sharing a checksum, grouped.

        Compressed records are left out: distinct records can truncate to the
        same head.

        Each group is ordered earliest-created first (insertion order breaks ties).
        """
        with self._session() as session:
            checksums = [
                row[0]
                for row in session.query(MemoryRecordDB.checksum)
                .filter(
                    MemoryRecordDB.archived.is_(False),
                    MemoryRecordDB.compressed.is_(False),
                    MemoryRecordDB.checksum.isnot(None),
                )
                .group_by(MemoryRecordDB.checksum)
                .having(func.count(MemoryRecordDB.id) > 1)
                .all()
            ]

            groups = []
            for checksum in checksums:
                rows = (
                    session.query(MemoryRecordDB.id)
                    .filter(
                        MemoryRecordDB.checksum == checksum,
                        MemoryRecordDB.archived.is_(False),
                        MemoryRecordDB.compressed.is_(False),
                    )
                    .order_by(MemoryRecordDB.created_at.asc(), MemoryRecordDB.sequence.asc())
                    .all()
                )
                groups.append([row[0] for row in rows])
            return groups

    def compression_candidates(self, created_before: datetime, min_chars: int) -> List[MemoryRecord]:
        with self._session() as session:
            rows = (
                session.query(MemoryRecordDB)
                .filter(
                    MemoryRecordDB.archived.is_(False),
                    MemoryRecordDB.compressed.is_(False),
                    MemoryRecordDB.created_at < created_before,
                    func.length(MemoryRecordDB.content) > min_chars,
                )
                .order_by(MemoryRecordDB.created_at.asc())
                .all()
            )
            return [self._to_record(row) for row in rows]

    def count_created_before(self, created_before: datetime) -> int:
        with self._session() as session:
            return (
                session.query(MemoryRecordDB)
                .filter(
                    MemoryRecordDB.archived.is_(False),
                    MemoryRecordDB.created_at < created_before,
                )
                .count()
            )

    def archival_candidates(
        self, created_before: datetime, exempt_above: Optional[float] = None
    ) -> List[str]:
        """Non-archived ids created before the cutoff, minus those with importance > exempt_above."""
        with self._session() as session:
            q = session.query(MemoryRecordDB.id).filter(
                MemoryRecordDB.archived.is_(False),
                MemoryRecordDB.created_at < created_before,
            )
            if exempt_above is not None:
                q = q.filter(MemoryRecordDB.importance <= exempt_above)
            return [row[0] for row in q.all()]

    def reindex(self):
        if self.engine.dialect.name != "sqlite":
            return
        with self._session() as session:
            session.execute(text("REINDEX"))

    # Statistics

    def count_records(self, archived: bool = False) -> int:
        with self._session() as session:
            return session.query(MemoryRecordDB).filter(MemoryRecordDB.archived.is_(archived)).count()

    def records_by_type(self) -> Dict[str, int]:
        with self._session() as session:
            rows = (
                session.query(MemoryRecordDB.type, func.count(MemoryRecordDB.id))
                .filter(MemoryRecordDB.archived.is_(False))
                .group_by(MemoryRecordDB.type)
                .all()
            )
            return {row[0]: row[1] for row in rows}

    def average_importance(self) -> float:
        with self._session() as session:
            value = (
                session.query(func.avg(MemoryRecordDB.importance))
                .filter(MemoryRecordDB.archived.is_(False))
                .scalar()
            )
            return float(value or 0.0)

    def most_accessed(self, limit: int = 10) -> List[MemoryRecord]:
        with self._session() as session:
            rows = (
                session.query(MemoryRecordDB)
                .filter(MemoryRecordDB.archived.is_(False))
                .order_by(MemoryRecordDB.access_count.desc(), MemoryRecordDB.last_accessed.desc())
                .limit(limit)
                .all()
            )
            return [self._to_record(row) for row in rows]

    def recently_created(self, limit: int = 10) -> List[MemoryRecord]:
        with self._session() as session:
            rows = (
                session.query(MemoryRecordDB)
                .filter(MemoryRecordDB.archived.is_(False))
                .order_by(MemoryRecordDB.created_at.desc(), MemoryRecordDB.sequence.desc())
                .limit(limit)
                .all()
            )
            return [self._to_record(row) for row in rows]

    def integrity_check(self) -> str:
        """'ok' when the database reports no integrity problems."""
        if self.engine.dialect.name != "sqlite":
            return "ok"
        with self._session() as session:
            rows = session.execute(text("PRAGMA integrity_check")).fetchall()
            results = [str(row[0]) for row in rows]
            return "ok" if results == ["ok"] else "; ".join(results)

    def storage_bytes(self) -> int:
        """Size of the database as reported by SQLite's page accounting."""
        if self.engine.dialect.name != "sqlite":
            return 0
        with self._session() as session:
            page_count = session.execute(text("PRAGMA page_count")).scalar() or 0
            page_size = session.execute(text("PRAGMA page_size")).scalar() or 0
            return int(page_count) * int(page_size)

    # Snapshot import

    def import_snapshot(
        self,
        records: List[MemoryRecord],
        relationships: List[Relationship],
        patterns: List[LearningPattern],
    ) -> Dict[str, int]:
        """
        Merge a snapshot in one transaction.

        Records keep their ids; ids already present are skipped. Edges are
        inserted when both endpoints exist and the edge id is new. Patterns
        whose id is already present are skipped; a new id with an existing key
        is merged (frequencies summed, success rates weighted by frequency).
        """
        counts = {"records": 0, "relationships": 0, "patterns": 0, "skipped": 0}

        with self._session() as session:
            existing = {row[0] for row in session.query(MemoryRecordDB.id).all()}
            sequence = self._next_sequence(session)

            for record in records:
                if record.id in existing:
                    counts["skipped"] += 1
                    continue
                row = MemoryRecordDB(id=record.id, sequence=sequence)
                row.apply_record(record)
                session.add(row)
                existing.add(record.id)
                sequence += 1
                counts["records"] += 1
            session.flush()

            existing_edges = {row[0] for row in session.query(RelationshipDB.id).all()}
            for relationship in relationships:
                if relationship.id in existing_edges:
                    continue
                if relationship.source_id not in existing or relationship.target_id not in existing:
                    logger.warning(
                        f"Skipping relationship {relationship.id}: endpoint missing "
                        f"({relationship.source_id} -> {relationship.target_id})"
                    )
                    continue
                session.add(RelationshipDB.from_relationship(relationship))
                existing_edges.add(relationship.id)
                counts["relationships"] += 1

            existing_patterns = {row[0] for row in session.query(LearningPatternDB.id).all()}
            for pattern in patterns:
                if pattern.id in existing_patterns:
                    continue
                row = (
                    session.query(LearningPatternDB)
                    .filter(
                        LearningPatternDB.pattern == pattern.pattern,
                        LearningPatternDB.category == pattern.category,
                    )
                    .first()
                )
                if row is None:
                    row = LearningPatternDB(id=pattern.id)
                    row.apply_pattern(pattern)
                    session.add(row)
                else:
                    current = row.to_learning_pattern()
                    frequency = current.frequency + pattern.frequency
                    merged = current.model_copy(
                        update={
                            "frequency": frequency,
                            "success_rate": (
                                current.success_rate * current.frequency
                                + pattern.success_rate * pattern.frequency
                            )
                            / frequency,
                            "last_reinforced": max(current.last_reinforced, pattern.last_reinforced),
                            "examples": list(dict.fromkeys(current.examples + pattern.examples))[-10:],
                            "confidence": max(current.confidence, pattern.confidence),
                        }
                    )
                    row.apply_pattern(merged)
                existing_patterns.add(pattern.id)
                session.flush()
                counts["patterns"] += 1

        logger.info(
            f"Imported {counts['records']} memories ({counts['skipped']} skipped), "
            f"{counts['relationships']} relationships, {counts['patterns']} patterns"
        )
        return counts
