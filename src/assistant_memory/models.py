import hashlib
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class MemoryType(str, Enum):
    CONVERSATION = "conversation"
    CODE_PATTERN = "code_pattern"
    PROJECT_STRUCTURE = "project_structure"
    USER_PREFERENCE = "user_preference"
    LEARNED_BEHAVIOR = "learned_behavior"
    ERROR_RESOLUTION = "error_resolution"
    TOOL_USAGE = "tool_usage"
    ARCHITECTURAL_DECISION = "architectural_decision"
    DEPENDENCY_INFO = "dependency_info"
    DOCUMENTATION = "documentation"
    BEST_PRACTICE = "best_practice"
    OPTIMIZATION = "optimization"


class RelationshipType(str, Enum):
    SIMILAR = "similar"
    DEPENDENT = "dependent"
    CONFLICTS = "conflicts"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    USES = "uses"
    RELATED = "related"


def generate_memory_id() -> str:
    return f"mem_{uuid.uuid4().hex}"


def content_checksum(content: str) -> str:
    """SHA-256 of the content; identical content always yields the same checksum."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _unique(values: List[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class MemoryRelationship(BaseModel):
    """Relationship descriptor supplied with a record at store time."""

    target_id: str
    type: RelationshipType = RelationshipType.RELATED
    strength: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MemoryMetadata(BaseModel):
    source: str = Field(default="user", description="Provenance tag")
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    relevance: float = Field(default=0.5, ge=0.0, le=1.0)
    context: Dict[str, Any] = Field(default_factory=dict)
    relationships: List[MemoryRelationship] = Field(default_factory=list)
    checksum: Optional[str] = None
    compressed: bool = Field(
        default=False, description="Content was truncated by retention and is only a summary"
    )


class MemoryRecord(BaseModel):
    id: str = Field(default_factory=generate_memory_id)
    type: MemoryType
    content: str
    metadata: MemoryMetadata = Field(default_factory=MemoryMetadata)
    embedding: Optional[List[float]] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    last_accessed: datetime = Field(default_factory=datetime.now)
    access_count: int = Field(default=1, ge=0)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    tags: List[str] = Field(default_factory=list)
    associated_files: List[str] = Field(default_factory=list)
    session_id: str = ""
    project_id: str = ""
    archived: bool = False

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: List[str]) -> List[str]:
        return _unique(tags)

    @property
    def checksum(self) -> Optional[str]:
        return self.metadata.checksum


class Relationship(BaseModel):
    """A persisted directed, weighted edge between two records."""

    id: str = Field(default_factory=lambda: f"rel_{uuid.uuid4().hex}")
    source_id: str
    target_id: str
    type: RelationshipType = RelationshipType.RELATED
    strength: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)


class LearningPattern(BaseModel):
    id: str = Field(default_factory=lambda: f"pat_{uuid.uuid4().hex}")
    pattern: str = Field(..., description="Key derived from (interaction type, outcome)")
    category: str
    frequency: int = Field(default=1, ge=1)
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    last_reinforced: datetime = Field(default_factory=datetime.now)
    context: Dict[str, Any] = Field(default_factory=dict)
    examples: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @property
    def score(self) -> float:
        """Ranking weight used by top_patterns."""
        return self.frequency * self.success_rate


class Reinforcement(BaseModel):
    """One observation fed into the learning pattern tracker."""

    interaction_type: str
    success: bool
    context: Dict[str, Any] = Field(default_factory=dict)
    duration_ms: float = 0.0
    example: Optional[str] = None

    @property
    def pattern_key(self) -> str:
        return f"{self.interaction_type}_{'success' if self.success else 'failure'}"


class Interaction(BaseModel):
    """Outcome of one user/tool interaction, as reported by collaborators."""

    type: str
    success: bool
    context: Dict[str, Any] = Field(default_factory=dict)
    duration: float = Field(default=0.0, ge=0.0, description="Duration in milliseconds")


class TimeRange(BaseModel):
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRange":
        if self.end < self.start:
            raise ValueError("time range end must not precede start")
        return self


class MemoryQuery(BaseModel):
    text: Optional[str] = None
    type: Optional[MemoryType] = None
    tags: List[str] = Field(default_factory=list, description="OR-match: any listed tag")
    time_range: Optional[TimeRange] = None
    project_id: Optional[str] = None
    session_id: Optional[str] = None
    min_importance: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_results: Optional[int] = Field(default=None, gt=0)
    similarity_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    include_archived: bool = False


class MemorySearchResult(BaseModel):
    record: MemoryRecord
    score: float
    explanation: str
    related_records: List[MemoryRecord] = Field(default_factory=list)


class MemoryUpdate(BaseModel):
    """Partial update for a record. Unset fields are left unchanged."""

    content: Optional[str] = None
    type: Optional[MemoryType] = None
    importance: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    tags: Optional[List[str]] = None
    associated_files: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, description="Fields merged into the existing MemoryMetadata"
    )

    @field_validator("metadata")
    @classmethod
    def _reject_relationships(cls, metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if metadata and "relationships" in metadata:
            raise ValueError("relationships cannot be patched; use relate_memories")
        return metadata


class MemoryContext(BaseModel):
    """Caller's working context; stored records inherit project/session/files from it."""

    current_project: str = ""
    current_session: str = ""
    working_directory: str = ""
    active_files: List[str] = Field(default_factory=list)
    user_focus: List[str] = Field(default_factory=list)
    temporary_context: Dict[str, Any] = Field(default_factory=dict)


class ValidationAdvisory(BaseModel):
    """Non-fatal health finding with a remediation suggestion."""

    issue: str
    recommendation: str


class MemoryHealthStatus(BaseModel):
    status: Literal["healthy", "degraded", "critical"]
    advisories: List[ValidationAdvisory] = Field(default_factory=list)
    last_checkup: datetime = Field(default_factory=datetime.now)

    @property
    def issues(self) -> List[str]:
        return [advisory.issue for advisory in self.advisories]

    @property
    def recommendations(self) -> List[str]:
        return [advisory.recommendation for advisory in self.advisories]


class MemoryStats(BaseModel):
    total_records: int
    archived_records: int = 0
    records_by_type: Dict[str, int] = Field(default_factory=dict)
    storage_bytes: int = 0
    avg_importance: float = 0.0
    most_accessed: List[MemoryRecord] = Field(default_factory=list)
    recently_created: List[MemoryRecord] = Field(default_factory=list)
    health: MemoryHealthStatus


class OptimizationReport(BaseModel):
    deduplicated: int = 0
    compressed: int = 0
    archived: int = 0
    evicted: int = 0
    cache_hit_ratio: float = 0.0
    compression_ratio: float = 0.0
    duration_ms: float = 0.0
    average_retrieval_ms: float = 0.0
