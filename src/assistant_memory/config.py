"""
Configuration for the memory engine.

MemoryConfig reads overrides from the environment (prefix ASSISTANT_MEMORY_,
nested fields separated by "__"), e.g.:

    ASSISTANT_MEMORY_VECTOR_SEARCH_THRESHOLD=0.4
    ASSISTANT_MEMORY_RETENTION_POLICY__ARCHIVE_AFTER_DAYS=180
"""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetentionPolicy(BaseModel):
    """Age thresholds used by the retention engine."""

    archive_after_days: int = Field(
        default=365, ge=0, description="Records older than this are archived"
    )
    never_delete_important: bool = Field(
        default=True, description="Exempt records above importance_floor from age-based archival"
    )
    importance_floor: float = Field(
        default=0.8, ge=0.0, le=1.0, description="Importance above which a record is exempt"
    )


class MemoryConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ASSISTANT_MEMORY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database_path: str = Field(
        default=str(Path(".assistant_memory") / "memory" / "database.sqlite"),
        description="SQLite file path, ':memory:', or a full SQLAlchemy URL",
    )
    vector_dimensions: int = Field(default=384, gt=0)
    max_memory_size_mb: float = Field(default=1024, gt=0)
    compression_enabled: bool = True
    vector_search_threshold: float = Field(default=0.3, ge=-1.0, le=1.0)

    # Hot cache
    cache_capacity: int = Field(default=500, gt=0)
    initial_cache_load: int = Field(default=100, ge=0)
    cache_idle_window_hours: float = Field(default=24, gt=0)
    cache_hit_ratio_floor: float = Field(default=0.8, ge=0.0, le=1.0)
    min_cache_lookups: int = Field(default=20, ge=0)

    # Compression
    compress_after_days: int = Field(default=30, ge=0)
    compress_min_chars: int = Field(default=1000, gt=0)
    compress_head_chars: int = Field(default=500, gt=0)

    # Background maintenance
    optimize_interval_seconds: float = Field(default=3600, gt=0)
    health_check_interval_seconds: float = Field(default=300, gt=0)

    retention_policy: RetentionPolicy = Field(default_factory=RetentionPolicy)

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for database_path."""
        if "://" in self.database_path:
            return self.database_path
        if self.database_path == ":memory:":
            return "sqlite:///:memory:"
        return f"sqlite:///{self.database_path}"

    @property
    def is_file_database(self) -> bool:
        return "://" not in self.database_path and self.database_path != ":memory:"

    @classmethod
    def for_project(cls, project_path: str | Path, **overrides) -> "MemoryConfig":
        """Config with one database file per project, under <project>/.assistant_memory/."""
        database_path = Path(project_path) / ".assistant_memory" / "memory" / "database.sqlite"
        return cls(database_path=str(database_path), **overrides)
