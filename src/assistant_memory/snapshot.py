"""
Versioned JSON export document.

An export is a superset snapshot: archived records are included, as are
embeddings, although import recomputes embeddings from content.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator

from assistant_memory.models import LearningPattern, MemoryRecord, Relationship

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"
SUPPORTED_MAJOR_VERSION = 1


class ExportDocument(BaseModel):
    version: str = EXPORT_VERSION
    exported_at: datetime = Field(default_factory=datetime.now)
    memories: List[MemoryRecord] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)
    patterns: List[LearningPattern] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("version")
    @classmethod
    def _check_version(cls, version: str) -> str:
        major = version.split(".", 1)[0]
        if not major.isdigit() or int(major) != SUPPORTED_MAJOR_VERSION:
            raise ValueError(
                f"Unsupported export version {version!r} (expected {SUPPORTED_MAJOR_VERSION}.x)"
            )
        return version


def write_export(document: ExportDocument, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document.model_dump_json(indent=2), encoding="utf-8")

    logger.info(
        f"Exported {len(document.memories)} memories, {len(document.relationships)} "
        f"relationships and {len(document.patterns)} patterns to {path}"
    )
    return path


def read_export(path: str | Path) -> ExportDocument:
    """
    Load an export document.

    Raises:
        FileNotFoundError: path does not exist
        ValueError: malformed document or unsupported major version
    """
    raw = Path(path).read_text(encoding="utf-8")
    return ExportDocument.model_validate_json(raw)
