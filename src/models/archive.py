"""Pydantic v2 models for the persisted archive state.

These are the on-disk documents of an archive root (``progress.json``,
``metadata/subforum-<ID>/index.json`` and the per-topic structured record) plus the value objects returned by
the backup and quota services.  Field names match the JSON keys exactly.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.forum import Post


class ProgressData(BaseModel):
    """Global resume point for an archive root.

    Range checking of ``overall_archival_progress`` happens in the storage
    layer on read, where an out-of-range value is reported as an
    invalid-format condition rather than clamped.
    """

    model_config = ConfigDict(frozen=True)

    overall_archival_progress: float = Field(
        default=0.0, description="Completion percentage, 0-100 inclusive."
    )
    last_processed_sub_forum: str = Field(default="")
    last_processed_topic: str = Field(default="")
    last_processed_page: str = Field(default="")


class SectionMetadata(BaseModel):
    """Per-section index document, overwritten wholesale on every write."""

    model_config = ConfigDict(frozen=True)

    total_topics: int = Field(default=0, description="Number of topics in the section.")
    pages_per_topic: dict[str, int] = Field(
        default_factory=dict, description="Topic identifier -> page count."
    )
    last_update_timestamp: str = Field(default="", description="ISO-8601 timestamp.")


class BackupInfo(BaseModel):
    """A backup snapshot directory found under the backup parent."""

    model_config = ConfigDict(frozen=True)

    path: str
    timestamp: datetime


class StorageStatus(BaseModel):
    """Result of a quota check.

    ``error`` is set (and ``is_warning`` left False) when the directory
    size could not be measured.
    """

    model_config = ConfigDict(frozen=True)

    current_usage_bytes: int = 0
    quota_bytes: int = 0
    usage_percentage: float = 0.0
    is_warning: bool = False
    error: str | None = None

    @property
    def quota_enabled(self) -> bool:
        return self.quota_bytes > 0


class ArchivedPage(BaseModel):
    """One raw page written by the topic archiver."""

    model_config = ConfigDict(frozen=True)

    page_number: int
    url: str
    path: str
    size_bytes: int


class TopicRecord(BaseModel):
    """Structured JSON document written per archived topic."""

    model_config = ConfigDict(frozen=True)

    topic_id: str
    section_id: str
    title: str
    url: str
    pages: list[ArchivedPage] = Field(default_factory=list)
    posts: list[Post] = Field(default_factory=list)
    archived_at: str = ""
