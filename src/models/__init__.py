"""Forum archive domain models -- re-exports all public model classes.

Other parts of the codebase can import directly from ``src.models``
(e.g. ``from src.models import Topic``) instead of the individual module.

The models are organized across three submodules by concern:
    - forum.py    -- Discovered content (Topic, Section, DiscoveryResult),
                     parsed posts (Post, ContentBlock) and the section
                     work-list row
    - archive.py  -- Persisted archive documents (ProgressData,
                     SectionMetadata, TopicRecord) and backup/quota results
    - metrics.py  -- The historical run record appended after each run

If you add a new model class, remember to add it to ``__all__`` too.
"""

from __future__ import annotations

from src.models.archive import (
    ArchivedPage,
    BackupInfo,
    ProgressData,
    SectionMetadata,
    StorageStatus,
    TopicRecord,
)
from src.models.forum import (
    ContentBlock,
    DiscoveryResult,
    PaginationConfig,
    Post,
    Section,
    SectionEntry,
    Topic,
)
from src.models.metrics import HistoricalRun

__all__ = [
    "ArchivedPage",
    "BackupInfo",
    "ContentBlock",
    "DiscoveryResult",
    "HistoricalRun",
    "PaginationConfig",
    "Post",
    "ProgressData",
    "Section",
    "SectionEntry",
    "SectionMetadata",
    "StorageStatus",
    "Topic",
    "TopicRecord",
]
