"""Pydantic v2 models for forum content discovered during a scan.

All models use frozen config (immutable): a topic is never mutated after it
is first inserted into a discovery result, and later sightings of the same
identifier are dropped rather than merged.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PaginationConfig(BaseModel):
    """Query-parameter names and page size of a forum's listing endpoint."""

    model_config = ConfigDict(frozen=True)

    topics_per_page: int = Field(default=30, gt=0)
    section_param: str = Field(default="forum")
    offset_param: str = Field(default="start")
    topic_param: str = Field(default="topic")
    pagination_selector: str = Field(
        default="", description="CSS selector of the pagination control; empty scans every link."
    )


class Topic(BaseModel):
    """A single discussion thread listed on a section's listing pages."""

    model_config = ConfigDict(frozen=True)

    topic_id: str = Field(description="Forum topic identifier, unique across the archive.")
    section_id: str = Field(description="Identifier of the owning section.")
    title: str = Field(description="Topic title as shown in the listing.")
    url: str = Field(description="Absolute canonical URL of the topic's first page.")
    author: str | None = Field(default=None, description="Topic starter, if listed.")
    replies: int | None = Field(default=None, description="Reply count, if listed.")
    views: int | None = Field(default=None, description="View count, if listed.")
    last_activity: str | None = Field(
        default=None, description="Raw last-activity marker from the listing."
    )
    is_sticky: bool = Field(default=False, description="Pinned to the top of the listing.")
    is_locked: bool = Field(default=False, description="Closed to new replies.")


class Section(BaseModel):
    """A forum section (sub-forum) and the topics discovered in it."""

    model_config = ConfigDict(frozen=True)

    section_id: str = Field(description="Section identifier from the listing URL.")
    name: str = Field(default="", description="Display name.")
    base_url: str = Field(default="", description="Canonical page-1 listing URL.")
    topics: list[Topic] = Field(
        default_factory=list, description="Owned topics, sorted by identifier."
    )

    @property
    def topic_count(self) -> int:
        return len(self.topics)


class SectionEntry(BaseModel):
    """One row of the section work list (the sections CSV)."""

    model_config = ConfigDict(frozen=True)

    section_id: str
    name: str = ""
    base_url: str
    description: str = ""
    topics_count: str = ""
    posts_count: str = ""


class DiscoveryResult(BaseModel):
    """Output of a two-pass discovery run for one section.

    ``topics`` is keyed by topic identifier; use :meth:`sorted_topics` for
    anything that is persisted or displayed.
    """

    model_config = ConfigDict(frozen=True)

    section_url: str
    page_urls: list[str] = Field(default_factory=list)
    topics: dict[str, Topic] = Field(default_factory=dict)
    rescan_new_count: int = Field(
        default=0, description="Topics first seen on the page-1 rescan."
    )
    failed_pages: list[str] = Field(
        default_factory=list, description="Planned pages that could not be fetched or parsed."
    )

    def sorted_topics(self) -> list[Topic]:
        return [self.topics[key] for key in sorted(self.topics)]

    @property
    def coverage(self) -> float:
        """Fraction of planned pages that were scanned successfully."""
        if not self.page_urls:
            return 0.0
        return (len(self.page_urls) - len(self.failed_pages)) / len(self.page_urls)



class ContentBlock(BaseModel):
    """One ordered piece of a post body: the author's own text or a quote."""

    model_config = ConfigDict(frozen=True)

    type: Literal["new_text", "quote"]
    content: str = Field(default="", description="Cleaned text of a new_text block.")
    quoted_user: str = ""
    quoted_timestamp: str = Field(default="", description="Raw attribution date, if shown.")
    quoted_text: str = Field(default="", description="Inner HTML of the quoted body.")


class Post(BaseModel):
    """A single post parsed from an archived topic page."""

    model_config = ConfigDict(frozen=True)

    post_id: str
    page_number: int = Field(ge=1)
    post_order_on_page: int = Field(ge=0)
    author_username: str
    timestamp: str = Field(
        default="", description="'YYYY-MM-DD HH:MM:SS', or empty when unparsable."
    )
    raw_timestamp: str = Field(default="", description="Date text as shown on the page.")
    content_blocks: list[ContentBlock] = Field(default_factory=list)
