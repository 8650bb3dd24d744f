"""Pydantic v2 model for the append-only historical metrics log."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class HistoricalRun(BaseModel):
    """Immutable performance record of one completed run.

    One JSON object per line in the history log.  Rates are per minute.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    run_id: str
    section_id: str = ""
    duration_seconds: float = 0.0
    pages_archived: int = 0
    topics_archived: int = 0
    bytes_archived: int = 0
    average_page_rate: float = Field(default=0.0, description="Pages per minute.")
    average_topic_rate: float = Field(default=0.0, description="Topics per minute.")
    average_mb_rate: float = Field(default=0.0, description="Megabytes per minute.")
