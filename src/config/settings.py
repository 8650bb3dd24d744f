"""Application settings loaded from environment variables via pydantic-settings.

Configuration is read from two sources (in priority order):

  1. **Environment variables** -- e.g. ``ARCHIVE_ROOT=/srv/forum``
  2. **.env file** -- key=value lines in the project root ``.env`` file

Field ``archive_root`` maps to env var ``ARCHIVE_ROOT`` and so on.
Defaults apply when neither source defines a value.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.forum import PaginationConfig


class Settings(BaseSettings):
    """Forum archive settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Archive layout ===
    archive_root: str = "data/archive"
    backup_dir: str = "data/backups"
    history_path: str = "data/archive/metrics/performance_history.jsonl"
    log_file: str = ""  # empty = stdout only

    # === Section work list ===
    sections_csv: str = "data/subforum_list.csv"
    completed_sections_path: str = "data/completed_subforums.txt"

    # === Fetching ===
    request_delay: float = Field(default=1.0, ge=0.0)  # seconds before each request
    request_timeout: float = Field(default=30.0, gt=0.0)
    user_agent: str = "forum-archive/0.1 (+resumable topic indexer)"
    max_pages: int = Field(default=0, ge=0)  # 0 = no limit

    # === Listing pagination ===
    topics_per_page: int = Field(default=30, gt=0)
    section_param: str = "forum"
    offset_param: str = "start"
    topic_param: str = "topic"
    pagination_selector: str = ""  # e.g. "td.midtext"; empty = every link on the page
    count_topic_pages: bool = False

    # === Backups & quota ===
    storage_quota_bytes: int = 0  # <= 0 disables the quota
    storage_warning_percent: float = Field(default=80.0, ge=0.0)
    backup_every_sections: int = Field(default=1, ge=0)  # 0 disables periodic backups

    # === Metrics ===
    history_window: int = Field(default=10, gt=0)

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def pagination_config(self) -> PaginationConfig:
        """Return the listing pagination parameters as a value object."""
        return PaginationConfig(
            topics_per_page=self.topics_per_page,
            section_param=self.section_param,
            offset_param=self.offset_param,
            topic_param=self.topic_param,
            pagination_selector=self.pagination_selector,
        )
