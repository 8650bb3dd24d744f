"""Archives the pages of every indexed topic of a section.

Reads the section's stored topic index, walks each topic's pages and writes
them to the raw-html layout, then writes one structured JSON record per
topic.  When a post parser is given, the record also carries every post
parsed from those pages; a page the parser rejects is logged and its posts
left out, since the raw HTML is already on disk.

``progress.json`` is rewritten after every page, so a killed run resumes at
the last topic it was working on.  A topic counts as done only once its
structured record exists; an interrupted topic is archived again from its
first page.
"""

from __future__ import annotations

from datetime import datetime, timezone

from src.interfaces.page_fetcher import IPageFetcher
from src.interfaces.post_parser import IPostParser
from src.models.archive import ArchivedPage, ProgressData, SectionMetadata, TopicRecord
from src.models.forum import Post, Topic
from src.services.archive_storage import ArchiveStorage
from src.services.metrics_service import HistoryLog, MetricsTracker
from src.services.pagination import walk_topic_pages
from src.utils.errors import (
    ExtractionError,
    FetchError,
    ForumArchiveError,
    StorageNotFoundError,
)
from src.utils.logging import get_logger

_ETC_LOG_EVERY_TOPICS = 10


class TopicArchiver:
    """Download and store the pages of indexed topics.

    Parameters
    ----------
    storage:
        Archive root holding the topic index and receiving the pages.
    fetcher:
        Page fetch capability.
    request_delay:
        Seconds slept before every request.
    history:
        Optional run log appended to after each section.
    post_parser:
        Optional parser whose posts are stored in each topic record.
    """

    def __init__(
        self,
        storage: ArchiveStorage,
        fetcher: IPageFetcher,
        request_delay: float = 0.0,
        history: HistoryLog | None = None,
        post_parser: IPostParser | None = None,
        logger=None,
    ) -> None:
        self._storage = storage
        self._fetcher = fetcher
        self._request_delay = request_delay
        self._history = history
        self._post_parser = post_parser
        self._logger = logger or get_logger(__name__)

    async def archive_section(self, section_id: str, metrics: MetricsTracker | None = None) -> dict:
        """Archive every not-yet-archived topic of *section_id*.

        Returns
        -------
        dict
            Counts for ``archived``, ``skipped``, ``failed`` topics and
            ``pages`` written.

        Raises
        ------
        StorageNotFoundError
            If the section has not been indexed yet.
        StorageError
            If pages or progress cannot be written.
        """
        topics = sorted(self._storage.read_topic_index(section_id), key=lambda t: t.topic_id)
        metrics = metrics or MetricsTracker(logger=self._logger)
        metrics.set_expected(topics=len(topics))

        archived = skipped = failed = pages = 0
        page_counts: dict[str, int] = {}

        self._logger.info("archive_section_start", section_id=section_id, topics=len(topics))

        for position, topic in enumerate(topics):
            if self._storage.has_topic_record(section_id, topic.topic_id):
                skipped += 1
                metrics.record_topics_committed()
                continue

            percent = position / len(topics) * 100
            try:
                record = await self._archive_topic(section_id, topic, percent, metrics)
            except FetchError as exc:
                metrics.record_request(success=False)
                self._logger.warning(
                    "topic_archive_failed", section_id=section_id, topic_id=topic.topic_id, error=str(exc)
                )
                failed += 1
                continue

            self._storage.write_topic_record(record)
            metrics.record_topics_committed()
            archived += 1
            pages += len(record.pages)
            page_counts[topic.topic_id] = len(record.pages)

            if archived % _ETC_LOG_EVERY_TOPICS == 0:
                metrics.log_etc()

        if topics and not failed:
            self._write_progress(section_id, "", "", 100.0)
        self._merge_page_counts(section_id, len(topics), page_counts)
        self._record_run(section_id, metrics)

        self._logger.info(
            "archive_section_complete",
            section_id=section_id,
            archived=archived,
            skipped=skipped,
            failed=failed,
            pages=pages,
        )
        return {"archived": archived, "skipped": skipped, "failed": failed, "pages": pages}

    async def _archive_topic(
        self, section_id: str, topic: Topic, percent: float, metrics: MetricsTracker
    ) -> TopicRecord:
        pages: list[ArchivedPage] = []
        posts: list[Post] = []
        async for page in walk_topic_pages(topic.url, self._fetcher, self._request_delay, self._logger):
            metrics.record_request(success=True)
            path = self._storage.write_raw_page(section_id, topic.topic_id, page.page_number, page.html)
            size = len(page.html.encode("utf-8"))
            pages.append(
                ArchivedPage(page_number=page.page_number, url=page.url, path=str(path), size_bytes=size)
            )
            metrics.record_page(size)
            posts.extend(self._parse_posts(topic, page.html, page.page_number, page.url))
            self._write_progress(section_id, topic.topic_id, str(page.page_number), percent)

        return TopicRecord(
            topic_id=topic.topic_id,
            section_id=section_id,
            title=topic.title,
            url=topic.url,
            pages=pages,
            posts=posts,
            archived_at=datetime.now(timezone.utc).isoformat(),
        )

    def _parse_posts(self, topic: Topic, html: str, page_number: int, url: str) -> list[Post]:
        if self._post_parser is None:
            return []
        try:
            return self._post_parser.parse_posts(html, page_number, url)
        except ExtractionError as exc:
            self._logger.warning(
                "post_parse_failed", topic_id=topic.topic_id, page=page_number, error=str(exc)
            )
            return []

    def _write_progress(self, section_id: str, topic_id: str, page: str, percent: float) -> None:
        self._storage.write_progress(
            ProgressData(
                overall_archival_progress=percent,
                last_processed_sub_forum=section_id,
                last_processed_topic=topic_id,
                last_processed_page=page,
            )
        )

    def _merge_page_counts(self, section_id: str, total: int, counts: dict[str, int]) -> None:
        if not counts:
            return
        try:
            current = self._storage.read_section_metadata(section_id)
        except StorageNotFoundError:
            current = SectionMetadata(total_topics=total)

        self._storage.write_section_metadata(
            section_id,
            SectionMetadata(
                total_topics=current.total_topics,
                pages_per_topic={**current.pages_per_topic, **counts},
                last_update_timestamp=datetime.now(timezone.utc).isoformat(),
            ),
        )

    def _record_run(self, section_id: str, metrics: MetricsTracker) -> None:
        if self._history is None:
            return
        run_id = f"archive-{section_id}-{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}"
        try:
            self._history.append_run(metrics.to_historical_run(run_id, section_id))
        except ForumArchiveError as exc:
            self._logger.warning("history_append_failed", run_id=run_id, error=str(exc))
