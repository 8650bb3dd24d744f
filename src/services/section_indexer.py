"""Indexes forum sections into an archive root.

:meth:`SectionIndexer.index_section` runs two-pass discovery for one section
and persists the result: the sorted topic index, the section metadata
document and the global progress file, then appends a historical run
record.  :meth:`SectionIndexer.run_all` drains a :class:`SectionQueue`
sequentially, marking each section complete only after it was persisted,
and takes a backup plus a quota reading every few sections.

Usage via CLI::

    python -m src.cli index --url "https://forum.example/viewforum.php?forum=12"
    python -m src.cli run
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from src.interfaces.page_fetcher import IPageFetcher
from src.models.archive import ProgressData, SectionMetadata
from src.models.forum import DiscoveryResult, Section, Topic
from src.services.archive_storage import ArchiveStorage
from src.services.backup_service import BackupService
from src.services.discovery_service import SectionDiscoveryService
from src.services.metrics_service import HistoryLog, MetricsTracker, format_duration
from src.services.pagination import section_id_from_url, walk_topic_pages
from src.services.section_queue import SectionQueue
from src.utils.errors import FetchError, ForumArchiveError, StorageNotFoundError
from src.utils.logging import get_logger


class SectionIndexer:
    """Discover and persist sections one at a time.

    Parameters
    ----------
    discovery:
        Two-pass discovery service.
    storage:
        Archive root the results are written into.
    history:
        Optional run log; a failure to append is logged, not raised.
    backup:
        Backup and quota service used by :meth:`run_all`.
    backup_dir:
        Parent directory for periodic backups.
    backup_every_sections:
        Take a backup after this many completed sections (0 disables).
    quota_bytes, warning_percent:
        Quota settings for the periodic size check.
    page_fetcher:
        When set, every discovered topic's pages are walked to fill
        ``pages_per_topic``; otherwise that map is left empty.
    """

    def __init__(
        self,
        discovery: SectionDiscoveryService,
        storage: ArchiveStorage,
        history: HistoryLog | None = None,
        backup: BackupService | None = None,
        backup_dir: str | Path = "data/backups",
        backup_every_sections: int = 1,
        quota_bytes: int = 0,
        warning_percent: float = 80.0,
        page_fetcher: IPageFetcher | None = None,
        request_delay: float = 0.0,
        logger=None,
    ) -> None:
        self._discovery = discovery
        self._storage = storage
        self._history = history
        self._backup = backup
        self._backup_dir = Path(backup_dir)
        self._backup_every = backup_every_sections
        self._quota_bytes = quota_bytes
        self._warning_percent = warning_percent
        self._page_fetcher = page_fetcher
        self._request_delay = request_delay
        self._logger = logger or get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def index_section(
        self,
        section_url: str,
        section_id: str | None = None,
        progress_percent: float | None = None,
        name: str = "",
    ) -> DiscoveryResult:
        """Discover one section and persist its index, metadata and progress.

        Parameters
        ----------
        section_url:
            Any listing URL of the section.
        section_id:
            Identifier to store under; defaults to the URL's section parameter.
        progress_percent:
            New overall percentage; ``None`` keeps the stored value.
        name:
            Display name, used for logging only.

        Raises
        ------
        DiscoveryError
            If the section's first page is unusable.
        StorageError
            If the results cannot be persisted.
        """
        if section_id is None:
            section_id = section_id_from_url(section_url, self._discovery.pagination)

        self._storage.initialize()
        metrics = MetricsTracker(logger=self._logger)

        self._logger.info("section_index_start", section_id=section_id, url=section_url)
        result = await self._discovery.discover(section_url, metrics=metrics)
        section = Section(
            section_id=section_id,
            name=name,
            base_url=result.section_url,
            topics=result.sorted_topics(),
        )

        self._storage.write_topic_index(section_id, section.topics)
        pages_per_topic = (
            await self._count_topic_pages(section.topics) if self._page_fetcher else {}
        )
        metrics.record_topics_committed(section.topic_count)

        self._storage.write_section_metadata(
            section_id,
            SectionMetadata(
                total_topics=section.topic_count,
                pages_per_topic=pages_per_topic,
                last_update_timestamp=datetime.now(timezone.utc).isoformat(),
            ),
        )
        self._update_progress(section_id, progress_percent)
        self._record_run(metrics, f"index-{section_id}", section_id)

        self._logger.info(
            "section_index_complete",
            section_id=section_id,
            name=section.name,
            topics=section.topic_count,
            pages=len(result.page_urls),
            failed_pages=len(result.failed_pages),
            rescan_new=result.rescan_new_count,
            coverage=round(result.coverage, 3),
            elapsed=format_duration(metrics.snapshot().elapsed_seconds),
        )
        return result

    async def run_all(self, queue: SectionQueue) -> dict:
        """Index every pending section of *queue* in order.

        A section whose indexing fails is logged and left pending for the
        next run.  Backup and quota failures are logged and never stop the
        run.

        Returns
        -------
        dict
            ``processed``, ``failed`` (list of ids), ``skipped`` and ``total``.
        """
        self._storage.initialize()
        # Abort early on a corrupt progress file rather than once per section.
        self._storage.read_progress()

        total = len(queue.sections)
        pending = queue.pending()
        skipped = total - len(pending)
        done = skipped
        processed = 0
        failed: list[str] = []

        self._logger.info("run_all_start", total=total, pending=len(pending), skipped=skipped)

        for position, entry in enumerate(pending, start=1):
            self._logger.info(
                "section_start",
                section_id=entry.section_id,
                name=entry.name,
                position=position,
                pending=len(pending),
            )
            try:
                await self.index_section(
                    entry.base_url,
                    section_id=entry.section_id,
                    progress_percent=(done + 1) / total * 100,
                    name=entry.name,
                )
                queue.mark_completed(entry.section_id)
            except ForumArchiveError as exc:
                self._logger.error(
                    "section_failed", section_id=entry.section_id, error=str(exc)
                )
                failed.append(entry.section_id)
                continue

            done += 1
            processed += 1
            if self._backup_every and processed % self._backup_every == 0:
                self.run_maintenance()

        self._logger.info(
            "run_all_complete",
            total=total,
            processed=processed,
            failed=len(failed),
            skipped=skipped,
        )
        return {"processed": processed, "failed": failed, "skipped": skipped, "total": total}

    def run_maintenance(self) -> None:
        """Take a backup and check the quota; failures are only logged."""
        if self._backup is None:
            return
        try:
            self._backup.backup(self._storage.root, self._backup_dir)
        except ForumArchiveError as exc:
            self._logger.error("periodic_backup_failed", error=str(exc))

        status = self._backup.check_quota(
            self._storage.root, self._warning_percent, self._quota_bytes
        )
        if status.error:
            self._logger.error("periodic_quota_check_failed", error=status.error)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _count_topic_pages(self, topics: list[Topic]) -> dict[str, int]:
        counts: dict[str, int] = {}
        for topic in topics:
            count = 0
            try:
                async for _page in walk_topic_pages(
                    topic.url, self._page_fetcher, self._request_delay, self._logger
                ):
                    count += 1
            except FetchError as exc:
                self._logger.warning(
                    "topic_page_count_incomplete",
                    topic_id=topic.topic_id,
                    pages_seen=count,
                    error=str(exc),
                )
            counts[topic.topic_id] = count
        return counts

    def _update_progress(self, section_id: str, percent: float | None) -> None:
        try:
            current = self._storage.read_progress()
        except StorageNotFoundError:
            current = ProgressData()

        self._storage.write_progress(
            current.model_copy(
                update={
                    "last_processed_sub_forum": section_id,
                    "last_processed_topic": "",
                    "last_processed_page": "",
                    "overall_archival_progress": (
                        current.overall_archival_progress if percent is None else min(percent, 100.0)
                    ),
                }
            )
        )

    def _record_run(self, metrics: MetricsTracker, prefix: str, section_id: str) -> None:
        if self._history is None:
            return
        run_id = f"{prefix}-{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}"
        try:
            self._history.append_run(metrics.to_historical_run(run_id, section_id))
        except ForumArchiveError as exc:
            self._logger.warning("history_append_failed", run_id=run_id, error=str(exc))
