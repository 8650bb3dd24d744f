"""Two-pass topic discovery for one forum section.

Pass one fetches page 1, plans the full page list from it and walks every
page in order, keeping the first sighting of each topic identifier.  Pass
two re-fetches page 1 only, to pick up topics bumped onto it while the
full scan was running.  Topics that moved between earlier pages or were
deleted during the scan are not re-validated.

Only the first page is critical: if it cannot be fetched or planned the
run fails with :class:`DiscoveryError`.  Every later per-page failure is
logged, recorded in :attr:`DiscoveryResult.failed_pages` and skipped.
"""

from __future__ import annotations

from src.interfaces.page_fetcher import IPageFetcher
from src.interfaces.topic_extractor import ITopicExtractor
from src.models.forum import DiscoveryResult, PaginationConfig, Topic
from src.services.metrics_service import MetricsTracker
from src.services.pagination import (
    canonical_page_url,
    count_section_pages,
    section_page_urls,
)
from src.utils.errors import DiscoveryError, ExtractionError, FetchError, PaginationError
from src.utils.logging import get_logger


class SectionDiscoveryService:
    """Discover every topic of a section with a full scan plus a page-1 rescan.

    Parameters
    ----------
    fetcher:
        Page fetch capability; pages are requested one at a time.
    extractor:
        Turns one listing page into topics.
    pagination:
        Listing query-parameter names and page size.
    request_delay:
        Seconds slept before every request.
    max_pages:
        Truncate the planned page list to this many pages (0 = no limit).
    metrics:
        Default tracker updated for every request and page.
    """

    def __init__(
        self,
        fetcher: IPageFetcher,
        extractor: ITopicExtractor,
        pagination: PaginationConfig | None = None,
        request_delay: float = 0.0,
        max_pages: int = 0,
        metrics: MetricsTracker | None = None,
        logger=None,
    ) -> None:
        self._fetcher = fetcher
        self._extractor = extractor
        self._pagination = pagination or PaginationConfig()
        self._request_delay = request_delay
        self._max_pages = max_pages
        self._metrics = metrics
        self._logger = logger or get_logger(__name__)

    @property
    def pagination(self) -> PaginationConfig:
        return self._pagination

    async def discover(
        self, section_url: str, metrics: MetricsTracker | None = None
    ) -> DiscoveryResult:
        """Run both passes for the section listed at *section_url*.

        *metrics* overrides the constructor's tracker for this call only.

        Raises
        ------
        DiscoveryError
            If page 1 cannot be fetched or its URL lacks a section identifier.
        """
        tracker = metrics or self._metrics or MetricsTracker(logger=self._logger)

        try:
            first_url = canonical_page_url(section_url, 0, self._pagination)
        except PaginationError as exc:
            raise DiscoveryError(message=exc.message, path=section_url) from exc

        try:
            first_html = await self._fetch(first_url, tracker)
            planned = count_section_pages(first_html, first_url, self._pagination)
        except (FetchError, PaginationError) as exc:
            raise DiscoveryError(message=f"first page unusable: {exc}", path=first_url) from exc

        if self._max_pages and planned > self._max_pages:
            self._logger.info(
                "page_list_truncated",
                planned=planned,
                max_pages=self._max_pages,
            )
            planned = self._max_pages
        page_urls = section_page_urls(first_url, planned, self._pagination)

        tracker.set_expected(pages=len(page_urls))
        self._logger.info("full_scan_start", section_url=first_url, pages=len(page_urls))

        topics: dict[str, Topic] = {}
        failed: list[str] = []

        for index, url in enumerate(page_urls):
            # Page 1 was already fetched for planning.
            if index == 0:
                html = first_html
            else:
                try:
                    html = await self._fetch(url, tracker)
                except FetchError as exc:
                    self._logger.warning("page_fetch_failed", url=url, error=str(exc))
                    failed.append(url)
                    continue

            try:
                page_topics = self._extractor.extract_topics(html, url)
            except ExtractionError as exc:
                self._logger.warning("page_extract_failed", url=url, error=str(exc))
                failed.append(url)
                continue

            added = _merge(topics, page_topics)
            tracker.record_page(len(html))
            tracker.record_topics_found(added)

            self._logger.debug(
                "page_scanned",
                url=url,
                page=index + 1,
                topics_on_page=len(page_topics),
                new_topics=added,
                total_topics=len(topics),
            )

        rescan_new = await self._rescan_first_page(first_url, topics, tracker)

        self._logger.info(
            "discovery_complete",
            section_url=first_url,
            pages=len(page_urls),
            failed_pages=len(failed),
            topics=len(topics),
            rescan_new=rescan_new,
        )
        return DiscoveryResult(
            section_url=first_url,
            page_urls=page_urls,
            topics=topics,
            rescan_new_count=rescan_new,
            failed_pages=failed,
        )

    async def _rescan_first_page(
        self, first_url: str, topics: dict[str, Topic], tracker: MetricsTracker
    ) -> int:
        try:
            html = await self._fetch(first_url, tracker)
            rescanned = self._extractor.extract_topics(html, first_url)
        except (FetchError, ExtractionError) as exc:
            self._logger.warning("rescan_failed", url=first_url, error=str(exc))
            return 0

        added = _merge(topics, rescanned)
        tracker.record_topics_found(added)
        if added:
            self._logger.info("rescan_found_new_topics", url=first_url, count=added)
        return added

    async def _fetch(self, url: str, tracker: MetricsTracker) -> str:
        try:
            html = await self._fetcher.fetch(url, delay=self._request_delay)
        except FetchError:
            tracker.record_request(success=False)
            raise
        tracker.record_request(success=True)
        return html


def _merge(topics: dict[str, Topic], found: list[Topic]) -> int:
    """Insert topics not yet present; return how many were new."""
    added = 0
    for topic in found:
        if topic.topic_id not in topics:
            topics[topic.topic_id] = topic
            added += 1
    return added
