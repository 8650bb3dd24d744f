"""Topic extractor for classic ``viewforum.php`` listing tables.

Parses a section listing page with BeautifulSoup and returns one
:class:`~src.models.forum.Topic` per topic link, in document order.  The
topic identifier is the ``topic`` query parameter of the link; the section
identifier is stamped from the listing page's own URL.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup

from src.interfaces.topic_extractor import ITopicExtractor
from src.models.forum import PaginationConfig, Topic
from src.utils.errors import ExtractionError
from src.utils.logging import get_logger

# Topic rows sit in ``table.normal``; the title link is a bold anchor in the
# ``bgc2`` cell.
_DEFAULT_LINK_SELECTOR = "table.normal tr td.normal.bgc2 > a.b[href*='viewtopic.php']"


def query_value(url: str, name: str) -> str:
    """Return the first value of query parameter *name* in *url*, or ``""``."""
    values = parse_qs(urlparse(url).query).get(name)
    return values[0].strip() if values else ""


class ListingTopicExtractor(ITopicExtractor):
    """Extract topics from a section listing page.

    Parameters
    ----------
    pagination:
        Supplies the section and topic query-parameter names.
    link_selector:
        CSS selector matching topic title links.
    """

    def __init__(
        self,
        pagination: PaginationConfig | None = None,
        link_selector: str = _DEFAULT_LINK_SELECTOR,
        logger=None,
    ) -> None:
        self._pagination = pagination or PaginationConfig()
        self._link_selector = link_selector
        self._logger = logger or get_logger(__name__)

    def extract_topics(self, html: str, page_url: str) -> list[Topic]:
        try:
            soup = BeautifulSoup(html, "html.parser")
            links = soup.select(self._link_selector)
        except Exception as exc:
            raise ExtractionError(message=f"unparsable listing page: {exc}", path=page_url) from exc

        section_id = query_value(page_url, self._pagination.section_param)
        topics: list[Topic] = []
        seen: set[str] = set()

        for link in links:
            href = link.get("href")
            if not href:
                continue

            title = link.get_text(strip=True)
            if not title:
                continue

            topic_url = urljoin(page_url, href)
            topic_id = query_value(topic_url, self._pagination.topic_param)
            if not topic_id:
                self._logger.debug("topic_id_missing", url=topic_url, title=title)
                continue

            if topic_id in seen:
                continue
            seen.add(topic_id)

            topics.append(
                Topic(
                    topic_id=topic_id,
                    section_id=section_id,
                    title=title,
                    url=topic_url,
                )
            )

        if not topics:
            self._logger.info("listing_page_empty", url=page_url)

        return topics

    def get_provider_name(self) -> str:
        return "listing_table"
