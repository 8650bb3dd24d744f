"""Listing and topic pagination.

:func:`plan_section_pages` reconstructs every listing-page URL of a section
from a single fetched page.  It looks at the numeric offsets carried by the
page's numbered pagination links, takes the largest one and synthesizes the
full ordered URL list from it; nothing beyond the given page is fetched.

:func:`walk_topic_pages` is the topic-side counterpart: topic pages are not
numbered predictably, so it follows "next" links one fetch at a time.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode, urljoin, urlparse

from bs4 import BeautifulSoup

from src.interfaces.page_fetcher import IPageFetcher
from src.models.forum import PaginationConfig
from src.utils.errors import PaginationError
from src.utils.logging import get_logger

_NEXT_LABELS = frozenset({"next", "[next]"})
_CONTROL_LABELS = _NEXT_LABELS | {"prev", "[prev]"}


@dataclass(frozen=True)
class TopicPage:
    """One fetched page of a topic, 1-indexed."""

    page_number: int
    url: str
    html: str


def _first(query: dict[str, list[str]], name: str) -> str:
    values = query.get(name)
    return values[0].strip() if values else ""


def section_id_from_url(page_url: str, config: PaginationConfig | None = None) -> str:
    """Return the section identifier carried by a listing URL.

    Raises
    ------
    PaginationError
        If *page_url* has no (or an empty) section identifier parameter.
    """
    config = config or PaginationConfig()
    section_id = _first(parse_qs(urlparse(page_url).query), config.section_param)
    if not section_id:
        raise PaginationError(
            message=f"no '{config.section_param}' parameter in listing URL",
            path=page_url,
        )
    return section_id


def canonical_page_url(page_url: str, offset: int = 0, config: PaginationConfig | None = None) -> str:
    """Build the listing URL for *offset* from any page URL of the same section.

    The offset parameter is omitted entirely for offset 0.

    Raises
    ------
    PaginationError
        If *page_url* has no section identifier parameter.
    """
    config = config or PaginationConfig()
    section_id = section_id_from_url(page_url, config)
    parsed = urlparse(page_url)

    params = [(config.section_param, section_id)]
    if offset > 0:
        params.append((config.offset_param, str(offset)))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}?{urlencode(params)}"


def _pagination_links(soup: BeautifulSoup, selector: str) -> list:
    if not selector:
        return soup.find_all("a", href=True)
    links = []
    for container in soup.select(selector):
        links.extend(container.find_all("a", href=True))
    return links


def count_section_pages(
    html: str,
    page_url: str,
    config: PaginationConfig | None = None,
) -> int:
    """Return ``floor(max_offset / topics_per_page) + 1`` for a listing page.

    Only links inside ``config.pagination_selector`` are read when it is
    set; otherwise every link on the page is a candidate.  Links to another
    endpoint or another section, and next/prev controls, never count.
    """
    config = config or PaginationConfig()
    current = urlparse(page_url)
    section_id = _first(parse_qs(current.query), config.section_param)

    max_offset = 0
    soup = BeautifulSoup(html, "html.parser")
    for link in _pagination_links(soup, config.pagination_selector):
        # next/prev point at an offset the numbered links already cover.
        if link.get_text(strip=True).lower() in _CONTROL_LABELS:
            continue

        resolved = urlparse(urljoin(page_url, link["href"]))
        if resolved.path != current.path:
            continue

        query = parse_qs(resolved.query)
        link_section = _first(query, config.section_param)
        if link_section and link_section != section_id:
            continue

        raw_offset = _first(query, config.offset_param)
        if not raw_offset.isdigit():
            continue
        max_offset = max(max_offset, int(raw_offset))

    return max_offset // config.topics_per_page + 1


def section_page_urls(
    page_url: str,
    total_pages: int,
    config: PaginationConfig | None = None,
) -> list[str]:
    """Build the first *total_pages* listing URLs of a section, page 1 first."""
    config = config or PaginationConfig()
    first_url = canonical_page_url(page_url, 0, config)

    urls = [first_url]
    seen = {first_url}
    for index in range(1, total_pages):
        url = canonical_page_url(page_url, index * config.topics_per_page, config)
        if url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


def plan_section_pages(
    html: str,
    page_url: str,
    config: PaginationConfig | None = None,
    max_pages: int = 0,
) -> list[str]:
    """Return the ordered page-URL list of the section *page_url* belongs to.

    Parameters
    ----------
    html:
        Body of any one listing page of the section (normally page 1).
    page_url:
        URL *html* was fetched from.  Must carry the section parameter.
    config:
        Parameter names, the fixed topics-per-page constant and the
        optional pagination-control selector.
    max_pages:
        Cap on the number of URLs built (0 = no cap).  Applied before any
        URL is synthesized, so an outsized offset costs nothing extra.

    Returns
    -------
    list[str]
        ``floor(max_offset / topics_per_page) + 1`` absolute URLs (or
        *max_pages*, whichever is smaller), page 1 first without an offset
        parameter, ascending, no duplicates.  Exactly one URL when the page
        shows no numeric offsets.

    Raises
    ------
    PaginationError
        If *page_url* has no section identifier parameter.
    """
    config = config or PaginationConfig()
    section_id_from_url(page_url, config)

    total_pages = count_section_pages(html, page_url, config)
    if max_pages:
        total_pages = min(total_pages, max_pages)
    return section_page_urls(page_url, total_pages, config)


def find_next_link(html: str, page_url: str) -> str | None:
    """Return the absolute target of the last "next" link on a page, if any."""
    soup = BeautifulSoup(html, "html.parser")
    next_href: str | None = None
    for link in soup.find_all("a", href=True):
        if link.get_text(strip=True).lower() in _NEXT_LABELS:
            next_href = link["href"]
    if next_href is None:
        return None
    return urljoin(page_url, next_href)


async def walk_topic_pages(
    topic_url: str,
    fetcher: IPageFetcher,
    delay: float = 0.0,
    logger=None,
) -> AsyncIterator[TopicPage]:
    """Yield every page of a topic by following "next" links.

    Stops when a page has no next link or when the next link points at a
    page already visited.  A fetch failure propagates as
    :class:`~src.utils.errors.FetchError` after the pages before it have
    been yielded, so callers keep what they already consumed.
    """
    log = logger or get_logger(__name__)
    seen: set[str] = set()
    current: str | None = topic_url
    page_number = 0

    while current is not None:
        seen.add(current)
        html = await fetcher.fetch(current, delay=delay)
        page_number += 1
        yield TopicPage(page_number=page_number, url=current, html=html)

        next_url = find_next_link(html, current)
        if next_url is not None and next_url in seen:
            log.warning("topic_pagination_loop", url=next_url, topic_url=topic_url)
            next_url = None
        current = next_url

    log.debug("topic_pages_walked", topic_url=topic_url, pages=page_number)
