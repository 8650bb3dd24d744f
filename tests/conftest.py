"""Shared pytest fixtures for the forum archive test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.interfaces.page_fetcher import IPageFetcher
from src.models.forum import Topic
from src.services.archive_storage import ArchiveStorage
from src.utils.errors import FetchError

FORUM_BASE = "http://forum.test/viewforum.php"
TOPIC_BASE = "http://forum.test/viewtopic.php"


# ---------------------------------------------------------------------------
# HTML builders
# ---------------------------------------------------------------------------


def section_url(forum_id: str = "5", start: int = 0) -> str:
    """Listing URL in the exact form the pagination planner produces."""
    if start:
        return f"{FORUM_BASE}?forum={forum_id}&start={start}"
    return f"{FORUM_BASE}?forum={forum_id}"


def topic_url(topic_id: str) -> str:
    return f"{TOPIC_BASE}?topic={topic_id}"


def listing_html(
    forum_id: str = "5",
    topics: list[tuple[str, str]] | None = None,
    offsets: list[int] | None = None,
    next_offset: int | None = None,
) -> str:
    """Build a listing page with topic rows and numbered pagination links.

    ``topics`` is a list of ``(topic_id, title)`` pairs; ``offsets`` the
    ``start`` values of the numbered page links.
    """
    rows = "".join(
        f'<tr><td class="normal bgc1">icon</td>'
        f'<td class="normal bgc2"><a class="b" href="viewtopic.php?topic={tid}&amp;forum={forum_id}">'
        f"{title}</a></td></tr>"
        for tid, title in (topics or [])
    )
    page_links = "".join(
        f'<a href="viewforum.php?forum={forum_id}&amp;start={offset}">{index + 2}</a> '
        for index, offset in enumerate(offsets or [])
    )
    if next_offset is not None:
        page_links += f'<a href="viewforum.php?forum={forum_id}&amp;start={next_offset}">next</a>'
    return (
        "<html><body>"
        f'<table><tr><td class="normal bgc1 b midtext">Pages: {page_links}</td></tr></table>'
        f'<table class="normal">{rows}</table>'
        "</body></html>"
    )


def topic_page_html(body: str, next_href: str | None = None) -> str:
    nav = f'<a href="{next_href}">next</a>' if next_href else ""
    return f"<html><body><div class='post'>{body}</div>{nav}</body></html>"


def post_row_html(
    post_id: str = "12345",
    author: str = "alice",
    body: str = "Hello there",
    posted: str = "Posted: Mar 15, 2024 10:30 am",
    order: str = "0",
) -> str:
    """One post row as ``viewtopic.php`` renders it; empty values drop the element."""
    author_markup = f"<strong>{author}</strong><br>Member" if author else "Guest"
    anchor = f'<a name="{order}"></a>' if order else ""
    id_span = f'<span id="p_{post_id}">#</span>' if post_id else ""
    return (
        "<tr>"
        f'<td class="normal bgc1 c w13 vat">{author_markup}</td>'
        '<td class="normal bgc1 vat w90">'
        '<div class="vt1 liketext">'
        f'<div class="like_left">{anchor}<span class="b">{posted}</span></div>'
        f'<div class="like_right">{id_span}</div>'
        "</div>"
        f'<div class="w100">{body}</div>'
        "</td></tr>"
    )


def quote_html(attribution: str | None, text: str) -> str:
    """A ``table.cfq`` quote; ``attribution`` of None leaves out the header cell."""
    header = ""
    if attribution:
        header = f'<tr><td class="cfq_head"><b>{attribution}</b> Mar 14, 2024, 09:15 PM</td></tr>'
    return f'<table class="cfq">{header}<tr><td class="cfq_body">{text}</td></tr></table>'


def topic_posts_html(*rows: str, next_href: str | None = None) -> str:
    nav = f'<a href="{next_href}">next</a>' if next_href else ""
    return f'<html><body><table class="posts">{"".join(rows)}</table>{nav}</body></html>'


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeFetcher(IPageFetcher):
    """In-memory fetcher keyed by URL.

    A value may be a string, an exception instance (raised), or a list of
    either, consumed in order with the last entry repeating.
    """

    def __init__(self, pages: dict[str, object] | None = None) -> None:
        self.pages: dict[str, object] = dict(pages or {})
        self.calls: list[tuple[str, float]] = []

    async def fetch(self, url: str, delay: float = 0.0) -> str:
        self.calls.append((url, delay))
        if url not in self.pages:
            raise FetchError(message="HTTP 404", path=url)

        entry = self.pages[url]
        if isinstance(entry, list):
            entry = entry.pop(0) if len(entry) > 1 else entry[0]
        if isinstance(entry, Exception):
            raise entry
        return str(entry)

    def get_provider_name(self) -> str:
        return "fake"

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


def make_topic(topic_id: str, section_id: str = "5", title: str | None = None) -> Topic:
    return Topic(
        topic_id=topic_id,
        section_id=section_id,
        title=title or f"Topic {topic_id}",
        url=topic_url(topic_id),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def archive_root(tmp_path: Path) -> Path:
    return tmp_path / "archive"


@pytest.fixture
def storage(archive_root: Path) -> ArchiveStorage:
    """An initialized, empty archive."""
    store = ArchiveStorage(archive_root)
    store.initialize()
    return store


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()
