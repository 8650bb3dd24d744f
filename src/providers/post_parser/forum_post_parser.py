"""Post parser for classic ``viewtopic.php`` topic pages.

Each post is a table row holding an author cell and a post cell.  The post
cell starts with a header (date, order anchor, post id) followed by the
body.  The body is split into ordered blocks: runs of the author's own
markup become ``new_text`` blocks and every ``table.cfq`` becomes a
``quote`` block with its attribution pulled apart.
"""

from __future__ import annotations

import html as html_lib
import re
from datetime import datetime

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from src.interfaces.post_parser import IPostParser
from src.models.forum import ContentBlock, Post
from src.utils.errors import ExtractionError
from src.utils.logging import get_logger

_AUTHOR_CELL = "td.normal.bgc1.c.w13.vat"
_POST_CELL = "td.normal.bgc1.vat.w90"
_DEFAULT_ROW_SELECTOR = f"tr:has(> {_AUTHOR_CELL}):has(> {_POST_CELL})"

_TIMESTAMP = "div.vt1.liketext > div.like_left > span.b"
_POST_ORDER = "div.vt1.liketext > div.like_left a[name]"
_POST_ID = "div.vt1.liketext > div.like_right > span[id^='p_']"

_TIMESTAMP_FORMATS = ("%b %d, %Y %I:%M %p",)
_OUTPUT_FORMAT = "%Y-%m-%d %H:%M:%S"

_QUOTE_DATE = re.compile(
    r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\s+\d{1,2},\s+\d{4},\s+\d{1,2}:\d{2}\s+(AM|PM)",
    re.IGNORECASE,
)
_BASIC_BBCODE = re.compile(r"\[(b|i|u)\](.*?)\[/\1\]", re.IGNORECASE | re.DOTALL)


def normalize_timestamp(raw: str) -> str:
    """Return *raw* ("Mar 15, 2024 10:30 am") as ``YYYY-MM-DD HH:MM:SS``, or ``""``."""
    text = " ".join(raw.replace("\u00a0", " ").split())
    if text.startswith("Posted:"):
        text = text[len("Posted:") :].strip()
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime(_OUTPUT_FORMAT)
        except ValueError:
            continue
    return ""


def clean_new_text(markup: str) -> str:
    """Decode entities, drop basic ``[b]``/``[i]``/``[u]`` BBCode and trim."""
    text = html_lib.unescape(markup)
    text = _BASIC_BBCODE.sub(lambda match: match.group(2), text)
    return text.strip()


def _is_quote(node) -> bool:
    return isinstance(node, Tag) and node.name == "table" and "cfq" in (node.get("class") or [])


def _is_header(node) -> bool:
    return isinstance(node, Tag) and node.name == "div" and "vt1" in (node.get("class") or [])


class ForumPostParser(IPostParser):
    """Parse the posts of one topic page.

    Parameters
    ----------
    row_selector:
        CSS selector matching one table row per post.
    """

    def __init__(self, row_selector: str = _DEFAULT_ROW_SELECTOR, logger=None) -> None:
        self._row_selector = row_selector
        self._logger = logger or get_logger(__name__)

    def parse_posts(self, html: str, page_number: int, page_url: str = "") -> list[Post]:
        try:
            soup = BeautifulSoup(html, "html.parser")
            rows = soup.select(self._row_selector)
        except Exception as exc:
            raise ExtractionError(message=f"unparsable topic page: {exc}", path=page_url) from exc

        posts: list[Post] = []
        for position, row in enumerate(rows):
            post = self._parse_row(row, page_number, position, page_url)
            if post is not None:
                posts.append(post)

        if not rows:
            self._logger.info("topic_page_without_posts", url=page_url, page=page_number)
        return posts

    def get_provider_name(self) -> str:
        return "viewtopic_table"

    # ------------------------------------------------------------------
    # One post row
    # ------------------------------------------------------------------

    def _parse_row(self, row: Tag, page_number: int, position: int, page_url: str) -> Post | None:
        author_cell = row.select_one(f":scope > {_AUTHOR_CELL}")
        post_cell = row.select_one(f":scope > {_POST_CELL}")

        author = author_cell.find("strong", recursive=False) if author_cell else None
        username = author.get_text(strip=True) if author else ""
        if not username:
            self._logger.warning("post_skipped", reason="no_author", url=page_url, position=position)
            return None

        id_span = post_cell.select_one(_POST_ID) if post_cell else None
        post_id = id_span["id"][len("p_") :] if id_span else ""
        if not post_id:
            self._logger.warning("post_skipped", reason="no_post_id", url=page_url, position=position)
            return None

        date_span = post_cell.select_one(_TIMESTAMP)
        raw_timestamp = " ".join(date_span.get_text(" ", strip=True).split()) if date_span else ""
        timestamp = normalize_timestamp(raw_timestamp)
        if not timestamp:
            self._logger.warning(
                "post_timestamp_unparsable", post_id=post_id, raw=raw_timestamp, url=page_url
            )

        return Post(
            post_id=post_id,
            page_number=page_number,
            post_order_on_page=self._post_order(post_cell, position),
            author_username=username,
            timestamp=timestamp,
            raw_timestamp=raw_timestamp,
            content_blocks=self._content_blocks(post_cell),
        )

    @staticmethod
    def _post_order(post_cell: Tag, position: int) -> int:
        # Falls back to the row position when the anchor is absent or odd.
        anchor = post_cell.select_one(_POST_ORDER)
        name = anchor.get("name", "") if anchor else ""
        return int(name) if name.isdigit() else position

    # ------------------------------------------------------------------
    # Post body
    # ------------------------------------------------------------------

    def _content_blocks(self, post_cell: Tag) -> list[ContentBlock]:
        container = post_cell.select_one("div.w100") or post_cell

        blocks: list[ContentBlock] = []
        pending: list[str] = []

        def flush() -> None:
            text = clean_new_text("".join(pending))
            pending.clear()
            if text:
                blocks.append(ContentBlock(type="new_text", content=text))

        for node in container.contents:
            if isinstance(node, Comment) or _is_header(node):
                continue
            if _is_quote(node):
                flush()
                blocks.append(self._quote_block(node))
            elif isinstance(node, NavigableString):
                pending.append(html_lib.escape(str(node), quote=False))
            else:
                pending.append(str(node))
        flush()
        return blocks

    @staticmethod
    def _quote_block(table: Tag) -> ContentBlock:
        cells = [td for td in table.find_all("td") if td.find_parent("table") is table]
        attribution = next((td for td in cells if td.find("b")), None)
        if attribution is None:
            return ContentBlock(type="quote", quoted_text=table.get_text(" ", strip=True))

        user = attribution.find("b").get_text(strip=True)
        if user.endswith(" wrote:"):
            user = user[: -len(" wrote:")]
        elif user.startswith("Quote: "):
            user = user[len("Quote: ") :]

        date = _QUOTE_DATE.search(attribution.get_text(" ", strip=True))
        body = next((td for td in cells if td is not attribution), None)

        return ContentBlock(
            type="quote",
            quoted_user=user.strip(),
            quoted_timestamp=date.group(0) if date else "",
            quoted_text=body.decode_contents().strip() if body else "",
        )
