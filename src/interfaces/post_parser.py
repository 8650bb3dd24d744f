"""Abstract base class for topic-page post parsers.

A post parser turns one archived topic page into the posts it shows.  The
topic archiver stores the result in each topic's structured record; the raw
page is written first, so a parser that cannot make sense of a page never
costs the archive any data.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.forum import Post


class IPostParser(ABC):
    """Contract for parsing posts out of a topic page."""

    @abstractmethod
    def parse_posts(self, html: str, page_number: int, page_url: str = "") -> list[Post]:
        """Return the posts on one topic page, in document order.

        Posts without an identifier or author are left out here, not by the
        caller.  A page with no post rows yields an empty list.

        Raises
        ------
        src.utils.errors.ExtractionError
            If the page cannot be parsed at all.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this parser."""
