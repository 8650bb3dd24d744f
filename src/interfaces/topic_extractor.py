"""Abstract base class for listing-page topic extractors.

An extractor turns one listing page into the topics it shows.  It is the
only component that knows a particular forum's markup; the discovery
service treats it as a black box.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.forum import Topic


class ITopicExtractor(ABC):
    """Contract for parsing topics out of a section listing page."""

    @abstractmethod
    def extract_topics(self, html: str, page_url: str) -> list[Topic]:
        """Return the topics listed on one page, in document order.

        Items with an empty title or no identifier are excluded here, not by
        the caller.  Identifiers must be stable across pages and runs.

        Raises
        ------
        src.utils.errors.ExtractionError
            If the page cannot be parsed at all.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this extractor."""
