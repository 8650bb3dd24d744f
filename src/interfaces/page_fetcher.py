"""Abstract base class for page-fetching providers.

Defines the contract for retrieving the raw HTML of a single URL.  The
discovery and archiving services depend only on this interface, so tests
substitute an in-memory fake and production uses the httpx-backed
implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IPageFetcher(ABC):
    """Contract for services that download one page of HTML at a time."""

    @abstractmethod
    async def fetch(self, url: str, delay: float = 0.0) -> str:
        """Return the HTML body of *url*.

        Parameters
        ----------
        url:
            Absolute URL to fetch.
        delay:
            Politeness delay in seconds, slept **before** the request is
            issued.  ``0`` disables the pause.

        Returns
        -------
        str
            The decoded response body.

        Raises
        ------
        src.utils.errors.FetchError
            If the request fails or the server does not answer 200.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this fetcher."""
