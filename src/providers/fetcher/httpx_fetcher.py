"""Page fetcher backed by ``httpx.AsyncClient``.

Sleeps the requested politeness delay before every request, then issues a
plain GET.  Anything other than a 200 answer is reported as a
:class:`~src.utils.errors.FetchError` carrying the URL, so callers can log
and skip the page without inspecting httpx internals.
"""

from __future__ import annotations

import asyncio

import httpx

from src.interfaces.page_fetcher import IPageFetcher
from src.utils.errors import FetchError
from src.utils.logging import get_logger

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_USER_AGENT = "forum-archive/0.1 (+resumable topic indexer)"


class HttpxPageFetcher(IPageFetcher):
    """Fetch listing and topic pages over HTTP.

    Parameters
    ----------
    http_client:
        Optional pre-built client.  When omitted the fetcher creates (and
        owns) one configured with *timeout* and *user_agent*.
    timeout:
        Per-request timeout in seconds for an owned client.
    user_agent:
        ``User-Agent`` header for an owned client.
    logger:
        Optional structlog logger; defaults to the module logger.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        user_agent: str = _DEFAULT_USER_AGENT,
        logger=None,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
            },
            follow_redirects=True,
        )
        self._logger = logger or get_logger(__name__)

    async def __aenter__(self) -> HttpxPageFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # IPageFetcher implementation
    # ------------------------------------------------------------------

    async def fetch(self, url: str, delay: float = 0.0) -> str:
        if delay > 0:
            await asyncio.sleep(delay)

        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchError(message=f"timeout: {exc}", path=url) from exc
        except httpx.HTTPError as exc:
            raise FetchError(message=f"request failed: {exc}", path=url) from exc

        if response.status_code != 200:
            raise FetchError(message=f"HTTP {response.status_code}", path=url)

        self._logger.debug("page_fetched", url=url, size=len(response.content))
        return response.text

    def get_provider_name(self) -> str:
        return "httpx"
