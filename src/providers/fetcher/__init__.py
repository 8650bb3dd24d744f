"""Page fetchers.

One implementation of IPageFetcher:
    HttpxPageFetcher -- plain GET over an httpx.AsyncClient, sleeping the
    politeness delay before each request and mapping every transport error
    or non-200 answer to FetchError.
"""

from src.providers.fetcher.httpx_fetcher import HttpxPageFetcher

__all__ = ["HttpxPageFetcher"]
