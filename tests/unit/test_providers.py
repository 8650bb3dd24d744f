"""Unit tests for the httpx page fetcher and the listing topic extractor."""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from src.models.forum import PaginationConfig
from src.providers.extractor.listing_extractor import ListingTopicExtractor, query_value
from src.providers.fetcher.httpx_fetcher import HttpxPageFetcher
from src.utils.errors import FetchError
from tests.conftest import listing_html, section_url


# ======================================================================
# HttpxPageFetcher
# ======================================================================


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpxPageFetcher:
    @pytest.mark.asyncio
    async def test_returns_body_on_200(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text="<html>ok</html>")

        async with _client(handler) as client:
            fetcher = HttpxPageFetcher(http_client=client)
            body = await fetcher.fetch("http://forum.test/viewforum.php?forum=5")

        assert body == "<html>ok</html>"
        assert seen == ["http://forum.test/viewforum.php?forum=5"]

    @pytest.mark.asyncio
    async def test_uses_injected_logger(self) -> None:
        logger = MagicMock()
        async with _client(lambda request: httpx.Response(200, text="abc")) as client:
            await HttpxPageFetcher(http_client=client, logger=logger).fetch("http://forum.test/")

        logger.debug.assert_called_once_with("page_fetched", url="http://forum.test/", size=3)

    @pytest.mark.asyncio
    async def test_non_200_is_fetch_error(self) -> None:
        async with _client(lambda request: httpx.Response(404)) as client:
            fetcher = HttpxPageFetcher(http_client=client)
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch("http://forum.test/missing")

        assert "404" in exc_info.value.message
        assert exc_info.value.path == "http://forum.test/missing"

    @pytest.mark.asyncio
    async def test_transport_error_is_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(FetchError):
                await HttpxPageFetcher(http_client=client).fetch("http://forum.test/")

    @pytest.mark.asyncio
    async def test_timeout_is_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        async with _client(handler) as client:
            with pytest.raises(FetchError) as exc_info:
                await HttpxPageFetcher(http_client=client).fetch("http://forum.test/")

        assert exc_info.value.message.startswith("timeout")

    @pytest.mark.asyncio
    async def test_sleeps_before_request(self, monkeypatch: pytest.MonkeyPatch) -> None:
        events: list[object] = []

        async def fake_sleep(seconds: float) -> None:
            events.append(("sleep", seconds))

        def handler(request: httpx.Request) -> httpx.Response:
            events.append("request")
            return httpx.Response(200, text="x")

        monkeypatch.setattr("src.providers.fetcher.httpx_fetcher.asyncio.sleep", fake_sleep)
        async with _client(handler) as client:
            await HttpxPageFetcher(http_client=client).fetch("http://forum.test/", delay=2.0)

        assert events == [("sleep", 2.0), "request"]

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self) -> None:
        async with _client(lambda request: httpx.Response(200, text="x")) as client:
            async with HttpxPageFetcher(http_client=client):
                pass
            assert not client.is_closed

    def test_provider_name(self) -> None:
        assert HttpxPageFetcher(http_client=_client(lambda r: httpx.Response(200))).get_provider_name() == "httpx"


# ======================================================================
# ListingTopicExtractor
# ======================================================================


class TestListingTopicExtractor:
    def test_extracts_topics_in_document_order(self) -> None:
        html = listing_html("5", [("200", "Second topic"), ("100", "First topic")])

        topics = ListingTopicExtractor().extract_topics(html, section_url("5"))

        assert [t.topic_id for t in topics] == ["200", "100"]
        assert topics[0].title == "Second topic"
        assert topics[0].section_id == "5"
        assert topics[0].url == "http://forum.test/viewtopic.php?topic=200&forum=5"

    def test_duplicates_within_a_page_are_dropped(self) -> None:
        html = listing_html("5", [("1", "Pinned"), ("1", "Pinned again"), ("2", "Other")])
        topics = ListingTopicExtractor().extract_topics(html, section_url("5"))
        assert [t.title for t in topics] == ["Pinned", "Other"]

    def test_links_without_id_or_title_are_skipped(self) -> None:
        html = (
            '<table class="normal"><tr><td class="normal bgc2">'
            '<a class="b" href="viewtopic.php?forum=5">No id</a></td></tr>'
            '<tr><td class="normal bgc2"><a class="b" href="viewtopic.php?topic=9"> </a></td></tr>'
            '<tr><td class="normal bgc2"><a class="b" href="viewtopic.php?topic=10">Kept</a></td></tr>'
            "</table>"
        )
        topics = ListingTopicExtractor().extract_topics(html, section_url("5"))
        assert [t.topic_id for t in topics] == ["10"]

    def test_links_outside_the_topic_table_are_ignored(self) -> None:
        html = '<div><a class="b" href="viewtopic.php?topic=77">Announcement</a></div>'
        assert ListingTopicExtractor().extract_topics(html, section_url("5")) == []

    def test_custom_parameter_names(self) -> None:
        html = (
            '<table class="normal"><tr><td class="normal bgc2">'
            '<a class="b" href="viewtopic.php?t=42">Hello</a></td></tr></table>'
        )
        extractor = ListingTopicExtractor(PaginationConfig(section_param="f", topic_param="t"))

        topics = extractor.extract_topics(html, "http://x.test/viewforum.php?f=3")

        assert topics[0].topic_id == "42"
        assert topics[0].section_id == "3"

    def test_query_value(self) -> None:
        assert query_value("http://x/?a=1&b=%202%20", "b") == "2"
        assert query_value("http://x/?a=1", "b") == ""
