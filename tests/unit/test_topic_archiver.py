"""Unit tests for TopicArchiver."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from src.interfaces.post_parser import IPostParser
from src.models.archive import SectionMetadata
from src.providers.post_parser.forum_post_parser import ForumPostParser
from src.services.archive_storage import ArchiveStorage
from src.services.metrics_service import HistoryLog, MetricsTracker
from src.services.topic_archiver import TopicArchiver
from src.utils.errors import ExtractionError, FetchError, StorageNotFoundError
from tests.conftest import (
    FakeFetcher,
    make_topic,
    post_row_html,
    topic_page_html,
    topic_posts_html,
    topic_url,
)


class RejectingPostParser(IPostParser):
    """Post parser that cannot make sense of any page."""

    def parse_posts(self, html, page_number, page_url=""):
        raise ExtractionError(message="no post table", path=page_url)

    def get_provider_name(self) -> str:
        return "rejecting"


@pytest.fixture
def indexed(storage: ArchiveStorage) -> ArchiveStorage:
    """Section 5 indexed with topics 1 and 2."""
    storage.write_topic_index("5", [make_topic("2"), make_topic("1")])
    storage.write_section_metadata("5", SectionMetadata(total_topics=2))
    return storage


def _two_topic_pages() -> dict[str, object]:
    return {
        topic_url("1"): topic_page_html("one-a", "viewtopic.php?topic=1&start=15"),
        topic_url("1") + "&start=15": topic_page_html("one-b"),
        topic_url("2"): topic_page_html("two-a"),
    }


class TestTopicArchiver:
    @pytest.mark.asyncio
    async def test_archives_all_pages(self, indexed: ArchiveStorage) -> None:
        fetcher = FakeFetcher(_two_topic_pages())

        counts = await TopicArchiver(indexed, fetcher, request_delay=0.25).archive_section("5")

        assert counts == {"archived": 2, "skipped": 0, "failed": 0, "pages": 3}
        page_two = indexed.root / "raw-html" / "subforum-5" / "topic-1" / "page-2.html"
        assert "one-b" in page_two.read_text()
        record = indexed.read_topic_record("5", "1")
        assert [p.page_number for p in record.pages] == [1, 2]
        assert record.title == "Topic 1"
        assert {delay for _, delay in fetcher.calls} == {0.25}

    @pytest.mark.asyncio
    async def test_progress_and_metadata_after_run(self, indexed: ArchiveStorage) -> None:
        await TopicArchiver(indexed, FakeFetcher(_two_topic_pages())).archive_section("5")

        progress = indexed.read_progress()
        assert progress.overall_archival_progress == 100.0
        assert progress.last_processed_sub_forum == "5"
        assert indexed.read_section_metadata("5").pages_per_topic == {"1": 2, "2": 1}
        assert indexed.read_section_metadata("5").total_topics == 2

    @pytest.mark.asyncio
    async def test_already_archived_topics_are_skipped(self, indexed: ArchiveStorage) -> None:
        await TopicArchiver(indexed, FakeFetcher(_two_topic_pages())).archive_section("5")
        fetcher = FakeFetcher(_two_topic_pages())

        counts = await TopicArchiver(indexed, fetcher).archive_section("5")

        assert counts == {"archived": 0, "skipped": 2, "failed": 0, "pages": 0}
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_failed_topic_is_retried_next_run(self, indexed: ArchiveStorage) -> None:
        pages = _two_topic_pages()
        pages[topic_url("1") + "&start=15"] = FetchError(message="HTTP 502", path="p2")

        counts = await TopicArchiver(indexed, FakeFetcher(pages)).archive_section("5")

        assert counts["archived"] == 1
        assert counts["failed"] == 1
        assert not indexed.has_topic_record("5", "1")
        # The page fetched before the failure is kept on disk.
        assert (indexed.root / "raw-html" / "subforum-5" / "topic-1" / "page-1.html").is_file()
        assert indexed.read_progress().overall_archival_progress < 100.0

        counts = await TopicArchiver(indexed, FakeFetcher(_two_topic_pages())).archive_section("5")
        assert counts == {"archived": 1, "skipped": 1, "failed": 0, "pages": 2}

    @pytest.mark.asyncio
    async def test_unindexed_section(self, storage: ArchiveStorage) -> None:
        with pytest.raises(StorageNotFoundError):
            await TopicArchiver(storage, FakeFetcher()).archive_section("404")

    @pytest.mark.asyncio
    async def test_metrics_and_history(self, indexed: ArchiveStorage, tmp_path: Path) -> None:
        history = HistoryLog(tmp_path / "history.jsonl")
        metrics = MetricsTracker()

        await TopicArchiver(indexed, FakeFetcher(_two_topic_pages()), history=history).archive_section(
            "5", metrics=metrics
        )

        snap = metrics.snapshot()
        assert snap.pages_fetched == 3
        assert snap.topics_committed == 2
        assert snap.bytes_archived > 0
        runs = history.recent_runs()
        assert runs[0].run_id.startswith("archive-5-")


class TestStoredPosts:
    @pytest.mark.asyncio
    async def test_record_carries_posts_from_every_page(self, indexed: ArchiveStorage) -> None:
        pages = {
            topic_url("1"): topic_posts_html(
                post_row_html(post_id="101", author="alice", order="0"),
                post_row_html(post_id="102", author="bob", order="1"),
                next_href="viewtopic.php?topic=1&start=15",
            ),
            topic_url("1") + "&start=15": topic_posts_html(post_row_html(post_id="103", author="carol")),
            topic_url("2"): topic_posts_html(post_row_html(post_id="201", author="dave")),
        }

        counts = await TopicArchiver(
            indexed, FakeFetcher(pages), post_parser=ForumPostParser()
        ).archive_section("5")

        assert counts["archived"] == 2
        record = indexed.read_topic_record("5", "1")
        assert [(p.post_id, p.page_number) for p in record.posts] == [("101", 1), ("102", 1), ("103", 2)]
        assert record.posts[0].content_blocks[0].content == "Hello there"
        assert [p.author_username for p in indexed.read_topic_record("5", "2").posts] == ["dave"]

    @pytest.mark.asyncio
    async def test_without_parser_records_have_no_posts(self, indexed: ArchiveStorage) -> None:
        await TopicArchiver(indexed, FakeFetcher(_two_topic_pages())).archive_section("5")

        assert indexed.read_topic_record("5", "1").posts == []

    @pytest.mark.asyncio
    async def test_rejected_pages_still_archive(self, indexed: ArchiveStorage) -> None:
        logger = MagicMock()

        counts = await TopicArchiver(
            indexed, FakeFetcher(_two_topic_pages()), post_parser=RejectingPostParser(), logger=logger
        ).archive_section("5")

        assert counts == {"archived": 2, "skipped": 0, "failed": 0, "pages": 3}
        record = indexed.read_topic_record("5", "1")
        assert record.posts == []
        assert len(record.pages) == 2
        failures = [c for c in logger.warning.call_args_list if c.args[0] == "post_parse_failed"]
        assert len(failures) == 3
        assert failures[0].kwargs["topic_id"] == "1"
