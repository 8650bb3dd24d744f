"""Unit tests for MetricsTracker, HistoryLog and the report formatters."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from src.models.metrics import HistoricalRun
from src.services.metrics_service import (
    HistoryLog,
    MetricsTracker,
    format_bytes,
    format_duration,
    format_progress,
    format_rate,
)
from src.utils.errors import MetricsError, StorageInvalidFormatError


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _run(run_id: str, minutes_ago: int, page_rate: float = 10.0, topic_rate: float = 2.0) -> HistoricalRun:
    return HistoricalRun(
        timestamp=datetime(2026, 6, 1, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago),
        run_id=run_id,
        pages_archived=100,
        average_page_rate=page_rate,
        average_topic_rate=topic_rate,
        average_mb_rate=0.5,
    )


# ======================================================================
# MetricsTracker
# ======================================================================


class TestMetricsTracker:
    def test_etc_requires_expected_pages(self) -> None:
        tracker = MetricsTracker(clock=FakeClock())
        tracker.record_page()
        with pytest.raises(MetricsError):
            tracker.etc_seconds()

    def test_etc_requires_throughput(self) -> None:
        tracker = MetricsTracker(expected_pages=10, clock=FakeClock())
        with pytest.raises(MetricsError):
            tracker.etc_seconds()

    def test_etc_is_zero_when_nothing_remains(self) -> None:
        tracker = MetricsTracker(expected_pages=2, clock=FakeClock())
        for _ in range(3):
            tracker.record_page()
        assert tracker.etc_seconds() == 0.0

    def test_etc_extrapolates_average_rate(self) -> None:
        clock = FakeClock()
        tracker = MetricsTracker(expected_pages=30, clock=clock)
        for _ in range(10):
            tracker.record_page()
        clock.advance(60)

        # 10 pages/minute, 20 remaining -> two minutes.
        assert tracker.etc_seconds() == pytest.approx(120.0)

    def test_current_rate_uses_delta_since_last_update(self) -> None:
        clock = FakeClock()
        tracker = MetricsTracker(clock=clock)
        for _ in range(6):
            tracker.record_page()
        clock.advance(60)
        tracker.update()
        assert tracker.snapshot().current_page_rate == pytest.approx(6.0)

        for _ in range(3):
            tracker.record_page()
        clock.advance(30)
        tracker.update()
        snap = tracker.snapshot()
        assert snap.current_page_rate == pytest.approx(6.0)
        assert snap.average_page_rate == pytest.approx(6.0)

    def test_zero_elapsed_time_does_not_divide_by_zero(self) -> None:
        tracker = MetricsTracker(clock=FakeClock())
        tracker.record_page()
        tracker.update()
        assert tracker.snapshot().current_page_rate > 0

    def test_request_counters(self) -> None:
        tracker = MetricsTracker(clock=FakeClock())
        tracker.record_request(True)
        tracker.record_request(False)
        tracker.record_request(True)
        snap = tracker.snapshot()
        assert (snap.http_attempts, snap.http_successes, snap.http_failures) == (3, 2, 1)

    def test_progress_percentages(self) -> None:
        tracker = MetricsTracker(expected_pages=4, expected_topics=10, clock=FakeClock())
        tracker.record_page()
        tracker.record_topics_committed(5)
        snap = tracker.snapshot()
        assert snap.page_progress == 25.0
        assert snap.topic_progress == 50.0

    def test_summary_before_any_progress(self) -> None:
        text = MetricsTracker(clock=FakeClock()).summary()
        assert "ETC: calculating..." in text
        assert "Progress: 0.0%" in text

    def test_to_historical_run(self) -> None:
        clock = FakeClock()
        tracker = MetricsTracker(clock=clock)
        tracker.record_page(size_bytes=2048)
        tracker.record_topics_committed()
        clock.advance(120)

        run = tracker.to_historical_run("archive-5", section_id="5")

        assert run.run_id == "archive-5"
        assert run.pages_archived == 1
        assert run.topics_archived == 1
        assert run.bytes_archived == 2048
        assert run.average_page_rate == pytest.approx(0.5)


# ======================================================================
# HistoryLog
# ======================================================================


class TestHistoryLog:
    def test_missing_log_is_empty(self, tmp_path: Path) -> None:
        assert HistoryLog(tmp_path / "history.jsonl").recent_runs() == []

    def test_recent_runs_newest_first_with_limit(self, tmp_path: Path) -> None:
        log = HistoryLog(tmp_path / "nested" / "history.jsonl")
        log.append_run(_run("old", minutes_ago=30))
        log.append_run(_run("newest", minutes_ago=1))
        log.append_run(_run("middle", minutes_ago=10))

        assert [r.run_id for r in log.recent_runs()] == ["newest", "middle", "old"]
        assert [r.run_id for r in log.recent_runs(limit=2)] == ["newest", "middle"]

    def test_average_rates(self, tmp_path: Path) -> None:
        log = HistoryLog(tmp_path / "history.jsonl")
        log.append_run(_run("a", 2, page_rate=10.0, topic_rate=1.0))
        log.append_run(_run("b", 1, page_rate=20.0, topic_rate=3.0))

        pages, topics, mb = log.average_rates()

        assert pages == pytest.approx(15.0)
        assert topics == pytest.approx(2.0)
        assert mb == pytest.approx(0.5)

    def test_no_history_raises(self, tmp_path: Path) -> None:
        with pytest.raises(MetricsError):
            HistoryLog(tmp_path / "history.jsonl").average_rates()

    def test_estimate_etc(self, tmp_path: Path) -> None:
        log = HistoryLog(tmp_path / "history.jsonl")
        log.append_run(_run("a", 1, page_rate=30.0))
        assert log.estimate_etc(expected_pages=90) == pytest.approx(180.0)

    def test_corrupt_line_is_invalid_format(self, tmp_path: Path) -> None:
        path = tmp_path / "history.jsonl"
        log = HistoryLog(path)
        log.append_run(_run("a", 1))
        with open(path, "a", encoding="utf-8") as handle:
            handle.write("{broken\n")

        with pytest.raises(StorageInvalidFormatError):
            log.recent_runs()


# ======================================================================
# Formatters
# ======================================================================


class TestFormatters:
    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [
            (42, "42 seconds"),
            (150, "2 minutes"),
            (5400, "1.5 hours"),
            (3 * 86400, "3.0 days"),
        ],
    )
    def test_format_duration(self, seconds: float, expected: str) -> None:
        assert format_duration(seconds) == expected

    def test_format_rate(self) -> None:
        assert format_rate(0.25, "pages") == "0.25 pages/minute"
        assert format_rate(12.4, "topics") == "12 topics/minute"

    def test_format_progress(self) -> None:
        assert format_progress(33.333) == "33.3%"

    @pytest.mark.parametrize(
        ("size", "expected"),
        [(512, "512 bytes"), (2048, "2.0 KB"), (3 * 1024**2, "3.0 MB"), (1024**3, "1.0 GB")],
    )
    def test_format_bytes(self, size: int, expected: str) -> None:
        assert format_bytes(size) == expected
