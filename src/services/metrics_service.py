"""Throughput metrics, ETC estimation and the historical run log.

:class:`MetricsTracker` holds the counters of the current run behind a
single lock so a periodic reporter can read them while the fetch loop
updates them.  Rates are recomputed on :meth:`MetricsTracker.update` and are
expressed per minute, the unit stored in :class:`HistoricalRun` records.

:class:`HistoryLog` appends one JSON line per completed run and derives a
warm-start ETC for a new run from the most recent records.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from src.models.metrics import HistoricalRun
from src.utils.errors import MetricsError, StorageInvalidFormatError, classify_os_error
from src.utils.logging import get_logger

# Smallest time slice (seconds) a rate is divided by.
_MIN_SLICE_SECONDS = 0.1
_BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of the tracker's counters and derived rates."""

    elapsed_seconds: float
    pages_fetched: int
    http_attempts: int
    http_successes: int
    http_failures: int
    topics_found: int
    topics_committed: int
    bytes_archived: int
    current_page_rate: float
    current_topic_rate: float
    average_page_rate: float
    average_topic_rate: float
    average_mb_rate: float
    expected_pages: int
    expected_topics: int

    @property
    def page_progress(self) -> float:
        if self.expected_pages <= 0:
            return 0.0
        return self.pages_fetched / self.expected_pages * 100

    @property
    def topic_progress(self) -> float:
        if self.expected_topics <= 0:
            return 0.0
        return self.topics_committed / self.expected_topics * 100


class MetricsTracker:
    """Thread-safe counters for one run.

    Parameters
    ----------
    expected_pages, expected_topics:
        Totals the ETC is computed against.  ``0`` means "not configured";
        :meth:`etc_seconds` then raises instead of guessing.
    clock:
        Monotonic time source in seconds, injectable for tests.
    """

    def __init__(
        self,
        expected_pages: int = 0,
        expected_topics: int = 0,
        clock: Callable[[], float] = time.monotonic,
        logger=None,
    ) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._logger = logger or get_logger(__name__)

        self._start = clock()
        self._last_update = self._start
        self._expected_pages = expected_pages
        self._expected_topics = expected_topics

        self._pages_fetched = 0
        self._http_attempts = 0
        self._http_successes = 0
        self._http_failures = 0
        self._topics_found = 0
        self._topics_committed = 0
        self._bytes_archived = 0

        # Values at the previous update(), for the incremental rate.
        self._last_pages = 0
        self._last_topics = 0
        self._current_page_rate = 0.0
        self._current_topic_rate = 0.0

    # ------------------------------------------------------------------
    # Counter updates
    # ------------------------------------------------------------------

    def set_expected(self, pages: int | None = None, topics: int | None = None) -> None:
        with self._lock:
            if pages is not None:
                self._expected_pages = pages
            if topics is not None:
                self._expected_topics = topics

    def record_request(self, success: bool) -> None:
        """Count one HTTP attempt and its outcome."""
        with self._lock:
            self._http_attempts += 1
            if success:
                self._http_successes += 1
            else:
                self._http_failures += 1

    def record_page(self, size_bytes: int = 0) -> None:
        """Count one page fully processed."""
        with self._lock:
            self._pages_fetched += 1
            self._bytes_archived += size_bytes

    def record_topics_found(self, count: int) -> None:
        with self._lock:
            self._topics_found += count

    def record_topics_committed(self, count: int = 1) -> None:
        with self._lock:
            self._topics_committed += count

    def update(self) -> None:
        """Recompute the current (incremental) rates.

        Current rate is the count added since the previous update divided by
        the time since then; both divisors are clamped to a minimum slice.
        """
        with self._lock:
            now = self._clock()
            minutes = max(now - self._last_update, _MIN_SLICE_SECONDS) / 60
            self._current_page_rate = (self._pages_fetched - self._last_pages) / minutes
            self._current_topic_rate = (self._topics_committed - self._last_topics) / minutes
            self._last_pages = self._pages_fetched
            self._last_topics = self._topics_committed
            self._last_update = now

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            elapsed = self._clock() - self._start
            minutes = max(elapsed, _MIN_SLICE_SECONDS) / 60
            return MetricsSnapshot(
                elapsed_seconds=elapsed,
                pages_fetched=self._pages_fetched,
                http_attempts=self._http_attempts,
                http_successes=self._http_successes,
                http_failures=self._http_failures,
                topics_found=self._topics_found,
                topics_committed=self._topics_committed,
                bytes_archived=self._bytes_archived,
                current_page_rate=self._current_page_rate,
                current_topic_rate=self._current_topic_rate,
                average_page_rate=self._pages_fetched / minutes,
                average_topic_rate=self._topics_committed / minutes,
                average_mb_rate=self._bytes_archived / _BYTES_PER_MB / minutes,
                expected_pages=self._expected_pages,
                expected_topics=self._expected_topics,
            )

    def etc_seconds(self) -> float:
        """Estimated seconds until ``expected_pages`` have been fetched.

        Raises
        ------
        MetricsError
            If expected totals were never configured, or nothing has been
            fetched yet so there is no rate to extrapolate from.
        """
        snap = self.snapshot()
        if snap.expected_pages <= 0:
            raise MetricsError(message="expected page total not set")

        remaining = snap.expected_pages - snap.pages_fetched
        if remaining <= 0:
            return 0.0
        if snap.average_page_rate <= 0:
            raise MetricsError(message="no throughput recorded yet")
        return remaining / snap.average_page_rate * 60

    def to_historical_run(self, run_id: str, section_id: str = "") -> HistoricalRun:
        snap = self.snapshot()
        return HistoricalRun(
            timestamp=datetime.now(timezone.utc),
            run_id=run_id,
            section_id=section_id,
            duration_seconds=round(snap.elapsed_seconds, 3),
            pages_archived=snap.pages_fetched,
            topics_archived=snap.topics_committed,
            bytes_archived=snap.bytes_archived,
            average_page_rate=snap.average_page_rate,
            average_topic_rate=snap.average_topic_rate,
            average_mb_rate=snap.average_mb_rate,
        )

    def summary(self) -> str:
        """Multi-line human-readable report of the current state."""
        snap = self.snapshot()
        try:
            etc = format_duration(self.etc_seconds())
        except MetricsError:
            etc = "calculating..."

        return "\n".join(
            [
                f"Progress: {format_progress(snap.page_progress)} (pages) / "
                f"{format_progress(snap.topic_progress)} (topics)",
                f"Current Rate: {format_rate(snap.current_page_rate, 'pages')} / "
                f"{format_rate(snap.current_topic_rate, 'topics')}",
                f"Average Rate: {format_rate(snap.average_page_rate, 'pages')} / "
                f"{format_rate(snap.average_topic_rate, 'topics')}",
                f"Requests: {snap.http_successes} ok / {snap.http_failures} failed",
                f"Topics Found: {snap.topics_found}",
                f"Archived: {format_bytes(snap.bytes_archived)}",
                f"Elapsed Time: {format_duration(snap.elapsed_seconds)}",
                f"ETC: {etc}",
            ]
        )

    def log_etc(self) -> None:
        """Emit one structured progress event."""
        self.update()
        snap = self.snapshot()
        try:
            etc: float | None = round(self.etc_seconds(), 1)
        except MetricsError:
            etc = None
        self._logger.info(
            "metrics_progress",
            pages=snap.pages_fetched,
            expected_pages=snap.expected_pages,
            topics=snap.topics_committed,
            page_rate=round(snap.current_page_rate, 2),
            avg_page_rate=round(snap.average_page_rate, 2),
            etc_seconds=etc,
        )


class HistoryLog:
    """Append-only JSONL log of :class:`HistoricalRun` records."""

    def __init__(self, path: str | Path, logger=None) -> None:
        self._path = Path(path)
        self._logger = logger or get_logger(__name__)

    @property
    def path(self) -> Path:
        return self._path

    def append_run(self, run: HistoricalRun) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(run.model_dump_json() + "\n")
        except OSError as exc:
            raise classify_os_error(exc, str(self._path), "append run") from exc
        self._logger.debug("history_run_appended", run_id=run.run_id, path=str(self._path))

    def recent_runs(self, limit: int = 0) -> list[HistoricalRun]:
        """Return runs newest-first, at most *limit* of them (0 = all).

        A missing log is an empty history.  A corrupt line raises
        :class:`StorageInvalidFormatError`.
        """
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise classify_os_error(exc, str(self._path), "read history") from exc

        runs: list[HistoricalRun] = []
        for line_no, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                runs.append(HistoricalRun.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as exc:
                raise StorageInvalidFormatError(
                    message=f"bad history entry on line {line_no}: {exc}",
                    path=str(self._path),
                ) from exc

        runs.sort(key=lambda r: r.timestamp, reverse=True)
        if limit > 0:
            runs = runs[:limit]
        return runs

    def average_rates(self, limit: int = 10) -> tuple[float, float, float]:
        """Mean (page, topic, MB) per-minute rates over the last *limit* runs.

        Raises
        ------
        MetricsError
            If the log holds no runs.
        """
        runs = self.recent_runs(limit)
        if not runs:
            raise MetricsError(message="no historical data available", path=str(self._path))
        count = len(runs)
        return (
            sum(r.average_page_rate for r in runs) / count,
            sum(r.average_topic_rate for r in runs) / count,
            sum(r.average_mb_rate for r in runs) / count,
        )

    def estimate_etc(self, expected_pages: int, limit: int = 10) -> float:
        """Warm-start estimate in seconds for a new run of *expected_pages*."""
        page_rate, _, _ = self.average_rates(limit)
        if page_rate <= 0:
            raise MetricsError(message="historical page rate is zero", path=str(self._path))
        return expected_pages / page_rate * 60


# ----------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.0f} seconds"
    if seconds < 3600:
        return f"{int(seconds // 60)} minutes"
    hours = seconds / 3600
    if hours < 24:
        return f"{hours:.1f} hours"
    return f"{hours / 24:.1f} days"


def format_rate(rate: float, unit: str) -> str:
    if rate < 1:
        return f"{rate:.2f} {unit}/minute"
    return f"{rate:.0f} {unit}/minute"


def format_progress(percent: float) -> str:
    return f"{percent:.1f}%"


def format_bytes(size: int) -> str:
    for label, factor in (("GB", 1024**3), ("MB", 1024**2), ("KB", 1024)):
        if size >= factor:
            return f"{size / factor:.1f} {label}"
    return f"{size} bytes"
