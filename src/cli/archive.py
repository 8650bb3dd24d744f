"""CLI for indexing, archiving and maintaining a forum archive.

Usage::

    # Create (or verify) the archive layout
    python -m src.cli init
    python -m src.cli validate

    # Index one section (two-pass discovery, writes topic index + metadata)
    python -m src.cli index --url "https://forum.example/viewforum.php?forum=12"

    # Index every pending section from the section list CSV (resumable)
    python -m src.cli run

    # Download and store every page of an indexed section's topics
    python -m src.cli archive --section 12

    # Maintenance
    python -m src.cli backup
    python -m src.cli list-backups
    python -m src.cli quota
    python -m src.cli status

Settings come from ``config/config.yaml``, ``.env`` and the environment;
the global flags below override them for one invocation.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from src.config.loader import load_settings
from src.config.settings import Settings
from src.models.archive import ProgressData
from src.utils.errors import ForumArchiveError, MetricsError, StorageNotFoundError
from src.utils.logging import configure_logging


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def _build_fetcher(settings: Settings):
    from src.providers.fetcher.httpx_fetcher import HttpxPageFetcher

    return HttpxPageFetcher(timeout=settings.request_timeout, user_agent=settings.user_agent)


def _build_indexer(settings: Settings, fetcher):
    from src.providers.extractor.listing_extractor import ListingTopicExtractor
    from src.services.archive_storage import ArchiveStorage
    from src.services.backup_service import BackupService
    from src.services.discovery_service import SectionDiscoveryService
    from src.services.metrics_service import HistoryLog
    from src.services.section_indexer import SectionIndexer

    pagination = settings.pagination_config()
    discovery = SectionDiscoveryService(
        fetcher=fetcher,
        extractor=ListingTopicExtractor(pagination=pagination),
        pagination=pagination,
        request_delay=settings.request_delay,
        max_pages=settings.max_pages,
    )
    return SectionIndexer(
        discovery=discovery,
        storage=ArchiveStorage(settings.archive_root),
        history=HistoryLog(settings.history_path),
        backup=BackupService(),
        backup_dir=settings.backup_dir,
        backup_every_sections=settings.backup_every_sections,
        quota_bytes=settings.storage_quota_bytes,
        warning_percent=settings.storage_warning_percent,
        page_fetcher=fetcher if settings.count_topic_pages else None,
        request_delay=settings.request_delay,
    )


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def _handle_init(settings: Settings) -> int:
    from src.services.archive_storage import ArchiveStorage

    ArchiveStorage(settings.archive_root).initialize()
    print(f"Archive initialized at {settings.archive_root}")
    return 0


def _handle_validate(settings: Settings) -> int:
    from src.services.archive_storage import ArchiveStorage

    storage = ArchiveStorage(settings.archive_root)
    storage.validate()
    progress = storage.read_progress()
    print(f"Archive OK: {settings.archive_root}")
    print(f"  Progress: {progress.overall_archival_progress:.1f}%")
    return 0


async def _handle_index(args: argparse.Namespace, settings: Settings) -> int:
    """Run two-pass discovery for one section and persist it."""
    async with _build_fetcher(settings) as fetcher:
        indexer = _build_indexer(settings, fetcher)
        result = await indexer.index_section(args.url, section_id=args.section_id)

    print(f"Pages planned:   {len(result.page_urls)}")
    print(f"Pages failed:    {len(result.failed_pages)}")
    print(f"Topics found:    {len(result.topics)}")
    print(f"New on rescan:   {result.rescan_new_count}")
    return 0


async def _handle_run(args: argparse.Namespace, settings: Settings) -> int:
    """Index every pending section of the section list."""
    from src.services.section_queue import SectionQueue

    queue = SectionQueue(
        args.csv or settings.sections_csv,
        args.completed or settings.completed_sections_path,
    )
    async with _build_fetcher(settings) as fetcher:
        indexer = _build_indexer(settings, fetcher)
        summary = await indexer.run_all(queue)

    print(
        f"Sections: {summary['total']} total, {summary['processed']} processed, "
        f"{summary['skipped']} already complete, {len(summary['failed'])} failed"
    )
    if summary["failed"]:
        print(f"Failed (will retry next run): {', '.join(summary['failed'])}")
        return 1
    return 0


async def _handle_archive(args: argparse.Namespace, settings: Settings) -> int:
    """Archive the pages of every indexed topic of one section."""
    from src.providers.post_parser.forum_post_parser import ForumPostParser
    from src.services.archive_storage import ArchiveStorage
    from src.services.metrics_service import HistoryLog
    from src.services.topic_archiver import TopicArchiver

    storage = ArchiveStorage(settings.archive_root)
    storage.initialize()

    async with _build_fetcher(settings) as fetcher:
        archiver = TopicArchiver(
            storage=storage,
            fetcher=fetcher,
            request_delay=settings.request_delay,
            history=HistoryLog(settings.history_path),
            post_parser=ForumPostParser(),
        )
        summary = await archiver.archive_section(args.section)

    print(
        f"Section {args.section}: {summary['archived']} archived, "
        f"{summary['skipped']} skipped, {summary['failed']} failed, {summary['pages']} pages"
    )
    return 1 if summary["failed"] else 0


def _handle_backup(settings: Settings) -> int:
    from src.services.backup_service import BackupService

    path = BackupService().backup(settings.archive_root, settings.backup_dir)
    print(f"Backup created: {path}")
    return 0


def _handle_list_backups(settings: Settings) -> int:
    from src.services.backup_service import BackupService

    backups = BackupService().list_backups(settings.backup_dir)
    if not backups:
        print(f"No backups in {settings.backup_dir}")
        return 0

    print(f"{'Timestamp':<20} Path")
    print("-" * 65)
    for backup in backups:
        print(f"{backup.timestamp:%Y-%m-%d %H:%M:%S}  {backup.path}")
    return 0


def _handle_quota(settings: Settings) -> int:
    from src.services.backup_service import BackupService
    from src.services.metrics_service import format_bytes

    status = BackupService().check_quota(
        settings.archive_root,
        settings.storage_warning_percent,
        settings.storage_quota_bytes,
    )
    if status.error:
        print(f"Error: {status.error}", file=sys.stderr)
        return 1

    print(f"Usage: {format_bytes(status.current_usage_bytes)}")
    if status.quota_enabled:
        print(f"Quota: {format_bytes(status.quota_bytes)} ({status.usage_percentage:.1f}% used)")
        if status.is_warning:
            print(f"WARNING: usage at or above {settings.storage_warning_percent:.0f}%")
    else:
        print("Quota: disabled")
    return 0


def _handle_status(settings: Settings) -> int:
    """Show progress, indexed sections and historical throughput."""
    from src.services.archive_storage import ArchiveStorage
    from src.services.backup_service import BackupService
    from src.services.metrics_service import HistoryLog, format_duration, format_rate

    storage = ArchiveStorage(settings.archive_root)
    try:
        progress = storage.read_progress()
    except StorageNotFoundError:
        progress = ProgressData()
        print(f"Archive at {settings.archive_root} is not initialized.")

    print("Archive Progress")
    print("=" * 65)
    print(f"Overall:        {progress.overall_archival_progress:.1f}%")
    print(f"Last section:   {progress.last_processed_sub_forum or '-'}")
    print(f"Last topic:     {progress.last_processed_topic or '-'}")
    print(f"Last page:      {progress.last_processed_page or '-'}")
    print()

    sections = storage.list_sections()
    print(f"{'Section':<12} {'Topics':>8} {'Pages':>8} {'Updated':<32}")
    print("-" * 65)
    for section_id in sections:
        try:
            meta = storage.read_section_metadata(section_id)
        except ForumArchiveError as exc:
            print(f"{section_id:<12} {'?':>8} {'?':>8} {exc}")
            continue
        pages = sum(meta.pages_per_topic.values())
        print(f"{section_id:<12} {meta.total_topics:>8,} {pages:>8,} {meta.last_update_timestamp:<32}")
    print()

    backups = BackupService().list_backups(settings.backup_dir)
    latest = f"{backups[0].timestamp:%Y-%m-%d %H:%M:%S}" if backups else "-"
    print(f"Backups:        {len(backups)} (latest {latest})")

    history = HistoryLog(settings.history_path)
    try:
        page_rate, topic_rate, _ = history.average_rates(settings.history_window)
    except MetricsError:
        print("History:        no completed runs yet")
        return 0

    runs = history.recent_runs(settings.history_window)
    print(
        f"History:        {len(runs)} recent run(s), "
        f"{format_rate(page_rate, 'pages')}, {format_rate(topic_rate, 'topics')}"
    )
    if runs:
        print(f"Last run:       {runs[0].run_id} ({format_duration(runs[0].duration_seconds)})")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the archive CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Resumable forum topic indexer and archiver.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="YAML config file (default: config/config.yaml)",
    )
    parser.add_argument("--archive-root", help="Override the archive root directory")
    parser.add_argument("--log-level", help="Override the log level (DEBUG, INFO, ...)")

    subparsers = parser.add_subparsers(dest="command", help="Archive commands")

    subparsers.add_parser("init", help="Create the archive directory layout")
    subparsers.add_parser("validate", help="Check the archive layout before resuming")

    # -- index --
    index_parser = subparsers.add_parser("index", help="Discover and index one section")
    index_parser.add_argument("--url", required=True, help="Any listing URL of the section")
    index_parser.add_argument(
        "--section-id", default=None, help="Store under this id (default: from the URL)"
    )
    index_parser.add_argument(
        "--delay", type=float, default=None, help="Seconds before each request"
    )
    index_parser.add_argument(
        "--max-pages", type=int, default=None, help="Scan at most this many listing pages"
    )

    # -- run --
    run_parser = subparsers.add_parser("run", help="Index every pending section in the list")
    run_parser.add_argument("--csv", default=None, help="Section list CSV")
    run_parser.add_argument("--completed", default=None, help="Completed-sections file")
    run_parser.add_argument(
        "--delay", type=float, default=None, help="Seconds before each request"
    )

    # -- archive --
    archive_parser = subparsers.add_parser("archive", help="Archive the topics of an indexed section")
    archive_parser.add_argument("--section", required=True, help="Section identifier")
    archive_parser.add_argument(
        "--delay", type=float, default=None, help="Seconds before each request"
    )

    subparsers.add_parser("backup", help="Snapshot progress and metadata")
    subparsers.add_parser("list-backups", help="List backups, newest first")
    subparsers.add_parser("quota", help="Report archive size against the quota")
    subparsers.add_parser("status", help="Show progress, sections and throughput history")

    return parser


def _resolve_settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.config)
    overrides: dict = {}
    if args.archive_root:
        overrides["archive_root"] = args.archive_root
    if args.log_level:
        overrides["log_level"] = args.log_level
    if getattr(args, "delay", None) is not None:
        overrides["request_delay"] = args.delay
    if getattr(args, "max_pages", None) is not None:
        overrides["max_pages"] = args.max_pages
    return settings.model_copy(update=overrides) if overrides else settings


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the forum archive tool."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        settings = _resolve_settings(args)
    except ForumArchiveError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging(
        log_level=settings.log_level,
        json_output=(settings.app_env == "production"),
        log_file=settings.log_file or None,
    )

    sync_handlers = {
        "init": _handle_init,
        "validate": _handle_validate,
        "backup": _handle_backup,
        "list-backups": _handle_list_backups,
        "quota": _handle_quota,
        "status": _handle_status,
    }
    async_handlers = {
        "index": _handle_index,
        "run": _handle_run,
        "archive": _handle_archive,
    }

    try:
        if args.command in sync_handlers:
            exit_code = sync_handlers[args.command](settings)
        elif args.command in async_handlers:
            exit_code = asyncio.run(async_handlers[args.command](args, settings))
        else:
            parser.print_help()
            exit_code = 1
    except ForumArchiveError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
