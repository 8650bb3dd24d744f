"""Timestamped snapshots of archive state, plus storage quota checks.

A backup is a new directory ``<parent>/forum-archive-backup-<YYYYmmddHHMMSS>``
holding a copy of ``progress.json`` and the whole ``metadata/`` tree as they
were at that moment.  Either source may be absent; only real I/O failures
are errors.  Snapshots are never modified once written, and the embedded
timestamp is what orders them.
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable

from src.models.archive import BackupInfo, StorageStatus
from src.services import archive_paths
from src.utils.errors import ForumArchiveError, StorageIOError, classify_os_error
from src.utils.fs import copy_file, copy_tree, directory_size
from src.utils.logging import get_logger

BACKUP_PREFIX = "forum-archive-backup-"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


class BackupService:
    """Create and enumerate backups; measure disk use against a quota.

    Parameters
    ----------
    clock:
        Returns the current local time; injectable for tests.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now, logger=None) -> None:
        self._clock = clock
        self._logger = logger or get_logger(__name__)

    def backup(self, archive_root: str | Path, backup_parent: str | Path) -> str:
        """Snapshot progress and metadata of *archive_root* under *backup_parent*.

        The copy is assembled in a hidden ``.<name>.partial`` directory and
        renamed onto the final name only once it is complete, so a failed
        copy never leaves a listed but incomplete snapshot behind.

        Returns
        -------
        str
            Path of the created backup directory.

        Raises
        ------
        StorageError
            On an I/O failure, including a backup with the same timestamp
            already existing.
        """
        root = Path(archive_root)
        parent = Path(backup_parent)
        target = parent / f"{BACKUP_PREFIX}{self._clock().strftime(TIMESTAMP_FORMAT)}"
        staging = parent / f".{target.name}.partial"

        if target.exists():
            raise StorageIOError(message="backup already exists", path=str(target))

        try:
            parent.mkdir(parents=True, exist_ok=True)
            if staging.exists():
                # Left over from a run that died mid-copy.
                shutil.rmtree(staging)
            staging.mkdir()
        except OSError as exc:
            raise classify_os_error(exc, str(staging), "creating backup directory") from exc

        try:
            files = self._copy_state(root, staging)
        except ForumArchiveError as exc:
            self._logger.warning("backup_aborted", backup_path=str(target), error=str(exc))
            shutil.rmtree(staging, ignore_errors=True)
            raise

        try:
            os.replace(staging, target)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise classify_os_error(exc, str(target), "finalizing backup directory") from exc

        self._logger.info(
            "backup_created",
            archive_root=str(root),
            backup_path=str(target),
            metadata_files=files,
        )
        return str(target)

    def _copy_state(self, root: Path, destination: Path) -> int:
        progress_src = archive_paths.progress_path(root)
        if progress_src.is_file():
            copy_file(progress_src, destination / archive_paths.PROGRESS_FILE)
        else:
            self._logger.info("backup_progress_absent", path=str(progress_src))

        metadata_src = root / archive_paths.METADATA_DIR
        if metadata_src.is_dir():
            return copy_tree(metadata_src, destination / archive_paths.METADATA_DIR)
        if metadata_src.exists():
            self._logger.warning("backup_metadata_not_a_directory", path=str(metadata_src))
        else:
            self._logger.info("backup_metadata_absent", path=str(metadata_src))
        return 0

    def list_backups(self, backup_parent: str | Path) -> list[BackupInfo]:
        """Return backups under *backup_parent*, newest first.

        A missing parent directory means no backups.  Directories that carry
        the backup prefix but an unparsable timestamp are skipped with a
        warning.
        """
        parent = Path(backup_parent)
        if not parent.exists():
            return []

        try:
            entries = list(parent.iterdir())
        except OSError as exc:
            raise classify_os_error(exc, str(parent), "listing backups") from exc

        backups: list[BackupInfo] = []
        for entry in entries:
            if not entry.is_dir() or not entry.name.startswith(BACKUP_PREFIX):
                continue
            stamp = entry.name[len(BACKUP_PREFIX) :]
            try:
                timestamp = datetime.strptime(stamp, TIMESTAMP_FORMAT)
            except ValueError:
                self._logger.warning("backup_name_unparsable", path=str(entry))
                continue
            backups.append(BackupInfo(path=str(entry), timestamp=timestamp))

        backups.sort(key=lambda b: b.timestamp, reverse=True)
        return backups

    def check_quota(
        self,
        path: str | Path,
        warning_percent: float,
        quota_bytes: int,
    ) -> StorageStatus:
        """Measure *path* and compare it against *quota_bytes*.

        ``quota_bytes <= 0`` disables the quota: usage is reported but the
        warning flag is never set.  Otherwise the warning is raised when
        usage is at or above *warning_percent*.  A failure to measure is
        reported through :attr:`StorageStatus.error`, not raised.
        """
        try:
            usage = directory_size(path)
        except ForumArchiveError as exc:
            self._logger.error("quota_check_failed", path=str(path), error=str(exc))
            return StorageStatus(quota_bytes=quota_bytes, error=str(exc))

        if quota_bytes <= 0:
            self._logger.info("storage_usage", path=str(path), usage_bytes=usage, quota="disabled")
            return StorageStatus(current_usage_bytes=usage, quota_bytes=quota_bytes)

        percent = usage / quota_bytes * 100.0
        is_warning = percent >= warning_percent
        log = self._logger.warning if is_warning else self._logger.info
        log(
            "storage_quota_warning" if is_warning else "storage_usage",
            path=str(path),
            usage_bytes=usage,
            quota_bytes=quota_bytes,
            usage_percent=round(percent, 2),
            threshold_percent=warning_percent,
        )
        return StorageStatus(
            current_usage_bytes=usage,
            quota_bytes=quota_bytes,
            usage_percentage=percent,
            is_warning=is_warning,
        )
