"""Filesystem helpers shared by the archive storage and backup services.

All helpers translate :class:`OSError` into the storage error kinds from
:mod:`src.utils.errors` so callers never have to inspect ``errno`` values
themselves.

- :func:`atomic_write_text` -- whole-file replace (temp file + ``os.replace``)
  so readers never observe a partially written JSON document.
- :func:`copy_file` / :func:`copy_tree` -- recursive copy that knows nothing
  about what it copies; the backup service composes them.
- :func:`directory_size` -- recursive sum of regular-file sizes that fails
  loudly on a missing root instead of returning zero.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from src.utils.errors import (
    StorageIOError,
    StorageNotFoundError,
    classify_os_error,
)


def atomic_write_text(path: str | Path, content: str, encoding: str = "utf-8") -> None:
    """Replace *path* with *content* in one step.

    The data is written to a temporary file in the same directory, flushed
    and fsynced, then renamed over the target.  Parent directories must
    already exist.
    """
    target = Path(path)
    fd = -1
    tmp_name = ""
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
        )
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            fd = -1
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    except OSError as exc:
        if fd != -1:
            os.close(fd)
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise classify_os_error(exc, str(target), "writing file") from exc


def atomic_write_bytes(path: str | Path, content: bytes) -> None:
    """Binary counterpart of :func:`atomic_write_text`."""
    target = Path(path)
    fd = -1
    tmp_name = ""
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
        )
        with os.fdopen(fd, "wb") as handle:
            fd = -1
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    except OSError as exc:
        if fd != -1:
            os.close(fd)
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise classify_os_error(exc, str(target), "writing file") from exc


def copy_file(src: str | Path, dst: str | Path) -> None:
    """Copy a single regular file, preserving its modification time."""
    try:
        shutil.copy2(src, dst)
    except FileNotFoundError as exc:
        # Distinguish a vanished source from a missing destination parent.
        missing = str(src) if not Path(src).exists() else str(dst)
        raise StorageNotFoundError(
            message=f"copy source or destination missing: {exc}", path=missing
        ) from exc
    except OSError as exc:
        raise classify_os_error(exc, str(dst), f"copying {src}") from exc


def copy_tree(src: str | Path, dst: str | Path) -> int:
    """Recursively copy directory *src* into *dst*.

    *dst* is created (with parents) only after *src* has been validated as
    a directory.  Symlinks are copied as the files they point at.

    Returns:
        The number of regular files copied.

    Raises:
        StorageNotFoundError: *src* does not exist.
        StorageIOError: *src* is not a directory.
        StorageError: any underlying copy failure, with path context.
    """
    source = Path(src)
    destination = Path(dst)

    if not source.exists():
        raise StorageNotFoundError(message="copy source does not exist", path=str(source))
    if not source.is_dir():
        raise StorageIOError(message="copy source is not a directory", path=str(source))

    try:
        destination.mkdir(parents=True, exist_ok=True)
        entries = sorted(os.scandir(source), key=lambda e: e.name)
    except OSError as exc:
        raise classify_os_error(exc, str(destination), "preparing directory copy") from exc

    copied = 0
    for entry in entries:
        target = destination / entry.name
        if entry.is_dir():
            copied += copy_tree(entry.path, target)
        else:
            copy_file(entry.path, target)
            copied += 1
    return copied


def directory_size(path: str | Path) -> int:
    """Return the total size in bytes of every regular file under *path*.

    Raises:
        StorageNotFoundError: *path* does not exist.
        StorageError: a file could not be stat'ed during the walk.
    """
    root = Path(path)
    if not root.exists():
        raise StorageNotFoundError(message="cannot measure a missing directory", path=str(root))
    if root.is_file():
        return root.stat().st_size

    def _on_error(exc: OSError) -> None:
        raise classify_os_error(exc, exc.filename or str(root), "walking directory")

    total = 0
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_on_error):
        for name in filenames:
            file_path = os.path.join(dirpath, name)
            try:
                total += os.stat(file_path).st_size
            except OSError as exc:
                raise classify_os_error(exc, file_path, "reading file size") from exc
    return total
