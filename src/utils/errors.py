"""Custom exception hierarchy for the forum archive.

All application exceptions inherit from :class:`ForumArchiveError`, which
carries an optional ``path`` (a filesystem path or URL) so error handlers
can report exactly which resource caused the failure.

The hierarchy is organized by subsystem:

    ForumArchiveError  (base -- catch-all for any archive error)
    +-- StorageError               (archive root on disk)
    |   +-- StorageNotFoundError       (expected file/dir absent)
    |   +-- StorageInvalidFormatError  (present but unparsable / out of range)
    |   |   +-- PathFormatError            (archive path has the wrong shape)
    |   |   +-- EmptyIdentifierError       (archive path has an empty ID)
    |   +-- StoragePermissionError     (EACCES / EPERM)
    |   +-- StorageFullError           (ENOSPC / EDQUOT)
    |   +-- StorageIOError             (any other OSError)
    +-- FetchError                 (network / HTTP failure for one page)
    +-- ExtractionError            (listing page could not be parsed)
    +-- PaginationError            (page URL lacks a section identifier)
    +-- DiscoveryError             (first listing page unusable -- fatal)
    +-- MetricsError               (ETC requested without totals / history)
    +-- ConfigurationError         (startup / missing config)

NotFound and InvalidFormat are deliberately separate classes so callers can
choose to reinitialize on the former and abort on the latter.
"""

from __future__ import annotations

import errno


class ForumArchiveError(Exception):
    """Base exception for all forum archive errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``path``.  The ``__str__`` method prefixes the path in brackets for
    log output, e.g. ``[data/archive/progress.json] file not found``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        path: str | None = None,
    ) -> None:
        self._message = message
        self._path = str(path) if path is not None else None
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def path(self) -> str | None:
        return self._path

    def __str__(self) -> str:
        if self._path:
            return f"[{self._path}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class StorageError(ForumArchiveError):
    """Raised when an archive storage operation fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class StorageNotFoundError(StorageError):
    """Raised when an expected archive file or directory does not exist."""

    def __init__(
        self,
        message: str = "Item not found",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class StorageInvalidFormatError(StorageError):
    """Raised when a stored file exists but cannot be parsed or holds
    out-of-domain values.  Never silently repaired.
    """

    def __init__(
        self,
        message: str = "Invalid data format",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class PathFormatError(StorageInvalidFormatError):
    """Raised when an archive path does not match the expected layout."""

    def __init__(
        self,
        message: str = "Invalid archive path structure",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class EmptyIdentifierError(StorageInvalidFormatError):
    """Raised when an archive path has the right shape but an empty ID."""

    def __init__(
        self,
        message: str = "Empty identifier component in archive path",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class StoragePermissionError(StorageError):
    """Raised when the archive root is not readable or writable."""

    def __init__(
        self,
        message: str = "Permission denied",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class StorageFullError(StorageError):
    """Raised when a write fails because the device or quota is full."""

    def __init__(
        self,
        message: str = "Storage is full",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class StorageIOError(StorageError):
    """Raised for any other I/O failure against the archive root."""

    def __init__(
        self,
        message: str = "I/O error",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


def classify_os_error(exc: OSError, path: str, action: str) -> StorageError:
    """Map an :class:`OSError` to the matching storage error kind.

    ``action`` is a short phrase such as ``"writing progress file"`` that
    is prepended to the underlying error text.
    """
    message = f"{action}: {exc}"
    if isinstance(exc, FileNotFoundError):
        return StorageNotFoundError(message=message, path=path)
    if isinstance(exc, PermissionError):
        return StoragePermissionError(message=message, path=path)
    if exc.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
        return StorageFullError(message=message, path=path)
    return StorageIOError(message=message, path=path)


# ---------------------------------------------------------------------------
# Discovery errors
# ---------------------------------------------------------------------------

class FetchError(ForumArchiveError):
    """Raised when a page cannot be fetched (transport error, non-200)."""

    def __init__(
        self,
        message: str = "Page fetch failed",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class ExtractionError(ForumArchiveError):
    """Raised when topics cannot be extracted from a listing page."""

    def __init__(
        self,
        message: str = "Topic extraction failed",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class PaginationError(ForumArchiveError):
    """Raised when a listing URL cannot be planned (no section identifier)."""

    def __init__(
        self,
        message: str = "Pagination planning failed",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class DiscoveryError(ForumArchiveError):
    """Raised when a discovery run cannot start: the first listing page
    could not be fetched or planned.
    """

    def __init__(
        self,
        message: str = "Section discovery failed",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


# ---------------------------------------------------------------------------
# Metrics / configuration errors
# ---------------------------------------------------------------------------

class MetricsError(ForumArchiveError):
    """Raised when an estimate is requested without the data it needs."""

    def __init__(
        self,
        message: str = "Metrics unavailable",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)


class ConfigurationError(ForumArchiveError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        path: str | None = None,
    ) -> None:
        super().__init__(message=message, path=path)
