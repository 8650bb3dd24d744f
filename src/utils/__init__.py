"""Utility modules for the forum archive.

Available utility modules (re-exported here for convenience):

- **errors** -- Exception hierarchy rooted at ForumArchiveError.  Storage
  errors are split by kind (not found, invalid format, permission, full,
  I/O) so callers can reinitialize on one and abort on another.
- **fs** -- Atomic whole-file writes, recursive copy and directory sizing,
  all reporting failures as storage errors with path context.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    DiscoveryError,
    EmptyIdentifierError,
    ExtractionError,
    FetchError,
    ForumArchiveError,
    MetricsError,
    PaginationError,
    PathFormatError,
    StorageError,
    StorageFullError,
    StorageInvalidFormatError,
    StorageIOError,
    StorageNotFoundError,
    StoragePermissionError,
    classify_os_error,
)

# -- Filesystem helpers -----------------------------------------------------
from src.utils.fs import atomic_write_bytes, atomic_write_text, copy_file, copy_tree, directory_size

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DiscoveryError",
    "EmptyIdentifierError",
    "ExtractionError",
    "FetchError",
    "ForumArchiveError",
    "MetricsError",
    "PaginationError",
    "PathFormatError",
    "StorageError",
    "StorageFullError",
    "StorageIOError",
    "StorageInvalidFormatError",
    "StorageNotFoundError",
    "StoragePermissionError",
    "atomic_write_bytes",
    "atomic_write_text",
    "classify_os_error",
    "configure_logging",
    "copy_file",
    "copy_tree",
    "directory_size",
    "get_logger",
]
