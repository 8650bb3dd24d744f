"""On-disk layout of an archive root.

::

    <root>/raw-html/subforum-<SID>/topic-<TID>/page-<N>.html
    <root>/structured-json/subforum-<SID>/topic-<TID>.json
    <root>/metadata/subforum-<SID>/index.json
    <root>/metadata/subforum-<SID>/topics.json
    <root>/progress.json

Identifiers are percent-encoded (``urllib.parse.quote`` with no safe
characters) before they become part of a name, so an identifier taken from
a remote page can never add a path separator or NUL byte, and the prefixes
keep ``.`` and ``..`` from forming a bare dot segment.

Each ``*_path`` builder has a ``parse_*`` inverse.  Parsing rejects any path
whose directory names do not carry the exact prefixes above with
:class:`PathFormatError`, and a path whose identifier component is empty
with :class:`EmptyIdentifierError`.  Both are invalid-format errors.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import quote, unquote

from src.utils.errors import EmptyIdentifierError, PathFormatError

RAW_HTML_DIR = "raw-html"
STRUCTURED_JSON_DIR = "structured-json"
METADATA_DIR = "metadata"
PROGRESS_FILE = "progress.json"
INDEX_FILE = "index.json"
TOPIC_INDEX_FILE = "topics.json"
ARCHIVE_DIRS = (RAW_HTML_DIR, STRUCTURED_JSON_DIR, METADATA_DIR)

_SECTION_PREFIX = "subforum-"
_TOPIC_PREFIX = "topic-"
_PAGE_PREFIX = "page-"


def _encode(value: str, what: str) -> str:
    if not value:
        raise EmptyIdentifierError(message=f"{what} must not be empty")
    return quote(value, safe="")


def _strip(name: str, prefix: str, suffix: str, path: Path) -> str:
    if not (name.startswith(prefix) and name.endswith(suffix)) or len(name) < len(prefix) + len(suffix):
        raise PathFormatError(
            message=f"expected '{prefix}<id>{suffix}', got '{name}'", path=str(path)
        )
    value = name[len(prefix) : len(name) - len(suffix)]
    if not value:
        raise EmptyIdentifierError(message=f"empty identifier in '{name}'", path=str(path))
    return value


def _expect(name: str, expected: str, path: Path) -> None:
    if name != expected:
        raise PathFormatError(message=f"expected '{expected}', got '{name}'", path=str(path))


def progress_path(root: str | Path) -> Path:
    return Path(root) / PROGRESS_FILE


def section_dir_name(section_id: str) -> str:
    return _SECTION_PREFIX + _encode(section_id, "section id")


def parse_section_dir_name(name: str) -> str:
    """Return the section identifier of a ``subforum-<SID>`` directory name."""
    return unquote(_strip(name, _SECTION_PREFIX, "", Path(name)))


def raw_page_path(root: str | Path, section_id: str, topic_id: str, page_number: int) -> Path:
    """Path of one raw HTML page; *page_number* is 1-indexed."""
    if page_number < 1:
        raise PathFormatError(message=f"page number must be >= 1, got {page_number}")
    return (
        Path(root)
        / RAW_HTML_DIR
        / section_dir_name(section_id)
        / f"{_TOPIC_PREFIX}{_encode(topic_id, 'topic id')}"
        / f"{_PAGE_PREFIX}{page_number}.html"
    )


def structured_topic_path(root: str | Path, section_id: str, topic_id: str) -> Path:
    return (
        Path(root)
        / STRUCTURED_JSON_DIR
        / section_dir_name(section_id)
        / f"{_TOPIC_PREFIX}{_encode(topic_id, 'topic id')}.json"
    )


def section_metadata_path(root: str | Path, section_id: str) -> Path:
    return Path(root) / METADATA_DIR / section_dir_name(section_id) / INDEX_FILE


def topic_index_path(root: str | Path, section_id: str) -> Path:
    return Path(root) / METADATA_DIR / section_dir_name(section_id) / TOPIC_INDEX_FILE


def parse_raw_page_path(path: str | Path) -> tuple[Path, str, str, int]:
    """Return ``(root, section_id, topic_id, page_number)`` for a raw page path."""
    path = Path(path)
    topic_dir = path.parent
    section_dir = topic_dir.parent
    raw_dir = section_dir.parent

    _expect(raw_dir.name, RAW_HTML_DIR, path)
    section_id = unquote(_strip(section_dir.name, _SECTION_PREFIX, "", path))
    topic_id = unquote(_strip(topic_dir.name, _TOPIC_PREFIX, "", path))
    page = _strip(path.name, _PAGE_PREFIX, ".html", path)
    if not page.isdigit() or int(page) < 1:
        raise PathFormatError(message=f"page number is not a positive integer: '{page}'", path=str(path))

    return raw_dir.parent, section_id, topic_id, int(page)


def parse_structured_topic_path(path: str | Path) -> tuple[Path, str, str]:
    """Return ``(root, section_id, topic_id)`` for a structured record path."""
    path = Path(path)
    section_dir = path.parent
    structured_dir = section_dir.parent

    _expect(structured_dir.name, STRUCTURED_JSON_DIR, path)
    section_id = unquote(_strip(section_dir.name, _SECTION_PREFIX, "", path))
    topic_id = unquote(_strip(path.name, _TOPIC_PREFIX, ".json", path))

    return structured_dir.parent, section_id, topic_id


def parse_section_metadata_path(path: str | Path) -> tuple[Path, str]:
    """Return ``(root, section_id)`` for a section ``index.json`` path."""
    path = Path(path)
    section_dir = path.parent
    metadata_dir = section_dir.parent

    _expect(metadata_dir.name, METADATA_DIR, path)
    _expect(path.name, INDEX_FILE, path)
    section_id = unquote(_strip(section_dir.name, _SECTION_PREFIX, "", path))

    return metadata_dir.parent, section_id
