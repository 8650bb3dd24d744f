"""Archive root storage: progress, section metadata, topic indexes and raw pages.

Every JSON document is written with a whole-file replace (see
:func:`src.utils.fs.atomic_write_text`), so a reader sees either the old or
the new content and never a partial write.  Reads distinguish a missing
file (:class:`StorageNotFoundError`, safe to reinitialize) from one that is
present but unusable (:class:`StorageInvalidFormatError`, never repaired
silently).

Two processes must not share an archive root; nothing here locks it.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from src.models.archive import ProgressData, SectionMetadata, TopicRecord
from src.models.forum import Topic
from src.services import archive_paths
from src.utils.errors import (
    StorageInvalidFormatError,
    StorageNotFoundError,
    classify_os_error,
)
from src.utils.fs import atomic_write_bytes, atomic_write_text, directory_size
from src.utils.logging import get_logger

_ModelT = TypeVar("_ModelT", bound=BaseModel)
_TOPIC_LIST = TypeAdapter(list[Topic])


class ArchiveStorage:
    """Read/write access to one archive root.

    Parameters
    ----------
    root:
        Base directory holding ``raw-html/``, ``structured-json/``,
        ``metadata/`` and ``progress.json``.
    """

    def __init__(self, root: str | Path, logger=None) -> None:
        self._root = Path(root)
        self._logger = logger or get_logger(__name__)

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Layout lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the three content directories and a zeroed progress file.

        An existing ``progress.json`` is never overwritten, so calling this
        on a live archive is a no-op.
        """
        for name in archive_paths.ARCHIVE_DIRS:
            self._mkdir(self._root / name)

        progress_file = archive_paths.progress_path(self._root)
        if progress_file.exists():
            self._logger.debug("archive_already_initialized", root=str(self._root))
            return

        atomic_write_text(progress_file, ProgressData().model_dump_json(indent=2))
        self._logger.info("archive_initialized", root=str(self._root))

    def validate(self) -> None:
        """Raise :class:`StorageNotFoundError` naming the first missing piece."""
        for name in archive_paths.ARCHIVE_DIRS:
            path = self._root / name
            if not path.is_dir():
                raise StorageNotFoundError(message="archive directory missing", path=str(path))

        progress_file = archive_paths.progress_path(self._root)
        if not progress_file.is_file():
            raise StorageNotFoundError(message="progress file missing", path=str(progress_file))

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def read_progress(self) -> ProgressData:
        path = archive_paths.progress_path(self._root)
        progress = self._read_model(path, ProgressData)
        _check_percentage(progress.overall_archival_progress, path)
        return progress

    def write_progress(self, progress: ProgressData) -> None:
        path = archive_paths.progress_path(self._root)
        _check_percentage(progress.overall_archival_progress, path)
        atomic_write_text(path, progress.model_dump_json(indent=2))

    # ------------------------------------------------------------------
    # Section metadata and topic index
    # ------------------------------------------------------------------

    def read_section_metadata(self, section_id: str) -> SectionMetadata:
        path = archive_paths.section_metadata_path(self._root, section_id)
        metadata = self._read_model(path, SectionMetadata)
        if metadata.total_topics < 0:
            raise StorageInvalidFormatError(
                message=f"total_topics is negative ({metadata.total_topics})", path=str(path)
            )
        return metadata

    def write_section_metadata(self, section_id: str, metadata: SectionMetadata) -> None:
        path = archive_paths.section_metadata_path(self._root, section_id)
        if metadata.total_topics < 0:
            raise StorageInvalidFormatError(
                message=f"total_topics is negative ({metadata.total_topics})", path=str(path)
            )
        self._mkdir(path.parent)
        atomic_write_text(path, metadata.model_dump_json(indent=2))
        self._logger.debug("section_metadata_written", section_id=section_id, path=str(path))

    def write_topic_index(self, section_id: str, topics: list[Topic]) -> Path:
        """Persist the section's topics sorted by identifier."""
        path = archive_paths.topic_index_path(self._root, section_id)
        ordered = sorted(topics, key=lambda t: t.topic_id)
        self._mkdir(path.parent)
        atomic_write_bytes(path, _TOPIC_LIST.dump_json(ordered, indent=2))
        self._logger.info(
            "topic_index_written", section_id=section_id, topics=len(ordered), path=str(path)
        )
        return path

    def read_topic_index(self, section_id: str) -> list[Topic]:
        path = archive_paths.topic_index_path(self._root, section_id)
        raw = self._read_bytes(path)
        try:
            return _TOPIC_LIST.validate_json(raw)
        except ValidationError as exc:
            raise StorageInvalidFormatError(message=f"bad topic index: {exc}", path=str(path)) from exc

    def list_sections(self) -> list[str]:
        """Identifiers of every section with a metadata directory, sorted."""
        metadata_dir = self._root / archive_paths.METADATA_DIR
        if not metadata_dir.is_dir():
            return []
        ids = []
        for entry in metadata_dir.iterdir():
            if not entry.is_dir():
                continue
            try:
                ids.append(archive_paths.parse_section_dir_name(entry.name))
            except StorageInvalidFormatError:
                continue
        return sorted(ids)

    # ------------------------------------------------------------------
    # Raw pages and structured topic records
    # ------------------------------------------------------------------

    def write_raw_page(self, section_id: str, topic_id: str, page_number: int, html: str) -> Path:
        path = archive_paths.raw_page_path(self._root, section_id, topic_id, page_number)
        self._mkdir(path.parent)
        atomic_write_text(path, html)
        return path

    def write_topic_record(self, record: TopicRecord) -> Path:
        path = archive_paths.structured_topic_path(self._root, record.section_id, record.topic_id)
        self._mkdir(path.parent)
        atomic_write_text(path, record.model_dump_json(indent=2))
        return path

    def read_topic_record(self, section_id: str, topic_id: str) -> TopicRecord:
        path = archive_paths.structured_topic_path(self._root, section_id, topic_id)
        return self._read_model(path, TopicRecord)

    def has_topic_record(self, section_id: str, topic_id: str) -> bool:
        return archive_paths.structured_topic_path(self._root, section_id, topic_id).is_file()

    # ------------------------------------------------------------------
    # Size
    # ------------------------------------------------------------------

    def get_directory_size(self, path: str | Path | None = None) -> int:
        """Total bytes under *path* (default: the archive root)."""
        return directory_size(self._root if path is None else path)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_bytes(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise classify_os_error(exc, str(path), "reading file") from exc

    def _read_model(self, path: Path, model: type[_ModelT]) -> _ModelT:
        raw = self._read_bytes(path)
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StorageInvalidFormatError(message=f"malformed JSON: {exc}", path=str(path)) from exc
        if not isinstance(data, dict):
            raise StorageInvalidFormatError(message="expected a JSON object", path=str(path))
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise StorageInvalidFormatError(
                message=f"unexpected document shape: {exc.error_count()} error(s)",
                path=str(path),
            ) from exc

    def _mkdir(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise classify_os_error(exc, str(path), "creating directory") from exc


def _check_percentage(value: float, path: Path) -> None:
    if not 0.0 <= value <= 100.0:
        raise StorageInvalidFormatError(
            message=f"overall_archival_progress out of range 0-100: {value}", path=str(path)
        )
