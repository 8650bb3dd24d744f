"""Work queue of forum sections backed by a CSV list and a completion file.

The section list is a CSV with a header row and the columns
``id, name, base_url, description, topics_count, posts_count, ...``
(extra trailing columns are ignored).  Completion is tracked in a plain
text file with one section identifier per line, only ever appended to, so
an interrupted run resumes by re-reading it.
"""

from __future__ import annotations

import csv
from pathlib import Path

from src.models.forum import SectionEntry
from src.utils.errors import ConfigurationError, classify_os_error
from src.utils.logging import get_logger

_MIN_COLUMNS = 3


class SectionQueue:
    """Sections still to be processed, in CSV order."""

    def __init__(self, csv_path: str | Path, completed_path: str | Path, logger=None) -> None:
        self._csv_path = Path(csv_path)
        self._completed_path = Path(completed_path)
        self._logger = logger or get_logger(__name__)
        self._sections: list[SectionEntry] | None = None

    @property
    def sections(self) -> list[SectionEntry]:
        if self._sections is None:
            self._sections = self._load_sections()
        return self._sections

    def completed_ids(self) -> set[str]:
        try:
            text = self._completed_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return set()
        except OSError as exc:
            raise classify_os_error(exc, str(self._completed_path), "reading completion file") from exc
        return {line.strip() for line in text.splitlines() if line.strip()}

    def pending(self) -> list[SectionEntry]:
        done = self.completed_ids()
        return [s for s in self.sections if s.section_id not in done]

    def mark_completed(self, section_id: str) -> None:
        try:
            self._completed_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._completed_path, "a", encoding="utf-8") as f:
                f.write(section_id + "\n")
        except OSError as exc:
            raise classify_os_error(exc, str(self._completed_path), "appending completion") from exc
        self._logger.info("section_marked_completed", section_id=section_id)

    def get(self, section_id: str) -> SectionEntry | None:
        for section in self.sections:
            if section.section_id == section_id:
                return section
        return None

    def _load_sections(self) -> list[SectionEntry]:
        try:
            with open(self._csv_path, newline="", encoding="utf-8") as f:
                rows = list(csv.reader(f))
        except FileNotFoundError as exc:
            raise ConfigurationError(
                message="section list not found", path=str(self._csv_path)
            ) from exc
        except (OSError, csv.Error) as exc:
            raise ConfigurationError(
                message=f"unreadable section list: {exc}", path=str(self._csv_path)
            ) from exc

        if not rows:
            raise ConfigurationError(message="section list has no header", path=str(self._csv_path))

        sections: list[SectionEntry] = []
        for line_no, row in enumerate(rows[1:], start=2):
            if not row or row[0].startswith("#"):
                continue
            if len(row) < _MIN_COLUMNS:
                self._logger.warning("section_row_too_short", line=line_no, columns=len(row))
                continue

            cells = [cell.strip() for cell in row] + [""] * 6
            section_id, name, base_url = cells[0], cells[1], cells[2]
            if not section_id or not base_url:
                self._logger.warning("section_row_incomplete", line=line_no, section_id=section_id)
                continue

            sections.append(
                SectionEntry(
                    section_id=section_id,
                    name=name,
                    base_url=base_url,
                    description=cells[3],
                    topics_count=cells[4],
                    posts_count=cells[5],
                )
            )

        if not sections:
            raise ConfigurationError(message="section list has no usable rows", path=str(self._csv_path))

        self._logger.info("section_list_loaded", path=str(self._csv_path), sections=len(sections))
        return sections
