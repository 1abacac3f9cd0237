"""
CSV export/import for the note store.

Format::

    ID,Title,Content,Tags,Created,Modified
    1,"Git status","git status -s","git,cli",1700000000,1700000000

Text fields are always quoted with embedded quotes doubled; id and
timestamps are bare integers. Import goes through NoteStore.add(), so
ids and timestamps are assigned fresh.
"""

import csv
import logging
import os
from dataclasses import dataclass, field
from typing import Union

from .note_store import NoteStore

logger = logging.getLogger(__name__)

CSV_HEADER = ["ID", "Title", "Content", "Tags", "Created", "Modified"]
DEFAULT_EXPORT_FILENAME = "cheatnotes_export.csv"

PathLike = Union[str, os.PathLike]


@dataclass
class ImportResult:
    """Outcome of an import."""
    imported: int = 0
    errors: int = 0
    # (line number, reason) for each skipped row
    line_errors: list[tuple[int, str]] = field(default_factory=list)

    def skip(self, line: int, reason: str) -> None:
        self.errors += 1
        self.line_errors.append((line, reason))
        logger.warning("Skipping line %d - %s", line, reason)


def export_csv(store: NoteStore, path: PathLike) -> int:
    """
    Write every note to ``path``.

    Returns:
        Number of notes written

    Raises:
        OSError: If the file cannot be written
    """
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(",".join(CSV_HEADER) + "\n")
        writer = csv.writer(f, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
        for note in store:
            writer.writerow([
                note.id, note.title, note.content, note.tags,
                note.created_at, note.modified_at,
            ])
    logger.info("Exported %d notes to %s", store.count, path)
    return store.count


def _has_undecodable(row: list[str]) -> bool:
    """True if the row carries bytes that were not valid UTF-8."""
    try:
        for cell in row:
            cell.encode("utf-8")
    except UnicodeEncodeError:
        return True
    return False


def _is_header(row: list[str]) -> bool:
    return [c.strip().lower() for c in row[:3]] == ["id", "title", "content"]


def import_csv(store: NoteStore, path: PathLike, merge: bool = False) -> ImportResult:
    """
    Add the notes in ``path`` to ``store``.

    Without ``merge`` the store is reset first (after the file has been
    opened, so a missing file leaves the store alone). Rows that are too
    short, are not valid UTF-8, lack a title or content, or are rejected
    by add() are skipped and counted.

    Raises:
        OSError: If the file cannot be opened
        StoreFullError: If the store runs out of room
    """
    result = ImportResult()

    # Undecodable bytes become lone surrogates and the row is skipped
    with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
        if not merge:
            store.reset()

        reader = csv.reader(f, skipinitialspace=True)
        first_row = True
        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                result.skip(reader.line_num, f"malformed line ({e})")
                continue

            line = reader.line_num
            if not row or all(not c.strip() for c in row):
                continue
            if first_row:
                first_row = False
                if _is_header(row):
                    continue

            if _has_undecodable(row):
                result.skip(line, "invalid encoding")
                continue

            if len(row) < 3:
                result.skip(line, "too few fields")
                continue

            title, content = row[1], row[2]
            tags = row[3] if len(row) > 3 else ""
            if not title.strip() or not content.strip():
                result.skip(line, "missing title or content")
                continue

            if store.add(title, content, tags or None) is None:
                result.skip(line, "failed to import")
                continue
            result.imported += 1

    logger.info(
        "Imported %d notes from %s (%d errors)", result.imported, path, result.errors,
    )
    return result
