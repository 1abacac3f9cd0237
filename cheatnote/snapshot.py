"""
Binary snapshot persistence for the note store.

The whole store is written as one file:

    header: size_t count, uint32 next_id
    count x record: uint32 id, char title[256], char content[8192],
                    char tags[512], int64 created_at, int64 modified_at

Fields use native byte order, sizes and alignment (``struct`` "@" mode),
so a snapshot is not portable across architectures.

Saving writes ``<path>.tmp`` beside the target and renames it into place,
so the file on disk is always either the previous snapshot or the new
one. Loading never fails on a bad file: it logs a warning and returns an
empty store.
"""

import logging
import os
import struct
from pathlib import Path
from typing import Union

from .errors import SnapshotWriteError
from .note_store import NoteStore
from .types import (
    GROWTH_FACTOR,
    HEADER_FORMAT,
    INITIAL_CAPACITY,
    MAX_CONTENT_LEN,
    MAX_NOTES,
    MAX_TAGS_LEN,
    MAX_TITLE_LEN,
    RECORD_FORMAT,
    RECORD_SIZE,
    Note,
    bounded,
)

logger = logging.getLogger(__name__)

HEADER_SIZE = struct.calcsize(HEADER_FORMAT)

PathLike = Union[str, os.PathLike]


# -----------------------------------------------------------------------------
# Record codec
# -----------------------------------------------------------------------------

def _encode_text(text: str, size: int) -> bytes:
    return bounded(text, size).encode("utf-8")


def _decode_text(raw: bytes, size: int) -> str:
    """Truncate at the buffer bound, terminate at the first NUL."""
    raw = raw[:size - 1].split(b"\x00", 1)[0]
    return raw.decode("utf-8", errors="replace")


def encode_header(count: int, next_id: int) -> bytes:
    return struct.pack(HEADER_FORMAT, count, next_id)


def encode_note(note: Note) -> bytes:
    """Pack one note into its fixed-size record."""
    return struct.pack(
        RECORD_FORMAT,
        note.id,
        _encode_text(note.title, MAX_TITLE_LEN),
        _encode_text(note.content, MAX_CONTENT_LEN),
        _encode_text(note.tags, MAX_TAGS_LEN),
        note.created_at,
        note.modified_at,
    )


def decode_note(record: bytes) -> Note:
    """Unpack one fixed-size record."""
    id, title, content, tags, created_at, modified_at = struct.unpack(RECORD_FORMAT, record)
    return Note(
        id=id,
        title=_decode_text(title, MAX_TITLE_LEN),
        content=_decode_text(content, MAX_CONTENT_LEN),
        tags=_decode_text(tags, MAX_TAGS_LEN),
        created_at=created_at,
        modified_at=modified_at,
    )


def snapshot_size(count: int) -> int:
    """Size in bytes of a snapshot holding ``count`` notes."""
    return HEADER_SIZE + count * RECORD_SIZE


def _is_anomalous(note: Note) -> bool:
    return note.id == 0 or note.created_at < 0 or note.modified_at < 0


# -----------------------------------------------------------------------------
# Load
# -----------------------------------------------------------------------------

def _fresh(initial_capacity: int, reason: str) -> NoteStore:
    logger.warning("%s, starting fresh", reason)
    return NoteStore(initial_capacity)


def _load_capacity(count: int, initial_capacity: int) -> int:
    capacity = max(initial_capacity, count)
    grown = count * GROWTH_FACTOR
    if capacity < grown <= MAX_NOTES:
        capacity = grown
    return capacity


def load_snapshot(path: PathLike, initial_capacity: int = INITIAL_CAPACITY) -> NoteStore:
    """
    Read a snapshot into a new store.

    A missing file gives an empty store. A damaged file (short or
    implausible header, short record data) is logged and also gives an
    empty store. Records with id 0 or negative timestamps are kept but
    reported.

    Args:
        path: Snapshot file
        initial_capacity: Capacity of a fresh store

    Returns:
        The loaded NoteStore
    """
    path = Path(path)
    try:
        f = open(path, "rb")
    except FileNotFoundError:
        logger.debug("No snapshot at %s", path)
        return NoteStore(initial_capacity)
    except OSError as e:
        return _fresh(initial_capacity, f"Cannot open database {path}: {e}")

    with f:
        try:
            header = f.read(HEADER_SIZE)
        except OSError as e:
            return _fresh(initial_capacity, f"Database header unreadable ({e})")
        if len(header) != HEADER_SIZE:
            return _fresh(initial_capacity, "Database header corrupted")

        count, next_id = struct.unpack(HEADER_FORMAT, header)
        if count > MAX_NOTES or next_id == 0:
            return _fresh(initial_capacity, "Database parameters invalid")

        if count == 0:
            # Keep the id counter so an emptied store does not reuse ids
            return NoteStore.from_snapshot(
                [], next_id, initial_capacity, initial_capacity=initial_capacity,
            )

        try:
            available = os.fstat(f.fileno()).st_size - HEADER_SIZE
        except OSError as e:
            return _fresh(initial_capacity, f"Database records unreadable ({e})")
        if available < count * RECORD_SIZE:
            return _fresh(initial_capacity, "Database records corrupted")

        try:
            data = f.read(count * RECORD_SIZE)
        except OSError as e:
            return _fresh(initial_capacity, f"Database records unreadable ({e})")
        if len(data) != count * RECORD_SIZE:
            return _fresh(initial_capacity, "Database records corrupted")

    notes = [
        decode_note(data[offset:offset + RECORD_SIZE])
        for offset in range(0, len(data), RECORD_SIZE)
    ]

    anomalies = sum(1 for note in notes if _is_anomalous(note))
    if anomalies:
        logger.warning(
            "Found %d possibly corrupted record(s) in DB; continuing with preserved data",
            anomalies,
        )

    logger.debug("Loaded %d notes from %s", count, path)
    return NoteStore.from_snapshot(
        notes,
        next_id,
        _load_capacity(count, initial_capacity),
        initial_capacity=initial_capacity,
    )


# -----------------------------------------------------------------------------
# Save
# -----------------------------------------------------------------------------

def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove temporary file %s: %s", path, e)


def temp_path_for(path: PathLike) -> Path:
    """The temporary file a save writes before renaming into ``path``."""
    path = Path(path)
    return path.with_name(path.name + ".tmp")


def save_snapshot(store: NoteStore, path: PathLike) -> None:
    """
    Write the whole store to ``path`` atomically.

    Creates missing parent directories, writes ``<path>.tmp``, syncs and
    closes it, then renames it over ``path``.

    Raises:
        SnapshotWriteError: On any failure. The temporary file is removed
            and the previous snapshot is left as it was.
    """
    path = Path(path)
    try:
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    except OSError as e:
        raise SnapshotWriteError(f"Failed to create database directory: {e}") from e

    tmp_path = temp_path_for(path)
    step = "open temporary database file"
    try:
        with open(tmp_path, "wb") as f:
            step = "write database header"
            f.write(encode_header(store.count, store.next_id))
            step = "write database records"
            for note in store:
                f.write(encode_note(note))
            f.flush()
            os.fsync(f.fileno())
            step = "close temporary database file"
        step = "update database file"
        os.replace(tmp_path, path)
    except (OSError, struct.error) as e:
        _remove_quietly(tmp_path)
        raise SnapshotWriteError(f"Failed to {step}: {e}") from e

    logger.info("Saved %d notes to %s", store.count, path)
