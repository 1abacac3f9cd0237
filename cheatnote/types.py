"""
Data types for cheatnote.

A note is a small record: title, free-form body and a comma-separated tag
list, plus two epoch-second timestamps. Each text field is bounded by the
size of the fixed buffer it occupies in the snapshot file.
"""

import struct
import sys
import time
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Optional


# Buffer sizes, terminator included: the usable bound is one less.
MAX_TITLE_LEN = 256
MAX_CONTENT_LEN = 8192
MAX_TAGS_LEN = 512

# Longest literal pattern compared case-insensitively; the regex budget
# is four times this.
MAX_SEARCH_LEN = 256

INITIAL_CAPACITY = 64
GROWTH_FACTOR = 2
MAX_NOTES = 1_000_000

# Ids are unsigned 32-bit on disk.
MAX_NOTE_ID = 2**32 - 1

# On-disk layout, native byte order and alignment (see snapshot.py).
HEADER_FORMAT = "@NI"
RECORD_FORMAT = f"@I{MAX_TITLE_LEN}s{MAX_CONTENT_LEN}s{MAX_TAGS_LEN}sqq"
RECORD_SIZE = struct.calcsize(RECORD_FORMAT)

INVALID_DATE = "Invalid date"


@dataclass
class Note:
    """
    A single stored note.

    Timestamps are integer seconds since the epoch. ``created_at`` is set
    once; ``modified_at`` moves forward on every successful edit.
    """
    id: int
    title: str
    content: str
    tags: str = ""
    created_at: int = 0
    modified_at: int = 0

    def copy(self) -> "Note":
        return replace(self)

    def to_dict(self) -> dict:
        return asdict(self)


def now_epoch() -> int:
    """Current time in whole seconds since the epoch."""
    return int(time.time())


def format_timestamp(epoch: int) -> str:
    """Render an epoch timestamp as local ``YYYY-MM-DD HH:MM``."""
    try:
        return datetime.fromtimestamp(epoch).strftime("%Y-%m-%d %H:%M")
    except (OverflowError, OSError, ValueError):
        return INVALID_DATE


def encoded_length(text: str) -> int:
    return len(text.encode("utf-8"))


def text_fits(text: str, size: int) -> bool:
    """True if ``text`` fits a ``size``-byte buffer with its terminator."""
    return encoded_length(text) < size


def bounded(text: str, size: int) -> str:
    """
    Copy ``text`` into a ``size``-byte buffer: stop at the first NUL and keep
    at most ``size - 1`` encoded bytes, never splitting a character.
    """
    text = text.split("\x00", 1)[0]
    raw = text.encode("utf-8")
    if len(raw) < size:
        return text
    return raw[:size - 1].decode("utf-8", errors="ignore")


def validate_note_fields(
    title: Optional[str],
    content: Optional[str],
    tags: Optional[str] = None,
) -> Optional[str]:
    """
    Check the fields of a new note.

    Returns:
        A human-readable reason when the fields are unacceptable, else None.
    """
    if not title or not content or not title.strip() or not content.strip():
        return "Title and content are required"
    if not text_fits(title, MAX_TITLE_LEN):
        return "Title too long"
    if not text_fits(content, MAX_CONTENT_LEN):
        return "Content too long"
    if tags is not None and not text_fits(tags, MAX_TAGS_LEN):
        return "Tags too long"
    return None


def valid_note_id(id: int) -> bool:
    return 0 < id <= MAX_NOTE_ID


def checked_growth(
    capacity: int,
    factor: int = GROWTH_FACTOR,
    limit: int = MAX_NOTES,
    item_size: int = RECORD_SIZE,
) -> Optional[int]:
    """
    Next capacity for a full store, or None if it cannot grow.

    Refuses when ``capacity * factor * item_size`` would not fit a platform
    word, and when the result clamped to ``limit`` is no larger than
    ``capacity``.
    """
    if capacity > sys.maxsize // factor // item_size:
        return None
    new_capacity = min(capacity * factor, limit)
    if new_capacity <= capacity:
        return None
    return new_capacity
