"""
In-memory record store for notes.

The store owns the notes, the id counter and a bounded slot array that
grows by GROWTH_FACTOR up to MAX_NOTES. It does no I/O: snapshot.py reads
it and replaces it wholesale, search.py only reads it.

Ordering: notes iterate in insertion order until the first delete. Delete
moves the last note into the freed slot, so afterwards the order is
unspecified.
"""

import logging
from typing import Iterable, Iterator, Optional

from .errors import StoreFullError
from .types import (
    GROWTH_FACTOR,
    INITIAL_CAPACITY,
    MAX_CONTENT_LEN,
    MAX_NOTE_ID,
    MAX_NOTES,
    MAX_TAGS_LEN,
    MAX_TITLE_LEN,
    Note,
    bounded,
    checked_growth,
    now_epoch,
    text_fits,
    valid_note_id,
    validate_note_fields,
)

logger = logging.getLogger(__name__)


class NoteStore:
    """
    Bounded, growable collection of notes.

    Mutated only through add(), edit(), delete() and reset().

    Validation failures are returned (None / False) and leave the store
    untouched. Running out of room raises StoreFullError, which callers
    treat as fatal.
    """

    def __init__(
        self,
        initial_capacity: int = INITIAL_CAPACITY,
        max_notes: int = MAX_NOTES,
    ):
        """
        Args:
            initial_capacity: Slots allocated up front
            max_notes: Ceiling on the note count; can only lower MAX_NOTES
        """
        self._max_notes = max(1, min(max_notes, MAX_NOTES))
        self._initial_capacity = max(1, min(initial_capacity, self._max_notes))
        self._slots: list[Optional[Note]] = [None] * self._initial_capacity
        self._count = 0
        self._next_id = 1

    @classmethod
    def from_snapshot(
        cls,
        notes: Iterable[Note],
        next_id: int,
        capacity: int,
        max_notes: int = MAX_NOTES,
        initial_capacity: int = INITIAL_CAPACITY,
    ) -> "NoteStore":
        """
        Build a store holding exactly ``notes``, as read from a snapshot.

        ``initial_capacity`` is what reset() returns to.
        """
        notes = list(notes)
        store = cls(initial_capacity=initial_capacity, max_notes=max_notes)
        if len(notes) > store._max_notes:
            raise StoreFullError(f"Snapshot holds {len(notes)} notes; limit is {store._max_notes}")
        capacity = max(capacity, len(notes), 1)
        store._slots = notes + [None] * (capacity - len(notes))
        store._count = len(notes)
        store._next_id = next_id
        return store

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def count(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def max_notes(self) -> int:
        return self._max_notes

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def add(self, title: str, content: str, tags: Optional[str] = None) -> Optional[int]:
        """
        Add a new note.

        Fields are copied bounded, then trimmed of surrounding whitespace.

        Returns:
            The new note id, or None if a field is empty or too long

        Raises:
            StoreFullError: If the store is at its ceiling or cannot grow
        """
        if validate_note_fields(title, content, tags) is not None:
            return None

        if self._count >= self._max_notes:
            raise StoreFullError("Maximum number of notes reached")
        self._ensure_room()

        note_id = self._next_id
        self._next_id += 1
        if self._next_id > MAX_NOTE_ID:
            # Wrapped; ids of live notes are not checked for reuse.
            self._next_id = 1

        now = now_epoch()
        note = Note(
            id=note_id,
            title=bounded(title, MAX_TITLE_LEN).strip(),
            content=bounded(content, MAX_CONTENT_LEN).strip(),
            tags=bounded(tags, MAX_TAGS_LEN).strip() if tags else "",
            created_at=now,
            modified_at=now,
        )
        self._slots[self._count] = note
        self._count += 1
        logger.info("Added note %d", note_id)
        return note_id

    def edit(
        self,
        id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> bool:
        """
        Update fields of an existing note.

        Empty title/content leave the field unchanged. For tags, None leaves
        them unchanged and "" clears them. All fields are checked before
        any is written.

        Returns:
            True if the note exists and the new values fit, False otherwise
        """
        index = self._index_of(id)
        if index is None:
            return False

        if title is not None and not title.strip():
            title = None
        if content is not None and not content.strip():
            content = None

        if title is not None and not text_fits(title, MAX_TITLE_LEN):
            return False
        if content is not None and not text_fits(content, MAX_CONTENT_LEN):
            return False
        if tags is not None and not text_fits(tags, MAX_TAGS_LEN):
            return False

        if title is None and content is None and tags is None:
            return True

        note = self._slots[index]
        if title is not None:
            note.title = bounded(title, MAX_TITLE_LEN).strip()
        if content is not None:
            note.content = bounded(content, MAX_CONTENT_LEN).strip()
        if tags is not None:
            note.tags = bounded(tags, MAX_TAGS_LEN).strip()
        note.modified_at = max(now_epoch(), note.created_at)
        logger.info("Edited note %d", id)
        return True

    def delete(self, id: int) -> bool:
        """
        Delete a note by id.

        The last note takes the freed slot (O(1), order not preserved).

        Returns:
            True if the note existed and was deleted
        """
        index = self._index_of(id)
        if index is None:
            return False

        last = self._count - 1
        if index < last:
            self._slots[index] = self._slots[last]
        self._slots[last] = None
        self._count -= 1
        logger.info("Deleted note %d", id)
        return True

    def reset(self) -> None:
        """Drop every note and start over with a fresh id counter."""
        self._slots = [None] * self._initial_capacity
        self._count = 0
        self._next_id = 1

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get(self, id: int) -> Optional[Note]:
        """Get a note by id, or None."""
        index = self._index_of(id)
        return None if index is None else self._slots[index]

    def notes(self) -> list[Note]:
        """Live notes in slot order."""
        return self._slots[:self._count]

    def __iter__(self) -> Iterator[Note]:
        return iter(self.notes())

    def __len__(self) -> int:
        return self._count

    def __contains__(self, id: object) -> bool:
        return isinstance(id, int) and self._index_of(id) is not None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _index_of(self, id: int) -> Optional[int]:
        if not valid_note_id(id):
            return None
        for i in range(self._count):
            if self._slots[i].id == id:
                return i
        return None

    def _ensure_room(self) -> None:
        """Grow the slot array if it is full."""
        if self._count < len(self._slots):
            return
        new_capacity = checked_growth(len(self._slots), GROWTH_FACTOR, self._max_notes)
        if new_capacity is None:
            raise StoreFullError("Failed to resize database for new note")
        self._slots.extend([None] * (new_capacity - len(self._slots)))
        logger.debug("Grew store capacity to %d", new_capacity)
