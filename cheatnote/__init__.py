"""
CheatNote

A local note store for command snippets and short notes: titled text
with comma-separated tags, kept in a single binary snapshot file and
searched by substring, exact match or regular expression.

Quick Start:
    from cheatnote import NoteStore, SearchQuery, filter_notes, load_snapshot, save_snapshot

    store = load_snapshot("notes.db")
    store.add("Git status", "git status -s", "git,cli")
    save_snapshot(store, "notes.db")
    hits = filter_notes(store, SearchQuery(pattern="git", case_insensitive=True))

CLI Usage:
    cheatnote add "Git status" "git status -s" "git,cli"
    cheatnote list -s "^git" -r -m
    cheatnote export notes.csv

Default Database:
    ~/.local/share/cheatnote/cheatnote.db (XDG_DATA_HOME respected).

Environment Variables:
    CHEATNOTE_DB          - Override database file location
    CHEATNOTE_CONFIG_DIR  - Override config directory
    CHEATNOTE_VERBOSE     - Set to 1 for debug logging
"""

from .errors import CheatnoteError, SnapshotWriteError, StoreFullError
from .note_store import NoteStore
from .search import SearchQuery, filter_notes, match_content, match_tags
from .snapshot import load_snapshot, save_snapshot
from .types import Note

__version__ = "3.0.0"
__all__ = [
    "Note",
    "NoteStore",
    "SearchQuery",
    "filter_notes",
    "match_content",
    "match_tags",
    "load_snapshot",
    "save_snapshot",
    "CheatnoteError",
    "StoreFullError",
    "SnapshotWriteError",
]
