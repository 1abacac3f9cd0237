"""
Shared pytest fixtures for cheatnote tests.

Every test gets its own database and config directory so nothing touches
the user's real notes.
"""

from pathlib import Path

import pytest

from cheatnote.note_store import NoteStore


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point CHEATNOTE_DB and CHEATNOTE_CONFIG_DIR into tmp_path."""
    db_path = tmp_path / "data" / "cheatnote.db"
    monkeypatch.setenv("CHEATNOTE_DB", str(db_path))
    monkeypatch.setenv("CHEATNOTE_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.delenv("CHEATNOTE_VERBOSE", raising=False)
    return db_path


@pytest.fixture
def db_path(isolated_env) -> Path:
    return isolated_env


@pytest.fixture
def store() -> NoteStore:
    return NoteStore()


@pytest.fixture
def populated_store() -> NoteStore:
    """Store with three notes, ids 1..3."""
    s = NoteStore()
    s.add("Git status", "git status -s", "git,cli")
    s.add("List files", "ls -la\nls -lh", "shell")
    s.add("Docker ps", "docker ps -a", "docker,cli")
    return s
