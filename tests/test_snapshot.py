"""
Snapshot persistence tests.

Covers round trips, the on-disk layout, crash safety of the atomic
rename, and recovery from damaged files.
"""

import logging
import os
import struct
from pathlib import Path
from unittest.mock import patch

import pytest

from cheatnote.errors import SnapshotWriteError
from cheatnote.note_store import NoteStore
from cheatnote.snapshot import (
    HEADER_SIZE,
    decode_note,
    encode_header,
    encode_note,
    load_snapshot,
    save_snapshot,
    snapshot_size,
    temp_path_for,
)
from cheatnote.types import MAX_NOTES, RECORD_FORMAT, RECORD_SIZE, Note


def _write_raw(path: Path, count: int, next_id: int, records: bytes = b"") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_header(count, next_id) + records)


class _RecordingFile:
    """Binary file that remembers the size of every read."""

    def __init__(self, path: Path):
        self._f = open(path, "rb")
        self.sizes = []

    def read(self, size=-1):
        self.sizes.append(size)
        return self._f.read(size)

    def fileno(self):
        return self._f.fileno()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self._f.close()


class TestRoundTrip:
    """Saving then loading gives back the same store."""

    def test_notes_and_counter_preserved(self, tmp_path, populated_store):
        path = tmp_path / "notes.db"
        populated_store.delete(2)
        save_snapshot(populated_store, path)

        loaded = load_snapshot(path)
        assert loaded.count == 2
        assert loaded.next_id == 4
        assert [n.to_dict() for n in loaded] == [n.to_dict() for n in populated_store]

    def test_file_size(self, tmp_path, populated_store):
        path = tmp_path / "notes.db"
        save_snapshot(populated_store, path)
        assert path.stat().st_size == snapshot_size(3) == HEADER_SIZE + 3 * RECORD_SIZE

    def test_empty_store_keeps_counter(self, tmp_path, populated_store):
        path = tmp_path / "notes.db"
        for note_id in (1, 2, 3):
            populated_store.delete(note_id)
        save_snapshot(populated_store, path)

        loaded = load_snapshot(path)
        assert loaded.count == 0
        assert loaded.next_id == 4
        assert loaded.add("fresh", "c") == 4

    def test_multiline_and_unicode(self, tmp_path, store):
        store.add("Ünïcode ✓", "line one\nline two\n\ttabbed", "µ,ß")
        path = tmp_path / "notes.db"
        save_snapshot(store, path)
        note = load_snapshot(path).get(1)
        assert note.title == "Ünïcode ✓"
        assert note.content == "line one\nline two\n\ttabbed"
        assert note.tags == "µ,ß"

    def test_capacity_leaves_room(self, tmp_path):
        store = NoteStore(initial_capacity=2)
        for i in range(5):
            store.add(f"t{i}", "c")
        path = tmp_path / "notes.db"
        save_snapshot(store, path)

        loaded = load_snapshot(path, initial_capacity=2)
        assert loaded.capacity >= 10
        assert loaded.count == 5


class TestRecordCodec:
    """Fixed-size record encoding."""

    def test_record_is_fixed_size(self):
        assert len(encode_note(Note(1, "t", "c"))) == RECORD_SIZE
        assert len(encode_note(Note(2, "t" * 255, "c" * 8191, "g" * 511))) == RECORD_SIZE

    def test_decode_stops_at_nul(self):
        note = decode_note(encode_note(Note(7, "title", "body", "tag", 10, 20)))
        assert note == Note(7, "title", "body", "tag", 10, 20)

    def test_decode_unterminated_buffer(self):
        # A title buffer filled to the brim loses its last byte
        raw = struct.pack(RECORD_FORMAT, 1, b"x" * 256, b"c", b"", 0, 0)
        assert decode_note(raw).title == "x" * 255


class TestCrashSafety:
    """A failed save never damages the previous snapshot."""

    def test_failed_rename_keeps_old_file(self, tmp_path, populated_store):
        path = tmp_path / "notes.db"
        save_snapshot(populated_store, path)
        before = path.read_bytes()

        populated_store.add("new", "note")
        with patch("cheatnote.snapshot.os.replace", side_effect=OSError("disk gone")):
            with pytest.raises(SnapshotWriteError, match="update database file"):
                save_snapshot(populated_store, path)

        assert path.read_bytes() == before
        assert not temp_path_for(path).exists()
        assert load_snapshot(path).count == 3

    def test_failed_write_removes_temp(self, tmp_path, populated_store):
        path = tmp_path / "notes.db"
        with patch("cheatnote.snapshot.encode_note", side_effect=OSError("no space")):
            with pytest.raises(SnapshotWriteError, match="write database records"):
                save_snapshot(populated_store, path)
        assert not path.exists()
        assert not temp_path_for(path).exists()

    def test_failed_fsync(self, tmp_path, populated_store):
        path = tmp_path / "notes.db"
        with patch("cheatnote.snapshot.os.fsync", side_effect=OSError("io error")):
            with pytest.raises(SnapshotWriteError):
                save_snapshot(populated_store, path)
        assert not path.exists()
        assert not temp_path_for(path).exists()

    def test_creates_parent_directories(self, tmp_path, store):
        path = tmp_path / "a" / "b" / "notes.db"
        store.add("t", "c")
        save_snapshot(store, path)
        assert path.exists()
        if os.name == "posix":
            assert (path.parent.stat().st_mode & 0o777) == 0o700

    def test_directory_blocked_by_file(self, tmp_path, store):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(SnapshotWriteError, match="create database directory"):
            save_snapshot(store, blocker / "notes.db")

    def test_overwrites_existing(self, tmp_path, populated_store):
        path = tmp_path / "notes.db"
        save_snapshot(populated_store, path)
        populated_store.delete(1)
        save_snapshot(populated_store, path)
        assert load_snapshot(path).count == 2


class TestRecovery:
    """Damaged snapshots load as an empty store with a warning."""

    def test_missing_file(self, tmp_path):
        store = load_snapshot(tmp_path / "nope.db")
        assert store.count == 0
        assert store.next_id == 1

    def test_truncated_header(self, tmp_path, caplog):
        path = tmp_path / "notes.db"
        path.write_bytes(b"\x01\x02\x03")
        with caplog.at_level(logging.WARNING, logger="cheatnote"):
            store = load_snapshot(path)
        assert store.count == 0
        assert "header corrupted" in caplog.text

    def test_zero_next_id(self, tmp_path, caplog):
        path = tmp_path / "notes.db"
        _write_raw(path, 0, 0)
        with caplog.at_level(logging.WARNING, logger="cheatnote"):
            store = load_snapshot(path)
        assert store.next_id == 1
        assert "parameters invalid" in caplog.text

    def test_count_over_ceiling(self, tmp_path, caplog):
        path = tmp_path / "notes.db"
        _write_raw(path, MAX_NOTES + 1, 5)
        with caplog.at_level(logging.WARNING, logger="cheatnote"):
            store = load_snapshot(path)
        assert store.count == 0
        assert "parameters invalid" in caplog.text

    def test_short_records(self, tmp_path, caplog):
        path = tmp_path / "notes.db"
        record = encode_note(Note(1, "t", "c"))
        _write_raw(path, 2, 3, record)
        with caplog.at_level(logging.WARNING, logger="cheatnote"):
            store = load_snapshot(path)
        assert store.count == 0
        assert store.next_id == 1
        assert "records corrupted" in caplog.text

    def test_anomalous_records_kept(self, tmp_path, caplog):
        path = tmp_path / "notes.db"
        records = (
            encode_note(Note(0, "zero id", "c", "", 1, 1))
            + encode_note(Note(2, "negative", "c", "", -5, 1))
            + encode_note(Note(3, "fine", "c", "", 1, 1))
        )
        _write_raw(path, 3, 4, records)
        with caplog.at_level(logging.WARNING, logger="cheatnote"):
            store = load_snapshot(path)
        assert store.count == 3
        assert "Found 2 possibly corrupted record(s)" in caplog.text

    def test_count_larger_than_file(self, tmp_path, caplog):
        path = tmp_path / "notes.db"
        path.write_bytes(encode_header(MAX_NOTES, 5) + b"x" * 100)
        recorder = _RecordingFile(path)
        with patch("cheatnote.snapshot.open", create=True, return_value=recorder):
            with caplog.at_level(logging.WARNING, logger="cheatnote"):
                store = load_snapshot(path)
        # The header's count is checked against the file size before reading
        assert max(recorder.sizes) <= HEADER_SIZE
        assert store.count == 0
        assert store.next_id == 1
        assert "records corrupted" in caplog.text

    def test_reset_after_load_uses_initial_capacity(self, tmp_path, populated_store):
        path = tmp_path / "notes.db"
        save_snapshot(populated_store, path)
        loaded = load_snapshot(path, initial_capacity=4)
        loaded.reset()
        assert loaded.capacity == 4

    def test_trailing_bytes_ignored(self, tmp_path):
        path = tmp_path / "notes.db"
        _write_raw(path, 1, 2, encode_note(Note(1, "t", "c")) + b"garbage")
        assert load_snapshot(path).count == 1

    def test_fresh_store_uses_initial_capacity(self, tmp_path):
        path = tmp_path / "notes.db"
        path.write_bytes(b"")
        assert load_snapshot(path, initial_capacity=8).capacity == 8
