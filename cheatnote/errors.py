"""
Errors for cheatnote.

Validation problems are reported as return values, not exceptions. The
exceptions here are the fatal ones: the store cannot grow, or a snapshot
cannot be written. Corrupt snapshots are recovered where they are read.

Also logs full stack traces for debugging while showing clean messages
to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class CheatnoteError(Exception):
    """Base class for cheatnote errors."""


class StoreFullError(CheatnoteError):
    """The store is at its ceiling or cannot allocate more slots."""


class SnapshotWriteError(CheatnoteError):
    """Saving the snapshot failed; the previous snapshot is still in place."""


ERROR_LOG_FILENAME = "cheatnote-errors.log"


def _error_log_path(db_path: Optional[Path] = None) -> Path:
    """Resolve error log path beside the database, respecting CHEATNOTE_DB."""
    if db_path is None:
        from .config import get_snapshot_path
        db_path = get_snapshot_path()
    return Path(db_path).parent / ERROR_LOG_FILENAME


def log_exception(
    exc: Exception,
    context: str = "",
    db_path: Optional[Path] = None,
) -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)
        db_path: Database in use; the log goes beside it

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path(db_path)
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(exc)))
    except OSError:
        pass  # Can't write error log; don't crash over it
    return log_path
