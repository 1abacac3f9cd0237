"""
Logging configuration for cheatnote.

Quiet by default: only warnings (such as a recovered corrupt snapshot)
reach stderr. The operations log always records mutations at INFO.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

OPS_LOG_FILENAME = "cheatnote-ops.log"


class _StderrHandler(logging.StreamHandler):
    """StreamHandler bound to whatever sys.stderr is at emit time."""

    def __init__(self):
        super().__init__(sys.stderr)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def _warning_handlers(logger: logging.Logger) -> list:
    return [h for h in logger.handlers if isinstance(h, _StderrHandler)]


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging to suppress verbose output.

    Warnings from cheatnote are still shown on stderr as
    ``Warning: <message>``.

    Args:
        quiet: If True, suppress verbose output. If False, show everything.
    """
    cn_logger = logging.getLogger("cheatnote")
    if quiet:
        warnings.filterwarnings("ignore")
    else:
        warnings.filterwarnings("default")

    if not _warning_handlers(cn_logger):
        handler = _StderrHandler()
        handler.setLevel(logging.WARNING if quiet else logging.INFO)
        handler.setFormatter(logging.Formatter("Warning: %(message)s"))
        cn_logger.addHandler(handler)
    if cn_logger.level == logging.NOTSET:
        cn_logger.setLevel(logging.WARNING if quiet else logging.INFO)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    cn_logger = logging.getLogger("cheatnote")
    for h in _warning_handlers(cn_logger):
        cn_logger.removeHandler(h)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = _StderrHandler()
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    cn_logger.setLevel(logging.DEBUG)


def configure_ops_log(log_dir):
    """Configure a persistent operations log beside the snapshot.

    Writes to {log_dir}/cheatnote-ops.log using a rotating file handler
    (1MB max, 3 backups). Returns the handler so it can be removed later.
    """
    log_path = Path(log_dir) / OPS_LOG_FILENAME
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    cn_logger = logging.getLogger("cheatnote")
    cn_logger.addHandler(handler)
    # Ensure INFO reaches the file even in quiet mode
    if cn_logger.level == logging.NOTSET or cn_logger.level > logging.INFO:
        cn_logger.setLevel(logging.INFO)

    return handler


def remove_ops_log(handler) -> None:
    """Detach and close a handler returned by configure_ops_log()."""
    if handler is None:
        return
    logging.getLogger("cheatnote").removeHandler(handler)
    handler.close()
