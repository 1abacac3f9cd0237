"""
Configuration management for cheatnote.

Two things live here:

- where the snapshot file is (``CHEATNOTE_DB`` overrides the platform
  data directory), and
- user preferences, stored as a TOML file in the config directory.
"""

import os
import platform
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w

from .types import INITIAL_CAPACITY, MAX_NOTES


APP_NAME = "cheatnote"
SNAPSHOT_FILENAME = "cheatnote.db"
CONFIG_FILENAME = "cheatnote.toml"
CONFIG_VERSION = 1

DB_ENV_VAR = "CHEATNOTE_DB"
CONFIG_DIR_ENV_VAR = "CHEATNOTE_CONFIG_DIR"


# -----------------------------------------------------------------------------
# Paths
# -----------------------------------------------------------------------------

def get_data_dir() -> Optional[Path]:
    """Platform data directory for cheatnote, or None if there is no home."""
    if platform.system() == "Windows":
        base = os.environ.get("APPDATA")
        return Path(base) / APP_NAME if base else None

    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    home = os.environ.get("HOME")
    if home:
        return Path(home) / ".local" / "share" / APP_NAME
    return None


def get_snapshot_path() -> Path:
    """
    Resolve the snapshot file location.

    Priority:
    1. CHEATNOTE_DB environment variable
    2. Platform data directory (XDG / APPDATA)
    3. ./cheatnote.db
    """
    env = os.environ.get(DB_ENV_VAR)
    if env:
        return Path(env)
    data_dir = get_data_dir()
    if data_dir is None:
        return Path(SNAPSHOT_FILENAME)
    return data_dir / SNAPSHOT_FILENAME


def get_config_dir() -> Path:
    """Directory holding cheatnote.toml."""
    env = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env:
        return Path(env)
    if platform.system() == "Windows" and os.environ.get("APPDATA"):
        return Path(os.environ["APPDATA"]) / APP_NAME
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return Path.home() / ".config" / APP_NAME


# -----------------------------------------------------------------------------
# Preferences
# -----------------------------------------------------------------------------

@dataclass
class CheatnoteConfig:
    """User preferences."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    # [display]
    color: bool = True
    compact: bool = False

    # [store]
    initial_capacity: int = INITIAL_CAPACITY

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def _clamp_capacity(value) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return INITIAL_CAPACITY
    return max(1, min(value, MAX_NOTES))


def load_config(config_dir: Path) -> CheatnoteConfig:
    """
    Load configuration from a config directory.

    A missing file yields the defaults.

    Raises:
        ValueError: If config is invalid or from a newer version
    """
    config_path = config_dir / CONFIG_FILENAME

    if not config_path.exists():
        return CheatnoteConfig(path=config_dir)

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid config {config_path}: {e}") from e

    store = data.get("store", {})
    display = data.get("display", {})

    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    return CheatnoteConfig(
        path=config_dir,
        version=version,
        created=store.get("created", ""),
        color=bool(display.get("color", True)),
        compact=bool(display.get("compact", False)),
        initial_capacity=_clamp_capacity(store.get("initial_capacity", INITIAL_CAPACITY)),
    )


def save_config(config: CheatnoteConfig) -> None:
    """
    Save configuration to the config directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
            "initial_capacity": config.initial_capacity,
        },
        "display": {
            "color": config.color,
            "compact": config.compact,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(config_dir: Path) -> CheatnoteConfig:
    """Load existing config or write one with defaults."""
    config = load_config(config_dir)
    if not config.exists():
        save_config(config)
    return config
