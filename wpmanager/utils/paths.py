"""File path resolution using platformdirs.

Persistent state (SQLite database, generated encryption key) lives in the
platform user data directory unless WPMANAGER_DATA_DIR points elsewhere:
  macOS: ~/Library/Application Support/wpmanager/
  Linux: ~/.local/share/wpmanager/
  Windows: %LOCALAPPDATA%/wpmanager/
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "wpmanager"


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB, key file)."""
    override = os.environ.get("WPMANAGER_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "wpmanager.db"


def ensure_data_dir() -> Path:
    """Create the data directory if it doesn't exist and return it."""
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir
