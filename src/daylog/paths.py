"""Where daylog keeps its database, preferences and log file."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "Daylog"
DATA_DIR_ENV = "DAYLOG_DATA_DIR"

DB_FILENAME = "daylog.sqlite3"
PREFERENCES_FILENAME = "preferences.json"
LOG_FILENAME = "daylog.log"


def get_data_dir() -> Path:
    """Return the data directory, creating it on first use.

    ``DAYLOG_DATA_DIR`` overrides the per-user platform location, which lets a
    second timeline live next to the default one.
    """
    override = os.environ.get(DATA_DIR_ENV, "").strip()
    if override:
        path = Path(override).expanduser()
    else:
        path = PlatformDirs(appname=APP_NAME, appauthor=False, roaming=True).user_data_path
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / DB_FILENAME


def get_preferences_path() -> Path:
    return get_data_dir() / PREFERENCES_FILENAME


def get_log_path() -> Path:
    return get_data_dir() / LOG_FILENAME
