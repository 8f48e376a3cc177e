# src/tasktrack/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Variables (all optional):
- TASKTRACK_APP_NAME         display name (default: tasktrack)
- TASKTRACK_LOG_LEVEL        console log level (default: INFO)
- TASKTRACK_DATA_DIR         local data directory (default: .local/tasktrack)
- TASKTRACK_STORAGE_BACKEND  "sqlite" or "json" (default: sqlite)
- TASKTRACK_TASKS_DB_PATH    SQLite file (default: <data_dir>/tasks.sqlite3)
- TASKTRACK_TASKS_JSON_PATH  JSON file (default: <data_dir>/tasks.json)
- TASKTRACK_STORAGE_KEY      slot the collection is stored under (default: tasks)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKTRACK"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    return v.strip()


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Storage ----
    data_dir: Path
    storage_backend: str
    tasks_db_path: Path
    tasks_json_path: Path
    storage_key: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasktrack")
        log_level = _env(_k("LOG_LEVEL"), "INFO").upper()

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasktrack"))
        storage_backend = _env(_k("STORAGE_BACKEND"), "sqlite").lower()
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        tasks_json_path = _env_path(_k("TASKS_JSON_PATH"), data_dir / "tasks.json")
        storage_key = _env(_k("STORAGE_KEY"), "tasks")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            storage_backend=storage_backend,
            tasks_db_path=tasks_db_path,
            tasks_json_path=tasks_json_path,
            storage_key=storage_key,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Real environment variables win over .env entries.
    load_dotenv(override=False)
    return Settings.from_env()
