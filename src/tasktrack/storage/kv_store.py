# src/tasktrack/storage/kv_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
import sqlite3
import threading
import time
from pathlib import Path

from ..core.ports import KeyValueStore

logger = logging.getLogger(__name__)


class SqliteKeyValueStore:
    """
    SQLite key-value store.

    One table, one row per key. The value is opaque text (TaskStore writes a
    JSON array of task records).

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SqliteKeyValueStore ready db=%s", self._db_path)

    @property
    def path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    def read(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            cur = conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cur.fetchone()
            return str(row[0]) if row else None
        finally:
            conn.close()

    def write(self, key: str, value: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO kv(key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, time.time()),
            )
            conn.commit()
            logger.debug("kv write key=%s bytes=%d", key, len(value))
        finally:
            conn.close()


class JsonFileKeyValueStore:
    """
    Key-value store backed by a single JSON object file.

    Writes replace the file atomically (tmp file + os.replace). The file may
    contain personal notes, so it is made private on disk (best-effort).
    """

    def __init__(self, path: str | Path = "tasks.json") -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        logger.info("JsonFileKeyValueStore ready path=%s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        data = json.loads(self._path.read_text("utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def read(self, key: str) -> str | None:
        with self._lock:
            return self._read_all().get(key)

    def write(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value

            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, self._path)
            with contextlib.suppress(OSError):
                os.chmod(self._path, 0o600)
            logger.debug("kv write key=%s bytes=%d path=%s", key, len(value), self._path)


def open_kv_store(settings) -> KeyValueStore:
    """Build the backend selected by settings.storage_backend."""
    backend = str(getattr(settings, "storage_backend", "sqlite")).strip().lower()

    if backend == "sqlite":
        return SqliteKeyValueStore(settings.tasks_db_path)
    if backend == "json":
        return JsonFileKeyValueStore(settings.tasks_json_path)

    raise ValueError(f"Unknown storage backend: {backend!r} (expected 'sqlite' or 'json')")
