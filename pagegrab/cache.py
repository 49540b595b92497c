"""SQLite-backed record of finished downloads keyed by source URL."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Optional, Union

from .errors import StorageFailure
from .models import CacheRecord

logger = logging.getLogger("pagegrab.cache")

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS history (
    url TEXT PRIMARY KEY,
    file_path TEXT,
    title TEXT,
    created_at INTEGER
)
"""


class ResultCache:
    """Upsert-only mapping from URL to the artifact produced for it.

    Records never expire; callers decide whether the referenced file is still
    usable.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            if str(self.path) != ":memory:":
                self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute(_CREATE_TABLE)
            conn.commit()
            self._conn = conn
            logger.debug("Opened result cache at %s", self.path)
        return self._conn

    def get(self, url: str) -> Optional[CacheRecord]:
        try:
            with self._lock:
                row = self._connection().execute(
                    "SELECT url, file_path, title, created_at FROM history WHERE url = ?",
                    (url,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageFailure(f"Failed to read cache entry for {url}: {exc}") from exc
        if row is None:
            return None
        return CacheRecord(
            url=row["url"],
            file_path=row["file_path"],
            title=row["title"] or "",
            created_at=row["created_at"],
        )

    def save(self, url: str, file_path: Union[str, Path], title: str = "") -> CacheRecord:
        record = CacheRecord(url=url, file_path=str(file_path), title=title, created_at=int(time.time() * 1000))
        try:
            with self._lock:
                conn = self._connection()
                conn.execute(
                    "INSERT OR REPLACE INTO history (url, file_path, title, created_at) VALUES (?, ?, ?, ?)",
                    (record.url, record.file_path, record.title, record.created_at),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageFailure(f"Failed to save cache entry for {url}: {exc}") from exc
        return record

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
