# -*- coding: utf-8 -*-
"""Key-value persistence for capability tables and saved searches.

Stores deal in bytes; callers serialize their own values. Storage failures
are logged and reported as a miss rather than raised, like the rest of the
cache layer.
"""

import os
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from logging_config import get_logger

_logger = get_logger('cache')


class MemoryStore:
    """In-process store, used in tests and when persistence is disabled."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def save(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = '') -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))


class SqliteStore:
    """SQLite-backed store with one ``kv`` table.

    Thread-safe with WAL mode for better concurrency.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.RLock()
        self._conn = None
        self._initialized = False
        self._init_db()

    def _init_db(self):
        """Initialize the database schema."""
        with self._lock:
            try:
                directory = os.path.dirname(self.db_path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
                self._conn.execute("PRAGMA journal_mode=WAL")
                self._conn.execute("PRAGMA synchronous=NORMAL")
                self._conn.execute('''
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value BLOB NOT NULL,
                        updated_at TEXT
                    )
                ''')
                self._conn.execute('''
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INTEGER PRIMARY KEY
                    )
                ''')
                self._conn.execute('INSERT OR IGNORE INTO schema_version (version) VALUES (?)', (self.SCHEMA_VERSION,))
                self._conn.commit()
                self._initialized = True
            except sqlite3.Error as e:
                _logger.error(f"Store init error for {self.db_path}: {e}")
                self._initialized = False

    def is_available(self) -> bool:
        return self._initialized and self._conn is not None

    def load(self, key: str) -> Optional[bytes]:
        if not self.is_available():
            return None
        with self._lock:
            try:
                row = self._conn.execute('SELECT value FROM kv WHERE key = ?', (key,)).fetchone()
                return bytes(row[0]) if row else None
            except sqlite3.Error as e:
                _logger.error(f"Store load error for {key}: {e}")
                return None

    def save(self, key: str, value: bytes) -> None:
        if not self.is_available():
            return
        with self._lock:
            try:
                self._conn.execute(
                    'INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)',
                    (key, sqlite3.Binary(value), datetime.now(timezone.utc).isoformat()),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                _logger.error(f"Store save error for {key}: {e}")

    def delete(self, key: str) -> None:
        if not self.is_available():
            return
        with self._lock:
            try:
                self._conn.execute('DELETE FROM kv WHERE key = ?', (key,))
                self._conn.commit()
            except sqlite3.Error as e:
                _logger.error(f"Store delete error for {key}: {e}")

    def keys(self, prefix: str = '') -> List[str]:
        if not self.is_available():
            return []
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key", (len(prefix), prefix)
                ).fetchall()
                return [row[0] for row in rows]
            except sqlite3.Error as e:
                _logger.error(f"Store keys error: {e}")
                return []

    def close(self):
        """Close the database connection."""
        with self._lock:
            if self._conn:
                try:
                    # Checkpoint WAL to main database before closing
                    self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                    self._conn.close()
                except sqlite3.Error as e:
                    _logger.warning(f"Store close error: {e}")
                self._conn = None
                self._initialized = False
