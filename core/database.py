"""
Harvester Database
Shared SQLite connection for the correction tables and the place taxonomy.

One connection per database file, guarded by a reentrant lock so the weather
worker threads and the request thread can share it.
"""
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path

from utils.logger import logWarn


class HarvesterDatabase:
    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.RLock()
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = self._connect_with_retry(db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")

    def _connect_with_retry(self, db_path: str, max_retries: int = 5) -> sqlite3.Connection:
        """Connect to SQLite with exponential backoff on 'database is locked'."""
        delay = 0.1
        for attempt in range(max_retries):
            try:
                return sqlite3.connect(db_path, check_same_thread=False)
            except sqlite3.OperationalError as e:
                if "database is locked" in str(e) and attempt < max_retries - 1:
                    logWarn(f"Database locked, retrying in {delay:.1f}s (attempt {attempt + 1}/{max_retries})")
                    time.sleep(delay)
                    delay *= 2
                else:
                    raise

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @contextmanager
    def transaction(self):
        """Serialize a unit of work; commit on success, roll back on error."""
        with self._lock:
            try:
                yield self.conn
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise

    def execute(self, sql: str, params=()):
        with self._lock:
            return self.conn.execute(sql, params)

    def query_all(self, sql: str, params=()):
        with self._lock:
            return [dict(row) for row in self.conn.execute(sql, params).fetchall()]

    def query_one(self, sql: str, params=()):
        with self._lock:
            row = self.conn.execute(sql, params).fetchone()
            return dict(row) if row else None

    def close(self) -> None:
        with self._lock:
            self.conn.close()
