"""
Database Service (DAL - Data Access Layer)
==========================================

SQLite access for learner progress. Each learner is one row holding the
progress snapshot as JSON.
"""

import json
import sqlite3
import logging
import threading
from typing import Optional, Dict, Any
from contextlib import contextmanager
from datetime import datetime, timezone

from exceptions import ProgressStorageError

logger = logging.getLogger("DB_SERVICE")


class DatabaseConnectionPool:
    """Simple per-thread connection pool for SQLite"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connections: Dict[int, sqlite3.Connection] = {}
        self._lock = threading.Lock()

    def get_connection(self) -> sqlite3.Connection:
        """Get thread-local connection"""
        thread_id = threading.get_ident()

        with self._lock:
            if thread_id not in self._connections:
                conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=10)
                conn.row_factory = sqlite3.Row
                self._connections[thread_id] = conn
            return self._connections[thread_id]

    def close_all(self):
        """Close all connections"""
        with self._lock:
            for conn in self._connections.values():
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.warning(f"⚠️ Error closing connection: {e}")
            self._connections.clear()


class BaseRepository:
    """
    Base repository with the shared cursor handling

    Subclasses name their table and key column.
    """

    def __init__(self, table_name: str, key_column: str, pool: DatabaseConnectionPool):
        self.table_name = table_name
        self.key_column = key_column
        self.pool = pool

    @contextmanager
    def _get_cursor(self):
        """Context manager for database cursor, commits on success"""
        conn = self.pool.get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"❌ Database error in {self.table_name}: {e}")
            raise ProgressStorageError(f"Database error in {self.table_name}: {e}") from e
        finally:
            cursor.close()

    def get_by_key(self, key: str) -> Optional[Dict[str, Any]]:
        with self._get_cursor() as cursor:
            cursor.execute(
                f"SELECT * FROM {self.table_name} WHERE {self.key_column} = ?",
                (key,)
            )
            row = cursor.fetchone()
            return dict(row) if row else None

    def count(self) -> int:
        """Count records in table"""
        with self._get_cursor() as cursor:
            cursor.execute(f"SELECT COUNT(*) FROM {self.table_name}")
            return cursor.fetchone()[0]


class ProgressRepository(BaseRepository):
    """Progress snapshots keyed by learner id"""

    def __init__(self, pool: DatabaseConnectionPool):
        super().__init__("learner_progress", "learner_id", pool)
        self.ensure_schema()

    def ensure_schema(self) -> None:
        with self._get_cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS learner_progress (
                    learner_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def load(self, learner_id: str) -> Optional[Dict[str, Any]]:
        """
        Stored progress as a dict, or None for an unknown learner

        Raises:
            ProgressStorageError: If the row cannot be read or decoded
        """
        row = self.get_by_key(learner_id)
        if row is None:
            return None
        try:
            return json.loads(row["data"])
        except json.JSONDecodeError as e:
            raise ProgressStorageError(f"Corrupt progress for {learner_id}: {e}") from e

    def save(self, learner_id: str, data: Dict[str, Any]) -> None:
        payload = json.dumps(data, ensure_ascii=False, default=str)
        now = datetime.now(timezone.utc).isoformat()
        with self._get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO learner_progress (learner_id, data, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(learner_id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (learner_id, payload, now)
            )


# Global pool instance
_pool: Optional[DatabaseConnectionPool] = None


def init_pool(db_path: str) -> DatabaseConnectionPool:
    """Initialize global connection pool"""
    global _pool
    if _pool is not None:
        _pool.close_all()
    _pool = DatabaseConnectionPool(db_path)
    return _pool


def get_pool() -> DatabaseConnectionPool:
    """Get global connection pool, opening the configured database on first use"""
    global _pool
    if _pool is None:
        from config import PROGRESS_DB_PATH
        init_pool(PROGRESS_DB_PATH)
    return _pool


def close_pool():
    """Close global connection pool"""
    global _pool
    if _pool:
        _pool.close_all()
        _pool = None
