"""
SQLite key-value medium for the local database.

Every business collection and singleton record is stored as one JSON
document under one string key. The file is opened once at startup and
closed on shutdown.

THREAD SAFETY:
    - One connection shared by the main thread and sync worker threads
      (opened with check_same_thread=False)
    - All access is serialized with a lock
    - set_many() writes every key in ONE transaction: all or nothing

FAIL FAST BEHAVIOR:
    - Any sqlite3 error is raised as StorageFailureError
    - Nothing is retried

Usage:
    store = SQLiteKeyValueStore("data/pos_terminal.db")
    store.initialize()

    store.set_many({"orders": "[]", "order_sequence": "1"})
    raw = store.get("orders")

    store.cleanup()
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional

from .exceptions import StorageFailureError


MEMORY_DATABASE = ":memory:"


class SQLiteKeyValueStore:
    """
    Durable string-keyed document store backed by SQLite.

    Attributes:
        database_path: Path to the database file (or ":memory:")
        is_initialized: True once the connection is open
    """

    def __init__(self, database_path: str | Path, logger: Optional[logging.Logger] = None):
        """
        Args:
            database_path: Path to the database file, or ":memory:"
            logger: Logger instance (optional)

        Note:
            This does NOT open the database - call initialize() to do that.
        """
        self._database_path = str(database_path)
        self._logger = logger or logging.getLogger("pos_terminal.core.kv_store")
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    @property
    def database_path(self) -> str:
        return self._database_path

    @property
    def is_initialized(self) -> bool:
        return self._connection is not None

    def initialize(self) -> None:
        """
        Open the database and create the schema if needed.

        Raises:
            RuntimeError: If already initialized
            StorageFailureError: If the database cannot be opened
        """
        if self._connection is not None:
            raise RuntimeError("Key-value store already initialized")

        self._logger.info(f"Opening local database: {self._database_path}")

        try:
            if self._database_path != MEMORY_DATABASE:
                Path(self._database_path).parent.mkdir(parents=True, exist_ok=True)

            connection = sqlite3.connect(self._database_path, check_same_thread=False)
            with connection:
                connection.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
        except (sqlite3.Error, OSError) as e:
            self._logger.critical(f"Cannot open local database: {e}")
            raise StorageFailureError("open", e)

        self._connection = connection

    def cleanup(self) -> None:
        """Close the database. Safe to call multiple times."""
        if self._connection is None:
            return

        with self._lock:
            try:
                self._connection.close()
                self._logger.info("Local database closed")
            except sqlite3.Error as e:
                self._logger.error(f"Error closing local database: {e}")
            self._connection = None

    def get(self, key: str) -> Optional[str]:
        """
        Read the document stored under ``key``.

        Returns:
            The stored string, or None if the key was never written
        """
        connection = self._require_connection()
        with self._lock:
            try:
                row = connection.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageFailureError(f"read of '{key}'", e)
        return row[0] if row else None

    def set_many(self, values: Mapping[str, str]) -> None:
        """
        Write several keys in one transaction.

        Either every key is written or none is.
        """
        if not values:
            return

        connection = self._require_connection()
        updated_at = datetime.now(timezone.utc).isoformat()
        rows = [(key, value, updated_at) for key, value in values.items()]

        with self._lock:
            try:
                with connection:
                    connection.executemany(
                        """
                        INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at
                        """,
                        rows,
                    )
            except sqlite3.Error as e:
                self._logger.error(f"Write of {sorted(values)} failed: {e}")
                raise StorageFailureError(f"write of {sorted(values)}", e)

    def delete_all(self) -> None:
        """Remove every key in one transaction."""
        connection = self._require_connection()
        with self._lock:
            try:
                with connection:
                    connection.execute("DELETE FROM kv_store")
            except sqlite3.Error as e:
                self._logger.error(f"Delete of all keys failed: {e}")
                raise StorageFailureError("delete of all keys", e)

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("Key-value store not initialized - call initialize() first")
        return self._connection

    def __enter__(self) -> "SQLiteKeyValueStore":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()
