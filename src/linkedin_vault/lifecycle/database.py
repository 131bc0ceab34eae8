"""SQLite document store connection for backup and snapshot records."""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Manages the SQLite connection shared by the lifecycle manager, the
    retention sweep and the HTTP handlers.

    Features:
    - WAL mode so readers never block the writer
    - Autocommit by default; ``transaction()`` groups multi-statement writes
    - A re-entrant lock so handler threads never interleave inside a transaction
    """

    def __init__(self, db_path: Path | str):
        """
        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def connect(self) -> sqlite3.Connection:
        """
        Open the connection on first use.

        Returns:
            SQLite connection object

        Raises:
            sqlite3.Error: If connection fails
        """
        if self._connection is not None:
            return self._connection

        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Connecting to database: {self.db_path}")
        self._connection = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,  # Handler threads share the connection under self._lock
            timeout=5.0,
            isolation_level=None,  # Autocommit; explicit BEGIN in transaction()
        )
        self._connection.row_factory = sqlite3.Row
        self._apply_pragmas()

        return self._connection

    def _apply_pragmas(self) -> None:
        cursor = self._connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        logger.debug("Applied PRAGMAs {'journal_mode': 'WAL', 'busy_timeout': 5000, 'foreign_keys': 'ON'}")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """
        Run several statements atomically.

        Usage:
            with db.transaction() as cursor:
                cursor.execute(...)
                cursor.execute(...)
            # Commits on success, rolls back on exception
        """
        with self._lock:
            connection = self.connect()
            cursor = connection.cursor()
            try:
                cursor.execute("BEGIN IMMEDIATE")
                yield cursor
                cursor.execute("COMMIT")
            except Exception:
                if connection.in_transaction:
                    connection.rollback()
                raise
            finally:
                cursor.close()

    def execute(self, sql: str, parameters=None) -> sqlite3.Cursor:
        """
        Execute a single statement in autocommit mode.

        Returns:
            Cursor object
        """
        with self._lock:
            cursor = self.connect().cursor()
            cursor.execute(sql, parameters or ())
            return cursor

    def run_script(self, sql: str) -> None:
        """
        Execute a multi-statement script atomically.

        executescript commits any open transaction first, so the script
        carries its own BEGIN/COMMIT.
        """
        with self._lock:
            connection = self.connect()
            try:
                connection.executescript(f"BEGIN;\n{sql}\nCOMMIT;")
            except sqlite3.Error:
                if connection.in_transaction:
                    connection.rollback()
                raise

    def fetch_one(self, sql: str, parameters=None) -> Optional[sqlite3.Row]:
        with self._lock:
            cursor = self.execute(sql, parameters)
            try:
                return cursor.fetchone()
            finally:
                cursor.close()

    def fetch_all(self, sql: str, parameters=None) -> list[sqlite3.Row]:
        with self._lock:
            cursor = self.execute(sql, parameters)
            try:
                return cursor.fetchall()
            finally:
                cursor.close()

    def close(self) -> None:
        """Checkpoint the WAL and close the connection."""
        with self._lock:
            if self._connection is None:
                return
            try:
                self._connection.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            except sqlite3.Error as e:
                logger.warning(f"Failed to checkpoint WAL: {e}")
            self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    def __enter__(self) -> "DatabaseConnection":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
