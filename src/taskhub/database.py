"""
Task Database Layer

Provides SQLite-backed storage for the single ``tasks`` table: schema creation,
first-boot seed rows, and the CRUD statements used by the REST handlers.
Storage faults are surfaced as StorageError; missing rows are reported as
None/False so handlers can tell the two apart.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

TASK_COLUMNS = "id, title, description, status, created_at"

SEED_TASKS = [
    ("Setup Development Environment", "Install and configure development tools", "completed"),
    ("Create API Documentation", "Document all API endpoints and responses", "in_progress"),
    ("Deploy to Production", "Deploy application to production environment", "pending"),
]


class StorageError(RuntimeError):
    """Any failure raised by the underlying storage engine."""


class TaskDatabase:
    """
    SQLite database holding the task collection.

    Features:
    - One shared connection reused for the process lifetime
    - Cross-thread access guarded by a re-entrant lock
    - Seed rows inserted only when the table is created
    - No retries: every sqlite3 error becomes a StorageError
    """

    def __init__(self, db_path: str, timeout_seconds: float = 5.0):
        """
        Open the database and create the schema if needed.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            timeout_seconds: How long a statement waits on a locked database

        Raises:
            StorageError: If the file cannot be opened or the schema created
        """
        self.db_path = db_path
        self.timeout_seconds = timeout_seconds
        self._connection_lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None

        if db_path != MEMORY_PATH:
            try:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"Failed to create database directory for {db_path}: {e}") from e

        self._initialize_database()

    def _initialize_database(self) -> None:
        """Open the connection, apply PRAGMAs and create the schema."""
        try:
            self._connection = sqlite3.connect(
                self.db_path,
                timeout=self.timeout_seconds,
                isolation_level=None,  # Autocommit mode
                check_same_thread=False  # Requests are served from a threadpool
            )
            self._connection.row_factory = sqlite3.Row

            cursor = self._connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute(f"PRAGMA busy_timeout={int(self.timeout_seconds * 1000)}")

            self._create_schema()

        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize database at {self.db_path}: {e}") from e

    def _create_schema(self) -> None:
        """Create the tasks table and seed it when this boot created it."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'tasks'"
            )
            table_exists = cursor.fetchone() is not None

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT DEFAULT 'pending',
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            if table_exists:
                logger.debug("Tasks table already present, skipping seed data")
                return

            cursor.execute("BEGIN")
            try:
                cursor.executemany(
                    "INSERT INTO tasks (title, description, status) VALUES (?, ?, ?)",
                    SEED_TASKS
                )
                cursor.execute("COMMIT")
            except sqlite3.Error:
                cursor.execute("ROLLBACK")
                raise
            logger.info(f"Created tasks table with {len(SEED_TASKS)} seed tasks")

    def _execute(self, query: str, params: tuple = ()) -> sqlite3.Cursor:
        """Run one statement on the shared connection, mapping driver errors."""
        if self._connection is None:
            raise StorageError("Database connection is closed")
        try:
            cursor = self._connection.cursor()
            cursor.execute(query, params)
            return cursor
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"] or "",
            "description": row["description"] or "",
            "status": row["status"] or "",
            "created_at": row["created_at"],
        }

    def list_tasks(self) -> List[Dict[str, Any]]:
        """
        Get all tasks, most recently created first.

        Returns:
            List of task dictionaries, empty when the table has no rows
        """
        with self._connection_lock:
            cursor = self._execute(f"SELECT {TASK_COLUMNS} FROM tasks ORDER BY id DESC")
            try:
                rows = cursor.fetchall()
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e
        return [self._row_to_task(row) for row in rows]

    def insert_task(self, title: str, description: str, status: str) -> Dict[str, Any]:
        """
        Insert a new task row.

        Args:
            title: Task title (stored as given, may be empty)
            description: Task description
            status: Task status, already defaulted by the caller

        Returns:
            The stored task including the assigned id and created_at
        """
        with self._connection_lock:
            cursor = self._execute(
                "INSERT INTO tasks (title, description, status) VALUES (?, ?, ?)",
                (title, description, status)
            )
            task_id = cursor.lastrowid
            task = self.get_task(task_id)

        if task is None:
            raise StorageError(f"Inserted task {task_id} could not be read back")
        return task

    def get_task(self, task_id: int) -> Optional[Dict[str, Any]]:
        """
        Get a single task by ID.

        Returns:
            Task dictionary, or None if no row has that id
        """
        with self._connection_lock:
            cursor = self._execute(
                f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            )
            try:
                row = cursor.fetchone()
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e
        if row is None:
            return None
        return self._row_to_task(row)

    def update_task(self, task_id: int, title: str, description: str,
                    status: str) -> Optional[Dict[str, Any]]:
        """
        Overwrite the mutable fields of a task in place.

        id and created_at are never touched.

        Returns:
            The refreshed task, or None if no row matched
        """
        with self._connection_lock:
            cursor = self._execute(
                "UPDATE tasks SET title = ?, description = ?, status = ? WHERE id = ?",
                (title, description, status, task_id)
            )
            if cursor.rowcount == 0:
                return None
            task = self.get_task(task_id)

        if task is None:
            raise StorageError(f"Updated task {task_id} could not be read back")
        return task

    def delete_task(self, task_id: int) -> bool:
        """
        Physically remove a task row.

        Returns:
            True if a row was deleted, False if no row matched
        """
        with self._connection_lock:
            cursor = self._execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cursor.rowcount > 0

    def close(self):
        """Close database connection."""
        with self._connection_lock:
            if self._connection:
                self._connection.close()
                self._connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
