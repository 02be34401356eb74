# =============================================================================
# survey_core/offline/local_database.py
# Local SQLite Database for Pending Survey Responses
# =============================================================================
"""
LocalDatabase - primary on-device store for survey responses awaiting delivery.

Features:
- Automatic schema creation
- Commit per write (entries survive a killed process)
- Pending/synced filter and delete-by-id
- Persisted app settings (offline mode flag)
"""

from __future__ import annotations
import sqlite3
import threading
import json
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional
import logging

from survey_core.errors import StorageUnavailableError
from survey_core.offline.records import PRIMARY_SOURCE, QueuedSubmission

logger = logging.getLogger(__name__)


class LocalDatabase:
    """
    Local SQLite database holding survey responses until they reach Supabase.
    """

    DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "local_data" / "survey_queue.db"

    SCHEMA = {
        "pending_responses": """
            CREATE TABLE IF NOT EXISTS pending_responses (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                payload_json TEXT NOT NULL,
                enqueued_at INTEGER NOT NULL,
                synced INTEGER NOT NULL DEFAULT 0
            )
        """,
        "idx_pending_responses_synced": """
            CREATE INDEX IF NOT EXISTS idx_pending_responses_synced
            ON pending_responses (synced)
        """,
        "idx_pending_responses_enqueued_at": """
            CREATE INDEX IF NOT EXISTS idx_pending_responses_enqueued_at
            ON pending_responses (enqueued_at)
        """,
        "app_settings": """
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
    }

    DEFAULT_TIMEOUT = 5.0       # Seconds to wait on a locked database

    def __init__(self, db_path: Optional[Path] = None, timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize local database.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait for another connection's lock
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.timeout = timeout
        self._local = threading.local()
        self._initialized = False

    def _unavailable(self, action: str, error: Exception) -> StorageUnavailableError:
        return StorageUnavailableError(
            f"Local database could not {action}: {error}",
            store=PRIMARY_SOURCE,
            path=str(self.db_path),
        )

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(
                str(self.db_path), timeout=self.timeout, check_same_thread=False
            )
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA synchronous = FULL")
            self._local.connection = connection
        return self._local.connection

    @contextmanager
    def transaction(self, action: str = "write"):
        """
        Context manager for database transactions.

        sqlite3/OS failures are raised as StorageUnavailableError.
        """
        try:
            conn = self._get_connection()
        except (sqlite3.Error, OSError) as e:
            raise self._unavailable("open", e) from e

        try:
            yield conn
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            conn.rollback()
            raise self._unavailable(action, e) from e

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        with self.transaction("create schema") as conn:
            for name, schema in self.SCHEMA.items():
                conn.execute(schema)
                logger.debug(f"Created/verified: {name}")

        self._initialized = True
        logger.info(f"Local database initialized at: {self.db_path}")

    def query(self, sql: str, params: Optional[List] = None) -> List[sqlite3.Row]:
        """Execute a read query."""
        self.initialize()
        try:
            cursor = self._get_connection().execute(sql, params or [])
            return cursor.fetchall()
        except (sqlite3.Error, OSError) as e:
            raise self._unavailable("read", e) from e

    def execute(self, sql: str, params: Optional[List] = None, action: str = "write") -> int:
        """Execute a write statement and return the affected row count."""
        self.initialize()
        with self.transaction(action) as conn:
            cursor = conn.execute(sql, params or [])
            return cursor.rowcount

    # =========================================================================
    # PENDING RESPONSES
    # =========================================================================

    def insert_submission(self, submission: QueuedSubmission) -> None:
        """Persist a new queued submission."""
        self.execute(
            """
            INSERT INTO pending_responses (id, payload_json, enqueued_at, synced)
            VALUES (?, ?, ?, ?)
            """,
            [
                submission.id,
                json.dumps(submission.payload),
                submission.enqueued_at,
                int(submission.synced),
            ],
            action="store response",
        )
        logger.info(f"Response saved to local database: {submission.id}")

    def get_pending_submissions(self) -> List[QueuedSubmission]:
        """Get unsynced submissions, oldest first."""
        rows = self.query(
            """
            SELECT id, payload_json, enqueued_at, synced FROM pending_responses
            WHERE synced = 0
            ORDER BY enqueued_at ASC, seq ASC
            """
        )
        return [
            QueuedSubmission(
                id=row["id"],
                payload=json.loads(row["payload_json"]),
                enqueued_at=row["enqueued_at"],
                synced=bool(row["synced"]),
                source=PRIMARY_SOURCE,
            )
            for row in rows
        ]

    def has_submission(self, submission_id: str) -> bool:
        rows = self.query("SELECT 1 FROM pending_responses WHERE id = ?", [submission_id])
        return bool(rows)

    def mark_synced(self, submission_id: str) -> bool:
        """Mark a submission as synced. Missing ids are ignored."""
        return self.execute(
            "UPDATE pending_responses SET synced = 1 WHERE id = ?",
            [submission_id],
            action="mark response synced",
        ) > 0

    def delete_submission(self, submission_id: str) -> bool:
        """Delete a submission. Missing ids are ignored."""
        return self.execute(
            "DELETE FROM pending_responses WHERE id = ?",
            [submission_id],
            action="delete response",
        ) > 0

    def delete_synced(self) -> int:
        """Remove submissions left marked as synced."""
        return self.execute(
            "DELETE FROM pending_responses WHERE synced = 1",
            action="purge synced responses",
        )

    def clear_submissions(self) -> int:
        """Remove every queued submission."""
        return self.execute("DELETE FROM pending_responses", action="clear responses")

    def get_pending_count(self) -> int:
        """Get count of pending submissions."""
        result = self.query("SELECT COUNT(*) AS count FROM pending_responses WHERE synced = 0")
        return result[0]["count"] if result else 0

    def exists(self) -> bool:
        """True once the database file has been created."""
        return self.db_path.exists()

    def database_size(self) -> int:
        """Size of the database file in bytes."""
        try:
            return self.db_path.stat().st_size
        except OSError:
            return 0

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an app setting."""
        result = self.query("SELECT value FROM app_settings WHERE key = ?", [key])
        if result:
            try:
                return json.loads(result[0]["value"])
            except json.JSONDecodeError:
                return result[0]["value"]
        return default

    def set_setting(self, key: str, value: Any) -> None:
        """Set an app setting."""
        self.execute(
            """
            INSERT OR REPLACE INTO app_settings (key, value, updated_at)
            VALUES (?, ?, ?)
            """,
            [key, json.dumps(value), datetime.now().isoformat()],
            action="save setting",
        )

    def close(self) -> None:
        """Close this thread's database connection."""
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            self._local.connection = None

