"""
This module defines the PersistenceService for notification state.
"""

import json
import sqlite3
from datetime import date
from typing import Any, List, Optional

from ..config import STATE_DB_PATH
from ..exceptions import StateStoreError
from ..models import NotificationState

SNAPSHOT_MAX_BYTES = 3500


def truncate_snapshot(snapshot: Any, max_bytes: int = SNAPSHOT_MAX_BYTES) -> str:
    """Serializes a snapshot to JSON and cuts it to at most max_bytes of UTF-8."""
    raw = snapshot if isinstance(snapshot, str) else json.dumps(snapshot, ensure_ascii=False)
    encoded = raw.encode("utf-8")
    if len(encoded) <= max_bytes:
        return raw
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


class PersistenceService:
    """Handles all database interactions for the application."""

    def __init__(self, db_path: str = STATE_DB_PATH, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._cursor: Optional[sqlite3.Cursor] = None

    def __enter__(self) -> "PersistenceService":
        """Establishes the database connection."""
        try:
            self._conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise StateStoreError(f"Could not open state database {self.db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._cursor = self._conn.cursor()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Commits changes and closes the connection."""
        conn, self._conn, self._cursor = self._conn, None, None
        if conn is None:
            return
        try:
            if exc_type is None:
                conn.commit()
            else:
                conn.rollback()
        except sqlite3.Error as e:
            raise StateStoreError(f"Could not finish transaction on {self.db_path}: {e}") from e
        finally:
            conn.close()

    def _get_cursor(self) -> sqlite3.Cursor:
        """Returns the cursor, ensuring the connection is open."""
        if self._cursor is None:
            raise RuntimeError("Database connection is not open. Use 'with' statement.")
        return self._cursor

    def init_db(self) -> None:
        """Initialize SQLite schema if not exists."""
        cur = self._get_cursor()
        try:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS notification_state (
                    address_key TEXT PRIMARY KEY,
                    last_notified_date TEXT,
                    last_snapshot TEXT,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                    level TEXT NOT NULL,
                    message TEXT NOT NULL,
                    logger_name TEXT
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS notification_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    address_key TEXT NOT NULL,
                    recipient TEXT NOT NULL,
                    announce_date TEXT,
                    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                    status TEXT NOT NULL,
                    error_message TEXT,
                    message_id TEXT
                )
                """
            )
        except sqlite3.Error as e:
            raise StateStoreError(f"Could not initialise state database: {e}") from e

    def get_state(self, address_key: str) -> Optional[NotificationState]:
        """Retrieves the stored notification state for an address, if any."""
        cur = self._get_cursor()
        try:
            cur.execute(
                "SELECT address_key, last_notified_date, last_snapshot FROM notification_state WHERE address_key = ?",
                (address_key,),
            )
            row = cur.fetchone()
        except sqlite3.Error as e:
            raise StateStoreError(f"Could not read state for {address_key}: {e}") from e
        if not row:
            return None
        last = row["last_notified_date"]
        try:
            last_notified_date = date.fromisoformat(last) if last else None
        except (TypeError, ValueError) as e:
            raise StateStoreError(f"Stored date for {address_key} is unreadable: {last!r}") from e
        return NotificationState(
            address_key=row["address_key"],
            last_notified_date=last_notified_date,
            last_snapshot=row["last_snapshot"] or "",
        )

    def put_state(self, state: NotificationState) -> bool:
        """
        Stores the notification state for an address.

        The stored last-notified date never moves backwards.

        Returns:
            True if the row was written, False if an existing later date was kept.
        """
        cur = self._get_cursor()
        last = state.last_notified_date.isoformat() if state.last_notified_date else None
        try:
            cur.execute(
                """
                INSERT INTO notification_state (address_key, last_notified_date, last_snapshot, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(address_key) DO UPDATE SET
                    last_notified_date = excluded.last_notified_date,
                    last_snapshot = excluded.last_snapshot,
                    updated_at = excluded.updated_at
                WHERE notification_state.last_notified_date IS NULL
                   OR excluded.last_notified_date >= notification_state.last_notified_date
                """,
                (state.address_key, last, truncate_snapshot(state.last_snapshot)),
            )
        except sqlite3.Error as e:
            raise StateStoreError(f"Could not write state for {state.address_key}: {e}") from e
        return cur.rowcount > 0

    def log_send(
        self,
        address_key: str,
        recipient: str,
        announce_date: Optional[date],
        status: str,
        error_message: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> int:
        """Records one send attempt and returns its log ID."""
        cur = self._get_cursor()
        try:
            cur.execute(
                "INSERT INTO notification_logs (address_key, recipient, announce_date, status, error_message, message_id) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    address_key,
                    recipient,
                    announce_date.isoformat() if announce_date else None,
                    status,
                    error_message,
                    message_id,
                ),
            )
        except sqlite3.Error as e:
            raise StateStoreError(f"Could not log send to {recipient}: {e}") from e
        return cur.lastrowid

    def get_send_logs(self, address_key: str) -> List[dict]:
        """Retrieves the send attempts recorded for an address, oldest first."""
        cur = self._get_cursor()
        try:
            cur.execute(
                "SELECT * FROM notification_logs WHERE address_key = ? ORDER BY id ASC",
                (address_key,),
            )
            rows = cur.fetchall()
        except sqlite3.Error as e:
            raise StateStoreError(f"Could not read send logs for {address_key}: {e}") from e
        return [dict(row) for row in rows]
