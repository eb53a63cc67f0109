"""
Unit tests for the PersistenceService.
"""
import json
import sqlite3
from datetime import date

import pytest

from collection_schedule.exceptions import StateStoreError
from collection_schedule.models import NotificationState
from collection_schedule.services.persistence_service import (
    SNAPSHOT_MAX_BYTES, PersistenceService, truncate_snapshot)


@pytest.fixture
def temp_db(tmp_path):
    """Creates a temporary state database for testing."""
    db_path = tmp_path / "test_state.db"
    with PersistenceService(db_path=str(db_path)) as p:
        p.init_db()
    return str(db_path)


def test_init_db_creates_tables(temp_db):
    """Tests that all tables are created by init_db."""
    conn = sqlite3.connect(temp_db)
    cur = conn.cursor()
    tables = [row[0] for row in cur.execute("SELECT name FROM sqlite_master WHERE type='table'")]
    conn.close()
    assert "notification_state" in tables
    assert "logs" in tables
    assert "notification_logs" in tables


def test_get_state_missing_returns_none(temp_db):
    """Tests that an unknown address has no state."""
    with PersistenceService(db_path=temp_db) as p:
        assert p.get_state("unknown") is None


def test_put_and_get_state(temp_db):
    """Tests storing and reading back a notification state."""
    state = NotificationState("key1", date(2025, 9, 11), '{"collections": []}')

    with PersistenceService(db_path=temp_db) as p:
        assert p.put_state(state) is True

    with PersistenceService(db_path=temp_db) as p:
        stored = p.get_state("key1")
    assert stored == state


def test_put_state_never_moves_date_backwards(temp_db):
    """Tests that an earlier date does not overwrite a later stored one."""
    with PersistenceService(db_path=temp_db) as p:
        assert p.put_state(NotificationState("key1", date(2025, 9, 18), "later")) is True
        assert p.put_state(NotificationState("key1", date(2025, 9, 11), "earlier")) is False
        stored = p.get_state("key1")

    assert stored.last_notified_date == date(2025, 9, 18)
    assert stored.last_snapshot == "later"


def test_put_state_same_date_is_idempotent(temp_db):
    """Tests that rewriting the same date leaves a single row."""
    with PersistenceService(db_path=temp_db) as p:
        p.put_state(NotificationState("key1", date(2025, 9, 11), "a"))
        p.put_state(NotificationState("key1", date(2025, 9, 11), "b"))

    conn = sqlite3.connect(temp_db)
    rows = conn.execute("SELECT last_notified_date, last_snapshot FROM notification_state").fetchall()
    conn.close()
    assert rows == [("2025-09-11", "b")]


def test_put_state_truncates_snapshot(temp_db):
    """Tests that oversized snapshots are cut to the stored size limit."""
    with PersistenceService(db_path=temp_db) as p:
        p.put_state(NotificationState("key1", date(2025, 9, 11), "x" * 10000))
        stored = p.get_state("key1")

    assert len(stored.last_snapshot.encode("utf-8")) == SNAPSHOT_MAX_BYTES


def test_truncate_snapshot_serializes_and_keeps_valid_utf8():
    """Tests JSON serialization and multi-byte safe truncation."""
    assert json.loads(truncate_snapshot({"a": 1})) == {"a": 1}

    truncated = truncate_snapshot("é" * 10, max_bytes=5)
    assert truncated == "éé"


def test_log_send_records_attempts(temp_db):
    """Tests that send attempts are logged in order."""
    with PersistenceService(db_path=temp_db) as p:
        first = p.log_send("key1", "a@example.com", date(2025, 9, 11), "sent", message_id="m1")
        p.log_send("key1", "b@example.com", date(2025, 9, 11), "failure", error_message="boom")
        logs = p.get_send_logs("key1")

    assert first == 1
    assert [log["recipient"] for log in logs] == ["a@example.com", "b@example.com"]
    assert logs[0]["message_id"] == "m1"
    assert logs[1]["status"] == "failure"
    assert logs[1]["announce_date"] == "2025-09-11"


def test_changes_roll_back_on_error(temp_db):
    """Tests that an exception inside the block discards its writes."""
    with pytest.raises(ValueError):
        with PersistenceService(db_path=temp_db) as p:
            p.put_state(NotificationState("key1", date(2025, 9, 11), ""))
            raise ValueError("boom")

    with PersistenceService(db_path=temp_db) as p:
        assert p.get_state("key1") is None


def test_unopened_database_raises_state_store_error(tmp_path):
    """Tests that an unreachable database path is reported as a StateStoreError."""
    missing = tmp_path / "missing" / "state.db"
    with pytest.raises(StateStoreError):
        with PersistenceService(db_path=str(missing)):
            pass


def test_cursor_requires_context_manager():
    """Tests that using the service outside a with block fails clearly."""
    with pytest.raises(RuntimeError):
        PersistenceService(db_path=":memory:").get_state("key1")


@pytest.fixture
def reader_lock(temp_db):
    """Holds a read transaction open on the database, as an overlapping run would."""
    conn = sqlite3.connect(temp_db, isolation_level=None)
    conn.execute("BEGIN")
    conn.execute("SELECT * FROM notification_state").fetchall()
    yield conn
    conn.execute("ROLLBACK")
    conn.close()


def test_commit_on_locked_database_raises_state_store_error(temp_db, reader_lock):
    """Tests that a commit blocked by another connection is reported as a StateStoreError."""
    with pytest.raises(StateStoreError):
        with PersistenceService(db_path=temp_db, timeout=0.05) as p:
            p.put_state(NotificationState("key1", date(2025, 9, 11), ""))


def test_connection_is_reset_after_failed_commit(temp_db, reader_lock):
    """Tests that the service can be reused after a failed commit."""
    service = PersistenceService(db_path=temp_db, timeout=0.05)
    with pytest.raises(StateStoreError):
        with service as p:
            p.log_send("key1", "a@example.com", date(2025, 9, 11), "sent")

    with pytest.raises(RuntimeError):
        service.get_state("key1")
    with service as p:
        assert p.get_state("key1") is None


def test_unreadable_stored_date_raises_state_store_error(temp_db):
    """Tests that a corrupt stored date is reported as a StateStoreError."""
    conn = sqlite3.connect(temp_db)
    conn.execute(
        "INSERT INTO notification_state (address_key, last_notified_date, last_snapshot) VALUES (?, ?, ?)",
        ("key1", "11/09/2025", ""),
    )
    conn.commit()
    conn.close()

    with pytest.raises(StateStoreError):
        with PersistenceService(db_path=temp_db) as p:
            p.get_state("key1")
