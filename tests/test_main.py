"""
Unit tests for the entry points and logging setup.
"""
import logging
import sqlite3
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bin_days import main as entry
from bin_days.logging_config import SQLiteHandler, setup_logging
from collection_schedule.exceptions import ConfigError
from collection_schedule.models import RunConfig, RunSummary
from collection_schedule.services.persistence_service import PersistenceService


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock(return_value=RunSummary(target_date=date(2025, 9, 11), force_mode=True))
    return orchestrator


@patch("bin_days.main._setup")
@patch("bin_days.main.create_orchestrator")
@patch("bin_days.main.load_run_config")
def test_daily_runs_orchestrator_and_returns_summary(mock_load, mock_create, mock_setup, orchestrator):
    """Tests that daily loads config, honours forceNotify and returns the summary."""
    mock_load.return_value = RunConfig(addresses=(), timezone="Europe/London")
    mock_create.return_value = orchestrator

    result = entry.daily({"forceNotify": True})

    assert result["statusCode"] == 200
    assert result["body"] == "ok"
    assert result["summary"]["targetDate"] == "2025-09-11"
    mock_create.assert_called_once_with("Europe/London")
    assert orchestrator.run.await_args.kwargs["force_mode"] is True


@patch("bin_days.main._setup")
@patch("bin_days.main.load_run_config")
def test_daily_config_error_propagates(mock_load, mock_setup):
    """Tests that configuration errors fail the run."""
    mock_load.side_effect = ConfigError("Config file not found: config/recipients.json")

    with pytest.raises(ConfigError):
        entry.daily({})


def test_run_budget_uses_host_remaining_time():
    """Tests that the host's remaining time bounds the run budget."""
    context = MagicMock()
    context.get_remaining_time_in_millis.return_value = 120_000

    assert entry._run_budget(context) == 90
    assert entry._run_budget(None) == entry.RUN_TIMEOUT_SECONDS


@patch("bin_days.main._setup")
@patch("bin_days.main.daily")
def test_cli_run_passes_force_flag(mock_daily, mock_setup, capsys):
    mock_daily.return_value = {"summary": {"sent": 0}}

    with patch("sys.argv", ["bin-days", "run", "--force"]):
        entry.main()

    mock_daily.assert_called_once_with({"forceNotify": True})
    assert '"sent": 0' in capsys.readouterr().out


@patch("bin_days.main._setup")
@patch("bin_days.main.create_email_service")
@patch("bin_days.main.send_test_email")
def test_cli_send_test(mock_send_test, mock_create_email, mock_setup):
    with patch("sys.argv", ["bin-days", "send-test", "--to", "a@example.com"]):
        entry.main()

    mock_send_test.assert_called_once_with(mock_create_email.return_value, "a@example.com")


def test_sqlite_handler_writes_log_rows(tmp_path):
    """Tests that log records land in the logs table."""
    db_path = str(tmp_path / "state.db")
    with PersistenceService(db_path) as p:
        p.init_db()

    handler = SQLiteHandler(db_path)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.emit(logging.LogRecord("bins", logging.WARNING, __file__, 1, "bin day", None, None))

    conn = sqlite3.connect(db_path)
    rows = conn.execute("SELECT level, message, logger_name FROM logs").fetchall()
    conn.close()
    assert rows == [("WARNING", "bin day", "bins")]


def test_setup_logging_replaces_root_handlers(tmp_path):
    """Tests that setup_logging installs exactly the database and console handlers."""
    db_path = str(tmp_path / "state.db")
    with PersistenceService(db_path) as p:
        p.init_db()
    root = logging.getLogger()
    saved = root.handlers[:]
    try:
        setup_logging(db_path, logging.INFO)
        kinds = sorted(type(h).__name__ for h in root.handlers)
        assert kinds == ["SQLiteHandler", "StreamHandler"]
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        for handler in saved:
            root.addHandler(handler)
