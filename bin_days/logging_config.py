"""
This module sets up database and console logging for the application.
"""
import logging
import sqlite3
from logging import Handler, LogRecord

from collection_schedule.config import LOG_LEVEL, STATE_DB_PATH


class SQLiteHandler(Handler):
    """
    A logging handler that writes records to the logs table of the state database.
    """

    def __init__(self, db_path: str = STATE_DB_PATH):
        super().__init__()
        self.db_path = db_path

    def emit(self, record: LogRecord) -> None:
        """
        Writes the log record to the database.
        """
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute(
                    "INSERT INTO logs (level, message, logger_name) VALUES (?, ?, ?)",
                    (record.levelname, self.format(record), record.name),
                )
                conn.commit()
            finally:
                conn.close()
        except Exception:
            self.handleError(record)


def setup_logging(db_path: str = STATE_DB_PATH, level: int = LOG_LEVEL) -> None:
    """
    Configures the root logger to write to the database and the console.

    The logs table must already exist; call PersistenceService.init_db() first.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove any existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    db_handler = SQLiteHandler(db_path)
    db_handler.setLevel(level)
    db_handler.setFormatter(formatter)
    logger.addHandler(db_handler)

    # Add a console handler as well for immediate feedback
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logging.info("Logging configured to use database and console.")
