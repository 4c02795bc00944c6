"""
Database connection management.

Provides SQLite connections for the usage ledger and caption history.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "caption_engine.db"


def get_connection(db_path: str = DEFAULT_DB_PATH, timeout: float = 30.0) -> sqlite3.Connection:
    """Open a SQLite connection to the engine database.

    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait for a competing writer to release its lock

    Returns:
        Open connection; the caller closes it
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=timeout)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
