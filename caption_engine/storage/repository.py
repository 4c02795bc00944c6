"""
Caption history storage.

Handles schema creation and the caption history store.
"""

import json
import sqlite3
import threading
from datetime import datetime, timezone
from typing import List, Protocol, runtime_checkable

from ..core.errors import StorageError
from ..core.ranking import CaptionVariant
from ..core.request import GenerationRequest
from .db import DEFAULT_DB_PATH, get_connection
from .models import CaptionRecord


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the usage_counter and caption_history tables if they don't exist.

    usage_counter rows are only ever incremented. caption_history is
    append-only.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_counter (
                user_id TEXT NOT NULL,
                period_key TEXT NOT NULL,
                generations INTEGER NOT NULL DEFAULT 0 CHECK (generations >= 0),
                PRIMARY KEY (user_id, period_key)
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS caption_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                request_id TEXT NOT NULL,
                request_json TEXT NOT NULL,
                variant_json TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_caption_history_user
            ON caption_history (user_id, id)
        """)
        conn.commit()
    finally:
        conn.close()


@runtime_checkable
class HistoryStore(Protocol):
    """Where completed generations are recorded."""

    def record(self, user_id: str, request: GenerationRequest, variant: CaptionVariant) -> None:
        """Save the chosen variant. Raises StorageError on failure."""
        ...


class HistoryRepository:
    """SQLite-backed caption history."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def record(self, user_id: str, request: GenerationRequest, variant: CaptionVariant) -> None:
        """Append one caption to the user's history.

        Raises:
            StorageError: If the row could not be written
        """
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open history store: {e}") from e
        try:
            conn.execute("""
                INSERT INTO caption_history
                (user_id, request_id, request_json, variant_json, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                user_id,
                request.request_id,
                json.dumps(request.to_record()),
                json.dumps(variant.to_record()),
                datetime.now(timezone.utc).isoformat()
            ))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to record caption {request.request_id}: {e}") from e
        finally:
            conn.close()

    def recent(self, user_id: str, limit: int = 10) -> List[CaptionRecord]:
        """Get a user's most recent captions.

        Args:
            user_id: Owner of the history
            limit: Maximum number of records to return

        Returns:
            Records ordered newest first
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT user_id, request_id, request_json, variant_json, created_at
                FROM caption_history
                WHERE user_id = ?
                ORDER BY id DESC LIMIT ?
            """, (user_id, limit))
            return [
                CaptionRecord(
                    user_id=row[0],
                    request_id=row[1],
                    request=json.loads(row[2]),
                    variant=json.loads(row[3]),
                    created_at=datetime.fromisoformat(row[4])
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()


class InMemoryHistoryStore:
    """History kept in a list; for tests and offline runs."""

    def __init__(self):
        self._records: List[CaptionRecord] = []
        self._lock = threading.Lock()

    def record(self, user_id: str, request: GenerationRequest, variant: CaptionVariant) -> None:
        with self._lock:
            self._records.append(CaptionRecord(
                user_id=user_id,
                request_id=request.request_id,
                request=request.to_record(),
                variant=variant.to_record(),
                created_at=datetime.now(timezone.utc)
            ))

    def recent(self, user_id: str, limit: int = 10) -> List[CaptionRecord]:
        with self._lock:
            mine = [r for r in self._records if r.user_id == user_id]
        return list(reversed(mine))[:limit]

