"""
Usage ledger.

Counts generations per (user, billing period) and hands out quota units
with an atomic check-and-increment. try_consume is linearizable per key:
two callers racing for the last unit can never both be granted.
"""

import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

from ..core.errors import LedgerError
from .db import DEFAULT_DB_PATH, get_connection
from .models import UsageCounter

LOCK_STRIPES = 64


def billing_period_key(moment: Optional[datetime] = None) -> str:
    """Calendar-month key ("YYYY-MM", UTC) used to bucket usage."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m")


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of a try_consume call."""
    granted: bool
    used: int
    remaining_after: int


@runtime_checkable
class UsageLedger(Protocol):
    """Per-user, per-period generation counter."""

    def current_usage(self, user_id: str, period_key: str) -> int:
        """Generations used so far; 0 when the period has no row yet."""
        ...

    def try_consume(self, user_id: str, period_key: str, limit: int) -> ConsumeResult:
        """Atomically take one unit if usage < limit."""
        ...


class InMemoryUsageLedger:
    """Process-local ledger guarded by a fixed pool of striped locks.

    Each (user, period) key always maps to the same lock, so operations on
    one key are serialized while the lock table stays a constant size.
    """

    def __init__(self, initial: Optional[Dict[Tuple[str, str], int]] = None):
        """Initialize the ledger.

        Args:
            initial: Optional starting counts keyed by (user_id, period_key)
        """
        self._counts: Dict[Tuple[str, str], int] = {}
        for key, count in (initial or {}).items():
            self._counts[key] = UsageCounter(key[0], key[1], count).generations
        self._locks: Tuple[threading.Lock, ...] = tuple(
            threading.Lock() for _ in range(LOCK_STRIPES)
        )

    def _get_lock(self, key: Tuple[str, str]) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]

    def current_usage(self, user_id: str, period_key: str) -> int:
        key = (user_id, period_key)
        with self._get_lock(key):
            return self._counts.get(key, 0)

    def try_consume(self, user_id: str, period_key: str, limit: int) -> ConsumeResult:
        key = (user_id, period_key)
        with self._get_lock(key):
            used = self._counts.get(key, 0)
            if used >= limit:
                return ConsumeResult(granted=False, used=used, remaining_after=max(0, limit - used))
            used += 1
            self._counts[key] = used
            return ConsumeResult(granted=True, used=used, remaining_after=limit - used)


class SQLiteUsageLedger:
    """Ledger persisted in the usage_counter table.

    Each try_consume runs inside a single BEGIN IMMEDIATE transaction, so
    the read and the increment happen under SQLite's write lock and a
    failure rolls back without a partial increment.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    def current_usage(self, user_id: str, period_key: str) -> int:
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise LedgerError(f"Cannot open usage ledger: {e}") from e
        try:
            row = conn.execute(
                "SELECT generations FROM usage_counter WHERE user_id = ? AND period_key = ?",
                (user_id, period_key)
            ).fetchone()
            return row[0] if row else 0
        except sqlite3.Error as e:
            raise LedgerError(f"Failed to read usage for {user_id}/{period_key}: {e}") from e
        finally:
            conn.close()

    def try_consume(self, user_id: str, period_key: str, limit: int) -> ConsumeResult:
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise LedgerError(f"Cannot open usage ledger: {e}") from e
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT generations FROM usage_counter WHERE user_id = ? AND period_key = ?",
                (user_id, period_key)
            ).fetchone()
            used = row[0] if row else 0

            if used >= limit:
                conn.rollback()
                return ConsumeResult(granted=False, used=used, remaining_after=max(0, limit - used))

            conn.execute("""
                INSERT INTO usage_counter (user_id, period_key, generations)
                VALUES (?, ?, 1)
                ON CONFLICT (user_id, period_key)
                DO UPDATE SET generations = generations + 1
            """, (user_id, period_key))
            conn.commit()
            used += 1
            return ConsumeResult(granted=True, used=used, remaining_after=limit - used)
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.rollback()
            raise LedgerError(f"Failed to consume usage for {user_id}/{period_key}: {e}") from e
        finally:
            conn.close()

