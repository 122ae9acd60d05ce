"""Persistent delivery store for scheduled reminders.

Keeps every pending delivery in local SQLite until it has been sent.
A delivery is removed as soon as the notifier accepts it, so the table
only ever holds work that still has to happen. Survives bot restarts.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from logger import logger
from . import config

# Fixed width so that ORDER BY due_at is chronological
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class StoreError(Exception):
    """The delivery store could not be opened, read or written."""


@dataclass(frozen=True)
class Delivery:
    """A reminder waiting to be delivered."""
    id: int
    target: dict[str, Any]
    due_at: datetime


def format_timestamp(value: datetime) -> str:
    """Serialise an aware datetime as fixed-width UTC text."""
    if value.tzinfo is None:
        raise ValueError("due_at must be timezone-aware")
    utc = value.astimezone(timezone.utc)
    # %Y isn't zero-padded below year 1000 on every platform
    return f"{utc.year:04d}-" + utc.strftime(TIMESTAMP_FORMAT[3:])


def parse_timestamp(value: str) -> datetime:
    """Inverse of format_timestamp."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class DeliveryStore:
    """SQLite-backed ordered collection of pending deliveries.

    Usage:
        store = DeliveryStore("data/reminders.db")
        store.open()

        delivery_id = store.insert({"channel_id": 1}, due_at)
        for delivery in store.iterate_due(now):
            ...
            store.delete(delivery.id)

    All methods are blocking; async callers go through asyncio.to_thread.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or config.REMINDER_DB
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def open(self) -> "DeliveryStore":
        """Connect, enable WAL mode and create the schema.

        Raises:
            StoreError: If the database cannot be opened or initialised
        """
        if self._connection is not None:
            return self

        try:
            # Ensure data directory exists
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,  # Used from asyncio.to_thread workers
                timeout=10.0
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(f"PRAGMA busy_timeout={config.DB_BUSY_TIMEOUT_MS}")
            self._init_schema(conn)
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Cannot open delivery store {self.db_path}: {e}") from e

        self._connection = conn
        logger.info(f"Delivery store initialized: {self.db_path}")
        return self

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def __enter__(self) -> "DeliveryStore":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    @staticmethod
    def _init_schema(conn: sqlite3.Connection) -> None:
        """Create tables if they don't exist."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS deliveries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                target TEXT NOT NULL,
                due_at TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_deliveries_due ON deliveries(due_at, id);
        """)
        conn.commit()

    @contextmanager
    def _transaction(self):
        """Serialised access to the connection, committing on success."""
        with self._lock:
            if self._connection is None:
                raise StoreError("Delivery store is not open")
            conn = self._connection
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StoreError(str(e)) from e

    def insert(self, target: dict[str, Any], due_at: datetime) -> int:
        """Add a delivery. Committed to disk before returning.

        Args:
            target: Addressing payload for the notifier (JSON-serialisable)
            due_at: Timezone-aware time at which the delivery becomes due

        Returns:
            The new delivery ID

        Raises:
            ValueError: If due_at is naive
            TypeError: If target is not JSON-serialisable
            StoreError: If the write fails
        """
        due_text = format_timestamp(due_at)
        target_text = json.dumps(target, sort_keys=True)
        created_text = format_timestamp(datetime.now(timezone.utc))

        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO deliveries (target, due_at, created_at) VALUES (?, ?, ?)",
                (target_text, due_text, created_text)
            )
            delivery_id = cursor.lastrowid

        logger.debug(f"Delivery {delivery_id} stored, due {due_text}")
        return delivery_id

    def peek_earliest(self) -> Optional[Delivery]:
        """Get the delivery with the smallest due time without removing it."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT id, target, due_at FROM deliveries ORDER BY due_at, id"
            )
            for row in rows:
                delivery = _row_to_delivery(row)
                if delivery is not None:
                    return delivery
        return None

    def iterate_due(self, now: datetime) -> Iterator[Delivery]:
        """Snapshot every delivery due at or before now, oldest first.

        Rows are fetched when this is called; decoding happens lazily and
        undecodable rows are skipped.
        """
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT id, target, due_at FROM deliveries WHERE due_at <= ? ORDER BY due_at, id",
                (format_timestamp(now),)
            ).fetchall()
        return _decode_rows(rows)

    def delete(self, delivery_id: int) -> bool:
        """Remove a delivery.

        Returns:
            True if a row was removed, False if it was already gone
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM deliveries WHERE id = ?", (delivery_id,))
            removed = cursor.rowcount > 0

        if not removed:
            logger.debug(f"Delivery {delivery_id} already removed")
        return removed

    def count(self) -> int:
        """Number of pending deliveries."""
        with self._transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM deliveries").fetchone()[0]


def _decode_rows(rows: list[sqlite3.Row]) -> Iterator[Delivery]:
    for row in rows:
        delivery = _row_to_delivery(row)
        if delivery is not None:
            yield delivery


def _row_to_delivery(row: sqlite3.Row) -> Optional[Delivery]:
    """Decode a row, or None (logged) if it is malformed."""
    try:
        target = json.loads(row["target"])
        if not isinstance(target, dict):
            raise ValueError(f"target is {type(target).__name__}, expected object")
        return Delivery(id=row["id"], target=target, due_at=parse_timestamp(row["due_at"]))
    except (TypeError, ValueError) as e:
        logger.warning(f"Skipping malformed delivery row {row['id']}: {e}")
        return None
