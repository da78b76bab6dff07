# src/storage/database.py

"""Shared SQLite connection, schema and transaction helpers."""

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.errors import StoreError

logger = logging.getLogger("price_tracker.database")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    product_id    INTEGER PRIMARY KEY,
    current_price TEXT    NOT NULL,
    highest_price TEXT    NOT NULL,
    lowest_price  TEXT    NOT NULL,
    last_updated  TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS price_history (
    history_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id  INTEGER NOT NULL
                REFERENCES products(product_id)
                ON DELETE CASCADE ON UPDATE CASCADE,
    price       TEXT    NOT NULL,
    recorded_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_price_history_product_date
    ON price_history(product_id, recorded_at);

CREATE TABLE IF NOT EXISTS notification_preferences (
    preference_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id          INTEGER NOT NULL
                        REFERENCES products(product_id)
                        ON DELETE CASCADE ON UPDATE CASCADE,
    email               TEXT    NOT NULL,
    time_interval_hours INTEGER NOT NULL,
    price_threshold     TEXT    NOT NULL DEFAULT '0',
    notify_on_lowest    INTEGER NOT NULL DEFAULT 0,
    notify_on_highest   INTEGER NOT NULL DEFAULT 0,
    last_notified       TEXT    NOT NULL,
    created_at          TEXT    NOT NULL,
    updated_at          TEXT    NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_notification_preferences_product_email
    ON notification_preferences(product_id, email);

CREATE INDEX IF NOT EXISTS idx_notification_preferences_email
    ON notification_preferences(email);

CREATE INDEX IF NOT EXISTS idx_notification_preferences_last_notified
    ON notification_preferences(last_notified);
"""


# ── Column codecs ────────────────────────────────────────

def encode_timestamp(value: datetime) -> str:
    """Serialise a timestamp as fixed-width ISO-8601 UTC text.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(
        timespec="microseconds",
    )


def decode_timestamp(raw: str) -> datetime:
    """Parse stored timestamp text back into an aware UTC datetime."""
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def decode_decimal(raw: Any) -> Decimal:
    """Parse a stored fixed-point price."""
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise StoreError(f"Corrupt decimal value: {raw!r}") from exc


class Database:
    """Thread-safe wrapper around one SQLite connection.

    Both background loops and the subscription entry point share a
    single instance. Every statement runs under one re-entrant lock;
    ``transaction()`` groups several statements atomically and turns
    into a savepoint when nested.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.PRICE_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._savepoint_seq = 0
        try:
            self._conn = sqlite3.connect(
                str(path),
                check_same_thread=False,
                isolation_level=None,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to open database at {path}: {exc}"
            ) from exc
        logger.debug("Database opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    # ── Transactions ─────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements atomically.

        Commits on normal exit, rolls back and re-raises on any error.
        A failed COMMIT is rolled back and raised as ``StoreError``.
        """
        with self._lock:
            if self._conn.in_transaction:
                with self.savepoint() as conn:
                    yield conn
                return

            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
            except BaseException:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                # SQLite leaves the transaction open when COMMIT fails
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise StoreError(f"Commit failed: {exc}") from exc

    @contextmanager
    def savepoint(self) -> Iterator[sqlite3.Connection]:
        """Partial-rollback scope inside an open transaction."""
        with self._lock:
            self._savepoint_seq += 1
            name = f"sp_{self._savepoint_seq}"
            self._conn.execute(f"SAVEPOINT {name}")
            try:
                yield self._conn
            except BaseException:
                if self._conn.in_transaction:
                    self._conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
                    self._conn.execute(f"RELEASE SAVEPOINT {name}")
                raise
            self._conn.execute(f"RELEASE SAVEPOINT {name}")

    # ── Reads ────────────────────────────────────────────

    def fetch_all(
        self, sql: str, params: tuple[Any, ...] = (),
    ) -> list[tuple[Any, ...]]:
        """Run a read query and return every row."""
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"Query failed: {exc}") from exc

    def fetch_one(
        self, sql: str, params: tuple[Any, ...] = (),
    ) -> tuple[Any, ...] | None:
        """Run a read query and return the first row, if any."""
        with self._lock:
            try:
                row: tuple[Any, ...] | None = self._conn.execute(
                    sql, params,
                ).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"Query failed: {exc}") from exc
            return row
