# src/storage/subscription_store.py

"""SQLite-backed notification preferences."""

import logging
import sqlite3
from datetime import datetime
from decimal import Decimal

from src.errors import StoreError
from src.models.subscription import Subscription
from src.storage.database import (
    Database,
    decode_decimal,
    decode_timestamp,
    encode_timestamp,
)

logger = logging.getLogger("price_tracker.subscription_store")

_COLUMNS = (
    "preference_id, product_id, email, time_interval_hours, "
    "price_threshold, notify_on_lowest, notify_on_highest, "
    "last_notified, created_at, updated_at"
)


def _row_to_subscription(row: tuple[object, ...]) -> Subscription:
    """Convert a ``notification_preferences`` row into a Subscription."""
    return Subscription(
        preference_id=int(str(row[0])),
        product_id=int(str(row[1])),
        email=str(row[2]),
        interval_hours=int(str(row[3])),
        price_threshold=decode_decimal(row[4]),
        notify_on_lowest=bool(row[5]),
        notify_on_highest=bool(row[6]),
        last_notified=decode_timestamp(str(row[7])),
        created_at=decode_timestamp(str(row[8])),
        updated_at=decode_timestamp(str(row[9])),
    )


class DuplicateSubscriptionError(StoreError):
    """The recipient already has a rule for this product."""


class SubscriptionStore:
    """Notification preferences, unique per (product, email)."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # ── Writing ──────────────────────────────────────────

    def add(
        self,
        product_id: int,
        email: str,
        interval_hours: int,
        price_threshold: Decimal,
        notify_on_lowest: bool,
        notify_on_highest: bool,
        now: datetime,
    ) -> int:
        """Insert a preference row and return its id.

        ``last_notified`` starts at *now*, so the first notification
        goes out one full interval after subscribing. Joins the
        caller's transaction when one is open.
        """
        ts = encode_timestamp(now)
        try:
            with self._db.transaction() as conn:
                cur = conn.execute(
                    "INSERT INTO notification_preferences "
                    "(product_id, email, time_interval_hours, "
                    " price_threshold, notify_on_lowest, "
                    " notify_on_highest, last_notified, "
                    " created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        product_id,
                        email,
                        interval_hours,
                        str(price_threshold),
                        int(notify_on_lowest),
                        int(notify_on_highest),
                        ts,
                        ts,
                        ts,
                    ),
                )
                preference_id = cur.lastrowid
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc).upper():
                raise DuplicateSubscriptionError(
                    f"{email} already subscribed to product {product_id}"
                ) from exc
            raise StoreError(
                f"Failed to add subscription for {product_id}: {exc}"
            ) from exc
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to add subscription for {product_id}: {exc}"
            ) from exc

        if preference_id is None:
            raise StoreError("Insert returned no preference id")
        logger.info(
            "Subscription %d added: product=%s email=%s every %dh",
            preference_id,
            product_id,
            email,
            interval_hours,
        )
        return preference_id

    def update_last_notified(
        self, preference_id: int, at: datetime,
    ) -> bool:
        """Record a successful delivery; returns False if the row is gone."""
        ts = encode_timestamp(at)
        try:
            with self._db.transaction() as conn:
                cur = conn.execute(
                    "UPDATE notification_preferences "
                    "SET last_notified = ?, updated_at = ? "
                    "WHERE preference_id = ?",
                    (ts, ts, preference_id),
                )
                return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to update subscription {preference_id}: {exc}"
            ) from exc

    # ── Querying ─────────────────────────────────────────

    def list_all(self) -> list[Subscription]:
        """Return every preference row, oldest first."""
        rows = self._db.fetch_all(
            f"SELECT {_COLUMNS} FROM notification_preferences "
            "ORDER BY preference_id",
        )
        return [_row_to_subscription(r) for r in rows]

    def list_product_ids(self) -> list[int]:
        """Distinct product ids referenced by at least one subscription."""
        rows = self._db.fetch_all(
            "SELECT DISTINCT product_id FROM notification_preferences "
            "ORDER BY product_id",
        )
        return [int(r[0]) for r in rows]

    def get(self, preference_id: int) -> Subscription | None:
        """Fetch a single preference row."""
        row = self._db.fetch_one(
            f"SELECT {_COLUMNS} FROM notification_preferences "
            "WHERE preference_id = ?",
            (preference_id,),
        )
        return _row_to_subscription(row) if row else None

    def find(
        self, product_id: int, email: str,
    ) -> Subscription | None:
        """Look up the rule a recipient holds for a product."""
        row = self._db.fetch_one(
            f"SELECT {_COLUMNS} FROM notification_preferences "
            "WHERE product_id = ? AND email = ?",
            (product_id, email),
        )
        return _row_to_subscription(row) if row else None
